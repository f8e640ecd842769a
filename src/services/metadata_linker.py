import logging
from dataclasses import dataclass

from src.core.exceptions import MetadataPersistenceError
from src.database.material_store import MaterialStore
from src.database.models.material import MaterialRecord

logger = logging.getLogger(__name__)


@dataclass
class LinkResult:
    material_id: str
    replaced: bool


class MetadataLinker:
    """
    Attaches material records to course items.

    Only called once a document's chunks are in the vector store. Linking the
    same document id twice replaces the earlier record, so the last write wins
    and an item never lists the same material twice.
    """

    def __init__(self, store: MaterialStore) -> None:
        self.store = store

    async def link(
        self,
        record: MaterialRecord,
        course_id: str,
        division_id: str,
        item_id: str,
    ) -> LinkResult:
        """
        Raises:
            MetadataPersistenceError: If the item does not exist or the store fails
        """
        replaced = await self.store.remove_material(
            course_id, division_id, item_id, record.id
        )
        appended = await self.store.append_material(
            course_id, division_id, item_id, record
        )
        if not appended:
            raise MetadataPersistenceError(
                "Course item not found for material record",
                operation="append_material",
                details={
                    "course_id": course_id,
                    "division_id": division_id,
                    "item_id": item_id,
                    "material_id": record.id,
                },
            )

        logger.info(
            f"Linked material '{record.id}' to course '{course_id}' item '{item_id}'"
            + (" (replaced previous record)" if replaced else "")
        )
        return LinkResult(material_id=record.id, replaced=replaced)

    async def unlink(
        self, course_id: str, division_id: str, item_id: str, material_id: str
    ) -> bool:
        removed = await self.store.remove_material(
            course_id, division_id, item_id, material_id
        )
        if removed:
            logger.info(f"Unlinked material '{material_id}' from course '{course_id}'")
        return removed

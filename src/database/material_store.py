"""
Material lists stored inside course documents.

A course document (owned by the course management side of the system) holds
``topicOrWeekInstances[].items[].additionalMaterials[]``. This store only
reads courses and edits the ``additionalMaterials`` arrays, addressing the
target item with array filters so concurrent edits to other items are never
overwritten.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Dict, List, Optional

import anyio
from motor.motor_asyncio import AsyncIOMotorCollection
from pydantic import ValidationError

from src.config import METADATA_TIMEOUT_SECONDS
from src.core.exceptions import MetadataPersistenceError
from src.database.models.material import Course, MaterialLocation, MaterialRecord

logger = logging.getLogger(__name__)

MATERIALS_PATH = "topicOrWeekInstances.$[instance].items.$[item].additionalMaterials"


class MaterialStore:
    """Async access to per-item material lists."""

    def __init__(
        self,
        collection: AsyncIOMotorCollection,
        timeout: float = METADATA_TIMEOUT_SECONDS,
    ) -> None:
        self.collection = collection
        self.timeout = timeout

    async def _call(self, operation: str, awaitable: Awaitable[Any]) -> Any:
        try:
            with anyio.fail_after(self.timeout):
                return await awaitable
        except TimeoutError as e:
            logger.error(f"Metadata store '{operation}' timed out after {self.timeout}s")
            raise MetadataPersistenceError(
                f"Metadata store timed out after {self.timeout}s", operation=operation
            ) from e
        except Exception as e:
            logger.error(f"Metadata store '{operation}' failed: {e}")
            raise MetadataPersistenceError(
                f"Failed to {operation.replace('_', ' ')}: {str(e)}",
                operation=operation,
                details={"upstream": str(e)},
            ) from e

    @staticmethod
    def _item_filters(division_id: str, item_id: str) -> List[Dict[str, Any]]:
        return [{"instance.id": division_id}, {"item.id": item_id}]

    async def find_course(self, course_id: str) -> Optional[Course]:
        document = await self._call(
            "find_course", self.collection.find_one({"id": course_id})
        )
        if document is None:
            return None
        try:
            return Course.model_validate(document)
        except ValidationError as e:
            logger.error(f"Course '{course_id}' has an unreadable structure: {e}")
            raise MetadataPersistenceError(
                f"Course '{course_id}' has an unreadable structure",
                operation="find_course",
                details={"errors": e.error_count()},
            ) from e

    async def list_materials(self, course_id: str) -> List[MaterialLocation]:
        """All material records of a course, empty if the course is unknown."""
        course = await self.find_course(course_id)
        if course is None:
            return []
        return course.materials()

    async def find_material(
        self, course_id: str, division_id: str, item_id: str, material_id: str
    ) -> Optional[MaterialLocation]:
        for location in await self.list_materials(course_id):
            if (
                location.division_id == division_id
                and location.item_id == item_id
                and location.material.id == material_id
            ):
                return location
        return None

    async def append_material(
        self,
        course_id: str,
        division_id: str,
        item_id: str,
        record: MaterialRecord,
    ) -> bool:
        """
        Push a record onto an item's material list.

        Returns:
            bool: False if the course, division or item does not exist
        """
        result = await self._call(
            "append_material",
            self.collection.update_one(
                {"id": course_id},
                {
                    "$push": {MATERIALS_PATH: record.to_dict()},
                    "$set": {"updatedAt": datetime.now(timezone.utc)},
                },
                array_filters=self._item_filters(division_id, item_id),
            ),
        )
        return result.modified_count > 0

    async def remove_material(
        self,
        course_id: str,
        division_id: str,
        item_id: str,
        material_id: str,
    ) -> bool:
        """
        Pull a record from an item's material list.

        Returns:
            bool: True if a record was removed
        """
        result = await self._call(
            "remove_material",
            self.collection.update_one(
                {
                    "id": course_id,
                    "topicOrWeekInstances.items.additionalMaterials.id": material_id,
                },
                {
                    "$pull": {MATERIALS_PATH: {"id": material_id}},
                    "$set": {"updatedAt": datetime.now(timezone.utc)},
                },
                array_filters=self._item_filters(division_id, item_id),
            ),
        )
        return result.modified_count > 0

    async def clear_all(self, course_id: str) -> bool:
        """
        Empty every material list of a course.

        Returns:
            bool: False if the course does not exist
        """
        result = await self._call(
            "clear_all_materials",
            self.collection.update_one(
                {"id": course_id},
                {
                    "$set": {
                        MATERIALS_PATH: [],
                        "updatedAt": datetime.now(timezone.utc),
                    }
                },
                array_filters=[
                    {"instance.items": {"$exists": True}},
                    {"item.additionalMaterials": {"$exists": True}},
                ],
            ),
        )
        logger.info(f"Cleared material lists of course '{course_id}'")
        return result.matched_count > 0

    async def ping(self) -> bool:
        await self._call("ping", self.collection.database.command("ping"))
        return True

"""
Deletion across the vector store and the metadata store.

Course wipes are continue-on-error: one document failing does not stop the
rest of the course from being cleaned up, and every failure is reported back
in the ``WipeReport``.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from src.core.exceptions import IngestionServiceError, NotFoundError, VectorStoreError
from src.core.vector_store_manager import VectorStoreManager
from src.database.material_store import MaterialStore
from src.services.metadata_linker import MetadataLinker

logger = logging.getLogger(__name__)


@dataclass
class DeletionError:
    """``document_id`` is None for a malformed record that carries no id."""

    document_id: Optional[str]
    error: str


@dataclass
class WipeReport:
    """
    Outcome of a course wipe.

    ``errors`` holds per-document failures only. A failure to clear the
    course's material lists at the end is reported in ``clear_error``.
    """

    course_id: str
    deleted_documents: List[str] = field(default_factory=list)
    total_chunks_deleted: int = 0
    errors: List[DeletionError] = field(default_factory=list)
    clear_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        report = {
            "courseId": self.course_id,
            "deletedDocuments": list(self.deleted_documents),
            "totalChunksDeleted": self.total_chunks_deleted,
            "errors": [
                {"documentId": e.document_id, "error": e.error} for e in self.errors
            ],
        }
        if self.clear_error is not None:
            report["clearError"] = self.clear_error
        return report


@dataclass
class MaterialDeletion:
    material_id: str
    chunks_deleted: int
    deleted: bool = True


class DeletionCoordinator:
    def __init__(
        self,
        vector_store: VectorStoreManager,
        store: MaterialStore,
        linker: MetadataLinker,
    ) -> None:
        self.vector_store = vector_store
        self.store = store
        self.linker = linker

    async def wipe_course(self, course_id: str) -> WipeReport:
        """
        Remove every ingested document of a course from both stores.

        For each material record the chunks are deleted first and the record
        second. Failures are collected per document. All material lists are
        cleared at the end even if some documents failed, so the caller gets a
        clean course plus an explicit list of documents whose vectors may need
        operator attention.

        Args:
            course_id: Course to wipe

        Returns:
            WipeReport: Deleted document ids, chunks removed and per-document errors
        """
        report = WipeReport(course_id=course_id)
        course = await self.store.find_course(course_id)
        if course is None:
            logger.info(f"Course '{course_id}' does not exist, nothing to wipe")
            return report

        locations = course.materials()
        malformed = course.malformed_materials()
        if not locations and not malformed:
            logger.info(f"Course '{course_id}' has no materials to wipe")
            return report

        logger.info(
            f"Wiping {len(locations) + len(malformed)} materials from course '{course_id}'"
        )
        for location in locations:
            material_id = location.material.id
            try:
                deleted = await self.vector_store.delete_document_chunks(
                    course_id, material_id
                )
            except IngestionServiceError as e:
                logger.warning(f"Failed to delete chunks of '{material_id}': {e.message}")
                report.errors.append(DeletionError(material_id, e.message))
                continue
            report.total_chunks_deleted += deleted

            try:
                await self.linker.unlink(
                    course_id, location.division_id, location.item_id, material_id
                )
            except IngestionServiceError as e:
                logger.warning(f"Failed to unlink material '{material_id}': {e.message}")
                report.errors.append(DeletionError(material_id, e.message))
                continue
            report.deleted_documents.append(material_id)

        # Malformed records are reported; their chunks go too when the id is known
        for entry in malformed:
            if entry.material_id:
                try:
                    report.total_chunks_deleted += (
                        await self.vector_store.delete_document_chunks(
                            course_id, entry.material_id
                        )
                    )
                except IngestionServiceError as e:
                    logger.warning(
                        f"Failed to delete chunks of '{entry.material_id}': {e.message}"
                    )
            report.errors.append(DeletionError(entry.material_id, entry.error))

        try:
            await self.store.clear_all(course_id)
        except IngestionServiceError as e:
            logger.error(f"Failed to clear material lists of course '{course_id}': {e}")
            report.clear_error = e.message

        logger.info(
            f"Wiped course '{course_id}': {len(report.deleted_documents)} documents, "
            f"{report.total_chunks_deleted} chunks, {len(report.errors)} errors"
        )
        return report

    async def delete_material(
        self, course_id: str, division_id: str, item_id: str, material_id: str
    ) -> MaterialDeletion:
        """
        Delete one material: its chunks first, then its record.

        Raises:
            NotFoundError: If the course does not hold that material
            VectorStoreError: If the chunks could not be deleted; the record is kept
            MetadataPersistenceError: If the record could not be removed
        """
        location = await self.store.find_material(
            course_id, division_id, item_id, material_id
        )
        if location is None:
            raise NotFoundError(
                "Material not found",
                details={
                    "course_id": course_id,
                    "division_id": division_id,
                    "item_id": item_id,
                    "material_id": material_id,
                },
            )

        try:
            deleted = await self.vector_store.delete_document_chunks(
                course_id, material_id
            )
        except VectorStoreError as e:
            logger.error(
                f"Keeping record of material '{material_id}', vector deletion failed: {e}"
            )
            raise VectorStoreError(
                "Failed to delete material from vector database",
                operation="delete_chunks",
                details={"material_id": material_id, "upstream": e.message},
            ) from e

        removed = await self.linker.unlink(course_id, division_id, item_id, material_id)
        return MaterialDeletion(
            material_id=material_id, chunks_deleted=deleted, deleted=removed
        )

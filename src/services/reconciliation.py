"""
Reconciliation between the vector store and the metadata store.

Ingestion writes chunks as ``pending``, links the material record and then
marks the chunks ``committed``. Any crash or store failure between those
steps leaves the two stores out of step. The sweep repairs them:

- chunks of a document that has a material record are promoted to committed,
- committed chunks without a record (left behind by a failed wipe) are deleted,
- pending chunks without a record are deleted once older than the grace period.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from src.config import PENDING_GRACE_PERIOD_SECONDS
from src.constants import CHUNK_STATUS_COMMITTED, CHUNK_STATUS_PENDING
from src.core.exceptions import IngestionServiceError
from src.core.vector_store_manager import STATUS_KEY, VectorStoreManager
from src.database.material_store import MaterialStore
from src.services.deletion import DeletionError

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    courses_scanned: int = 0
    promoted_documents: List[str] = field(default_factory=list)
    deleted_documents: List[str] = field(default_factory=list)
    chunks_deleted: int = 0
    errors: List[DeletionError] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "coursesScanned": self.courses_scanned,
            "promotedDocuments": list(self.promoted_documents),
            "deletedDocuments": list(self.deleted_documents),
            "chunksDeleted": self.chunks_deleted,
            "errors": [
                {"documentId": e.document_id, "error": e.error} for e in self.errors
            ],
        }


@dataclass
class _DocumentChunks:
    statuses: set = field(default_factory=set)
    last_ingested_at: float = 0.0


class ReconciliationSweeper:
    def __init__(
        self,
        vector_store: VectorStoreManager,
        store: MaterialStore,
        grace_period: float = PENDING_GRACE_PERIOD_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.vector_store = vector_store
        self.store = store
        self.grace_period = grace_period
        self.clock = clock

    async def _group_chunks(self, course_id: str) -> Dict[str, _DocumentChunks]:
        documents: Dict[str, _DocumentChunks] = {}
        for record in await self.vector_store.scroll_points(course_id):
            payload = record.payload or {}
            metadata = payload.get("metadata", {})
            document_id = metadata.get("document_id")
            if not document_id:
                continue
            chunks = documents.setdefault(document_id, _DocumentChunks())
            chunks.statuses.add(payload.get(STATUS_KEY, CHUNK_STATUS_COMMITTED))
            chunks.last_ingested_at = max(
                chunks.last_ingested_at, float(metadata.get("ingested_at", 0))
            )
        return documents

    async def reconcile_course(self, course_id: str, report: ReconcileReport) -> None:
        documents = await self._group_chunks(course_id)
        if not documents:
            return

        course = await self.store.find_course(course_id)
        linked = course.material_ids() if course is not None else set()
        now = self.clock()

        for document_id, chunks in documents.items():
            try:
                if document_id in linked:
                    if CHUNK_STATUS_PENDING in chunks.statuses:
                        await self.vector_store.mark_committed(course_id, document_id)
                        report.promoted_documents.append(document_id)
                    continue

                expired = now - chunks.last_ingested_at > self.grace_period
                if CHUNK_STATUS_COMMITTED in chunks.statuses or expired:
                    deleted = await self.vector_store.delete_document_chunks(
                        course_id, document_id
                    )
                    report.chunks_deleted += deleted
                    report.deleted_documents.append(document_id)
                    logger.warning(
                        f"Deleted {deleted} orphaned chunks of document '{document_id}' "
                        f"in course '{course_id}'"
                    )
            except IngestionServiceError as e:
                logger.error(f"Failed to reconcile document '{document_id}': {e}")
                report.errors.append(DeletionError(document_id, e.message))

    async def run_once(self, course_ids: Optional[List[str]] = None) -> ReconcileReport:
        """
        Sweep the given courses, or every course that has a collection.

        Per-document failures are collected in the report rather than raised.
        """
        report = ReconcileReport()
        if course_ids is None:
            course_ids = await self.vector_store.list_course_ids()

        for course_id in course_ids:
            if not await self.vector_store.collection_exists(course_id):
                continue
            await self.reconcile_course(course_id, report)
            report.courses_scanned += 1

        logger.info(
            f"Reconciled {report.courses_scanned} courses: "
            f"{len(report.promoted_documents)} promoted, "
            f"{len(report.deleted_documents)} deleted, {len(report.errors)} errors"
        )
        return report

    async def run_periodically(self, interval: float) -> None:
        """Run the sweep every ``interval`` seconds until cancelled."""
        logger.info(f"Reconciliation sweep scheduled every {interval}s")
        while True:
            await asyncio.sleep(interval)
            try:
                await self.run_once()
            except IngestionServiceError as e:
                logger.error(f"Reconciliation sweep failed: {e}")

"""
Ingestion pipeline for course materials.

This module turns one submitted document into committed vector chunks plus a
material record:

    validate -> identify -> normalize -> chunk -> embed -> upsert (pending)
    -> link metadata -> mark committed

Chunks are written as ``pending`` so that a failure between the vector write
and the metadata write leaves them invisible to retrieval until the
reconciliation sweep either promotes or removes them.
"""

import logging
import time
from typing import List

from qdrant_client.http.models import PointStruct

from src.constants import CHUNK_STATUS_PENDING
from src.core.chunking import ChunkingStrategy, ChunkSpan
from src.core.embeddings import EmbeddingService
from src.core.exceptions import IngestionServiceError, ValidationError
from src.core.identity import IdentityGenerator
from src.core.models import Document, IngestResult
from src.core.vector_store_manager import STATUS_KEY, VectorStoreManager
from src.database.models.material import MaterialRecord
from src.services.file_parser import FileParser
from src.services.metadata_linker import MetadataLinker
from src.services.upload_validator import UploadValidator

logger = logging.getLogger(__name__)

COMMIT_ATTEMPTS = 2


class IngestionOrchestrator:
    """
    Runs the ingestion pipeline for one document per call.

    No state is shared between calls beyond the injected collaborators.
    """

    def __init__(
        self,
        validator: UploadValidator,
        identity: IdentityGenerator,
        parser: FileParser,
        chunker: ChunkingStrategy,
        embedder: EmbeddingService,
        vector_store: VectorStoreManager,
        linker: MetadataLinker,
    ) -> None:
        self.validator = validator
        self.identity = identity
        self.parser = parser
        self.chunker = chunker
        self.embedder = embedder
        self.vector_store = vector_store
        self.linker = linker

    def _validate(self, document: Document) -> None:
        """
        Raises:
            ValidationError: If context fields are missing or the payload is invalid
        """
        missing = self.validator.missing_fields(
            name=document.name,
            courseName=document.course_name,
            topicOrWeekTitle=document.division_title,
            itemTitle=document.item_title,
            courseId=document.course_id,
            topicOrWeekId=document.division_id,
            itemId=document.item_id,
        )
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                details={"missing": list(missing)},
            )

        if document.is_file:
            if document.file_bytes is None:
                raise ValidationError("File content is required", field="file")
            result = self.validator.validate_file(
                document.file_name, len(document.file_bytes), document.media_type
            )
            self.validator.ensure_valid(result, field="file")
        else:
            self.validator.ensure_valid(
                self.validator.validate_text(document.text), field="text"
            )

    def _compute_id(self, document: Document) -> str:
        if document.is_file:
            fingerprint = self.identity.file_fingerprint(
                document.file_name, document.file_bytes
            )
        else:
            fingerprint = self.identity.text_fingerprint(document.text)
        return self.identity.document_id(
            document.course_id,
            document.division_title,
            document.item_title,
            fingerprint,
        )

    async def _normalize(self, document: Document) -> str:
        if document.is_file:
            return await self.parser.parse_bytes(document.file_name, document.file_bytes)
        return document.text

    def _build_points(
        self,
        document: Document,
        spans: List[ChunkSpan],
        vectors: List[List[float]],
    ) -> List[PointStruct]:
        ingested_at = int(time.time())
        points = []
        for span, vector in zip(spans, vectors):
            metadata = {
                "document_id": document.id,
                "document_name": document.name,
                "course_id": document.course_id,
                "course_name": document.course_name,
                "division_id": document.division_id,
                "division_title": document.division_title,
                "item_id": document.item_id,
                "item_title": document.item_title,
                "source_type": document.source_type,
                "file_name": document.file_name,
                "chunk_index": span.index,
                "chunk_start": span.start,
                "chunk_end": span.end,
                "ingested_at": ingested_at,
            }
            points.append(
                PointStruct(
                    id=self.identity.chunk_id(document.id, span.index),
                    vector=vector,
                    payload={
                        "text": span.text,
                        "metadata": metadata,
                        STATUS_KEY: CHUNK_STATUS_PENDING,
                    },
                )
            )
        return points

    def _build_record(self, document: Document) -> MaterialRecord:
        return MaterialRecord(
            id=document.id,
            date=document.created_at,
            name=document.name,
            course_name=document.course_name,
            topic_or_week_title=document.division_title,
            item_title=document.item_title,
            source_type=document.source_type,
            file_name=document.file_name,
            uploaded=True,
            qdrant_id=document.vector_ids[0] if document.vector_ids else None,
            chunks_generated=document.chunk_count,
            vector_ids=document.vector_ids,
            uploaded_by=document.uploaded_by,
        )

    @staticmethod
    def _failure(document: Document, error: IngestionServiceError) -> IngestResult:
        return IngestResult(
            success=False,
            id=document.id,
            name=document.name,
            uploaded=False,
            vector_ref=document.vector_ids[0] if document.vector_ids else None,
            chunks_generated=document.chunk_count,
            file_name=document.file_name,
            error=error.message,
            details=error.details or None,
            status_code=error.status_code,
        )

    async def _commit(self, document: Document) -> bool:
        """Mark the chunks committed, one retry before leaving it to the sweep."""
        for attempt in range(1, COMMIT_ATTEMPTS + 1):
            try:
                await self.vector_store.mark_committed(document.course_id, document.id)
                return True
            except IngestionServiceError as e:
                logger.warning(
                    f"Marking chunks of document '{document.id}' committed failed "
                    f"(attempt {attempt}/{COMMIT_ATTEMPTS}): {e}"
                )
        logger.warning(
            f"Chunks of document '{document.id}' stay pending until the "
            f"reconciliation sweep promotes them"
        )
        return False

    async def ingest(self, document: Document) -> IngestResult:
        """
        Ingest one document.

        Args:
            document: The submitted document, payload included

        Returns:
            IngestResult: ``uploaded`` is True only when both the chunks and
                the material record were written. Failures carry the message,
                diagnostic details and the HTTP status they map to.
        """
        try:
            return await self._ingest(document)
        finally:
            document.release_payload()

    async def _ingest(self, document: Document) -> IngestResult:
        try:
            self._validate(document)
            if not document.id:
                document.id = self._compute_id(document)
            logger.info(
                f"Ingesting {document.source_type} document '{document.name}' "
                f"({document.id}) into course '{document.course_id}'"
            )

            text = await self._normalize(document)
            spans = self.chunker.chunk(text)
            if not spans:
                raise ValidationError("Document contains no text to index", field="text")

            vectors = await self.embedder.embed_chunks([span.text for span in spans])
            points = self._build_points(document, spans, vectors)

            await self.vector_store.ensure_collection(document.course_id)
            document.vector_ids = await self.vector_store.upsert_chunks(
                document.course_id, document.id, points
            )
            document.chunk_count = len(document.vector_ids)
        except IngestionServiceError as e:
            logger.error(f"Ingestion of '{document.name}' aborted: {e}")
            return self._failure(document, e)

        try:
            await self.linker.link(
                self._build_record(document),
                document.course_id,
                document.division_id,
                document.item_id,
            )
        except IngestionServiceError as e:
            logger.warning(
                f"Chunks of document '{document.id}' are stored but its metadata "
                f"record could not be linked, leaving them pending: {e}"
            )
            return self._failure(document, e)

        document.uploaded = True
        await self._commit(document)

        logger.info(
            f"Document '{document.name}' ({document.id}) ingested with "
            f"{document.chunk_count} chunks"
        )
        return IngestResult(
            success=True,
            id=document.id,
            name=document.name,
            uploaded=True,
            vector_ref=document.vector_ids[0],
            chunks_generated=document.chunk_count,
            file_name=document.file_name,
        )

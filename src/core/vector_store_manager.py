"""
Vector Store Management for course materials

This module wraps a Qdrant client with the operations the ingestion,
deletion, retrieval and reconciliation services need. Each course owns one
collection. Points carry ``{"text", "metadata", "status"}`` payloads where
``status`` is ``pending`` until the owning document's metadata record has been
written, and ``committed`` afterwards.

The Qdrant client is synchronous; every call runs in a worker thread with a
bounded timeout so a hung store cannot hang the request.
"""

import logging
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Tuple

import anyio
from qdrant_client import QdrantClient
from qdrant_client.http.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    MatchAny,
    MatchValue,
    PayloadSchemaType,
    PointStruct,
    Range,
    Record,
    ScoredPoint,
    VectorParams,
)

from src.config import VECTOR_STORE_TIMEOUT_SECONDS
from src.constants import (
    CHUNK_STATUS_COMMITTED,
    CHUNK_STATUS_PENDING,
    COLLECTION_PREFIX,
    SCROLL_PAGE_SIZE,
)
from src.core.exceptions import VectorStoreError

# Setup logging
logger = logging.getLogger(__name__)

STATUS_KEY = "status"

INDEXED_FIELDS = {
    "metadata.document_id": PayloadSchemaType.KEYWORD,
    "metadata.division_id": PayloadSchemaType.KEYWORD,
    "metadata.item_id": PayloadSchemaType.KEYWORD,
    "metadata.item_title": PayloadSchemaType.KEYWORD,
    "metadata.chunk_index": PayloadSchemaType.INTEGER,
    STATUS_KEY: PayloadSchemaType.KEYWORD,
}


class VectorStoreManager:
    """
    Manages per-course vector collections for retrieval-augmented generation.

    Note: the vector size must match the embedding model used to produce the
    stored vectors; it is fixed when a course collection is first created.
    """

    def __init__(
        self,
        client: QdrantClient,
        vector_size: int,
        timeout: float = VECTOR_STORE_TIMEOUT_SECONDS,
    ) -> None:
        """
        Initialize the VectorStoreManager.

        Args:
            client: Connected Qdrant client, shared for the process lifetime
            vector_size: Dimension of the embedding vectors
            timeout: Upper bound in seconds for a single store call
        """
        self.client = client
        self.vector_size = vector_size
        self.timeout = timeout
        logger.debug(f"Initialized VectorStoreManager with vector size {vector_size}")

    @staticmethod
    def collection_name_for(course_id: str) -> str:
        return f"{COLLECTION_PREFIX}{course_id}"

    async def _run(self, operation: str, func: Callable[..., Any], *args, **kwargs) -> Any:
        """Run a blocking client call in a worker thread under the store timeout."""
        try:
            with anyio.fail_after(self.timeout):
                return await anyio.to_thread.run_sync(
                    partial(func, *args, **kwargs), abandon_on_cancel=True
                )
        except TimeoutError as e:
            logger.error(f"Vector store '{operation}' timed out after {self.timeout}s")
            raise VectorStoreError(
                f"Vector store timed out after {self.timeout}s", operation=operation
            ) from e
        except VectorStoreError:
            raise
        except Exception as e:
            logger.error(f"Vector store '{operation}' failed: {e}")
            raise VectorStoreError(
                f"Failed to {operation.replace('_', ' ')}: {str(e)}",
                operation=operation,
                details={"upstream": str(e)},
            ) from e

    # Collections

    async def collection_exists(self, course_id: str) -> bool:
        return await self._run(
            "collection_exists",
            self.client.collection_exists,
            collection_name=self.collection_name_for(course_id),
        )

    async def ensure_collection(self, course_id: str) -> bool:
        """
        Create the course collection if it does not exist yet.

        Returns:
            bool: True if the collection was created by this call
        """
        collection_name = self.collection_name_for(course_id)
        if await self.collection_exists(course_id):
            return False

        await self._run(
            "create_collection",
            self.client.create_collection,
            collection_name=collection_name,
            vectors_config=VectorParams(size=self.vector_size, distance=Distance.COSINE),
        )
        for field_name, schema in INDEXED_FIELDS.items():
            await self._run(
                "create_payload_index",
                self.client.create_payload_index,
                collection_name=collection_name,
                field_name=field_name,
                field_schema=schema,
            )
        logger.info(f"Collection '{collection_name}' created successfully")
        return True

    async def list_course_ids(self) -> List[str]:
        """Course ids that currently own a collection."""
        response = await self._run("list_collections", self.client.get_collections)
        return [
            collection.name[len(COLLECTION_PREFIX) :]
            for collection in response.collections
            if collection.name.startswith(COLLECTION_PREFIX)
        ]

    # Filters

    def _qdrant_filter_from_dict(
        self, filter_dict: Optional[Dict[str, Any]]
    ) -> Optional[Filter]:
        """
        Convert a simple dictionary (key -> value) to a Qdrant filter object,
        applying conditions against payload.metadata.* keys.
        """
        if not filter_dict:
            return None

        return Filter(
            must=[
                condition
                for key, value in filter_dict.items()
                if value is not None
                for condition in self._build_condition(f"metadata.{key}", value)
            ]
        )

    def _build_condition(self, key: str, value: Any) -> List[FieldCondition]:
        """
        Build Qdrant field conditions from keys and values.

        Nested dictionaries recurse into dotted keys; lists match any of
        their values.
        """
        conditions = []

        if isinstance(value, dict):
            for _key, _value in value.items():
                conditions.extend(self._build_condition(f"{key}.{_key}", _value))

        elif isinstance(value, (list, tuple, set)):
            conditions.append(FieldCondition(key=key, match=MatchAny(any=list(value))))

        else:
            conditions.append(FieldCondition(key=key, match=MatchValue(value=value)))

        return conditions

    def _document_filter(self, document_id: str) -> Filter:
        return self._qdrant_filter_from_dict({"document_id": document_id})

    # Points

    async def upsert_chunks(
        self, course_id: str, document_id: str, points: List[PointStruct]
    ) -> List[str]:
        """
        Upsert the chunks of one document and drop chunks left over from a
        longer earlier version of it.

        Args:
            course_id: Owning course
            document_id: Owning document
            points: Points with deterministic ids, in sequence order

        Returns:
            List[str]: Ids of the upserted points

        Raises:
            VectorStoreError: If the upsert or the cleanup fails
        """
        collection_name = self.collection_name_for(course_id)
        await self._run(
            "upsert_chunks",
            self.client.upsert,
            collection_name=collection_name,
            points=points,
            wait=True,
        )

        surplus = Filter(
            must=[
                *self._document_filter(document_id).must,
                FieldCondition(key="metadata.chunk_index", range=Range(gte=len(points))),
            ]
        )
        await self._run(
            "delete_surplus_chunks",
            self.client.delete,
            collection_name=collection_name,
            points_selector=FilterSelector(filter=surplus),
            wait=True,
        )
        logger.info(
            f"Upserted {len(points)} chunks of document '{document_id}' into '{collection_name}'"
        )
        return [str(point.id) for point in points]

    async def mark_committed(self, course_id: str, document_id: str) -> None:
        """Flip every chunk of a document from pending to committed."""
        await self._run(
            "mark_committed",
            self.client.set_payload,
            collection_name=self.collection_name_for(course_id),
            payload={STATUS_KEY: CHUNK_STATUS_COMMITTED},
            points=FilterSelector(filter=self._document_filter(document_id)),
            wait=True,
        )
        logger.debug(f"Marked chunks of document '{document_id}' as committed")

    async def count_chunks(
        self, course_id: str, filter_dict: Optional[Dict[str, Any]] = None
    ) -> int:
        if not await self.collection_exists(course_id):
            return 0
        result = await self._run(
            "count_chunks",
            self.client.count,
            collection_name=self.collection_name_for(course_id),
            count_filter=self._qdrant_filter_from_dict(filter_dict),
            exact=True,
        )
        return result.count

    async def delete_document_chunks(self, course_id: str, document_id: str) -> int:
        """
        Delete every chunk of one document.

        Returns:
            int: Number of chunks actually removed

        Raises:
            VectorStoreError: If deletion fails
        """
        if not await self.collection_exists(course_id):
            return 0

        collection_name = self.collection_name_for(course_id)
        filter_obj = self._document_filter(document_id)

        count_before = (
            await self._run(
                "count_chunks",
                self.client.count,
                collection_name=collection_name,
                count_filter=filter_obj,
                exact=True,
            )
        ).count

        await self._run(
            "delete_chunks",
            self.client.delete,
            collection_name=collection_name,
            points_selector=FilterSelector(filter=filter_obj),
            wait=True,
        )

        count_after = (
            await self._run(
                "count_chunks",
                self.client.count,
                collection_name=collection_name,
                count_filter=filter_obj,
                exact=True,
            )
        ).count

        deleted_count = count_before - count_after
        logger.info(
            f"Deleted {deleted_count} chunks of document '{document_id}' from '{collection_name}'"
        )
        return deleted_count

    async def search(
        self,
        course_id: str,
        query_vector: List[float],
        limit: int,
        score_threshold: Optional[float] = None,
        filter_dict: Optional[Dict[str, Any]] = None,
        include_pending: bool = False,
    ) -> List[ScoredPoint]:
        """
        Similarity search inside one course collection.

        Args:
            course_id: Course whose collection is searched
            query_vector: Embedded query
            limit: Maximum number of results
            score_threshold: Minimum similarity score, None for no threshold
            filter_dict: Metadata equality/any-of filters
            include_pending: Whether chunks not yet committed are visible

        Returns:
            List[ScoredPoint]: Results ordered by descending score
        """
        query_filter = self._qdrant_filter_from_dict(filter_dict) or Filter()
        if not include_pending:
            query_filter.must_not = [
                FieldCondition(key=STATUS_KEY, match=MatchValue(value=CHUNK_STATUS_PENDING))
            ]

        response = await self._run(
            "search",
            self.client.query_points,
            collection_name=self.collection_name_for(course_id),
            query=query_vector,
            query_filter=query_filter,
            limit=limit,
            score_threshold=score_threshold,
            with_payload=True,
        )
        logger.info(
            f"Retrieved {len(response.points)} chunks from '{self.collection_name_for(course_id)}'"
        )
        return response.points

    async def scroll_points(self, course_id: str) -> List[Record]:
        """Every point of a course collection, payload only."""
        collection_name = self.collection_name_for(course_id)
        records: List[Record] = []
        offset = None
        while True:
            page: Tuple[List[Record], Any] = await self._run(
                "scroll",
                self.client.scroll,
                collection_name=collection_name,
                limit=SCROLL_PAGE_SIZE,
                offset=offset,
                with_payload=True,
                with_vectors=False,
            )
            points, offset = page
            records.extend(points)
            if offset is None:
                return records

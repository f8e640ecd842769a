import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from src.constants import DEFAULT_K, DEFAULT_SCORE_THRESHOLD
from src.core.embeddings import EmbeddingService
from src.core.vector_store_manager import VectorStoreManager

logger = logging.getLogger(__name__)


class RankedChunk(BaseModel):
    id: str
    score: float
    text: str
    document_id: Optional[str] = None
    document_name: Optional[str] = None
    division_title: Optional[str] = None
    item_title: Optional[str] = None
    chunk_index: Optional[int] = None
    metadata: Dict[str, Any] = {}


@dataclass
class SearchFilters:
    """Optional narrowing inside a course; ``None`` means unrestricted."""

    division_id: Optional[str] = None
    item_id: Optional[str] = None
    chunk_index: Optional[int] = None
    item_titles: List[str] = field(default_factory=list)
    k: int = DEFAULT_K
    score_threshold: Optional[float] = DEFAULT_SCORE_THRESHOLD

    def to_metadata_filter(self) -> Dict[str, Any]:
        metadata_filter: Dict[str, Any] = {
            "division_id": self.division_id,
            "item_id": self.item_id,
            "chunk_index": self.chunk_index,
        }
        if self.item_titles:
            metadata_filter["item_title"] = list(self.item_titles)
        return {key: value for key, value in metadata_filter.items() if value is not None}


class RetrievalService:
    """Read-only similarity search scoped to one course."""

    def __init__(self, embedder: EmbeddingService, vector_store: VectorStoreManager) -> None:
        self.embedder = embedder
        self.vector_store = vector_store

    async def search(
        self, query: str, course_id: str, filters: Optional[SearchFilters] = None
    ) -> List[RankedChunk]:
        """
        Find the chunks of a course most similar to a query.

        Args:
            query: Natural language query
            course_id: Course whose materials are searched
            filters: Optional division/item/chunk narrowing, ``k`` and threshold

        Returns:
            List[RankedChunk]: Highest score first; empty when the course has
                no index yet or nothing matches
        """
        filters = filters or SearchFilters()
        if not await self.vector_store.collection_exists(course_id):
            logger.info(f"Course '{course_id}' has no index yet")
            return []

        query_vector = await self.embedder.embed_query(query)
        points = await self.vector_store.search(
            course_id,
            query_vector,
            limit=filters.k,
            score_threshold=filters.score_threshold,
            filter_dict=filters.to_metadata_filter(),
        )

        results = []
        for point in points:
            payload = point.payload or {}
            metadata = payload.get("metadata", {})
            results.append(
                RankedChunk(
                    id=str(point.id),
                    score=point.score,
                    text=payload.get("text", ""),
                    document_id=metadata.get("document_id"),
                    document_name=metadata.get("document_name"),
                    division_title=metadata.get("division_title"),
                    item_title=metadata.get("item_title"),
                    chunk_index=metadata.get("chunk_index"),
                    metadata=metadata,
                )
            )
        return results


def format_context(chunks: List[RankedChunk]) -> str:
    """
    Render retrieved chunks as the course materials block of a tutor prompt.

    Returns an empty string when there is nothing to ground on.
    """
    if not chunks:
        return ""

    parts = ["\n\n<course_materials>\n"]
    for index, chunk in enumerate(chunks, start=1):
        parts.append(f"\n--- Document {index} ---\n")
        if chunk.division_title:
            parts.append(f"chapter: {chunk.division_title}\n")
        if chunk.item_title:
            parts.append(f"item: {chunk.item_title}\n")
        parts.append(f"content: {chunk.text}\n\n")
    parts.append("\n</course_materials>\n")
    return "".join(parts)

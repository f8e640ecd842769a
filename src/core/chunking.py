"""
Chunking strategies.

A strategy turns normalized document text into an ordered list of
``ChunkSpan`` objects. The default strategy wraps LangChain's recursive
character splitter: it tries paragraph breaks first, then line breaks, then
spaces, then single characters, and keeps a fixed character overlap between
neighbouring chunks.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol

from langchain_text_splitters import RecursiveCharacterTextSplitter

from src.constants import (
    DEFAULT_CHUNK_OVERLAP,
    DEFAULT_CHUNK_SEPARATORS,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_CHUNKS,
)
from src.core.exceptions import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChunkSpan:
    """A bounded span of normalized text."""

    index: int
    text: str
    start: int
    end: int


class ChunkingStrategy(Protocol):
    def chunk(self, text: str) -> List[ChunkSpan]: ...


class RecursiveCharacterChunker:
    """
    Recursive character chunking with overlap.

    Boundary policy: chunks are at most ``chunk_size`` characters, split on the
    first separator in ``separators`` that makes pieces fit. Consecutive chunks
    share up to ``chunk_overlap`` characters. Whitespace-only chunks are
    dropped and indices are renumbered to stay contiguous.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
        max_chunks: int = DEFAULT_MAX_CHUNKS,
        separators: Optional[List[str]] = None,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if chunk_overlap < 0 or chunk_overlap >= chunk_size:
            raise ValueError("chunk_overlap must be in [0, chunk_size)")

        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.max_chunks = max_chunks
        self._splitter = RecursiveCharacterTextSplitter(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            separators=separators or DEFAULT_CHUNK_SEPARATORS,
            add_start_index=True,
        )

    def chunk(self, text: str) -> List[ChunkSpan]:
        """
        Split text into chunk spans.

        Args:
            text: Normalized document text

        Returns:
            List[ChunkSpan]: Ordered spans, empty for blank text

        Raises:
            ValidationError: If the text would produce more than ``max_chunks`` spans
        """
        if not text or not text.strip():
            return []

        documents = self._splitter.create_documents([text])
        spans: List[ChunkSpan] = []
        for document in documents:
            content = document.page_content
            if not content.strip():
                continue
            start = document.metadata.get("start_index", -1)
            if start is None or start < 0:
                start = text.find(content)
            spans.append(
                ChunkSpan(
                    index=len(spans),
                    text=content,
                    start=start,
                    end=start + len(content),
                )
            )

        if len(spans) > self.max_chunks:
            raise ValidationError(
                f"Document produces {len(spans)} chunks, the limit is {self.max_chunks}",
                details={"chunks": len(spans), "max_chunks": self.max_chunks},
            )

        logger.debug(
            f"Split {len(text)} characters into {len(spans)} chunks "
            f"(size={self.chunk_size}, overlap={self.chunk_overlap})"
        )
        return spans

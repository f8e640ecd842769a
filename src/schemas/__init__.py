from .documents import (
    TextDocumentRequest,
    IngestResponse,
    WipeResponse,
    SearchRequest,
    SearchResponse,
)
from .common import Pagination

__all__ = [
    "TextDocumentRequest",
    "IngestResponse",
    "WipeResponse",
    "SearchRequest",
    "SearchResponse",
    "Pagination",
]

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from src.constants import DEFAULT_UPLOADED_BY, SOURCE_TYPE_FILE, SOURCE_TYPE_TEXT


@dataclass
class Document:
    """
    A unit of instructional content submitted for ingestion.

    Built per request and never persisted itself; the payload (``text`` or
    ``file_bytes``) is dropped once ingestion finishes.
    """

    course_id: str
    division_id: str
    item_id: str
    course_name: str
    division_title: str
    item_title: str
    name: str
    source_type: str = SOURCE_TYPE_TEXT
    text: Optional[str] = None
    file_bytes: Optional[bytes] = None
    file_name: Optional[str] = None
    media_type: Optional[str] = None
    id: Optional[str] = None
    uploaded: bool = False
    chunk_count: int = 0
    vector_ids: List[str] = field(default_factory=list)
    uploaded_by: str = DEFAULT_UPLOADED_BY
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_file(self) -> bool:
        return self.source_type == SOURCE_TYPE_FILE

    def release_payload(self) -> None:
        self.text = None
        self.file_bytes = None


@dataclass
class IngestResult:
    """Represents the outcome of one ingestion."""

    success: bool
    id: Optional[str] = None
    name: Optional[str] = None
    uploaded: bool = False
    vector_ref: Optional[str] = None
    chunks_generated: int = 0
    file_name: Optional[str] = None
    error: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    status_code: int = 201

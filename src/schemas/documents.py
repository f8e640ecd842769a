from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from src.config import config
from src.constants import DEFAULT_K, DEFAULT_SCORE_THRESHOLD, MAX_K


class CamelSchema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DocumentContext(CamelSchema):
    name: str = Field(..., description="Display name of the material")
    course_name: str = Field(..., description="Course name")
    topic_or_week_title: str = Field(..., description="Topic or week title")
    item_title: str = Field(..., description="Item title")
    course_id: str = Field(..., description="Course ID")
    topic_or_week_id: str = Field(..., description="Topic or week instance ID")
    item_id: str = Field(..., description="Item ID")
    uploaded_by: Optional[str] = Field(None, description="Uploader identifier")


class TextDocumentRequest(DocumentContext):
    text: str = Field(..., description="Document body")


class IngestResponse(CamelSchema):
    id: str
    name: str
    uploaded: bool
    vector_ref: Optional[str] = None
    chunks_generated: int
    file_name: Optional[str] = None


class WipeError(CamelSchema):
    document_id: Optional[str] = None
    error: str


class WipeResponse(CamelSchema):
    course_id: str
    deleted_documents: List[str]
    total_chunks_deleted: int
    errors: List[WipeError]
    clear_error: Optional[str] = None


class SearchRequest(CamelSchema):
    query: str = Field(..., min_length=1, max_length=2000, description="Search query")
    course_id: str = Field(..., min_length=1, description="Course to search")
    division_id: Optional[str] = Field(None, description="Restrict to a topic or week")
    item_id: Optional[str] = Field(None, description="Restrict to an item")
    chunk_index: Optional[int] = Field(None, ge=0, description="Restrict to one chunk position")
    item_titles: List[str] = Field(
        default=[], description="Restrict to any of these item titles"
    )
    k: int = Field(
        default=config.get("retrieval", "k", default=DEFAULT_K),
        ge=1,
        le=MAX_K,
        description="Number of chunks to retrieve",
    )
    score_threshold: Optional[float] = Field(
        default=config.get("retrieval", "score_threshold", default=DEFAULT_SCORE_THRESHOLD),
        ge=0.0,
        le=1.0,
        description="Minimum similarity score threshold, null disables it",
    )
    include_context: bool = Field(
        default=False, description="Also return the formatted prompt context"
    )

    @field_validator("query")
    @classmethod
    def validate_query(cls, v):
        if not v.strip():
            raise ValueError("Query cannot be empty or whitespace only")
        return v.strip()


class RankedChunkResponse(CamelSchema):
    id: str
    score: float
    text: str
    document_id: Optional[str] = None
    document_name: Optional[str] = None
    division_title: Optional[str] = None
    item_title: Optional[str] = None
    chunk_index: Optional[int] = None


class SearchResponse(CamelSchema):
    results: List[RankedChunkResponse]
    context: Optional[str] = None


class MaterialDeleteResponse(CamelSchema):
    material_id: str
    deleted: bool
    chunks_deleted: int


class ReconcileResponse(CamelSchema):
    courses_scanned: int
    promoted_documents: List[str]
    deleted_documents: List[str]
    chunks_deleted: int
    errors: List[Dict[str, Any]]

"""Course material ingestion, deletion and search endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Path, Query, UploadFile
from fastapi.responses import JSONResponse

from src.constants import SOURCE_TYPE_FILE, SOURCE_TYPE_TEXT
from src.core.exceptions import NotFoundError, ValidationError
from src.core.models import Document, IngestResult
from src.database.material_store import MaterialStore
from src.database.models.material import MaterialLocation
from src.dependencies import (
    get_deletion,
    get_ingestion,
    get_material_store,
    get_retrieval,
    get_sweeper,
)
from src.schemas.common import PaginatedResponse, Pagination, paginate
from src.schemas.documents import (
    IngestResponse,
    MaterialDeleteResponse,
    ReconcileResponse,
    SearchRequest,
    SearchResponse,
    TextDocumentRequest,
    WipeResponse,
)
from src.services.deletion import DeletionCoordinator
from src.services.ingestion import IngestionOrchestrator
from src.services.reconciliation import ReconciliationSweeper
from src.services.retrieval import RetrievalService, SearchFilters, format_context

# Setup
router = APIRouter()
logger = logging.getLogger(__name__)


def _ingest_response(result: IngestResult):
    if result.success:
        return IngestResponse(
            id=result.id,
            name=result.name,
            uploaded=result.uploaded,
            vector_ref=result.vector_ref,
            chunks_generated=result.chunks_generated,
            file_name=result.file_name,
        )

    details = dict(result.details or {})
    if result.id:
        details.update(
            {
                "id": result.id,
                "uploaded": result.uploaded,
                "chunksGenerated": result.chunks_generated,
            }
        )
    return JSONResponse(
        status_code=result.status_code,
        content={
            "status": result.status_code,
            "message": result.error,
            "details": details or None,
        },
    )


@router.post(
    "/documents/text",
    status_code=201,
    response_model=IngestResponse,
    response_model_exclude_none=True,
)
async def upload_text_document(
    request: TextDocumentRequest,
    ingestion: IngestionOrchestrator = Depends(get_ingestion),
):
    """
    Ingest a raw text document into a course item.

    :param request: Text body plus course, topic/week and item context.\n
    :type request: TextDocumentRequest\n
    :return: Document id, upload flag, first chunk id and chunk count.\n
    :rtype: IngestResponse\n
    :raises HTTPException:\n
        - 400: Missing fields, empty or oversized text.\n
        - 500: Embedding, vector store or metadata store failure.
    """
    document = Document(
        course_id=request.course_id,
        division_id=request.topic_or_week_id,
        item_id=request.item_id,
        course_name=request.course_name,
        division_title=request.topic_or_week_title,
        item_title=request.item_title,
        name=request.name,
        source_type=SOURCE_TYPE_TEXT,
        text=request.text,
    )
    if request.uploaded_by:
        document.uploaded_by = request.uploaded_by

    return _ingest_response(await ingestion.ingest(document))


@router.post(
    "/documents/file",
    status_code=201,
    response_model=IngestResponse,
    response_model_exclude_none=True,
)
async def upload_file_document(
    file: UploadFile = File(...),
    name: str = Form(...),
    course_name: str = Form(..., alias="courseName"),
    topic_or_week_title: str = Form(..., alias="topicOrWeekTitle"),
    item_title: str = Form(..., alias="itemTitle"),
    course_id: str = Form(..., alias="courseId"),
    topic_or_week_id: str = Form(..., alias="topicOrWeekId"),
    item_id: str = Form(..., alias="itemId"),
    uploaded_by: Optional[str] = Form(default=None, alias="uploadedBy"),
    ingestion: IngestionOrchestrator = Depends(get_ingestion),
):
    """
    Ingest an uploaded file (PDF, DOCX, HTML, Markdown or plain text).

    :param file: The uploaded file.\n
    :type file: UploadFile\n
    :return: Same as the text endpoint plus the original file name.\n
    :rtype: IngestResponse\n
    :raises HTTPException:\n
        - 400: Missing fields, oversized or unsupported file.\n
        - 422: No text could be extracted.\n
        - 500: Embedding, vector store or metadata store failure.
    """
    max_size = ingestion.validator.max_file_size
    if file.size is not None and file.size > max_size:
        ingestion.validator.ensure_valid(
            ingestion.validator.validate_file(file.filename, file.size, file.content_type),
            field="file",
        )

    # One byte past the limit is enough for the validator to reject it
    content = await file.read(max_size + 1)

    document = Document(
        course_id=course_id,
        division_id=topic_or_week_id,
        item_id=item_id,
        course_name=course_name,
        division_title=topic_or_week_title,
        item_title=item_title,
        name=name,
        source_type=SOURCE_TYPE_FILE,
        file_bytes=content,
        file_name=file.filename,
        media_type=file.content_type,
    )
    if uploaded_by:
        document.uploaded_by = uploaded_by

    return _ingest_response(await ingestion.ingest(document))


@router.delete(
    "/wipe-all", response_model=WipeResponse, response_model_exclude_unset=True
)
async def wipe_all_documents(
    course_id: Optional[str] = Query(default=None, alias="courseId"),
    deletion: DeletionCoordinator = Depends(get_deletion),
):
    """
    Delete every ingested material of a course from both stores.

    Per-document failures do not stop the wipe; they are listed in ``errors``.
    """
    if not course_id or not course_id.strip():
        raise ValidationError("courseId query parameter is required", field="courseId")

    report = await deletion.wipe_course(course_id.strip())
    return report.to_dict()


@router.post("/search", response_model=SearchResponse, response_model_exclude_none=True)
async def search_documents(
    request: SearchRequest,
    retrieval: RetrievalService = Depends(get_retrieval),
):
    """
    Similarity search over one course's materials.

    :param request: Query, course id and optional division/item/chunk filters.\n
    :type request: SearchRequest\n
    :return: Ranked chunks, empty when the course has no index yet.\n
    :rtype: SearchResponse
    """
    filters = SearchFilters(
        division_id=request.division_id,
        item_id=request.item_id,
        chunk_index=request.chunk_index,
        item_titles=request.item_titles,
        k=request.k,
        score_threshold=request.score_threshold,
    )
    chunks = await retrieval.search(request.query, request.course_id, filters)
    return SearchResponse(
        results=[chunk.model_dump() for chunk in chunks],
        context=format_context(chunks) if request.include_context else None,
    )


@router.get(
    "/courses/{course_id}/materials",
    response_model=PaginatedResponse[MaterialLocation],
)
async def list_materials(
    course_id: str = Path(..., description="Course ID"),
    pagination: Pagination = Depends(),
    store: MaterialStore = Depends(get_material_store),
):
    """List the material records of a course across all topics/weeks and items."""
    course = await store.find_course(course_id)
    if course is None:
        raise NotFoundError("Course not found", details={"course_id": course_id})
    return paginate(course.materials(), pagination)


@router.delete(
    "/courses/{course_id}/divisions/{division_id}/items/{item_id}/materials/{material_id}",
    response_model=MaterialDeleteResponse,
)
async def delete_material(
    course_id: str = Path(..., description="Course ID"),
    division_id: str = Path(..., description="Topic or week instance ID"),
    item_id: str = Path(..., description="Item ID"),
    material_id: str = Path(..., description="Material ID"),
    deletion: DeletionCoordinator = Depends(get_deletion),
):
    """
    Delete one material. Vectors go first; if that fails the record is kept.
    """
    result = await deletion.delete_material(course_id, division_id, item_id, material_id)
    return MaterialDeleteResponse(
        material_id=result.material_id,
        deleted=result.deleted,
        chunks_deleted=result.chunks_deleted,
    )


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile(
    course_id: Optional[str] = Query(default=None, alias="courseId"),
    sweeper: ReconciliationSweeper = Depends(get_sweeper),
):
    """Run one reconciliation sweep, for one course or for all of them."""
    report = await sweeper.run_once([course_id] if course_id else None)
    return report.to_dict()

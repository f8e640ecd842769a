import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from src.core.exceptions import IngestionServiceError
from src.dependencies import ServiceContainer, get_services

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
def health_check():
    """Liveness check endpoint.

    Returns:
        dict: Static status payload indicating service health.
    """
    return {"status": "healthy"}


@router.get("/health/ready")
async def readiness_check(services: ServiceContainer = Depends(get_services)):
    """Readiness check: both stores must answer.

    Returns:
        dict: Per-store status, with HTTP 503 if any store is unavailable.
    """
    checks = {}
    try:
        await services.vector_store.list_course_ids()
        checks["vectorStore"] = "ok"
    except IngestionServiceError as e:
        logger.warning(f"Vector store not ready: {e}")
        checks["vectorStore"] = "unavailable"

    try:
        await services.material_store.ping()
        checks["metadataStore"] = "ok"
    except IngestionServiceError as e:
        logger.warning(f"Metadata store not ready: {e}")
        checks["metadataStore"] = "unavailable"

    ready = all(value == "ok" for value in checks.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ready" if ready else "unavailable", "checks": checks},
    )

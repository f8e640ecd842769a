import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.config import (
    CORS_ALLOWED_ORIGINS,
    LOG_LEVEL,
    RECONCILE_INTERVAL_SECONDS,
    configure_logging,
)
from src.core.exceptions import IngestionServiceError
from src.dependencies import ServiceContainer, connect_services
from src.routers import documents_router, health_check_router

configure_logging(level=getattr(logging, LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)


def register_routers(app: FastAPI):
    # Health
    app.include_router(health_check_router, tags=["Health"])

    # Documents
    app.include_router(documents_router, tags=["Documents"])


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(IngestionServiceError)
    async def ingestion_error_handler(request: Request, exc: IngestionServiceError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        missing = [
            str(error["loc"][-1]) for error in errors if error.get("type") == "missing"
        ]
        if missing:
            message = f"Missing required fields: {', '.join(missing)}"
        else:
            message = "Invalid request"
        return JSONResponse(
            status_code=400,
            content={
                "status": 400,
                "message": message,
                "details": [
                    {"field": ".".join(str(part) for part in error["loc"]), "error": error["msg"]}
                    for error in errors
                ],
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"status": 500, "message": "Internal server error", "details": None},
        )


def create_app(services: Optional[ServiceContainer] = None, debug=False, **kwargs):
    """Create and configure the FastAPI app instance.

    Args:
        services: Pre-built services. When omitted the stores are connected
            from the environment at startup and closed at shutdown.
    """

    logger.info("Creating FastAPI app...")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_services = services is None
        container = services or await connect_services()
        app.state.services = container
        logger.info("Store connections established")

        sweep_task = None
        if RECONCILE_INTERVAL_SECONDS > 0:
            sweep_task = asyncio.create_task(
                container.sweeper.run_periodically(RECONCILE_INTERVAL_SECONDS)
            )
        try:
            yield
        finally:
            if sweep_task is not None:
                sweep_task.cancel()
                with suppress(asyncio.CancelledError):
                    await sweep_task
            if owns_services:
                await container.close()
                logger.info("Store connections closed")

    app = FastAPI(debug=debug, lifespan=lifespan, **kwargs)
    if services is not None:
        app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    register_routers(app)
    return app


app = create_app()

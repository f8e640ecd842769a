# src/routers/__init__.py
from .health_check import router as health_check_router
from .documents import router as documents_router

__all__ = [
    "health_check_router",
    "documents_router",
]

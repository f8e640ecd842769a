"""
Exception hierarchy for the course materials ingestion service.

Every error carries a human-readable message, an optional ``details`` payload
for diagnostics and the HTTP status it maps to. The API layer renders them as
``{status, message, details}``.
"""

from typing import Any, Dict, Optional


class IngestionServiceError(Exception):
    """Base exception for all ingestion service errors."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize base exception with message and optional context.

        Args:
            message: Human-readable error message
            details: Optional dictionary of additional context for debugging
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status_code,
            "message": self.message,
            "details": self.details or None,
        }


class ValidationError(IngestionServiceError):
    """Raised when a payload or its context fails validation."""

    status_code = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details)


class DocumentParsingError(IngestionServiceError):
    """Raised when text cannot be extracted from an uploaded file."""

    status_code = 422

    def __init__(
        self,
        message: str,
        file_name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if file_name:
            details["file_name"] = file_name
        super().__init__(message, details)


class NotFoundError(IngestionServiceError):
    """Raised when a course, item or material does not exist."""

    status_code = 404


class UpstreamEmbeddingError(IngestionServiceError):
    """Raised when the embedding provider fails or times out."""

    def __init__(
        self,
        message: str,
        chunk_index: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if chunk_index is not None:
            details["chunk_index"] = chunk_index
        super().__init__(message, details)


class VectorStoreError(IngestionServiceError):
    """Raised when a vector store operation fails or times out."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if operation:
            details["operation"] = operation
        super().__init__(message, details)


class MetadataPersistenceError(IngestionServiceError):
    """Raised when the metadata store rejects or loses a material record."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if operation:
            details["operation"] = operation
        super().__init__(message, details)

"""Cheap, side-effect free checks run before any network call."""

import logging
import os
from dataclasses import dataclass
from typing import Iterable, Optional

from src.constants import (
    GENERIC_MEDIA_TYPE,
    MAX_FILE_SIZE,
    MAX_TEXT_LENGTH,
    SUPPORTED_FILE_TYPES,
)
from src.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

# Media types some clients send for markdown and plain text uploads
MEDIA_TYPE_ALIASES = {"text/x-markdown"}


@dataclass
class ValidationResult:
    is_valid: bool
    error: Optional[str] = None


def get_file_extension(file_name: Optional[str]) -> Optional[str]:
    """Lower-cased extension including the dot, or None."""
    if not file_name:
        return None
    _, extension = os.path.splitext(file_name.strip())
    if not extension or extension == ".":
        return None
    return extension.lower()


class UploadValidator:
    """
    Validates upload payloads.

    ``validate_file`` and ``validate_text`` never raise; they return a
    ``ValidationResult``. ``ensure_valid`` turns a failed result into a
    ``ValidationError`` for the server side of the pipeline.
    """

    def __init__(
        self,
        max_file_size: int = MAX_FILE_SIZE,
        max_text_length: int = MAX_TEXT_LENGTH,
    ) -> None:
        self.max_file_size = max_file_size
        self.max_text_length = max_text_length

    @property
    def supported_extensions(self) -> list:
        return list(SUPPORTED_FILE_TYPES.keys())

    def validate_file(
        self, file_name: Optional[str], size: int, media_type: Optional[str] = None
    ) -> ValidationResult:
        if size > self.max_file_size:
            return ValidationResult(
                False,
                f"File size exceeds limit of {self.max_file_size // (1024 * 1024)}MB",
            )

        extension = get_file_extension(file_name)
        if not extension:
            return ValidationResult(False, "File must have a valid extension")

        if extension not in SUPPORTED_FILE_TYPES:
            return ValidationResult(
                False,
                f"Unsupported file type. Supported types: {', '.join(self.supported_extensions)}",
            )

        if media_type:
            media_type = media_type.split(";")[0].strip().lower()
            accepted = set(SUPPORTED_FILE_TYPES.values()) | MEDIA_TYPE_ALIASES
            accepted.add(GENERIC_MEDIA_TYPE)
            if media_type not in accepted:
                return ValidationResult(
                    False,
                    f"Unsupported media type '{media_type}'. Supported types: "
                    f"{', '.join(sorted(set(SUPPORTED_FILE_TYPES.values())))}",
                )
            if media_type not in (SUPPORTED_FILE_TYPES[extension], GENERIC_MEDIA_TYPE):
                logger.warning(
                    f"{extension} file declared as {media_type}, proceeding anyway"
                )

        if size == 0:
            return ValidationResult(False, "File is empty")

        return ValidationResult(True)

    def validate_text(self, text: Optional[str]) -> ValidationResult:
        if text is None or not text.strip():
            return ValidationResult(False, "Document text cannot be empty")

        if len(text) > self.max_text_length:
            return ValidationResult(
                False,
                f"Text content exceeds limit of {self.max_text_length} characters",
            )

        return ValidationResult(True)

    @staticmethod
    def missing_fields(**fields: Optional[str]) -> Iterable[str]:
        return [name for name, value in fields.items() if not value or not str(value).strip()]

    @staticmethod
    def ensure_valid(result: ValidationResult, field: Optional[str] = None) -> None:
        """
        Raises:
            ValidationError: If the result is not valid
        """
        if not result.is_valid:
            raise ValidationError(result.error or "Invalid upload", field=field)

"""
Deterministic identifiers for ingested course materials.

Document ids are content addressed: the same (course, division, item, content)
tuple always hashes to the same 12 character hex id, on any machine. Chunk ids
are UUIDv5 values derived from the document id and the chunk sequence number,
which is what Qdrant accepts as a point id and what makes re-upserts overwrite
rather than duplicate.
"""

import hashlib
import uuid
from typing import Optional

from src.core.exceptions import ValidationError

_MASK32 = 0xFFFFFFFF

# Fixed namespace so chunk ids are reproducible across processes
CHUNK_ID_NAMESPACE = uuid.UUID("6f1c9a52-3d0e-5b7a-9c44-2e8d1f0a7b31")


def _imul32(a: int, b: int) -> int:
    return (a * b) & _MASK32


def hash48hex(value: str) -> str:
    """
    48-bit non-cryptographic hash of a string.

    Two independent 32-bit multiplicative lanes run over the UTF-8 bytes; the
    low 32 bits of the first lane and the low 16 bits of the second form the
    result.

    Args:
        value: String to hash

    Returns:
        str: 12 lowercase hex characters
    """
    h1 = 0x9E3779B9
    h2 = 0x85EBCA6B

    for b in value.encode("utf-8"):
        h1 ^= b
        h1 = _imul32(h1, 0x85EBCA6B)
        h1 ^= h1 >> 13
        h1 = _imul32(h1, 0xC2B2AE35)
        h1 ^= h1 >> 16

        x = (h2 ^ (b + 0x9E3779B9)) & _MASK32
        x = _imul32(x, 0x27D4EB2D)
        x ^= x >> 15
        x = _imul32(x, 0x165667B1)
        x ^= x >> 17
        h2 = x

    value48 = ((h2 & 0xFFFF) << 32) + (h1 & _MASK32)
    return f"{value48:012x}"


def _require(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required to compute an identifier", field=field)
    return str(value).strip()


class IdentityGenerator:
    """Pure functions producing document and chunk identifiers."""

    @staticmethod
    def text_fingerprint(text: str) -> str:
        """SHA-256 of the UTF-8 encoded text."""
        return hashlib.sha256(text.encode("utf-8")).hexdigest()

    @staticmethod
    def file_fingerprint(file_name: str, content: bytes) -> str:
        """File name plus SHA-256 of the raw bytes."""
        digest = hashlib.sha256(content).hexdigest()
        return f"{file_name.strip()}:{digest}"

    def document_id(
        self, course: str, division: str, item: str, fingerprint: str
    ) -> str:
        """
        Compute the content-addressed id of a document.

        Args:
            course: Course name or id
            division: Topic or week title
            item: Item title
            fingerprint: Text or file fingerprint of the content

        Returns:
            str: 12 character hex identifier

        Raises:
            ValidationError: If any field is empty
        """
        parts = [
            _require(course, "courseName"),
            _require(division, "topicOrWeekTitle"),
            _require(item, "itemTitle"),
            _require(fingerprint, "content"),
        ]
        return hash48hex("-".join(parts))

    def chunk_id(self, document_id: str, sequence: int) -> str:
        """
        Compute the vector point id of one chunk of a document.

        Raises:
            ValidationError: If the document id is empty or the sequence is negative
        """
        document_id = _require(document_id, "documentId")
        if sequence < 0:
            raise ValidationError(
                "Chunk sequence number must be non-negative",
                field="sequence",
                details={"sequence": sequence},
            )
        return str(uuid.uuid5(CHUNK_ID_NAMESPACE, f"{document_id}:{sequence}"))

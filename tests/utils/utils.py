from typing import Dict, List

from src.constants import SOURCE_TYPE_FILE, SOURCE_TYPE_TEXT
from src.core.models import Document
from src.core.vector_store_manager import STATUS_KEY, VectorStoreManager

COURSE_ID = "Test101"
COURSE_NAME = "Test 101"
DIVISION_ID = "Week 1"
ITEM_ID = "Intro"


def make_text_document(text: str = "Hello world", **overrides) -> Document:
    """A text document targeting the default test course item."""
    fields = dict(
        course_id=COURSE_ID,
        division_id=DIVISION_ID,
        item_id=ITEM_ID,
        course_name=COURSE_NAME,
        division_title=DIVISION_ID,
        item_title=ITEM_ID,
        name="Lecture notes",
        source_type=SOURCE_TYPE_TEXT,
        text=text,
    )
    fields.update(overrides)
    return Document(**fields)


def make_file_document(file_name: str, content: bytes, **overrides) -> Document:
    fields = dict(
        text=None,
        source_type=SOURCE_TYPE_FILE,
        file_name=file_name,
        file_bytes=content,
        media_type=None,
    )
    fields.update(overrides)
    return make_text_document(**fields)


def document_form(**overrides) -> Dict[str, str]:
    """Request body fields shared by the text and file upload endpoints."""
    body = {
        "name": "Lecture notes",
        "courseName": COURSE_NAME,
        "topicOrWeekTitle": DIVISION_ID,
        "itemTitle": ITEM_ID,
        "courseId": COURSE_ID,
        "topicOrWeekId": DIVISION_ID,
        "itemId": ITEM_ID,
    }
    body.update(overrides)
    return body


async def chunk_statuses(
    vector_store: VectorStoreManager, course_id: str = COURSE_ID
) -> Dict[str, List[str]]:
    """Document id -> statuses of its chunks, ordered by chunk index."""
    grouped: Dict[str, list] = {}
    for record in await vector_store.scroll_points(course_id):
        metadata = record.payload["metadata"]
        grouped.setdefault(metadata["document_id"], []).append(
            (metadata["chunk_index"], record.payload[STATUS_KEY])
        )
    return {
        document_id: [status for _, status in sorted(chunks)]
        for document_id, chunks in grouped.items()
    }

import re
import uuid

import pytest

from src.core.exceptions import ValidationError
from src.core.identity import IdentityGenerator, hash48hex

generator = IdentityGenerator()


@pytest.mark.unit
def test_hash48hex_of_empty_string_is_the_seed_value():
    # No bytes: low 32 bits of lane one and low 16 bits of lane two seeds
    assert hash48hex("") == "ca6b9e3779b9"


@pytest.mark.unit
def test_hash48hex_format_and_determinism():
    first = hash48hex("Lecture 1-Intro-Week 1-Test 101")
    assert re.fullmatch(r"[0-9a-f]{12}", first)
    assert hash48hex("Lecture 1-Intro-Week 1-Test 101") == first
    assert hash48hex("Lecture 2-Intro-Week 1-Test 101") != first


@pytest.mark.unit
def test_hash48hex_handles_non_ascii():
    assert re.fullmatch(r"[0-9a-f]{12}", hash48hex("Thermodynamique: entropie ∆S"))


@pytest.mark.unit
def test_document_id_is_stable_for_identical_inputs():
    fingerprint = generator.text_fingerprint("Hello world")
    first = generator.document_id("Test101", "Week 1", "Intro", fingerprint)
    second = generator.document_id(
        "Test101", "Week 1", "Intro", generator.text_fingerprint("Hello world")
    )
    assert first == second
    assert re.fullmatch(r"[0-9a-f]{12}", first)


@pytest.mark.unit
def test_document_id_changes_with_content_or_context():
    fingerprint = generator.text_fingerprint("Hello world")
    base = generator.document_id("Test101", "Week 1", "Intro", fingerprint)

    assert generator.document_id("Test101", "Week 2", "Intro", fingerprint) != base
    assert generator.document_id("Test101", "Week 1", "Lab", fingerprint) != base
    assert (
        generator.document_id(
            "Test101", "Week 1", "Intro", generator.text_fingerprint("Hello there")
        )
        != base
    )


@pytest.mark.unit
def test_file_fingerprint_depends_on_name_and_bytes():
    same = generator.file_fingerprint("notes.txt", b"abc")
    assert generator.file_fingerprint("notes.txt", b"abc") == same
    assert generator.file_fingerprint("notes.txt", b"abd") != same
    assert generator.file_fingerprint("other.txt", b"abc") != same


@pytest.mark.unit
@pytest.mark.parametrize(
    "course,division,item,fingerprint",
    [
        ("", "Week 1", "Intro", "x"),
        ("Test101", "   ", "Intro", "x"),
        ("Test101", "Week 1", None, "x"),
        ("Test101", "Week 1", "Intro", ""),
    ],
)
def test_document_id_rejects_empty_fields(course, division, item, fingerprint):
    with pytest.raises(ValidationError):
        generator.document_id(course, division, item, fingerprint)


@pytest.mark.unit
def test_chunk_ids_are_deterministic_uuids():
    first = generator.chunk_id("abcdef012345", 0)
    assert str(uuid.UUID(first)) == first
    assert generator.chunk_id("abcdef012345", 0) == first
    assert generator.chunk_id("abcdef012345", 1) != first
    assert generator.chunk_id("abcdef012346", 0) != first


@pytest.mark.unit
def test_chunk_id_rejects_negative_sequence():
    with pytest.raises(ValidationError) as exc_info:
        generator.chunk_id("abcdef012345", -1)
    assert exc_info.value.details["field"] == "sequence"

from unittest.mock import AsyncMock

import pytest

from src.core.chunking import RecursiveCharacterChunker
from src.core.exceptions import MetadataPersistenceError, NotFoundError, VectorStoreError
from tests.utils.utils import COURSE_ID, DIVISION_ID, ITEM_ID, make_text_document


async def _ingest_three_documents(services):
    services.ingestion.chunker = RecursiveCharacterChunker(chunk_size=15, chunk_overlap=0)
    results = []
    for name, text, item_id in [
        ("First", "first doc", ITEM_ID),
        ("Second", "beta one\n\nbeta two", ITEM_ID),
        ("Third", "gamma one\n\ngamma two", "Lab"),
    ]:
        result = await services.ingestion.ingest(
            make_text_document(text, name=name, item_id=item_id, item_title=item_id)
        )
        assert result.success
        results.append(result)
    return results


@pytest.mark.unit
async def test_wipe_removes_every_document(services, material_store):
    results = await _ingest_three_documents(services)

    report = await services.deletion.wipe_course(COURSE_ID)

    assert sorted(report.deleted_documents) == sorted(r.id for r in results)
    assert report.total_chunks_deleted == 5
    assert report.errors == []
    assert await services.vector_store.count_chunks(COURSE_ID) == 0
    assert await material_store.list_materials(COURSE_ID) == []


@pytest.mark.unit
async def test_wipe_continues_past_a_failing_document(services, material_store, monkeypatch):
    first, second, third = await _ingest_three_documents(services)
    delete_chunks = services.vector_store.delete_document_chunks

    async def flaky_delete(course_id, document_id):
        if document_id == second.id:
            raise VectorStoreError("Vector store timed out after 30s", operation="delete_chunks")
        return await delete_chunks(course_id, document_id)

    monkeypatch.setattr(services.vector_store, "delete_document_chunks", flaky_delete)

    report = await services.deletion.wipe_course(COURSE_ID)

    assert sorted(report.deleted_documents) == sorted([first.id, third.id])
    assert report.total_chunks_deleted == 3
    assert len(report.errors) == 1
    assert report.errors[0].document_id == second.id
    assert "timed out" in report.errors[0].error
    # Material lists are cleared even though one document failed
    assert await material_store.list_materials(COURSE_ID) == []
    assert report.to_dict()["errors"] == [
        {"documentId": second.id, "error": "Vector store timed out after 30s"}
    ]


@pytest.mark.unit
async def test_wipe_reports_a_failed_clear(services, material_store):
    await _ingest_three_documents(services)
    material_store.failing.add("clear_all_materials")

    report = await services.deletion.wipe_course(COURSE_ID)

    assert len(report.deleted_documents) == 3
    assert report.errors == []
    assert report.clear_error.startswith("Failed to clear all materials")
    assert report.to_dict()["clearError"] == report.clear_error


@pytest.mark.unit
async def test_wipe_counts_chunks_of_a_document_whose_unlink_failed(
    services, material_store, monkeypatch
):
    first, second, third = await _ingest_three_documents(services)
    remove_material = material_store.remove_material

    async def flaky_remove(course_id, division_id, item_id, material_id):
        if material_id == second.id:
            raise MetadataPersistenceError("Failed to remove material: not primary")
        return await remove_material(course_id, division_id, item_id, material_id)

    monkeypatch.setattr(material_store, "remove_material", flaky_remove)

    report = await services.deletion.wipe_course(COURSE_ID)

    assert await services.vector_store.count_chunks(COURSE_ID) == 0
    assert report.total_chunks_deleted == 5
    assert sorted(report.deleted_documents) == sorted([first.id, third.id])
    assert [e.document_id for e in report.errors] == [second.id]


@pytest.mark.unit
async def test_wipe_survives_malformed_material_records(services, material_store):
    results = await _ingest_three_documents(services)
    intro = material_store.materials_of(COURSE_ID, DIVISION_ID, ITEM_ID)
    intro.append({"id": "legacy01", "name": "old"})
    intro.append({"name": "no id at all"})

    report = await services.deletion.wipe_course(COURSE_ID)

    assert sorted(report.deleted_documents) == sorted(r.id for r in results)
    assert report.total_chunks_deleted == 5
    assert [e.document_id for e in report.errors] == ["legacy01", None]
    assert "sourceType" in report.errors[0].error
    assert material_store.materials_of(COURSE_ID, DIVISION_ID, ITEM_ID) == []
    assert await services.vector_store.count_chunks(COURSE_ID) == 0


@pytest.mark.unit
async def test_wipe_deletes_chunks_of_a_malformed_record_with_an_id(services, material_store):
    result = await services.ingestion.ingest(make_text_document("Hello world"))
    intro = material_store.materials_of(COURSE_ID, DIVISION_ID, ITEM_ID)
    # Strip fields so the stored record no longer parses
    intro[0] = {"id": result.id}

    report = await services.deletion.wipe_course(COURSE_ID)

    assert report.deleted_documents == []
    assert report.total_chunks_deleted == 1
    assert [e.document_id for e in report.errors] == [result.id]
    assert await services.vector_store.count_chunks(COURSE_ID) == 0


@pytest.mark.unit
@pytest.mark.parametrize("course_id", [COURSE_ID, "UnknownCourse"])
async def test_wiping_a_course_without_materials_is_a_no_op(services, course_id):
    report = await services.deletion.wipe_course(course_id)

    assert report.to_dict() == {
        "courseId": course_id,
        "deletedDocuments": [],
        "totalChunksDeleted": 0,
        "errors": [],
    }


@pytest.mark.unit
async def test_delete_material_removes_chunks_then_record(services, material_store):
    first, second, _ = await _ingest_three_documents(services)

    deletion = await services.deletion.delete_material(
        COURSE_ID, DIVISION_ID, ITEM_ID, second.id
    )

    assert deletion.deleted is True
    assert deletion.chunks_deleted == 2
    remaining = material_store.materials_of(COURSE_ID, DIVISION_ID, ITEM_ID)
    assert [m["id"] for m in remaining] == [first.id]
    assert await services.vector_store.count_chunks(COURSE_ID) == 3


@pytest.mark.unit
async def test_delete_material_keeps_record_when_vectors_fail(
    services, material_store, monkeypatch
):
    first, _, _ = await _ingest_three_documents(services)
    monkeypatch.setattr(
        services.vector_store,
        "delete_document_chunks",
        AsyncMock(side_effect=VectorStoreError("connection refused")),
    )

    with pytest.raises(VectorStoreError) as exc_info:
        await services.deletion.delete_material(COURSE_ID, DIVISION_ID, ITEM_ID, first.id)

    assert exc_info.value.message == "Failed to delete material from vector database"
    ids = [m["id"] for m in material_store.materials_of(COURSE_ID, DIVISION_ID, ITEM_ID)]
    assert first.id in ids


@pytest.mark.unit
async def test_delete_material_at_wrong_location_is_not_found(services):
    first, _, _ = await _ingest_three_documents(services)

    with pytest.raises(NotFoundError):
        await services.deletion.delete_material(COURSE_ID, DIVISION_ID, "Lab", first.id)

    assert await services.vector_store.count_chunks(COURSE_ID) == 5

import asyncio
import copy
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.core.exceptions import MetadataPersistenceError
from src.database.material_store import MATERIALS_PATH, MaterialStore
from src.database.models.material import MaterialRecord

COURSE = {
    "_id": "652f1c0000000000000000aa",
    "id": "Test101",
    "courseName": "Test 101",
    "topicOrWeekInstances": [
        {
            "id": "w1",
            "title": "Week 1",
            "items": [
                {
                    "id": "i1",
                    "itemTitle": "Intro",
                    "additionalMaterials": [
                        {
                            "id": "abc123abc123",
                            "name": "Notes",
                            "courseName": "Test 101",
                            "topicOrWeekTitle": "Week 1",
                            "itemTitle": "Intro",
                            "sourceType": "text",
                            "uploaded": True,
                            "qdrantId": "0000",
                            "chunksGenerated": 2,
                        }
                    ],
                },
                {"id": "i2", "itemTitle": "Lab"},
            ],
        },
        {"id": "w2", "title": "Week 2"},
    ],
}


def _collection(modified=1, matched=1):
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=COURSE)
    collection.update_one = AsyncMock(
        return_value=MagicMock(modified_count=modified, matched_count=matched)
    )
    return collection


def _record():
    return MaterialRecord(
        id="def456def456",
        name="Slides",
        course_name="Test 101",
        topic_or_week_title="Week 1",
        item_title="Intro",
        source_type="file",
        file_name="slides.pdf",
        uploaded=True,
        qdrant_id="1111",
        chunks_generated=3,
    )


@pytest.mark.unit
async def test_list_materials_flattens_course_structure():
    store = MaterialStore(_collection())

    locations = await store.list_materials("Test101")

    assert len(locations) == 1
    assert locations[0].division_id == "w1"
    assert locations[0].item_id == "i1"
    assert locations[0].material.id == "abc123abc123"
    assert locations[0].material.chunks_generated == 2


@pytest.mark.unit
async def test_unknown_course_has_no_materials():
    collection = _collection()
    collection.find_one = AsyncMock(return_value=None)
    store = MaterialStore(collection)

    assert await store.find_course("missing") is None
    assert await store.list_materials("missing") == []


@pytest.mark.unit
async def test_append_material_pushes_camel_case_record_with_array_filters():
    collection = _collection()
    store = MaterialStore(collection)

    assert await store.append_material("Test101", "w1", "i1", _record()) is True

    (query, update), kwargs = collection.update_one.await_args
    assert query == {"id": "Test101"}
    pushed = update["$push"][MATERIALS_PATH]
    assert pushed["id"] == "def456def456"
    assert pushed["topicOrWeekTitle"] == "Week 1"
    assert pushed["chunksGenerated"] == 3
    assert "text" not in pushed
    assert "updatedAt" in update["$set"]
    assert kwargs["array_filters"] == [{"instance.id": "w1"}, {"item.id": "i1"}]


@pytest.mark.unit
async def test_append_to_missing_item_reports_false():
    store = MaterialStore(_collection(modified=0))
    assert await store.append_material("Test101", "w1", "nope", _record()) is False


@pytest.mark.unit
async def test_remove_material_pulls_by_id():
    collection = _collection()
    store = MaterialStore(collection)

    assert await store.remove_material("Test101", "w1", "i1", "abc123abc123") is True

    (_, update), _ = collection.update_one.await_args
    assert update["$pull"][MATERIALS_PATH] == {"id": "abc123abc123"}


@pytest.mark.unit
async def test_clear_all_only_touches_existing_lists():
    collection = _collection()
    store = MaterialStore(collection)

    assert await store.clear_all("Test101") is True

    (query, update), kwargs = collection.update_one.await_args
    assert query == {"id": "Test101"}
    assert update["$set"][MATERIALS_PATH] == []
    assert kwargs["array_filters"] == [
        {"instance.items": {"$exists": True}},
        {"item.additionalMaterials": {"$exists": True}},
    ]


@pytest.mark.unit
async def test_find_material_matches_full_location():
    store = MaterialStore(_collection())
    assert await store.find_material("Test101", "w1", "i1", "abc123abc123") is not None
    assert await store.find_material("Test101", "w1", "i2", "abc123abc123") is None


@pytest.mark.unit
async def test_driver_errors_become_metadata_errors():
    collection = _collection()
    collection.update_one = AsyncMock(side_effect=RuntimeError("not primary"))
    store = MaterialStore(collection)

    with pytest.raises(MetadataPersistenceError) as exc_info:
        await store.append_material("Test101", "w1", "i1", _record())
    assert exc_info.value.details["operation"] == "append_material"
    assert "not primary" in exc_info.value.message


@pytest.mark.unit
async def test_slow_store_times_out():
    async def slow(*args, **kwargs):
        await asyncio.sleep(5)

    collection = _collection()
    collection.find_one = AsyncMock(side_effect=slow)
    store = MaterialStore(collection, timeout=0.05)

    with pytest.raises(MetadataPersistenceError) as exc_info:
        await store.find_course("Test101")
    assert "timed out" in exc_info.value.message


@pytest.mark.unit
async def test_malformed_records_are_skipped_and_reported():
    course = copy.deepcopy(COURSE)
    materials = course["topicOrWeekInstances"][0]["items"][0]["additionalMaterials"]
    materials.append({"id": "legacy01", "name": "old"})
    materials.append("not a record")
    collection = _collection()
    collection.find_one = AsyncMock(return_value=course)
    store = MaterialStore(collection)

    parsed = await store.find_course("Test101")

    assert [location.material.id for location in parsed.materials()] == ["abc123abc123"]
    malformed = parsed.malformed_materials()
    assert [entry.material_id for entry in malformed] == ["legacy01", None]
    assert "sourceType" in malformed[0].error
    assert parsed.material_ids() == {"abc123abc123", "legacy01"}
    assert len(await store.list_materials("Test101")) == 1


@pytest.mark.unit
async def test_unreadable_course_structure_is_a_metadata_error():
    collection = _collection()
    collection.find_one = AsyncMock(
        return_value={"id": "Test101", "topicOrWeekInstances": [{"title": "no id"}]}
    )
    store = MaterialStore(collection)

    with pytest.raises(MetadataPersistenceError) as exc_info:
        await store.find_course("Test101")
    assert exc_info.value.details["operation"] == "find_course"

import pytest
from fastapi.testclient import TestClient

from server import app

client = TestClient(app)


def test_health_check():
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_ready_when_both_stores_answer(async_client):
    response = await async_client.get("/health/ready")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ready",
        "checks": {"vectorStore": "ok", "metadataStore": "ok"},
    }


@pytest.mark.asyncio
async def test_not_ready_when_metadata_store_is_down(async_client, material_store):
    material_store.failing.add("ping")

    response = await async_client.get("/health/ready")

    assert response.status_code == 503
    assert response.json()["checks"]["metadataStore"] == "unavailable"

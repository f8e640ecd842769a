# tests/conftest.py
import os
import sys

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from qdrant_client import QdrantClient

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from server import create_app
from src.dependencies import build_services
from tests.utils.embeddings import BagOfWordsEmbeddings
from tests.utils.fakes import FakeMaterialStore
from tests.utils.utils import COURSE_ID, COURSE_NAME, DIVISION_ID, ITEM_ID


@pytest.fixture
def qdrant_client():
    """In-process Qdrant, fresh for every test."""
    client = QdrantClient(":memory:")
    try:
        yield client
    finally:
        client.close()


@pytest.fixture
def material_store():
    store = FakeMaterialStore()
    store.add_course(
        COURSE_ID, COURSE_NAME, {DIVISION_ID: [ITEM_ID, "Lab"], "Week 2": ["Review"]}
    )
    return store


@pytest.fixture
def services(qdrant_client, material_store):
    embeddings = BagOfWordsEmbeddings()
    return build_services(qdrant_client, material_store, embeddings, embeddings.size)


@pytest.fixture
def app(services):
    return create_app(services=services)


@pytest_asyncio.fixture
async def async_client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

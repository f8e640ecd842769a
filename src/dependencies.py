"""
Service wiring.

Store clients are created once at startup and handed to every service
explicitly. The resulting ``ServiceContainer`` lives on ``app.state`` and the
request dependencies below read it from there.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from langchain_core.embeddings import Embeddings
from qdrant_client import QdrantClient

from src.config import (
    EMBEDDINGS_MODEL,
    MONGO_COURSES_COLLECTION,
    PENDING_GRACE_PERIOD_SECONDS,
    QDRANT_API_KEY,
    QDRANT_TIMEOUT,
    QDRANT_URL,
    Config,
    config,
)
from src.constants import (
    DEFAULT_CHUNK_OVERLAP,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_CHUNKS,
    EMBEDDING_BATCH_SIZE,
    MAX_FILE_SIZE,
    MAX_TEXT_LENGTH,
)
from src.core.chunking import RecursiveCharacterChunker
from src.core.embeddings import EmbeddingService, get_embeddings_model
from src.core.identity import IdentityGenerator
from src.core.vector_store_manager import VectorStoreManager
from src.database.material_store import MaterialStore
from src.database.mongo import AsyncMongoDBManager
from src.services.deletion import DeletionCoordinator
from src.services.file_parser import FileParser
from src.services.ingestion import IngestionOrchestrator
from src.services.metadata_linker import MetadataLinker
from src.services.reconciliation import ReconciliationSweeper
from src.services.retrieval import RetrievalService
from src.services.upload_validator import UploadValidator

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    validator: UploadValidator
    vector_store: VectorStoreManager
    material_store: MaterialStore
    ingestion: IngestionOrchestrator
    deletion: DeletionCoordinator
    retrieval: RetrievalService
    sweeper: ReconciliationSweeper
    mongo_manager: Optional[AsyncMongoDBManager] = None

    async def close(self) -> None:
        if self.mongo_manager is not None:
            await self.mongo_manager.close()
        self.vector_store.client.close()


def build_services(
    qdrant_client: QdrantClient,
    material_store: MaterialStore,
    embeddings: Embeddings,
    vector_size: int,
    settings: Config = config,
    mongo_manager: Optional[AsyncMongoDBManager] = None,
) -> ServiceContainer:
    """Assemble every service around already-connected store clients."""
    validator = UploadValidator(
        max_file_size=settings.get("ingestion", "max_file_size", default=MAX_FILE_SIZE),
        max_text_length=settings.get(
            "ingestion", "max_text_length", default=MAX_TEXT_LENGTH
        ),
    )
    chunker = RecursiveCharacterChunker(
        chunk_size=settings.get("chunking", "chunk_size", default=DEFAULT_CHUNK_SIZE),
        chunk_overlap=settings.get(
            "chunking", "chunk_overlap", default=DEFAULT_CHUNK_OVERLAP
        ),
        max_chunks=settings.get("chunking", "max_chunks", default=DEFAULT_MAX_CHUNKS),
    )
    embedder = EmbeddingService(
        embeddings,
        vector_size,
        batch_size=settings.get("embeddings", "batch_size", default=EMBEDDING_BATCH_SIZE),
    )
    vector_store = VectorStoreManager(qdrant_client, vector_size)
    linker = MetadataLinker(material_store)

    return ServiceContainer(
        validator=validator,
        vector_store=vector_store,
        material_store=material_store,
        ingestion=IngestionOrchestrator(
            validator=validator,
            identity=IdentityGenerator(),
            parser=FileParser(),
            chunker=chunker,
            embedder=embedder,
            vector_store=vector_store,
            linker=linker,
        ),
        deletion=DeletionCoordinator(vector_store, material_store, linker),
        retrieval=RetrievalService(embedder, vector_store),
        sweeper=ReconciliationSweeper(
            vector_store,
            material_store,
            grace_period=settings.get(
                "reconciliation",
                "grace_period_seconds",
                default=PENDING_GRACE_PERIOD_SECONDS,
            ),
        ),
        mongo_manager=mongo_manager,
    )


async def connect_services(settings: Config = config) -> ServiceContainer:
    """Connect to MongoDB and Qdrant from the environment and build the services."""
    mongo_manager = AsyncMongoDBManager()
    await mongo_manager.connect()
    material_store = MaterialStore(mongo_manager.get_collection(MONGO_COURSES_COLLECTION))

    qdrant_client = QdrantClient(QDRANT_URL, api_key=QDRANT_API_KEY, timeout=QDRANT_TIMEOUT)

    model_name = EMBEDDINGS_MODEL
    embeddings, vector_size = get_embeddings_model(
        model_name=model_name, return_embeddings_size=True
    )
    logger.info(f"Services connected (embeddings model: {model_name})")

    return build_services(
        qdrant_client,
        material_store,
        embeddings,
        vector_size,
        settings=settings,
        mongo_manager=mongo_manager,
    )


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_ingestion(request: Request) -> IngestionOrchestrator:
    return get_services(request).ingestion


def get_deletion(request: Request) -> DeletionCoordinator:
    return get_services(request).deletion


def get_retrieval(request: Request) -> RetrievalService:
    return get_services(request).retrieval


def get_material_store(request: Request) -> MaterialStore:
    return get_services(request).material_store


def get_sweeper(request: Request) -> ReconciliationSweeper:
    return get_services(request).sweeper

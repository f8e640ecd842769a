"""
Embedding provider factory and batching wrapper.

``get_embeddings_model`` maps a model name to a LangChain ``Embeddings``
implementation and its vector size. ``EmbeddingService`` calls the provider
in batches with a bounded timeout and attributes failures to the first chunk
of the failing batch.
"""

import logging
from enum import Enum
from typing import List, Sequence, Tuple, Union

import anyio
from langchain_core.embeddings import DeterministicFakeEmbedding, Embeddings
from langchain_openai import OpenAIEmbeddings

from src.config import EMBEDDING_TIMEOUT_SECONDS, OPENAI_API_KEY
from src.constants import EMBEDDING_BATCH_SIZE
from src.core.exceptions import UpstreamEmbeddingError

logger = logging.getLogger(__name__)


class EmbeddingModelType(Enum):
    """Supported embedding model types."""

    FAKE = "fake"
    OPENAI_ADA = "text-embedding-ada-002"
    OPENAI_SMALL = "text-embedding-3-small"
    OPENAI_LARGE = "text-embedding-3-large"

    # Popular Hugging Face embedding models
    ALL_MINILM_L6_V2 = "sentence-transformers/all-MiniLM-L6-v2"
    ALL_MPNET_BASE_V2 = "sentence-transformers/all-mpnet-base-v2"
    BGE_SMALL_EN_V1_5 = "BAAI/bge-small-en-v1.5"


# OpenAI embedding model dimensions
OPENAI_EMBEDDING_DIMENSIONS = {
    EmbeddingModelType.OPENAI_ADA.value: 1536,
    EmbeddingModelType.OPENAI_SMALL.value: 1536,
    EmbeddingModelType.OPENAI_LARGE.value: 3072,
}

FAKE_EMBEDDING_SIZE = 384


def get_embeddings_model(
    model_name: str, return_embeddings_size: bool = False
) -> Union[Embeddings, Tuple[Embeddings, int]]:
    """
    Get an embeddings model based on the model name.

    Args:
        model_name: Name of the embedding model to use
        return_embeddings_size: Whether to also return the embedding dimension

    Returns:
        Union[Embeddings, Tuple[Embeddings, int]]:
            The embeddings model and optionally its dimension
    """
    model = model_name

    # Handle fake embeddings (for local runs and testing)
    if model == EmbeddingModelType.FAKE.value:
        logger.info("Using fake embeddings for testing")
        embeddings = DeterministicFakeEmbedding(size=FAKE_EMBEDDING_SIZE)
        embeddings_size = FAKE_EMBEDDING_SIZE

    # Handle OpenAI embeddings
    elif model in OPENAI_EMBEDDING_DIMENSIONS:
        logger.info(f"Using OpenAI embeddings model: {model}")
        embeddings = OpenAIEmbeddings(model=model, api_key=OPENAI_API_KEY or None)
        embeddings_size = OPENAI_EMBEDDING_DIMENSIONS[model]

    # Handle Hugging Face embeddings (default case)
    else:
        logger.info(f"Using Hugging Face embeddings model: {model}")
        from langchain_huggingface import HuggingFaceEmbeddings

        embeddings = HuggingFaceEmbeddings(
            model_name=model,
            model_kwargs={"device": "cpu"},  # Use CPU by default
            encode_kwargs={"normalize_embeddings": True},
        )
        try:
            embeddings_size = embeddings._client.get_sentence_embedding_dimension()
        except AttributeError:
            logger.warning(
                f"Could not determine embedding size for {model}, using default"
            )
            embeddings_size = 768

    if return_embeddings_size:
        return embeddings, embeddings_size
    return embeddings


class EmbeddingService:
    """Batched, time-bounded access to an embedding provider."""

    def __init__(
        self,
        embeddings: Embeddings,
        vector_size: int,
        batch_size: int = EMBEDDING_BATCH_SIZE,
        timeout: float = EMBEDDING_TIMEOUT_SECONDS,
    ) -> None:
        self.embeddings = embeddings
        self.vector_size = vector_size
        self.batch_size = batch_size
        self.timeout = timeout

    async def embed_chunks(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Embed chunk texts in order.

        Args:
            texts: Chunk texts, in sequence order

        Returns:
            List[List[float]]: One vector per input text

        Raises:
            UpstreamEmbeddingError: If the provider fails, times out or returns
                the wrong number of vectors. ``chunk_index`` is the first chunk
                of the failing batch.
        """
        vectors: List[List[float]] = []
        total_batches = (len(texts) + self.batch_size - 1) // self.batch_size

        for start in range(0, len(texts), self.batch_size):
            batch = list(texts[start : start + self.batch_size])
            batch_num = (start // self.batch_size) + 1
            end = start + len(batch) - 1
            try:
                with anyio.fail_after(self.timeout):
                    batch_vectors = await self.embeddings.aembed_documents(batch)
            except TimeoutError as e:
                logger.error(
                    f"Embedding batch {batch_num}/{total_batches} timed out after {self.timeout}s"
                )
                raise UpstreamEmbeddingError(
                    f"Embedding provider timed out after {self.timeout}s",
                    chunk_index=start,
                    details={"chunk_range": [start, end]},
                ) from e
            except Exception as e:
                logger.error(
                    f"Embedding batch {batch_num}/{total_batches} failed: {str(e)}"
                )
                raise UpstreamEmbeddingError(
                    f"Failed to embed chunks {start}-{end}: {str(e)}",
                    chunk_index=start,
                    details={"chunk_range": [start, end], "upstream": str(e)},
                ) from e

            if len(batch_vectors) != len(batch):
                raise UpstreamEmbeddingError(
                    f"Embedding provider returned {len(batch_vectors)} vectors for {len(batch)} chunks",
                    chunk_index=start + len(batch_vectors),
                    details={"chunk_range": [start, end]},
                )
            vectors.extend(batch_vectors)
            logger.debug(f"Embedded batch {batch_num}/{total_batches}")

        return vectors

    async def embed_query(self, query: str) -> List[float]:
        """
        Embed a search query.

        Raises:
            UpstreamEmbeddingError: If the provider fails or times out
        """
        try:
            with anyio.fail_after(self.timeout):
                return await self.embeddings.aembed_query(query)
        except TimeoutError as e:
            raise UpstreamEmbeddingError(
                f"Embedding provider timed out after {self.timeout}s"
            ) from e
        except Exception as e:
            logger.error(f"Failed to embed query: {str(e)}")
            raise UpstreamEmbeddingError(
                f"Failed to embed query: {str(e)}", details={"upstream": str(e)}
            ) from e

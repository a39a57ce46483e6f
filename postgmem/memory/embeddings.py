"""
Embedding Service for generating vector representations.

Talks to an Ollama-compatible embedding API by default, with support for
local models via sentence-transformers.

Embedding never fails from the caller's point of view: when the backend
is unavailable a deterministic pseudo-random unit vector is returned
instead, so memories can always be stored and searched.
"""

import asyncio
import logging
import math
import random
from abc import ABC, abstractmethod
from typing import Literal

import aiohttp

logger = logging.getLogger("postgmem.memory.embeddings")

DEFAULT_DIMENSION = 384


class EmbeddingError(Exception):
    """The embedding backend returned an unusable result."""


def fallback_embedding(text: str, dimension: int = DEFAULT_DIMENSION) -> list[float]:
    """
    Generate a unit-length pseudo-random vector for `text`.

    Seeded from the string hash, so identical text yields the same vector
    for the lifetime of the process (str hashing is salted per process).
    The vector carries no semantic meaning.
    """
    rng = random.Random(hash(text))
    vector = [rng.random() for _ in range(dimension)]
    magnitude = math.sqrt(sum(v * v for v in vector))
    if magnitude == 0:
        return [1.0 / math.sqrt(dimension)] * dimension
    return [v / magnitude for v in vector]


class EmbeddingService(ABC):
    """
    Abstract interface for embedding generation.

    Subclasses implement `_generate`; `embed` applies the fallback policy.
    """

    def __init__(self, dimension: int = DEFAULT_DIMENSION):
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        """Return the dimension of embeddings produced."""
        return self._dimension

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable backend name for logs."""
        pass

    @abstractmethod
    async def _generate(self, text: str) -> list[float]:
        """Request an embedding from the backend. May raise."""
        pass

    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text, falling back on failure."""
        logger.debug(f"Generating embedding for text of length {len(text)}")
        try:
            embedding = await self._generate(text)
            self._check_dimension(embedding)
        except Exception as e:
            logger.error(f"Error generating embedding via {self.name}: {e}")
            logger.warning("Falling back to random embedding generation")
            return fallback_embedding(text, self._dimension)

        logger.debug(f"Generated embedding with {len(embedding)} dimensions")
        return embedding

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts."""
        if not texts:
            return []
        return list(await asyncio.gather(*(self.embed(text) for text in texts)))

    def _check_dimension(self, embedding: list[float]) -> None:
        if not embedding:
            raise EmbeddingError("Empty embedding in response")
        if len(embedding) != self._dimension:
            raise EmbeddingError(
                f"Expected {self._dimension} dimensions, got {len(embedding)}"
            )

    async def close(self) -> None:
        """Clean up resources."""
        pass


class OllamaEmbeddingService(EmbeddingService):
    """
    Embedding service for Ollama's /api/embeddings endpoint.

    Request: {"model": ..., "prompt": ...}
    Response: {"embedding": [...]}
    """

    def __init__(
        self,
        api_url: str,
        model: str = "all-minilm",
        timeout: float = 10,
        dimension: int = DEFAULT_DIMENSION,
    ):
        """
        Initialize Ollama embedding service.

        Args:
            api_url: Base URL of the API, e.g. "http://localhost:11434"
            model: Embedding model name (all-minilm produces 384 dimensions)
            timeout: Total request timeout in seconds
            dimension: Expected embedding dimension
        """
        super().__init__(dimension)
        self.api_url = api_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._session = None
        logger.info(
            f"OllamaEmbeddingService initialized: url={self.api_url}, model={model}, dimensions={dimension}"
        )

    @property
    def name(self) -> str:
        return f"ollama:{self.model}"

    def _get_session(self):
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def _generate(self, text: str) -> list[float]:
        session = self._get_session()
        payload = {"model": self.model, "prompt": text}

        async with session.post(f"{self.api_url}/api/embeddings", json=payload) as response:
            if response.status != 200:
                raise EmbeddingError(f"Embedding API returned status {response.status}")
            data = await response.json()

        embedding = data.get("embedding") if isinstance(data, dict) else None
        if not isinstance(embedding, list):
            raise EmbeddingError("Empty response from embedding API")
        return [float(v) for v in embedding]

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None:
            await self._session.close()
            self._session = None


class LocalEmbeddingService(EmbeddingService):
    """
    Local embedding service using sentence-transformers.

    Uses all-MiniLM-L6-v2 by default (384 dimensions, fast, good quality).
    Encoding runs in the default executor to keep the event loop free.
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2", dimension: int = DEFAULT_DIMENSION):
        super().__init__(dimension)
        self.model_name = model_name
        self._model = None
        logger.info(f"LocalEmbeddingService initialized with model: {model_name}")

    @property
    def name(self) -> str:
        return f"local:{self.model_name}"

    def _get_model(self):
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError:
                raise RuntimeError(
                    "sentence-transformers not installed. "
                    "Install with: pip install 'postgmem[local]'"
                )
            self._model = SentenceTransformer(self.model_name)
            logger.info(f"Loaded local embedding model: {self.model_name}")
        return self._model

    async def _generate(self, text: str) -> list[float]:
        loop = asyncio.get_running_loop()

        def encode():
            model = self._get_model()
            return model.encode(text, convert_to_numpy=True).tolist()

        return await loop.run_in_executor(None, encode)


def create_embedding_service(
    provider: Literal["ollama", "local"] = "ollama",
    api_url: str = "",
    model: str = "",
    timeout: float = 10,
    dimension: int = DEFAULT_DIMENSION,
) -> EmbeddingService:
    """
    Factory function to create the appropriate embedding service.

    Args:
        provider: "ollama" or "local"
        api_url: Base URL of the embedding API (required for ollama)
        model: Model name (optional, uses defaults)
        timeout: HTTP timeout in seconds (ollama only)
        dimension: Expected embedding dimension

    Returns:
        Configured EmbeddingService instance
    """
    if provider == "ollama":
        if not api_url:
            raise ValueError("api_url required for ollama embedding provider")
        return OllamaEmbeddingService(
            api_url=api_url,
            model=model or "all-minilm",
            timeout=timeout,
            dimension=dimension,
        )
    elif provider == "local":
        return LocalEmbeddingService(
            model_name=model or "all-MiniLM-L6-v2",
            dimension=dimension,
        )
    else:
        raise ValueError(f"Unknown embedding provider: {provider}")

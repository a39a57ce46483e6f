"""
Test fixtures and sample data for PostgMem tests.
"""

import math
import re
import uuid
import zlib
from datetime import datetime, timezone

from postgmem.memory import EmbeddingService


def unit_vector(index: int, dimension: int = 384) -> list[float]:
    """A one-hot unit vector."""
    vector = [0.0] * dimension
    vector[index] = 1.0
    return vector


def make_memory_row(
    id: uuid.UUID = None,
    type: str = "document",
    content='{"fact": "The sky is blue"}',
    text: str = "The sky is blue",
    source: str = "test",
    embedding: list[float] = None,
    tags: list[str] = None,
    confidence: float = 1.0,
    created_at: datetime = None,
    updated_at: datetime = None,
    title: str = None,
) -> dict:
    """Create a dict shaped like an asyncpg row from the memories table."""
    now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    return {
        "id": id or uuid.uuid4(),
        "type": type,
        "content": content,
        "text": text,
        "source": source,
        "embedding": embedding if embedding is not None else unit_vector(0),
        "tags": tags if tags is not None else ["nature"],
        "confidence": confidence,
        "created_at": created_at or now,
        "updated_at": updated_at or now,
        "title": title,
    }


def make_relationship_row(
    from_memory_id: uuid.UUID,
    to_memory_id: uuid.UUID,
    type: str = "parent",
    id: uuid.UUID = None,
) -> dict:
    """Create a dict shaped like an asyncpg row from memory_relationships."""
    return {
        "id": id or uuid.uuid4(),
        "from_memory_id": from_memory_id,
        "to_memory_id": to_memory_id,
        "type": type,
        "created_at": datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
    }


class StaticEmbeddingService(EmbeddingService):
    """Returns a fixed vector and records every text it was asked to embed."""

    def __init__(self, vector: list[float] = None, dimension: int = 384):
        super().__init__(dimension)
        self.vector = vector or unit_vector(0, dimension)
        self.calls: list[str] = []

    @property
    def name(self) -> str:
        return "static"

    async def _generate(self, text: str) -> list[float]:
        self.calls.append(text)
        return list(self.vector)


class BagOfWordsEmbeddingService(EmbeddingService):
    """
    Deterministic word-hashing embedder.

    Texts sharing more words have a smaller cosine distance, which is
    enough to exercise ordering and thresholds against a real database.
    """

    @property
    def name(self) -> str:
        return "bag-of-words"

    async def _generate(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        for word in re.findall(r"[a-z]+", text.lower()):
            vector[zlib.crc32(word.encode()) % self.dimension] += 1.0
        magnitude = math.sqrt(sum(v * v for v in vector))
        if magnitude == 0:
            raise ValueError("No words to embed")
        return [v / magnitude for v in vector]


class FakeMigrationConnection:
    """
    Stand-in for an asyncpg connection used by SchemaMigrator.

    Tracks schema_version rows in memory and records executed scripts.
    `fail_on` makes any script containing that substring raise.
    """

    def __init__(self, fail_on: str = None, error: Exception = None):
        self.versions: list[tuple[int, str]] = []
        self.scripts: list[str] = []
        self.fail_on = fail_on
        self.error = error
        self.closed = False

    async def execute(self, sql: str, *args):
        if sql.strip().startswith("CREATE TABLE IF NOT EXISTS schema_version"):
            return "CREATE TABLE"
        if sql.startswith("INSERT INTO schema_version"):
            version, name = args
            if any(v == version for v, _ in self.versions):
                raise AssertionError(f"version {version} inserted twice")
            self.versions.append((version, name))
            return "INSERT 0 1"
        if self.fail_on and self.fail_on in sql:
            raise self.error
        self.scripts.append(sql)
        return "OK"

    async def fetch(self, sql: str, *args):
        assert sql.startswith("SELECT version FROM schema_version")
        return [{"version": v} for v, _ in self.versions]

    async def close(self):
        self.closed = True

"""
pgvector PostgreSQL Memory Store Implementation.

Stores memories and their relationships in PostgreSQL, with similarity
search done by the pgvector extension's cosine distance operator.

Requirements:
- PostgreSQL with pgvector extension installed
- asyncpg for async PostgreSQL access
- Schema created by postgmem.migrator before first use
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from .base import Memory, MemoryRelationship, MemoryStats, MemoryStorage, RelationshipType
from .content import prepare_content
from .embeddings import EmbeddingService

logger = logging.getLogger("postgmem.memory.store")

# embedding is read back as real[] so no vector codec is needed on the pool
MEMORY_COLUMNS = """
    id, type, content, text, source, embedding::real[] AS embedding,
    tags, confidence, created_at, updated_at, title
"""

RELATIONSHIP_COLUMNS = "id, from_memory_id, to_memory_id, type, created_at"


def _vector_literal(embedding: list[float]) -> str:
    """pgvector accepts the '[x, y, ...]' string representation."""
    return str([float(v) for v in embedding])


class MemoryStore(MemoryStorage):
    """
    PostgreSQL + pgvector implementation of the memory store.

    The connection pool and embedding service are owned by the caller;
    every operation acquires a pooled connection for its own round trip.
    """

    def __init__(self, pool, embedding_service: EmbeddingService):
        """
        Initialize the memory store.

        Args:
            pool: asyncpg connection pool (see postgmem.db.create_pool)
            embedding_service: Service used to embed memories and queries
        """
        self._pool = pool
        self.embedding_service = embedding_service
        logger.info(f"MemoryStore created with embeddings from {embedding_service.name}")

    async def store_memory(
        self,
        type: str,
        raw_content: str,
        source: str,
        tags: Optional[list[str]],
        confidence: float,
        related_to: Optional[uuid.UUID] = None,
        relationship_type: Optional[RelationshipType | str] = None,
        title: Optional[str] = None,
    ) -> Memory:
        """Store a memory and optionally link it to an existing one."""
        link_type = None
        # A blank type means no link was requested
        if related_to is not None and relationship_type and str(relationship_type).strip():
            link_type = RelationshipType.parse(relationship_type)

        content, text = prepare_content(raw_content, title)
        embedding = await self.embedding_service.embed(text)

        now = datetime.now(timezone.utc)
        memory = Memory(
            id=uuid.uuid4(),
            type=type,
            content=content,
            text=text,
            source=source,
            embedding=embedding,
            tags=list(tags or []),
            confidence=confidence,
            created_at=now,
            updated_at=now,
            title=title,
        )

        async with self._pool.acquire() as conn:
            await conn.execute("""
                INSERT INTO memories (
                    id, type, content, text, source, embedding,
                    tags, confidence, created_at, updated_at, title
                ) VALUES ($1, $2, $3::jsonb, $4, $5, $6::vector, $7::text[], $8, $9, $10, $11)
            """,
                memory.id,
                memory.type,
                json.dumps(memory.content),
                memory.text,
                memory.source,
                _vector_literal(memory.embedding),
                memory.tags,
                memory.confidence,
                memory.created_at,
                memory.updated_at,
                memory.title,
            )

        logger.info(f"Stored memory: {memory.id} (type={memory.type})")

        # Separate round trip; a failure here leaves the memory without its link
        if link_type is not None:
            await self.create_relationship(memory.id, related_to, link_type)

        return memory

    def _row_to_memory(self, row) -> Memory:
        """Convert a database row to a Memory."""
        content = row["content"]
        return Memory(
            id=row["id"],
            type=row["type"],
            content=json.loads(content) if isinstance(content, str) else content,
            text=row["text"],
            source=row["source"],
            embedding=list(row["embedding"] or []),
            tags=list(row["tags"] or []),
            confidence=row["confidence"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            title=row["title"],
        )

    def _row_to_relationship(self, row) -> MemoryRelationship:
        """Convert a database row to a MemoryRelationship."""
        return MemoryRelationship(
            id=row["id"],
            from_memory_id=row["from_memory_id"],
            to_memory_id=row["to_memory_id"],
            type=RelationshipType.parse(row["type"]),
            created_at=row["created_at"],
        )

    async def search(
        self,
        query: str,
        limit: int = 10,
        min_similarity: float = 0.7,
        filter_tags: Optional[list[str]] = None,
    ) -> list[Memory]:
        """Search for similar memories using cosine distance."""
        query_embedding = await self.embedding_service.embed(query)

        # <=> is cosine distance (1 - similarity); the bound is strict
        sql = f"""
            SELECT {MEMORY_COLUMNS}
            FROM memories
            WHERE embedding <=> $1::vector < $2
        """
        args: list[Any] = [_vector_literal(query_embedding), 1 - min_similarity]

        if filter_tags:
            args.append(list(filter_tags))
            sql += f" AND tags @> ${len(args)}::text[]"

        args.append(limit)
        sql += f" ORDER BY embedding <=> $1::vector LIMIT ${len(args)}"

        async with self._pool.acquire() as conn:
            rows = await conn.fetch(sql, *args)

        logger.debug(f"Search returned {len(rows)} memories (min_similarity={min_similarity})")
        return [self._row_to_memory(row) for row in rows]

    async def get(self, id: uuid.UUID) -> Optional[Memory]:
        """Get a memory by ID."""
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(f"""
                SELECT {MEMORY_COLUMNS} FROM memories WHERE id = $1
            """, id)

        if row:
            return self._row_to_memory(row)
        return None

    async def delete(self, id: uuid.UUID) -> bool:
        """Delete a memory by ID."""
        async with self._pool.acquire() as conn:
            status = await conn.execute("DELETE FROM memories WHERE id = $1", id)

        # asyncpg returns the command tag, e.g. "DELETE 1"
        deleted = int(status.split()[-1]) > 0
        if deleted:
            logger.info(f"Deleted memory: {id}")
        return deleted

    async def get_many(self, ids: list[uuid.UUID]) -> list[Memory]:
        """Get all existing memories among the given IDs."""
        ids = list(ids)
        if not ids:
            return []

        async with self._pool.acquire() as conn:
            rows = await conn.fetch(f"""
                SELECT {MEMORY_COLUMNS} FROM memories WHERE id = ANY($1::uuid[])
            """, ids)

        return [self._row_to_memory(row) for row in rows]

    async def create_relationship(
        self,
        from_id: uuid.UUID,
        to_id: uuid.UUID,
        type: RelationshipType | str,
    ) -> MemoryRelationship:
        """Create a directed relationship. Endpoints are not checked."""
        relationship = MemoryRelationship(
            id=uuid.uuid4(),
            from_memory_id=from_id,
            to_memory_id=to_id,
            type=RelationshipType.parse(type),
            created_at=datetime.now(timezone.utc),
        )

        async with self._pool.acquire() as conn:
            await conn.execute("""
                INSERT INTO memory_relationships (id, from_memory_id, to_memory_id, type, created_at)
                VALUES ($1, $2, $3, $4, $5)
            """,
                relationship.id,
                relationship.from_memory_id,
                relationship.to_memory_id,
                relationship.type.value,
                relationship.created_at,
            )

        logger.info(
            f"Created relationship {relationship.type.value}: {from_id} -> {to_id}"
        )
        return relationship

    async def get_relationships(
        self,
        memory_id: uuid.UUID,
        type: Optional[RelationshipType | str] = None,
    ) -> list[MemoryRelationship]:
        """Get outgoing relationships of a memory."""
        sql = f"SELECT {RELATIONSHIP_COLUMNS} FROM memory_relationships WHERE from_memory_id = $1"
        args: list[Any] = [memory_id]

        if type:
            args.append(RelationshipType.parse(type).value)
            sql += " AND type = $2"

        async with self._pool.acquire() as conn:
            rows = await conn.fetch(sql, *args)

        return [self._row_to_relationship(row) for row in rows]

    async def get_stats(self) -> MemoryStats:
        """Get memory count and average content size."""
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow("""
                SELECT COUNT(*) AS count,
                       COALESCE(AVG(LENGTH(content::text)), 0) AS avg_size
                FROM memories
            """)

        return MemoryStats(
            total_memories=row["count"],
            average_memory_size_bytes=int(row["avg_size"]),
        )

"""
Base interfaces and data structures for the memory store.

Defines the records the store persists and the abstract contract
that storage backends must implement.
"""

import json
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from ..errors import UnknownRelationshipType


class RelationshipType(str, Enum):
    """Closed vocabulary of directed relationships between memories."""
    PARENT = "parent"
    CHILD = "child"
    REFERENCE = "reference"
    RELATED = "related"
    CAUSE = "cause"
    EFFECT = "effect"
    DUPLICATE = "duplicate"
    VERSION_OF = "version-of"
    PART_OF = "part-of"
    CONTAINS = "contains"
    PRECEDES = "precedes"
    FOLLOWS = "follows"
    EXAMPLE_OF = "example-of"
    INSTANCE_OF = "instance-of"
    GENERALIZES = "generalizes"
    SPECIALIZES = "specializes"
    SYNONYM = "synonym"
    ANTONYM = "antonym"

    @classmethod
    def parse(cls, value: "RelationshipType | str") -> "RelationshipType":
        """
        Resolve a relationship type from its canonical or legacy spelling.

        "version-of", "VersionOf" and "version_of" all resolve to
        VERSION_OF. Anything else raises UnknownRelationshipType.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise UnknownRelationshipType(repr(value))
        key = _normalize_type(value)
        if key:
            for member in cls:
                if _normalize_type(member.value) == key:
                    return member
        raise UnknownRelationshipType(value)

    def __str__(self) -> str:
        return self.value


def _normalize_type(value: str) -> str:
    return re.sub(r"[^a-z0-9]", "", value.lower())


@dataclass
class Memory:
    """
    A stored, searchable unit of knowledge.

    `text` is what was embedded; it is derived from `content` (and the
    optional title) once at write time and never recomputed.
    """
    id: uuid.UUID
    type: str
    content: Any  # Any JSON value, stored verbatim
    text: str
    source: str
    embedding: list[float]
    tags: list[str]
    confidence: float
    created_at: datetime
    updated_at: datetime
    title: Optional[str] = None

    def to_context_string(self) -> str:
        """Format this memory as a human-readable report."""
        tags = ", ".join(self.tags) if self.tags else "none"
        lines = [f"ID: {self.id}"]
        if self.title:
            lines.append(f"Title: {self.title}")
        lines.extend([
            f"Type: {self.type}",
            f"Content: {_render_content(self.content)}",
            f"Source: {self.source}",
            f"Tags: {tags}",
            f"Confidence: {self.confidence:.2f}",
            f"Created: {self.created_at:%Y-%m-%d %H:%M:%S}",
            f"Updated: {self.updated_at:%Y-%m-%d %H:%M:%S}",
        ])
        return "\n".join(lines)


def _render_content(content: Any) -> str:
    return json.dumps(content, ensure_ascii=False)


@dataclass
class MemoryRelationship:
    """A directed, typed edge from one memory to another."""
    id: uuid.UUID
    from_memory_id: uuid.UUID
    to_memory_id: uuid.UUID
    type: RelationshipType
    created_at: datetime


@dataclass
class MemoryStats:
    """Aggregate statistics about stored memories."""
    total_memories: int = 0
    average_memory_size_bytes: int = 0  # Average length of content as JSON text


class MemoryStorage(ABC):
    """
    Abstract interface for memory storage backends.

    Implementations: pgvector (MemoryStore)
    """

    @abstractmethod
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
        """
        Store a new memory.

        Args:
            type: Classification of the memory (e.g. "document")
            raw_content: JSON payload, or plain text
            source: Provenance of the memory
            tags: Labels used for exact filtering
            confidence: Caller-supplied score, nominally 0-1
            related_to: Optional memory to link the new memory to
            relationship_type: Type of that link
            title: Optional label folded into the embedded text

        Returns:
            The stored memory
        """
        pass

    @abstractmethod
    async def search(
        self,
        query: str,
        limit: int = 10,
        min_similarity: float = 0.7,
        filter_tags: Optional[list[str]] = None,
    ) -> list[Memory]:
        """
        Search for memories similar to a query.

        Args:
            query: Text to search for
            limit: Maximum number of results
            min_similarity: Results must be strictly more similar than this
            filter_tags: Results must carry all of these tags

        Returns:
            Memories ordered from most to least similar
        """
        pass

    @abstractmethod
    async def get(self, id: uuid.UUID) -> Optional[Memory]:
        """Get a memory by ID, or None if it does not exist."""
        pass

    @abstractmethod
    async def delete(self, id: uuid.UUID) -> bool:
        """Delete a memory. Returns True if a row was removed."""
        pass

    @abstractmethod
    async def get_many(self, ids: list[uuid.UUID]) -> list[Memory]:
        """Get every memory among `ids` that exists, in no particular order."""
        pass

    @abstractmethod
    async def create_relationship(
        self,
        from_id: uuid.UUID,
        to_id: uuid.UUID,
        type: RelationshipType | str,
    ) -> MemoryRelationship:
        """Create a directed relationship from `from_id` to `to_id`."""
        pass

    @abstractmethod
    async def get_relationships(
        self,
        memory_id: uuid.UUID,
        type: Optional[RelationshipType | str] = None,
    ) -> list[MemoryRelationship]:
        """Get outgoing relationships of a memory, optionally of one type."""
        pass

    @abstractmethod
    async def get_stats(self) -> MemoryStats:
        """Get aggregate statistics about stored memories."""
        pass

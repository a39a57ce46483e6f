"""
Semantic Memory Storage.

Persists structured memories with vector embeddings in PostgreSQL and
retrieves them by similarity, tags, ID, and typed relationships.
"""

from .base import Memory, MemoryRelationship, MemoryStats, MemoryStorage, RelationshipType
from .content import extract_text, parse_content, prepare_content
from .embeddings import (
    EmbeddingService,
    LocalEmbeddingService,
    OllamaEmbeddingService,
    create_embedding_service,
    fallback_embedding,
)
from .pgvector_store import MemoryStore

__all__ = [
    "Memory",
    "MemoryRelationship",
    "MemoryStats",
    "MemoryStorage",
    "RelationshipType",
    "extract_text",
    "parse_content",
    "prepare_content",
    "EmbeddingService",
    "LocalEmbeddingService",
    "OllamaEmbeddingService",
    "create_embedding_service",
    "fallback_embedding",
    "MemoryStore",
]

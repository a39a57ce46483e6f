"""
PostgMem - Semantic Memory Store on PostgreSQL + pgvector

This package persists structured memories alongside vector embeddings
and serves similarity search, tag filtering, and typed relationships
for agents that need durable, searchable knowledge.
"""

__version__ = "0.1.0"

"""
PostgreSQL connection pool factory.

The pool is created once by the process entry point and handed to
MemoryStore; nothing in the package looks it up globally.
"""

import logging

import asyncpg

from .config import DatabaseConfig

logger = logging.getLogger("postgmem.db")


async def create_pool(db_config: DatabaseConfig) -> asyncpg.Pool:
    """
    Create an asyncpg connection pool.

    Args:
        db_config: Database settings (URL and pool sizing)

    Returns:
        An open connection pool; the caller must close it.
    """
    if not db_config.url:
        raise ValueError("Database URL required to create a connection pool")

    pool = await asyncpg.create_pool(
        db_config.url,
        min_size=db_config.min_pool_size,
        max_size=db_config.max_pool_size,
        command_timeout=db_config.command_timeout,
    )
    logger.info(
        f"Connection pool created (min={db_config.min_pool_size}, max={db_config.max_pool_size})"
    )
    return pool

"""
PostgMem entry point.

Startup order matters: schema migrations run once, on their own
connection, before the pool and store are created. A migration failure
aborts startup.
"""

import asyncio
import logging
import sys

from .config import Config, config
from .db import create_pool
from .memory import MemoryStore, create_embedding_service
from .migrator import migrate

logger = logging.getLogger("postgmem.main")


async def startup(cfg: Config):
    """
    Bring the database up to date and build the memory store.

    Returns:
        (pool, store). The caller owns both and must close them.

    Raises:
        ValueError: If the configuration is invalid
        MigrationError: If a migration fails
    """
    errors = cfg.validate()
    if errors:
        raise ValueError("Invalid configuration: " + "; ".join(errors))

    applied = await migrate(cfg.database.url, cfg.migrations.directory)
    if applied:
        logger.info(f"Applied {len(applied)} migrations")

    embedding_service = create_embedding_service(
        provider=cfg.embeddings.provider,
        api_url=cfg.embeddings.api_url,
        model=cfg.embeddings.local_model if cfg.embeddings.provider == "local" else cfg.embeddings.model,
        timeout=cfg.embeddings.timeout,
        dimension=cfg.embeddings.dimension,
    )
    pool = await create_pool(cfg.database)
    return pool, MemoryStore(pool, embedding_service)


async def shutdown(pool, store: MemoryStore) -> None:
    """Release the embedding session and the connection pool."""
    await store.embedding_service.close()
    await pool.close()
    logger.info("PostgMem shut down")


async def run(cfg: Config) -> bool:
    """
    Migrate the database and report memory statistics.

    Returns:
        True on success
    """
    pool, store = await startup(cfg)
    try:
        stats = await store.get_stats()
        logger.info(
            f"PostgMem ready: {stats.total_memories} memories, "
            f"average size {stats.average_memory_size_bytes} bytes"
        )
        return True
    finally:
        await shutdown(pool, store)


def main():
    """Entry point for the application."""
    config.setup_logging()

    try:
        success = asyncio.run(run(config))
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        print(f"\nFatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

"""
Versioned schema migrations.

Migration units are SQL files named `<version>_<description>.sql`. Each
unit is applied at most once, in ascending version order, and recorded
in the schema_version table. Running the migrator again is a no-op once
nothing is pending.

Limitations:
- A unit's script and its schema_version insert are not one transaction,
  so a script that fails midway can leave changes that are not recorded.
- Concurrent runs from several processes are not coordinated.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import asyncpg

from .config import DEFAULT_MIGRATIONS_DIR
from .errors import MigrationError

logger = logging.getLogger("postgmem.migrator")

VERSION_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        name TEXT NOT NULL UNIQUE,
        applied_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
"""


@dataclass(frozen=True)
class MigrationUnit:
    """A single versioned migration script."""
    version: int
    name: str  # File stem, e.g. "001_create_memories"
    path: Path

    def read_sql(self) -> str:
        return self.path.read_text(encoding="utf-8")


def parse_version(filename: str) -> Optional[int]:
    """
    Parse the version prefix of a migration file name.

    Returns None when the prefix before the first "_" is not a positive
    integer.
    """
    prefix = filename.split("_", 1)[0]
    if not prefix.isdigit():
        return None
    version = int(prefix)
    return version if version > 0 else None


def discover_migrations(directory: str | Path) -> list[MigrationUnit]:
    """
    Find migration units in a directory, sorted by version.

    Files with an unparsable version prefix are skipped. Two files with
    the same version raise MigrationError.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise MigrationError(f"Migrations directory not found: {directory}")

    units: dict[int, MigrationUnit] = {}
    for path in sorted(directory.glob("*.sql")):
        version = parse_version(path.name)
        if version is None:
            logger.warning(f"Skipping migration with invalid version prefix: {path.name}")
            continue
        if version in units:
            raise MigrationError(
                f"Duplicate migration version {version}: {units[version].path.name} and {path.name}",
                version=version,
            )
        units[version] = MigrationUnit(version=version, name=path.stem, path=path)

    return [units[v] for v in sorted(units)]


class SchemaMigrator:
    """
    Applies pending migration units to a database.

    Runs on a single connection, before any store traffic.
    """

    def __init__(self, conn, migrations_dir: str | Path = DEFAULT_MIGRATIONS_DIR):
        """
        Args:
            conn: An open asyncpg connection
            migrations_dir: Directory holding the migration scripts
        """
        self.conn = conn
        self.migrations_dir = Path(migrations_dir)

    async def ensure_version_table(self) -> None:
        """Create the schema_version table if it does not exist."""
        await self.conn.execute(VERSION_TABLE_SQL)

    async def applied_versions(self) -> set[int]:
        """Get the versions already recorded in schema_version."""
        rows = await self.conn.fetch("SELECT version FROM schema_version")
        return {row["version"] for row in rows}

    async def pending(self) -> list[MigrationUnit]:
        """Get the units that have not been applied yet, in order."""
        await self.ensure_version_table()
        applied = await self.applied_versions()
        return [
            unit for unit in discover_migrations(self.migrations_dir)
            if unit.version not in applied
        ]

    async def migrate(self) -> list[int]:
        """
        Apply all pending units in ascending version order.

        Returns:
            Versions applied by this run (empty if already up to date)

        Raises:
            MigrationError: If a unit fails; later units are not attempted.
        """
        logger.info("Starting database schema migration...")
        pending = await self.pending()
        if not pending:
            logger.info("Database schema is up to date")
            return []

        applied = []
        for unit in pending:
            logger.info(f"Applying migration {unit.version}: {unit.name}")
            try:
                await self.conn.execute(unit.read_sql())
                await self.conn.execute(
                    "INSERT INTO schema_version (version, name) VALUES ($1, $2)",
                    unit.version,
                    unit.name,
                )
            except asyncpg.PostgresError as e:
                logger.error(f"Migration {unit.version} ({unit.name}) failed: {e}")
                raise MigrationError(
                    f"Migration {unit.version} ({unit.name}) failed: {e}",
                    version=unit.version,
                ) from e
            applied.append(unit.version)

        logger.info(f"Database schema migration completed: applied {applied}")
        return applied


async def migrate(database_url: str, migrations_dir: str | Path | None = None) -> list[int]:
    """
    Run all pending migrations against a database.

    Opens a dedicated connection, applies pending units, and closes it.

    Returns:
        Versions applied by this run
    """
    conn = await asyncpg.connect(database_url)
    try:
        migrator = SchemaMigrator(conn, migrations_dir or DEFAULT_MIGRATIONS_DIR)
        return await migrator.migrate()
    finally:
        await conn.close()

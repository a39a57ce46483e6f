"""
Unit tests for postgmem/migrator.py

Tests migration discovery, ordering, apply-once semantics, and failure
handling using an in-memory stand-in for the database connection.
"""

from unittest.mock import AsyncMock, patch

import asyncpg
import pytest

from postgmem.config import DEFAULT_MIGRATIONS_DIR
from postgmem.errors import MigrationError
from postgmem.migrator import SchemaMigrator, discover_migrations, migrate, parse_version
from tests.fixtures import FakeMigrationConnection


class TestParseVersion:
    """Tests for parse_version."""

    @pytest.mark.parametrize("filename,expected", [
        ("001_create_memories.sql", 1),
        ("42_add_index.sql", 42),
        ("7.sql", None),
        ("7", 7),
        ("v1_create.sql", None),
        ("_create.sql", None),
        ("000_zero.sql", None),
        ("-1_negative.sql", None),
        ("README.md", None),
    ])
    def test_parse(self, filename, expected):
        assert parse_version(filename) == expected


class TestDiscoverMigrations:
    """Tests for discover_migrations."""

    def test_sorted_by_version(self, migrations_dir):
        units = discover_migrations(migrations_dir)

        assert [u.version for u in units] == [1, 2, 10]
        assert [u.name for u in units] == ["001_create_memories", "002_add_title", "010_add_index"]

    def test_skips_unparsable_prefix(self, migrations_dir, caplog):
        (migrations_dir / "draft_new_table.sql").write_text("SELECT 1;")

        units = discover_migrations(migrations_dir)

        assert [u.version for u in units] == [1, 2, 10]
        assert "draft_new_table.sql" in caplog.text

    def test_ignores_non_sql_files(self, migrations_dir):
        (migrations_dir / "003_notes.txt").write_text("not a migration")

        assert [u.version for u in discover_migrations(migrations_dir)] == [1, 2, 10]

    def test_duplicate_versions_rejected(self, migrations_dir):
        (migrations_dir / "2_other_title.sql").write_text("SELECT 1;")

        with pytest.raises(MigrationError) as exc_info:
            discover_migrations(migrations_dir)
        assert exc_info.value.version == 2

    def test_missing_directory(self, tmp_path):
        with pytest.raises(MigrationError):
            discover_migrations(tmp_path / "nope")

    def test_packaged_migrations(self):
        units = discover_migrations(DEFAULT_MIGRATIONS_DIR)

        assert [u.version for u in units] == [1, 2, 3, 4, 5]
        assert "CREATE EXTENSION IF NOT EXISTS vector" in units[0].read_sql()
        assert "vector(384)" in units[0].read_sql().lower()

    def test_packaged_migrations_leave_no_approximate_vector_index(self):
        units = discover_migrations(DEFAULT_MIGRATIONS_DIR)
        scripts = [u.read_sql().lower() for u in units]

        assert not any("using hnsw" in sql or "using ivfflat" in sql for sql in scripts)
        assert "drop index if exists idx_memories_embedding_hnsw" in scripts[-1]


class TestSchemaMigrator:
    """Tests for SchemaMigrator."""

    @pytest.mark.asyncio
    async def test_applies_in_ascending_order(self, migrations_dir):
        conn = FakeMigrationConnection()

        applied = await SchemaMigrator(conn, migrations_dir).migrate()

        assert applied == [1, 2, 10]
        assert conn.scripts == [
            "CREATE TABLE memories (id UUID);",
            "ALTER TABLE memories ADD COLUMN title TEXT;",
            "CREATE INDEX idx ON memories(type);",
        ]
        assert conn.versions == [
            (1, "001_create_memories"),
            (2, "002_add_title"),
            (10, "010_add_index"),
        ]

    @pytest.mark.asyncio
    async def test_second_run_is_noop(self, migrations_dir):
        conn = FakeMigrationConnection()
        migrator = SchemaMigrator(conn, migrations_dir)

        await migrator.migrate()
        versions_after_first = list(conn.versions)
        scripts_after_first = list(conn.scripts)

        applied = await migrator.migrate()

        assert applied == []
        assert conn.versions == versions_after_first
        assert conn.scripts == scripts_after_first

    @pytest.mark.asyncio
    async def test_only_pending_units_applied(self, migrations_dir):
        conn = FakeMigrationConnection()
        conn.versions = [(1, "001_create_memories")]

        applied = await SchemaMigrator(conn, migrations_dir).migrate()

        assert applied == [2, 10]
        assert "CREATE TABLE memories (id UUID);" not in conn.scripts

    @pytest.mark.asyncio
    async def test_new_unit_applied_on_later_run(self, migrations_dir):
        conn = FakeMigrationConnection()
        migrator = SchemaMigrator(conn, migrations_dir)
        await migrator.migrate()

        (migrations_dir / "011_add_source_index.sql").write_text("CREATE INDEX idx2 ON memories(source);")

        assert await migrator.migrate() == [11]
        assert conn.versions[-1] == (11, "011_add_source_index")

    @pytest.mark.asyncio
    async def test_pending(self, migrations_dir):
        conn = FakeMigrationConnection()
        conn.versions = [(2, "002_add_title")]

        pending = await SchemaMigrator(conn, migrations_dir).pending()

        assert [u.version for u in pending] == [1, 10]

    @pytest.mark.asyncio
    async def test_failure_aborts_run(self, migrations_dir):
        error = asyncpg.PostgresError("column \"title\" already exists")
        conn = FakeMigrationConnection(fail_on="ADD COLUMN title", error=error)

        with pytest.raises(MigrationError) as exc_info:
            await SchemaMigrator(conn, migrations_dir).migrate()

        assert exc_info.value.version == 2
        assert exc_info.value.__cause__ is error
        # Unit 1 stays recorded, the failed unit and everything after it do not
        assert conn.versions == [(1, "001_create_memories")]
        assert "CREATE INDEX idx ON memories(type);" not in conn.scripts

    @pytest.mark.asyncio
    async def test_empty_directory(self, tmp_path):
        conn = FakeMigrationConnection()

        assert await SchemaMigrator(conn, tmp_path).migrate() == []


class TestMigrateHelper:
    """Tests for the migrate() convenience coroutine."""

    @pytest.mark.asyncio
    async def test_opens_and_closes_connection(self, migrations_dir):
        conn = FakeMigrationConnection()

        with patch("postgmem.migrator.asyncpg.connect", AsyncMock(return_value=conn)) as connect:
            applied = await migrate("postgresql://db.test/mem", migrations_dir)

        connect.assert_awaited_once_with("postgresql://db.test/mem")
        assert applied == [1, 2, 10]
        assert conn.closed is True

    @pytest.mark.asyncio
    async def test_closes_connection_on_failure(self, migrations_dir):
        conn = FakeMigrationConnection(fail_on="CREATE TABLE memories", error=asyncpg.PostgresError("boom"))

        with patch("postgmem.migrator.asyncpg.connect", AsyncMock(return_value=conn)):
            with pytest.raises(MigrationError):
                await migrate("postgresql://db.test/mem", migrations_dir)

        assert conn.closed is True

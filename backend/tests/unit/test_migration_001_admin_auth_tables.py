"""Tests for migration 001: admin auth tables.

Runs the migration's upgrade()/downgrade() through Alembic's Operations
against an in-memory SQLite database and checks the resulting schema
against what the SQL credential store expects.
"""

import importlib.util
from pathlib import Path

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError

from admin_auth.models import Base

_MIGRATION = (
    Path(__file__).parents[2] / "migrations" / "versions" / "001_admin_auth_tables.py"
)

_INSERT_USER = text(
    "INSERT INTO admin_users (id, email, name, role, status, created_at, metadata) "
    "VALUES (:id, :email, 'Admin', 'admin', :status, '2026-01-01 00:00:00', '{}')"
)


def _load_migration():
    spec = importlib.util.spec_from_file_location("migration_001", _MIGRATION)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def engine():
    engine = create_engine("sqlite://")
    yield engine
    engine.dispose()


@pytest.fixture
def migrated(engine):
    migration = _load_migration()
    _run(engine, migration.upgrade)
    return migration


def _run(engine, fn) -> None:
    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            fn()


class TestUpgrade:
    def test_is_root_revision(self):
        migration = _load_migration()
        assert migration.revision == "001_admin_auth_tables"
        assert migration.down_revision is None

    def test_creates_tables_matching_models(self, engine, migrated):
        inspector = inspect(engine)

        assert set(inspector.get_table_names()) == set(Base.metadata.tables)
        for name, table in Base.metadata.tables.items():
            columns = {c["name"] for c in inspector.get_columns(name)}
            assert columns == {c.name for c in table.columns}, name

    def test_indexes(self, engine, migrated):
        inspector = inspect(engine)

        users = {i["name"]: i for i in inspector.get_indexes("admin_users")}
        assert users["ix_admin_users_email"]["unique"]
        tokens = {i["name"] for i in inspector.get_indexes("admin_magic_link_tokens")}
        assert tokens == {
            "ix_admin_magic_link_tokens_email",
            "ix_admin_magic_link_tokens_expires_at",
        }
        sessions = {i["name"] for i in inspector.get_indexes("admin_sessions")}
        assert sessions == {"ix_admin_sessions_user_id", "ix_admin_sessions_expires_at"}

    def test_email_is_unique(self, engine, migrated):
        with engine.begin() as conn:
            conn.execute(_INSERT_USER, {"id": "u1", "email": "a@x.com", "status": "active"})

        with pytest.raises(IntegrityError), engine.begin() as conn:
            conn.execute(_INSERT_USER, {"id": "u2", "email": "a@x.com", "status": "active"})

    def test_status_check_constraint(self, engine, migrated):
        with pytest.raises(IntegrityError), engine.begin() as conn:
            conn.execute(
                _INSERT_USER, {"id": "u1", "email": "a@x.com", "status": "deleted"}
            )


class TestDowngrade:
    def test_drops_tables(self, engine, migrated):
        _run(engine, migrated.downgrade)

        assert inspect(engine).get_table_names() == []

"""Tests for startup population of the user directory."""

import json

import pytest

from admin_auth.core.logging import AuditLogger
from admin_auth.repositories.credential_store import InMemoryCredentialStore
from admin_auth.schemas.users import UserSeed
from admin_auth.services.user_directory import (
    DEFAULT_ADMIN_NAME,
    ensure_default_admin,
    load_users_file,
    seed_users,
)


@pytest.fixture
def empty_store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def audit() -> AuditLogger:
    return AuditLogger()


class TestLoadUsersFile:
    def test_valid_file(self, tmp_path):
        path = tmp_path / "users.json"
        path.write_text(
            json.dumps(
                {
                    "users": [
                        {"email": "ana@x.com", "name": "Ana", "role": "editor"},
                        {"email": "bo@x.com", "name": "Bo"},
                    ]
                }
            )
        )

        seeds = load_users_file(path)

        assert [s.email for s in seeds] == ["ana@x.com", "bo@x.com"]
        assert seeds[1].role.value == "viewer"
        assert seeds[1].status.value == "active"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValueError, match="Invalid users file"):
            load_users_file(tmp_path / "absent.json")

    def test_unknown_role(self, tmp_path):
        path = tmp_path / "users.json"
        path.write_text(
            json.dumps({"users": [{"email": "a@x.com", "name": "A", "role": "owner"}]})
        )

        with pytest.raises(ValueError, match="Invalid users file"):
            load_users_file(path)

    def test_bad_email(self, tmp_path):
        path = tmp_path / "users.json"
        path.write_text(json.dumps({"users": [{"email": "nope", "name": "A"}]}))

        with pytest.raises(ValueError):
            load_users_file(path)


class TestSeedUsers:
    async def test_inserts_new_users(self, empty_store, clock, audit):
        seeds = [
            UserSeed(email="Ana@X.com", name="Ana", role="editor"),
            UserSeed(id="fixed-id", email="bo@x.com", name="Bo", metadata={"team": "web"}),
        ]

        inserted = await seed_users(empty_store, seeds, clock=clock, audit=audit)

        assert inserted == 2
        ana = await empty_store.get_user_by_email("ana@x.com")
        assert ana.role == "editor"
        assert ana.created_at == clock.now()
        bo = await empty_store.get_user_by_id("fixed-id")
        assert bo.metadata == {"team": "web"}

    async def test_skips_existing_emails(self, empty_store, clock, audit):
        seeds = [UserSeed(email="ana@x.com", name="Ana")]
        await seed_users(empty_store, seeds, clock=clock, audit=audit)

        inserted = await seed_users(empty_store, seeds, clock=clock, audit=audit)

        assert inserted == 0
        assert await empty_store.count_users() == 1


class TestEnsureDefaultAdmin:
    async def test_creates_admin_in_empty_store(self, empty_store, clock, audit):
        user = await ensure_default_admin(
            empty_store, " Owner@X.com ", clock=clock, audit=audit
        )

        assert user.email == "owner@x.com"
        assert user.role == "admin"
        assert user.is_active
        assert user.name == DEFAULT_ADMIN_NAME
        assert await empty_store.get_user_by_email("owner@x.com") == user

    async def test_noop_when_users_exist(self, store, clock, audit):
        before = await store.count_users()

        assert await ensure_default_admin(store, "owner@x.com", clock=clock, audit=audit) is None
        assert await store.count_users() == before

    async def test_noop_without_email(self, empty_store, clock, audit):
        assert await ensure_default_admin(empty_store, "", clock=clock, audit=audit) is None
        assert await empty_store.count_users() == 0

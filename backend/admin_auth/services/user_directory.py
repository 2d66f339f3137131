"""Startup population of the admin user directory.

Two sources, both applied by ServiceContainer.bootstrap():
- USERS_FILE: JSON list of administrators, inserted if not already present
- DEFAULT_ADMIN_EMAIL: a single active admin, created only when the
  directory is still empty afterwards
"""

import json
import uuid
from pathlib import Path

from pydantic import ValidationError

from admin_auth.core.clock import Clock
from admin_auth.core.logging import AuditLogger
from admin_auth.core.types import User, UserRole, UserStatus
from admin_auth.repositories.credential_store import CredentialStore
from admin_auth.schemas.users import UserSeed, UsersFile
from admin_auth.services.token_issuer import normalize_email

DEFAULT_ADMIN_NAME = "Administrator"

_SCOPE = "auth"


def load_users_file(path: str | Path) -> list[UserSeed]:
    """Read and validate a users file.

    Raises:
        ValueError: If the file cannot be read or fails validation.
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        return UsersFile.model_validate(raw).users
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        msg = f"Invalid users file {path}: {exc}"
        raise ValueError(msg) from exc


async def seed_users(
    store: CredentialStore,
    seeds: list[UserSeed],
    *,
    clock: Clock,
    audit: AuditLogger,
) -> int:
    """Insert seeds whose email is not yet registered.

    Returns:
        Number of users inserted.
    """
    inserted = 0
    for seed in seeds:
        email = normalize_email(seed.email)
        if await store.get_user_by_email(email) is not None:
            continue
        user = await store.add_user(
            User(
                id=seed.id or str(uuid.uuid4()),
                email=email,
                name=seed.name,
                role=seed.role.value,
                status=seed.status.value,
                created_at=seed.created_at or clock.now(),
                metadata=dict(seed.metadata),
            )
        )
        audit.info(_SCOPE, "Seeded admin user", user_id=user.id, email=email, role=user.role)
        inserted += 1
    return inserted


async def ensure_default_admin(
    store: CredentialStore,
    email: str,
    *,
    clock: Clock,
    audit: AuditLogger,
) -> User | None:
    """Create the default administrator when the directory is empty.

    Args:
        store: Credential store.
        email: DEFAULT_ADMIN_EMAIL; empty disables the bootstrap.
        clock: Time source for created_at.
        audit: Audit logger.

    Returns:
        The created user, or None if nothing was created.
    """
    if not email or await store.count_users() > 0:
        return None
    user = await store.add_user(
        User(
            id=str(uuid.uuid4()),
            email=normalize_email(email),
            name=DEFAULT_ADMIN_NAME,
            role=UserRole.ADMIN.value,
            status=UserStatus.ACTIVE.value,
            created_at=clock.now(),
        )
    )
    audit.info(_SCOPE, "Created default admin user", user_id=user.id, email=user.email)
    return user

"""Role-based permission registry.

Maps roles to flat, explicit (resource, action) grants and exposes the
resource catalog. evaluate() is exact set membership: there is no
wildcard, no "admin implies write", and no role inheritance, so every
grant is visible in the matrix.

The matrix is loaded once at startup (built-in defaults, or the
PERMISSIONS_FILE JSON validated by schemas.permissions.PermissionMatrix)
and never mutated afterwards.
"""

import json
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pydantic import ValidationError

from admin_auth.core.logging import AuditLogger
from admin_auth.core.types import Permission, User
from admin_auth.schemas.permissions import PermissionMatrix

_SCOPE = "permissions"

# =============================================================================
# Default matrix
# =============================================================================

_ACTIONS = ("read", "write", "delete", "admin")
_CONTENT_RESOURCES = ("pages", "portfolio", "careers", "newsletter", "media")

_RESOURCE_CATALOG: dict[str, dict[str, Any]] = {
    "pages": {
        "name": "Pages",
        "description": "Static site pages",
        "actions": {
            "read": "View page content",
            "write": "Edit existing pages",
            "delete": "Delete pages (not applicable)",
            "admin": "Full control of pages",
        },
    },
    "portfolio": {
        "name": "Portfolio",
        "description": "Portfolio projects and categories",
        "actions": {
            "read": "View projects and categories",
            "write": "Create and edit projects",
            "delete": "Delete projects and categories",
            "admin": "Full control of the portfolio",
        },
    },
    "careers": {
        "name": "Careers",
        "description": "Job openings and departments",
        "actions": {
            "read": "View job openings",
            "write": "Create and edit openings",
            "delete": "Delete openings",
            "admin": "Full control of careers",
        },
    },
    "newsletter": {
        "name": "Newsletter",
        "description": "Blog articles, authors, and categories",
        "actions": {
            "read": "View articles and content",
            "write": "Create and edit articles",
            "delete": "Delete articles",
            "admin": "Full control of the newsletter",
        },
    },
    "users": {
        "name": "Users",
        "description": "User and role management",
        "actions": {
            "read": "View user information",
            "write": "Edit users and assign roles",
            "delete": "Delete users",
            "admin": "Full control of users",
        },
    },
    "settings": {
        "name": "Settings",
        "description": "System configuration",
        "actions": {
            "read": "View configuration",
            "write": "Change configuration",
            "delete": "Reset configuration",
            "admin": "Full control of configuration",
        },
    },
    "media": {
        "name": "Media",
        "description": "Media files",
        "actions": {
            "read": "View files",
            "write": "Upload and edit files",
            "delete": "Delete files",
            "admin": "Full control of media",
        },
    },
    "backups": {
        "name": "Backups",
        "description": "Backup copies",
        "actions": {
            "read": "View backups",
            "write": "Create backups",
            "delete": "Delete backups",
            "admin": "Full control of backups",
        },
    },
}


def _grants(resources: tuple[str, ...] | list[str], actions: tuple[str, ...]) -> list[dict]:
    return [{"resource": r, "action": a} for r in resources for a in actions]


def default_matrix() -> PermissionMatrix:
    """Built-in matrix: admin/editor/viewer with explicit grants."""
    return PermissionMatrix.model_validate(
        {
            "resources": _RESOURCE_CATALOG,
            "roles": {
                "admin": {
                    "description": "Administrator with full access",
                    "permissions": _grants(list(_RESOURCE_CATALOG), _ACTIONS),
                },
                "editor": {
                    "description": "Content editor",
                    "permissions": _grants(_CONTENT_RESOURCES, ("read", "write"))
                    + _grants(("users", "settings"), ("read",)),
                },
                "viewer": {
                    "description": "Read-only access",
                    "permissions": _grants(_CONTENT_RESOURCES, ("read",)),
                },
            },
        }
    )


def load_matrix(path: str | Path) -> PermissionMatrix:
    """Load and validate a permission matrix from a JSON file.

    Raises:
        ValueError: If the file cannot be read or fails validation.
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        return PermissionMatrix.model_validate(raw)
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        msg = f"Invalid permission matrix file {path}: {exc}"
        raise ValueError(msg) from exc


# =============================================================================
# Registry
# =============================================================================


class PermissionRegistry:
    """Read-only role -> permission lookup."""

    def __init__(
        self,
        matrix: PermissionMatrix | None = None,
        audit: AuditLogger | None = None,
    ) -> None:
        """Build the lookup tables.

        Args:
            matrix: Permission configuration (defaults to default_matrix()).
            audit: Audit logger for denied evaluations.
        """
        self._matrix = matrix or default_matrix()
        self._audit = audit or AuditLogger()
        self._catalog = {
            key: res.actions for key, res in self._matrix.resources.items()
        }
        self._role_grants: MappingProxyType[str, frozenset[Permission]] = MappingProxyType(
            {
                role: frozenset(
                    Permission(
                        resource=g.resource,
                        action=g.action,
                        description=g.description
                        or self._catalog[g.resource].get(g.action, ""),
                    )
                    for g in definition.permissions
                )
                for role, definition in self._matrix.roles.items()
            }
        )

    @property
    def roles(self) -> list[str]:
        return list(self._role_grants)

    def get_user_permissions(self, user: User) -> list[Permission]:
        """Expand the user's role into its grants.

        Unknown roles expand to no permissions.

        Returns:
            Permissions sorted by (resource, action).
        """
        grants = self._role_grants.get(user.role, frozenset())
        return sorted(grants, key=lambda p: (p.resource, p.action))

    def get_available_resources(self) -> dict[str, dict[str, Any]]:
        """Resource catalog: {resource: {name, description, actions}}."""
        return {
            key: {
                "name": res.name,
                "description": res.description,
                "actions": dict(res.actions),
            }
            for key, res in self._matrix.resources.items()
        }

    def get_role_definitions(self) -> dict[str, dict[str, Any]]:
        """Roles with their descriptions and explicit grants."""
        return {
            role: {
                "description": definition.description,
                "permissions": [
                    {"resource": p.resource, "action": p.action}
                    for p in sorted(
                        self._role_grants[role], key=lambda p: (p.resource, p.action)
                    )
                ],
            }
            for role, definition in self._matrix.roles.items()
        }

    def evaluate(self, user: User, resource: str, action: str) -> bool:
        """Check whether user's role grants exactly (resource, action)."""
        allowed = Permission(resource, action) in self._role_grants.get(
            user.role, frozenset()
        )
        if not allowed:
            self._audit.warning(
                _SCOPE,
                "Permission denied",
                user_id=user.id,
                role=user.role,
                resource=resource,
                action=action,
            )
        return allowed

"""Admin introspection endpoints.

Each endpoint declares the (resource, action) it needs through
require_permission(); the guard rejects callers without it before the
handler runs.

Endpoints:
- GET /admin/users: users:read
- GET /admin/auth/stats: settings:read
- GET /admin/permissions/roles: users:read
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from admin_auth.api.deps import Container, require_permission
from admin_auth.core.errors import InternalError
from admin_auth.core.responses import DataResponse
from admin_auth.repositories.credential_store import StoreError
from admin_auth.schemas.auth import AuthStatsResponse, RoleResponse, UserResponse
from admin_auth.services.auth_guard import AuthContext

router = APIRouter()

UsersReader = Annotated[AuthContext, Depends(require_permission("users", "read"))]
SettingsReader = Annotated[AuthContext, Depends(require_permission("settings", "read"))]


@router.get("/users")
async def list_users(_auth: UsersReader, container: Container) -> DataResponse[list[UserResponse]]:
    """List every administrator account."""
    try:
        users = await container.store.list_users()
    except StoreError as exc:
        container.audit.error("auth", "Listing users failed", error=exc)
        raise InternalError() from exc
    return DataResponse(data=[UserResponse.from_domain(u) for u in users])


@router.get("/auth/stats")
async def auth_stats(
    _auth: SettingsReader, container: Container
) -> DataResponse[AuthStatsResponse]:
    """Directory and credential counters."""
    try:
        stats = await container.get_auth_stats()
    except StoreError as exc:
        container.audit.error("auth", "Collecting auth stats failed", error=exc)
        raise InternalError() from exc
    return DataResponse(data=AuthStatsResponse(**stats))


@router.get("/permissions/roles")
async def list_roles(
    _auth: UsersReader, container: Container
) -> DataResponse[dict[str, RoleResponse]]:
    """Role definitions with their explicit grants."""
    roles = container.registry.get_role_definitions()
    return DataResponse(data={name: RoleResponse(**role) for name, role in roles.items()})

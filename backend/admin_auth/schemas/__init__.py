"""Pydantic request/response schemas for API endpoints."""

from admin_auth.schemas.auth import (
    AuthStatsResponse,
    LoginRequest,
    MeData,
    PermissionResponse,
    ResourceResponse,
    RoleResponse,
    SessionResponse,
    UserResponse,
    VerifyData,
)
from admin_auth.schemas.permissions import (
    PermissionGrant,
    PermissionMatrix,
    ResourceDefinition,
    RoleDefinition,
)
from admin_auth.schemas.users import UserSeed, UsersFile

__all__ = [
    # Auth
    "AuthStatsResponse",
    "LoginRequest",
    "MeData",
    "PermissionResponse",
    "ResourceResponse",
    "RoleResponse",
    "SessionResponse",
    "UserResponse",
    "VerifyData",
    # Permission matrix file
    "PermissionGrant",
    "PermissionMatrix",
    "ResourceDefinition",
    "RoleDefinition",
    # Users file
    "UserSeed",
    "UsersFile",
]

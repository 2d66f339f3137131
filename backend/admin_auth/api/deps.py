"""Shared dependencies for API endpoints.

Bridges HTTP requests to the framework-agnostic AuthGuard:

1. get_request_credentials() extracts the session credential and client
   info from the request
2. get_auth_context() / require_permission() run the guard through
   with_auth() and hand the resulting AuthContext to the endpoint

Credential sources, first match wins:
- the session cookie (AUTH_COOKIE_NAME, default "admin_session")
- Authorization: Bearer <credential>
- X-Auth-Token: <credential>

Security: every authentication failure surfaces as the same generic 401;
the reason (missing, expired, revoked, tampered) is never revealed.
"""

from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import Depends, Request
from slowapi.util import get_remote_address

from admin_auth.services.auth_guard import (
    AuthContext,
    PermissionRequirement,
    RequestCredentials,
    with_auth,
)
from admin_auth.services.container import ServiceContainer

_BEARER_PREFIX = "bearer "
_UNKNOWN_USER_AGENT = "Unknown"


def get_container(request: Request) -> ServiceContainer:
    """Return the ServiceContainer stored on app.state at startup."""
    return request.app.state.container


Container = Annotated[ServiceContainer, Depends(get_container)]


def get_client_ip(request: Request) -> str:
    """Client address used for rate limiting and audit.

    Same key as slowapi's get_remote_address: the socket peer. Behind a
    reverse proxy, FORWARDED_ALLOW_IPS enables ProxyHeadersMiddleware, which
    rewrites the peer from X-Forwarded-For only for trusted proxies.
    """
    return get_remote_address(request)


def get_user_agent(request: Request) -> str:
    return request.headers.get("user-agent") or _UNKNOWN_USER_AGENT


def extract_credential(request: Request, cookie_name: str) -> str | None:
    """Pull the session credential from cookie or headers.

    Args:
        request: Incoming request.
        cookie_name: Name of the session cookie.

    Returns:
        The credential, or None if the request carries none.
    """
    cookie = request.cookies.get(cookie_name)
    if cookie:
        return cookie
    authorization = request.headers.get("authorization", "")
    if authorization.lower().startswith(_BEARER_PREFIX):
        bearer = authorization[len(_BEARER_PREFIX) :].strip()
        if bearer:
            return bearer
    header_token = request.headers.get("x-auth-token", "").strip()
    return header_token or None


def get_request_credentials(
    request: Request,
    container: Container,
) -> RequestCredentials:
    return RequestCredentials(
        credential=extract_credential(request, container.settings.auth_cookie_name),
        ip=get_client_ip(request),
        user_agent=get_user_agent(request),
    )


Credentials = Annotated[RequestCredentials, Depends(get_request_credentials)]


async def _passthrough(context: AuthContext) -> AuthContext:
    return context


async def get_auth_context(
    credentials: Credentials,
    container: Container,
) -> AuthContext:
    """Require an authenticated caller.

    Raises:
        UnauthorizedError: 401 if there is no live session.
    """
    return await with_auth(_passthrough, guard=container.guard)(credentials)


CurrentAuth = Annotated[AuthContext, Depends(get_auth_context)]


def require_permission(
    resource: str,
    action: str,
) -> Callable[[RequestCredentials, ServiceContainer], Awaitable[AuthContext]]:
    """Build a dependency that requires (resource, action).

    Usage:
        @router.get("/users")
        async def list_users(
            auth: Annotated[AuthContext, Depends(require_permission("users", "read"))],
        ): ...

    Raises (from the returned dependency):
        UnauthorizedError: 401 if there is no live session.
        ForbiddenError: 403 if the caller's role lacks the grant.
    """
    requirement = PermissionRequirement(resource=resource, action=action)

    async def dependency(
        credentials: Credentials,
        container: Container,
    ) -> AuthContext:
        guarded = with_auth(_passthrough, requirement, guard=container.guard)
        return await guarded(credentials)

    return dependency

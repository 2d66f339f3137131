"""Request interception for protected operations.

The guard is framework-agnostic: it receives already-extracted request
credentials and a `next_` callable, and either invokes `next_` with an
AuthContext or raises an AuthError without invoking it.

    guard.intercept(credentials, next_, requirement)
        no live session                -> UnauthorizedError (401)
        requirement not granted        -> ForbiddenError (403)
        store failure                  -> InternalError (500)
        otherwise                      -> await next_(AuthContext)

with_auth() packages a handler and an optional requirement into a single
callable over RequestCredentials. The FastAPI dependencies in api.deps
are built on it.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from admin_auth.core.errors import ForbiddenError, InternalError, UnauthorizedError
from admin_auth.core.logging import AuditLogger
from admin_auth.core.types import Permission, Session, User
from admin_auth.repositories.credential_store import StoreError
from admin_auth.services.permission_registry import PermissionRegistry
from admin_auth.services.session_resolver import SessionResolver

T = TypeVar("T")

_SCOPE = "auth-guard"


@dataclass(frozen=True)
class PermissionRequirement:
    """The (resource, action) a protected operation needs."""

    resource: str
    action: str


@dataclass(frozen=True)
class RequestCredentials:
    """What the transport layer extracted from the incoming request.

    Attributes:
        credential: Session credential from cookie or header, if any.
        ip: Client address.
        user_agent: Client user agent.
    """

    credential: str | None
    ip: str = "unknown"
    user_agent: str = "Unknown"


@dataclass(frozen=True)
class AuthContext:
    """Authenticated caller handed to protected handlers."""

    user: User
    session: Session
    permissions: list[Permission]

    def can(self, resource: str, action: str) -> bool:
        return Permission(resource, action) in self.permissions


class AuthGuard:
    """Composes the session resolver and permission registry."""

    def __init__(
        self,
        *,
        resolver: SessionResolver,
        registry: PermissionRegistry,
        audit: AuditLogger,
    ) -> None:
        self._resolver = resolver
        self._registry = registry
        self._audit = audit

    async def authenticate(self, credentials: RequestCredentials) -> AuthContext:
        """Resolve the caller or raise.

        Raises:
            UnauthorizedError: No credential, or it names no live session
                of an active user.
            InternalError: The credential store failed.
        """
        try:
            resolved = await self._resolver.resolve_user(credentials.credential)
        except StoreError as exc:
            self._audit.error(_SCOPE, "Session lookup failed", error=exc, ip=credentials.ip)
            raise InternalError() from exc
        if resolved is None:
            self._audit.debug(_SCOPE, "Unauthenticated request", ip=credentials.ip)
            raise UnauthorizedError()
        user, session = resolved
        return AuthContext(
            user=user,
            session=session,
            permissions=self._registry.get_user_permissions(user),
        )

    def authorize(self, context: AuthContext, requirement: PermissionRequirement) -> None:
        """Raise ForbiddenError unless context's role grants requirement."""
        if not self._registry.evaluate(
            context.user, requirement.resource, requirement.action
        ):
            raise ForbiddenError(
                f"Missing permission: {requirement.resource}:{requirement.action}"
            )

    async def intercept(
        self,
        credentials: RequestCredentials,
        next_: Callable[[AuthContext], Awaitable[T]],
        requirement: PermissionRequirement | None = None,
    ) -> T:
        """Authenticate, optionally authorize, then call next_.

        Args:
            credentials: Extracted request credentials.
            next_: Handler invoked only when every check passes.
            requirement: Permission the handler needs, if any.

        Returns:
            Whatever next_ returns.
        """
        context = await self.authenticate(credentials)
        if requirement is not None:
            self.authorize(context, requirement)
        return await next_(context)

    async def logout(self, session_id: str) -> bool:
        """Revoke a session.

        Raises:
            InternalError: The credential store failed.
        """
        try:
            return await self._resolver.logout(session_id)
        except StoreError as exc:
            self._audit.error(_SCOPE, "Logout failed", error=exc, session_id=session_id)
            raise InternalError() from exc


def with_auth(
    handler: Callable[[AuthContext], Awaitable[T]],
    requirement: PermissionRequirement | None = None,
    *,
    guard: AuthGuard,
) -> Callable[[RequestCredentials], Awaitable[T]]:
    """Wrap handler so it only runs for authenticated, authorized callers.

    Example:
        list_pages = with_auth(
            render_pages, PermissionRequirement("pages", "read"), guard=guard
        )
        await list_pages(RequestCredentials(credential=cookie_value))
    """

    async def guarded(credentials: RequestCredentials) -> T:
        return await guard.intercept(credentials, handler, requirement)

    return guarded

"""Magic link + session endpoints.

Endpoints:
- POST /auth/login: request a magic link email
- GET /auth/verify: redeem a magic link, set the session cookie
- POST /auth/logout: revoke the current session, clear the cookie
- GET /auth/me: current user, session, permissions, resource catalog

Services return AuthResult; a failed result is raised here as AuthError
and rendered by the APIError handler in main.py.
"""

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Query, Request
from starlette.responses import Response

from admin_auth.api.deps import Container, CurrentAuth, get_client_ip, get_user_agent
from admin_auth.core.errors import AuthError, AuthErrorCode
from admin_auth.core.rate_limiting import limiter, verify_rate_limit
from admin_auth.core.responses import DataResponse, MessageResponse
from admin_auth.core.security import clear_session_cookie, set_session_cookie
from admin_auth.schemas.auth import (
    LoginRequest,
    MeData,
    PermissionResponse,
    ResourceResponse,
    SessionResponse,
    UserResponse,
    VerifyData,
)
from admin_auth.services.auth_result import AuthResult

router = APIRouter()


def _raise_for(result: AuthResult) -> None:
    if not result.success:
        raise AuthError(result.error or AuthErrorCode.INTERNAL_ERROR, result.message)


# ===================================================================
# POST /auth/login
# ===================================================================


@router.post("/login")
async def login(
    body: LoginRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    container: Container,
) -> MessageResponse:
    """Request a magic link sign-in email.

    Always answers with the same success message for well-formed addresses
    that are not rate limited, whether or not an account exists.

    Security: the email is sent as a background task so response time is
    consistent regardless of user existence.
    """
    result = await container.issuer.request_magic_link(
        body.email,
        ip=get_client_ip(request),
        user_agent=get_user_agent(request),
        background_tasks=background_tasks,
    )
    _raise_for(result)
    return MessageResponse(message=result.message)


# ===================================================================
# GET /auth/verify
# ===================================================================


@router.get("/verify")
@limiter.limit(verify_rate_limit)
async def verify(
    request: Request,
    response: Response,
    container: Container,
    token: Annotated[str, Query(max_length=256)] = "",
) -> DataResponse[VerifyData]:
    """Redeem a magic link token and start a session.

    The session credential is delivered only as an httpOnly cookie; the
    body carries the user and session metadata.

    Rate limit: verify_rate_limit per client IP.
    """
    result = await container.verifier.verify_magic_link(
        token,
        ip=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    _raise_for(result)

    set_session_cookie(response, result.data["token"], container.settings)
    # Prevent token leakage via Referer header
    response.headers["Referrer-Policy"] = "no-referrer"

    return DataResponse(
        message=result.message,
        data=VerifyData(
            user=UserResponse.from_domain(result.data["user"]),
            session=SessionResponse.from_domain(result.data["session"]),
        ),
    )


# ===================================================================
# POST /auth/logout
# ===================================================================


@router.post("/logout")
async def logout(
    response: Response,
    auth: CurrentAuth,
    container: Container,
) -> MessageResponse:
    """Revoke the caller's session and clear the cookie.

    Cookie attributes must match set_session_cookie() for the browser to
    delete it.
    """
    await container.guard.logout(auth.session.session_id)
    clear_session_cookie(response, container.settings)
    return MessageResponse(message="Signed out successfully.")


# ===================================================================
# GET /auth/me
# ===================================================================


@router.get("/me")
async def get_me(auth: CurrentAuth, container: Container) -> DataResponse[MeData]:
    """Return the current user with their expanded permissions."""
    resources = container.registry.get_available_resources()
    return DataResponse(
        data=MeData(
            user=UserResponse.from_domain(auth.user),
            session=SessionResponse.from_domain(auth.session),
            permissions=[PermissionResponse.from_domain(p) for p in auth.permissions],
            resources={
                key: ResourceResponse(**value) for key, value in resources.items()
            },
        )
    )

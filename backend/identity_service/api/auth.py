"""Authentication API endpoints."""

import logging
import time
from collections import defaultdict
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from identity_service.core import settings
from identity_service.core.request_utils import get_client_ip, get_user_agent
from identity_service.schemas.auth import (
    LoginRequest,
    LoginResponse,
    LogoutAllResponse,
    LogoutRequest,
    LogoutResponse,
    PrincipalResponse,
    ProviderResponse,
    RefreshRequest,
    SessionResponse,
    TokenResponse,
)
from identity_service.services.auth_facade import AuthFacade
from identity_service.services.errors import (
    IdentityProviderError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    InvalidTokenError,
    NotSupportedError,
    TokenExpiredError,
)
from identity_service.services.session_tokens import SessionTokenService
from identity_service.services.strategies import Capability

logger = logging.getLogger(__name__)

# Rate limiting for login attempts
_login_attempts: dict[str, list[float]] = defaultdict(list)
_LOGIN_WINDOW = 60  # 1-minute window


def _check_login_rate_limit(client_ip: str) -> None:
    """Check if a client IP has exceeded the login attempt rate limit."""
    now = time.monotonic()
    attempts = _login_attempts[client_ip]
    _login_attempts[client_ip] = [t for t in attempts if now - t < _LOGIN_WINDOW]
    if len(_login_attempts[client_ip]) >= settings.login_rate_limit_per_minute:
        logger.warning("Login rate limit exceeded for %s", client_ip)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts. Please try again later.",
        )


def _record_login_attempt(client_ip: str) -> None:
    """Record a login attempt for rate limiting."""
    _login_attempts[client_ip].append(time.monotonic())


router = APIRouter(prefix="/auth", tags=["auth"])


def get_auth_facade(request: Request) -> AuthFacade:
    """Dependency to get the auth facade."""
    return request.app.state.auth_facade


def get_session_token_service(request: Request) -> SessionTokenService:
    """Dependency to get the session token service."""
    return request.app.state.session_tokens


async def get_current_user(
    request: Request,
    facade: AuthFacade = Depends(get_auth_facade),
) -> dict[str, Any]:
    """Dependency to get the verified access token claims of the caller."""
    auth_header = request.headers.get("Authorization", "")

    if not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = auth_header[7:]  # Remove "Bearer " prefix

    try:
        return await facade.verify_token(token)
    except TokenExpiredError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
    except InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


def _caller_id(claims: dict[str, Any]) -> int:
    user_id = claims.get("userId")
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token does not identify a local principal",
        )
    return int(user_id)


@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    http_request: Request,
    facade: AuthFacade = Depends(get_auth_facade),
    session_tokens: SessionTokenService = Depends(get_session_token_service),
) -> LoginResponse:
    """Authenticate with the active strategy and open a session.

    Returns an access/refresh pair. Rate limited per client IP.
    """
    client_ip = get_client_ip(http_request) or "unknown"
    _check_login_rate_limit(client_ip)

    try:
        result = await facade.authenticate(request.to_credentials())
    except InvalidCredentialsError as e:
        _record_login_attempt(client_ip)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        ) from e
    except IdentityProviderError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Identity provider unavailable",
        ) from e

    pair = await session_tokens.issue(
        result.principal,
        ip_address=get_client_ip(http_request),
        user_agent=get_user_agent(http_request),
    )
    logger.info(f"User logged in: {result.principal.email} via {result.principal.provider}")
    return LoginResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=pair.expires_in,
        user=PrincipalResponse(
            id=result.principal.id,
            email=result.principal.email,
            display_name=result.principal.display_name,
            role=result.principal.role,
            provider=result.principal.provider,
        ),
    )


@router.post("/refresh", response_model=TokenResponse)
async def refresh_tokens(
    request: RefreshRequest,
    http_request: Request,
    session_tokens: SessionTokenService = Depends(get_session_token_service),
) -> TokenResponse:
    """Rotate a refresh token into a new access/refresh pair.

    The presented refresh token is single-use.
    """
    try:
        pair = await session_tokens.refresh(
            request.refresh_token,
            ip_address=get_client_ip(http_request),
            user_agent=get_user_agent(http_request),
        )
    except InvalidRefreshTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
        ) from e
    return TokenResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=pair.expires_in,
    )


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    request: LogoutRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
    facade: AuthFacade = Depends(get_auth_facade),
    session_tokens: SessionTokenService = Depends(get_session_token_service),
) -> LogoutResponse:
    """Log out the current session.

    Revokes the presented refresh token, if any, and ends the provider
    session when the active strategy supports it.
    """
    revoked = False
    if request.refresh_token:
        revoked = await session_tokens.revoke_presented(
            request.refresh_token, reason="logout", user_id=_caller_id(current_user)
        )

    logout_url = None
    if facade.supports(Capability.LOGOUT):
        try:
            outcome = await facade.logout()
            logout_url = outcome.get("logout_url")
        except NotSupportedError:
            # Mode switched between the capability check and the call
            logout_url = None

    logger.info(f"User logged out: {current_user.get('email')}")
    return LogoutResponse(
        message="Logged out successfully",
        session_revoked=revoked,
        logout_url=logout_url,
    )


@router.post("/logout-all", response_model=LogoutAllResponse)
async def logout_all(
    current_user: dict[str, Any] = Depends(get_current_user),
    session_tokens: SessionTokenService = Depends(get_session_token_service),
) -> LogoutAllResponse:
    """Revoke every session of the current user on every device."""
    count = await session_tokens.revoke_all(_caller_id(current_user), reason="logout_all")
    return LogoutAllResponse(
        message=f"Logged out from {count} device(s)",
        revoked_count=count,
    )


@router.get("/sessions", response_model=list[SessionResponse])
async def list_sessions(
    current_user: dict[str, Any] = Depends(get_current_user),
    session_tokens: SessionTokenService = Depends(get_session_token_service),
) -> list[SessionResponse]:
    """List the current user's active sessions, newest first."""
    sessions = await session_tokens.list_active(_caller_id(current_user))
    return [
        SessionResponse(
            token_id=s.token_id,
            created_at=s.created_at,
            last_used_at=s.last_used_at,
            expires_at=s.expires_at,
            ip_address=s.ip_address,
            user_agent=s.user_agent,
        )
        for s in sessions
    ]


@router.get("/me")
async def get_current_user_info(
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    """Get the current user's verified token claims."""
    return {
        "id": current_user.get("userId"),
        "sub": current_user.get("sub"),
        "email": current_user.get("email"),
        "role": current_user.get("role"),
        "provider": current_user.get("provider"),
        "expires_at": current_user.get("exp"),
    }


@router.get("/provider", response_model=ProviderResponse)
async def get_provider(facade: AuthFacade = Depends(get_auth_facade)) -> ProviderResponse:
    """Report the active authentication provider. Does not require authentication."""
    provider = facade.get_provider_name()
    return ProviderResponse(
        provider=provider,
        mode=facade.last_mode.value if facade.last_mode else None,
        supports_refresh=facade.supports(Capability.REFRESH),
        supports_logout=facade.supports(Capability.LOGOUT),
    )


@router.post("/provider/refresh")
async def refresh_provider_token(
    request: RefreshRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
    facade: AuthFacade = Depends(get_auth_facade),
) -> dict[str, Any]:
    """Exchange a provider refresh token through the active strategy.

    Returns 501 when the active strategy has no refresh capability.
    """
    try:
        return await facade.refresh_token(request.refresh_token)
    except NotSupportedError as e:
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail=str(e),
        ) from e
    except InvalidCredentialsError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Provider refresh token rejected",
        ) from e
    except IdentityProviderError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Identity provider unavailable",
        ) from e

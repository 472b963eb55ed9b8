# Pydantic schemas
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

__all__ = [
    "LoginRequest",
    "LoginResponse",
    "LogoutAllResponse",
    "LogoutRequest",
    "LogoutResponse",
    "PrincipalResponse",
    "ProviderResponse",
    "RefreshRequest",
    "SessionResponse",
    "TokenResponse",
]

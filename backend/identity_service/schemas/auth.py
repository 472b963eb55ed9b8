"""Pydantic schemas for authentication API."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class LoginRequest(BaseModel):
    """First-factor credentials for the active authentication strategy.

    Fixture mode reads ``external_id``, ``email`` or ``role``; external mode
    reads ``code`` (with optional ``redirect_uri``) or ``id_token``.
    """

    email: str | None = Field(None, max_length=255)
    role: str | None = Field(None, max_length=50)
    external_id: str | None = Field(None, max_length=255)
    code: str | None = Field(None, max_length=2048)
    redirect_uri: str | None = Field(None, max_length=2048)
    id_token: str | None = Field(None, max_length=8192)

    @model_validator(mode="after")
    def require_some_credential(self) -> "LoginRequest":
        if not any((self.email, self.role, self.external_id, self.code, self.id_token)):
            raise ValueError("At least one credential field is required")
        return self

    def to_credentials(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class PrincipalResponse(BaseModel):
    """Authenticated principal."""

    id: int
    email: str
    display_name: str
    role: str
    provider: str


class TokenResponse(BaseModel):
    """Response with JWT tokens."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token expiry in seconds")


class LoginResponse(TokenResponse):
    """Session pair plus the principal it was issued for."""

    user: PrincipalResponse


class RefreshRequest(BaseModel):
    """Request for token refresh."""

    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(BaseModel):
    """Request for logout with optional refresh token revocation."""

    refresh_token: str | None = Field(
        None,
        description="Refresh token to revoke. If provided, its session record is revoked.",
    )


class LogoutResponse(BaseModel):
    message: str
    session_revoked: bool = False
    logout_url: str | None = None


class LogoutAllResponse(BaseModel):
    message: str
    revoked_count: int


class SessionResponse(BaseModel):
    """Active session metadata. Never includes the credential or its hash."""

    token_id: UUID
    created_at: datetime
    last_used_at: datetime | None
    expires_at: datetime
    ip_address: str | None
    user_agent: str | None


class ProviderResponse(BaseModel):
    provider: str
    mode: str | None
    supports_refresh: bool
    supports_logout: bool

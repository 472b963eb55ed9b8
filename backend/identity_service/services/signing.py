"""Signing and hashing primitives for session credentials."""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from jwt.exceptions import PyJWTError

from identity_service.core import settings
from identity_service.services.errors import TokenExpiredError, TokenMalformedError
from identity_service.services.principal import Principal

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# Argon2id for refresh-credential hashes.
# Memory: 19 MiB, Time: 2 iterations, Parallelism: 1
token_hasher = PasswordHasher(
    time_cost=2,
    memory_cost=19456,
    parallelism=1,
    hash_len=32,
    salt_len=16,
)


def hash_refresh_token(raw_token: str) -> str:
    """One-way hash of a raw refresh credential (salted, not reversible)."""
    return token_hasher.hash(raw_token)


def verify_refresh_token_hash(raw_token: str, token_hash: str) -> bool:
    """Compare a presented credential with its stored hash in constant time."""
    try:
        return token_hasher.verify(token_hash, raw_token)
    except (VerificationError, InvalidHashError):
        return False


class TokenSigner:
    """Signs and verifies application JWTs with a symmetric secret."""

    def __init__(
        self,
        secret_key: str | None = None,
        algorithm: str | None = None,
        issuer: str | None = None,
        audience: str | None = None,
        access_token_ttl: timedelta | None = None,
        refresh_token_ttl: timedelta | None = None,
    ):
        self._secret_key = secret_key or settings.effective_jwt_secret_key
        self.algorithm = algorithm or settings.jwt_algorithm
        self.issuer = issuer or settings.jwt_issuer
        self.audience = audience or settings.jwt_audience
        self.access_token_ttl = access_token_ttl or timedelta(
            minutes=settings.jwt_access_token_expire_minutes
        )
        self.refresh_token_ttl = refresh_token_ttl or timedelta(
            days=settings.jwt_refresh_token_expire_days
        )

    def _encode(self, payload: dict[str, Any]) -> str:
        token = jwt.encode(payload, self._secret_key, algorithm=self.algorithm)
        # PyJWT 2.x returns str; older type stubs may declare bytes
        return str(token)

    def create_access_token(
        self, principal: Principal, expires_delta: timedelta | None = None
    ) -> str:
        """Create a short-lived access token for a principal."""
        now = datetime.now(UTC)
        payload: dict[str, Any] = {
            "iss": self.issuer,
            "sub": principal.subject,
            "aud": self.audience,
            "email": principal.email,
            "role": principal.role,
            "provider": principal.provider,
            "type": ACCESS_TOKEN_TYPE,
            "iat": now,
            "exp": now + (expires_delta if expires_delta is not None else self.access_token_ttl),
        }
        if principal.id is not None:
            payload["userId"] = principal.id
        return self._encode(payload)

    def create_refresh_token(
        self,
        principal: Principal,
        token_id: UUID,
        expires_delta: timedelta | None = None,
    ) -> str:
        """Create a long-lived refresh token bound to a stored record.

        The principal snapshot travels in the signed payload so rotation can
        mint a new access token without consulting the identity source.
        """
        now = datetime.now(UTC)
        payload: dict[str, Any] = {
            "iss": self.issuer,
            "sub": str(principal.id),
            "userId": principal.id,
            "tokenId": str(token_id),
            "email": principal.email,
            "name": principal.display_name,
            "role": principal.role,
            "provider": principal.provider,
            "type": REFRESH_TOKEN_TYPE,
            "iat": now,
            "exp": now + (expires_delta if expires_delta is not None else self.refresh_token_ttl),
        }
        if principal.external_id:
            payload["externalId"] = principal.external_id
        return self._encode(payload)

    def decode(self, token: str, audience: str | None = None) -> dict[str, Any]:
        """Decode and validate a JWT token."""
        try:
            return jwt.decode(
                token,
                self._secret_key,
                algorithms=[self.algorithm],
                audience=audience,
                issuer=self.issuer,
                options={"require": ["exp", "iat", "type"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except PyJWTError as e:
            raise TokenMalformedError(f"Invalid token: {e}") from e

    def validate_access_token(self, token: str) -> dict[str, Any]:
        """Validate an access token and return its payload."""
        payload = self.decode(token, audience=self.audience)
        if payload.get("type") != ACCESS_TOKEN_TYPE:
            raise TokenMalformedError("Not an access token")
        return payload

    def validate_refresh_token(self, token: str) -> dict[str, Any]:
        """Validate a refresh token and return its payload."""
        payload = self.decode(token)
        if payload.get("type") != REFRESH_TOKEN_TYPE:
            raise TokenMalformedError("Not a refresh token")
        if not payload.get("tokenId") or payload.get("userId") is None:
            raise TokenMalformedError("Refresh token missing tokenId or userId")
        return payload

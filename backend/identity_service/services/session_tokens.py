"""Session credentials: issue, rotate, revoke and sweep refresh/access pairs."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from identity_service.core import async_session_maker, settings
from identity_service.core.logging import get_logger
from identity_service.models import User
from identity_service.models.base import utcnow
from identity_service.services.credential_store import CredentialStore
from identity_service.services.errors import InvalidRefreshTokenError, TokenError
from identity_service.services.principal import Principal
from identity_service.services.signing import (
    TokenSigner,
    hash_refresh_token,
    verify_refresh_token_hash,
)
from identity_service.services.strategies.fixture_users import FIXTURE_PROVIDER

logger = get_logger("session_tokens")


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    token_id: UUID
    expires_in: int
    refresh_expires_at: datetime
    token_type: str = "Bearer"


@dataclass(frozen=True)
class ActiveSession:
    """Metadata of one live refresh credential. Never carries the hash."""

    token_id: UUID
    created_at: datetime
    last_used_at: datetime | None
    expires_at: datetime
    ip_address: str | None
    user_agent: str | None


def _principal_from_claims(claims: dict) -> Principal:
    return Principal(
        id=int(claims["userId"]),
        email=claims.get("email", ""),
        display_name=claims.get("name") or claims.get("email", ""),
        role=claims.get("role", ""),
        provider=claims.get("provider", ""),
        external_id=claims.get("externalId"),
    )


class SessionTokenService:
    """Issues and rotates access/refresh credential pairs.

    Each refresh credential is single-use: a successful ``refresh`` revokes the
    presented record and issues a new one in the same transaction. Every refresh
    failure surfaces as InvalidRefreshTokenError regardless of cause.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
        signer: TokenSigner | None = None,
    ):
        self._session_maker = session_maker or async_session_maker
        self.signer = signer or TokenSigner()

    async def _issue(
        self,
        store: CredentialStore,
        principal: Principal,
        ip_address: str | None,
        user_agent: str | None,
    ) -> TokenPair:
        token_id = uuid.uuid4()
        now = utcnow()
        expires_at = now + self.signer.refresh_token_ttl

        access_token = self.signer.create_access_token(principal)
        refresh_token = self.signer.create_refresh_token(principal, token_id)
        await store.add(
            token_id=token_id,
            user_id=principal.id,
            token_hash=hash_refresh_token(refresh_token),
            expires_at=expires_at,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=now,
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            token_id=token_id,
            expires_in=int(self.signer.access_token_ttl.total_seconds()),
            refresh_expires_at=expires_at,
        )

    async def issue(
        self,
        principal: Principal,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> TokenPair:
        """Create a new session for an authenticated principal."""
        async with self._session_maker() as db:
            async with db.begin():
                pair = await self._issue(CredentialStore(db), principal, ip_address, user_agent)

        logger.info(
            f"Issued session for principal {principal.id}",
            extra={"user_id": principal.id, "token_id": str(pair.token_id), "ip_address": ip_address},
        )
        return pair

    @staticmethod
    async def _current_principal(db: AsyncSession, user_id: int, claims: dict) -> Principal | None:
        """Principal for the next pair, or None if the user may no longer refresh.

        Fixture principals have no user row and are rebuilt from the claims.
        Everyone else is re-read so role changes and deactivation apply at
        the next rotation.
        """
        if claims.get("provider") == FIXTURE_PROVIDER:
            return _principal_from_claims(claims)

        user = await db.get(User, user_id)
        if user is None or not user.is_active:
            return None
        return Principal.from_user(user, provider=claims.get("provider"))

    def _decode_presented(self, presented: str) -> tuple[dict, UUID]:
        try:
            claims = self.signer.validate_refresh_token(presented)
            return claims, UUID(str(claims["tokenId"]))
        except (TokenError, ValueError) as e:
            logger.warning(f"Refresh credential rejected at decode: {type(e).__name__}")
            raise InvalidRefreshTokenError() from e

    async def refresh(
        self,
        presented: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> TokenPair:
        """Rotate a refresh credential into a new pair.

        The claim (stamp last use, revoke as rotated), the hash comparison and
        the new record are one transaction; any failure leaves the presented
        record as it was.
        """
        claims, token_id = self._decode_presented(presented)

        async with self._session_maker() as db:
            async with db.begin():
                store = CredentialStore(db)
                claimed = await store.claim(token_id, reason="rotated")
                if claimed is None:
                    logger.warning(
                        "Refresh credential not found, revoked or expired",
                        extra={"token_id": str(token_id), "ip_address": ip_address},
                    )
                    raise InvalidRefreshTokenError()

                if claimed.user_id != int(claims["userId"]) or not verify_refresh_token_hash(
                    presented, claimed.token_hash
                ):
                    logger.error(
                        "Refresh credential hash mismatch",
                        extra={"token_id": str(token_id), "ip_address": ip_address},
                    )
                    raise InvalidRefreshTokenError()

                principal = await self._current_principal(db, claimed.user_id, claims)
                if principal is None:
                    logger.warning(
                        "Refresh credential belongs to a missing or inactive user",
                        extra={"user_id": claimed.user_id, "token_id": str(token_id)},
                    )
                    raise InvalidRefreshTokenError()

                pair = await self._issue(store, principal, ip_address, user_agent)

        logger.info(
            f"Rotated session {token_id} -> {pair.token_id}",
            extra={"user_id": claimed.user_id, "token_id": str(token_id), "ip_address": ip_address},
        )
        return pair

    async def revoke(self, token_id: UUID, reason: str = "logout") -> bool:
        """Revoke one session. Returns False if it was unknown or already revoked."""
        async with self._session_maker() as db:
            async with db.begin():
                revoked = await CredentialStore(db).revoke(token_id, reason)

        if revoked:
            logger.info(
                f"Revoked session {token_id}",
                extra={"token_id": str(token_id), "reason": reason},
            )
        return revoked

    async def revoke_presented(
        self,
        presented: str,
        reason: str = "logout",
        user_id: int | None = None,
    ) -> bool:
        """Revoke the record behind a raw refresh credential.

        Only the signature is checked; a credential that does not decode
        revokes nothing and returns False. When ``user_id`` is given, a
        credential issued to anyone else is left alone.
        """
        try:
            claims, token_id = self._decode_presented(presented)
        except InvalidRefreshTokenError:
            return False

        if user_id is not None and claims.get("userId") != user_id:
            logger.warning(
                "Refusing to revoke a session owned by another principal",
                extra={"user_id": user_id, "token_id": str(token_id)},
            )
            return False
        return await self.revoke(token_id, reason)

    async def revoke_all(self, user_id: int, reason: str = "logout_all") -> int:
        """Revoke every active session of a principal."""
        async with self._session_maker() as db:
            async with db.begin():
                count = await CredentialStore(db).revoke_all(user_id, reason)

        logger.info(
            f"Revoked {count} sessions for principal {user_id}",
            extra={"user_id": user_id, "reason": reason, "count": count},
        )
        return count

    async def list_active(self, user_id: int) -> list[ActiveSession]:
        """Active sessions of a principal, newest first."""
        async with self._session_maker() as db:
            records = await CredentialStore(db).list_active(user_id)
            return [
                ActiveSession(
                    token_id=record.token_id,
                    created_at=record.created_at,
                    last_used_at=record.last_used_at,
                    expires_at=record.expires_at,
                    ip_address=record.ip_address,
                    user_agent=record.user_agent,
                )
                for record in records
            ]

    async def sweep(self, retention_days: int | None = None) -> int:
        """Delete records expired or revoked more than ``retention_days`` ago."""
        days = retention_days if retention_days is not None else settings.refresh_token_retention_days
        async with self._session_maker() as db:
            async with db.begin():
                deleted = await CredentialStore(db).delete_stale(timedelta(days=days))

        if deleted > 0:
            logger.info(
                f"Swept {deleted} refresh token records older than {days} days",
                extra={"count": deleted},
            )
        return deleted

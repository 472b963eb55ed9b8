"""Persistence for refresh-credential records."""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from identity_service.models import RefreshToken
from identity_service.models.base import utcnow


@dataclass(frozen=True)
class ClaimedRecord:
    """Columns returned by a successful claim."""

    token_id: UUID
    user_id: int
    token_hash: str


class CredentialStore:
    """Reads and writes ``refresh_tokens`` rows inside the caller's session.

    The store never commits; the caller owns the transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(
        self,
        token_id: UUID,
        user_id: int,
        token_hash: str,
        expires_at: datetime,
        ip_address: str | None = None,
        user_agent: str | None = None,
        created_at: datetime | None = None,
    ) -> RefreshToken:
        record = RefreshToken(
            token_id=token_id,
            user_id=user_id,
            token_hash=token_hash,
            created_at=created_at or utcnow(),
            expires_at=expires_at,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.db.add(record)
        await self.db.flush()
        return record

    async def get(self, token_id: UUID) -> RefreshToken | None:
        result = await self.db.execute(select(RefreshToken).where(RefreshToken.token_id == token_id))
        return result.scalar_one_or_none()

    async def claim(self, token_id: UUID, reason: str = "rotated") -> ClaimedRecord | None:
        """Stamp and revoke an active record in one conditional update.

        Returns None when the record is unknown, already revoked or expired.
        Under concurrent claims of the same record at most one caller gets a
        row back.
        """
        now = utcnow()
        stmt = (
            update(RefreshToken)
            .where(
                RefreshToken.token_id == token_id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > now,
            )
            .values(last_used_at=now, revoked_at=now, revoked_reason=reason)
            .returning(RefreshToken.token_id, RefreshToken.user_id, RefreshToken.token_hash)
            .execution_options(synchronize_session=False)
        )
        row = (await self.db.execute(stmt)).first()
        if row is None:
            return None
        return ClaimedRecord(token_id=row.token_id, user_id=row.user_id, token_hash=row.token_hash)

    async def revoke(self, token_id: UUID, reason: str) -> bool:
        """Revoke one record; False if it was unknown or already revoked."""
        result = await self.db.execute(
            update(RefreshToken)
            .where(RefreshToken.token_id == token_id, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=utcnow(), revoked_reason=reason)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def revoke_all(self, user_id: int, reason: str) -> int:
        """Revoke every unrevoked, unexpired record of a user."""
        now = utcnow()
        result = await self.db.execute(
            update(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > now,
            )
            .values(revoked_at=now, revoked_reason=reason)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def list_active(self, user_id: int) -> Sequence[RefreshToken]:
        now = utcnow()
        result = await self.db.execute(
            select(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > now,
            )
            .order_by(RefreshToken.created_at.desc())
        )
        return result.scalars().all()

    async def delete_stale(self, retention: timedelta) -> int:
        """Delete records expired or revoked longer ago than ``retention``."""
        cutoff = utcnow() - retention
        result = await self.db.execute(
            delete(RefreshToken)
            .where(or_(RefreshToken.expires_at < cutoff, RefreshToken.revoked_at < cutoff))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

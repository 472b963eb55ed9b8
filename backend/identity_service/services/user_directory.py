"""Local principal directory used by the external identity strategy."""

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from identity_service.core import async_session_maker, settings
from identity_service.core.logging import get_logger
from identity_service.models.user import User
from identity_service.services.errors import InvalidCredentialsError

logger = get_logger("user_directory")


@dataclass(frozen=True)
class RemoteProfile:
    """Profile returned by the identity-exchange call."""

    remote_subject_id: str
    email: str
    email_verified: bool = False
    given_name: str | None = None
    family_name: str | None = None


class UserDirectory:
    """Finds, links and creates local principals for remote identities.

    Linking order:
    1. by remote subject id
    2. by email, rewriting the stored subject id (the provider-side login
       connection changed, e.g. password -> social login)
    3. create a new principal with the default role

    Step 2 assumes the provider only hands out emails the user controls. It is
    a heuristic, not a cryptographic identity guarantee; unverified emails are
    never used for linking.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
        default_role: str | None = None,
    ):
        self._session_maker = session_maker or async_session_maker
        self._default_role = default_role or settings.auth0_default_role

    @staticmethod
    async def _by_external_id(db: AsyncSession, external_id: str) -> User | None:
        result = await db.execute(select(User).where(User.external_id == external_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def _by_email(db: AsyncSession, email: str) -> User | None:
        result = await db.execute(select(User).where(User.email == email.strip().lower()))
        return result.scalar_one_or_none()

    async def find_by_external_id(self, external_id: str) -> User | None:
        async with self._session_maker() as db:
            return await self._by_external_id(db, external_id)

    async def find_by_email(self, email: str) -> User | None:
        async with self._session_maker() as db:
            return await self._by_email(db, email)

    async def find_or_create(self, profile: RemoteProfile, provider: str) -> User:
        """Resolve a remote profile to exactly one local principal."""
        async with self._session_maker() as db:
            user = await self._by_external_id(db, profile.remote_subject_id)
            if user is not None:
                return user

            if profile.email_verified:
                user = await self._by_email(db, profile.email)
                if user is not None and user.is_active:
                    previous = user.external_id
                    user.external_id = profile.remote_subject_id
                    user.provider = provider
                    await db.commit()
                    logger.warning(
                        f"Linked principal {user.id} to a new remote subject by email "
                        f"(previous subject: {previous or 'none'})",
                        extra={"user_id": user.id, "provider": provider},
                    )
                    return user

            user = User(
                email=profile.email.strip().lower(),
                first_name=profile.given_name or "",
                last_name=profile.family_name or "",
                role=self._default_role,
                external_id=profile.remote_subject_id,
                provider=provider,
            )
            db.add(user)
            try:
                await db.commit()
            except IntegrityError:
                # A concurrent login created the same principal first
                await db.rollback()
                existing = await self._by_external_id(db, profile.remote_subject_id)
                if existing is None:
                    raise InvalidCredentialsError(
                        "Email is already linked to a different identity"
                    ) from None
                return existing

            await db.refresh(user)
            logger.info(
                f"Created principal {user.id} for {user.email}",
                extra={"user_id": user.id, "provider": provider},
            )
            return user

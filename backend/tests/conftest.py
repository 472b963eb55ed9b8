"""Pytest configuration and fixtures for identity service tests.

Database Handling:
- By default each test gets a fresh SQLite file database under tmp_path
- Set TEST_DATABASE_URL to run against PostgreSQL instead
"""

import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Set test environment variables before importing app modules
TEST_JWT_SECRET = "test-signing-secret-0123456789abcdef0123456789"
os.environ["ENVIRONMENT"] = "test"
os.environ["JWT_SECRET_KEY"] = TEST_JWT_SECRET
os.environ.setdefault("AUTH_MODE", "development")
os.environ["DATABASE_URL"] = os.environ.get(
    "TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:"
)
os.environ["AUTH0_DOMAIN"] = "tenant.example.com"
os.environ["AUTH0_CLIENT_ID"] = "test-client-id"
os.environ["AUTH0_CLIENT_SECRET"] = "test-client-secret"


class ModeHolder:
    """Mutable mode source for hot-swap tests."""

    def __init__(self, value: str | None = "development"):
        self.value = value

    def __call__(self) -> str | None:
        return self.value


# --- Database Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    """Create a database engine with a fresh schema for one test."""
    import identity_service.models  # noqa: F401
    from identity_service.core.database import Base

    url = os.environ.get("TEST_DATABASE_URL") or (
        f"sqlite+aiosqlite:///{tmp_path / 'identity_test.db'}"
    )
    connect_args = {"timeout": 30} if url.startswith("sqlite") else {}
    engine = create_async_engine(url, poolclass=NullPool, connect_args=connect_args)

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables after test
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_maker(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async with session_maker() as session:
        yield session
        await session.rollback()


# --- Service Fixtures ---


@pytest.fixture
def signer():
    from identity_service.services.signing import TokenSigner

    return TokenSigner(secret_key=TEST_JWT_SECRET)


@pytest.fixture
def session_tokens(session_maker, signer):
    from identity_service.services.session_tokens import SessionTokenService

    return SessionTokenService(session_maker=session_maker, signer=signer)


@pytest.fixture
def user_directory(session_maker):
    from identity_service.services.user_directory import UserDirectory

    return UserDirectory(session_maker=session_maker, default_role="client")


@pytest.fixture
def mode_holder() -> ModeHolder:
    return ModeHolder("development")


@pytest.fixture
def auth_facade(mode_holder, signer, user_directory):
    from identity_service.services.auth_facade import AuthFacade
    from identity_service.services.strategies import ExternalIdentityStrategy, FixtureStrategy
    from identity_service.services.strategy_selector import AuthMode, StrategySelector

    def factory(mode: AuthMode):
        if mode is AuthMode.EXTERNAL:
            return ExternalIdentityStrategy(signer=signer, directory=user_directory)
        return FixtureStrategy(signer=signer)

    return AuthFacade(StrategySelector(mode_source=mode_holder, factory=factory))


@pytest.fixture
def principal_factory():
    """Factory for Principal value objects."""
    from identity_service.services.principal import Principal

    def _create_principal(
        id: int = 7,
        email: str = "tech@example.com",
        role: str = "technician",
        provider: str = "development",
        **kwargs,
    ) -> Principal:
        return Principal(
            id=id,
            email=email,
            display_name=kwargs.pop("display_name", "Test Technician"),
            role=role,
            provider=provider,
            **kwargs,
        )

    return _create_principal


@pytest.fixture
def user_factory(db_session):
    """Factory for persisted User rows."""
    from identity_service.models import User

    async def _create_user(
        email: str = "pat@example.com",
        external_id: str | None = "auth0|pat",
        role: str = "client",
        **kwargs,
    ) -> User:
        user = User(
            email=email,
            first_name=kwargs.pop("first_name", "Pat"),
            last_name=kwargs.pop("last_name", "Doe"),
            role=role,
            external_id=external_id,
            provider=kwargs.pop("provider", "auth0"),
            **kwargs,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _create_user


# --- HTTP Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def async_client(auth_facade, session_tokens) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client wired to the test services."""
    from identity_service.api.auth import _login_attempts
    from identity_service.main import create_app

    app = create_app(auth_facade=auth_facade, session_tokens=session_tokens)
    _login_attempts.clear()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    _login_attempts.clear()

"""Identity Service - FastAPI Application Factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from identity_service.api import auth_router, health_router
from identity_service.core import init_db, settings, setup_logging
from identity_service.core.logging import get_logger
from identity_service.services.auth_facade import AuthFacade
from identity_service.services.session_tokens import SessionTokenService
from identity_service.services.token_retention import TokenRetentionService

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    setup_logging(
        level=settings.log_level,
        format_type="structured" if settings.environment == "production" else "dev",
    )
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    for warning in settings.check_security_configuration():
        logger.warning(f"SECURITY: {warning}")

    if settings.is_sqlite:
        await init_db()

    # Resolve once so the active mode is logged at startup
    logger.info(f"Active authentication provider: {app.state.auth_facade.get_provider_name()}")

    retention = TokenRetentionService(session_tokens=app.state.session_tokens)
    await retention.start()

    yield

    # Shutdown
    logger.info("Shutting down...")
    await retention.stop()


def create_app(
    auth_facade: AuthFacade | None = None,
    session_tokens: SessionTokenService | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Identity and session-credential service",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    app.state.auth_facade = auth_facade or AuthFacade()
    app.state.session_tokens = session_tokens or SessionTokenService()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "Accept",
            "X-Request-ID",
        ],
    )

    # Include routers
    app.include_router(health_router)  # Health at root level
    app.include_router(auth_router)  # Auth at /auth

    return app


# Application instance
app = create_app()

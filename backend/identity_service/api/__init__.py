# API routers
from identity_service.api.auth import router as auth_router
from identity_service.api.health import router as health_router

__all__ = ["auth_router", "health_router"]

# Identity Service Models
from identity_service.models.base import BaseModel
from identity_service.models.refresh_token import RefreshToken
from identity_service.models.user import User

__all__ = [
    "BaseModel",
    "RefreshToken",
    "User",
]

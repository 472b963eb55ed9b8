"""Authentication strategy contract."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar

from identity_service.services.errors import NotSupportedError, ProviderMismatchError
from identity_service.services.principal import Principal
from identity_service.services.signing import TokenSigner


class Capability(str, Enum):
    """Optional operations a strategy may provide."""

    REFRESH = "refresh"
    LOGOUT = "logout"


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a successful first-factor authentication."""

    access_token: str
    principal: Principal
    provider_tokens: dict[str, Any] | None = None


class AuthStrategy(ABC):
    """Pluggable first-factor verification against one identity source.

    Subclasses declare optional operations in ``capabilities``; callers check
    ``supports()`` before invoking ``refresh_token`` or ``logout``. The base
    implementations of those two raise NotSupportedError.
    """

    capabilities: ClassVar[frozenset[Capability]] = frozenset()

    def __init__(self, signer: TokenSigner | None = None):
        self.signer = signer or TokenSigner()

    @abstractmethod
    def get_provider_name(self) -> str:
        """Stable discriminator embedded in every token this strategy issues."""

    @abstractmethod
    async def authenticate(self, credentials: dict[str, Any]) -> AuthResult:
        """Verify first-factor credentials and issue an access token."""

    @abstractmethod
    async def get_user_profile(self, identifier: str) -> Principal:
        """Look up the principal behind an identifier."""

    async def verify_token(self, token: str) -> dict[str, Any]:
        """Verify an access token issued by this strategy and return its claims.

        Raises:
            TokenMalformedError: bad signature, shape or token type
            TokenExpiredError: past expiry
            ProviderMismatchError: issued by a different strategy
        """
        claims = self.signer.validate_access_token(token)
        provider = claims.get("provider")
        if provider != self.get_provider_name():
            raise ProviderMismatchError(self.get_provider_name(), provider)
        return claims

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    async def refresh_token(self, refresh_token: str) -> dict[str, Any]:
        raise NotSupportedError(f"{self.get_provider_name()} does not support token refresh")

    async def logout(self, token: str | None = None) -> dict[str, Any]:
        raise NotSupportedError(f"{self.get_provider_name()} does not support logout")

    def issue_access_token(self, principal: Principal) -> str:
        return self.signer.create_access_token(principal)

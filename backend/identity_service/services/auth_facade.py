"""Single entry point for first-factor authentication."""

from typing import Any

from identity_service.services.errors import NotSupportedError
from identity_service.services.principal import Principal
from identity_service.services.strategies import AuthResult, AuthStrategy, Capability
from identity_service.services.strategy_selector import AuthMode, StrategySelector


class AuthFacade:
    """Forwards every call to the strategy that is active right now.

    Holds no authentication state of its own; ``last_mode`` only records the
    mode seen on the most recent call, for diagnostics.
    """

    def __init__(self, selector: StrategySelector | None = None):
        self.selector = selector or StrategySelector()
        self.last_mode: AuthMode | None = None

    def _strategy(self) -> AuthStrategy:
        strategy = self.selector.resolve()
        self.last_mode = self.selector.current_mode
        return strategy

    async def authenticate(self, credentials: dict[str, Any]) -> AuthResult:
        return await self._strategy().authenticate(credentials)

    async def verify_token(self, token: str) -> dict[str, Any]:
        return await self._strategy().verify_token(token)

    async def get_user_profile(self, identifier: str) -> Principal:
        return await self._strategy().get_user_profile(identifier)

    def get_provider_name(self) -> str:
        return self._strategy().get_provider_name()

    def supports(self, capability: Capability) -> bool:
        return self._strategy().supports(capability)

    async def refresh_token(self, refresh_token: str) -> dict[str, Any]:
        strategy = self._strategy()
        if not strategy.supports(Capability.REFRESH):
            raise NotSupportedError(
                f"{strategy.get_provider_name()} does not support token refresh"
            )
        return await strategy.refresh_token(refresh_token)

    async def logout(self, token: str | None = None) -> dict[str, Any]:
        strategy = self._strategy()
        if not strategy.supports(Capability.LOGOUT):
            raise NotSupportedError(f"{strategy.get_provider_name()} does not support logout")
        return await strategy.logout(token)

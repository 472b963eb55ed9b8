"""Selects the active authentication strategy from the configured mode."""

import os
import threading
from collections.abc import Callable
from enum import Enum

from identity_service.core import settings
from identity_service.core.logging import get_logger
from identity_service.services.signing import TokenSigner
from identity_service.services.strategies import (
    AuthStrategy,
    ExternalIdentityStrategy,
    FixtureStrategy,
)

logger = get_logger("strategy_selector")


class AuthMode(str, Enum):
    FIXTURE = "fixture"
    EXTERNAL = "external"


MODE_ALIASES: dict[str, AuthMode] = {
    "development": AuthMode.FIXTURE,
    "dev": AuthMode.FIXTURE,
    "local": AuthMode.FIXTURE,
    "production": AuthMode.EXTERNAL,
    "prod": AuthMode.EXTERNAL,
    "auth0": AuthMode.EXTERNAL,
}


def normalize_mode(raw: str | None) -> AuthMode:
    """Map a raw mode string to a mode (case-insensitive, whitespace stripped).

    Unset or empty selects fixture mode. Unrecognized values also select
    fixture mode, with a warning.
    """
    if raw is None or not raw.strip():
        return AuthMode.FIXTURE
    mode = MODE_ALIASES.get(raw.strip().lower())
    if mode is None:
        logger.warning(
            f"Unrecognized AUTH_MODE '{raw}', falling back to fixture authentication",
            extra={"auth_mode": raw},
        )
        return AuthMode.FIXTURE
    return mode


def _default_mode_source() -> str | None:
    return os.getenv("AUTH_MODE", settings.auth_mode)


StrategyFactory = Callable[[AuthMode], AuthStrategy]


class StrategySelector:
    """Resolves the strategy for the current mode, re-reading it on every call.

    The last raw mode string and the strategy built for it are cached, so an
    unchanged mode returns the same instance without logging. A changed mode
    builds a new strategy and logs a single transition.
    """

    def __init__(
        self,
        mode_source: Callable[[], str | None] | None = None,
        factory: StrategyFactory | None = None,
        signer: TokenSigner | None = None,
    ):
        self._mode_source = mode_source or _default_mode_source
        self._factory = factory or self._build
        self._signer = signer
        self._lock = threading.Lock()
        self._raw_mode: str | None = None
        self._mode: AuthMode | None = None
        self._strategy: AuthStrategy | None = None

    def _build(self, mode: AuthMode) -> AuthStrategy:
        if mode is AuthMode.EXTERNAL:
            return ExternalIdentityStrategy(signer=self._signer)
        return FixtureStrategy(signer=self._signer)

    def resolve(self) -> AuthStrategy:
        raw = self._mode_source()
        with self._lock:
            if self._strategy is not None and raw == self._raw_mode:
                return self._strategy

            mode = normalize_mode(raw)
            if self._strategy is not None and mode is self._mode:
                # Different spelling of the same mode, e.g. "dev" -> "local"
                self._raw_mode = raw
                return self._strategy

            previous = self._mode
            strategy = self._factory(mode)
            self._raw_mode = raw
            self._mode = mode
            self._strategy = strategy

        logger.info(
            f"Authentication mode {previous.value if previous else 'unset'} -> {mode.value} "
            f"(provider: {strategy.get_provider_name()})",
            extra={"auth_mode": mode.value, "provider": strategy.get_provider_name()},
        )
        return strategy

    @property
    def current_mode(self) -> AuthMode | None:
        """Mode of the cached strategy, or None before the first resolution."""
        return self._mode

    def reset(self) -> None:
        """Drop the cached strategy; the next resolve() rebuilds it."""
        with self._lock:
            self._raw_mode = None
            self._mode = None
            self._strategy = None

"""Fixture-backed authentication for local development and tests."""

from collections.abc import Iterable
from typing import Any

from identity_service.core.logging import get_logger
from identity_service.services.errors import InvalidCredentialsError, PrincipalNotFoundError
from identity_service.services.principal import Principal
from identity_service.services.signing import TokenSigner
from identity_service.services.strategies.base import AuthResult, AuthStrategy, Capability
from identity_service.services.strategies.fixture_users import (
    FIXTURE_PRINCIPALS,
    FIXTURE_PROVIDER,
)

logger = get_logger("strategies.fixture")


class FixtureStrategy(AuthStrategy):
    """Authenticates against a closed table of named principals.

    Credentials may name a principal by external id, email or role; the first
    of those that matches wins, in that order.
    """

    capabilities = frozenset({Capability.LOGOUT})

    def __init__(
        self,
        signer: TokenSigner | None = None,
        principals: Iterable[Principal] = FIXTURE_PRINCIPALS,
    ):
        super().__init__(signer)
        self._principals = tuple(principals)
        self._by_external_id = {p.external_id: p for p in self._principals if p.external_id}
        self._by_email = {p.email.lower(): p for p in self._principals}
        self._by_role: dict[str, Principal] = {}
        for principal in self._principals:
            # First principal per role is the canonical one
            self._by_role.setdefault(principal.role, principal)

    def get_provider_name(self) -> str:
        return FIXTURE_PROVIDER

    def _lookup(self, credentials: dict[str, Any]) -> Principal | None:
        external_id = credentials.get("external_id") or credentials.get("auth0_id")
        if external_id and external_id in self._by_external_id:
            return self._by_external_id[external_id]

        email = credentials.get("email")
        if email and email.strip().lower() in self._by_email:
            return self._by_email[email.strip().lower()]

        role = credentials.get("role")
        if role and role in self._by_role:
            return self._by_role[role]

        return None

    async def authenticate(self, credentials: dict[str, Any]) -> AuthResult:
        principal = self._lookup(credentials)
        if principal is None:
            logger.warning("Fixture authentication failed: no matching principal")
            raise InvalidCredentialsError("No development principal matches the credentials")

        access_token = self.issue_access_token(principal)
        logger.info(
            f"Fixture authentication succeeded for {principal.email} ({principal.role})",
            extra={"user_id": principal.id, "provider": FIXTURE_PROVIDER},
        )
        return AuthResult(access_token=access_token, principal=principal)

    async def get_user_profile(self, identifier: str) -> Principal:
        principal = self._by_external_id.get(identifier) or self._by_email.get(
            identifier.strip().lower()
        )
        if principal is None:
            raise PrincipalNotFoundError(f"Development principal not found: {identifier}")
        return principal

    async def logout(self, token: str | None = None) -> dict[str, Any]:
        # Fixture sessions hold no provider-side state
        return {"success": True, "message": "Development session ended"}

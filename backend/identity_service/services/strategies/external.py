"""External identity provider strategy (OIDC, Auth0-shaped endpoints).

Supports two first-factor flows:
- authorization code: exchange ``code`` at ``/oauth/token`` and read ``/userinfo``
- ID token (PKCE in the frontend): verify ``id_token`` against the provider JWKS

Either way the remote profile is mapped to a local principal through the
UserDirectory, and an application access token is issued for it.
"""

import asyncio
from typing import Any
from urllib.parse import urlencode

import httpx
import jwt
from jwt import PyJWKClient
from jwt.exceptions import PyJWKClientError, PyJWTError

from identity_service.core import settings
from identity_service.core.logging import get_logger
from identity_service.services.errors import (
    IdentityProviderError,
    InvalidCredentialsError,
    PrincipalNotFoundError,
    TokenExpiredError,
    TokenMalformedError,
)
from identity_service.services.principal import Principal
from identity_service.services.signing import TokenSigner
from identity_service.services.strategies.base import AuthResult, AuthStrategy, Capability
from identity_service.services.user_directory import RemoteProfile, UserDirectory

logger = get_logger("strategies.external")

EXTERNAL_PROVIDER = "auth0"

# User-Agent for identity-exchange requests
IDENTITY_USER_AGENT = "IdentityService/1.0.0"

# Status codes that mean the presented grant was rejected, not that the provider failed
_REJECTED_GRANT_STATUSES = (400, 401, 403)


def _get_http_client() -> httpx.AsyncClient:
    """Create an httpx client for identity-exchange requests."""
    return httpx.AsyncClient(
        timeout=settings.http_timeout,
        headers={"User-Agent": IDENTITY_USER_AGENT},
    )


def map_remote_profile(info: dict[str, Any]) -> RemoteProfile:
    """Validate and map a provider profile (userinfo or ID token claims)."""
    sub = info.get("sub")
    email = info.get("email")
    if not isinstance(sub, str) or not sub:
        raise IdentityProviderError("Identity provider profile is missing a subject id")
    if not isinstance(email, str) or "@" not in email:
        raise IdentityProviderError("Identity provider profile is missing a valid email")

    given_name = info.get("given_name") or None
    family_name = info.get("family_name") or None
    name = info.get("name")
    if not given_name and isinstance(name, str) and name.strip():
        parts = name.split()
        given_name = parts[0]
        family_name = " ".join(parts[1:]) or None

    return RemoteProfile(
        remote_subject_id=sub,
        email=email.strip().lower(),
        email_verified=info.get("email_verified") is True,
        given_name=given_name,
        family_name=family_name,
    )


class ExternalIdentityStrategy(AuthStrategy):
    """Authenticates through an external OIDC identity provider."""

    capabilities = frozenset({Capability.REFRESH, Capability.LOGOUT})

    def __init__(
        self,
        signer: TokenSigner | None = None,
        directory: UserDirectory | None = None,
        domain: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        callback_url: str | None = None,
        logout_return_url: str | None = None,
        jwks_client: PyJWKClient | None = None,
    ):
        super().__init__(signer)
        self.directory = directory or UserDirectory()
        self.domain = domain if domain is not None else settings.auth0_domain
        self.client_id = client_id if client_id is not None else settings.auth0_client_id
        self.client_secret = (
            client_secret if client_secret is not None else settings.auth0_client_secret
        )
        self.callback_url = callback_url or settings.auth0_callback_url
        self.logout_return_url = logout_return_url or settings.auth0_logout_return_url
        self._jwks_client = jwks_client

    def get_provider_name(self) -> str:
        return EXTERNAL_PROVIDER

    @property
    def base_url(self) -> str:
        return f"https://{self.domain}"

    @property
    def jwks_client(self) -> PyJWKClient:
        if self._jwks_client is None:
            self._jwks_client = PyJWKClient(f"{self.base_url}/.well-known/jwks.json")
        return self._jwks_client

    # --- Identity exchange ---

    async def _post_token_endpoint(self, data: dict[str, Any]) -> dict[str, Any]:
        payload = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            **data,
        }
        try:
            async with _get_http_client() as client:
                response = await client.post(f"{self.base_url}/oauth/token", json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Token endpoint request failed: {e}")
            raise IdentityProviderError(f"Identity provider unreachable: {e}") from e

        if response.status_code in _REJECTED_GRANT_STATUSES:
            logger.warning(f"Identity provider rejected {data.get('grant_type')} grant")
            raise InvalidCredentialsError("Identity provider rejected the grant")
        if response.status_code >= 400:
            raise IdentityProviderError(
                f"Token endpoint returned HTTP {response.status_code}"
            )
        return response.json()

    async def _fetch_userinfo(self, provider_access_token: str) -> dict[str, Any]:
        try:
            async with _get_http_client() as client:
                response = await client.get(
                    f"{self.base_url}/userinfo",
                    headers={"Authorization": f"Bearer {provider_access_token}"},
                )
        except httpx.HTTPError as e:
            logger.error(f"Userinfo request failed: {e}")
            raise IdentityProviderError(f"Identity provider unreachable: {e}") from e

        if response.status_code in (401, 403):
            raise InvalidCredentialsError("Identity provider rejected the access token")
        if response.status_code >= 400:
            raise IdentityProviderError(f"Userinfo returned HTTP {response.status_code}")
        return response.json()

    def verify_id_token(self, id_token: str) -> dict[str, Any]:
        """Verify a provider-issued RS256 ID token against the JWKS."""
        try:
            signing_key = self.jwks_client.get_signing_key_from_jwt(id_token)
            return jwt.decode(
                id_token,
                signing_key.key,
                algorithms=["RS256"],
                audience=self.client_id,
                issuer=f"{self.base_url}/",
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError("ID token has expired") from e
        except (PyJWKClientError, PyJWTError) as e:
            raise TokenMalformedError(f"Invalid ID token: {e}") from e

    # --- Strategy contract ---

    async def authenticate(self, credentials: dict[str, Any]) -> AuthResult:
        provider_tokens: dict[str, Any] | None = None

        if credentials.get("id_token"):
            try:
                claims = await asyncio.to_thread(self.verify_id_token, credentials["id_token"])
            except (TokenExpiredError, TokenMalformedError) as e:
                logger.warning(f"ID token rejected: {e}")
                raise InvalidCredentialsError("Invalid ID token") from e
            profile = map_remote_profile(claims)
        elif credentials.get("code"):
            tokens = await self._post_token_endpoint(
                {
                    "grant_type": "authorization_code",
                    "code": credentials["code"],
                    "redirect_uri": credentials.get("redirect_uri") or self.callback_url,
                }
            )
            if not tokens.get("access_token"):
                raise IdentityProviderError("Token endpoint response has no access_token")
            profile = map_remote_profile(await self._fetch_userinfo(tokens["access_token"]))
            provider_tokens = {
                "access_token": tokens["access_token"],
                "refresh_token": tokens.get("refresh_token"),
                "id_token": tokens.get("id_token"),
                "expires_in": tokens.get("expires_in"),
            }
        else:
            raise InvalidCredentialsError("Authorization code or ID token is required")

        user = await self.directory.find_or_create(profile, self.get_provider_name())
        if not user.is_active:
            logger.warning(
                f"Deactivated principal {user.id} attempted to authenticate",
                extra={"user_id": user.id, "provider": EXTERNAL_PROVIDER},
            )
            raise InvalidCredentialsError("Account has been deactivated")

        principal = Principal.from_user(user, provider=self.get_provider_name())
        access_token = self.issue_access_token(principal)
        logger.info(
            f"External authentication succeeded for {principal.email}",
            extra={"user_id": principal.id, "provider": EXTERNAL_PROVIDER},
        )
        return AuthResult(
            access_token=access_token,
            principal=principal,
            provider_tokens=provider_tokens,
        )

    async def get_user_profile(self, identifier: str) -> Principal:
        """Resolve a provider access token to its linked local principal."""
        try:
            profile = map_remote_profile(await self._fetch_userinfo(identifier))
        except InvalidCredentialsError as e:
            raise PrincipalNotFoundError("Identity provider does not recognize the token") from e

        user = await self.directory.find_by_external_id(profile.remote_subject_id)
        if user is None:
            raise PrincipalNotFoundError(
                f"No local principal linked to subject {profile.remote_subject_id}"
            )
        return Principal.from_user(user, provider=self.get_provider_name())

    async def refresh_token(self, refresh_token: str) -> dict[str, Any]:
        """Exchange a provider refresh token for a new provider access token."""
        tokens = await self._post_token_endpoint(
            {"grant_type": "refresh_token", "refresh_token": refresh_token}
        )
        logger.info("Provider token refreshed", extra={"provider": EXTERNAL_PROVIDER})
        return {
            "access_token": tokens.get("access_token"),
            "expires_in": tokens.get("expires_in"),
            "id_token": tokens.get("id_token"),
        }

    async def logout(self, token: str | None = None) -> dict[str, Any]:
        """Return the provider logout URL the client must visit."""
        query = urlencode({"client_id": self.client_id, "returnTo": self.logout_return_url})
        return {
            "success": True,
            "logout_url": f"{self.base_url}/v2/logout?{query}",
            "message": "Redirect to logout URL to complete provider logout",
        }

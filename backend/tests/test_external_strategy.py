"""Tests for the external identity provider strategy."""

import time
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.exceptions import PyJWKClientError

from identity_service.services.errors import (
    IdentityProviderError,
    InvalidCredentialsError,
    PrincipalNotFoundError,
    ProviderMismatchError,
)
from identity_service.services.strategies import Capability, ExternalIdentityStrategy
from identity_service.services.strategies.external import map_remote_profile

DOMAIN = "tenant.example.com"
CLIENT_ID = "test-client-id"


def _response(status: int, method: str, path: str, json_body: dict | None = None):
    return httpx.Response(
        status,
        json=json_body if json_body is not None else {},
        request=httpx.Request(method, f"https://{DOMAIN}{path}"),
    )


def _mock_http(post=None, get=None):
    mock_client = AsyncMock()
    if post is not None:
        mock_client.post.return_value = post
    if get is not None:
        mock_client.get.return_value = get
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    return mock_client


TOKEN_OK = _response(
    200,
    "POST",
    "/oauth/token",
    {
        "access_token": "provider-at",
        "refresh_token": "provider-rt",
        "id_token": "provider-id",
        "expires_in": 86400,
    },
)

USERINFO_OK = _response(
    200,
    "GET",
    "/userinfo",
    {
        "sub": "google-oauth2|123",
        "email": "Pat@Example.com",
        "email_verified": True,
        "given_name": "Pat",
        "family_name": "Doe",
    },
)


@pytest.fixture
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def jwks_client(rsa_key):
    client = MagicMock()
    client.get_signing_key_from_jwt.return_value = MagicMock(key=rsa_key.public_key())
    return client


@pytest.fixture
def strategy(signer, user_directory, jwks_client):
    return ExternalIdentityStrategy(
        signer=signer,
        directory=user_directory,
        domain=DOMAIN,
        client_id=CLIENT_ID,
        client_secret="test-client-secret",
        callback_url="http://localhost:3000/callback",
        logout_return_url="http://localhost:8080",
        jwks_client=jwks_client,
    )


def _id_token(rsa_key, **overrides) -> str:
    now = int(time.time())
    claims = {
        "iss": f"https://{DOMAIN}/",
        "aud": CLIENT_ID,
        "sub": "auth0|pkce-user",
        "email": "pkce@example.com",
        "email_verified": True,
        "name": "Casey Jordan Smith",
        "iat": now,
        "exp": now + 300,
    }
    claims.update(overrides)
    return jwt.encode(claims, rsa_key, algorithm="RS256")


class TestMapRemoteProfile:
    def test_maps_fields(self):
        profile = map_remote_profile(USERINFO_OK.json())
        assert profile.remote_subject_id == "google-oauth2|123"
        assert profile.email == "pat@example.com"
        assert profile.email_verified is True
        assert profile.given_name == "Pat"
        assert profile.family_name == "Doe"

    def test_splits_full_name(self):
        profile = map_remote_profile(
            {"sub": "x", "email": "a@b.c", "name": "Casey Jordan Smith"}
        )
        assert profile.given_name == "Casey"
        assert profile.family_name == "Jordan Smith"
        assert profile.email_verified is False

    def test_requires_subject_and_email(self):
        with pytest.raises(IdentityProviderError):
            map_remote_profile({"email": "a@b.c"})
        with pytest.raises(IdentityProviderError):
            map_remote_profile({"sub": "x", "email": "not-an-email"})


class TestCodeFlow:
    @pytest.mark.asyncio
    async def test_creates_principal_on_first_login(self, strategy):
        mock_client = _mock_http(post=TOKEN_OK, get=USERINFO_OK)
        with patch(
            "identity_service.services.strategies.external._get_http_client",
            return_value=mock_client,
        ):
            result = await strategy.authenticate({"code": "auth-code"})

        assert result.principal.email == "pat@example.com"
        assert result.principal.external_id == "google-oauth2|123"
        assert result.principal.role == "client"
        assert result.principal.provider == "auth0"
        assert result.provider_tokens["refresh_token"] == "provider-rt"

        payload = mock_client.post.call_args.kwargs["json"]
        assert payload["grant_type"] == "authorization_code"
        assert payload["code"] == "auth-code"
        assert payload["redirect_uri"] == "http://localhost:3000/callback"
        assert mock_client.get.call_args.kwargs["headers"]["Authorization"] == "Bearer provider-at"

        claims = await strategy.verify_token(result.access_token)
        assert claims["provider"] == "auth0"
        assert claims["userId"] == result.principal.id

    @pytest.mark.asyncio
    async def test_links_existing_principal_by_subject(self, strategy, user_factory):
        existing = await user_factory(
            email="pat@example.com", external_id="google-oauth2|123", role="manager"
        )
        mock_client = _mock_http(post=TOKEN_OK, get=USERINFO_OK)
        with patch(
            "identity_service.services.strategies.external._get_http_client",
            return_value=mock_client,
        ):
            result = await strategy.authenticate({"code": "auth-code"})

        assert result.principal.id == existing.id
        assert result.principal.role == "manager"

    @pytest.mark.asyncio
    async def test_rejected_code(self, strategy):
        rejected = _response(403, "POST", "/oauth/token", {"error": "invalid_grant"})
        with patch(
            "identity_service.services.strategies.external._get_http_client",
            return_value=_mock_http(post=rejected),
        ):
            with pytest.raises(InvalidCredentialsError):
                await strategy.authenticate({"code": "bad-code"})

    @pytest.mark.asyncio
    async def test_provider_error(self, strategy):
        broken = _response(503, "POST", "/oauth/token")
        with patch(
            "identity_service.services.strategies.external._get_http_client",
            return_value=_mock_http(post=broken),
        ):
            with pytest.raises(IdentityProviderError):
                await strategy.authenticate({"code": "auth-code"})

    @pytest.mark.asyncio
    async def test_provider_unreachable(self, strategy):
        mock_client = _mock_http()
        mock_client.post.side_effect = httpx.ConnectError("connection refused")
        with patch(
            "identity_service.services.strategies.external._get_http_client",
            return_value=mock_client,
        ):
            with pytest.raises(IdentityProviderError):
                await strategy.authenticate({"code": "auth-code"})

    @pytest.mark.asyncio
    async def test_deactivated_principal(self, strategy, user_factory):
        await user_factory(
            email="pat@example.com", external_id="google-oauth2|123", is_active=False
        )
        with patch(
            "identity_service.services.strategies.external._get_http_client",
            return_value=_mock_http(post=TOKEN_OK, get=USERINFO_OK),
        ):
            with pytest.raises(InvalidCredentialsError, match="deactivated"):
                await strategy.authenticate({"code": "auth-code"})

    @pytest.mark.asyncio
    async def test_requires_code_or_id_token(self, strategy):
        with pytest.raises(InvalidCredentialsError):
            await strategy.authenticate({"email": "pat@example.com"})


class TestIdTokenFlow:
    @pytest.mark.asyncio
    async def test_valid_id_token(self, strategy, rsa_key):
        result = await strategy.authenticate({"id_token": _id_token(rsa_key)})

        assert result.principal.email == "pkce@example.com"
        assert result.principal.display_name == "Casey Jordan Smith"
        assert result.provider_tokens is None

    @pytest.mark.asyncio
    async def test_wrong_audience(self, strategy, rsa_key):
        token = _id_token(rsa_key, aud="someone-else")
        with pytest.raises(InvalidCredentialsError):
            await strategy.authenticate({"id_token": token})

    @pytest.mark.asyncio
    async def test_wrong_issuer(self, strategy, rsa_key):
        token = _id_token(rsa_key, iss="https://evil.example.com/")
        with pytest.raises(InvalidCredentialsError):
            await strategy.authenticate({"id_token": token})

    @pytest.mark.asyncio
    async def test_expired(self, strategy, rsa_key):
        token = _id_token(rsa_key, iat=int(time.time()) - 600, exp=int(time.time()) - 300)
        with pytest.raises(InvalidCredentialsError):
            await strategy.authenticate({"id_token": token})

    @pytest.mark.asyncio
    async def test_signed_by_unknown_key(self, strategy):
        other_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        with pytest.raises(InvalidCredentialsError):
            await strategy.authenticate({"id_token": _id_token(other_key)})

    @pytest.mark.asyncio
    async def test_jwks_unavailable(self, strategy, jwks_client, rsa_key):
        jwks_client.get_signing_key_from_jwt.side_effect = PyJWKClientError("fetch failed")
        with pytest.raises(InvalidCredentialsError):
            await strategy.authenticate({"id_token": _id_token(rsa_key)})


class TestProfileAndCapabilities:
    @pytest.mark.asyncio
    async def test_profile_for_linked_principal(self, strategy, user_factory):
        existing = await user_factory(email="pat@example.com", external_id="google-oauth2|123")
        with patch(
            "identity_service.services.strategies.external._get_http_client",
            return_value=_mock_http(get=USERINFO_OK),
        ):
            principal = await strategy.get_user_profile("provider-at")
        assert principal.id == existing.id

    @pytest.mark.asyncio
    async def test_profile_not_linked(self, strategy):
        with patch(
            "identity_service.services.strategies.external._get_http_client",
            return_value=_mock_http(get=USERINFO_OK),
        ):
            with pytest.raises(PrincipalNotFoundError):
                await strategy.get_user_profile("provider-at")

    @pytest.mark.asyncio
    async def test_profile_rejected_token(self, strategy):
        with patch(
            "identity_service.services.strategies.external._get_http_client",
            return_value=_mock_http(get=_response(401, "GET", "/userinfo")),
        ):
            with pytest.raises(PrincipalNotFoundError):
                await strategy.get_user_profile("expired-at")

    @pytest.mark.asyncio
    async def test_refresh_token(self, strategy):
        mock_client = _mock_http(
            post=_response(
                200, "POST", "/oauth/token", {"access_token": "new-at", "expires_in": 3600}
            )
        )
        with patch(
            "identity_service.services.strategies.external._get_http_client",
            return_value=mock_client,
        ):
            outcome = await strategy.refresh_token("provider-rt")

        assert outcome["access_token"] == "new-at"
        payload = mock_client.post.call_args.kwargs["json"]
        assert payload["grant_type"] == "refresh_token"
        assert payload["refresh_token"] == "provider-rt"

    @pytest.mark.asyncio
    async def test_logout_url(self, strategy):
        outcome = await strategy.logout()
        assert outcome["success"] is True
        assert outcome["logout_url"].startswith(f"https://{DOMAIN}/v2/logout?")
        assert f"client_id={CLIENT_ID}" in outcome["logout_url"]

    def test_capabilities(self, strategy):
        assert strategy.get_provider_name() == "auth0"
        assert strategy.supports(Capability.REFRESH)
        assert strategy.supports(Capability.LOGOUT)

    @pytest.mark.asyncio
    async def test_rejects_fixture_token(self, strategy, signer):
        from identity_service.services.strategies import FIXTURE_PRINCIPALS

        token = signer.create_access_token(FIXTURE_PRINCIPALS[0])
        with pytest.raises(ProviderMismatchError):
            await strategy.verify_token(token)

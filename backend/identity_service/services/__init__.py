# Identity Service business logic
from identity_service.services.auth_facade import AuthFacade
from identity_service.services.credential_store import CredentialStore
from identity_service.services.errors import (
    AuthError,
    IdentityProviderError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    InvalidTokenError,
    NotSupportedError,
    PrincipalNotFoundError,
    ProviderMismatchError,
    TokenError,
    TokenExpiredError,
    TokenMalformedError,
)
from identity_service.services.principal import Principal
from identity_service.services.session_tokens import ActiveSession, SessionTokenService, TokenPair
from identity_service.services.signing import TokenSigner
from identity_service.services.strategy_selector import AuthMode, StrategySelector
from identity_service.services.token_retention import TokenRetentionService

__all__ = [
    "ActiveSession",
    "AuthError",
    "AuthFacade",
    "AuthMode",
    "CredentialStore",
    "IdentityProviderError",
    "InvalidCredentialsError",
    "InvalidRefreshTokenError",
    "InvalidTokenError",
    "NotSupportedError",
    "Principal",
    "PrincipalNotFoundError",
    "ProviderMismatchError",
    "SessionTokenService",
    "StrategySelector",
    "TokenError",
    "TokenExpiredError",
    "TokenMalformedError",
    "TokenPair",
    "TokenRetentionService",
    "TokenSigner",
]

"""Authentication and session error taxonomy."""


class AuthError(Exception):
    """Base authentication error."""

    pass


class InvalidCredentialsError(AuthError):
    """No principal matches the presented first-factor credentials."""

    pass


class TokenError(AuthError):
    """JWT token error."""

    pass


class InvalidTokenError(TokenError):
    """JWT token is invalid."""

    pass


class TokenMalformedError(InvalidTokenError):
    """Bad signature, bad shape, or wrong token type."""

    pass


class TokenExpiredError(TokenError):
    """JWT token has expired."""

    pass


class ProviderMismatchError(InvalidTokenError):
    """Token was issued for a different authentication provider."""

    def __init__(self, expected: str, actual: str | None):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Token provider '{actual}' does not match '{expected}'")


class InvalidRefreshTokenError(InvalidTokenError):
    """Refresh credential rejected.

    Covers expired, forged, rotated, revoked and unknown credentials alike;
    callers must re-authenticate.
    """

    def __init__(self, message: str = "Invalid refresh token"):
        super().__init__(message)


class NotSupportedError(AuthError):
    """The active strategy does not provide this capability."""

    pass


class PrincipalNotFoundError(AuthError):
    """No principal exists for the given identifier."""

    pass


class IdentityProviderError(AuthError):
    """The external identity provider could not be reached or answered badly."""

    pass

"""Interchangeable first-factor authentication strategies."""

from .base import AuthResult, AuthStrategy, Capability
from .external import EXTERNAL_PROVIDER, ExternalIdentityStrategy
from .fixture import FixtureStrategy
from .fixture_users import FIXTURE_PRINCIPALS, FIXTURE_PROVIDER

__all__ = [
    "AuthResult",
    "AuthStrategy",
    "Capability",
    "ExternalIdentityStrategy",
    "EXTERNAL_PROVIDER",
    "FixtureStrategy",
    "FIXTURE_PRINCIPALS",
    "FIXTURE_PROVIDER",
]

"""Identity and session-credential service."""

__version__ = "1.0.0"

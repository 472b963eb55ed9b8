"""Principal value object shared by strategies and the session layer."""

from dataclasses import dataclass

from identity_service.models.user import User


@dataclass(frozen=True)
class Principal:
    """An authenticated human user, referenced by value."""

    id: int
    email: str
    display_name: str
    role: str
    provider: str
    external_id: str | None = None

    @property
    def subject(self) -> str:
        """Stable ``sub`` claim: the provider subject id when known."""
        return self.external_id or str(self.id)

    @classmethod
    def from_user(cls, user: User, provider: str | None = None) -> "Principal":
        return cls(
            id=user.id,
            email=user.email,
            display_name=user.display_name,
            role=user.role,
            provider=provider or user.provider,
            external_id=user.external_id,
        )

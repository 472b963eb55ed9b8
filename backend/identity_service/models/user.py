"""Local principal model used for external-provider account linking."""

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from identity_service.models.base import BaseModel


class User(BaseModel):
    """A principal known to this service.

    Rows are created or linked by the external identity strategy. The
    ``external_id`` holds the provider's subject id and may be rewritten when
    the provider-side connection changes (see UserDirectory.find_or_create).
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="client")
    external_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True, unique=True, index=True
    )
    provider: Mapped[str] = mapped_column(String(50), nullable=False, default="auth0")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    @property
    def display_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.email

    def __repr__(self) -> str:
        return f"<User {self.id} {self.email}>"

"""
db/models/user.py

User model: an account that may own datasets and appear in download audits.
Credentials and token issuance live outside this service; only the profile
attributes needed for ownership, authorization and owner summaries are kept.
"""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from db.models.dataset import Dataset


class UserRole:
    """Roles recognised by authorization checks."""

    USER = "user"
    ADMIN = "admin"


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    username: Mapped[str] = mapped_column(String(150), nullable=False, unique=True)

    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)

    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=UserRole.USER,
        server_default=UserRole.USER,
        comment="user | admin",
    )

    profile_image: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="data:<mime>;base64,<payload> URI",
    )

    bio: Mapped[str | None] = mapped_column(Text, nullable=True)

    # ── Relationships ──────────────────────────────────────────────────────────

    datasets: Mapped[list["Dataset"]] = relationship(
        "Dataset",
        back_populates="owner",
        passive_deletes=True,
    )

    __table_args__ = (Index("ix_users_role", "role"),)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} role={self.role!r}>"

"""
db/models/dataset.py

Dataset model: one shareable unit of content. The uploaded file's bytes are
stored inline on the row; there is no separate blob store.
"""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, ForeignKey, Index, Integer, LargeBinary, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from db.models.user import User


class Dataset(Base, TimestampMixin):
    """
    Represents one titled, typed dataset with an optional embedded file.

    file_content is deferred: ordinary loads never pull the payload, only the
    download path asks for it explicitly.

    size_bytes always mirrors len(file_content) for rows written by this
    service. legacy_size carries free-text sizes ("2.5 MB") imported from older
    schema variants and is read only by statistics and response shaping.
    """

    __tablename__ = "datasets"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str] = mapped_column(Text, nullable=False)

    type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Free-text category tag: csv, excel, json, text, ...",
    )

    size_bytes: Mapped[int | None] = mapped_column(
        BigInteger,
        nullable=True,
        comment="Byte length of file_content; 0 when no file is attached",
    )

    legacy_size: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="Unit-suffixed size from older records; never written by new code",
    )

    downloads: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    owner_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    file_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="Opaque token; presence means a file is attached",
    )

    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    file_content_type: Mapped[str | None] = mapped_column(String(255), nullable=True)

    file_content: Mapped[bytes | None] = mapped_column(
        LargeBinary,
        nullable=True,
        deferred=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────────

    owner: Mapped["User | None"] = relationship(
        "User",
        back_populates="datasets",
    )

    # ── Indexes ────────────────────────────────────────────────────────────────

    __table_args__ = (
        Index("ix_datasets_owner_id", "owner_id"),
        Index("ix_datasets_created_at", "created_at"),
        Index("ix_datasets_downloads", "downloads"),
    )

    @property
    def has_file(self) -> bool:
        return self.file_id is not None

    def __repr__(self) -> str:
        return (
            f"<Dataset id={self.id} title={self.title!r} "
            f"owner_id={self.owner_id} downloads={self.downloads}>"
        )

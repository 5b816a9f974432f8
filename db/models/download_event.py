"""
db/models/download_event.py

Append-only audit entry written once per download that reaches the serving
stage. Rows are never updated, and they outlive the dataset they reference.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, utc_now


class DownloadEvent(Base):
    __tablename__ = "download_events"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # No FK: deleting a dataset must not erase its download history.
    dataset_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
    )

    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="Null for anonymous downloads",
    )

    downloaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
    )

    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)

    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_download_events_dataset_id", "dataset_id"),
        Index("ix_download_events_user_id", "user_id"),
        Index("ix_download_events_downloaded_at", "downloaded_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<DownloadEvent id={self.id} dataset_id={self.dataset_id} "
            f"user_id={self.user_id} downloaded_at={self.downloaded_at}>"
        )

"""
Persistence for the append-only download audit log.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import Row, distinct, func, select
from sqlalchemy.orm import Session

from db.models.dataset import Dataset
from db.models.download_event import DownloadEvent
from db.models.user import User


def utc_day(dialect_name: str):
    """
    Calendar day of ``downloaded_at`` in UTC. PostgreSQL's DATE(timestamptz)
    follows the session TimeZone, so the value is shifted to UTC first. SQLite
    stores naive UTC text and needs no shift.
    """

    if dialect_name == "postgresql":
        return func.date(func.timezone("UTC", DownloadEvent.downloaded_at))
    return func.date(DownloadEvent.downloaded_at)


def _as_iso_day(value: date | datetime | str) -> str:
    # PostgreSQL returns a date for DATE(...); SQLite returns 'YYYY-MM-DD'.
    if isinstance(value, (date, datetime)):
        return value.strftime("%Y-%m-%d")
    return str(value)[:10]


class DownloadEventRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def record(
        self,
        *,
        dataset_id: uuid.UUID,
        user_id: uuid.UUID | None,
        ip_address: str | None,
        user_agent: str | None,
    ) -> DownloadEvent:
        event = DownloadEvent(
            dataset_id=dataset_id,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self._session.add(event)
        self._session.flush()
        return event

    def count_by_day(self, *, since: datetime | None = None) -> list[tuple[str, int]]:
        """
        Download counts per calendar day, ascending by day.
        """

        day = utc_day(self._session.get_bind().dialect.name).label("day")
        stmt = select(day, func.count(DownloadEvent.id)).group_by(day).order_by(day)
        if since is not None:
            stmt = stmt.where(DownloadEvent.downloaded_at >= since)
        return [(_as_iso_day(row[0]), int(row[1])) for row in self._session.execute(stmt).all()]

    def total(self) -> int:
        return int(self._session.scalar(select(func.count(DownloadEvent.id))) or 0)

    def unique_users(self) -> int:
        stmt = select(func.count(distinct(DownloadEvent.user_id)))
        return int(self._session.scalar(stmt) or 0)

    def unique_datasets(self) -> int:
        stmt = select(func.count(distinct(DownloadEvent.dataset_id)))
        return int(self._session.scalar(stmt) or 0)

    def recent(self, *, limit: int = 30) -> list[Row]:
        """
        Latest events joined to dataset title and user name where they still exist.
        """

        stmt = (
            select(
                DownloadEvent.id,
                DownloadEvent.dataset_id,
                Dataset.title.label("dataset_title"),
                DownloadEvent.user_id,
                User.name.label("user_name"),
                DownloadEvent.downloaded_at,
                DownloadEvent.ip_address,
                DownloadEvent.user_agent,
            )
            .outerjoin(Dataset, Dataset.id == DownloadEvent.dataset_id)
            .outerjoin(User, User.id == DownloadEvent.user_id)
            .order_by(DownloadEvent.downloaded_at.desc())
            .limit(max(1, limit))
        )
        return list(self._session.execute(stmt).all())

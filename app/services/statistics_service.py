"""
app/services/statistics_service.py

Dashboard rollups over datasets and the download audit log.

Size compatibility
------------------
New rows always carry an integer ``size_bytes``. Older imported rows may only
have a unit-suffixed ``legacy_size`` string ("2.5 MB", "512KB", "512"). Those
strings are parsed here at read time with a fixed binary unit table; nothing
writes them any more. Values that cannot be parsed contribute 0.

Outputs are raw numbers (bytes, counts). Unit formatting is left to clients.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Final

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.repositories.dataset_repository import DatasetRepository
from db.repositories.download_repository import DownloadEventRepository
from db.repositories.errors import DatasetPersistenceError

logger = logging.getLogger(__name__)

SIZE_UNITS: Final[dict[str, int]] = {
    "B": 1,
    "KB": 1024,
    "MB": 1024**2,
    "GB": 1024**3,
    "TB": 1024**4,
}

_SIZE_PATTERN = re.compile(r"(\d+\.?\d*)\s*(B|KB|MB|GB|TB)?", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatasetTotals:
    downloads: int
    storage: int


@dataclass(frozen=True)
class DownloadDay:
    date: str
    downloads: int


@dataclass(frozen=True)
class DownloadStats:
    total_downloads: int
    unique_users: int
    unique_datasets: int
    recent_downloads: list[dict[str, Any]] = field(default_factory=list)
    most_downloaded: list[dict[str, Any]] = field(default_factory=list)
    downloads_by_day: list[DownloadDay] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_size_bytes(value: object) -> int:
    """
    Convert a stored size to bytes.

    Numbers are taken as-is. Strings are matched against
    ``<number> [B|KB|MB|GB|TB]`` (case-insensitive, bytes when no unit).
    Anything else is 0.
    """

    if _is_number(value):
        return max(0, int(value))
    if not isinstance(value, str) or not value.strip():
        return 0

    match = _SIZE_PATTERN.search(value)
    if match is None:
        return 0
    number = float(match.group(1))
    unit = (match.group(2) or "B").upper()
    return int(number * SIZE_UNITS.get(unit, 1))


def coerce_downloads(value: object) -> int:
    return int(value) if _is_number(value) else 0


def aggregate_dataset_totals(rows: Iterable[tuple[object, object]]) -> DatasetTotals:
    """
    Sum ``(size, downloads)`` pairs, tolerating mixed and missing values.
    """

    downloads = 0
    storage = 0
    for size, download_count in rows:
        downloads += coerce_downloads(download_count)
        storage += parse_size_bytes(size)
    return DatasetTotals(downloads=downloads, storage=storage)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class StatisticsService:
    def dataset_totals(self, db: Session) -> DatasetTotals:
        try:
            rows = DatasetRepository(db).size_and_download_rows()
        except SQLAlchemyError as exc:
            logger.exception("Failed to read dataset statistics")
            raise DatasetPersistenceError("Failed to read dataset statistics.") from exc

        totals = aggregate_dataset_totals(
            (size_bytes if size_bytes is not None else legacy_size, downloads)
            for size_bytes, legacy_size, downloads in rows
        )
        logger.info(
            "Dataset totals datasets=%d downloads=%d storage=%d",
            len(rows),
            totals.downloads,
            totals.storage,
        )
        return totals

    def download_history(self, db: Session) -> list[DownloadDay]:
        try:
            buckets = DownloadEventRepository(db).count_by_day()
        except SQLAlchemyError as exc:
            logger.exception("Failed to read download history")
            raise DatasetPersistenceError("Failed to read download history.") from exc
        return [DownloadDay(date=day, downloads=count) for day, count in buckets]

    def download_stats(
        self,
        db: Session,
        *,
        days: int = 30,
        recent: int = 30,
        top: int = 10,
    ) -> DownloadStats:
        """
        Detailed admin view: totals, uniques, latest events, most downloaded
        datasets and a per-day series over the trailing ``days`` days.
        """

        since = datetime.now(timezone.utc) - timedelta(days=max(1, days))
        events = DownloadEventRepository(db)
        datasets = DatasetRepository(db)
        try:
            recent_rows = events.recent(limit=recent)
            top_rows = datasets.most_downloaded(limit=top)
            stats = DownloadStats(
                total_downloads=events.total(),
                unique_users=events.unique_users(),
                unique_datasets=events.unique_datasets(),
                recent_downloads=[dict(row._mapping) for row in recent_rows],
                most_downloaded=[
                    {"id": row.id, "title": row.title, "downloads": row.downloads}
                    for row in top_rows
                ],
                downloads_by_day=[
                    DownloadDay(date=day, downloads=count)
                    for day, count in events.count_by_day(since=since)
                ],
            )
        except SQLAlchemyError as exc:
            logger.exception("Failed to read download statistics")
            raise DatasetPersistenceError("Failed to read download statistics.") from exc
        return stats

"""
app/services/download_service.py

Retrieval of stored dataset bytes, with download accounting.

Order of operations for one download:

    1. Atomically bump the dataset's download counter (fatal on failure).
    2. Load the dataset row including its payload.
    3. Not found -> DatasetNotFoundError.
    4. Best-effort: resolve the optional user and append a DownloadEvent.
    5. No stored file -> DatasetFileMissingError.
    6. Return the payload; Content-Length is always len(bytes).

The counter is bumped before the file is checked, so attempts on a file-less
dataset are still counted. Accounting failures in step 4 are logged and never
block delivery.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.logging_utils import best_effort
from app.services.dataset_service import parse_dataset_id
from db.repositories.dataset_repository import DatasetRepository
from db.repositories.download_repository import DownloadEventRepository
from db.repositories.errors import (
    DatasetFileMissingError,
    DatasetNotFoundError,
    DatasetPersistenceError,
)
from db.repositories.types import DownloadPayload
from db.repositories.validators import DEFAULT_CONTENT_TYPE

logger = logging.getLogger(__name__)


class DownloadService:
    def download(
        self,
        db: Session,
        *,
        dataset_id: str | uuid.UUID,
        user_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> DownloadPayload:
        parsed_id = parse_dataset_id(dataset_id)
        repo = DatasetRepository(db)

        try:
            repo.increment_downloads(parsed_id)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to increment download counter dataset_id=%s", parsed_id)
            raise DatasetPersistenceError("Failed to record download.") from exc

        try:
            dataset = repo.get(parsed_id, include_payload=True, include_owner=False)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to load dataset for download dataset_id=%s", parsed_id)
            raise DatasetPersistenceError("Failed to load dataset.") from exc

        if dataset is None:
            logger.warning("Download requested for missing dataset_id=%s", parsed_id)
            raise DatasetNotFoundError("Dataset not found")

        # Snapshot before accounting: a rollback there would expire the instance.
        content = dataset.file_content
        file_name = dataset.file_name
        content_type = dataset.file_content_type or DEFAULT_CONTENT_TYPE

        self._record_download(
            db,
            dataset_id=parsed_id,
            raw_user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        if content is None or not file_name:
            logger.warning("No file associated with dataset_id=%s", parsed_id)
            raise DatasetFileMissingError("No file associated with this dataset")

        logger.info(
            "Serving dataset_id=%s file_name=%r content_length=%d",
            parsed_id,
            file_name,
            len(content),
        )
        return DownloadPayload(
            dataset_id=parsed_id,
            file_name=file_name,
            content_type=content_type,
            content=content,
        )

    # ------------------------------------------------------------------
    # Best-effort accounting
    # ------------------------------------------------------------------

    def _resolve_user_id(self, db: Session, raw_user_id: str | None) -> uuid.UUID | None:
        """
        The downloader is recorded only when the id names an existing user.
        """

        if not raw_user_id or not raw_user_id.strip():
            return None

        resolved: uuid.UUID | None = None
        with best_effort(logger, "resolve_download_user", user_id=raw_user_id):
            try:
                candidate = uuid.UUID(raw_user_id.strip())
                if DatasetRepository(db).get_user(candidate) is not None:
                    resolved = candidate
                else:
                    logger.info("Download user %s not found; recording as anonymous", candidate)
            except SQLAlchemyError:
                db.rollback()
                raise
        return resolved

    def _record_download(
        self,
        db: Session,
        *,
        dataset_id: uuid.UUID,
        raw_user_id: str | None,
        ip_address: str | None,
        user_agent: str | None,
    ) -> None:
        user_id = self._resolve_user_id(db, raw_user_id)
        with best_effort(logger, "record_download", dataset_id=str(dataset_id)):
            try:
                DownloadEventRepository(db).record(
                    dataset_id=dataset_id,
                    user_id=user_id,
                    ip_address=ip_address,
                    user_agent=user_agent,
                )
                db.commit()
            except Exception:
                db.rollback()
                raise

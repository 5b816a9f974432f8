"""
Dataset repository responsible for DB writes and lookup operations.

The caller owns the session and controls commit/rollback.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping

from sqlalchemy import Row, delete, select, update
from sqlalchemy.orm import Session, selectinload, undefer

from db.models.dataset import Dataset
from db.models.user import User
from db.repositories.types import DatasetCreate, StagedBlob


class DatasetRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def add(self, payload: DatasetCreate, blob: StagedBlob | None = None) -> Dataset:
        dataset = Dataset(
            title=payload.title,
            description=payload.description,
            type=payload.type,
            owner_id=payload.owner_id,
            size_bytes=0,
            downloads=0,
        )
        if blob is not None:
            self.attach_file(dataset, blob)
        self._session.add(dataset)
        self._session.flush()
        return dataset

    @staticmethod
    def attach_file(dataset: Dataset, blob: StagedBlob) -> None:
        """
        Replace every file field together so file_id, bytes, name, type and
        size never disagree. The previous payload is discarded.
        """

        dataset.file_id = blob.file_id
        dataset.file_name = blob.file_name
        dataset.file_content_type = blob.content_type
        dataset.file_content = blob.content
        dataset.size_bytes = len(blob.content)
        dataset.legacy_size = None

    @staticmethod
    def apply_changes(dataset: Dataset, changes: Mapping[str, str]) -> None:
        for attribute, value in changes.items():
            setattr(dataset, attribute, value)

    def increment_downloads(self, dataset_id: uuid.UUID) -> int:
        """
        Fetch-and-add executed by the database; returns the matched row count.
        """

        stmt = (
            update(Dataset)
            .where(Dataset.id == dataset_id)
            .values(downloads=Dataset.downloads + 1)
            .execution_options(synchronize_session=False)
        )
        return self._session.execute(stmt).rowcount

    def delete(self, dataset_id: uuid.UUID) -> int:
        stmt = delete(Dataset).where(Dataset.id == dataset_id).execution_options(synchronize_session=False)
        return self._session.execute(stmt).rowcount

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get(
        self,
        dataset_id: uuid.UUID,
        *,
        include_payload: bool = False,
        include_owner: bool = True,
    ) -> Dataset | None:
        stmt = select(Dataset).where(Dataset.id == dataset_id)
        if include_owner:
            stmt = stmt.options(selectinload(Dataset.owner))
        if include_payload:
            stmt = stmt.options(undefer(Dataset.file_content))
        return self._session.scalars(stmt).first()

    def list_datasets(self, *, owner_id: uuid.UUID | None = None) -> list[Dataset]:
        stmt = select(Dataset).options(selectinload(Dataset.owner))
        if owner_id is not None:
            stmt = stmt.where(Dataset.owner_id == owner_id)
        stmt = stmt.order_by(Dataset.created_at.desc(), Dataset.id)
        return list(self._session.scalars(stmt).all())

    def size_and_download_rows(self) -> list[Row[tuple[int | None, str | None, int | None]]]:
        """
        Projection used by statistics; never touches file_content.
        """

        stmt = select(Dataset.size_bytes, Dataset.legacy_size, Dataset.downloads)
        return list(self._session.execute(stmt).all())

    def most_downloaded(self, *, limit: int = 10) -> list[Row[tuple[uuid.UUID, str, int]]]:
        stmt = (
            select(Dataset.id, Dataset.title, Dataset.downloads)
            .order_by(Dataset.downloads.desc(), Dataset.title)
            .limit(max(1, limit))
        )
        return list(self._session.execute(stmt).all())

    def get_user(self, user_id: uuid.UUID) -> User | None:
        return self._session.get(User, user_id)

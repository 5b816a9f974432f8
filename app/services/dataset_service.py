"""
app/services/dataset_service.py

Dataset record store: create, read, list, partial update and delete, with the
optional file of a create/update staged through the scratch area first.

Authorization and field validation run before anything is staged or written.
A staged scratch file is removed whether the database write succeeds or not,
and only after the commit has returned.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models.dataset import Dataset
from db.repositories.dataset_repository import DatasetRepository
from db.repositories.errors import (
    DatasetForbiddenError,
    DatasetNotFoundError,
    DatasetPersistenceError,
)
from db.repositories.storage import ScratchStorage
from db.repositories.types import Caller, DatasetCreate, DatasetPatch, StagedBlob, UploadFileInput
from db.repositories.validators import DATASET_UPLOAD_POLICY, validate_dataset_fields

logger = logging.getLogger(__name__)


def parse_dataset_id(raw_id: str | uuid.UUID) -> uuid.UUID:
    """
    An id that cannot be parsed cannot resolve, so it is reported as not found.
    """

    if isinstance(raw_id, uuid.UUID):
        return raw_id
    try:
        return uuid.UUID(str(raw_id).strip())
    except ValueError as exc:
        raise DatasetNotFoundError("Dataset not found") from exc


class DatasetService:
    """
    Coordinates validation, staging and persistence for dataset records.
    """

    def __init__(self, *, scratch: ScratchStorage) -> None:
        self._scratch = scratch

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_dataset(
        self,
        db: Session,
        *,
        title: str | None,
        description: str | None,
        type: str | None,
        owner_id: uuid.UUID | None,
        upload: UploadFileInput | None = None,
    ) -> Dataset:
        validate_dataset_fields(title=title, description=description, type=type)
        payload = DatasetCreate(
            title=title.strip(),
            description=description.strip(),
            type=type.strip(),
            owner_id=owner_id,
        )

        if upload is None:
            logger.info("Creating dataset without file title=%r owner_id=%s", payload.title, owner_id)
            return self._persist_new(db, payload, None)

        with self._scratch.staged(upload, policy=DATASET_UPLOAD_POLICY) as blob:
            logger.info(
                "Creating dataset title=%r owner_id=%s file_name=%r size_bytes=%d",
                payload.title,
                owner_id,
                blob.file_name,
                blob.size_bytes,
            )
            return self._persist_new(db, payload, blob)

    def _persist_new(self, db: Session, payload: DatasetCreate, blob: StagedBlob | None) -> Dataset:
        try:
            dataset = DatasetRepository(db).add(payload, blob)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to persist dataset title=%r", payload.title)
            raise DatasetPersistenceError("Failed to persist dataset.") from exc

        logger.info("Dataset created id=%s", dataset.id)
        return dataset

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_dataset(self, db: Session, dataset_id: str | uuid.UUID) -> Dataset:
        parsed_id = parse_dataset_id(dataset_id)
        dataset = DatasetRepository(db).get(parsed_id)
        if dataset is None:
            raise DatasetNotFoundError("Dataset not found")
        return dataset

    def list_datasets(
        self,
        db: Session,
        *,
        caller: Caller,
        owner_id: uuid.UUID | None = None,
    ) -> list[Dataset]:
        """
        All datasets, or one owner's datasets. Only admins may list someone else's.
        """

        if owner_id is not None and not caller.is_admin and owner_id != caller.user_id:
            logger.warning(
                "User %s attempted to list datasets of user %s", caller.user_id, owner_id
            )
            raise DatasetForbiddenError("You can only view your own datasets")

        datasets = DatasetRepository(db).list_datasets(owner_id=owner_id)
        logger.info("Listed %d datasets owner_id=%s", len(datasets), owner_id)
        return datasets

    # ------------------------------------------------------------------
    # Update / delete
    # ------------------------------------------------------------------

    def update_dataset(
        self,
        db: Session,
        *,
        caller: Caller,
        dataset_id: str | uuid.UUID,
        patch: DatasetPatch,
        upload: UploadFileInput | None = None,
    ) -> Dataset:
        dataset = self.get_dataset(db, dataset_id)
        if not caller.is_admin and dataset.owner_id != caller.user_id:
            logger.warning("User %s not authorized to update dataset %s", caller.user_id, dataset.id)
            raise DatasetForbiddenError("User not authorized to update this dataset")

        if upload is None:
            return self._persist_update(db, dataset, patch, None)

        with self._scratch.staged(upload, policy=DATASET_UPLOAD_POLICY) as blob:
            return self._persist_update(db, dataset, patch, blob)

    def _persist_update(
        self,
        db: Session,
        dataset: Dataset,
        patch: DatasetPatch,
        blob: StagedBlob | None,
    ) -> Dataset:
        try:
            DatasetRepository.apply_changes(dataset, patch.changes())
            if blob is not None:
                DatasetRepository.attach_file(dataset, blob)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to update dataset id=%s", dataset.id)
            raise DatasetPersistenceError("Failed to update dataset.") from exc

        logger.info(
            "Dataset updated id=%s fields=%s file_replaced=%s",
            dataset.id,
            sorted(patch.changes()),
            blob is not None,
        )
        return dataset

    def delete_dataset(self, db: Session, *, caller: Caller, dataset_id: str | uuid.UUID) -> None:
        if not caller.is_admin:
            raise DatasetForbiddenError("Admin privileges required to delete datasets")

        parsed_id = parse_dataset_id(dataset_id)
        try:
            deleted = DatasetRepository(db).delete(parsed_id)
            if not deleted:
                db.rollback()
                raise DatasetNotFoundError("Dataset not found")
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to delete dataset id=%s", parsed_id)
            raise DatasetPersistenceError("Failed to delete dataset.") from exc

        logger.info("Dataset deleted id=%s by user=%s", parsed_id, caller.user_id)

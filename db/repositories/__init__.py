"""
Repository layer exports.
"""

from db.repositories.dataset_repository import DatasetRepository
from db.repositories.download_repository import DownloadEventRepository
from db.repositories.errors import (
    DatasetFileMissingError,
    DatasetForbiddenError,
    DatasetNotFoundError,
    DatasetPersistenceError,
    DatasetRepositoryError,
    FileStorageError,
    PayloadTooLargeError,
    UploadValidationError,
)
from db.repositories.storage import ScratchStorage
from db.repositories.types import (
    Caller,
    DatasetCreate,
    DatasetPatch,
    DownloadPayload,
    StagedBlob,
    UploadFileInput,
)
from db.repositories.validators import DATASET_UPLOAD_POLICY, PROFILE_IMAGE_POLICY, UploadPolicy

__all__ = [
    "DatasetRepository",
    "DownloadEventRepository",
    "ScratchStorage",
    "UploadPolicy",
    "DATASET_UPLOAD_POLICY",
    "PROFILE_IMAGE_POLICY",
    "Caller",
    "DatasetCreate",
    "DatasetPatch",
    "DownloadPayload",
    "StagedBlob",
    "UploadFileInput",
    "DatasetRepositoryError",
    "UploadValidationError",
    "PayloadTooLargeError",
    "DatasetNotFoundError",
    "DatasetFileMissingError",
    "DatasetForbiddenError",
    "FileStorageError",
    "DatasetPersistenceError",
]

"""
Repository-layer exceptions for dataset intake, storage and retrieval flows.
"""

from __future__ import annotations


class DatasetRepositoryError(Exception):
    """Base exception for dataset repository failures."""


class UploadValidationError(DatasetRepositoryError):
    """Raised when required fields are missing or a file type is not allowed."""


class PayloadTooLargeError(DatasetRepositoryError):
    """Raised when an uploaded file exceeds its pipeline's size ceiling."""


class DatasetNotFoundError(DatasetRepositoryError):
    """Raised when a dataset (or referenced user) id does not resolve."""


class DatasetFileMissingError(DatasetRepositoryError):
    """Raised when a dataset exists but carries no stored file."""


class DatasetForbiddenError(DatasetRepositoryError):
    """Raised when the caller may not perform the requested operation."""


class FileStorageError(DatasetRepositoryError):
    """Raised when writing to or reading from the scratch area fails."""


class DatasetPersistenceError(DatasetRepositoryError):
    """Raised when a database read or write fails."""

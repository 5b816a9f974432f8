"""
app/api/errors.py

Translation of repository/service errors into HTTP errors.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

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

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[DatasetRepositoryError], int], ...] = (
    (UploadValidationError, status.HTTP_400_BAD_REQUEST),
    (PayloadTooLargeError, 413),
    (DatasetNotFoundError, status.HTTP_404_NOT_FOUND),
    (DatasetFileMissingError, status.HTTP_404_NOT_FOUND),
    (DatasetForbiddenError, status.HTTP_403_FORBIDDEN),
    (FileStorageError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (DatasetPersistenceError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)

# Internal failures never echo their message to the client.
_GENERIC_SERVER_ERROR = "Server error"


def to_http_error(exc: DatasetRepositoryError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            break
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if status_code >= 500:
        logger.error("Request failed: %s: %s", type(exc).__name__, exc)
        return HTTPException(status_code=status_code, detail=_GENERIC_SERVER_ERROR)
    return HTTPException(status_code=status_code, detail=str(exc))

"""
app/api/dependencies.py

Shared FastAPI dependencies: process-wide handles, services and the caller
identity derived from the bearer token.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Generator

import jwt
from fastapi import Depends, HTTPException, Request, UploadFile, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.config import get_auth_settings
from app.services.dataset_service import DatasetService
from app.services.download_service import DownloadService
from app.services.profile_image_service import ProfileImageService
from app.services.statistics_service import StatisticsService
from db.models.user import User
from db.repositories.storage import ScratchStorage
from db.repositories.types import Caller, UploadFileInput
from db.session import Database

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Handles
# ---------------------------------------------------------------------------


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_scratch_storage(request: Request) -> ScratchStorage:
    return request.app.state.scratch_storage


def get_db(database: Database = Depends(get_database)) -> Generator[Session, None, None]:
    """
    Yield a database session and guarantee cleanup.
    """

    db = database.session()
    try:
        yield db
    finally:
        db.close()


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


def get_dataset_service(scratch: ScratchStorage = Depends(get_scratch_storage)) -> DatasetService:
    return DatasetService(scratch=scratch)


def get_profile_image_service(
    scratch: ScratchStorage = Depends(get_scratch_storage),
) -> ProfileImageService:
    return ProfileImageService(scratch=scratch)


def get_download_service() -> DownloadService:
    return DownloadService()


def get_statistics_service() -> StatisticsService:
    return StatisticsService()


# ---------------------------------------------------------------------------
# Caller identity
# ---------------------------------------------------------------------------


def get_current_caller(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    db: Session = Depends(get_db),
) -> Caller:
    """
    Decode the bearer token and load the user it names.

    Tokens carry the user id in the ``id`` claim (``sub`` is accepted too).
    The stored role, not the token's, decides authorization.
    """

    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized to access this route",
        )

    settings = get_auth_settings()
    try:
        claims = jwt.decode(
            credentials.credentials,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
        user_id = uuid.UUID(str(claims.get("id") or claims.get("sub")))
    except (jwt.PyJWTError, ValueError) as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication failed",
        ) from exc

    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return Caller(user_id=user.id, role=user.role)


def require_admin(caller: Caller = Depends(get_current_caller)) -> Caller:
    if not caller.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required to access this route",
        )
    return caller


# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------


def to_upload_input(file: UploadFile | None) -> UploadFileInput | None:
    """
    Wrap a multipart part for intake. An empty file field counts as no file.
    """

    if file is None or not file.filename:
        return None
    return UploadFileInput(
        file_name=file.filename,
        content_type=file.content_type,
        stream=file.file,
        declared_size=file.size,
    )

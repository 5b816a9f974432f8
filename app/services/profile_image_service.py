"""
app/services/profile_image_service.py

Profile image intake: same staging path as dataset files, with the image-only
policy and a 5 MB ceiling. The image is stored on the user as a data URI.
"""

from __future__ import annotations

import base64
import logging
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models.user import User
from db.repositories.dataset_repository import DatasetRepository
from db.repositories.errors import (
    DatasetForbiddenError,
    DatasetNotFoundError,
    DatasetPersistenceError,
    UploadValidationError,
)
from db.repositories.storage import ScratchStorage
from db.repositories.types import Caller, UploadFileInput
from db.repositories.validators import PROFILE_IMAGE_POLICY

logger = logging.getLogger(__name__)


def to_data_uri(content_type: str, content: bytes) -> str:
    return f"data:{content_type};base64,{base64.b64encode(content).decode('ascii')}"


class ProfileImageService:
    def __init__(self, *, scratch: ScratchStorage) -> None:
        self._scratch = scratch

    def set_profile_image(
        self,
        db: Session,
        *,
        caller: Caller,
        user_id: str,
        upload: UploadFileInput | None,
    ) -> User:
        try:
            target_id = uuid.UUID(str(user_id).strip())
        except ValueError as exc:
            raise DatasetNotFoundError("User not found") from exc

        if not caller.is_admin and caller.user_id != target_id:
            raise DatasetForbiddenError("You can only change your own profile image")
        if upload is None:
            raise UploadValidationError("No image file provided")

        user = DatasetRepository(db).get_user(target_id)
        if user is None:
            raise DatasetNotFoundError("User not found")

        with self._scratch.staged(upload, policy=PROFILE_IMAGE_POLICY) as blob:
            try:
                user.profile_image = to_data_uri(blob.content_type, blob.content)
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                logger.exception("Failed to save profile image user_id=%s", target_id)
                raise DatasetPersistenceError("Failed to save profile image.") from exc

        logger.info("Profile image updated user_id=%s size_bytes=%d", target_id, blob.size_bytes)
        return user

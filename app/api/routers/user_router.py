"""
app/api/routers/user_router.py

User profile endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from app.api.dependencies import (
    get_current_caller,
    get_db,
    get_profile_image_service,
    to_upload_input,
)
from app.api.errors import to_http_error
from app.schemas.datasets import UserSummaryResponse
from app.services.profile_image_service import ProfileImageService
from db.repositories.errors import DatasetRepositoryError
from db.repositories.types import Caller

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/{user_id}/profile-image", response_model=UserSummaryResponse)
def upload_profile_image(
    user_id: str,
    profile_image: UploadFile | None = File(default=None),
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
    service: ProfileImageService = Depends(get_profile_image_service),
) -> UserSummaryResponse:
    """
    Replace a user's profile image. Images only, up to 5 MB.
    """

    try:
        user = service.set_profile_image(
            db,
            caller=caller,
            user_id=user_id,
            upload=to_upload_input(profile_image),
        )
    except DatasetRepositoryError as exc:
        raise to_http_error(exc) from exc
    finally:
        if profile_image is not None:
            profile_image.file.close()

    return UserSummaryResponse.from_record(user)

"""
app/api/routers/dataset_router.py

Dataset HTTP endpoints.

POST   /datasets                      create (multipart, optional ``file``)
GET    /datasets                      list metadata
GET    /datasets/stats                admin: total downloads and stored bytes
GET    /datasets/downloads/history    admin: downloads per calendar day
GET    /datasets/downloads/stats      admin: detailed download statistics
GET    /datasets/user/{user_id}       one owner's datasets (self or admin)
GET    /datasets/{dataset_id}         metadata
GET    /datasets/{dataset_id}/download  stored bytes, no auth, ``?userId=``
PUT    /datasets/{dataset_id}         partial update (owner or admin)
DELETE /datasets/{dataset_id}         admin

Static paths are registered ahead of ``/{dataset_id}`` so they are never
captured as ids. Metadata responses never carry file bytes.
"""

from __future__ import annotations

import uuid
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.api.dependencies import (
    get_current_caller,
    get_dataset_service,
    get_db,
    get_download_service,
    get_statistics_service,
    require_admin,
    to_upload_input,
)
from app.api.errors import to_http_error
from app.schemas.datasets import (
    DatasetResponse,
    DatasetStatsResponse,
    DownloadDayResponse,
    DownloadStatsResponse,
    MessageResponse,
)
from app.services.dataset_service import DatasetService
from app.services.download_service import DownloadService
from app.services.statistics_service import StatisticsService
from db.repositories.errors import DatasetRepositoryError
from db.repositories.types import Caller, DatasetPatch

router = APIRouter(prefix="/datasets", tags=["datasets"])


# ---------------------------------------------------------------------------
# Helpers (no business logic)
# ---------------------------------------------------------------------------


def content_disposition(file_name: str) -> str:
    """
    ``attachment`` header carrying the original file name. Non-ASCII names
    get an RFC 5987 ``filename*`` alongside an ASCII fallback.
    """

    escaped = file_name.replace("\\", "\\\\").replace('"', '\\"')
    if escaped.isascii():
        return f'attachment; filename="{escaped}"'

    fallback = escaped.encode("ascii", "replace").decode("ascii")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name, safe='')}"


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None


# ---------------------------------------------------------------------------
# Create / list
# ---------------------------------------------------------------------------


@router.post("", status_code=status.HTTP_201_CREATED, response_model=DatasetResponse)
def create_dataset(
    title: str | None = Form(default=None),
    description: str | None = Form(default=None),
    type: str | None = Form(default=None),
    file: UploadFile | None = File(default=None),
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
    service: DatasetService = Depends(get_dataset_service),
) -> DatasetResponse:
    """
    Create a dataset record, storing the optional file inline with it.
    """

    try:
        dataset = service.create_dataset(
            db,
            title=title,
            description=description,
            type=type,
            owner_id=caller.user_id,
            upload=to_upload_input(file),
        )
    except DatasetRepositoryError as exc:
        raise to_http_error(exc) from exc
    finally:
        if file is not None:
            file.file.close()

    return DatasetResponse.from_record(dataset)


@router.get("", response_model=list[DatasetResponse])
def list_datasets(
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
    service: DatasetService = Depends(get_dataset_service),
) -> list[DatasetResponse]:
    try:
        datasets = service.list_datasets(db, caller=caller)
    except DatasetRepositoryError as exc:
        raise to_http_error(exc) from exc
    return [DatasetResponse.from_record(dataset) for dataset in datasets]


# ---------------------------------------------------------------------------
# Statistics (admin)
# ---------------------------------------------------------------------------


@router.get("/stats", response_model=DatasetStatsResponse)
def dataset_stats(
    _: Caller = Depends(require_admin),
    db: Session = Depends(get_db),
    service: StatisticsService = Depends(get_statistics_service),
) -> DatasetStatsResponse:
    try:
        totals = service.dataset_totals(db)
    except DatasetRepositoryError as exc:
        raise to_http_error(exc) from exc
    return DatasetStatsResponse(downloads=totals.downloads, storage=totals.storage)


@router.get("/downloads/history", response_model=list[DownloadDayResponse])
def download_history(
    _: Caller = Depends(require_admin),
    db: Session = Depends(get_db),
    service: StatisticsService = Depends(get_statistics_service),
) -> list[DownloadDayResponse]:
    try:
        days = service.download_history(db)
    except DatasetRepositoryError as exc:
        raise to_http_error(exc) from exc
    return [DownloadDayResponse(date=day.date, downloads=day.downloads) for day in days]


@router.get("/downloads/stats", response_model=DownloadStatsResponse)
def download_stats(
    days: int = Query(default=30, ge=1, le=366, description="Trailing window for the per-day series."),
    _: Caller = Depends(require_admin),
    db: Session = Depends(get_db),
    service: StatisticsService = Depends(get_statistics_service),
) -> DownloadStatsResponse:
    try:
        stats = service.download_stats(db, days=days)
    except DatasetRepositoryError as exc:
        raise to_http_error(exc) from exc
    return DownloadStatsResponse(
        total_downloads=stats.total_downloads,
        unique_users=stats.unique_users,
        unique_datasets=stats.unique_datasets,
        recent_downloads=stats.recent_downloads,
        most_downloaded=stats.most_downloaded,
        downloads_by_day=[
            DownloadDayResponse(date=day.date, downloads=day.downloads)
            for day in stats.downloads_by_day
        ],
    )


@router.get("/user/{user_id}", response_model=list[DatasetResponse])
def list_user_datasets(
    user_id: uuid.UUID,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
    service: DatasetService = Depends(get_dataset_service),
) -> list[DatasetResponse]:
    try:
        datasets = service.list_datasets(db, caller=caller, owner_id=user_id)
    except DatasetRepositoryError as exc:
        raise to_http_error(exc) from exc
    return [DatasetResponse.from_record(dataset) for dataset in datasets]


# ---------------------------------------------------------------------------
# Single dataset
# ---------------------------------------------------------------------------


@router.get("/{dataset_id}", response_model=DatasetResponse)
def get_dataset(
    dataset_id: str,
    _: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
    service: DatasetService = Depends(get_dataset_service),
) -> DatasetResponse:
    try:
        dataset = service.get_dataset(db, dataset_id)
    except DatasetRepositoryError as exc:
        raise to_http_error(exc) from exc
    return DatasetResponse.from_record(dataset)


@router.get("/{dataset_id}/download", response_class=Response)
def download_dataset(
    dataset_id: str,
    request: Request,
    user_id: str | None = Query(default=None, alias="userId"),
    db: Session = Depends(get_db),
    service: DownloadService = Depends(get_download_service),
) -> Response:
    """
    Return the stored bytes with attachment framing. Every attempt on an
    existing dataset increments its counter, including attempts on a dataset
    without a file.
    """

    try:
        payload = service.download(
            db,
            dataset_id=dataset_id,
            user_id=user_id,
            ip_address=_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
    except DatasetRepositoryError as exc:
        raise to_http_error(exc) from exc

    return Response(
        content=payload.content,
        media_type=payload.content_type,
        headers={
            "Content-Disposition": content_disposition(payload.file_name),
            "Content-Length": str(payload.content_length),
        },
    )


@router.put("/{dataset_id}", response_model=DatasetResponse)
def update_dataset(
    dataset_id: str,
    title: str | None = Form(default=None),
    description: str | None = Form(default=None),
    type: str | None = Form(default=None),
    file: UploadFile | None = File(default=None),
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
    service: DatasetService = Depends(get_dataset_service),
) -> DatasetResponse:
    """
    Apply the fields that are present; a new file replaces the stored one.
    """

    try:
        dataset = service.update_dataset(
            db,
            caller=caller,
            dataset_id=dataset_id,
            patch=DatasetPatch.from_form(title=title, description=description, type=type),
            upload=to_upload_input(file),
        )
    except DatasetRepositoryError as exc:
        raise to_http_error(exc) from exc
    finally:
        if file is not None:
            file.file.close()

    return DatasetResponse.from_record(dataset)


@router.delete("/{dataset_id}", response_model=MessageResponse)
def delete_dataset(
    dataset_id: str,
    caller: Caller = Depends(require_admin),
    db: Session = Depends(get_db),
    service: DatasetService = Depends(get_dataset_service),
) -> MessageResponse:
    try:
        service.delete_dataset(db, caller=caller, dataset_id=dataset_id)
    except DatasetRepositoryError as exc:
        raise to_http_error(exc) from exc
    return MessageResponse(message="Dataset deleted successfully")

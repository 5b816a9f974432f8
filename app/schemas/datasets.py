"""
app/schemas/datasets.py

Response schemas for dataset, statistics and profile endpoints.

No schema here has a field for file bytes; payloads leave the service only
through the download endpoint.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from app.services.statistics_service import parse_size_bytes
from db.models.dataset import Dataset
from db.models.user import User


class OwnerSummary(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    profile_image: str | None = None

    model_config = {"from_attributes": True}


class DatasetResponse(BaseModel):
    """
    Dataset metadata. ``size`` is a byte count; ``file_id`` is null when no
    file is attached.
    """

    id: uuid.UUID
    title: str
    description: str
    type: str
    size: int = Field(..., ge=0)
    downloads: int = Field(..., ge=0)
    file_id: str | None = None
    file_name: str | None = None
    file_content_type: str | None = None
    owner: OwnerSummary | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, dataset: Dataset) -> "DatasetResponse":
        size = dataset.size_bytes if dataset.size_bytes is not None else parse_size_bytes(dataset.legacy_size)
        return cls(
            id=dataset.id,
            title=dataset.title,
            description=dataset.description,
            type=dataset.type,
            size=size,
            downloads=dataset.downloads or 0,
            file_id=dataset.file_id,
            file_name=dataset.file_name,
            file_content_type=dataset.file_content_type,
            owner=OwnerSummary.model_validate(dataset.owner) if dataset.owner is not None else None,
            created_at=dataset.created_at,
            updated_at=dataset.updated_at,
        )


class DatasetStatsResponse(BaseModel):
    downloads: int = Field(..., ge=0)
    storage: int = Field(..., ge=0, description="Total stored bytes")


class DownloadDayResponse(BaseModel):
    date: str = Field(..., description="YYYY-MM-DD")
    downloads: int = Field(..., ge=0)

    model_config = {"from_attributes": True}


class RecentDownloadResponse(BaseModel):
    id: uuid.UUID
    dataset_id: uuid.UUID
    dataset_title: str | None = None
    user_id: uuid.UUID | None = None
    user_name: str | None = None
    downloaded_at: datetime
    ip_address: str | None = None
    user_agent: str | None = None


class TopDatasetResponse(BaseModel):
    id: uuid.UUID
    title: str
    downloads: int


class DownloadStatsResponse(BaseModel):
    total_downloads: int = Field(..., ge=0)
    unique_users: int = Field(..., ge=0)
    unique_datasets: int = Field(..., ge=0)
    recent_downloads: list[RecentDownloadResponse] = Field(default_factory=list)
    most_downloaded: list[TopDatasetResponse] = Field(default_factory=list)
    downloads_by_day: list[DownloadDayResponse] = Field(default_factory=list)


class UserSummaryResponse(BaseModel):
    id: uuid.UUID
    name: str
    username: str
    email: str
    role: str
    profile_image: str | None = None
    bio: str | None = None

    model_config = {"from_attributes": True}

    @classmethod
    def from_record(cls, user: User) -> "UserSummaryResponse":
        return cls.model_validate(user)


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str

"""
Typed DTOs used by intake, record-store and retrieval flows.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import BinaryIO


@dataclass(frozen=True)
class UploadFileInput:
    """
    One incoming multipart file, before validation or staging.

    declared_size is the transport's byte count when known; the staged byte
    count is authoritative either way.
    """

    file_name: str
    content_type: str | None
    stream: BinaryIO
    declared_size: int | None = None


@dataclass(frozen=True)
class StagedBlob:
    """
    A validated upload read back from the scratch area, ready to persist.
    """

    file_id: str
    file_name: str
    content_type: str
    size_bytes: int
    content: bytes


@dataclass(frozen=True)
class DatasetCreate:
    title: str
    description: str
    type: str
    owner_id: uuid.UUID | None = None


@dataclass(frozen=True)
class DatasetPatch:
    """
    Explicit partial update. A field left as None keeps its stored value.
    """

    title: str | None = None
    description: str | None = None
    type: str | None = None

    @classmethod
    def from_form(
        cls,
        *,
        title: str | None = None,
        description: str | None = None,
        type: str | None = None,
    ) -> "DatasetPatch":
        """Blank form values count as omitted, never as a request to clear."""

        def _clean(value: str | None) -> str | None:
            if value is None or not value.strip():
                return None
            return value.strip()

        return cls(title=_clean(title), description=_clean(description), type=_clean(type))

    def changes(self) -> dict[str, str]:
        values = {"title": self.title, "description": self.description, "type": self.type}
        return {key: value for key, value in values.items() if value is not None}


@dataclass(frozen=True)
class Caller:
    """
    Authenticated identity making a request.
    """

    user_id: uuid.UUID
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(frozen=True)
class DownloadPayload:
    """
    Everything needed to frame a download response.
    """

    dataset_id: uuid.UUID
    file_name: str
    content_type: str
    content: bytes

    @property
    def content_length(self) -> int:
        return len(self.content)

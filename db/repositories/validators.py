"""
Validation helpers for dataset intake flows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from db.repositories.errors import PayloadTooLargeError, UploadValidationError

MAX_DATASET_FILE_BYTES = 100 * 1024 * 1024
MAX_PROFILE_IMAGE_BYTES = 5 * 1024 * 1024

DEFAULT_CONTENT_TYPE = "application/octet-stream"

DATASET_CONTENT_TYPES = frozenset(
    {
        "text/csv",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/json",
        "text/plain",
        "application/pdf",
        "image/jpeg",
        "image/png",
        "audio/mpeg",
        "audio/wav",
        "video/mp4",
        "application/zip",
        "application/x-zip-compressed",
        "application/octet-stream",
    }
)


@dataclass(frozen=True)
class UploadPolicy:
    """
    Size ceiling and content-type rule for one intake pipeline.
    """

    name: str
    max_bytes: int
    allowed_content_types: frozenset[str] = field(default_factory=frozenset)
    allowed_prefixes: tuple[str, ...] = ()

    def allows(self, content_type: str) -> bool:
        if content_type in self.allowed_content_types:
            return True
        return any(content_type.startswith(prefix) for prefix in self.allowed_prefixes)


DATASET_UPLOAD_POLICY = UploadPolicy(
    name="dataset",
    max_bytes=MAX_DATASET_FILE_BYTES,
    allowed_content_types=DATASET_CONTENT_TYPES,
)

PROFILE_IMAGE_POLICY = UploadPolicy(
    name="profile_image",
    max_bytes=MAX_PROFILE_IMAGE_BYTES,
    allowed_prefixes=("image/",),
)


def normalize_content_type(content_type: str | None) -> str:
    """
    Lower-case and strip parameters: ``Text/CSV; charset=utf-8`` -> ``text/csv``.
    """

    if not content_type:
        return DEFAULT_CONTENT_TYPE
    base = content_type.split(";", 1)[0].strip().lower()
    return base or DEFAULT_CONTENT_TYPE


def sanitize_file_name(file_name: str | None) -> str:
    safe_name = Path((file_name or "").replace("\\", "/")).name.strip()
    if not safe_name:
        raise UploadValidationError("file name is required.")
    return safe_name


def check_size(size_bytes: int, policy: UploadPolicy) -> None:
    if size_bytes > policy.max_bytes:
        raise PayloadTooLargeError(
            f"File exceeds the {policy.max_bytes // (1024 * 1024)} MB limit "
            f"for {policy.name} uploads."
        )


def validate_upload(
    *,
    file_name: str | None,
    content_type: str | None,
    declared_size: int | None,
    policy: UploadPolicy,
) -> tuple[str, str]:
    """
    Validate upload metadata before anything touches disk.

    Returns the sanitized file name and normalized content type. The content
    type is checked before the size so a disallowed type is always reported
    as such, whatever its length.
    """

    safe_name = sanitize_file_name(file_name)

    normalized_type = normalize_content_type(content_type)
    if not policy.allows(normalized_type):
        raise UploadValidationError(f"File type '{normalized_type}' is not allowed.")

    if declared_size is not None:
        check_size(declared_size, policy)

    return safe_name, normalized_type


def validate_dataset_fields(*, title: str | None, description: str | None, type: str | None) -> None:
    if any(value is None or not value.strip() for value in (title, description, type)):
        raise UploadValidationError("Title, description, and type are required.")

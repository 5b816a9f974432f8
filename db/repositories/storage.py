"""
Scratch-area staging for uploaded files.

An upload is copied to a uniquely named scratch file, size-checked while it is
copied, read back into memory and handed to the caller. The scratch file is
removed when the staging context exits, on success and failure alike.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import timedelta
from pathlib import Path
from typing import BinaryIO

from db.repositories.errors import FileStorageError, PayloadTooLargeError
from db.repositories.types import StagedBlob, UploadFileInput
from db.repositories.validators import UploadPolicy, check_size, validate_upload

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_BYTES = 1024 * 1024


def new_file_id() -> str:
    """Opaque client-visible "has file" token; carries no addressing meaning."""
    return uuid.uuid4().hex


class ScratchStorage:
    """
    Local scratch directory used between receipt and commit of an upload.
    """

    def __init__(self, root_dir: str | Path = "data/scratch", *, chunk_bytes: int = DEFAULT_CHUNK_BYTES) -> None:
        self._root_dir = Path(root_dir)
        self._chunk_bytes = max(1, chunk_bytes)

    @property
    def root_dir(self) -> Path:
        return self._root_dir

    @contextmanager
    def staged(self, upload: UploadFileInput, *, policy: UploadPolicy) -> Iterator[StagedBlob]:
        """
        Validate, stage and read back one upload.

        Callers persist the yielded blob inside the ``with`` block; the scratch
        file is deleted only after the block exits, so bytes are durably
        committed before their staged copy disappears.
        """

        file_name, content_type = validate_upload(
            file_name=upload.file_name,
            content_type=upload.content_type,
            declared_size=upload.declared_size,
            policy=policy,
        )

        scratch_path = self._root_dir / f"{uuid.uuid4().hex}{Path(file_name).suffix.lower()}"
        try:
            size_bytes = self._copy_to_scratch(upload.stream, scratch_path, policy)
            try:
                content = scratch_path.read_bytes()
            except OSError as exc:
                raise FileStorageError("Failed to read staged upload.") from exc

            logger.info(
                "Staged upload file_name=%r content_type=%r size_bytes=%d policy=%s",
                file_name,
                content_type,
                size_bytes,
                policy.name,
            )
            yield StagedBlob(
                file_id=new_file_id(),
                file_name=file_name,
                content_type=content_type,
                size_bytes=len(content),
                content=content,
            )
        finally:
            self.discard(scratch_path)

    def _copy_to_scratch(self, stream: BinaryIO, target: Path, policy: UploadPolicy) -> int:
        """
        Copy in chunks, aborting as soon as the running total passes the ceiling.
        """

        written = 0
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if hasattr(stream, "seek"):
                stream.seek(0)
            with target.open("wb") as handle:
                while True:
                    chunk = stream.read(self._chunk_bytes)
                    if not chunk:
                        break
                    written += len(chunk)
                    check_size(written, policy)
                    handle.write(chunk)
        except PayloadTooLargeError:
            logger.warning(
                "Rejected upload over %d bytes for policy=%s", policy.max_bytes, policy.name
            )
            raise
        except OSError as exc:
            raise FileStorageError("Failed to write upload to scratch storage.") from exc
        return written

    def discard(self, path: Path) -> None:
        """Remove one scratch file. Failures are logged, never raised."""
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.error("Failed to delete scratch file %s: %s", path, exc)

    def sweep(self, max_age: timedelta) -> int:
        """
        Delete scratch files older than ``max_age``; returns how many were removed.

        Staged files normally vanish when their request ends. Anything older
        than a request could plausibly take was orphaned by a crashed process.
        """

        if not self._root_dir.is_dir():
            return 0

        cutoff = time.time() - max_age.total_seconds()
        removed = 0
        for entry in self._root_dir.iterdir():
            try:
                if not entry.is_file() or entry.stat().st_mtime >= cutoff:
                    continue
                entry.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.error("Failed to sweep scratch file %s: %s", entry, exc)
        return removed

"""
app/config.py

Process settings for auth, upload staging and the scratch sweep. Each group
is read from the environment once and cached.

    JWT_SECRET                        required
    JWT_ALGORITHM                     HS256
    UPLOAD_SCRATCH_DIR                data/scratch
    UPLOAD_CHUNK_BYTES                1 MiB, floor 4096
    SCRATCH_SWEEP_ENABLED             true
    SCRATCH_SWEEP_INTERVAL_MINUTES    30
    SCRATCH_MAX_AGE_MINUTES           60
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import get_bool_env, get_int_env, load_env_files


@lru_cache(maxsize=1)
def _ensure_env_loaded() -> None:
    load_env_files()


def _text(name: str, default: str = "") -> str:
    _ensure_env_loaded()
    return os.getenv(name, "").strip() or default


def _number(name: str, default: int, *, floor: int) -> int:
    _ensure_env_loaded()
    return max(floor, get_int_env(name, default))


@dataclass(frozen=True)
class AuthSettings:
    """
    Bearer-token verification settings. Tokens are issued elsewhere.
    """

    jwt_secret: str
    jwt_algorithm: str = "HS256"


@dataclass(frozen=True)
class UploadSettings:
    scratch_dir: str = "data/scratch"
    chunk_bytes: int = 1024 * 1024


@dataclass(frozen=True)
class ScratchSweepSettings:
    """
    Periodic removal of scratch files orphaned by crashed requests.
    """

    enabled: bool = True
    interval_minutes: int = 30
    max_age_minutes: int = 60


@lru_cache(maxsize=1)
def get_auth_settings() -> AuthSettings:
    """
    Raises RuntimeError when JWT_SECRET is unset or blank.
    """

    secret = _text("JWT_SECRET")
    if not secret:
        raise RuntimeError("JWT_SECRET must be set.")
    return AuthSettings(jwt_secret=secret, jwt_algorithm=_text("JWT_ALGORITHM", "HS256"))


@lru_cache(maxsize=1)
def get_upload_settings() -> UploadSettings:
    return UploadSettings(
        scratch_dir=_text("UPLOAD_SCRATCH_DIR", "data/scratch"),
        chunk_bytes=_number("UPLOAD_CHUNK_BYTES", 1024 * 1024, floor=4096),
    )


@lru_cache(maxsize=1)
def get_scratch_sweep_settings() -> ScratchSweepSettings:
    _ensure_env_loaded()
    return ScratchSweepSettings(
        enabled=get_bool_env("SCRATCH_SWEEP_ENABLED", True),
        interval_minutes=_number("SCRATCH_SWEEP_INTERVAL_MINUTES", 30, floor=1),
        max_age_minutes=_number("SCRATCH_MAX_AGE_MINUTES", 60, floor=1),
    )

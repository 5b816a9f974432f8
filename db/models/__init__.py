"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.dataset import Dataset
from db.models.download_event import DownloadEvent
from db.models.user import User, UserRole

__all__ = [
    "Dataset",
    "DownloadEvent",
    "User",
    "UserRole",
]

"""
app/services package marker.
"""

from app.services.dataset_service import DatasetService, parse_dataset_id
from app.services.download_service import DownloadService
from app.services.profile_image_service import ProfileImageService
from app.services.statistics_service import StatisticsService, parse_size_bytes

__all__ = [
    "DatasetService",
    "DownloadService",
    "ProfileImageService",
    "StatisticsService",
    "parse_dataset_id",
    "parse_size_bytes",
]

"""
app/schemas package marker.
"""

from app.schemas.datasets import (
    DatasetResponse,
    DatasetStatsResponse,
    DownloadDayResponse,
    DownloadStatsResponse,
    ErrorResponse,
    MessageResponse,
    OwnerSummary,
    UserSummaryResponse,
)

__all__ = [
    "DatasetResponse",
    "DatasetStatsResponse",
    "DownloadDayResponse",
    "DownloadStatsResponse",
    "ErrorResponse",
    "MessageResponse",
    "OwnerSummary",
    "UserSummaryResponse",
]

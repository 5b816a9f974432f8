"""
app/api/routers package marker.
"""

from app.api.routers.dataset_router import router as dataset_router
from app.api.routers.user_router import router as user_router

__all__ = [
    "dataset_router",
    "user_router",
]

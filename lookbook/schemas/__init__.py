from lookbook.schemas.dashboard import DashboardStatsResponse
from lookbook.schemas.image_generation import (
    CleanupResultResponse,
    GenerateImageRequest,
    GenerateImageResponse,
)

__all__ = [
    "CleanupResultResponse",
    "DashboardStatsResponse",
    "GenerateImageRequest",
    "GenerateImageResponse",
]

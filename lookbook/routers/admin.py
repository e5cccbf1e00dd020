from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from lookbook.auth.dependencies import require_internal_api_token
from lookbook.db.deps import get_session
from lookbook.routers.image_generation import get_media_storage
from lookbook.schemas.dashboard import DashboardStatsResponse
from lookbook.schemas.image_generation import CleanupResultResponse
from lookbook.services.dashboard import DashboardService
from lookbook.services.image_cleanup import ImageCleanupService
from lookbook.services.media_storage import MediaStorage

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_internal_api_token)],
)


@router.get("/dashboard/stats", response_model=DashboardStatsResponse)
def get_dashboard_stats(session: Session = Depends(get_session)):
    return DashboardService(session).get_stats()


@router.post("/generated-images/cleanup", response_model=CleanupResultResponse)
def cleanup_generated_images(
    session: Session = Depends(get_session),
    storage: MediaStorage = Depends(get_media_storage),
):
    result = ImageCleanupService(session, storage=storage).delete_expired_images()
    return CleanupResultResponse(candidates=result.candidates, purged=result.purged, failed=result.failed)

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session

from lookbook.config import settings
from lookbook.db.repositories.generated_images import GeneratedImagesRepository
from lookbook.services.media_storage import MediaStorage

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def retention_expires_at(now: Optional[datetime] = None, *, hours: Optional[int] = None) -> datetime:
    base = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    retention_hours = int(hours if hours is not None else settings.IMAGE_RETENTION_HOURS)
    return base + timedelta(hours=retention_hours)


@dataclass(frozen=True)
class CleanupResult:
    candidates: int
    purged: int
    failed: int


class ImageCleanupService:
    """
    Removes expired generated images from storage.

    The generated_images row is kept for analytics; only its storage location is cleared,
    which also drops it out of future sweeps.
    """

    def __init__(self, session: Session, *, storage: Optional[MediaStorage] = None) -> None:
        self.session = session
        self.images = GeneratedImagesRepository(session)
        self._storage = storage

    @property
    def storage(self) -> MediaStorage:
        if self._storage is None:
            self._storage = MediaStorage()
        return self._storage

    def schedule_deletion(self, image_id: Any, *, now: Optional[datetime] = None) -> Optional[datetime]:
        expires_at = retention_expires_at(now)
        record = self.images.set_expires_at(image_id, expires_at)
        if record is None:
            logger.warning("image_cleanup.schedule_missing_record", extra={"image_id": str(image_id)})
            return None
        return expires_at

    def list_candidates(self, *, now: Optional[datetime] = None):
        cutoff = _as_utc(now) if now is not None else datetime.now(timezone.utc)
        return self.images.list_expired_with_storage(cutoff)

    def delete_expired_images(self, *, now: Optional[datetime] = None) -> CleanupResult:
        candidates = self.list_candidates(now=now)
        if not candidates:
            logger.info("image_cleanup.no_candidates")
            return CleanupResult(candidates=0, purged=0, failed=0)

        # Bind the storage client only when there is work to do.
        storage = self.storage
        purged = 0
        failed = 0
        for record in candidates:
            image_id = record.id
            image_path = record.image_path
            try:
                storage.delete(image_path)
                self.images.clear_storage_location(image_id)
            except Exception:  # noqa: BLE001
                self.session.rollback()
                failed += 1
                logger.exception(
                    "image_cleanup.delete_failed",
                    extra={"image_id": str(image_id), "image_path": image_path},
                )
                continue
            purged += 1
            logger.info("image_cleanup.purged", extra={"image_id": str(image_id), "image_path": image_path})

        logger.info(
            "image_cleanup.completed",
            extra={"candidates": len(candidates), "purged": purged, "failed": failed},
        )
        return CleanupResult(candidates=len(candidates), purged=purged, failed=failed)

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from lookbook.db.enums import CatalogKindEnum, GenerationStatusEnum
from lookbook.db.repositories.catalog import CatalogRepository, parse_entry_id
from lookbook.db.repositories.generated_images import GeneratedImagesRepository
from lookbook.schemas.dashboard import (
    CommonError,
    DashboardStatsResponse,
    EntityCounts,
    GeneratedImagesStats,
    TopItem,
)

TOP_ITEMS_LIMIT = 10
COMMON_ERRORS_LIMIT = 5

_TOP_ITEM_SOURCES = (
    ("top_industries", "industry_id", CatalogKindEnum.industry),
    ("top_categories", "category_id", CatalogKindEnum.category),
    ("top_product_types", "product_type_id", CatalogKindEnum.product_type),
    ("top_product_poses", "product_pose_id", CatalogKindEnum.product_pose),
    ("top_product_themes", "product_theme_id", CatalogKindEnum.product_theme),
    ("top_product_backgrounds", "product_background_id", CatalogKindEnum.product_background),
    ("top_ai_faces", "ai_face_id", CatalogKindEnum.ai_face),
)


def _percentage(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return round(part / whole * 100, 2)


class DashboardService:
    def __init__(self, session: Session) -> None:
        self.session = session
        self.images = GeneratedImagesRepository(session)

    def generation_stats(self, *, now: Optional[datetime] = None) -> GeneratedImagesStats:
        current = now or datetime.now(timezone.utc)
        total = self.images.count()
        successful = self.images.count(status=GenerationStatusEnum.success)
        failed = self.images.count(status=GenerationStatusEnum.failed)
        return GeneratedImagesStats(
            total=total,
            successful=successful,
            failed=failed,
            success_rate=_percentage(successful, total),
            average_generation_time=int(round(self.images.average_generation_time_ms())),
            last_24_hours=self.images.count(created_after=current - timedelta(hours=24)),
            last_7_days=self.images.count(created_after=current - timedelta(days=7)),
            last_30_days=self.images.count(created_after=current - timedelta(days=30)),
        )

    def entity_counts(self) -> EntityCounts:
        def count(kind: CatalogKindEnum) -> int:
            return CatalogRepository.for_kind(self.session, kind).count_active()

        return EntityCounts(
            industries=count(CatalogKindEnum.industry),
            categories=count(CatalogKindEnum.category),
            product_types=count(CatalogKindEnum.product_type),
            product_poses=count(CatalogKindEnum.product_pose),
            product_themes=count(CatalogKindEnum.product_theme),
            product_backgrounds=count(CatalogKindEnum.product_background),
            ai_faces=count(CatalogKindEnum.ai_face),
        )

    def top_items(self, column: str, kind: CatalogKindEnum) -> list[TopItem]:
        """Most referenced catalog entries for one column.

        Names come from the catalog including soft-deleted rows; ids that match no row
        (malformed or hard-deleted) are left out, and percentages are shares of the
        remaining entries.
        """
        usage = self.images.top_references(column, limit=TOP_ITEMS_LIMIT)
        if not usage:
            return []
        names = CatalogRepository.for_kind(self.session, kind).names_by_id([entry_id for entry_id, _ in usage])
        known = []
        for entry_id, count in usage:
            parsed = parse_entry_id(entry_id)
            if parsed is not None and str(parsed) in names:
                known.append((str(parsed), count))
        total = sum(count for _, count in known)
        return [
            TopItem(
                id=entry_id,
                name=names[entry_id] or "Unnamed",
                count=count,
                percentage=_percentage(count, total),
            )
            for entry_id, count in known
        ]

    def common_errors(self) -> list[CommonError]:
        return [
            CommonError(message=message or "Unknown error", count=count)
            for message, count in self.images.common_errors(limit=COMMON_ERRORS_LIMIT)
        ]

    def get_stats(self, *, now: Optional[datetime] = None) -> DashboardStatsResponse:
        top = {field: self.top_items(column, kind) for field, column, kind in _TOP_ITEM_SOURCES}
        return DashboardStatsResponse(
            generated_images=self.generation_stats(now=now),
            entity_counts=self.entity_counts(),
            common_errors=self.common_errors(),
            **top,
        )

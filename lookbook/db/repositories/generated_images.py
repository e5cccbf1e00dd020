from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from lookbook.db.enums import GenerationStatusEnum
from lookbook.db.models import GeneratedImage
from lookbook.db.repositories.base import Repository

# Catalog reference columns on generated_images, in validation order.
REFERENCE_COLUMNS = (
    "industry_id",
    "category_id",
    "product_type_id",
    "product_pose_id",
    "product_theme_id",
    "product_background_id",
    "ai_face_id",
)


class GeneratedImagesRepository(Repository):
    def __init__(self, session: Session) -> None:
        super().__init__(session)

    def get(self, image_id: Any) -> Optional[GeneratedImage]:
        stmt = select(GeneratedImage).where(GeneratedImage.id == image_id)
        return self.session.scalars(stmt).first()

    def create(
        self,
        *,
        references: dict[str, str],
        generation_status: GenerationStatusEnum,
        generation_time_ms: int,
        image_url: Optional[str] = None,
        image_path: Optional[str] = None,
        error_message: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        user_id: Any = None,
    ) -> GeneratedImage:
        record = GeneratedImage(
            user_id=user_id,
            image_url=image_url,
            image_path=image_path,
            generation_status=generation_status,
            error_message=error_message,
            generation_time_ms=generation_time_ms,
            expires_at=expires_at,
            **{column: references[column] for column in REFERENCE_COLUMNS},
        )
        return self.save(record)

    def set_expires_at(self, image_id: Any, expires_at: datetime) -> Optional[GeneratedImage]:
        record = self.get(image_id)
        if not record:
            return None
        record.expires_at = expires_at
        return self.save(record)

    def list_expired_with_storage(self, now: datetime) -> List[GeneratedImage]:
        stmt = (
            select(GeneratedImage)
            .where(GeneratedImage.expires_at < now, GeneratedImage.image_path.is_not(None))
            .order_by(GeneratedImage.expires_at.asc())
        )
        return list(self.session.scalars(stmt).all())

    def clear_storage_location(self, image_id: Any) -> None:
        self.session.execute(
            update(GeneratedImage)
            .where(GeneratedImage.id == image_id)
            .values(image_url=None, image_path=None)
        )
        self.session.commit()

    # Analytics

    def count(
        self,
        *,
        status: Optional[GenerationStatusEnum] = None,
        created_after: Optional[datetime] = None,
    ) -> int:
        stmt = select(func.count()).select_from(GeneratedImage)
        if status is not None:
            stmt = stmt.where(GeneratedImage.generation_status == status)
        if created_after is not None:
            stmt = stmt.where(GeneratedImage.created_at > created_after)
        return int(self.session.scalar(stmt) or 0)

    def average_generation_time_ms(self) -> float:
        stmt = select(func.avg(GeneratedImage.generation_time_ms)).where(
            GeneratedImage.generation_time_ms.is_not(None)
        )
        value = self.session.scalar(stmt)
        return float(value) if value is not None else 0.0

    def top_references(self, column: str, limit: int = 10) -> list[tuple[str, int]]:
        if column not in REFERENCE_COLUMNS:
            raise ValueError(f"Unknown reference column: {column}")
        col = getattr(GeneratedImage, column)
        usage = func.count().label("usage")
        stmt = (
            select(col, usage)
            .where(col.is_not(None))
            .group_by(col)
            .order_by(usage.desc(), col.asc())
            .limit(limit)
        )
        return [(str(value), int(count)) for value, count in self.session.execute(stmt).all()]

    def common_errors(self, limit: int = 10) -> list[tuple[str, int]]:
        occurrences = func.count().label("occurrences")
        stmt = (
            select(GeneratedImage.error_message, occurrences)
            .where(
                GeneratedImage.generation_status == GenerationStatusEnum.failed,
                GeneratedImage.error_message.is_not(None),
            )
            .group_by(GeneratedImage.error_message)
            .order_by(occurrences.desc(), GeneratedImage.error_message.asc())
            .limit(limit)
        )
        return [(str(message), int(count)) for message, count in self.session.execute(stmt).all()]

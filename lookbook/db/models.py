from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

import sqlalchemy as sa
from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from lookbook.db.base import Base
from lookbook.db.enums import GenerationStatusEnum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CatalogEntryMixin:
    """Columns shared by every admin-managed catalog table.

    Rows are soft-deleted by the admin subsystem (``deleted_at`` set); the
    generation pipeline only ever reads them.
    """

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid(), primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=sa.true())
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class Industry(CatalogEntryMixin, Base):
    __tablename__ = "industries"


class Category(CatalogEntryMixin, Base):
    __tablename__ = "categories"

    industry_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("industries.id", ondelete="SET NULL"), nullable=True
    )


class ProductType(CatalogEntryMixin, Base):
    __tablename__ = "product_types"

    category_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )


class ProductPose(CatalogEntryMixin, Base):
    __tablename__ = "product_poses"


class ProductTheme(CatalogEntryMixin, Base):
    __tablename__ = "product_themes"


class ProductBackground(CatalogEntryMixin, Base):
    __tablename__ = "product_backgrounds"


class AiFace(CatalogEntryMixin, Base):
    __tablename__ = "ai_faces"


class GeneratedImage(Base):
    """One row per generation attempt. Never deleted; the sweep only clears url/path."""

    __tablename__ = "generated_images"
    __table_args__ = (
        Index("idx_generated_images_created_at", "created_at"),
        Index("idx_generated_images_generation_status", "generation_status"),
        Index("idx_generated_images_industry_id", "industry_id"),
        Index("idx_generated_images_product_type_id", "product_type_id"),
        Index("idx_generated_images_expires_at", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid(), primary_key=True, default=uuid4)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(sa.Uuid(), nullable=True)

    # Stored as supplied by the caller so that failed attempts with bad ids are still logged.
    industry_id: Mapped[str] = mapped_column(Text, nullable=False)
    category_id: Mapped[str] = mapped_column(Text, nullable=False)
    product_type_id: Mapped[str] = mapped_column(Text, nullable=False)
    product_pose_id: Mapped[str] = mapped_column(Text, nullable=False)
    product_theme_id: Mapped[str] = mapped_column(Text, nullable=False)
    product_background_id: Mapped[str] = mapped_column(Text, nullable=False)
    ai_face_id: Mapped[str] = mapped_column(Text, nullable=False)

    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    generation_status: Mapped[GenerationStatusEnum] = mapped_column(
        Enum(GenerationStatusEnum, name="generation_status"),
        nullable=False,
        default=GenerationStatusEnum.success,
        server_default=GenerationStatusEnum.success.value,
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    generation_time_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )

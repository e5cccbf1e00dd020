from __future__ import annotations

import uuid
from typing import Generic, Optional, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from lookbook.db.enums import CatalogKindEnum
from lookbook.db.models import (
    AiFace,
    Category,
    Industry,
    ProductBackground,
    ProductPose,
    ProductTheme,
    ProductType,
)
from lookbook.db.repositories.base import Repository

CatalogEntry = TypeVar(
    "CatalogEntry",
    Industry,
    Category,
    ProductType,
    ProductPose,
    ProductTheme,
    ProductBackground,
    AiFace,
)

CATALOG_MODELS: dict[CatalogKindEnum, type] = {
    CatalogKindEnum.industry: Industry,
    CatalogKindEnum.category: Category,
    CatalogKindEnum.product_type: ProductType,
    CatalogKindEnum.product_pose: ProductPose,
    CatalogKindEnum.product_theme: ProductTheme,
    CatalogKindEnum.product_background: ProductBackground,
    CatalogKindEnum.ai_face: AiFace,
}


def parse_entry_id(entry_id: str | uuid.UUID) -> Optional[uuid.UUID]:
    if isinstance(entry_id, uuid.UUID):
        return entry_id
    try:
        return uuid.UUID(str(entry_id).strip())
    except (TypeError, ValueError):
        return None


class CatalogRepository(Repository, Generic[CatalogEntry]):
    """Keyed lookups against one catalog table.

    Soft-delete handling is explicit: ``get_active`` filters ``deleted_at IS NULL``,
    ``get_including_deleted`` does not. Ids that are not valid UUIDs resolve to None.
    """

    def __init__(self, session: Session, model: type[CatalogEntry]) -> None:
        super().__init__(session)
        self.model = model

    @classmethod
    def for_kind(cls, session: Session, kind: CatalogKindEnum) -> "CatalogRepository":
        return cls(session, CATALOG_MODELS[kind])

    def get_active(self, entry_id: str | uuid.UUID) -> Optional[CatalogEntry]:
        parsed = parse_entry_id(entry_id)
        if parsed is None:
            return None
        stmt = select(self.model).where(self.model.id == parsed, self.model.deleted_at.is_(None))
        return self.session.scalars(stmt).first()

    def get_including_deleted(self, entry_id: str | uuid.UUID) -> Optional[CatalogEntry]:
        parsed = parse_entry_id(entry_id)
        if parsed is None:
            return None
        stmt = select(self.model).where(self.model.id == parsed)
        return self.session.scalars(stmt).first()

    def names_by_id(self, entry_ids: list[str]) -> dict[str, str]:
        parsed = {str(p): p for p in (parse_entry_id(entry_id) for entry_id in entry_ids) if p is not None}
        if not parsed:
            return {}
        stmt = select(self.model.id, self.model.name).where(self.model.id.in_(list(parsed.values())))
        return {str(row_id): name for row_id, name in self.session.execute(stmt).all()}

    def count_active(self) -> int:
        stmt = select(func.count()).select_from(self.model).where(self.model.deleted_at.is_(None))
        return int(self.session.scalar(stmt) or 0)

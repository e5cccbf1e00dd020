import uuid
from datetime import datetime, timezone

from lookbook.db.enums import CatalogKindEnum
from lookbook.db.models import ProductTheme
from lookbook.db.repositories.catalog import CatalogRepository, parse_entry_id


def test_parse_entry_id():
    value = uuid.uuid4()
    assert parse_entry_id(str(value)) == value
    assert parse_entry_id(f"  {value}  ") == value
    assert parse_entry_id("not-a-uuid") is None


def test_get_active_hides_soft_deleted_rows(db_session):
    live = ProductTheme(name="Summer")
    gone = ProductTheme(name="Winter", deleted_at=datetime.now(timezone.utc))
    db_session.add_all([live, gone])
    db_session.commit()

    repo = CatalogRepository.for_kind(db_session, CatalogKindEnum.product_theme)
    assert repo.get_active(str(live.id)).name == "Summer"
    assert repo.get_active(str(gone.id)) is None
    assert repo.get_including_deleted(str(gone.id)).name == "Winter"
    assert repo.get_active("not-a-uuid") is None
    assert repo.get_active(str(uuid.uuid4())) is None
    assert repo.count_active() == 1


def test_names_by_id_includes_soft_deleted_rows(db_session):
    live = ProductTheme(name="Summer")
    gone = ProductTheme(name="Winter", deleted_at=datetime.now(timezone.utc))
    db_session.add_all([live, gone])
    db_session.commit()

    repo = CatalogRepository.for_kind(db_session, CatalogKindEnum.product_theme)
    names = repo.names_by_id([str(live.id), str(gone.id), "junk"])
    assert names == {str(live.id): "Summer", str(gone.id): "Winter"}

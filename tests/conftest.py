import os
import sys
import tempfile
import uuid
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

_TEST_DB_PATH = Path(tempfile.gettempdir()) / f"lookbook-tests-{os.getpid()}.db"
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TEST_DB_PATH}")
os.environ.setdefault("INTERNAL_API_TOKEN", "test-internal-token")
os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")
os.environ.setdefault("MEDIA_STORAGE_BUCKET", "test-bucket")
os.environ.setdefault("MEDIA_STORAGE_ACCESS_KEY", "test-access-key")
os.environ.setdefault("MEDIA_STORAGE_SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient

from lookbook.db.base import Base, SessionLocal, engine, init_db
from lookbook.db.models import (
    AiFace,
    Category,
    Industry,
    ProductBackground,
    ProductPose,
    ProductTheme,
    ProductType,
)
from lookbook.main import app
from lookbook.routers.image_generation import get_image_client, get_media_storage
from lookbook.services.gemini_images import GeneratedImageData
from lookbook.services.media_storage import MediaObjectNotFoundError, MediaStorageError

TEST_BUCKET = "test-bucket"
PUBLIC_PREFIX = f"https://storage.googleapis.com/{TEST_BUCKET}/"
INTERNAL_TOKEN = "test-internal-token"
# "product-image" in base64
PRODUCT_IMAGE_B64 = "cHJvZHVjdC1pbWFnZQ=="


@pytest.fixture(scope="session", autouse=True)
def create_schema():
    init_db()
    yield
    engine.dispose()
    if _TEST_DB_PATH.exists():
        _TEST_DB_PATH.unlink()


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture()
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


class FakeMediaStorage:
    """In-memory stand-in for MediaStorage keyed by object path."""

    def __init__(self) -> None:
        self.bucket = TEST_BUCKET
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.uploads: list[str] = []
        self.deleted: list[str] = []
        self.failing_deletes: set[str] = set()
        self.fail_uploads = False

    def public_url(self, path: str) -> str:
        return f"{PUBLIC_PREFIX}{path.lstrip('/')}"

    def extract_path(self, path_or_url: str) -> str:
        if path_or_url.startswith(PUBLIC_PREFIX):
            return path_or_url[len(PUBLIC_PREFIX):]
        return path_or_url.lstrip("/")

    def put(self, path: str, data: bytes, content_type: str = "image/jpeg") -> str:
        self.objects[path] = (data, content_type)
        return self.public_url(path)

    def upload_public(self, *, data: bytes, path: str, content_type: str, cache_control=None) -> str:
        if self.fail_uploads:
            raise MediaStorageError("Failed to upload file: simulated outage")
        self.uploads.append(path)
        return self.put(path, data, content_type)

    def download(self, path_or_url: str) -> bytes:
        key = self.extract_path(path_or_url)
        if key not in self.objects:
            raise MediaObjectNotFoundError(f"File not found: {key}")
        return self.objects[key][0]

    def delete(self, path: str) -> None:
        key = self.extract_path(path)
        if key in self.failing_deletes:
            raise MediaStorageError(f"Failed to delete file: {key}")
        self.deleted.append(key)
        self.objects.pop(key, None)


class FakeImageClient:
    def __init__(self) -> None:
        self.calls: list[list] = []
        self.error: Exception | None = None
        self.result = GeneratedImageData(content=b"generated-image", mime_type="image/jpeg")

    def generate_composite_image(self, reference_images, prompt=None) -> GeneratedImageData:
        self.calls.append(list(reference_images))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture()
def fake_storage() -> FakeMediaStorage:
    return FakeMediaStorage()


@pytest.fixture()
def fake_image_client() -> FakeImageClient:
    return FakeImageClient()


def seed_catalog(session, storage) -> dict[str, str]:
    """One active entry per catalog table; pose and background have stored images."""
    industry = Industry(name="Apparel")
    session.add(industry)
    session.flush()
    category = Category(name="Tops", industry_id=industry.id)
    session.add(category)
    session.flush()
    product_type = ProductType(name="T-Shirt", category_id=category.id)
    pose = ProductPose(name="Standing", image_path="catalog/poses/standing.jpg")
    theme = ProductTheme(name="Summer")
    background = ProductBackground(name="Beach", image_path="catalog/backgrounds/beach.png")
    face = AiFace(name="Model A", image_path="catalog/faces/a.jpg")
    session.add_all([product_type, pose, theme, background, face])
    session.commit()

    storage.put("catalog/poses/standing.jpg", b"pose-bytes")
    storage.put("catalog/backgrounds/beach.png", b"background-bytes", "image/png")

    return {
        "industry_id": str(industry.id),
        "category_id": str(category.id),
        "product_type_id": str(product_type.id),
        "product_pose_id": str(pose.id),
        "product_theme_id": str(theme.id),
        "product_background_id": str(background.id),
        "ai_face_id": str(face.id),
    }


@pytest.fixture()
def catalog(db_session, fake_storage) -> dict[str, str]:
    return seed_catalog(db_session, fake_storage)


def build_payload(catalog: dict[str, str], **overrides) -> dict[str, str]:
    payload = {
        "industryId": catalog["industry_id"],
        "categoryId": catalog["category_id"],
        "productTypeId": catalog["product_type_id"],
        "productPoseId": catalog["product_pose_id"],
        "productThemeId": catalog["product_theme_id"],
        "productBackgroundId": catalog["product_background_id"],
        "aiFaceId": catalog["ai_face_id"],
        "productImage": f"data:image/png;base64,{PRODUCT_IMAGE_B64}",
        "productImageMimeType": "image/png",
    }
    payload.update(overrides)
    return payload


def random_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture()
def api_client(fake_storage, fake_image_client):
    app.dependency_overrides[get_media_storage] = lambda: fake_storage
    app.dependency_overrides[get_image_client] = lambda: fake_image_client
    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {INTERNAL_TOKEN}"}

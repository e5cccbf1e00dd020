from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from conftest import build_payload, random_id
from lookbook.config import settings
from lookbook.db.enums import GenerationStatusEnum
from lookbook.db.models import GeneratedImage
from lookbook.services.errors import GENERATION_RATE_LIMITED, INVALID_PRODUCT_IMAGE
from lookbook.services.gemini_images import ImageModelRateLimitError


def test_health(api_client):
    assert api_client.get("/health").json() == {"ok": True}
    assert api_client.get("/health/db").json() == {"db": "ok"}


def test_generate_image_returns_public_url(api_client, catalog, fake_storage, db_session):
    resp = api_client.post("/webapp/generate-image", json=build_payload(catalog))
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["success"] is True
    assert data["message"] == "Image generated successfully"
    assert data["imageUrl"].startswith("https://storage.googleapis.com/test-bucket/generated-images/")
    assert data["imageUrl"].endswith("/image.jpg")
    assert datetime.fromisoformat(data["expiresAt"].replace("Z", "+00:00")) > datetime.now(timezone.utc) + timedelta(
        hours=5
    )

    [path] = fake_storage.uploads
    assert data["imageUrl"] == fake_storage.public_url(path)
    row = db_session.scalars(select(GeneratedImage)).one()
    assert row.generation_status == GenerationStatusEnum.success


def test_generate_image_unknown_reference_is_404(api_client, catalog, db_session):
    resp = api_client.post("/webapp/generate-image", json=build_payload(catalog, productPoseId=random_id()))
    assert resp.status_code == 404
    assert resp.json() == {"detail": "Product pose not found"}
    row = db_session.scalars(select(GeneratedImage)).one()
    assert row.generation_status == GenerationStatusEnum.failed


def test_generate_image_invalid_image_is_400(api_client, catalog):
    resp = api_client.post("/webapp/generate-image", json=build_payload(catalog, productImage="***"))
    assert resp.status_code == 400
    assert resp.json() == {"detail": INVALID_PRODUCT_IMAGE}


def test_generate_image_model_rate_limit_is_400(api_client, catalog, fake_image_client):
    fake_image_client.error = ImageModelRateLimitError(GENERATION_RATE_LIMITED)
    resp = api_client.post("/webapp/generate-image", json=build_payload(catalog))
    assert resp.status_code == 400
    assert resp.json() == {"detail": GENERATION_RATE_LIMITED}


def test_generate_image_requires_every_field(api_client, catalog):
    payload = build_payload(catalog)
    payload.pop("aiFaceId")
    assert api_client.post("/webapp/generate-image", json=payload).status_code == 422

    assert api_client.post("/webapp/generate-image", json=build_payload(catalog, industryId="")).status_code == 422


def test_admin_endpoints_require_token(api_client):
    assert api_client.get("/admin/dashboard/stats").status_code == 401
    resp = api_client.get("/admin/dashboard/stats", headers={"Authorization": "Bearer wrong-token"})
    assert resp.status_code == 401
    assert api_client.post("/admin/generated-images/cleanup").status_code == 401


def test_admin_endpoints_unavailable_without_configured_token(api_client, admin_headers, monkeypatch):
    monkeypatch.setattr(settings, "INTERNAL_API_TOKEN", None)
    assert api_client.get("/admin/dashboard/stats", headers=admin_headers).status_code == 503


def test_dashboard_stats(api_client, admin_headers, catalog):
    api_client.post("/webapp/generate-image", json=build_payload(catalog))
    api_client.post("/webapp/generate-image", json=build_payload(catalog, industryId=random_id()))

    resp = api_client.get("/admin/dashboard/stats", headers=admin_headers)
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["generatedImages"]["total"] == 2
    assert data["generatedImages"]["successful"] == 1
    assert data["generatedImages"]["successRate"] == 50.0
    assert data["entityCounts"]["industries"] == 1
    assert data["topAiFaces"][0]["name"] == "Model A"
    assert data["topAiFaces"][0]["count"] == 2
    assert data["commonErrors"] == [{"message": "Industry not found", "count": 1}]


def test_cleanup_endpoint_purges_expired_images(api_client, admin_headers, catalog, fake_storage, db_session):
    api_client.post("/webapp/generate-image", json=build_payload(catalog))
    row = db_session.scalars(select(GeneratedImage)).one()
    row.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
    db_session.commit()

    resp = api_client.post("/admin/generated-images/cleanup", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json() == {"candidates": 1, "purged": 1, "failed": 0}
    assert fake_storage.deleted == fake_storage.uploads

from __future__ import annotations

import base64
import binascii
import concurrent.futures
import logging
import mimetypes
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session, sessionmaker

from lookbook.config import settings
from lookbook.db.enums import CatalogKindEnum, GenerationStatusEnum
from lookbook.db.repositories.catalog import CatalogRepository
from lookbook.db.repositories.generated_images import GeneratedImagesRepository
from lookbook.schemas.image_generation import GenerateImageRequest
from lookbook.services.errors import (
    GENERATION_FAILED,
    INVALID_PRODUCT_IMAGE,
    MISSING_AI_FACE,
    MISSING_CATEGORY,
    MISSING_INDUSTRY,
    MISSING_PRODUCT_BACKGROUND,
    MISSING_PRODUCT_POSE,
    MISSING_PRODUCT_THEME,
    MISSING_PRODUCT_TYPE,
    MISSING_REFERENCE_IMAGE,
    STORAGE_ERROR,
    BadRequestError,
    NotFoundError,
)
from lookbook.services.gemini_images import (
    GeminiImageClient,
    GeneratedImageData,
    ReferenceImage,
    strip_data_url_prefix,
)
from lookbook.services.image_cleanup import retention_expires_at
from lookbook.services.media_storage import MediaStorage

logger = logging.getLogger(__name__)

GENERATED_IMAGE_PREFIX = "generated-images"
_DEFAULT_REFERENCE_MIME_TYPE = "image/jpeg"

# Checked in this order; the first missing entry decides the error message.
_REFERENCE_CHECKS: tuple[tuple[str, CatalogKindEnum, str], ...] = (
    ("industry_id", CatalogKindEnum.industry, MISSING_INDUSTRY),
    ("category_id", CatalogKindEnum.category, MISSING_CATEGORY),
    ("product_type_id", CatalogKindEnum.product_type, MISSING_PRODUCT_TYPE),
    ("product_pose_id", CatalogKindEnum.product_pose, MISSING_PRODUCT_POSE),
    ("product_theme_id", CatalogKindEnum.product_theme, MISSING_PRODUCT_THEME),
    ("product_background_id", CatalogKindEnum.product_background, MISSING_PRODUCT_BACKGROUND),
    ("ai_face_id", CatalogKindEnum.ai_face, MISSING_AI_FACE),
)


@dataclass(frozen=True)
class ReferenceImages:
    pose: ReferenceImage
    background: ReferenceImage


@dataclass(frozen=True)
class GenerationResult:
    image_id: uuid.UUID
    image_url: str
    image_path: str
    expires_at: datetime
    generation_time_ms: int


def decode_product_image(data: str, mime_type: str) -> bytes:
    """Decode the caller's base64 garment image; any malformed input is a 400."""
    if not mime_type or not mime_type.strip():
        raise BadRequestError(INVALID_PRODUCT_IMAGE)
    payload = "".join(strip_data_url_prefix(data or "").split())
    if not payload:
        raise BadRequestError(INVALID_PRODUCT_IMAGE)
    try:
        decoded = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise BadRequestError(INVALID_PRODUCT_IMAGE) from exc
    if not decoded:
        raise BadRequestError(INVALID_PRODUCT_IMAGE)
    return decoded


def _stored_location(entry: Any) -> Optional[str]:
    return (getattr(entry, "image_path", None) or None) or (getattr(entry, "image_url", None) or None)


def _guess_mime_type(location: str) -> str:
    guessed, _ = mimetypes.guess_type(location.split("?", 1)[0])
    if guessed and guessed.startswith("image/"):
        return guessed
    return _DEFAULT_REFERENCE_MIME_TYPE


def build_generated_image_path(now_ms: Optional[int] = None) -> str:
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{GENERATED_IMAGE_PREFIX}/{stamp}-{uuid.uuid4()}/image.jpg"


class ImageGenerationService:
    def __init__(
        self,
        session: Session,
        *,
        storage: Optional[MediaStorage] = None,
        image_client: Optional[GeminiImageClient] = None,
        session_factory: Optional[Callable[[], Session]] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        self.session = session
        self.images = GeneratedImagesRepository(session)
        self.storage = storage or MediaStorage()
        self.image_client = image_client or GeminiImageClient()
        # Concurrent lookups each need their own session on the same bind; a Session is not thread-safe.
        self._session_factory = session_factory or sessionmaker(
            bind=session.get_bind(), autoflush=False, future=True
        )
        self._max_workers = max(1, int(max_workers or settings.REFERENCE_LOOKUP_MAX_WORKERS or 1))

    def _load_active(self, kind: CatalogKindEnum, entry_id: str):
        with self._session_factory() as lookup_session:
            return CatalogRepository.for_kind(lookup_session, kind).get_active(entry_id)

    def validate_references(self, request: GenerateImageRequest) -> dict[CatalogKindEnum, Any]:
        ids = request.reference_ids()
        resolved: dict[CatalogKindEnum, Any] = {}
        with concurrent.futures.ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            futures = [
                (kind, message, pool.submit(self._load_active, kind, ids[column]))
                for column, kind, message in _REFERENCE_CHECKS
            ]
            try:
                for kind, message, future in futures:
                    entry = future.result()
                    if entry is None:
                        raise NotFoundError(message)
                    resolved[kind] = entry
            except Exception:
                for _, _, future in futures:
                    future.cancel()
                raise
        return resolved

    def fetch_reference_images(self, product_pose_id: str, product_background_id: str) -> ReferenceImages:
        with concurrent.futures.ThreadPoolExecutor(max_workers=2) as pool:
            pose_future = pool.submit(self._load_active, CatalogKindEnum.product_pose, product_pose_id)
            background_future = pool.submit(
                self._load_active, CatalogKindEnum.product_background, product_background_id
            )
            pose = pose_future.result()
            background = background_future.result()

        pose_location = _stored_location(pose)
        if not pose_location:
            raise NotFoundError(f"{MISSING_REFERENCE_IMAGE}: Product pose image not available")
        background_location = _stored_location(background)
        if not background_location:
            raise NotFoundError(f"{MISSING_REFERENCE_IMAGE}: Product background image not available")

        with concurrent.futures.ThreadPoolExecutor(max_workers=2) as pool:
            pose_download = pool.submit(self.storage.download, pose_location)
            background_download = pool.submit(self.storage.download, background_location)
            pose_bytes = pose_download.result()
            background_bytes = background_download.result()

        return ReferenceImages(
            pose=ReferenceImage(
                data=base64.b64encode(pose_bytes).decode("ascii"),
                mime_type=_guess_mime_type(pose_location),
            ),
            background=ReferenceImage(
                data=base64.b64encode(background_bytes).decode("ascii"),
                mime_type=_guess_mime_type(background_location),
            ),
        )

    def _store_generated_image(self, image: GeneratedImageData) -> tuple[str, str]:
        image_path = build_generated_image_path()
        try:
            image_url = self.storage.upload_public(
                data=image.content,
                path=image_path,
                content_type=image.mime_type or _DEFAULT_REFERENCE_MIME_TYPE,
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("image_generation.store_failed", extra={"image_path": image_path})
            raise BadRequestError(STORAGE_ERROR) from exc
        return image_path, image_url

    def _log_failure(
        self,
        request: GenerateImageRequest,
        *,
        error_message: str,
        generation_time_ms: int,
        user_id: Any,
    ) -> None:
        try:
            self.session.rollback()
            self.images.create(
                references=request.reference_ids(),
                generation_status=GenerationStatusEnum.failed,
                generation_time_ms=generation_time_ms,
                error_message=error_message,
                user_id=user_id,
            )
        except Exception:  # noqa: BLE001
            self.session.rollback()
            logger.exception("image_generation.failure_log_failed")

    def generate_image(self, request: GenerateImageRequest, *, user_id: Any = None) -> GenerationResult:
        started = time.monotonic()
        try:
            self.validate_references(request)
            references = self.fetch_reference_images(
                product_pose_id=request.product_pose_id,
                product_background_id=request.product_background_id,
            )
            product_bytes = decode_product_image(request.product_image, request.product_image_mime_type)
            garment = ReferenceImage(
                data=base64.b64encode(product_bytes).decode("ascii"),
                mime_type=request.product_image_mime_type,
            )

            generated = self.image_client.generate_composite_image(
                [references.background, references.pose, garment]
            )
            image_path, image_url = self._store_generated_image(generated)

            expires_at = retention_expires_at(datetime.now(timezone.utc))
            generation_time_ms = int((time.monotonic() - started) * 1000)
            record = self.images.create(
                references=request.reference_ids(),
                generation_status=GenerationStatusEnum.success,
                generation_time_ms=generation_time_ms,
                image_url=image_url,
                image_path=image_path,
                expires_at=expires_at,
                user_id=user_id,
            )
        except Exception as exc:  # noqa: BLE001
            generation_time_ms = int((time.monotonic() - started) * 1000)
            error_message = str(exc) or type(exc).__name__
            self._log_failure(
                request,
                error_message=error_message,
                generation_time_ms=generation_time_ms,
                user_id=user_id,
            )
            if isinstance(exc, (NotFoundError, BadRequestError)):
                logger.warning(
                    "image_generation.failed",
                    extra={"error": error_message, "generation_time_ms": generation_time_ms},
                )
                raise
            logger.exception("image_generation.unexpected_error")
            raise BadRequestError(f"{GENERATION_FAILED}: {error_message}") from exc

        logger.info(
            "image_generation.succeeded",
            extra={
                "image_id": str(record.id),
                "image_path": image_path,
                "generation_time_ms": generation_time_ms,
            },
        )
        return GenerationResult(
            image_id=record.id,
            image_url=image_url,
            image_path=image_path,
            expires_at=expires_at,
            generation_time_ms=generation_time_ms,
        )

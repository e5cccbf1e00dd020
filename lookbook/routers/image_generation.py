from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from lookbook.db.deps import get_session
from lookbook.schemas.image_generation import GenerateImageRequest, GenerateImageResponse
from lookbook.services.errors import BadRequestError, NotFoundError
from lookbook.services.gemini_images import GeminiImageClient
from lookbook.services.image_generation import ImageGenerationService
from lookbook.services.media_storage import MediaStorage

router = APIRouter(prefix="/webapp", tags=["webapp"])


def get_media_storage() -> MediaStorage:
    return MediaStorage()


def get_image_client() -> GeminiImageClient:
    return GeminiImageClient()


@router.post("/generate-image", response_model=GenerateImageResponse)
def generate_image(
    payload: GenerateImageRequest,
    session: Session = Depends(get_session),
    storage: MediaStorage = Depends(get_media_storage),
    image_client: GeminiImageClient = Depends(get_image_client),
):
    service = ImageGenerationService(session, storage=storage, image_client=image_client)
    try:
        result = service.generate_image(payload)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except BadRequestError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return GenerateImageResponse(image_url=result.image_url, expires_at=result.expires_at)

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from sqlalchemy import text

from lookbook.config import settings
from lookbook.db.base import engine
from lookbook.routers import admin, image_generation
from lookbook.services.gemini_images import ImageModelConfigError
from lookbook.services.media_storage import MediaStorageConfigurationError

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Lookbook Image Generation API",
        default_response_class=ORJSONResponse,
    )

    allow_origins = sorted(set(settings.BACKEND_CORS_ORIGINS))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(MediaStorageConfigurationError)
    async def media_storage_configuration_error_handler(
        _request: Request, exc: MediaStorageConfigurationError
    ) -> ORJSONResponse:
        logger.error("Media storage is not configured", extra={"error": str(exc)})
        return ORJSONResponse(status_code=500, content={"detail": str(exc)})

    @app.exception_handler(ImageModelConfigError)
    async def image_model_configuration_error_handler(
        _request: Request, exc: ImageModelConfigError
    ) -> ORJSONResponse:
        logger.error("Image model is not configured", extra={"error": str(exc)})
        return ORJSONResponse(status_code=500, content={"detail": str(exc)})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("Unhandled server exception", exc_info=exc)
        return ORJSONResponse(status_code=500, content={"detail": "Internal server error."})

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/health/db")
    def health_db() -> dict[str, str]:
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return {"db": "ok"}
        except Exception as exc:  # pragma: no cover - simple runtime check
            return {"db": f"error: {exc}"}

    app.include_router(image_generation.router)
    app.include_router(admin.router)

    return app


app = create_app()

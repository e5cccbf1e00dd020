from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GenerateImageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", str_strip_whitespace=True)

    industry_id: str = Field(..., min_length=1, validation_alias="industryId", serialization_alias="industryId")
    category_id: str = Field(..., min_length=1, validation_alias="categoryId", serialization_alias="categoryId")
    product_type_id: str = Field(
        ..., min_length=1, validation_alias="productTypeId", serialization_alias="productTypeId"
    )
    product_pose_id: str = Field(
        ..., min_length=1, validation_alias="productPoseId", serialization_alias="productPoseId"
    )
    product_theme_id: str = Field(
        ..., min_length=1, validation_alias="productThemeId", serialization_alias="productThemeId"
    )
    product_background_id: str = Field(
        ...,
        min_length=1,
        validation_alias="productBackgroundId",
        serialization_alias="productBackgroundId",
    )
    ai_face_id: str = Field(..., min_length=1, validation_alias="aiFaceId", serialization_alias="aiFaceId")

    product_image: str = Field(
        ...,
        min_length=1,
        validation_alias="productImage",
        serialization_alias="productImage",
        description="Base64 encoded garment image, optionally prefixed with a data URL header.",
    )
    product_image_mime_type: str = Field(
        ...,
        min_length=1,
        validation_alias="productImageMimeType",
        serialization_alias="productImageMimeType",
        examples=["image/jpeg", "image/png", "image/webp"],
    )

    @field_validator("product_image_mime_type")
    @classmethod
    def _normalize_mime_type(cls, value: str) -> str:
        return value.split(";")[0].strip().lower()

    def reference_ids(self) -> dict[str, str]:
        return {
            "industry_id": self.industry_id,
            "category_id": self.category_id,
            "product_type_id": self.product_type_id,
            "product_pose_id": self.product_pose_id,
            "product_theme_id": self.product_theme_id,
            "product_background_id": self.product_background_id,
            "ai_face_id": self.ai_face_id,
        }


class GenerateImageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    image_url: str = Field(..., alias="imageUrl")
    message: str = "Image generated successfully"
    expires_at: datetime = Field(..., alias="expiresAt")


class CleanupResultResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    candidates: int
    purged: int
    failed: int

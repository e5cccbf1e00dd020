from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class GeneratedImagesStats(_CamelModel):
    total: int
    successful: int
    failed: int
    success_rate: float = Field(..., alias="successRate")
    average_generation_time: int = Field(..., alias="averageGenerationTime")
    last_24_hours: int = Field(..., alias="last24Hours")
    last_7_days: int = Field(..., alias="last7Days")
    last_30_days: int = Field(..., alias="last30Days")


class EntityCounts(_CamelModel):
    industries: int
    categories: int
    product_types: int = Field(..., alias="productTypes")
    product_poses: int = Field(..., alias="productPoses")
    product_themes: int = Field(..., alias="productThemes")
    product_backgrounds: int = Field(..., alias="productBackgrounds")
    ai_faces: int = Field(..., alias="aiFaces")


class TopItem(BaseModel):
    id: str
    name: str
    count: int
    percentage: float


class CommonError(BaseModel):
    message: str
    count: int


class DashboardStatsResponse(_CamelModel):
    generated_images: GeneratedImagesStats = Field(..., alias="generatedImages")
    entity_counts: EntityCounts = Field(..., alias="entityCounts")
    top_industries: List[TopItem] = Field(default_factory=list, alias="topIndustries")
    top_categories: List[TopItem] = Field(default_factory=list, alias="topCategories")
    top_product_types: List[TopItem] = Field(default_factory=list, alias="topProductTypes")
    top_product_poses: List[TopItem] = Field(default_factory=list, alias="topProductPoses")
    top_product_themes: List[TopItem] = Field(default_factory=list, alias="topProductThemes")
    top_product_backgrounds: List[TopItem] = Field(
        default_factory=list, alias="topProductBackgrounds"
    )
    top_ai_faces: List[TopItem] = Field(default_factory=list, alias="topAiFaces")
    common_errors: List[CommonError] = Field(default_factory=list, alias="commonErrors")

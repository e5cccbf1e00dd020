from enum import Enum


class GenerationStatusEnum(str, Enum):
    success = "success"
    failed = "failed"


class CatalogKindEnum(str, Enum):
    industry = "industry"
    category = "category"
    product_type = "product_type"
    product_pose = "product_pose"
    product_theme = "product_theme"
    product_background = "product_background"
    ai_face = "ai_face"

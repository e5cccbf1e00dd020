from lookbook.db.repositories.catalog import CatalogRepository
from lookbook.db.repositories.generated_images import GeneratedImagesRepository

__all__ = [
    "CatalogRepository",
    "GeneratedImagesRepository",
]

class NotFoundError(RuntimeError):
    """A referenced catalog row or stored binary does not exist (HTTP 404)."""


class BadRequestError(RuntimeError):
    """The request cannot be served as given: bad input or a failed downstream call (HTTP 400)."""


# User-facing messages shared by the generation pipeline.
MISSING_INDUSTRY = "Industry not found"
MISSING_CATEGORY = "Category not found"
MISSING_PRODUCT_TYPE = "Product type not found"
MISSING_PRODUCT_POSE = "Product pose not found"
MISSING_PRODUCT_THEME = "Product theme not found"
MISSING_PRODUCT_BACKGROUND = "Product background not found"
MISSING_AI_FACE = "AI face not found"
MISSING_REFERENCE_IMAGE = "Reference image not available in storage"
INVALID_PRODUCT_IMAGE = "Invalid product image format or size"
GENERATION_FAILED = "Failed to generate image. Please try again."
GENERATION_RATE_LIMITED = "Rate limit exceeded. Please try again in a moment."
STORAGE_ERROR = "Failed to store generated image"

from __future__ import annotations

import base64
import binascii
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import httpx

from lookbook.config import settings
from lookbook.services.errors import GENERATION_FAILED, GENERATION_RATE_LIMITED, BadRequestError
from lookbook.services.image_prompts import COMPOSITE_PROMPT_TEMPLATE

logger = logging.getLogger(__name__)

_RATE_LIMIT_MARKERS = ("resource_exhausted", "rate limit", "too many requests", "status=429")


class ImageModelConfigError(RuntimeError):
    pass


class ImageModelError(BadRequestError):
    pass


class ImageModelRateLimitError(ImageModelError):
    pass


class ImageModelPermissionError(ImageModelError):
    pass


@dataclass(frozen=True)
class ReferenceImage:
    data: str  # base64 payload, no data-URL prefix
    mime_type: str


@dataclass(frozen=True)
class GeneratedImageData:
    content: bytes
    mime_type: str


def strip_data_url_prefix(data: str) -> str:
    """Drop a ``data:<mime>;base64,`` header; a comma never occurs in base64 itself."""
    value = data.strip()
    if "," in value:
        return value.split(",", 1)[1]
    return value


def _is_rate_limited(status_code: Optional[int], message: str) -> bool:
    if status_code == 429:
        return True
    lowered = message.lower()
    return any(marker in lowered for marker in _RATE_LIMIT_MARKERS)


def _is_permission_denied(status_code: Optional[int], message: str) -> bool:
    return status_code == 403 or "permission_denied" in message.lower()


def _error_for(status_code: Optional[int], message: str) -> ImageModelError:
    if _is_permission_denied(status_code, message):
        return ImageModelPermissionError(message)
    if _is_rate_limited(status_code, message):
        return ImageModelRateLimitError(GENERATION_RATE_LIMITED)
    return ImageModelError(f"{GENERATION_FAILED}: {message}")


def _provider_error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text.strip() or f"HTTP {resp.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        status = error.get("status")
        message = error.get("message") or ""
        return f"{status}: {message}".strip(": ") if status else str(message)
    return resp.text.strip() or f"HTTP {resp.status_code}"


def extract_first_inline_image(response_json: dict[str, Any]) -> Optional[GeneratedImageData]:
    """Return the first inline image part of the first candidate, if any."""
    candidates = response_json.get("candidates") or []
    if not isinstance(candidates, list) or not candidates:
        return None
    first = candidates[0]
    content = first.get("content") if isinstance(first, dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return None
    for part in parts:
        if not isinstance(part, dict):
            continue
        inline = part.get("inlineData") or part.get("inline_data")
        if not isinstance(inline, dict):
            continue
        data = inline.get("data")
        if not isinstance(data, str) or not data:
            continue
        mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
        try:
            return GeneratedImageData(content=base64.b64decode(data, validate=True), mime_type=str(mime_type))
        except (binascii.Error, ValueError):
            return None
    return None


def summarize_response(response_json: Any) -> str:
    if not isinstance(response_json, dict):
        return f"type={type(response_json).__name__}"
    candidates = response_json.get("candidates") or []
    finish_reasons = [
        cand.get("finishReason")
        for cand in candidates[:3]
        if isinstance(cand, dict) and isinstance(cand.get("finishReason"), str)
    ] if isinstance(candidates, list) else []
    bits = [
        f"candidateCount={len(candidates) if isinstance(candidates, list) else 0}",
        f"finishReasons={finish_reasons}",
    ]
    feedback = response_json.get("promptFeedback")
    if isinstance(feedback, dict) and isinstance(feedback.get("blockReason"), str):
        bits.append(f"blockReason={feedback['blockReason']}")
    return " ".join(bits)


class GeminiImageClient:
    """Calls the Gemini ``generateContent`` REST endpoint for one composite image."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        resolved_key = (api_key or settings.GEMINI_API_KEY or "").strip()
        if not resolved_key:
            raise ImageModelConfigError("GEMINI_API_KEY not configured")
        resolved_model = (model or settings.GEMINI_IMAGE_MODEL or "").strip()
        if not resolved_model:
            raise ImageModelConfigError("GEMINI_IMAGE_MODEL not configured")
        self.api_key = resolved_key
        self.model = resolved_model
        self.base_url = (base_url or settings.GEMINI_API_URL).rstrip("/")
        self.timeout_seconds = float(timeout_seconds or settings.GEMINI_REQUEST_TIMEOUT_SECONDS or 120.0)
        self._transport = transport

    def build_payload(self, reference_images: Sequence[ReferenceImage], prompt: str | None = None) -> dict[str, Any]:
        parts: list[dict[str, Any]] = [{"text": prompt or COMPOSITE_PROMPT_TEMPLATE}]
        for image in reference_images:
            parts.append(
                {
                    "inlineData": {
                        "mimeType": image.mime_type,
                        "data": strip_data_url_prefix(image.data),
                    }
                }
            )
        return {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {"candidateCount": 1},
        }

    def generate_composite_image(
        self,
        reference_images: Sequence[ReferenceImage],
        prompt: str | None = None,
    ) -> GeneratedImageData:
        started = time.monotonic()
        payload = self.build_payload(reference_images, prompt)
        url = f"{self.base_url}/models/{self.model}:generateContent"
        logger.info(
            "gemini.generate_composite_image.request",
            extra={"model": self.model, "reference_count": len(reference_images)},
        )

        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self._transport) as client:
                resp = client.post(
                    url,
                    headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
                    json=payload,
                )
        except httpx.HTTPError as exc:
            logger.error("gemini.generate_composite_image.transport_error", extra={"error": str(exc)})
            raise _error_for(None, str(exc)) from exc

        if resp.status_code >= 400:
            message = _provider_error_message(resp)
            logger.error(
                "gemini.generate_composite_image.failed",
                extra={"status_code": resp.status_code, "error": message},
            )
            raise _error_for(resp.status_code, message)

        try:
            data = resp.json()
        except ValueError as exc:
            raise ImageModelError(f"{GENERATION_FAILED}: model returned a non-JSON response") from exc

        image = extract_first_inline_image(data) if isinstance(data, dict) else None
        if image is None:
            raise ImageModelError(
                f"{GENERATION_FAILED}: Model did not return an image. Check safety filters or prompt. "
                f"({summarize_response(data)})"
            )

        logger.info(
            "gemini.generate_composite_image.succeeded",
            extra={"model": self.model, "elapsed_ms": int((time.monotonic() - started) * 1000)},
        )
        return image


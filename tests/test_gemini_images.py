import base64
import json

import httpx
import pytest

from lookbook.config import settings
from lookbook.services.errors import GENERATION_FAILED, GENERATION_RATE_LIMITED
from lookbook.services.gemini_images import (
    GeminiImageClient,
    ImageModelConfigError,
    ImageModelError,
    ImageModelPermissionError,
    ImageModelRateLimitError,
    ReferenceImage,
    extract_first_inline_image,
)
from lookbook.services.image_prompts import COMPOSITE_PROMPT_TEMPLATE

_REFERENCES = [
    ReferenceImage(data="YmFja2dyb3VuZA==", mime_type="image/png"),
    ReferenceImage(data="cG9zZQ==", mime_type="image/jpeg"),
    ReferenceImage(data="data:image/webp;base64,Z2FybWVudA==", mime_type="image/webp"),
]


def _client(handler) -> GeminiImageClient:
    return GeminiImageClient(
        api_key="test-key",
        model="gemini-2.5-flash-image",
        base_url="https://gemini.test/v1beta",
        transport=httpx.MockTransport(handler),
    )


def _image_response(data: bytes = b"png-bytes", mime_type: str = "image/png") -> dict:
    return {
        "candidates": [
            {
                "content": {
                    "parts": [
                        {"text": "Here is your image"},
                        {"inlineData": {"mimeType": mime_type, "data": base64.b64encode(data).decode("ascii")}},
                    ]
                },
                "finishReason": "STOP",
            }
        ]
    }


def test_generate_composite_image_sends_prompt_then_images_in_order():
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["api_key"] = request.headers.get("x-goog-api-key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_image_response())

    image = _client(handler).generate_composite_image(_REFERENCES)

    assert image.content == b"png-bytes"
    assert image.mime_type == "image/png"
    assert seen["url"] == "https://gemini.test/v1beta/models/gemini-2.5-flash-image:generateContent"
    assert seen["api_key"] == "test-key"
    parts = seen["body"]["contents"][0]["parts"]
    assert parts[0] == {"text": COMPOSITE_PROMPT_TEMPLATE}
    assert [part["inlineData"]["mimeType"] for part in parts[1:]] == ["image/png", "image/jpeg", "image/webp"]
    assert parts[3]["inlineData"]["data"] == "Z2FybWVudA=="
    assert seen["body"]["generationConfig"] == {"candidateCount": 1}


def test_rate_limit_status_maps_to_rate_limit_error():
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            429,
            json={"error": {"code": 429, "status": "RESOURCE_EXHAUSTED", "message": "Quota exceeded"}},
        )

    with pytest.raises(ImageModelRateLimitError) as excinfo:
        _client(handler).generate_composite_image(_REFERENCES)
    assert str(excinfo.value) == GENERATION_RATE_LIMITED


def test_rate_limit_text_without_429_maps_to_rate_limit_error():
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            503,
            json={"error": {"status": "UNAVAILABLE", "message": "Rate limit reached for model"}},
        )

    with pytest.raises(ImageModelRateLimitError):
        _client(handler).generate_composite_image(_REFERENCES)


def test_permission_denied_maps_to_permission_error():
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            403,
            json={"error": {"code": 403, "status": "PERMISSION_DENIED", "message": "API key lacks access"}},
        )

    with pytest.raises(ImageModelPermissionError) as excinfo:
        _client(handler).generate_composite_image(_REFERENCES)
    assert "API key lacks access" in str(excinfo.value)


def test_other_provider_errors_are_wrapped():
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="upstream exploded")

    with pytest.raises(ImageModelError) as excinfo:
        _client(handler).generate_composite_image(_REFERENCES)
    assert not isinstance(excinfo.value, (ImageModelRateLimitError, ImageModelPermissionError))
    assert str(excinfo.value) == f"{GENERATION_FAILED}: upstream exploded"


def test_transport_errors_are_wrapped():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ImageModelError) as excinfo:
        _client(handler).generate_composite_image(_REFERENCES)
    assert str(excinfo.value).startswith(GENERATION_FAILED)


def test_response_without_image_is_an_error():
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"candidates": [{"content": {"parts": [{"text": "I can't do that"}]}, "finishReason": "SAFETY"}]},
        )

    with pytest.raises(ImageModelError) as excinfo:
        _client(handler).generate_composite_image(_REFERENCES)
    message = str(excinfo.value)
    assert "Model did not return an image" in message
    assert "SAFETY" in message


def test_only_first_candidate_is_used():
    response = {
        "candidates": [
            {"content": {"parts": [{"text": "nothing here"}]}},
            _image_response()["candidates"][0],
        ]
    }
    assert extract_first_inline_image(response) is None


def test_missing_api_key_is_a_configuration_error(monkeypatch):
    monkeypatch.setattr(settings, "GEMINI_API_KEY", None)
    with pytest.raises(ImageModelConfigError):
        GeminiImageClient()


@pytest.mark.parametrize(
    "line",
    [
        "CRITICAL: Use the background from Reference [1] EXACTLY as provided",
        "The model must be a real person with natural human skin and features",
        "The face and pose in [3] must be completely ignored - use face and pose ONLY from [2]",
        "The background in [3] must be completely ignored - use background ONLY from [1]",
        "Magazine-quality realism",
        "Product is the visual hero",
        "Apply beauty retouching or artistic effects",
        "Only the cloth/product may change when [3] changes.",
    ],
)
def test_composite_prompt_keeps_reference_constraints(line):
    assert line in COMPOSITE_PROMPT_TEMPLATE.splitlines()


def test_composite_prompt_reference_sections_are_ordered():
    prompt = COMPOSITE_PROMPT_TEMPLATE
    assert prompt.index("BACKGROUND — Reference [1]") < prompt.index("POSE & FACE — Reference [2]")
    assert prompt.index("POSE & FACE — Reference [2]") < prompt.index("CLOTH/PRODUCT — Reference [3]")
    assert prompt.rstrip().endswith("One clean, ultra-realistic product image suitable for e-commerce catalogs.")

"""Unit tests for request/response schemas.

Tests for autoframe/schemas.py.
"""

import pytest
from pydantic import ValidationError

from autoframe.config import ProviderMode, ProviderType
from autoframe.schemas import (
    AttemptResult,
    GenerateRequest,
    GenerateResponse,
    GenerationRequest,
    ReferenceImage,
    ScheduleUpdate,
)


@pytest.mark.fast
class TestReferenceImage:
    def test_camel_case_alias(self):
        image = ReferenceImage.model_validate({"mimeType": "image/jpeg", "data": "QUFB"})
        assert image.mime_type == "image/jpeg"

    def test_serializes_camel_case(self):
        image = ReferenceImage(mime_type="image/webp", data="QUFB")
        assert image.model_dump(by_alias=True) == {"mimeType": "image/webp", "data": "QUFB"}

    def test_default_mime_type(self):
        assert ReferenceImage(data="QUFB").mime_type == "image/png"


@pytest.mark.fast
class TestGenerationRequest:
    def test_empty(self):
        assert GenerationRequest().is_empty is True
        assert GenerationRequest(text_context=" \n ").is_empty is True

    def test_text_or_images(self):
        assert GenerationRequest(text_context="x").is_empty is False
        assert GenerationRequest(reference_images=(ReferenceImage(data="a"),)).is_empty is False


@pytest.mark.fast
class TestGenerateRequest:
    def test_camel_case_body(self):
        body = GenerateRequest.model_validate({
            "textContext": "A fox",
            "referenceImages": [{"mimeType": "image/png", "data": "QUFB"}],
            "providerMode": "imagen",
            "aspectHint": "1:1",
            "negativeHint": "text",
        })

        request = body.to_generation_request()

        assert request.text_context == "A fox"
        assert request.reference_images == (ReferenceImage(data="QUFB"),)
        assert request.provider_mode == ProviderMode.IMAGEN
        assert request.aspect_hint == "1:1"
        assert request.negative_hint == "text"

    def test_legacy_names(self):
        body = GenerateRequest.model_validate({
            "prompt": "A fox",
            "imagesBase64": [{"mimeType": "image/png", "data": "QUFB"}],
            "modelMode": "gemini",
            "negative": "blur",
        })

        assert body.text_context == "A fox"
        assert len(body.reference_images) == 1
        assert body.provider_mode == ProviderMode.GEMINI
        assert body.negative_hint == "blur"

    def test_blank_hints_become_none(self):
        request = GenerateRequest(textContext="x", aspectHint="", negativeHint="").to_generation_request()
        assert request.aspect_hint is None
        assert request.negative_hint is None

    def test_unknown_mode_rejected(self):
        with pytest.raises(ValidationError):
            GenerateRequest.model_validate({"textContext": "x", "providerMode": "dalle"})

    def test_too_many_images_rejected(self):
        images = [{"data": "QUFB"}] * 11
        with pytest.raises(ValidationError):
            GenerateRequest.model_validate({"textContext": "x", "referenceImages": images})


@pytest.mark.fast
class TestResponses:
    def test_generate_response_from_result(self):
        result = AttemptResult(mime_type="image/png", data="QUFB", provider_used=ProviderType.IMAGEN)
        body = GenerateResponse.from_result(result).model_dump(mode="json")
        assert body == {"mimeType": "image/png", "data": "QUFB", "providerUsed": "imagen"}

    def test_schedule_update_aliases(self):
        update = ScheduleUpdate.model_validate({"intervalMs": 30000, "skipIfUnchanged": False})
        assert update.interval_ms == 30000
        assert update.skip_if_unchanged is False
        assert update.running is None

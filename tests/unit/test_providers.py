"""Unit tests for image providers.

Tests for autoframe/core/providers: errors, aspect ratio whitelist, and the
Gemini / Imagen request building with the Gen AI client mocked out.

Run with:
    pytest tests/unit/test_providers.py -v
    pytest tests/unit/test_providers.py -v -m fast
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from autoframe.config import ProviderType
from autoframe.core.providers import (
    GeminiProvider,
    ImagenProvider,
    NoImageError,
    ProviderError,
    accepted_aspect_ratio,
)
from autoframe.schemas import GenerationRequest, ReferenceImage


def _mock_client(**methods) -> SimpleNamespace:
    return SimpleNamespace(aio=SimpleNamespace(models=SimpleNamespace(**methods)))


def _gemini_response(*parts) -> SimpleNamespace:
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


@pytest.mark.fast
class TestProviderErrors:
    """Tests for provider error classes."""

    def test_provider_error_creation(self):
        """Test ProviderError can be created."""
        error = ProviderError(
            message="Test error",
            provider=ProviderType.GEMINI,
            status_code=500,
        )
        assert str(error) == "[gemini] (500) Test error"
        assert error.provider == ProviderType.GEMINI
        assert error.status_code == 500

    def test_provider_error_without_status(self):
        """Test ProviderError without status code."""
        error = ProviderError(message="Test error", provider=ProviderType.IMAGEN)
        assert str(error) == "[imagen] Test error"

    def test_raw_message_kept_in_args(self):
        error = ProviderError(message="RESOURCE_EXHAUSTED", provider=ProviderType.GEMINI, status_code=429)
        assert error.args[0] == "RESOURCE_EXHAUSTED"

    def test_no_image_error(self):
        error = NoImageError(ProviderType.GEMINI)
        assert isinstance(error, ProviderError)
        assert error.args[0] == "No image returned"


@pytest.mark.fast
class TestAcceptedAspectRatio:
    @pytest.mark.parametrize("ratio", ["1:1", "3:4", "4:3", "9:16", "16:9"])
    def test_whitelisted(self, ratio):
        assert accepted_aspect_ratio(ratio) == ratio

    def test_free_form_hint(self):
        assert accepted_aspect_ratio("16:9 cinematic frame") == "16:9"

    @pytest.mark.parametrize("hint", ["21:9", "2:3", "wide", "", None])
    def test_rejected(self, hint):
        assert accepted_aspect_ratio(hint) is None


@pytest.mark.fast
class TestProviderConfiguration:
    def test_configured(self):
        assert GeminiProvider("key", "m").is_configured is True

    @pytest.mark.parametrize("key", [None, ""])
    def test_not_configured(self, key):
        assert ImagenProvider(key, "m").is_configured is False

    def test_wrap_error_keeps_code(self):
        class APIError(Exception):
            code = 429

        wrapped = GeminiProvider("key", "m")._wrap_error(APIError("RESOURCE_EXHAUSTED"))
        assert wrapped.status_code == 429
        assert wrapped.args[0] == "RESOURCE_EXHAUSTED"
        assert wrapped.provider == ProviderType.GEMINI


@pytest.mark.fast
class TestGeminiProvider:
    """Gemini request building and response parsing."""

    def test_build_parts_caps_images(self, png_b64):
        provider = GeminiProvider("key", "m")
        request = GenerationRequest(
            text_context="prompt",
            reference_images=tuple(ReferenceImage(data=png_b64) for _ in range(4)),
        )

        parts = provider.build_parts(request)

        assert len(parts) == 3
        assert parts[0].text == "prompt"
        assert parts[1].inline_data.mime_type == "image/png"

    def test_build_parts_skips_invalid_images(self, png_b64):
        provider = GeminiProvider("key", "m")
        request = GenerationRequest(
            text_context="prompt",
            reference_images=(
                ReferenceImage(data="not base64!!"),
                ReferenceImage(data=""),
                ReferenceImage(data=png_b64),
            ),
        )

        parts = provider.build_parts(request)

        assert len(parts) == 2

    @pytest.mark.asyncio
    async def test_generate_returns_first_image(self):
        provider = GeminiProvider("key", "gemini-test")
        text_part = SimpleNamespace(inline_data=None, text="Here you go")
        image_part = SimpleNamespace(inline_data=SimpleNamespace(data=b"\x01\x02", mime_type="image/jpeg"))
        generate_content = AsyncMock(return_value=_gemini_response(text_part, image_part))
        provider._client = _mock_client(generate_content=generate_content)

        result = await provider.generate(GenerationRequest(text_context="A fox", aspect_hint="1:1"))

        assert result.provider_used == ProviderType.GEMINI
        assert result.mime_type == "image/jpeg"
        assert result.data == "AQI="
        kwargs = generate_content.await_args.kwargs
        assert kwargs["model"] == "gemini-test"
        assert kwargs["config"].response_modalities == ["IMAGE"]
        assert kwargs["config"].image_config.aspect_ratio == "1:1"

    @pytest.mark.asyncio
    async def test_unaccepted_aspect_not_sent(self):
        provider = GeminiProvider("key", "gemini-test")
        image_part = SimpleNamespace(inline_data=SimpleNamespace(data=b"x", mime_type="image/png"))
        generate_content = AsyncMock(return_value=_gemini_response(image_part))
        provider._client = _mock_client(generate_content=generate_content)

        await provider.generate(GenerationRequest(text_context="A fox", aspect_hint="21:9"))

        assert generate_content.await_args.kwargs["config"].image_config is None

    @pytest.mark.asyncio
    async def test_no_image_raises(self):
        provider = GeminiProvider("key", "gemini-test")
        text_part = SimpleNamespace(inline_data=None, text="I cannot draw that")
        provider._client = _mock_client(generate_content=AsyncMock(return_value=_gemini_response(text_part)))

        with pytest.raises(NoImageError):
            await provider.generate(GenerationRequest(text_context="A fox"))

    @pytest.mark.asyncio
    async def test_sdk_error_wrapped(self):
        provider = GeminiProvider("key", "gemini-test")
        provider._client = _mock_client(
            generate_content=AsyncMock(side_effect=RuntimeError("429 RESOURCE_EXHAUSTED"))
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate(GenerationRequest(text_context="A fox"))

        assert exc_info.value.args[0] == "429 RESOURCE_EXHAUSTED"
        assert exc_info.value.provider == ProviderType.GEMINI


@pytest.mark.fast
class TestImagenProvider:
    """Imagen is text-only."""

    def test_config_params(self):
        provider = ImagenProvider("key", "m")
        params = provider.build_config_params(
            GenerationRequest(text_context="x", aspect_hint="9:16", negative_hint=" text, logos ")
        )
        assert params == {"number_of_images": 1, "aspect_ratio": "9:16", "negative_prompt": "text, logos"}

    def test_config_params_minimal(self):
        provider = ImagenProvider("key", "m")
        params = provider.build_config_params(GenerationRequest(text_context="x", aspect_hint="5:4"))
        assert params == {"number_of_images": 1}

    @pytest.mark.asyncio
    async def test_generate_ignores_reference_images(self, png_b64):
        provider = ImagenProvider("key", "imagen-test")
        image = SimpleNamespace(image_bytes=b"\x01\x02", mime_type="image/png")
        generate_images = AsyncMock(
            return_value=SimpleNamespace(generated_images=[SimpleNamespace(image=image)])
        )
        provider._client = _mock_client(generate_images=generate_images)
        request = GenerationRequest(
            text_context="A fox",
            reference_images=(ReferenceImage(data=png_b64),),
        )

        result = await provider.generate(request)

        assert result.provider_used == ProviderType.IMAGEN
        assert result.data == "AQI="
        kwargs = generate_images.await_args.kwargs
        assert kwargs["prompt"] == "A fox"
        assert set(kwargs) == {"model", "prompt", "config"}

    @pytest.mark.asyncio
    async def test_empty_response_raises(self):
        provider = ImagenProvider("key", "imagen-test")
        provider._client = _mock_client(
            generate_images=AsyncMock(return_value=SimpleNamespace(generated_images=[]))
        )

        with pytest.raises(NoImageError):
            await provider.generate(GenerationRequest(text_context="A fox"))

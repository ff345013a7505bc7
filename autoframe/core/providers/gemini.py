"""Gemini native image generation provider (primary).

Uses ``generate_content()`` with the prompt text and up to
``PRIMARY_REFERENCE_IMAGE_CAP`` inline reference images, and returns the
first inline image part of the response.

Examples:
    >>> provider = GeminiProvider(api_key="AIza...", model="gemini-2.5-flash-image-preview")
    >>> result = await provider.generate(GenerationRequest(text_context="A lighthouse at dusk"))

Tests:
    - tests/unit/test_providers.py::TestGeminiProvider
"""

import base64
import binascii
import logging
import time
from typing import Any

from autoframe.config import PRIMARY_REFERENCE_IMAGE_CAP, ProviderType
from autoframe.core.providers.base import (
    ImageProvider,
    NoImageError,
    ProviderError,
    accepted_aspect_ratio,
)
from autoframe.schemas import AttemptResult, GenerationRequest

logger = logging.getLogger(__name__)


class GeminiProvider(ImageProvider):
    """Gemini image model ("Nano Banana") via the Gen AI SDK.

    Gemini is the rate-limited provider: callers space its calls at least
    ``PRIMARY_MIN_SPACING_MS`` apart.
    """

    provider_type = ProviderType.GEMINI

    def __init__(
        self,
        api_key: str | None,
        model: str,
        reference_image_cap: int = PRIMARY_REFERENCE_IMAGE_CAP,
    ) -> None:
        super().__init__(api_key, model)
        self.reference_image_cap = reference_image_cap

    def build_parts(self, request: GenerationRequest) -> list[Any]:
        """Build the content parts: prompt text then capped inline images."""
        from google.genai import types

        parts: list[Any] = []
        if request.text_context:
            parts.append(types.Part.from_text(text=request.text_context))

        attached = 0
        for image in request.reference_images:
            if attached >= self.reference_image_cap:
                break
            if not image.data or not image.mime_type:
                continue
            try:
                raw = base64.b64decode(image.data, validate=True)
            except (binascii.Error, ValueError):
                logger.warning("Skipping reference image with invalid base64 data")
                continue
            parts.append(types.Part.from_bytes(data=raw, mime_type=image.mime_type))
            attached += 1

        if attached < len(request.reference_images):
            logger.debug(
                f"Gemini request: attached {attached} of "
                f"{len(request.reference_images)} reference images"
            )
        return parts

    async def generate(self, request: GenerationRequest) -> AttemptResult:
        """Generate an image with Gemini.

        Args:
            request: Prompt text, reference images and hints.

        Returns:
            AttemptResult tagged ``gemini``.

        Raises:
            NoImageError: If no inline image came back.
            ProviderError: If the API call fails.
        """
        start_time = time.perf_counter()

        try:
            from google.genai import types

            config_params: dict[str, Any] = {"response_modalities": ["IMAGE"]}
            aspect_ratio = accepted_aspect_ratio(request.aspect_hint)
            if aspect_ratio:
                config_params["image_config"] = types.ImageConfig(aspect_ratio=aspect_ratio)

            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=[types.Content(role="user", parts=self.build_parts(request))],
                config=types.GenerateContentConfig(**config_params),
            )

            latency_ms = int((time.perf_counter() - start_time) * 1000)

            # Extract image from response parts
            if response.candidates and response.candidates[0].content:
                for part in response.candidates[0].content.parts or []:
                    inline = getattr(part, "inline_data", None)
                    if inline and inline.data:
                        logger.info(f"Gemini image generated in {latency_ms}ms")
                        return AttemptResult(
                            mime_type=inline.mime_type or "image/png",
                            data=base64.b64encode(inline.data).decode("utf-8"),
                            provider_used=self.provider_type,
                        )

            raise NoImageError(self.provider_type, "No image returned from Gemini")

        except ProviderError as e:
            logger.error(f"Gemini image generation error: {e}")
            raise
        except Exception as e:
            logger.error(f"Gemini image generation error: {e}")
            raise self._wrap_error(e) from e

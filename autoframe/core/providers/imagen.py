"""Imagen provider (secondary).

Text-only generation through ``generate_images()``. Reference images are
ignored; the aspect ratio is sent only when it is one of the accepted ratios.

Tests:
    - tests/unit/test_providers.py::TestImagenProvider
"""

import base64
import logging
import time
from typing import Any

from autoframe.config import ProviderType
from autoframe.core.providers.base import (
    ImageProvider,
    NoImageError,
    ProviderError,
    accepted_aspect_ratio,
)
from autoframe.schemas import AttemptResult, GenerationRequest

logger = logging.getLogger(__name__)


class ImagenProvider(ImageProvider):
    """Imagen image generation via the Gen AI SDK."""

    provider_type = ProviderType.IMAGEN

    def build_config_params(self, request: GenerationRequest) -> dict[str, Any]:
        """Config for ``GenerateImagesConfig``."""
        params: dict[str, Any] = {"number_of_images": 1}
        aspect_ratio = accepted_aspect_ratio(request.aspect_hint)
        if aspect_ratio:
            params["aspect_ratio"] = aspect_ratio
        if request.negative_hint and request.negative_hint.strip():
            params["negative_prompt"] = request.negative_hint.strip()
        return params

    async def generate(self, request: GenerationRequest) -> AttemptResult:
        """Generate an image with Imagen from the prompt text alone.

        Args:
            request: Prompt text and hints. Reference images are not sent.

        Returns:
            AttemptResult tagged ``imagen``.

        Raises:
            NoImageError: If no image came back.
            ProviderError: If the API call fails.
        """
        start_time = time.perf_counter()

        try:
            from google.genai import types

            response = await self.client.aio.models.generate_images(
                model=self.model,
                prompt=request.text_context,
                config=types.GenerateImagesConfig(**self.build_config_params(request)),
            )

            latency_ms = int((time.perf_counter() - start_time) * 1000)

            # Extract first image
            if response.generated_images:
                image = response.generated_images[0].image
                if image is not None and image.image_bytes:
                    logger.info(f"Imagen image generated in {latency_ms}ms")
                    return AttemptResult(
                        mime_type=getattr(image, "mime_type", None) or "image/png",
                        data=base64.b64encode(image.image_bytes).decode("utf-8"),
                        provider_used=self.provider_type,
                    )

            raise NoImageError(self.provider_type, "No image returned from Imagen")

        except ProviderError as e:
            logger.error(f"Imagen error: {e}")
            raise
        except Exception as e:
            logger.error(f"Imagen error: {e}")
            raise self._wrap_error(e) from e

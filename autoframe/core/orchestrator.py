"""Provider orchestration with Gemini -> Imagen fallback.

Runs one generation attempt against the provider(s) allowed by the request's
provider mode:

    - gemini: Gemini only, its classified error propagated as is
    - imagen: Imagen only, its classified error propagated as is
    - auto:   Gemini first; on quota exhaustion or an empty result Imagen is
              tried exactly once. Fatal/unknown Gemini errors are propagated
              without touching Imagen, and so is any Gemini error when the
              request has no text for Imagen.

No retries happen here; retry and backoff belong to the scheduler.

Examples:
    >>> orchestrator = ProviderOrchestrator.from_settings(get_settings())
    >>> result = await orchestrator.attempt(GenerationRequest(text_context="A red kite"))
    >>> result.provider_used
    <ProviderType.GEMINI: 'gemini'>

Tests:
    - tests/unit/test_orchestrator.py
"""

from __future__ import annotations

import logging

from autoframe.config import ProviderMode, Settings
from autoframe.core.errors import (
    DEFAULT_RETRY_DELAY_SECONDS,
    FALLBACK_KINDS,
    ClassifiedError,
    ErrorKind,
    classify,
    combined_failure,
)
from autoframe.core.providers import GeminiProvider, ImagenProvider, ImageProvider
from autoframe.schemas import AttemptResult, GenerationRequest

logger = logging.getLogger(__name__)


class ProviderOrchestrator:
    """Execute a generation attempt with provider selection and fallback.

    Attributes:
        primary: Rate-limited preferred provider (Gemini)
        secondary: Text-only fallback provider (Imagen)
        default_retry_delay: Backoff suggested for quota errors without a hint
    """

    def __init__(
        self,
        primary: ImageProvider,
        secondary: ImageProvider,
        default_retry_delay: int = DEFAULT_RETRY_DELAY_SECONDS,
    ) -> None:
        self.primary = primary
        self.secondary = secondary
        self.default_retry_delay = default_retry_delay

    @classmethod
    def from_settings(cls, settings: Settings) -> ProviderOrchestrator:
        """Build Gemini and Imagen providers from settings."""
        return cls(
            primary=GeminiProvider(settings.GEMINI_API_KEY, settings.PRIMARY_IMAGE_MODEL),
            secondary=ImagenProvider(settings.GEMINI_API_KEY, settings.SECONDARY_IMAGE_MODEL),
            default_retry_delay=settings.DEFAULT_RETRY_DELAY_SECONDS,
        )

    def _providers_for(self, mode: ProviderMode) -> list[ImageProvider]:
        if mode == ProviderMode.GEMINI:
            return [self.primary]
        if mode == ProviderMode.IMAGEN:
            return [self.secondary]
        return [self.primary, self.secondary]

    def validate(self, request: GenerationRequest) -> None:
        """Reject requests the mode's providers cannot serve.

        Raises:
            ClassifiedError: ``invalidRequest`` for missing context (Imagen
                needs text, images alone only work for Gemini) and
                ``missingCredential`` when a provider has no key.
        """
        if request.is_empty:
            raise ClassifiedError(
                ErrorKind.INVALID_REQUEST,
                "Prompt or images required",
                http_status=400,
            )
        if request.provider_mode == ProviderMode.IMAGEN and not request.text_context.strip():
            raise ClassifiedError(
                ErrorKind.INVALID_REQUEST,
                "Prompt required for Imagen",
                http_status=400,
            )
        for provider in self._providers_for(request.provider_mode):
            if not provider.is_configured:
                raise ClassifiedError(
                    ErrorKind.MISSING_CREDENTIAL,
                    "Missing GEMINI_API_KEY",
                    http_status=500,
                )

    async def _call(self, provider: ImageProvider, request: GenerationRequest) -> AttemptResult:
        """Call one provider; any failure comes back classified."""
        try:
            return await provider.generate(request)
        except Exception as e:
            error = classify(e, default_retry_delay=self.default_retry_delay)
            logger.warning(
                f"{provider.provider_type.value} failed ({error.kind.value}): {error.message}"
            )
            raise error from e

    async def attempt(self, request: GenerationRequest) -> AttemptResult:
        """Run one generation attempt.

        Args:
            request: Generation inputs including the provider mode.

        Returns:
            AttemptResult tagged with the provider that produced it.

        Raises:
            ClassifiedError: On any failure. In auto mode a failure of both
                providers is a combined ``fatal`` error.
        """
        self.validate(request)
        mode = request.provider_mode

        if mode == ProviderMode.IMAGEN:
            return await self._call(self.secondary, request)

        try:
            return await self._call(self.primary, request)
        except ClassifiedError as primary_error:
            if mode == ProviderMode.GEMINI or primary_error.kind not in FALLBACK_KINDS:
                raise
            if not request.text_context.strip():
                logger.warning("Gemini unavailable and no text for Imagen - not falling back")
                raise

            logger.warning(
                f"Gemini unavailable ({primary_error.kind.value}) - "
                f"falling back to Imagen with {self.secondary.model}"
            )
            try:
                result = await self._call(self.secondary, request)
            except ClassifiedError as secondary_error:
                logger.error(f"Imagen fallback also failed: {secondary_error.message}")
                raise combined_failure(primary_error, secondary_error) from secondary_error

            logger.info(f"Imagen fallback succeeded after Gemini {primary_error.kind.value}")
            return result

    @property
    def has_credential(self) -> bool:
        return self.primary.is_configured and self.secondary.is_configured

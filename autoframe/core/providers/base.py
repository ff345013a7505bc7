"""Base image provider abstraction layer.

This module defines the abstract base class and errors for image providers.
Both implementations (Gemini, Imagen) talk to Google's Gen AI SDK and
inherit from ImageProvider.

Examples:
    >>> from autoframe.core.providers import GeminiProvider
    >>> provider = GeminiProvider(api_key="AIza...", model="gemini-2.5-flash-image-preview")
    >>> result = await provider.generate(request)
    >>> result.provider_used
    <ProviderType.GEMINI: 'gemini'>

Tests:
    - tests/unit/test_providers.py::TestProviderErrors
    - tests/unit/test_providers.py::TestAcceptedAspectRatio
"""

import re
from abc import ABC, abstractmethod
from typing import Any

from autoframe.config import ACCEPTED_ASPECT_RATIOS, ProviderType
from autoframe.schemas import AttemptResult, GenerationRequest

__all__ = [
    "ImageProvider",
    "NoImageError",
    "ProviderError",
    "ProviderType",
    "accepted_aspect_ratio",
]

_ASPECT_RE = re.compile(r"(\d{1,2}):(\d{1,2})")


def accepted_aspect_ratio(hint: str | None) -> str | None:
    """Return the aspect ratio named in ``hint`` if both providers accept it.

    Free-form hints such as "16:9 cinematic frame" are reduced to the ratio.

    Examples:
        >>> accepted_aspect_ratio("16:9 cinematic frame")
        '16:9'
        >>> accepted_aspect_ratio("21:9") is None
        True
    """
    if not hint:
        return None
    for match in _ASPECT_RE.finditer(hint):
        ratio = f"{int(match.group(1))}:{int(match.group(2))}"
        if ratio in ACCEPTED_ASPECT_RATIOS:
            return ratio
    return None


class ProviderError(Exception):
    """Base exception for provider errors.

    The raw provider message is kept intact so that classification can look
    for quota markers and retry hints in it.

    Attributes:
        provider: The provider that raised the error
        status_code: HTTP status code (if applicable)
    """

    def __init__(
        self,
        message: str,
        provider: ProviderType,
        status_code: int | None = None,
    ) -> None:
        """Initialize provider error.

        Args:
            message: Error message.
            provider: Provider that raised the error.
            status_code: HTTP status code (optional).
        """
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code

    def __str__(self) -> str:
        """String representation of the error."""
        parts = [f"[{self.provider.value}]", self.args[0]]
        if self.status_code:
            parts.insert(1, f"({self.status_code})")
        return " ".join(parts)


class NoImageError(ProviderError):
    """The provider answered but the response held no image."""

    def __init__(self, provider: ProviderType, message: str = "No image returned") -> None:
        super().__init__(message, provider)


class ImageProvider(ABC):
    """Abstract base class for image providers.

    Attributes:
        provider_type: The provider type identifier
        api_key: API key for authentication (may be missing)
        model: Model ID used for generation
    """

    provider_type: ProviderType

    def __init__(self, api_key: str | None, model: str) -> None:
        """Initialize provider.

        Args:
            api_key: Google AI API key, or None when not configured.
            model: Model ID to call.
        """
        self.api_key = api_key
        self.model = model
        self._client: Any = None  # Lazy initialization

    @property
    def is_configured(self) -> bool:
        """Check whether the provider has a credential."""
        return bool(self.api_key)

    @property
    def client(self) -> Any:
        """Get Gen AI client (lazy initialization)."""
        if self._client is None:
            from google import genai

            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def _wrap_error(self, error: Exception) -> ProviderError:
        """Convert SDK errors to provider errors, keeping the raw message."""
        if isinstance(error, ProviderError):
            return error
        status = getattr(error, "code", None)
        if not isinstance(status, int):
            status = getattr(error, "status_code", None)
        return ProviderError(
            message=str(error) or type(error).__name__,
            provider=self.provider_type,
            status_code=status if isinstance(status, int) else None,
        )

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> AttemptResult:
        """Generate one image.

        Args:
            request: The generation inputs.

        Returns:
            AttemptResult tagged with this provider.

        Raises:
            NoImageError: If the response carried no image.
            ProviderError: If the API call fails.
        """

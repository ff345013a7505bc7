"""Image provider abstraction and implementations.

Re-exports base classes and provider implementations for convenient imports.
"""

# Base classes (import from base module)
from autoframe.core.providers.base import (
    ImageProvider,
    NoImageError,
    ProviderError,
    ProviderType,
    accepted_aspect_ratio,
)

# Provider implementations
from autoframe.core.providers.gemini import GeminiProvider
from autoframe.core.providers.imagen import ImagenProvider

__all__ = [
    # Base classes
    "ImageProvider",
    "NoImageError",
    "ProviderError",
    "ProviderType",
    "accepted_aspect_ratio",
    # Implementations
    "GeminiProvider",
    "ImagenProvider",
]

"""Core components for autoframe."""

from autoframe.core.errors import ClassifiedError, ErrorKind, classify
from autoframe.core.providers import (
    GeminiProvider,
    ImageProvider,
    ImagenProvider,
    NoImageError,
    ProviderError,
    ProviderType,
)

__all__ = [
    "ClassifiedError",
    "ErrorKind",
    "GeminiProvider",
    "ImageProvider",
    "ImagenProvider",
    "NoImageError",
    "ProviderError",
    "ProviderType",
    "classify",
]

"""Application configuration with Pydantic Settings.

This module provides centralized configuration management using pydantic-settings.
Settings are loaded from environment variables and .env files.

Examples:
    >>> from autoframe.config import get_settings
    >>> get_settings().PROVIDER_MODE
    <ProviderMode.AUTO: 'auto'>

    >>> get_settings().has_credential
    False

Tests:
    - tests/unit/test_config.py::TestSettings
    - tests/unit/test_config.py::TestIntervalValidation
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderType(str, Enum):
    """Image providers.

    GEMINI is the primary (rate-limited) provider, IMAGEN the secondary.
    """

    GEMINI = "gemini"
    IMAGEN = "imagen"


class ProviderMode(str, Enum):
    """Which provider(s) an attempt may use.

    - AUTO: Gemini first, Imagen when Gemini is exhausted or returns nothing
    - GEMINI: primary provider only
    - IMAGEN: secondary provider only
    """

    AUTO = "auto"
    GEMINI = "gemini"
    IMAGEN = "imagen"


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


# Scheduling intervals offered to the user (milliseconds)
INTERVAL_OPTIONS: tuple[int, ...] = (30_000, 60_000, 120_000)

# Gemini image calls are spaced at least this far apart
PRIMARY_MIN_SPACING_MS = 60_000

# Gemini accepts only a couple of inline reference images per call
PRIMARY_REFERENCE_IMAGE_CAP = 2

# Reference images kept in the generation context / accepted by the API
MAX_REFERENCE_IMAGES = 10

# Aspect ratios both providers understand
ACCEPTED_ASPECT_RATIOS: tuple[str, ...] = ("1:1", "3:4", "4:3", "9:16", "16:9")

# Only the tail of the journal goes into the prompt
JOURNAL_TAIL_CHARS = 600

STYLE_PRESETS: tuple[str, ...] = ("Photorealistic", "Cinematic", "Watercolor", "Anime")


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables and .env file.
    The API key is optional: without it the service still starts, reports
    ``hasCredential: false`` and every generation fails with a
    missing-credential error.

    Attributes:
        GEMINI_API_KEY: Google AI API key used by both image providers
        PRIMARY_IMAGE_MODEL: Gemini native image model
        SECONDARY_IMAGE_MODEL: Imagen model used as fallback
        INTERVAL_MS: Scheduler tick interval
        SKIP_IF_UNCHANGED: Skip scheduled generations when inputs are unchanged
        PROVIDER_MODE: Default provider mode for scheduled generations
        AUTO_START: Start the scheduler when the app starts
        DEFAULT_RETRY_DELAY_SECONDS: Backoff when a quota error carries no delay
        PREVIEW_LIMIT: Number of recent images kept in the preview buffer
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Provider credentials
    GEMINI_API_KEY: str | None = Field(
        default=None,
        description="Google AI API key (Gemini + Imagen)",
    )

    # Model Selection
    PRIMARY_IMAGE_MODEL: str = Field(
        default="gemini-2.5-flash-image-preview",
        description="Gemini native image generation model",
    )
    SECONDARY_IMAGE_MODEL: str = Field(
        default="imagen-4.0-generate-001",
        description="Imagen model (text-only fallback)",
    )

    # Scheduler
    INTERVAL_MS: int = Field(
        default=60_000,
        description="Scheduler tick interval in milliseconds",
    )
    SKIP_IF_UNCHANGED: bool = Field(
        default=True,
        description="Skip scheduled generations when inputs did not change",
    )
    PROVIDER_MODE: ProviderMode = Field(
        default=ProviderMode.AUTO,
        description="Default provider mode",
    )
    AUTO_START: bool = Field(
        default=True,
        description="Start the scheduler on application startup",
    )
    DEFAULT_RETRY_DELAY_SECONDS: int = Field(
        default=60,
        ge=1,
        description="Backoff applied to quota errors without a retry delay",
    )
    PREVIEW_LIMIT: int = Field(
        default=12,
        ge=1,
        le=100,
        description="Recent images kept for preview",
    )

    # Application Settings
    ENVIRONMENT: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    DEBUG: bool = Field(
        default=True,
        description="Enable debug mode",
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Root log level",
    )

    @field_validator("INTERVAL_MS")
    @classmethod
    def validate_interval(cls, v: int) -> int:
        """Only the enumerated intervals are allowed."""
        if v not in INTERVAL_OPTIONS:
            raise ValueError(f"INTERVAL_MS must be one of: {INTERVAL_OPTIONS}")
        return v

    @field_validator("GEMINI_API_KEY")
    @classmethod
    def strip_api_key(cls, v: str | None) -> str | None:
        """Treat a blank key as missing."""
        if v is None or not v.strip():
            return None
        return v.strip()

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == Environment.PRODUCTION

    @property
    def has_credential(self) -> bool:
        """Check whether a provider API key is configured."""
        return bool(self.GEMINI_API_KEY)

    def get_model_config(self) -> dict[str, str]:
        """Get model configuration dictionary.

        Returns:
            dict: Model IDs keyed by provider name.
        """
        return {
            ProviderType.GEMINI.value: self.PRIMARY_IMAGE_MODEL,
            ProviderType.IMAGEN.value: self.SECONDARY_IMAGE_MODEL,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: The application settings.

    Examples:
        >>> settings = get_settings()
        >>> settings.INTERVAL_MS
        60000
    """
    return Settings()

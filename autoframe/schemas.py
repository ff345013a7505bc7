"""Pydantic schemas for generation requests, results and API payloads.

Internal models use snake_case; API payloads accept and emit the camelCase
names the browser client sends (``textContext``, ``referenceImages``,
``providerMode``...). The legacy ``prompt`` / ``imagesBase64`` names are
accepted as well.

Tests:
    - tests/unit/test_schemas.py
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from autoframe.config import MAX_REFERENCE_IMAGES, ProviderMode, ProviderType


class ReferenceImage(BaseModel):
    """An inline image attached to a generation request.

    Attributes:
        mime_type: Image MIME type (e.g. ``image/png``)
        data: Base64-encoded image bytes
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    mime_type: str = Field(
        default="image/png",
        validation_alias=AliasChoices("mime_type", "mimeType"),
        serialization_alias="mimeType",
    )
    data: str = Field(description="Base64-encoded image data")


class GenerationRequest(BaseModel):
    """Inputs for one generation attempt. Built fresh per attempt.

    Attributes:
        text_context: Composed prompt text
        reference_images: Ordered reference images
        provider_mode: Which provider(s) may serve the attempt
        aspect_hint: Optional aspect ratio hint (e.g. "16:9")
        negative_hint: Optional things to avoid
    """

    text_context: str = ""
    reference_images: tuple[ReferenceImage, ...] = ()
    provider_mode: ProviderMode = ProviderMode.AUTO
    aspect_hint: str | None = None
    negative_hint: str | None = None

    @property
    def is_empty(self) -> bool:
        """True when there is neither text nor an image to generate from."""
        return not self.text_context.strip() and not self.reference_images


class AttemptResult(BaseModel):
    """A generated image. Immutable, consumed once by the caller."""

    model_config = ConfigDict(frozen=True)

    mime_type: str = "image/png"
    data: str
    provider_used: ProviderType


# API payloads


class GenerateRequest(BaseModel):
    """Body of ``POST /api/generate``."""

    model_config = ConfigDict(populate_by_name=True)

    text_context: str = Field(
        default="",
        validation_alias=AliasChoices("textContext", "prompt", "text_context"),
    )
    reference_images: list[ReferenceImage] = Field(
        default_factory=list,
        max_length=MAX_REFERENCE_IMAGES,
        validation_alias=AliasChoices("referenceImages", "imagesBase64", "reference_images"),
    )
    provider_mode: ProviderMode = Field(
        default=ProviderMode.AUTO,
        validation_alias=AliasChoices("providerMode", "modelMode", "provider_mode"),
    )
    aspect_hint: str | None = Field(
        default=None,
        validation_alias=AliasChoices("aspectHint", "aspect_hint"),
    )
    negative_hint: str | None = Field(
        default=None,
        validation_alias=AliasChoices("negativeHint", "negative", "negative_hint"),
    )

    def to_generation_request(self) -> GenerationRequest:
        """Convert the API body into an orchestrator request."""
        return GenerationRequest(
            text_context=self.text_context,
            reference_images=tuple(self.reference_images),
            provider_mode=self.provider_mode,
            aspect_hint=self.aspect_hint or None,
            negative_hint=self.negative_hint or None,
        )


class GenerateResponse(BaseModel):
    """Successful generation."""

    mimeType: str
    data: str
    providerUsed: ProviderType

    @classmethod
    def from_result(cls, result: AttemptResult) -> GenerateResponse:
        return cls(
            mimeType=result.mime_type,
            data=result.data,
            providerUsed=result.provider_used,
        )


class ErrorResponse(BaseModel):
    """Failed request."""

    error: str
    status: int
    retryDelaySeconds: int | None = None


class HealthResponse(BaseModel):
    """Credential presence check."""

    ok: bool = True
    hasCredential: bool


class ScheduleStatus(BaseModel):
    """Snapshot of the scheduler for display.

    Attributes:
        phase: idle, scheduled, in_flight or backoff
        seconds_left: Countdown to the backoff deadline or the next run
        rate_limited: True while a quota backoff is active
        resume_at: When a rate-limited scheduler resumes (epoch ms)
    """

    phase: str
    running: bool
    interval_ms: int
    provider_mode: ProviderMode
    skip_if_unchanged: bool
    in_flight: bool
    next_due_at: int | None = None
    backoff_until: int | None = None
    seconds_left: int | None = None
    rate_limited: bool = False
    resume_at: int | None = None
    primary_ready_at: int | None = None
    last_error: str | None = None
    last_provider_used: ProviderType | None = None
    last_success_at: int | None = None


class ScheduleUpdate(BaseModel):
    """Body of ``PATCH /api/v1/schedule``. Omitted fields are left alone."""

    model_config = ConfigDict(populate_by_name=True)

    running: bool | None = None
    interval_ms: int | None = Field(
        default=None,
        validation_alias=AliasChoices("intervalMs", "interval_ms"),
    )
    skip_if_unchanged: bool | None = Field(
        default=None,
        validation_alias=AliasChoices("skipIfUnchanged", "skip_if_unchanged"),
    )
    provider_mode: ProviderMode | None = Field(
        default=None,
        validation_alias=AliasChoices("providerMode", "provider_mode"),
    )


class ContextUpdate(BaseModel):
    """Body of ``PUT /api/v1/schedule/context``. Omitted fields are left alone."""

    model_config = ConfigDict(populate_by_name=True)

    journal: str | None = None
    page_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("pageId", "page_id"),
    )
    style_preset: str | None = Field(
        default=None,
        validation_alias=AliasChoices("stylePreset", "style_preset"),
    )
    aspect_hint: str | None = Field(
        default=None,
        validation_alias=AliasChoices("aspectHint", "aspect_hint"),
    )
    negative_hint: str | None = Field(
        default=None,
        validation_alias=AliasChoices("negativeHint", "negative", "negative_hint"),
    )
    reference_images: list[ReferenceImage] | None = Field(
        default=None,
        max_length=MAX_REFERENCE_IMAGES,
        validation_alias=AliasChoices("referenceImages", "reference_images"),
    )


class PreviewItem(BaseModel):
    """A generated image kept for preview."""

    id: str
    mime_type: str
    data: str
    provider_used: ProviderType
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"

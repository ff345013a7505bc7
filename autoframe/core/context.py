"""Generation context: what the scheduler turns into images.

Holds the journal text (one per canvas page, with a current page), style
options and the reference images. The scheduler reads it on every tick to
fingerprint the inputs and build a fresh ``GenerationRequest``.

Tests:
    - tests/unit/test_context.py
"""

from __future__ import annotations

from dataclasses import dataclass, field

from autoframe.config import MAX_REFERENCE_IMAGES, STYLE_PRESETS, ProviderMode
from autoframe.core.fingerprint import fingerprint
from autoframe.prompts.compose import compose_prompt, simplified_aspect
from autoframe.schemas import GenerationRequest, ReferenceImage

DEFAULT_PAGE = "default"


@dataclass
class GenerationContext:
    """Mutable generation inputs.

    Attributes:
        journal_by_page: Journal text keyed by page ID
        current_page: Page whose journal is used
        style_preset: Style name
        aspect_hint: Free-form framing hint ("16:9 cinematic frame")
        negative_hint: Things to avoid
        reference_images: Included images, newest first
    """

    journal_by_page: dict[str, str] = field(default_factory=dict)
    current_page: str = DEFAULT_PAGE
    style_preset: str = STYLE_PRESETS[0]
    aspect_hint: str = "16:9 cinematic frame"
    negative_hint: str = ""
    reference_images: list[ReferenceImage] = field(default_factory=list)
    max_images: int = MAX_REFERENCE_IMAGES

    @property
    def journal(self) -> str:
        """Journal text of the current page."""
        return self.journal_by_page.get(self.current_page, "")

    def set_journal(self, text: str, page_id: str | None = None) -> None:
        self.journal_by_page[page_id or self.current_page] = text

    def select_page(self, page_id: str) -> None:
        self.current_page = page_id or DEFAULT_PAGE

    def add_image(self, image: ReferenceImage) -> None:
        """Include an image; newest first, oldest dropped past the cap."""
        self.reference_images = [image, *self.reference_images][: self.max_images]

    def set_images(self, images: list[ReferenceImage]) -> None:
        self.reference_images = list(images)[: self.max_images]

    def clear_images(self) -> None:
        self.reference_images = []

    @property
    def style(self) -> dict[str, str]:
        """Style options that take part in the fingerprint."""
        return {
            "preset": self.style_preset,
            "aspect": self.aspect_hint,
            "negative": self.negative_hint,
        }

    def prompt(self) -> str:
        return compose_prompt(
            self.journal,
            self.style_preset,
            self.aspect_hint,
            self.negative_hint,
        )

    def fingerprint(self) -> str:
        """Fingerprint of journal text, images and style options."""
        return fingerprint(self.journal, self.reference_images, self.style)

    def build_request(self, mode: ProviderMode) -> GenerationRequest:
        """Build a fresh request from the current inputs."""
        return GenerationRequest(
            text_context=self.prompt(),
            reference_images=tuple(self.reference_images),
            provider_mode=mode,
            aspect_hint=simplified_aspect(self.aspect_hint) or None,
            negative_hint=self.negative_hint or None,
        )

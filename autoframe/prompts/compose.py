"""Prompt composition for journal-driven image generation.

Turns the tail of the journal plus style options into the prompt text sent
to the image providers.

Examples:
    >>> from autoframe.prompts.compose import compose_prompt
    >>> print(compose_prompt("A walk by the harbour", "Watercolor", "16:9", ""))
    Describe and render a single coherent image based on this writing: A walk by the harbour
    Style: Watercolor. Camera: 85mm portrait, golden hour lighting.
    Frame: 16:9.
    High-fidelity, realistic textures, consistent composition. No embedded text unless explicitly asked.
"""

from autoframe.config import JOURNAL_TAIL_CHARS
from autoframe.core.providers.base import accepted_aspect_ratio

QUALITY_LINE = (
    "High-fidelity, realistic textures, consistent composition. "
    "No embedded text unless explicitly asked."
)


def compose_prompt(
    journal: str,
    style_preset: str,
    aspect_hint: str = "",
    negative: str = "",
) -> str:
    """Compose the generation prompt.

    Args:
        journal: Journal text; only the last ``JOURNAL_TAIL_CHARS`` are used.
        style_preset: Style name (Photorealistic, Cinematic...).
        aspect_hint: Free-form framing hint.
        negative: Things to avoid.

    Returns:
        str: Newline-separated prompt.
    """
    recent = journal[-JOURNAL_TAIL_CHARS:]
    lines: list[str] = []
    if recent.strip():
        lines.append(f"Describe and render a single coherent image based on this writing: {recent}")
    lines.append(f"Style: {style_preset}. Camera: 85mm portrait, golden hour lighting.")
    if aspect_hint:
        lines.append(f"Frame: {aspect_hint}.")
    if negative.strip():
        lines.append(f"Avoid: {negative}.")
    lines.append(QUALITY_LINE)
    return "\n".join(lines)


def simplified_aspect(hint: str) -> str:
    """Reduce a free-form framing hint to an accepted ratio, or ""."""
    return accepted_aspect_ratio(hint) or ""

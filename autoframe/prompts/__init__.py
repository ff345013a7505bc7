"""Prompt templates."""

from autoframe.prompts.compose import compose_prompt, simplified_aspect

__all__ = ["compose_prompt", "simplified_aspect"]

"""autoframe - scheduled journal-to-image generation with Gemini and Imagen."""

__version__ = "0.1.0"

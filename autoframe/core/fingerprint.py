"""Fingerprints of generation inputs, used to skip unchanged generations.

Two structurally identical inputs (same text, same images in the same order,
same style options) fingerprint equal; any difference, including whitespace,
fingerprints unequal.

Tests:
    - tests/unit/test_fingerprint.py
"""

import hashlib
import json
from collections.abc import Iterable, Mapping
from typing import Any

from autoframe.schemas import ReferenceImage


def fingerprint(
    text: str,
    images: Iterable[ReferenceImage] = (),
    style: Mapping[str, Any] | None = None,
) -> str:
    """Fingerprint the current generation inputs.

    Args:
        text: Journal / prompt text, compared verbatim.
        images: Reference images in order.
        style: Style options (preset, aspect, negative cues...).

    Returns:
        str: Hex digest, equality-comparable to an earlier fingerprint.

    Examples:
        >>> fingerprint("hello") == fingerprint("hello ")
        False
    """
    payload = {
        "text": text,
        "images": [[image.mime_type, image.data] for image in images],
        "style": dict(style or {}),
    }
    encoded = json.dumps(payload, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()

"""Utility helpers for normalizing channel names."""

from __future__ import annotations

import re
import unicodedata

MAX_CHANNEL_NAME_LENGTH = 128


def normalize_channel_name(value: str) -> str:
    """Lowercase the name and turn runs of whitespace into single hyphens.

    ``"  Team   Updates "`` becomes ``"team-updates"``. Punctuation is kept so
    that names like ``"q3-planning.v2"`` survive unchanged.
    """

    normalized = unicodedata.normalize("NFKC", value).strip()
    if not normalized:
        return ""
    lowered = normalized.casefold()
    slug = re.sub(r"\s+", "-", lowered, flags=re.UNICODE)
    return slug[:MAX_CHANNEL_NAME_LENGTH].rstrip("-")

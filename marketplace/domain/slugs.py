"""Slug helpers for public NFT URLs."""
from __future__ import annotations

import re
import unicodedata

_NON_WORD = re.compile(r"[^a-z0-9\s-]")
_SEPARATORS = re.compile(r"[\s_-]+")


def slugify(value: str | None) -> str:
    """Lower-case ASCII slug: "Bored Ape #12" -> "bored-ape-12"."""
    if not value:
        return ""
    normalized = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    cleaned = _NON_WORD.sub("", normalized.lower())
    return _SEPARATORS.sub("-", cleaned).strip("-")

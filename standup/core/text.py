"""Text normalization shared by the heuristics."""

from __future__ import annotations

import re
import unicodedata

_SPACES_RE = re.compile(r"\s+")
_NON_ALNUM_RE = re.compile(r"[^\w\s]|_")


def strip_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_text(text: str) -> str:
    """Lowercase, drop accents and collapse whitespace."""
    return _SPACES_RE.sub(" ", strip_diacritics(text.lower())).strip()


def normalize_words(text: str) -> str:
    """normalize_text with every non-alphanumeric character turned into a space."""
    return _SPACES_RE.sub(" ", _NON_ALNUM_RE.sub(" ", strip_diacritics(text.lower()))).strip()

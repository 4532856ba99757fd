"""
Text canonicalization for classification.

OCR output mixes accents, casing and stray punctuation. Keyword matching
works on a canonical form:
- accents decomposed and stripped ("crédito" → "credito")
- lowercase
- everything outside [a-z0-9,] and whitespace replaced by a space
- whitespace runs collapsed, ends trimmed
"""

import re
import unicodedata

_DISALLOWED = re.compile(r"[^a-z0-9\s,]")
_WHITESPACE = re.compile(r"\s+")


def strip_accents(text: str) -> str:
    """Remove combining marks after NFD decomposition."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_text(raw: str | None) -> str:
    """Return the canonical form of ``raw``. Total: ``None`` yields ``""``."""
    if not raw:
        return ""
    text = strip_accents(raw).lower()
    text = _DISALLOWED.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()

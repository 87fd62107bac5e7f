from __future__ import annotations

import unicodedata


def normalize_text(value: object) -> str:
    """Lowercase, strip accents and surrounding whitespace for comparisons."""
    if value is None:
        return ""
    decomposed = unicodedata.normalize("NFD", str(value).lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).strip()


def collation_key(value: str) -> tuple[str, str]:
    """Sort key approximating locale-aware ordering for Portuguese text.

    Accents and case are ignored on the first pass; the raw string breaks ties
    so the ordering stays total and deterministic.
    """
    return (normalize_text(value).casefold(), value)


def split_terms(query: str) -> list[str]:
    """Split a comma-separated query into lowercase, trimmed, non-empty terms."""
    return [t.strip().lower() for t in query.split(",") if t.strip()]

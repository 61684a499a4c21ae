from __future__ import annotations

import unicodedata


def remove_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return unicodedata.normalize("NFC", stripped)


def fold(text: str) -> str:
    """Case- and accent-insensitive form used for lookups."""
    return remove_diacritics(text).casefold().strip()

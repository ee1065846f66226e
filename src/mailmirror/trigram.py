"""Accent folding and pg_trgm-compatible trigram similarity."""
import unicodedata
from functools import lru_cache

# Letters NFKD leaves intact but unaccent() maps to ASCII
_EXTRA_FOLDS = str.maketrans(
    {
        "đ": "d",
        "ð": "d",
        "ø": "o",
        "ł": "l",
        "ß": "ss",
        "æ": "ae",
        "œ": "oe",
        "þ": "th",
    }
)


def fold(text: str | None) -> str:
    """Lower-case text and strip diacritics.

    Args:
        text: Raw text, possibly None.

    Returns:
        Folded text suitable for case- and accent-insensitive matching.
    """
    if not text:
        return ""
    lowered = text.lower().translate(_EXTRA_FOLDS)
    decomposed = unicodedata.normalize("NFKD", lowered)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _words(text: str) -> list[str]:
    words: list[str] = []
    current: list[str] = []
    for ch in text:
        if ch.isalnum():
            current.append(ch)
        elif current:
            words.append("".join(current))
            current = []
    if current:
        words.append("".join(current))
    return words


@lru_cache(maxsize=4096)
def trigrams(text: str) -> frozenset[str]:
    """Extract the pg_trgm trigram set of a string.

    Each alphanumeric word is padded with two leading blanks and one
    trailing blank before its three-character windows are collected.

    Args:
        text: Input string (folded before extraction).

    Returns:
        Set of trigrams.
    """
    grams: set[str] = set()
    for word in _words(fold(text)):
        padded = f"  {word} "
        for i in range(len(padded) - 2):
            grams.add(padded[i : i + 3])
    return frozenset(grams)


def similarity(left: str | None, right: str | None) -> float:
    """Trigram similarity between two strings.

    Args:
        left: First string.
        right: Second string.

    Returns:
        Shared trigrams over the union of trigrams, in [0, 1].
    """
    a = trigrams(left or "")
    b = trigrams(right or "")
    if not a or not b:
        return 0.0
    shared = len(a & b)
    return shared / (len(a) + len(b) - shared)


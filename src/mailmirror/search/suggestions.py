"""Scoring and merging of autocomplete suggestions."""

import math
import string
from collections import Counter
from collections.abc import Iterable
from datetime import UTC, datetime

from mailmirror.search.schemas import Suggestion
from mailmirror.trigram import fold

_TOKEN_STRIP = string.punctuation + "“”‘’«»…"
_SECONDS_PER_DAY = 86400.0


def sender_score(frequency: int) -> float:
    """Score for a sender seen ``frequency`` times, in [0.6, 0.95]."""
    return min(0.6 + math.log(frequency + 1) / 10, 0.95)


def subject_score(frequency: int) -> float:
    """Score for a subject keyword seen ``frequency`` times, in [0.4, 0.85]."""
    return min(0.4 + math.log(frequency + 1) / 12, 0.85)


def history_score(count: int, last_used_at: datetime, now: datetime | None = None) -> float:
    """Score for a past query from its use count and recency, in [0, 1].

    Args:
        count: Times the query was run.
        last_used_at: Last run time (naive values are taken as UTC).
        now: Reference time, defaults to the current UTC time.

    Returns:
        Weighted blend of frequency (70%) and 30-day linear recency (30%).
    """
    now = now or datetime.now(UTC)
    if last_used_at.tzinfo is None:
        last_used_at = last_used_at.replace(tzinfo=UTC)
    days = max(0.0, (now - last_used_at).total_seconds() / _SECONDS_PER_DAY)
    frequency = math.log(count + 1) / 5
    recency = max(0.0, 1 - days / 30)
    return max(0.0, min(0.7 * frequency + 0.3 * recency, 1.0))


def subject_keywords(subjects: Iterable[str], needle: str, limit: int) -> list[tuple[str, int]]:
    """Most frequent subject words containing a substring.

    Args:
        subjects: Subject lines to tokenize on whitespace.
        needle: Substring every keyword must contain (case and accent folded).
        limit: Maximum keywords returned.

    Returns:
        (keyword, frequency) pairs, most frequent first.
    """
    folded_needle = fold(needle)
    counts: Counter[str] = Counter()
    for subject in subjects:
        for raw in subject.split():
            word = raw.strip(_TOKEN_STRIP).lower()
            if len(word) >= 2 and folded_needle in fold(word):
                counts[word] += 1
    return counts.most_common(limit)


def merge_suggestions(groups: Iterable[Iterable[Suggestion]], limit: int) -> list[Suggestion]:
    """Union suggestion lists, keeping one entry per case-insensitive value.

    On collision the higher score wins; equal scores keep the earlier entry.

    Args:
        groups: Suggestion lists from the individual generators.
        limit: Maximum suggestions returned.

    Returns:
        Deduplicated suggestions, highest score first.
    """
    best: dict[str, Suggestion] = {}
    for group in groups:
        for suggestion in group:
            key = suggestion.value.casefold()
            current = best.get(key)
            if current is None or suggestion.score > current.score:
                best[key] = suggestion
    ranked = sorted(best.values(), key=lambda s: s.score, reverse=True)
    return ranked[:limit]

"""
Core Utility Functions.

Common utilities used across the application.
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional, Set


def utc_now() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Coerce a datetime to timezone-aware UTC.

    Naive datetimes are assumed to already be UTC (that is how the
    article service and stored documents serialize them).
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    """Clamp value into [lower, upper]."""
    return max(lower, min(upper, value))


def normalize_title(title: Optional[str]) -> str:
    """
    Normalize an article title for duplicate detection.

    Lower-cases and trims only; punctuation differences are not folded.
    """
    return (title or "").lower().strip()


def unique_in_order(items: Iterable[str]) -> List[str]:
    """Drop repeated items while keeping first-seen order."""
    seen: Set[str] = set()
    result: List[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


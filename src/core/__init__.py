"""
Core module for cross-cutting concerns.

This module provides:
- Structured logging configuration
- The engine's error taxonomy
- Common utilities
"""

from core.errors import (
    ArticleSourceError,
    OfflineQueueError,
    PersonalizationError,
    ProfileConflictError,
    ProfileStoreError,
)
from core.logging import configure_logging, get_logger
from core.utils import clamp, ensure_utc, normalize_title, utc_now

__all__ = [
    "configure_logging",
    "get_logger",
    "PersonalizationError",
    "ProfileStoreError",
    "ProfileConflictError",
    "OfflineQueueError",
    "ArticleSourceError",
    "clamp",
    "ensure_utc",
    "normalize_title",
    "utc_now",
]

"""
Pytest configuration and shared fixtures for the personalization tests.
"""
import os
import sys
from datetime import datetime, timedelta, timezone
from typing import Callable
from unittest.mock import MagicMock

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

# Load environment variables
from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env"))


# Fixed clock shared by tests: a Wednesday, 14:00 UTC
NOW = datetime(2024, 5, 15, 14, 0, tzinfo=timezone.utc)


# ============================================================================
# Fixtures: Test Data Factories
# ============================================================================

@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def sample_article_dict() -> dict:
    """Sample article as returned by the article service."""
    return {
        "id": "article-001",
        "title": "Markets rally on tech earnings",
        "description": "Stocks climbed after strong quarterly results.",
        "category": "technology",
        "source_id": "the-hindu",
        "language": "en",
        "country": "india",
        "published_at": (NOW - timedelta(hours=2)).isoformat(),
        "url": "https://example.com/articles/001",
    }


@pytest.fixture
def make_article() -> Callable:
    """Factory for Article models with sensible defaults."""
    from personalization.models import Article

    counter = {"n": 0}

    def _make(
        category: str = "technology",
        hours_old: float = 2.0,
        source_id: str = "the-hindu",
        title: str = None,
        language: str = "en",
        country: str = "india",
        article_id: str = None,
    ) -> Article:
        counter["n"] += 1
        n = counter["n"]
        return Article(
            id=article_id or f"article-{n:03d}",
            title=title or f"{category.title()} story {n}",
            category=category,
            source_id=source_id,
            language=language,
            country=country,
            published_at=NOW - timedelta(hours=hours_old),
        )

    return _make


@pytest.fixture
def make_profile() -> Callable:
    """Factory for UserProfile models."""
    from personalization.models import BehaviorData, CategoryPreference, UserProfile

    def _make(
        user_id: str = "test-user-001",
        categories: dict = None,
        total_read: int = 0,
        preferred_hours: list = None,
    ) -> UserProfile:
        prefs = [
            CategoryPreference(
                category=name,
                weight=weight,
                interaction_count=count,
                last_interaction=NOW,
            )
            for name, (weight, count) in (categories or {}).items()
        ]
        return UserProfile(
            user_id=user_id,
            category_preferences=prefs,
            behavior_data=BehaviorData(
                total_articles_read=total_read,
                preferred_reading_times=preferred_hours or [],
            ),
            created_at=NOW,
            updated_at=NOW,
        )

    return _make


@pytest.fixture
def config():
    from personalization.models import PersonalizationConfig
    return PersonalizationConfig()


# ============================================================================
# Fixtures: Backends and Services
# ============================================================================

@pytest.fixture
def profile_backend():
    from services.profile_store import InMemoryProfileBackend
    return InMemoryProfileBackend()


@pytest.fixture
def profile_store(profile_backend, config):
    from services.profile_store import ProfileStoreAdapter
    return ProfileStoreAdapter(profile_backend, config=config, max_retries=3)


@pytest.fixture
def queue_backend():
    from services.offline_queue import InMemoryQueueBackend
    return InMemoryQueueBackend()


@pytest.fixture
def offline_queue(queue_backend):
    from services.offline_queue import OfflineInteractionQueue
    return OfflineInteractionQueue(queue_backend)


@pytest.fixture
def auth():
    from services.collaborators import StaticAuthProvider
    return StaticAuthProvider("test-user-001")


@pytest.fixture
def connectivity():
    from services.collaborators import ManualConnectivityMonitor
    return ManualConnectivityMonitor()


@pytest.fixture
def points_sink():
    from services.collaborators import InMemoryPointsSink
    return InMemoryPointsSink()


@pytest.fixture
def tracker(profile_store, offline_queue, auth, connectivity, points_sink, config):
    from services.interaction_tracker import InteractionTracker
    return InteractionTracker(
        profile_store, offline_queue, auth, connectivity, points_sink=points_sink, config=config
    )


@pytest.fixture
def reconciler(profile_store, offline_queue):
    from services.reconciler import Reconciler
    return Reconciler(profile_store, offline_queue)


class StubArticleSource:
    """ArticleSource serving canned articles per category."""

    def __init__(self, by_category: dict = None, fail: bool = False):
        self.by_category = by_category or {}
        self.fail = fail
        self.calls = []

    async def fetch_candidate_articles(self, language, region, category=None):
        self.calls.append((language, region, category))
        if self.fail:
            from core.errors import ArticleSourceError
            raise ArticleSourceError("article service down")
        if category is None:
            return [a for articles in self.by_category.values() for a in articles]
        return list(self.by_category.get(category, []))


@pytest.fixture
def stub_source_class():
    return StubArticleSource


# ============================================================================
# Fixtures: Mock Services
# ============================================================================

@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client for unit tests."""
    mock_client = MagicMock()

    # Mock table operations
    table = mock_client.table.return_value
    table.select.return_value.eq.return_value.limit.return_value.execute.return_value.data = []
    table.insert.return_value.execute.return_value.data = [{"user_id": "test"}]
    table.update.return_value.eq.return_value.eq.return_value.execute.return_value.data = [{"user_id": "test"}]
    table.delete.return_value.eq.return_value.execute.return_value.data = []

    return mock_client


# ============================================================================
# Markers auto-use
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "redis: marks tests that require a Redis server")
    config.addinivalue_line("markers", "supabase: marks tests that require Supabase")

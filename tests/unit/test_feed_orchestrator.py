"""
Tests for the feed orchestrator.
"""

from collections import Counter
from unittest.mock import MagicMock, patch

import pytest


@pytest.fixture
def make_orchestrator(profile_store, offline_queue, connectivity, config):
    from personalization.assembler import FeedAssembler
    from services.feed_orchestrator import FeedOrchestrator

    def _make(source, assembler=None):
        return FeedOrchestrator(
            profile_store, offline_queue, source, connectivity, assembler or FeedAssembler(config)
        )

    return _make


class TestCategorySelection:

    def test_new_profile_uses_fallback_set(self, make_orchestrator, stub_source_class, make_profile):
        orchestrator = make_orchestrator(stub_source_class())

        categories = orchestrator.select_categories(make_profile())

        assert categories == ["general", "business", "technology", "sports", "entertainment"]

    def test_seeded_profile_gets_neutral_categories(self, make_orchestrator, stub_source_class):
        from personalization.models import create_default_profile

        orchestrator = make_orchestrator(stub_source_class())

        categories = orchestrator.select_categories(create_default_profile("u"))

        # All seeded at 0.5: no top categories, first three neutral ones, plus general
        assert categories == ["general", "business", "entertainment"]

    def test_top_and_diversity_plus_general(self, make_orchestrator, stub_source_class, make_profile):
        orchestrator = make_orchestrator(stub_source_class())
        profile = make_profile(categories={
            "technology": (0.9, 8),
            "sports": (0.8, 4),
            "health": (0.4, 1),
            "politics": (0.1, 6),
        })

        categories = orchestrator.select_categories(profile)

        assert categories == ["technology", "sports", "politics", "health", "general"]


class TestGetFeed:

    async def test_personalized_feed(self, make_orchestrator, stub_source_class, make_article, profile_store, now):
        source = stub_source_class({
            "general": [make_article("general", hours_old=h) for h in (1, 2)],
            "business": [make_article("business", hours_old=h) for h in (3, 4, 5, 6)],
            "entertainment": [make_article("entertainment", hours_old=7)],
        })
        orchestrator = make_orchestrator(source)

        feed = await orchestrator.get_feed("user-1", "en", "india", limit=5, now=now)

        assert len(feed) == 5
        assert {c for _, _, c in source.calls} == {"general", "business", "entertainment"}
        assert await profile_store.get_profile("user-1") is not None

    async def test_duplicate_titles_removed(self, make_orchestrator, stub_source_class, make_article, now):
        source = stub_source_class({
            "general": [make_article("general", title="Budget passed ")],
            "business": [make_article("business", title="budget PASSED")],
        })

        feed = await make_orchestrator(source).get_feed("user-1", "en", "india", now=now)

        assert len(feed) == 1
        assert feed[0].category == "general"

    async def test_requested_category_only(self, make_orchestrator, stub_source_class, make_article, now):
        source = stub_source_class({
            "sports": [make_article("sports") for _ in range(3)],
            "general": [make_article("general")],
        })

        feed = await make_orchestrator(source).get_feed("user-1", "en", "india", category="sports", now=now)

        assert source.calls == [("en", "india", "sports")]
        assert Counter(a.category for a in feed) == {"sports": 3}

    async def test_limit_truncates(self, make_orchestrator, stub_source_class, make_article, now):
        source = stub_source_class({"sports": [make_article("sports", hours_old=i) for i in range(10)]})

        feed = await make_orchestrator(source).get_feed("user-1", "en", "india", category="sports", limit=2, now=now)

        assert len(feed) == 2


class TestFallback:

    async def test_ranking_error_falls_back_to_unranked(
        self, make_orchestrator, stub_source_class, make_article, now
    ):
        articles = [make_article("sports") for _ in range(4)]
        source = stub_source_class({"sports": articles})
        assembler = MagicMock()
        assembler.rank.side_effect = RuntimeError("scoring blew up")

        feed = await make_orchestrator(source, assembler).get_feed(
            "user-1", "en", "india", category="sports", now=now
        )

        assert [a.id for a in feed] == [a.id for a in articles]

    async def test_everything_failing_returns_empty(self, make_orchestrator, stub_source_class, now):
        feed = await make_orchestrator(stub_source_class(fail=True)).get_feed("user-1", "en", "india", now=now)

        assert feed == []

    async def test_store_failure_uses_default_profile(
        self, make_orchestrator, stub_source_class, make_article, profile_store, now
    ):
        from core.errors import ProfileStoreError

        source = stub_source_class({"sports": [make_article("sports") for _ in range(5)]})

        with patch.object(profile_store, "get_profile", side_effect=ProfileStoreError("down")):
            feed = await make_orchestrator(source).get_feed("user-1", "en", "india", category="sports", now=now)

        # Default profile means the balanced new-user feed
        assert len(feed) == 3


class TestOfflineProfile:

    async def test_offline_ranks_with_mirror(
        self, make_orchestrator, stub_source_class, make_article, make_profile, offline_queue, connectivity, now
    ):
        mirror = make_profile(user_id="user-1", categories={"sports": (0.9, 6)}, total_read=20)
        await offline_queue.save_mirror(mirror)
        connectivity.set_offline()
        orchestrator = make_orchestrator(stub_source_class())

        profile = await orchestrator.load_profile("user-1", "en", "india")

        assert profile.get_category_preference("sports").weight == 0.9

    async def test_offline_without_mirror_uses_default(
        self, make_orchestrator, stub_source_class, connectivity, profile_backend
    ):
        connectivity.set_offline()

        profile = await make_orchestrator(stub_source_class()).load_profile("user-1", "hi", "india")

        assert profile.language == "hi"
        assert await profile_backend.load("user-1") is None

    async def test_offline_without_mirror_uses_last_remote_profile(
        self, make_orchestrator, stub_source_class, profile_store, connectivity
    ):
        await profile_store.get_profile("user-1")
        for _ in range(4):
            await profile_store.apply_interaction("user-1", "sports", "espn", "read")
        connectivity.set_offline()

        profile = await make_orchestrator(stub_source_class()).load_profile("user-1", "en", "india")

        assert profile.get_category_preference("sports").interaction_count == 4
        assert profile.revision == 4


class TestBalancedFeed:
    """Feed served to signed-out users."""

    async def test_even_slices_newest_first(self, make_orchestrator, stub_source_class, make_article):
        source = stub_source_class({
            "general": [make_article("general", hours_old=h) for h in (10, 1, 2)],
            "business": [make_article("business", hours_old=h) for h in (3, 20, 4)],
            "health": [make_article("health", hours_old=h) for h in (5, 6)],
            "world": [make_article("world", hours_old=0.5)],
        })

        feed = await make_orchestrator(source).get_balanced_feed("en", "india", limit=12)

        # ceil(12 / 6) = 2 from the head of each category
        assert {c for _, _, c in source.calls} == {
            "general", "business", "technology", "sports", "entertainment", "health",
        }
        assert [a.category for a in feed] == ["general", "business", "health", "health", "general", "business"]
        published = [a.published_at for a in feed]
        assert published == sorted(published, reverse=True)

    async def test_truncated_to_limit(self, make_orchestrator, stub_source_class, make_article):
        source = stub_source_class({
            category: [make_article(category, hours_old=h) for h in range(1, 8)]
            for category in ("general", "business", "technology", "sports", "entertainment", "health")
        })

        feed = await make_orchestrator(source).get_balanced_feed("en", "india", limit=10)

        assert len(feed) == 10
        assert max(Counter(a.category for a in feed).values()) <= 2

    async def test_default_limit(self, make_orchestrator, stub_source_class, make_article):
        source = stub_source_class({
            category: [make_article(category, hours_old=h) for h in range(1, 10)]
            for category in ("general", "business", "technology", "sports", "entertainment", "health")
        })

        feed = await make_orchestrator(source).get_balanced_feed("en", "india")

        assert len(feed) == 30
        assert set(Counter(a.category for a in feed).values()) == {5}

    async def test_category_failure_falls_back_to_unranked(
        self, make_orchestrator, stub_source_class, make_article
    ):
        from core.errors import ArticleSourceError

        general = [make_article("general") for _ in range(3)]
        source = stub_source_class({"general": general})
        fetch = source.fetch_candidate_articles

        async def flaky(language, region, category=None):
            if category == "health":
                raise ArticleSourceError("timeout")
            return await fetch(language, region, category)

        source.fetch_candidate_articles = flaky

        feed = await make_orchestrator(source).get_balanced_feed("en", "india")

        assert [a.id for a in feed] == [a.id for a in general]


class TestSimilarArticles:

    async def test_base_article_excluded(self, make_orchestrator, stub_source_class, make_article):
        base = make_article("science", article_id="base")
        others = [make_article("science") for _ in range(3)]
        source = stub_source_class({"science": [others[0], base, *others[1:]]})

        similar = await make_orchestrator(source).get_similar_articles(base)

        assert source.calls == [("en", "india", "science")]
        assert [a.id for a in similar] == [a.id for a in others]

    async def test_ranked_for_user_without_category_cap(
        self, make_orchestrator, stub_source_class, make_article, now
    ):
        base = make_article("science", article_id="base")
        candidates = [make_article("science", hours_old=h) for h in (30, 2, 100, 5, 50)]
        source = stub_source_class({"science": candidates})

        similar = await make_orchestrator(source).get_similar_articles(base, "user-1", limit=4, now=now)

        assert len(similar) == 4
        hours = [round((now - a.published_at).total_seconds() / 3600) for a in similar]
        assert hours == [2, 5, 30, 50]

    async def test_failure_returns_empty(self, make_orchestrator, stub_source_class, make_article):
        base = make_article("science")

        similar = await make_orchestrator(stub_source_class(fail=True)).get_similar_articles(base, "user-1")

        assert similar == []

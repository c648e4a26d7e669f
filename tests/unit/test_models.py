"""
Tests for the preference model (personalization/models.py).
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError


class TestCreateDefaultProfile:
    """Tests for first-access profiles."""

    def test_seeds_default_categories(self, now):
        from config.constants import DEFAULT_CATEGORIES
        from personalization.models import create_default_profile

        profile = create_default_profile("user-1", now=now)

        assert [cp.category for cp in profile.category_preferences] == DEFAULT_CATEGORIES
        assert all(cp.weight == 0.5 for cp in profile.category_preferences)
        assert all(cp.interaction_count == 0 for cp in profile.category_preferences)
        assert profile.source_preferences == []
        assert profile.language == "en"
        assert profile.region == "india"
        assert profile.version == 2
        assert profile.revision == 0

    def test_unseeded_profile(self, now):
        from personalization.models import create_default_profile

        profile = create_default_profile("user-1", now=now, seed_categories=False)

        assert profile.category_preferences == []
        assert profile.behavior_data.average_reading_time == 3.0


class TestUserProfileValidation:
    """Tests for document loading and invariants."""

    def test_accepts_camel_case_document(self):
        from personalization.models import UserProfile

        profile = UserProfile.from_document({
            "userId": "user-1",
            "categoryPreferences": [
                {"category": "sports", "weight": 0.7, "interactionCount": 4,
                 "lastInteraction": "2024-05-01T10:00:00Z"},
            ],
            "sourcePreferences": [{"sourceId": "bbc", "weight": 0.6, "interactionCount": 1}],
            "behaviorData": {"totalArticlesRead": 12, "swipePatterns": {"upSwipes": 2}},
            "version": 1,
        })

        assert profile.user_id == "user-1"
        assert profile.get_category_preference("sports").interaction_count == 4
        assert profile.get_source_preference("bbc").weight == 0.6
        assert profile.behavior_data.total_articles_read == 12
        assert profile.behavior_data.swipe_patterns.up_swipes == 2

    def test_old_schema_version_is_migrated(self):
        from personalization.models import UserProfile

        profile = UserProfile.from_document({"user_id": "user-1", "version": 1})

        assert profile.version == 2
        assert profile.revision == 0
        assert profile.category_preferences == []

    def test_duplicate_keys_keep_first(self):
        from personalization.models import UserProfile

        profile = UserProfile.from_document({
            "user_id": "user-1",
            "category_preferences": [
                {"category": "sports", "weight": 0.9},
                {"category": "sports", "weight": 0.1},
            ],
        })

        assert len(profile.category_preferences) == 1
        assert profile.get_category_preference("sports").weight == 0.9

    def test_weight_out_of_range_rejected(self):
        from personalization.models import CategoryPreference

        with pytest.raises(ValidationError):
            CategoryPreference(category="sports", weight=1.5)

    def test_preferred_reading_times_sorted_unique(self):
        from personalization.models import BehaviorData

        behavior = BehaviorData(preferred_reading_times=[20, 8, 20, 13])

        assert behavior.preferred_reading_times == [8, 13, 20]

    def test_preferred_reading_time_out_of_range(self):
        from personalization.models import BehaviorData

        with pytest.raises(ValidationError):
            BehaviorData(preferred_reading_times=[24])

    def test_naive_datetimes_become_utc(self):
        from personalization.models import UserProfile

        profile = UserProfile(user_id="user-1", created_at=datetime(2024, 1, 1, 9, 0))

        assert profile.created_at.tzinfo == timezone.utc

    def test_document_round_trip_preserves_revision(self, make_profile):
        from personalization.models import UserProfile

        profile = make_profile(categories={"sports": (0.8, 5)})
        profile.revision = 7

        restored = UserProfile.from_document(profile.to_document())

        assert restored.revision == 7
        assert restored.get_category_preference("sports").weight == 0.8


class TestCategorySelection:
    """Tests for top and diversity category lookups."""

    def test_top_categories_require_interactions(self, make_profile):
        profile = make_profile(categories={
            "sports": (0.9, 5),
            "technology": (0.95, 2),   # not enough interactions
            "business": (0.7, 3),
        })

        assert profile.top_categories() == ["sports", "business"]

    def test_top_categories_limit(self, make_profile):
        profile = make_profile(categories={f"c{i}": (0.1 * i, 3) for i in range(1, 8)})

        assert profile.top_categories() == ["c7", "c6", "c5", "c4", "c3"]

    def test_diversity_categories_neutral_band_ascending(self, make_profile):
        profile = make_profile(categories={
            "sports": (0.9, 5),
            "health": (0.55, 0),
            "science": (0.3, 1),
            "world": (0.45, 0),
            "politics": (0.6, 0),
            "business": (0.2, 0),
        })

        assert profile.diversity_categories() == ["science", "world", "health"]


class TestArticle:
    """Tests for the Article model."""

    def test_from_service_payload(self, sample_article_dict):
        from personalization.models import Article

        article = Article.model_validate(sample_article_dict)

        assert article.id == "article-001"
        assert article.source_id == "the-hindu"
        assert article.published_at.tzinfo is not None

    def test_numeric_id_and_camel_case(self):
        from personalization.models import Article

        article = Article.model_validate({
            "id": 42,
            "title": "t",
            "category": "world",
            "sourceId": "reuters",
            "publishedAt": "2024-05-15T12:00:00",
        })

        assert article.id == "42"
        assert article.source_id == "reuters"
        assert article.published_at.tzinfo == timezone.utc


class TestPersonalizationConfig:
    """Tests for the process-wide config."""

    def test_defaults(self):
        from personalization.models import PersonalizationConfig

        config = PersonalizationConfig()

        assert config.category_weight_decay == 0.95
        assert config.min_interactions_for_preference == 3
        assert config.diversity_factor == 0.3
        assert config.recency_boost == 0.2
        assert config.max_articles_per_category == 3

    def test_apply_update_merges(self):
        from personalization.models import PersonalizationConfig

        config = PersonalizationConfig()
        config.apply_update({"diversity_factor": 0.5, "max_articles_per_category": 5})

        assert config.diversity_factor == 0.5
        assert config.max_articles_per_category == 5
        assert config.recency_boost == 0.2

    def test_invalid_update_leaves_config_untouched(self):
        from personalization.models import PersonalizationConfig

        config = PersonalizationConfig()
        with pytest.raises(ValidationError):
            config.apply_update({"recency_boost": 0.4, "diversity_factor": 1.5})

        assert config.recency_boost == 0.2
        assert config.diversity_factor == 0.3

    def test_unknown_key_rejected(self):
        from personalization.models import PersonalizationConfig

        with pytest.raises(ValidationError):
            PersonalizationConfig().apply_update({"boost": 1})

    def test_from_settings(self):
        from config.settings import get_settings_for_testing
        from personalization.models import PersonalizationConfig

        settings = get_settings_for_testing(personalization_diversity_factor=0.4)

        assert PersonalizationConfig.from_settings(settings).diversity_factor == 0.4

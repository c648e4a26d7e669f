"""
Tests for the configuration module.
"""

from unittest.mock import patch

import pytest


class TestSettings:
    """Tests for Settings class."""

    def test_defaults(self):
        """Test default values without any environment."""
        from config.settings import Settings

        settings = Settings(_env_file=None)

        assert settings.profiles_table == "user_profiles"
        assert settings.article_api_base_url == "http://localhost:4000"
        assert settings.default_language == "en"
        assert settings.default_region == "india"
        assert settings.default_feed_limit == 50
        assert settings.profile_write_max_retries == 3

    def test_is_development_property(self):
        """Test is_development property."""
        from config.settings import Settings

        for env in ["development", "dev", "local"]:
            assert Settings(_env_file=None, environment=env).is_development is True

        assert Settings(_env_file=None, environment="production").is_development is False

    def test_is_production_property(self):
        """Test is_production property."""
        from config.settings import Settings

        for env in ["production", "prod"]:
            assert Settings(_env_file=None, environment=env).is_production is True

        assert Settings(_env_file=None, environment="development").is_production is False

    def test_supabase_configured(self):
        from config.settings import Settings

        assert Settings(_env_file=None, supabase_url="", supabase_service_key="").supabase_configured is False
        assert Settings(
            _env_file=None,
            supabase_url="https://test.supabase.co",
            supabase_service_key="test-key",
        ).supabase_configured is True

    def test_backend_and_log_level_normalized(self):
        from config.settings import Settings

        settings = Settings(
            _env_file=None,
            log_level=" debug",
            profile_store_backend="Supabase",
            offline_queue_backend=" REDIS ",
        )

        assert settings.log_level == "DEBUG"
        assert settings.profile_store_backend == "supabase"
        assert settings.offline_queue_backend == "redis"

    def test_personalization_defaults_from_env(self):
        from config.settings import Settings

        env = {
            "PERSONALIZATION_DIVERSITY_FACTOR": "0.45",
            "PERSONALIZATION_MAX_ARTICLES_PER_CATEGORY": "5",
        }
        with patch.dict("os.environ", env):
            settings = Settings(_env_file=None)

        assert settings.personalization_diversity_factor == 0.45
        assert settings.personalization_max_articles_per_category == 5

    def test_invalid_personalization_default_rejected(self):
        from pydantic import ValidationError
        from config.settings import Settings

        with pytest.raises(ValidationError):
            Settings(_env_file=None, personalization_diversity_factor=1.2)

    def test_settings_for_testing(self):
        """Test get_settings_for_testing function."""
        from config.settings import get_settings_for_testing

        settings = get_settings_for_testing(default_region="us")

        assert settings.environment == "testing"
        assert settings.debug is True
        assert settings.profile_store_backend == "memory"
        assert settings.offline_queue_backend == "memory"
        assert settings.default_region == "us"

    def test_get_settings_is_cached(self):
        from config.settings import get_settings

        assert get_settings() is get_settings()


class TestConstants:
    """Tests for constants module."""

    def test_weight_rule_defaults(self):
        from config.constants import DEFAULT_WEIGHT_RULE

        assert DEFAULT_WEIGHT_RULE.INTERACTION_DELTAS == {
            "save": 0.15, "share": 0.12, "read": 0.08, "skip": -0.05,
        }
        assert DEFAULT_WEIGHT_RULE.SEED_WEIGHT == 0.5

    def test_recency_buckets_ascending(self):
        from config.constants import DEFAULT_SCORING_CONSTANTS

        bounds = [upper for upper, _ in DEFAULT_SCORING_CONSTANTS.RECENCY_BUCKETS]
        scores = [score for _, score in DEFAULT_SCORING_CONSTANTS.RECENCY_BUCKETS]

        assert bounds == sorted(bounds)
        assert scores == sorted(scores, reverse=True)
        assert DEFAULT_SCORING_CONSTANTS.RECENCY_FLOOR < scores[-1]

    def test_category_lists(self):
        from config.constants import DEFAULT_CATEGORIES, FALLBACK_FETCH_CATEGORIES, PRIORITY_CATEGORIES

        assert len(DEFAULT_CATEGORIES) == 10
        assert set(PRIORITY_CATEGORIES) <= set(DEFAULT_CATEGORIES)
        assert set(FALLBACK_FETCH_CATEGORIES) <= set(DEFAULT_CATEGORIES)

    def test_constants_are_frozen(self):
        from dataclasses import FrozenInstanceError
        from config.constants import DEFAULT_FEED_CONFIG

        with pytest.raises(FrozenInstanceError):
            DEFAULT_FEED_CONFIG.NEW_USER_READ_THRESHOLD = 3


class TestDatabase:
    """Tests for database module."""

    def test_supabase_client_requires_configuration(self):
        from config.database import SupabaseClientError, get_supabase_client
        from config.settings import get_settings_for_testing

        get_supabase_client.cache_clear()
        with patch("config.database.get_settings", return_value=get_settings_for_testing(
            supabase_url="", supabase_service_key="",
        )):
            with pytest.raises(SupabaseClientError):
                get_supabase_client()

    def test_supabase_client_optional_returns_none_on_error(self):
        from config.database import get_supabase_client, get_supabase_client_optional
        from config.settings import get_settings_for_testing

        get_supabase_client.cache_clear()
        with patch("config.database.get_settings", return_value=get_settings_for_testing(
            supabase_url="", supabase_service_key="",
        )):
            assert get_supabase_client_optional() is None

    def test_supabase_client_singleton(self, mock_supabase_client):
        from config.database import get_supabase_client
        from config.settings import get_settings_for_testing

        get_supabase_client.cache_clear()
        settings = get_settings_for_testing(
            supabase_url="https://test.supabase.co", supabase_service_key="test-key",
        )
        with patch("config.database.get_settings", return_value=settings), \
                patch("config.database.create_client", return_value=mock_supabase_client) as create:
            client1 = get_supabase_client()
            client2 = get_supabase_client()

        assert client1 is client2 is mock_supabase_client
        create.assert_called_once_with("https://test.supabase.co", "test-key")
        get_supabase_client.cache_clear()

    def test_redis_client_requires_url(self):
        from config.database import RedisClientError, get_redis_client
        from config.settings import get_settings_for_testing

        get_redis_client.cache_clear()
        with patch("config.database.get_settings", return_value=get_settings_for_testing(redis_url="")):
            with pytest.raises(RedisClientError):
                get_redis_client()

    def test_redis_client_built_from_url(self):
        from config.database import get_redis_client
        from config.settings import get_settings_for_testing

        get_redis_client.cache_clear()
        settings = get_settings_for_testing(redis_url="redis://cache.internal:6379/2")
        with patch("config.database.get_settings", return_value=settings), \
                patch("config.database.aioredis.from_url") as from_url:
            get_redis_client()

        from_url.assert_called_once_with("redis://cache.internal:6379/2", decode_responses=True)
        get_redis_client.cache_clear()

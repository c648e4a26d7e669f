"""
Pydantic models for the personalization engine.

Models cover:
- Per-category and per-source preference weights
- Behavioral aggregates and the user profile document
- Articles, per-pass article scores and offline interaction records
- The process-wide, user-adjustable personalization config
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from config.constants import (
    DEFAULT_CATEGORIES,
    DEFAULT_FEED_CONFIG,
    DEFAULT_WEIGHT_RULE,
    PROFILE_SCHEMA_VERSION,
)
from core.utils import ensure_utc, utc_now


# =============================================================================
# Enums
# =============================================================================

class InteractionType(str, Enum):
    """Tracked interactions that move preference weights."""
    READ = "read"
    SAVE = "save"
    SHARE = "share"
    SKIP = "skip"


class SwipeDirection(str, Enum):
    """Swipe gestures counted in behavior data."""
    UP = "up"       # save for later
    DOWN = "down"   # next article


def _alias(*names: str) -> AliasChoices:
    # Documents written by older clients use camelCase keys
    return AliasChoices(*names)


# =============================================================================
# Preferences
# =============================================================================

class _PreferenceBase(BaseModel):
    """Shared shape of category and source preferences."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    weight: float = Field(default=DEFAULT_WEIGHT_RULE.SEED_WEIGHT, ge=0.0, le=1.0)
    interaction_count: int = Field(
        default=0, ge=0, validation_alias=_alias("interaction_count", "interactionCount")
    )
    last_interaction: datetime = Field(
        default_factory=utc_now, validation_alias=_alias("last_interaction", "lastInteraction")
    )
    # Weeks of decay already folded into weight since last_interaction
    decay_weeks_applied: int = Field(
        default=0, ge=0, validation_alias=_alias("decay_weeks_applied", "decayWeeksApplied")
    )

    @field_validator("last_interaction")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class CategoryPreference(_PreferenceBase):
    """Affinity for a news category."""
    category: str


class SourcePreference(_PreferenceBase):
    """Affinity for a news source; created lazily on first interaction."""
    source_id: str = Field(validation_alias=_alias("source_id", "sourceId"))


# =============================================================================
# Behavior
# =============================================================================

class SwipePatterns(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    up_swipes: int = Field(default=0, ge=0, validation_alias=_alias("up_swipes", "upSwipes"))
    down_swipes: int = Field(default=0, ge=0, validation_alias=_alias("down_swipes", "downSwipes"))


class BehaviorData(BaseModel):
    """Aggregate reading behavior, owned by the preference model."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    total_articles_read: int = Field(
        default=0, ge=0, validation_alias=_alias("total_articles_read", "totalArticlesRead")
    )
    total_articles_saved: int = Field(
        default=0, ge=0, validation_alias=_alias("total_articles_saved", "totalArticlesSaved")
    )
    total_articles_shared: int = Field(
        default=0, ge=0, validation_alias=_alias("total_articles_shared", "totalArticlesShared")
    )
    average_reading_time: float = Field(
        default=3.0, ge=0.0, validation_alias=_alias("average_reading_time", "averageReadingTime")
    )  # minutes
    preferred_reading_times: List[int] = Field(
        default_factory=list,
        validation_alias=_alias("preferred_reading_times", "preferredReadingTimes"),
    )  # hours of day, 0-23
    swipe_patterns: SwipePatterns = Field(
        default_factory=SwipePatterns,
        validation_alias=_alias("swipe_patterns", "swipePatterns"),
    )

    @field_validator("preferred_reading_times")
    @classmethod
    def _valid_hours(cls, v: List[int]) -> List[int]:
        hours = []
        for hour in v:
            if not 0 <= hour <= 23:
                raise ValueError(f"hour of day out of range: {hour}")
            if hour not in hours:
                hours.append(hour)
        return sorted(hours)


class BehaviorUpdate(BaseModel):
    """Increments applied by a single behavior-update call."""
    articles_read: int = Field(default=0, ge=0)
    articles_saved: int = Field(default=0, ge=0)
    articles_shared: int = Field(default=0, ge=0)
    reading_time: Optional[float] = Field(default=None, ge=0.0)  # minutes

    @property
    def is_empty(self) -> bool:
        return not (
            self.articles_read or self.articles_saved or self.articles_shared
            or self.reading_time is not None
        )


# =============================================================================
# User Profile
# =============================================================================

class UserProfile(BaseModel):
    """
    Canonical preference document for one user.

    `version` is the schema version used for forward migration.
    `revision` increments on every successful remote write and is the
    compare-and-set token for concurrent updates.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: str = Field(validation_alias=_alias("user_id", "userId"))
    language: str = "en"
    region: str = "india"
    category_preferences: List[CategoryPreference] = Field(
        default_factory=list,
        validation_alias=_alias("category_preferences", "categoryPreferences"),
    )
    source_preferences: List[SourcePreference] = Field(
        default_factory=list,
        validation_alias=_alias("source_preferences", "sourcePreferences"),
    )
    behavior_data: BehaviorData = Field(
        default_factory=BehaviorData,
        validation_alias=_alias("behavior_data", "behaviorData"),
    )
    created_at: datetime = Field(default_factory=utc_now, validation_alias=_alias("created_at", "createdAt"))
    updated_at: datetime = Field(default_factory=utc_now, validation_alias=_alias("updated_at", "updatedAt"))
    version: int = PROFILE_SCHEMA_VERSION
    revision: int = Field(default=0, ge=0)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @model_validator(mode="after")
    def _migrate(self) -> "UserProfile":
        # Keys must be unique; first occurrence wins
        seen_categories = set()
        categories = []
        for pref in self.category_preferences:
            if pref.category not in seen_categories:
                seen_categories.add(pref.category)
                categories.append(pref)
        seen_sources = set()
        sources = []
        for pref in self.source_preferences:
            if pref.source_id not in seen_sources:
                seen_sources.add(pref.source_id)
                sources.append(pref)
        self.category_preferences = categories
        self.source_preferences = sources
        if self.version < PROFILE_SCHEMA_VERSION:
            self.version = PROFILE_SCHEMA_VERSION
        return self

    # --- Lookups ---

    def get_category_preference(self, category: str) -> Optional[CategoryPreference]:
        for pref in self.category_preferences:
            if pref.category == category:
                return pref
        return None

    def get_source_preference(self, source_id: str) -> Optional[SourcePreference]:
        for pref in self.source_preferences:
            if pref.source_id == source_id:
                return pref
        return None

    def top_categories(
        self,
        limit: int = DEFAULT_FEED_CONFIG.TOP_CATEGORIES_LIMIT,
        min_interactions: int = DEFAULT_FEED_CONFIG.TOP_CATEGORIES_MIN_INTERACTIONS,
    ) -> List[str]:
        """Most preferred categories with enough interactions, by weight."""
        qualifying = [
            cp for cp in self.category_preferences
            if cp.interaction_count >= min_interactions
        ]
        qualifying.sort(key=lambda cp: cp.weight, reverse=True)
        return [cp.category for cp in qualifying[:limit]]

    def diversity_categories(
        self,
        limit: int = DEFAULT_FEED_CONFIG.DIVERSITY_CATEGORIES_LIMIT,
        weight_range: Tuple[float, float] = DEFAULT_FEED_CONFIG.DIVERSITY_WEIGHT_RANGE,
    ) -> List[str]:
        """Neutral categories (neither liked nor disliked), least preferred first."""
        low, high = weight_range
        neutral = [cp for cp in self.category_preferences if low <= cp.weight <= high]
        neutral.sort(key=lambda cp: cp.weight)
        return [cp.category for cp in neutral[:limit]]

    # --- Serialization ---

    def to_document(self) -> Dict[str, Any]:
        """JSON-safe dict for remote and local storage."""
        return self.model_dump(mode="json")

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> "UserProfile":
        return cls.model_validate(data)


def create_default_profile(
    user_id: str,
    language: str = "en",
    region: str = "india",
    now: Optional[datetime] = None,
    seed_categories: bool = True,
) -> UserProfile:
    """
    Build the profile used on first access for a user.

    Seeds every default category at the neutral weight unless
    seed_categories is False, which the local mirror uses when no
    remote profile has been seen yet.
    """
    now = now or utc_now()
    categories = [
        CategoryPreference(category=category, last_interaction=now)
        for category in DEFAULT_CATEGORIES
    ] if seed_categories else []
    return UserProfile(
        user_id=user_id,
        language=language,
        region=region,
        category_preferences=categories,
        created_at=now,
        updated_at=now,
    )


# =============================================================================
# Articles & Scores
# =============================================================================

class Article(BaseModel):
    """Candidate article, supplied by the article service (read-only here)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id: str
    title: str
    description: str = ""
    category: str
    source_id: str = Field(validation_alias=_alias("source_id", "sourceId"))
    language: str = ""
    country: str = ""
    published_at: datetime = Field(validation_alias=_alias("published_at", "publishedAt"))
    url: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    @field_validator("published_at")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class ArticleScore(BaseModel):
    """Per-ranking-pass score for one article. Never persisted."""
    article_id: str
    relevance_score: float
    diversity_score: float
    recency_score: float
    final_score: float
    reasons: List[str] = Field(default_factory=list)


# =============================================================================
# Offline Queue
# =============================================================================

class OfflineInteractionRecord(BaseModel):
    """An interaction recorded while the remote profile was unreachable."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: InteractionType
    article_id: str = Field(validation_alias=_alias("article_id", "articleId"))
    category: str
    source_id: str = Field(validation_alias=_alias("source_id", "sourceId"))
    timestamp: datetime = Field(default_factory=utc_now)
    reading_time: Optional[float] = Field(
        default=None, ge=0.0, validation_alias=_alias("reading_time", "readingTime")
    )

    @field_validator("timestamp")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


# =============================================================================
# Config & Stats
# =============================================================================

class PersonalizationConfig(BaseModel):
    """
    Process-wide ranking parameters.

    A single instance is shared by the tracker, the assembler and the
    orchestrator, so updates made through apply_update() are seen by all.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    category_weight_decay: float = Field(default=0.95, gt=0.0, le=1.0)  # weekly multiplier
    min_interactions_for_preference: int = Field(default=3, ge=0)
    diversity_factor: float = Field(default=0.3, ge=0.0, le=1.0)
    recency_boost: float = Field(default=0.2, ge=0.0)
    max_articles_per_category: int = Field(default=3, ge=1)

    @classmethod
    def from_settings(cls, settings: Any) -> "PersonalizationConfig":
        return cls(
            category_weight_decay=settings.personalization_category_weight_decay,
            min_interactions_for_preference=settings.personalization_min_interactions_for_preference,
            diversity_factor=settings.personalization_diversity_factor,
            recency_boost=settings.personalization_recency_boost,
            max_articles_per_category=settings.personalization_max_articles_per_category,
        )

    def apply_update(self, partial: Dict[str, Any]) -> "PersonalizationConfig":
        """
        Merge a partial update in place.

        The merged config is validated as a whole first, so an invalid
        value leaves every field unchanged.
        """
        merged = type(self).model_validate({**self.model_dump(), **partial})
        for name in type(self).model_fields:
            setattr(self, name, getattr(merged, name))
        return self


class ReadingStats(BaseModel):
    """Reading statistics exposed to the profile screen."""
    total_articles_read: int
    total_articles_saved: int
    total_articles_shared: int
    average_reading_time: float
    top_categories: List[str]
    preferred_reading_times: List[int]
    swipe_patterns: SwipePatterns

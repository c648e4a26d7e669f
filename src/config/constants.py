"""
Application constants and algorithm configuration.

These are values that don't change based on environment but may need
to be tuned or referenced across the codebase.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple


# =============================================================================
# Categories
# =============================================================================

# Seeded into every new profile at a neutral weight
DEFAULT_CATEGORIES: List[str] = [
    "general", "business", "entertainment", "health", "science",
    "sports", "technology", "politics", "world", "national",
]

# New-user feeds lead with broad news before niche categories
PRIORITY_CATEGORIES: List[str] = [
    "general", "national", "world", "business", "technology",
]

# Fetched when a profile has no qualifying categories yet
FALLBACK_FETCH_CATEGORIES: List[str] = [
    "general", "business", "technology", "sports", "entertainment",
]

# Always fetched alongside preferred categories for diversity
GENERAL_CATEGORY = "general"

# Signed-out users get an even mix of these, newest first
BALANCED_FEED_CATEGORIES: List[str] = [
    "general", "business", "technology", "sports", "entertainment", "health",
]


# =============================================================================
# Weight Update Rule
# =============================================================================

@dataclass(frozen=True)
class WeightRuleConfig:
    """Constants of the interaction-to-weight update rule."""

    # Weight delta per interaction type
    INTERACTION_DELTAS: Dict[str, float] = field(default_factory=lambda: {
        "save": 0.15,    # strong positive signal
        "share": 0.12,   # strong positive signal
        "read": 0.08,    # moderate positive signal
        "skip": -0.05,   # mild negative signal
    })

    SEED_WEIGHT: float = 0.5       # neutral starting weight
    MIN_WEIGHT: float = 0.0
    MAX_WEIGHT: float = 1.0

    DECAY_GRACE_DAYS: float = 7.0  # no decay within the first week
    DECAY_PERIOD_DAYS: float = 7.0  # one decay step per full week


DEFAULT_WEIGHT_RULE = WeightRuleConfig()


# =============================================================================
# Scoring
# =============================================================================

@dataclass(frozen=True)
class ScoringConstants:
    """Fixed parameters of the article scoring function."""

    BASE_RELEVANCE: float = 0.5
    LANGUAGE_MATCH_BONUS: float = 0.1
    REGION_MATCH_BONUS: float = 0.1
    READING_TIME_BONUS: float = 0.05

    # Categories with no qualifying preference are strongly favored
    UNEXPLORED_DIVERSITY: float = 0.8
    # Interaction count at which a category stops contributing diversity
    DIVERSITY_SATURATION: int = 20

    # (upper bound in hours, score); first matching bucket wins
    RECENCY_BUCKETS: Tuple[Tuple[float, float], ...] = (
        (1.0, 1.0),      # very recent
        (6.0, 0.9),      # recent
        (24.0, 0.7),     # today
        (72.0, 0.5),     # last 3 days
        (168.0, 0.3),    # last week
    )
    RECENCY_FLOOR: float = 0.1  # older than a week

    MAX_FINAL_SCORE: float = 1.0


DEFAULT_SCORING_CONSTANTS = ScoringConstants()


# =============================================================================
# Feed Assembly
# =============================================================================

@dataclass(frozen=True)
class FeedConfig:
    """Feed assembly and orchestration limits."""

    # Below this many reads the balanced new-user feed is served
    NEW_USER_READ_THRESHOLD: int = 10
    NEW_USER_ARTICLES_PER_CATEGORY: int = 3

    # Category selection for the candidate pool
    TOP_CATEGORIES_LIMIT: int = 5
    TOP_CATEGORIES_MIN_INTERACTIONS: int = 3
    DIVERSITY_CATEGORIES_LIMIT: int = 3
    DIVERSITY_WEIGHT_RANGE: Tuple[float, float] = (0.3, 0.6)

    DEFAULT_LIMIT: int = 50
    BALANCED_FEED_LIMIT: int = 30
    SIMILAR_ARTICLES_LIMIT: int = 10


DEFAULT_FEED_CONFIG = FeedConfig()


# =============================================================================
# Gamification
# =============================================================================

# Points forwarded to the gamification sink per tracked interaction
INTERACTION_POINTS: Dict[str, int] = {
    "read": 10,
    "save": 5,
    "share": 15,
    "skip": 0,
}


# =============================================================================
# Profile Schema
# =============================================================================

PROFILE_SCHEMA_VERSION = 2

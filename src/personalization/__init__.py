"""
Pure personalization core: preference model, weight update rule,
article scoring and feed assembly. Nothing in this package performs I/O.
"""

from personalization.assembler import FeedAssembler, ScoredArticle, rank
from personalization.models import (
    Article,
    ArticleScore,
    BehaviorData,
    BehaviorUpdate,
    CategoryPreference,
    InteractionType,
    OfflineInteractionRecord,
    PersonalizationConfig,
    ReadingStats,
    SourcePreference,
    SwipeDirection,
    UserProfile,
    create_default_profile,
)
from personalization.scoring import ArticleScorer, score_article
from personalization.weights import (
    apply_behavior_update,
    apply_interaction,
    apply_time_decay,
    behavior_update_for,
    record_swipe,
)

__all__ = [
    "Article",
    "ArticleScore",
    "ArticleScorer",
    "BehaviorData",
    "BehaviorUpdate",
    "CategoryPreference",
    "FeedAssembler",
    "InteractionType",
    "OfflineInteractionRecord",
    "PersonalizationConfig",
    "ReadingStats",
    "ScoredArticle",
    "SourcePreference",
    "SwipeDirection",
    "UserProfile",
    "apply_behavior_update",
    "apply_interaction",
    "apply_time_decay",
    "behavior_update_for",
    "create_default_profile",
    "rank",
    "record_swipe",
    "score_article",
]

"""
Multi-factor article scoring.

Scores one article against one profile:

1. relevance: learned category/source affinity plus locale and
   reading-time bonuses, clamped to [0, 1]
       base 0.5
       -> category weight        (if the category has >= min interactions)
       -> mean(category, source) (if the source also qualifies)
       + 0.1 language match, + 0.1 region match, + 0.05 preferred hour

2. recency: step function of article age
       <1h 1.0 | <6h 0.9 | <24h 0.7 | <72h 0.5 | <168h 0.3 | else 0.1

3. diversity: inverse exposure of the category
       0.8 when the category has no qualifying preference,
       else 1 - min(1, interaction_count / 20)

4. final = relevance * (1 - diversity_factor)
         + diversity * diversity_factor
         + recency * recency_boost
   capped at 1.0 (recency is additive, so the sum can exceed 1 before the cap)

Scoring is pure and synchronous; decay is never triggered here.
"""

from datetime import datetime
from typing import List, Optional, Tuple

from config.constants import DEFAULT_SCORING_CONSTANTS, ScoringConstants
from core.utils import clamp, ensure_utc, utc_now
from personalization.models import (
    Article,
    ArticleScore,
    CategoryPreference,
    PersonalizationConfig,
    UserProfile,
)


class ArticleScorer:
    """
    Scores articles for a profile under a PersonalizationConfig.

    Usage:
        scorer = ArticleScorer(config)
        score = scorer.score_article(article, profile)
    """

    def __init__(
        self,
        config: Optional[PersonalizationConfig] = None,
        constants: ScoringConstants = DEFAULT_SCORING_CONSTANTS,
    ):
        self.config = config or PersonalizationConfig()
        self.constants = constants

    # =========================================================
    # Components
    # =========================================================

    def _qualifies(self, interaction_count: int) -> bool:
        return interaction_count >= self.config.min_interactions_for_preference

    def calculate_relevance_score(
        self,
        article: Article,
        profile: UserProfile,
        now: Optional[datetime] = None,
    ) -> Tuple[float, List[str]]:
        """Relevance in [0, 1] with the reasons that contributed to it."""
        c = self.constants
        now = ensure_utc(now or utc_now())
        score = c.BASE_RELEVANCE
        reasons: List[str] = []

        category_pref = profile.get_category_preference(article.category)
        if category_pref and self._qualifies(category_pref.interaction_count):
            score = category_pref.weight
            reasons.append(f"Category preference: {article.category} ({category_pref.weight:.2f})")

        source_pref = profile.get_source_preference(article.source_id)
        if source_pref and self._qualifies(source_pref.interaction_count):
            score = (score + source_pref.weight) / 2
            reasons.append(f"Source preference: {article.source_id} ({source_pref.weight:.2f})")

        if article.language == profile.language:
            score += c.LANGUAGE_MATCH_BONUS
            reasons.append("Language match")
        if article.country == profile.region:
            score += c.REGION_MATCH_BONUS
            reasons.append("Region match")

        if now.hour in profile.behavior_data.preferred_reading_times:
            score += c.READING_TIME_BONUS
            reasons.append("Preferred reading time")

        return clamp(score), reasons

    def calculate_recency_score(
        self,
        article: Article,
        now: Optional[datetime] = None,
    ) -> float:
        """Step-function recency; boundaries are exclusive upper bounds."""
        now = ensure_utc(now or utc_now())
        hours_old = (now - article.published_at).total_seconds() / 3600.0
        for upper_hours, score in self.constants.RECENCY_BUCKETS:
            if hours_old < upper_hours:
                return score
        return self.constants.RECENCY_FLOOR

    def calculate_diversity_score(self, article: Article, profile: UserProfile) -> float:
        """Favor categories the user has not explored much."""
        category_pref = profile.get_category_preference(article.category)
        if not category_pref or not self._qualifies(category_pref.interaction_count):
            return self.constants.UNEXPLORED_DIVERSITY
        exposure = min(1.0, category_pref.interaction_count / self.constants.DIVERSITY_SATURATION)
        return 1.0 - exposure

    # =========================================================
    # Combined score
    # =========================================================

    def combine(self, relevance: float, diversity: float, recency: float) -> float:
        cfg = self.config
        final = (
            relevance * (1 - cfg.diversity_factor)
            + diversity * cfg.diversity_factor
            + recency * cfg.recency_boost
        )
        return min(self.constants.MAX_FINAL_SCORE, final)

    def score_article(
        self,
        article: Article,
        profile: UserProfile,
        now: Optional[datetime] = None,
    ) -> ArticleScore:
        """Score one article. Pure: the profile is not modified."""
        now = ensure_utc(now or utc_now())
        relevance, reasons = self.calculate_relevance_score(article, profile, now)
        recency = self.calculate_recency_score(article, now)
        diversity = self.calculate_diversity_score(article, profile)

        reasons.extend(self._summary_reasons(article, profile, relevance, diversity, recency))

        return ArticleScore(
            article_id=article.id,
            relevance_score=relevance,
            diversity_score=diversity,
            recency_score=recency,
            final_score=self.combine(relevance, diversity, recency),
            reasons=reasons,
        )

    def _summary_reasons(
        self,
        article: Article,
        profile: UserProfile,
        relevance: float,
        diversity: float,
        recency: float,
    ) -> List[str]:
        """Human-readable summary; diagnostics only, never used for ranking."""
        reasons: List[str] = []
        if relevance > 0.7:
            reasons.append("High relevance to your interests")
        elif relevance < 0.3:
            reasons.append("Low relevance to your interests")

        if diversity > 0.7:
            reasons.append("Adds diversity to your feed")

        if recency > 0.8:
            reasons.append("Breaking news")
        elif recency > 0.6:
            reasons.append("Recent news")

        category_pref: Optional[CategoryPreference] = profile.get_category_preference(article.category)
        if category_pref and category_pref.weight > 0.7:
            reasons.append(f"You often read {article.category} articles")
        return reasons


def score_article(
    article: Article,
    profile: UserProfile,
    config: Optional[PersonalizationConfig] = None,
    now: Optional[datetime] = None,
) -> ArticleScore:
    """Functional entry point around ArticleScorer."""
    return ArticleScorer(config).score_article(article, profile, now=now)

"""
Feed assembly with a per-category cap.

Two paths, chosen by reading history:

New users (total_articles_read < 10):
    Weighted relevance is meaningless with near-zero history, so the scorer
    is not called. Candidates are grouped by category, priority categories
    (general, national, world, business, technology) first, up to 3 most
    recent per category, and the combined set is sorted by recency.

Experienced users:
    1. Score every candidate and sort by final score (descending).
       Ties keep the original candidate order.
    2. Walk the sorted list keeping a running count per category and
       skip (not re-rank) any article whose category already contributed
       max_articles_per_category accepted articles.
    3. Stop when the target size is reached or the pool runs out.

Each score travels with its article and category, so the cap never has to
look an article up by score.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from config.constants import DEFAULT_FEED_CONFIG, PRIORITY_CATEGORIES, FeedConfig
from core.utils import ensure_utc, utc_now
from personalization.models import Article, ArticleScore, PersonalizationConfig, UserProfile
from personalization.scoring import ArticleScorer


@dataclass
class ScoredArticle:
    """An article, its score and its position in the candidate pool."""
    article: Article
    score: ArticleScore
    position: int

    @property
    def category(self) -> str:
        return self.article.category

    @property
    def final_score(self) -> float:
        return self.score.final_score


class FeedAssembler:
    """
    Orders a candidate pool best-first for one profile.

    The scorer is injectable so tests can spy on it; by default one is
    built from the same config object, so config updates reach both.
    """

    def __init__(
        self,
        config: Optional[PersonalizationConfig] = None,
        scorer: Optional[ArticleScorer] = None,
        feed_config: FeedConfig = DEFAULT_FEED_CONFIG,
    ):
        self.config = config or PersonalizationConfig()
        self.scorer = scorer or ArticleScorer(self.config)
        self.feed_config = feed_config

    def is_new_user(self, profile: UserProfile) -> bool:
        return profile.behavior_data.total_articles_read < self.feed_config.NEW_USER_READ_THRESHOLD

    def rank(
        self,
        articles: List[Article],
        profile: UserProfile,
        target_size: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[Article]:
        """
        Rank candidates best-first.

        Args:
            articles: Candidate pool (already deduplicated)
            profile: Profile snapshot; not modified
            target_size: Stop once this many articles are accepted
            now: Clock for recency and reading-time scoring

        Returns:
            Ordered list of articles
        """
        if self.is_new_user(profile):
            feed = self.build_balanced_feed(articles)
            return feed[:target_size] if target_size is not None else feed
        return self.apply_category_cap(self.score_all(articles, profile, now), target_size)

    def score_all(
        self,
        articles: List[Article],
        profile: UserProfile,
        now: Optional[datetime] = None,
    ) -> List[ScoredArticle]:
        """Score every candidate and sort best-first with a stable tie-break."""
        now = ensure_utc(now or utc_now())
        scored = [
            ScoredArticle(article=article, score=self.scorer.score_article(article, profile, now), position=i)
            for i, article in enumerate(articles)
        ]
        scored.sort(key=lambda s: (-s.final_score, s.position))
        return scored

    def apply_category_cap(
        self,
        scored: List[ScoredArticle],
        target_size: Optional[int] = None,
    ) -> List[Article]:
        """Walk the sorted list, skipping categories that hit the cap."""
        cap = self.config.max_articles_per_category
        category_counts: Dict[str, int] = defaultdict(int)
        result: List[Article] = []

        for item in scored:
            if target_size is not None and len(result) >= target_size:
                break
            if category_counts[item.category] >= cap:
                continue
            category_counts[item.category] += 1
            result.append(item.article)

        return result

    def build_balanced_feed(self, articles: List[Article]) -> List[Article]:
        """Category-balanced, recency-ordered feed for users without history."""
        by_category: Dict[str, List[Article]] = {}
        for article in articles:
            by_category.setdefault(article.category, []).append(article)

        ordered_categories = [c for c in PRIORITY_CATEGORIES if c in by_category]
        ordered_categories += [c for c in by_category if c not in PRIORITY_CATEGORIES]

        per_category = self.feed_config.NEW_USER_ARTICLES_PER_CATEGORY
        balanced: List[Article] = []
        for category in ordered_categories:
            newest = sorted(by_category[category], key=lambda a: a.published_at, reverse=True)
            balanced.extend(newest[:per_category])

        # sorted() is stable, so equal timestamps keep category priority order
        return sorted(balanced, key=lambda a: a.published_at, reverse=True)


def rank(
    articles: List[Article],
    profile: UserProfile,
    config: Optional[PersonalizationConfig] = None,
    target_size: Optional[int] = None,
    now: Optional[datetime] = None,
) -> List[Article]:
    """Functional entry point around FeedAssembler."""
    return FeedAssembler(config).rank(articles, profile, target_size=target_size, now=now)

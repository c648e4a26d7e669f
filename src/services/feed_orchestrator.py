"""
Feed Orchestrator: the read path of personalization.

get_feed():
1. Load the profile (offline: the local mirror, else the last remote
   profile seen)
2. Build the candidate pool
   - a requested category: that category only
   - otherwise: top categories + diversity categories (or a fixed
     default set for profiles without qualifying categories), plus
     `general`, fetched concurrently
3. Drop duplicate titles (lower-cased, trimmed)
4. Rank with the FeedAssembler and truncate to `limit`

Ranking is best-effort. Any failure in steps 1-4 falls back to an
unranked fetch of the same category/language/region; if that fails too
the caller gets an empty list.

get_balanced_feed() serves signed-out users: an even slice of each
balanced category, newest first. get_similar_articles() ranks the rest of
an article's category for "more like this".
"""

import asyncio
import math
from datetime import datetime
from typing import List, Optional

from config.constants import (
    BALANCED_FEED_CATEGORIES,
    DEFAULT_FEED_CONFIG,
    FALLBACK_FETCH_CATEGORIES,
    GENERAL_CATEGORY,
    FeedConfig,
)
from core.errors import PersonalizationError
from core.logging import LoggerMixin
from core.utils import normalize_title, unique_in_order
from personalization.assembler import FeedAssembler
from personalization.models import Article, UserProfile, create_default_profile
from services.collaborators import ArticleSource, ConnectivityMonitor
from services.offline_queue import OfflineInteractionQueue
from services.profile_store import ProfileStoreAdapter


def remove_duplicate_articles(articles: List[Article]) -> List[Article]:
    """Keep the first article for each normalized title."""
    seen = set()
    unique: List[Article] = []
    for article in articles:
        key = normalize_title(article.title)
        if key in seen:
            continue
        seen.add(key)
        unique.append(article)
    return unique


class FeedOrchestrator(LoggerMixin):
    """
    Assembles a personalized feed for one request.

    Usage:
        orchestrator = FeedOrchestrator(store, queue, source, connectivity, assembler)
        articles = await orchestrator.get_feed("user-1", "en", "india", limit=20)
    """

    def __init__(
        self,
        store: ProfileStoreAdapter,
        queue: OfflineInteractionQueue,
        source: ArticleSource,
        connectivity: ConnectivityMonitor,
        assembler: FeedAssembler,
        feed_config: FeedConfig = DEFAULT_FEED_CONFIG,
    ):
        self.store = store
        self.queue = queue
        self.source = source
        self.connectivity = connectivity
        self.assembler = assembler
        self.feed_config = feed_config

    # =========================================================
    # Profile
    # =========================================================

    async def load_profile(self, user_id: str, language: str, region: str) -> UserProfile:
        """
        Profile used for ranking.

        Offline, or when the store fails, the local mirror is preferred,
        then the last remote profile seen, then a default profile.
        """
        if not self.connectivity.is_currently_offline():
            try:
                return await self.store.get_profile(user_id, language=language, region=region)
            except PersonalizationError as e:
                self.logger.warning("feed.profile_unavailable", user_id=user_id, error=str(e))

        mirror = await self.queue.get_mirror(user_id)
        if mirror is not None:
            return mirror
        last_known = self.store.last_known_profile(user_id)
        if last_known is not None:
            return last_known
        return create_default_profile(user_id, language=language, region=region)

    # =========================================================
    # Candidates
    # =========================================================

    def select_categories(self, profile: UserProfile) -> List[str]:
        fc = self.feed_config
        preferred = profile.top_categories(fc.TOP_CATEGORIES_LIMIT, fc.TOP_CATEGORIES_MIN_INTERACTIONS)
        diverse = profile.diversity_categories(fc.DIVERSITY_CATEGORIES_LIMIT, fc.DIVERSITY_WEIGHT_RANGE)
        categories = unique_in_order(preferred + diverse)
        if not categories:
            categories = list(FALLBACK_FETCH_CATEGORIES)
        return unique_in_order(categories + [GENERAL_CATEGORY])

    async def fetch_candidates(
        self,
        profile: UserProfile,
        language: str,
        region: str,
        category: Optional[str] = None,
    ) -> List[Article]:
        if category:
            candidates = await self.source.fetch_candidate_articles(language, region, category)
        else:
            categories = self.select_categories(profile)
            batches = await asyncio.gather(*[
                self.source.fetch_candidate_articles(language, region, c) for c in categories
            ])
            candidates = [article for batch in batches for article in batch]
        return remove_duplicate_articles(candidates)

    # =========================================================
    # Feed
    # =========================================================

    async def get_feed(
        self,
        user_id: str,
        language: str,
        region: str,
        category: Optional[str] = None,
        limit: int = DEFAULT_FEED_CONFIG.DEFAULT_LIMIT,
        now: Optional[datetime] = None,
    ) -> List[Article]:
        try:
            profile = await self.load_profile(user_id, language, region)
            candidates = await self.fetch_candidates(profile, language, region, category)
            ranked = self.assembler.rank(candidates, profile, target_size=limit, now=now)
            self.logger.info(
                "feed.ranked",
                user_id=user_id,
                category=category,
                candidates=len(candidates),
                returned=min(len(ranked), limit),
                new_user=self.assembler.is_new_user(profile),
            )
            return ranked[:limit]
        except Exception as e:
            self.logger.warning("feed.personalization_failed", user_id=user_id, category=category, error=str(e))
            return await self.get_unranked_feed(language, region, category, limit)

    async def get_balanced_feed(
        self,
        language: str,
        region: str,
        limit: int = DEFAULT_FEED_CONFIG.BALANCED_FEED_LIMIT,
    ) -> List[Article]:
        """
        Feed for signed-out users.

        Takes the first ceil(limit / n) articles of each balanced category,
        then orders the mix newest first. Any fetch failure falls back to
        an unranked fetch across all categories.
        """
        per_category = math.ceil(limit / len(BALANCED_FEED_CATEGORIES))
        try:
            batches = await asyncio.gather(*[
                self.source.fetch_candidate_articles(language, region, c) for c in BALANCED_FEED_CATEGORIES
            ])
        except Exception as e:
            self.logger.warning("feed.balanced_failed", error=str(e))
            return await self.get_unranked_feed(language, region, None, limit)

        articles = [article for batch in batches for article in batch[:per_category]]
        articles.sort(key=lambda a: a.published_at, reverse=True)
        self.logger.info("feed.balanced", candidates=len(articles), returned=min(len(articles), limit))
        return articles[:limit]

    async def get_similar_articles(
        self,
        base_article: Article,
        user_id: Optional[str] = None,
        limit: int = DEFAULT_FEED_CONFIG.SIMILAR_ARTICLES_LIMIT,
        now: Optional[datetime] = None,
    ) -> List[Article]:
        """
        Other articles from the base article's category, language and country.

        Ranked for the user when one is given, otherwise returned in source
        order. Failures return an empty list.
        """
        try:
            candidates = await self.source.fetch_candidate_articles(
                base_article.language, base_article.country, base_article.category
            )
            candidates = [a for a in candidates if a.id != base_article.id]
            if user_id:
                profile = await self.load_profile(user_id, base_article.language, base_article.country)
                # Single category, so score without the per-category cap
                candidates = [s.article for s in self.assembler.score_all(candidates, profile, now)]
            return candidates[:limit]
        except Exception as e:
            self.logger.warning("feed.similar_failed", article_id=base_article.id, error=str(e))
            return []

    async def get_unranked_feed(
        self,
        language: str,
        region: str,
        category: Optional[str] = None,
        limit: int = DEFAULT_FEED_CONFIG.DEFAULT_LIMIT,
    ) -> List[Article]:
        """Plain fetch from the article source, without personalization."""
        try:
            articles = await self.source.fetch_candidate_articles(language, region, category)
        except Exception as e:
            self.logger.error("feed.fallback_failed", category=category, error=str(e))
            return []
        return articles[:limit]

"""
Personalization facade.

One object per process (or per signed-in session) that exposes the
outbound operations of the engine:

- get_feed (balanced feed when signed out), get_similar_articles
- record_interaction, record_swipe
- get_user_reading_stats, update_personalization_config
- reset_personalization, delete_user_data, reconcile

Built by services.factory.build_personalization_service().
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from core.logging import LoggerMixin
from personalization.models import (
    Article,
    InteractionType,
    PersonalizationConfig,
    ReadingStats,
    SwipeDirection,
    UserProfile,
)
from services.collaborators import AuthProvider, ConnectivityMonitor
from services.feed_orchestrator import FeedOrchestrator
from services.interaction_tracker import InteractionOutcome, InteractionTracker
from services.offline_queue import OfflineInteractionQueue
from services.profile_store import ProfileStoreAdapter
from services.reconciler import ReconciliationResult, Reconciler


class PersonalizationService(LoggerMixin):
    """Entry point used by the host application."""

    def __init__(
        self,
        config: PersonalizationConfig,
        store: ProfileStoreAdapter,
        queue: OfflineInteractionQueue,
        tracker: InteractionTracker,
        reconciler: Reconciler,
        orchestrator: FeedOrchestrator,
        auth: AuthProvider,
        connectivity: ConnectivityMonitor,
        default_language: str = "en",
        default_region: str = "india",
        default_limit: int = 50,
    ):
        self.config = config
        self.store = store
        self.queue = queue
        self.tracker = tracker
        self.reconciler = reconciler
        self.orchestrator = orchestrator
        self.auth = auth
        self.connectivity = connectivity
        self.default_language = default_language
        self.default_region = default_region
        self.default_limit = default_limit

    # =========================================================
    # Feed
    # =========================================================

    async def get_feed(
        self,
        user_id: Optional[str] = None,
        language: Optional[str] = None,
        region: Optional[str] = None,
        category: Optional[str] = None,
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[Article]:
        """
        Feed for a user, defaulting to the signed-in one.

        Signed out, a requested category is fetched as-is and otherwise
        the balanced feed is served.
        """
        language = language or self.default_language
        region = region or self.default_region
        user_id = user_id or await self.auth.get_authenticated_user_id()

        if not user_id:
            if category:
                return await self.orchestrator.get_unranked_feed(
                    language, region, category, limit if limit is not None else self.default_limit
                )
            balanced_limit = limit if limit is not None else self.orchestrator.feed_config.BALANCED_FEED_LIMIT
            return await self.orchestrator.get_balanced_feed(language, region, balanced_limit)

        return await self.orchestrator.get_feed(
            user_id,
            language,
            region,
            category=category,
            limit=limit if limit is not None else self.default_limit,
            now=now,
        )

    async def get_similar_articles(
        self,
        article: Article,
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[Article]:
        """Articles like the given one, ranked for the signed-in user if any."""
        user_id = await self.auth.get_authenticated_user_id()
        if limit is None:
            limit = self.orchestrator.feed_config.SIMILAR_ARTICLES_LIMIT
        return await self.orchestrator.get_similar_articles(article, user_id, limit=limit, now=now)

    # =========================================================
    # Tracking
    # =========================================================

    async def record_interaction(
        self,
        interaction_type: Union[InteractionType, str],
        article_id: str,
        category: str,
        source_id: str,
        reading_time: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> InteractionOutcome:
        return await self.tracker.record_interaction(
            interaction_type, article_id, category, source_id, reading_time=reading_time, now=now
        )

    async def record_swipe(
        self,
        direction: Union[SwipeDirection, str],
        now: Optional[datetime] = None,
    ) -> InteractionOutcome:
        return await self.tracker.record_swipe(direction, now=now)

    # =========================================================
    # Profile
    # =========================================================

    async def get_user_reading_stats(self, user_id: str) -> ReadingStats:
        profile = await self.orchestrator.load_profile(user_id, self.default_language, self.default_region)
        behavior = profile.behavior_data
        return ReadingStats(
            total_articles_read=behavior.total_articles_read,
            total_articles_saved=behavior.total_articles_saved,
            total_articles_shared=behavior.total_articles_shared,
            average_reading_time=behavior.average_reading_time,
            top_categories=profile.top_categories(),
            preferred_reading_times=list(behavior.preferred_reading_times),
            swipe_patterns=behavior.swipe_patterns.model_copy(),
        )

    def update_personalization_config(self, **partial: Any) -> PersonalizationConfig:
        """
        Merge a partial config update.

        Raises:
            pydantic.ValidationError: If the merged config is invalid;
                the current config is left untouched
        """
        self.config.apply_update(partial)
        self.logger.info("personalization.config_updated", **partial)
        return self.config

    def get_personalization_config(self) -> PersonalizationConfig:
        return self.config

    async def reset_personalization(self) -> Optional[UserProfile]:
        """
        Replace the signed-in user's profile with a fresh default one.

        Queued offline interactions and the mirror are dropped as well.
        """
        user_id = await self.auth.get_authenticated_user_id()
        if not user_id:
            return None
        await self.queue.clear(user_id)
        profile = await self.store.reset_profile(user_id)
        await self.queue.discard_mirror(user_id)
        return profile

    async def delete_user_data(self, user_id: str) -> None:
        """Erase the remote profile, the offline queue and the mirror."""
        await self.store.delete_profile(user_id)
        await self.queue.clear(user_id)
        await self.queue.discard_mirror(user_id)
        self.logger.info("personalization.user_data_deleted", user_id=user_id)

    async def reconcile(self, user_id: str) -> ReconciliationResult:
        return await self.reconciler.reconcile(user_id)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "profile_store": self.store.get_stats(),
            "offline_queue": self.queue.get_stats(),
            "offline": self.connectivity.is_currently_offline(),
        }

    async def aclose(self) -> None:
        close = getattr(self.orchestrator.source, "aclose", None)
        if close is not None:
            await close()

"""
Interaction tracking: the write path of personalization.

Each tracked interaction ends in one of these states:

    applied-remote   profile store accepted the update
    queued-local     device offline, or the store failed; the record was
                     appended to the offline queue and applied to the mirror
    ignored          nobody is signed in
    dropped          the store failed and the offline queue failed too

Points are awarded best-effort once the interaction is recorded either way.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Union

from config.constants import INTERACTION_POINTS
from core.errors import OfflineQueueError, ProfileStoreError
from core.logging import LoggerMixin
from core.utils import ensure_utc, utc_now
from personalization import weights
from personalization.models import (
    InteractionType,
    OfflineInteractionRecord,
    PersonalizationConfig,
    SwipeDirection,
)
from services.collaborators import AuthProvider, ConnectivityMonitor, NullPointsSink, PointsSink
from services.offline_queue import OfflineInteractionQueue
from services.profile_store import ProfileStoreAdapter


class InteractionOutcome(str, Enum):
    APPLIED_REMOTE = "applied_remote"
    QUEUED_LOCAL = "queued_local"
    IGNORED = "ignored"
    DROPPED = "dropped"


class InteractionTracker(LoggerMixin):
    """Routes interactions to the profile store or the offline queue."""

    def __init__(
        self,
        store: ProfileStoreAdapter,
        queue: OfflineInteractionQueue,
        auth: AuthProvider,
        connectivity: ConnectivityMonitor,
        points_sink: Optional[PointsSink] = None,
        config: Optional[PersonalizationConfig] = None,
        award_points: bool = True,
    ):
        self.store = store
        self.queue = queue
        self.auth = auth
        self.connectivity = connectivity
        self.points_sink = points_sink or NullPointsSink()
        self.config = config or store.config
        self.award_points_enabled = award_points

    async def record_interaction(
        self,
        interaction_type: Union[InteractionType, str],
        article_id: str,
        category: str,
        source_id: str,
        reading_time: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> InteractionOutcome:
        """
        Record one interaction for the signed-in user.

        Args:
            interaction_type: read, save, share or skip
            article_id: Article the interaction happened on
            category: Article category
            source_id: Article source
            reading_time: Minutes spent reading (reads only)
            now: Interaction time (defaults to the current UTC time)
        """
        user_id = await self.auth.get_authenticated_user_id()
        if not user_id:
            self.logger.debug("tracker.no_user", article_id=article_id)
            return InteractionOutcome.IGNORED

        kind = InteractionType(interaction_type)
        record = OfflineInteractionRecord(
            type=kind,
            article_id=article_id,
            category=category,
            source_id=source_id,
            timestamp=ensure_utc(now or utc_now()),
            reading_time=reading_time if kind is InteractionType.READ else None,
        )

        if self.connectivity.is_currently_offline():
            outcome = await self._queue_locally(user_id, record)
        else:
            try:
                await self.store.apply_interaction(
                    user_id,
                    record.category,
                    record.source_id,
                    record.type,
                    behavior=weights.behavior_update_for(record.type, record.reading_time),
                    now=record.timestamp,
                )
                outcome = InteractionOutcome.APPLIED_REMOTE
            except ProfileStoreError as e:
                self.logger.warning(
                    "tracker.remote_update_failed",
                    user_id=user_id,
                    article_id=article_id,
                    error=str(e),
                )
                outcome = await self._queue_locally(user_id, record)

        if outcome is not InteractionOutcome.DROPPED:
            await self._award_points(user_id, kind)

        self.logger.info(
            "tracker.interaction_recorded",
            user_id=user_id,
            type=kind.value,
            category=category,
            outcome=outcome.value,
        )
        return outcome

    async def _queue_locally(self, user_id: str, record: OfflineInteractionRecord) -> InteractionOutcome:
        try:
            await self.queue.append(user_id, record)
        except OfflineQueueError as e:
            self.logger.error("tracker.queue_failed", user_id=user_id, article_id=record.article_id, error=str(e))
            return InteractionOutcome.DROPPED

        try:
            await self.queue.apply_to_mirror(
                user_id,
                record,
                config=self.config,
                base_profile=self.store.last_known_profile(user_id),
            )
        except OfflineQueueError as e:
            # The record is durable; the mirror catches up on the next write
            self.logger.warning("tracker.mirror_update_failed", user_id=user_id, error=str(e))
        return InteractionOutcome.QUEUED_LOCAL

    async def _award_points(self, user_id: str, kind: InteractionType) -> None:
        if not self.award_points_enabled:
            return
        points = INTERACTION_POINTS.get(kind.value, 0)
        if points <= 0:
            return
        try:
            await self.points_sink.award_points(user_id, points, f"article_{kind.value}")
        except Exception as e:
            self.logger.warning("tracker.award_points_failed", user_id=user_id, points=points, error=str(e))

    async def record_swipe(
        self,
        direction: Union[SwipeDirection, str],
        now: Optional[datetime] = None,
    ) -> InteractionOutcome:
        """Count a swipe gesture on the remote profile. Offline swipes are not queued."""
        user_id = await self.auth.get_authenticated_user_id()
        if not user_id or self.connectivity.is_currently_offline():
            return InteractionOutcome.IGNORED
        try:
            await self.store.update_swipe_pattern(user_id, SwipeDirection(direction), now=now)
        except ProfileStoreError as e:
            self.logger.warning("tracker.swipe_update_failed", user_id=user_id, error=str(e))
            return InteractionOutcome.DROPPED
        return InteractionOutcome.APPLIED_REMOTE

"""
Reconciler: replays queued offline interactions against the remote store.

Triggered when connectivity returns (or on demand). For one user:

1. Snapshot the queue
2. Replay records in timestamp order (stable for equal timestamps),
   each as one profile-store write carrying its weight and behavior updates
3. Stop at the first failure; the failed record and everything after it
   go back to the head of the queue for the next trigger
4. When the queue ends up empty, discard the local mirror and re-fetch
   the canonical remote profile

Attempts for the same user are serialized, so two triggers never replay
the same record twice.
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, Optional

from core.errors import OfflineQueueError
from core.logging import LoggerMixin, bind_context, unbind_context
from personalization import weights
from personalization.models import UserProfile
from services.collaborators import AuthProvider, ConnectivityMonitor
from services.offline_queue import OfflineInteractionQueue
from services.profile_store import ProfileStoreAdapter


@dataclass
class ReconciliationResult:
    """Outcome of one reconciliation attempt."""
    user_id: str
    replayed: int = 0
    remaining: int = 0
    discarded: int = 0  # entries that no longer parsed
    error: Optional[str] = None
    profile: Optional[UserProfile] = None

    @property
    def success(self) -> bool:
        return self.error is None and self.remaining == 0


class Reconciler(LoggerMixin):
    """
    Drains a user's offline queue into the profile store.

    Usage:
        reconciler = Reconciler(store, queue)
        reconciler.attach(connectivity_monitor, auth_provider)
        result = await reconciler.reconcile("user-1")
    """

    def __init__(self, store: ProfileStoreAdapter, queue: OfflineInteractionQueue):
        self.store = store
        self.queue = queue
        self._locks: Dict[str, asyncio.Lock] = {}
        # Callers holding or waiting on each lock; the entry goes at zero
        self._lock_users: Dict[str, int] = {}

    def _acquire_ref(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1
        return lock

    def _release_ref(self, user_id: str) -> None:
        self._lock_users[user_id] -= 1
        if self._lock_users[user_id] == 0:
            del self._lock_users[user_id]
            del self._locks[user_id]

    def is_reconciling(self, user_id: str) -> bool:
        lock = self._locks.get(user_id)
        return lock is not None and lock.locked()

    async def reconcile(self, user_id: str) -> ReconciliationResult:
        lock = self._acquire_ref(user_id)
        try:
            async with lock:
                bind_context(reconcile_user_id=user_id)
                try:
                    return await self._reconcile_locked(user_id)
                finally:
                    unbind_context("reconcile_user_id")
        finally:
            self._release_ref(user_id)

    async def _reconcile_locked(self, user_id: str) -> ReconciliationResult:
        result = ReconciliationResult(user_id=user_id)

        try:
            snapshot = await self.queue.snapshot(user_id)
        except OfflineQueueError as e:
            self.logger.warning("reconciler.queue_unavailable", user_id=user_id, error=str(e))
            result.error = str(e)
            return result

        if snapshot.size == 0:
            return result

        result.discarded = snapshot.size - len(snapshot.records)
        ordered = sorted(snapshot.records, key=lambda r: r.timestamp)

        for record in ordered:
            try:
                await self.store.apply_interaction(
                    user_id,
                    record.category,
                    record.source_id,
                    record.type,
                    behavior=weights.behavior_update_for(record.type, record.reading_time),
                    now=record.timestamp,
                )
            except Exception as e:
                self.logger.warning(
                    "reconciler.replay_failed",
                    user_id=user_id,
                    article_id=record.article_id,
                    replayed=result.replayed,
                    error=str(e),
                )
                result.error = str(e)
                break
            result.replayed += 1

        remaining = ordered[result.replayed:]
        result.remaining = len(remaining)

        try:
            await self.queue.requeue_head(user_id, snapshot.size, remaining)
            queue_empty = await self.queue.size(user_id) == 0
        except OfflineQueueError as e:
            self.logger.error("reconciler.requeue_failed", user_id=user_id, error=str(e))
            result.error = result.error or str(e)
            return result

        if result.error is None and queue_empty:
            await self._refresh(result)

        self.logger.info(
            "reconciler.completed",
            user_id=user_id,
            replayed=result.replayed,
            remaining=result.remaining,
            discarded=result.discarded,
            success=result.success,
        )
        return result

    async def _refresh(self, result: ReconciliationResult) -> None:
        """Drop the mirror and pick up the canonical remote profile."""
        try:
            await self.queue.discard_mirror(result.user_id)
        except OfflineQueueError as e:
            self.logger.warning("reconciler.mirror_discard_failed", user_id=result.user_id, error=str(e))
        try:
            result.profile = await self.store.get_profile(result.user_id)
        except Exception as e:
            self.logger.warning("reconciler.refresh_failed", user_id=result.user_id, error=str(e))

    # =========================================================
    # Triggers
    # =========================================================

    def attach(self, monitor: ConnectivityMonitor, auth: AuthProvider) -> None:
        """Reconcile the signed-in user whenever connectivity is restored."""

        async def on_restored() -> None:
            user_id = await auth.get_authenticated_user_id()
            if user_id:
                await self.reconcile(user_id)

        monitor.on_connectivity_restored(on_restored)

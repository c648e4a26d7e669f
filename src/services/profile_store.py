"""
Profile Store Adapter.

Mediates all reads and writes of the canonical UserProfile document held
by the remote store. Two backends are supported:

1. In-memory: for tests and local development
2. Supabase: one row per user in the profiles table
   (user_id, document jsonb, revision int, updated_at)

Every update is a read-modify-write guarded by the profile's `revision`:
the write only lands if the stored revision still equals the one that was
read. A lost race re-reads and re-applies the mutation, up to
`max_retries` attempts, then raises ProfileConflictError.

Backend failures surface as ProfileStoreError so callers can divert to
the offline queue.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Union

from pydantic import ValidationError
from supabase import Client

from core.errors import PersonalizationError, ProfileConflictError, ProfileStoreError
from core.logging import LoggerMixin
from core.utils import ensure_utc, utc_now
from personalization import weights
from personalization.models import (
    BehaviorUpdate,
    InteractionType,
    PersonalizationConfig,
    SwipeDirection,
    UserProfile,
    create_default_profile,
)

ProfileMutation = Callable[[UserProfile], UserProfile]

# Postgres unique_violation
_UNIQUE_VIOLATION = "23505"


# =============================================================================
# Backends
# =============================================================================

class InMemoryProfileBackend:
    """
    Dict-backed profile rows.

    Compare-and-set is atomic under an asyncio lock.
    """

    def __init__(self):
        self._rows: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def load(self, user_id: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            row = self._rows.get(user_id)
            if row is None:
                return None
            return {**row["document"], "revision": row["revision"]}

    async def insert(self, user_id: str, document: Dict[str, Any]) -> bool:
        async with self._lock:
            if user_id in self._rows:
                return False
            self._rows[user_id] = {"document": dict(document), "revision": document.get("revision", 0)}
            return True

    async def compare_and_set(
        self,
        user_id: str,
        document: Dict[str, Any],
        expected_revision: int,
    ) -> bool:
        async with self._lock:
            row = self._rows.get(user_id)
            if row is None or row["revision"] != expected_revision:
                return False
            self._rows[user_id] = {"document": dict(document), "revision": expected_revision + 1}
            return True

    async def delete(self, user_id: str) -> None:
        async with self._lock:
            self._rows.pop(user_id, None)

    def get_stats(self) -> Dict[str, Any]:
        return {"backend": "memory", "profiles": len(self._rows)}


class SupabaseProfileBackend:
    """
    Profile rows in a Supabase table.

    The supabase-py client is synchronous, so every call runs in a worker
    thread to keep the event loop free.
    """

    def __init__(self, client: Client, table: str = "user_profiles"):
        self._client = client
        self._table = table

    # --- sync halves (run in thread pool) ---

    def _load_sync(self, user_id: str) -> Optional[Dict[str, Any]]:
        response = (
            self._client.table(self._table)
            .select("document, revision")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        if not rows:
            return None
        return {**(rows[0].get("document") or {}), "revision": rows[0].get("revision", 0)}

    def _insert_sync(self, user_id: str, document: Dict[str, Any]) -> bool:
        try:
            self._client.table(self._table).insert({
                "user_id": user_id,
                "document": document,
                "revision": document.get("revision", 0),
                "updated_at": document.get("updated_at"),
            }).execute()
        except Exception as e:
            if getattr(e, "code", None) == _UNIQUE_VIOLATION:
                return False
            raise
        return True

    def _compare_and_set_sync(
        self,
        user_id: str,
        document: Dict[str, Any],
        expected_revision: int,
    ) -> bool:
        response = (
            self._client.table(self._table)
            .update({
                "document": document,
                "revision": expected_revision + 1,
                "updated_at": document.get("updated_at"),
            })
            .eq("user_id", user_id)
            .eq("revision", expected_revision)
            .execute()
        )
        # No matched row means another writer bumped the revision first
        return bool(response.data)

    def _delete_sync(self, user_id: str) -> None:
        self._client.table(self._table).delete().eq("user_id", user_id).execute()

    # --- async API ---

    async def load(self, user_id: str) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._load_sync, user_id)

    async def insert(self, user_id: str, document: Dict[str, Any]) -> bool:
        return await asyncio.to_thread(self._insert_sync, user_id, document)

    async def compare_and_set(
        self,
        user_id: str,
        document: Dict[str, Any],
        expected_revision: int,
    ) -> bool:
        return await asyncio.to_thread(self._compare_and_set_sync, user_id, document, expected_revision)

    async def delete(self, user_id: str) -> None:
        await asyncio.to_thread(self._delete_sync, user_id)

    def get_stats(self) -> Dict[str, Any]:
        return {"backend": "supabase", "table": self._table}


# =============================================================================
# Adapter
# =============================================================================

class ProfileStoreAdapter(LoggerMixin):
    """
    Typed access to remote profiles with optimistic concurrency.

    Usage:
        store = ProfileStoreAdapter(InMemoryProfileBackend(), config)
        profile = await store.get_profile("user-1")
        await store.apply_interaction("user-1", "science", "bbc", InteractionType.SAVE)
    """

    def __init__(
        self,
        backend: Union[InMemoryProfileBackend, SupabaseProfileBackend],
        config: Optional[PersonalizationConfig] = None,
        max_retries: int = 3,
        default_language: str = "en",
        default_region: str = "india",
    ):
        self._backend = backend
        self.config = config or PersonalizationConfig()
        self.max_retries = max(1, max_retries)
        self.default_language = default_language
        self.default_region = default_region
        # Last profile read or written per user, seeds the offline mirror
        self._last_known: Dict[str, UserProfile] = {}

    def _remember(self, profile: UserProfile) -> UserProfile:
        self._last_known[profile.user_id] = profile.model_copy(deep=True)
        return profile

    def last_known_profile(self, user_id: str) -> Optional[UserProfile]:
        """Copy of the most recent remote profile seen in this process, if any."""
        profile = self._last_known.get(user_id)
        return profile.model_copy(deep=True) if profile is not None else None

    async def _call(self, operation: str, coro: Any) -> Any:
        """Await a backend call, converting unexpected failures to ProfileStoreError."""
        try:
            return await coro
        except PersonalizationError:
            raise
        except Exception as e:
            raise ProfileStoreError(f"{operation} failed: {e}") from e

    # =========================================================
    # Reads
    # =========================================================

    async def get_profile(
        self,
        user_id: str,
        language: Optional[str] = None,
        region: Optional[str] = None,
    ) -> UserProfile:
        """
        Load a profile, creating and persisting the default on first access.

        A stored document that fails validation is replaced by a default
        profile carrying the stored revision, so the next write overwrites it.
        """
        document = await self._call("load", self._backend.load(user_id))

        if document is None:
            profile = create_default_profile(
                user_id,
                language=language or self.default_language,
                region=region or self.default_region,
            )
            inserted = await self._call("insert", self._backend.insert(user_id, profile.to_document()))
            if inserted:
                self.logger.info("profile_store.created", user_id=user_id)
                return self._remember(profile)
            # Another writer created it first
            document = await self._call("load", self._backend.load(user_id))
            if document is None:
                raise ProfileStoreError(f"Profile {user_id} vanished during creation")

        try:
            return self._remember(UserProfile.from_document({**document, "user_id": user_id}))
        except ValidationError as e:
            self.logger.warning(
                "profile_store.malformed_document",
                user_id=user_id,
                errors=e.error_count(),
            )
            profile = create_default_profile(
                user_id,
                language=language or self.default_language,
                region=region or self.default_region,
            )
            profile.revision = int(document.get("revision", 0) or 0)
            return profile

    # =========================================================
    # Writes
    # =========================================================

    async def save_profile(self, profile: UserProfile) -> UserProfile:
        """
        Write a whole profile guarded by its revision.

        Raises:
            ProfileConflictError: If the stored revision moved on
        """
        if not await self._write(profile):
            raise ProfileConflictError(profile.user_id, 1)
        return profile

    async def _write(self, profile: UserProfile) -> bool:
        expected = profile.revision
        document = profile.model_copy(update={"revision": expected + 1}).to_document()
        ok = await self._call(
            "compare_and_set",
            self._backend.compare_and_set(profile.user_id, document, expected),
        )
        if ok:
            profile.revision = expected + 1
            self._remember(profile)
        return ok

    async def modify(self, user_id: str, mutation: ProfileMutation) -> UserProfile:
        """
        Read-modify-write with bounded retries.

        The mutation may run more than once and must be a pure function
        of the profile it receives.
        """
        for attempt in range(1, self.max_retries + 1):
            profile = await self.get_profile(user_id)
            updated = mutation(profile)
            if await self._write(updated):
                return updated
            self.logger.debug("profile_store.write_conflict", user_id=user_id, attempt=attempt)

        self.logger.warning("profile_store.retries_exhausted", user_id=user_id, attempts=self.max_retries)
        raise ProfileConflictError(user_id, self.max_retries)

    async def update_category_preference(
        self,
        user_id: str,
        category: str,
        interaction_type: Union[InteractionType, str],
        now: Optional[datetime] = None,
    ) -> UserProfile:
        now = ensure_utc(now or utc_now())
        return await self.modify(
            user_id,
            lambda p: weights.update_category_preference(p, category, interaction_type, self.config, now),
        )

    async def update_source_preference(
        self,
        user_id: str,
        source_id: str,
        interaction_type: Union[InteractionType, str],
        now: Optional[datetime] = None,
    ) -> UserProfile:
        now = ensure_utc(now or utc_now())
        return await self.modify(
            user_id,
            lambda p: weights.update_source_preference(p, source_id, interaction_type, now),
        )

    async def apply_interaction(
        self,
        user_id: str,
        category: str,
        source_id: Optional[str],
        interaction_type: Union[InteractionType, str],
        behavior: Optional[BehaviorUpdate] = None,
        now: Optional[datetime] = None,
    ) -> UserProfile:
        """Category, source and behavior updates for one interaction, in one write."""
        now = ensure_utc(now or utc_now())

        def mutate(profile: UserProfile) -> UserProfile:
            weights.apply_interaction(profile, category, source_id, interaction_type, self.config, now)
            if behavior is not None and not behavior.is_empty:
                weights.apply_behavior_update(profile, behavior, now)
            return profile

        return await self.modify(user_id, mutate)

    async def update_behavior_data(
        self,
        user_id: str,
        update: BehaviorUpdate,
        now: Optional[datetime] = None,
    ) -> UserProfile:
        now = ensure_utc(now or utc_now())
        return await self.modify(user_id, lambda p: weights.apply_behavior_update(p, update, now))

    async def update_swipe_pattern(
        self,
        user_id: str,
        direction: Union[SwipeDirection, str],
        now: Optional[datetime] = None,
    ) -> UserProfile:
        return await self.modify(user_id, lambda p: weights.record_swipe(p, direction, now))

    async def reset_profile(
        self,
        user_id: str,
        language: Optional[str] = None,
        region: Optional[str] = None,
    ) -> UserProfile:
        """Replace the stored profile with a fresh default one."""

        def mutate(profile: UserProfile) -> UserProfile:
            fresh = create_default_profile(
                user_id,
                language=language or profile.language,
                region=region or profile.region,
            )
            fresh.revision = profile.revision
            return fresh

        profile = await self.modify(user_id, mutate)
        self.logger.info("profile_store.reset", user_id=user_id)
        return profile

    async def delete_profile(self, user_id: str) -> None:
        """Erase the stored profile."""
        await self._call("delete", self._backend.delete(user_id))
        self._last_known.pop(user_id, None)
        self.logger.info("profile_store.deleted", user_id=user_id)

    def get_stats(self) -> Dict[str, Any]:
        return {**self._backend.get_stats(), "max_retries": self.max_retries}

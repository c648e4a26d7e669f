"""
Offline Interaction Queue.

Durable per-user FIFO of interactions recorded while the remote profile
store was unreachable, plus the local mirror profile those interactions
were applied to.

Storage backends:
1. In-memory: for tests and single-process use
2. Redis: list `offline_queue:{user_id}` and string `offline_profile:{user_id}`

The queue only grows at the tail. Draining is done by the Reconciler:
it snapshots the queue, replays, then calls requeue_head() which removes
exactly the snapshotted head and puts back whatever was not replayed.
Anything appended while the drain was running stays behind the head and
is never dropped.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError
from redis import asyncio as aioredis

from core.errors import OfflineQueueError, PersonalizationError
from core.logging import LoggerMixin
from personalization import weights
from personalization.models import (
    OfflineInteractionRecord,
    PersonalizationConfig,
    UserProfile,
    create_default_profile,
)

QUEUE_KEY_PREFIX = "offline_queue:"
MIRROR_KEY_PREFIX = "offline_profile:"


@dataclass
class QueueSnapshot:
    """Parsed records plus the raw entry count they were read from."""
    records: List[OfflineInteractionRecord] = field(default_factory=list)
    size: int = 0


# =============================================================================
# Backends
# =============================================================================

class InMemoryQueueBackend:
    """Lists and mirror documents held in process memory."""

    def __init__(self):
        self._queues: Dict[str, List[str]] = {}
        self._mirrors: Dict[str, str] = {}

    async def push(self, user_id: str, entry: str) -> None:
        self._queues.setdefault(user_id, []).append(entry)

    async def entries(self, user_id: str) -> List[str]:
        return list(self._queues.get(user_id, []))

    async def replace_head(self, user_id: str, consumed: int, remaining: List[str]) -> None:
        tail = self._queues.get(user_id, [])[consumed:]
        queue = list(remaining) + tail
        if queue:
            self._queues[user_id] = queue
        else:
            self._queues.pop(user_id, None)

    async def length(self, user_id: str) -> int:
        return len(self._queues.get(user_id, []))

    async def clear(self, user_id: str) -> None:
        self._queues.pop(user_id, None)

    async def get_mirror(self, user_id: str) -> Optional[str]:
        return self._mirrors.get(user_id)

    async def set_mirror(self, user_id: str, document: str) -> None:
        self._mirrors[user_id] = document

    async def delete_mirror(self, user_id: str) -> None:
        self._mirrors.pop(user_id, None)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "backend": "memory",
            "queues": len(self._queues),
            "queued_records": sum(len(q) for q in self._queues.values()),
            "mirrors": len(self._mirrors),
        }


class RedisQueueBackend:
    """
    Redis-backed queue and mirror.

    Head replacement runs as a MULTI/EXEC transaction so a concurrent
    RPUSH lands either before or after it, never in between.
    """

    def __init__(self, client: "aioredis.Redis"):
        self._redis = client

    def _queue_key(self, user_id: str) -> str:
        return f"{QUEUE_KEY_PREFIX}{user_id}"

    def _mirror_key(self, user_id: str) -> str:
        return f"{MIRROR_KEY_PREFIX}{user_id}"

    async def push(self, user_id: str, entry: str) -> None:
        await self._redis.rpush(self._queue_key(user_id), entry)

    async def entries(self, user_id: str) -> List[str]:
        return list(await self._redis.lrange(self._queue_key(user_id), 0, -1))

    async def replace_head(self, user_id: str, consumed: int, remaining: List[str]) -> None:
        key = self._queue_key(user_id)
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.ltrim(key, consumed, -1)
            if remaining:
                # LPUSH prepends one at a time, so push in reverse to keep order
                pipe.lpush(key, *reversed(remaining))
            await pipe.execute()

    async def length(self, user_id: str) -> int:
        return int(await self._redis.llen(self._queue_key(user_id)))

    async def clear(self, user_id: str) -> None:
        await self._redis.delete(self._queue_key(user_id))

    async def get_mirror(self, user_id: str) -> Optional[str]:
        return await self._redis.get(self._mirror_key(user_id))

    async def set_mirror(self, user_id: str, document: str) -> None:
        await self._redis.set(self._mirror_key(user_id), document)

    async def delete_mirror(self, user_id: str) -> None:
        await self._redis.delete(self._mirror_key(user_id))

    def get_stats(self) -> Dict[str, Any]:
        return {"backend": "redis"}


# =============================================================================
# Queue
# =============================================================================

class OfflineInteractionQueue(LoggerMixin):
    """
    Per-user offline queue and mirror profile.

    Usage:
        queue = OfflineInteractionQueue(InMemoryQueueBackend())
        await queue.append("user-1", record)
        snapshot = await queue.snapshot("user-1")
    """

    def __init__(self, backend: Union[InMemoryQueueBackend, RedisQueueBackend]):
        self._backend = backend

    async def _call(self, operation: str, coro: Any) -> Any:
        try:
            return await coro
        except PersonalizationError:
            raise
        except Exception as e:
            raise OfflineQueueError(f"{operation} failed: {e}") from e

    # =========================================================
    # Records
    # =========================================================

    async def append(self, user_id: str, record: OfflineInteractionRecord) -> None:
        await self._call("push", self._backend.push(user_id, record.model_dump_json()))
        self.logger.debug("offline_queue.appended", user_id=user_id, type=record.type.value)

    async def snapshot(self, user_id: str) -> QueueSnapshot:
        """
        Read the whole queue.

        Entries that no longer parse are logged and left out of `records`
        but still counted in `size`, so they are dropped by the next
        requeue_head().
        """
        entries = await self._call("entries", self._backend.entries(user_id))
        records: List[OfflineInteractionRecord] = []
        for entry in entries:
            try:
                records.append(OfflineInteractionRecord.model_validate_json(entry))
            except ValidationError as e:
                self.logger.warning("offline_queue.malformed_record", user_id=user_id, errors=e.error_count())
        return QueueSnapshot(records=records, size=len(entries))

    async def read_all(self, user_id: str) -> List[OfflineInteractionRecord]:
        return (await self.snapshot(user_id)).records

    async def requeue_head(
        self,
        user_id: str,
        consumed: int,
        remaining: List[OfflineInteractionRecord],
    ) -> None:
        """Drop the first `consumed` entries and put `remaining` back at the head."""
        await self._call(
            "replace_head",
            self._backend.replace_head(user_id, consumed, [r.model_dump_json() for r in remaining]),
        )

    async def size(self, user_id: str) -> int:
        return await self._call("length", self._backend.length(user_id))

    async def has_offline_data(self, user_id: str) -> bool:
        return await self.size(user_id) > 0

    async def clear(self, user_id: str) -> None:
        await self._call("clear", self._backend.clear(user_id))

    # =========================================================
    # Mirror profile
    # =========================================================

    async def get_mirror(self, user_id: str) -> Optional[UserProfile]:
        raw = await self._call("get_mirror", self._backend.get_mirror(user_id))
        if raw is None:
            return None
        try:
            return UserProfile.from_document(json.loads(raw))
        except ValueError as e:
            self.logger.warning("offline_queue.malformed_mirror", user_id=user_id, error=str(e))
            return None

    async def save_mirror(self, profile: UserProfile) -> None:
        await self._call("set_mirror", self._backend.set_mirror(profile.user_id, profile.model_dump_json()))

    async def discard_mirror(self, user_id: str) -> None:
        await self._call("delete_mirror", self._backend.delete_mirror(user_id))

    async def apply_to_mirror(
        self,
        user_id: str,
        record: OfflineInteractionRecord,
        config: Optional[PersonalizationConfig] = None,
        base_profile: Optional[UserProfile] = None,
    ) -> UserProfile:
        """
        Apply a queued interaction to the local mirror with the same update rule.

        A missing mirror starts from base_profile when given, otherwise from
        an empty profile.
        """
        profile = await self.get_mirror(user_id)
        if profile is None:
            profile = (
                base_profile.model_copy(deep=True)
                if base_profile is not None
                else create_default_profile(user_id, now=record.timestamp, seed_categories=False)
            )

        weights.apply_interaction(
            profile,
            record.category,
            record.source_id,
            record.type,
            config=config,
            now=record.timestamp,
        )
        behavior = weights.behavior_update_for(record.type, record.reading_time)
        if not behavior.is_empty:
            weights.apply_behavior_update(profile, behavior, now=record.timestamp)

        await self.save_mirror(profile)
        return profile

    def get_stats(self) -> Dict[str, Any]:
        return self._backend.get_stats()

"""
Contracts for the collaborators the engine depends on but does not own.

- ArticleSource: candidate articles for a locale and optional category
- AuthProvider: the signed-in user id, if any
- ConnectivityMonitor: offline state and a connectivity-restored event
- PointsSink: gamification sink that receives "award points" calls

Simple implementations are provided for wiring and tests.
"""

import asyncio
import inspect
from typing import Awaitable, Callable, List, Optional, Protocol, Tuple, Union, runtime_checkable

from core.logging import get_logger
from personalization.models import Article

logger = get_logger(__name__)

ConnectivityCallback = Callable[[], Union[None, Awaitable[None]]]


@runtime_checkable
class ArticleSource(Protocol):
    async def fetch_candidate_articles(
        self,
        language: str,
        region: str,
        category: Optional[str] = None,
    ) -> List[Article]:
        ...


@runtime_checkable
class AuthProvider(Protocol):
    async def get_authenticated_user_id(self) -> Optional[str]:
        ...


@runtime_checkable
class ConnectivityMonitor(Protocol):
    def is_currently_offline(self) -> bool:
        ...

    def on_connectivity_restored(self, callback: ConnectivityCallback) -> None:
        ...


@runtime_checkable
class PointsSink(Protocol):
    async def award_points(self, user_id: str, points: int, reason: str) -> None:
        ...


# =============================================================================
# Implementations
# =============================================================================

class StaticAuthProvider:
    """Returns a fixed user id (None means signed out)."""

    def __init__(self, user_id: Optional[str] = None):
        self.user_id = user_id

    async def get_authenticated_user_id(self) -> Optional[str]:
        return self.user_id


class ManualConnectivityMonitor:
    """
    Connectivity state driven by the host application.

    Calling set_online() after an offline period fires every registered
    callback. Async callbacks are awaited in registration order.
    """

    def __init__(self, offline: bool = False):
        self._offline = offline
        self._callbacks: List[ConnectivityCallback] = []

    def is_currently_offline(self) -> bool:
        return self._offline

    def on_connectivity_restored(self, callback: ConnectivityCallback) -> None:
        self._callbacks.append(callback)

    def set_offline(self) -> None:
        self._offline = True

    async def set_online(self) -> None:
        was_offline = self._offline
        self._offline = False
        if was_offline:
            await self.notify_restored()

    async def notify_restored(self) -> None:
        for callback in list(self._callbacks):
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("connectivity.callback_failed", error=str(e))


class InMemoryPointsSink:
    """Collects awarded points; useful when gamification is not wired in."""

    def __init__(self):
        self.awards: List[Tuple[str, int, str]] = []

    async def award_points(self, user_id: str, points: int, reason: str) -> None:
        self.awards.append((user_id, points, reason))

    def total_for(self, user_id: str) -> int:
        return sum(points for uid, points, _ in self.awards if uid == user_id)


class NullPointsSink:
    """Discards point awards."""

    async def award_points(self, user_id: str, points: int, reason: str) -> None:
        return None

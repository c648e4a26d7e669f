"""
Service factory.

Wires one PersonalizationService from settings. Backends are chosen per
setting:

    profile_store_backend   "supabase" | "memory" | "auto"
    offline_queue_backend   "redis"    | "memory" | "auto"

"auto" uses the remote backend when its connection settings are present
and falls back to memory otherwise.
"""

from typing import Any, Optional

from redis import asyncio as aioredis
from supabase import Client

from config.database import get_redis_client, get_supabase_client
from config.settings import Settings, get_settings
from core.logging import get_logger
from personalization.assembler import FeedAssembler
from personalization.models import PersonalizationConfig
from personalization.scoring import ArticleScorer
from services.article_source import HttpArticleSource
from services.collaborators import (
    ArticleSource,
    AuthProvider,
    ConnectivityMonitor,
    ManualConnectivityMonitor,
    PointsSink,
    StaticAuthProvider,
)
from services.feed_orchestrator import FeedOrchestrator
from services.interaction_tracker import InteractionTracker
from services.offline_queue import InMemoryQueueBackend, OfflineInteractionQueue, RedisQueueBackend
from services.personalization_service import PersonalizationService
from services.profile_store import InMemoryProfileBackend, ProfileStoreAdapter, SupabaseProfileBackend
from services.reconciler import Reconciler

logger = get_logger(__name__)


def build_profile_backend(
    settings: Settings,
    client: Optional[Client] = None,
) -> Any:
    backend = settings.profile_store_backend
    if backend == "auto":
        backend = "supabase" if (client is not None or settings.supabase_configured) else "memory"

    if backend == "supabase":
        logger.info("factory.profile_backend", backend="supabase", table=settings.profiles_table)
        return SupabaseProfileBackend(client or get_supabase_client(), table=settings.profiles_table)
    if backend != "memory":
        raise ValueError(f"Unknown profile_store_backend: {settings.profile_store_backend}")

    logger.info("factory.profile_backend", backend="memory")
    return InMemoryProfileBackend()


def build_queue_backend(
    settings: Settings,
    client: Optional["aioredis.Redis"] = None,
) -> Any:
    backend = settings.offline_queue_backend
    if backend == "auto":
        backend = "redis" if (client is not None or settings.redis_url) else "memory"

    if backend == "redis":
        logger.info("factory.queue_backend", backend="redis")
        return RedisQueueBackend(client or get_redis_client())
    if backend != "memory":
        raise ValueError(f"Unknown offline_queue_backend: {settings.offline_queue_backend}")

    logger.info("factory.queue_backend", backend="memory")
    return InMemoryQueueBackend()


def build_personalization_service(
    settings: Optional[Settings] = None,
    *,
    article_source: Optional[ArticleSource] = None,
    auth: Optional[AuthProvider] = None,
    connectivity: Optional[ConnectivityMonitor] = None,
    points_sink: Optional[PointsSink] = None,
    supabase_client: Optional[Client] = None,
    redis_client: Optional["aioredis.Redis"] = None,
) -> PersonalizationService:
    """
    Build a fully wired PersonalizationService.

    All collaborators are optional; missing ones get the simple
    implementations from services.collaborators, and the article source
    defaults to the HTTP client pointed at article_api_base_url. The
    reconciler is attached to the connectivity monitor.
    """
    settings = settings or get_settings()
    auth = auth or StaticAuthProvider()
    connectivity = connectivity or ManualConnectivityMonitor()
    article_source = article_source or HttpArticleSource.from_settings(settings)

    # Shared by the tracker, the store and the assembler
    config = PersonalizationConfig.from_settings(settings)

    store = ProfileStoreAdapter(
        build_profile_backend(settings, supabase_client),
        config=config,
        max_retries=settings.profile_write_max_retries,
        default_language=settings.default_language,
        default_region=settings.default_region,
    )
    queue = OfflineInteractionQueue(build_queue_backend(settings, redis_client))

    reconciler = Reconciler(store, queue)
    reconciler.attach(connectivity, auth)

    tracker = InteractionTracker(
        store,
        queue,
        auth,
        connectivity,
        points_sink=points_sink,
        config=config,
        award_points=settings.award_points_enabled,
    )
    assembler = FeedAssembler(config, ArticleScorer(config))
    orchestrator = FeedOrchestrator(store, queue, article_source, connectivity, assembler)

    return PersonalizationService(
        config=config,
        store=store,
        queue=queue,
        tracker=tracker,
        reconciler=reconciler,
        orchestrator=orchestrator,
        auth=auth,
        connectivity=connectivity,
        default_language=settings.default_language,
        default_region=settings.default_region,
        default_limit=settings.default_feed_limit,
    )

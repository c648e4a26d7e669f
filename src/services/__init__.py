"""
Services module: async I/O around the personalization core.

Provides the profile store, offline queue, reconciler, interaction
tracker, article source, feed orchestrator and the service facade.
"""

from services.factory import build_personalization_service
from services.feed_orchestrator import FeedOrchestrator
from services.interaction_tracker import InteractionOutcome, InteractionTracker
from services.offline_queue import InMemoryQueueBackend, OfflineInteractionQueue, RedisQueueBackend
from services.personalization_service import PersonalizationService
from services.profile_store import InMemoryProfileBackend, ProfileStoreAdapter, SupabaseProfileBackend
from services.reconciler import ReconciliationResult, Reconciler

__all__ = [
    "build_personalization_service",
    "FeedOrchestrator",
    "InMemoryProfileBackend",
    "InMemoryQueueBackend",
    "InteractionOutcome",
    "InteractionTracker",
    "OfflineInteractionQueue",
    "PersonalizationService",
    "ProfileStoreAdapter",
    "RedisQueueBackend",
    "ReconciliationResult",
    "Reconciler",
    "SupabaseProfileBackend",
]

"""
Remote store client singletons.

The profile store talks to Supabase and the offline queue to Redis. Each
client is built once from settings and shared by every backend in the
process.
"""

from functools import lru_cache
from typing import Optional

from redis import asyncio as aioredis
from supabase import Client, create_client

from config.settings import get_settings


class SupabaseClientError(Exception):
    """Raised when the Supabase client cannot be created."""
    pass


class RedisClientError(Exception):
    """Raised when the offline queue's Redis client cannot be created."""
    pass


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """
    Get the singleton Supabase client for the profile store.

    Raises:
        SupabaseClientError: If credentials are missing or the client
            cannot be created
    """
    settings = get_settings()
    if not settings.supabase_configured:
        raise SupabaseClientError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
    try:
        return create_client(settings.supabase_url, settings.supabase_service_key)
    except Exception as e:
        raise SupabaseClientError(f"Failed to create Supabase client: {e}") from e


def get_supabase_client_optional() -> Optional[Client]:
    """Supabase client, or None when it is not configured."""
    try:
        return get_supabase_client()
    except SupabaseClientError:
        return None


@lru_cache(maxsize=1)
def get_redis_client() -> "aioredis.Redis":
    """
    Get the singleton asyncio Redis client for the offline queue.

    Connections are opened lazily on first command, so a bad host only
    surfaces when the queue is used.
    """
    settings = get_settings()
    if not settings.redis_url:
        raise RedisClientError("REDIS_URL must be set to use the redis offline queue")
    try:
        return aioredis.from_url(settings.redis_url, decode_responses=True)
    except ValueError as e:
        raise RedisClientError(f"Invalid REDIS_URL: {e}") from e

"""
External clients - Supabase and Upstash Redis.

Provides lazily created singleton clients:
- Sync Supabase client for catalog and promo code lookups
- Async Upstash Redis client for cart persistence
"""

import os
from typing import Optional

from supabase import create_client, Client
from upstash_redis.asyncio import Redis as AsyncRedis


SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")

# Upstash standard env var names
UPSTASH_REDIS_REST_URL = os.environ.get("UPSTASH_REDIS_REST_URL", "")
UPSTASH_REDIS_REST_TOKEN = os.environ.get("UPSTASH_REDIS_REST_TOKEN", "")


_supabase_client: Optional[Client] = None
_redis_client: Optional[AsyncRedis] = None


def get_supabase_sync() -> Client:
    """Get synchronous Supabase client (singleton)."""
    global _supabase_client

    if _supabase_client is None:
        if not SUPABASE_URL or not SUPABASE_SERVICE_ROLE_KEY:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
        _supabase_client = create_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)

    return _supabase_client


def get_redis() -> AsyncRedis:
    """
    Get async Upstash Redis client (singleton).

    Uses UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN.
    """
    global _redis_client

    if _redis_client is None:
        if not UPSTASH_REDIS_REST_URL or not UPSTASH_REDIS_REST_TOKEN:
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")
        _redis_client = AsyncRedis(url=UPSTASH_REDIS_REST_URL, token=UPSTASH_REDIS_REST_TOKEN)

    return _redis_client


class RedisKeys:
    """Redis key prefixes."""

    CART = "shopping-cart:"  # shopping-cart:{session_id}

    @staticmethod
    def cart_key(session_id: str) -> str:
        return f"{RedisKeys.CART}{session_id}"


class TTL:
    """Time-to-live constants for Redis keys (seconds)."""

    CART = 86400  # 24 hours

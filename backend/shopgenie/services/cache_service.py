# /shopgenie/services/cache_service.py

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator
import redis.asyncio as redis
from redis.exceptions import RedisError

from shopgenie.config.settings import settings
from shopgenie.utils.metrics import cache_operations

# This service manages all interactions with the Redis cache, providing a
# centralized point for caching logic with built-in error handling and metrics.

logger = logging.getLogger(__name__)

DEDUP_TTL_SECONDS = 300


class CacheService:
    def __init__(self, redis_url: str):
        self._local_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        try:
            self.redis_pool = redis.ConnectionPool.from_url(redis_url, max_connections=20)
            self.redis = redis.Redis(connection_pool=self.redis_pool)
        except Exception as e:
            logger.critical(f"Failed to connect to Redis at {redis_url}: {e}")
            self.redis = None # Ensure redis is None if connection fails

    async def is_duplicate_message(self, wamid: str) -> bool:
        """
        Marks a WhatsApp message id as seen. Returns True when it was already
        seen within the de-duplication window (Meta retries webhooks).
        """
        if not self.redis or not wamid:
            return False
        try:
            was_set = await self.redis.set(f"processed:{wamid}", "1", nx=True, ex=DEDUP_TTL_SECONDS)
            cache_operations.labels(operation="dedup", status="new" if was_set else "duplicate").inc()
            return not was_set
        except RedisError as e:
            cache_operations.labels(operation="dedup", status="error").inc()
            logger.warning(f"Dedup check failed for {wamid}: {e}")
            return False

    @asynccontextmanager
    async def user_lock(self, user_id: str) -> AsyncIterator[None]:
        """
        Serializes conversation handling per user. A process-local lock is
        always taken; a Redis lock is layered on top so that several workers
        also serialize. If Redis is unreachable only the local lock applies.
        """
        local_lock = self._local_locks.get(user_id)
        if local_lock is None:
            local_lock = asyncio.Lock()
            self._local_locks[user_id] = local_lock

        async with local_lock:
            redis_lock = None
            if self.redis:
                timeout = settings.session_lock_timeout_seconds
                try:
                    candidate = self.redis.lock(f"lock:conversation:{user_id}", timeout=timeout, blocking_timeout=timeout)
                    if await candidate.acquire():
                        redis_lock = candidate
                    else:
                        logger.warning(f"Timed out waiting for conversation lock of user {user_id}")
                except RedisError as e:
                    logger.warning(f"Redis lock unavailable for user {user_id}, using local lock only: {e}")
            try:
                yield
            finally:
                if redis_lock is not None:
                    try:
                        await redis_lock.release()
                    except RedisError as e:
                        logger.warning(f"Failed to release conversation lock of user {user_id}: {e}")

# Globally accessible instance
cache_service = CacheService(settings.redis_url)

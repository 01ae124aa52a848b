# ===== app/services/availability/availability_cache.py =====
import json
import logging
from datetime import date
from typing import Callable, Dict, Optional, Tuple

import redis

from app.config.redis import RedisKeys, get_redis
from app.config.settings import get_settings

logger = logging.getLogger(__name__)

# Generation counters must outlive any in-flight computation by a wide margin
GENERATION_TTL_SECONDS = 24 * 60 * 60

Generation = Tuple[Optional[str], Optional[str]]


class AvailabilityCache:
    """
    Computed day views keyed by (owner, date), stored in Redis as JSON.

    The cache is an optimisation only: any Redis failure is logged and
    treated as a miss, and writers invalidate after committing.

    Every invalidation bumps a generation counter (one per day, one per
    owner). A reader takes the generation before computing and stores its
    view with set_if_unchanged, so a view computed before a concurrent
    write is dropped instead of being cached for the full TTL.
    """

    def __init__(
            self,
            client_factory: Callable[[], redis.Redis] = get_redis,
            ttl_seconds: Optional[int] = None,
            enabled: Optional[bool] = None
    ):
        settings = get_settings()
        self._client_factory = client_factory
        self._client: Optional[redis.Redis] = None
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.AVAILABILITY_CACHE_TTL
        self.enabled = enabled if enabled is not None else settings.AVAILABILITY_CACHE_ENABLED

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    @staticmethod
    def key(owner_id, day: date) -> str:
        return RedisKeys.AVAILABILITY_DAY.format(owner_id=owner_id, date=day.isoformat())

    @staticmethod
    def generation_keys(owner_id, day: date) -> Tuple[str, str]:
        return (
            RedisKeys.AVAILABILITY_DAY_GENERATION.format(owner_id=owner_id, date=day.isoformat()),
            RedisKeys.AVAILABILITY_OWNER_GENERATION.format(owner_id=owner_id),
        )

    def get(self, owner_id, day: date) -> Optional[Dict]:
        if not self.enabled:
            return None
        try:
            raw = self.client.get(self.key(owner_id, day))
        except redis.RedisError as e:
            logger.warning(f"Availability cache read failed for {owner_id} {day}: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding unreadable availability cache entry for {owner_id} {day}")
            self.invalidate(owner_id, day)
            return None

    def generation(self, owner_id, day: date) -> Optional[Generation]:
        """Current (day, owner) generation; None when it cannot be read"""
        if not self.enabled:
            return None
        try:
            return tuple(self.client.mget(*self.generation_keys(owner_id, day)))
        except redis.RedisError as e:
            logger.warning(f"Availability cache generation read failed for {owner_id} {day}: {e}")
            return None

    def set_if_unchanged(self, owner_id, day: date, value: Dict, generation: Optional[Generation]) -> bool:
        """Store value only if no invalidation happened since generation was read"""
        if not self.enabled or generation is None:
            return False

        generation_keys = self.generation_keys(owner_id, day)
        try:
            with self.client.pipeline() as pipe:
                pipe.watch(*generation_keys)
                if tuple(pipe.mget(*generation_keys)) != tuple(generation):
                    logger.debug(f"Not caching stale availability view for {owner_id} {day}")
                    return False
                pipe.multi()
                pipe.setex(self.key(owner_id, day), self.ttl_seconds, json.dumps(value))
                pipe.execute()
                return True
        except redis.WatchError:
            logger.debug(f"Availability view for {owner_id} {day} invalidated while storing")
            return False
        except redis.RedisError as e:
            logger.warning(f"Availability cache write failed for {owner_id} {day}: {e}")
            return False

    def invalidate(self, owner_id, day: date) -> None:
        if not self.enabled:
            return
        day_generation, _ = self.generation_keys(owner_id, day)
        try:
            pipe = self.client.pipeline()
            pipe.incr(day_generation)
            pipe.expire(day_generation, GENERATION_TTL_SECONDS)
            pipe.delete(self.key(owner_id, day))
            pipe.execute()
        except redis.RedisError as e:
            logger.warning(f"Availability cache invalidation failed for {owner_id} {day}: {e}")

    def invalidate_owner(self, owner_id) -> None:
        """Drop every cached day of an owner (rule or settings change)"""
        if not self.enabled:
            return
        owner_generation = RedisKeys.AVAILABILITY_OWNER_GENERATION.format(owner_id=owner_id)
        pattern = RedisKeys.AVAILABILITY_OWNER_PATTERN.format(owner_id=owner_id)
        try:
            pipe = self.client.pipeline()
            pipe.incr(owner_generation)
            pipe.expire(owner_generation, GENERATION_TTL_SECONDS)
            pipe.execute()

            keys = list(self.client.scan_iter(match=pattern, count=500))
            if keys:
                self.client.delete(*keys)
        except redis.RedisError as e:
            logger.warning(f"Availability cache invalidation failed for owner {owner_id}: {e}")


_availability_cache: Optional[AvailabilityCache] = None


def get_availability_cache() -> AvailabilityCache:
    """FastAPI dependency; one cache instance per process"""
    global _availability_cache
    if _availability_cache is None:
        _availability_cache = AvailabilityCache()
    return _availability_cache

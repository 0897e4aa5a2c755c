"""Debounce cache. Remembers each actor's latest search log for a short window.

A search from the same actor inside the window updates the remembered row
instead of inserting a new one. Keys:
  - logged in: searchlog:debounce:user:<user_id>
  - anonymous: searchlog:debounce:ip:<ip_address>

Graceful degradation: if Redis is unavailable, uses cachetools.TTLCache in-memory.
While Redis answers it is the only source read, so keys deleted there stay gone.
The in-memory cache runs on the injected clock, so expiry follows frozen time in tests.
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import NamedTuple
from weakref import WeakValueDictionary

from cachetools import TTLCache
from redis.exceptions import LockError, RedisError

from searchlog.clock import Clock, SystemClock
from searchlog.config import settings
from searchlog.exceptions import MissingActor, Unavailable

logger = logging.getLogger(__name__)

KEY_PREFIX = "searchlog:debounce:"


def debounce_key(ip_address: str | None = None, user_id: int | None = None) -> str:
    """Derive the actor key. A user id always wins over the IP address."""
    if user_id is not None:
        return f"{KEY_PREFIX}user:{user_id}"
    if ip_address:
        return f"{KEY_PREFIX}ip:{ip_address}"
    raise MissingActor("cannot derive an actor key without ip_address or user_id")


class DebounceEntry(NamedTuple):
    event_id: int
    term: str


class DebounceCache:
    """Async TTL map of actor key -> latest search log, Redis primary with in-memory fallback."""

    def __init__(
        self,
        ttl_seconds: int | None = None,
        clock: Clock | None = None,
        redis_url: str | None = None,
        lock_timeout: int | None = None,
        maxsize: int = 10_000,
    ):
        self.ttl = settings.search_log_debounce_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock or SystemClock()
        self._redis_url = redis_url or settings.redis_url
        self._lock_timeout = settings.search_log_lock_timeout_seconds if lock_timeout is None else lock_timeout
        self._redis = None
        self._fallback = TTLCache(maxsize=maxsize, ttl=self.ttl, timer=self._timer)
        self._available = False
        self._locks: WeakValueDictionary[str, asyncio.Lock] = WeakValueDictionary()

    def _timer(self) -> float:
        return self._clock.now().timestamp()

    @property
    def redis_available(self) -> bool:
        return self._available

    async def connect(self) -> bool:
        """Connect to Redis. Returns True on success."""
        try:
            import redis.asyncio as aioredis

            self._redis = aioredis.from_url(
                self._redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
            )
            await self._redis.ping()
            self._available = True
            return True
        except (RedisError, OSError) as e:
            logger.warning("Redis connection failed, using in-memory fallback: %s", str(e)[:100])
            self._redis = None
            self._available = False
            return False

    async def disconnect(self):
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            self._available = False

    async def lookup(self, key: str) -> DebounceEntry | None:
        """Return the remembered entry, or None once the window has passed."""
        if self._available and self._redis:
            try:
                data = await self._redis.get(key)
            except RedisError as e:
                logger.debug("Redis GET error: %s", str(e)[:100])
            else:
                if not data:
                    return None
                logger.debug("Debounce HIT (Redis) | key=%s", key)
                return _decode(data)

        entry = self._fallback.get(key)
        if entry:
            logger.debug("Debounce HIT (memory) | key=%s", key)
        return entry

    async def remember(self, key: str, event_id: int, term: str):
        """Store (or re-arm) the entry for a full window."""
        entry = DebounceEntry(event_id=event_id, term=term)

        if self._available and self._redis:
            try:
                await self._redis.setex(key, self.ttl, _encode(entry))
            except RedisError as e:
                logger.debug("Redis SET error: %s", str(e)[:100])

        # Always write to in-memory fallback too
        self._fallback[key] = entry

    async def forget(self, key: str):
        if self._available and self._redis:
            try:
                await self._redis.delete(key)
            except RedisError as e:
                logger.debug("Redis DELETE error: %s", str(e)[:100])
        self._fallback.pop(key, None)

    async def clear_all(self):
        """Drop every debounce entry. Search logs are untouched."""
        if self._available and self._redis:
            try:
                keys = []
                async for key in self._redis.scan_iter(match=f"{KEY_PREFIX}*"):
                    keys.append(key)
                if keys:
                    await self._redis.delete(*keys)
                logger.info("Debounce cache cleared %d Redis keys", len(keys))
            except RedisError as e:
                logger.debug("Redis clear error: %s", str(e)[:100])
        self._fallback.clear()

    @asynccontextmanager
    async def guard(self, key: str):
        """Serialise create-or-update for one actor.

        In-process callers queue on an asyncio.Lock; with Redis connected a
        Redis lock extends that across processes.
        """
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock

        async with lock:
            if not (self._available and self._redis):
                yield
                return

            redis_lock = self._redis.lock(
                f"{key}:lock",
                timeout=self._lock_timeout,
                blocking_timeout=self._lock_timeout,
            )
            try:
                acquired = await redis_lock.acquire()
            except RedisError as e:
                raise Unavailable(f"debounce lock failed: {str(e)[:100]}") from e
            if not acquired:
                raise Unavailable(f"debounce lock busy | key={key}")

            try:
                yield
            finally:
                try:
                    await redis_lock.release()
                except LockError as e:
                    # Lock expired while held; the next caller already owns it
                    logger.debug("Redis lock release skipped: %s", str(e)[:100])


def _encode(entry: DebounceEntry) -> str:
    return json.dumps({"id": entry.event_id, "term": entry.term}, ensure_ascii=False)


def _decode(data: str) -> DebounceEntry:
    payload = json.loads(data)
    return DebounceEntry(event_id=int(payload["id"]), term=payload.get("term", ""))


# Singleton instance
debounce_cache = DebounceCache()

"""
Refresh token store.

Holds at most one refresh token per user under ``refresh_token:<user_id>``.
Writing a new token overwrites the previous one, which is how earlier
refresh tokens are revoked: they no longer match what is on file.
Concurrent writers for the same user are last-write-wins.
"""
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

import redis

logger = logging.getLogger(__name__)

KEY_PREFIX = "refresh_token"
DEFAULT_TTL_SECONDS = 7 * 24 * 60 * 60


def refresh_token_key(user_id: str) -> str:
    return f"{KEY_PREFIX}:{user_id}"


class RefreshTokenStore(ABC):
    """Storage backend for the current refresh token of each user."""

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.ttl_seconds = ttl_seconds

    @abstractmethod
    def put(self, user_id: str, refresh_token: str) -> None:
        """Store ``refresh_token`` for ``user_id``, replacing any previous one."""

    @abstractmethod
    def get(self, user_id: str) -> Optional[str]:
        """Return the stored refresh token, or None if absent or expired."""

    @abstractmethod
    def delete(self, user_id: str) -> None:
        """Remove the record for ``user_id``; a no-op if there is none."""

    def matches(self, user_id: str, refresh_token: str) -> bool:
        stored = self.get(user_id)
        return stored is not None and stored == refresh_token


class RedisRefreshTokenStore(RefreshTokenStore):
    """
    Redis-backed store for production use.

    Expiry is delegated to Redis via ``SET ... EX``, so a record disappears
    on its own once the refresh window lapses.
    """

    def __init__(self, redis_url: str | None = None, ttl_seconds: int = DEFAULT_TTL_SECONDS, client=None):
        super().__init__(ttl_seconds)
        self._redis_url = redis_url
        self._redis = client

    def _get_redis(self):
        """Lazy initialization of Redis connection."""
        if self._redis is None:
            self._redis = redis.Redis.from_url(self._redis_url, decode_responses=True)
            logger.info("Redis refresh token store initialized")
        return self._redis

    def put(self, user_id: str, refresh_token: str) -> None:
        self._get_redis().set(refresh_token_key(user_id), refresh_token, ex=self.ttl_seconds)

    def get(self, user_id: str) -> Optional[str]:
        value = self._get_redis().get(refresh_token_key(user_id))
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    def delete(self, user_id: str) -> None:
        self._get_redis().delete(refresh_token_key(user_id))

    def ping(self) -> bool:
        return bool(self._get_redis().ping())


class InMemoryRefreshTokenStore(RefreshTokenStore):
    """
    In-process store for tests and single-process development.

    NOT shared between workers. Expired records are evicted lazily on read.
    """

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        super().__init__(ttl_seconds)
        self._clock = clock
        self._records: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def put(self, user_id: str, refresh_token: str) -> None:
        with self._lock:
            self._records[refresh_token_key(user_id)] = (refresh_token, self._clock() + self.ttl_seconds)

    def get(self, user_id: str) -> Optional[str]:
        key = refresh_token_key(user_id)
        with self._lock:
            record = self._records.get(key)
            if record is None:
                return None
            token, expires_at = record
            if self._clock() >= expires_at:
                del self._records[key]
                return None
            return token

    def delete(self, user_id: str) -> None:
        with self._lock:
            self._records.pop(refresh_token_key(user_id), None)

    def __len__(self) -> int:
        return len(self._records)

"""Redis cache backend implementing ICacheBackend."""

from __future__ import annotations

import redis

from musterroll.core.exceptions import CacheError


class RedisCacheBackend:
    """Production ICacheBackend backed by Redis."""

    def __init__(self, host: str = "localhost", port: int = 6379, db: int = 0) -> None:
        self._host = host
        self._port = port
        self._db = db
        self._client = redis.Redis(
            host=host, port=port, db=db, decode_responses=True,
        )

    def get(self, key: str) -> str | None:
        try:
            return self._client.get(key)
        except Exception as exc:
            raise CacheError(f"Redis GET failed for key={key!r}: {exc}") from exc

    def setex(self, key: str, ttl: int, value: str) -> None:
        try:
            self._client.setex(key, ttl, value)
        except Exception as exc:
            raise CacheError(f"Redis SETEX failed for key={key!r}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except Exception as exc:
            raise CacheError(f"Redis DELETE failed for key={key!r}: {exc}") from exc

    def set_if_absent(self, key: str, value: str, ttl: int) -> bool:
        try:
            return bool(self._client.set(key, value, nx=True, ex=ttl))
        except Exception as exc:
            raise CacheError(f"Redis SET NX failed for key={key!r}: {exc}") from exc

    def delete_if_equals(self, key: str, value: str) -> bool:
        try:
            with self._client.pipeline() as pipe:
                pipe.watch(key)
                if pipe.get(key) != value:
                    pipe.unwatch()
                    return False
                pipe.multi()
                pipe.delete(key)
                pipe.execute()
                return True
        except redis.WatchError:
            return False
        except Exception as exc:
            raise CacheError(f"Redis compare-and-delete failed for key={key!r}: {exc}") from exc

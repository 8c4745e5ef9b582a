# app/client/storage.py
import redis

from app.utils.retry import redis_retry
from app.utils.settings import REDIS_URL


class MemoryStorage:
    """Equivalent de localStorage en memoire (tests, scripts)."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)


class RedisStorage:
    """
    localStorage adosse a redis, une cle par client (namespace).
    """

    def __init__(self, namespace: str, url: str | None = None, client: redis.Redis | None = None):
        self.namespace = namespace
        self.redis = client or redis.Redis.from_url(url or REDIS_URL, decode_responses=True)

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    @redis_retry()
    def get_item(self, key: str) -> str | None:
        return self.redis.get(self._key(key))

    @redis_retry()
    def set_item(self, key: str, value: str) -> None:
        self.redis.set(self._key(key), value)

    @redis_retry()
    def remove_item(self, key: str) -> None:
        self.redis.delete(self._key(key))

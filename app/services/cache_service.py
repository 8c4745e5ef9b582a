# app/services/cache_service.py
import json

import redis
from redis.exceptions import RedisError

from app.utils.retry import redis_retry
from app.utils.settings import REDIS_URL, CACHE_TTL_SECONDS
from app.utils.logging import get_logger

logger = get_logger(__name__)

STOCK_PREFIX = "stock:"
ORDER_STATS_KEY = "orders:stats"


def order_stats_key(user_id: int | None = None) -> str:
    return ORDER_STATS_KEY if user_id is None else f"{ORDER_STATS_KEY}:user:{user_id}"


def low_stock_key(threshold: int) -> str:
    return f"{STOCK_PREFIX}low:{threshold}"


OUT_OF_STOCK_KEY = f"{STOCK_PREFIX}out"


class CacheService:
    """
    -cache JSON des rapports (stock faible, rupture, statistiques commandes)
    -invalidation apres reservation / liberation de stock
    -une panne redis = cache miss, jamais une erreur metier
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None, ttl: int = CACHE_TTL_SECONDS):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )
        self.ttl = ttl

    @redis_retry()
    def _get(self, key: str) -> str | None:
        return self.redis.get(key)

    @redis_retry()
    def _set(self, key: str, value: str, ttl: int) -> None:
        self.redis.set(name=key, value=value, ex=ttl)

    @redis_retry()
    def _delete(self, *keys: str) -> int:
        return self.redis.delete(*keys)

    @redis_retry()
    def _keys_with_prefix(self, prefix: str) -> list[str]:
        return list(self.redis.scan_iter(match=f"{prefix}*"))

    def get_json(self, key: str):
        try:
            raw = self._get(key)
        except RedisError as e:
            logger.warning(f"Cache indisponible (get {key}): {e}")
            return None
        return json.loads(raw) if raw is not None else None

    def set_json(self, key: str, value, ttl: int | None = None) -> None:
        try:
            self._set(key, json.dumps(value, default=str), ttl or self.ttl)
        except RedisError as e:
            logger.warning(f"Cache indisponible (set {key}): {e}")

    def invalidate(self, *keys: str) -> None:
        if not keys:
            return
        try:
            self._delete(*keys)
        except RedisError as e:
            logger.warning(f"Invalidation du cache impossible {keys}: {e}")

    def invalidate_prefix(self, prefix: str) -> None:
        try:
            keys = self._keys_with_prefix(prefix)
            if keys:
                self._delete(*keys)
        except RedisError as e:
            logger.warning(f"Invalidation du cache impossible ({prefix}*): {e}")

    def invalidate_stock_cache(self) -> None:
        self.invalidate_prefix(STOCK_PREFIX)

    def invalidate_order_cache(self, user_id: int | None = None) -> None:
        keys = [ORDER_STATS_KEY]
        if user_id is not None:
            keys.append(order_stats_key(user_id))
        self.invalidate(*keys)

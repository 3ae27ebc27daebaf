import logging
from typing import Any, Awaitable, Callable

from .ttl_store import TTLStore, default_store

logger = logging.getLogger("cache")


class CacheService:
    def __init__(self, store: TTLStore):
        self.store = store

    async def wrap(self, key: str, loader: Callable[[], Awaitable[Any]], ttl_seconds: float) -> Any:
        """Read-through: return the cached value or load, store and return it.

        Loader exceptions propagate and nothing is cached.
        """
        cached = self.store.get(key)
        if cached is not None:
            return cached
        fresh = await loader()
        self.store.set(key, fresh, ttl_seconds)
        return fresh

    def delete_prefix(self, prefix: str) -> None:
        count = self.store.delete_prefix(prefix)
        if count:
            logger.debug(f"Cache invalidated: {count} entries with prefix '{prefix}'")


cache = CacheService(default_store)

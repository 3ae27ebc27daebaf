import logging
import time

from fastapi import Depends, Request

from lms.errors import TooManyRequestsError
from lms.security import get_current_user

from .ttl_store import TTLStore, default_store

logger = logging.getLogger("rate_limit")


class RateLimiter:
    """Fixed-window limiter keyed by user id and route path.

    The window opens at the first hit and is not extended by later ones.
    ``clock`` must tick on the same scale as the store's clock.
    """

    def __init__(self, max_calls: int, window_seconds: int, store: TTLStore = default_store,
                 clock=time.monotonic):
        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self.store = store
        self.clock = clock

    def hit(self, key: str) -> None:
        store_key = f"ratelimit:{key}"
        now = self.clock()
        entry = self.store.get(store_key)
        if entry is None:
            self.store.set(store_key, (1, now + self.window_seconds), self.window_seconds)
            return
        count, window_end = entry
        if count >= self.max_calls:
            logger.warning(f"Rate limit exceeded for {key}")
            raise TooManyRequestsError("Too many requests. Please slow down.")
        self.store.set(store_key, (count + 1, window_end), max(window_end - now, 0.001))

    async def __call__(self, request: Request, user=Depends(get_current_user)):
        self.hit(f"{user.id}:{request.url.path}")

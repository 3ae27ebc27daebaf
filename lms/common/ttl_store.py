"""Key-value store with per-key expiry.

OTP attempt tracking, the upload rate limiter and the course cache all keep
their state behind ``TTLStore``. ``InMemoryTTLStore`` is process-local: with
several replicas each one counts attempts and caches on its own. Deployments
running more than one instance must plug in a shared implementation.
"""
import time
from abc import ABC, abstractmethod
from typing import Any, Optional


class TTLStore(ABC):
    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def delete_prefix(self, prefix: str) -> int:
        """Remove every key starting with ``prefix``; returns how many were removed."""


class InMemoryTTLStore(TTLStore):
    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._data: dict[str, tuple[Any, float]] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        self._data[key] = (value, self._clock() + ttl_seconds)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def delete_prefix(self, prefix: str) -> int:
        keys = [k for k in self._data if k.startswith(prefix)]
        for k in keys:
            del self._data[k]
        return len(keys)

    def clear(self) -> None:
        self._data.clear()


# Shared by the whole process
default_store = InMemoryTTLStore()

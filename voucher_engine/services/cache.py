from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable


logger = logging.getLogger(__name__)


VOUCHER_KEY_PREFIX = "service:voucher:"
VOUCHER_LIST_PREFIX = "service:vouchers:"
VOUCHER_CODE_PREFIX = "service:voucher:code:"


def voucher_key(voucher_id) -> str:
    return f"{VOUCHER_KEY_PREFIX}{voucher_id}"


def voucher_list_key(params: str) -> str:
    return f"{VOUCHER_LIST_PREFIX}{params}"


def voucher_code_key(code: str) -> str:
    return f"{VOUCHER_CODE_PREFIX}{code}"


class CacheBackend:
    """Minimal cache contract. Never authoritative, only a hint."""

    def get(self, key: str) -> Any | None:
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        raise NotImplementedError

    def invalidate(self, key: str) -> None:
        raise NotImplementedError

    def invalidate_by_prefix(self, prefix: str) -> int:
        raise NotImplementedError


class NullCache(CacheBackend):
    def get(self, key: str) -> Any | None:
        return None

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        return None

    def invalidate(self, key: str) -> None:
        return None

    def invalidate_by_prefix(self, prefix: str) -> int:
        return 0


class InMemoryCache(CacheBackend):
    """Process-local TTL cache, safe to share across request threads."""

    def __init__(self, default_ttl: int = 3600, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._items: dict[str, tuple[float | None, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            expires_at, value = item
            if expires_at is not None and expires_at <= self._clock():
                del self._items[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        expires_at = self._clock() + ttl if ttl > 0 else None
        with self._lock:
            self._items[key] = (expires_at, value)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def invalidate_by_prefix(self, prefix: str) -> int:
        with self._lock:
            keys = [k for k in self._items if k.startswith(prefix)]
            for k in keys:
                del self._items[k]
        return len(keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


def cache_aside(cache: CacheBackend, key: str, ttl: int | None, loader: Callable[[], Any]) -> Any:
    """Return the cached value for ``key`` or compute it with ``loader`` and store it.

    Cache read/write failures degrade to calling the loader. Errors raised by
    the loader propagate and nothing is cached.
    """
    try:
        cached = cache.get(key)
    except Exception:
        logger.warning("cache read failed", exc_info=True, extra={"key": key})
        cached = None

    if cached is not None:
        return cached

    value = loader()

    try:
        cache.set(key, value, ttl)
    except Exception:
        logger.warning("cache write failed", exc_info=True, extra={"key": key})

    return value


def invalidate_voucher_caches(cache: CacheBackend | None, voucher_id=None) -> None:
    """Best-effort invalidation after a voucher mutation. Never raises."""
    if cache is None:
        return
    try:
        if voucher_id is not None:
            cache.invalidate(voucher_key(voucher_id))
        cache.invalidate_by_prefix(VOUCHER_LIST_PREFIX)
        cache.invalidate_by_prefix(VOUCHER_CODE_PREFIX)
    except Exception:
        logger.warning(
            "failed to invalidate voucher caches",
            exc_info=True,
            extra={"voucher_id": str(voucher_id) if voucher_id else None},
        )

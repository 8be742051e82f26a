from voucher_engine.config import get_settings
from voucher_engine.services.cache import CacheBackend, InMemoryCache
from voucher_engine.services.code_generator import CodeGenerator, get_code_generator as _build_code_generator


_cache: CacheBackend | None = None


def get_cache() -> CacheBackend:
    global _cache
    if _cache is None:
        _cache = InMemoryCache(default_ttl=get_settings().cache_default_ttl)
    return _cache


def get_code_generator() -> CodeGenerator | None:
    return _build_code_generator()

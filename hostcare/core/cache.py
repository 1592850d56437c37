"""
Caching
"""

# pyright: basic

from hashlib import blake2s

from aiocache import RedisCache, SimpleMemoryCache
from aiocache.serializers import JsonSerializer

from hostcare.core.config import settings

__all__ = ("cache", "make_cache_key")


def _build_cache():
    if settings.CACHE_BACKEND == "redis":
        return RedisCache(
            serializer=JsonSerializer(),
            namespace=settings.PROJECT_NAME,
            endpoint=settings.REDIS_HOST,
            password=settings.REDIS_PASSWORD,
            port=settings.REDIS_PORT,
            db=settings.REDIS_DB_CACHE,
        )
    return SimpleMemoryCache(
        serializer=JsonSerializer(),
        namespace=settings.PROJECT_NAME,
    )


cache = _build_cache()


def make_cache_key(*args: str) -> str:
    """Create a cache key by hashing the given arguments."""
    h = blake2s()
    for arg in args:
        h.update(arg.encode("utf-8"))
        h.update(b"\x00")
    return h.hexdigest()

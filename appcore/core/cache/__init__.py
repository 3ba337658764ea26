from .keys import content_hash, generate_key, key_prefix
from .manager import LISTING_TYPE, CacheManager
from .request_cache import RelationCache
from .store import MISS, CacheStore, InMemoryCacheStore, RedisCacheStore, is_miss

__all__ = [
    "CacheManager",
    "CacheStore",
    "InMemoryCacheStore",
    "LISTING_TYPE",
    "MISS",
    "RedisCacheStore",
    "RelationCache",
    "content_hash",
    "generate_key",
    "is_miss",
    "key_prefix",
]

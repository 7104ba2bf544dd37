# Result Cache Module
from .hashing import canonicalize_input, compute_input_hash
from .result_cache import (
    CacheStore, InMemoryCacheStore, JsonFileCacheStore, ResultCache
)

__all__ = [
    'canonicalize_input', 'compute_input_hash',
    'CacheStore', 'InMemoryCacheStore', 'JsonFileCacheStore', 'ResultCache'
]

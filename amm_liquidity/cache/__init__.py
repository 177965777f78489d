from .records import MarketRecord, PoolRecord
from .resolver import (
    CacheError,
    CacheFileNotFoundError,
    CacheIdMismatchError,
    CacheMalformedError,
    CacheReadError,
    CacheResolver,
)

__all__ = [
    "CacheError",
    "CacheFileNotFoundError",
    "CacheIdMismatchError",
    "CacheMalformedError",
    "CacheReadError",
    "CacheResolver",
    "MarketRecord",
    "PoolRecord",
]

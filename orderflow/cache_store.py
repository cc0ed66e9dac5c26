"""
Cache store contract shared by the SQL and Redis backends.
"""

from typing import List, Optional, Protocol, Sequence


class CacheError(Exception):
    """The cache backend is unreachable or failed an operation."""
    pass


class CacheStore(Protocol):
    """
    Key-value store with TTL and glob-style key enumeration.

    Values are opaque strings. Implementations raise CacheError on any
    backend failure and never return expired entries.
    """

    def get(self, key: str) -> Optional[str]:
        ...

    def set_with_ttl(self, key: str, value: str, ttl: int) -> None:
        ...

    def keys_matching(self, pattern: str) -> List[str]:
        ...

    def delete_many(self, keys: Sequence[str]) -> None:
        ...

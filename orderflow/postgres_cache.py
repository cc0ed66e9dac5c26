"""
PostgreSQL-based cache store with TTL support.
"""

import time
from typing import Callable, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from orderflow.cache_store import CacheError
from orderflow.database import get_db_context
from orderflow.db_models import Cache


def _glob_to_like(pattern: str) -> str:
    """
    Translate a glob pattern ("orders:*", "orders:page:?") to SQL LIKE.
    """
    escaped = (
        pattern.replace("\\", "\\\\")
        .replace("%", "\\%")
        .replace("_", "\\_")
    )
    return escaped.replace("*", "%").replace("?", "_")


class PostgresCache:
    """
    Cache table living in the application database.

    Each entry stores its absolute expiry; expired entries are invisible to
    get(), which removes them lazily. keys_matching() still lists them so
    that namespace invalidation sweeps them out too.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        """
        Initialize cache.

        Args:
            session_factory: sessionmaker to use; defaults to SessionLocal
        """
        self.session_factory = session_factory

    def get(self, key: str) -> Optional[str]:
        """
        Get cached value if not expired.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found/expired
        """
        try:
            with get_db_context(self.session_factory) as db:
                cache_entry = db.query(Cache).filter(Cache.key == key).first()

                if cache_entry is None:
                    return None

                if cache_entry.expires_at <= int(time.time()):
                    db.delete(cache_entry)
                    return None

                return cache_entry.value
        except SQLAlchemyError as e:
            raise CacheError(f"cache get failed: {e}") from e

    def set_with_ttl(self, key: str, value: str, ttl: int):
        """
        Set cache value expiring ttl seconds from now.

        Args:
            key: Cache key
            value: Serialized value
            ttl: Time-to-live in seconds
        """
        try:
            with get_db_context(self.session_factory) as db:
                expires_at = int(time.time()) + ttl

                cache_entry = db.query(Cache).filter(Cache.key == key).first()

                if cache_entry:
                    cache_entry.value = value
                    cache_entry.expires_at = expires_at
                else:
                    db.add(Cache(key=key, value=value, expires_at=expires_at))
        except SQLAlchemyError as e:
            raise CacheError(f"cache set failed: {e}") from e

    def keys_matching(self, pattern: str) -> List[str]:
        """
        List keys matching a glob pattern, expired ones included.

        Args:
            pattern: Glob pattern, e.g. "orders:*"
        """
        try:
            with get_db_context(self.session_factory) as db:
                rows = (
                    db.query(Cache.key)
                    .filter(Cache.key.like(_glob_to_like(pattern), escape="\\"))
                    .all()
                )
                return [row.key for row in rows]
        except SQLAlchemyError as e:
            raise CacheError(f"cache scan failed: {e}") from e

    def delete_many(self, keys: Sequence[str]):
        """
        Delete the given keys. Missing keys are ignored.
        """
        if not keys:
            return
        try:
            with get_db_context(self.session_factory) as db:
                db.query(Cache).filter(Cache.key.in_(list(keys))).delete(
                    synchronize_session=False
                )
        except SQLAlchemyError as e:
            raise CacheError(f"cache delete failed: {e}") from e

    def clear_expired(self):
        """Clear all expired cache entries."""
        try:
            with get_db_context(self.session_factory) as db:
                db.query(Cache).filter(
                    Cache.expires_at <= int(time.time())
                ).delete(synchronize_session=False)
        except SQLAlchemyError as e:
            raise CacheError(f"cache cleanup failed: {e}") from e

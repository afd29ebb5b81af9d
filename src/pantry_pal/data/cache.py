"""
Response cache for recipe API calls.

Entries live in the api_cache table of the local store. Each entry carries an
expiry time; entries past it are treated as absent and purged lazily.
Cache writes are best-effort and never fail the originating request.
"""

import json
import logging
import sqlite3
import time
from typing import Any, Callable, Dict, Optional

from .storage import LocalStore

logger = logging.getLogger(__name__)


def make_cache_key(kind: str, params: Dict[str, Any]) -> str:
    """Stable key for a request kind plus its parameters."""
    return f"{kind}:{json.dumps(params, sort_keys=True, default=str)}"


class ResponseCache:
    """TTL cache keyed by request kind and parameters."""

    def __init__(self, store: LocalStore, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock

    def get(self, kind: str, params: Dict[str, Any]) -> Optional[Any]:
        """Return the cached payload, or None when absent or expired."""
        if not self.store.available:
            return None

        key = make_cache_key(kind, params)
        try:
            with self.store.connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "SELECT payload, expires_at FROM api_cache WHERE key = ?",
                    (key,),
                )
                row = cursor.fetchone()
                if row is None:
                    return None

                payload, expires_at = row
                if expires_at <= self.clock():
                    cursor.execute("DELETE FROM api_cache WHERE key = ?", (key,))
                    conn.commit()
                    logger.debug(f"[CACHE] Expired entry dropped: {kind}")
                    return None
        except sqlite3.Error as e:
            logger.error(f"[CACHE] Read failed for {kind}: {e}", exc_info=True)
            return None

        try:
            return json.loads(payload)
        except json.JSONDecodeError:
            logger.warning(f"[CACHE] Corrupt entry ignored: {kind}")
            return None

    def set(self, kind: str, params: Dict[str, Any], payload: Any, ttl_seconds: float) -> bool:
        """Store a payload. Returns False (after logging) if it could not be saved."""
        if not self.store.available or ttl_seconds <= 0:
            return False

        key = make_cache_key(kind, params)
        now = self.clock()
        try:
            encoded = json.dumps(payload)
            with self.store.connect() as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO api_cache (key, kind, payload, stored_at, expires_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (key, kind, encoded, now, now + ttl_seconds),
                )
                conn.commit()
            return True
        except (sqlite3.Error, TypeError, ValueError) as e:
            logger.error(f"[CACHE] Write failed for {kind}: {e}", exc_info=True)
            return False

    def purge_expired(self) -> int:
        """Delete expired entries; returns how many were removed."""
        if not self.store.available:
            return 0
        try:
            with self.store.connect() as conn:
                cursor = conn.execute(
                    "DELETE FROM api_cache WHERE expires_at <= ?", (self.clock(),)
                )
                conn.commit()
                return cursor.rowcount
        except sqlite3.Error as e:
            logger.error(f"[CACHE] Purge failed: {e}", exc_info=True)
            return 0

    def clear(self):
        """Drop every cached response."""
        if not self.store.available:
            return
        try:
            with self.store.connect() as conn:
                conn.execute("DELETE FROM api_cache")
                conn.commit()
            logger.info("[CACHE] Cleared")
        except sqlite3.Error as e:
            logger.error(f"[CACHE] Clear failed: {e}", exc_info=True)

    def stats(self) -> Dict[str, Any]:
        """Entry count and payload size of live entries."""
        stats = {"total_entries": 0, "total_bytes": 0, "total_size": "0 KB"}
        if not self.store.available:
            return stats
        try:
            with self.store.connect() as conn:
                cursor = conn.execute(
                    "SELECT COUNT(*), COALESCE(SUM(LENGTH(payload)), 0) FROM api_cache WHERE expires_at > ?",
                    (self.clock(),),
                )
                count, size = cursor.fetchone()
        except sqlite3.Error as e:
            logger.error(f"[CACHE] Stats failed: {e}", exc_info=True)
            return stats

        stats["total_entries"] = count
        stats["total_bytes"] = size
        stats["total_size"] = f"{size / 1024:.1f} KB"
        return stats

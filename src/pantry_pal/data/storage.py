"""
Local persisted state for Pantry Pal.

A single SQLite file (pantry_pal.db) holds:
- app_state: JSON values for the user's ingredients, preferences, meal plan,
  skipped recipes and budget
- api_cache: recipe API responses (managed by data.cache.ResponseCache)

Writes are best-effort. A failed write is logged and swallowed because the
in-memory state stays authoritative for the rest of the session. Debounced
writes are flushed by a background timer once due, and all at once by flush().
"""

import json
import logging
import sqlite3
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Persisted state keys
INGREDIENTS_KEY = "available_ingredients"
PREFERENCES_KEY = "dietary_preferences"
SAVED_RECIPES_KEY = "saved_recipes"
SKIPPED_RECIPES_KEY = "skipped_recipes"
BUDGET_KEY = "user_budget"

_MISSING = object()


class PendingWrites:
    """Debounced writes, at most one pending value per key.

    A new write for a key supersedes (cancels) any not-yet-flushed write for
    the same key. Nothing is dropped: drain() hands back everything pending.
    """

    def __init__(self, delay_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.delay_seconds = delay_seconds
        self.clock = clock
        self._pending: Dict[str, Tuple[Any, float]] = {}

    def schedule(self, key: str, value: Any):
        if key in self._pending:
            logger.debug(f"[STORE] Superseding pending write for '{key}'")
        self._pending[key] = (value, self.clock() + self.delay_seconds)

    def peek(self, key: str, default: Any = _MISSING) -> Any:
        if key in self._pending:
            return self._pending[key][0]
        return default

    def cancel(self, key: str) -> bool:
        return self._pending.pop(key, None) is not None

    def next_due_in(self) -> Optional[float]:
        """Seconds until the earliest pending write is due; None if nothing is pending."""
        if not self._pending:
            return None
        earliest = min(due_at for _, due_at in self._pending.values())
        return max(0.0, earliest - self.clock())

    def due(self) -> List[Tuple[str, Any]]:
        """Pop and return writes whose debounce delay has elapsed."""
        now = self.clock()
        ready = [key for key, (_, due_at) in self._pending.items() if due_at <= now]
        return [(key, self._pending.pop(key)[0]) for key in ready]

    def drain(self) -> List[Tuple[str, Any]]:
        """Pop and return every pending write."""
        items = [(key, value) for key, (value, _) in self._pending.items()]
        self._pending.clear()
        return items

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, key: str) -> bool:
        return key in self._pending


class LocalStore:
    """Key/value JSON store on top of SQLite."""

    def __init__(
        self,
        db_dir: str = "data",
        debounce_seconds: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
        autoflush: bool = True,
    ):
        """
        Initialize the local store.

        Args:
            db_dir: Directory holding pantry_pal.db
            debounce_seconds: Delay before a set() is written; 0 writes immediately
            clock: Monotonic clock used for debouncing
            autoflush: Write debounced values from a background timer once due
        """
        self.db_dir = Path(db_dir)
        self.db_path = self.db_dir / "pantry_pal.db"
        self.pending = PendingWrites(debounce_seconds, clock=clock)
        self.autoflush = autoflush
        self.available = True
        self._lock = threading.RLock()
        self._timer: Optional[threading.Timer] = None

        try:
            self.db_dir.mkdir(parents=True, exist_ok=True)
            self._init_database()
        except (sqlite3.Error, OSError) as e:
            logger.error(f"[STORE] Local storage unavailable, state is in-memory only: {e}")
            self.available = False

    def _init_database(self):
        """Initialize database schema."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS app_state (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            # Response cache for the recipe API
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS api_cache (
                    key TEXT PRIMARY KEY,
                    kind TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    stored_at REAL NOT NULL,
                    expires_at REAL NOT NULL
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_api_cache_expires
                ON api_cache(expires_at)
            """)

            conn.commit()

    def connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        """Read a JSON value; pending (unflushed) writes win over the database."""
        with self._lock:
            pending = self.pending.peek(key)
        if pending is not _MISSING:
            return pending

        if not self.available:
            return default

        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT value FROM app_state WHERE key = ?", (key,))
                row = cursor.fetchone()
        except sqlite3.Error as e:
            logger.error(f"[STORE] Failed to read '{key}': {e}", exc_info=True)
            return default

        if row is None:
            return default

        try:
            return json.loads(row[0])
        except json.JSONDecodeError:
            logger.warning(f"[STORE] Ignoring corrupt value for '{key}'")
            return default

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set(self, key: str, value: Any):
        """Persist a JSON-serializable value (debounced if configured)."""
        if self.pending.delay_seconds > 0:
            with self._lock:
                self.pending.schedule(key, value)
                self._arm_timer()
            return
        self.write_now(key, value)

    def write_now(self, key: str, value: Any) -> bool:
        """Write immediately. Returns False (after logging) on failure."""
        if not self.available:
            return False

        try:
            payload = json.dumps(value)
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    INSERT OR REPLACE INTO app_state (key, value, updated_at)
                    VALUES (?, ?, ?)
                    """,
                    (key, payload, datetime.now().isoformat()),
                )
                conn.commit()
            return True
        except (sqlite3.Error, OSError, TypeError, ValueError) as e:
            logger.error(f"[STORE] Failed to persist '{key}': {e}", exc_info=True)
            return False

    def delete(self, key: str):
        """Remove a key, including any pending write for it."""
        with self._lock:
            self.pending.cancel(key)
        if not self.available:
            return
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute("DELETE FROM app_state WHERE key = ?", (key,))
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"[STORE] Failed to delete '{key}': {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Flushing
    # ------------------------------------------------------------------

    def _arm_timer(self):
        """Start the flush timer for the earliest pending write, if not already running."""
        if not self.autoflush or self._timer is not None:
            return
        delay = self.pending.next_due_in()
        if delay is None:
            return
        self._timer = threading.Timer(delay, self._on_timer)
        self._timer.daemon = True
        self._timer.start()

    def _on_timer(self):
        with self._lock:
            self._timer = None
            written = self.flush_due()
            if written:
                logger.debug(f"[STORE] Timer flushed {written} pending writes")
            self._arm_timer()

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def flush_due(self) -> int:
        """Write pending values whose debounce delay has elapsed."""
        written = 0
        with self._lock:
            for key, value in self.pending.due():
                if self.write_now(key, value):
                    written += 1
        return written

    def flush(self) -> int:
        """Write every pending value (call on shutdown)."""
        with self._lock:
            self._cancel_timer()
            items = self.pending.drain()
            written = 0
            for key, value in items:
                if self.write_now(key, value):
                    written += 1
        if items:
            logger.debug(f"[STORE] Flushed {written}/{len(items)} pending writes")
        return written

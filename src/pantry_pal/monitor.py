"""
API call monitoring.

The query layer reports every recipe API request to an ApiCallListener,
flagging whether it was served from cache. ApiCallMonitor is the default
listener: a bounded history of recent calls plus summary statistics.
"""

import logging
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_SIZE = 50


@dataclass
class ApiCallEvent:
    """A single recipe API request, real or served from cache."""
    kind: str
    params: Dict[str, Any] = field(default_factory=dict)
    cached: bool = False
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "params": self.params,
            "cached": self.cached,
            "timestamp": self.timestamp,
        }


class ApiCallListener(ABC):
    """Receives a notification for every API call the query layer makes."""

    @abstractmethod
    def on_api_call(self, event: ApiCallEvent):
        pass


class NullApiCallListener(ApiCallListener):
    """Listener that ignores everything."""

    def on_api_call(self, event: ApiCallEvent):
        pass


class ApiCallMonitor(ApiCallListener):
    """Ring buffer of recent API calls (newest first) with subscribers."""

    def __init__(self, max_entries: int = DEFAULT_HISTORY_SIZE, clock: Callable[[], float] = time.time):
        self.max_entries = max_entries
        self.clock = clock
        self._calls: Deque[ApiCallEvent] = deque(maxlen=max_entries)
        self._subscribers: List[Callable[[List[ApiCallEvent]], None]] = []

    def on_api_call(self, event: ApiCallEvent):
        self._calls.appendleft(event)
        source = "cache" if event.cached else "api"
        logger.debug(f"[MONITOR] {event.kind} served from {source}")
        self._notify()

    def subscribe(self, callback: Callable[[List[ApiCallEvent]], None]) -> Callable[[], None]:
        """Register a callback; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self):
        snapshot = self.calls
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception as e:
                logger.warning(f"[MONITOR] Subscriber failed: {e}")

    @property
    def calls(self) -> List[ApiCallEvent]:
        return list(self._calls)

    def clear(self):
        self._calls.clear()
        self._notify()

    def stats(self) -> Dict[str, Any]:
        """Totals for the retained history."""
        now = self.clock()
        calls = self.calls
        cached = sum(1 for c in calls if c.cached)
        total = len(calls)
        return {
            "total": total,
            "last_hour": sum(1 for c in calls if now - c.timestamp < 3600),
            "last_minute": sum(1 for c in calls if now - c.timestamp < 60),
            "cached": cached,
            "api": total - cached,
            "hit_rate": round(cached / total * 100) if total else 0,
        }

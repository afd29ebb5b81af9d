"""
Discovery queue: fetched recipes and their decision status.

Key invariants:
- Exactly one status per recipe id; ids are unique in the queue
- total_found is fixed for the epoch (the denominator of progress)
- load() and restart() start a new epoch; nothing carries over
"""

import logging
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional

from ..data.models import DecisionStatus, QueueEntry, Recipe

logger = logging.getLogger(__name__)


class DiscoveryQueue:
    """Ordered recipes for one filter combination, with decision state."""

    def __init__(self):
        self._entries: "OrderedDict[int, QueueEntry]" = OrderedDict()
        self.signature: Optional[str] = None
        self.epoch = 0

    def load(self, recipes: Iterable[Recipe], signature: Optional[str] = None) -> int:
        """Replace the queue contents (hard reset). Returns the number loaded."""
        self._entries = OrderedDict()
        for recipe in recipes:
            if recipe.id in self._entries:
                logger.debug(f"[QUEUE] Duplicate recipe {recipe.id} ignored")
                continue
            self._entries[recipe.id] = QueueEntry(recipe=recipe)
        self.signature = signature
        self.epoch += 1
        logger.info(f"[QUEUE] Loaded {len(self._entries)} recipes (epoch {self.epoch})")
        return len(self._entries)

    def restart(self):
        """Make every recipe undecided again without refetching."""
        for entry in self._entries.values():
            entry.status = DecisionStatus.UNDECIDED
        self.epoch += 1
        logger.info(f"[QUEUE] Restarted with {len(self._entries)} recipes (epoch {self.epoch})")

    def clear(self):
        self.load([], signature=None)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def __contains__(self, recipe_id: int) -> bool:
        return recipe_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, recipe_id: int) -> Optional[QueueEntry]:
        return self._entries.get(recipe_id)

    def status_of(self, recipe_id: int) -> Optional[DecisionStatus]:
        entry = self._entries.get(recipe_id)
        return entry.status if entry else None

    @property
    def recipes(self) -> List[Recipe]:
        return [e.recipe for e in self._entries.values()]

    @property
    def available_recipes(self) -> List[Recipe]:
        return [e.recipe for e in self._entries.values() if not e.is_decided]

    @property
    def total_found(self) -> int:
        return len(self._entries)

    @property
    def decided_count(self) -> int:
        return sum(1 for e in self._entries.values() if e.is_decided)

    @property
    def saved_count(self) -> int:
        return sum(1 for e in self._entries.values() if e.status == DecisionStatus.SAVED)

    @property
    def skipped_count(self) -> int:
        return sum(1 for e in self._entries.values() if e.status == DecisionStatus.SKIPPED)

    @property
    def progress(self) -> float:
        """Percentage of recipes decided; 0 for an empty queue."""
        if not self._entries:
            return 0.0
        return self.decided_count / len(self._entries) * 100

    @property
    def is_exhausted(self) -> bool:
        """True when there were recipes and all of them have been decided."""
        return bool(self._entries) and self.decided_count == len(self._entries)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def mark(self, recipe_id: int, status: DecisionStatus) -> bool:
        """Move an undecided recipe to a terminal status.

        Returns False (and changes nothing) if the recipe is unknown or
        already decided in this epoch.
        """
        if status == DecisionStatus.UNDECIDED:
            raise ValueError("Cannot mark a recipe as undecided; use restart()")
        entry = self._entries.get(recipe_id)
        if entry is None or entry.is_decided:
            return False
        entry.status = status
        return True

    def to_dict(self) -> Dict:
        return {
            "total_found": self.total_found,
            "available": len(self.available_recipes),
            "decided": self.decided_count,
            "saved": self.saved_count,
            "skipped": self.skipped_count,
            "progress": round(self.progress, 1),
            "exhausted": self.is_exhausted,
            "epoch": self.epoch,
        }

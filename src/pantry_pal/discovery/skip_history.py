"""
Skipped-recipe history and the resurfacing heuristic.

A skipped recipe is kept out of later queues built from the same ingredient
set. Once the ingredient set changes and overlaps the ingredients recorded on
the recipe when it was skipped, it resurfaces as undecided again.

This is best-effort: it only sees recipes the query layer returns, and
name overlap is a loose signal.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..data.models import Recipe, SkippedRecipeRecord
from ..data.storage import SKIPPED_RECIPES_KEY, LocalStore

logger = logging.getLogger(__name__)


def ingredient_fingerprint(ingredients: Iterable[str]) -> str:
    """Order- and case-insensitive identity of an ingredient set."""
    return "|".join(sorted({i.strip().lower() for i in ingredients if i.strip()}))


def _overlaps(ingredients: Iterable[str], recipe_ingredients: Iterable[str]) -> bool:
    names = [n.lower() for n in recipe_ingredients]
    for item in ingredients:
        item = item.strip().lower()
        if item and any(item in name or name in item for name in names):
            return True
    return False


class SkipHistory:
    """Persisted skipped-recipe records keyed by recipe id."""

    def __init__(self, store: LocalStore, enabled: bool = True):
        self.store = store
        self.enabled = enabled
        self._records: Dict[int, SkippedRecipeRecord] = {}
        self._load()

    def _load(self):
        for item in self.store.get(SKIPPED_RECIPES_KEY, []) or []:
            try:
                record = SkippedRecipeRecord.from_dict(item)
            except (KeyError, TypeError, ValueError):
                logger.warning("[SKIPS] Discarding malformed skipped-recipe record")
                continue
            self._records[record.recipe_id] = record

    def _persist(self):
        self.store.set(SKIPPED_RECIPES_KEY, [r.to_dict() for r in self._records.values()])

    @property
    def records(self) -> List[SkippedRecipeRecord]:
        return list(self._records.values())

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, recipe_id: int) -> bool:
        return recipe_id in self._records

    def get(self, recipe_id: int) -> Optional[SkippedRecipeRecord]:
        return self._records.get(recipe_id)

    def record_skip(self, recipe: Recipe, ingredients: Sequence[str]) -> Optional[SkippedRecipeRecord]:
        """Remember a skip; returns None when history is disabled."""
        if not self.enabled:
            return None
        record = SkippedRecipeRecord(
            recipe_id=recipe.id,
            title=recipe.title,
            ingredient_fingerprint=ingredient_fingerprint(ingredients),
            recipe_ingredients=recipe.all_ingredient_names,
            recipe=recipe,
        )
        self._records[recipe.id] = record
        self._persist()
        logger.debug(f"[SKIPS] Recorded skip of {recipe.id}")
        return record

    def remove(self, recipe_id: int) -> Optional[SkippedRecipeRecord]:
        record = self._records.pop(recipe_id, None)
        if record is not None:
            self._persist()
        return record

    def clear(self):
        self._records.clear()
        self._persist()

    def should_exclude(self, recipe_id: int, ingredients: Sequence[str]) -> bool:
        """True if a skipped recipe should stay out of a queue for `ingredients`."""
        if not self.enabled:
            return False
        record = self._records.get(recipe_id)
        if record is None:
            return False
        if ingredient_fingerprint(ingredients) == record.ingredient_fingerprint:
            return True
        return not _overlaps(ingredients, record.recipe_ingredients)

    def apply(self, recipes: Sequence[Recipe], ingredients: Sequence[str]) -> Tuple[List[Recipe], int]:
        """Split out excluded recipes; returns (kept, excluded_count)."""
        kept = [r for r in recipes if not self.should_exclude(r.id, ingredients)]
        excluded = len(recipes) - len(kept)
        if excluded:
            logger.info(f"[SKIPS] Held back {excluded} previously skipped recipes")
        return kept, excluded

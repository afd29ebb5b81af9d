"""
Decision processor: applies save/skip decisions to the discovery queue.

Per recipe id the only transitions are undecided -> saved (accept) and
undecided -> skipped (reject); both are terminal until the queue is restarted
or reloaded. The meal plan and budget ledger are updated before the next
recipe is exposed.

The cursor is a plain index into the queue's available (undecided) recipes.
Advancing wraps around that subset; once it is empty the processor reports
no recipes instead of wrapping.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence

from ..data.models import DecisionStatus, Recipe
from ..meal_plan import MealPlanStore
from .queue import DiscoveryQueue
from .skip_history import SkipHistory

logger = logging.getLogger(__name__)


class DecisionOutcome(str, Enum):
    SAVED = "saved"
    SKIPPED = "skipped"
    ALREADY_IN_PLAN = "already_in_plan"
    ALREADY_DECIDED = "already_decided"
    NO_RECIPES = "no_recipes"
    NOT_IN_QUEUE = "not_in_queue"


@dataclass
class DecisionResult:
    """What a decision did, and what the user should see next."""
    outcome: DecisionOutcome
    recipe: Optional[Recipe] = None
    next_recipe: Optional[Recipe] = None
    exhausted: bool = False

    def to_dict(self) -> Dict:
        return {
            "outcome": self.outcome.value,
            "recipe": self.recipe.to_dict() if self.recipe else None,
            "next_recipe": self.next_recipe.to_dict() if self.next_recipe else None,
            "exhausted": self.exhausted,
        }


class DecisionProcessor:
    """Owns the queue cursor and applies decisions to queue, plan and ledger."""

    def __init__(
        self,
        queue: DiscoveryQueue,
        meal_plan: MealPlanStore,
        skip_history: SkipHistory,
    ):
        self.queue = queue
        self.meal_plan = meal_plan
        self.skip_history = skip_history
        self.cursor = 0
        self.ingredients: List[str] = []
        self.held_back = 0

    @property
    def ledger(self):
        return self.meal_plan.ledger

    # ------------------------------------------------------------------
    # Queue lifecycle
    # ------------------------------------------------------------------

    def load(
        self,
        recipes: Sequence[Recipe],
        signature: Optional[str] = None,
        ingredients: Sequence[str] = (),
    ) -> int:
        """Start a new epoch from freshly fetched recipes.

        Previously skipped recipes are held back unless the ingredient set
        has moved on to overlap them.
        """
        self.ingredients = list(ingredients)
        kept, self.held_back = self.skip_history.apply(recipes, self.ingredients)
        loaded = self.queue.load(kept, signature)
        self.cursor = 0
        return loaded

    def apply_results(
        self,
        started_signature: str,
        current_signature: str,
        recipes: Sequence[Recipe],
        ingredients: Sequence[str] = (),
    ) -> bool:
        """Load fetched recipes unless the filters changed while fetching.

        Returns False (and leaves the queue untouched) for a stale response.
        """
        if started_signature != current_signature:
            logger.info("[DECISION] Discarding stale fetch results; filters changed mid-fetch")
            return False
        self.load(recipes, current_signature, ingredients)
        return True

    def restart(self):
        """Make every queued recipe undecided again, keeping the filters."""
        self.queue.restart()
        self.cursor = 0

    # ------------------------------------------------------------------
    # Cursor
    # ------------------------------------------------------------------

    @property
    def current_recipe(self) -> Optional[Recipe]:
        available = self.queue.available_recipes
        if not available:
            return None
        if self.cursor >= len(available):
            self.cursor = 0
        return available[self.cursor]

    def next(self) -> Optional[Recipe]:
        available = self.queue.available_recipes
        if not available:
            return None
        self.cursor = (self.cursor + 1) % len(available)
        return available[self.cursor]

    def previous(self) -> Optional[Recipe]:
        available = self.queue.available_recipes
        if not available:
            return None
        self.cursor = (self.cursor - 1) % len(available)
        return available[self.cursor]

    def _resolve(self, recipe_id: Optional[int]):
        """Find the recipe to decide; returns (recipe, failure_outcome)."""
        if recipe_id is None:
            recipe = self.current_recipe
            if recipe is None:
                return None, DecisionOutcome.NO_RECIPES
            return recipe, None

        entry = self.queue.get(recipe_id)
        if entry is None:
            return None, DecisionOutcome.NOT_IN_QUEUE
        if entry.is_decided:
            return entry.recipe, DecisionOutcome.ALREADY_DECIDED
        return entry.recipe, None

    def _mark_and_advance(self, recipe: Recipe, status: DecisionStatus):
        available = [r.id for r in self.queue.available_recipes]
        current_id = available[self.cursor] if self.cursor < len(available) else None
        position = available.index(recipe.id)

        self.queue.mark(recipe.id, status)

        remaining = [r.id for r in self.queue.available_recipes]
        if not remaining:
            self.cursor = 0
        elif current_id is None or current_id == recipe.id:
            # The following recipe slides into the decided one's slot
            self.cursor = position % len(remaining)
        else:
            self.cursor = remaining.index(current_id)

    def _result(self, outcome: DecisionOutcome, recipe: Optional[Recipe]) -> DecisionResult:
        return DecisionResult(
            outcome=outcome,
            recipe=recipe,
            next_recipe=self.current_recipe,
            exhausted=self.queue.is_exhausted,
        )

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def accept(self, recipe_id: Optional[int] = None) -> DecisionResult:
        """Save a recipe to the meal plan and advance."""
        recipe, failure = self._resolve(recipe_id)
        if failure:
            logger.debug(f"[DECISION] Accept {recipe_id} -> {failure.value}")
            return self._result(failure, recipe)

        added = self.meal_plan.add(recipe)
        self._mark_and_advance(recipe, DecisionStatus.SAVED)
        self.skip_history.remove(recipe.id)

        outcome = DecisionOutcome.SAVED if added else DecisionOutcome.ALREADY_IN_PLAN
        logger.info(f"[DECISION] Accepted {recipe.id} ({recipe.title}) -> {outcome.value}")
        return self._result(outcome, recipe)

    def reject(self, recipe_id: Optional[int] = None) -> DecisionResult:
        """Skip a recipe and advance."""
        recipe, failure = self._resolve(recipe_id)
        if failure:
            logger.debug(f"[DECISION] Reject {recipe_id} -> {failure.value}")
            return self._result(failure, recipe)

        self._mark_and_advance(recipe, DecisionStatus.SKIPPED)
        self.skip_history.record_skip(recipe, self.ingredients)

        logger.info(f"[DECISION] Skipped {recipe.id} ({recipe.title})")
        return self._result(DecisionOutcome.SKIPPED, recipe)

    # ------------------------------------------------------------------
    # Meal plan and skip history maintenance
    # ------------------------------------------------------------------

    def remove_from_plan(self, recipe_id: int) -> Optional[Recipe]:
        return self.meal_plan.remove(recipe_id)

    def clear_plan(self) -> int:
        return self.meal_plan.clear()

    def recover_skipped(self, recipe_id: int, recipe: Optional[Recipe] = None) -> Optional[DecisionResult]:
        """Move a skipped recipe into the meal plan.

        `recipe` is used when the skip record predates stored recipe data.
        Returns None if there is no skip record for the id, or no recipe
        data to save.
        """
        record = self.skip_history.get(recipe_id)
        if record is None:
            return None

        if recipe is None:
            recipe = record.recipe
        if recipe is None:
            entry = self.queue.get(recipe_id)
            recipe = entry.recipe if entry else None
        if recipe is None:
            logger.warning(f"[DECISION] No recipe data to recover skipped recipe {recipe_id}")
            return None

        self.skip_history.remove(recipe_id)
        added = self.meal_plan.add(recipe)
        outcome = DecisionOutcome.SAVED if added else DecisionOutcome.ALREADY_IN_PLAN
        logger.info(f"[DECISION] Recovered skipped recipe {recipe_id} -> {outcome.value}")
        return self._result(outcome, recipe)

    def to_dict(self) -> Dict:
        current = self.current_recipe
        return {
            "current_recipe": current.to_dict() if current else None,
            "cursor": self.cursor,
            "held_back": self.held_back,
            **self.queue.to_dict(),
        }

"""
Meal plan store: the persisted set of saved recipes.

Every change goes through the budget ledger so that spent always equals the
sum of estimated_cost over the plan.
"""

import logging
from collections import OrderedDict
from typing import Dict, List, Optional

from .budget import BudgetLedger
from .data.models import Recipe
from .data.storage import SAVED_RECIPES_KEY, LocalStore

logger = logging.getLogger(__name__)


class MealPlanStore:
    """Saved recipes, unique by id, in the order they were saved."""

    def __init__(self, store: LocalStore, ledger: BudgetLedger):
        self.store = store
        self.ledger = ledger
        self._recipes: "OrderedDict[int, Recipe]" = OrderedDict()
        self._load()

    def _load(self):
        for item in self.store.get(SAVED_RECIPES_KEY, []) or []:
            try:
                recipe = Recipe.from_dict(item)
            except (KeyError, TypeError, ValueError):
                logger.warning("[PLAN] Discarding malformed saved recipe")
                continue
            self._recipes.setdefault(recipe.id, recipe)
        self.ledger.recalculate(self._recipes.values())
        if self._recipes:
            logger.info(f"[PLAN] Loaded {len(self._recipes)} saved recipes")

    def _persist(self):
        self.store.set(SAVED_RECIPES_KEY, [r.to_dict() for r in self._recipes.values()])

    @property
    def recipes(self) -> List[Recipe]:
        return list(self._recipes.values())

    def __len__(self) -> int:
        return len(self._recipes)

    def __contains__(self, recipe_id: int) -> bool:
        return recipe_id in self._recipes

    def get(self, recipe_id: int) -> Optional[Recipe]:
        return self._recipes.get(recipe_id)

    def add(self, recipe: Recipe) -> bool:
        """Save a recipe. Returns False if it is already in the plan."""
        if recipe.id in self._recipes:
            return False
        self._recipes[recipe.id] = recipe
        self.ledger.add(recipe.estimated_cost)
        self._persist()
        logger.info(f"[PLAN] Added {recipe.id} ({recipe.title}), spent now {self.ledger.spent:.2f}")
        return True

    def remove(self, recipe_id: int) -> Optional[Recipe]:
        """Remove a recipe; returns it, or None if it was not in the plan."""
        recipe = self._recipes.pop(recipe_id, None)
        if recipe is None:
            return None
        self.ledger.subtract(recipe.estimated_cost)
        self._persist()
        logger.info(f"[PLAN] Removed {recipe_id}, spent now {self.ledger.spent:.2f}")
        return recipe

    def clear(self) -> int:
        """Empty the plan; spent resets to exactly zero."""
        count = len(self._recipes)
        self._recipes.clear()
        self.ledger.reset()
        self._persist()
        logger.info(f"[PLAN] Cleared {count} recipes")
        return count

    def to_dict(self) -> Dict:
        return {
            "recipes": [r.to_dict() for r in self._recipes.values()],
            "count": len(self._recipes),
            "budget": self.ledger.to_dict(),
        }

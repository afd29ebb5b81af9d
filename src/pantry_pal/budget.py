"""
Budget ledger.

Tracks spend on the meal plan against a user-set ceiling:
- spent: sum of estimated_cost over the meal plan
- remaining: max(0, budget - spent)
- percentage: spent / budget * 100, 0 when budget is 0; not clamped at 100
"""

import logging
import math
from numbers import Real
from typing import Any, Dict, Iterable

from .data.models import Recipe
from .data.storage import BUDGET_KEY, LocalStore
from .errors import InvalidInputError

logger = logging.getLogger(__name__)

DEFAULT_BUDGET = 100.0


def parse_budget(value: Any) -> float:
    """Validate a budget value: a positive, finite number.

    Raises:
        InvalidInputError: If value is non-numeric, non-finite, zero or negative
    """
    if isinstance(value, bool):
        raise InvalidInputError("Budget must be a number")
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            raise InvalidInputError(f"Budget must be a number, got {value!r}")
    if not isinstance(value, Real):
        raise InvalidInputError("Budget must be a number")

    amount = float(value)
    if not math.isfinite(amount):
        raise InvalidInputError("Budget must be finite")
    if amount <= 0:
        raise InvalidInputError("Budget must be greater than zero")
    return amount


class BudgetLedger:
    """Running spend versus the user's budget."""

    def __init__(self, store: LocalStore, default_budget: float = DEFAULT_BUDGET):
        self.store = store
        self.spent = 0.0
        self.budget = self._load_budget(default_budget)

    def _load_budget(self, default_budget: float) -> float:
        saved = self.store.get(BUDGET_KEY)
        if saved is None:
            return default_budget
        try:
            return parse_budget(saved)
        except InvalidInputError:
            logger.warning(f"[BUDGET] Ignoring invalid persisted budget {saved!r}")
            return default_budget

    def set_budget(self, value: Any) -> float:
        """Set the budget ceiling. The prior budget is kept if value is rejected."""
        amount = parse_budget(value)
        self.budget = amount
        self.store.set(BUDGET_KEY, amount)
        logger.info(f"[BUDGET] Budget set to {amount:.2f}")
        return amount

    # ------------------------------------------------------------------
    # Spend tracking (driven by the meal plan)
    # ------------------------------------------------------------------

    def add(self, cost: float):
        self.spent += cost

    def subtract(self, cost: float):
        # Floating-point drift must never produce negative spend
        self.spent = max(0.0, self.spent - cost)

    def reset(self):
        self.spent = 0.0

    def recalculate(self, recipes: Iterable[Recipe]):
        """Rebuild spent from the plan contents."""
        self.spent = sum(r.estimated_cost for r in recipes)

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def remaining(self) -> float:
        return max(0.0, self.budget - self.spent)

    @property
    def percentage(self) -> float:
        if self.budget == 0:
            return 0.0
        return self.spent / self.budget * 100

    @property
    def is_over_budget(self) -> bool:
        return self.spent > self.budget

    def to_dict(self) -> Dict:
        return {
            "budget": round(self.budget, 2),
            "spent": round(self.spent, 2),
            "remaining": round(self.remaining, 2),
            "percentage": round(self.percentage, 1),
            "over_budget": self.is_over_budget,
        }

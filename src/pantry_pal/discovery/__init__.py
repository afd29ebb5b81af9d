"""
Discovery workflow: query layer, queue, skip history and decision processor.
"""

from .query import (
    QueryOptions,
    RecipeQuery,
    filter_by_preferences,
    normalize_recipe,
)
from .queue import DiscoveryQueue
from .skip_history import SkipHistory, ingredient_fingerprint
from .processor import DecisionOutcome, DecisionProcessor, DecisionResult

__all__ = [
    "QueryOptions",
    "RecipeQuery",
    "filter_by_preferences",
    "normalize_recipe",
    "DiscoveryQueue",
    "SkipHistory",
    "ingredient_fingerprint",
    "DecisionOutcome",
    "DecisionProcessor",
    "DecisionResult",
]

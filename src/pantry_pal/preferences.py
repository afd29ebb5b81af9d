"""
Ingredient and dietary preference store.

Holds the user's pantry ingredients (ordered, no duplicates) and dietary
filters, persisted through the local store.
"""

import json
import logging
from typing import Iterable, List, Optional

from .data.models import DietaryPreference
from .data.storage import INGREDIENTS_KEY, PREFERENCES_KEY, LocalStore
from .discovery.query import QueryOptions
from .discovery.skip_history import ingredient_fingerprint
from .errors import InvalidInputError

logger = logging.getLogger(__name__)


def normalize_ingredients(ingredients: Iterable[str]) -> List[str]:
    """Trim, drop empties and de-duplicate case-insensitively, keeping order."""
    seen = set()
    result = []
    for raw in ingredients:
        if not isinstance(raw, str):
            raise InvalidInputError(f"Ingredient must be a string, got {type(raw).__name__}")
        name = " ".join(raw.split())
        key = name.lower()
        if not name or key in seen:
            continue
        seen.add(key)
        result.append(name)
    return result


def parse_preferences(values: Iterable[str]) -> List[str]:
    """Validate dietary tags; returns sorted canonical values."""
    parsed = set()
    for value in values:
        try:
            parsed.add(DietaryPreference(str(value).strip().lower()).value)
        except ValueError:
            raise InvalidInputError(
                f"Unknown dietary preference '{value}'. "
                f"Expected one of: {', '.join(DietaryPreference.values())}"
            )
    return sorted(parsed)


def filter_signature(
    ingredients: Iterable[str],
    preferences: Iterable[str],
    options: Optional[QueryOptions] = None,
) -> str:
    """Identity of a filter combination; equal signatures mean equal queues."""
    return json.dumps(
        {
            "ingredients": ingredient_fingerprint(ingredients),
            "preferences": sorted(set(preferences)),
            "options": (options or QueryOptions()).to_params(),
        },
        sort_keys=True,
    )


class PreferenceStore:
    """The user's ingredient set and dietary preference set."""

    def __init__(self, store: LocalStore):
        self.store = store
        self._ingredients: List[str] = []
        self._preferences: List[str] = []
        self._load()

    def _load(self):
        saved_ingredients = self.store.get(INGREDIENTS_KEY, [])
        saved_preferences = self.store.get(PREFERENCES_KEY, [])

        try:
            self._ingredients = normalize_ingredients(saved_ingredients or [])
        except InvalidInputError:
            logger.warning("[PREFS] Discarding malformed persisted ingredients")
            self._ingredients = []

        try:
            self._preferences = parse_preferences(saved_preferences or [])
        except InvalidInputError:
            logger.warning("[PREFS] Discarding malformed persisted dietary preferences")
            self._preferences = []

    @property
    def ingredients(self) -> List[str]:
        return list(self._ingredients)

    @property
    def preferences(self) -> List[str]:
        return list(self._preferences)

    @property
    def has_ingredients(self) -> bool:
        return bool(self._ingredients)

    def signature(self, options: Optional[QueryOptions] = None) -> str:
        return filter_signature(self._ingredients, self._preferences, options)

    # ------------------------------------------------------------------
    # Ingredients
    # ------------------------------------------------------------------

    def set_ingredients(self, ingredients: Iterable[str]) -> bool:
        """Replace the ingredient set.

        Returns True only if the set changed as a filter. A change in case or
        order is stored for display but does not count.
        """
        if isinstance(ingredients, str):
            raise InvalidInputError("Ingredients must be a list of names")
        updated = normalize_ingredients(ingredients)
        if updated == self._ingredients:
            return False
        changed = ingredient_fingerprint(updated) != ingredient_fingerprint(self._ingredients)
        self._ingredients = updated
        self.store.set(INGREDIENTS_KEY, updated)
        logger.info(f"[PREFS] Ingredients set to {updated}{'' if changed else ' (same filter)'}")
        return changed

    # ------------------------------------------------------------------
    # Dietary preferences
    # ------------------------------------------------------------------

    def set_preferences(self, preferences: Iterable[str]) -> bool:
        """Replace the preference set. Returns True if it changed."""
        if isinstance(preferences, str):
            raise InvalidInputError("Preferences must be a list of tags")
        updated = parse_preferences(preferences)
        if updated == self._preferences:
            return False
        self._preferences = updated
        self.store.set(PREFERENCES_KEY, updated)
        logger.info(f"[PREFS] Dietary preferences set to {updated}")
        return True

    def to_dict(self):
        return {"ingredients": self.ingredients, "preferences": self.preferences}

"""
Canonical dietary tag mapping.

The recipe API describes diets two ways: a free-text `diets` list
("gluten free", "lacto ovo vegetarian", "paleolithic", ...) and boolean
flags (vegetarian, vegan, glutenFree, dairyFree, ketogenic). Both are folded
into the DietaryPreference vocabulary the user filters on.
"""

from typing import Dict, Iterable, List, Optional, Set

from .data.models import DietaryPreference

# =============================================================================
# API diet label -> canonical tag
# =============================================================================
DIET_ALIASES: Dict[str, str] = {
    "vegetarian": "vegetarian",
    "lacto ovo vegetarian": "vegetarian",
    "lacto vegetarian": "vegetarian",
    "ovo vegetarian": "vegetarian",
    "vegan": "vegan",
    "gluten free": "gluten-free",
    "gluten-free": "gluten-free",
    "dairy free": "dairy-free",
    "dairy-free": "dairy-free",
    "ketogenic": "keto",
    "keto": "keto",
    "paleolithic": "paleo",
    "paleo": "paleo",
    "primal": "paleo",
    "low carb": "low-carb",
    "low-carb": "low-carb",
}

# Tags that imply other tags
IMPLIED_TAGS: Dict[str, Set[str]] = {
    "vegan": {"vegetarian", "dairy-free"},
    "keto": {"low-carb"},
}

# Boolean payload flags -> canonical tag
FLAG_TAGS: Dict[str, str] = {
    "vegetarian": "vegetarian",
    "vegan": "vegan",
    "gluten_free": "gluten-free",
    "dairy_free": "dairy-free",
    "ketogenic": "keto",
}

# Canonical tag -> label the random endpoint understands
API_TAG_NAMES: Dict[str, str] = {
    "vegetarian": "vegetarian",
    "vegan": "vegan",
    "gluten-free": "gluten free",
    "dairy-free": "dairy free",
    "keto": "ketogenic",
    "paleo": "paleo",
    "low-carb": "low carb",
}

CANON_DIETARY: Set[str] = set(DietaryPreference.values())


def canonicalize_diet(label: str) -> Optional[str]:
    """Map an API diet label to a canonical tag, or None if unknown."""
    if not label:
        return None
    return DIET_ALIASES.get(label.strip().lower())


def expand_implied(tags: Iterable[str]) -> Set[str]:
    """Add tags implied by the given ones (vegan -> vegetarian, ...)."""
    expanded = set(tags)
    for tag in list(expanded):
        expanded |= IMPLIED_TAGS.get(tag, set())
    return expanded


def canonical_dietary_tags(diets: Iterable[str], flags: Optional[Dict[str, bool]] = None) -> List[str]:
    """Canonical, sorted dietary tags from a diet list plus boolean flags."""
    tags = set()
    for label in diets or []:
        tag = canonicalize_diet(label)
        if tag:
            tags.add(tag)
    for flag, value in (flags or {}).items():
        if value and flag in FLAG_TAGS:
            tags.add(FLAG_TAGS[flag])
    return sorted(expand_implied(tags) & CANON_DIETARY)


def api_tag_names(preferences: Iterable[str]) -> List[str]:
    """Labels to send as the random endpoint's tag filter."""
    return [API_TAG_NAMES[p] for p in sorted(preferences) if p in API_TAG_NAMES]

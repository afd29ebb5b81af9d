"""
Data models for Pantry Pal.

These models define the core entities of the discovery workflow:
- Recipe: normalized recipe record fetched from the recipe API
- QueueEntry: a recipe plus its decision status in the discovery queue
- SkippedRecipeRecord: history entry used by the resurfacing policy
- DietaryPreference / DecisionStatus: tag and status vocabularies
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple


class DietaryPreference(str, Enum):
    """Dietary filters a user can select."""
    VEGETARIAN = "vegetarian"
    VEGAN = "vegan"
    GLUTEN_FREE = "gluten-free"
    DAIRY_FREE = "dairy-free"
    LOW_CARB = "low-carb"
    KETO = "keto"
    PALEO = "paleo"

    @classmethod
    def values(cls) -> List[str]:
        return [p.value for p in cls]


class DecisionStatus(str, Enum):
    """Decision state of a recipe within the current queue epoch."""
    UNDECIDED = "undecided"
    SAVED = "saved"
    SKIPPED = "skipped"


def _as_tuple(values: Optional[Iterable[str]]) -> Tuple[str, ...]:
    if not values:
        return ()
    return tuple(values)


@dataclass(frozen=True)
class Recipe:
    """Recipe normalized from the external API.

    Recipes are value objects: never mutated after fetch, only referenced
    by id.
    """

    id: int
    title: str
    image_url: str = ""
    estimated_cost: float = 0.0  # Whole recipe, in dollars
    cooking_time: int = 0  # Minutes
    servings: int = 1
    dietary_tags: Tuple[str, ...] = ()
    dish_types: Tuple[str, ...] = ()
    cuisines: Tuple[str, ...] = ()
    used_ingredients: Tuple[str, ...] = ()  # Relative to the ingredient set at fetch time
    missed_ingredients: Tuple[str, ...] = ()
    ingredients: Tuple[str, ...] = ()  # All ingredient names on the recipe
    summary: str = ""
    instructions: str = ""
    source_url: str = ""

    def has_tags(self, tags: Iterable[str]) -> bool:
        """True if every tag in `tags` is one of this recipe's dietary tags."""
        own = set(self.dietary_tags)
        return all(tag in own for tag in tags)

    @property
    def all_ingredient_names(self) -> List[str]:
        """Ingredient names known for this recipe, de-duplicated, in order."""
        seen = set()
        names = []
        for name in (*self.ingredients, *self.used_ingredients, *self.missed_ingredients):
            key = name.lower()
            if key not in seen:
                seen.add(key)
                names.append(name)
        return names

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "image_url": self.image_url,
            "estimated_cost": self.estimated_cost,
            "cooking_time": self.cooking_time,
            "servings": self.servings,
            "dietary_tags": list(self.dietary_tags),
            "dish_types": list(self.dish_types),
            "cuisines": list(self.cuisines),
            "used_ingredients": list(self.used_ingredients),
            "missed_ingredients": list(self.missed_ingredients),
            "ingredients": list(self.ingredients),
            "summary": self.summary,
            "instructions": self.instructions,
            "source_url": self.source_url,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Recipe":
        """Create Recipe from dictionary produced by to_dict()."""
        return cls(
            id=int(data["id"]),
            title=data.get("title", ""),
            image_url=data.get("image_url", ""),
            estimated_cost=float(data.get("estimated_cost") or 0.0),
            cooking_time=int(data.get("cooking_time") or 0),
            servings=int(data.get("servings") or 1),
            dietary_tags=_as_tuple(data.get("dietary_tags")),
            dish_types=_as_tuple(data.get("dish_types")),
            cuisines=_as_tuple(data.get("cuisines")),
            used_ingredients=_as_tuple(data.get("used_ingredients")),
            missed_ingredients=_as_tuple(data.get("missed_ingredients")),
            ingredients=_as_tuple(data.get("ingredients")),
            summary=data.get("summary", "") or "",
            instructions=data.get("instructions", "") or "",
            source_url=data.get("source_url", "") or "",
        )

    def __str__(self) -> str:
        return f"{self.title} (${self.estimated_cost:.2f}, {self.cooking_time} min)"


@dataclass
class QueueEntry:
    """A recipe in the discovery queue with its decision status."""
    recipe: Recipe
    status: DecisionStatus = DecisionStatus.UNDECIDED

    @property
    def is_decided(self) -> bool:
        return self.status != DecisionStatus.UNDECIDED

    def to_dict(self) -> Dict:
        return {"recipe_id": self.recipe.id, "status": self.status.value}


@dataclass
class SkippedRecipeRecord:
    """A skipped recipe, remembered across queue epochs.

    `ingredient_fingerprint` is the user's ingredient set at skip time;
    `recipe_ingredients` are the recipe's ingredient names at skip time.
    """
    recipe_id: int
    title: str
    ingredient_fingerprint: str
    recipe_ingredients: List[str] = field(default_factory=list)
    skipped_at: datetime = field(default_factory=datetime.now)
    recipe: Optional[Recipe] = None

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        data = {
            "recipe_id": self.recipe_id,
            "title": self.title,
            "ingredient_fingerprint": self.ingredient_fingerprint,
            "recipe_ingredients": self.recipe_ingredients,
            "skipped_at": self.skipped_at.isoformat(),
        }
        if self.recipe:
            data["recipe"] = self.recipe.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "SkippedRecipeRecord":
        recipe = Recipe.from_dict(data["recipe"]) if data.get("recipe") else None
        skipped_at = data.get("skipped_at")
        return cls(
            recipe_id=int(data["recipe_id"]),
            title=data.get("title", ""),
            ingredient_fingerprint=data.get("ingredient_fingerprint", ""),
            recipe_ingredients=list(data.get("recipe_ingredients") or []),
            skipped_at=datetime.fromisoformat(skipped_at) if skipped_at else datetime.now(),
            recipe=recipe,
        )

"""
Spoonacular recipe API client.

Thin wrapper over `requests` that returns the raw JSON payloads. Payload
models below parse those payloads into typed objects for normalization.

Any network failure, non-2xx status or unparseable body raises
RecipeFetchError. Nothing here substitutes empty data for a failure.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import requests
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ConfigurationError, RecipeFetchError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.spoonacular.com"


# =============================================================================
# Payload models
# =============================================================================

class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ApiIngredient(_Payload):
    """Ingredient entry as returned in usedIngredients / extendedIngredients."""
    id: Optional[int] = None
    name: str = ""
    name_clean: Optional[str] = Field(default=None, alias="nameClean")
    original: str = ""
    amount: Optional[float] = None
    unit: str = ""
    aisle: Optional[str] = None

    @property
    def display_name(self) -> str:
        return (self.name_clean or self.name or self.original).strip()


class SearchHit(_Payload):
    """One result of findByIngredients."""
    id: int
    title: str = ""
    image: str = ""
    used_ingredient_count: int = Field(default=0, alias="usedIngredientCount")
    missed_ingredient_count: int = Field(default=0, alias="missedIngredientCount")
    used_ingredients: List[ApiIngredient] = Field(default_factory=list, alias="usedIngredients")
    missed_ingredients: List[ApiIngredient] = Field(default_factory=list, alias="missedIngredients")
    likes: int = 0

    @field_validator("used_ingredients", "missed_ingredients", mode="before")
    @classmethod
    def _none_to_list(cls, value):
        return value or []


class RecipeInformation(_Payload):
    """Full recipe record from information / informationBulk / random."""
    id: int
    title: str = ""
    image: Optional[str] = None
    servings: Optional[int] = None
    ready_in_minutes: Optional[int] = Field(default=None, alias="readyInMinutes")
    price_per_serving: Optional[float] = Field(default=None, alias="pricePerServing")
    diets: List[str] = Field(default_factory=list)
    dish_types: List[str] = Field(default_factory=list, alias="dishTypes")
    cuisines: List[str] = Field(default_factory=list)
    vegetarian: bool = False
    vegan: bool = False
    gluten_free: bool = Field(default=False, alias="glutenFree")
    dairy_free: bool = Field(default=False, alias="dairyFree")
    ketogenic: bool = False
    summary: Optional[str] = None
    instructions: Optional[str] = None
    source_url: Optional[str] = Field(default=None, alias="sourceUrl")
    extended_ingredients: List[ApiIngredient] = Field(default_factory=list, alias="extendedIngredients")

    @field_validator("diets", "dish_types", "cuisines", "extended_ingredients", mode="before")
    @classmethod
    def _none_to_list(cls, value):
        return value or []

    @property
    def flags(self) -> Dict[str, bool]:
        return {
            "vegetarian": self.vegetarian,
            "vegan": self.vegan,
            "gluten_free": self.gluten_free,
            "dairy_free": self.dairy_free,
            "ketogenic": self.ketogenic,
        }


class InstructionStep(_Payload):
    number: int
    step: str


class AnalyzedInstruction(_Payload):
    name: str = ""
    steps: List[InstructionStep] = Field(default_factory=list)


# =============================================================================
# Client
# =============================================================================

class SpoonacularClient:
    """HTTP client for the recipe endpoints used by discovery."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: Spoonacular API key; required before the first request
            base_url: API root (no trailing /recipes)
            timeout: Per-request timeout in seconds
            session: Optional pre-configured requests session
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        if not self.api_key:
            raise ConfigurationError("SPOONACULAR_API_KEY is not set")

        url = f"{self.base_url}{path}"
        query = dict(params or {})
        query["apiKey"] = self.api_key
        headers = {
            "Accept": "application/json",
            "x-api-key": self.api_key,
        }

        logger.info(f"[SPOONACULAR] GET {path} {params or {}}")
        try:
            resp = self.session.get(url, params=query, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"[SPOONACULAR] Request to {path} failed: {e}")
            raise RecipeFetchError(f"Failed to reach recipe API: {e}", endpoint=path) from e

        if not resp.ok:
            logger.error(f"[SPOONACULAR] {path} returned HTTP {resp.status_code}")
            raise RecipeFetchError("Recipe API request failed", endpoint=path, status_code=resp.status_code)

        try:
            return resp.json()
        except ValueError as e:
            raise RecipeFetchError("Recipe API returned invalid JSON", endpoint=path) from e

    def find_by_ingredients(
        self,
        ingredients: Sequence[str],
        number: int = 10,
        ranking: int = 2,
        dish_type: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Recipes ranked by how well they use the given ingredients."""
        params = {
            "ingredients": ",".join(ingredients),
            "number": number,
            "ranking": ranking,
            "ignorePantry": "true",
        }
        if dish_type:
            params["type"] = dish_type
        data = self._get("/recipes/findByIngredients", params)
        if not isinstance(data, list):
            raise RecipeFetchError("Unexpected search response shape", endpoint="/recipes/findByIngredients")
        return data

    def get_information(self, recipe_id: int) -> Dict[str, Any]:
        """Full details for a single recipe."""
        return self._get(f"/recipes/{recipe_id}/information", {"includeNutrition": "false"})

    def get_information_bulk(self, recipe_ids: Sequence[int]) -> List[Dict[str, Any]]:
        """Full details for several recipes in one request."""
        if not recipe_ids:
            return []
        data = self._get(
            "/recipes/informationBulk",
            {"ids": ",".join(str(i) for i in recipe_ids)},
        )
        if not isinstance(data, list):
            raise RecipeFetchError("Unexpected bulk response shape", endpoint="/recipes/informationBulk")
        return data

    def get_random(self, number: int = 10, tags: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        """Random full recipes, optionally restricted by tags."""
        params: Dict[str, Any] = {"number": number}
        if tags:
            params["tags"] = ",".join(tags)
        data = self._get("/recipes/random", params)
        if not isinstance(data, dict):
            raise RecipeFetchError("Unexpected random response shape", endpoint="/recipes/random")
        return data.get("recipes") or []

    def get_analyzed_instructions(self, recipe_id: int) -> List[Dict[str, Any]]:
        """Step-by-step instructions for a recipe."""
        data = self._get(f"/recipes/{recipe_id}/analyzedInstructions", {"stepBreakdown": "true"})
        return data if isinstance(data, list) else []

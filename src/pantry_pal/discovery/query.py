"""
Recipe query layer.

Turns the user's ingredient set and dietary preferences into a list of
normalized Recipe records:

1. Empty ingredient set -> random sample.
   Non-empty -> ranked search by ingredients, then one bulk detail fetch.
2. Payloads are normalized into Recipe (cost, time, canonical diet tags,
   used/missing ingredients).
3. Dietary preferences are applied as a conjunction: a recipe stays only if
   it carries every requested tag.

Responses are cached per request kind; each call is reported to an
ApiCallListener as a cache hit or a real API call.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError

from ..data.cache import ResponseCache
from ..data.models import Recipe
from ..errors import RecipeFetchError
from ..monitor import ApiCallEvent, ApiCallListener, NullApiCallListener
from ..spoonacular import (
    AnalyzedInstruction,
    RecipeInformation,
    SearchHit,
    SpoonacularClient,
)
from ..tag_canon import api_tag_names, canonical_dietary_tags

logger = logging.getLogger(__name__)

DEFAULT_DETAIL_TTL = 24 * 3600
DEFAULT_RANDOM_TTL = 30 * 60


@dataclass(frozen=True)
class QueryOptions:
    """Search options; part of the filter signature."""
    count: int = 10
    ranking_strategy: int = 2
    max_missing_ingredients: int = 3
    dish_type: Optional[str] = None

    def to_params(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "ranking": self.ranking_strategy,
            "max_missing": self.max_missing_ingredients,
            "dish_type": self.dish_type,
        }


# =============================================================================
# Normalization
# =============================================================================

def _ingredient_matches(name: str, available: Iterable[str]) -> bool:
    lowered = name.lower()
    for item in available:
        item = item.lower()
        if item and (item in lowered or lowered in item):
            return True
    return False


def split_ingredient_usage(names: Sequence[str], available: Sequence[str]):
    """Partition recipe ingredient names into (used, missed) against `available`."""
    used, missed = [], []
    for name in names:
        if available and _ingredient_matches(name, available):
            used.append(name)
        else:
            missed.append(name)
    return used, missed


def estimate_cost(info: RecipeInformation) -> float:
    """Whole-recipe cost in dollars (the API prices in cents per serving)."""
    if info.price_per_serving is None:
        return 0.0
    servings = info.servings or 1
    return round(info.price_per_serving * servings / 100, 2)


def normalize_recipe(
    info: RecipeInformation,
    hit: Optional[SearchHit] = None,
    available: Sequence[str] = (),
) -> Recipe:
    """Build a Recipe from a detail payload plus optional search hit."""
    names = [ing.display_name for ing in info.extended_ingredients if ing.display_name]

    if hit is not None:
        used = [ing.display_name for ing in hit.used_ingredients if ing.display_name]
        missed = [ing.display_name for ing in hit.missed_ingredients if ing.display_name]
    else:
        used, missed = split_ingredient_usage(names, available)

    return Recipe(
        id=info.id,
        title=info.title or (hit.title if hit else ""),
        image_url=info.image or (hit.image if hit else ""),
        estimated_cost=estimate_cost(info),
        cooking_time=info.ready_in_minutes or 0,
        servings=info.servings or 1,
        dietary_tags=tuple(canonical_dietary_tags(info.diets, info.flags)),
        dish_types=tuple(info.dish_types),
        cuisines=tuple(info.cuisines),
        used_ingredients=tuple(used),
        missed_ingredients=tuple(missed),
        ingredients=tuple(names),
        summary=info.summary or "",
        instructions=info.instructions or "",
        source_url=info.source_url or "",
    )


def filter_by_preferences(recipes: Iterable[Recipe], preferences: Iterable[str]) -> List[Recipe]:
    """Keep recipes carrying every requested dietary tag."""
    required = set(preferences)
    if not required:
        return list(recipes)
    return [r for r in recipes if r.has_tags(required)]


def _parse_details(payloads: Iterable[Dict[str, Any]]) -> List[RecipeInformation]:
    details = []
    for payload in payloads:
        try:
            details.append(RecipeInformation.model_validate(payload))
        except ValidationError as e:
            logger.warning(f"[QUERY] Skipping malformed recipe payload: {e.error_count()} errors")
    return details


# =============================================================================
# Query layer
# =============================================================================

class RecipeQuery:
    """Fetches, normalizes and filters recipes for discovery."""

    def __init__(
        self,
        client: SpoonacularClient,
        cache: Optional[ResponseCache] = None,
        listener: Optional[ApiCallListener] = None,
        detail_ttl: float = DEFAULT_DETAIL_TTL,
        random_ttl: float = DEFAULT_RANDOM_TTL,
    ):
        self.client = client
        self.cache = cache
        self.listener = listener or NullApiCallListener()
        self.detail_ttl = detail_ttl
        self.random_ttl = random_ttl

    def _call(self, kind: str, params: Dict[str, Any], ttl: float, fetch: Callable[[], Any]) -> Any:
        """Serve from cache when fresh, otherwise call the API and cache the result."""
        if self.cache is not None:
            cached = self.cache.get(kind, params)
            if cached is not None:
                logger.debug(f"[QUERY] Cache hit for {kind}")
                self.listener.on_api_call(ApiCallEvent(kind=kind, params=params, cached=True))
                return cached

        self.listener.on_api_call(ApiCallEvent(kind=kind, params=params, cached=False))
        payload = fetch()

        if self.cache is not None:
            self.cache.set(kind, params, payload, ttl)
        return payload

    # ------------------------------------------------------------------
    # Endpoint wrappers
    # ------------------------------------------------------------------

    def search_by_ingredients(self, ingredients: Sequence[str], options: QueryOptions) -> List[SearchHit]:
        """Ranked search, dropping hits missing more than the allowed count."""
        normalized = sorted({i.lower() for i in ingredients})
        params = {
            "ingredients": normalized,
            "number": options.count,
            "ranking": options.ranking_strategy,
            "type": options.dish_type,
        }
        payload = self._call(
            "findByIngredients",
            params,
            self.detail_ttl,
            lambda: self.client.find_by_ingredients(
                list(ingredients),
                number=options.count,
                ranking=options.ranking_strategy,
                dish_type=options.dish_type,
            ),
        )

        hits = []
        for item in payload:
            try:
                hits.append(SearchHit.model_validate(item))
            except ValidationError as e:
                logger.warning(f"[QUERY] Skipping malformed search hit: {e.error_count()} errors")

        kept = [h for h in hits if h.missed_ingredient_count <= options.max_missing_ingredients]
        if len(kept) < len(hits):
            logger.info(
                f"[QUERY] Dropped {len(hits) - len(kept)} hits missing more than "
                f"{options.max_missing_ingredients} ingredients"
            )
        return kept

    def get_bulk(self, recipe_ids: Sequence[int]) -> List[RecipeInformation]:
        if not recipe_ids:
            return []
        ids = list(recipe_ids)
        payload = self._call(
            "informationBulk",
            {"ids": sorted(ids)},
            self.detail_ttl,
            lambda: self.client.get_information_bulk(ids),
        )
        return _parse_details(payload)

    def get_random(self, count: int, tags: Sequence[str] = ()) -> List[RecipeInformation]:
        tag_list = list(tags)
        payload = self._call(
            "random",
            {"number": count, "tags": tag_list},
            self.random_ttl,
            lambda: self.client.get_random(count, tags=tag_list or None),
        )
        return _parse_details(payload)

    def get_recipe(self, recipe_id: int, available: Sequence[str] = ()) -> Recipe:
        """Single recipe detail, normalized."""
        payload = self._call(
            "information",
            {"id": recipe_id},
            self.detail_ttl,
            lambda: self.client.get_information(recipe_id),
        )
        try:
            info = RecipeInformation.model_validate(payload)
        except ValidationError as e:
            raise RecipeFetchError(
                f"Malformed recipe detail for {recipe_id}",
                endpoint=f"/recipes/{recipe_id}/information",
            ) from e
        return normalize_recipe(info, available=available)

    def get_instruction_steps(self, recipe_id: int) -> List[Dict[str, Any]]:
        """Flattened analyzed instruction steps: [{"number": 1, "step": "..."}]."""
        payload = self._call(
            "analyzedInstructions",
            {"id": recipe_id},
            self.detail_ttl,
            lambda: self.client.get_analyzed_instructions(recipe_id),
        )
        steps = []
        for block in payload or []:
            try:
                instruction = AnalyzedInstruction.model_validate(block)
            except ValidationError:
                logger.warning(f"[QUERY] Skipping malformed instruction block for {recipe_id}")
                continue
            steps.extend({"number": s.number, "step": s.step} for s in instruction.steps)
        return steps

    # ------------------------------------------------------------------
    # Discovery fetch
    # ------------------------------------------------------------------

    def fetch(
        self,
        ingredients: Sequence[str],
        preferences: Iterable[str] = (),
        options: Optional[QueryOptions] = None,
    ) -> List[Recipe]:
        """Recipes for an ingredient set, filtered by dietary preferences.

        Raises:
            RecipeFetchError: If any API request fails
        """
        options = options or QueryOptions()
        preferences = sorted(set(preferences))

        if not ingredients:
            logger.info(f"[QUERY] No ingredients, sampling {options.count} random recipes")
            details = self.get_random(options.count, tags=api_tag_names(preferences))
            recipes = [normalize_recipe(info) for info in details]
        else:
            logger.info(f"[QUERY] Searching by ingredients: {', '.join(ingredients)}")
            hits = self.search_by_ingredients(ingredients, options)
            details_by_id = {info.id: info for info in self.get_bulk([h.id for h in hits])}

            recipes = []
            for hit in hits:
                info = details_by_id.get(hit.id)
                if info is None:
                    logger.warning(f"[QUERY] No details returned for recipe {hit.id}, dropping it")
                    continue
                recipes.append(normalize_recipe(info, hit=hit, available=ingredients))

        if options.dish_type:
            dish_type = options.dish_type.lower()
            recipes = [r for r in recipes if dish_type in (d.lower() for d in r.dish_types)]

        filtered = filter_by_preferences(recipes, preferences)
        logger.info(
            f"[QUERY] {len(filtered)} of {len(recipes)} recipes match preferences "
            f"{preferences or 'none'}"
        )
        return filtered

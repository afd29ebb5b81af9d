#!/usr/bin/env python3
"""
Main orchestrator for Pantry Pal.

Wires the local store, recipe query layer, discovery queue, decision
processor, meal plan and budget ledger together, and exposes the user-facing
actions to the web app and the CLI.
"""

import argparse
import atexit
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import requests

from .budget import BudgetLedger
from .config import Settings
from .data.cache import ResponseCache
from .data.models import Recipe
from .data.storage import LocalStore
from .discovery import (
    DecisionProcessor,
    DiscoveryQueue,
    QueryOptions,
    RecipeQuery,
    SkipHistory,
)
from .errors import PantryPalError, RecipeFetchError
from .meal_plan import MealPlanStore
from .monitor import ApiCallMonitor
from .preferences import PreferenceStore
from .recipe_text import first_paragraph, parse_instructions_from_html
from .spoonacular import SpoonacularClient

logger = logging.getLogger(__name__)


@dataclass
class FetchRequest:
    """Snapshot of the filters a fetch was started from."""
    signature: str
    ingredients: List[str]
    preferences: List[str]
    options: QueryOptions = field(default_factory=QueryOptions)


class PantryPalAssistant:
    """Main orchestrator for recipe discovery and meal planning."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[SpoonacularClient] = None,
        session: Optional[requests.Session] = None,
        register_atexit: bool = True,
    ):
        """
        Initialize the assistant.

        Args:
            settings: Runtime settings (defaults to Settings.from_env())
            client: Recipe API client; built from settings when omitted
            session: requests session for the default client
            register_atexit: Flush pending writes when the interpreter exits
        """
        self.settings = settings or Settings.from_env()
        s = self.settings

        self.store = LocalStore(db_dir=s.data_dir, debounce_seconds=s.persist_debounce_seconds)
        self.cache = ResponseCache(self.store)
        self.monitor = ApiCallMonitor(max_entries=s.monitor_history_size)
        self.client = client or SpoonacularClient(
            api_key=s.spoonacular_api_key,
            base_url=s.spoonacular_base_url,
            timeout=s.spoonacular_timeout,
            session=session,
        )
        self.query = RecipeQuery(
            self.client,
            cache=self.cache,
            listener=self.monitor,
            detail_ttl=s.cache_ttl_seconds,
            random_ttl=s.random_cache_ttl_seconds,
        )

        self.preferences = PreferenceStore(self.store)
        self.ledger = BudgetLedger(self.store, default_budget=s.default_budget)
        self.meal_plan = MealPlanStore(self.store, self.ledger)
        self.skip_history = SkipHistory(self.store, enabled=s.skip_history_enabled)
        self.queue = DiscoveryQueue()
        self.processor = DecisionProcessor(self.queue, self.meal_plan, self.skip_history)

        self._closed = False
        if register_atexit:
            atexit.register(self.close)

        logger.info(
            f"Pantry Pal initialized (data_dir={s.data_dir}, "
            f"{len(self.meal_plan)} saved recipes, budget={self.ledger.budget:.2f})"
        )

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    @property
    def options(self) -> QueryOptions:
        s = self.settings
        return QueryOptions(
            count=s.discovery_count,
            ranking_strategy=s.discovery_ranking,
            max_missing_ingredients=s.discovery_max_missing,
        )

    def signature(self) -> str:
        return self.preferences.signature(self.options)

    def _tick(self):
        self.store.flush_due()

    def close(self):
        """Write any pending state. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self.store.flush()
        logger.info("Pantry Pal state flushed")

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def _reset_queue(self):
        """Hard reset: nothing decided under the old filters carries over."""
        self.processor.load([], self.signature(), self.preferences.ingredients)

    def set_ingredients(self, ingredients: Sequence[str], refresh: bool = True) -> Dict[str, Any]:
        self._tick()
        changed = self.preferences.set_ingredients(ingredients)
        if changed:
            self._reset_queue()
            if refresh:
                self.refresh()
        return {"changed": changed, **self.preferences.to_dict()}

    def set_preferences(self, preferences: Sequence[str], refresh: bool = True) -> Dict[str, Any]:
        self._tick()
        changed = self.preferences.set_preferences(preferences)
        if changed:
            self._reset_queue()
            if refresh:
                self.refresh()
        return {"changed": changed, **self.preferences.to_dict()}

    def set_budget(self, value: Any) -> Dict[str, Any]:
        self._tick()
        self.ledger.set_budget(value)
        return self.ledger.to_dict()

    # ------------------------------------------------------------------
    # Discovery fetch
    # ------------------------------------------------------------------

    def fetch_request(self) -> FetchRequest:
        return FetchRequest(
            signature=self.signature(),
            ingredients=self.preferences.ingredients,
            preferences=self.preferences.preferences,
            options=self.options,
        )

    def run_fetch(self, request: FetchRequest) -> List[Recipe]:
        """Call the recipe API for a snapshot. Touches no discovery state."""
        return self.query.fetch(request.ingredients, request.preferences, request.options)

    def apply_fetch(self, request: FetchRequest, recipes: Sequence[Recipe]) -> bool:
        """Load fetched recipes unless the filters moved on since the snapshot."""
        self._tick()
        return self.processor.apply_results(
            request.signature, self.signature(), recipes, request.ingredients
        )

    def refresh(self) -> Dict[str, Any]:
        """Fetch recipes for the current filters and start a new epoch.

        Raises:
            RecipeFetchError: If the recipe API fails
        """
        self._tick()
        request = self.fetch_request()
        recipes = self.run_fetch(request)
        applied = self.apply_fetch(request, recipes)
        return {"applied": applied, **self.discovery_state()}

    def discovery_state(self) -> Dict[str, Any]:
        return self.processor.to_dict()

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def _decision_response(self, result) -> Dict[str, Any]:
        return {
            **result.to_dict(),
            "progress": round(self.queue.progress, 1),
            "available": len(self.queue.available_recipes),
            "budget": self.ledger.to_dict(),
        }

    def accept(self, recipe_id: Optional[int] = None) -> Dict[str, Any]:
        self._tick()
        return self._decision_response(self.processor.accept(recipe_id))

    def reject(self, recipe_id: Optional[int] = None) -> Dict[str, Any]:
        self._tick()
        return self._decision_response(self.processor.reject(recipe_id))

    def restart(self) -> Dict[str, Any]:
        self._tick()
        self.processor.restart()
        return self.discovery_state()

    def next_recipe(self) -> Optional[Recipe]:
        self._tick()
        return self.processor.next()

    def previous_recipe(self) -> Optional[Recipe]:
        self._tick()
        return self.processor.previous()

    # ------------------------------------------------------------------
    # Meal plan
    # ------------------------------------------------------------------

    def meal_plan_state(self) -> Dict[str, Any]:
        return self.meal_plan.to_dict()

    def remove_from_plan(self, recipe_id: int) -> Optional[Recipe]:
        self._tick()
        return self.processor.remove_from_plan(recipe_id)

    def clear_plan(self) -> int:
        self._tick()
        return self.processor.clear_plan()

    # ------------------------------------------------------------------
    # Skip history
    # ------------------------------------------------------------------

    def skipped(self) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in self.skip_history.records]

    def recover_skipped(self, recipe_id: int) -> Optional[Dict[str, Any]]:
        """Move a skipped recipe into the plan; None if it was never skipped."""
        self._tick()
        record = self.skip_history.get(recipe_id)
        if record is None:
            return None

        recipe = None
        if record.recipe is None and recipe_id not in self.queue:
            recipe = self.query.get_recipe(recipe_id, available=self.preferences.ingredients)

        result = self.processor.recover_skipped(recipe_id, recipe)
        if result is None:
            return None
        return self._decision_response(result)

    def clear_skipped(self) -> int:
        self._tick()
        count = len(self.skip_history)
        self.skip_history.clear()
        return count

    # ------------------------------------------------------------------
    # Recipe detail
    # ------------------------------------------------------------------

    def _known_recipe(self, recipe_id: int) -> Optional[Recipe]:
        entry = self.queue.get(recipe_id)
        if entry:
            return entry.recipe
        saved = self.meal_plan.get(recipe_id)
        if saved:
            return saved
        record = self.skip_history.get(recipe_id)
        return record.recipe if record else None

    def recipe_detail(self, recipe_id: int) -> Dict[str, Any]:
        """Recipe plus cooking steps.

        Steps come from the analyzed instructions endpoint, falling back to
        parsing the recipe's instruction text.

        Raises:
            RecipeFetchError: If the recipe is unknown locally and the API fails
        """
        self._tick()
        recipe = self._known_recipe(recipe_id)
        if recipe is None:
            recipe = self.query.get_recipe(recipe_id, available=self.preferences.ingredients)

        try:
            steps = self.query.get_instruction_steps(recipe_id)
        except RecipeFetchError as e:
            logger.warning(f"Analyzed instructions unavailable for {recipe_id}, parsing text: {e}")
            steps = []
        if not steps:
            steps = parse_instructions_from_html(recipe.instructions)

        status = self.queue.status_of(recipe_id)
        return {
            "recipe": recipe.to_dict(),
            "summary_text": first_paragraph(recipe.summary),
            "steps": steps,
            "in_meal_plan": recipe_id in self.meal_plan,
            "status": status.value if status else None,
        }

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def monitor_state(self) -> Dict[str, Any]:
        return {
            "calls": [c.to_dict() for c in self.monitor.calls],
            "stats": self.monitor.stats(),
            "cache": self.cache.stats(),
        }

    def clear_monitor(self):
        self.monitor.clear()

    def clear_cache(self):
        self.cache.clear()

    def purge_cache(self) -> int:
        """Drop expired cached responses; returns how many were removed."""
        return self.cache.purge_expired()

    def status(self) -> Dict[str, Any]:
        """Everything a client needs to render the app."""
        self._tick()
        return {
            **self.preferences.to_dict(),
            "discovery": self.discovery_state(),
            "meal_plan_count": len(self.meal_plan),
            "budget": self.ledger.to_dict(),
            "skipped_count": len(self.skip_history),
        }


# =============================================================================
# CLI
# =============================================================================

def _print_recipe(recipe: Recipe, prefix: str = ""):
    print(f"{prefix}{recipe.title} [#{recipe.id}]")
    print(f"{prefix}   ${recipe.estimated_cost:.2f} • {recipe.cooking_time} min • serves {recipe.servings}")
    if recipe.dietary_tags:
        print(f"{prefix}   {', '.join(recipe.dietary_tags)}")
    if recipe.missed_ingredients:
        print(f"{prefix}   missing: {', '.join(recipe.missed_ingredients)}")


def _print_budget(budget: Dict[str, Any]):
    print(
        f"💰 Spent ${budget['spent']:.2f} of ${budget['budget']:.2f} "
        f"({budget['percentage']:.1f}%), ${budget['remaining']:.2f} remaining"
    )
    if budget["over_budget"]:
        print("⚠️  Over budget")


def _discover_interactive(assistant: PantryPalAssistant):
    print("\n[s]ave  s[k]ip  [n]ext  [p]revious  [r]estart  [q]uit")
    while True:
        recipe = assistant.processor.current_recipe
        if recipe is None:
            print("\nNo recipes left to decide.")
            return
        state = assistant.discovery_state()
        print("\n" + "-" * 70)
        print(f"{state['decided']}/{state['total_found']} decided ({state['progress']:.0f}%)")
        _print_recipe(recipe)

        choice = input("> ").strip().lower()
        if choice in ("q", "quit"):
            return
        if choice == "s":
            result = assistant.accept()
            print(f"✓ {result['outcome']}")
            _print_budget(result["budget"])
        elif choice == "k":
            result = assistant.reject()
            print(f"✓ {result['outcome']}")
        elif choice == "n":
            assistant.next_recipe()
        elif choice == "p":
            assistant.previous_recipe()
        elif choice == "r":
            assistant.restart()


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Pantry Pal recipe discovery")
    parser.add_argument(
        "--data-dir",
        type=str,
        help="Data directory (default: PANTRY_PAL_DATA_DIR or data)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingredients_parser = subparsers.add_parser("ingredients", help="Show or replace ingredients")
    ingredients_parser.add_argument("items", nargs="*", help="Ingredient names")
    ingredients_parser.add_argument("--clear", action="store_true", help="Remove all ingredients")

    preferences_parser = subparsers.add_parser("preferences", help="Show or replace dietary preferences")
    preferences_parser.add_argument("tags", nargs="*", help="Dietary tags (e.g. vegan gluten-free)")
    preferences_parser.add_argument("--clear", action="store_true", help="Remove all preferences")

    budget_parser = subparsers.add_parser("budget", help="Show or set the budget")
    budget_parser.add_argument("amount", nargs="?", help="New budget")

    discover_parser = subparsers.add_parser("discover", help="Fetch recipes for the current filters")
    discover_parser.add_argument(
        "--interactive", "-i", action="store_true", help="Decide recipes one by one"
    )

    subparsers.add_parser("plan", help="Show the meal plan")
    subparsers.add_parser("clear-plan", help="Empty the meal plan")
    cache_parser = subparsers.add_parser("cache", help="Show cached API responses, dropping expired ones")
    cache_parser.add_argument("--clear", action="store_true", help="Drop every cached response")

    args = parser.parse_args()

    settings = Settings.from_env()
    if args.data_dir:
        settings.data_dir = args.data_dir

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    assistant = PantryPalAssistant(settings=settings, register_atexit=False)
    try:
        if args.command == "ingredients":
            if args.clear or args.items:
                result = assistant.set_ingredients([] if args.clear else args.items, refresh=False)
                print(f"✓ Ingredients {'updated' if result['changed'] else 'unchanged'}")
            print(f"🥕 {', '.join(assistant.preferences.ingredients) or '(none)'}")

        elif args.command == "preferences":
            if args.clear or args.tags:
                result = assistant.set_preferences([] if args.clear else args.tags, refresh=False)
                print(f"✓ Preferences {'updated' if result['changed'] else 'unchanged'}")
            print(f"🥗 {', '.join(assistant.preferences.preferences) or '(none)'}")

        elif args.command == "budget":
            if args.amount is not None:
                assistant.set_budget(args.amount)
            _print_budget(assistant.ledger.to_dict())

        elif args.command == "discover":
            state = assistant.refresh()
            print(f"\n🔎 Found {state['total_found']} recipes")
            if state["held_back"]:
                print(f"   ({state['held_back']} previously skipped recipes held back)")
            if args.interactive:
                _discover_interactive(assistant)
            else:
                for i, recipe in enumerate(assistant.queue.available_recipes, 1):
                    _print_recipe(recipe, prefix=f"{i:>2}. ")

        elif args.command == "plan":
            recipes = assistant.meal_plan.recipes
            print(f"\n📋 Meal plan ({len(recipes)} recipes)")
            for recipe in recipes:
                _print_recipe(recipe, prefix="   • ")
            _print_budget(assistant.ledger.to_dict())

        elif args.command == "clear-plan":
            count = assistant.clear_plan()
            print(f"✓ Removed {count} recipes from the meal plan")

        elif args.command == "cache":
            if args.clear:
                assistant.clear_cache()
                print("✓ Response cache cleared")
            else:
                purged = assistant.purge_cache()
                if purged:
                    print(f"🧹 Purged {purged} expired responses")
            stats = assistant.cache.stats()
            print(f"🗄️  {stats['total_entries']} cached responses ({stats['total_size']})")

    except PantryPalError as e:
        print(f"❌ Error: {e}")
        return 1
    finally:
        assistant.close()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())

"""
Pytest configuration and shared fixtures.

Fixtures are reusable test setup that can be injected into tests. The recipe
API is never contacted: HTTP is stubbed at the requests.Session boundary by
FakeSpoonacularSession.
"""

import re
import shutil
import tempfile

import pytest

from pantry_pal.config import Settings
from pantry_pal.data.models import Recipe
from pantry_pal.data.storage import LocalStore
from pantry_pal.main import PantryPalAssistant

TEST_BASE_URL = "https://api.test"


# =============================================================================
# Payload factories
# =============================================================================

def make_info(
    recipe_id,
    title=None,
    price_per_serving=250.0,
    servings=4,
    ingredients=("chicken breast", "rice", "garlic"),
    diets=(),
    vegetarian=False,
    vegan=False,
    gluten_free=False,
    dairy_free=False,
    dish_types=("main course",),
    instructions="<ol><li>Cook the rice until tender.</li><li>Sear the chicken in a hot pan.</li></ol>",
):
    """Recipe information payload shaped like the Spoonacular response."""
    return {
        "id": recipe_id,
        "title": title or f"Recipe {recipe_id}",
        "image": f"https://img.test/{recipe_id}.jpg",
        "servings": servings,
        "readyInMinutes": 30,
        "pricePerServing": price_per_serving,
        "diets": list(diets),
        "dishTypes": list(dish_types),
        "cuisines": [],
        "vegetarian": vegetarian,
        "vegan": vegan,
        "glutenFree": gluten_free,
        "dairyFree": dairy_free,
        "ketogenic": False,
        "summary": f"<b>Recipe {recipe_id}</b> is a weeknight favorite.",
        "instructions": instructions,
        "sourceUrl": f"https://example.test/{recipe_id}",
        "extendedIngredients": [
            {"id": i, "name": name, "nameClean": name, "original": f"1 cup {name}"}
            for i, name in enumerate(ingredients)
        ],
    }


def make_recipe(recipe_id, cost=10.0, tags=(), title=None, ingredients=("chicken breast", "rice")):
    """Normalized Recipe for tests that bypass the query layer."""
    return Recipe(
        id=recipe_id,
        title=title or f"Recipe {recipe_id}",
        estimated_cost=cost,
        cooking_time=30,
        servings=4,
        dietary_tags=tuple(tags),
        ingredients=tuple(ingredients),
    )


def chicken_rice_catalog():
    """Ten recipes; #1 costs $8.50, #2 costs $15.00, #3/#6/#9 are vegan."""
    catalog = []
    for recipe_id in range(1, 11):
        price = 250.0
        if recipe_id == 1:
            price = 212.5
        elif recipe_id == 2:
            price = 375.0

        if recipe_id in (3, 6, 9):
            catalog.append(make_info(
                recipe_id,
                price_per_serving=price,
                ingredients=("tofu", "rice", "garlic"),
                diets=("vegan", "gluten free"),
                vegan=True,
                vegetarian=True,
                dairy_free=True,
                gluten_free=True,
            ))
        else:
            catalog.append(make_info(recipe_id, price_per_serving=price))
    return catalog


# =============================================================================
# Fake HTTP layer
# =============================================================================

class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSpoonacularSession:
    """Stands in for requests.Session; serves a fixed recipe catalog."""

    def __init__(self, catalog=None, base_url=TEST_BASE_URL):
        self.base_url = base_url
        self.catalog = {info["id"]: info for info in (catalog or [])}
        self.calls = []
        self.status_code = 200
        self.raise_exc = None
        self.omit_from_bulk = set()

    def paths(self):
        return [call["path"] for call in self.calls]

    def _hit(self, info, wanted):
        names = [ing["name"] for ing in info["extendedIngredients"]]
        used = [n for n in names if any(w in n or n in w for w in wanted)]
        missed = [n for n in names if n not in used]
        return {
            "id": info["id"],
            "title": info["title"],
            "image": info["image"],
            "usedIngredientCount": len(used),
            "missedIngredientCount": len(missed),
            "usedIngredients": [{"name": n} for n in used],
            "missedIngredients": [{"name": n} for n in missed],
            "likes": 0,
        }

    def get(self, url, params=None, headers=None, timeout=None):
        path = url[len(self.base_url):]
        params = dict(params or {})
        self.calls.append({"path": path, "params": params, "headers": dict(headers or {})})

        if self.raise_exc is not None:
            raise self.raise_exc
        if self.status_code != 200:
            return FakeResponse({"message": "error"}, status_code=self.status_code)

        if path == "/recipes/findByIngredients":
            wanted = [w.strip().lower() for w in params["ingredients"].split(",")]
            hits = [self._hit(info, wanted) for info in self.catalog.values()]
            return FakeResponse(hits[: int(params["number"])])

        if path == "/recipes/informationBulk":
            ids = [int(i) for i in params["ids"].split(",")]
            return FakeResponse([
                self.catalog[i] for i in ids
                if i in self.catalog and i not in self.omit_from_bulk
            ])

        if path == "/recipes/random":
            return FakeResponse({"recipes": list(self.catalog.values())[: int(params["number"])]})

        match = re.fullmatch(r"/recipes/(\d+)/information", path)
        if match:
            info = self.catalog.get(int(match.group(1)))
            if info is None:
                return FakeResponse({"message": "not found"}, status_code=404)
            return FakeResponse(info)

        match = re.fullmatch(r"/recipes/(\d+)/analyzedInstructions", path)
        if match:
            return FakeResponse([{
                "name": "",
                "steps": [
                    {"number": 1, "step": "Rinse the rice."},
                    {"number": 2, "step": "Simmer until tender."},
                ],
            }])

        return FakeResponse({"message": "unknown path"}, status_code=404)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def temp_data_dir():
    """
    Create a temporary data directory for testing.

    This fixture is automatically cleaned up after each test.
    """
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir)


@pytest.fixture
def store(temp_data_dir):
    """Fresh LocalStore writing through immediately."""
    return LocalStore(db_dir=temp_data_dir)


@pytest.fixture
def catalog():
    return chicken_rice_catalog()


@pytest.fixture
def fake_session(catalog):
    return FakeSpoonacularSession(catalog)


@pytest.fixture
def settings(temp_data_dir):
    return Settings(
        spoonacular_api_key="test-key",
        spoonacular_base_url=TEST_BASE_URL,
        data_dir=temp_data_dir,
        persist_debounce_seconds=0.0,
    )


@pytest.fixture
def assistant(settings, fake_session):
    """
    Fully wired assistant backed by the fake recipe API.

    Usage in tests:
        def test_something(assistant):
            assistant.set_ingredients(["chicken", "rice"])
    """
    pal = PantryPalAssistant(settings=settings, session=fake_session, register_atexit=False)
    yield pal
    pal.close()

"""
Tests for the Flask JSON API, using the Flask test client.
"""

import os
import signal
import subprocess
import sys
import textwrap
from pathlib import Path

import pytest

from pantry_pal.data.storage import BUDGET_KEY, LocalStore
from pantry_pal.web.app import create_app, install_shutdown_handler

SRC_DIR = Path(__file__).resolve().parents[2] / "src"


@pytest.fixture
def app(assistant):
    app = create_app(assistant)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def discovering(client):
    """Client with chicken + rice recipes loaded."""
    response = client.put("/api/ingredients", json={"ingredients": ["chicken", "rice"]})
    assert response.status_code == 200
    return client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json()["status"] == "healthy"


class TestFilters:

    def test_put_ingredients_refreshes_queue(self, client):
        response = client.put("/api/ingredients", json={"ingredients": ["chicken", "rice"]})
        data = response.get_json()

        assert data["success"]
        assert data["changed"]
        assert data["ingredients"] == ["chicken", "rice"]
        assert data["discovery"]["total_found"] == 10
        assert data["discovery"]["applied"]

    def test_put_ingredients_without_refresh(self, client, fake_session):
        response = client.put("/api/ingredients", json={"ingredients": ["eggs"], "refresh": False})
        assert "discovery" not in response.get_json()
        assert fake_session.calls == []

    def test_get_ingredients(self, discovering):
        assert discovering.get("/api/ingredients").get_json()["ingredients"] == ["chicken", "rice"]

    def test_ingredients_must_be_a_list(self, client):
        response = client.put("/api/ingredients", json={"ingredients": "chicken"})
        assert response.status_code == 400
        assert not response.get_json()["success"]

    def test_preferences_filter_queue(self, discovering):
        response = discovering.put("/api/preferences", json={"preferences": ["vegan"]})
        data = response.get_json()
        assert data["preferences"] == ["vegan"]
        assert data["discovery"]["available"] == 3
        assert data["discovery"]["progress"] == 0

    def test_unknown_preference_is_400(self, client):
        response = client.put("/api/preferences", json={"preferences": ["carnivore"]})
        assert response.status_code == 400
        assert "carnivore" in response.get_json()["error"]


class TestBudget:

    def test_get_default_budget(self, client):
        budget = client.get("/api/budget").get_json()["budget"]
        assert budget["budget"] == 100.0
        assert budget["spent"] == 0.0

    def test_set_budget(self, client):
        response = client.put("/api/budget", json={"budget": 20})
        assert response.get_json()["budget"]["budget"] == 20.0

    @pytest.mark.parametrize("payload", [{"budget": -5}, {"budget": "abc"}, {}])
    def test_invalid_budget_is_400(self, client, payload):
        client.put("/api/budget", json={"budget": 30})
        response = client.put("/api/budget", json=payload)
        assert response.status_code == 400
        assert client.get("/api/budget").get_json()["budget"]["budget"] == 30.0


class TestDiscover:

    def test_discover_state(self, discovering):
        data = discovering.get("/api/discover").get_json()
        assert data["current_recipe"]["id"] == 1
        assert data["available"] == 10

    def test_accept_current(self, discovering):
        data = discovering.post("/api/discover/accept").get_json()
        assert data["outcome"] == "saved"
        assert data["recipe"]["id"] == 1
        assert data["next_recipe"]["id"] == 2
        assert data["available"] == 9
        assert data["budget"]["spent"] == 8.5

    def test_accept_twice_by_id(self, discovering):
        discovering.post("/api/discover/accept", json={"recipe_id": 1})
        data = discovering.post("/api/discover/accept", json={"recipe_id": 1}).get_json()
        assert data["outcome"] == "already_decided"
        assert data["budget"]["spent"] == 8.5

    def test_bad_recipe_id_is_400(self, discovering):
        response = discovering.post("/api/discover/accept", json={"recipe_id": "one"})
        assert response.status_code == 400

    def test_reject_and_restart(self, discovering):
        data = discovering.post("/api/discover/reject").get_json()
        assert data["outcome"] == "skipped"
        assert data["progress"] == 10.0

        data = discovering.post("/api/discover/restart").get_json()
        assert data["progress"] == 0
        assert data["available"] == 10

    def test_next_and_previous(self, discovering):
        assert discovering.post("/api/discover/next").get_json()["current_recipe"]["id"] == 2
        assert discovering.post("/api/discover/previous").get_json()["current_recipe"]["id"] == 1

    def test_refresh(self, discovering):
        data = discovering.post("/api/discover/refresh").get_json()
        assert data["applied"]
        assert data["total_found"] == 10

    def test_fetch_failure_is_502(self, client, fake_session):
        fake_session.status_code = 500
        response = client.post("/api/discover/refresh")
        assert response.status_code == 502
        assert not response.get_json()["success"]

    def test_filter_change_during_fetch_discards_results(self, client, assistant, mocker):
        client.put("/api/ingredients", json={"ingredients": ["chicken"], "refresh": False})
        original = assistant.run_fetch

        def fetch_then_change_filters(request):
            recipes = original(request)
            assistant.preferences.set_preferences(["vegan"])
            return recipes

        mocker.patch.object(assistant, "run_fetch", side_effect=fetch_then_change_filters)
        data = client.post("/api/discover/refresh").get_json()

        assert data["success"]
        assert not data["applied"]
        assert data["total_found"] == 0


class TestMealPlan:

    def test_plan_remove_and_clear(self, discovering):
        discovering.post("/api/discover/accept")
        discovering.post("/api/discover/accept")

        plan = discovering.get("/api/meal-plan").get_json()
        assert plan["count"] == 2
        assert plan["budget"]["spent"] == 23.5

        data = discovering.delete("/api/meal-plan/2").get_json()
        assert data["removed"]["id"] == 2
        assert data["budget"]["spent"] == 8.5

        data = discovering.post("/api/meal-plan/clear").get_json()
        assert data["removed_count"] == 1
        assert data["budget"]["spent"] == 0.0

    def test_remove_unknown_is_404(self, client):
        assert client.delete("/api/meal-plan/999").status_code == 404


class TestSkipped:

    def test_skip_recover_clear(self, discovering):
        discovering.post("/api/discover/reject")
        skipped = discovering.get("/api/skipped").get_json()["skipped"]
        assert [s["recipe_id"] for s in skipped] == [1]

        data = discovering.post("/api/skipped/1/recover").get_json()
        assert data["outcome"] == "saved"
        assert discovering.get("/api/meal-plan").get_json()["count"] == 1

        discovering.post("/api/discover/reject")
        assert discovering.post("/api/skipped/clear").get_json()["removed_count"] == 1

    def test_recover_unknown_is_404(self, client):
        assert client.post("/api/skipped/5/recover").status_code == 404


class TestRecipeDetail:

    def test_detail_with_steps(self, discovering):
        data = discovering.get("/api/recipes/1").get_json()
        assert data["recipe"]["id"] == 1
        assert data["steps"][0] == {"number": 1, "step": "Rinse the rice."}
        assert data["status"] == "undecided"
        assert data["summary_text"] == "Recipe 1 is a weeknight favorite."

    def test_unknown_recipe_is_404(self, client):
        assert client.get("/api/recipes/999").status_code == 404


class TestDiagnostics:

    def test_monitor_and_cache(self, discovering):
        data = discovering.get("/api/monitor").get_json()
        assert data["stats"]["api"] == 2
        assert data["cache"]["total_entries"] == 2

        assert discovering.post("/api/monitor/clear").get_json()["success"]
        assert discovering.post("/api/cache/clear").get_json()["success"]

        data = discovering.get("/api/monitor").get_json()
        assert data["stats"]["total"] == 0
        assert data["cache"]["total_entries"] == 0

    def test_unexpected_error_is_500(self, client, assistant, mocker):
        mocker.patch.object(assistant, "discovery_state", side_effect=RuntimeError("boom"))
        response = client.get("/api/discover")
        assert response.status_code == 500
        assert response.get_json() == {"success": False, "error": "boom"}


class TestShutdown:

    def test_sigterm_exits_cleanly(self, mocker):
        install = mocker.patch("pantry_pal.web.app.signal.signal")
        install_shutdown_handler()

        signum, handler = install.call_args[0]
        assert signum == signal.SIGTERM
        with pytest.raises(SystemExit) as exc_info:
            handler(signum, None)
        assert exc_info.value.code == 0

    @pytest.mark.skipif(os.name != "posix", reason="needs POSIX signals")
    def test_sigterm_flushes_debounced_state(self, temp_data_dir):
        script = textwrap.dedent(f"""
            import os, signal, time
            from pantry_pal.config import Settings
            from pantry_pal.main import PantryPalAssistant
            from pantry_pal.web.app import install_shutdown_handler

            settings = Settings(
                spoonacular_api_key="test-key",
                data_dir={str(temp_data_dir)!r},
                persist_debounce_seconds=60,
            )
            pal = PantryPalAssistant(settings=settings)
            pal.set_budget(42)
            install_shutdown_handler()
            os.kill(os.getpid(), signal.SIGTERM)
            time.sleep(10)
        """)
        pythonpath = os.pathsep.join(p for p in (str(SRC_DIR), os.environ.get("PYTHONPATH")) if p)
        env = {**os.environ, "PYTHONPATH": pythonpath}

        result = subprocess.run([sys.executable, "-c", script], env=env, timeout=60)

        assert result.returncode == 0
        assert LocalStore(db_dir=temp_data_dir).get(BUDGET_KEY) == 42

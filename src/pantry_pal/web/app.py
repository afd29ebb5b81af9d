#!/usr/bin/env python3
"""
Flask JSON API for Pantry Pal.

Every user-facing action of the discovery workflow is a route here. Access to
the assistant is serialized with one lock; the lock is released while the
recipe API is being called, and the stale-response guard in the decision
processor discards results whose filters changed in the meantime.
"""

import os
import signal
import sys
import logging
import threading
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from flask_cors import CORS

from pantry_pal.config import Settings
from pantry_pal.errors import InvalidInputError, RecipeFetchError
from pantry_pal.main import PantryPalAssistant

logger = logging.getLogger(__name__)


def configure_logging(logs_dir: str = "logs", level: str = "INFO"):
    """Console plus rotating file logging for the web server."""
    os.makedirs(logs_dir, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(),
            RotatingFileHandler(
                os.path.join(logs_dir, "app.log"),
                maxBytes=10*1024*1024,  # 10MB
                backupCount=5
            )
        ]
    )


def install_shutdown_handler():
    """Exit normally on SIGTERM so atexit handlers flush pending state."""
    def _handle_sigterm(signum, frame):
        logger.info("SIGTERM received, shutting down")
        sys.exit(0)

    signal.signal(signal.SIGTERM, _handle_sigterm)


def _error_response(e: Exception, context: str):
    """Map an exception to a JSON error response."""
    if isinstance(e, InvalidInputError):
        return jsonify({"success": False, "error": str(e)}), 400
    if isinstance(e, RecipeFetchError):
        logger.warning(f"[API] {context} failed: {e}")
        if e.status_code == 404:
            return jsonify({"success": False, "error": "Recipe not found"}), 404
        return jsonify({"success": False, "error": str(e)}), 502
    logger.error(f"[API] Error in {context}: {e}", exc_info=True)
    return jsonify({"success": False, "error": str(e)}), 500


def _optional_recipe_id(data: dict) -> Optional[int]:
    value = data.get("recipe_id")
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidInputError("recipe_id must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidInputError("recipe_id must be an integer")


def _list_field(data: dict, name: str) -> list:
    if name not in data:
        raise InvalidInputError(f"Missing '{name}'")
    value = data[name]
    if not isinstance(value, list):
        raise InvalidInputError(f"'{name}' must be a list")
    return value


def create_app(assistant: Optional[PantryPalAssistant] = None) -> Flask:
    """
    Build the Flask app.

    Args:
        assistant: Assistant to serve; built from the environment when omitted

    Returns:
        Configured Flask application
    """
    if assistant is None:
        assistant = PantryPalAssistant(settings=Settings.from_env())

    app = Flask(__name__)
    app.secret_key = assistant.settings.flask_secret_key
    app.config["ASSISTANT"] = assistant
    CORS(app)

    lock = threading.Lock()

    def refresh_unlocked():
        """Fetch with the lock released; apply only if filters are unchanged."""
        with lock:
            fetch_request = assistant.fetch_request()
        recipes = assistant.run_fetch(fetch_request)
        with lock:
            applied = assistant.apply_fetch(fetch_request, recipes)
            state = assistant.discovery_state()
        return {"applied": applied, **state}

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    @app.route('/health')
    def health_check():
        """Liveness probe."""
        return jsonify({"status": "healthy", "timestamp": datetime.now().isoformat()}), 200

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    @app.route('/api/ingredients', methods=['GET', 'PUT'])
    def api_ingredients():
        """Read or replace the ingredient set.

        PUT body: {"ingredients": [...], "refresh": true}
        """
        try:
            if request.method == 'GET':
                with lock:
                    return jsonify({"success": True, "ingredients": assistant.preferences.ingredients})

            data = request.get_json(silent=True) or {}
            items = _list_field(data, "ingredients")
            with lock:
                result = assistant.set_ingredients(items, refresh=False)

            response = {"success": True, **result}
            if result["changed"] and data.get("refresh", True):
                response["discovery"] = refresh_unlocked()
            return jsonify(response)

        except Exception as e:
            return _error_response(e, "ingredients")

    @app.route('/api/preferences', methods=['GET', 'PUT'])
    def api_preferences():
        """Read or replace dietary preferences.

        PUT body: {"preferences": [...], "refresh": true}
        """
        try:
            if request.method == 'GET':
                with lock:
                    return jsonify({"success": True, "preferences": assistant.preferences.preferences})

            data = request.get_json(silent=True) or {}
            tags = _list_field(data, "preferences")
            with lock:
                result = assistant.set_preferences(tags, refresh=False)

            response = {"success": True, **result}
            if result["changed"] and data.get("refresh", True):
                response["discovery"] = refresh_unlocked()
            return jsonify(response)

        except Exception as e:
            return _error_response(e, "preferences")

    @app.route('/api/budget', methods=['GET', 'PUT'])
    def api_budget():
        """Ledger summary, or set the budget with {"budget": 50}."""
        try:
            with lock:
                if request.method == 'GET':
                    return jsonify({"success": True, "budget": assistant.ledger.to_dict()})

                data = request.get_json(silent=True) or {}
                if "budget" not in data:
                    raise InvalidInputError("Missing 'budget'")
                summary = assistant.set_budget(data["budget"])
            return jsonify({"success": True, "budget": summary})

        except Exception as e:
            return _error_response(e, "budget")

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    @app.route('/api/discover', methods=['GET'])
    def api_discover():
        try:
            with lock:
                return jsonify({"success": True, **assistant.discovery_state()})
        except Exception as e:
            return _error_response(e, "discover")

    @app.route('/api/discover/refresh', methods=['POST'])
    def api_discover_refresh():
        try:
            return jsonify({"success": True, **refresh_unlocked()})
        except Exception as e:
            return _error_response(e, "refresh")

    @app.route('/api/discover/accept', methods=['POST'])
    def api_discover_accept():
        """Save the current recipe, or {"recipe_id": N}."""
        try:
            recipe_id = _optional_recipe_id(request.get_json(silent=True) or {})
            with lock:
                result = assistant.accept(recipe_id)
            return jsonify({"success": True, **result})
        except Exception as e:
            return _error_response(e, "accept")

    @app.route('/api/discover/reject', methods=['POST'])
    def api_discover_reject():
        """Skip the current recipe, or {"recipe_id": N}."""
        try:
            recipe_id = _optional_recipe_id(request.get_json(silent=True) or {})
            with lock:
                result = assistant.reject(recipe_id)
            return jsonify({"success": True, **result})
        except Exception as e:
            return _error_response(e, "reject")

    @app.route('/api/discover/restart', methods=['POST'])
    def api_discover_restart():
        try:
            with lock:
                return jsonify({"success": True, **assistant.restart()})
        except Exception as e:
            return _error_response(e, "restart")

    @app.route('/api/discover/next', methods=['POST'])
    def api_discover_next():
        try:
            with lock:
                assistant.next_recipe()
                return jsonify({"success": True, **assistant.discovery_state()})
        except Exception as e:
            return _error_response(e, "next")

    @app.route('/api/discover/previous', methods=['POST'])
    def api_discover_previous():
        try:
            with lock:
                assistant.previous_recipe()
                return jsonify({"success": True, **assistant.discovery_state()})
        except Exception as e:
            return _error_response(e, "previous")

    # ------------------------------------------------------------------
    # Meal plan
    # ------------------------------------------------------------------

    @app.route('/api/meal-plan', methods=['GET'])
    def api_meal_plan():
        try:
            with lock:
                return jsonify({"success": True, **assistant.meal_plan_state()})
        except Exception as e:
            return _error_response(e, "meal plan")

    @app.route('/api/meal-plan/<int:recipe_id>', methods=['DELETE'])
    def api_meal_plan_remove(recipe_id):
        try:
            with lock:
                removed = assistant.remove_from_plan(recipe_id)
                if removed is None:
                    return jsonify({"success": False, "error": "Recipe not in meal plan"}), 404
                return jsonify({
                    "success": True,
                    "removed": removed.to_dict(),
                    "budget": assistant.ledger.to_dict(),
                })
        except Exception as e:
            return _error_response(e, "remove from meal plan")

    @app.route('/api/meal-plan/clear', methods=['POST'])
    def api_meal_plan_clear():
        try:
            with lock:
                removed = assistant.clear_plan()
                return jsonify({
                    "success": True,
                    "removed_count": removed,
                    "budget": assistant.ledger.to_dict(),
                })
        except Exception as e:
            return _error_response(e, "clear meal plan")

    # ------------------------------------------------------------------
    # Skip history
    # ------------------------------------------------------------------

    @app.route('/api/skipped', methods=['GET'])
    def api_skipped():
        try:
            with lock:
                return jsonify({"success": True, "skipped": assistant.skipped()})
        except Exception as e:
            return _error_response(e, "skipped")

    @app.route('/api/skipped/<int:recipe_id>/recover', methods=['POST'])
    def api_skipped_recover(recipe_id):
        try:
            with lock:
                result = assistant.recover_skipped(recipe_id)
            if result is None:
                return jsonify({"success": False, "error": "Recipe was not skipped"}), 404
            return jsonify({"success": True, **result})
        except Exception as e:
            return _error_response(e, "recover skipped")

    @app.route('/api/skipped/clear', methods=['POST'])
    def api_skipped_clear():
        try:
            with lock:
                return jsonify({"success": True, "removed_count": assistant.clear_skipped()})
        except Exception as e:
            return _error_response(e, "clear skipped")

    # ------------------------------------------------------------------
    # Recipe detail
    # ------------------------------------------------------------------

    @app.route('/api/recipes/<int:recipe_id>', methods=['GET'])
    def api_recipe_detail(recipe_id):
        try:
            with lock:
                detail = assistant.recipe_detail(recipe_id)
            return jsonify({"success": True, **detail})
        except Exception as e:
            return _error_response(e, "recipe detail")

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    @app.route('/api/monitor', methods=['GET'])
    def api_monitor():
        try:
            with lock:
                return jsonify({"success": True, **assistant.monitor_state()})
        except Exception as e:
            return _error_response(e, "monitor")

    @app.route('/api/monitor/clear', methods=['POST'])
    def api_monitor_clear():
        with lock:
            assistant.clear_monitor()
        return jsonify({"success": True})

    @app.route('/api/cache/clear', methods=['POST'])
    def api_cache_clear():
        try:
            with lock:
                assistant.clear_cache()
            return jsonify({"success": True})
        except Exception as e:
            return _error_response(e, "clear cache")

    return app


def main():
    """Run the development server."""
    load_dotenv()
    settings = Settings.from_env(load_dotenv_file=False)
    configure_logging(level=settings.log_level)

    if not settings.spoonacular_api_key:
        logger.warning("SPOONACULAR_API_KEY not set - recipe discovery will fail")

    app = create_app(PantryPalAssistant(settings=settings))
    install_shutdown_handler()
    app.run(
        host='0.0.0.0',
        port=int(os.environ.get("PORT", 5000)),
        debug=os.environ.get("FLASK_DEBUG", "").lower() == "true",
    )


if __name__ == '__main__':
    main()

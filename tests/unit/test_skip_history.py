"""
Tests for skipped-recipe history and resurfacing.
"""

import pytest

from conftest import make_recipe
from pantry_pal.discovery.skip_history import SkipHistory, ingredient_fingerprint


@pytest.fixture
def history(store):
    return SkipHistory(store)


def test_fingerprint_ignores_order_case_and_blanks():
    assert ingredient_fingerprint(["Rice", "chicken", " "]) == ingredient_fingerprint(["chicken", "rice"])


class TestSkipHistory:

    def test_record_skip(self, history):
        recipe = make_recipe(4, ingredients=("pasta", "tomato"))
        record = history.record_skip(recipe, ["chicken", "rice"])

        assert 4 in history
        assert record.ingredient_fingerprint == "chicken|rice"
        assert record.recipe_ingredients == ["pasta", "tomato"]
        assert record.recipe == recipe

    def test_excluded_for_same_ingredient_set(self, history):
        history.record_skip(make_recipe(4, ingredients=("pasta", "tomato")), ["chicken", "rice"])
        assert history.should_exclude(4, ["Rice", "Chicken"])

    def test_resurfaces_when_new_ingredients_overlap(self, history):
        history.record_skip(make_recipe(4, ingredients=("pasta", "tomato")), ["chicken", "rice"])
        assert not history.should_exclude(4, ["chicken", "tomato"])

    def test_stays_excluded_when_new_ingredients_do_not_overlap(self, history):
        history.record_skip(make_recipe(4, ingredients=("pasta", "tomato")), ["chicken", "rice"])
        assert history.should_exclude(4, ["beef", "potato"])

    def test_never_skipped_is_not_excluded(self, history):
        assert not history.should_exclude(99, ["chicken"])

    def test_apply(self, history):
        history.record_skip(make_recipe(2), ["chicken", "rice"])
        kept, excluded = history.apply([make_recipe(1), make_recipe(2), make_recipe(3)], ["chicken", "rice"])
        assert [r.id for r in kept] == [1, 3]
        assert excluded == 1

    def test_remove_and_clear(self, history):
        history.record_skip(make_recipe(1), ["rice"])
        history.record_skip(make_recipe(2), ["rice"])

        assert history.remove(1).recipe_id == 1
        assert history.remove(1) is None
        history.clear()
        assert len(history) == 0

    def test_persisted_across_instances(self, store):
        SkipHistory(store).record_skip(make_recipe(8), ["rice"])
        reloaded = SkipHistory(store)
        assert 8 in reloaded
        assert reloaded.get(8).recipe.id == 8

    def test_disabled_history_records_nothing(self, store):
        history = SkipHistory(store, enabled=False)
        assert history.record_skip(make_recipe(1), ["rice"]) is None
        assert len(history) == 0
        assert not history.should_exclude(1, ["rice"])

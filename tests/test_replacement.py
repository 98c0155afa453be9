"""Tests for swapping a recipe across a plan."""

import copy

import pytest

from conftest import make_recipe
from meal_composer.composer import check_item
from meal_composer.errors import ReplacementError
from meal_composer.ledger import build_ledger
from meal_composer.models import RecipeRef
from meal_composer.replacement import ReplacementPhase, replace_in_store, replace_recipe
from meal_composer.store import JsonPlanStore


def _quantity(plan, name, partition="items"):
    for row in plan.ledger[partition]:
        if row["item"] == name:
            return row["quantity"]
    return None


class TestReplaceRecipe:
    def test_all_entries_repointed(self, sample_plan, dinner_pool):
        curry, _, salmon = dinner_pool
        before = len(sample_plan.entries_for(curry.ref))

        result = replace_recipe(sample_plan, curry.ref, salmon)

        assert result.entries_moved == before == 2
        assert sample_plan.entries_for(curry.ref) == []
        assert len(sample_plan.entries_for(salmon.ref)) == before
        assert sample_plan.recipe(curry.ref) is None
        assert sample_plan.recipe(salmon.ref).servings == 4
        assert [e.portion_multiplier for e in sample_plan.entries_for(salmon.ref)] == [2, 2]

    def test_ledger_delta(self, sample_plan, dinner_pool):
        curry, _, salmon = dinner_pool
        replace_recipe(sample_plan, curry.ref, salmon)

        assert _quantity(sample_plan, "chicken thighs") is None
        assert _quantity(sample_plan, "salmon") == "24 oz"
        assert _quantity(sample_plan, "onion") == "1 medium"
        assert _quantity(sample_plan, "salt", "seasonings") == "0.5 tsp"
        assert _quantity(sample_plan, "garam masala", "seasonings") is None
        assert _quantity(sample_plan, "black pepper", "seasonings") == "4 pinches"

    def test_incremental_matches_full_rebuild(self, sample_plan, dinner_pool):
        curry, stew, salmon = dinner_pool
        replace_recipe(sample_plan, curry.ref, salmon)
        servings = {r.ref: r.servings for r in sample_plan.recipes}
        rebuilt = build_ledger(sample_plan.recipes, servings)
        assert sample_plan.ledger == rebuilt.serialize()

    def test_phases(self, sample_plan, dinner_pool):
        result = replace_recipe(sample_plan, dinner_pool[0].ref, dinner_pool[2])
        assert result.phase == ReplacementPhase.DONE
        assert result.phases == [
            ReplacementPhase.IDLE,
            ReplacementPhase.VALIDATING,
            ReplacementPhase.COMPUTING,
            ReplacementPhase.REASSIGNING,
            ReplacementPhase.COMMITTING,
            ReplacementPhase.DONE,
        ]

    def test_accepts_string_ref(self, sample_plan, dinner_pool):
        result = replace_recipe(sample_plan, "catalog:chicken-curry", dinner_pool[2])
        assert result.old_ref == RecipeRef.catalog("chicken-curry")

    def test_merge_into_scheduled_recipe(self, sample_plan, dinner_pool):
        curry, stew, _ = dinner_pool
        replace_recipe(sample_plan, stew.ref, curry)
        assert [r.ref for r in sample_plan.recipes] == [curry.ref]
        assert sample_plan.recipe(curry.ref).servings == 6
        assert len(sample_plan.entries_for(curry.ref)) == 3


class TestCheckedCarryOver:
    def test_checked_item_stays_checked(self, sample_plan, dinner_pool):
        check_item(sample_plan, "onion")
        replace_recipe(sample_plan, dinner_pool[0].ref, dinner_pool[2])
        onion = next(r for r in sample_plan.ledger["items"] if r["item"] == "onion")
        assert onion["checked"] is True

    def test_consumed_then_reintroduced_resets(self, sample_plan, dinner_pool):
        curry, stew, _ = dinner_pool
        check_item(sample_plan, "tomatoes")
        replace_recipe(sample_plan, stew.ref, make_recipe("plain-rice", [("rice", "1 cup")]))
        assert _quantity(sample_plan, "tomatoes") is None

        sauce = make_recipe("tomato-pasta", [("tomatoes", "1 can")])
        replace_recipe(sample_plan, RecipeRef.catalog("plain-rice"), sauce)
        tomatoes = next(r for r in sample_plan.ledger["items"] if r["item"] == "tomatoes")
        assert tomatoes["checked"] is False


class TestReplacementValidation:
    def test_unknown_old_recipe(self, sample_plan, dinner_pool):
        before = copy.deepcopy(sample_plan)
        with pytest.raises(ReplacementError, match="not part of plan"):
            replace_recipe(sample_plan, RecipeRef.catalog("nope"), dinner_pool[2])
        assert sample_plan == before

    def test_same_recipe(self, sample_plan, dinner_pool):
        with pytest.raises(ReplacementError, match="must differ"):
            replace_recipe(sample_plan, dinner_pool[0].ref, dinner_pool[0])

    def test_recipe_without_entries(self, sample_plan, dinner_pool):
        sample_plan.entries = [e for e in sample_plan.entries if e.recipe != dinner_pool[1].ref]
        with pytest.raises(ReplacementError, match="No scheduled meals"):
            replace_recipe(sample_plan, dinner_pool[1].ref, dinner_pool[2])


class TestWithStore:
    def test_saved_after_commit(self, tmp_path, sample_plan, dinner_pool):
        store = JsonPlanStore(tmp_path)
        store.save_plan(sample_plan)

        result = replace_in_store(store, "plan1", dinner_pool[0].ref, dinner_pool[2])

        loaded = store.load_plan("plan1")
        assert loaded.ledger == result.plan.ledger
        assert {e.recipe for e in loaded.entries} == {dinner_pool[1].ref, dinner_pool[2].ref}

    def test_failed_replacement_not_saved(self, tmp_path, sample_plan, dinner_pool):
        store = JsonPlanStore(tmp_path)
        store.save_plan(sample_plan)
        with pytest.raises(ReplacementError):
            replace_in_store(store, "plan1", "catalog:nope", dinner_pool[2])
        assert store.load_plan("plan1").ledger == sample_plan.ledger

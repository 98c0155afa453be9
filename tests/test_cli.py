"""Tests for CLI argument parsing and subcommands."""

import json

import pytest

from meal_composer.cli import load_preferences, main, parse_counts, parse_slot
from meal_composer.errors import ValidationError
from meal_composer.models import MealType, RecipeRef
from meal_composer.store import JsonPlanStore

SALMON = """\
---
type: recipe
name: Salmon Bake
meal_type: dinner
main_ingredient: salmon
ingredients:
  - item: salmon
    quantity: 6 oz
  - item: black pepper
    quantity: 1 pinch
---
"""

TOFU = """\
---
type: recipe
name: Tofu Curry
meal_type: dinner
main_ingredient: tofu
ingredients:
  - item: tofu
    quantity: 0.5 block
  - item: curry powder
    quantity: 1 tsp
---
"""


@pytest.fixture
def env(tmp_path, monkeypatch, sample_plan):
    monkeypatch.setattr("meal_composer.config.DEFAULT_CONFIG_PATH", tmp_path / "absent.yaml")
    plans = tmp_path / "plans"
    recipes = tmp_path / "recipes"
    recipes.mkdir()
    (recipes / "salmon-bake.md").write_text(SALMON)
    (recipes / "tofu-curry.md").write_text(TOFU)
    JsonPlanStore(plans).save_plan(sample_plan)
    return plans, recipes


class TestParseCounts:
    def test_pairs(self):
        assert parse_counts("dinner=4, lunch=2") == {MealType.DINNER: 4, MealType.LUNCH: 2}

    def test_empty(self):
        assert parse_counts(None) == {}

    @pytest.mark.parametrize("raw", ["dinner", "dinner=x", "brunch=2"])
    def test_invalid(self, raw):
        with pytest.raises(ValidationError, match="Invalid count"):
            parse_counts(raw)


class TestParseSlot:
    def test_day_and_meal(self):
        slot = parse_slot("mon:dinner")
        assert (slot.day, slot.meal_type, slot.recipe, slot.portion_multiplier) == (
            "Monday", MealType.DINNER, None, None
        )
        assert slot.label == "Monday dinner"

    def test_tagged_ref(self):
        assert parse_slot("tue:lunch:catalog:abc").recipe == RecipeRef.catalog("abc")

    def test_numeric_catalog_id_is_not_portions(self):
        slot = parse_slot("tue:lunch:catalog:123")
        assert slot.recipe == RecipeRef.catalog("123")
        assert slot.portion_multiplier is None

    def test_ref_and_portions(self):
        slot = parse_slot("wed:dinner:modified:abc:3")
        assert slot.recipe == RecipeRef.modified("abc")
        assert slot.portion_multiplier == 3

    def test_bare_number_is_portions(self):
        slot = parse_slot("mon:dinner:42")
        assert slot.recipe is None
        assert slot.portion_multiplier == 42
        assert parse_slot("mon:dinner:catalog:42:2").recipe == RecipeRef.catalog("42")

    def test_portions_only(self):
        slot = parse_slot("unscheduled:dinner:3")
        assert slot.day == "Unscheduled"
        assert slot.recipe is None
        assert slot.portion_multiplier == 3

    @pytest.mark.parametrize("raw", ["monday", "funday:dinner", "mon:brunch"])
    def test_invalid(self, raw):
        with pytest.raises(ValidationError):
            parse_slot(raw)


def test_load_preferences(tmp_path):
    path = tmp_path / "prefs.yaml"
    path.write_text('"2": Just me\n"6": [Vegan]\n')
    prefs = load_preferences(str(path))
    assert prefs.household_size == "Just me"
    assert prefs.dietary_restrictions == ["Vegan"]


class TestCommands:
    def test_plan(self, env, capsys):
        plans, recipes = env
        main([
            "--plans-dir", str(plans),
            "plan", "--meals", "dinner=2",
            "--slot", "mon:dinner", "--slot", "tue:dinner",
            "--recipes-dir", str(recipes),
            "--week-of", "2026-10-19",
            "--plan-id", "week43",
            "--no-generate",
        ])
        captured = capsys.readouterr()
        assert "# Meal Plan: week of 2026-10-19" in captured.out
        assert "Plan saved as week43" in captured.err
        plan = JsonPlanStore(plans).load_plan("week43")
        assert {e.recipe.id for e in plan.entries} == {"salmon-bake", "tofu-curry"}

    def test_plan_bad_week(self, env):
        plans, recipes = env
        with pytest.raises(SystemExit) as exc:
            main(["--plans-dir", str(plans), "plan", "--meals", "dinner=1",
                  "--recipes-dir", str(recipes), "--week-of", "soon", "--no-save"])
        assert exc.value.code == 1

    def test_shopping_list_json(self, env, capsys, sample_plan):
        plans, _ = env
        main(["--plans-dir", str(plans), "shopping-list", "plan1", "--format", "json"])
        assert json.loads(capsys.readouterr().out) == sample_plan.ledger

    def test_check(self, env, capsys):
        plans, _ = env
        main(["--plans-dir", str(plans), "check", "plan1", "onion"])
        assert "checked 1 entry for 'onion'" in capsys.readouterr().out
        ledger = JsonPlanStore(plans).load_plan("plan1").ledger
        assert next(r for r in ledger["items"] if r["item"] == "onion")["checked"] is True

    def test_promote(self, env, capsys):
        plans, _ = env
        main(["--plans-dir", str(plans), "promote", "plan1", "salt"])
        assert JsonPlanStore(plans).load_plan("plan1").promoted == ["salt"]

    def test_replace_with_catalog_recipe(self, env, capsys):
        plans, recipes = env
        main([
            "--plans-dir", str(plans),
            "replace", "plan1", "catalog:chicken-curry",
            "--with", "catalog:salmon-bake",
            "--recipes-dir", str(recipes),
        ])
        out = capsys.readouterr().out
        assert "Replaced catalog:chicken-curry with Salmon Bake (catalog:salmon-bake)" in out
        plan = JsonPlanStore(plans).load_plan("plan1")
        assert plan.recipe(RecipeRef.catalog("salmon-bake")) is not None

    def test_checkout(self, env, capsys):
        plans, _ = env
        main(["--plans-dir", str(plans), "checkout", "plan1", "--title", "Groceries"])
        payload = json.loads(capsys.readouterr().out)
        assert payload["title"] == "Groceries"
        assert [li["name"] for li in payload["line_items"]] == [
            "beef stew meat", "chicken thighs", "onion", "tomatoes",
        ]

    def test_prompts_json(self, capsys):
        main(["prompts", "--distinct", "dinner=2", "--format", "json"])
        data = json.loads(capsys.readouterr().out)
        assert [p["phrase"] for p in data["dinner"]] == [
            "chicken skillet dinner",
            "beef roast dinner",
        ]

    def test_missing_plan_exits(self, env):
        plans, _ = env
        with pytest.raises(SystemExit) as exc:
            main(["--plans-dir", str(plans), "shopping-list", "ghost"])
        assert exc.value.code == 1

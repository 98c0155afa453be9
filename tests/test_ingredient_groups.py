"""Unit tests for ingredient group normalization and protein detection."""

from conftest import make_recipe
from meal_composer.ingredient_groups import (
    normalize_ingredient_group,
    primary_group,
    recipe_group,
)


class TestNormalizeIngredientGroup:
    def test_chicken_is_poultry(self):
        assert normalize_ingredient_group("chicken") == "poultry"

    def test_turkey_is_poultry(self):
        assert normalize_ingredient_group("turkey") == "poultry"

    def test_case_insensitive(self):
        assert normalize_ingredient_group("Chicken") == "poultry"
        assert normalize_ingredient_group("BEEF") == "beef"
        assert normalize_ingredient_group("Salmon") == "seafood"

    def test_none_returns_none(self):
        assert normalize_ingredient_group(None) is None

    def test_unknown_returns_none(self):
        assert normalize_ingredient_group("pumpkin") is None

    def test_cauliflower_is_vegetables(self):
        assert normalize_ingredient_group("cauliflower") == "vegetables"

    def test_pork_group(self):
        assert normalize_ingredient_group("pork chops") == "pork"
        assert normalize_ingredient_group("chorizo") == "pork"

    def test_breakfast_groups(self):
        assert normalize_ingredient_group("eggs") == "eggs"
        assert normalize_ingredient_group("greek yogurt") == "dairy"
        assert normalize_ingredient_group("oats") == "grains"

    def test_whitespace_stripped(self):
        assert normalize_ingredient_group("  chicken  ") == "poultry"


class TestPrimaryGroup:
    def test_two_word_name_wins(self):
        assert primary_group("Ground Beef Tacos") == "beef"

    def test_plural_fallback(self):
        assert primary_group("Lemon Chickpea Salad") == "legumes"

    def test_first_protein_mentioned(self):
        assert primary_group("Garlic Butter Salmon with Rice") == "seafood"

    def test_hyphenated_words(self):
        assert primary_group("Black-eyed peas stew") == "legumes"

    def test_no_protein(self):
        assert primary_group("Fruit salad") is None
        assert primary_group("") is None
        assert primary_group(None) is None


class TestRecipeGroup:
    def test_main_ingredient_used_first(self):
        recipe = make_recipe("tikka", [], name="Chicken Tikka", main_ingredient="turkey")
        assert recipe_group(recipe) == "poultry"

    def test_falls_back_to_name(self):
        assert recipe_group(make_recipe("beef-stew", [])) == "beef"

    def test_unmapped_recipe(self):
        recipe = make_recipe("pumpkin-soup", [], main_ingredient="pumpkin")
        assert recipe_group(recipe) is None

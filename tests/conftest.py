import pytest
from dataclasses import replace
from datetime import date

from meal_composer.ledger import build_ledger
from meal_composer.models import (
    Ingredient, MealPlan, MealType, Recipe, RecipeRef, ScheduleEntry,
)


def make_recipe(ident: str, ingredients: list[tuple[str, str]],
                meal_type: MealType | None = MealType.DINNER, name: str | None = None,
                kind: str = "catalog", main_ingredient: str | None = None) -> Recipe:
    ref = RecipeRef.parse(f"{kind}:{ident}")
    return Recipe(
        ref=ref,
        name=name or ident.replace("-", " ").title(),
        ingredients=[Ingredient(item=i, quantity=q) for i, q in ingredients],
        steps=["Cook it."],
        meal_type=meal_type,
        main_ingredient=main_ingredient,
    )


@pytest.fixture
def egg_recipes() -> tuple[Recipe, Recipe]:
    """A uses 2 cups of eggs per serving, B uses 1 cup."""
    return (
        make_recipe("a", [("eggs", "2 cups")]),
        make_recipe("b", [("eggs", "1 cup")]),
    )


@pytest.fixture
def dinner_pool() -> list[Recipe]:
    return [
        make_recipe("chicken-curry", [
            ("chicken thighs", "0.5 lb"),
            ("onion", "1 medium"),
            ("garam masala", "1 tsp"),
            ("salt", "0.5 tsp"),
            ("water", "1 cup"),
        ], main_ingredient="chicken"),
        make_recipe("beef-stew", [
            ("beef stew meat", "0.5 lb"),
            ("onion", "0.5 medium"),
            ("tomatoes", "1 cup"),
            ("salt", "0.25 tsp"),
        ], main_ingredient="beef"),
        make_recipe("salmon-bake", [
            ("salmon", "6 oz"),
            ("lemon", "0.5"),
            ("black pepper", "1 pinch"),
        ], main_ingredient="salmon"),
    ]


@pytest.fixture
def sample_plan(dinner_pool) -> MealPlan:
    """Two dinners of chicken curry and one of beef stew, 2 portions each."""
    curry, stew = dinner_pool[0], dinner_pool[1]
    entries = [
        ScheduleEntry("Monday dinner", "Monday", MealType.DINNER, curry.ref, 2),
        ScheduleEntry("Tuesday dinner", "Tuesday", MealType.DINNER, curry.ref, 2),
        ScheduleEntry("Wednesday dinner", "Wednesday", MealType.DINNER, stew.ref, 2),
    ]
    servings = {curry.ref: 4, stew.ref: 2}
    recipes = [replace(curry, servings=4), replace(stew, servings=2)]
    ledger = build_ledger(recipes, servings)
    return MealPlan(
        id="plan1",
        week_of=date(2026, 10, 19),
        recipes=recipes,
        entries=entries,
        ledger=ledger.serialize(),
    )

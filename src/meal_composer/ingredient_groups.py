"""Protein group normalization used to keep search prompts balanced."""

from __future__ import annotations

import re

from meal_composer.models import Recipe

# Map raw ingredient names (lowercased) to canonical group names.
INGREDIENT_GROUP_MAP: dict[str, str] = {
    # Poultry
    "chicken": "poultry",
    "turkey": "poultry",
    "chicken breast": "poultry",
    "chicken breasts": "poultry",
    "chicken thigh": "poultry",
    "chicken thighs": "poultry",
    "chicken drumsticks": "poultry",
    "chicken wings": "poultry",
    "ground turkey": "poultry",
    "ground chicken": "poultry",
    "duck": "poultry",
    # Beef
    "beef": "beef",
    "ground beef": "beef",
    "steak": "beef",
    "beef stew meat": "beef",
    "corned beef": "beef",
    # Pork
    "pork": "pork",
    "pork chops": "pork",
    "pork loin": "pork",
    "ground pork": "pork",
    "ham": "pork",
    "bacon": "pork",
    "sausage": "pork",
    "sausages": "pork",
    "chorizo": "pork",
    # Lamb
    "lamb": "lamb",
    "ground lamb": "lamb",
    # Seafood
    "salmon": "seafood",
    "shrimp": "seafood",
    "fish": "seafood",
    "tilapia": "seafood",
    "tuna": "seafood",
    "crab": "seafood",
    "cod": "seafood",
    "sardines": "seafood",
    "anchovies": "seafood",
    # Legumes
    "beans": "legumes",
    "black beans": "legumes",
    "chickpeas": "legumes",
    "lentils": "legumes",
    "kidney beans": "legumes",
    "pinto beans": "legumes",
    "white beans": "legumes",
    "black-eyed peas": "legumes",
    # Tofu / plant protein
    "tofu": "tofu",
    "tempeh": "tofu",
    # Pasta
    "pasta": "pasta",
    "spaghetti": "pasta",
    "penne": "pasta",
    "noodles": "pasta",
    # Grains
    "rice": "grains",
    "quinoa": "grains",
    "oats": "grains",
    "oatmeal": "grains",
    "granola": "grains",
    # Eggs
    "eggs": "eggs",
    "egg": "eggs",
    "egg whites": "eggs",
    # Dairy
    "yogurt": "dairy",
    "greek yogurt": "dairy",
    "cottage cheese": "dairy",
    "cheese": "dairy",
    "ricotta": "dairy",
    # Vegetables
    "vegetables": "vegetables",
    "vegetable": "vegetables",
    "mushrooms": "vegetables",
    "cauliflower": "vegetables",
}

# Word used in a search phrase for each group, cycled when a group repeats
GROUP_EXAMPLES: dict[str, list[str]] = {
    "poultry": ["chicken", "turkey"],
    "beef": ["beef", "steak"],
    "pork": ["pork", "sausage"],
    "lamb": ["lamb"],
    "seafood": ["salmon", "shrimp", "cod"],
    "legumes": ["chickpea", "lentil", "black bean"],
    "tofu": ["tofu", "tempeh"],
    "pasta": ["pasta"],
    "grains": ["oat", "quinoa"],
    "eggs": ["egg"],
    "dairy": ["greek yogurt", "cottage cheese"],
    "vegetables": ["vegetable", "mushroom"],
}

MEAT_GROUPS = ("poultry", "beef", "pork", "lamb")


def normalize_ingredient_group(main_ingredient: str | None) -> str | None:
    """Return the canonical group name for an ingredient, or None."""
    if main_ingredient is None:
        return None
    return INGREDIENT_GROUP_MAP.get(main_ingredient.lower().strip())


def primary_group(text: str | None) -> str | None:
    """Group of the first protein mentioned in free text, if any.

    Two-word names win over single words ("ground beef" before "beef").
    """
    if not text:
        return None
    words = re.findall(r"[a-z][a-z\-]*", text.lower())
    for i, word in enumerate(words):
        if i + 1 < len(words):
            group = INGREDIENT_GROUP_MAP.get(f"{word} {words[i + 1]}")
            if group:
                return group
        group = INGREDIENT_GROUP_MAP.get(word) or INGREDIENT_GROUP_MAP.get(f"{word}s")
        if group:
            return group
    return None


def recipe_group(recipe: Recipe) -> str | None:
    """Protein group of a recipe: its main ingredient, else its name."""
    return normalize_ingredient_group(recipe.main_ingredient) or primary_group(recipe.name)

"""Recipe drafting through a text-generation CLI (Claude Haiku by default)."""

from __future__ import annotations

import json
import logging
import subprocess
import uuid

from meal_composer.errors import CollaboratorError
from meal_composer.models import Ingredient, MealType, Recipe, RecipeRef
from meal_composer.preferences import Preferences

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = ["claude", "--model", "haiku", "-p"]

GENERATE_PROMPT = """\
Write one {meal_type} recipe for a weekly meal plan as JSON.

Return a single JSON object with:
- "name": string
- "description": one sentence
- "main_ingredient": the primary protein or base, lowercase
- "ingredients": array of {{"item": string, "quantity": string}} where quantity is
  "<number> <unit>" for ONE serving, e.g. "0.5 cup", "2 tbsp", "1 large"; use decimals, not fractions
- "steps": array of strings

Household preferences:
{preferences}
{base}
Return ONLY valid JSON, no markdown fences, no explanation.
"""

BASE_SECTION = """
Adapt this existing recipe to the preferences. Keep its character, change only what the
preferences require:
{recipe}
"""


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text[: text.rfind("```")]
        text = text.strip()
    return text


def build_prompt(meal_type: MealType, preferences: Preferences, base: Recipe | None = None) -> str:
    base_text = ""
    if base is not None:
        base_text = BASE_SECTION.format(
            recipe=json.dumps(
                {
                    "name": base.name,
                    "ingredients": [
                        {"item": i.item, "quantity": i.quantity} for i in base.ingredients
                    ],
                    "steps": base.steps,
                },
                indent=2,
            )
        )
    return GENERATE_PROMPT.format(
        meal_type=meal_type.value,
        preferences=preferences.summary(),
        base=base_text,
    )


def recipe_from_response(
    text: str,
    meal_type: MealType,
    base: Recipe | None = None,
) -> Recipe:
    """Validate the JSON shape and build a modified Recipe from it."""
    try:
        data = json.loads(_strip_fences(text))
    except json.JSONDecodeError as e:
        raise CollaboratorError(f"Recipe generator returned invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise CollaboratorError("Recipe generator must return a JSON object")
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise CollaboratorError("Generated recipe has no name")
    rows = data.get("ingredients")
    if not isinstance(rows, list) or not rows:
        raise CollaboratorError(f"Generated recipe '{name}' has no ingredients")

    ingredients = []
    for row in rows:
        if not isinstance(row, dict) or not isinstance(row.get("item"), str):
            raise CollaboratorError(f"Malformed ingredient in '{name}': {row!r}")
        ingredients.append(
            Ingredient(item=row["item"].strip(), quantity=str(row.get("quantity") or "").strip())
        )

    steps = data.get("steps") or []
    if not isinstance(steps, list):
        raise CollaboratorError(f"Steps of '{name}' must be a list")

    return Recipe(
        ref=RecipeRef.modified(uuid.uuid4().hex),
        name=name.strip(),
        ingredients=ingredients,
        steps=[str(s).strip() for s in steps],
        meal_type=meal_type,
        main_ingredient=data.get("main_ingredient") or (base.main_ingredient if base else None),
        description=data.get("description"),
        parent=base.ref if base is not None else None,
    )


class CommandRecipeGenerator:
    """Pipes a prompt to a CLI and parses the JSON recipe it prints."""

    def __init__(self, command: list[str] | None = None, timeout: int = 120) -> None:
        self.command = list(command) if command else list(DEFAULT_COMMAND)
        self.timeout = timeout

    def _call(self, prompt: str) -> str:
        try:
            result = subprocess.run(
                self.command,
                input=prompt,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            logger.error("%s timed out after %ds", self.command[0], self.timeout)
            raise CollaboratorError(f"Recipe generator timed out after {self.timeout}s") from e
        except FileNotFoundError as e:
            logger.error("'%s' CLI not found. Install it first.", self.command[0])
            raise CollaboratorError(f"Recipe generator '{self.command[0]}' not found") from e

        if result.returncode != 0:
            logger.error("%s error: %s", self.command[0], result.stderr.strip())
            raise CollaboratorError(
                f"Recipe generator exited with status {result.returncode}"
            )
        return result.stdout

    def generate(
        self,
        meal_type: MealType,
        preferences: Preferences,
        base: Recipe | None = None,
    ) -> Recipe:
        prompt = build_prompt(meal_type, preferences, base)
        recipe = recipe_from_response(self._call(prompt), meal_type, base)
        logger.debug(
            "Generated %s (%d ingredients) from %s",
            recipe.name,
            len(recipe.ingredients),
            base.ref if base else "scratch",
        )
        return recipe

"""Recipe catalog backed by markdown notes with YAML frontmatter."""

from __future__ import annotations

import logging
import re
from pathlib import Path

import frontmatter
import yaml

from meal_composer.errors import ResolutionError
from meal_composer.models import Ingredient, MealType, Recipe, RecipeKind, RecipeRef
from meal_composer.quantities import format_amount, parse_quantity

logger = logging.getLogger(__name__)

MEAL_TYPE_MAP = {
    "breakfast": {"breakfast", "brunch"},
    "lunch": {"lunch", "main course", "soup", "salad"},
    "dinner": {"dinner", "main course", "soup", "curry"},
}

_WORD_RE = re.compile(r"[a-z]+")


def normalize_time(raw: str | int | float | None) -> int | None:
    """Parse varied time formats into integer minutes.

    Handles: "10 minutes", "5 mins", 15, "1 hour 30 minutes", "" -> None.
    """
    if raw is None:
        return None
    if isinstance(raw, (int, float)):
        return int(raw) if raw > 0 else None

    s = str(raw).strip()
    if not s:
        return None

    total = 0
    m = re.search(r"(\d+)\s*(?:hours?|hrs?|h)\b", s, re.IGNORECASE)
    if m:
        total += int(m.group(1)) * 60
    m = re.search(r"(\d+)\s*(?:minutes?|mins?|m)\b", s, re.IGNORECASE)
    if m:
        total += int(m.group(1))
    if total > 0:
        return total

    m = re.match(r"(\d+)$", s)
    if m:
        return int(m.group(1))
    return None


def extract_section(content: str, *headings: str) -> list[str]:
    """Lines under the first ``##``/``###`` heading matching one of ``headings``.

    Captures until the next heading of equal or higher level.
    """
    names = "|".join(re.escape(h) for h in headings)
    in_section = False
    section_level = 0
    result: list[str] = []

    for line in content.split("\n"):
        m = re.match(rf"^(#{{2,3}})\s+(?:{names})\b", line, re.IGNORECASE)
        if m and not in_section:
            in_section = True
            section_level = len(m.group(1))
            continue
        if in_section:
            if re.match(r"^(#{1,%d})\s+" % section_level, line):
                break
            result.append(line)
    return result


def _list_items(lines: list[str]) -> list[str]:
    items = []
    for line in lines:
        m = re.match(r"^\s*(?:[-*+]|\d+[.)])\s+(?:\[[ xX]\]\s+)?(.*\S)", line)
        if m:
            items.append(m.group(1))
    return items


def _ingredient_from_meta(row: object) -> Ingredient | None:
    if isinstance(row, str):
        return Ingredient(item=row.strip(), quantity="")
    if not isinstance(row, dict):
        return None
    item = _to_str(row.get("item"))
    if not item:
        return None
    if "quantity" in row:
        return Ingredient(item=item, quantity=_to_str(row.get("quantity")) or "")
    # Structured form: qty + unit
    qty = row.get("qty")
    unit = _to_str(row.get("unit")) or ""
    if qty is None:
        return Ingredient(item=item, quantity=unit)
    amount = parse_quantity(str(qty)).amount
    text = format_amount(amount) if amount is not None else str(qty)
    return Ingredient(item=item, quantity=f"{text} {unit}".strip())


def _ingredient_from_line(line: str) -> Ingredient:
    """Split '2 cups rice' into quantity '2 cups' and item 'rice'.

    Only the first word after the number is taken as the unit.
    """
    parsed = parse_quantity(line)
    if parsed.amount is None:
        return Ingredient(item=line.strip(), quantity="")
    rest = parsed.unit.split(None, 1)
    number = format_amount(parsed.amount)
    if len(rest) == 2:
        return Ingredient(item=rest[1].strip(), quantity=f"{number} {rest[0]}")
    return Ingredient(item=parsed.unit.strip(), quantity=number)


def load_post(file_path: Path) -> frontmatter.Post | None:
    try:
        post = frontmatter.load(file_path)
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        logger.warning("Could not read %s: %s", file_path.name, e)
        return None
    if post.metadata.get("type") != "recipe":
        return None
    return post


def parse_recipe_file(file_path: Path) -> Recipe | None:
    """Parse a single recipe note into a catalog Recipe, or None if not a recipe."""
    post = load_post(file_path)
    if post is None:
        return None
    return recipe_from_post(post, file_path.stem)


def recipe_from_post(post: frontmatter.Post, stem: str) -> Recipe:
    meta = post.metadata

    ingredients: list[Ingredient] = []
    if meta.get("ingredients"):
        for row in meta["ingredients"]:
            ing = _ingredient_from_meta(row)
            if ing is not None:
                ingredients.append(ing)
    else:
        lines = _list_items(extract_section(post.content, "Ingredients"))
        ingredients = [_ingredient_from_line(line) for line in lines]

    steps = meta.get("steps") or _list_items(
        extract_section(post.content, "Directions", "Instructions", "Steps", "Method")
    )

    meal_type = None
    raw_meal_type = _to_str(meta.get("meal_type"))
    if raw_meal_type:
        for mt in MealType:
            if raw_meal_type.lower() in MEAL_TYPE_MAP[mt.value]:
                meal_type = mt
                break

    return Recipe(
        ref=RecipeRef.catalog(_to_str(meta.get("id")) or stem),
        name=_to_str(meta.get("name")) or stem,
        ingredients=ingredients,
        steps=[str(s).strip() for s in steps],
        meal_type=meal_type,
        main_ingredient=_to_str(meta.get("main_ingredient")),
        description=_to_str(meta.get("description")),
    )


def _to_str(val: object) -> str | None:
    if val is None or val == "":
        return None
    return str(val).strip()


def _words(text: str | None) -> set[str]:
    return set(_WORD_RE.findall((text or "").lower()))


class RecipeCatalog:
    """Keyword search over a directory of recipe notes."""

    def __init__(self, recipes_dir: Path) -> None:
        self.recipes_dir = Path(recipes_dir)
        self._recipes: dict[str, Recipe] | None = None
        self._meal_type_aliases: dict[str, set[str]] = {}
        self._minutes: dict[str, int | None] = {}

    def _load(self) -> dict[str, Recipe]:
        if self._recipes is not None:
            return self._recipes
        recipes: dict[str, Recipe] = {}
        for path in sorted(self.recipes_dir.glob("*.md")):
            post = load_post(path)
            if post is None:
                logger.debug("SKIP (not a recipe): %s", path.name)
                continue
            recipe = recipe_from_post(post, path.stem)
            if recipe.ref.id in recipes:
                logger.warning("Duplicate recipe id '%s' in %s, skipped", recipe.ref.id, path.name)
                continue
            meta = post.metadata
            categories = meta.get("categories") or []
            if isinstance(categories, str):
                categories = [c.strip() for c in categories.split(",")]
            raw_type = _to_str(meta.get("meal_type"))
            self._meal_type_aliases[recipe.ref.id] = {
                c.lower() for c in categories + ([raw_type] if raw_type else [])
            }
            self._minutes[recipe.ref.id] = normalize_time(
                meta.get("total_time") or meta.get("prep_time")
            )
            recipes[recipe.ref.id] = recipe
        logger.info("Loaded %d recipes from %s", len(recipes), self.recipes_dir)
        self._recipes = recipes
        return recipes

    def recipes(self) -> list[Recipe]:
        return list(self._load().values())

    def matches_meal_type(self, recipe: Recipe, meal_type: MealType) -> bool:
        valid = MEAL_TYPE_MAP[meal_type.value]
        if recipe.meal_type == meal_type:
            return True
        return bool(self._meal_type_aliases.get(recipe.ref.id, set()) & valid)

    def search(
        self,
        phrase: str,
        meal_type: MealType,
        match_count: int,
        max_minutes: int | None = None,
    ) -> list[str]:
        """Ids of recipes of this meal type, most words in common with the phrase first."""
        query = _words(phrase) - {meal_type.value, "under", "minutes"}
        scored = []
        for recipe in self._load().values():
            if not self.matches_meal_type(recipe, meal_type):
                continue
            minutes = self._minutes.get(recipe.ref.id)
            if max_minutes is not None and minutes is not None and minutes > max_minutes:
                continue
            text = " ".join(
                [recipe.name, recipe.main_ingredient or "", recipe.description or ""]
                + [i.item for i in recipe.ingredients]
            )
            overlap = len(query & _words(text))
            scored.append((-overlap, recipe.name.lower(), recipe.ref.id))
        scored.sort()
        return [ident for _, _, ident in scored[:match_count]]

    def get(self, ref: RecipeRef | str) -> Recipe:
        ref = RecipeRef.parse(ref)
        if ref.kind != RecipeKind.CATALOG:
            raise ResolutionError(f"{ref} is not a catalog recipe")
        recipe = self._load().get(ref.id)
        if recipe is None:
            raise ResolutionError(f"No catalog recipe with id '{ref.id}'")
        return recipe

    def fetch(self, ids: list[str]) -> list[Recipe]:
        """Full recipes for candidate ids, skipping unknown ones."""
        result = []
        for ident in ids:
            recipe = self._load().get(ident)
            if recipe is None:
                logger.warning("Candidate '%s' not found in catalog", ident)
                continue
            result.append(recipe)
        return result

"""JSON file plan store: one document per plan, written atomically."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from datetime import date
from pathlib import Path

from meal_composer.errors import ResolutionError, ValidationError
from meal_composer.models import (
    Ingredient,
    MealPlan,
    MealType,
    Recipe,
    RecipeRef,
    ScheduleEntry,
)

logger = logging.getLogger(__name__)

# Plans written before unit aliasing existed keep exact-string unit matching
LEGACY_UNIT_SCHEME = "exact"


def recipe_to_dict(recipe: Recipe) -> dict:
    return {
        "ref": str(recipe.ref),
        "name": recipe.name,
        "meal_type": recipe.meal_type.value if recipe.meal_type else None,
        "servings": recipe.servings,
        "main_ingredient": recipe.main_ingredient,
        "description": recipe.description,
        "parent": str(recipe.parent) if recipe.parent else None,
        "ingredients": [{"item": i.item, "quantity": i.quantity} for i in recipe.ingredients],
        "steps": list(recipe.steps),
    }


def recipe_from_dict(data: dict) -> Recipe:
    try:
        ref = RecipeRef.parse(data["ref"])
        name = str(data["name"])
    except KeyError as e:
        raise ValidationError(f"Recipe record missing field {e}") from e
    meal_type = data.get("meal_type")
    parent = data.get("parent")
    return Recipe(
        ref=ref,
        name=name,
        ingredients=[
            Ingredient(item=str(i.get("item", "")), quantity=str(i.get("quantity") or ""))
            for i in data.get("ingredients") or []
        ],
        steps=[str(s) for s in data.get("steps") or []],
        meal_type=MealType.parse(meal_type) if meal_type else None,
        servings=data.get("servings"),
        main_ingredient=data.get("main_ingredient"),
        description=data.get("description"),
        parent=RecipeRef.parse(parent) if parent else None,
    )


def plan_to_dict(plan: MealPlan) -> dict:
    return {
        "id": plan.id,
        "week_of": plan.week_of.isoformat(),
        "unit_scheme": plan.unit_scheme,
        "preferences": plan.preferences,
        "recipes": [recipe_to_dict(r) for r in plan.recipes],
        "entries": [
            {
                "slot_label": e.slot_label,
                "day": e.day,
                "meal_type": e.meal_type.value,
                "recipe": str(e.recipe),
                "portion_multiplier": e.portion_multiplier,
                "planned_for": e.planned_for.isoformat() if e.planned_for else None,
            }
            for e in plan.entries
        ],
        "ledger": plan.ledger,
        "promoted": list(plan.promoted),
    }


def plan_from_dict(data: dict) -> MealPlan:
    try:
        plan_id = str(data["id"])
        week_of = date.fromisoformat(data["week_of"])
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Malformed plan document: {e}") from e

    entries = []
    for row in data.get("entries") or []:
        planned_for = row.get("planned_for")
        entries.append(
            ScheduleEntry(
                slot_label=row["slot_label"],
                day=row["day"],
                meal_type=MealType.parse(row["meal_type"]),
                recipe=RecipeRef.parse(row["recipe"]),
                portion_multiplier=int(row.get("portion_multiplier", 1)),
                planned_for=date.fromisoformat(planned_for) if planned_for else None,
            )
        )

    return MealPlan(
        id=plan_id,
        week_of=week_of,
        recipes=[recipe_from_dict(r) for r in data.get("recipes") or []],
        entries=entries,
        ledger=data.get("ledger") or {"items": [], "seasonings": []},
        promoted=list(data.get("promoted") or []),
        unit_scheme=data.get("unit_scheme") or LEGACY_UNIT_SCHEME,
        preferences=data.get("preferences") or {},
    )


class JsonPlanStore:
    """Plans stored as ``<plans_dir>/<plan id>.json``.

    Writes are atomic, but the per-plan locks only serialize threads of one
    process. Separate processes editing the same plan (two CLI runs) need
    outside serialization. One lock is kept per plan id seen, for the life of
    the store.
    """

    def __init__(self, plans_dir: Path) -> None:
        self.plans_dir = Path(plans_dir)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def path_for(self, plan_id: str) -> Path:
        if not plan_id or "/" in plan_id or "\\" in plan_id or plan_id.startswith("."):
            raise ValidationError(f"Invalid plan id '{plan_id}'")
        return self.plans_dir / f"{plan_id}.json"

    def plan_lock(self, plan_id: str) -> threading.Lock:
        """Lock serializing read-modify-write cycles on one plan, in this process."""
        with self._locks_guard:
            return self._locks.setdefault(plan_id, threading.Lock())

    def load_plan(self, plan_id: str) -> MealPlan:
        path = self.path_for(plan_id)
        if not path.exists():
            raise ResolutionError(f"No plan '{plan_id}' in {self.plans_dir}")
        with open(path, encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValidationError(f"Plan file {path} is not valid JSON: {e}") from e
        return plan_from_dict(data)

    def save_plan(self, plan: MealPlan) -> None:
        path = self.path_for(plan.id)
        self.plans_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.plans_dir, prefix=f".{plan.id}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(plan_to_dict(plan), f, indent=2)
                f.write("\n")
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        logger.debug("Saved plan %s to %s", plan.id, path)

    def list_plans(self) -> list[str]:
        if not self.plans_dir.exists():
            return []
        return sorted(p.stem for p in self.plans_dir.glob("*.json"))

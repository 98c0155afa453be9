"""Markdown and JSON output for plans and shopping lists."""

from __future__ import annotations

import json
from collections.abc import Iterable

from meal_composer.models import DAY_NAMES, UNSCHEDULED, MealPlan, MealType
from meal_composer.quantities import name_key
from meal_composer.store import plan_to_dict


def format_plan_markdown(plan: MealPlan) -> str:
    """Format a meal plan as markdown, one table per day."""
    lines = [
        "---",
        "type: meal-plan",
        f"plan_id: {plan.id}",
        f"week_of: {plan.week_of.isoformat()}",
        "---",
        "",
        f"# Meal Plan: week of {plan.week_of.isoformat()}",
        "",
    ]

    meal_order = list(MealType)
    for day in DAY_NAMES + [UNSCHEDULED]:
        entries = plan.entries_for_day(day)
        if not entries:
            continue
        planned = entries[0].planned_for
        heading = f"{day} ({planned.isoformat()})" if planned else day
        lines.append(f"## {heading}")
        lines.append("")
        lines.append("| Meal | Recipe | Portions |")
        lines.append("|------|--------|----------|")
        for entry in sorted(entries, key=lambda e: meal_order.index(e.meal_type)):
            recipe = plan.recipe(entry.recipe)
            name = recipe.name if recipe else str(entry.recipe)
            lines.append(
                f"| {entry.meal_type.value.title()} | {name} | {entry.portion_multiplier} |"
            )
        lines.append("")

    if plan.recipes:
        lines.append("## Recipes")
        lines.append("")
        for recipe in plan.recipes:
            lines.append(f"- {recipe.name} (`{recipe.ref}`, {recipe.servings} servings)")
        lines.append("")

    return "\n".join(lines)


def _checkbox(row: dict) -> str:
    mark = "x" if row.get("checked") else " "
    return f"- [{mark}] {row['quantity']} {row['item']}"


def format_shopping_markdown(plan: MealPlan) -> str:
    """Shopping list with checkboxes; promoted seasonings are listed with items."""
    items = list(plan.ledger.get("items") or [])
    seasonings = list(plan.ledger.get("seasonings") or [])
    promoted = {name_key(n, plan.unit_scheme) for n in plan.promoted}

    moved = [r for r in seasonings if name_key(r["item"], plan.unit_scheme) in promoted]
    remaining = [r for r in seasonings if r not in moved]

    lines = ["# Shopping List", ""]
    for title, rows in (("Items", items + moved), ("Seasonings", remaining)):
        if not rows:
            continue
        lines.append(f"## {title}")
        lines.append("")
        lines.extend(_checkbox(r) for r in rows)
        lines.append("")
    if len(lines) == 2:
        lines.append("Nothing to buy.")
    return "\n".join(lines)


def format_plan_json(plan: MealPlan) -> str:
    return json.dumps(plan_to_dict(plan), indent=2)


def format_shopping_json(plan: MealPlan) -> str:
    return json.dumps(plan.ledger, indent=2)


def format_prompts_markdown(batches: dict[MealType, Iterable]) -> str:
    lines = ["# Search Prompts", ""]
    for meal_type, prompts in batches.items():
        lines.append(f"## {meal_type.value.title()}")
        lines.append("")
        for prompt in prompts:
            lines.append(f"- {prompt.phrase} ({prompt.primary_group or 'any'})")
        lines.append("")
    return "\n".join(lines)

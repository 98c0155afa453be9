"""CLI entry point for the meal composer."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path

from meal_composer.errors import MealComposerError, ValidationError

logger = logging.getLogger("meal_composer.cli")


def parse_counts(raw: str | None) -> dict:
    """Parse "dinner=4,lunch=2" into {MealType: int}."""
    from meal_composer.models import MealType

    counts = {}
    if not raw:
        return counts
    for part in raw.split(","):
        if not part.strip():
            continue
        name, sep, value = part.partition("=")
        if not sep:
            raise ValidationError(f"Invalid count '{part}'. Expected meal=N")
        try:
            counts[MealType.parse(name)] = int(value)
        except ValueError as e:
            raise ValidationError(f"Invalid count '{part}': {e}") from e
    return counts


def parse_slot(raw: str):
    """Parse "day:meal[:recipe ref][:portions]" into a Slot.

    The recipe ref may itself contain a colon ("catalog:abc"); a trailing
    all-digit field is the portion override, so numeric catalog ids need
    their "catalog:" tag ("mon:dinner:catalog:42", not "mon:dinner:42").
    """
    from meal_composer.models import RecipeKind, RecipeRef, Slot

    parts = [p.strip() for p in raw.split(":")]
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise ValidationError(f"Invalid slot '{raw}'. Expected day:meal[:recipe][:portions]")
    day, meal = parts[0], parts[1]
    rest = parts[2:]

    portions = None
    kinds = {k.value for k in RecipeKind}
    if rest and rest[-1].isdigit() and not (len(rest) == 2 and rest[0].lower() in kinds):
        portions = int(rest.pop())
    recipe = RecipeRef.parse(":".join(rest)) if rest else None
    return Slot(day=day, meal_type=meal, recipe=recipe, portion_multiplier=portions)


def load_preferences(path: str | None):
    """Read a preferences/survey file (YAML or JSON)."""
    import yaml

    from meal_composer.preferences import Preferences

    if not path:
        return Preferences()
    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        raise ValidationError(f"Cannot read preferences file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid preferences file {path}: {e}") from e
    return Preferences.from_survey(raw)


def get_config(args: argparse.Namespace) -> dict:
    from meal_composer.config import apply_cli_overrides, load_config

    config = load_config(Path(args.config) if args.config else None)
    return apply_cli_overrides(
        config,
        household=getattr(args, "household", None),
        unit_scheme=getattr(args, "unit_scheme", None),
        plans_dir=args.plans_dir,
        recipes_dir=getattr(args, "recipes_dir", None),
        match_count=getattr(args, "match_count", None),
    )


def get_store(config: dict):
    from meal_composer.config import expand_path
    from meal_composer.store import JsonPlanStore

    return JsonPlanStore(expand_path(config["store"]["plans_dir"]))


def get_catalog(config: dict):
    from meal_composer.catalog import RecipeCatalog
    from meal_composer.config import expand_path

    return RecipeCatalog(expand_path(config["catalog"]["recipes_dir"]))


def get_generator(config: dict):
    from meal_composer.generator import CommandRecipeGenerator

    return CommandRecipeGenerator(
        command=config["generator"]["command"],
        timeout=config["generator"]["timeout_s"],
    )


def cmd_plan(args: argparse.Namespace) -> None:
    from meal_composer.composer import PlanRequest, compose_plan
    from meal_composer.config import ledger_options
    from meal_composer.render import format_plan_json, format_plan_markdown

    config = get_config(args)
    preferences = load_preferences(args.preferences)
    slots = [parse_slot(s) for s in args.slot]

    meal_selection = parse_counts(args.meals)
    if not meal_selection:
        for slot in slots:
            meal_selection[slot.meal_type] = meal_selection.get(slot.meal_type, 0) + 1
    if not meal_selection:
        raise ValidationError("Nothing to plan. Give --meals or at least one --slot")
    try:
        week_of = date.fromisoformat(args.week_of) if args.week_of else None
    except ValueError as e:
        raise ValidationError(f"Invalid --week-of '{args.week_of}': {e}") from e

    request = PlanRequest(
        meal_selection=meal_selection,
        distinct_recipe_counts=parse_counts(args.distinct),
        slots=slots,
        week_of=week_of,
        household_size=args.household or preferences.household_size or config["household"]["default_size"],
        portion_table=config["household"]["portions"],
        match_count=config["retrieval"]["match_count"],
        solver_time_limit=config["scheduler"]["solver_time_limit_s"],
        unit_scheme=config["ledger"]["unit_scheme"],
        plan_id=args.plan_id,
        **ledger_options(config),
    )

    store = None if args.no_save else get_store(config)
    generator = None if args.no_generate else get_generator(config)
    plan = compose_plan(request, preferences, get_catalog(config), generator, store)

    if args.format == "json":
        print(format_plan_json(plan))
    else:
        print(format_plan_markdown(plan))
    if store is not None:
        print(f"Plan saved as {plan.id}", file=sys.stderr)


def cmd_shopping_list(args: argparse.Namespace) -> None:
    from meal_composer.render import format_shopping_json, format_shopping_markdown

    plan = get_store(get_config(args)).load_plan(args.plan_id)
    if args.format == "json":
        print(format_shopping_json(plan))
    else:
        print(format_shopping_markdown(plan))


def cmd_replace(args: argparse.Namespace) -> None:
    from meal_composer.composer import regenerate_recipe
    from meal_composer.config import ledger_options
    from meal_composer.replacement import replace_in_store

    config = get_config(args)
    store = get_store(config)
    options = ledger_options(config)

    if args.with_recipe:
        new_recipe = get_catalog(config).get(args.with_recipe)
        result = replace_in_store(store, args.plan_id, args.old, new_recipe, **options)
    else:
        with store.plan_lock(args.plan_id):
            plan = store.load_plan(args.plan_id)
            result = regenerate_recipe(
                plan, args.old, get_generator(config), store=store, **options
            )

    new = result.plan.recipe(result.new_ref)
    print(
        f"Replaced {result.old_ref} with {new.name} ({result.new_ref}) "
        f"in {result.entries_moved} meals, {result.servings} servings"
    )


def cmd_check(args: argparse.Namespace) -> None:
    from meal_composer.composer import check_item
    from meal_composer.config import ledger_options

    config = get_config(args)
    store = get_store(config)
    with store.plan_lock(args.plan_id):
        plan = store.load_plan(args.plan_id)
        touched = check_item(
            plan, args.item, checked=not args.uncheck, store=store, **ledger_options(config)
        )
    state = "unchecked" if args.uncheck else "checked"
    print(f"{state} {touched} entr{'y' if touched == 1 else 'ies'} for '{args.item}'")


def cmd_promote(args: argparse.Namespace) -> None:
    from meal_composer.composer import promote_seasoning
    from meal_composer.config import ledger_options

    config = get_config(args)
    store = get_store(config)
    with store.plan_lock(args.plan_id):
        plan = store.load_plan(args.plan_id)
        promote_seasoning(
            plan, args.item, promote=not args.demote, store=store, **ledger_options(config)
        )
    print(f"{'Demoted' if args.demote else 'Promoted'} '{args.item}'")


def cmd_prompts(args: argparse.Namespace) -> None:
    from meal_composer.diversity import plan_search_prompts
    from meal_composer.render import format_prompts_markdown

    preferences = load_preferences(args.preferences)
    batches = plan_search_prompts(preferences, parse_counts(args.distinct))
    if args.format == "json":
        print(
            json.dumps(
                {
                    mt.value: [
                        {"phrase": p.phrase, "primary_group": p.primary_group} for p in prompts
                    ]
                    for mt, prompts in batches.items()
                },
                indent=2,
            )
        )
    else:
        print(format_prompts_markdown(batches))


def cmd_checkout(args: argparse.Namespace) -> None:
    from meal_composer.checkout import build_checkout_payload
    from meal_composer.config import ledger_options

    config = get_config(args)
    plan = get_store(config).load_plan(args.plan_id)
    payload = build_checkout_payload(
        plan, title=args.title, linkback_url=args.linkback_url, **ledger_options(config)
    )
    print(json.dumps(payload, indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="meal-composer",
        description="Compose weekly meal plans and consolidated shopping lists",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config YAML (default: ~/.config/meal-composer/config.yaml)",
    )
    parser.add_argument(
        "--plans-dir", type=str, default=None, help="Directory holding plan JSON files"
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default="info",
        help="Logging verbosity (default: info)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Also write logs to this file",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    # plan
    p_plan = sub.add_parser("plan", help="Compose a weekly meal plan")
    p_plan.add_argument("--meals", type=str, help='Meals per type, e.g. "dinner=4,lunch=3"')
    p_plan.add_argument(
        "--distinct", type=str, help='Distinct recipes per type, e.g. "dinner=2"'
    )
    p_plan.add_argument(
        "--slot",
        action="append",
        default=[],
        help='Requested slot. Format: "day:meal[:recipe][:portions]". '
             'day: a day name or "Unscheduled". recipe: a tagged ref such as '
             '"catalog:42"; a bare number is read as portions. Repeatable.',
    )
    p_plan.add_argument("--preferences", type=str, help="Survey / preferences file (YAML or JSON)")
    p_plan.add_argument("--week-of", type=str, help="Plan start date, YYYY-MM-DD")
    p_plan.add_argument("--household", type=str, help='e.g. "2 people"')
    p_plan.add_argument("--recipes-dir", type=str, help="Recipe catalog directory")
    p_plan.add_argument("--match-count", type=int, help="Candidates per search prompt")
    p_plan.add_argument(
        "--unit-scheme", choices=["canonical", "exact"], help="Unit consolidation rule"
    )
    p_plan.add_argument("--plan-id", type=str, help="Id for the new plan")
    p_plan.add_argument(
        "--no-generate",
        action="store_true",
        help="Schedule catalog recipes as-is instead of generating variants",
    )
    p_plan.add_argument("--no-save", action="store_true", help="Do not store the plan")
    p_plan.add_argument(
        "--format", type=str, choices=["json", "markdown"], default="markdown"
    )
    p_plan.set_defaults(func=cmd_plan)

    # shopping-list
    p_shop = sub.add_parser("shopping-list", help="Show the shopping list of a plan")
    p_shop.add_argument("plan_id", type=str)
    p_shop.add_argument(
        "--format", type=str, choices=["json", "markdown"], default="markdown"
    )
    p_shop.set_defaults(func=cmd_shopping_list)

    # replace
    p_replace = sub.add_parser("replace", help="Replace a recipe in every meal using it")
    p_replace.add_argument("plan_id", type=str)
    p_replace.add_argument("old", type=str, help='Recipe ref, e.g. "modified:3f2a..."')
    p_replace.add_argument(
        "--with",
        dest="with_recipe",
        type=str,
        help="Catalog recipe to use instead (default: generate a new variant)",
    )
    p_replace.add_argument("--recipes-dir", type=str, help="Recipe catalog directory")
    p_replace.set_defaults(func=cmd_replace)

    # check
    p_check = sub.add_parser("check", help="Tick off a shopping-list item")
    p_check.add_argument("plan_id", type=str)
    p_check.add_argument("item", type=str)
    p_check.add_argument("--uncheck", action="store_true")
    p_check.set_defaults(func=cmd_check)

    # promote
    p_promote = sub.add_parser("promote", help="Move a seasoning into the main list")
    p_promote.add_argument("plan_id", type=str)
    p_promote.add_argument("item", type=str)
    p_promote.add_argument("--demote", action="store_true")
    p_promote.set_defaults(func=cmd_promote)

    # prompts
    p_prompts = sub.add_parser("prompts", help="Show recipe search prompts for preferences")
    p_prompts.add_argument("--preferences", type=str)
    p_prompts.add_argument("--distinct", type=str, required=True, help='e.g. "dinner=3"')
    p_prompts.add_argument(
        "--format", type=str, choices=["json", "markdown"], default="markdown"
    )
    p_prompts.set_defaults(func=cmd_prompts)

    # checkout
    p_checkout = sub.add_parser("checkout", help="Print the cart payload for a plan")
    p_checkout.add_argument("plan_id", type=str)
    p_checkout.add_argument("--title", type=str)
    p_checkout.add_argument("--linkback-url", type=str)
    p_checkout.set_defaults(func=cmd_checkout)

    return parser


def main(argv: list[str] | None = None) -> None:
    from meal_composer.log import setup_logging

    parser = build_parser()
    args = parser.parse_args(argv)

    log_file = Path(args.log_file) if args.log_file else None
    setup_logging(level=args.log_level, log_file=log_file)

    try:
        args.func(args)
    except MealComposerError as e:
        logger.error("%s", e)
        sys.exit(1)

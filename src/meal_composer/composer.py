"""End-to-end plan composition and plan-level shopping-list edits."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import date, timedelta

from meal_composer.collaborators import CandidateRetriever, PlanStore, RecipeGenerator
from meal_composer.diversity import gather_candidates, plan_search_prompts
from meal_composer.errors import (
    CollaboratorError,
    MealComposerError,
    ResolutionError,
    ValidationError,
)
from meal_composer.ledger import SEASONINGS, Ledger, build_ledger
from meal_composer.models import MealPlan, MealType, Recipe, RecipeKind, RecipeRef, Slot
from meal_composer.preferences import Preferences
from meal_composer.quantities import name_key
from meal_composer.replacement import ReplacementResult, replace_recipe
from meal_composer.scheduler import DEFAULT_SOLVER_TIME_LIMIT, ScheduleRequest, schedule

logger = logging.getLogger(__name__)


@dataclass
class PlanRequest:
    meal_selection: dict[MealType, int]
    distinct_recipe_counts: dict[MealType, int] = field(default_factory=dict)
    slots: list[Slot] = field(default_factory=list)
    week_of: date | None = None
    household_size: str | None = None
    portion_table: dict[str, int] | None = None
    match_count: int = 5
    solver_time_limit: float = DEFAULT_SOLVER_TIME_LIMIT
    unit_scheme: str = "canonical"
    seasoning_keywords: list[str] | None = None
    non_seasoning_terms: list[str] | None = None
    plan_id: str | None = None


def next_monday(today: date | None = None) -> date:
    """The Monday after today (a week ahead when today is Monday)."""
    today = today or date.today()
    days_until_monday = (7 - today.weekday()) % 7
    if days_until_monday == 0:
        days_until_monday = 7
    return today + timedelta(days=days_until_monday)


def _distinct_counts(request: PlanRequest) -> dict[MealType, int]:
    selection = {MealType.parse(k): v for k, v in request.meal_selection.items()}
    distinct = {MealType.parse(k): v for k, v in request.distinct_recipe_counts.items()}
    return {t: distinct.get(t, selection.get(t, 0)) for t in MealType}


def _generate(
    generator: RecipeGenerator,
    meal_type: MealType,
    preferences: Preferences,
    base: Recipe | None,
) -> Recipe:
    try:
        return generator.generate(meal_type, preferences, base)
    except MealComposerError:
        raise
    except Exception as e:
        raise CollaboratorError(f"Recipe generation failed for {meal_type.value}: {e}") from e


def _pinned_recipes(slots: list[Slot], retriever: CandidateRetriever) -> dict[MealType, list[Recipe]]:
    """Catalog recipes pinned on slots, looked up so the scheduler can place them."""
    pinned: dict[MealType, list[Recipe]] = {}
    for slot in slots:
        if slot.recipe is None or slot.recipe.kind != RecipeKind.CATALOG:
            continue
        try:
            recipe = retriever.get(slot.recipe)
        except ResolutionError:
            logger.debug("Pinned recipe %s not in catalog", slot.recipe)
            continue
        bucket = pinned.setdefault(slot.meal_type, [])
        if all(r.ref != recipe.ref for r in bucket):
            bucket.append(recipe)
    return pinned


def compose_plan(
    request: PlanRequest,
    preferences: Preferences,
    retriever: CandidateRetriever,
    generator: RecipeGenerator | None = None,
    store: PlanStore | None = None,
) -> MealPlan:
    """Prompts -> candidates -> generated recipes -> schedule -> ledger -> plan.

    Without a generator the catalog candidates are scheduled unchanged.
    """
    distinct = _distinct_counts(request)
    prompts = plan_search_prompts(preferences, distinct)
    candidates = gather_candidates(
        retriever, prompts, request.match_count, preferences.max_minutes
    )

    pool: dict[MealType, list[Recipe]] = {}
    for meal_type, ids in candidates.items():
        bases = [retriever.get(RecipeRef.catalog(i)) for i in ids[: distinct[meal_type]]]
        if generator is None:
            pool[meal_type] = bases
        else:
            pool[meal_type] = [_generate(generator, meal_type, preferences, b) for b in bases]

    for meal_type, recipes in _pinned_recipes(request.slots, retriever).items():
        bucket = pool.setdefault(meal_type, [])
        known = {r.ref for r in bucket}
        bucket.extend(r for r in recipes if r.ref not in known)

    week_of = request.week_of or next_monday()
    result = schedule(
        ScheduleRequest(
            meal_selection=request.meal_selection,
            distinct_recipe_counts=request.distinct_recipe_counts,
            slots=request.slots,
            recipe_pool=pool,
            household_size=request.household_size or preferences.household_size,
            week_of=week_of,
            portion_table=request.portion_table,
            solver_time_limit=request.solver_time_limit,
        )
    )

    ledger = build_ledger(
        result.recipes,
        result.servings,
        request.unit_scheme,
        request.seasoning_keywords,
        request.non_seasoning_terms,
    )
    plan = MealPlan(
        id=request.plan_id or uuid.uuid4().hex[:12],
        week_of=week_of,
        recipes=result.recipes,
        entries=result.entries,
        ledger=ledger.serialize(),
        unit_scheme=request.unit_scheme,
        preferences=preferences.to_dict(),
    )
    if store is not None:
        store.save_plan(plan)

    logger.info(
        "Composed plan %s: %d meals, %d recipes, %d items, %d seasonings",
        plan.id,
        len(plan.entries),
        len(plan.recipes),
        len(plan.ledger["items"]),
        len(plan.ledger["seasonings"]),
    )
    return plan


def regenerate_recipe(
    plan: MealPlan,
    old_ref: RecipeRef | str,
    generator: RecipeGenerator,
    preferences: Preferences | None = None,
    store: PlanStore | None = None,
    seasoning_keywords: Iterable[str] | None = None,
    non_seasoning_terms: Iterable[str] | None = None,
) -> ReplacementResult:
    """Ask the generator for a fresh take on a scheduled recipe and swap it in."""
    old_ref = RecipeRef.parse(old_ref)
    old = plan.recipe(old_ref)
    if old is None:
        raise ResolutionError(f"Recipe {old_ref} is not part of plan {plan.id}")
    preferences = preferences or Preferences.from_survey(plan.preferences)
    meal_type = old.meal_type
    if meal_type is None:
        entries = plan.entries_for(old_ref)
        if not entries:
            raise ResolutionError(f"No scheduled meals use recipe {old_ref}")
        meal_type = entries[0].meal_type

    new = _generate(generator, meal_type, preferences, old)
    # Keep the lineage pointing at the catalog recipe
    parent = old.parent or (old.ref if old.ref.kind == RecipeKind.CATALOG else None)
    new = replace(new, parent=parent)
    return replace_recipe(
        plan,
        old_ref,
        new,
        store=store,
        seasoning_keywords=seasoning_keywords,
        non_seasoning_terms=non_seasoning_terms,
    )


def check_item(
    plan: MealPlan,
    name: str,
    checked: bool = True,
    store: PlanStore | None = None,
    seasoning_keywords: Iterable[str] | None = None,
    non_seasoning_terms: Iterable[str] | None = None,
) -> int:
    """Toggle the checked flag of a shopping-list item; returns entries touched."""
    ledger = Ledger.from_serialized(
        plan.ledger, plan.unit_scheme, seasoning_keywords, non_seasoning_terms
    )
    touched = ledger.set_checked(name, checked)
    plan.ledger = ledger.serialize()
    if store is not None:
        store.save_plan(plan)
    return touched


def promote_seasoning(
    plan: MealPlan,
    name: str,
    promote: bool = True,
    store: PlanStore | None = None,
    seasoning_keywords: Iterable[str] | None = None,
    non_seasoning_terms: Iterable[str] | None = None,
) -> None:
    """Show a seasoning with the regular items (and send it to checkout), or undo that."""
    ledger = Ledger.from_serialized(
        plan.ledger, plan.unit_scheme, seasoning_keywords, non_seasoning_terms
    )
    found = ledger.find(name)
    if not found:
        raise ResolutionError(f"No shopping list item named '{name}'")
    if any(partition != SEASONINGS for partition, _ in found):
        raise ValidationError(f"'{name}' is a regular item, not a seasoning")

    key = name_key(name, plan.unit_scheme)
    rest = [n for n in plan.promoted if name_key(n, plan.unit_scheme) != key]
    plan.promoted = rest + [found[0][1].display_name] if promote else rest
    if store is not None:
        store.save_plan(plan)

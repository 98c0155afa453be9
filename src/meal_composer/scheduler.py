"""Slot scheduling with balanced recipe reuse using OR-Tools CP-SAT."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from ortools.sat.python import cp_model

from meal_composer.errors import SchedulingError, ValidationError
from meal_composer.log import solver_log_callback
from meal_composer.models import (
    DAY_NAMES,
    UNSCHEDULED,
    MealType,
    Recipe,
    RecipeRef,
    ScheduleEntry,
    Slot,
)

logger = logging.getLogger(__name__)

HOUSEHOLD_PORTIONS: dict[str, int] = {
    "Just me": 1,
    "2 people": 2,
    "3-4 people": 3,
    "5+ people": 4,
}

DEFAULT_SOLVER_TIME_LIMIT = 10.0


@dataclass
class ScheduleRequest:
    meal_selection: dict[MealType, int]
    distinct_recipe_counts: dict[MealType, int]
    slots: list[Slot] = field(default_factory=list)
    # Per meal type, best candidate first
    recipe_pool: dict[MealType, list[Recipe]] = field(default_factory=dict)
    household_size: str | None = None
    week_of: date | None = None
    portion_table: dict[str, int] | None = None
    solver_time_limit: float = DEFAULT_SOLVER_TIME_LIMIT


@dataclass
class ScheduleResult:
    entries: list[ScheduleEntry]
    # Scheduled recipes only, with servings written back
    recipes: list[Recipe]
    servings: dict[RecipeRef, int]
    dropped: list[str] = field(default_factory=list)

    def recipe(self, ref: RecipeRef) -> Recipe | None:
        for r in self.recipes:
            if r.ref == ref:
                return r
        return None


def portion_multiplier(household_size: str | None, table: dict[str, int] | None = None) -> int:
    """Per-entry portion multiplier for a household size answer (unknown -> 1)."""
    table = HOUSEHOLD_PORTIONS if table is None else table
    if household_size is None:
        return 1
    value = table.get(household_size.strip())
    if value is None:
        logger.debug("Unknown household size %r, using 1 portion", household_size)
        return 1
    return value


def _is_count(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _normalize_counts(raw: dict, what: str) -> dict[MealType, int]:
    counts: dict[MealType, int] = {}
    for key, value in (raw or {}).items():
        meal_type = MealType.parse(key)
        if not _is_count(value):
            raise ValidationError(
                f"{what} for {meal_type.value} must be a non-negative integer, got {value!r}"
            )
        counts[meal_type] = counts.get(meal_type, 0) + value
    return counts


def validate_request(request: ScheduleRequest) -> tuple[dict[MealType, int], dict[MealType, int]]:
    """Check the request shape; returns normalized (selection, distinct) counts."""
    selection = _normalize_counts(request.meal_selection, "meal_selection")
    distinct = _normalize_counts(request.distinct_recipe_counts, "distinct_recipe_counts")

    for meal_type in MealType:
        wanted = selection.get(meal_type, 0)
        unique = distinct.get(meal_type, wanted)
        if unique > wanted:
            raise ValidationError(
                f"{meal_type.value}: {unique} distinct recipes requested "
                f"for only {wanted} meals"
            )
        if wanted > 0 and unique == 0:
            raise ValidationError(
                f"{meal_type.value}: {wanted} meals requested with 0 distinct recipes"
            )
        distinct[meal_type] = unique

    if request.slots:
        per_type: dict[MealType, int] = {}
        for slot in request.slots:
            per_type[slot.meal_type] = per_type.get(slot.meal_type, 0) + 1
        for meal_type in MealType:
            if per_type.get(meal_type, 0) != selection.get(meal_type, 0):
                raise ValidationError(
                    f"{meal_type.value}: {per_type.get(meal_type, 0)} slots given "
                    f"but meal_selection asks for {selection.get(meal_type, 0)}"
                )

        labels: set[str] = set()
        for slot in request.slots:
            if slot.label in labels:
                raise ValidationError(f"Duplicate slot label '{slot.label}'")
            labels.add(slot.label)
            override = slot.portion_multiplier
            if override is not None and (
                isinstance(override, bool) or not isinstance(override, int) or override < 1
            ):
                raise ValidationError(
                    f"Slot '{slot.label}': portion multiplier must be a positive "
                    f"integer, got {override!r}"
                )

    if not any(request.recipe_pool.get(t) for t in MealType):
        raise ValidationError("Recipe pool is empty")

    return selection, distinct


def _planned_for(week_of: date | None, day: str) -> date | None:
    if week_of is None or day == UNSCHEDULED:
        return None
    return week_of + timedelta(days=DAY_NAMES.index(day))


def _resolve_pin(
    ref: RecipeRef,
    own_pool: list[Recipe],
    all_recipes: dict[RecipeRef, Recipe],
) -> Recipe | None:
    for recipe in own_pool:
        if recipe.ref == ref:
            return recipe
    return all_recipes.get(ref)


def _solve_assignment(
    meal_type: MealType,
    ordered: list[tuple[Slot, RecipeRef | None]],
    chosen: list[RecipeRef],
    must_use: set[RecipeRef],
    time_limit: float,
) -> dict[str, RecipeRef]:
    """Assign every open slot of one meal type to a chosen recipe.

    ``ordered`` holds the meal type's slots in (day, position) order with their
    pinned recipe, or None when the slot is open. Each recipe in ``must_use``
    gets at least one slot. Usage counts are balanced first, then the number
    of consecutive slots switching recipe is minimized.
    """
    model = cp_model.CpModel()
    n_recipes = len(chosen)
    tag = meal_type.value

    x: dict[tuple[int, int], cp_model.IntVar] = {}
    for s, (slot, pinned) in enumerate(ordered):
        if pinned is not None:
            continue
        for j in range(n_recipes):
            x[s, j] = model.new_bool_var(f"{tag}_x_s{s}_r{j}")
        model.add_exactly_one([x[s, j] for j in range(n_recipes)])

    def assigned(s: int, j: int):
        pinned = ordered[s][1]
        if pinned is not None:
            return 1 if pinned == chosen[j] else 0
        return x[s, j]

    n_slots = len(ordered)
    usage = []
    for j, ref in enumerate(chosen):
        count = model.new_int_var(0, n_slots, f"{tag}_count_r{j}")
        model.add(count == sum(assigned(s, j) for s in range(n_slots)))
        if ref in must_use:
            model.add(count >= 1)
        usage.append(count)

    max_use = model.new_int_var(0, n_slots, f"{tag}_max_use")
    min_use = model.new_int_var(0, n_slots, f"{tag}_min_use")
    model.add_max_equality(max_use, usage)
    model.add_min_equality(min_use, usage)

    switches = []
    for s in range(n_slots - 1):
        if ordered[s][1] is not None and ordered[s + 1][1] is not None:
            continue
        switch = model.new_bool_var(f"{tag}_switch_s{s}")
        for j in range(n_recipes):
            model.add(switch >= assigned(s, j) - assigned(s + 1, j))
        switches.append(switch)

    # Balance dominates: at most n_slots - 1 switches
    model.minimize((n_slots + 1) * (max_use - min_use) + sum(switches))

    solver = cp_model.CpSolver()
    solver.parameters.max_time_in_seconds = time_limit
    solver.parameters.num_workers = 1
    if logger.isEnabledFor(logging.DEBUG):
        solver.parameters.log_search_progress = True
        solver.parameters.log_to_stdout = False
        solver.log_callback = solver_log_callback(logger)
    status = solver.solve(model)

    if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
        logger.error("Solver could not assign %s slots", tag)
        raise SchedulingError(f"No feasible assignment for {tag} slots")

    result: dict[str, RecipeRef] = {}
    for s, (slot, pinned) in enumerate(ordered):
        if pinned is not None:
            continue
        for j in range(n_recipes):
            if solver.value(x[s, j]):
                result[slot.label] = chosen[j]
                break
    return result


def _schedule_slots(
    request: ScheduleRequest,
    distinct: dict[MealType, int],
    default_portions: int,
) -> tuple[list[ScheduleEntry], dict[RecipeRef, Recipe], list[str]]:
    all_recipes: dict[RecipeRef, Recipe] = {}
    for meal_type in MealType:
        for recipe in request.recipe_pool.get(meal_type) or []:
            all_recipes.setdefault(recipe.ref, recipe)

    assignment: dict[str, RecipeRef] = {}
    used: dict[RecipeRef, Recipe] = {}
    dropped: list[str] = []

    for meal_type in MealType:
        type_slots = [s for s in request.slots if s.meal_type == meal_type]
        if not type_slots:
            continue
        pool = list(request.recipe_pool.get(meal_type) or [])

        kept: list[tuple[int, Slot, RecipeRef | None]] = []
        pinned_refs: list[RecipeRef] = []
        for position, slot in enumerate(type_slots):
            if slot.recipe is not None:
                recipe = _resolve_pin(slot.recipe, pool, all_recipes)
                if recipe is None:
                    logger.warning(
                        "Slot '%s': recipe %s not in the candidate pool, dropped",
                        slot.label,
                        slot.recipe,
                    )
                    dropped.append(slot.label)
                    continue
                used[recipe.ref] = recipe
                if recipe.ref not in pinned_refs:
                    pinned_refs.append(recipe.ref)
                kept.append((position, slot, recipe.ref))
            elif not pool:
                logger.warning(
                    "Slot '%s': no %s candidates available, dropped",
                    slot.label,
                    meal_type.value,
                )
                dropped.append(slot.label)
            else:
                kept.append((position, slot, None))

        open_count = sum(1 for _, _, pinned in kept if pinned is None)
        if open_count == 0:
            for _, slot, pinned in kept:
                assignment[slot.label] = pinned
            continue

        fresh = [r for r in pool if r.ref not in pinned_refs]
        n_extra = max(0, distinct[meal_type] - len(pinned_refs))
        n_extra = min(n_extra, open_count, len(fresh))
        extras = fresh[:n_extra]
        for recipe in extras:
            used[recipe.ref] = recipe
        if len(pinned_refs) + len(extras) < distinct[meal_type]:
            logger.warning(
                "%s: only %d distinct recipes available of %d requested",
                meal_type.value,
                len(pinned_refs) + len(extras),
                distinct[meal_type],
            )

        chosen = pinned_refs + [r.ref for r in extras]
        ordered = sorted(kept, key=lambda k: (k[1].day_index, k[0]))
        solved = _solve_assignment(
            meal_type,
            [(slot, pinned) for _, slot, pinned in ordered],
            chosen,
            {r.ref for r in extras},
            request.solver_time_limit,
        )
        for _, slot, pinned in kept:
            assignment[slot.label] = pinned if pinned is not None else solved[slot.label]

    entries = []
    for slot in request.slots:
        ref = assignment.get(slot.label)
        if ref is None:
            continue
        entries.append(
            ScheduleEntry(
                slot_label=slot.label,
                day=slot.day,
                meal_type=slot.meal_type,
                recipe=ref,
                portion_multiplier=slot.portion_multiplier or default_portions,
                planned_for=_planned_for(request.week_of, slot.day),
            )
        )
    return entries, used, dropped


def _schedule_round_robin(
    request: ScheduleRequest,
    selection: dict[MealType, int],
    default_portions: int,
) -> tuple[list[ScheduleEntry], dict[RecipeRef, Recipe]]:
    entries: list[ScheduleEntry] = []
    used: dict[RecipeRef, Recipe] = {}
    i = 0
    for meal_type in MealType:
        wanted = selection.get(meal_type, 0)
        pool = list(request.recipe_pool.get(meal_type) or [])
        if len(pool) < wanted:
            logger.warning(
                "%s: %d meals requested but only %d candidates",
                meal_type.value,
                wanted,
                len(pool),
            )
        for n, recipe in enumerate(pool[:wanted]):
            offset = i % len(DAY_NAMES)
            used[recipe.ref] = recipe
            entries.append(
                ScheduleEntry(
                    slot_label=f"{meal_type.value.title()} {n + 1}",
                    day=DAY_NAMES[offset],
                    meal_type=meal_type,
                    recipe=recipe.ref,
                    portion_multiplier=default_portions,
                    planned_for=(
                        request.week_of + timedelta(days=offset)
                        if request.week_of is not None
                        else None
                    ),
                )
            )
            i += 1
    return entries, used


def _unique_labels(slots: list[Slot]) -> list[Slot]:
    """Suffix repeated default labels with an ordinal ("Unscheduled dinner 2")."""
    taken = {s.label for s in slots if s.label_given}
    result = []
    for slot in slots:
        if slot.label_given:
            result.append(slot)
            continue
        label, n = slot.label, 1
        while label in taken:
            n += 1
            label = f"{slot.label} {n}"
        taken.add(label)
        if label != slot.label:
            slot = dataclasses.replace(slot, label=label)
        result.append(slot)
    return result


def schedule(request: ScheduleRequest) -> ScheduleResult:
    """Assign every requested slot to one recipe and compute servings."""
    request = dataclasses.replace(request, slots=_unique_labels(request.slots))
    selection, distinct = validate_request(request)
    default_portions = portion_multiplier(request.household_size, request.portion_table)

    if request.slots:
        entries, used, dropped = _schedule_slots(request, distinct, default_portions)
    else:
        entries, used = _schedule_round_robin(request, selection, default_portions)
        dropped = []

    servings: dict[RecipeRef, int] = {}
    for entry in entries:
        servings[entry.recipe] = servings.get(entry.recipe, 0) + entry.portion_multiplier

    recipes = [dataclasses.replace(used[ref], servings=count) for ref, count in servings.items()]

    logger.info(
        "Scheduled %d entries across %d recipes (%d slots dropped)",
        len(entries),
        len(recipes),
        len(dropped),
    )
    return ScheduleResult(entries=entries, recipes=recipes, servings=servings, dropped=dropped)

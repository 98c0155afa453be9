"""Swap one recipe for another across a plan, updating the ledger in place."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from enum import Enum

from meal_composer.collaborators import PlanStore
from meal_composer.errors import MealComposerError, ReplacementError
from meal_composer.ledger import Ledger
from meal_composer.models import MealPlan, Recipe, RecipeRef

logger = logging.getLogger(__name__)


class ReplacementPhase(Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    COMPUTING = "computing"
    REASSIGNING = "reassigning"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ReplacementResult:
    plan: MealPlan
    old_ref: RecipeRef
    new_ref: RecipeRef
    servings: int
    entries_moved: int
    phases: list[ReplacementPhase] = field(default_factory=list)

    @property
    def phase(self) -> ReplacementPhase:
        return self.phases[-1] if self.phases else ReplacementPhase.IDLE


def replace_recipe(
    plan: MealPlan,
    old_ref: RecipeRef | str,
    new_recipe: Recipe,
    store: PlanStore | None = None,
    seasoning_keywords: Iterable[str] | None = None,
    non_seasoning_terms: Iterable[str] | None = None,
) -> ReplacementResult:
    """Replace every entry of ``old_ref`` with ``new_recipe``.

    The ledger delta is computed on a copy (subtract the old recipe at its
    total servings, then add the new one at the same servings) so the plan is
    untouched if validation or computation fails. Checked flags carry over by
    ingredient name. When a store is given the updated plan is saved.
    """
    phases = [ReplacementPhase.IDLE]

    def advance(phase: ReplacementPhase) -> None:
        phases.append(phase)
        logger.debug("Replacement %s", phase.value)

    try:
        advance(ReplacementPhase.VALIDATING)
        old_ref = RecipeRef.parse(old_ref)
        old_recipe = plan.recipe(old_ref)
        if old_recipe is None:
            raise ReplacementError(f"Recipe {old_ref} is not part of plan {plan.id}")
        moving = plan.entries_for(old_ref)
        if not moving:
            raise ReplacementError(f"No scheduled meals use recipe {old_ref}")
        if new_recipe.ref == old_ref:
            raise ReplacementError(f"Replacement must differ from {old_ref}")

        advance(ReplacementPhase.COMPUTING)
        servings = sum(e.portion_multiplier for e in moving)
        previous = Ledger.from_serialized(
            plan.ledger,
            plan.unit_scheme,
            seasoning_keywords,
            non_seasoning_terms,
        )
        updated = previous.copy()
        updated.apply_recipe(old_recipe, servings, -1)
        updated.apply_recipe(new_recipe, servings, +1)
    except ReplacementError:
        phases.append(ReplacementPhase.FAILED)
        raise
    except MealComposerError as e:
        phases.append(ReplacementPhase.FAILED)
        raise ReplacementError(str(e)) from e

    advance(ReplacementPhase.REASSIGNING)
    for entry in moving:
        entry.recipe = new_recipe.ref
    placed = replace(new_recipe, servings=plan.servings_for(new_recipe.ref))
    if plan.recipe(new_recipe.ref) is not None:
        # Already scheduled elsewhere: merge into the existing recipe
        plan.recipes = [
            placed if r.ref == new_recipe.ref else r
            for r in plan.recipes
            if r.ref != old_ref
        ]
    else:
        plan.recipes = [placed if r.ref == old_ref else r for r in plan.recipes]

    advance(ReplacementPhase.COMMITTING)
    updated.preserve_checked(previous)
    plan.ledger = updated.serialize()
    if store is not None:
        store.save_plan(plan)

    advance(ReplacementPhase.DONE)
    logger.info(
        "Replaced %s with %s in %d meals (%d servings)",
        old_ref,
        new_recipe.ref,
        len(moving),
        servings,
    )
    return ReplacementResult(
        plan=plan,
        old_ref=old_ref,
        new_ref=new_recipe.ref,
        servings=servings,
        entries_moved=len(moving),
        phases=phases,
    )


def replace_in_store(
    store,
    plan_id: str,
    old_ref: RecipeRef | str,
    new_recipe: Recipe,
    **kwargs,
) -> ReplacementResult:
    """Load, replace and save while holding the store's lock for the plan."""
    with store.plan_lock(plan_id):
        plan = store.load_plan(plan_id)
        return replace_recipe(plan, old_ref, new_recipe, store=store, **kwargs)

"""Contracts for the external services the composer calls."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from meal_composer.models import MealPlan, MealType, Recipe, RecipeRef
from meal_composer.preferences import Preferences


@runtime_checkable
class RecipeGenerator(Protocol):
    def generate(
        self,
        meal_type: MealType,
        preferences: Preferences,
        base: Recipe | None = None,
    ) -> Recipe:
        """Draft a recipe, optionally adapted from a catalog recipe."""
        ...


@runtime_checkable
class CandidateRetriever(Protocol):
    def search(
        self,
        phrase: str,
        meal_type: MealType,
        match_count: int,
        max_minutes: int | None = None,
    ) -> list[str]:
        """Ids of catalog recipes matching a search phrase, best first."""
        ...

    def get(self, ref: RecipeRef) -> Recipe:
        ...


@runtime_checkable
class PlanStore(Protocol):
    def load_plan(self, plan_id: str) -> MealPlan:
        ...

    def save_plan(self, plan: MealPlan) -> None:
        ...


@runtime_checkable
class CartLinkBuilder(Protocol):
    def build_link(self, line_items: list[dict]) -> str:
        """Shareable checkout URL for a list of cart line items."""
        ...

"""Consolidated shopping-list ledger with incremental recipe deltas.

The ledger keeps two partitions, regular ``items`` and ``seasonings``, keyed
by (ingredient name key, unit key). Recipes are added or removed as signed
deltas scaled by their servings, so a replacement can subtract one recipe and
add another without recomputing the whole plan. Amounts are exact fractions;
serialization renders them without rounding so a later subtraction reverses
an earlier addition exactly.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from fractions import Fraction

from meal_composer.errors import ResolutionError, ValidationError
from meal_composer.models import Recipe, RecipeRef
from meal_composer.quantities import (
    display_unit,
    format_quantity,
    is_excluded,
    is_seasoning,
    name_key,
    parse_quantity,
    unit_key,
)

logger = logging.getLogger(__name__)

ITEMS = "items"
SEASONINGS = "seasonings"


@dataclass
class LedgerEntry:
    display_name: str
    amount: Fraction
    unit: str
    checked: bool = False


class Ledger:
    """Shopping-list state derived from the scheduled recipes of one plan."""

    def __init__(
        self,
        unit_scheme: str = "canonical",
        seasoning_keywords: Iterable[str] | None = None,
        non_seasoning_terms: Iterable[str] | None = None,
    ) -> None:
        # Validates the scheme name
        unit_key("", unit_scheme)
        self.unit_scheme = unit_scheme
        self.seasoning_keywords = tuple(seasoning_keywords) if seasoning_keywords is not None else None
        self.non_seasoning_terms = tuple(non_seasoning_terms) if non_seasoning_terms is not None else None
        self.partitions: dict[str, dict[tuple[str, str], LedgerEntry]] = {
            ITEMS: {},
            SEASONINGS: {},
        }
        # Checked flags of pruned entries, restored if the entry comes back
        self._pruned_checked: dict[tuple[str, str], bool] = {}

    @property
    def items(self) -> dict[tuple[str, str], LedgerEntry]:
        return self.partitions[ITEMS]

    @property
    def seasonings(self) -> dict[tuple[str, str], LedgerEntry]:
        return self.partitions[SEASONINGS]

    def copy(self) -> Ledger:
        return copy.deepcopy(self)

    def partition_for(self, name: str) -> str:
        if is_seasoning(name, self.seasoning_keywords, self.non_seasoning_terms):
            return SEASONINGS
        return ITEMS

    def key_for(self, name: str, unit: str) -> tuple[str, str]:
        return name_key(name, self.unit_scheme), unit_key(unit, self.unit_scheme)

    def entries(self) -> Iterable[tuple[str, LedgerEntry]]:
        for partition, entries in self.partitions.items():
            for entry in entries.values():
                yield partition, entry

    def apply_recipe(self, recipe: Recipe, servings: int, sign: int) -> None:
        """Add (sign=+1) or subtract (sign=-1) a recipe scaled by servings."""
        if sign not in (1, -1):
            raise ValidationError(f"sign must be +1 or -1, got {sign!r}")
        if isinstance(servings, bool) or not isinstance(servings, int) or servings < 1:
            raise ValidationError(
                f"servings for '{recipe.name}' must be a positive integer, got {servings!r}"
            )

        for ing in recipe.ingredients:
            name = (ing.item or "").strip()
            if not name or is_excluded(name):
                continue

            parsed = parse_quantity(ing.quantity)
            if parsed.amount is None:
                logger.debug(
                    "Unparsable quantity %r for %s in %s; counting as 0",
                    ing.quantity,
                    name,
                    recipe.name,
                )
            delta = (parsed.amount or Fraction(0)) * servings * sign

            entries = self.partitions[self.partition_for(name)]
            key = self.key_for(name, parsed.unit)
            existing = entries.get(key)
            if existing is not None:
                existing.amount += delta
            elif sign > 0:
                entries[key] = LedgerEntry(
                    display_name=name,
                    amount=delta,
                    unit=parsed.unit,
                    checked=self._pruned_checked.pop(key, False),
                )

        self.prune()

    def prune(self) -> None:
        """Drop every entry whose amount fell to zero or below."""
        for entries in self.partitions.values():
            for key in [k for k, e in entries.items() if e.amount <= 0]:
                self._pruned_checked[key] = entries.pop(key).checked

    def checked_lookup(self) -> dict[str, bool]:
        """Name key -> checked, both partitions merged.

        A name counts as checked when any of its unit rows is checked.
        """
        lookup: dict[str, bool] = {}
        for _partition, entry in self.entries():
            key = name_key(entry.display_name, self.unit_scheme)
            lookup[key] = lookup.get(key, False) or entry.checked
        return lookup

    def preserve_checked(self, old: Ledger) -> None:
        """Carry checked flags over from a previous ledger by ingredient name."""
        lookup = old.checked_lookup()
        for _partition, entry in self.entries():
            entry.checked = lookup.get(name_key(entry.display_name, self.unit_scheme), False)

    def set_checked(self, name: str, checked: bool) -> int:
        """Toggle every entry with this ingredient name; returns entries touched."""
        target = name_key(name, self.unit_scheme)
        touched = 0
        for _partition, entry in self.entries():
            if name_key(entry.display_name, self.unit_scheme) == target:
                entry.checked = checked
                touched += 1
        if not touched:
            raise ResolutionError(f"No shopping list item named '{name}'")
        return touched

    def find(self, name: str) -> list[tuple[str, LedgerEntry]]:
        target = name_key(name, self.unit_scheme)
        return [
            (partition, entry)
            for partition, entry in self.entries()
            if name_key(entry.display_name, self.unit_scheme) == target
        ]

    def _render(self, entry: LedgerEntry) -> dict:
        unit = display_unit(entry.unit, entry.amount, self.unit_scheme)
        return {
            "item": entry.display_name,
            "quantity": format_quantity(entry.amount, unit),
            "checked": entry.checked,
        }

    def serialize(self) -> dict[str, list[dict]]:
        """Render both partitions as sorted {item, quantity, checked} lists."""
        result: dict[str, list[dict]] = {}
        for partition, entries in self.partitions.items():
            ordered = sorted(
                entries.values(),
                key=lambda e: (e.display_name.lower(), e.display_name, e.unit.lower()),
            )
            result[partition] = [self._render(e) for e in ordered]
        return result

    @classmethod
    def from_serialized(
        cls,
        data: dict | list | None,
        unit_scheme: str = "canonical",
        seasoning_keywords: Iterable[str] | None = None,
        non_seasoning_terms: Iterable[str] | None = None,
    ) -> Ledger:
        """Rebuild a ledger from its serialized form.

        A bare list is read as the items partition. Rows are re-partitioned by
        the classifier, so a row stored under the wrong list lands where
        apply_recipe would have put it.
        """
        ledger = cls(unit_scheme, seasoning_keywords, non_seasoning_terms)
        if data is None:
            return ledger
        if isinstance(data, list):
            rows = list(data)
        elif isinstance(data, dict):
            rows = list(data.get(ITEMS) or []) + list(data.get(SEASONINGS) or [])
        else:
            raise ValidationError(f"Unrecognized ledger shape: {type(data).__name__}")

        for row in rows:
            if not isinstance(row, dict):
                raise ValidationError(f"Ledger row must be an object, got {row!r}")
            name = str(row.get("item") or "").strip()
            if not name or is_excluded(name):
                continue
            parsed = parse_quantity(row.get("quantity"))
            if parsed.amount is None or parsed.amount <= 0:
                logger.debug("Dropping ledger row without a positive amount: %r", row)
                continue
            entries = ledger.partitions[ledger.partition_for(name)]
            key = ledger.key_for(name, parsed.unit)
            checked = bool(row.get("checked", False))
            if key in entries:
                entries[key].amount += parsed.amount
                entries[key].checked = entries[key].checked or checked
            else:
                entries[key] = LedgerEntry(name, parsed.amount, parsed.unit, checked)
        return ledger


def build_ledger(
    recipes: Iterable[Recipe],
    servings: dict[RecipeRef, int],
    unit_scheme: str = "canonical",
    seasoning_keywords: Iterable[str] | None = None,
    non_seasoning_terms: Iterable[str] | None = None,
) -> Ledger:
    """Fresh ledger for a schedule: each recipe added once at its total servings."""
    ledger = Ledger(unit_scheme, seasoning_keywords, non_seasoning_terms)
    for recipe in recipes:
        count = servings.get(recipe.ref, 0)
        if count <= 0:
            continue
        ledger.apply_recipe(recipe, count, +1)
    return ledger

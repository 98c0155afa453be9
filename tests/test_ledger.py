"""Unit tests for the shopping-list ledger."""

from fractions import Fraction

import pytest

from conftest import make_recipe
from meal_composer.errors import ResolutionError, ValidationError
from meal_composer.ledger import Ledger, build_ledger


def _rows(ledger: Ledger, partition: str = "items") -> list[tuple[str, str]]:
    return [(r["item"], r["quantity"]) for r in ledger.serialize()[partition]]


class TestApplyRecipe:
    def test_scales_by_servings(self, egg_recipes):
        a, _ = egg_recipes
        ledger = Ledger()
        ledger.apply_recipe(a, 3, +1)
        assert ledger.serialize()["items"] == [
            {"item": "eggs", "quantity": "6 cups", "checked": False}
        ]

    def test_subtract_then_add(self, egg_recipes):
        a, b = egg_recipes
        ledger = Ledger()
        ledger.apply_recipe(a, 3, +1)
        ledger.apply_recipe(a, 3, -1)
        ledger.apply_recipe(b, 4, +1)
        assert _rows(ledger) == [("eggs", "4 cups")]

    def test_singular_and_plural_names_consolidate(self):
        ledger = Ledger()
        ledger.apply_recipe(make_recipe("x", [("eggs", "2 large")]), 1, +1)
        ledger.apply_recipe(make_recipe("y", [("Egg", "1 large")]), 1, +1)
        assert _rows(ledger) == [("eggs", "3 large")]

    def test_unit_aliases_consolidate(self):
        ledger = Ledger()
        ledger.apply_recipe(make_recipe("x", [("flour", "1 cup")]), 1, +1)
        ledger.apply_recipe(make_recipe("y", [("flour", "2 c")]), 1, +1)
        assert _rows(ledger) == [("flour", "3 cups")]

    def test_exact_scheme_keeps_units_apart(self):
        ledger = Ledger(unit_scheme="exact")
        ledger.apply_recipe(make_recipe("x", [("flour", "1 cup")]), 1, +1)
        ledger.apply_recipe(make_recipe("y", [("flour", "2 cups")]), 1, +1)
        assert _rows(ledger) == [("flour", "1 cup"), ("flour", "2 cups")]

    def test_seasonings_partitioned(self, dinner_pool):
        ledger = Ledger()
        ledger.apply_recipe(dinner_pool[0], 2, +1)
        items = [r["item"] for r in ledger.serialize()["items"]]
        seasonings = [r["item"] for r in ledger.serialize()["seasonings"]]
        assert items == ["chicken thighs", "onion"]
        assert seasonings == ["garam masala", "salt"]

    def test_water_never_listed(self, dinner_pool):
        ledger = Ledger()
        ledger.apply_recipe(dinner_pool[0], 1, +1)
        assert ledger.find("water") == []

    def test_unparsable_quantity_counts_as_zero(self):
        ledger = Ledger()
        ledger.apply_recipe(make_recipe("x", [("salt", "to taste"), ("rice", "1 cup")]), 2, +1)
        assert ledger.find("salt") == []
        assert _rows(ledger) == [("rice", "2 cups")]

    def test_subtracting_unknown_item_is_noop(self):
        ledger = Ledger()
        ledger.apply_recipe(make_recipe("x", [("rice", "1 cup")]), 1, +1)
        ledger.apply_recipe(make_recipe("y", [("quinoa", "1 cup")]), 1, -1)
        assert _rows(ledger) == [("rice", "1 cup")]

    def test_invalid_sign(self, egg_recipes):
        with pytest.raises(ValidationError, match="sign"):
            Ledger().apply_recipe(egg_recipes[0], 1, 2)

    @pytest.mark.parametrize("servings", [0, -1, 1.5, True])
    def test_invalid_servings(self, egg_recipes, servings):
        with pytest.raises(ValidationError, match="positive integer"):
            Ledger().apply_recipe(egg_recipes[0], servings, +1)


class TestLedgerProperties:
    def test_remove_then_add_restores_ledger(self, dinner_pool):
        curry, _, salmon = dinner_pool
        ledger = Ledger()
        ledger.apply_recipe(curry, 2, +1)
        ledger.apply_recipe(salmon, 3, +1)
        ledger.set_checked("salmon", True)
        before = ledger.serialize()

        ledger.apply_recipe(salmon, 3, -1)
        ledger.apply_recipe(salmon, 3, +1)
        assert ledger.serialize() == before

    def test_serialize_is_idempotent(self, dinner_pool):
        ledger = build_ledger(dinner_pool, {r.ref: 2 for r in dinner_pool})
        assert ledger.serialize() == ledger.serialize()
        rebuilt = Ledger.from_serialized(ledger.serialize())
        assert rebuilt.serialize() == ledger.serialize()

    def test_no_entry_at_or_below_zero(self, dinner_pool):
        ledger = Ledger()
        steps = [(0, 2, 1), (1, 1, 1), (0, 3, -1), (2, 1, 1), (1, 4, -1), (2, 1, -1), (0, 1, 1)]
        for index, servings, sign in steps:
            ledger.apply_recipe(dinner_pool[index], servings, sign)
            for _partition, entry in ledger.entries():
                assert entry.amount > 0

    def test_name_in_exactly_one_partition(self, dinner_pool):
        ledger = build_ledger(dinner_pool, {r.ref: 1 for r in dinner_pool})
        data = ledger.serialize()
        items = {r["item"] for r in data["items"]}
        seasonings = {r["item"] for r in data["seasonings"]}
        assert items.isdisjoint(seasonings)

    def test_non_terminating_amounts_stay_exact(self):
        ledger = Ledger()
        third = make_recipe("x", [("milk", "1/3 cup")])
        ledger.apply_recipe(third, 4, +1)
        assert _rows(ledger) == [("milk", "1 1/3 cups")]
        rebuilt = Ledger.from_serialized(ledger.serialize())
        rebuilt.apply_recipe(third, 4, -1)
        assert rebuilt.items == {}


class TestCheckedState:
    def test_checked_survives_recompute(self, dinner_pool):
        _, stew, _ = dinner_pool
        old = Ledger()
        old.apply_recipe(stew, 2, +1)
        old.set_checked("tomatoes", True)

        new = old.copy()
        new.apply_recipe(stew, 2, -1)
        new.apply_recipe(make_recipe("soup", [("Tomatoes", "3 cups")]), 2, +1)
        new.preserve_checked(old)
        assert new.find("tomatoes")[0][1].checked is True

    def test_checked_resets_when_reintroduced_later(self, dinner_pool):
        _, stew, _ = dinner_pool
        first = Ledger()
        first.apply_recipe(stew, 2, +1)
        first.set_checked("tomatoes", True)

        second = first.copy()
        second.apply_recipe(stew, 2, -1)
        second.apply_recipe(make_recipe("plain", [("rice", "1 cup")]), 2, +1)
        second.preserve_checked(first)
        assert second.find("tomatoes") == []

        third = second.copy()
        third.apply_recipe(make_recipe("sauce", [("tomatoes", "1 can")]), 2, +1)
        third.preserve_checked(second)
        assert third.find("tomatoes")[0][1].checked is False

    def test_any_checked_unit_checks_the_name(self):
        old = Ledger()
        old.apply_recipe(make_recipe("sauce", [("tomatoes", "1 can"), ("tomatoes", "1 cup")]), 1, +1)
        old.find("tomatoes")[0][1].checked = True
        assert old.checked_lookup() == {"tomato": True}

        new = old.copy()
        new.preserve_checked(old)
        assert [entry.checked for _, entry in new.find("tomatoes")] == [True, True]

    def test_set_checked_unknown_item(self):
        with pytest.raises(ResolutionError, match="No shopping list item"):
            Ledger().set_checked("saffron", True)

    def test_set_checked_matches_plural(self, egg_recipes):
        ledger = Ledger()
        ledger.apply_recipe(egg_recipes[0], 1, +1)
        assert ledger.set_checked("egg", True) == 1
        assert ledger.serialize()["items"][0]["checked"] is True


class TestFromSerialized:
    def test_legacy_list_read_as_items(self):
        ledger = Ledger.from_serialized([{"item": "rice", "quantity": "2 cups"}])
        assert ledger.items[("rice", "cup")].amount == 2

    def test_rows_are_repartitioned(self):
        ledger = Ledger.from_serialized(
            {"items": [{"item": "paprika", "quantity": "1 tsp", "checked": True}], "seasonings": []}
        )
        assert ledger.items == {}
        entry = ledger.seasonings[("paprika", "tsp")]
        assert entry.amount == 1
        assert entry.checked is True

    def test_rows_without_amount_dropped(self):
        ledger = Ledger.from_serialized({"items": [{"item": "salt", "quantity": "to taste"}]})
        assert list(ledger.entries()) == []

    def test_duplicate_rows_merge(self):
        ledger = Ledger.from_serialized(
            {"items": [
                {"item": "rice", "quantity": "1 cup"},
                {"item": "Rice", "quantity": "0.5 cups", "checked": True},
            ]}
        )
        entry = ledger.items[("rice", "cup")]
        assert entry.amount == Fraction(3, 2)
        assert entry.checked is True

    def test_bad_shape(self):
        with pytest.raises(ValidationError, match="Unrecognized ledger shape"):
            Ledger.from_serialized("rice")

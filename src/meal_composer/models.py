"""Shared data models for the meal composer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from meal_composer.errors import ValidationError

DAY_NAMES = [
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
]

UNSCHEDULED = "Unscheduled"


class MealType(Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"

    @classmethod
    def parse(cls, raw: str | MealType) -> MealType:
        if isinstance(raw, MealType):
            return raw
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise ValidationError(f"Unknown meal type '{raw}'. Valid: {valid}")


class RecipeKind(Enum):
    CATALOG = "catalog"
    MODIFIED = "modified"


@dataclass(frozen=True)
class RecipeRef:
    """Tagged recipe identity, fixed when the recipe is written."""

    kind: RecipeKind
    id: str

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"

    @classmethod
    def parse(cls, raw: str | RecipeRef) -> RecipeRef:
        """Parse '<kind>:<id>'. A bare id is a catalog reference."""
        if isinstance(raw, RecipeRef):
            return raw
        text = str(raw).strip()
        if not text:
            raise ValidationError("Empty recipe reference")
        kind_str, sep, ident = text.partition(":")
        if sep:
            try:
                kind = RecipeKind(kind_str.strip().lower())
            except ValueError:
                raise ValidationError(f"Unknown recipe kind in reference '{raw}'")
            if not ident.strip():
                raise ValidationError(f"Empty recipe id in reference '{raw}'")
            return cls(kind, ident.strip())
        return cls(RecipeKind.CATALOG, text)

    @classmethod
    def catalog(cls, ident: str) -> RecipeRef:
        return cls(RecipeKind.CATALOG, str(ident))

    @classmethod
    def modified(cls, ident: str) -> RecipeRef:
        return cls(RecipeKind.MODIFIED, str(ident))


@dataclass
class Ingredient:
    item: str
    quantity: str


@dataclass
class Recipe:
    ref: RecipeRef
    name: str
    ingredients: list[Ingredient] = field(default_factory=list)
    steps: list[str] = field(default_factory=list)
    meal_type: MealType | None = None
    # Written back by the scheduler: sum of portion multipliers
    servings: int | None = None
    main_ingredient: str | None = None
    description: str | None = None
    # Catalog recipe this one was derived from
    parent: RecipeRef | None = None


@dataclass
class Slot:
    day: str
    meal_type: MealType
    label: str | None = None
    recipe: RecipeRef | None = None
    portion_multiplier: int | None = None
    # False when the label was derived from day and meal type
    label_given: bool = field(default=False, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.label_given = bool(self.label)
        self.meal_type = MealType.parse(self.meal_type)
        self.day = normalize_day(self.day)
        if self.recipe is not None:
            self.recipe = RecipeRef.parse(self.recipe)
        if not self.label:
            self.label = f"{self.day} {self.meal_type.value}"

    @property
    def day_index(self) -> int:
        """0-indexed weekday (Monday=0); unscheduled slots sort last."""
        if self.day == UNSCHEDULED:
            return len(DAY_NAMES)
        return DAY_NAMES.index(self.day)


@dataclass
class ScheduleEntry:
    slot_label: str
    day: str
    meal_type: MealType
    recipe: RecipeRef
    portion_multiplier: int = 1
    planned_for: date | None = None


@dataclass
class MealPlan:
    id: str
    week_of: date
    recipes: list[Recipe] = field(default_factory=list)
    entries: list[ScheduleEntry] = field(default_factory=list)
    # Serialized ledger: {"items": [...], "seasonings": [...]}
    ledger: dict = field(default_factory=lambda: {"items": [], "seasonings": []})
    # Seasoning names the user moved into the main list (display only)
    promoted: list[str] = field(default_factory=list)
    unit_scheme: str = "canonical"
    preferences: dict = field(default_factory=dict)

    def recipe(self, ref: RecipeRef) -> Recipe | None:
        for r in self.recipes:
            if r.ref == ref:
                return r
        return None

    def entries_for(self, ref: RecipeRef) -> list[ScheduleEntry]:
        return [e for e in self.entries if e.recipe == ref]

    def servings_for(self, ref: RecipeRef) -> int:
        return sum(e.portion_multiplier for e in self.entries_for(ref))

    def entries_for_day(self, day: str) -> list[ScheduleEntry]:
        return [e for e in self.entries if e.day == day]


def normalize_day(raw: str) -> str:
    """Canonicalize a day name ('mon', 'MONDAY' -> 'Monday')."""
    text = str(raw).strip()
    if text.lower() == UNSCHEDULED.lower():
        return UNSCHEDULED
    for name in DAY_NAMES:
        if text.lower() in (name.lower(), name[:3].lower()):
            return name
    raise ValidationError(
        f"Unknown day '{raw}'. Use a day name or '{UNSCHEDULED}'."
    )

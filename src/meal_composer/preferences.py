"""Versioned preference record parsed from the onboarding survey."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

from meal_composer.errors import ValidationError

PREFERENCES_VERSION = 1

# Legacy survey question ids
SURVEY_KEYS = {
    "household_size": "2",
    "budget": "3",
    "skill_level": "4",
    "prep_time": "5",
    "dietary_restrictions": "6",
    "allergies": "7",
    "flavors": "8",
    "goals": "9",
}

# Answers meaning "nothing selected"
_NONE_ANSWERS = {"none", "no restrictions", ""}

PREP_TIME_MINUTES = {
    "quick": 30,
    "standard": 45,
    "extended": None,
}


def _as_list(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items = [v.strip() for v in value.split(",")]
    elif isinstance(value, (list, tuple)):
        items = [str(v).strip() for v in value]
    else:
        raise ValidationError(f"Expected a list of answers, got {value!r}")
    return [i for i in items if i.lower() not in _NONE_ANSWERS]


def _as_str(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
        if value is None:
            return None
    text = str(value).strip()
    return text or None


@dataclass
class Preferences:
    household_size: str | None = None
    budget: str | None = None
    skill_level: str | None = None
    prep_time: str | None = None
    dietary_restrictions: list[str] = field(default_factory=list)
    allergies: list[str] = field(default_factory=list)
    flavors: list[str] = field(default_factory=list)
    goals: list[str] = field(default_factory=list)
    favored_ingredients: list[str] = field(default_factory=list)
    excluded_ingredients: list[str] = field(default_factory=list)
    version: int = PREFERENCES_VERSION

    @property
    def max_minutes(self) -> int | None:
        """Time budget per recipe derived from the prep-time answer."""
        if not self.prep_time:
            return None
        head = self.prep_time.split()[0].lower()
        return PREP_TIME_MINUTES.get(head)

    def has_restriction(self, name: str) -> bool:
        name = name.lower()
        return any(name in r.lower() for r in self.dietary_restrictions)

    def has_allergy(self, name: str) -> bool:
        name = name.lower()
        return any(name in a.lower() for a in self.allergies)

    def summary(self) -> str:
        """One-paragraph description handed to the recipe generator."""
        parts = []
        if self.household_size:
            parts.append(f"Cooking for: {self.household_size}")
        if self.skill_level:
            parts.append(f"Skill level: {self.skill_level}")
        if self.prep_time:
            parts.append(f"Prep time: {self.prep_time}")
        if self.dietary_restrictions:
            parts.append(f"Dietary restrictions: {', '.join(self.dietary_restrictions)}")
        if self.allergies:
            parts.append(f"Allergies (never use): {', '.join(self.allergies)}")
        if self.flavors:
            parts.append(f"Preferred flavors: {', '.join(self.flavors)}")
        if self.goals:
            parts.append(f"Goals: {', '.join(self.goals)}")
        if self.favored_ingredients:
            parts.append(f"Favored ingredients: {', '.join(self.favored_ingredients)}")
        if self.excluded_ingredients:
            parts.append(f"Excluded ingredients (never use): {', '.join(self.excluded_ingredients)}")
        return "\n".join(parts) if parts else "No stated preferences."

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_survey(cls, raw: dict | None) -> Preferences:
        """Build a record from a versioned dict or the legacy numbered survey."""
        if not raw:
            return cls()
        if not isinstance(raw, dict):
            raise ValidationError(f"Preferences must be a mapping, got {type(raw).__name__}")

        if "version" in raw:
            version = raw["version"]
            if version != PREFERENCES_VERSION:
                raise ValidationError(f"Unsupported preferences version: {version!r}")
            return cls(
                household_size=_as_str(raw.get("household_size")),
                budget=_as_str(raw.get("budget")),
                skill_level=_as_str(raw.get("skill_level")),
                prep_time=_as_str(raw.get("prep_time")),
                dietary_restrictions=_as_list(raw.get("dietary_restrictions")),
                allergies=_as_list(raw.get("allergies")),
                flavors=_as_list(raw.get("flavors")),
                goals=_as_list(raw.get("goals")),
                favored_ingredients=_as_list(raw.get("favored_ingredients")),
                excluded_ingredients=_as_list(raw.get("excluded_ingredients")),
            )

        return cls(
            household_size=_as_str(raw.get(SURVEY_KEYS["household_size"])),
            budget=_as_str(raw.get(SURVEY_KEYS["budget"])),
            skill_level=_as_str(raw.get(SURVEY_KEYS["skill_level"])),
            prep_time=_as_str(raw.get(SURVEY_KEYS["prep_time"])),
            dietary_restrictions=_as_list(raw.get(SURVEY_KEYS["dietary_restrictions"])),
            allergies=_as_list(raw.get(SURVEY_KEYS["allergies"])),
            flavors=_as_list(raw.get(SURVEY_KEYS["flavors"])),
            goals=_as_list(raw.get(SURVEY_KEYS["goals"])),
            favored_ingredients=_as_list(raw.get("favored_ingredients")),
            excluded_ingredients=_as_list(raw.get("excluded_ingredients")),
        )

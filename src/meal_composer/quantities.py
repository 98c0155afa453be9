"""Quantity parsing, unit keys, and ingredient classification."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from fractions import Fraction

logger = logging.getLogger(__name__)

UNIT_SCHEMES = ("canonical", "exact")

# Canonical unit -> (singular, plural) display forms
CANONICAL_UNITS: dict[str, tuple[str, str]] = {
    "cup": ("cup", "cups"),
    "tbsp": ("tbsp", "tbsp"),
    "tsp": ("tsp", "tsp"),
    "fl oz": ("fl oz", "fl oz"),
    "oz": ("oz", "oz"),
    "lb": ("lb", "lbs"),
    "g": ("g", "g"),
    "kg": ("kg", "kg"),
    "ml": ("ml", "ml"),
    "l": ("l", "l"),
    "pint": ("pint", "pints"),
    "quart": ("quart", "quarts"),
    "gallon": ("gallon", "gallons"),
    "can": ("can", "cans"),
    "clove": ("clove", "cloves"),
    "slice": ("slice", "slices"),
    "piece": ("piece", "pieces"),
    "bunch": ("bunch", "bunches"),
    "head": ("head", "heads"),
    "package": ("package", "packages"),
    "jar": ("jar", "jars"),
    "bag": ("bag", "bags"),
    "box": ("box", "boxes"),
    "pinch": ("pinch", "pinches"),
    "dash": ("dash", "dashes"),
    "each": ("each", "each"),
    "large": ("large", "large"),
    "medium": ("medium", "medium"),
    "small": ("small", "small"),
}

UNIT_ALIASES: dict[str, str] = {
    "cup": "cup",
    "cups": "cup",
    "c": "cup",
    "tablespoon": "tbsp",
    "tablespoons": "tbsp",
    "tbsp": "tbsp",
    "tbs": "tbsp",
    "tb": "tbsp",
    "teaspoon": "tsp",
    "teaspoons": "tsp",
    "tsp": "tsp",
    "tspn": "tsp",
    "ts": "tsp",
    "fl oz": "fl oz",
    "fluid ounce": "fl oz",
    "fluid ounces": "fl oz",
    "ounce": "oz",
    "ounces": "oz",
    "oz": "oz",
    "pound": "lb",
    "pounds": "lb",
    "lb": "lb",
    "lbs": "lb",
    "gram": "g",
    "grams": "g",
    "g": "g",
    "gs": "g",
    "kilogram": "kg",
    "kilograms": "kg",
    "kg": "kg",
    "kgs": "kg",
    "milliliter": "ml",
    "milliliters": "ml",
    "millilitre": "ml",
    "millilitres": "ml",
    "ml": "ml",
    "mls": "ml",
    "liter": "l",
    "liters": "l",
    "litre": "l",
    "litres": "l",
    "l": "l",
    "pint": "pint",
    "pints": "pint",
    "pt": "pint",
    "pts": "pint",
    "quart": "quart",
    "quarts": "quart",
    "qt": "quart",
    "qts": "quart",
    "gallon": "gallon",
    "gallons": "gallon",
    "gal": "gallon",
    "gals": "gallon",
    "can": "can",
    "cans": "can",
    "clove": "clove",
    "cloves": "clove",
    "slice": "slice",
    "slices": "slice",
    "piece": "piece",
    "pieces": "piece",
    "bunch": "bunch",
    "bunches": "bunch",
    "head": "head",
    "heads": "head",
    "package": "package",
    "packages": "package",
    "pkg": "package",
    "jar": "jar",
    "jars": "jar",
    "bag": "bag",
    "bags": "bag",
    "box": "box",
    "boxes": "box",
    "pinch": "pinch",
    "pinches": "pinch",
    "dash": "dash",
    "dashes": "dash",
    "each": "each",
    "ea": "each",
    "large": "large",
    "lrg": "large",
    "lge": "large",
    "lg": "large",
    "medium": "medium",
    "med": "medium",
    "md": "medium",
    "small": "small",
    "sm": "small",
}

SEASONING_KEYWORDS: tuple[str, ...] = (
    "salt",
    "pepper",
    "paprika",
    "cumin",
    "turmeric",
    "cinnamon",
    "nutmeg",
    "oregano",
    "basil",
    "thyme",
    "rosemary",
    "curry",
    "chili powder",
    "garlic powder",
    "onion powder",
    "cayenne",
    "garam masala",
    "italian seasoning",
    "cajun seasoning",
    "allspice",
    "red pepper flakes",
)

# Names that contain a seasoning keyword but are shopped as regular items
NON_SEASONING_TERMS: tuple[str, ...] = (
    "bell pepper",
    "sweet pepper",
    "peppers",
    "pepperoni",
    "butter",
    "saltine",
)

EXCLUDED_ITEMS = frozenset(
    {
        "water",
        "cold water",
        "warm water",
        "hot water",
        "boiling water",
        "ice water",
        "tap water",
    }
)

# Words left alone when building singular name keys
_INVARIANT_WORDS = frozenset(
    {"hummus", "couscous", "asparagus", "molasses", "swiss", "brussels", "grits", "oats"}
)

_VULGAR_FRACTIONS = {
    "½": "1/2",
    "⅓": "1/3",
    "⅔": "2/3",
    "¼": "1/4",
    "¾": "3/4",
    "⅕": "1/5",
    "⅛": "1/8",
    "⅜": "3/8",
    "⅝": "5/8",
    "⅞": "7/8",
}

_NUMBER_RE = re.compile(
    r"^(?P<lead>\d+(?:\.\d+)?|\.\d+)"
    r"(?:\s+(?P<num>\d+)/(?P<den>\d+)|/(?P<frac_den>\d+))?"
)


@dataclass(frozen=True)
class ParsedQuantity:
    amount: Fraction | None
    unit: str


def _expand_vulgar_fractions(text: str) -> str:
    for char, frac in _VULGAR_FRACTIONS.items():
        if char in text:
            # "1½" -> "1 1/2", "½" -> " 1/2"
            text = re.sub(rf"(\d){char}", rf"\1 {frac}", text)
            text = text.replace(char, f" {frac}")
    return text.strip()


def parse_quantity(raw: str | None) -> ParsedQuantity:
    """Split '<number> <unit>' into an exact amount and the unit text.

    When no leading number is found the amount is None and the whole
    trimmed string is the unit ("to taste").
    """
    text = _expand_vulgar_fractions(str(raw or "").strip())
    m = _NUMBER_RE.match(text)
    if not m:
        return ParsedQuantity(None, text)

    if m.group("frac_den") is not None:
        den = int(m.group("frac_den"))
        if den == 0 or "." in m.group("lead"):
            return ParsedQuantity(None, text)
        amount = Fraction(int(m.group("lead")), den)
    else:
        amount = Fraction(m.group("lead"))
        if m.group("num") is not None:
            den = int(m.group("den"))
            if den == 0:
                return ParsedQuantity(None, text)
            amount += Fraction(int(m.group("num")), den)

    return ParsedQuantity(amount, text[m.end():].strip())


def format_amount(amount: Fraction | int) -> str:
    """Render an amount exactly: plain decimal when it terminates, else a fraction."""
    value = Fraction(amount)
    sign = "-" if value < 0 else ""
    value = abs(value)

    den = value.denominator
    twos = fives = 0
    while den % 2 == 0:
        den //= 2
        twos += 1
    while den % 5 == 0:
        den //= 5
        fives += 1

    if den == 1:
        places = max(twos, fives)
        digits = str(int(value * 10**places))
        if places == 0:
            return sign + digits
        digits = digits.rjust(places + 1, "0")
        return f"{sign}{digits[:-places]}.{digits[-places:]}"

    whole, rem = divmod(value.numerator, value.denominator)
    if whole:
        return f"{sign}{whole} {rem}/{value.denominator}"
    return f"{sign}{rem}/{value.denominator}"


def format_quantity(amount: Fraction, unit: str) -> str:
    return f"{format_amount(amount)} {unit}".strip()


def _check_scheme(scheme: str) -> None:
    if scheme not in UNIT_SCHEMES:
        raise ValueError(f"Unknown unit scheme '{scheme}'. Valid: {', '.join(UNIT_SCHEMES)}")


def canonical_unit(unit: str | None) -> str:
    """Map a unit onto its canonical alias, or its lowercased text if unknown."""
    if not unit:
        return ""
    u = " ".join(unit.lower().strip().rstrip(".").split())
    return UNIT_ALIASES.get(u, u)


def unit_key(unit: str | None, scheme: str = "canonical") -> str:
    """Consolidation key for a unit under the given scheme."""
    _check_scheme(scheme)
    if scheme == "exact":
        return (unit or "").strip()
    return canonical_unit(unit)


def display_unit(unit: str | None, amount: Fraction, scheme: str = "canonical") -> str:
    """Unit text for rendering; canonical units agree in number with the amount."""
    _check_scheme(scheme)
    raw = (unit or "").strip()
    if scheme == "exact":
        return raw
    forms = CANONICAL_UNITS.get(canonical_unit(raw))
    if forms is None:
        return raw
    singular, plural = forms
    return singular if abs(amount) <= 1 else plural


def normalize_name(name: str) -> str:
    return name.lower().strip()


def _singular(word: str) -> str:
    if word in _INVARIANT_WORDS or len(word) <= 3:
        return word
    if word.endswith("ies") and len(word) > 4:
        return word[:-3] + "y"
    if word.endswith(("oes", "ches", "shes", "xes", "sses")):
        return word[:-2]
    if word.endswith("s") and not word.endswith(("ss", "us", "is")):
        return word[:-1]
    return word


def name_key(name: str, scheme: str = "canonical") -> str:
    """Identity key for an ingredient name ('Eggs' and 'egg' share one)."""
    _check_scheme(scheme)
    base = normalize_name(name)
    if scheme == "exact":
        return base
    words = base.split()
    if not words:
        return ""
    words[-1] = _singular(words[-1])
    return " ".join(words)


def is_seasoning(
    name: str,
    keywords: tuple[str, ...] | list[str] | None = None,
    exceptions: tuple[str, ...] | list[str] | None = None,
) -> bool:
    """Classify an ingredient name as a spice, herb, or seasoning blend."""
    name_lower = normalize_name(name)
    for term in NON_SEASONING_TERMS if exceptions is None else exceptions:
        if term in name_lower:
            return False
    for kw in SEASONING_KEYWORDS if keywords is None else keywords:
        if kw in name_lower:
            return True
    return False


def is_excluded(name: str) -> bool:
    """Items never put on a shopping list (tap water and its variants)."""
    return " ".join(normalize_name(name).split()) in EXCLUDED_ITEMS

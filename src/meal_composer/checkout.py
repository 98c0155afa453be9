"""Cart line items for the delivery partner's shopping-list link."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from meal_composer.collaborators import CartLinkBuilder
from meal_composer.errors import CollaboratorError, MealComposerError, ValidationError
from meal_composer.ledger import Ledger, LedgerEntry
from meal_composer.models import MealPlan
from meal_composer.quantities import display_unit, format_amount, name_key

logger = logging.getLogger(__name__)

DEFAULT_UNIT = "count"
LINK_EXPIRY_DAYS = 1


def _line_item(entry: LedgerEntry, unit_scheme: str) -> dict:
    unit = display_unit(entry.unit, entry.amount, unit_scheme) or DEFAULT_UNIT
    quantity = float(entry.amount)
    return {
        "name": entry.display_name,
        "quantity": quantity,
        "unit": unit,
        "display_text": f"{format_amount(entry.amount)} {unit} {entry.display_name}",
        "line_item_measurements": [{"quantity": quantity, "unit": unit}],
        "filters": {"brand_filters": [], "health_filters": []},
    }


def build_line_items(
    plan: MealPlan,
    seasoning_keywords: Iterable[str] | None = None,
    non_seasoning_terms: Iterable[str] | None = None,
) -> list[dict]:
    """Unchecked items, plus unchecked seasonings the user promoted."""
    ledger = Ledger.from_serialized(
        plan.ledger, plan.unit_scheme, seasoning_keywords, non_seasoning_terms
    )
    promoted = {name_key(n, plan.unit_scheme) for n in plan.promoted}

    def ordered(entries: dict) -> list[LedgerEntry]:
        return sorted(entries.values(), key=lambda e: (e.display_name.lower(), e.unit.lower()))

    items = [e for e in ordered(ledger.items) if not e.checked]
    items += [
        e
        for e in ordered(ledger.seasonings)
        if not e.checked and name_key(e.display_name, plan.unit_scheme) in promoted
    ]
    return [_line_item(e, plan.unit_scheme) for e in items]


def build_checkout_payload(
    plan: MealPlan,
    title: str | None = None,
    linkback_url: str | None = None,
    **ledger_options,
) -> dict:
    """Shopping-list request body for the delivery partner."""
    return {
        "title": title or f"Meal plan for week of {plan.week_of.isoformat()}",
        "link_type": "shopping_list",
        "expires_in": LINK_EXPIRY_DAYS,
        "instructions": [
            "These ingredients are for your weekly meal plan",
            "Feel free to adjust quantities based on your preferences",
        ],
        "line_items": build_line_items(plan, **ledger_options),
        "landing_page_configuration": {
            "partner_linkback_url": linkback_url or "",
            "enable_pantry_items": True,
        },
    }


def build_checkout_link(plan: MealPlan, builder: CartLinkBuilder, **ledger_options) -> str:
    line_items = build_line_items(plan, **ledger_options)
    if not line_items:
        raise ValidationError(f"Nothing left to buy for plan {plan.id}")
    try:
        link = builder.build_link(line_items)
    except MealComposerError:
        raise
    except Exception as e:
        raise CollaboratorError(f"Checkout link request failed: {e}") from e
    logger.info("Checkout link for %d items: %s", len(line_items), link)
    return link

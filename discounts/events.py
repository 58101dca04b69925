"""
Events published by the discount engine.

Events are named in past tense and carry everything a subscriber needs, so
nobody has to query the catalog back. Prices travel as strings to keep them
exact and JSON-friendly.
"""

from decimal import Decimal
from typing import Any, Optional

from discounts.event_bus import Event

SOURCE = "discount-engine"


class EventTypes:
    """Event type names."""
    DISCOUNT_APPLIED = "DiscountApplied"
    DISCOUNT_CLEARED = "DiscountCleared"
    PASS_COMPLETED = "DiscountPassCompleted"
    PASS_FAILED = "DiscountPassFailed"


def _price(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


def discount_applied(
    product_id: str,
    product_name: str,
    rule_priority: int,
    discount_percent: float,
    regular_price: Decimal,
    sale_price: Decimal,
) -> Event:
    """Published when a rule's discount is written to a product."""
    return Event(
        event_type=EventTypes.DISCOUNT_APPLIED,
        source=SOURCE,
        payload={
            "product_id": product_id,
            "product_name": product_name,
            "rule_priority": rule_priority,
            "discount_percent": discount_percent,
            "regular_price": _price(regular_price),
            "sale_price": _price(sale_price),
        },
    )


def discount_cleared(
    product_id: str,
    product_name: str,
    reason: str,
    previous_sale_price: Optional[Decimal],
) -> Event:
    """
    Published when an engine discount is removed.

    `reason` is one of "no_match", "excluded", "out_of_stock".
    """
    return Event(
        event_type=EventTypes.DISCOUNT_CLEARED,
        source=SOURCE,
        payload={
            "product_id": product_id,
            "product_name": product_name,
            "reason": reason,
            "previous_sale_price": _price(previous_sale_price),
        },
    )


def pass_completed(summary: dict[str, Any]) -> Event:
    """Published at the end of a full pass with the pass counters."""
    return Event(
        event_type=EventTypes.PASS_COMPLETED,
        source=SOURCE,
        payload=summary,
    )


def pass_failed(error: str) -> Event:
    """Published when a pass aborts on a catalog failure."""
    return Event(
        event_type=EventTypes.PASS_FAILED,
        source=SOURCE,
        payload={"error": error},
    )

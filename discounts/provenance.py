"""
Provenance markers.

A provenance marker is the per-product fact proving that the engine, not a
person, set the current sale price. Two earlier generations of the rule system
stored it under other keys. Those keys are still recognized when reading and
are deleted whenever the engine touches a product, but never written.

Lookup order is explicit: current key first, then the legacy keys from newest
to oldest.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError

from catalog.protocols import Catalog
from discounts.models import Provenance, Rule

logger = logging.getLogger("provenance")

CURRENT_MARKER = "_wcad_applied_discount_rule"
LEGACY_MARKERS = (
    "_wc_applied_discount_rule",
    "_bdo_applied_discount_rule",
)
ALL_MARKERS = (CURRENT_MARKER,) + LEGACY_MARKERS


def find_marker(catalog: Catalog, product_id: str) -> Optional[tuple[str, Any]]:
    """
    Return (key, value) of the first non-empty marker, or None.

    Empty values (empty dict, empty string) count as absent.
    """
    for key in ALL_MARKERS:
        value = catalog.get_fact(product_id, key)
        if value:
            return key, value
    return None


def has_any_marker(catalog: Catalog, product_id: str) -> bool:
    return find_marker(catalog, product_id) is not None


def has_legacy_marker(catalog: Catalog, product_id: str) -> bool:
    return any(catalog.get_fact(product_id, key) for key in LEGACY_MARKERS)


def read_current(catalog: Catalog, product_id: str) -> Optional[Provenance]:
    """
    Parse the current marker.

    A malformed record reads as None so the next application overwrites it.
    """
    value = catalog.get_fact(product_id, CURRENT_MARKER)
    if not value:
        return None
    try:
        return Provenance.model_validate(value)
    except ValidationError:
        logger.warning(f"Malformed provenance on {product_id}: {value!r}")
        return None


def write_marker(catalog: Catalog, product_id: str, rule: Rule, applied_at: datetime) -> Provenance:
    """Record `rule` as the source of the sale price and drop legacy markers."""
    provenance = Provenance(
        rule_priority=rule.priority,
        discount_percent=rule.discount_percent,
        applied_at=applied_at,
    )
    catalog.set_fact(product_id, CURRENT_MARKER, provenance.model_dump(mode="json"))
    for key in LEGACY_MARKERS:
        catalog.delete_fact(product_id, key)
    return provenance


def clear_markers(catalog: Catalog, product_id: str) -> None:
    for key in ALL_MARKERS:
        catalog.delete_fact(product_id, key)

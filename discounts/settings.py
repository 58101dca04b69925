"""
Discount settings stored in the catalog as options.

Two options drive the engine:
- wcad_discount_rules: list of rule dicts (priority, min_age, discount,
  active, respect_manual)
- wcad_excluded_categories: list of category ids

Earlier generations of the rule system stored the same data under other
option names; `migrate_legacy_settings` copies it over once when the current
option is still empty.

Admin input is coerced at save time (`sanitize_rules`,
`sanitize_categories`). The engine validates again when loading its snapshot
and drops, rather than guesses at, any rule that is still invalid.
"""

import logging
import math
from typing import Any, Callable, Iterable

from pydantic import ValidationError

from catalog.protocols import Catalog
from discounts.errors import InvalidRuleError
from discounts.models import PassError, Rule

logger = logging.getLogger("discount_settings")

RULES_OPTION = "wcad_discount_rules"
CATEGORIES_OPTION = "wcad_excluded_categories"
LEGACY_RULES_OPTIONS = ("wc_discount_rules", "bdo_discount_rules")
LEGACY_CATEGORIES_OPTIONS = ("wc_excluded_categories", "bdo_excluded_categories")

_MISSING = object()


# =============================================================================
# Coercion helpers
# =============================================================================

def _absint(value: Any) -> int:
    """Absolute integer; anything unparseable becomes 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return abs(int(number))


def _floatval(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _boolval(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ("", "0", "false", "no", "off")
    return bool(value)


def _entries(raw: Any) -> list:
    """Rules arrive as a list, or as an index-keyed dict from form posts."""
    if isinstance(raw, dict):
        return list(raw.values())
    if isinstance(raw, (list, tuple)):
        return list(raw)
    return []


# =============================================================================
# Sanitization (configuration boundary)
# =============================================================================

def sanitize_rules(raw_rules: Any) -> list[dict[str, Any]]:
    """
    Coerce admin-submitted rules into their stored shape.

    Missing fields take defaults (0, 0, 0.0, inactive, not respecting manual
    discounts). Discounts are clamped to [0, 100] and ages are made
    non-negative, so a stored rule can never produce a negative price.
    """
    sanitized = []
    for raw in _entries(raw_rules):
        if not isinstance(raw, dict):
            logger.warning(f"Ignoring malformed rule entry: {raw!r}")
            continue
        discount = _floatval(raw.get("discount", raw.get("discount_percent", 0)))
        sanitized.append({
            "priority": _absint(raw.get("priority", 0)),
            "min_age": _absint(raw.get("min_age", raw.get("min_age_days", 0))),
            "discount": min(max(discount, 0.0), 100.0),
            "active": _boolval(raw.get("active", False)),
            "respect_manual": _boolval(raw.get("respect_manual", False)),
        })
    return sanitized


def sanitize_categories(raw_ids: Any) -> list[int]:
    """Category ids as non-negative ints, duplicates removed, order kept."""
    seen: list[int] = []
    for raw in _entries(raw_ids):
        category_id = _absint(raw)
        if category_id not in seen:
            seen.append(category_id)
    return seen


def save_rules(catalog: Catalog, raw_rules: Any) -> list[dict[str, Any]]:
    rules = sanitize_rules(raw_rules)
    catalog.set_option(RULES_OPTION, rules)
    logger.info(f"Saved {len(rules)} discount rules")
    return rules


def save_excluded_categories(catalog: Catalog, raw_ids: Any) -> list[int]:
    categories = sanitize_categories(raw_ids)
    catalog.set_option(CATEGORIES_OPTION, categories)
    logger.info(f"Saved {len(categories)} excluded categories")
    return categories


# =============================================================================
# Legacy migration
# =============================================================================

def _migrate_option(
    catalog: Catalog,
    current: str,
    legacy_names: Iterable[str],
    sanitize: Callable[[Any], list],
) -> bool:
    if catalog.get_option(current, []):
        return False
    for legacy in legacy_names:
        value = catalog.get_option(legacy, _MISSING)
        if value is not _MISSING:
            catalog.set_option(current, sanitize(value))
            logger.info(f"Migrated option '{legacy}' to '{current}'")
            return True
    return False


def migrate_legacy_settings(catalog: Catalog) -> list[str]:
    """
    Copy settings from superseded option names into the current ones.

    Only runs for a current option that is empty; the first legacy option
    that exists wins. Migrated values go through the same sanitization as an
    admin save. Legacy options are left in place.

    Returns:
        Names of the current options that were filled
    """
    migrated = []
    if _migrate_option(catalog, RULES_OPTION, LEGACY_RULES_OPTIONS, sanitize_rules):
        migrated.append(RULES_OPTION)
    if _migrate_option(catalog, CATEGORIES_OPTION, LEGACY_CATEGORIES_OPTIONS, sanitize_categories):
        migrated.append(CATEGORIES_OPTION)
    return migrated


# =============================================================================
# Engine snapshot
# =============================================================================

def load_rules(catalog: Catalog) -> tuple[list[Rule], list[PassError]]:
    """
    Parse the stored rules.

    Returns:
        (valid rules in stored order, one PassError per rule dropped)
    """
    rules: list[Rule] = []
    errors: list[PassError] = []
    for index, raw in enumerate(_entries(catalog.get_option(RULES_OPTION, []))):
        try:
            rules.append(Rule.model_validate(raw))
        except ValidationError as e:
            error = InvalidRuleError(index, f"{e.error_count()} validation error(s)")
            logger.warning(f"Dropping invalid {error}: {raw!r}")
            errors.append(PassError(product_id=None, reason=str(error)))
    return rules, errors


def load_excluded_categories(catalog: Catalog) -> frozenset[int]:
    return frozenset(_absint(raw) for raw in _entries(catalog.get_option(CATEGORIES_OPTION, [])))

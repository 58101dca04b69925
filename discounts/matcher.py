"""
Rule matcher.

Given rules sorted by priority, picks the single rule that applies to a
product. The first match wins even when a later rule would give a bigger
discount: priority, not generosity, decides.
"""

import logging
from typing import Iterable, Optional

from discounts.models import Rule

logger = logging.getLogger("rule_matcher")


def sort_rules(rules: Iterable[Rule]) -> list[Rule]:
    """Ascending priority; rules sharing a priority keep their stored order."""
    return sorted(rules, key=lambda rule: rule.priority)


def match_rule(
    rules: list[Rule],
    age_days: int,
    has_manual_discount: bool,
    excluded: bool,
) -> Optional[Rule]:
    """
    Select the rule for a product.

    Args:
        rules: Rules already sorted with `sort_rules`
        age_days: Product age
        has_manual_discount: Product carries a sale price set by hand
        excluded: Product is excluded from automatic discounts

    Returns:
        The matched rule, or None
    """
    if excluded:
        return None

    for rule in rules:
        if not rule.active:
            continue
        if rule.respect_manual and has_manual_discount:
            logger.debug(f"Rule {rule.priority} respects manual discounts, skipping")
            continue
        if age_days >= rule.min_age_days:
            return rule

    return None

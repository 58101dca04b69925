"""
Discount statistics for the admin dashboard.

Counts are taken over published, in-stock products only: out-of-stock products
never carry an engine discount after a pass, so including them would only
dilute the percentages.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP

from catalog.models import ExclusionFlag, ProductStatus, StockStatus
from catalog.protocols import Catalog
from discounts.exclusions import get_exclusion_flag
from discounts.models import DiscountStats, RuleUsage
from discounts.provenance import read_current
from discounts.settings import load_rules

logger = logging.getLogger("discount_stats")

CENT = Decimal("0.01")


def compute_discount_stats(catalog: Catalog) -> DiscountStats:
    """
    Build the catalog-wide discount report.

    A product counts as discounted when it carries the current provenance
    marker and a sale price. Excluded counts only individually flagged
    products; category exclusions show up in the settings instead.
    """
    products = catalog.list_products(
        status=ProductStatus.PUBLISH,
        stock_status=StockStatus.IN_STOCK,
    )

    excluded = 0
    discounted = 0
    total_discount = Decimal("0")
    usage: dict[int, RuleUsage] = {}

    for product in products:
        if get_exclusion_flag(catalog, product.id) == ExclusionFlag.YES:
            excluded += 1

        provenance = read_current(catalog, product.id)
        if provenance is None or not product.sale_price:
            continue

        discounted += 1
        if product.regular_price:
            total_discount += product.regular_price - product.sale_price

        entry = usage.setdefault(
            provenance.rule_priority,
            RuleUsage(discount_percent=provenance.discount_percent),
        )
        entry.count += 1

    average = Decimal("0")
    if discounted:
        average = (total_discount / discounted).quantize(CENT, rounding=ROUND_HALF_UP)

    rules, _ = load_rules(catalog)
    stats = DiscountStats(
        total_products=len(products),
        excluded_products=excluded,
        discounted_products=discounted,
        total_discount_amount=total_discount,
        average_discount=average,
        rules_usage=dict(sorted(usage.items())),
        active_rules=sum(1 for rule in rules if rule.active),
        configured_rules=len(rules),
    )
    logger.debug(f"Computed discount stats: {discounted}/{len(products)} discounted")
    return stats

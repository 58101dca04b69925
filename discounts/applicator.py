"""
Price applicator.

Turns a matcher decision into catalog writes:
- matched rule: write the discounted price and the provenance marker
- no rule: if (and only if) the engine owns the current sale price, remove it

Manual discounts are never touched: without a provenance marker the engine
has no claim on the sale price.

Re-applying the rule a product already carries writes nothing, so repeated
passes over an unchanged catalog are write-free.
"""

import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Callable, Optional

from catalog.models import Product
from catalog.protocols import Catalog
from discounts.errors import DataIncompleteError
from discounts.event_bus import EventBus
from discounts.events import discount_applied, discount_cleared
from discounts.models import Rule
from discounts import provenance

logger = logging.getLogger("price_applicator")

CENT = Decimal("0.01")


class ApplyOutcome(str, Enum):
    """What `PriceApplicator.apply` did to a product."""
    APPLIED = "applied"       # discount written
    UNCHANGED = "unchanged"   # discount already in place
    CLEARED = "cleared"       # engine discount removed
    UNTOUCHED = "untouched"   # nothing to do (no discount, or a manual one)


class ClearReason(str, Enum):
    NO_MATCH = "no_match"
    EXCLUDED = "excluded"
    OUT_OF_STOCK = "out_of_stock"


def compute_sale_price(regular_price: Decimal, discount_percent: float) -> Decimal:
    """
    Discounted price rounded half-up to the cent.

    The percentage goes through str() so 33.33 is exactly 33.33, not its
    binary float approximation.
    """
    percent = Decimal(str(discount_percent))
    discount_amount = regular_price * percent / Decimal(100)
    return (regular_price - discount_amount).quantize(CENT, rounding=ROUND_HALF_UP)


class PriceApplicator:
    """
    Writes (or reverts) engine discounts on catalog products.

    Example:
        applicator = PriceApplicator(catalog)
        applicator.apply(product, rule)   # ApplyOutcome.APPLIED
        applicator.apply(product, None)   # ApplyOutcome.CLEARED
    """

    def __init__(
        self,
        catalog: Catalog,
        clock: Optional[Callable[[], datetime]] = None,
        event_bus: Optional[EventBus] = None,
    ):
        """
        Args:
            catalog: Catalog to write to
            clock: Timestamp source for provenance records
            event_bus: Optional bus receiving DiscountApplied/DiscountCleared
        """
        self.catalog = catalog
        self.clock = clock or datetime.now
        self.event_bus = event_bus

    def apply(
        self,
        product: Product,
        rule: Optional[Rule],
        clear_reason: ClearReason = ClearReason.NO_MATCH,
    ) -> ApplyOutcome:
        """
        Apply the matcher's decision to a product.

        Raises:
            DataIncompleteError: a rule matched but the product has no
                regular price
        """
        if rule is None:
            if self.remove_auto_discount(product, clear_reason):
                return ApplyOutcome.CLEARED
            return ApplyOutcome.UNTOUCHED
        return self.apply_rule(product, rule)

    def apply_rule(self, product: Product, rule: Rule) -> ApplyOutcome:
        if not product.regular_price:
            raise DataIncompleteError(product.id, "missing regular price")

        sale_price = compute_sale_price(product.regular_price, rule.discount_percent)

        if self._already_applied(product, rule, sale_price):
            logger.debug(f"{product.id} already carries rule {rule.priority}")
            return ApplyOutcome.UNCHANGED

        self.catalog.set_sale_price(product.id, sale_price)
        self.catalog.set_effective_price(product.id, sale_price)
        provenance.write_marker(self.catalog, product.id, rule, self.clock())

        logger.info(
            f"Applied rule {rule.priority} ({rule.discount_percent}%) to {product.name}: "
            f"${product.regular_price} -> ${sale_price}"
        )
        if self.event_bus is not None:
            self.event_bus.publish(discount_applied(
                product_id=product.id,
                product_name=product.name,
                rule_priority=rule.priority,
                discount_percent=rule.discount_percent,
                regular_price=product.regular_price,
                sale_price=sale_price,
            ))
        return ApplyOutcome.APPLIED

    def remove_auto_discount(
        self,
        product: Product,
        reason: ClearReason = ClearReason.NO_MATCH,
    ) -> bool:
        """
        Remove an engine discount, leaving manual sale prices alone.

        Returns:
            True if the product carried any provenance marker and was reset
        """
        if not provenance.has_any_marker(self.catalog, product.id):
            return False

        self.catalog.set_sale_price(product.id, None)
        if product.regular_price is not None:
            self.catalog.set_effective_price(product.id, product.regular_price)
        provenance.clear_markers(self.catalog, product.id)

        logger.info(f"Cleared automatic discount on {product.name} ({reason.value})")
        if self.event_bus is not None:
            self.event_bus.publish(discount_cleared(
                product_id=product.id,
                product_name=product.name,
                reason=reason.value,
                previous_sale_price=product.sale_price,
            ))
        return True

    def _already_applied(self, product: Product, rule: Rule, sale_price: Decimal) -> bool:
        current = provenance.read_current(self.catalog, product.id)
        if current is None or not current.same_rule(rule):
            return False
        if provenance.has_legacy_marker(self.catalog, product.id):
            return False
        return product.sale_price == sale_price and product.price == sale_price

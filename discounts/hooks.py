"""
Catalog hooks.

Plain methods a host calls from its own event points: a product save, a
settings save, a scheduler tick. Nothing here registers itself anywhere.
"""

import logging
from typing import Any, Optional

from catalog.models import ExclusionFlag, StockStatus
from discounts.applicator import ClearReason
from discounts.errors import ConcurrentPassError
from discounts.exclusions import EXCLUDE_FLAG_KEY, resolve_exclusion
from discounts.models import PassResult
from discounts.service import AutoDiscountService
from discounts.settings import load_excluded_categories

logger = logging.getLogger("discount_hooks")


class DiscountHooks:
    """
    Example:
        hooks = DiscountHooks(service)
        hooks.on_product_saved("prod-001", exclude=True)
        hooks.on_scheduled_tick()
    """

    def __init__(self, service: AutoDiscountService):
        self.service = service

    def on_product_saved(self, product_id: str, exclude: Optional[bool] = None) -> bool:
        """
        React to a product edit.

        Records the exclusion flag when the edit form submitted one, then
        removes the engine discount if the product is now excluded or out of
        stock. Holds the product's lock like a pass does.

        Returns:
            True if an engine discount was removed
        """
        with self.service.orchestrator.product_lock(product_id):
            product = self.service.catalog.get_product(product_id)
            if product is None:
                logger.warning(f"Saved product not found: {product_id}")
                return False

            if exclude is not None:
                self.service.catalog.set_fact(
                    product_id,
                    EXCLUDE_FLAG_KEY,
                    (ExclusionFlag.YES if exclude else ExclusionFlag.NO).value,
                )

            applicator = self.service.orchestrator.applicator
            excluded_categories = load_excluded_categories(self.service.catalog)
            if resolve_exclusion(self.service.catalog, product, excluded_categories):
                return applicator.remove_auto_discount(product, ClearReason.EXCLUDED)
            if product.stock_status == StockStatus.OUT_OF_STOCK:
                return applicator.remove_auto_discount(product, ClearReason.OUT_OF_STOCK)
            return False

    def on_rules_changed(self, raw_rules: Any) -> PassResult:
        self.service.update_rules(raw_rules)
        return self.service.run_full_pass()

    def on_excluded_categories_changed(self, raw_ids: Any) -> PassResult:
        self.service.update_excluded_categories(raw_ids)
        return self.service.run_full_pass()

    def on_scheduled_tick(self) -> Optional[PassResult]:
        """Run the periodic pass; a tick that overlaps a running pass is dropped."""
        try:
            return self.service.run_full_pass()
        except ConcurrentPassError as e:
            logger.warning(f"Scheduled pass skipped: {e}")
            return None

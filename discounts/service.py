"""
Auto discount service.

The single object a host builds at startup and hands to whatever drives the
engine (scheduler, admin API, CLI, catalog hooks). It owns the orchestrator
and therefore the pass lock, so every entry point shares one lock.

Design decisions:
- Explicit construction, no module-level singleton
- Settings writes go through the sanitizers in discounts.settings
- Exclusion management clears the engine discount immediately when a product
  becomes excluded instead of waiting for the next pass
"""

import logging
from datetime import datetime
from typing import Any, Callable, Iterable, Optional

from catalog.models import ExclusionFlag, Product
from catalog.protocols import Catalog
from discounts import settings
from discounts.applicator import ClearReason
from discounts.config import EngineConfig
from discounts.event_bus import EventBus
from discounts.exclusions import EXCLUDE_FLAG_KEY, get_exclusion_flag
from discounts.models import DiscountStats, PassResult, PreviewResult
from discounts.orchestrator import BatchOrchestrator, PassState
from discounts.stats import compute_discount_stats

logger = logging.getLogger("auto_discount_service")


class AutoDiscountService:
    """
    Facade over the discount engine.

    Example:
        service = AutoDiscountService(CatalogStore())
        service.update_rules([{"priority": 1, "min_age": 90, "discount": 25, "active": True}])
        result = service.run_full_pass()
    """

    def __init__(
        self,
        catalog: Catalog,
        config: Optional[EngineConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.catalog = catalog
        self.config = config or EngineConfig()
        self.event_bus = event_bus
        self.orchestrator = BatchOrchestrator(
            catalog,
            config=self.config,
            clock=clock,
            event_bus=event_bus,
        )

    @property
    def state(self) -> PassState:
        return self.orchestrator.state

    @property
    def last_result(self) -> Optional[PassResult]:
        return self.orchestrator.last_result

    # =========================================================================
    # Engine operations
    # =========================================================================

    def run_full_pass(self) -> PassResult:
        return self.orchestrator.run_full_pass()

    def cleanup_out_of_stock(self) -> int:
        return self.orchestrator.cleanup_out_of_stock()

    def preview(self, min_age_days: int, respect_manual: bool = False) -> PreviewResult:
        return self.orchestrator.preview(min_age_days, respect_manual)

    def get_stats(self) -> DiscountStats:
        return compute_discount_stats(self.catalog)

    # =========================================================================
    # Settings
    # =========================================================================

    def get_rules(self) -> list[dict[str, Any]]:
        """Stored rules, as saved."""
        return self.catalog.get_option(settings.RULES_OPTION, [])

    def get_excluded_categories(self) -> list[int]:
        return sorted(settings.load_excluded_categories(self.catalog))

    def update_rules(self, raw_rules: Any) -> list[dict[str, Any]]:
        return settings.save_rules(self.catalog, raw_rules)

    def update_excluded_categories(self, raw_ids: Any) -> list[int]:
        return settings.save_excluded_categories(self.catalog, raw_ids)

    def migrate_legacy_settings(self) -> list[str]:
        return settings.migrate_legacy_settings(self.catalog)

    # =========================================================================
    # Product exclusion
    # =========================================================================

    def is_product_excluded(self, product_id: str) -> bool:
        return get_exclusion_flag(self.catalog, product_id) == ExclusionFlag.YES

    def set_product_exclusion(self, product_id: str, excluded: bool) -> Optional[Product]:
        """
        Flag a product as excluded (or explicitly not excluded).

        Excluding a product removes its engine discount right away; a manual
        sale price is left as it is. Runs under the product's lock, so a pass
        cannot write the product between the flag change and the removal.

        Returns:
            The product, or None if it does not exist
        """
        with self.orchestrator.product_lock(product_id):
            product = self.catalog.get_product(product_id)
            if product is None:
                return None

            flag = ExclusionFlag.YES if excluded else ExclusionFlag.NO
            self.catalog.set_fact(product_id, EXCLUDE_FLAG_KEY, flag.value)
            logger.info(f"Set exclusion flag of {product_id} to '{flag.value}'")

            if excluded:
                self.orchestrator.applicator.remove_auto_discount(product, ClearReason.EXCLUDED)
        return self.catalog.get_product(product_id)

    def bulk_set_exclusion(self, product_ids: Iterable[str], excluded: bool) -> int:
        """
        Returns:
            Number of products updated (unknown ids are ignored)
        """
        updated = 0
        for product_id in product_ids:
            if self.set_product_exclusion(product_id, excluded) is not None:
                updated += 1
        logger.info(f"Bulk {'excluded' if excluded else 'included'} {updated} products")
        return updated

    def list_excluded_products(self) -> list[Product]:
        """Products individually flagged as excluded, in catalog order."""
        return [
            product
            for product in self.catalog.list_products()
            if self.is_product_excluded(product.id)
        ]

"""
Tests for AutoDiscountService and DiscountHooks.
"""

import threading
from decimal import Decimal
from pathlib import Path

from catalog.data_store import CatalogStore
from catalog.models import StockStatus
from discounts.age import CREATION_DATE_KEY
from discounts.config import EngineConfig
from discounts.errors import ConcurrentPassError
from discounts.hooks import DiscountHooks
from discounts.orchestrator import PassState
from discounts.provenance import has_any_marker
from discounts.service import AutoDiscountService
from discounts.settings import CATEGORIES_OPTION


class GatedCatalogStore(CatalogStore):
    """Catalog that holds a pass inside one product's evaluation until released."""

    def __init__(self, data_dir: Path, product_id: str):
        super().__init__(data_dir=data_dir)
        self.product_id = product_id
        self.entered = threading.Event()
        self.release = threading.Event()

    def get_fact(self, product_id, key):
        if product_id == self.product_id and key == CREATION_DATE_KEY and not self.entered.is_set():
            self.entered.set()
            self.release.wait(timeout=5)
        return super().get_fact(product_id, key)


class TestProductExclusion:
    """Tests for exclusion management."""

    def test_exclude_clears_engine_discount(self, service: AutoDiscountService, data_store: CatalogStore):
        """Test that excluding a discounted product clears it at once."""
        service.run_full_pass()

        product = service.set_product_exclusion("prod-001", True)

        assert product.sale_price is None
        assert product.price == Decimal("149.99")
        assert service.is_product_excluded("prod-001")
        assert not has_any_marker(data_store, "prod-001")

    def test_exclude_keeps_manual_discount(self, service: AutoDiscountService):
        """Test that excluding a manually discounted product keeps its price."""
        product = service.set_product_exclusion("prod-003", True)
        assert product.sale_price == Decimal("80.00")

    def test_include(self, service: AutoDiscountService, data_store: CatalogStore):
        """Test that un-excluding writes an explicit "no"."""
        service.set_product_exclusion("prod-005", False)
        assert data_store.get_fact("prod-005", "_wcad_exclude_from_discounts") == "no"
        assert not service.is_product_excluded("prod-005")

    def test_unknown_product(self, service: AutoDiscountService):
        assert service.set_product_exclusion("nonexistent-id", True) is None

    def test_bulk(self, service: AutoDiscountService):
        """Test bulk exclusion; unknown ids are not counted."""
        updated = service.bulk_set_exclusion(["prod-001", "prod-002", "nonexistent-id"], True)

        assert updated == 2
        assert [p.id for p in service.list_excluded_products()] == ["prod-001", "prod-002", "prod-005"]


class TestServiceSettings:
    """Tests for settings access through the service."""

    def test_get_settings(self, service: AutoDiscountService):
        assert len(service.get_rules()) == 3
        assert service.get_excluded_categories() == [99]

    def test_update_excluded_categories(self, service: AutoDiscountService, data_store: CatalogStore):
        assert service.update_excluded_categories(["11", 11, "12"]) == [11, 12]
        assert data_store.get_option(CATEGORIES_OPTION) == [11, 12]

    def test_state(self, service: AutoDiscountService):
        assert service.state == PassState.IDLE
        assert service.last_result is None
        service.run_full_pass()
        assert service.last_result.applied == 3


class TestDiscountHooks:
    """Tests for the host-facing hooks."""

    def test_product_saved_with_exclusion(self, hooks: DiscountHooks, service: AutoDiscountService):
        """Test that saving a product with the exclude box ticked clears it."""
        service.run_full_pass()

        assert hooks.on_product_saved("prod-001", exclude=True)
        assert service.catalog.get_product("prod-001").sale_price is None

    def test_product_saved_out_of_stock(self, hooks: DiscountHooks, service: AutoDiscountService, data_store: CatalogStore):
        """Test that saving a product that went out of stock clears it."""
        service.run_full_pass()
        data_store.update_stock_status("prod-008", StockStatus.OUT_OF_STOCK)

        assert hooks.on_product_saved("prod-008")
        assert data_store.get_product("prod-008").sale_price is None

    def test_product_saved_no_change(self, hooks: DiscountHooks, service: AutoDiscountService):
        """Test that an ordinary save leaves the engine discount."""
        service.run_full_pass()

        assert not hooks.on_product_saved("prod-001", exclude=False)
        assert service.catalog.get_product("prod-001").sale_price == Decimal("112.49")

    def test_product_saved_unknown(self, hooks: DiscountHooks):
        assert not hooks.on_product_saved("nonexistent-id", exclude=True)

    def test_rules_changed_runs_pass(self, hooks: DiscountHooks, data_store: CatalogStore):
        """Test that saving rules recomputes prices."""
        result = hooks.on_rules_changed([
            {"priority": "1", "min_age": "10", "discount": "50", "active": "1"},
        ])

        assert result.applied == 5  # router, hub, keyboard, lamp, cable
        assert data_store.get_product("prod-002").sale_price == Decimal("19.95")

    def test_excluded_categories_changed_runs_pass(self, hooks: DiscountHooks, data_store: CatalogStore):
        """Test that excluding category 10 clears the router and the cable."""
        hooks.on_scheduled_tick()

        result = hooks.on_excluded_categories_changed([10])

        assert result.cleared == 2
        assert data_store.get_product("prod-001").sale_price is None
        assert data_store.get_product("prod-012").sale_price is None

    def test_scheduled_tick_rejected(self, service: AutoDiscountService, monkeypatch):
        """Test that an overlapping tick is dropped, not raised."""
        def busy():
            raise ConcurrentPassError("A discount pass is already running")

        monkeypatch.setattr(service.orchestrator, "run_full_pass", busy)

        assert DiscountHooks(service).on_scheduled_tick() is None


class TestExclusionDuringPass:
    """Exclusion changes and a running pass never interleave on one product."""

    def run_with_pass_held(self, data_dir: Path, clock, edit):
        store = GatedCatalogStore(data_dir, "prod-001")
        service = AutoDiscountService(store, config=EngineConfig(batch_size=4), clock=clock)
        pass_thread = threading.Thread(target=service.run_full_pass)
        pass_thread.start()
        assert store.entered.wait(timeout=5)

        # The pass has decided prod-001 is not excluded and not yet written it
        edit_thread = threading.Thread(target=edit, args=(service,))
        edit_thread.start()
        edit_thread.join(timeout=0.2)
        waited = edit_thread.is_alive()

        store.release.set()
        pass_thread.join(timeout=5)
        edit_thread.join(timeout=5)
        return store, waited

    def test_exclusion_waits_for_product(self, data_dir: Path, clock):
        """Test that excluding mid-pass still leaves the product undiscounted."""
        store, waited = self.run_with_pass_held(
            data_dir, clock, lambda service: service.set_product_exclusion("prod-001", True),
        )

        assert waited
        assert store.get_product("prod-001").sale_price is None
        assert not has_any_marker(store, "prod-001")
        assert store.get_fact("prod-001", "_wcad_exclude_from_discounts") == "yes"

    def test_product_saved_waits_for_product(self, data_dir: Path, clock):
        """Test the same ordering through the product-save hook."""
        store, waited = self.run_with_pass_held(
            data_dir, clock, lambda service: DiscountHooks(service).on_product_saved("prod-001", exclude=True),
        )

        assert waited
        assert store.get_product("prod-001").sale_price is None
        assert not has_any_marker(store, "prod-001")

    def test_other_products_not_blocked(self, data_dir: Path, clock):
        """Test that a held product does not block edits to other products."""
        store, waited = self.run_with_pass_held(
            data_dir, clock, lambda service: service.set_product_exclusion("prod-002", True),
        )

        assert not waited
        assert store.get_product("prod-001").sale_price == Decimal("112.49")

"""
Tests for the CatalogStore.

These tests verify that the store loads the JSON fixtures and provides the
paging, fact and option operations the discount engine consumes.
"""

import json
from decimal import Decimal
from pathlib import Path

import pytest

from catalog.data_store import CatalogStore
from catalog.errors import CatalogAccessError
from catalog.models import StockStatus
from catalog.protocols import Catalog


class TestCatalogStoreProducts:
    """Tests for product queries."""

    def test_implements_catalog_protocol(self, data_store: CatalogStore):
        """Test that the store satisfies the engine's catalog interface."""
        assert isinstance(data_store, Catalog)

    def test_get_product(self, data_store: CatalogStore, router_product_id: str):
        """Test retrieving a product by ID."""
        product = data_store.get_product(router_product_id)

        assert product is not None
        assert product.id == router_product_id
        assert product.name == "Wireless Router X500"
        assert product.regular_price == Decimal("149.99")

    def test_get_nonexistent_product(self, data_store: CatalogStore):
        """Test that getting a nonexistent product returns None."""
        assert data_store.get_product("nonexistent-id") is None

    def test_get_products(self, data_store: CatalogStore):
        """Test retrieving all products."""
        assert len(data_store.get_products()) == 12

    def test_list_products_filters(self, data_store: CatalogStore):
        """Test filtering by status and stock status."""
        products = data_store.list_products(status="publish", stock_status="instock")

        ids = [p.id for p in products]
        assert len(ids) == 9
        assert "prod-006" not in ids  # out of stock
        assert "prod-010" not in ids  # draft

    def test_list_products_pages_are_stable(self, data_store: CatalogStore):
        """Test that consecutive pages cover every product exactly once."""
        first = data_store.list_products(status="publish", stock_status="instock", limit=4, offset=0)
        second = data_store.list_products(status="publish", stock_status="instock", limit=4, offset=4)
        third = data_store.list_products(status="publish", stock_status="instock", limit=4, offset=8)

        assert len(first) == 4
        assert len(second) == 4
        assert len(third) == 1
        ids = [p.id for p in first + second + third]
        assert len(set(ids)) == 9

    def test_find_product_ids_with_facts(self, data_store: CatalogStore):
        """Test finding out-of-stock products that carry a marker."""
        found = data_store.find_product_ids_with_facts(
            ["_wcad_applied_discount_rule", "_wc_applied_discount_rule"],
            status="publish",
            stock_status="outofstock",
        )
        assert found == ["prod-006"]

    def test_find_product_ids_by_fact(self, data_store: CatalogStore):
        """Test finding products by fact value."""
        assert data_store.find_product_ids_by_fact("_wcad_exclude_from_discounts", "yes") == ["prod-005"]

    def test_get_product_categories(self, data_store: CatalogStore, gift_card_product_id: str):
        """Test category lookup, including unknown products."""
        assert data_store.get_product_categories(gift_card_product_id) == {99}
        assert data_store.get_product_categories("nonexistent-id") == set()


class TestCatalogStoreWrites:
    """Tests for price, stock and fact mutations."""

    def test_set_prices(self, data_store: CatalogStore, router_product_id: str):
        """Test updating sale and effective prices (in-memory)."""
        data_store.set_sale_price(router_product_id, Decimal("100.00"))
        data_store.set_effective_price(router_product_id, Decimal("100.00"))

        product = data_store.get_product(router_product_id)
        assert product.sale_price == Decimal("100.00")
        assert product.price == Decimal("100.00")
        assert product.regular_price == Decimal("149.99")  # Other fields unchanged

    def test_set_manual_sale_price(self, data_store: CatalogStore, router_product_id: str):
        """Test that a manual sale price writes prices but no facts."""
        data_store.set_manual_sale_price(router_product_id, Decimal("99.00"))

        product = data_store.get_product(router_product_id)
        assert product.sale_price == Decimal("99.00")
        assert product.price == Decimal("99.00")
        assert data_store.get_facts(router_product_id) == {}

    def test_update_stock_status(self, data_store: CatalogStore, router_product_id: str):
        """Test simulating a stock transition."""
        data_store.update_stock_status(router_product_id, StockStatus.OUT_OF_STOCK)
        assert data_store.get_product(router_product_id).stock_status == "outofstock"

    def test_write_unknown_product(self, data_store: CatalogStore):
        """Test that writing to an unknown product is a catalog error."""
        with pytest.raises(CatalogAccessError):
            data_store.set_sale_price("nonexistent-id", Decimal("1.00"))

    def test_facts(self, data_store: CatalogStore, router_product_id: str):
        """Test fact set, get and delete."""
        data_store.set_fact(router_product_id, "color", "blue")
        assert data_store.get_fact(router_product_id, "color") == "blue"

        data_store.delete_fact(router_product_id, "color")
        assert data_store.get_fact(router_product_id, "color") is None

        # Deleting again is a no-op
        data_store.delete_fact(router_product_id, "color")

    def test_get_fact_returns_copy(self, data_store: CatalogStore, gift_card_product_id: str):
        """Test that mutating a returned fact does not change the store."""
        marker = data_store.get_fact(gift_card_product_id, "_wcad_applied_discount_rule")
        marker["rule_priority"] = 42

        stored = data_store.get_fact(gift_card_product_id, "_wcad_applied_discount_rule")
        assert stored["rule_priority"] == 1


class TestCatalogStoreOptions:
    """Tests for option storage."""

    def test_get_option(self, data_store: CatalogStore):
        """Test reading the stored rules option."""
        rules = data_store.get_option("wcad_discount_rules")
        assert len(rules) == 3
        assert data_store.get_option("wcad_excluded_categories") == [99]

    def test_missing_option_default(self, data_store: CatalogStore):
        """Test the default for a missing option."""
        assert data_store.get_option("missing") is None
        assert data_store.get_option("missing", []) == []
        assert not data_store.has_option("missing")

    def test_set_option(self, data_store: CatalogStore):
        """Test writing an option."""
        data_store.set_option("wcad_excluded_categories", [1, 2])
        assert data_store.get_option("wcad_excluded_categories") == [1, 2]


class TestCatalogStorePersistence:
    """Tests for loading failures, reload and save."""

    def test_missing_files_give_empty_catalog(self, tmp_path: Path):
        """Test that an empty data directory is an empty catalog."""
        store = CatalogStore(data_dir=tmp_path)
        assert store.get_products() == []
        assert store.get_option("wcad_discount_rules", []) == []

    def test_malformed_json_raises_catalog_error(self, tmp_path: Path):
        """Test that unreadable fixtures surface as CatalogAccessError."""
        (tmp_path / "products.json").write_text("{not json")
        store = CatalogStore(data_dir=tmp_path)

        with pytest.raises(CatalogAccessError):
            store.get_products()

    def test_invalid_product_raises_catalog_error(self, tmp_path: Path):
        """Test that a product failing validation surfaces as CatalogAccessError."""
        (tmp_path / "products.json").write_text(json.dumps([{"id": "x"}]))
        store = CatalogStore(data_dir=tmp_path)

        with pytest.raises(CatalogAccessError):
            store.get_products()

    def test_reload_discards_changes(self, data_store: CatalogStore, router_product_id: str):
        """Test that reload drops unsaved in-memory changes."""
        data_store.set_sale_price(router_product_id, Decimal("1.00"))
        data_store.reload()
        assert data_store.get_product(router_product_id).sale_price is None

    def test_save_round_trip(self, writable_data_dir: Path, router_product_id: str):
        """Test that saved prices and facts load back."""
        store = CatalogStore(data_dir=writable_data_dir)
        store.set_sale_price(router_product_id, Decimal("112.49"))
        store.set_fact(router_product_id, "_product_creation_date", "2024-01-01")
        store.save()

        reloaded = CatalogStore(data_dir=writable_data_dir)
        assert reloaded.get_product(router_product_id).sale_price == Decimal("112.49")
        assert reloaded.get_fact(router_product_id, "_product_creation_date") == "2024-01-01"
        assert reloaded.get_option("wcad_excluded_categories") == [99]

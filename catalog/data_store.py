"""
JSON-backed catalog store for the auto discounts engine.

This module provides a simple data access layer that reads products and
settings from JSON fixture files. In a real deployment the engine would sit on
top of the shop's catalog (posts + post meta, a product API, ...).

Design decisions:
- Fixtures are loaded lazily on first access
- Write operations update in-memory state; `save()` writes them back
- Per-product facts live in a separate key-value map, mirroring post meta
- All maps are guarded by a re-entrant lock so a threaded pass can write safely
- Any failure to read the fixtures surfaces as CatalogAccessError

Fixture layout:
    data/products.json   list of products, each with an optional "meta" object
    data/settings.json   object of named options (rules, excluded categories)
"""

import copy
import json
import logging
import threading
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from catalog.errors import CatalogAccessError
from catalog.models import Product

logger = logging.getLogger("catalog_store")


class CatalogStore:
    """
    In-memory catalog loaded from JSON fixtures.

    Implements the `catalog.protocols.Catalog` interface consumed by the
    discount engine, plus a few helpers used by demos and tests to simulate
    catalog-side changes (stock transitions, manual sale prices).
    """

    PRODUCTS_FILE = "products.json"
    SETTINGS_FILE = "settings.json"

    def __init__(self, data_dir: Optional[Path] = None):
        """
        Initialize the store.

        Args:
            data_dir: Directory containing the JSON fixtures.
                      Defaults to ./data relative to project root.
        """
        if data_dir is None:
            data_dir = Path(__file__).parent.parent / "data"

        self.data_dir = Path(data_dir)
        self._lock = threading.RLock()

        # In-memory caches - loaded lazily
        self._products: Optional[dict[str, Product]] = None
        self._meta: Optional[dict[str, dict[str, Any]]] = None
        self._options: Optional[dict[str, Any]] = None

    # =========================================================================
    # Data Loading (lazy)
    # =========================================================================

    def _load_json(self, filename: str, default: Any) -> Any:
        filepath = self.data_dir / filename
        if not filepath.exists():
            return default
        try:
            with open(filepath, "r") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CatalogAccessError(f"Cannot read {filepath}: {e}") from e

    def _ensure_products_loaded(self):
        with self._lock:
            if self._products is not None:
                return
            data = self._load_json(self.PRODUCTS_FILE, [])
            products: dict[str, Product] = {}
            meta: dict[str, dict[str, Any]] = {}
            try:
                for raw in data:
                    raw = dict(raw)
                    product_meta = raw.pop("meta", None) or {}
                    product = Product(**raw)
                    products[product.id] = product
                    meta[product.id] = dict(product_meta)
            except ValidationError as e:
                raise CatalogAccessError(f"Invalid product fixture: {e}") from e
            self._products = products
            self._meta = meta
            logger.debug(f"Loaded {len(products)} products from {self.data_dir}")

    def _ensure_options_loaded(self):
        with self._lock:
            if self._options is None:
                self._options = dict(self._load_json(self.SETTINGS_FILE, {}))

    def _require_product(self, product_id: str) -> Product:
        product = self._products.get(product_id)
        if product is None:
            raise CatalogAccessError(f"Unknown product: {product_id}", product_id=product_id)
        return product

    # =========================================================================
    # Product Queries
    # =========================================================================

    def get_product(self, product_id: str) -> Optional[Product]:
        """Get a product by ID."""
        self._ensure_products_loaded()
        with self._lock:
            return self._products.get(product_id)

    def get_products(self) -> list[Product]:
        """Get all products, in fixture order."""
        self._ensure_products_loaded()
        with self._lock:
            return list(self._products.values())

    def list_products(
        self,
        status: Optional[str] = None,
        stock_status: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Product]:
        """
        Return one page of products matching the filters.

        Ordering is fixture order, which is stable across calls. A `limit`
        of None returns everything after `offset`.
        """
        self._ensure_products_loaded()
        with self._lock:
            matching = [
                p for p in self._products.values()
                if (status is None or p.status == status)
                and (stock_status is None or p.stock_status == stock_status)
            ]
        end = None if limit is None else offset + limit
        return matching[offset:end]

    def find_product_ids_with_facts(
        self,
        keys: Iterable[str],
        status: Optional[str] = None,
        stock_status: Optional[str] = None,
    ) -> list[str]:
        """
        Find products carrying a non-empty value for any of the given fact keys.

        Used by the out-of-stock cleanup sweep to find products that still
        hold a provenance marker.
        """
        keys = list(keys)
        found = []
        for product in self.list_products(status=status, stock_status=stock_status):
            with self._lock:
                product_meta = self._meta.get(product.id, {})
                if any(product_meta.get(key) for key in keys):
                    found.append(product.id)
        return found

    def find_product_ids_by_fact(self, key: str, value: Any) -> list[str]:
        """Find products whose fact `key` equals `value`."""
        self._ensure_products_loaded()
        with self._lock:
            return [
                product_id for product_id, product_meta in self._meta.items()
                if product_meta.get(key) == value
            ]

    def get_product_categories(self, product_id: str) -> set[int]:
        """Get the category ids of a product (empty for unknown products)."""
        product = self.get_product(product_id)
        if product is None:
            return set()
        return set(product.category_ids)

    # =========================================================================
    # Price Mutations
    # =========================================================================

    def _update_product(self, product_id: str, **changes) -> Product:
        self._ensure_products_loaded()
        with self._lock:
            product = self._require_product(product_id)
            updated = product.model_copy(update=changes)
            self._products[product_id] = updated
            return updated

    def set_sale_price(self, product_id: str, price: Optional[Decimal]) -> None:
        """Set or clear (None) the sale price."""
        self._update_product(product_id, sale_price=price)

    def set_effective_price(self, product_id: str, price: Optional[Decimal]) -> None:
        """Set the effective price shown to shoppers."""
        self._update_product(product_id, price=price)

    def set_regular_price(self, product_id: str, price: Optional[Decimal]) -> Product:
        """Change the regular price (catalog-side edit, not used by the engine)."""
        return self._update_product(product_id, regular_price=price)

    def set_manual_sale_price(self, product_id: str, price: Decimal) -> Product:
        """
        Simulate a merchant entering a sale price by hand.

        Only the prices change; no provenance marker is written, which is
        exactly what makes the discount "manual" to the engine.
        """
        return self._update_product(product_id, sale_price=price, price=price)

    def update_stock_status(self, product_id: str, stock_status: str) -> Product:
        """Simulate a stock transition (e.g. the last unit sold)."""
        return self._update_product(product_id, stock_status=stock_status)

    # =========================================================================
    # Facts (per-product key-value meta)
    # =========================================================================

    def get_fact(self, product_id: str, key: str) -> Any:
        """Get a fact value, or None if the product has no such fact."""
        self._ensure_products_loaded()
        with self._lock:
            value = self._meta.get(product_id, {}).get(key)
            return copy.deepcopy(value)

    def get_facts(self, product_id: str) -> dict[str, Any]:
        """Get a copy of all facts of a product."""
        self._ensure_products_loaded()
        with self._lock:
            return copy.deepcopy(self._meta.get(product_id, {}))

    def set_fact(self, product_id: str, key: str, value: Any) -> None:
        self._ensure_products_loaded()
        with self._lock:
            self._require_product(product_id)
            self._meta.setdefault(product_id, {})[key] = copy.deepcopy(value)

    def delete_fact(self, product_id: str, key: str) -> None:
        """Delete a fact. Deleting a missing fact is a no-op."""
        self._ensure_products_loaded()
        with self._lock:
            self._require_product(product_id)
            self._meta.get(product_id, {}).pop(key, None)

    # =========================================================================
    # Options (settings)
    # =========================================================================

    def get_option(self, name: str, default: Any = None) -> Any:
        self._ensure_options_loaded()
        with self._lock:
            if name not in self._options:
                return default
            return copy.deepcopy(self._options[name])

    def has_option(self, name: str) -> bool:
        self._ensure_options_loaded()
        with self._lock:
            return name in self._options

    def set_option(self, name: str, value: Any) -> None:
        self._ensure_options_loaded()
        with self._lock:
            self._options[name] = copy.deepcopy(value)

    def get_options(self) -> dict[str, Any]:
        self._ensure_options_loaded()
        with self._lock:
            return copy.deepcopy(self._options)

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def reload(self):
        """
        Force reload all data from JSON files.

        Discards in-memory changes that were not saved.
        """
        with self._lock:
            self._products = None
            self._meta = None
            self._options = None

    def save(self) -> None:
        """Write products, facts and options back to the fixture files."""
        self._ensure_products_loaded()
        self._ensure_options_loaded()
        with self._lock:
            products = []
            for product_id, product in self._products.items():
                raw = product.model_dump(mode="json")
                raw["meta"] = self._meta.get(product_id, {})
                products.append(raw)
            options = dict(self._options)
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            with open(self.data_dir / self.PRODUCTS_FILE, "w") as f:
                json.dump(products, f, indent=2, default=str)
            with open(self.data_dir / self.SETTINGS_FILE, "w") as f:
                json.dump(options, f, indent=2, default=str)
        except OSError as e:
            raise CatalogAccessError(f"Cannot write to {self.data_dir}: {e}") from e
        logger.info(f"Saved {len(products)} products to {self.data_dir}")

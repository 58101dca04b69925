"""
Catalog boundary for the auto discounts engine.

This package contains what the engine needs to know about the shop's catalog:
- Product model (prices, stock, status, categories, listing date)
- The narrow Catalog protocol the engine consumes
- A JSON-backed CatalogStore implementing it for tests, CLI and demo API
"""

from catalog.models import Product, ProductStatus, StockStatus, ExclusionFlag
from catalog.protocols import Catalog
from catalog.data_store import CatalogStore
from catalog.errors import CatalogAccessError

__all__ = [
    "Product",
    "ProductStatus",
    "StockStatus",
    "ExclusionFlag",
    "Catalog",
    "CatalogStore",
    "CatalogAccessError",
]

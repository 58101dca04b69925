"""
Catalog models for the auto discounts engine.

These models describe products the way the discount engine sees them. The real
catalog (WooCommerce, Shopify, an ERP...) has a much richer schema; the engine
only needs prices, stock and publication status, categories and the original
listing date.

Design decisions:
- Using Pydantic for validation and serialization
- Prices are Decimal, never float, so rounding is exact to the cent
- Per-product facts (creation date, exclusion flag, provenance markers) are NOT
  fields here; they live in the catalog's key-value meta map
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


# =============================================================================
# Enums
# =============================================================================

class ProductStatus(str, Enum):
    """Publication status. Only published products are discounted."""
    PUBLISH = "publish"
    DRAFT = "draft"
    PRIVATE = "private"
    PENDING = "pending"


class StockStatus(str, Enum):
    """Stock status values as stored by the catalog."""
    IN_STOCK = "instock"
    OUT_OF_STOCK = "outofstock"
    ON_BACKORDER = "onbackorder"


class ExclusionFlag(str, Enum):
    """
    Per-product exclusion flag.

    A product without the fact at all is "unset", which behaves like "no".
    """
    YES = "yes"
    NO = "no"


# =============================================================================
# Product
# =============================================================================

class Product(BaseModel):
    """
    Product entity from the catalog.

    `price` is the effective price shown to shoppers: the sale price when one
    is set, the regular price otherwise.
    """
    id: str = Field(..., description="Unique product identifier")
    name: str = Field(..., description="Product display name")
    status: ProductStatus = Field(default=ProductStatus.PUBLISH)
    stock_status: StockStatus = Field(default=StockStatus.IN_STOCK)
    regular_price: Optional[Decimal] = Field(default=None, ge=0)
    sale_price: Optional[Decimal] = Field(default=None, ge=0)
    price: Optional[Decimal] = Field(default=None, ge=0, description="Effective price")
    category_ids: list[int] = Field(default_factory=list)
    date_created: Optional[date] = Field(
        default=None,
        description="Original listing date, used as the creation-date fallback"
    )

    model_config = ConfigDict(use_enum_values=True)

    @property
    def is_published(self) -> bool:
        return self.status == ProductStatus.PUBLISH

    @property
    def in_stock(self) -> bool:
        return self.stock_status == StockStatus.IN_STOCK

    @property
    def is_on_sale(self) -> bool:
        """True if a sale price is set (zero counts as no sale)."""
        return bool(self.sale_price)

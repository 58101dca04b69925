"""Catalog protocol consumed by the discount engine."""

from decimal import Decimal
from typing import Any, Iterable, Optional, Protocol, runtime_checkable

from catalog.models import Product


@runtime_checkable
class Catalog(Protocol):
    """
    Narrow key-value-per-entity view of a product catalog.

    The engine never needs the catalog's full schema: it pages products, reads
    categories, writes two prices and reads/writes per-product facts. Any
    backing store that offers these operations can host the engine.

    Implementations raise `discounts.errors.CatalogAccessError` when the
    underlying store cannot be reached.
    """

    def list_products(
        self,
        status: Optional[str] = None,
        stock_status: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Product]:
        """Return one page of products in a stable order; None filters match all."""
        ...

    def find_product_ids_with_facts(
        self,
        keys: Iterable[str],
        status: Optional[str] = None,
        stock_status: Optional[str] = None,
    ) -> list[str]:
        """Return ids of products carrying a non-empty value for any of `keys`."""
        ...

    def get_product(self, product_id: str) -> Optional[Product]:
        ...

    def get_product_categories(self, product_id: str) -> set[int]:
        ...

    def set_sale_price(self, product_id: str, price: Optional[Decimal]) -> None:
        ...

    def set_effective_price(self, product_id: str, price: Optional[Decimal]) -> None:
        ...

    def get_fact(self, product_id: str, key: str) -> Any:
        ...

    def set_fact(self, product_id: str, key: str, value: Any) -> None:
        ...

    def delete_fact(self, product_id: str, key: str) -> None:
        ...

    def get_option(self, name: str, default: Any = None) -> Any:
        ...

    def set_option(self, name: str, value: Any) -> None:
        ...

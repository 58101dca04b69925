"""
Exclusion resolver.

A product is excluded from automatic discounts when it is flagged individually
or when any of its categories is in the global exclusion set. Excluded products
must not keep an engine discount; the caller is responsible for clearing it.
"""

from typing import Iterable, Optional

from catalog.models import ExclusionFlag, Product
from catalog.protocols import Catalog

EXCLUDE_FLAG_KEY = "_wcad_exclude_from_discounts"


def is_excluded(
    category_ids: Iterable[int],
    exclusion_flag: Optional[str],
    excluded_categories: Iterable[int],
) -> bool:
    """Pure exclusion test."""
    if exclusion_flag == ExclusionFlag.YES:
        return True
    return not set(category_ids).isdisjoint(excluded_categories)


def get_exclusion_flag(catalog: Catalog, product_id: str) -> Optional[str]:
    """Read the product's exclusion flag: "yes", "no", or None when unset."""
    return catalog.get_fact(product_id, EXCLUDE_FLAG_KEY)


def resolve_exclusion(
    catalog: Catalog,
    product: Product,
    excluded_categories: Iterable[int],
) -> bool:
    """Decide exclusion for a catalog product."""
    return is_excluded(
        catalog.get_product_categories(product.id),
        get_exclusion_flag(catalog, product.id),
        excluded_categories,
    )

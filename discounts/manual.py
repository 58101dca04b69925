"""
Manual discount detector.

Closed-world rule: a sale price without any recognized provenance marker was
set by a person. There is no third state.
"""

from catalog.models import Product
from catalog.protocols import Catalog
from discounts.provenance import has_any_marker


def has_manual_discount(catalog: Catalog, product: Product) -> bool:
    if not product.is_on_sale:
        return False
    return not has_any_marker(catalog, product.id)

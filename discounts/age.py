"""
Product age calculator.

A product's age is counted from a creation-date fact cached on the product the
first time the engine sees it. Later edits to the listing date do not move
the anchor, so a product does not fall back below a rule's threshold because
someone republished it.
"""

import logging
from datetime import date, datetime
from typing import Callable, Optional

from catalog.models import Product
from catalog.protocols import Catalog
from discounts.errors import DataIncompleteError

logger = logging.getLogger("age_calculator")

CREATION_DATE_KEY = "_product_creation_date"
DATE_FORMAT = "%Y-%m-%d"


class AgeCalculator:
    """
    Computes product ages in whole days.

    Example:
        ages = AgeCalculator(catalog, clock=lambda: datetime(2024, 6, 1))
        ages.age_in_days(product)  # anchors the creation date on first call
    """

    def __init__(
        self,
        catalog: Catalog,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            catalog: Catalog holding the creation-date facts
            clock: Returns the current local time (defaults to datetime.now)
        """
        self.catalog = catalog
        self.clock = clock or datetime.now

    def creation_date(self, product: Product, persist: bool = True) -> date:
        """
        Return the anchored creation date of a product.

        If no fact exists yet, the product's listing date is used and, when
        `persist` is set, stored as the fact. Once stored, the listing date is
        never read again for this product.

        Raises:
            DataIncompleteError: no fact and no listing date, or an
                unparseable fact
        """
        stored = self.catalog.get_fact(product.id, CREATION_DATE_KEY)
        if stored:
            try:
                return datetime.strptime(str(stored), DATE_FORMAT).date()
            except ValueError:
                raise DataIncompleteError(product.id, f"unreadable creation date {stored!r}")

        if product.date_created is None:
            raise DataIncompleteError(product.id, "missing creation date")

        if persist:
            self.catalog.set_fact(
                product.id,
                CREATION_DATE_KEY,
                product.date_created.strftime(DATE_FORMAT),
            )
            logger.debug(f"Anchored creation date of {product.id} at {product.date_created}")
        return product.date_created

    def age_in_days(self, product: Product, persist: bool = True) -> int:
        """Age in days; a creation date in the future counts as age 0."""
        created = self.creation_date(product, persist=persist)
        today = self.clock().date()
        return max((today - created).days, 0)

"""
Error taxonomy for the discount engine.

- DataIncompleteError: one product cannot be evaluated; skip it and continue
- CatalogAccessError: the catalog failed; abort the pass
- ConcurrentPassError: a pass is already running; reject the new one
- InvalidRuleError: a stored rule fails validation; drop it from the snapshot
- PreviewError: preview failed; report a generic message, never partial results

An empty rule set is not an error: the pass returns without doing anything.
"""

from typing import Optional

from catalog.errors import CatalogAccessError


class DiscountEngineError(Exception):
    """Base class for discount engine errors."""


class DataIncompleteError(DiscountEngineError):
    """A product lacks data the engine needs (regular price, creation date...)."""

    def __init__(self, product_id: str, reason: str):
        super().__init__(f"{product_id}: {reason}")
        self.product_id = product_id
        self.reason = reason


class ConcurrentPassError(DiscountEngineError):
    """Raised when a pass is requested while another one is running."""


class InvalidRuleError(DiscountEngineError):
    """A configured rule cannot be parsed into a valid Rule."""

    def __init__(self, index: int, reason: str):
        super().__init__(f"rule #{index}: {reason}")
        self.index = index
        self.reason = reason


class PreviewError(DiscountEngineError):
    """Preview could not be computed."""

    GENERIC_MESSAGE = "An error occurred while computing the preview."

    def __init__(self, cause: Optional[BaseException] = None):
        super().__init__(self.GENERIC_MESSAGE)
        self.cause = cause


__all__ = [
    "DiscountEngineError",
    "DataIncompleteError",
    "CatalogAccessError",
    "ConcurrentPassError",
    "InvalidRuleError",
    "PreviewError",
]

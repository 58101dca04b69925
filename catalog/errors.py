"""Errors raised by catalog implementations."""


class CatalogAccessError(Exception):
    """
    The catalog could not be read or written.

    Fatal for a discount pass: the pass aborts and the error reaches the
    caller. Writes already made by earlier pages stay in place.
    """

    def __init__(self, message: str, product_id: str | None = None):
        super().__init__(message)
        self.product_id = product_id

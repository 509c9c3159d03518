"""
Domain: marketplace error taxonomy.

Every expected outcome a caller can observe is a typed subclass of
MarketplaceError. Anything else reaching the API boundary is treated as an
unexpected fault.
"""

from __future__ import annotations


class MarketplaceError(Exception):
    """Base class for all expected marketplace failures."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(MarketplaceError):
    """Missing or malformed request fields. No state change."""


class InvalidValueError(ValidationError):
    """Coin value outside the configured mint bounds."""

    def __init__(self, value: int, minimum: int, maximum: int) -> None:
        self.value = value
        self.minimum = minimum
        self.maximum = maximum
        super().__init__(f"The amount should be between ${minimum} and ${maximum}!")


class NotFoundError(MarketplaceError):
    """Referenced coin (or client) does not exist."""


class AlreadyOwnedError(MarketplaceError):
    """Purchase attempted on a coin that already has an owner."""

    def __init__(self, coin_id: int) -> None:
        self.coin_id = coin_id
        super().__init__("Coin already owned")


class CapacityExhaustedError(MarketplaceError):
    """No unused bit-triple is left to mint."""


class ConstraintViolation(MarketplaceError):
    """A write collided with a storage-level uniqueness constraint."""


class StorageError(MarketplaceError):
    """Storage failed in a way the marketplace does not expect."""


class StorageTimeoutError(StorageError, TimeoutError):
    """A storage call exceeded its timeout."""


__all__ = [
    "MarketplaceError",
    "ValidationError",
    "InvalidValueError",
    "NotFoundError",
    "AlreadyOwnedError",
    "CapacityExhaustedError",
    "ConstraintViolation",
    "StorageError",
    "StorageTimeoutError",
]

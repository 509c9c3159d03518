"""
Domain: Transaction ledger entries.

Rules implemented here:
- A transaction is appended exactly once per successful purchase and never
  changes afterwards.
- amount equals the coin's value at the time of sale.
- buyer is required; seller is absent when the coin had no prior owner.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .coin import BitTriple
from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    Immutable record of one ownership transfer.

    The name and coin fields are denormalized read-model data; a transaction
    returned straight from a purchase carries only the ids.
    """

    transaction_id: int
    coin_id: int
    amount: int
    occurred_at: datetime
    buyer_id: int
    seller_id: Optional[int] = None

    # Read-model fields (joined from clients and coins)
    buyer_name: Optional[str] = None
    seller_name: Optional[str] = None
    bits: Optional[BitTriple] = None
    coin_value: Optional[int] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("occurred_at", self.occurred_at)
        if self.amount <= 0:
            raise ValueError("Transaction amount must be positive")


__all__ = ["Transaction"]

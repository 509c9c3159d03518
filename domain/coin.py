"""
Domain: Coin entity and its bit-triple identity.

Rules implemented here:
- A coin is identified mathematically by an ordered triple of distinct ranks
  (bit1 < bit2 < bit3), each at least 1.
- No two coins ever share a triple. That invariant is global, so it is enforced
  by allocation and by storage; this module only guarantees each triple is
  well-formed.
- value is fixed at mint time.
- owner_id moves from None to a client exactly once, on purchase.

This module contains only pure domain entities: no I/O, no database, no frameworks.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Optional

from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True, order=True)
class BitTriple:
    """
    Strictly increasing triple of bit ranks.

    Ordering is lexicographic on (bit1, bit2, bit3), which is the order
    allocation searches in.
    """

    bit1: int
    bit2: int
    bit3: int

    def __post_init__(self) -> None:
        if not 1 <= self.bit1 < self.bit2 < self.bit3:
            raise ValueError(
                f"Bit triple must satisfy 1 <= bit1 < bit2 < bit3, "
                f"got ({self.bit1}, {self.bit2}, {self.bit3})"
            )

    def __iter__(self) -> Iterator[int]:
        return iter((self.bit1, self.bit2, self.bit3))

    def fits(self, max_bit: int) -> bool:
        """True if every rank lies within [1, max_bit]."""
        return self.bit3 <= max_bit

    def key(self) -> str:
        return f"{self.bit1}-{self.bit2}-{self.bit3}"


@dataclass(frozen=True, slots=True)
class Coin:
    """
    A minted coin as stored in the ledger.

    owner_name is denormalized from the owning client for listings and may be
    absent when the coin was loaded without the join.
    """

    coin_id: int
    bits: BitTriple
    value: int
    owner_id: Optional[int] = None
    owner_name: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.value <= 0:
            raise ValueError("Coin value must be positive")
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)

    @property
    def is_available(self) -> bool:
        """A coin can be bought iff nobody owns it yet."""

        return self.owner_id is None


__all__ = ["BitTriple", "Coin"]

"""
Domain: bit-triple allocation search (pure).

Rules implemented here:
- Candidates are all triples with 1 <= bit1 < bit2 < bit3 <= max_bit.
- The search walks candidates in lexicographic order and returns the FIRST one
  missing from the used-set snapshot. Given the same snapshot, every call
  returns the same triple.
- The result is only a candidate. Another mint may commit the same triple
  between the snapshot and the insert; storage uniqueness is the final arbiter
  and the caller retries on conflict.

Prefixes whose every completion is already used are skipped wholesale. This
keeps first-match semantics while avoiding a full cubic walk over a densely
used low range.
"""

from __future__ import annotations

from collections import Counter
from math import comb
from typing import Iterable

from .coin import BitTriple


class NoCapacityError(Exception):
    """Raised when every triple within max_bit is already used."""

    def __init__(self, max_bit: int, used: int):
        self.max_bit = max_bit
        self.used = used
        super().__init__(
            f"No unused bit triple within max_bit={max_bit} "
            f"({used} of {combination_capacity(max_bit)} used)"
        )


def combination_capacity(max_bit: int) -> int:
    """Number of distinct valid triples, C(max_bit, 3)."""

    if max_bit < 3:
        return 0
    return comb(max_bit, 3)


def has_available_combinations(used_count: int, max_bit: int) -> bool:
    return used_count < combination_capacity(max_bit)


def find_first_unused_triple(used: Iterable[BitTriple], max_bit: int) -> BitTriple:
    """
    Return the lexicographically smallest valid triple not in `used`.

    Args:
        used: Snapshot of every triple already issued. Triples beyond max_bit
            are ignored.
        max_bit: Inclusive upper bound on every rank.

    Returns:
        The first unused BitTriple.

    Raises:
        NoCapacityError: If all C(max_bit, 3) triples are taken.

    Example:
        find_first_unused_triple({BitTriple(1, 2, 3)}, max_bit=5)
        # BitTriple(1, 2, 4)
    """
    taken = {(t.bit1, t.bit2, t.bit3) for t in used if t.fits(max_bit)}

    by_first = Counter(b1 for b1, _, _ in taken)
    by_pair = Counter((b1, b2) for b1, b2, _ in taken)

    for b1 in range(1, max_bit - 1):
        if by_first[b1] >= comb(max_bit - b1, 2):
            continue
        for b2 in range(b1 + 1, max_bit):
            if by_pair[(b1, b2)] >= max_bit - b2:
                continue
            for b3 in range(b2 + 1, max_bit + 1):
                if (b1, b2, b3) not in taken:
                    return BitTriple(b1, b2, b3)

    raise NoCapacityError(max_bit=max_bit, used=len(taken))


__all__ = [
    "NoCapacityError",
    "combination_capacity",
    "has_available_combinations",
    "find_first_unused_triple",
]

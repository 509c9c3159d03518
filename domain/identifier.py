"""
Domain: coin identifier codec (pure).

Maps a bit-triple to the human-facing identifier shown next to each coin.

Contract:
- Deterministic: depends only on the triple, never on process state.
- Injective: distinct well-formed triples yield distinct identifiers.
- Independent of the configured MAX_BIT, so raising the bound later never
  changes an identifier already on display.

Encoding: the triple's rank in the combinatorial number system,
    rank = C(bit1 - 1, 1) + C(bit2 - 1, 2) + C(bit3 - 1, 3),
which is a bijection from strictly increasing positive triples onto the
non-negative integers. The rank is written in Crockford base32, left-padded to
RANK_WIDTH digits, behind IDENTIFIER_PREFIX.

Validation of ordering and range is the caller's job; BitTriple already
rejects malformed triples.
"""

from __future__ import annotations

from math import comb

from .coin import BitTriple

IDENTIFIER_PREFIX = "BS-"

# 32**6 covers every triple up to MAX_BIT ~ 1860; longer ranks just grow.
RANK_WIDTH = 6

_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_DIGIT_VALUES = {ch: i for i, ch in enumerate(_ALPHABET)}


def triple_rank(bits: BitTriple) -> int:
    """Position of `bits` in the combinatorial number system (0 for (1, 2, 3))."""

    return comb(bits.bit1 - 1, 1) + comb(bits.bit2 - 1, 2) + comb(bits.bit3 - 1, 3)


def _largest_base(rank: int, k: int, upper: int) -> int:
    """Largest c < upper with C(c, k) <= rank."""

    lo, hi = k - 1, upper - 1
    while lo < hi:
        mid = (lo + hi + 1) // 2
        if comb(mid, k) <= rank:
            lo = mid
        else:
            hi = mid - 1
    return lo


def triple_from_rank(rank: int) -> BitTriple:
    """Inverse of triple_rank."""

    if rank < 0:
        raise ValueError(f"Rank must be non-negative, got {rank}")

    upper = 3
    while comb(upper, 3) <= rank:
        upper *= 2

    c3 = _largest_base(rank, 3, upper + 1)
    rank -= comb(c3, 3)
    c2 = _largest_base(rank, 2, c3)
    rank -= comb(c2, 2)
    c1 = rank
    return BitTriple(c1 + 1, c2 + 1, c3 + 1)


def _to_base32(number: int) -> str:
    digits = []
    while number:
        number, remainder = divmod(number, 32)
        digits.append(_ALPHABET[remainder])
    return "".join(reversed(digits)).rjust(RANK_WIDTH, "0")


def encode(bits: BitTriple) -> str:
    """
    Compute the display identifier for a coin's bit-triple.

    Example:
        encode(BitTriple(1, 2, 3))  # "BS-000000"
        encode(BitTriple(1, 2, 4))  # "BS-000001"
    """

    return IDENTIFIER_PREFIX + _to_base32(triple_rank(bits))


def decode(identifier: str) -> BitTriple:
    """
    Recover the bit-triple behind an identifier.

    Accepts lower-case input. Raises ValueError for anything encode() could not
    have produced.
    """

    text = identifier.strip().upper()
    if not text.startswith(IDENTIFIER_PREFIX):
        raise ValueError(f"Identifier must start with {IDENTIFIER_PREFIX!r}: {identifier!r}")

    digits = text[len(IDENTIFIER_PREFIX):]
    if len(digits) < RANK_WIDTH:
        raise ValueError(f"Identifier is too short: {identifier!r}")
    if len(digits) > RANK_WIDTH and digits[0] == "0":
        raise ValueError(f"Identifier has redundant padding: {identifier!r}")

    rank = 0
    for ch in digits:
        value = _DIGIT_VALUES.get(ch)
        if value is None:
            raise ValueError(f"Invalid identifier character {ch!r} in {identifier!r}")
        rank = rank * 32 + value

    return triple_from_rank(rank)


__all__ = [
    "IDENTIFIER_PREFIX",
    "encode",
    "decode",
    "triple_rank",
    "triple_from_rank",
]

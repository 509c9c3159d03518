"""
Read-path filters and pagination for ledger queries.

Each filter object translates into a flat list of column predicates that are
ANDed together. Every optional field contributes zero or one predicate, so the
filter contract can be tested without touching storage. The ledger repository
applies predicates to the query builder by method name.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, List, Optional, Union

from domain.errors import ValidationError
from domain.time import parse_utc_datetime, start_of_day

DateBound = Union[date, datetime]

DEFAULT_COIN_PAGE_SIZE = 30
DEFAULT_TRANSACTION_PAGE_SIZE = 15
MAX_PAGE_SIZE = 100


@dataclass(frozen=True, slots=True)
class Predicate:
    """
    One condition on a listing view column.

    operator is the query-builder method name (eq, gte, lte, lt, ilike).
    value is already serialized for the wire.
    """
    column: str
    operator: str
    value: Any


@dataclass(frozen=True, slots=True)
class PageRequest:
    """1-based page number and page size."""
    page: int = 1
    limit: int = DEFAULT_COIN_PAGE_SIZE

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValidationError(f"page must be >= 1, got {self.page}")
        if not 1 <= self.limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}, got {self.limit}")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def last_index(self) -> int:
        """Inclusive end index for range-based pagination."""
        return self.offset + self.limit - 1


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def parse_date_bound(name: str, text: Optional[str]) -> Optional[DateBound]:
    """
    Parse a date filter from a query string.

    "2024-03-01" stays a calendar date; anything with a time part becomes a UTC
    datetime. Empty input means no bound.
    """
    if text is None or not text.strip():
        return None

    text = text.strip()
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        return parse_utc_datetime(text)
    except ValueError:
        raise ValidationError(f"Invalid {name}: {text!r}. Use YYYY-MM-DD or an ISO-8601 timestamp.")


def _lower_bound(bound: DateBound) -> str:
    if isinstance(bound, datetime):
        return bound.isoformat()
    return start_of_day(bound).isoformat()


@dataclass(frozen=True, slots=True)
class TransactionFilters:
    """
    Filter criteria for the transaction ledger.

    All fields optional; set fields combine with AND.
    - start_date / end_date: inclusive bounds on transaction_date. A calendar
      date as end_date covers that whole day.
    - min_value / max_value: inclusive bounds on the coin's value.
    - buyer_name / seller_name: case-insensitive substring match.
    """
    start_date: Optional[DateBound] = None
    end_date: Optional[DateBound] = None
    min_value: Optional[int] = None
    max_value: Optional[int] = None
    buyer_name: Optional[str] = None
    seller_name: Optional[str] = None

    def __post_init__(self) -> None:
        if self.min_value is not None and self.max_value is not None and self.min_value > self.max_value:
            raise ValidationError("minValue cannot be greater than maxValue")

    @classmethod
    def from_params(
        cls,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
        buyer_name: Optional[str] = None,
        seller_name: Optional[str] = None,
    ) -> "TransactionFilters":
        """Build filters from raw query parameters, dropping blank values."""
        return cls(
            start_date=parse_date_bound("startDate", start_date),
            end_date=parse_date_bound("endDate", end_date),
            min_value=min_value,
            max_value=max_value,
            buyer_name=(buyer_name or "").strip() or None,
            seller_name=(seller_name or "").strip() or None,
        )

    def to_predicates(self) -> List[Predicate]:
        predicates: List[Predicate] = []

        if self.start_date is not None:
            predicates.append(Predicate("transaction_date", "gte", _lower_bound(self.start_date)))

        if self.end_date is not None:
            if isinstance(self.end_date, datetime):
                predicates.append(Predicate("transaction_date", "lte", self.end_date.isoformat()))
            else:
                next_day = start_of_day(self.end_date + timedelta(days=1))
                predicates.append(Predicate("transaction_date", "lt", next_day.isoformat()))

        if self.min_value is not None:
            predicates.append(Predicate("value", "gte", self.min_value))

        if self.max_value is not None:
            predicates.append(Predicate("value", "lte", self.max_value))

        if self.buyer_name:
            predicates.append(Predicate("buyer_name", "ilike", f"%{_escape_like(self.buyer_name)}%"))

        if self.seller_name:
            predicates.append(Predicate("seller_name", "ilike", f"%{_escape_like(self.seller_name)}%"))

        return predicates

    def cache_params(self) -> dict[str, Any]:
        """Normalized parameters for cache keys (unset fields included as None)."""
        return {
            "start_date": self.start_date.isoformat() if self.start_date is not None else None,
            "end_date": self.end_date.isoformat() if self.end_date is not None else None,
            "min_value": self.min_value,
            "max_value": self.max_value,
            "buyer_name": self.buyer_name.lower() if self.buyer_name else None,
            "seller_name": self.seller_name.lower() if self.seller_name else None,
        }


__all__ = [
    "DEFAULT_COIN_PAGE_SIZE",
    "DEFAULT_TRANSACTION_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "PageRequest",
    "Predicate",
    "TransactionFilters",
    "parse_date_bound",
]

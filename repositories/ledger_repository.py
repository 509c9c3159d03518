"""
Ledger repository (persistence) for coins, clients and transactions.

This is the only module that talks to storage. It does not enforce marketplace
rules beyond what storage itself guarantees:
- UNIQUE (bit1, bit2, bit3) on coins rejects duplicate triples.
- transfer_coin() is a PostgreSQL function that changes ownership only while
  owner_id IS NULL and appends the ledger row in the same database transaction.

Reads go through two views so filters stay plain column predicates:
- coin_listing: coin columns + owner_name
- transaction_ledger: transaction columns + seller_name, buyer_name, bit1..3, value
"""

from __future__ import annotations

import time
from typing import Any, Callable, List, Mapping, Optional, Set, Tuple

import httpx
from postgrest.exceptions import APIError
from supabase import Client  # type: ignore[import-not-found]

from domain.client import Client as MarketplaceClient
from domain.client import ClientProfile
from domain.coin import BitTriple, Coin
from domain.errors import (
    AlreadyOwnedError,
    ConstraintViolation,
    NotFoundError,
    StorageError,
    StorageTimeoutError,
    ValidationError,
)
from domain.time import parse_utc_datetime
from domain.transaction import Transaction
from repositories.filters import PageRequest, Predicate, TransactionFilters

# Table / view names. Keep these aligned with migrations/001_marketplace_schema.sql.
_COINS_TABLE: str = "coins"
_CLIENTS_TABLE: str = "clients"
_TRANSACTIONS_TABLE: str = "transactions"
_COIN_LISTING_VIEW: str = "coin_listing"
_TRANSACTION_LEDGER_VIEW: str = "transaction_ledger"
_TRANSFER_FUNCTION: str = "transfer_coin"

# PostgREST caps rows per response; full scans page at this size.
_SCAN_PAGE_SIZE: int = 1000

# PostgreSQL SQLSTATE codes surfaced through PostgREST
_UNIQUE_VIOLATION = "23505"
_FOREIGN_KEY_VIOLATION = "23503"


def _row_to_coin(row: Mapping[str, Any]) -> Coin:
    """Convert a coins / coin_listing row into a Coin."""

    owner_id = row.get("owner_id")
    return Coin(
        coin_id=int(row["id"]),
        bits=BitTriple(int(row["bit1"]), int(row["bit2"]), int(row["bit3"])),
        value=int(row["value"]),
        owner_id=int(owner_id) if owner_id is not None else None,
        owner_name=row.get("owner_name"),
        created_at=parse_utc_datetime(row["created_at"]) if row.get("created_at") else None,
    )


def _row_to_transaction(row: Mapping[str, Any]) -> Transaction:
    """Convert a transaction_ledger row into a Transaction."""

    seller_id = row.get("seller_id")
    return Transaction(
        transaction_id=int(row["id"]),
        coin_id=int(row["coin_id"]),
        amount=int(row["amount"]),
        occurred_at=parse_utc_datetime(row["transaction_date"]),
        buyer_id=int(row["buyer_id"]),
        seller_id=int(seller_id) if seller_id is not None else None,
        buyer_name=row.get("buyer_name"),
        seller_name=row.get("seller_name"),
        bits=BitTriple(int(row["bit1"]), int(row["bit2"]), int(row["bit3"])),
        coin_value=int(row["value"]),
    )


def _row_to_client(row: Mapping[str, Any]) -> MarketplaceClient:
    return MarketplaceClient(
        client_id=int(row["id"]),
        name=str(row["name"]),
        email=str(row["email"]),
        phone=row.get("phone"),
        address=row.get("address"),
        created_at=parse_utc_datetime(row["created_at"]) if row.get("created_at") else None,
    )


def _apply_predicates(query: Any, predicates: List[Predicate]) -> Any:
    for predicate in predicates:
        query = getattr(query, predicate.operator)(predicate.column, predicate.value)
    return query


class SupabaseLedgerStore:
    """
    Query surface over the marketplace tables.

    Every storage failure leaves as a typed MarketplaceError:
    - unique violation -> ConstraintViolation
    - foreign key violation -> ValidationError
    - HTTP timeout -> StorageTimeoutError
    - anything else -> StorageError

    Each HTTP call is bounded by the client timeout. A multi-page scan is also
    bounded as a whole by scan_timeout_seconds (None disables the check): once
    it is exceeded between pages the scan stops with StorageTimeoutError, so a
    scan runs for at most that deadline plus one call.
    """

    def __init__(
        self,
        client: Client,
        scan_timeout_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._scan_timeout_seconds = scan_timeout_seconds
        self._clock = clock

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _execute(self, query: Any, action: str) -> Any:
        """Run a prepared query, translating storage failures."""

        try:
            response = query.execute()
        except httpx.TimeoutException as e:
            raise StorageTimeoutError(f"Timed out while trying to {action}") from e
        except APIError as e:
            if e.code == _UNIQUE_VIOLATION:
                raise ConstraintViolation(f"Failed to {action}: {e.message}") from e
            if e.code == _FOREIGN_KEY_VIOLATION:
                raise ValidationError(f"Failed to {action}: unknown client") from e
            raise StorageError(f"Failed to {action}: {e.message}") from e
        except httpx.HTTPError as e:
            raise StorageError(f"Failed to {action}: {e}") from e

        error = getattr(response, "error", None)
        if error:
            raise StorageError(f"Failed to {action}: {error}")

        return response

    def _fetch_all(self, build_query: Callable[[], Any], action: str) -> List[Mapping[str, Any]]:
        """Page through a query until storage runs out of rows."""

        rows: List[Mapping[str, Any]] = []
        offset = 0
        started = self._clock()

        while True:
            query = build_query().range(offset, offset + _SCAN_PAGE_SIZE - 1)
            response = self._execute(query, action)
            page_rows = getattr(response, "data", None) or []
            rows.extend(page_rows)

            if len(page_rows) < _SCAN_PAGE_SIZE:
                return rows

            if (
                self._scan_timeout_seconds is not None
                and self._clock() - started >= self._scan_timeout_seconds
            ):
                raise StorageTimeoutError(
                    f"Timed out while trying to {action} after {len(rows)} rows"
                )
            offset += len(page_rows)

    # ------------------------------------------------------------------
    # Coins
    # ------------------------------------------------------------------

    def list_used_triples(self) -> Set[BitTriple]:
        """Snapshot every issued triple. Full scan; only the mint path uses it."""

        rows = self._fetch_all(
            lambda: self._client.table(_COINS_TABLE).select("bit1, bit2, bit3").order("id"),
            "list used bit triples",
        )
        return {BitTriple(int(r["bit1"]), int(r["bit2"]), int(r["bit3"])) for r in rows}

    def list_coins(self, page: PageRequest) -> Tuple[List[Coin], int]:
        """
        One page of coins ordered by id ascending.

        Returns:
            (coins on this page, total number of coins ignoring pagination)
        """
        query = (
            self._client.table(_COIN_LISTING_VIEW)
            .select("id, bit1, bit2, bit3, value, owner_id, owner_name, created_at", count="exact")
            .order("id")
            .range(page.offset, page.last_index)
        )
        response = self._execute(query, "list coins")

        rows = getattr(response, "data", None) or []
        total = getattr(response, "count", None)
        return [_row_to_coin(row) for row in rows], total if total is not None else len(rows)

    def get_coin_by_bits(self, bits: BitTriple) -> Optional[Coin]:
        """The coin carrying this triple, or None if it was never minted."""

        response = self._execute(
            self._client.table(_COIN_LISTING_VIEW)
            .select("id, bit1, bit2, bit3, value, owner_id, owner_name, created_at")
            .eq("bit1", bits.bit1)
            .eq("bit2", bits.bit2)
            .eq("bit3", bits.bit3)
            .limit(1),
            f"fetch coin {bits.key()}",
        )

        rows = getattr(response, "data", None) or []
        if not rows:
            return None
        return _row_to_coin(rows[0])

    def insert_coin(self, bits: BitTriple, value: int, owner_id: Optional[int]) -> Coin:
        """
        Insert a freshly minted coin.

        Raises:
            ConstraintViolation: If the triple is already taken.
            ValidationError: If owner_id does not reference a client.
        """
        payload: dict[str, Any] = {
            "bit1": bits.bit1,
            "bit2": bits.bit2,
            "bit3": bits.bit3,
            "value": value,
            "owner_id": owner_id,
        }

        response = self._execute(
            self._client.table(_COINS_TABLE).insert(payload),
            f"insert coin {bits.key()}",
        )

        rows = getattr(response, "data", None) or []
        if not rows:
            raise StorageError(f"Failed to insert coin {bits.key()}: no row returned")

        return _row_to_coin(rows[0])

    def transfer_coin(self, coin_id: int, buyer_id: int) -> Transaction:
        """
        Give an unowned coin to buyer_id and append the ledger entry.

        Calls transfer_coin() which:
        - Updates coins SET owner_id = buyer WHERE id = coin AND owner_id IS NULL
        - Inserts the transaction row (seller = previous owner, amount = coin value)
        All in a single atomic transaction. Of two concurrent calls on the same
        coin at most one sees its update match a row.

        Raises:
            NotFoundError: Unknown coin.
            AlreadyOwnedError: Coin already has an owner (including a lost race).
            ValidationError: Unknown buyer.
        """
        query = self._client.rpc(
            _TRANSFER_FUNCTION,
            {"p_coin_id": coin_id, "p_buyer_id": buyer_id},
        )

        try:
            response = self._execute(query, f"transfer coin {coin_id}")
            result = getattr(response, "data", None) or {}
        except StorageError as e:
            # supabase-py raises APIError when a function returns a bare JSON
            # object, for success and failure alike.
            cause = e.__cause__
            if not isinstance(cause, APIError):
                raise
            payload = cause.json() if callable(getattr(cause, "json", None)) else {}
            if not isinstance(payload, dict) or "success" not in payload:
                raise
            result = payload

        if not result.get("success"):
            code = result.get("error")
            if code == "COIN_NOT_FOUND":
                raise NotFoundError("Coin not found")
            if code == "ALREADY_OWNED":
                raise AlreadyOwnedError(coin_id)
            if code == "BUYER_NOT_FOUND":
                raise ValidationError("Buyer not found")
            raise StorageError(f"Failed to transfer coin {coin_id}: {result.get('message') or code}")

        seller_id = result.get("seller_id")
        return Transaction(
            transaction_id=int(result["transaction_id"]),
            coin_id=coin_id,
            amount=int(result["amount"]),
            occurred_at=parse_utc_datetime(result["transaction_date"]),
            buyer_id=buyer_id,
            seller_id=int(seller_id) if seller_id is not None else None,
        )

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def list_transactions(
        self,
        filters: TransactionFilters,
        page: PageRequest,
    ) -> Tuple[List[Transaction], int]:
        """
        One page of the ledger, most recent first.

        Ties on transaction_date fall back to id descending so no row can show
        up on two pages of an unchanged ledger.

        Returns:
            (transactions on this page, total matching filters ignoring pagination)
        """
        query = self._client.table(_TRANSACTION_LEDGER_VIEW).select("*", count="exact")
        query = _apply_predicates(query, filters.to_predicates())
        query = (
            query.order("transaction_date", desc=True)
            .order("id", desc=True)
            .range(page.offset, page.last_index)
        )

        response = self._execute(query, "list transactions")

        rows = getattr(response, "data", None) or []
        total = getattr(response, "count", None)
        return [_row_to_transaction(row) for row in rows], total if total is not None else len(rows)

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------

    def get_client(self, client_id: int) -> Optional[MarketplaceClient]:
        response = self._execute(
            self._client.table(_CLIENTS_TABLE)
            .select("id, name, email, phone, address, created_at")
            .eq("id", client_id)
            .limit(1),
            f"fetch client {client_id}",
        )

        rows = getattr(response, "data", None) or []
        if not rows:
            return None
        return _row_to_client(rows[0])

    def get_client_profile(self, client_id: int) -> Optional[ClientProfile]:
        """
        Client details plus activity totals, or None for an unknown client.
        """
        client = self.get_client(client_id)
        if client is None:
            return None

        tx_response = self._execute(
            self._client.table(_TRANSACTIONS_TABLE)
            .select("id", count="exact")
            .or_(f"buyer_id.eq.{client_id},seller_id.eq.{client_id}")
            .limit(1),
            f"count transactions for client {client_id}",
        )
        transactions_count = getattr(tx_response, "count", 0) or 0

        owned = self._fetch_all(
            lambda: self._client.table(_COINS_TABLE).select("value").eq("owner_id", client_id).order("id"),
            f"list coins owned by client {client_id}",
        )

        return ClientProfile(
            client=client,
            transactions_count=transactions_count,
            coins_owned=len(owned),
            total_coin_value=sum(int(row["value"]) for row in owned),
        )


__all__ = ["SupabaseLedgerStore"]

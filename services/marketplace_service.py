"""
Marketplace service: coin listings, ledger browsing, purchases and minting.

Handles:
- Cache-checked reads enriched with coin identifiers
- Purchases arbitrated by the store's atomic transfer
- Minting as optimistic allocation: propose the first unused triple, insert,
  and retry on a uniqueness conflict (another mint won the same triple)
- Whole-cache invalidation after every committed mutation
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import List, Optional

from domain.allocation import NoCapacityError, find_first_unused_triple, has_available_combinations
from domain.client import ClientProfile
from domain.coin import Coin
from domain.errors import (
    AlreadyOwnedError,
    CapacityExhaustedError,
    ConstraintViolation,
    InvalidValueError,
    NotFoundError,
    ValidationError,
)
from domain.identifier import decode, encode
from domain.transaction import Transaction
from repositories.filters import PageRequest, TransactionFilters
from repositories.ledger_repository import SupabaseLedgerStore
from services.response_cache import ResponseCache, make_key
from services.settings import MarketplaceSettings

logger = logging.getLogger(__name__)

_COINS_NAMESPACE = "coins"
_COIN_NAMESPACE = "coin"
_TRANSACTIONS_NAMESPACE = "transactions"
_PROFILE_NAMESPACE = "profile"


@dataclass(frozen=True, slots=True)
class CoinListing:
    """Coin row plus its display identifier."""
    coin: Coin
    identifier: str


@dataclass(frozen=True, slots=True)
class CoinPage:
    """
    One page of the coin listing.

    has_available_combinations tells the UI whether minting can still succeed.
    from_cache is True when the page was served from the response cache.
    """
    coins: List[CoinListing]
    total_count: int
    has_available_combinations: bool
    from_cache: bool = False


@dataclass(frozen=True, slots=True)
class TransactionListing:
    """Ledger row plus the display identifier of the coin involved."""
    transaction: Transaction
    identifier: str


@dataclass(frozen=True, slots=True)
class TransactionPage:
    transactions: List[TransactionListing]
    total_count: int
    from_cache: bool = False


@dataclass(frozen=True, slots=True)
class MintResult:
    """
    Result of a successful mint.

    attempts: allocate+insert rounds needed (more than 1 means a concurrent
    mint took the first candidate).
    """
    coin: Coin
    identifier: str
    attempts: int


class MarketplaceService:
    """
    Orchestrates the ledger store, the response cache and the coin domain.

    The cache is owned by the caller and injected, so its lifecycle is explicit
    and a test can inspect it directly.
    """

    def __init__(
        self,
        store: SupabaseLedgerStore,
        cache: ResponseCache,
        settings: MarketplaceSettings,
    ) -> None:
        self._store = store
        self._cache = cache
        self._settings = settings

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_coins(self, page: PageRequest) -> CoinPage:
        """
        One page of coins ordered by id, with identifiers.

        Args:
            page: 1-based page and page size

        Returns:
            CoinPage (from_cache=True on a cache hit)
        """
        key = make_key(_COINS_NAMESPACE, {"page": page.page, "limit": page.limit})
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for %s", key)
            return replace(cached, from_cache=True)

        logger.debug("Cache miss for %s", key)
        generation = self._cache.generation

        coins, total_count = self._store.list_coins(page)

        result = CoinPage(
            coins=[CoinListing(coin=coin, identifier=encode(coin.bits)) for coin in coins],
            total_count=total_count,
            has_available_combinations=has_available_combinations(total_count, self._settings.max_bit),
        )
        self._cache.set(key, result, generation)
        return result

    def get_coin(self, identifier: str) -> CoinListing:
        """
        Look a coin up by its display identifier.

        Raises:
            ValidationError: identifier is not a well-formed BS- identifier
            NotFoundError: no coin carries the decoded triple
        """
        try:
            bits = decode(identifier)
        except ValueError as e:
            raise ValidationError(f"Invalid coin identifier: {identifier}") from e

        key = make_key(_COIN_NAMESPACE, {"bits": bits.key()})
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        generation = self._cache.generation
        coin = self._store.get_coin_by_bits(bits)
        if coin is None:
            raise NotFoundError("Coin not found")

        result = CoinListing(coin=coin, identifier=encode(coin.bits))
        self._cache.set(key, result, generation)
        return result

    def list_transactions(self, filters: TransactionFilters, page: PageRequest) -> TransactionPage:
        """
        One page of the ledger, most recent first, with coin identifiers.

        Args:
            filters: date / value / name filters (ANDed)
            page: 1-based page and page size

        Returns:
            TransactionPage (from_cache=True on a cache hit)
        """
        params = dict(filters.cache_params(), page=page.page, limit=page.limit)
        key = make_key(_TRANSACTIONS_NAMESPACE, params)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for %s", key)
            return replace(cached, from_cache=True)

        logger.debug("Cache miss for %s", key)
        generation = self._cache.generation

        transactions, total_count = self._store.list_transactions(filters, page)

        result = TransactionPage(
            transactions=[
                TransactionListing(transaction=tx, identifier=encode(tx.bits))
                for tx in transactions
            ],
            total_count=total_count,
        )
        self._cache.set(key, result, generation)
        return result

    def get_client_profile(self, client_id: Optional[int]) -> ClientProfile:
        """
        Client details with transaction count and owned coin totals.

        Raises:
            ValidationError: client_id missing
            NotFoundError: unknown client
        """
        if client_id is None:
            raise ValidationError("Client ID is required")

        key = make_key(_PROFILE_NAMESPACE, {"client_id": client_id})
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        generation = self._cache.generation
        profile = self._store.get_client_profile(client_id)
        if profile is None:
            raise NotFoundError("User not found")

        self._cache.set(key, profile, generation)
        return profile

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def buy_coin(self, coin_id: Optional[int], buyer_id: Optional[int]) -> Transaction:
        """
        Transfer an unowned coin to buyer_id.

        The store's conditional transfer is the only arbitration point: of two
        concurrent purchases of one coin, exactly one gets a Transaction and the
        other gets AlreadyOwnedError.

        Raises:
            ValidationError: coin_id or buyer_id missing, or unknown buyer
            NotFoundError: unknown coin
            AlreadyOwnedError: coin already has an owner
        """
        if coin_id is None or buyer_id is None:
            raise ValidationError("Missing required data.")

        try:
            transaction = self._store.transfer_coin(coin_id, buyer_id)
        except AlreadyOwnedError:
            logger.warning("Purchase of coin %s by client %s rejected: already owned", coin_id, buyer_id)
            raise

        self._cache.clear()
        logger.info(
            "Coin %s bought by client %s for %s (transaction %s)",
            coin_id,
            buyer_id,
            transaction.amount,
            transaction.transaction_id,
        )
        return transaction

    def mint_coin(self, issuer_id: Optional[int], value: Optional[int]) -> MintResult:
        """
        Mint a coin worth `value` with the first unused bit-triple.

        Process:
        1. Validate issuer and value bounds
        2. Snapshot used triples and pick the lexicographically first free one
        3. Insert; if storage reports the triple taken, go back to 2
           (at most settings.mint_max_attempts rounds)
        4. Clear the response cache

        The new coin is owned by its issuer.

        Raises:
            ValidationError: issuer_id or value missing, or unknown issuer
            InvalidValueError: value outside [min_coin_value, max_coin_value]
            CapacityExhaustedError: no unused triple left, or every attempt collided
        """
        if issuer_id is None:
            raise ValidationError("User ID is required")
        if value is None:
            raise ValidationError("Value is required")

        minimum = self._settings.min_coin_value
        maximum = self._settings.max_coin_value
        if not minimum <= value <= maximum:
            raise InvalidValueError(value, minimum, maximum)

        attempts = self._settings.mint_max_attempts
        for attempt in range(1, attempts + 1):
            used = self._store.list_used_triples()
            try:
                bits = find_first_unused_triple(used, self._settings.max_bit)
            except NoCapacityError as e:
                raise CapacityExhaustedError("No unique BitSlow combination available") from e

            try:
                coin = self._store.insert_coin(bits, value, issuer_id)
            except ConstraintViolation:
                logger.warning(
                    "Bit triple %s was taken concurrently (attempt %d of %d)",
                    bits.key(),
                    attempt,
                    attempts,
                )
                continue

            self._cache.clear()
            identifier = encode(coin.bits)
            logger.info("Minted coin %s (%s) worth %s for client %s", coin.coin_id, identifier, value, issuer_id)
            return MintResult(coin=coin, identifier=identifier, attempts=attempt)

        raise CapacityExhaustedError(
            f"Could not allocate a unique BitSlow combination after {attempts} attempts"
        )


__all__ = [
    "CoinListing",
    "CoinPage",
    "MarketplaceService",
    "MintResult",
    "TransactionListing",
    "TransactionPage",
]

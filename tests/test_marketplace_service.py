"""
Tests for `services/marketplace_service.py`.

Covers contract rules:
- Of two concurrent purchases of one coin exactly one succeeds.
- Minting takes the first unused triple, retries once when a concurrent
  mint wins it, and never issues a triple twice.
- Mint value bounds are checked before anything is written.
- After any committed mutation no pre-mutation cache entry is served.
"""

from __future__ import annotations

import threading

import httpx
import pytest

from domain.coin import BitTriple
from domain.errors import (
    AlreadyOwnedError,
    CapacityExhaustedError,
    InvalidValueError,
    NotFoundError,
    StorageTimeoutError,
    ValidationError,
)
from repositories.filters import PageRequest, TransactionFilters
from services.marketplace_service import MarketplaceService
from services.response_cache import ResponseCache
from services.settings import MarketplaceSettings


def _service_with(store, clock, **overrides) -> MarketplaceService:
    settings = MarketplaceSettings(_env_file=None, **overrides)
    cache = ResponseCache(ttl_seconds=settings.cache_ttl_seconds, clock=clock)
    return MarketplaceService(store=store, cache=cache, settings=settings)


# ----------------------------------------------------------------------
# Listing and caching
# ----------------------------------------------------------------------


def test_list_coins_adds_identifiers(fake_db, service) -> None:
    fake_db.add_coin((1, 2, 3), 10_000)
    fake_db.add_coin((1, 2, 4), 20_000)

    page = service.list_coins(PageRequest())

    assert [listing.identifier for listing in page.coins] == ["BS-000000", "BS-000001"]
    assert page.total_count == 2
    assert page.has_available_combinations is True
    assert page.from_cache is False


def test_second_read_is_served_from_cache(fake_db, service) -> None:
    fake_db.add_coin((1, 2, 3), 10_000)

    service.list_coins(PageRequest())
    fake_db.calls.clear()
    page = service.list_coins(PageRequest())

    assert page.from_cache is True
    assert fake_db.calls == []


def test_cache_entry_expires_after_ttl(fake_db, service, clock) -> None:
    fake_db.add_coin((1, 2, 3), 10_000)
    service.list_coins(PageRequest())

    clock.advance(60)
    page = service.list_coins(PageRequest())

    assert page.from_cache is False


def test_has_available_combinations_false_when_space_is_full(fake_db, store, clock) -> None:
    service = _service_with(store, clock, max_bit=3)
    fake_db.add_coin((1, 2, 3), 10_000)

    assert service.list_coins(PageRequest()).has_available_combinations is False


def test_purchase_is_visible_on_next_read(fake_db, service) -> None:
    """Verify a buy invalidates every cached listing, not just the coins page."""

    buyer = fake_db.add_client("Alice")
    coin_id = fake_db.add_coin((1, 2, 3), 10_000)

    before = service.list_coins(PageRequest())
    ledger_before = service.list_transactions(TransactionFilters(), PageRequest(limit=15))
    assert before.coins[0].coin.owner_id is None
    assert ledger_before.total_count == 0

    service.buy_coin(coin_id, buyer)

    after = service.list_coins(PageRequest())
    ledger_after = service.list_transactions(TransactionFilters(), PageRequest(limit=15))
    assert after.from_cache is False
    assert after.coins[0].coin.owner_id == buyer
    assert after.coins[0].coin.owner_name == "Alice"
    assert ledger_after.total_count == 1
    assert ledger_after.transactions[0].identifier == "BS-000000"


def test_read_racing_a_mutation_is_not_cached(fake_db, store, cache, service, monkeypatch) -> None:
    """Verify a result computed before a concurrent clear() is never stored."""

    fake_db.add_coin((1, 2, 3), 10_000)
    real_list_coins = store.list_coins

    def list_then_mutate(page):
        result = real_list_coins(page)
        cache.clear()  # a buy commits while this read is in flight
        return result

    monkeypatch.setattr(store, "list_coins", list_then_mutate)

    service.list_coins(PageRequest())

    assert len(cache) == 0


def test_transaction_filters_use_separate_cache_entries(ledger_with_two_sales, service) -> None:
    everything = service.list_transactions(TransactionFilters(), PageRequest(limit=15))
    only_big = service.list_transactions(TransactionFilters(min_value=20_000), PageRequest(limit=15))

    assert everything.total_count == 2
    assert only_big.total_count == 1
    assert only_big.from_cache is False


def test_transaction_page_keeps_every_row(ledger_with_two_sales, service) -> None:
    """Verify each ledger row on a page comes back with its coin identifier."""

    page = service.list_transactions(TransactionFilters(), PageRequest(limit=15))

    assert len(page.transactions) == page.total_count == 2
    assert all(listing.identifier.startswith("BS-") for listing in page.transactions)


def test_get_coin_by_identifier(fake_db, service) -> None:
    fake_db.add_coin((1, 2, 3), 10_000)
    coin_id = fake_db.add_coin((1, 2, 9), 30_000)

    listing = service.get_coin("bs-00001r")

    assert listing.coin.coin_id == coin_id
    assert listing.identifier == "BS-00001R"


def test_get_coin_unknown_identifier(fake_db, service) -> None:
    fake_db.add_coin((1, 2, 3), 10_000)

    with pytest.raises(NotFoundError):
        service.get_coin("BS-000001")


@pytest.mark.parametrize("identifier", ["XX-000000", "BS-00000I", "BS-"])
def test_get_coin_malformed_identifier(service, identifier: str) -> None:
    with pytest.raises(ValidationError):
        service.get_coin(identifier)


def test_get_coin_refreshes_after_purchase(fake_db, service) -> None:
    buyer = fake_db.add_client("Alice")
    coin_id = fake_db.add_coin((1, 2, 3), 10_000)
    assert service.get_coin("BS-000000").coin.owner_id is None

    service.buy_coin(coin_id, buyer)

    assert service.get_coin("BS-000000").coin.owner_id == buyer


@pytest.fixture
def ledger_with_two_sales(fake_db):
    alice = fake_db.add_client("Alice")
    first = fake_db.add_coin((1, 2, 3), 10_000)
    second = fake_db.add_coin((1, 2, 4), 30_000)
    fake_db.add_transaction(first, alice, 10_000, "2024-01-01T00:00:00+00:00")
    fake_db.add_transaction(second, alice, 30_000, "2024-02-01T00:00:00+00:00")
    return alice


# ----------------------------------------------------------------------
# Buying
# ----------------------------------------------------------------------


@pytest.mark.parametrize("coin_id,buyer_id", [(None, 1), (1, None), (None, None)])
def test_buy_requires_both_ids(service, coin_id, buyer_id) -> None:
    with pytest.raises(ValidationError, match="Missing required data."):
        service.buy_coin(coin_id, buyer_id)


def test_buy_unknown_coin(fake_db, service) -> None:
    buyer = fake_db.add_client("Alice")

    with pytest.raises(NotFoundError):
        service.buy_coin(42, buyer)


def test_buy_owned_coin_keeps_cache(fake_db, service, cache) -> None:
    owner = fake_db.add_client("Alice")
    buyer = fake_db.add_client("Bob")
    coin_id = fake_db.add_coin((1, 2, 3), 10_000, owner_id=owner)
    service.list_coins(PageRequest())

    with pytest.raises(AlreadyOwnedError, match="Coin already owned"):
        service.buy_coin(coin_id, buyer)

    assert len(cache) == 1
    assert fake_db.tables["transactions"] == []


def test_concurrent_purchases_have_one_winner(fake_db, service) -> None:
    """
    Verify two simultaneous buyers of one coin end with one owner and one ledger row.

    Both threads are released together by a barrier; the loser must see
    AlreadyOwnedError, never a second transaction.
    """
    coin_id = fake_db.add_coin((1, 2, 3), 10_000)
    buyers = [fake_db.add_client("Alice"), fake_db.add_client("Bob")]
    barrier = threading.Barrier(len(buyers))
    outcomes = {}

    def attempt(buyer_id: int) -> None:
        barrier.wait()
        try:
            outcomes[buyer_id] = service.buy_coin(coin_id, buyer_id)
        except AlreadyOwnedError as e:
            outcomes[buyer_id] = e

    threads = [threading.Thread(target=attempt, args=(b,)) for b in buyers]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    winners = [b for b, result in outcomes.items() if not isinstance(result, AlreadyOwnedError)]
    losers = [b for b, result in outcomes.items() if isinstance(result, AlreadyOwnedError)]

    assert len(winners) == 1
    assert len(losers) == 1
    assert fake_db.tables["coins"][0]["owner_id"] == winners[0]
    assert len(fake_db.tables["transactions"]) == 1


def test_storage_timeout_propagates(fake_db, service) -> None:
    fake_db.fail_with = httpx.ReadTimeout("read timed out")

    with pytest.raises(StorageTimeoutError):
        service.list_coins(PageRequest())


# ----------------------------------------------------------------------
# Minting
# ----------------------------------------------------------------------


def test_mint_takes_first_unused_triple(fake_db, service) -> None:
    issuer = fake_db.add_client("Alice")
    fake_db.add_coin((1, 2, 3), 10_000)

    result = service.mint_coin(issuer, 50_000)

    assert result.coin.bits == BitTriple(1, 2, 4)
    assert result.identifier == "BS-000001"
    assert result.coin.owner_id == issuer
    assert result.coin.value == 50_000
    assert result.attempts == 1


@pytest.mark.parametrize("value", [5, 9_999, 100_001])
def test_mint_rejects_out_of_range_value(fake_db, service, value: int) -> None:
    issuer = fake_db.add_client("Alice")

    with pytest.raises(InvalidValueError) as excinfo:
        service.mint_coin(issuer, value)

    assert excinfo.value.message == "The amount should be between $10000 and $100000!"
    assert fake_db.tables["coins"] == []


@pytest.mark.parametrize("value", [10_000, 100_000])
def test_mint_accepts_bounds(fake_db, service, value: int) -> None:
    issuer = fake_db.add_client("Alice")

    assert service.mint_coin(issuer, value).coin.value == value


def test_mint_requires_issuer_and_value(service) -> None:
    with pytest.raises(ValidationError, match="User ID is required"):
        service.mint_coin(None, 50_000)
    with pytest.raises(ValidationError, match="Value is required"):
        service.mint_coin(1, None)


def test_mint_by_unknown_issuer(service, fake_db) -> None:
    with pytest.raises(ValidationError):
        service.mint_coin(99, 50_000)

    assert fake_db.tables["coins"] == []


def test_mint_invalidates_cache(fake_db, service, cache) -> None:
    issuer = fake_db.add_client("Alice")
    service.list_coins(PageRequest())

    service.mint_coin(issuer, 50_000)

    assert len(cache) == 0
    assert service.list_coins(PageRequest()).total_count == 1


def test_mint_exhausts_capacity(fake_db, store, clock) -> None:
    service = _service_with(store, clock, max_bit=3)
    issuer = fake_db.add_client("Alice")

    assert service.mint_coin(issuer, 50_000).coin.bits == BitTriple(1, 2, 3)

    with pytest.raises(CapacityExhaustedError, match="No unique BitSlow combination available"):
        service.mint_coin(issuer, 50_000)

    assert len(fake_db.tables["coins"]) == 1


def test_mint_retries_when_triple_is_taken_concurrently(fake_db, service) -> None:
    """Verify a mint that loses its candidate triple retries with the next one."""

    alice = fake_db.add_client("Alice")
    bob = fake_db.add_client("Bob")
    stolen = []

    def concurrent_mint(payload: dict) -> None:
        if not stolen:
            stolen.append((payload["bit1"], payload["bit2"], payload["bit3"]))
            fake_db.add_coin(stolen[0], 20_000, owner_id=bob)

    fake_db.before_coin_insert = concurrent_mint

    result = service.mint_coin(alice, 50_000)

    assert stolen == [(1, 2, 3)]
    assert result.coin.bits == BitTriple(1, 2, 4)
    assert result.attempts == 2
    assert len(fake_db.tables["coins"]) == 2


def test_mint_gives_up_after_max_attempts(fake_db, service) -> None:
    alice = fake_db.add_client("Alice")
    bob = fake_db.add_client("Bob")

    def always_first(payload: dict) -> None:
        fake_db.add_coin((payload["bit1"], payload["bit2"], payload["bit3"]), 20_000, owner_id=bob)

    fake_db.before_coin_insert = always_first

    with pytest.raises(CapacityExhaustedError, match="after 2 attempts"):
        service.mint_coin(alice, 50_000)

    triples = [(c["bit1"], c["bit2"], c["bit3"]) for c in fake_db.tables["coins"]]
    assert triples == [(1, 2, 3), (1, 2, 4)]
    assert all(c["owner_id"] == bob for c in fake_db.tables["coins"])


def test_concurrent_mints_never_share_a_triple(fake_db, service) -> None:
    issuer = fake_db.add_client("Alice")
    barrier = threading.Barrier(4)
    errors = []

    def mint() -> None:
        barrier.wait()
        try:
            service.mint_coin(issuer, 50_000)
        except CapacityExhaustedError as e:
            errors.append(e)

    threads = [threading.Thread(target=mint) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    triples = [(c["bit1"], c["bit2"], c["bit3"]) for c in fake_db.tables["coins"]]
    assert len(triples) == len(set(triples))
    assert len(triples) + len(errors) == 4


# ----------------------------------------------------------------------
# Profiles
# ----------------------------------------------------------------------


def test_profile_of_unknown_client(service) -> None:
    with pytest.raises(NotFoundError, match="User not found"):
        service.get_client_profile(12)


def test_profile_requires_id(service) -> None:
    with pytest.raises(ValidationError):
        service.get_client_profile(None)


def test_profile_refreshes_after_purchase(fake_db, service) -> None:
    buyer = fake_db.add_client("Alice")
    coin_id = fake_db.add_coin((1, 2, 3), 40_000)

    assert service.get_client_profile(buyer).coins_owned == 0

    service.buy_coin(coin_id, buyer)
    profile = service.get_client_profile(buyer)

    assert profile.coins_owned == 1
    assert profile.total_coin_value == 40_000
    assert profile.transactions_count == 1

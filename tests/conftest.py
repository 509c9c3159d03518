"""
Pytest configuration and shared fixtures.

Adds the project root to the Python path so that tests can import domain,
repositories, services and api, and wires a MarketplaceService over an
in-memory fake of the Supabase client.
"""

import sys
from pathlib import Path

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from repositories.ledger_repository import SupabaseLedgerStore  # noqa: E402
from services.marketplace_service import MarketplaceService  # noqa: E402
from services.response_cache import ResponseCache  # noqa: E402
from services.settings import MarketplaceSettings  # noqa: E402
from tests.fake_supabase import FakeSupabase  # noqa: E402


class ManualClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def fake_db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def store(fake_db: FakeSupabase) -> SupabaseLedgerStore:
    return SupabaseLedgerStore(fake_db)


@pytest.fixture
def settings() -> MarketplaceSettings:
    return MarketplaceSettings(_env_file=None)


@pytest.fixture
def cache(clock: ManualClock, settings: MarketplaceSettings) -> ResponseCache:
    return ResponseCache(ttl_seconds=settings.cache_ttl_seconds, clock=clock)


@pytest.fixture
def service(store: SupabaseLedgerStore, cache: ResponseCache, settings: MarketplaceSettings) -> MarketplaceService:
    return MarketplaceService(store=store, cache=cache, settings=settings)

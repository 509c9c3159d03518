"""
Service wiring for the API.

One settings object, one storage client, one response cache and one service
per process. Tests replace get_marketplace_service through
app.dependency_overrides.
"""

from __future__ import annotations

from functools import lru_cache

from repositories.client import get_supabase
from repositories.ledger_repository import SupabaseLedgerStore
from services.marketplace_service import MarketplaceService
from services.response_cache import ResponseCache
from services.settings import MarketplaceSettings


@lru_cache(maxsize=1)
def get_settings() -> MarketplaceSettings:
    return MarketplaceSettings()


@lru_cache(maxsize=1)
def get_marketplace_service() -> MarketplaceService:
    settings = get_settings()
    store = SupabaseLedgerStore(
        get_supabase(settings.storage_timeout_seconds),
        scan_timeout_seconds=settings.storage_timeout_seconds,
    )
    cache = ResponseCache(ttl_seconds=settings.cache_ttl_seconds)
    return MarketplaceService(store=store, cache=cache, settings=settings)

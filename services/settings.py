"""
Marketplace configuration.

Values come from environment variables prefixed with MARKETPLACE_ (a
project-level .env file is read too). Settings are built once per process and
passed explicitly to the service.

Environment variables (all optional):
- MARKETPLACE_MAX_BIT: Largest bit rank a coin may use (default 999)
- MARKETPLACE_MIN_COIN_VALUE / MARKETPLACE_MAX_COIN_VALUE: Mint value bounds (10000 / 100000)
- MARKETPLACE_CACHE_TTL_SECONDS: Response cache lifetime (default 60)
- MARKETPLACE_MINT_MAX_ATTEMPTS: Allocate+insert attempts per mint (default 2)
- MARKETPLACE_STORAGE_TIMEOUT_SECONDS: HTTP timeout per storage call, and the
  deadline for one multi-page scan (default 10)
- MARKETPLACE_LOG_LEVEL: Root log level for the API process (default INFO)
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

env_path = Path(__file__).parent.parent / ".env"


class MarketplaceSettings(BaseSettings):
    """Marketplace settings from environment variables. Invalid values raise at construction."""

    model_config = SettingsConfigDict(
        env_prefix="MARKETPLACE_",
        env_file=env_path,
        extra="ignore",
        frozen=True,
    )

    max_bit: int = Field(default=999, ge=3)
    min_coin_value: int = Field(default=10_000, gt=0)
    max_coin_value: int = 100_000
    cache_ttl_seconds: float = Field(default=60.0, ge=0)
    mint_max_attempts: int = Field(default=2, ge=1)
    storage_timeout_seconds: float = Field(default=10.0, gt=0)
    log_level: str = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v

    @model_validator(mode="after")
    def check_value_bounds(self) -> "MarketplaceSettings":
        if self.min_coin_value > self.max_coin_value:
            raise ValueError(
                f"min_coin_value ({self.min_coin_value}) exceeds max_coin_value ({self.max_coin_value})"
            )
        return self


__all__ = ["MarketplaceSettings"]

"""
Domain: Client (buyer / issuer) accounts.

Represents marketplace participants who mint, own and buy coins. Credential
material is owned by the authentication collaborator and never reaches this
model; the marketplace treats a client id as an already-validated reference.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class Client:
    """
    Client account as seen by the marketplace.

    email is unique across clients (enforced by storage).
    """

    client_id: int
    name: str
    email: str

    # Optional profile information
    phone: Optional[str] = None
    address: Optional[str] = None

    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        """Validate timestamps are UTC-aware."""
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)


@dataclass(frozen=True, slots=True)
class ClientProfile:
    """
    Client account plus marketplace activity totals.

    transactions_count counts ledger entries where the client was buyer or seller.
    """

    client: Client
    transactions_count: int
    coins_owned: int
    total_coin_value: int


__all__ = ["Client", "ClientProfile"]

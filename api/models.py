"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
Wire names follow the marketplace frontend: top-level keys and request fields
are camelCase, row fields are snake_case.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from domain.client import ClientProfile
from services.marketplace_service import CoinListing, TransactionListing


# ============================================================================
# Coin Models
# ============================================================================

class CoinResponse(BaseModel):
    """Single coin in a listing."""
    id: int
    bit1: int
    bit2: int
    bit3: int
    value: int
    owner_id: Optional[int] = None
    owner_name: Optional[str] = None
    computed_identifier: str = Field(..., alias="computedIdentifier")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "id": 7,
                "bit1": 1,
                "bit2": 2,
                "bit3": 9,
                "value": 25000,
                "owner_id": None,
                "owner_name": None,
                "computedIdentifier": "BS-00001R"
            }
        }

    @classmethod
    def from_listing(cls, listing: CoinListing) -> "CoinResponse":
        coin = listing.coin
        return cls(
            id=coin.coin_id,
            bit1=coin.bits.bit1,
            bit2=coin.bits.bit2,
            bit3=coin.bits.bit3,
            value=coin.value,
            owner_id=coin.owner_id,
            owner_name=coin.owner_name,
            computed_identifier=listing.identifier,
        )


class CoinListResponse(BaseModel):
    """Response for the coin listing."""
    coins: List[CoinResponse]
    total_count: int = Field(..., alias="totalCount")
    has_available_combinations: bool = Field(..., alias="hasAvailableCombinations")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "coins": [],
                "totalCount": 50,
                "hasAvailableCombinations": True
            }
        }


class MintCoinRequest(BaseModel):
    """Request to mint a coin. Missing fields are reported as 400 by the service."""
    issuer_id: Optional[int] = Field(None, alias="issuerId", description="Client minting the coin")
    value: Optional[int] = Field(None, description="Coin value in dollars")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "issuerId": 3,
                "value": 50000
            }
        }


class MintCoinResponse(BaseModel):
    message: str
    coin: CoinResponse


class BuyCoinRequest(BaseModel):
    """Request to buy an unowned coin."""
    coin_id: Optional[int] = Field(None, alias="coinId", description="Coin to buy")
    buyer_id: Optional[int] = Field(None, alias="buyerId", description="Client buying the coin")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "coinId": 7,
                "buyerId": 3
            }
        }


class BuyCoinResponse(BaseModel):
    message: str
    transaction_id: int = Field(..., alias="transactionId")

    class Config:
        populate_by_name = True


# ============================================================================
# Transaction Models
# ============================================================================

class TransactionResponse(BaseModel):
    """Single ledger row in a listing."""
    id: int
    coin_id: int
    amount: int
    transaction_date: datetime
    seller_id: Optional[int] = None
    seller_name: Optional[str] = None
    buyer_id: int
    buyer_name: Optional[str] = None
    bit1: int
    bit2: int
    bit3: int
    value: int
    computed_identifier: str = Field(..., alias="computedIdentifier")

    class Config:
        populate_by_name = True

    @classmethod
    def from_listing(cls, listing: TransactionListing) -> "TransactionResponse":
        tx = listing.transaction
        return cls(
            id=tx.transaction_id,
            coin_id=tx.coin_id,
            amount=tx.amount,
            transaction_date=tx.occurred_at,
            seller_id=tx.seller_id,
            seller_name=tx.seller_name,
            buyer_id=tx.buyer_id,
            buyer_name=tx.buyer_name,
            bit1=tx.bits.bit1,
            bit2=tx.bits.bit2,
            bit3=tx.bits.bit3,
            value=tx.coin_value if tx.coin_value is not None else tx.amount,
            computed_identifier=listing.identifier,
        )


class TransactionListResponse(BaseModel):
    transactions: List[TransactionResponse]
    total_count: int = Field(..., alias="totalCount")

    class Config:
        populate_by_name = True


# ============================================================================
# Client Models
# ============================================================================

class ClientProfileResponse(BaseModel):
    """Client details with marketplace activity totals."""
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None
    transactions_count: int = Field(..., alias="transactionsCount")
    coins_owned: int = Field(..., alias="coinsOwned")
    total_coin_value: int = Field(..., alias="totalCoinValue")

    class Config:
        populate_by_name = True

    @classmethod
    def from_profile(cls, profile: ClientProfile) -> "ClientProfileResponse":
        client = profile.client
        return cls(
            id=client.client_id,
            name=client.name,
            email=client.email,
            phone=client.phone,
            address=client.address,
            transactions_count=profile.transactions_count,
            coins_owned=profile.coins_owned,
            total_coin_value=profile.total_coin_value,
        )


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str

    class Config:
        json_schema_extra = {
            "example": {
                "error": "Coin already owned"
            }
        }

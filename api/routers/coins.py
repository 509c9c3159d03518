"""
Coins API Endpoints.

Endpoints for browsing coins, buying unowned coins and minting new ones.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from api.dependencies import get_marketplace_service
from api.models import (
    BuyCoinRequest,
    BuyCoinResponse,
    CoinListResponse,
    CoinResponse,
    ErrorResponse,
    MintCoinRequest,
    MintCoinResponse,
)
from domain.errors import MarketplaceError
from repositories.filters import DEFAULT_COIN_PAGE_SIZE, MAX_PAGE_SIZE, PageRequest
from services.marketplace_service import CoinListing, MarketplaceService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/coins",
    response_model=CoinListResponse,
    summary="List Coins",
    description="Browse all coins ordered by id, with owner and computed identifier."
)
def list_coins(
    response: Response,
    page: int = Query(1, ge=1, description="1-based page number"),
    limit: int = Query(DEFAULT_COIN_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="Coins per page"),
    service: MarketplaceService = Depends(get_marketplace_service),
):
    """
    List coins one page at a time.

    `hasAvailableCombinations` is false once every bit triple has been minted,
    so the UI can hide the mint form.

    The `X-Cache` header reports whether the page came from the response cache.

    **Example usage:**
    - First page: `GET /api/v1/coins`
    - Third page of 10: `GET /api/v1/coins?page=3&limit=10`
    """
    try:
        result = service.list_coins(PageRequest(page=page, limit=limit))
    except MarketplaceError:
        raise
    except Exception:
        logger.exception("Error fetching coins")
        raise HTTPException(status_code=500, detail="Error fetching coins")

    response.headers["X-Cache"] = "HIT" if result.from_cache else "MISS"
    return CoinListResponse(
        coins=[CoinResponse.from_listing(listing) for listing in result.coins],
        total_count=result.total_count,
        has_available_combinations=result.has_available_combinations,
    )


@router.get(
    "/coins/{identifier}",
    response_model=CoinResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Get Coin",
    description="Look up one coin by its computed identifier."
)
def get_coin(
    identifier: str,
    service: MarketplaceService = Depends(get_marketplace_service),
):
    """
    Fetch a coin by identifier (case-insensitive).

    **Responses:**
    - 200: the coin
    - 400: not a well-formed identifier
    - 404: no coin has been minted with that identifier

    **Example usage:** `GET /api/v1/coins/BS-00001R`
    """
    try:
        listing = service.get_coin(identifier)
    except MarketplaceError:
        raise
    except Exception:
        logger.exception("Error fetching coin %s", identifier)
        raise HTTPException(status_code=500, detail="Error fetching coin")

    return CoinResponse.from_listing(listing)


@router.post(
    "/coins/mint",
    response_model=MintCoinResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}},
    summary="Mint Coin",
    description="Mint a coin with the first unused bit triple. The issuer becomes its owner."
)
def mint_coin(
    request: MintCoinRequest,
    service: MarketplaceService = Depends(get_marketplace_service),
):
    """
    Mint a new coin.

    **Rules:**
    - `value` must lie within the configured bounds (default $10,000 - $100,000)
    - The bit triple is the lexicographically first one never issued before
    - Fails with 400 once every triple has been used

    **Example request:**
    ```json
    {"issuerId": 3, "value": 50000}
    ```
    """
    try:
        result = service.mint_coin(request.issuer_id, request.value)
    except MarketplaceError:
        raise
    except Exception:
        logger.exception("Error generating coin")
        raise HTTPException(status_code=500, detail="Error generating coin")

    return MintCoinResponse(
        message="New BitSlow coin generated successfully",
        coin=CoinResponse.from_listing(CoinListing(coin=result.coin, identifier=result.identifier)),
    )


@router.post(
    "/coins/buy",
    response_model=BuyCoinResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Buy Coin",
    description="Buy a coin nobody owns yet. Exactly one of several concurrent buyers succeeds."
)
def buy_coin(
    request: BuyCoinRequest,
    service: MarketplaceService = Depends(get_marketplace_service),
):
    """
    Buy an unowned coin.

    **Responses:**
    - 200: coin transferred and ledger entry written
    - 400: missing fields, or the coin is already owned
    - 404: coin not found

    **Example request:**
    ```json
    {"coinId": 7, "buyerId": 3}
    ```
    """
    try:
        transaction = service.buy_coin(request.coin_id, request.buyer_id)
    except MarketplaceError:
        raise
    except Exception:
        logger.exception("Error buying coin")
        raise HTTPException(status_code=500, detail="Error buying coin")

    return BuyCoinResponse(
        message="Coin purchased successfully",
        transaction_id=transaction.transaction_id,
    )

"""
Transactions API Endpoints.

Endpoint for browsing the transaction ledger with filters.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from api.dependencies import get_marketplace_service
from api.models import TransactionListResponse, TransactionResponse
from domain.errors import MarketplaceError
from repositories.filters import (
    DEFAULT_TRANSACTION_PAGE_SIZE,
    MAX_PAGE_SIZE,
    PageRequest,
    TransactionFilters,
)
from services.marketplace_service import MarketplaceService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/transactions",
    response_model=TransactionListResponse,
    summary="List Transactions",
    description="Browse the ledger, most recent first, with optional date, value and name filters."
)
def list_transactions(
    response: Response,
    page: int = Query(1, ge=1, description="1-based page number"),
    limit: int = Query(DEFAULT_TRANSACTION_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="Rows per page"),
    start_date: Optional[str] = Query(None, alias="startDate", description="Earliest date (YYYY-MM-DD or ISO-8601)"),
    end_date: Optional[str] = Query(None, alias="endDate", description="Latest date, inclusive"),
    min_value: Optional[int] = Query(None, alias="minValue", ge=0, description="Minimum coin value"),
    max_value: Optional[int] = Query(None, alias="maxValue", ge=0, description="Maximum coin value"),
    buyer_name: Optional[str] = Query(None, alias="buyerName", description="Buyer name contains (case-insensitive)"),
    seller_name: Optional[str] = Query(None, alias="sellerName", description="Seller name contains (case-insensitive)"),
    service: MarketplaceService = Depends(get_marketplace_service),
):
    """
    List ledger entries with optional filters.

    All filters are optional and combine with AND.

    **Example usage:**
    - Everything: `GET /api/v1/transactions`
    - Since March: `GET /api/v1/transactions?startDate=2024-03-01`
    - Big sales to Alice: `GET /api/v1/transactions?minValue=50000&buyerName=ali`
    """
    try:
        filters = TransactionFilters.from_params(
            start_date=start_date,
            end_date=end_date,
            min_value=min_value,
            max_value=max_value,
            buyer_name=buyer_name,
            seller_name=seller_name,
        )
        result = service.list_transactions(filters, PageRequest(page=page, limit=limit))
    except MarketplaceError:
        raise
    except Exception:
        logger.exception("Error fetching transactions")
        raise HTTPException(status_code=500, detail="Error fetching transactions")

    response.headers["X-Cache"] = "HIT" if result.from_cache else "MISS"
    return TransactionListResponse(
        transactions=[TransactionResponse.from_listing(listing) for listing in result.transactions],
        total_count=result.total_count,
    )

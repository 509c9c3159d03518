"""
BitSlow Marketplace API - Main Application.

FastAPI application with CORS enabled for frontend communication.

Run locally with:
    uvicorn api.main:app --reload
"""

import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api import __version__
from api.dependencies import get_settings
from api.errors import http_error_handler, marketplace_error_handler, request_validation_handler
from domain.errors import MarketplaceError

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="BitSlow Marketplace API",
    description="REST API for browsing, buying and minting BitSlow coins",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# The marketplace frontend is served from its own dev server
# TODO: Restrict origins once the frontend has a fixed production domain
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    expose_headers=["X-Cache"],
)

# Every error leaves as {"error": "<message>"}
app.add_exception_handler(MarketplaceError, marketplace_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)


@app.get("/health", tags=["Health"])
def health_check():
    """
    Liveness check.

    Does not touch storage, so it stays green while Supabase is unreachable.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "bitslow-marketplace-api"
    }


@app.get("/", tags=["Root"])
def root():
    return {
        "message": "BitSlow Marketplace API",
        "version": __version__,
        "docs": "/docs",
        "endpoints": {
            "coins": "/api/v1/coins",
            "coin": "/api/v1/coins/{identifier}",
            "mint": "/api/v1/coins/mint",
            "buy": "/api/v1/coins/buy",
            "transactions": "/api/v1/transactions",
            "profile": "/api/v1/clients/{client_id}/profile",
        },
    }


from api.routers import clients, coins, transactions  # noqa: E402

app.include_router(coins.router, prefix="/api/v1", tags=["Coins"])
app.include_router(transactions.router, prefix="/api/v1", tags=["Transactions"])
app.include_router(clients.router, prefix="/api/v1", tags=["Clients"])

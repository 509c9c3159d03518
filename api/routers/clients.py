"""
Clients API Endpoints.

Client profile with marketplace activity totals. Identity comes from the
authentication layer in front of this API; no credential checks happen here.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_marketplace_service
from api.models import ClientProfileResponse, ErrorResponse
from domain.errors import MarketplaceError
from services.marketplace_service import MarketplaceService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/clients/{client_id}/profile",
    response_model=ClientProfileResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Client Profile",
    description="Client details plus transaction count, coins owned and their total value."
)
def get_client_profile(
    client_id: int,
    service: MarketplaceService = Depends(get_marketplace_service),
):
    try:
        profile = service.get_client_profile(client_id)
    except MarketplaceError:
        raise
    except Exception:
        logger.exception("Error fetching profile for client %s", client_id)
        raise HTTPException(status_code=500, detail="Error fetching profile")

    return ClientProfileResponse.from_profile(profile)

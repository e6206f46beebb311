from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from models.booking import AvailabilityUpdate
from models.schemas import SiteConfig
from routers.booking import provider_failure
from services.booking_flow import fetch_availability
from services.provider_client import BookingProviderError, get_provider_client
from services.tenant import get_site

router = APIRouter(prefix="/api/availability", tags=["availability"])


@router.get("")
async def list_availability(
    product_id: Optional[str] = Query(None, alias="productId"),
    date_from: Optional[str] = Query(None, alias="dateFrom"),
    date_to: Optional[str] = Query(None, alias="dateTo"),
    site: SiteConfig = Depends(get_site),
):
    """Open slots for a product in a date window."""
    if not product_id or not date_from or not date_to:
        raise HTTPException(status_code=400, detail="productId, dateFrom and dateTo are required")
    try:
        result = await fetch_availability(get_provider_client(site), product_id, date_from, date_to)
    except BookingProviderError as e:
        raise provider_failure(e)
    return {
        "success": True,
        "data": {
            "session_id": result.session_id,
            "slots":      result.open_slots,
            "options":    result.option_list,
        },
    }


@router.get("/{availability_id}")
async def get_availability(
    availability_id: str,
    include_pricing: bool = Query(False, alias="includePricing"),
    site: SiteConfig = Depends(get_site),
):
    client = get_provider_client(site)
    try:
        if include_pricing:
            availability = await client.get_availability_pricing(availability_id)
        else:
            availability = await client.get_availability(availability_id)
    except BookingProviderError as e:
        raise provider_failure(e)
    return {"success": True, "data": availability}


@router.post("/{availability_id}")
async def update_availability(
    availability_id: str, body: AvailabilityUpdate, site: SiteConfig = Depends(get_site)
):
    """Answer options or set guest counts on an availability."""
    client = get_provider_client(site)
    try:
        if body.option_list is not None:
            availability = await client.set_availability_options(availability_id, body.option_list)
        elif body.pricing_category_list is not None:
            availability = await client.set_availability_pricing(availability_id, body.pricing_category_list)
        else:
            raise HTTPException(status_code=400, detail="optionList or pricingCategoryList is required")
    except BookingProviderError as e:
        raise provider_failure(e)
    return {"success": True, "data": availability}

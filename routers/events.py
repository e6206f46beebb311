from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from services.filter_service import compute_filter_counts, parse_filter_state
from services.product_mapper import map_ticketing_event_to_experience, map_ticketing_event_to_list_item
from services.ticketing_client import TicketingProviderError, get_ticketing_client

router = APIRouter(prefix="/api/events", tags=["events"])


def _failure(e: TicketingProviderError) -> HTTPException:
    return HTTPException(status_code=e.status if 400 <= e.status < 500 else 502, detail=str(e))


@router.get("")
async def search_events(
    text: Optional[str] = None,
    city: Optional[str] = None,
    category: Optional[str] = None,
    currency: str = "GBP",
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
):
    """Ticketed events (shows, attractions) as experience list items."""
    params = {
        "text":     text,
        "city":     [city] if city else None,
        "category": [category] if category else None,
        "currency": currency,
        "skip":     skip,
        "limit":    limit,
    }
    try:
        result = await get_ticketing_client().search_events(params)
    except TicketingProviderError as e:
        raise _failure(e)

    items = [map_ticketing_event_to_list_item(ev) for ev in result["events"]]
    return {
        "success": True,
        "data": {
            "experiences":   items,
            "total_count":   result["total_count"],
            "has_more":      skip + len(items) < result["total_count"],
            "filter_counts": compute_filter_counts(items, parse_filter_state({})),
        },
    }


@router.get("/{event_id}")
async def get_event(event_id: str, currency: str = "GBP"):
    try:
        event = await get_ticketing_client().get_event(event_id, currency)
    except TicketingProviderError as e:
        raise _failure(e)
    if not event:
        raise HTTPException(status_code=404, detail=f"Event '{event_id}' not found")
    return {"success": True, "data": map_ticketing_event_to_experience(event)}


@router.get("/{event_id}/availability-widget")
async def availability_widget(event_id: str, basket_id: Optional[str] = Query(None, alias="basketId")):
    """Session id and iframe URL for the ticketing provider's booking widget."""
    try:
        widget = await get_ticketing_client().get_availability_widget(event_id, basket_id=basket_id)
    except TicketingProviderError as e:
        raise _failure(e)
    return {"success": True, "data": widget}

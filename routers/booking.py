import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from models.booking import (
    AddAvailabilityRequest,
    AnswerQuestionsRequest,
    BookingCreateRequest,
    CommitRequest,
)
from models.schemas import SiteConfig
from services import booking_flow
from services.booking_flow import BookingFlowError
from services.provider_client import BookingProviderError, get_provider_client
from services.tenant import get_site

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/booking", tags=["booking"])


def provider_failure(e: BookingProviderError) -> HTTPException:
    """Client errors keep their status; anything else from the provider is a 502."""
    if e.is_client_error:
        logger.warning("Booking provider rejected request (%s): %s", e.status, e.message)
        return HTTPException(status_code=e.status, detail=e.message)
    logger.error("Booking provider error: %s", e.message)
    return HTTPException(status_code=502, detail=e.message)


@router.post("")
async def create_booking(body: Optional[BookingCreateRequest] = None, site: SiteConfig = Depends(get_site)):
    body = body or BookingCreateRequest()
    try:
        booking = await get_provider_client(site).create_booking(body.model_dump(by_alias=True, exclude_none=True))
    except BookingProviderError as e:
        raise provider_failure(e)
    return {"success": True, "data": booking}


@router.get("")
async def get_booking(booking_id: Optional[str] = Query(None, alias="id"), site: SiteConfig = Depends(get_site)):
    if not booking_id:
        raise HTTPException(status_code=400, detail="id is required")
    try:
        booking = await get_provider_client(site).get_booking(booking_id)
    except BookingProviderError as e:
        raise provider_failure(e)
    if booking is None:
        raise HTTPException(status_code=404, detail=f"Booking '{booking_id}' not found")
    return {"success": True, "data": booking}


@router.post("/commit")
async def commit_booking(body: CommitRequest, site: SiteConfig = Depends(get_site)):
    """Commit a booking whose questions are complete, optionally waiting for confirmation."""
    client = get_provider_client(site)
    try:
        current = await client.get_booking_questions(body.booking_id)
        if not current.can_commit:
            raise HTTPException(status_code=400, detail="Booking questions are incomplete")
        result = await booking_flow.commit_booking(
            client,
            body.booking_id,
            wait_for_confirmation=body.wait_for_confirmation,
            max_wait_seconds=body.max_wait_seconds,
        )
    except BookingProviderError as e:
        raise provider_failure(e)
    return {"success": True, "data": result}


@router.post("/{booking_id}/availability")
async def add_availability(booking_id: str, body: AddAvailabilityRequest, site: SiteConfig = Depends(get_site)):
    client = get_provider_client(site)
    try:
        await client.add_availability_to_booking(booking_id, body.availability_id)
        booking = await client.get_booking_questions(booking_id)
    except BookingProviderError as e:
        raise provider_failure(e)
    return {"success": True, "data": booking}


@router.get("/{booking_id}/questions")
async def get_questions(booking_id: str, site: SiteConfig = Depends(get_site)):
    try:
        booking = await get_provider_client(site).get_booking_questions(booking_id)
    except BookingProviderError as e:
        raise provider_failure(e)
    return {"success": True, "data": {"booking": booking, "summary": booking_flow.summarize_questions(booking)}}


@router.post("/{booking_id}/questions")
async def answer_questions(booking_id: str, body: AnswerQuestionsRequest, site: SiteConfig = Depends(get_site)):
    try:
        booking = await booking_flow.answer_questions(get_provider_client(site), booking_id, body)
    except BookingFlowError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except BookingProviderError as e:
        raise provider_failure(e)
    return {
        "success": True,
        "data": {
            "booking":    booking,
            "can_commit": bool(booking.can_commit),
            "summary":    booking_flow.summarize_questions(booking),
        },
    }

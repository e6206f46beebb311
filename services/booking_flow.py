# Booking Flow — server-side look-to-book orchestration
#
#   fetch_availability → configure_availability → start_booking_flow
#   → summarize_questions / answer_questions → commit_booking
#
# Questions live at three levels: booking, availability and person. The
# simplified guest form is mapped onto person questions by label.

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from models.booking import (
    AnswerQuestionsRequest,
    AvailabilityDetail,
    AvailabilityListResult,
    AvailabilityQuestions,
    Booking,
    BookingQuestion,
    CategoryUnits,
    OptionAnswer,
    PersonQuestions,
    QuestionsSummary,
    SimplifiedGuest,
)
from services.provider_client import BookingProviderClient, BookingProviderError

logger = logging.getLogger(__name__)


class BookingFlowError(Exception):
    pass


async def fetch_availability(
    client: BookingProviderClient, product_id: str, date_from: str, date_to: str
) -> AvailabilityListResult:
    return await client.discover_availability(product_id, date_from, date_to)


async def configure_availability(
    client: BookingProviderClient,
    availability_id: str,
    options: List[OptionAnswer],
    categories: List[CategoryUnits],
) -> AvailabilityDetail:
    """Answer options, then set guest counts; the result must come back valid."""
    availability = await client.set_availability_options(availability_id, options)
    if availability.option_list and not availability.option_list.is_complete:
        logger.debug("Availability %s options still incomplete after answering", availability_id)

    availability = await client.set_availability_pricing(availability_id, categories)
    if not availability.is_valid:
        raise BookingFlowError("Availability configuration is not valid")
    return availability


async def start_booking_flow(client: BookingProviderClient, availability_id: str) -> str:
    booking = await client.create_booking({"autoFillQuestions": True})
    await client.add_availability_to_booking(booking.id, availability_id)
    logger.info("Started booking %s for availability %s", booking.id, availability_id)
    return booking.id


def summarize_questions(booking: Booking) -> QuestionsSummary:
    return QuestionsSummary(
        booking_questions=booking.question_list,
        availability_questions=[
            AvailabilityQuestions(
                availability_id=avail.id,
                product_name=avail.product.name if avail.product else None,
                date=avail.date,
                questions=avail.question_list,
                person_questions=[
                    PersonQuestions(
                        person_id=person.id,
                        category=person.pricing_category_label,
                        is_complete=bool(person.is_questions_complete),
                        questions=person.question_list,
                    )
                    for person in avail.person_list
                ],
            )
            for avail in booking.availability_list
        ],
        can_commit=bool(booking.can_commit),
    )


# ── Simplified guest form → person answers ──────────────────────

def _guest_answer(question: BookingQuestion, guest: SimplifiedGuest, request: AnswerQuestionsRequest) -> Optional[str]:
    label = (question.label or "").lower()
    if "first" in label and "name" in label:
        return guest.first_name
    if "last" in label and "name" in label:
        return guest.last_name
    if "email" in label:
        return guest.email or (request.customer_email if guest.is_lead_guest else None)
    if "phone" in label or "mobile" in label or "telephone" in label:
        return guest.phone or (request.customer_phone if guest.is_lead_guest else None)
    return None


def build_guest_answers(booking: Booking, request: AnswerQuestionsRequest) -> Dict[str, Any]:
    """Map guests to booking persons by order and answer name/contact questions."""
    guests = request.guests or []
    availability_list = []

    for avail in booking.availability_list:
        person_list = []
        for person, guest in zip(avail.person_list, guests):
            answers = []
            for question in person.question_list:
                value = _guest_answer(question, guest, request)
                if value:
                    answers.append({"id": question.id, "value": value})
            if answers:
                person_list.append({"id": person.id, "questionList": answers})

        if person_list:
            availability_list.append({"id": avail.id, "personList": person_list})

    return {"availabilityList": availability_list}


async def answer_questions(
    client: BookingProviderClient, booking_id: str, request: AnswerQuestionsRequest
) -> Booking:
    if request.guests:
        current = await client.get_booking_questions(booking_id)
        return await client.answer_booking_questions(booking_id, build_guest_answers(current, request))

    if not request.question_list and not request.availability_list:
        raise BookingFlowError("At least one question answer must be provided")

    payload = request.model_dump(
        by_alias=True,
        exclude_none=True,
        include={"question_list", "availability_list"},
    )
    return await client.answer_booking_questions(booking_id, payload)


async def commit_booking(
    client: BookingProviderClient,
    booking_id: str,
    wait_for_confirmation: bool = True,
    max_wait_seconds: int = 60,
    poll_interval: float = 2.0,
) -> Dict[str, Any]:
    """Commit, then optionally poll for supplier confirmation."""
    booking = await client.commit_booking({"id": booking_id})

    if wait_for_confirmation and booking.state != "CONFIRMED":
        attempts = max(1, int(max_wait_seconds / poll_interval)) if poll_interval else 1
        try:
            booking = await client.wait_for_confirmation(booking_id, max_attempts=attempts, interval=poll_interval)
        except BookingProviderError as e:
            logger.warning("Booking %s committed but not confirmed: %s", booking_id, e.message)

    return {
        "booking":      booking,
        "voucher_url":  booking.voucher_url,
        "is_confirmed": booking.state == "CONFIRMED",
    }


def format_booking_date(value: str) -> str:
    """Long-form date, e.g. 2026-03-14 → Saturday 14 March 2026. Unparseable input is returned as-is."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return value
    return f"{parsed.strftime('%A')} {parsed.day} {parsed.strftime('%B %Y')}"

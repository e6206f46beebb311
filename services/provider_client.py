# Booking Provider — GraphQL look-to-book client
#
# Every request carries X-API-Key / X-Partner-Id. When an API secret is set
# the body is signed: HMAC-SHA256(secret, timestamp + body) as hex, sent in
# X-Holibob-Date / X-Holibob-Signature.
# Server errors and transport failures are retried with 2^attempt backoff;
# client errors (4xx) and "not found" GraphQL errors are raised at once.

import asyncio
import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

import config
from data import queries
from models.booking import (
    AvailabilityDetail,
    AvailabilityListResult,
    Booking,
    CategoryUnits,
    OptionAnswer,
)
from models.schemas import SiteConfig

logger = logging.getLogger(__name__)


class BookingProviderError(Exception):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status  = status

    @property
    def is_client_error(self) -> bool:
        return self.status is not None and 400 <= self.status < 500


class BookingProviderClient:
    """Async client for the Booking Provider GraphQL API."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        partner_id: str,
        api_secret: Optional[str] = None,
        timeout: float = 30.0,
        retries: int = 3,
        backoff_base: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url      = api_url
        self.api_key      = api_key
        self.partner_id   = partner_id
        self.api_secret   = api_secret
        self.retries      = retries
        self.backoff_base = backoff_base
        self._client      = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self):
        await self._client.aclose()

    # ── Transport ───────────────────────────────────────────────

    def sign(self, timestamp: str, body: str) -> str:
        if not self.api_secret:
            raise BookingProviderError("API secret is required for signature generation")
        payload = f"{timestamp}{body}".encode()
        return hmac.new(self.api_secret.encode(), payload, hashlib.sha256).hexdigest()

    def _headers(self, body: str) -> Dict[str, str]:
        headers = {
            "X-API-Key":    self.api_key,
            "X-Partner-Id": self.partner_id,
            "Content-Type": "application/json",
        }
        if self.api_secret:
            timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
            headers["X-Holibob-Date"]      = timestamp
            headers["X-Holibob-Signature"] = self.sign(timestamp, body)
        return headers

    async def _post(self, query: str, variables: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        body = json.dumps({"query": query, "variables": variables or {}})
        try:
            response = await self._client.post(self.api_url, content=body, headers=self._headers(body))
        except httpx.HTTPError as e:
            raise BookingProviderError(f"Booking provider request failed: {e}") from e

        if response.status_code >= 400:
            raise BookingProviderError(
                f"Booking provider returned HTTP {response.status_code}",
                status=response.status_code,
            )

        payload = response.json()
        errors  = payload.get("errors")
        if errors:
            message = "; ".join(e.get("message", "Unknown error") for e in errors)
            status  = 404 if "not found" in message.lower() else None
            raise BookingProviderError(message, status=status)
        return payload.get("data") or {}

    async def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Run a GraphQL document, retrying transient failures."""
        last_error: Optional[BookingProviderError] = None
        for attempt in range(1, self.retries + 1):
            try:
                return await self._post(query, variables)
            except BookingProviderError as e:
                if e.is_client_error:
                    raise
                last_error = e
                logger.warning("Booking provider attempt %d/%d failed: %s", attempt, self.retries, e.message)
                if attempt < self.retries:
                    await asyncio.sleep((2 ** attempt) * self.backoff_base)
        logger.error("Booking provider request failed after %d attempts", self.retries)
        raise last_error or BookingProviderError("Request failed after retries")

    # ── Product discovery ───────────────────────────────────────

    @staticmethod
    def map_product_filter(f: Dict[str, Any]) -> Dict[str, Any]:
        mapped: Dict[str, Any] = {
            "who": {
                "adults":   f.get("adults", 2),
                "children": f.get("children", 0),
                "infants":  f.get("infants", 0),
            }
        }
        if f.get("place_ids"):
            mapped["where"] = {"placeIds": f["place_ids"]}
        elif f.get("geo_point"):
            geo = f["geo_point"]
            mapped["where"] = {
                "geoPoint": {
                    "lat":      geo["lat"],
                    "lng":      geo["lng"],
                    "radiusKm": geo.get("radius_km") or config.DEFAULT_RADIUS_KM,
                }
            }
        if f.get("date_from"):
            mapped["when"] = {"dateFrom": f["date_from"], "dateTo": f.get("date_to")}
        if f.get("category_ids"):
            mapped["what"] = {"categoryIds": f["category_ids"]}
        if f.get("price_min") or f.get("price_max"):
            mapped["price"] = {
                "min":      f.get("price_min"),
                "max":      f.get("price_max"),
                "currency": f.get("currency"),
            }
        return mapped

    async def discover_products(
        self, product_filter: Dict[str, Any], first: int = 20, after: Optional[str] = None
    ) -> Dict[str, Any]:
        data = await self.execute(queries.PRODUCT_LIST_QUERY, {
            "filter": self.map_product_filter(product_filter),
            "first":  first,
            "after":  after,
        })
        return data.get("productList") or {"nodes": [], "totalCount": 0}

    async def get_products_by_provider(
        self,
        provider_id: str,
        page: int = 1,
        page_size: int = config.DEFAULT_PAGE_SIZE,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Paged product list for one supplier, filtered server-side."""
        product_filter: Dict[str, Any] = {"providerId": provider_id}
        filters = filters or {}
        if filters.get("category_ids"):
            product_filter["categoryIds"] = filters["category_ids"]
        if filters.get("search"):
            product_filter["search"] = filters["search"]
        if filters.get("place_name"):
            product_filter["placeName"] = filters["place_name"]

        data = await self.execute(queries.PRODUCT_LIST_BY_PROVIDER_QUERY, {
            "filter":   product_filter,
            "page":     page,
            "pageSize": page_size,
        })
        return data.get("productList") or {"nodes": [], "recordCount": 0}

    async def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        try:
            data = await self.execute(queries.PRODUCT_DETAIL_QUERY, {"id": product_id})
        except BookingProviderError as e:
            if e.status == 404:
                return None
            raise
        return data.get("product")

    # ── Availability ────────────────────────────────────────────

    async def get_availability_list(
        self,
        product_id: str,
        session_id: Optional[str] = None,
        option_list: Optional[List[OptionAnswer]] = None,
    ) -> AvailabilityListResult:
        variables: Dict[str, Any] = {"productId": product_id}
        if session_id:
            variables["sessionId"] = session_id
        if option_list:
            variables["optionList"] = [o.model_dump() for o in option_list]
        data   = await self.execute(queries.AVAILABILITY_LIST_QUERY, variables)
        result = data.get("availabilityList") or {}
        return AvailabilityListResult.model_validate(result)

    async def discover_availability(self, product_id: str, date_from: str, date_to: str) -> AvailabilityListResult:
        """Answer the date-window options, then re-query for concrete slots."""
        result  = await self.get_availability_list(product_id)
        answers = []
        for option in result.option_list.nodes:
            label = (option.label or "").lower()
            if "START_DATE" in option.id or "start" in label:
                answers.append(OptionAnswer(id=option.id, value=date_from))
            elif "END_DATE" in option.id or "end" in label:
                answers.append(OptionAnswer(id=option.id, value=date_to))

        if answers:
            result = await self.get_availability_list(product_id, result.session_id, answers)
        return result

    async def get_availability(self, availability_id: str) -> AvailabilityDetail:
        data = await self.execute(queries.AVAILABILITY_QUERY, {"id": availability_id})
        return AvailabilityDetail.from_provider(data["availability"])

    async def set_availability_options(self, availability_id: str, options: List[OptionAnswer]) -> AvailabilityDetail:
        data = await self.execute(queries.AVAILABILITY_SET_OPTIONS_QUERY, {
            "id":    availability_id,
            "input": {"optionList": [o.model_dump() for o in options]},
        })
        return AvailabilityDetail.from_provider(data["availability"])

    async def get_availability_pricing(self, availability_id: str) -> AvailabilityDetail:
        data = await self.execute(queries.AVAILABILITY_PRICING_QUERY, {"id": availability_id})
        return AvailabilityDetail.from_provider(data["availability"])

    async def set_availability_pricing(self, availability_id: str, categories: List[CategoryUnits]) -> AvailabilityDetail:
        data = await self.execute(queries.AVAILABILITY_SET_PRICING_QUERY, {
            "id":    availability_id,
            "input": {"pricingCategoryList": [c.model_dump() for c in categories]},
        })
        return AvailabilityDetail.from_provider(data["availability"])

    # ── Booking ─────────────────────────────────────────────────

    async def create_booking(self, booking_input: Optional[Dict[str, Any]] = None) -> Booking:
        payload = {"autoFillQuestions": True, "paymentType": "ON_ACCOUNT"}
        payload.update(booking_input or {})
        data = await self.execute(queries.BOOKING_CREATE_MUTATION, {"input": payload})
        return Booking.from_provider(data["bookingCreate"])

    async def add_availability_to_booking(self, booking_id: str, availability_id: str) -> bool:
        data = await self.execute(queries.BOOKING_ADD_AVAILABILITY_MUTATION, {
            "input": {"bookingId": booking_id, "availabilityId": availability_id},
        })
        return bool((data.get("bookingAddAvailability") or {}).get("isComplete"))

    async def get_booking_questions(self, booking_id: str) -> Booking:
        data = await self.execute(queries.BOOKING_QUESTIONS_QUERY, {"id": booking_id})
        return Booking.from_provider(data["booking"])

    async def answer_booking_questions(self, booking_id: str, booking_input: Dict[str, Any]) -> Booking:
        data = await self.execute(queries.BOOKING_ANSWER_QUESTIONS_QUERY, {
            "id":    booking_id,
            "input": booking_input,
        })
        return Booking.from_provider(data["booking"])

    async def commit_booking(self, selector: Dict[str, Any]) -> Booking:
        data = await self.execute(queries.BOOKING_COMMIT_MUTATION, {"bookingSelector": selector})
        return Booking.from_provider(data["bookingCommit"])

    async def wait_for_confirmation(
        self, booking_id: str, max_attempts: int = 30, interval: float = 2.0
    ) -> Booking:
        """Poll booking state until the supplier confirms it."""
        for _ in range(max_attempts):
            data    = await self.execute(queries.BOOKING_STATE_QUERY, {"id": booking_id})
            booking = Booking.from_provider(data["booking"])
            if booking.state == "CONFIRMED":
                return booking
            if booking.state in ("REJECTED", "CANCELLED"):
                raise BookingProviderError(f"Booking {booking.state}: {booking_id}")
            await asyncio.sleep(interval)
        raise BookingProviderError(f"Booking confirmation timeout after {max_attempts} attempts")

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        try:
            data = await self.execute(queries.BOOKING_FULL_QUERY, {"id": booking_id})
        except BookingProviderError as e:
            if e.status == 404:
                return None
            raise
        raw = data.get("booking")
        return Booking.from_provider(raw) if raw else None

    async def list_bookings(
        self, booking_filter: Optional[Dict[str, Any]] = None, first: int = 20, after: Optional[str] = None
    ) -> Dict[str, Any]:
        data = await self.execute(queries.BOOKING_LIST_QUERY, {
            "filter": booking_filter,
            "first":  first,
            "after":  after,
        })
        return data.get("bookingList") or {"nodes": [], "recordCount": 0}

    async def cancel_booking(self, selector: Dict[str, Any], reason: Optional[str] = None) -> Booking:
        data = await self.execute(queries.BOOKING_CANCEL_MUTATION, {
            "bookingSelector": selector,
            "reason":          reason,
        })
        return Booking.from_provider(data["bookingCancel"])

    # ── Categories & places ─────────────────────────────────────

    async def get_categories(self, place_id: Optional[str] = None) -> List[Dict[str, Any]]:
        data = await self.execute(queries.CATEGORIES_QUERY, {"placeId": place_id})
        return (data.get("categoryList") or {}).get("nodes", [])

    async def get_places(self, parent_id: Optional[str] = None, place_type: Optional[str] = None) -> List[Dict[str, Any]]:
        data = await self.execute(queries.PLACES_QUERY, {"parentId": parent_id, "type": place_type})
        return (data.get("placeList") or {}).get("nodes", [])

    # ── Flow helpers ────────────────────────────────────────────

    async def start_booking_flow(self, availability_id: str, booking_input: Optional[Dict[str, Any]] = None) -> Booking:
        """Create a booking, attach the availability and return it with its questions."""
        booking = await self.create_booking(booking_input)
        await self.add_availability_to_booking(booking.id, availability_id)
        return await self.get_booking_questions(booking.id)

    async def complete_booking_flow(self, booking_id: str, answers: Dict[str, Any]) -> Booking:
        booking = await self.answer_booking_questions(booking_id, answers)
        if not booking.can_commit:
            raise BookingProviderError("Cannot commit booking: questions incomplete", status=400)
        await self.commit_booking({"id": booking_id})
        return await self.wait_for_confirmation(booking_id)


# ── Client cache (one per partner) ──────────────────────────────
_clients: Dict[str, BookingProviderClient] = {}


def get_provider_client(site: Optional[SiteConfig] = None) -> BookingProviderClient:
    partner_id = (site.provider_partner_id if site else None) or config.BOOKING_PROVIDER_PARTNER_ID
    if partner_id not in _clients:
        _clients[partner_id] = BookingProviderClient(
            api_url=config.BOOKING_PROVIDER_API_URL,
            api_key=config.BOOKING_PROVIDER_API_KEY,
            partner_id=partner_id,
            api_secret=config.BOOKING_PROVIDER_API_SECRET,
        )
    return _clients[partner_id]

# Ticketing Provider — REST event client
# Event discovery, iframe availability widget sessions, venues and metadata.
# Auth is a single `key` header. 4xx responses and timeouts are not retried.

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

import config

logger = logging.getLogger(__name__)

SEARCH_ARRAY_PARAMS = [
    "category", "city", "state", "region", "country", "country_code",
    "performer", "venue", "event_type", "event_ids",
]
SEARCH_SCALAR_PARAMS = [
    "t1", "t2", "text", "currency", "min_price", "max_price",
    "skip", "limit", "sort_by", "range", "partial_match",
]


class TicketingProviderError(Exception):
    def __init__(self, message: str, status: int, body: str = ""):
        super().__init__(message)
        self.message = message
        self.status  = status
        self.body    = body


def _build_params(params: Dict[str, Any], scalars: List[str], arrays: List[str]) -> List[Tuple[str, str]]:
    """Flatten search params; array params repeat the key once per value."""
    out: List[Tuple[str, str]] = []
    for key in scalars:
        value = params.get(key)
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            value = str(value).lower()
        out.append((key, str(value)))
    for key in arrays:
        for value in params.get(key) or []:
            out.append((key, str(value)))
    return out


class TicketingClient:
    def __init__(
        self,
        api_url: str,
        api_key: str,
        timeout: float = 30.0,
        retries: int = 3,
        backoff_base: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url      = api_url.rstrip("/")
        self.api_key      = api_key
        self.retries      = retries
        self.backoff_base = backoff_base
        self._client      = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self):
        await self._client.aclose()

    async def _request(self, path: str, params: Optional[List[Tuple[str, str]]] = None) -> Tuple[Any, Optional[int]]:
        last_error: Optional[Exception] = None
        for attempt in range(1, self.retries + 1):
            try:
                response = await self._client.get(
                    f"{self.api_url}{path}",
                    params=params,
                    headers={"key": self.api_key, "Accept": "application/json"},
                )
                if response.status_code >= 400:
                    raise TicketingProviderError(
                        f"Ticketing API error {response.status_code}: {response.text}",
                        response.status_code,
                        response.text,
                    )
                total = response.headers.get("x-total-count")
                return response.json(), int(total) if total else None
            except TicketingProviderError as e:
                if 400 <= e.status < 500:
                    raise
                last_error = e
            except httpx.TimeoutException as e:
                raise TicketingProviderError("Request timed out", 408) from e
            except httpx.HTTPError as e:
                last_error = e

            logger.warning("Ticketing request %s attempt %d/%d failed: %s", path, attempt, self.retries, last_error)
            if attempt < self.retries:
                await asyncio.sleep((2 ** attempt) * self.backoff_base)

        if isinstance(last_error, TicketingProviderError):
            raise last_error
        raise TicketingProviderError(f"Request failed after retries: {last_error}", 502)

    # ── Event search ────────────────────────────────────────────

    async def search_events(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        query = _build_params(params or {}, SEARCH_SCALAR_PARAMS, SEARCH_ARRAY_PARAMS)
        events, total = await self._request("/api/events/", query)
        return {"events": events, "total_count": total if total is not None else len(events)}

    async def search(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        query = _build_params(
            params or {},
            ["t1", "t2", "text", "currency", "skip", "limit"],
            ["category", "city", "country", "country_code"],
        )
        events, total = await self._request("/api/search/", query)
        return {"events": events, "total_count": total if total is not None else len(events)}

    async def autocomplete(self, text: str, skip: Optional[int] = None, limit: Optional[int] = None) -> Dict[str, Any]:
        query = _build_params({"text": text, "skip": skip, "limit": limit}, ["text", "skip", "limit"], [])
        data, _ = await self._request("/api/search/autocomplete", query)
        return data

    async def get_event(self, event_id: str, currency: str = "GBP") -> Optional[Dict[str, Any]]:
        try:
            data, _ = await self._request(f"/api/events/{event_id}", [("currency", currency)])
        except TicketingProviderError as e:
            if e.status == 404:
                return None
            raise
        return data

    # ── Availability widget ─────────────────────────────────────

    async def get_availability_widget(
        self,
        event_id: str,
        basket_id: Optional[str] = None,
        allow_cache: Optional[bool] = None,
        t1: Optional[str] = None,
        t2: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Return `session_id` and `view_url` for the embedded booking iframe."""
        query = _build_params(
            {"event_id": event_id, "basket_id": basket_id, "allow_cache": allow_cache, "t1": t1, "t2": t2},
            ["event_id", "basket_id", "allow_cache", "t1", "t2"],
            [],
        )
        data, _ = await self._request("/api/availability/", query)
        return data

    async def get_availability_session(
        self, session_id: str, allow_cache: Optional[bool] = None, t1: Optional[str] = None, t2: Optional[str] = None
    ) -> Dict[str, Any]:
        query = _build_params(
            {"session_id": session_id, "allow_cache": allow_cache, "t1": t1, "t2": t2},
            ["session_id", "allow_cache", "t1", "t2"],
            [],
        )
        data, _ = await self._request("/api/availability/session", query)
        return data

    async def get_day_availability(self, session_id: str, day: str, quantity: Optional[int] = None) -> Dict[str, Any]:
        query = _build_params(
            {"session_id": session_id, "day": day, "quantity": quantity},
            ["session_id", "day", "quantity"],
            [],
        )
        data, _ = await self._request("/api/availability/day", query)
        return data

    # ── Venues & metadata ───────────────────────────────────────

    async def get_venues(
        self, skip: Optional[int] = None, limit: Optional[int] = None, venue_ids: Optional[List[str]] = None
    ) -> List[Dict[str, Any]]:
        query = _build_params({"skip": skip, "limit": limit, "venue_ids": venue_ids}, ["skip", "limit"], ["venue_ids"])
        data, _ = await self._request("/api/venues/", query)
        return data

    async def get_venue(self, venue_id: str) -> Optional[Dict[str, Any]]:
        try:
            data, _ = await self._request(f"/api/venues/{venue_id}")
        except TicketingProviderError as e:
            if e.status == 404:
                return None
            raise
        return data

    async def get_metadata(
        self, include_empty: Optional[bool] = None, filter_children: Optional[bool] = None
    ) -> Dict[str, Any]:
        query = _build_params(
            {"include_empty": include_empty, "filter_children": filter_children},
            ["include_empty", "filter_children"],
            [],
        )
        data, _ = await self._request("/api/metadata/", query)
        return data


_client: Optional[TicketingClient] = None


def get_ticketing_client() -> TicketingClient:
    global _client
    if _client is None:
        _client = TicketingClient(config.TICKETING_API_URL, config.TICKETING_API_KEY)
    return _client

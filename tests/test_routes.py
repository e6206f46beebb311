"""
HTTP-level tests for the API routers and HTML pages.
Every provider call goes through the mocked client from conftest.
"""
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from models.booking import Booking
from services import llm_service
from services.provider_client import BookingProviderError
from services.ticketing_client import TicketingProviderError
from tests.factories import make_availability, make_pricing, make_product, make_slots


@pytest.fixture
def catalog(provider):
    provider.discover_products.return_value = {"nodes": [
        make_product("p1", "Colosseum Underground Tour", guide_price=4500, categories=["Tours"]),
        make_product("p2", "Pasta Class", guide_price=7000, categories=["Food"], max_duration="PT2H"),
        make_product("p3", "Vatican Early Entry", guide_price=9000, categories=["Tours"], rating=None),
    ]}
    return provider


class TestHealth:
    def test_health(self, api):
        assert api.get("/api/health").json() == {"status": "ok", "service": "experience-marketplace"}


class TestExperiences:
    def test_list_with_filters_and_counts(self, api, catalog):
        r = api.get("/api/experiences", params={"categories": "Tours", "sort": "price-high", "pageSize": 1})
        assert r.status_code == 200
        data = r.json()["data"]
        assert [e["id"] for e in data["experiences"]] == ["p3"]
        assert data["filtered_count"] == 2
        assert data["total_count"] == 3
        assert data["has_more"] is True
        assert {c["name"]: c["count"] for c in data["filter_counts"]["categories"]} == {"Tours": 2, "Food": 1}

    def test_provider_failure_is_502(self, api, provider):
        provider.discover_products.side_effect = BookingProviderError("down", 503)
        assert api.get("/api/experiences").status_code == 502

    def test_search_falls_back_to_text(self, api, catalog, monkeypatch):
        monkeypatch.setattr(llm_service, "client", None)
        body = api.get("/api/experiences/search", params={"q": "pasta"}).json()
        assert [e["id"] for e in body["data"]["experiences"]] == ["p2"]
        assert body["filters"]["search"] == "pasta"

    def test_search_parses_query_off_the_event_loop(self, api, catalog, monkeypatch):
        calls = []

        async def recording(func, *args):
            calls.append(func)
            return func(*args)

        monkeypatch.setattr(llm_service, "client", None)
        monkeypatch.setattr("routers.experiences.run_in_threadpool", recording)
        assert api.get("/api/experiences/search", params={"q": "pasta"}).status_code == 200
        assert calls == [llm_service.filter_state_from_text]

    def test_detail_and_missing(self, api, provider):
        provider.get_product.return_value = make_product("p1")
        data = api.get("/api/experiences/p1").json()["data"]
        assert data["title"] == "Colosseum Underground Tour"
        assert data["price"]["amount"] == 4500

        provider.get_product.return_value = None
        assert api.get("/api/experiences/missing").status_code == 404


class TestMicrositeExperiences:
    def test_requires_supplier(self, api):
        assert api.get("/api/microsite-experiences").status_code == 400

    def test_passes_filters_and_sets_cache_header(self, api, provider):
        provider.get_products_by_provider.return_value = {
            "nodes":                 [make_product("p1"), make_product("p2")],
            "recordCount":           2,
            "unfilteredRecordCount": 14,
            "nextPage":              2,
        }
        r = api.get("/api/microsite-experiences", params={
            "holibobSupplierId": "sup-9", "categories": "tours,food", "search": "night", "city": "Rome",
        })
        assert r.status_code == 200
        assert r.headers["cache-control"] == "public, s-maxage=60, stale-while-revalidate=300"
        body = r.json()
        assert (body["total_count"], body["filtered_count"], body["has_more"]) == (14, 2, True)
        provider.get_products_by_provider.assert_awaited_once_with(
            "sup-9", 1, 20, {"category_ids": ["tours", "food"], "search": "night", "place_name": "Rome"}
        )

    def test_provider_failure_body(self, api, provider):
        provider.get_products_by_provider.side_effect = BookingProviderError("boom")
        r = api.get("/api/microsite-experiences", params={"holibobSupplierId": "sup-9"})
        assert r.status_code == 502
        assert r.json()["experiences"] == []
        assert r.json()["error"] == "Failed to fetch experiences"


class TestAvailability:
    def test_requires_window(self, api):
        assert api.get("/api/availability", params={"productId": "p1"}).status_code == 400

    def test_lists_open_slots(self, api, provider):
        provider.discover_availability.return_value = make_slots(
            {"id": "a1", "date": "2026-11-02"}, {"id": "a2", "date": "2026-11-03", "soldOut": True},
        )
        r = api.get("/api/availability", params={"productId": "p1", "dateFrom": "2026-11-01", "dateTo": "2026-11-30"})
        data = r.json()["data"]
        assert data["session_id"] == "sess-1"
        assert [s["id"] for s in data["slots"]] == ["a1"]

    def test_detail_with_pricing(self, api, provider):
        provider.get_availability_pricing.return_value = make_pricing()
        data = api.get("/api/availability/a1", params={"includePricing": "true"}).json()["data"]
        assert [c["id"] for c in data["pricingCategoryList"]] == ["adult", "child"]
        provider.get_availability.assert_not_awaited()

    def test_update_requires_a_list(self, api):
        assert api.post("/api/availability/a1", json={}).status_code == 400

    def test_update_pricing(self, api, provider):
        provider.set_availability_pricing.return_value = make_pricing(valid=True)
        r = api.post("/api/availability/a1", json={"pricingCategoryList": [{"id": "adult", "units": 2}]})
        assert r.json()["data"]["isValid"] is True

    def test_client_errors_keep_status(self, api, provider):
        provider.get_availability.side_effect = BookingProviderError("Availability not found", 404)
        assert api.get("/api/availability/zzz").status_code == 404


class TestBooking:
    def test_create(self, api, provider):
        r = api.post("/api/booking")
        assert r.json()["data"]["id"] == "book-1"
        provider.create_booking.assert_awaited_once_with({"autoFillQuestions": True})

    def test_get_requires_id(self, api):
        assert api.get("/api/booking").status_code == 400

    def test_get_missing(self, api, provider):
        provider.get_booking.return_value = None
        assert api.get("/api/booking", params={"id": "nope"}).status_code == 404

    def test_get_uses_provider_field_names(self, api, provider):
        provider.get_booking.return_value = Booking(id="book-1", state="CONFIRMED", can_commit=False)
        data = api.get("/api/booking", params={"id": "book-1"}).json()["data"]
        assert data["state"] == "CONFIRMED"
        assert data["canCommit"] is False

    def test_commit_requires_complete_questions(self, api, provider):
        provider.get_booking_questions.return_value = Booking(id="book-1", can_commit=False)
        assert api.post("/api/booking/commit", json={"bookingId": "book-1"}).status_code == 400
        provider.commit_booking.assert_not_awaited()

    def test_commit(self, api, provider):
        provider.get_booking_questions.return_value = Booking(id="book-1", can_commit=True)
        provider.commit_booking.return_value = Booking(id="book-1", state="CONFIRMED")
        r = api.post("/api/booking/commit", json={"bookingId": "book-1", "waitForConfirmation": False})
        assert r.status_code == 200
        assert r.json()["data"]["is_confirmed"] is True

    def test_empty_answers_rejected(self, api):
        r = api.post("/api/booking/book-1/questions", json={})
        assert r.status_code == 400
        assert "At least one question answer" in r.json()["detail"]

    def test_add_availability_returns_questions(self, api, provider):
        provider.get_booking_questions.return_value = Booking(id="book-1")
        r = api.post("/api/booking/book-1/availability", json={"availabilityId": "a1"})
        assert r.status_code == 200
        provider.add_availability_to_booking.assert_awaited_once_with("book-1", "a1")

    def test_provider_failure_is_logged_and_502(self, api, provider, caplog):
        provider.create_booking.side_effect = BookingProviderError("provider down", 503)
        with caplog.at_level(logging.ERROR, logger="routers.booking"):
            r = api.post("/api/booking")
        assert r.status_code == 502
        assert r.json()["detail"] == "provider down"
        assert "provider down" in caplog.text

    def test_client_error_keeps_status(self, api, provider):
        provider.get_booking_questions.side_effect = BookingProviderError("Booking not found", 404)
        assert api.get("/api/booking/nope/questions").status_code == 404


class TestWizard:
    @pytest.fixture
    def bookable(self, provider):
        provider.discover_availability.return_value = make_slots({"id": "a1", "date": "2026-11-02"})
        provider.get_availability.return_value = make_availability(complete=True)
        provider.get_availability_pricing.return_value = make_pricing()
        provider.set_availability_pricing.return_value = make_pricing(
            valid=True, total={"gross": 9000, "currency": "GBP", "grossFormattedText": "£90.00"}
        )
        return provider

    def test_full_flow(self, api, bookable):
        r = api.post("/api/wizard", json={"productId": "p1", "productName": "Colosseum"})
        wizard = r.json()["data"]
        wizard_id = wizard["id"]
        assert wizard["state"]["step"] == "dates"
        assert [s["id"] for s in wizard["state"]["slots"]] == ["a1"]

        state = api.post(f"/api/wizard/{wizard_id}/slot", json={"slotId": "a1"}).json()["data"]
        assert state["state"]["step"] == "pricing"
        assert state["session"]["formatted"] in ("15:00", "14:59")

        state = api.post(f"/api/wizard/{wizard_id}/guests", json={"categoryId": "adult", "delta": 1}).json()["data"]
        assert state["total_guests"] == 2

        state = api.get(f"/api/wizard/{wizard_id}").json()["data"]
        assert state["state"]["is_valid"] is True

        r = api.post(f"/api/wizard/{wizard_id}/book")
        assert r.json()["data"]["checkout_url"] == "/checkout/book-1"
        assert api.get(f"/api/wizard/{wizard_id}").status_code == 404

    def test_unknown_slot_is_400(self, api, bookable):
        wizard_id = api.post("/api/wizard", json={"productId": "p1"}).json()["data"]["id"]
        assert api.post(f"/api/wizard/{wizard_id}/slot", json={"slotId": "nope"}).status_code == 400

    def test_missing_wizard(self, api):
        assert api.get("/api/wizard/nope").status_code == 404
        assert api.delete("/api/wizard/nope").status_code == 404


class TestEvents:
    @pytest.fixture
    def tickets(self, monkeypatch):
        client = MagicMock()
        client.search_events = AsyncMock(return_value={
            "events": [{"event_id": "ev-1", "title": "Hamilton", "city": "London",
                        "from_price": {"amount": 45, "currency": "GBP"}, "categories": ["Theatre"]}],
            "total_count": 3,
        })
        client.get_event = AsyncMock(return_value=None)
        client.get_availability_widget = AsyncMock(side_effect=TicketingProviderError("bad gateway", 503))
        monkeypatch.setattr("routers.events.get_ticketing_client", lambda: client)
        return client

    def test_search(self, api, tickets):
        data = api.get("/api/events", params={"city": "London", "limit": 1}).json()["data"]
        assert data["experiences"][0]["title"] == "Hamilton"
        assert data["has_more"] is True
        assert tickets.search_events.await_args.args[0]["city"] == ["London"]

    def test_missing_event(self, api, tickets):
        assert api.get("/api/events/ev-404").status_code == 404

    def test_widget_server_error_is_502(self, api, tickets):
        assert api.get("/api/events/ev-1/availability-widget").status_code == 502


class TestPages:
    def test_home(self, api):
        r = api.get("/")
        assert r.status_code == 200
        assert "application/ld+json" in r.text

    def test_experience_page(self, api, provider, fake_db):
        provider.get_product.return_value = make_product("p1")
        r = api.get("/experiences/p1")
        assert r.status_code == 200
        assert 'data-product-id="p1"' in r.text
        assert "TouristAttraction" in r.text

    def test_experience_page_missing(self, api, provider, fake_db):
        provider.get_product.return_value = None
        assert api.get("/experiences/nope").status_code == 404

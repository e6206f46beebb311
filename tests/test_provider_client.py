"""
Tests for the Booking Provider GraphQL client.
"""
import hashlib
import hmac
import json

import httpx
import pytest

from models.booking import CategoryUnits, OptionAnswer
from services.provider_client import BookingProviderClient, BookingProviderError


def make_client(handler, secret=None, retries=3):
    return BookingProviderClient(
        api_url="https://provider.test/graphql",
        api_key="key-123",
        partner_id="partner-9",
        api_secret=secret,
        retries=retries,
        backoff_base=0,
        transport=httpx.MockTransport(handler),
    )


def graphql(data=None, errors=None, status=200):
    body = {"data": data}
    if errors:
        body["errors"] = errors
    return httpx.Response(status, json=body)


class TestTransport:
    """Headers, signing and error mapping."""

    @pytest.mark.asyncio
    async def test_sends_partner_headers(self):
        seen = {}

        def handler(request):
            seen.update(request.headers)
            return graphql({"product": {"id": "p1"}})

        await make_client(handler).get_product("p1")
        assert seen["x-api-key"] == "key-123"
        assert seen["x-partner-id"] == "partner-9"
        assert "x-holibob-signature" not in seen

    @pytest.mark.asyncio
    async def test_signs_body_when_secret_set(self):
        seen = {}

        def handler(request):
            seen["headers"] = dict(request.headers)
            seen["body"]    = request.content.decode()
            return graphql({"product": {"id": "p1"}})

        await make_client(handler, secret="s3cret").get_product("p1")
        timestamp = seen["headers"]["x-holibob-date"]
        expected  = hmac.new(b"s3cret", f"{timestamp}{seen['body']}".encode(), hashlib.sha256).hexdigest()
        assert seen["headers"]["x-holibob-signature"] == expected
        assert timestamp.endswith("Z")

    def test_sign_requires_secret(self):
        client = make_client(lambda r: graphql({}))
        with pytest.raises(BookingProviderError):
            client.sign("2026-01-01T00:00:00.000Z", "{}")

    @pytest.mark.asyncio
    async def test_not_found_error_returns_none(self):
        calls = []

        def handler(request):
            calls.append(1)
            return graphql(None, errors=[{"message": "Product not found"}])

        assert await make_client(handler).get_product("missing") is None
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self):
        responses = [httpx.Response(503), httpx.Response(502), graphql({"product": {"id": "p1"}})]

        def handler(request):
            return responses.pop(0)

        product = await make_client(handler).get_product("p1")
        assert product == {"id": "p1"}
        assert responses == []

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(401)

        with pytest.raises(BookingProviderError) as exc:
            await make_client(handler).get_booking_questions("b1")
        assert exc.value.status == 401
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self):
        def handler(request):
            raise httpx.ConnectError("boom")

        with pytest.raises(BookingProviderError):
            await make_client(handler, retries=2).get_product("p1")


class TestProductFilter:
    """Filter mapping to the provider's who/where/when/what shape."""

    def test_defaults_to_two_adults(self):
        mapped = BookingProviderClient.map_product_filter({})
        assert mapped == {"who": {"adults": 2, "children": 0, "infants": 0}}

    def test_geo_point_uses_default_radius(self):
        mapped = BookingProviderClient.map_product_filter({"geo_point": {"lat": 51.5, "lng": -0.1}})
        assert mapped["where"]["geoPoint"] == {"lat": 51.5, "lng": -0.1, "radiusKm": 50}

    def test_place_ids_win_over_geo_point(self):
        mapped = BookingProviderClient.map_product_filter({
            "place_ids": ["rome"],
            "geo_point": {"lat": 1, "lng": 2},
            "category_ids": ["food"],
            "date_from": "2026-05-01",
        })
        assert mapped["where"] == {"placeIds": ["rome"]}
        assert mapped["what"] == {"categoryIds": ["food"]}
        assert mapped["when"] == {"dateFrom": "2026-05-01", "dateTo": None}


class TestLookToBook:
    """Availability and booking calls."""

    @pytest.mark.asyncio
    async def test_discover_availability_answers_date_options(self):
        requests = []

        def handler(request):
            variables = json.loads(request.content)["variables"]
            requests.append(variables)
            if "optionList" not in variables:
                return graphql({"availabilityList": {
                    "sessionId": "sess-1",
                    "nodes": [],
                    "optionList": {"isComplete": False, "nodes": [
                        {"id": "START_DATE", "label": "Start date"},
                        {"id": "END_DATE", "label": "End date"},
                    ]},
                }})
            return graphql({"availabilityList": {
                "sessionId": "sess-1",
                "nodes": [
                    {"id": "a1", "date": "2026-05-02", "soldOut": False},
                    {"id": "a2", "date": "2026-05-03", "soldOut": True},
                ],
                "optionList": {"isComplete": True, "nodes": []},
            }})

        result = await make_client(handler).discover_availability("p1", "2026-05-01", "2026-05-31")
        assert requests[1]["sessionId"] == "sess-1"
        assert requests[1]["optionList"] == [
            {"id": "START_DATE", "value": "2026-05-01"},
            {"id": "END_DATE", "value": "2026-05-31"},
        ]
        assert [s.id for s in result.open_slots] == ["a1"]

    @pytest.mark.asyncio
    async def test_set_pricing_sends_units_and_unwraps_categories(self):
        seen = {}

        def handler(request):
            seen.update(json.loads(request.content)["variables"])
            return graphql({"availability": {
                "id": "a1",
                "isValid": True,
                "totalPrice": {"gross": 9000, "currency": "GBP", "grossFormattedText": "£90.00"},
                "pricingCategoryList": {"nodes": [{"id": "adult", "label": "Adult", "units": 2}]},
            }})

        detail = await make_client(handler).set_availability_pricing("a1", [CategoryUnits(id="adult", units=2)])
        assert seen["input"] == {"pricingCategoryList": [{"id": "adult", "units": 2}]}
        assert detail.is_valid is True
        assert detail.pricing_category_list[0].units == 2
        assert detail.total_price.gross_formatted_text == "£90.00"

    @pytest.mark.asyncio
    async def test_set_options_payload(self):
        seen = {}

        def handler(request):
            seen.update(json.loads(request.content)["variables"])
            return graphql({"availability": {"id": "a1", "optionList": {"isComplete": True, "nodes": []}}})

        detail = await make_client(handler).set_availability_options("a1", [OptionAnswer(id="lang", value="en")])
        assert seen["input"] == {"optionList": [{"id": "lang", "value": "en"}]}
        assert detail.option_list.is_complete

    @pytest.mark.asyncio
    async def test_create_booking_defaults(self):
        seen = {}

        def handler(request):
            seen.update(json.loads(request.content)["variables"])
            return graphql({"bookingCreate": {"id": "b1", "state": "OPEN"}})

        booking = await make_client(handler).create_booking({"partnerExternalReference": "ref-1"})
        assert seen["input"] == {
            "autoFillQuestions": True,
            "paymentType": "ON_ACCOUNT",
            "partnerExternalReference": "ref-1",
        }
        assert booking.id == "b1"

    @pytest.mark.asyncio
    async def test_booking_questions_unwrap_nested_nodes(self):
        def handler(request):
            return graphql({"booking": {
                "id": "b1",
                "canCommit": False,
                "questionList": {"nodes": [{"id": "q1", "label": "Email"}]},
                "availabilityList": {"nodes": [{
                    "id": "a1",
                    "questionList": {"nodes": []},
                    "personList": {"nodes": [{
                        "id": "p1",
                        "pricingCategoryLabel": "Adult",
                        "questionList": {"nodes": [{"id": "q2", "label": "First name"}]},
                    }]},
                }]},
            }})

        booking = await make_client(handler).get_booking_questions("b1")
        assert booking.question_list[0].label == "Email"
        assert booking.availability_list[0].person_list[0].question_list[0].id == "q2"

    @pytest.mark.asyncio
    async def test_wait_for_confirmation_polls_until_confirmed(self):
        states = ["PENDING", "PENDING", "CONFIRMED"]

        def handler(request):
            return graphql({"booking": {"id": "b1", "state": states.pop(0)}})

        booking = await make_client(handler).wait_for_confirmation("b1", max_attempts=5, interval=0)
        assert booking.state == "CONFIRMED"

    @pytest.mark.asyncio
    async def test_wait_for_confirmation_stops_on_rejection(self):
        def handler(request):
            return graphql({"booking": {"id": "b1", "state": "REJECTED"}})

        with pytest.raises(BookingProviderError):
            await make_client(handler).wait_for_confirmation("b1", max_attempts=5, interval=0)

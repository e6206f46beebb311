"""Factories for provider payloads, list items and local catalog rows."""

from typing import Any, List, Optional

from models.booking import AvailabilityDetail, AvailabilityListResult
from models.schemas import Duration, ExperienceListItem, Location, Price, Rating


def make_product(
    id: str = "prod-1",
    name: str = "Colosseum Underground Tour",
    guide_price: int = 4500,
    currency: str = "GBP",
    max_duration: Optional[str] = "PT3H",
    rating: Optional[float] = 4.7,
    review_count: int = 120,
    categories: Optional[List[str]] = None,
    place: Optional[dict] = None,
    **extra: Any,
) -> dict:
    """A Booking Provider product node as returned by productList/product."""
    product = {
        "id":                 id,
        "name":               name,
        "description":        f"{name} with a local guide.",
        "guidePrice":         guide_price,
        "guidePriceCurrency": currency,
        "maxDuration":        max_duration,
        "reviewRating":       rating,
        "reviewCount":        review_count,
        "imageList":          [{"url": "https://cdn.example.com/colosseum.jpg"}],
        "categoryList":       {"nodes": [{"id": c.lower(), "name": c} for c in (categories or ["Tours"])]},
        "place":              place or {"name": "Rome", "cityId": "city-rome"},
    }
    product.update(extra)
    return product


def make_item(
    id: str = "exp-1",
    title: str = "Walking Tour",
    amount: int = 3000,
    minutes: int = 120,
    rating: Optional[float] = 4.5,
    count: int = 10,
    categories: Optional[List[str]] = None,
    city: str = "London",
    lat: float = 0,
    lng: float = 0,
) -> ExperienceListItem:
    return ExperienceListItem(
        id=id,
        title=title,
        slug=id,
        image_url="/placeholder-experience.jpg",
        price=Price(amount=amount, currency="GBP", formatted=""),
        duration=Duration(value=minutes, unit="minutes", formatted=""),
        rating=Rating(average=rating, count=count) if rating else None,
        location=Location(name=city, lat=lat, lng=lng),
        categories=categories or ["Tours"],
        duration_minutes=minutes or None,
    )


def make_local_product(**fields) -> dict:
    """Firestore `products` document fields (camelCase, as synced)."""
    doc = {
        "providerProductId": "prov-1",
        "slug":              "harbour-cruise",
        "title":             "Harbour Cruise",
        "priceFrom":         35,
        "currency":          "GBP",
        "duration":          "2 hours",
        "city":              "Sydney",
        "rating":            4.6,
        "reviewCount":       40,
        "categories":        ["Cruises"],
        "supplierId":        "sup-1",
    }
    doc.update(fields)
    return doc


def make_availability(id: str = "avail-1", complete: bool = True, **extra) -> AvailabilityDetail:
    data = {
        "id":         id,
        "date":       "2026-11-02",
        "optionList": {"isComplete": complete, "nodes": []},
    }
    data.update(extra)
    return AvailabilityDetail.from_provider(data)


def make_pricing(valid: bool = False, categories: Optional[List[dict]] = None, total: Optional[dict] = None):
    return AvailabilityDetail.from_provider({
        "id":         "avail-1",
        "isValid":    valid,
        "totalPrice": total,
        "pricingCategoryList": {"nodes": categories if categories is not None else [
            {"id": "adult", "label": "Adult", "minParticipants": 1, "maxParticipants": 10},
            {"id": "child", "label": "Child", "minParticipants": 0, "maxParticipants": 5,
             "maxParticipantsDepends": {"pricingCategoryId": "adult", "multiplier": 2}},
        ]},
    })


def make_slots(*slots: dict) -> AvailabilityListResult:
    return AvailabilityListResult.model_validate({"sessionId": "sess-1", "nodes": list(slots)})


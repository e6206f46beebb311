# Product Mapper — reshape provider payloads for display
#
# The Booking Provider returns products in several shapes depending on the
# endpoint (discovery list, provider list, detail). Each field here tries
# the known sources in order and falls back to a display-safe default.
# Ticketing events and locally synced catalog rows map onto the same
# Experience / ExperienceListItem models.

import base64
import json
import logging
import re
from typing import Any, Dict, List, Optional

from config import IMAGE_PRESETS, IMAGE_CDN_HOST, PLACEHOLDER_IMAGE
from models.schemas import (
    Category,
    Duration,
    Experience,
    ExperienceListItem,
    ItineraryStop,
    LocalProduct,
    Location,
    Price,
    Rating,
    Review,
)

logger = logging.getLogger(__name__)

ISO_DURATION = re.compile(r"^P(?:(\d+)D)?T?(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")

CURRENCY_SYMBOLS = {"GBP": "£", "EUR": "€", "USD": "$", "AUD": "A$", "CAD": "C$"}

TICKETING_PROVIDER = {"id": "tickitto", "name": "Tickitto"}


# ── Formatting ──────────────────────────────────────────────────

def parse_iso_duration(value: Any) -> int:
    """Total minutes from an ISO 8601 duration ("PT210M", "PT3H30M", "P1D"). Seconds are ignored."""
    if value is None:
        return 0
    if isinstance(value, (int, float)):
        return int(value)

    text  = str(value).strip().upper()
    match = ISO_DURATION.match(text)
    if not match or text in ("P", "PT"):
        lead = re.match(r"^-?\d+", text)
        return int(lead.group()) if lead else 0

    days, hours, minutes = (int(g or 0) for g in match.groups()[:3])
    return days * 24 * 60 + hours * 60 + minutes


def parse_duration_text(text: Optional[str]) -> int:
    """Minutes from ISO durations or free text such as "2 hours", "90 min", "1 day"."""
    if not text:
        return 0
    if str(text).strip().upper().startswith("P"):
        return parse_iso_duration(text)
    match = re.match(r"^\s*(\d+(?:\.\d+)?)\s*(d|day|days|h|hr|hrs|hour|hours|m|min|mins|minutes)?\b",
                     str(text), re.IGNORECASE)
    if not match:
        return 0
    value = float(match.group(1))
    unit  = (match.group(2) or "min").lower()
    if unit.startswith("d"):
        return int(value * 1440)
    if unit.startswith("h"):
        return int(value * 60)
    return int(value)


def format_duration(value: int, unit: str = "minutes") -> str:
    if value <= 0:
        return "Flexible duration"
    if unit == "minutes":
        if value >= 60:
            hours, mins = divmod(value, 60)
            if mins:
                return f"{hours}h {mins}m"
            return "1 hour" if hours == 1 else f"{hours} hours"
        return f"{value} min"
    if unit == "hours":
        return "1 hour" if value == 1 else f"{value} hours"
    if unit == "days":
        return "1 day" if value == 1 else f"{value} days"
    return f"{value} {unit}"


def format_price(amount: float, currency: str = "GBP") -> str:
    """Format a minor-unit amount: 4550 GBP -> "£45.50"."""
    major  = (amount or 0) / 100
    symbol = CURRENCY_SYMBOLS.get(currency.upper())
    if symbol:
        return f"{symbol}{major:,.2f}"
    return f"{currency.upper()} {major:,.2f}"


def format_option_label(label: str) -> str:
    """Provider option labels like "6 PAX" read as "Group of 6"."""
    match = re.match(r"^\s*(\d+)\s*PAX\s*$", label or "", re.IGNORECASE)
    return f"Group of {match.group(1)}" if match else label


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", (name or "").lower()).strip("-")


# ── Image CDN ───────────────────────────────────────────────────

def optimize_image_url(url: str, width: int, height: int, quality: int = 80) -> str:
    """Rewrite an image CDN URL with resize and quality edits; other URLs pass through."""
    if not url or IMAGE_CDN_HOST not in url:
        return url

    token = url.rstrip("/").split("/")[-1]
    if not token:
        return url
    try:
        padded  = token + "=" * (-len(token) % 4)
        decoded = json.loads(base64.b64decode(padded).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as e:
        logger.warning("Failed to optimize image URL %s: %s", url, e)
        return url
    if not isinstance(decoded, dict):
        logger.warning("Failed to optimize image URL %s: token is not an object", url)
        return url

    edits = decoded.get("edits")
    edits = dict(edits) if isinstance(edits, dict) else {}
    edits.update({
        "resize": {"width": width, "height": height, "fit": "cover"},
        "jpeg":   {"quality": quality},
        "webp":   {"quality": quality},
    })
    decoded["edits"] = edits
    new_token = base64.b64encode(json.dumps(decoded, separators=(",", ":")).encode()).decode()
    return f"https://{IMAGE_CDN_HOST}/{new_token}"


def optimize_image_with_preset(url: str, preset: str) -> str:
    p = IMAGE_PRESETS[preset]
    return optimize_image_url(url, p["width"], p["height"], p["quality"])


# ── Helpers ─────────────────────────────────────────────────────

def _nodes(value: Any) -> List[Any]:
    if isinstance(value, dict):
        return value.get("nodes") or []
    return value or []


def _first(*values):
    for v in values:
        if v is not None:
            return v
    return None


def _texts(items: Any) -> List[str]:
    """Strings, or `{text}` objects, flattened to non-empty strings."""
    out = []
    for item in items or []:
        text = item.get("text") if isinstance(item, dict) else item
        if text:
            out.append(str(text))
    return out


def _content_of(nodes: List[dict], kind: str, prefer: str = "name") -> List[str]:
    other = "description" if prefer == "name" else "name"
    return [
        n.get(prefer) or n.get(other)
        for n in nodes
        if n.get("type") == kind and (n.get(prefer) or n.get(other))
    ]


def _duration_of(product: dict) -> Duration:
    raw = product.get("duration")
    if product.get("maxDuration") is not None:
        value, unit = parse_iso_duration(product["maxDuration"]), "minutes"
    elif isinstance(raw, (int, float, str)):
        value, unit = parse_iso_duration(raw), "minutes"
    elif isinstance(raw, dict):
        value, unit = int(raw.get("value") or 0), raw.get("unit") or "hours"
    else:
        value, unit = 0, "hours"

    return Duration(
        value=value,
        unit=unit if unit in ("minutes", "hours", "days") else "minutes",
        formatted=product.get("durationText") or format_duration(value, unit),
    )


def _cancellation_policy(product: dict, content_nodes: List[dict]) -> str:
    policy = product.get("cancellationPolicy")
    text   = ""
    if isinstance(policy, str):
        text = policy
    elif isinstance(policy, dict):
        penalties = [n.get("formattedText") for n in _nodes(policy.get("penaltyList")) if n.get("formattedText")]
        text = "\n".join(penalties) if penalties else (policy.get("description") or "")
    if not text:
        text = " ".join(_content_of(content_nodes, "CANCELLATION_POLICY", prefer="description"))
    return text


def _location_of(product: dict) -> Location:
    start    = product.get("startPlace") or {}
    geo      = start.get("geoCoordinate") or {}
    place    = product.get("place") or {}
    location = product.get("location") or {}
    coords   = location.get("coordinates") or {}

    return Location(
        name=_first(place.get("name"), place.get("city"), location.get("name"), start.get("name")) or "",
        address=_first(
            start.get("formattedAddress"), start.get("address"), place.get("address"), location.get("address")
        ) or "",
        lat=_first(geo.get("latitude"), geo.get("lat"), place.get("latitude"), place.get("lat"),
                   coords.get("lat"), location.get("lat")) or 0,
        lng=_first(geo.get("longitude"), geo.get("lng"), place.get("longitude"), place.get("lng"),
                   coords.get("lng"), location.get("lng")) or 0,
        map_image_url=start.get("mapImageUrl"),
    )


def _image_urls(product: dict) -> List[str]:
    listed = [img.get("url") for img in _nodes(product.get("imageList")) if img.get("url")]
    if listed:
        return listed
    return [img.get("url") for img in product.get("images") or [] if isinstance(img, dict) and img.get("url")]


def _price_of(product: dict) -> Price:
    retail   = (product.get("pricing") or {}).get("retailPrice") or {}
    amount   = _first(product.get("guidePrice"), retail.get("amount"), product.get("priceFrom")) or 0
    currency = _first(
        product.get("guidePriceCurrency"), retail.get("currency"),
        product.get("priceCurrency"), product.get("currency"),
    ) or "GBP"
    formatted = _first(product.get("guidePriceFormattedText"), product.get("priceFromFormatted")) \
        or format_price(amount, currency)
    return Price(amount=int(round(amount)), currency=currency, formatted=formatted)


def _rating_of(product: dict) -> Optional[Rating]:
    reviews = product.get("reviews") if isinstance(product.get("reviews"), dict) else {}
    average = _first(product.get("reviewRating"), reviews.get("averageRating"), product.get("rating"))
    count   = _first(product.get("reviewCount"), reviews.get("totalCount")) or 0
    return Rating(average=average, count=count) if average else None


def _categories_of(product: dict) -> List[Category]:
    cats = _nodes(product.get("categoryList")) or product.get("categories") or []
    out  = []
    for c in cats:
        if isinstance(c, str):
            out.append(Category(id=slugify(c), name=c, slug=slugify(c)))
        else:
            out.append(Category(id=c.get("id") or "", name=c.get("name") or "", slug=c.get("slug") or c.get("id") or ""))
    return out


# ── Booking Provider products ───────────────────────────────────

def map_product_to_experience(product: Dict[str, Any]) -> Experience:
    content = _nodes(product.get("contentList"))
    images  = _image_urls(product)
    raw_primary = _first(
        images[0] if images else None,
        (product.get("primaryImage") or {}).get("url"),
        product.get("primaryImageUrl"),
        product.get("imageUrl"),
    ) or PLACEHOLDER_IMAGE
    primary = optimize_image_with_preset(raw_primary, "card")

    highlights = _content_of(content, "HIGHLIGHT")
    if not highlights:
        additions = product.get("additionList")
        if isinstance(additions, list):
            highlights = _texts(additions)
        elif isinstance(additions, dict):
            highlights = _texts(additions.get("nodes"))
        else:
            highlights = list(product.get("highlights") or [])

    if images:
        gallery = [optimize_image_with_preset(u, "lightbox") for u in images]
    else:
        gallery = [] if primary == PLACEHOLDER_IMAGE else [primary]

    return Experience(
        id=product["id"],
        title=product.get("title") or product.get("name") or "Untitled Experience",
        slug=product.get("slug") or product["id"],
        short_description=product.get("shortDescription") or "",
        description=product.get("description") or "",
        image_url=primary,
        images=gallery,
        price=_price_of(product),
        duration=_duration_of(product),
        rating=_rating_of(product),
        location=_location_of(product),
        categories=_categories_of(product),
        highlights=highlights,
        inclusions=_content_of(content, "INCLUSION") or _texts(product.get("inclusions")),
        exclusions=_content_of(content, "EXCLUSION") or _texts(product.get("exclusions")),
        cancellation_policy=_cancellation_policy(product, content),
        itinerary=[
            ItineraryStop(name=n.get("name") or "", description=n.get("description") or "")
            for n in content
            if n.get("type") == "ITINERARY" and (n.get("name") or n.get("description"))
        ],
        additional_info=_content_of(content, "NOTE", prefer="description"),
        languages=[l.get("name") for l in _nodes(product.get("guideLanguageList")) if l.get("name")],
        reviews=[
            Review(
                id=r.get("id") or "",
                title=r.get("title") or "",
                content=r.get("content") or "",
                rating=r.get("rating") or 0,
                author_name=r.get("authorName") or "Anonymous",
                published=r.get("publishedDate"),
            )
            for r in _nodes(product.get("reviewList"))
        ],
    )


def map_product_to_list_item(product: Dict[str, Any]) -> ExperienceListItem:
    images = _image_urls(product)
    raw    = images[0] if images else PLACEHOLDER_IMAGE
    minutes = parse_iso_duration(product.get("maxDuration")) if product.get("maxDuration") is not None else 0
    place   = product.get("place") or {}

    return ExperienceListItem(
        id=product["id"],
        title=product.get("name") or product.get("title") or "Experience",
        slug=product["id"],
        short_description=product.get("shortDescription") or (product.get("description") or "")[:200],
        image_url=optimize_image_with_preset(raw, "card"),
        price=_price_of(product),
        duration=Duration(
            value=minutes,
            unit="minutes",
            formatted=format_duration(minutes) if minutes > 0 else "Duration varies",
        ),
        rating=_rating_of(product),
        location=Location(name=place.get("name") or ""),
        categories=[c.name for c in _categories_of(product) if c.name],
        city_id=place.get("cityId"),
        duration_minutes=minutes or None,
    )


# ── Ticketing events ────────────────────────────────────────────

def _event_price(event: dict) -> Price:
    from_price = event.get("from_price") or {}
    amount     = int(round((from_price.get("amount") or 0) * 100))
    currency   = from_price.get("currency") or "GBP"
    return Price(amount=amount, currency=currency, formatted=format_price(amount, currency))


def _event_duration(event: dict) -> Duration:
    minutes = event.get("duration")
    if not minutes:
        return Duration(value=0, unit="minutes", formatted="Duration varies")
    return Duration(value=int(minutes), unit="minutes", formatted=format_duration(int(minutes)))


def _event_images(event: dict) -> List[str]:
    return [img.get("desktop") for img in event.get("images") or [] if img.get("desktop")]


def map_ticketing_event_to_experience(event: Dict[str, Any]) -> Experience:
    images = _event_images(event)
    venues = event.get("venue_location") or []
    if venues:
        venue    = venues[0]
        location = Location(
            name=venue.get("venue_name") or event.get("city") or "",
            address=venue.get("venue_address") or "",
            lat=venue.get("latitude") or 0,
            lng=venue.get("longitude") or 0,
        )
    else:
        location = Location(name=event.get("city") or "")

    return Experience(
        id=event["event_id"],
        title=event.get("title") or "Untitled Event",
        slug=event["event_id"],
        short_description=event.get("short_description") or "",
        description=event.get("description") or "",
        image_url=images[0] if images else PLACEHOLDER_IMAGE,
        images=images,
        price=_event_price(event),
        duration=_event_duration(event),
        rating=None,
        location=location,
        categories=[
            Category(id=f"tickitto-cat-{i}", name=name, slug=slugify(name))
            for i, name in enumerate(event.get("categories") or [])
        ],
        highlights=list(event.get("product_highlights") or []),
        inclusions=list(event.get("product_includes") or []),
        exclusions=list(event.get("product_excludes") or []),
        cancellation_policy=event.get("cancellation_policy") or "",
        additional_info=list(event.get("ticket_instructions") or []) + list(event.get("entry_notes") or []),
        provider=dict(TICKETING_PROVIDER),
    )


def map_ticketing_event_to_list_item(event: Dict[str, Any]) -> ExperienceListItem:
    images   = _event_images(event)
    duration = _event_duration(event)
    return ExperienceListItem(
        id=event["event_id"],
        title=event.get("title") or "Untitled Event",
        slug=event["event_id"],
        short_description=event.get("short_description") or "",
        image_url=images[0] if images else PLACEHOLDER_IMAGE,
        price=_event_price(event),
        duration=duration,
        rating=None,
        location=Location(name=event.get("city") or ""),
        categories=list(event.get("categories") or []),
        duration_minutes=duration.value or None,
    )


# ── Local catalog rows ──────────────────────────────────────────

def local_price_minor(price_from: Optional[float]) -> int:
    """Synced catalog prices are mostly major units; values over 1000 are already minor units."""
    if not price_from:
        return 0
    return int(round(price_from)) if price_from > 1000 else int(round(price_from * 100))


def local_product_to_list_item(product: LocalProduct) -> ExperienceListItem:
    amount  = local_price_minor(product.price_from)
    minutes = parse_duration_text(product.duration)
    return ExperienceListItem(
        id=product.provider_product_id,
        title=product.title,
        slug=product.provider_product_id,
        short_description=product.short_description or "",
        image_url=product.primary_image_url or PLACEHOLDER_IMAGE,
        price=Price(amount=amount, currency=product.currency, formatted=format_price(amount, product.currency)),
        duration=Duration(value=minutes, unit="minutes", formatted=product.duration or "Duration varies"),
        rating=Rating(average=product.rating, count=product.review_count) if product.rating else None,
        location=Location(name=product.city or ""),
        categories=list(product.categories),
        duration_minutes=minutes or None,
    )

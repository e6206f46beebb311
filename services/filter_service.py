# Filter Service — multi-criteria filtering and facet aggregation
#
# Hard filters are ANDed: category overlap, city, price band, duration
# bucket, minimum rating, free-text search and an optional geo radius.
# Facet counts are disjunctive: each facet is counted over the items that
# pass every *other* active filter, so selecting one category still shows
# how many results the sibling categories would give.

import logging
from collections import Counter
from typing import Iterable, List, Mapping, Optional, Tuple

import numpy as np

from config import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_RADIUS_KM,
    DURATION_RANGES,
    PRICE_RANGES,
    RATING_OPTIONS,
    SORT_OPTIONS,
)
from models.schemas import (
    DurationBucket,
    ExperienceListItem,
    ExperienceListResponse,
    FacetCount,
    FilterCounts,
    FilterState,
    PriceBucket,
    RatingBucket,
)
from services.geo import distances_km
from services.product_mapper import slugify

logger = logging.getLogger(__name__)

FACETS = ("categories", "cities", "price", "duration", "rating")

PRICE_EDGES    = [r["min"] for r in PRICE_RANGES[1:]]
DURATION_KEYS  = list(DURATION_RANGES.keys())
DURATION_EDGES = [DURATION_RANGES[k]["min"] for k in DURATION_KEYS[1:]]


# ── Query parsing ───────────────────────────────────────────────

def _split(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def _number(value: Optional[str], cast=float):
    if value is None or str(value).strip() == "":
        return None
    try:
        return cast(value)
    except (TypeError, ValueError):
        return None


def parse_filter_state(params: Mapping[str, str]) -> FilterState:
    """Build a FilterState from URL query params; blank or malformed values are ignored."""
    duration = params.get("duration") or None
    sort     = params.get("sort") or "recommended"
    return FilterState(
        categories=_split(params.get("categories")),
        cities=_split(params.get("cities")),
        price_min=_number(params.get("priceMin"), int),
        price_max=_number(params.get("priceMax"), int),
        duration=duration if duration in DURATION_RANGES else None,
        min_rating=_number(params.get("minRating")),
        search=(params.get("search") or params.get("q") or "").strip() or None,
        lat=_number(params.get("lat")),
        lng=_number(params.get("lng")),
        radius_km=_number(params.get("radiusKm")),
        sort=sort if sort in SORT_OPTIONS else "recommended",
    )


# ── Item accessors ──────────────────────────────────────────────

def duration_minutes(item: ExperienceListItem) -> Optional[int]:
    if item.duration_minutes:
        return item.duration_minutes
    value = item.duration.value
    if not value:
        return None
    if item.duration.unit == "hours":
        return value * 60
    if item.duration.unit == "days":
        return value * 1440
    return value


def duration_bucket(minutes: Optional[int]) -> Optional[str]:
    if not minutes or minutes <= 0:
        return None
    return DURATION_KEYS[int(np.digitize(minutes, DURATION_EDGES))]


def _category_keys(item: ExperienceListItem) -> set:
    keys = set()
    for c in item.categories:
        keys.add(c.lower())
        keys.add(slugify(c))
    return keys


# ── Filtering ───────────────────────────────────────────────────

def _matches(item: ExperienceListItem, state: FilterState, exclude: Optional[str]) -> bool:
    if state.categories and exclude != "categories":
        wanted = {c.lower() for c in state.categories}
        if not wanted & _category_keys(item):
            return False

    if state.cities and exclude != "cities":
        if item.location.name.lower() not in {c.lower() for c in state.cities}:
            return False

    if exclude != "price":
        amount = item.price.amount
        if state.price_min is not None and amount < state.price_min:
            return False
        if state.price_max is not None and amount >= state.price_max:
            return False

    if state.duration and exclude != "duration":
        if duration_bucket(duration_minutes(item)) != state.duration:
            return False

    if state.min_rating is not None and exclude != "rating":
        if not item.rating or item.rating.average < state.min_rating:
            return False

    if state.search:
        needle   = state.search.lower()
        haystack = " ".join([item.title, item.short_description, *item.categories]).lower()
        if needle not in haystack:
            return False

    return True


def _within_radius(items: List[ExperienceListItem], state: FilterState) -> List[ExperienceListItem]:
    if state.lat is None or state.lng is None or not items:
        return items
    radius = state.radius_km or DEFAULT_RADIUS_KM
    points = [(i.location.lat, i.location.lng) for i in items]
    dists  = distances_km((state.lat, state.lng), points)
    return [
        item for item, d in zip(items, dists)
        if (item.location.lat or item.location.lng) and d <= radius
    ]


def apply_filters(
    items: Iterable[ExperienceListItem],
    state: FilterState,
    exclude: Optional[str] = None,
) -> List[ExperienceListItem]:
    """Apply every active filter except `exclude` (one of FACETS)."""
    matched = [i for i in items if _matches(i, state, exclude)]
    return _within_radius(matched, state)


# ── Facet counts ────────────────────────────────────────────────

def _ranked(counter: Counter) -> List[FacetCount]:
    ranked = sorted(counter.items(), key=lambda kv: (-kv[1], kv[0]))
    return [FacetCount(name=name, count=count) for name, count in ranked if count > 0]


def compute_filter_counts(items: List[ExperienceListItem], state: FilterState) -> FilterCounts:
    categories = Counter()
    for item in apply_filters(items, state, exclude="categories"):
        categories.update(set(item.categories))

    cities = Counter(
        item.location.name
        for item in apply_filters(items, state, exclude="cities")
        if item.location.name
    )

    priced = [i.price.amount for i in apply_filters(items, state, exclude="price") if i.price.amount > 0]
    price_hits = np.bincount(np.digitize(priced, PRICE_EDGES), minlength=len(PRICE_RANGES)) \
        if priced else np.zeros(len(PRICE_RANGES), dtype=int)
    price_ranges = [
        PriceBucket(label=r["label"], min=r["min"], max=r["max"], count=int(n))
        for r, n in zip(PRICE_RANGES, price_hits)
        if n > 0
    ]

    minutes = [m for m in (duration_minutes(i) for i in apply_filters(items, state, exclude="duration")) if m]
    duration_hits = np.bincount(np.digitize(minutes, DURATION_EDGES), minlength=len(DURATION_KEYS)) \
        if minutes else np.zeros(len(DURATION_KEYS), dtype=int)
    durations = [
        DurationBucket(label=DURATION_RANGES[key]["label"], value=key, count=int(n))
        for key, n in zip(DURATION_KEYS, duration_hits)
        if n > 0
    ]

    rated = np.array([i.rating.average for i in apply_filters(items, state, exclude="rating") if i.rating])
    ratings = []
    for option in RATING_OPTIONS:
        n = int((rated >= option["value"]).sum()) if rated.size else 0
        if n > 0:
            ratings.append(RatingBucket(label=option["label"], value=option["value"], count=n))

    return FilterCounts(
        categories=_ranked(categories),
        cities=_ranked(cities),
        price_ranges=price_ranges,
        durations=durations,
        ratings=ratings,
    )


# ── Sorting & paging ────────────────────────────────────────────

def sort_experiences(
    items: List[ExperienceListItem],
    sort: str = "recommended",
    origin: Optional[Tuple[float, float]] = None,
) -> List[ExperienceListItem]:
    if sort == "price-low":
        return sorted(items, key=lambda i: i.price.amount)
    if sort == "price-high":
        return sorted(items, key=lambda i: -i.price.amount)
    if sort == "rating":
        return sorted(items, key=lambda i: (-(i.rating.average if i.rating else 0), -(i.rating.count if i.rating else 0)))
    if sort == "popular":
        return sorted(items, key=lambda i: -(i.rating.count if i.rating else 0))
    if sort == "distance" and origin and items:
        dists = distances_km(origin, [(i.location.lat, i.location.lng) for i in items])
        return [items[k] for k in np.argsort(dists, kind="stable")]
    return list(items)


def paginate(items: List[ExperienceListItem], page: int = 1, page_size: int = DEFAULT_PAGE_SIZE):
    page  = max(page, 1)
    start = (page - 1) * page_size
    end   = start + page_size
    return items[start:end], end < len(items)


def filter_experiences(
    items: List[ExperienceListItem],
    state: FilterState,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> ExperienceListResponse:
    """Filter, count facets, sort and page an in-memory result set."""
    filtered = apply_filters(items, state)
    counts   = compute_filter_counts(items, state)
    origin   = (state.lat, state.lng) if state.lat is not None and state.lng is not None else None
    ordered  = sort_experiences(filtered, state.sort, origin)
    page_items, has_more = paginate(ordered, page, page_size)

    logger.debug("Filtered %d → %d experiences (page %d)", len(items), len(filtered), page)
    return ExperienceListResponse(
        experiences=page_items,
        page=max(page, 1),
        total_count=len(items),
        filtered_count=len(filtered),
        has_more=has_more,
        filter_counts=counts,
    )

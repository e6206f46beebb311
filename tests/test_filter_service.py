"""
Tests for experience filtering, disjunctive facet counts, sorting and paging.
"""
import pytest

from models.schemas import FilterState
from services.filter_service import (
    apply_filters,
    compute_filter_counts,
    duration_bucket,
    filter_experiences,
    paginate,
    parse_filter_state,
    sort_experiences,
)
from services.geo import distances_km, haversine
from tests.factories import make_item


@pytest.fixture
def catalog():
    return [
        make_item("a", "Thames Cruise", amount=2000, minutes=45, rating=4.8, count=300, categories=["Cruises"], city="London"),
        make_item("b", "Tower Tour", amount=4500, minutes=180, rating=4.2, count=80, categories=["Tours", "History"], city="London"),
        make_item("c", "Food Walk", amount=7500, minutes=200, rating=3.5, count=20, categories=["Food", "Tours"], city="Paris"),
        make_item("d", "Wine Day Trip", amount=15000, minutes=480, rating=None, categories=["Food"], city="Paris"),
        make_item("e", "Free Walking Tour", amount=0, minutes=120, rating=4.9, count=1000, categories=["Tours"], city="Rome"),
    ]


class TestParsing:
    def test_parse_full_query(self):
        state = parse_filter_state({
            "categories": "Tours, Food",
            "cities": "London",
            "priceMin": "1000",
            "priceMax": "5000",
            "duration": "half-day",
            "minRating": "4",
            "q": "  tower ",
            "sort": "price-low",
        })
        assert state.categories == ["Tours", "Food"]
        assert state.cities == ["London"]
        assert (state.price_min, state.price_max) == (1000, 5000)
        assert state.duration == "half-day"
        assert state.min_rating == 4.0
        assert state.search == "tower"
        assert state.sort == "price-low"

    def test_malformed_values_are_ignored(self):
        state = parse_filter_state({"priceMin": "abc", "duration": "weekend", "sort": "random", "lat": ""})
        assert state.price_min is None
        assert state.duration is None
        assert state.sort == "recommended"
        assert state.lat is None


class TestFiltering:
    def test_duration_buckets_are_lower_inclusive(self):
        assert duration_bucket(59) == "short"
        assert duration_bucket(60) == "half-day"
        assert duration_bucket(240) == "full-day"
        assert duration_bucket(1440) == "multi-day"
        assert duration_bucket(None) is None

    def test_filters_are_anded(self, catalog):
        state = FilterState(categories=["tours"], cities=["London"])
        assert [i.id for i in apply_filters(catalog, state)] == ["b"]

    def test_price_upper_bound_is_exclusive(self, catalog):
        state = FilterState(price_min=2000, price_max=4500)
        assert [i.id for i in apply_filters(catalog, state)] == ["a"]

    def test_unrated_items_fail_min_rating(self, catalog):
        state = FilterState(min_rating=3.0)
        assert "d" not in [i.id for i in apply_filters(catalog, state)]

    def test_search_matches_title_and_categories(self, catalog):
        assert [i.id for i in apply_filters(catalog, FilterState(search="history"))] == ["b"]
        assert [i.id for i in apply_filters(catalog, FilterState(search="WINE"))] == ["d"]

    def test_geo_radius(self):
        items = [
            make_item("near", lat=51.50, lng=-0.12),
            make_item("far", lat=48.85, lng=2.35),
            make_item("unknown"),
        ]
        state = FilterState(lat=51.51, lng=-0.13, radius_km=10)
        assert [i.id for i in apply_filters(items, state)] == ["near"]


class TestFacetCounts:
    def test_category_counts_ignore_own_filter(self, catalog):
        counts = compute_filter_counts(catalog, FilterState(categories=["Cruises"]))
        by_name = {f.name: f.count for f in counts.categories}
        assert by_name["Tours"] == 3
        assert by_name["Cruises"] == 1

    def test_other_filters_narrow_category_counts(self, catalog):
        counts = compute_filter_counts(catalog, FilterState(cities=["Paris"]))
        assert [(f.name, f.count) for f in counts.categories] == [("Food", 2), ("Tours", 1)]
        assert {f.name for f in counts.cities} == {"London", "Paris", "Rome"}

    def test_price_buckets_skip_unpriced_and_empty(self, catalog):
        counts = compute_filter_counts(catalog, FilterState())
        assert [(b.label, b.count) for b in counts.price_ranges] == [
            ("Under £25", 1),
            ("£25 - £50", 1),
            ("£50 - £100", 1),
            ("£100 - £200", 1),
        ]

    def test_duration_and_rating_counts(self, catalog):
        counts = compute_filter_counts(catalog, FilterState(duration="full-day"))
        assert {b.value: b.count for b in counts.durations} == {"short": 1, "half-day": 3, "full-day": 1}
        # only the unrated day trip is full-day
        assert counts.ratings == []

    def test_rating_thresholds_are_cumulative(self, catalog):
        counts = compute_filter_counts(catalog, FilterState(min_rating=4.5))
        assert {b.label: b.count for b in counts.ratings} == {"4.5+": 2, "4+": 3, "3+": 4}

    def test_empty_input(self):
        counts = compute_filter_counts([], FilterState())
        assert counts.categories == []
        assert counts.price_ranges == []
        assert counts.ratings == []


class TestSortingAndPaging:
    def test_sort_orders(self, catalog):
        assert [i.id for i in sort_experiences(catalog, "price-low")][:2] == ["e", "a"]
        assert sort_experiences(catalog, "price-high")[0].id == "d"
        assert sort_experiences(catalog, "rating")[0].id == "e"
        assert sort_experiences(catalog, "popular")[0].id == "e"
        assert [i.id for i in sort_experiences(catalog)] == ["a", "b", "c", "d", "e"]

    def test_sort_by_distance(self):
        items = [make_item("paris", lat=48.85, lng=2.35), make_item("london", lat=51.5, lng=-0.12)]
        assert sort_experiences(items, "distance", origin=(51.5, -0.1))[0].id == "london"

    def test_paginate(self, catalog):
        page, has_more = paginate(catalog, page=1, page_size=2)
        assert [i.id for i in page] == ["a", "b"] and has_more
        page, has_more = paginate(catalog, page=3, page_size=2)
        assert [i.id for i in page] == ["e"] and not has_more

    def test_filter_experiences_response(self, catalog):
        result = filter_experiences(catalog, FilterState(categories=["Tours"], sort="price-high"), page=1, page_size=2)
        assert result.total_count == 5
        assert result.filtered_count == 3
        assert [i.id for i in result.experiences] == ["c", "b"]
        assert result.has_more


class TestGeo:
    def test_vectorised_matches_scalar(self):
        origin = (51.5074, -0.1278)
        points = [(48.8566, 2.3522), (41.9028, 12.4964)]
        dists  = distances_km(origin, points)
        for (lat, lng), d in zip(points, dists):
            assert d == pytest.approx(haversine(origin[0], origin[1], lat, lng))
        assert dists[0] == pytest.approx(344, abs=5)

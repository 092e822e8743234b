import asyncio
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from data_sources import foursquare_api
from data_sources.error_handling import APIError
from data_sources.models import ProviderStatus
from data_sources.quota import DailyQuota


def _place(place_id, name="Octane Coffee", category="Coffee Shop", distance=402):
    return {
        "fsq_place_id": place_id,
        "name": name,
        "latitude": 33.7780,
        "longitude": -84.3890,
        "distance": distance,
        "categories": [{"name": category}],
        "location": {"address": "1009 Marietta St", "locality": "Atlanta"},
        "tel": "(404) 555-0100",
    }


def _fetch(quota, search, api_key="test-key"):
    with patch.object(foursquare_api, "_search_group", search):
        return asyncio.run(foursquare_api.fetch_foursquare_pois(33.754, -84.3917, quota=quota, api_key=api_key))


def test_missing_key_is_unavailable():
    search = AsyncMock(return_value=[])
    result = _fetch(DailyQuota(300), search, api_key="")
    assert result.status is ProviderStatus.UNAVAILABLE
    assert not result.is_available
    search.assert_not_awaited()


def test_insufficient_quota_skips_calls():
    quota = DailyQuota(len(foursquare_api.QUERY_GROUPS) - 1)
    search = AsyncMock(return_value=[])
    result = _fetch(quota, search)
    assert result.status is ProviderStatus.UNAVAILABLE
    search.assert_not_awaited()
    assert quota.calls_today == 0


def test_zero_matches_is_trusted_empty():
    quota = DailyQuota(300)
    search = AsyncMock(return_value=[])
    result = _fetch(quota, search)
    assert result.status is ProviderStatus.EMPTY
    assert result.is_available
    assert search.await_count == len(foursquare_api.QUERY_GROUPS)
    assert quota.calls_today == len(foursquare_api.QUERY_GROUPS)


def test_results_are_merged_and_categorized():
    search = AsyncMock(return_value=[
        _place("abc"),
        _place("abc"),
        _place("def", name="Star Provisions", category="Grocery Store", distance=1609),
        _place("ghi", name="Sparkle Car Wash", category="Car Wash"),
    ])
    result = _fetch(DailyQuota(300), search)
    assert result.status is ProviderStatus.DATA
    assert [(p.id, p.category) for p in result.records] == [("fsq-abc", "cafe"), ("fsq-def", "grocery")]

    coffee = result.records[0]
    assert coffee.distance == 0.25
    assert coffee.address == "1009 Marietta St, Atlanta"
    assert coffee.subcategory == "Coffee Shop"
    assert result.records[1].distance == 1.0


@pytest.mark.parametrize("error", [
    APIError("unauthorized", "foursquare", 401),
    APIError("server error", "foursquare", 500),
    asyncio.TimeoutError(),
])
def test_errors_are_unavailable(error):
    search = AsyncMock(side_effect=error)
    result = _fetch(DailyQuota(300), search)
    assert result.status is ProviderStatus.UNAVAILABLE


@pytest.mark.parametrize("place", [
    {"fsq_place_id": "a1", "name": "Octane", "latitude": 33.75, "longitude": -84.39,
     "categories": {"name": "Coffee Shop"}},
    {"fsq_place_id": "a2", "name": "Octane", "latitude": 33.75, "longitude": -84.39,
     "categories": [{"name": 42}]},
    "not a place",
])
def test_malformed_payload_is_unavailable(place):
    result = _fetch(DailyQuota(300), AsyncMock(return_value=[place]))
    assert result.status is ProviderStatus.UNAVAILABLE


def test_one_failing_group_makes_provider_unavailable():
    calls = []

    async def search(lat, lng, radius_m, query, api_key):
        calls.append(query)
        if query == foursquare_api.QUERY_GROUPS[0]["query"]:
            raise aiohttp.ClientError("connection reset")
        await asyncio.sleep(0)
        return [_place(query)]

    result = _fetch(DailyQuota(300), search)
    assert result.status is ProviderStatus.UNAVAILABLE
    assert len(calls) == len(foursquare_api.QUERY_GROUPS)


def test_merge_results_first_occurrence_wins():
    merged = foursquare_api.merge_results([
        [{"fsq_place_id": "a", "name": "first"}, {"name": "no id"}],
        [{"fsq_place_id": "a", "name": "second"}, {"fsq_place_id": "b", "name": "other"}],
    ])
    assert [p["name"] for p in merged] == ["first", "other"]


@pytest.mark.parametrize("name,expected", [
    ("Italian Restaurant", "restaurant"),
    ("Coffee Shop", "cafe"),
    ("Cocktail Bar", "bar"),
    ("Yoga Studio", "gym"),
    ("Grocery Store", "grocery"),
    ("Dog Park", "park"),
    ("Pharmacy", "pharmacy"),
    ("Urgent Care Center", "healthcare"),
    ("Bank", "bank"),
    ("Movie Theater", "entertainment"),
    ("Car Wash", "other"),
    (None, "other"),
])
def test_map_category(name, expected):
    assert foursquare_api.map_category(name) == expected


def test_usage_reports_configuration(monkeypatch):
    monkeypatch.delenv("FOURSQUARE_API_KEY", raising=False)
    quota = DailyQuota(300)
    quota.try_reserve(8)
    assert foursquare_api.get_foursquare_usage(quota) == {"calls_today": 8, "daily_limit": 300, "configured": False}

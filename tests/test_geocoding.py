import asyncio
from unittest.mock import AsyncMock, patch

from data_sources import async_geocoding

NOMINATIM_REVERSE = {
    "lat": "33.7748",
    "lon": "-84.2963",
    "display_name": "Decatur Square, Decatur, DeKalb County, Georgia, 30030, United States",
    "address": {
        "road": "East Court Square",
        "town": "Decatur",
        "county": "DeKalb County",
        "state": "Georgia",
        "postcode": "30030",
    },
}


def test_reverse_geocode_parses_address():
    with patch.object(async_geocoding, "_get_json", AsyncMock(return_value=NOMINATIM_REVERSE)):
        geo = asyncio.run(async_geocoding.reverse_geocode_async(33.7748, -84.2963))
    assert geo == {
        "lat": 33.7748,
        "lng": -84.2963,
        "display_name": NOMINATIM_REVERSE["display_name"],
        "postal_code": "30030",
        "county": "DeKalb County",
        "state": "Georgia",
        "city": "Decatur",
        "road": "East Court Square",
    }


def test_reverse_geocode_error_payload():
    with patch.object(async_geocoding, "_get_json", AsyncMock(return_value={"error": "Unable to geocode"})):
        assert asyncio.run(async_geocoding.reverse_geocode_async(0, 0)) is None
    with patch.object(async_geocoding, "_get_json", AsyncMock(return_value=None)):
        assert asyncio.run(async_geocoding.reverse_geocode_async(0, 0)) is None


def test_geocode_bounds_search_to_georgia():
    get_json = AsyncMock(return_value=[NOMINATIM_REVERSE])
    with patch.object(async_geocoding, "_get_json", get_json):
        geo = asyncio.run(async_geocoding.geocode_async("Decatur Square"))
    assert geo["postal_code"] == "30030"
    path, params = get_json.await_args.args
    assert path == "search"
    assert params["viewbox"] == async_geocoding.GEORGIA_VIEWBOX
    assert params["bounded"] == 1


def test_geocode_no_match():
    with patch.object(async_geocoding, "_get_json", AsyncMock(return_value=[])):
        assert asyncio.run(async_geocoding.geocode_async("zzzz")) is None


def test_rate_limit_spaces_requests(monkeypatch):
    sleep = AsyncMock()
    monkeypatch.setattr(async_geocoding.asyncio, "sleep", sleep)
    monkeypatch.setattr(async_geocoding, "_last_request_time", float("-inf"))

    async def two_requests():
        await async_geocoding._rate_limit()
        await async_geocoding._rate_limit()

    asyncio.run(two_requests())
    sleep.assert_awaited_once()
    wait = sleep.await_args.args[0]
    assert 0 < wait <= async_geocoding.MIN_INTERVAL_S


def test_search_places_builds_suggestions():
    results = [
        {"place_id": 1001, "lat": "33.7748", "lon": "-84.2963", "name": "Decatur Square",
         "display_name": "Decatur Square, Decatur, DeKalb County, Georgia, 30030, United States",
         "address": {"town": "Decatur", "state": "Georgia", "postcode": "30030"}},
        {"place_id": 1002, "lat": "33.7712", "lon": "-84.3000",
         "display_name": "125 Clairemont Avenue, Decatur, Georgia",
         "address": {"house_number": "125", "road": "Clairemont Avenue", "city": "Decatur"}},
        {"place_id": 1003, "display_name": "no coordinates"},
    ]
    get_json = AsyncMock(return_value=results)
    with patch.object(async_geocoding, "_get_json", get_json):
        suggestions = asyncio.run(async_geocoding.search_places("Decatur", limit=3))

    assert suggestions == [
        {"place_id": "1001", "description": results[0]["display_name"], "main_text": "Decatur Square",
         "secondary_text": "Decatur, Georgia, 30030", "lat": 33.7748, "lng": -84.2963},
        {"place_id": "1002", "description": results[1]["display_name"], "main_text": "125 Clairemont Avenue",
         "secondary_text": "Decatur, Georgia", "lat": 33.7712, "lng": -84.3},
    ]
    path, params = get_json.await_args.args
    assert path == "search"
    assert params["limit"] == 3
    assert params["viewbox"] == async_geocoding.GEORGIA_VIEWBOX


def test_search_places_failure_is_empty():
    with patch.object(async_geocoding, "_get_json", AsyncMock(return_value=None)):
        assert asyncio.run(async_geocoding.search_places("Decatur")) == []

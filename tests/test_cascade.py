import asyncio
from unittest.mock import AsyncMock, patch

from conftest import make_poi
from data_sources import cascade
from data_sources.models import ProviderResult
from data_sources.quota import DailyQuota

FIVE_POINTS = (33.7540, -84.3917)


def _amenities(foursquare_result, overpass_pois=None):
    overpass = AsyncMock(return_value=overpass_pois or [])
    with patch.object(cascade.foursquare_api, "fetch_foursquare_pois", AsyncMock(return_value=foursquare_result)), \
            patch.object(cascade.async_osm_api, "fetch_amenities_in_radius", overpass):
        return asyncio.run(cascade.fetch_amenities(*FIVE_POINTS)), overpass


def test_foursquare_data_is_used():
    records = [make_poi("cafe", 0.2)]
    result, overpass = _amenities(ProviderResult.from_records("foursquare", records))
    assert result == {"pois": records, "source": "foursquare"}
    overpass.assert_not_awaited()


def test_foursquare_empty_is_trusted():
    result, overpass = _amenities(ProviderResult.from_records("foursquare", []))
    assert result == {"pois": [], "source": "foursquare"}
    overpass.assert_not_awaited()


def test_foursquare_unavailable_falls_back_to_overpass():
    osm = [make_poi("grocery", 0.4)]
    result, overpass = _amenities(ProviderResult.unavailable("foursquare"), osm)
    assert result == {"pois": osm, "source": "overpass"}
    overpass.assert_awaited_once()


def test_live_transit_stops_are_used():
    live = [make_poi("transit", 0.1, subcategory="station"), make_poi("transit", 1.4, subcategory="bus_stop")]
    with patch.object(cascade.async_osm_api, "fetch_transit_stops", AsyncMock(return_value=live)):
        result = asyncio.run(cascade.fetch_transit(*FIVE_POINTS))
    assert result["source"] == "overpass"
    assert result["static_fallback"] is False
    # Stops past the radius are dropped
    assert result["stops"] == live[:1]


def test_empty_live_transit_uses_static_table():
    with patch.object(cascade.async_osm_api, "fetch_transit_stops", AsyncMock(return_value=[])):
        result = asyncio.run(cascade.fetch_transit(*FIVE_POINTS))
    assert result["source"] == "static_gtfs"
    assert result["static_fallback"] is True
    assert result["stops"]
    assert all(stop.category == "transit" and stop.distance <= 1.0 for stop in result["stops"])
    assert result["stops"][0].id.startswith("gtfs-")
    assert {stop.subcategory for stop in result["stops"]} >= {"rail", "streetcar"}


def test_malformed_foursquare_payload_falls_back_to_overpass(monkeypatch):
    monkeypatch.setenv("FOURSQUARE_API_KEY", "test-key")
    monkeypatch.setattr(cascade.foursquare_api, "foursquare_quota", DailyQuota(300))
    # categories should be a list of objects
    malformed = [{"fsq_place_id": "a1", "name": "Octane", "latitude": 33.75, "longitude": -84.39,
                  "categories": {"name": "Coffee Shop"}}]
    osm = [make_poi("cafe", 0.3)]
    overpass = AsyncMock(return_value=osm)
    with patch.object(cascade.foursquare_api, "_search_group", AsyncMock(return_value=malformed)), \
            patch.object(cascade.async_osm_api, "fetch_amenities_in_radius", overpass):
        result = asyncio.run(cascade.fetch_amenities(*FIVE_POINTS))
    assert result == {"pois": osm, "source": "overpass"}
    overpass.assert_awaited_once()

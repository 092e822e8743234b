import asyncio
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from data_sources import async_osm_api
from data_sources.error_handling import APIError

MIRRORS = ["https://mirror-a/api", "https://mirror-b/api", "https://mirror-c/api"]


def _urls(mock):
    return [call.args[0] for call in mock.await_args_list]


def test_client_error_aborts_cascade():
    post = AsyncMock(side_effect=APIError("bad query", "overpass", 400))
    with patch.object(async_osm_api, "_post_overpass", post):
        with pytest.raises(APIError) as excinfo:
            asyncio.run(async_osm_api.overpass_post("[out:json];", mirrors=MIRRORS))
    assert excinfo.value.status_code == 400
    assert _urls(post) == MIRRORS[:1]


def test_timeout_advances_to_next_mirror():
    post = AsyncMock(side_effect=[asyncio.TimeoutError(), {"elements": []}])
    with patch.object(async_osm_api, "_post_overpass", post):
        data = asyncio.run(async_osm_api.overpass_post("[out:json];", mirrors=MIRRORS))
    assert data == {"elements": []}
    assert _urls(post) == MIRRORS[:2]


def test_timeout_status_advances_to_next_mirror():
    post = AsyncMock(side_effect=[APIError("timed out", "overpass", 408), {"elements": []}])
    with patch.object(async_osm_api, "_post_overpass", post):
        data = asyncio.run(async_osm_api.overpass_post("[out:json];", mirrors=MIRRORS))
    assert data == {"elements": []}
    assert _urls(post) == MIRRORS[:2]


def test_server_error_and_connection_error_advance():
    post = AsyncMock(side_effect=[
        APIError("busy", "overpass", 504),
        aiohttp.ClientConnectionError("refused"),
        {"elements": [{"id": 1}]},
    ])
    with patch.object(async_osm_api, "_post_overpass", post):
        data = asyncio.run(async_osm_api.overpass_post("[out:json];", mirrors=MIRRORS))
    assert data == {"elements": [{"id": 1}]}
    assert _urls(post) == MIRRORS


def test_all_mirrors_failing_raises():
    post = AsyncMock(side_effect=APIError("busy", "overpass", 503))
    with patch.object(async_osm_api, "_post_overpass", post):
        with pytest.raises(APIError):
            asyncio.run(async_osm_api.overpass_post("[out:json];", mirrors=MIRRORS))
    assert post.await_count == len(MIRRORS)


def test_all_mirrors_failing_soft_degrades_to_empty():
    post = AsyncMock(side_effect=asyncio.TimeoutError())
    with patch.object(async_osm_api, "_post_overpass", post):
        assert asyncio.run(async_osm_api.fetch_amenities_in_radius(33.754, -84.3917)) == []
        assert asyncio.run(async_osm_api.fetch_transit_stops(33.754, -84.3917)) == []
    assert post.await_count == 2 * len(async_osm_api.OVERPASS_URLS)


def test_amenities_parsed_and_deduplicated():
    response = {"elements": [
        {"type": "node", "id": 1, "lat": 33.7545, "lon": -84.3910,
         "tags": {"name": "Ponce City Market", "shop": "supermarket", "addr:street": "Ponce de Leon Ave",
                  "addr:housenumber": "675", "addr:city": "Atlanta"}},
        {"type": "node", "id": 1, "lat": 33.7545, "lon": -84.3910,
         "tags": {"name": "Ponce City Market", "shop": "supermarket"}},
        {"type": "way", "id": 2, "center": {"lat": 33.7850, "lon": -84.3733},
         "tags": {"name": "Piedmont Park", "leisure": "park"}},
        {"type": "node", "id": 3, "lat": 33.7550, "lon": -84.3920, "tags": {"amenity": "bench"}},
    ]}
    with patch.object(async_osm_api, "overpass_post", AsyncMock(return_value=response)):
        pois = asyncio.run(async_osm_api.fetch_amenities_in_radius(33.754, -84.3917, 1609))

    assert [p.id for p in pois] == ["osm-1", "osm-2"]
    market, park = pois
    assert market.category == "grocery"
    assert market.address == "675 Ponce de Leon Ave, Atlanta"
    assert market.distance < 0.1
    assert park.category == "park"
    assert park.lat == 33.7850


def test_transit_stops_keep_only_transit():
    response = {"elements": [
        {"type": "node", "id": 10, "lat": 33.7540, "lon": -84.3917,
         "tags": {"name": "Five Points", "railway": "station"}},
        {"type": "node", "id": 11, "lat": 33.7550, "lon": -84.3900,
         "tags": {"name": "Peachtree St @ Marietta St", "highway": "bus_stop"}},
        {"type": "node", "id": 12, "lat": 33.7550, "lon": -84.3900,
         "tags": {"name": "Corner Cafe", "amenity": "cafe"}},
    ]}
    with patch.object(async_osm_api, "overpass_post", AsyncMock(return_value=response)):
        stops = asyncio.run(async_osm_api.fetch_transit_stops(33.754, -84.3917))

    assert [(s.name, s.subcategory) for s in stops] == [
        ("Five Points", "station"),
        ("Peachtree St @ Marietta St", "bus_stop"),
    ]


@pytest.mark.parametrize("tags,expected", [
    ({"amenity": "fast_food"}, "restaurant"),
    ({"amenity": "cafe"}, "cafe"),
    ({"shop": "convenience"}, "grocery"),
    ({"amenity": "dentist"}, "healthcare"),
    ({"leisure": "fitness_centre"}, "gym"),
    ({"amenity": "atm"}, "bank"),
    ({"amenity": "library"}, "school"),
    ({"leisure": "playground"}, "park"),
    ({"public_transport": "station"}, "transit"),
    ({"amenity": "pub"}, "bar"),
    ({"amenity": "cinema"}, "entertainment"),
    ({"amenity": "fuel"}, "gas_station"),
    ({"shop": "mall"}, "shopping"),
    ({"amenity": "bench"}, "other"),
])
def test_determine_category(tags, expected):
    assert async_osm_api.determine_category(tags) == expected


def test_amenity_query_includes_ways_for_area_features():
    query = async_osm_api.build_amenity_query(33.754, -84.3917, 8047)
    assert "way[leisure=park](around:8047,33.754,-84.3917);" in query
    assert "way[amenity=restaurant]" not in query
    assert query.startswith("[out:json]")


def test_malformed_elements_are_skipped():
    response = {"elements": [
        "not an element",
        {"type": "node", "id": 20, "lat": "north", "lon": -84.39, "tags": {"name": "Bad Coords", "amenity": "cafe"}},
        {"type": "node", "id": 21, "lat": 33.7550, "lon": -84.3900, "tags": ["name", "cafe"]},
        {"type": "node", "id": 22, "lat": 33.7550, "lon": -84.3900,
         "tags": {"name": "Dancing Goats", "amenity": "cafe"}},
    ]}
    with patch.object(async_osm_api, "overpass_post", AsyncMock(return_value=response)):
        pois = asyncio.run(async_osm_api.fetch_amenities_in_radius(33.754, -84.3917, 1609))
    assert [p.name for p in pois] == ["Dancing Goats"]


@pytest.mark.parametrize("body", [{"elements": {"id": 1}}, ["elements"], {"remark": "runtime error"}])
def test_response_without_element_list_is_empty(body):
    with patch.object(async_osm_api, "overpass_post", AsyncMock(return_value=body)):
        assert asyncio.run(async_osm_api.fetch_amenities_in_radius(33.754, -84.3917)) == []

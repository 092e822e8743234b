"""
Async OpenStreetMap API Client
Queries Overpass mirrors for amenities and transit stops
"""

import os
import asyncio
import aiohttp
from typing import Dict, List, Optional

from .error_handling import APIError
from .models import PointOfInterest
from .utils import haversine_distance
from logging_config import get_logger, log_api_call, log_error

logger = get_logger(__name__)

# Build list of Overpass endpoints (override + public mirrors), tried in order
_default_overpass = os.environ.get("OVERPASS_URL")
_mirror_endpoints = [
    endpoint for endpoint in [
        _default_overpass.strip() if _default_overpass else None,
        "https://overpass-api.de/api/interpreter",
        "https://overpass.kielkonstrukt.de/api/interpreter",
        "https://overpass.catawba.us/api/interpreter",
    ] if endpoint
]

# Deduplicate while preserving order
OVERPASS_URLS: List[str] = []
for endpoint in _mirror_endpoints:
    if endpoint not in OVERPASS_URLS:
        OVERPASS_URLS.append(endpoint)

AMENITY_TIMEOUT_S = 65
TRANSIT_TIMEOUT_S = 35

# Categories commonly mapped as ways as well as nodes
WAY_CATEGORIES = {"park", "playground", "school", "university"}

AMENITY_QUERIES: Dict[str, str] = {
    "restaurant": "amenity=restaurant",
    "fast_food": "amenity=fast_food",
    "cafe": "amenity=cafe",
    "bar": "amenity=bar",
    "pub": "amenity=pub",
    "food_court": "amenity=food_court",
    "supermarket": "shop=supermarket",
    "grocery": "shop=convenience",
    "fuel": "amenity=fuel",
    "variety": "shop=variety_store",
    "general": "shop=general",
    "mall": "shop=mall",
    "pharmacy": "amenity=pharmacy",
    "hospital": "amenity=hospital",
    "doctors": "amenity=doctors",
    "dentist": "amenity=dentist",
    "gym": "leisure=fitness_centre",
    "sports": "leisure=sports_centre",
    "bank": "amenity=bank",
    "atm": "amenity=atm",
    "school": "amenity=school",
    "university": "amenity=university",
    "library": "amenity=library",
    "cinema": "amenity=cinema",
    "theatre": "amenity=theatre",
    "nightclub": "amenity=nightclub",
    "park": "leisure=park",
    "playground": "leisure=playground",
}

TRANSIT_FILTERS = (
    "highway=bus_stop",
    "railway=subway_entrance",
    "railway=station",
    "railway=tram_stop",
    "public_transport=station",
    "public_transport=stop_position",
)

# Global session for connection reuse
_session = None


async def get_session():
    """Get or create aiohttp session for connection reuse."""
    global _session
    if _session is None or _session.closed:
        connector = aiohttp.TCPConnector(limit=100, limit_per_host=30)
        timeout = aiohttp.ClientTimeout(total=70, connect=10)
        _session = aiohttp.ClientSession(
            connector=connector,
            timeout=timeout,
            headers={"User-Agent": "CityPulse/1.0"}
        )
    return _session


async def close_session():
    """Close the global session."""
    global _session
    if _session and not _session.closed:
        await _session.close()
        _session = None


async def _post_overpass(url: str, query: str, timeout_s: int) -> Dict:
    """POST one query to one mirror. Non-200 raises APIError with the status."""
    session = await get_session()
    async with session.post(
        url,
        data={"data": query},
        timeout=aiohttp.ClientTimeout(total=timeout_s, connect=10)
    ) as resp:
        if resp.status != 200:
            raise APIError(f"Overpass mirror returned {resp.status}", "overpass", resp.status)
        return await resp.json(content_type=None)


async def overpass_post(query: str, timeout_s: int = AMENITY_TIMEOUT_S,
                        mirrors: Optional[List[str]] = None) -> Dict:
    """
    Run a query against the mirror list until one succeeds.

    A client error (4xx) aborts immediately; server errors, timeouts and
    connection failures advance to the next mirror.

    Raises:
        APIError: on a 4xx, or once every mirror has failed
    """
    mirrors = OVERPASS_URLS if mirrors is None else mirrors
    last_error: Optional[Exception] = None

    for url in mirrors:
        log_api_call(logger, "overpass", url, mirror=url)
        try:
            return await _post_overpass(url, query, timeout_s)
        except APIError as e:
            if e.is_client_error:
                logger.warning(f"Overpass mirror {url} rejected query ({e.status_code}), not retrying",
                               extra={"mirror": url, "status_code": e.status_code})
                raise
            last_error = e
            reason = "timeout" if e.is_timeout else e.status_code
        except (asyncio.TimeoutError, aiohttp.ClientError, ValueError) as e:
            last_error = e
            reason = "timeout" if isinstance(e, asyncio.TimeoutError) else type(e).__name__
        logger.warning(f"Overpass mirror {url} failed ({reason}), trying next",
                       extra={"mirror": url})

    raise APIError(f"All Overpass mirrors failed: {last_error}", "overpass",
                   getattr(last_error, "status_code", None))


def _amenity_lines(label: str, tag_filter: str, spatial: str) -> str:
    node = f"  node[{tag_filter}]{spatial};"
    if label in WAY_CATEGORIES:
        return f"{node}\n  way[{tag_filter}]{spatial};"
    return node


def build_amenity_query(lat: float, lng: float, radius_m: int) -> str:
    spatial = f"(around:{radius_m},{lat},{lng})"
    lines = "\n".join(
        _amenity_lines(label, tag_filter, spatial) for label, tag_filter in AMENITY_QUERIES.items()
    )
    return f"[out:json][timeout:60];\n(\n{lines}\n);\nout body center;\n"


def build_transit_query(lat: float, lng: float, radius_m: int) -> str:
    spatial = f"(around:{radius_m},{lat},{lng})"
    lines = "\n".join(f"  node[{tag_filter}]{spatial};" for tag_filter in TRANSIT_FILTERS)
    return f"[out:json][timeout:30];\n(\n{lines}\n);\nout body;\n"


def determine_category(tags: Dict) -> str:
    """Map OSM tags onto a POI category."""
    amenity = tags.get("amenity")
    shop = tags.get("shop")
    leisure = tags.get("leisure")

    if amenity in ("restaurant", "fast_food", "food_court"):
        return "restaurant"
    if amenity == "cafe":
        return "cafe"
    if shop in ("supermarket", "convenience", "grocery", "variety_store", "general"):
        return "grocery"
    if amenity == "pharmacy":
        return "pharmacy"
    if amenity in ("hospital", "doctors", "clinic", "dentist"):
        return "healthcare"
    if leisure in ("fitness_centre", "sports_centre"):
        return "gym"
    if amenity in ("bank", "atm"):
        return "bank"
    if amenity in ("school", "university", "library"):
        return "school"
    if leisure in ("park", "playground"):
        return "park"
    if tags.get("highway") == "bus_stop" or tags.get("railway") or tags.get("public_transport"):
        return "transit"
    if amenity in ("bar", "pub", "nightclub"):
        return "bar"
    if amenity in ("cinema", "theatre"):
        return "entertainment"
    if amenity == "fuel" or shop == "fuel":
        return "gas_station"
    if shop == "mall":
        return "shopping"
    return "other"


def _format_address(tags: Dict) -> Optional[str]:
    street = tags.get("addr:street")
    if not street:
        return None
    address = f"{tags['addr:housenumber']} {street}" if tags.get("addr:housenumber") else street
    if tags.get("addr:city"):
        address += f", {tags['addr:city']}"
    return address


def element_to_poi(element: Dict, ref_lat: float, ref_lng: float) -> Optional[PointOfInterest]:
    """
    Convert an Overpass element to a POI.

    Unnamed elements (mostly sub-features of a named place) and elements
    without coordinates are dropped.
    """
    tags = element.get("tags") or {}
    name = tags.get("name")
    center = element.get("center") or {}
    lat = element.get("lat", center.get("lat"))
    lng = element.get("lon", center.get("lon"))
    if not name or lat is None or lng is None:
        return None

    category = determine_category(tags)
    if category == "transit":
        subcategory = tags.get("railway") or tags.get("public_transport") or tags.get("highway")
    else:
        subcategory = tags.get("cuisine") or tags.get("shop") or tags.get("amenity") or tags.get("leisure")

    return PointOfInterest(
        id=f"osm-{element.get('id')}",
        name=name,
        category=category,
        subcategory=subcategory,
        address=_format_address(tags),
        lat=lat,
        lng=lng,
        distance=haversine_distance(ref_lat, ref_lng, lat, lng),
        phone=tags.get("phone"),
        website=tags.get("website"),
    )


def _elements_to_pois(data: Dict, lat: float, lng: float) -> List[PointOfInterest]:
    """Convert a response body; malformed elements are skipped, not fatal."""
    elements = data.get("elements") if isinstance(data, dict) else None
    if not isinstance(elements, list):
        if data:
            log_error(logger, "malformed_response", "Overpass response has no element list",
                      api_name="overpass", lat=lat, lng=lng)
        return []

    pois = []
    seen = set()
    skipped = 0
    for element in elements:
        try:
            poi = element_to_poi(element, lat, lng)
        except (AttributeError, KeyError, TypeError, ValueError):
            skipped += 1
            continue
        if poi is None or poi.id in seen:
            continue
        seen.add(poi.id)
        pois.append(poi)
    if skipped:
        logger.warning(f"Skipped {skipped} malformed Overpass elements",
                       extra={"api_name": "overpass", "lat": lat, "lng": lng})
    return pois


async def fetch_amenities_in_radius(lat: float, lng: float, radius_m: int = 8047) -> List[PointOfInterest]:
    """
    Fetch named amenities within radius from Overpass.

    Returns an empty list when every mirror fails.
    """
    query = build_amenity_query(lat, lng, radius_m)
    try:
        data = await overpass_post(query, AMENITY_TIMEOUT_S)
    except APIError as e:
        logger.error(f"OSM amenity query failed: {e}", extra={
            "api_name": "overpass", "lat": lat, "lng": lng, "status_code": e.status_code
        })
        return []

    pois = _elements_to_pois(data, lat, lng)
    logger.info(f"Overpass returned {len(pois)} named amenities", extra={
        "provider": "overpass", "lat": lat, "lng": lng
    })
    return pois


async def fetch_transit_stops(lat: float, lng: float, radius_m: int = 1609) -> List[PointOfInterest]:
    """Fetch named transit stops within radius. Empty list on failure."""
    query = build_transit_query(lat, lng, radius_m)
    try:
        data = await overpass_post(query, TRANSIT_TIMEOUT_S)
    except APIError as e:
        logger.error(f"OSM transit query failed: {e}", extra={
            "api_name": "overpass", "lat": lat, "lng": lng, "status_code": e.status_code
        })
        return []

    return [poi for poi in _elements_to_pois(data, lat, lng) if poi.category == "transit"]

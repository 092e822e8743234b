"""
Async Foursquare Places API Client
Metered amenity provider; self-capped daily budget with UTC-midnight reset
"""

import os
import asyncio
import aiohttp
from typing import Dict, List, Optional

from .error_handling import APIError
from .models import PointOfInterest, ProviderResult
from .quota import DailyQuota
from .utils import meters_to_miles
from logging_config import get_logger, log_error

logger = get_logger(__name__)

BASE_URL = "https://places-api.foursquare.com/places/search"
API_VERSION = "2025-06-17"
REQUEST_TIMEOUT_S = 15
RESULTS_PER_QUERY = 50

# Text queries grouped so each call covers related categories
QUERY_GROUPS = [
    {"query": "restaurant dining food", "label": "restaurants"},
    {"query": "cafe coffee bakery", "label": "cafes"},
    {"query": "bar pub brewery nightlife", "label": "bars"},
    {"query": "grocery supermarket market", "label": "grocery"},
    {"query": "pharmacy drugstore", "label": "pharmacy"},
    {"query": "gym fitness yoga", "label": "gyms"},
    {"query": "park playground garden", "label": "parks"},
    {"query": "bank atm", "label": "banks"},
]

# Checked in order; first category whose keywords appear in the name wins
CATEGORY_KEYWORDS = [
    ("restaurant", ("restaurant", "fast food", "food court", "pizza", "mexican", "italian",
                    "american", "asian", "indian", "thai", "chinese", "japanese", "korean",
                    "greek", "mediterranean", "bbq", "seafood", "sandwich", "burger", "chicken",
                    "steak", "sushi", "taco", "diner", "buffet")),
    ("cafe", ("cafe", "coffee", "bakery", "dessert", "ice cream", "donut")),
    ("bar", ("bar", "pub", "nightclub", "lounge", "cocktail", "brewery", "winery", "whiskey")),
    ("gym", ("gym", "fitness", "yoga", "sport", "athletic", "crossfit", "pilates",
             "martial art", "boxing", "swim", "dance studio")),
    ("grocery", ("grocery", "supermarket", "convenience", "bodega", "market")),
    ("park", ("park", "garden", "playground", "trail", "nature", "botanical", "recreation")),
    ("pharmacy", ("pharmacy", "drugstore", "walgreen", "cvs", "rite aid")),
    ("healthcare", ("hospital", "doctor", "clinic", "medical", "health", "dentist",
                    "urgent care", "veterinar")),
    ("school", ("school", "university", "college", "education")),
    ("shopping", ("shop", "mall", "store", "boutique", "department", "clothing", "jewelry",
                  "furniture", "electronics", "gift", "toy")),
    ("bank", ("bank", "atm", "credit union")),
    ("gas_station", ("gas", "fuel", "petrol")),
    ("entertainment", ("cinema", "theater", "theatre", "museum", "gallery", "entertainment",
                       "arcade", "bowling", "karaoke", "escape room", "amusement")),
]

foursquare_quota = DailyQuota(int(os.getenv("FOURSQUARE_DAILY_LIMIT", "300")), "foursquare")

# Global session for connection reuse
_session = None


def _get_api_key() -> str:
    # Read lazily; .env may be loaded after import
    return os.getenv("FOURSQUARE_API_KEY", "")


async def get_session():
    """Get or create aiohttp session for connection reuse."""
    global _session
    if _session is None or _session.closed:
        connector = aiohttp.TCPConnector(limit=50, limit_per_host=10)
        timeout = aiohttp.ClientTimeout(total=REQUEST_TIMEOUT_S, connect=5)
        _session = aiohttp.ClientSession(connector=connector, timeout=timeout)
    return _session


async def close_session():
    """Close the global session."""
    global _session
    if _session and not _session.closed:
        await _session.close()
        _session = None


def map_category(category_name: Optional[str]) -> str:
    """Map a Foursquare category name ("Italian Restaurant") to a POI category."""
    if not category_name:
        return "other"
    name = category_name.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in name for keyword in keywords):
            return category
    return "other"


async def _search_group(lat: float, lng: float, radius_m: int, query: str, api_key: str) -> List[Dict]:
    """One Places search call; returns the raw result list."""
    session = await get_session()
    headers = {
        "Authorization": f"Bearer {api_key}",
        "X-Places-Api-Version": API_VERSION,
        "Accept": "application/json",
    }
    params = {
        "ll": f"{lat},{lng}",
        "radius": radius_m,
        "query": query,
        "limit": RESULTS_PER_QUERY,
    }
    async with session.get(BASE_URL, headers=headers, params=params) as resp:
        if resp.status != 200:
            raise APIError(f"Foursquare returned {resp.status}", "foursquare", resp.status)
        data = await resp.json(content_type=None)
    results = (data or {}).get("results")
    return results if isinstance(results, list) else []


def _place_to_poi(place: Dict) -> Optional[PointOfInterest]:
    if not place.get("name") or place.get("latitude") is None or place.get("longitude") is None:
        return None

    categories = place.get("categories") or []
    primary = categories[0] if categories else {}
    category = map_category(primary.get("name"))
    if category == "other":
        return None

    location = place.get("location") or {}
    address = location.get("address")
    if address and location.get("locality"):
        address = f"{address}, {location['locality']}"

    return PointOfInterest(
        id=f"fsq-{place['fsq_place_id']}",
        name=place["name"],
        category=category,
        subcategory=primary.get("name"),
        address=address or None,
        lat=place["latitude"],
        lng=place["longitude"],
        distance=meters_to_miles(place.get("distance") or 0),
        phone=place.get("tel") or None,
        website=place.get("website") or None,
    )


def merge_results(responses: List[List[Dict]]) -> List[Dict]:
    """Merge query-group responses, deduping by fsq_place_id (first occurrence wins)."""
    seen = set()
    merged = []
    for results in responses:
        for place in results:
            place_id = place.get("fsq_place_id")
            if place_id and place_id not in seen:
                seen.add(place_id)
                merged.append(place)
    return merged


async def fetch_foursquare_pois(lat: float, lng: float, radius_m: int = 8047,
                                quota: Optional[DailyQuota] = None,
                                api_key: Optional[str] = None) -> ProviderResult:
    """
    Fetch POIs for all query groups in parallel.

    Returns:
        ProviderResult tagged UNAVAILABLE when the key is missing, the daily
        budget cannot cover every group, or any call fails; otherwise DATA or
        EMPTY with the merged, categorized records.
    """
    quota = quota or foursquare_quota
    api_key = api_key if api_key is not None else _get_api_key()
    if not api_key:
        logger.info("Foursquare not configured, skipping", extra={"provider": "foursquare"})
        return ProviderResult.unavailable("foursquare")

    if not quota.try_reserve(len(QUERY_GROUPS)):
        return ProviderResult.unavailable("foursquare")

    try:
        responses = await asyncio.gather(*[
            _search_group(lat, lng, radius_m, group["query"], api_key) for group in QUERY_GROUPS
        ], return_exceptions=True)
        failures = [r for r in responses if isinstance(r, BaseException)]
        if failures:
            raise failures[0]

        places = merge_results(responses)
        pois = [poi for poi in (_place_to_poi(p) for p in places) if poi is not None]
    except APIError as e:
        if e.status_code == 401:
            logger.error("Foursquare: 401, API key is invalid or missing permissions",
                         extra={"api_name": "foursquare", "status_code": 401})
        else:
            logger.error(f"Foursquare API error: {e}",
                         extra={"api_name": "foursquare", "status_code": e.status_code})
        return ProviderResult.unavailable("foursquare")
    except Exception as e:
        # Transport failures and malformed payloads alike
        log_error(logger, "provider_failure", f"Foursquare request failed: {type(e).__name__}: {e}",
                  api_name="foursquare", lat=lat, lng=lng)
        return ProviderResult.unavailable("foursquare")

    logger.info(
        f"Foursquare returned {len(places)} unique places, {len(pois)} categorized "
        f"({quota.calls_today}/{quota.daily_limit} calls today)",
        extra={"provider": "foursquare", "lat": lat, "lng": lng},
    )
    return ProviderResult.from_records("foursquare", pois)


def get_foursquare_usage(quota: Optional[DailyQuota] = None) -> Dict:
    """Today's usage for health checks."""
    quota = quota or foursquare_quota
    usage = quota.usage()
    usage["configured"] = bool(_get_api_key())
    return usage

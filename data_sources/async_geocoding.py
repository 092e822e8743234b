"""
Async Geocoding API Client
Nominatim (OpenStreetMap) forward and reverse geocoding, max one request per second
"""

import asyncio
import time
import aiohttp
from typing import Dict, List, Optional

from .error_handling import handle_api_timeout, safe_api_call
from logging_config import get_logger

logger = get_logger(__name__)

NOMINATIM_URL = "https://nominatim.openstreetmap.org"
USER_AGENT = "CityPulse/1.0 (https://citypulse.app)"
REQUEST_TIMEOUT_S = 10

# Nominatim usage policy
MIN_INTERVAL_S = 1.0

# lon/lat box used to bound forward searches
GEORGIA_VIEWBOX = "-85.605165,30.355757,-80.839729,35.000659"

# Global session for connection reuse
_session = None
_last_request_time = 0.0
_rate_lock: Optional[asyncio.Lock] = None
_rate_lock_loop = None


async def get_session():
    """Get or create aiohttp session for connection reuse."""
    global _session
    if _session is None or _session.closed:
        connector = aiohttp.TCPConnector(limit=10, limit_per_host=2)
        timeout = aiohttp.ClientTimeout(total=REQUEST_TIMEOUT_S, connect=5)
        _session = aiohttp.ClientSession(
            connector=connector,
            timeout=timeout,
            headers={"User-Agent": USER_AGENT}
        )
    return _session


async def close_session():
    """Close the global session."""
    global _session
    if _session and not _session.closed:
        await _session.close()
        _session = None


def _get_rate_lock() -> asyncio.Lock:
    # A lock is tied to the loop it first waits on; keep one per running loop
    global _rate_lock, _rate_lock_loop
    loop = asyncio.get_running_loop()
    if _rate_lock is None or _rate_lock_loop is not loop:
        _rate_lock = asyncio.Lock()
        _rate_lock_loop = loop
    return _rate_lock


async def _rate_limit():
    """Space successive requests at least MIN_INTERVAL_S apart."""
    global _last_request_time
    async with _get_rate_lock():
        wait = MIN_INTERVAL_S - (time.monotonic() - _last_request_time)
        if wait > 0:
            await asyncio.sleep(wait)
        _last_request_time = time.monotonic()


@safe_api_call("nominatim", required=False)
@handle_api_timeout(timeout_seconds=REQUEST_TIMEOUT_S + 5)
async def _get_json(path: str, params: Dict):
    """GET one Nominatim endpoint. None on a non-200, a timeout or a transport error."""
    await _rate_limit()
    session = await get_session()
    async with session.get(f"{NOMINATIM_URL}/{path}", params=params) as response:
        if response.status != 200:
            logger.warning(f"Nominatim {path} returned {response.status}", extra={
                "api_name": "nominatim", "status_code": response.status
            })
            return None
        return await response.json(content_type=None)


def _parse_result(result: Dict) -> Dict:
    address = result.get("address") or {}
    return {
        "lat": float(result["lat"]),
        "lng": float(result["lon"]),
        "display_name": result.get("display_name", ""),
        "postal_code": address.get("postcode"),
        "county": address.get("county"),
        "state": address.get("state"),
        "city": address.get("city") or address.get("town") or address.get("village"),
        "road": address.get("road"),
    }


async def reverse_geocode_async(lat: float, lng: float) -> Optional[Dict]:
    """
    Reverse geocode coordinates.

    Returns:
        Dict with postal_code, county, state, city, display_name, or None if failed
    """
    params = {"lat": str(lat), "lon": str(lng), "format": "json", "addressdetails": 1}
    try:
        data = await _get_json("reverse", params)
        if not data or data.get("error"):
            return None
        return _parse_result(data)
    except (KeyError, ValueError) as e:
        logger.error(f"Nominatim reverse geocoding error: {e}", extra={
            "api_name": "nominatim", "lat": lat, "lng": lng, "error_type": type(e).__name__
        })
        return None


async def geocode_async(address: str, limit_to_georgia: bool = True) -> Optional[Dict]:
    """
    Geocode an address string to coordinates.

    Args:
        address: Address string or ZIP code
        limit_to_georgia: Bound the search to the Georgia viewbox

    Returns:
        Same shape as reverse_geocode_async, or None if nothing matched
    """
    params = {"q": address, "format": "json", "addressdetails": 1, "limit": 1}
    if limit_to_georgia:
        params.update({"countrycodes": "us", "viewbox": GEORGIA_VIEWBOX, "bounded": 1})

    try:
        data = await _get_json("search", params)
        if not data:
            return None
        return _parse_result(data[0])
    except (KeyError, ValueError, IndexError) as e:
        logger.error(f"Nominatim geocoding error: {e}", extra={
            "api_name": "nominatim", "error_type": type(e).__name__
        })
        return None


def _to_suggestion(result: Dict) -> Dict:
    address = result.get("address") or {}
    city = address.get("city") or address.get("town") or address.get("village") or ""
    display_name = result.get("display_name", "")

    if address.get("house_number") and address.get("road"):
        main_text = f"{address['house_number']} {address['road']}"
    else:
        main_text = address.get("road") or result.get("name") or city or display_name.split(",")[0]

    secondary = [city, address.get("state") or "Georgia", address.get("postcode")]
    return {
        "place_id": str(result.get("place_id", "")),
        "description": display_name,
        "main_text": main_text,
        "secondary_text": ", ".join(part for part in secondary if part),
        "lat": float(result["lat"]),
        "lng": float(result["lon"]),
    }


async def search_places(query: str, limit: int = 5, limit_to_georgia: bool = True) -> List[Dict]:
    """
    Autocomplete-style place search.

    Returns:
        Up to `limit` suggestions (place_id, description, main_text,
        secondary_text, lat, lng); empty on no match or failure
    """
    params = {"q": query, "format": "json", "addressdetails": 1, "limit": limit}
    if limit_to_georgia:
        params.update({"countrycodes": "us", "viewbox": GEORGIA_VIEWBOX, "bounded": 1})

    data = await _get_json("search", params)
    if not isinstance(data, list):
        return []

    suggestions = []
    for result in data:
        try:
            suggestions.append(_to_suggestion(result))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed Nominatim result: {e}", extra={
                "api_name": "nominatim", "error_type": type(e).__name__
            })
    return suggestions

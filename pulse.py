"""
CityPulse analysis pipeline

Reverse geocode -> cache lookup -> safety + amenity/transit cascades ->
mobility and amenity scoring -> vibe -> write-through -> envelope.

Only InputInvalidError escapes; every provider failure degrades to an
empty or default sub-result.
"""

import math
import time
import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional

from data_sources import cascade
from data_sources.async_geocoding import geocode_async, reverse_geocode_async
from data_sources.async_geocoding import search_places as geocoding_search_places
from data_sources.cache import PulseCache, get_pulse_cache
from data_sources.error_handling import InputInvalidError
from data_sources.groq_api import DEFAULT_INTENT, SEARCH_INTENTS
from logging_config import get_logger, log_error, log_performance
from pillars.neighborhood_amenities import calculate_amenities_score
from pillars.safety import DEFAULT_DATA_SOURCE, get_safety_score
from pillars.vibe import calculate_vibe_score, compare_vibe_scores, resolve_weights
from pillars.walkability import calculate_mobility_scores

logger = get_logger(__name__)

SUPPORTED_STATE = "Georgia"
WALKING_RADIUS_MILES = 1.0
MAX_POIS_IN_RESPONSE = 100
MIN_COMPARE, MAX_COMPARE = 2, 4

PROVIDER_NAMES = {
    "foursquare": "Foursquare Places",
    "overpass": "OpenStreetMap",
    "static_gtfs": "GTFS Static Feeds",
    "unavailable": "Unavailable",
}


def validate_coordinates(lat, lng):
    """Reject non-numeric, non-finite or out-of-range coordinates."""
    for name, value, limit in (("lat", lat, 90), ("lng", lng, 180)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InputInvalidError(f"{name} must be a number")
        if not math.isfinite(value) or abs(value) > limit:
            raise InputInvalidError(f"{name} must be between -{limit} and {limit}")


def _validate_intent(intent: Optional[str]):
    if intent is not None and intent not in SEARCH_INTENTS:
        raise InputInvalidError(f"Unknown intent: {intent}")


def _resolve_weights(weights: Optional[Dict], weight_preset: Optional[str]) -> Optional[Dict]:
    if weight_preset is None:
        return weights
    try:
        return resolve_weights(preset=weight_preset)
    except ValueError as e:
        raise InputInvalidError(str(e)) from e


def determine_data_quality(safety: Dict, mobility: Dict, amenities: Dict) -> str:
    quality = 0
    if safety.get("overall", 0) > 0:
        quality += 1
    if mobility["walk_score"]["score"] >= 0:
        quality += 1
    if amenities["highlights"]["total_pois"] > 0:
        quality += 1

    if quality >= 3:
        return "complete"
    if quality >= 2:
        return "partial"
    return "limited"


def _build_data_sources(safety: Dict, amenity_source: str, transit_source: str) -> List[Dict]:
    now = datetime.now(timezone.utc).isoformat()
    return [
        {"name": safety["data_source"], "type": "safety", "last_updated": safety["last_updated"],
         "coverage": "national" if safety["data_source"] == DEFAULT_DATA_SOURCE else "county"},
        {"name": PROVIDER_NAMES.get(amenity_source, amenity_source), "type": "amenities",
         "last_updated": now, "coverage": "none" if amenity_source == "unavailable" else "full"},
        {"name": PROVIDER_NAMES.get(transit_source, transit_source), "type": "transit",
         "last_updated": now, "coverage": "static" if transit_source == "static_gtfs" else "full"},
    ]


async def _gather_cascades(lat: float, lng: float, request_id: str):
    amenity_result, transit_result = await asyncio.gather(
        cascade.fetch_amenities(lat, lng),
        cascade.fetch_transit(lat, lng),
        return_exceptions=True,
    )

    if isinstance(amenity_result, Exception):
        log_error(logger, "cascade_failure", f"Amenity cascade failed: {amenity_result}",
                  request_id=request_id, provider="amenities")
        amenity_result = {"pois": [], "source": "unavailable"}
    if isinstance(transit_result, Exception):
        log_error(logger, "cascade_failure", f"Transit cascade failed: {transit_result}",
                  request_id=request_id, provider="transit")
        transit_result = {"stops": [], "source": "static_gtfs", "static_fallback": True}

    return amenity_result, transit_result


async def analyze_location(lat: float, lng: float,
                           weights: Optional[Dict] = None,
                           weight_preset: Optional[str] = None,
                           intent: Optional[str] = None,
                           cache: Optional[PulseCache] = None,
                           geo: Optional[Dict] = None,
                           reverse_geocoder: Optional[Callable[[float, float], Awaitable[Optional[Dict]]]] = None,
                           narrative_generator=None,
                           request_id: Optional[str] = None) -> Dict:
    """
    Run the full analysis for one coordinate.

    Args:
        weights: partial weight overrides
        weight_preset: named preset; wins over weights
        intent: search intent for a personalized narrative
        geo: pre-resolved address breakdown (skips reverse geocoding)

    Returns:
        {"data": envelope, "cached": bool}

    Raises:
        InputInvalidError: bad coordinates, unknown preset or intent,
            location that cannot be resolved or lies outside Georgia
    """
    start_time = time.time()
    request_id = request_id or f"req_{int(start_time * 1000)}"

    validate_coordinates(lat, lng)
    _validate_intent(intent)
    effective_weights = _resolve_weights(weights, weight_preset)
    cache = cache or get_pulse_cache()

    if geo is None:
        geo = await (reverse_geocoder or reverse_geocode_async)(lat, lng)
    if not geo:
        raise InputInvalidError(
            "Could not determine location for these coordinates. This service currently covers Georgia, USA."
        )
    if geo.get("state") != SUPPORTED_STATE:
        raise InputInvalidError("This service currently only covers Georgia, USA.")

    zip_code = geo.get("postal_code") or "unknown"
    county_name = geo.get("county") or "Unknown"

    # Cached envelopes are built with default weights and the rule-based narrative
    personalized = bool(intent and intent != DEFAULT_INTENT) or effective_weights is not None
    cacheable = zip_code != "unknown" and not personalized

    if cacheable:
        cached = cache.get(zip_code)
        if cached:
            logger.info(f"Returning cached pulse for ZIP {zip_code}",
                        extra={"request_id": request_id, "zip_code": zip_code})
            return {"data": cached, "cached": True}

    logger.info("Fetching fresh data", extra={
        "request_id": request_id, "lat": lat, "lng": lng, "county": county_name
    })

    safety = get_safety_score(county_name)
    amenity_result, transit_result = await _gather_cascades(lat, lng, request_id)

    pois = amenity_result["pois"]
    near_pois = sorted((p for p in pois if p.distance <= WALKING_RADIUS_MILES), key=lambda p: p.distance)

    mobility = calculate_mobility_scores(near_pois, transit_result, lat, lng)
    amenities = calculate_amenities_score(
        near_pois, data_source=PROVIDER_NAMES.get(amenity_result["source"], amenity_result["source"])
    )

    city = geo.get("city") or "Unknown"
    county = county_name.replace(" County", "")
    vibe = await calculate_vibe_score(
        safety, mobility, amenities,
        weights=effective_weights,
        pois=near_pois,
        intent=intent,
        location={"city": city, "county": county, "zip_code": zip_code},
        narrative_generator=narrative_generator,
        request_id=request_id,
    )

    envelope = {
        "id": f"pulse_{int(time.time() * 1000)}",
        "location": {
            "place_id": f"ga-{zip_code}",
            "formatted_address": geo.get("display_name", ""),
            "coordinates": {"lat": lat, "lng": lng},
            "city": city,
            "state": SUPPORTED_STATE,
            "zip_code": zip_code,
            "country": "USA",
            "county": county,
        },
        "analyzed_at": datetime.now(timezone.utc).isoformat(),
        "intent": intent or DEFAULT_INTENT,
        "safety_score": safety,
        "mobility_scores": mobility,
        "amenities_score": amenities,
        "vibe_score": vibe,
        "pois": [p.to_dict() for p in sorted(pois, key=lambda p: p.distance)[:MAX_POIS_IN_RESPONSE]],
        "data_quality": determine_data_quality(safety, mobility, amenities),
        "data_sources": _build_data_sources(safety, amenity_result["source"], transit_result["source"]),
    }

    if cacheable and pois:
        cache.put(zip_code, lat, lng, envelope)

    log_performance(logger, "analyze_location", time.time() - start_time,
                    request_id=request_id, zip_code=zip_code)
    return {"data": envelope, "cached": False}


async def resolve_address(address: str,
                          geocoder: Optional[Callable[[str], Awaitable[Optional[Dict]]]] = None) -> Dict:
    """
    Forward geocode an address, bounded to Georgia.

    Raises:
        InputInvalidError: empty address, no match, or a match outside Georgia
    """
    if not isinstance(address, str) or not address.strip():
        raise InputInvalidError("address must not be empty")

    geo = await (geocoder or geocode_async)(address.strip())
    if not geo:
        raise InputInvalidError("Address not found. This service currently covers Georgia, USA.")
    if geo.get("state") != SUPPORTED_STATE:
        raise InputInvalidError(f"{address.strip()} is outside Georgia. "
                                "This service currently only covers Georgia, USA.")
    return geo


async def _analyze_geocoded(geo: Dict, **kwargs) -> Dict:
    result = await analyze_location(geo["lat"], geo["lng"], geo=geo, **kwargs)
    if result["cached"]:
        data = dict(result["data"])
        data["location"] = dict(data["location"], formatted_address=geo.get("display_name", ""))
        result = {"data": data, "cached": True}
    return result


async def analyze_address(address: str,
                          geocoder: Optional[Callable[[str], Awaitable[Optional[Dict]]]] = None,
                          **kwargs) -> Dict:
    """Forward geocode an address (bounded to Georgia), then analyze it."""
    geo = await resolve_address(address, geocoder)
    return await _analyze_geocoded(geo, **kwargs)


async def search_places(query: str, limit: int = 5,
                        searcher: Optional[Callable[..., Awaitable[List[Dict]]]] = None) -> List[Dict]:
    """Address suggestions for a partial query; empty for queries under two characters."""
    if not isinstance(query, str) or len(query.strip()) < 2:
        return []
    limit = max(1, min(int(limit), 10))
    return await (searcher or geocoding_search_places)(query.strip(), limit=limit)


async def compare_locations(locations: List, geocoder=None, **kwargs) -> Dict:
    """
    Analyze 2-4 locations concurrently and pick a winner.

    Each location is an address string, {"address": ...} or {"lat": .., "lng": ..}.
    Every location is resolved and validated before any analysis starts, so one
    bad entry rejects the whole comparison.

    Returns:
        {"locations": [envelope, ...], "comparison": {winner, margin, category}}
    """
    if not MIN_COMPARE <= len(locations) <= MAX_COMPARE:
        raise InputInvalidError(f"Between {MIN_COMPARE} and {MAX_COMPARE} locations required")

    resolved = []
    for index, location in enumerate(locations):
        if isinstance(location, str):
            location = {"address": location}
        if not isinstance(location, dict):
            raise InputInvalidError(f"Location {index + 1} must be an address or coordinates")
        if location.get("address") is not None:
            try:
                resolved.append((await resolve_address(location["address"], geocoder), None))
            except InputInvalidError as e:
                raise InputInvalidError(f"Location {index + 1}: {e}") from e
        else:
            validate_coordinates(location.get("lat"), location.get("lng"))
            resolved.append((None, (location["lat"], location["lng"])))

    results = await asyncio.gather(*[
        _analyze_geocoded(geo, **kwargs) if geo else analyze_location(*coordinates, **kwargs)
        for geo, coordinates in resolved
    ])
    envelopes = [r["data"] for r in results]
    return {
        "locations": envelopes,
        "comparison": compare_vibe_scores([e["vibe_score"] for e in envelopes]),
    }

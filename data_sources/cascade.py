"""
Provider cascades for amenities and transit stops

Amenities: Foursquare first; only an UNAVAILABLE outcome falls through to
Overpass. Transit: live Overpass stops; an empty answer falls through to the
static Georgia stop table filtered by the same radius.
"""

from typing import Dict, List

from . import async_osm_api
from . import foursquare_api
from . import transit_data
from .models import PointOfInterest, TransitStop
from .utils import METERS_PER_MILE
from logging_config import get_logger

logger = get_logger(__name__)

AMENITY_RADIUS_M = 8047  # 5 miles
TRANSIT_RADIUS_MILES = 1.0


async def fetch_amenities(lat: float, lng: float, radius_m: int = AMENITY_RADIUS_M) -> Dict:
    """
    Returns:
        {"pois": List[PointOfInterest], "source": "foursquare" | "overpass"}
    """
    result = await foursquare_api.fetch_foursquare_pois(lat, lng, radius_m)
    if result.is_available:
        logger.info(f"Using Foursquare amenities ({result.status.value}, {len(result.records)} records)",
                    extra={"provider": "foursquare", "lat": lat, "lng": lng})
        return {"pois": result.records, "source": "foursquare"}

    logger.info("Foursquare unavailable, falling back to Overpass",
                extra={"provider": "overpass", "lat": lat, "lng": lng})
    pois = await async_osm_api.fetch_amenities_in_radius(lat, lng, radius_m)
    return {"pois": pois, "source": "overpass"}


def static_stop_to_poi(stop: TransitStop, distance: float) -> PointOfInterest:
    return PointOfInterest(
        id=f"gtfs-{stop.id}",
        name=stop.name,
        category="transit",
        subcategory=stop.type,
        address=stop.agency,
        lat=stop.lat,
        lng=stop.lng,
        distance=distance,
    )


def static_transit_stops(lat: float, lng: float,
                         radius_miles: float = TRANSIT_RADIUS_MILES) -> List[PointOfInterest]:
    nearby = transit_data.find_transit_stops_nearby(lat, lng, radius_miles)
    return [static_stop_to_poi(stop, distance) for stop, distance in nearby]


async def fetch_transit(lat: float, lng: float, radius_miles: float = TRANSIT_RADIUS_MILES) -> Dict:
    """
    Returns:
        {"stops": List[PointOfInterest], "source": "overpass" | "static_gtfs",
         "static_fallback": bool}
    """
    radius_m = int(round(radius_miles * METERS_PER_MILE))
    live = await async_osm_api.fetch_transit_stops(lat, lng, radius_m)
    live = [stop for stop in live if stop.distance <= radius_miles]
    if live:
        return {"stops": live, "source": "overpass", "static_fallback": False}

    stops = static_transit_stops(lat, lng, radius_miles)
    logger.info(f"No live transit stops, using static dataset ({len(stops)} within {radius_miles} mi)",
                extra={"provider": "static_gtfs", "lat": lat, "lng": lng})
    return {"stops": stops, "source": "static_gtfs", "static_fallback": True}

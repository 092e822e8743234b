"""
Public Transit Access Pillar (static stop table)
Point-budget transit score used when no live stops are available

Budget:
- Nearest stop proximity (0-40)
- Nearest rail/streetcar proximity (0-30)
- Stop density within 1 mile, 3 points per stop (0-30)
- +5 when at least two transit types exist within 3 miles
"""

from typing import Dict, List, Optional

from data_sources.models import TransitStop
from data_sources.transit_data import (
    DATA_SOURCE,
    DATA_YEAR,
    count_transit_by_type,
    find_nearest_rail_station,
    find_nearest_transit_stop,
)
from data_sources.utils import calculate_distance_score, clamp
from logging_config import get_logger

logger = get_logger(__name__)

NEAREST_STOP_POINTS = [(0.25, 40), (0.5, 35), (1.0, 25), (2.0, 15), (5.0, 5)]
NEAREST_RAIL_POINTS = [(0.5, 30), (1.0, 25), (2.0, 18), (3.0, 12), (5.0, 6)]
POINTS_PER_STOP = 3
MAX_DENSITY_POINTS = 30
VARIETY_RADIUS_MILES = 3.0
VARIETY_BONUS = 5


def get_transit_description(score: float, nearest_stop_distance: Optional[float] = None) -> str:
    if score >= 90:
        return "Rider's Paradise - World-class public transit with excellent rail and bus access"
    if score >= 70:
        return "Excellent Transit - Many nearby transit options, daily errands do not require a car"
    if score >= 50:
        return "Good Transit - Many nearby public transportation options"
    if score >= 25:
        return "Some Transit - A few public transportation options"
    if nearest_stop_distance is not None and nearest_stop_distance <= 5:
        return "Minimal Transit - Limited public transportation nearby"
    return "Minimal Transit - Few or no public transportation options"


def _stop_summary(nearest) -> Optional[Dict]:
    if nearest is None:
        return None
    stop, distance = nearest
    return {
        "name": stop.name,
        "type": stop.type,
        "agency": stop.agency,
        "distance": distance,
        "routes": list(stop.routes),
    }


def calculate_static_transit_score(lat: float, lng: float,
                                   stops: Optional[List[TransitStop]] = None) -> Dict:
    """
    Score transit access from the static stop table.

    Returns:
        {score, description, nearest_stop, nearest_rail, stops_within_1_mile,
         data_source, data_year}
    """
    nearest_stop = find_nearest_transit_stop(lat, lng, stops)
    nearest_rail = find_nearest_rail_station(lat, lng, stops)
    within_1_mile = count_transit_by_type(lat, lng, 1.0, stops)
    within_3_miles = count_transit_by_type(lat, lng, VARIETY_RADIUS_MILES, stops)

    score = 0.0
    if nearest_stop:
        score += calculate_distance_score(nearest_stop[1], NEAREST_STOP_POINTS)
    if nearest_rail:
        score += calculate_distance_score(nearest_rail[1], NEAREST_RAIL_POINTS)

    score += min(MAX_DENSITY_POINTS, within_1_mile["total"] * POINTS_PER_STOP)

    types_nearby = sum(1 for t in ("rail", "bus", "streetcar") if within_3_miles[t] > 0)
    if types_nearby >= 2:
        score += VARIETY_BONUS

    score = round(clamp(score))

    logger.debug(f"Static transit score {score} "
                 f"(nearest stop {nearest_stop[1] if nearest_stop else None} mi, "
                 f"{within_1_mile['total']} stops within 1 mi)")

    return {
        "score": score,
        "description": get_transit_description(score, nearest_stop[1] if nearest_stop else None),
        "nearest_stop": _stop_summary(nearest_stop),
        "nearest_rail": _stop_summary(nearest_rail),
        "stops_within_1_mile": within_1_mile,
        "data_source": DATA_SOURCE,
        "data_year": DATA_YEAR,
    }

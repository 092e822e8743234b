"""
Walkability Pillar
Walk, transit and bike scores from nearby POIs and transit stops

Walk score weights each POI by category importance and distance decay, caps
each category so no single one dominates, and normalizes against every
category maxed out. Bike score is derived from walk and transit.
"""

import os
import random
from datetime import datetime, timezone
from typing import Dict, List, Optional

from data_sources.models import PointOfInterest
from data_sources.utils import calculate_distance_score, calculate_threshold_label, clamp
from logging_config import get_logger
from pillars import public_transit_access

logger = get_logger(__name__)

# Distance decay (miles -> weight); beyond 2 miles contributes nothing
DISTANCE_WEIGHTS = [(0.25, 1.0), (0.5, 0.75), (1.0, 0.5), (1.5, 0.25), (2.0, 0.1)]

WALKABILITY_WEIGHTS = {
    "grocery": 3,
    "restaurant": 2,
    "pharmacy": 2,
    "healthcare": 2,
    "bank": 1,
    "school": 1,
    "park": 1.5,
    "gym": 1,
    "other": 0.5,
}
DEFAULT_CATEGORY_WEIGHT = 0.5
MAX_CATEGORY_POINTS = 15
MAX_WALK_POINTS = len(WALKABILITY_WEIGHTS) * MAX_CATEGORY_POINTS

RAIL_MARKERS = ("subway", "station", "rail")
RAIL_MULTIPLIER = 3
POINTS_PER_STOP = 5
VARIETY_MULTIPLIER = 1.2
TRANSIT_REFERENCE_POINTS = 100

BIKE_WALK_SHARE = 0.7
BIKE_TRANSIT_SHARE = 0.3
BIKE_NOISE_RANGE = 10

WALK_LABELS = [
    (90, "Walker's Paradise"),
    (70, "Very Walkable"),
    (50, "Somewhat Walkable"),
    (25, "Car-Dependent"),
]
TRANSIT_LABELS = [
    (90, "Rider's Paradise"),
    (70, "Excellent Transit"),
    (50, "Good Transit"),
    (25, "Some Transit"),
]
BIKE_LABELS = [
    (90, "Biker's Paradise"),
    (70, "Very Bikeable"),
    (50, "Bikeable"),
    (25, "Somewhat Bikeable"),
]

# POIs with no distance are treated as at the edge of range
UNKNOWN_DISTANCE = 2.0


def get_distance_weight(distance_miles: Optional[float]) -> float:
    if distance_miles is None:
        distance_miles = UNKNOWN_DISTANCE
    return calculate_distance_score(distance_miles, DISTANCE_WEIGHTS)


def calculate_walk_score(pois: List[PointOfInterest]) -> int:
    """Walk score (0-100) from amenity density and distance."""
    category_points: Dict[str, float] = {}
    for poi in pois:
        weight = WALKABILITY_WEIGHTS.get(poi.category, DEFAULT_CATEGORY_WEIGHT)
        category_points[poi.category] = category_points.get(poi.category, 0) + \
            get_distance_weight(poi.distance) * weight

    total = sum(min(points, MAX_CATEGORY_POINTS) for points in category_points.values())
    return round(clamp(total / MAX_WALK_POINTS * 100))


def is_rail_stop(stop: PointOfInterest) -> bool:
    subcategory = (stop.subcategory or "").lower()
    return any(marker in subcategory for marker in RAIL_MARKERS)


def calculate_transit_score(transit_stops: List[PointOfInterest]) -> int:
    """Transit score (0-100) from live stops; rail counts triple."""
    if not transit_stops:
        return 0

    score = 0.0
    stop_types = set()
    for stop in transit_stops:
        rail = is_rail_stop(stop)
        score += get_distance_weight(stop.distance) * (RAIL_MULTIPLIER if rail else 1) * POINTS_PER_STOP
        stop_types.add("rail" if rail else "bus")

    if len(stop_types) >= 2:
        score *= VARIETY_MULTIPLIER

    return round(clamp(score / TRANSIT_REFERENCE_POINTS * 100))


def bike_noise_enabled() -> bool:
    return os.getenv("BIKE_SCORE_NOISE", "0").lower() in ("1", "true", "yes")


def calculate_bike_score(walk_score: float, transit_score: float,
                         noise: Optional[float] = None,
                         rng: Optional[random.Random] = None) -> int:
    """
    Bike score estimated from walk and transit.

    Args:
        noise: explicit perturbation; when None, a uniform +/-10 draw is used
            only if BIKE_SCORE_NOISE is enabled, else 0
        rng: random source for the draw
    """
    if noise is None:
        noise = (rng or random).uniform(-BIKE_NOISE_RANGE, BIKE_NOISE_RANGE) if bike_noise_enabled() else 0.0
    base = walk_score * BIKE_WALK_SHARE + transit_score * BIKE_TRANSIT_SHARE
    return round(clamp(base + noise))


def get_walk_score_label(score: float) -> str:
    return calculate_threshold_label(score, WALK_LABELS, "Almost All Errands Require a Car")


def get_transit_score_label(score: float) -> str:
    return calculate_threshold_label(score, TRANSIT_LABELS, "Minimal Transit")


def get_bike_score_label(score: float) -> str:
    return calculate_threshold_label(score, BIKE_LABELS, "Minimal Bike Infrastructure")


def calculate_mobility_scores(near_pois: List[PointOfInterest], transit: Dict,
                              lat: Optional[float] = None, lng: Optional[float] = None,
                              rng: Optional[random.Random] = None) -> Dict:
    """
    Mobility profile for a location.

    Args:
        near_pois: amenities within walking range
        transit: transit cascade result ({stops, source, static_fallback})
        lat, lng: query point, required for the static transit formula
    """
    walk = calculate_walk_score(near_pois)

    if transit.get("static_fallback") and lat is not None and lng is not None:
        static = public_transit_access.calculate_static_transit_score(lat, lng)
        transit_score = {"score": static["score"], "description": static["description"]}
        data_source = f"OpenStreetMap (calculated) + {static['data_source']}"
    else:
        score = calculate_transit_score(transit.get("stops") or [])
        transit_score = {"score": score, "description": get_transit_score_label(score)}
        data_source = "OpenStreetMap (calculated)"

    bike = calculate_bike_score(walk, transit_score["score"], rng=rng)

    logger.debug(f"Mobility scores walk={walk} transit={transit_score['score']} bike={bike}")

    return {
        "walk_score": {"score": walk, "description": get_walk_score_label(walk)},
        "transit_score": transit_score,
        "bike_score": {"score": bike, "description": get_bike_score_label(bike)},
        "data_source": data_source,
        "last_updated": datetime.now(timezone.utc).isoformat(),
    }

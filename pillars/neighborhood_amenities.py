"""
Neighborhood Amenities Pillar
Scores everyday amenities within walking range (1 mile)

Sub-scores (each capped at 100):
- grocery: 25 per store
- dining: 10 per restaurant
- healthcare: 20 per healthcare facility or pharmacy
- entertainment: 15 per park or gym
- shopping: 20 per grocery store or bank
"""

from datetime import datetime, timezone
from typing import Dict, List

from data_sources.models import PointOfInterest
from logging_config import get_logger

logger = get_logger(__name__)

CATEGORY_WEIGHTS = {
    "grocery": 0.25,
    "dining": 0.20,
    "healthcare": 0.25,
    "entertainment": 0.15,
    "shopping": 0.15,
}


def _capped(count: int, points_each: int) -> int:
    return min(100, count * points_each)


def count_by_category(pois: List[PointOfInterest]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for poi in pois:
        counts[poi.category] = counts.get(poi.category, 0) + 1
    return counts


def nearest_by_category(pois: List[PointOfInterest]) -> Dict[str, PointOfInterest]:
    """Single pass keeping the closest POI per category."""
    nearest: Dict[str, PointOfInterest] = {}
    for poi in pois:
        current = nearest.get(poi.category)
        if current is None or poi.distance < current.distance:
            nearest[poi.category] = poi
    return nearest


def calculate_amenities_score(near_pois: List[PointOfInterest], data_source: str = "OpenStreetMap") -> Dict:
    """
    Amenity profile from POIs within walking range.

    Returns:
        {overall, categories, highlights, is_food_desert, nearest_by_category,
         data_source, last_updated}
    """
    counts = count_by_category(near_pois)
    grocery = counts.get("grocery", 0)
    restaurants = counts.get("restaurant", 0)
    healthcare = counts.get("healthcare", 0) + counts.get("pharmacy", 0)
    parks = counts.get("park", 0)
    gyms = counts.get("gym", 0)
    banks = counts.get("bank", 0)

    categories = {
        "grocery": _capped(grocery, 25),
        "dining": _capped(restaurants, 10),
        "healthcare": _capped(healthcare, 20),
        "entertainment": _capped(parks + gyms, 15),
        "shopping": _capped(grocery + banks, 20),
    }
    overall = round(sum(categories[name] * weight for name, weight in CATEGORY_WEIGHTS.items()))

    is_food_desert = grocery == 0
    if is_food_desert:
        logger.info("No grocery store within 1 mile (food desert)")

    return {
        "overall": overall,
        "categories": categories,
        "highlights": {
            "total_pois": len(near_pois),
            "grocery_stores": grocery,
            "restaurants": restaurants,
            "healthcare": healthcare,
            "parks": parks,
            "gyms": gyms,
        },
        "is_food_desert": is_food_desert,
        "nearest_by_category": {
            category: poi.to_dict() for category, poi in nearest_by_category(near_pois).items()
        },
        "data_source": data_source,
        "last_updated": datetime.now(timezone.utc).isoformat(),
    }

"""
Shared utilities for CityPulse data sources
Consolidates distance calculations and banded scoring helpers
"""

import math
from typing import List, Tuple

EARTH_RADIUS_MILES = 3959
METERS_PER_MILE = 1609.34


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate distance between two points in miles using the Haversine formula.

    Args:
        lat1, lon1: First point coordinates
        lat2, lon2: Second point coordinates

    Returns:
        Distance in miles, rounded to two decimals
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = math.sin(delta_phi/2)**2 + math.cos(phi1) * \
        math.cos(phi2) * math.sin(delta_lambda/2)**2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1-a))

    return round(EARTH_RADIUS_MILES * c, 2)


def meters_to_miles(meters: float) -> float:
    """Convert meters to miles, two-decimal precision."""
    return round(meters / METERS_PER_MILE, 2)


def calculate_distance_score(distance: float, thresholds: List[Tuple[float, float]]) -> float:
    """
    Calculate score based on distance using configurable thresholds.

    Args:
        distance: Distance (same unit as the thresholds)
        thresholds: List of (max_distance, score) tuples, sorted by distance

    Returns:
        Score based on distance
    """
    for max_distance, score in thresholds:
        if distance <= max_distance:
            return score

    # If distance exceeds all thresholds, return 0
    return 0.0


def calculate_threshold_label(score: float, thresholds: List[Tuple[float, str]], default: str) -> str:
    """
    Map a score to a label using descending (min_score, label) thresholds.

    Args:
        score: Score to classify
        thresholds: List of (min_score, label) tuples, sorted high to low
        default: Label when the score is below every threshold
    """
    for min_score, label in thresholds:
        if score >= min_score:
            return label
    return default


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    """Clamp a value into [low, high]."""
    return max(low, min(high, value))

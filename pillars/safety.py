"""
Safety Pillar
Scores county crime rates against national baselines (FBI Crime Data Explorer)

Each offense type scores 100 at a zero rate, 50 at the national rate and
falls linearly to 0 at twice the national rate. Overall is a weighted sum.
"""

from datetime import datetime, timezone
from typing import Dict, Optional

from data_sources.crime_data import (
    DATA_SOURCE,
    NATIONAL_AVERAGES,
    get_county_crime_data_by_name,
)
from data_sources.error_handling import with_fallback
from data_sources.utils import calculate_threshold_label, clamp
from logging_config import get_logger

logger = get_logger(__name__)

# Weights sum to 1.0
SAFETY_WEIGHTS = {
    "murder": 0.20,
    "robbery": 0.15,
    "assault": 0.15,
    "burglary": 0.15,
    "larceny": 0.10,
    "vehicle_theft": 0.10,
    "violent_crime": 0.10,
    "property_crime": 0.05,
}

GRADE_THRESHOLDS = [
    (95, "A+"), (90, "A"), (85, "A-"),
    (80, "B+"), (75, "B"), (70, "B-"),
    (65, "C+"), (60, "C"), (55, "C-"),
    (40, "D"),
]

RISK_THRESHOLDS = [
    (80, "very_low"),
    (65, "low"),
    (45, "moderate"),
    (25, "high"),
]

NATIONAL_TOTAL = NATIONAL_AVERAGES["violent_crime"] + NATIONAL_AVERAGES["property_crime"]
DEFAULT_DATA_SOURCE = "National averages (county data unavailable)"


def rate_to_score(rate: Optional[float], national: float) -> float:
    """Sub-score for one offense type, unrounded."""
    if not rate or rate <= 0:
        return 100.0
    return clamp(100 - (rate / national) * 50)


def score_to_grade(score: float) -> str:
    return calculate_threshold_label(score, GRADE_THRESHOLDS, "F")


def score_to_risk_level(score: float) -> str:
    return calculate_threshold_label(score, RISK_THRESHOLDS, "very_high")


def vs_national(violent: Optional[float], property_rate: Optional[float]) -> int:
    """Percent difference of the local total rate vs the national total."""
    local_total = (violent or 0) + (property_rate or 0)
    return round((local_total - NATIONAL_TOTAL) / NATIONAL_TOTAL * 100)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def calculate_safety_score(rates: Dict[str, float], data_source: str = DATA_SOURCE) -> Dict:
    """
    Build a safety profile from per-100k rates.

    Args:
        rates: keyed like NATIONAL_AVERAGES (violent_crime, property_crime,
            murder, robbery, assault, burglary, larceny, vehicle_theft)
    """
    sub_scores = {
        field: rate_to_score(rates.get(field), NATIONAL_AVERAGES[field])
        for field in SAFETY_WEIGHTS
    }
    overall = round(sum(sub_scores[field] * weight for field, weight in SAFETY_WEIGHTS.items()))

    violent = rates.get("violent_crime") or 0
    property_rate = rates.get("property_crime") or 0

    return {
        "overall": overall,
        "grade": score_to_grade(overall),
        "risk_level": score_to_risk_level(overall),
        # Single-year data; no trend signal yet
        "trend": "stable",
        "vs_national": vs_national(violent, property_rate),
        "crime_rates": {
            "violent": violent,
            "property": property_rate,
            "total": violent + property_rate,
        },
        "breakdown": {
            "murder": round(sub_scores["murder"]),
            "robbery": round(sub_scores["robbery"]),
            "assault": round(sub_scores["assault"]),
            "burglary": round(sub_scores["burglary"]),
            "theft": round(sub_scores["larceny"]),
            "vehicle_theft": round(sub_scores["vehicle_theft"]),
        },
        "data_source": data_source,
        "last_updated": _now_iso(),
    }


def default_safety_score() -> Dict:
    """Profile for a jurisdiction with no data: every metric at the national rate."""
    violent = NATIONAL_AVERAGES["violent_crime"]
    property_rate = NATIONAL_AVERAGES["property_crime"]
    return {
        "overall": 50,
        "grade": "C",
        "risk_level": "moderate",
        "trend": "stable",
        "vs_national": 0,
        "crime_rates": {
            "violent": violent,
            "property": property_rate,
            "total": violent + property_rate,
        },
        "breakdown": {
            "murder": 50,
            "robbery": 50,
            "assault": 50,
            "burglary": 50,
            "theft": 50,
            "vehicle_theft": 50,
        },
        "data_source": DEFAULT_DATA_SOURCE,
        "last_updated": _now_iso(),
    }


@with_fallback(default_safety_score)
def get_safety_score(county_name: Optional[str]) -> Dict:
    """
    Safety profile for a Georgia county ("Fulton" or "Fulton County").

    Unknown counties get the default profile.
    """
    county = get_county_crime_data_by_name(county_name)
    if county is None:
        logger.warning(f"No crime data for county: {county_name!r}, using national averages",
                       extra={"county": county_name})
        return default_safety_score()

    profile = calculate_safety_score(county["rates"])
    logger.info(f"Safety score for {county['name']} County: {profile['overall']} ({profile['grade']})",
                extra={"county": county["name"], "score_name": "safety"})
    return profile

"""
Vibe Pillar
Composite score, label, confidence and narrative from the safety, mobility
and amenity profiles

Labels come from an ordered rule list evaluated highest priority first; the
first matching rule wins and "balanced" always matches. The rule-based
narrative is always built; an intent-specific narrative from the generator
replaces it only when it validates.
"""

import math
from typing import Awaitable, Callable, Dict, List, Optional

from data_sources import groq_api
from logging_config import get_logger, log_score_calculation

logger = get_logger(__name__)

WEIGHT_KEYS = ("safety_weight", "walkability_weight", "transit_weight", "amenities_weight")

DEFAULT_WEIGHTS: Dict[str, float] = {
    "safety_weight": 0.35,
    "walkability_weight": 0.25,
    "transit_weight": 0.15,
    "amenities_weight": 0.25,
}

WEIGHT_PRESETS: Dict[str, Dict[str, float]] = {
    "balanced": DEFAULT_WEIGHTS,
    "safety_first": {
        "safety_weight": 0.50,
        "walkability_weight": 0.20,
        "transit_weight": 0.10,
        "amenities_weight": 0.20,
    },
    "urban_explorer": {
        "safety_weight": 0.20,
        "walkability_weight": 0.35,
        "transit_weight": 0.25,
        "amenities_weight": 0.20,
    },
    "commuter": {
        "safety_weight": 0.25,
        "walkability_weight": 0.15,
        "transit_weight": 0.40,
        "amenities_weight": 0.20,
    },
    "foodie": {
        "safety_weight": 0.25,
        "walkability_weight": 0.20,
        "transit_weight": 0.10,
        "amenities_weight": 0.45,
    },
}

PRESET_DESCRIPTIONS = {
    "balanced": "Equal weight to all factors",
    "safety_first": "Prioritizes low crime and safety",
    "urban_explorer": "Focuses on walkability and transit",
    "commuter": "Emphasizes public transit access",
    "foodie": "Values restaurants and amenities",
}

# Label thresholds
URBAN_OASIS_MIN_WALK = 85
URBAN_OASIS_MIN_SAFETY = 75
URBAN_OASIS_MIN_AMENITIES = 80
NEEDS_ATTENTION_LOW_SCORE = 40
NEEDS_ATTENTION_MIN_LOW_COUNT = 2
TRANSIT_HUB_MIN_TRANSIT = 80
TRANSIT_HUB_MAX_WALK = 70
HIDDEN_GEM_MIN_SAFETY = 85
HIDDEN_GEM_WALK_RANGE = (50, 75)
SUBURBAN_MIN_SAFETY = 70
SUBURBAN_WALK_RANGE = (30, 70)
SUBURBAN_MIN_AMENITIES = 50
CAR_COUNTRY_MAX_WALK = 40
CAR_COUNTRY_MIN_SAFETY = 60
CAR_COUNTRY_MIN_AMENITIES = 40
UP_AND_COMING_AVG_RANGE = (50, 70)
UP_AND_COMING_MIN_SAFETY = 55

# Confidence
HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.5
THIN_POI_COUNT = 10
CONFIDENCE_SIGNALS = 4

MIN_PROS, MAX_PROS = 3, 5
MIN_CONS, MAX_CONS = 2, 5


def _in_range(value: float, bounds) -> bool:
    low, high = bounds
    return low <= value < high


def _is_food_desert(b: Dict, amenities: Dict) -> bool:
    return bool(amenities.get("is_food_desert"))


def _is_urban_oasis(b: Dict, amenities: Dict) -> bool:
    return (b["walkability"] >= URBAN_OASIS_MIN_WALK and b["safety"] >= URBAN_OASIS_MIN_SAFETY
            and b["amenities"] >= URBAN_OASIS_MIN_AMENITIES)


def _needs_attention(b: Dict, amenities: Dict) -> bool:
    low = [score for score in b.values() if score < NEEDS_ATTENTION_LOW_SCORE]
    return len(low) >= NEEDS_ATTENTION_MIN_LOW_COUNT


def _is_transit_hub(b: Dict, amenities: Dict) -> bool:
    return b["transit"] >= TRANSIT_HUB_MIN_TRANSIT and b["walkability"] < TRANSIT_HUB_MAX_WALK


def _is_hidden_gem(b: Dict, amenities: Dict) -> bool:
    return b["safety"] >= HIDDEN_GEM_MIN_SAFETY and _in_range(b["walkability"], HIDDEN_GEM_WALK_RANGE)


def _is_suburban_comfort(b: Dict, amenities: Dict) -> bool:
    return (b["safety"] >= SUBURBAN_MIN_SAFETY and _in_range(b["walkability"], SUBURBAN_WALK_RANGE)
            and b["amenities"] >= SUBURBAN_MIN_AMENITIES)


def _is_car_country(b: Dict, amenities: Dict) -> bool:
    return (b["walkability"] < CAR_COUNTRY_MAX_WALK and b["safety"] >= CAR_COUNTRY_MIN_SAFETY
            and b["amenities"] >= CAR_COUNTRY_MIN_AMENITIES)


def _is_up_and_coming(b: Dict, amenities: Dict) -> bool:
    average = (b["safety"] + b["walkability"] + b["transit"] + b["amenities"]) / 4
    return _in_range(average, UP_AND_COMING_AVG_RANGE) and b["safety"] >= UP_AND_COMING_MIN_SAFETY


# (priority, label, check)
LABEL_RULES = [
    (100, "food_desert", _is_food_desert),
    (90, "urban_oasis", _is_urban_oasis),
    (85, "needs_attention", _needs_attention),
    (70, "transit_hub", _is_transit_hub),
    (65, "hidden_gem", _is_hidden_gem),
    (60, "suburban_comfort", _is_suburban_comfort),
    (55, "car_country", _is_car_country),
    (50, "up_and_coming", _is_up_and_coming),
    (0, "balanced", lambda b, a: True),
]

VIBE_LABELS = tuple(label for _, label, _ in LABEL_RULES)

LABEL_SUMMARIES = {
    "urban_oasis": "An exceptional urban neighborhood with excellent walkability, low crime, and abundant amenities. Perfect for those who want to live car-free.",
    "suburban_comfort": "A safe, family-friendly area with decent access to essentials. You'll need a car for some errands but enjoy lower crime rates.",
    "up_and_coming": "A neighborhood on the rise with improving amenities and moderate safety. Good value potential but do your research.",
    "car_country": "A car-dependent area that's safe and has basic amenities. Best for those who prefer driving and value space over walkability.",
    "hidden_gem": "A surprisingly safe area that flies under the radar. Moderate walkability but excellent safety scores.",
    "food_desert": "Limited grocery access in this area. Consider proximity to food stores when planning your move.",
    "transit_hub": "Excellent public transit access makes this a commuter's dream, though local walkability varies.",
    "needs_attention": "Multiple factors suggest caution. Review individual scores carefully before deciding.",
    "balanced": "A well-rounded neighborhood with moderate scores across all categories. No major red flags or standout features.",
}

PRO_BACKFILL = [
    "Established residential area",
    "Connected to surrounding neighborhoods",
    "Convenient access to the wider metro area",
]
CON_BACKFILL = [
    "Visit the area at different times to assess noise and activity levels",
    "Compare with nearby neighborhoods for best value",
]


def _valid_weight(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value) and not math.isinf(value) and value >= 0


def normalize_weights(overrides: Optional[Dict] = None) -> Dict[str, float]:
    """
    Overlay valid overrides on the defaults and renormalize to sum to 1.0.

    Missing, negative or non-numeric overrides are ignored. An all-zero
    vector falls back to the defaults.
    """
    weights = dict(DEFAULT_WEIGHTS)
    for key, value in (overrides or {}).items():
        if key in weights and _valid_weight(value):
            weights[key] = float(value)

    total = sum(weights[key] for key in WEIGHT_KEYS)
    if total <= 0:
        logger.warning("Weights sum to zero, using defaults")
        weights, total = dict(DEFAULT_WEIGHTS), sum(DEFAULT_WEIGHTS.values())

    normalized = {key: weights[key] / total for key in WEIGHT_KEYS[:-1]}
    # Last component takes the remainder so the vector sums to exactly 1
    normalized[WEIGHT_KEYS[-1]] = 1.0 - sum(normalized.values())
    return normalized


def resolve_weights(weights: Optional[Dict] = None, preset: Optional[str] = None) -> Dict[str, float]:
    """A named preset wins over explicit weights."""
    if preset:
        if preset not in WEIGHT_PRESETS:
            raise ValueError(f"Unknown weight preset: {preset}")
        return normalize_weights(WEIGHT_PRESETS[preset])
    return normalize_weights(weights)


def determine_label(breakdown: Dict, amenities: Dict) -> str:
    for _, label, check in sorted(LABEL_RULES, key=lambda rule: rule[0], reverse=True):
        if check(breakdown, amenities):
            return label
    return "balanced"


def calculate_confidence(safety: Dict, mobility: Dict, amenities: Dict) -> str:
    """
    Confidence tier from data completeness.

    Quality is divided by the number of present signals only when all four
    are present; otherwise by four, so missing signals count against it.
    """
    data_points = 0
    quality = 0.0

    if safety.get("overall", 0) > 0:
        data_points += 1
        quality += 1.0 if (safety.get("crime_rates") or {}).get("total", 0) > 0 else 0.7

    if (mobility.get("walk_score") or {}).get("score", 0) > 0:
        data_points += 1
        quality += 1.0
    if (mobility.get("transit_score") or {}).get("score", 0) > 0:
        data_points += 1
        quality += 1.0

    poi_count = (amenities.get("highlights") or {}).get("total_pois", 0)
    if poi_count > 0:
        data_points += 1
        quality += 1.0 if poi_count >= THIN_POI_COUNT else 0.5

    ratio = quality / data_points if data_points >= CONFIDENCE_SIGNALS else quality / CONFIDENCE_SIGNALS

    if ratio >= HIGH_CONFIDENCE:
        return "high"
    if ratio >= MEDIUM_CONFIDENCE:
        return "medium"
    return "low"


def _group_by_category(pois: Optional[List]) -> Dict[str, List]:
    grouped: Dict[str, List] = {}
    for poi in pois or []:
        grouped.setdefault(poi.category, []).append(poi)
    return grouped


def _names(pois: List, limit: int) -> List[str]:
    return [p.name for p in pois[:limit] if p.name]


def generate_pros(breakdown: Dict, amenities: Dict, pois: Optional[List] = None) -> List[str]:
    """3-5 data-driven highlights, most important first."""
    pros: List[str] = []
    highlights = amenities.get("highlights") or {}
    nearest = amenities.get("nearest_by_category") or {}
    by_category = _group_by_category(pois)

    if breakdown["safety"] >= 80:
        pros.append("Excellent safety record with very low crime rates")
    elif breakdown["safety"] >= 65:
        pros.append("Above-average safety compared to metro area")

    grocery_stores = highlights.get("grocery_stores", 0)
    if grocery_stores >= 3:
        stores = _names(by_category.get("grocery", []), 3)
        store_list = f" ({', '.join(stores)})" if stores else ""
        pros.append(f"{grocery_stores} grocery stores nearby{store_list}")
    elif grocery_stores >= 1 and nearest.get("grocery"):
        grocery = nearest["grocery"]
        distance = f" {grocery['distance']}mi away" if grocery.get("distance") else ""
        pros.append(f"Grocery access: {grocery['name']}{distance}")

    restaurants = highlights.get("restaurants", 0)
    if restaurants >= 20:
        pros.append(f"Exceptional dining scene with {restaurants}+ restaurants")
    elif restaurants >= 10:
        pros.append(f"Great restaurant variety ({restaurants} nearby options)")
    elif restaurants >= 5:
        pros.append(f"{restaurants} restaurants within walking distance")

    gyms = by_category.get("gym", [])
    if len(gyms) >= 3:
        pros.append(f"{len(gyms)} fitness centers including {', '.join(_names(gyms, 2))}")
    elif gyms:
        pros.append(f"Fitness access: {gyms[0].name} nearby")

    pharmacies = by_category.get("pharmacy", [])
    healthcare = by_category.get("healthcare", [])
    total_health = len(pharmacies) + len(healthcare)
    if total_health >= 5:
        pros.append(f"{total_health} healthcare facilities ({', '.join(_names(pharmacies + healthcare, 2))})")
    elif pharmacies:
        pros.append(f"Pharmacy nearby: {pharmacies[0].name}")

    if breakdown["walkability"] >= 85:
        pros.append("Walker's paradise - daily errands do not require a car")
    elif breakdown["walkability"] >= 70:
        pros.append("Very walkable - most errands accomplished on foot")

    if breakdown["transit"] >= 80:
        pros.append("Excellent public transit with frequent service")
    elif breakdown["transit"] >= 60:
        pros.append("Good public transit connections")

    parks = by_category.get("park", [])
    if len(parks) >= 3:
        park_names = [name for name in _names(parks, 2) if name != "Park"]
        names_list = f" ({', '.join(park_names)})" if park_names else ""
        pros.append(f"{len(parks)} parks and green spaces{names_list}")

    banks = by_category.get("bank", [])
    if len(banks) >= 5:
        pros.append(f"Convenient banking with {len(banks)} locations nearby")

    cafes = by_category.get("cafe", [])
    if len(cafes) >= 5:
        pros.append(f"Vibrant coffee culture with {len(cafes)} cafes")

    bars = by_category.get("bar", [])
    if len(bars) >= 5 and breakdown["safety"] >= 60:
        pros.append(f"Active nightlife scene with {len(bars)} bars and venues")

    if len(pros) < MIN_PROS and breakdown["safety"] >= 50:
        pros.append("Moderate safety with standard precautions recommended")
    for filler in PRO_BACKFILL:
        if len(pros) >= MIN_PROS:
            break
        pros.append(filler)

    return pros[:MAX_PROS]


def generate_cons(breakdown: Dict, amenities: Dict, pois: Optional[List] = None) -> List[str]:
    """2-5 considerations, most serious first."""
    cons: List[str] = []
    highlights = amenities.get("highlights") or {}
    nearest = amenities.get("nearest_by_category") or {}
    by_category = _group_by_category(pois)

    if breakdown["safety"] < 50:
        cons.append("Higher than average crime rates - extra caution advised")
    elif breakdown["safety"] < 65:
        cons.append("Safety scores below metro average")
    elif breakdown["safety"] < 80:
        cons.append("Verify safety for specific streets before committing")

    if amenities.get("is_food_desert"):
        grocery = nearest.get("grocery")
        if grocery and grocery.get("distance"):
            cons.append(f"Food desert - nearest grocery ({grocery['name']}) is {grocery['distance']}mi away")
        else:
            cons.append("Food desert - no grocery stores within 1 mile")

    if breakdown["walkability"] < 40:
        cons.append("Car required for most errands - very car-dependent")
    elif breakdown["walkability"] < 55:
        cons.append("Limited walkability - car needed for daily activities")
    elif breakdown["walkability"] < 75:
        cons.append("A car is useful for many errands")

    if breakdown["transit"] < 30:
        cons.append("Very limited public transit - car ownership essential")
    elif breakdown["transit"] < 50:
        cons.append("Public transit options are sparse")
    elif breakdown["transit"] < 70:
        cons.append("Transit frequency may require schedule planning")

    gyms = by_category.get("gym", [])
    pharmacies = by_category.get("pharmacy", [])
    healthcare = by_category.get("healthcare", [])

    if not gyms and breakdown["amenities"] < 70:
        cons.append("No fitness centers within immediate vicinity")

    if not pharmacies and highlights.get("grocery_stores", 0) < 2:
        pharmacy = nearest.get("pharmacy")
        if pharmacy and (pharmacy.get("distance") or 0) > 1:
            cons.append(f"Limited pharmacy access - nearest is {pharmacy['distance']}mi away")

    if not healthcare and not pharmacies:
        cons.append("Healthcare facilities require travel - plan accordingly")

    if breakdown["amenities"] < 40 and not amenities.get("is_food_desert"):
        cons.append(f"Limited amenities overall - only {highlights.get('total_pois', 0)} services nearby")
    elif breakdown["amenities"] < 65 and highlights.get("restaurants", 0) < 5:
        cons.append("Dining options are limited - fewer restaurants than urban areas")

    for filler in CON_BACKFILL:
        if len(cons) >= MIN_CONS:
            break
        cons.append(filler)

    return cons[:MAX_CONS]


def _fit(items: List[str], fallback: List[str], minimum: int, maximum: int) -> List[str]:
    """Cap at maximum, then top up from fallback items not already present."""
    fitted = list(items[:maximum])
    for item in fallback:
        if len(fitted) >= minimum:
            break
        if item not in fitted:
            fitted.append(item)
    return fitted


NarrativeGenerator = Callable[..., Awaitable[Optional[Dict]]]


async def calculate_vibe_score(safety: Dict, mobility: Dict, amenities: Dict,
                               weights: Optional[Dict] = None,
                               pois: Optional[List] = None,
                               intent: Optional[str] = None,
                               location: Optional[Dict] = None,
                               narrative_generator: Optional[NarrativeGenerator] = None,
                               request_id: Optional[str] = None) -> Dict:
    """
    Composite vibe score.

    Args:
        weights: partial weight overrides, keyed like DEFAULT_WEIGHTS
        pois: nearby POIs, nearest first, used for named pros/cons
        intent: search intent; anything but "curious" asks the narrative
            generator for a personalized narrative (needs location)
        location: {city, county, zip_code} for the narrative
        narrative_generator: defaults to the Groq client
    """
    factors = normalize_weights(weights)

    breakdown = {
        "safety": safety["overall"],
        "walkability": mobility["walk_score"]["score"],
        "transit": mobility["transit_score"]["score"],
        "amenities": amenities["overall"],
    }

    overall = round(
        breakdown["safety"] * factors["safety_weight"]
        + breakdown["walkability"] * factors["walkability_weight"]
        + breakdown["transit"] * factors["transit_weight"]
        + breakdown["amenities"] * factors["amenities_weight"]
    )

    label = determine_label(breakdown, amenities)
    confidence = calculate_confidence(safety, mobility, amenities)

    summary = LABEL_SUMMARIES[label]
    rule_pros = generate_pros(breakdown, amenities, pois)
    rule_cons = generate_cons(breakdown, amenities, pois)
    pros, cons = rule_pros, rule_cons

    if intent and intent != groq_api.DEFAULT_INTENT and location:
        generator = narrative_generator or groq_api.generate_ai_insights
        try:
            insights = groq_api.validate_insights(
                await generator(intent, safety, mobility, amenities, pois or [], location)
            )
        except Exception as e:
            logger.warning(f"Narrative generator failed, keeping rule-based narrative: {e}",
                           extra={"request_id": request_id, "error_type": type(e).__name__})
            insights = None

        if insights:
            pros = _fit(insights["pros"], rule_pros, MIN_PROS, MAX_PROS)
            cons = _fit(insights["cons"], rule_cons, MIN_CONS, MAX_CONS)
            summary = insights.get("summary") or summary

    log_score_calculation(logger, "vibe", overall, request_id=request_id, label=label, confidence=confidence)

    return {
        "overall": overall,
        "label": label,
        "confidence": confidence,
        "factors": factors,
        "breakdown": breakdown,
        "summary": summary,
        "pros": pros,
        "cons": cons,
    }


def compare_vibe_scores(scores: List[Dict]) -> Dict:
    """
    Winner index (first of any tie) and margin between the two best overall scores.
    """
    if len(scores) < 2:
        return {"winner": 0, "margin": 0, "category": "overall"}

    overall = [score["overall"] for score in scores]
    winner = max(range(len(overall)), key=lambda i: (overall[i], -i))
    ranked = sorted(overall, reverse=True)
    return {"winner": winner, "margin": ranked[0] - ranked[1], "category": "overall"}


def list_weight_presets() -> List[Dict]:
    return [
        {
            "name": name,
            "label": " ".join(word.capitalize() for word in name.split("_")),
            "description": PRESET_DESCRIPTIONS.get(name, ""),
            "weights": dict(weights),
        }
        for name, weights in WEIGHT_PRESETS.items()
    ]

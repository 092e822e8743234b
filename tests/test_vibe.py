import asyncio
import math
from unittest.mock import AsyncMock

import pytest

from conftest import make_poi
from pillars.neighborhood_amenities import calculate_amenities_score
from pillars.safety import calculate_safety_score, default_safety_score
from pillars.vibe import (
    DEFAULT_WEIGHTS,
    LABEL_SUMMARIES,
    VIBE_LABELS,
    WEIGHT_KEYS,
    WEIGHT_PRESETS,
    calculate_confidence,
    calculate_vibe_score,
    compare_vibe_scores,
    determine_label,
    generate_cons,
    generate_pros,
    list_weight_presets,
    normalize_weights,
    resolve_weights,
)
from data_sources.crime_data import NATIONAL_AVERAGES

LOCATION = {"city": "Atlanta", "county": "Fulton", "zip_code": "30303"}


def breakdown(safety, walkability, transit, amenities):
    return {"safety": safety, "walkability": walkability, "transit": transit, "amenities": amenities}


def mobility(walk, transit, bike=0):
    return {
        "walk_score": {"score": walk, "description": ""},
        "transit_score": {"score": transit, "description": ""},
        "bike_score": {"score": bike, "description": ""},
    }


def grocery_amenities():
    return calculate_amenities_score([make_poi("grocery", 0.3, name="Kroger")])


# Weights

@pytest.mark.parametrize("overrides", [
    None,
    {},
    {"safety_weight": 0.9},
    {"transit_weight": -1, "amenities_weight": 0.1},
    {"safety_weight": 0.1, "walkability_weight": 0.2, "transit_weight": 0.3, "amenities_weight": 0.7},
    {"safety_weight": float("nan"), "walkability_weight": "heavy", "transit_weight": True},
])
def test_normalized_weights_sum_to_one(overrides):
    weights = normalize_weights(overrides)
    assert set(weights) == set(WEIGHT_KEYS)
    assert math.isclose(sum(weights.values()), 1.0, abs_tol=1e-9)
    assert all(w >= 0 for w in weights.values())


def test_invalid_overrides_are_ignored():
    assert normalize_weights({"safety_weight": -0.5, "bogus": 3}) == pytest.approx(DEFAULT_WEIGHTS)


def test_all_zero_weights_fall_back_to_defaults():
    zeros = {key: 0 for key in WEIGHT_KEYS}
    assert normalize_weights(zeros) == pytest.approx(DEFAULT_WEIGHTS)


def test_preset_wins_over_weights():
    weights = resolve_weights({"safety_weight": 1.0}, preset="commuter")
    assert weights == pytest.approx(WEIGHT_PRESETS["commuter"])


def test_unknown_preset_raises():
    with pytest.raises(ValueError):
        resolve_weights(preset="night_owl")


def test_list_weight_presets():
    presets = {p["name"]: p for p in list_weight_presets()}
    assert set(presets) == {"balanced", "safety_first", "urban_explorer", "commuter", "foodie"}
    assert presets["safety_first"]["label"] == "Safety First"
    assert math.isclose(sum(presets["foodie"]["weights"].values()), 1.0)


# Labels

def test_urban_oasis_outranks_lower_rules():
    assert determine_label(breakdown(90, 90, 50, 85), {"is_food_desert": False}) == "urban_oasis"


def test_needs_attention_outranks_transit_hub():
    assert determine_label(breakdown(35, 30, 80, 85), {"is_food_desert": False}) == "needs_attention"


def test_food_desert_has_top_priority():
    assert determine_label(breakdown(90, 90, 50, 85), {"is_food_desert": True}) == "food_desert"


@pytest.mark.parametrize("scores,expected", [
    ((60, 60, 85, 60), "transit_hub"),
    ((90, 60, 40, 40), "hidden_gem"),
    ((75, 45, 40, 60), "suburban_comfort"),
    ((65, 20, 45, 45), "car_country"),
    ((60, 80, 40, 55), "up_and_coming"),
    ((50, 80, 80, 45), "balanced"),
])
def test_label_rules(scores, expected):
    assert determine_label(breakdown(*scores), {"is_food_desert": False}) == expected


def test_every_label_has_summary():
    assert set(VIBE_LABELS) == set(LABEL_SUMMARIES)


# Confidence

def test_confidence_high_with_all_signals():
    safety = calculate_safety_score(dict(NATIONAL_AVERAGES))
    amenities = {"highlights": {"total_pois": 25}}
    assert calculate_confidence(safety, mobility(60, 40), amenities) == "high"


def test_confidence_missing_signals_count_against():
    safety = calculate_safety_score(dict(NATIONAL_AVERAGES))
    assert calculate_confidence(safety, mobility(60, 0), {"highlights": {"total_pois": 0}}) == "medium"
    assert calculate_confidence(safety, mobility(0, 0), {"highlights": {"total_pois": 0}}) == "low"


def test_confidence_thin_poi_count():
    safety = calculate_safety_score(dict(NATIONAL_AVERAGES))
    # 1 + 1 + 1 + 0.5 over four signals
    assert calculate_confidence(safety, mobility(60, 40), {"highlights": {"total_pois": 3}}) == "high"
    # 1 + 1 + 0 + 0.5 over four signals
    assert calculate_confidence(safety, mobility(60, 0), {"highlights": {"total_pois": 3}}) == "medium"


# Narrative

@pytest.mark.parametrize("scores", [
    (0, 0, 0, 0),
    (100, 100, 100, 100),
    (35, 30, 80, 85),
    (90, 60, 40, 40),
    (50, 50, 50, 50),
])
def test_pros_and_cons_counts(scores):
    for amenities in (calculate_amenities_score([]), grocery_amenities()):
        pros = generate_pros(breakdown(*scores), amenities)
        cons = generate_cons(breakdown(*scores), amenities)
        assert 3 <= len(pros) <= 5
        assert 2 <= len(cons) <= 5


def test_pros_name_nearby_places():
    pois = [make_poi("grocery", 0.1 * (i + 1), name=name) for i, name in enumerate(["Kroger", "Publix", "Aldi"])]
    pois += [make_poi("gym", 0.2, name="Peachtree Fitness")]
    amenities = calculate_amenities_score(pois)
    pros = generate_pros(breakdown(85, 60, 20, amenities["overall"]), amenities, pois)
    assert pros[0] == "Excellent safety record with very low crime rates"
    assert "3 grocery stores nearby (Kroger, Publix, Aldi)" in pros
    assert "Fitness access: Peachtree Fitness nearby" in pros


def test_food_desert_con():
    amenities = calculate_amenities_score([make_poi("restaurant", 0.2)])
    cons = generate_cons(breakdown(70, 60, 60, 30), amenities)
    assert "Food desert - no grocery stores within 1 mile" in cons


def _profiles():
    safety = calculate_safety_score(dict(NATIONAL_AVERAGES))
    amenities = grocery_amenities()
    return safety, mobility(60, 40, 54), amenities


def test_vibe_score_weighted_overall():
    safety, mob, amenities = _profiles()
    result = asyncio.run(calculate_vibe_score(safety, mob, amenities))
    expected = round(50 * 0.35 + 60 * 0.25 + 40 * 0.15 + amenities["overall"] * 0.25)
    assert result["overall"] == expected
    assert result["breakdown"] == breakdown(50, 60, 40, amenities["overall"])
    assert math.isclose(sum(result["factors"].values()), 1.0)
    assert result["label"] in VIBE_LABELS
    assert result["summary"] == LABEL_SUMMARIES[result["label"]]


def test_curious_intent_skips_generator():
    safety, mob, amenities = _profiles()
    generator = AsyncMock(return_value={"pros": ["a", "b"], "cons": ["c"]})
    asyncio.run(calculate_vibe_score(safety, mob, amenities, intent="curious",
                                     location=LOCATION, narrative_generator=generator))
    generator.assert_not_awaited()


def test_valid_generated_narrative_replaces_rules():
    safety, mob, amenities = _profiles()
    rule_based = asyncio.run(calculate_vibe_score(safety, mob, amenities))
    generator = AsyncMock(return_value={
        "pros": ["Quiet streets", "Good schools nearby"],
        "cons": ["Few late-night options"],
        "summary": "A calm pick for families.",
    })
    result = asyncio.run(calculate_vibe_score(safety, mob, amenities, intent="moving_family",
                                              location=LOCATION, narrative_generator=generator))
    generator.assert_awaited_once()
    assert result["pros"][:2] == ["Quiet streets", "Good schools nearby"]
    assert result["pros"][2] == rule_based["pros"][0]
    assert result["cons"][0] == "Few late-night options"
    assert len(result["cons"]) == 2
    assert result["summary"] == "A calm pick for families."
    assert result["overall"] == rule_based["overall"]


def test_too_few_generated_pros_keeps_rules():
    safety, mob, amenities = _profiles()
    rule_based = asyncio.run(calculate_vibe_score(safety, mob, amenities))
    generator = AsyncMock(return_value={"pros": ["Only one"], "cons": ["c"]})
    result = asyncio.run(calculate_vibe_score(safety, mob, amenities, intent="visiting",
                                              location=LOCATION, narrative_generator=generator))
    assert result["pros"] == rule_based["pros"]
    assert result["cons"] == rule_based["cons"]
    assert result["summary"] == rule_based["summary"]


def test_generator_error_keeps_rules():
    safety, mob, amenities = _profiles()
    rule_based = asyncio.run(calculate_vibe_score(safety, mob, amenities))
    generator = AsyncMock(side_effect=RuntimeError("rate limited"))
    result = asyncio.run(calculate_vibe_score(safety, mob, amenities, intent="investment",
                                              location=LOCATION, narrative_generator=generator))
    assert result["pros"] == rule_based["pros"]
    assert result["cons"] == rule_based["cons"]


def test_default_safety_profile_feeds_vibe():
    result = asyncio.run(calculate_vibe_score(default_safety_score(), mobility(0, 0), calculate_amenities_score([])))
    assert result["label"] == "food_desert"
    assert 3 <= len(result["pros"]) <= 5


# Comparison

def test_compare_picks_highest():
    result = compare_vibe_scores([{"overall": 61}, {"overall": 78}, {"overall": 70}])
    assert result == {"winner": 1, "margin": 8, "category": "overall"}


def test_compare_tie_goes_to_first():
    result = compare_vibe_scores([{"overall": 70}, {"overall": 70}])
    assert result["winner"] == 0
    assert result["margin"] == 0

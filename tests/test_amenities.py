from conftest import make_poi
from pillars.neighborhood_amenities import (
    calculate_amenities_score,
    count_by_category,
    nearest_by_category,
)


def test_no_grocery_is_food_desert():
    pois = [make_poi("restaurant", 0.2), make_poi("park", 0.4)]
    result = calculate_amenities_score(pois)
    assert result["is_food_desert"] is True
    assert result["categories"]["grocery"] == 0


def test_one_grocery_is_not_food_desert():
    result = calculate_amenities_score([make_poi("grocery", 0.9)])
    assert result["is_food_desert"] is False
    assert result["highlights"]["grocery_stores"] == 1


def test_empty_input():
    result = calculate_amenities_score([])
    assert result["overall"] == 0
    assert result["is_food_desert"] is True
    assert result["highlights"]["total_pois"] == 0
    assert result["nearest_by_category"] == {}


def test_category_scores_cap_at_hundred():
    pois = [make_poi("grocery", 0.3)]
    pois += [make_poi("restaurant", 0.1 + i / 100, name=f"Diner {i}") for i in range(12)]
    result = calculate_amenities_score(pois, data_source="Foursquare Places")

    assert result["categories"] == {
        "grocery": 25,
        "dining": 100,
        "healthcare": 0,
        "entertainment": 0,
        "shopping": 20,
    }
    # 25 * 0.25 + 100 * 0.20 + 20 * 0.15
    assert result["overall"] == 29
    assert result["data_source"] == "Foursquare Places"


def test_pharmacy_counts_toward_healthcare():
    pois = [make_poi("pharmacy", 0.2), make_poi("healthcare", 0.5, name="Clinic")]
    result = calculate_amenities_score(pois)
    assert result["highlights"]["healthcare"] == 2
    assert result["categories"]["healthcare"] == 40


def test_nearest_by_category_keeps_closest():
    far = make_poi("grocery", 0.8, name="Far Market")
    near = make_poi("grocery", 0.2, name="Near Market")
    park = make_poi("park", 0.5, name="Piedmont Park")
    nearest = nearest_by_category([far, park, near])
    assert nearest["grocery"] is near
    assert nearest["park"] is park

    result = calculate_amenities_score([far, park, near])
    assert result["nearest_by_category"]["grocery"]["name"] == "Near Market"
    assert result["nearest_by_category"]["grocery"]["coordinates"] == {"lat": 33.7540, "lng": -84.3917}


def test_count_by_category():
    counts = count_by_category([make_poi("bank", 0.1), make_poi("bank", 0.2, name="ATM"), make_poi("gym")])
    assert counts == {"bank": 2, "gym": 1}

import pytest

from data_sources.models import PointOfInterest


def make_poi(category, distance=0.1, name=None, poi_id=None, subcategory=None):
    name = name or f"{category.title()} {distance}"
    return PointOfInterest(
        id=poi_id or f"test-{category}-{name}",
        name=name,
        category=category,
        lat=33.7540,
        lng=-84.3917,
        distance=distance,
        subcategory=subcategory,
    )


@pytest.fixture(autouse=True)
def no_bike_noise(monkeypatch):
    monkeypatch.delenv("BIKE_SCORE_NOISE", raising=False)

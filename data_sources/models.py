"""
Shared record types for CityPulse data sources
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, List, Optional


POI_CATEGORIES = (
    "grocery",
    "restaurant",
    "cafe",
    "pharmacy",
    "healthcare",
    "gym",
    "bank",
    "school",
    "park",
    "bar",
    "entertainment",
    "shopping",
    "gas_station",
    "transit",
    "other",
)


@dataclass(frozen=True)
class PointOfInterest:
    """A named place near the query point. Distance is in miles."""
    id: str
    name: str
    category: str
    lat: float
    lng: float
    distance: float
    subcategory: Optional[str] = None
    address: Optional[str] = None
    rating: Optional[float] = None
    price_level: Optional[int] = None
    phone: Optional[str] = None
    website: Optional[str] = None

    def __post_init__(self):
        if self.category not in POI_CATEGORIES:
            raise ValueError(f"Unknown POI category: {self.category}")

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["coordinates"] = {"lat": data.pop("lat"), "lng": data.pop("lng")}
        return data


@dataclass(frozen=True)
class TransitStop:
    """A row of the static transit stop table."""
    id: str
    name: str
    type: str  # rail, bus or streetcar
    agency: str
    lat: float
    lng: float
    routes: tuple = ()


class ProviderStatus(Enum):
    """Outcome reported by a metered provider."""
    UNAVAILABLE = "unavailable"  # not configured, over budget, or errored
    EMPTY = "empty"              # configured and trusted, zero matches
    DATA = "data"


@dataclass
class ProviderResult:
    """Tagged provider outcome; only UNAVAILABLE should trigger a fallback."""
    status: ProviderStatus
    records: List[PointOfInterest] = field(default_factory=list)
    provider: str = ""

    @classmethod
    def unavailable(cls, provider: str) -> "ProviderResult":
        return cls(ProviderStatus.UNAVAILABLE, [], provider)

    @classmethod
    def from_records(cls, provider: str, records: List[PointOfInterest]) -> "ProviderResult":
        status = ProviderStatus.DATA if records else ProviderStatus.EMPTY
        return cls(status, list(records), provider)

    @property
    def is_available(self) -> bool:
        return self.status is not ProviderStatus.UNAVAILABLE

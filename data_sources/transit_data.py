"""
Georgia Transit Data (static GTFS-based stops)
Pre-compiled transit stops from Georgia agencies: MARTA rail, Atlanta Streetcar,
and regional bus hubs (CobbLinc, GCT, GRTA Xpress, Athens, Augusta, CAT, Macon, METRA).
Used when the live stop query comes back empty.
"""

from typing import Dict, List, Optional, Tuple

from .models import TransitStop
from .utils import haversine_distance

DATA_SOURCE = "GTFS Static Feeds (MARTA, CobbLinc, GCT, GRTA)"
DATA_YEAR = 2024

RAIL_TYPES = ("rail", "streetcar")


def _stops(agency: str, stop_type: str, rows) -> List[TransitStop]:
    return [
        TransitStop(id=row[0], name=row[1], type=stop_type, agency=agency,
                    lat=row[2], lng=row[3], routes=tuple(row[4]) if len(row) > 4 else ())
        for row in rows
    ]


MARTA_RAIL_STATIONS = _stops("MARTA", "rail", [
    # Red Line (North-South)
    ("marta-n1", "North Springs", 33.9455, -84.3571, ["Red"]),
    ("marta-n2", "Sandy Springs", 33.9321, -84.3513, ["Red"]),
    ("marta-n3", "Dunwoody", 33.9217, -84.3446, ["Red"]),
    ("marta-n4", "Medical Center", 33.9108, -84.3513, ["Red"]),
    ("marta-n5", "Buckhead", 33.8476, -84.3676, ["Red"]),
    ("marta-n6", "Lindbergh Center", 33.8230, -84.3694, ["Red", "Gold"]),
    ("marta-n7", "Arts Center", 33.7893, -84.3875, ["Red", "Gold"]),
    ("marta-n8", "Midtown", 33.7808, -84.3865, ["Red", "Gold"]),
    ("marta-n9", "North Avenue", 33.7717, -84.3867, ["Red", "Gold"]),
    ("marta-n10", "Civic Center", 33.7664, -84.3874, ["Red", "Gold"]),
    ("marta-n11", "Peachtree Center", 33.7590, -84.3876, ["Red", "Gold"]),
    ("marta-n12", "Five Points", 33.7540, -84.3917, ["Red", "Gold", "Blue", "Green"]),
    ("marta-s1", "Garnett", 33.7481, -84.3956, ["Red", "Gold"]),
    ("marta-s2", "West End", 33.7357, -84.4128, ["Red", "Gold"]),
    ("marta-s3", "Oakland City", 33.7174, -84.4252, ["Red", "Gold"]),
    ("marta-s4", "Lakewood/Ft. McPherson", 33.7003, -84.4286, ["Red", "Gold"]),
    ("marta-s5", "East Point", 33.6768, -84.4407, ["Red", "Gold"]),
    ("marta-s6", "College Park", 33.6513, -84.4486, ["Red", "Gold"]),
    ("marta-s7", "Airport", 33.6397, -84.4462, ["Red", "Gold"]),
    # Gold Line (Northeast)
    ("marta-ne1", "Lenox", 33.8450, -84.3576, ["Gold"]),
    ("marta-ne2", "Brookhaven/Oglethorpe", 33.8598, -84.3390, ["Gold"]),
    ("marta-ne3", "Chamblee", 33.8879, -84.3068, ["Gold"]),
    ("marta-ne4", "Doraville", 33.9026, -84.2804, ["Gold"]),
    # Blue Line (East-West)
    ("marta-e1", "Georgia State", 33.7490, -84.3856, ["Blue", "Green"]),
    ("marta-e2", "King Memorial", 33.7490, -84.3760, ["Blue", "Green"]),
    ("marta-e3", "Inman Park/Reynoldstown", 33.7570, -84.3526, ["Blue", "Green"]),
    ("marta-e4", "Edgewood/Candler Park", 33.7617, -84.3400, ["Blue", "Green"]),
    ("marta-e5", "East Lake", 33.7651, -84.3133, ["Blue"]),
    ("marta-e6", "Decatur", 33.7748, -84.2975, ["Blue"]),
    ("marta-e7", "Avondale", 33.7754, -84.2806, ["Blue"]),
    ("marta-e8", "Kensington", 33.7722, -84.2523, ["Blue"]),
    ("marta-e9", "Indian Creek", 33.7691, -84.2292, ["Blue"]),
    # Green Line (Bankhead)
    ("marta-w1", "Dome/GWCC/Philips Arena/CNN Center", 33.7580, -84.3963, ["Green", "Blue"]),
    ("marta-w2", "Vine City", 33.7565, -84.4043, ["Green"]),
    ("marta-w3", "Ashby", 33.7560, -84.4170, ["Green"]),
    ("marta-w4", "West Lake", 33.7533, -84.4451, ["Green"]),
    ("marta-w5", "Hamilton E. Holmes", 33.7545, -84.4696, ["Green"]),
    ("marta-w6", "Bankhead", 33.7723, -84.4289, ["Green"]),
])

ATLANTA_STREETCAR_STOPS = _stops("Atlanta Streetcar", "streetcar", [
    ("atl-sc-1", "Centennial Olympic Park", 33.7622, -84.3926),
    ("atl-sc-2", "Peachtree Center", 33.7584, -84.3858),
    ("atl-sc-3", "Park Place", 33.7549, -84.3843),
    ("atl-sc-4", "Woodruff Park", 33.7541, -84.3872),
    ("atl-sc-5", "Hurt Park", 33.7525, -84.3829),
    ("atl-sc-6", "King Historic District", 33.7512, -84.3747),
    ("atl-sc-7", "Edgewood-Auburn", 33.7539, -84.3711),
    ("atl-sc-8", "Auburn Avenue", 33.7572, -84.3773),
    ("atl-sc-9", "Sweet Auburn Market", 33.7535, -84.3783),
    ("atl-sc-10", "Georgia State", 33.7508, -84.3849),
    ("atl-sc-11", "Dobbs Plaza", 33.7484, -84.3885),
    ("atl-sc-12", "Carnegie at Spring", 33.7533, -84.3910),
])

MAJOR_BUS_HUBS = (
    _stops("MARTA", "bus", [
        ("marta-bus-1", "Hamilton E. Holmes Bus Bay", 33.7545, -84.4696),
        ("marta-bus-2", "North Springs Bus Bay", 33.9455, -84.3571),
        ("marta-bus-3", "Dunwoody Bus Bay", 33.9217, -84.3446),
        ("marta-bus-4", "Lindbergh Bus Bay", 33.8230, -84.3694),
        ("marta-bus-5", "Five Points Bus Bay", 33.7540, -84.3917),
        ("marta-bus-6", "Indian Creek Bus Bay", 33.7691, -84.2292),
        ("marta-bus-7", "Decatur Bus Bay", 33.7748, -84.2975),
        ("marta-bus-8", "College Park Bus Bay", 33.6513, -84.4486),
    ])
    + _stops("CobbLinc", "bus", [
        ("cobb-1", "Marietta Transfer Center", 33.9526, -84.5496),
        ("cobb-2", "Cumberland Transfer Center", 33.8839, -84.4673),
        ("cobb-3", "Town Center at Cobb", 34.0186, -84.5657),
        ("cobb-4", "Acworth Park & Ride", 34.0659, -84.6768),
        ("cobb-5", "Smyrna Community Center", 33.8634, -84.5144),
    ])
    + _stops("GCT", "bus", [
        ("gct-1", "Gwinnett Place Transit Center", 33.9309, -84.0697),
        ("gct-2", "Sugarloaf Mills Park & Ride", 33.9815, -84.0925),
        ("gct-3", "Indian Trail Park & Ride", 33.8979, -84.0339),
        ("gct-4", "Snellville Park & Ride", 33.8573, -84.0199),
        ("gct-5", "Lawrenceville Transit Center", 33.9562, -83.9880),
        ("gct-6", "Duluth Park & Ride", 34.0054, -84.1457),
    ])
    + _stops("GRTA Xpress", "bus", [
        ("grta-1", "Downtown Connector Park & Ride", 33.7590, -84.3876),
        ("grta-2", "North Point Park & Ride", 34.0557, -84.2199),
        ("grta-3", "Discover Mills Park & Ride", 33.9815, -84.0925),
    ])
    + _stops("Athens Transit", "bus", [
        ("athens-1", "Athens Transit Hub", 33.9519, -83.3576),
        ("athens-2", "UGA Campus Transit Hub", 33.9480, -83.3773),
    ])
    + _stops("Augusta Transit", "bus", [
        ("augusta-1", "Augusta Transit Center", 33.4735, -81.9748),
    ])
    + _stops("CAT", "bus", [
        ("cat-1", "Savannah Intermodal Transit Center", 32.0835, -81.0998),
        ("cat-2", "Savannah Mall Transit Center", 31.9971, -81.1069),
    ])
    + _stops("Macon Transit", "bus", [
        ("mta-1", "Macon Transit Terminal", 32.8407, -83.6324),
    ])
    + _stops("METRA", "bus", [
        ("metra-1", "Columbus Transit Center", 32.4609, -84.9877),
    ])
)

ALL_TRANSIT_STOPS: List[TransitStop] = MARTA_RAIL_STATIONS + ATLANTA_STREETCAR_STOPS + MAJOR_BUS_HUBS


def find_transit_stops_nearby(lat: float, lng: float, radius_miles: float = 1.0,
                              stops: Optional[List[TransitStop]] = None) -> List[Tuple[TransitStop, float]]:
    """Stops within radius as (stop, distance_miles), nearest first."""
    stops = ALL_TRANSIT_STOPS if stops is None else stops
    nearby = []
    for stop in stops:
        distance = haversine_distance(lat, lng, stop.lat, stop.lng)
        if distance <= radius_miles:
            nearby.append((stop, distance))
    nearby.sort(key=lambda item: item[1])
    return nearby


def _nearest(lat: float, lng: float, stops: List[TransitStop]) -> Optional[Tuple[TransitStop, float]]:
    nearest = None
    for stop in stops:
        distance = haversine_distance(lat, lng, stop.lat, stop.lng)
        if nearest is None or distance < nearest[1]:
            nearest = (stop, distance)
    return nearest


def find_nearest_transit_stop(lat: float, lng: float,
                              stops: Optional[List[TransitStop]] = None) -> Optional[Tuple[TransitStop, float]]:
    """Nearest stop of any type, or None for an empty table."""
    return _nearest(lat, lng, ALL_TRANSIT_STOPS if stops is None else stops)


def find_nearest_rail_station(lat: float, lng: float,
                              stops: Optional[List[TransitStop]] = None) -> Optional[Tuple[TransitStop, float]]:
    """Nearest rail or streetcar stop."""
    stops = ALL_TRANSIT_STOPS if stops is None else stops
    return _nearest(lat, lng, [s for s in stops if s.type in RAIL_TYPES])


def count_transit_by_type(lat: float, lng: float, radius_miles: float = 1.0,
                          stops: Optional[List[TransitStop]] = None) -> Dict[str, int]:
    """Count stops by type within radius."""
    nearby = find_transit_stops_nearby(lat, lng, radius_miles, stops)
    counts = {"rail": 0, "bus": 0, "streetcar": 0}
    for stop, _ in nearby:
        counts[stop.type] = counts.get(stop.type, 0) + 1
    counts["total"] = len(nearby)
    return counts

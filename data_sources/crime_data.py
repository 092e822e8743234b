"""
Georgia County Crime Data (static)
Pre-compiled FBI Crime Data Explorer rates per 100,000 residents, county level.
Refreshed annually; loaded once at import.
"""

from typing import Dict, List, Optional

DATA_YEAR = 2022
DATA_SOURCE = f"FBI Crime Data Explorer ({DATA_YEAR})"

# National rates per 100k (FBI 2022)
NATIONAL_AVERAGES: Dict[str, float] = {
    "violent_crime": 380.7,
    "property_crime": 1954.4,
    "murder": 6.3,
    "robbery": 73.9,
    "assault": 268.2,
    "burglary": 269.8,
    "larceny": 1401.9,
    "vehicle_theft": 282.7,
}

RATE_FIELDS = tuple(NATIONAL_AVERAGES.keys())

# fips, name, population, violent, property, murder, robbery, assault, burglary, larceny, vehicle theft
_COUNTY_ROWS = [
    ("13121", "Fulton", 1074634, 742.5, 3318.6, 15.8, 188.4, 491.2, 402.7, 2346.9, 569.0),
    ("13089", "DeKalb", 762820, 611.3, 2540.2, 13.9, 142.6, 412.8, 351.4, 1699.5, 489.3),
    ("13067", "Cobb", 771952, 262.4, 1688.5, 4.8, 51.2, 180.6, 198.3, 1310.4, 179.8),
    ("13135", "Gwinnett", 975353, 201.7, 1375.9, 3.6, 42.8, 139.1, 181.2, 1047.6, 147.1),
    ("13063", "Clayton", 297595, 486.2, 2701.4, 12.7, 121.5, 322.4, 410.6, 1852.3, 438.5),
    ("13057", "Cherokee", 281278, 121.9, 774.6, 1.8, 9.6, 98.3, 88.2, 622.1, 64.3),
    ("13117", "Forsyth", 267237, 82.3, 691.2, 1.1, 6.4, 64.9, 71.5, 571.0, 48.7),
    ("13151", "Henry", 248364, 268.4, 1802.3, 5.2, 48.3, 191.5, 231.0, 1362.8, 208.5),
    ("13051", "Chatham", 298479, 532.8, 2688.1, 14.6, 117.9, 371.2, 362.5, 2007.4, 318.2),
    ("13245", "Richmond", 205737, 611.9, 3410.5, 19.4, 133.1, 424.9, 540.3, 2452.6, 417.6),
    ("13215", "Muscogee", 205617, 597.1, 3102.8, 21.2, 146.4, 398.7, 498.6, 2234.9, 369.3),
    ("13021", "Bibb", 156197, 662.5, 3524.7, 24.8, 151.3, 446.2, 611.2, 2498.0, 415.5),
    ("13059", "Clarke", 128711, 389.6, 2602.0, 5.4, 71.1, 278.3, 336.8, 2001.7, 263.5),
    ("13097", "Douglas", 146343, 318.7, 2111.4, 6.2, 62.8, 221.6, 260.4, 1602.5, 248.5),
    ("13113", "Fayette", 121392, 98.4, 942.7, 1.6, 11.9, 77.3, 89.5, 790.6, 62.6),
    ("13139", "Hall", 209831, 244.1, 1278.9, 3.8, 27.4, 187.5, 166.0, 985.1, 127.8),
    ("13223", "Paulding", 174194, 154.2, 882.3, 2.3, 14.2, 123.1, 104.7, 697.4, 80.2),
    ("13247", "Rockdale", 94457, 341.5, 2236.4, 7.4, 66.1, 239.0, 289.2, 1682.9, 264.3),
    ("13073", "Columbia", 161485, 138.6, 1062.5, 2.5, 17.3, 106.8, 132.4, 848.0, 82.1),
    ("13185", "Lowndes", 118251, 451.3, 2853.9, 9.3, 78.5, 331.2, 432.1, 2170.3, 251.5),
    ("13095", "Dougherty", 85790, 702.9, 3390.2, 22.1, 134.8, 502.4, 688.5, 2398.1, 303.6),
    ("13153", "Houston", 166829, 286.2, 1990.1, 4.9, 41.7, 215.6, 251.3, 1572.0, 166.8),
    ("13217", "Newton", 115355, 301.8, 1755.3, 7.1, 45.2, 224.4, 262.5, 1302.9, 189.9),
    ("13077", "Coweta", 149588, 173.5, 1141.7, 2.7, 18.6, 136.9, 138.2, 912.6, 90.9),
    ("13045", "Carroll", 122976, 327.4, 1618.8, 5.7, 34.1, 262.3, 214.8, 1263.5, 140.5),
    ("13127", "Glynn", 85219, 417.2, 2887.6, 8.2, 60.4, 321.9, 366.1, 2267.4, 254.1),
    ("13015", "Bartow", 111575, 258.0, 1541.2, 4.5, 22.7, 208.3, 207.9, 1186.4, 146.9),
]


def _row_to_record(row) -> Dict:
    fips, name, population, *rates = row
    return {
        "fips": fips,
        "name": name,
        "population": population,
        "rates": dict(zip(RATE_FIELDS, rates)),
    }


GEORGIA_CRIME_DATA: List[Dict] = [_row_to_record(row) for row in _COUNTY_ROWS]
CRIME_DATA_BY_FIPS: Dict[str, Dict] = {c["fips"]: c for c in GEORGIA_CRIME_DATA}
CRIME_DATA_BY_NAME: Dict[str, Dict] = {c["name"].lower(): c for c in GEORGIA_CRIME_DATA}
GEORGIA_COUNTIES: Dict[str, str] = {c["name"]: c["fips"] for c in GEORGIA_CRIME_DATA}


def clean_county_name(county_name: str) -> str:
    """'Fulton County' -> 'fulton'"""
    return county_name.replace(" County", "").strip().lower()


def get_county_crime_data(county_fips: str) -> Optional[Dict]:
    """Get crime data for a Georgia county by FIPS code."""
    return CRIME_DATA_BY_FIPS.get(county_fips)


def get_county_crime_data_by_name(county_name: Optional[str]) -> Optional[Dict]:
    """Get crime data for a Georgia county by name ("Fulton" or "Fulton County")."""
    if not county_name:
        return None
    return CRIME_DATA_BY_NAME.get(clean_county_name(county_name))

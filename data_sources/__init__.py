"""
Data Sources Package
API clients, static datasets and provider cascades for CityPulse
"""

from . import async_osm_api
from . import foursquare_api
from . import async_geocoding
from . import groq_api
from . import cascade
from . import crime_data
from . import transit_data

__all__ = ['async_osm_api', 'foursquare_api', 'async_geocoding', 'groq_api', 'cascade',
           'crime_data', 'transit_data']

"""
Pillars Package
Scoring logic for CityPulse location analysis
"""

from . import safety
from . import walkability
from . import public_transit_access
from . import neighborhood_amenities
from . import vibe

__all__ = [
    'safety',
    'walkability',
    'public_transit_access',
    'neighborhood_amenities',
    'vibe'
]

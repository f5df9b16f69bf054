# location_builder/models/__init__.py
# Central import surface for SQLModel table registration.
# Keeping these imports ensures init_db() sees all models and creates tables.

from .location_data import LocationData

# Saved lists
from .location_list import LocationList, LocationListItem

__all__ = [
    "LocationData",
    "LocationList",
    "LocationListItem",
]

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Optional

UNKNOWN_TIMEZONE = "Unknown"

# Primary timezone per state. States split across zones use the zone that
# covers most of their population.
STATE_TIMEZONES: Mapping[str, str] = MappingProxyType({
    "AL": "Central",
    "AK": "Alaska",
    "AZ": "Mountain",
    "AR": "Central",
    "CA": "Pacific",
    "CO": "Mountain",
    "CT": "Eastern",
    "DE": "Eastern",
    "DC": "Eastern",
    "FL": "Eastern",
    "GA": "Eastern",
    "HI": "Hawaii",
    "ID": "Mountain",
    "IL": "Central",
    "IN": "Eastern",
    "IA": "Central",
    "KS": "Central",
    "KY": "Eastern",
    "LA": "Central",
    "ME": "Eastern",
    "MD": "Eastern",
    "MA": "Eastern",
    "MI": "Eastern",
    "MN": "Central",
    "MS": "Central",
    "MO": "Central",
    "MT": "Mountain",
    "NE": "Central",
    "NV": "Pacific",
    "NH": "Eastern",
    "NJ": "Eastern",
    "NM": "Mountain",
    "NY": "Eastern",
    "NC": "Eastern",
    "ND": "Central",
    "OH": "Eastern",
    "OK": "Central",
    "OR": "Pacific",
    "PA": "Eastern",
    "RI": "Eastern",
    "SC": "Eastern",
    "SD": "Central",
    "TN": "Central",
    "TX": "Central",
    "UT": "Mountain",
    "VT": "Eastern",
    "VA": "Eastern",
    "WA": "Pacific",
    "WV": "Eastern",
    "WI": "Central",
    "WY": "Mountain",
})


def timezone_for_state(state_id: Optional[str]) -> str:
    if not state_id:
        return UNKNOWN_TIMEZONE
    return STATE_TIMEZONES.get(state_id.strip().upper(), UNKNOWN_TIMEZONE)

from __future__ import annotations

from typing import Optional

from sqlmodel import SQLModel, Field


class LocationData(SQLModel, table=True):
    """
    One city/postal-code row of the location dataset.

    Demographic columns are stored as text because the upstream feed delivers
    them that way (numbers, numeric strings, blanks). They are normalized to
    floats at the search boundary, never here.
    """

    __tablename__ = "location_data"

    id: Optional[int] = Field(default=None, primary_key=True)

    city: Optional[str] = Field(default=None, index=True, max_length=128)
    state_name: Optional[str] = Field(default=None, max_length=64)
    state_id: Optional[str] = Field(default=None, index=True, max_length=2)   # "GA"
    county_name: Optional[str] = Field(default=None, index=True, max_length=128)
    postal_code: Optional[str] = Field(default=None, index=True, max_length=10)

    latitude: Optional[float] = Field(default=None, index=True)
    longitude: Optional[float] = Field(default=None, index=True)

    # Demographics (raw text from source)
    population: Optional[str] = Field(default=None)
    age_median: Optional[str] = Field(default=None)
    income_household_median: Optional[str] = Field(default=None)
    housing_units: Optional[str] = Field(default=None)
    home_value: Optional[str] = Field(default=None)
    home_ownership: Optional[str] = Field(default=None)
    veteran: Optional[str] = Field(default=None)

    # Informational; search derives timezone from state_id instead
    timezone: Optional[str] = Field(default=None, max_length=64)

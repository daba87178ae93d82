#!/usr/bin/env python3
"""
Record Models for the COVID Deaths and Vaccinations Tables

The dataclasses below declare the column contract of each input table: the
field names are the columns a source must carry. Numeric attributes are typed
loosely because the raw tables often store numbers as text.
"""

from dataclasses import dataclass, fields
from datetime import date
from enum import Enum
from typing import Any, List, Optional, Union

import pandas as pd

RawNumber = Optional[Union[int, float, str]]

KEY_COLUMNS = ['location', 'date']


class LocationKind(str, Enum):
    """Whether a row describes a single country or a multi-country rollup."""
    COUNTRY = 'country'
    AGGREGATE = 'aggregate'


def is_missing(value: Any) -> bool:
    """True for None, NaN/NaT and blank strings."""
    if isinstance(value, str):
        return value.strip() == ''
    return bool(pd.isna(value))


def classify(continent: Any) -> LocationKind:
    """Return COUNTRY when the continent is present, AGGREGATE otherwise.

    OWID stores World, continent and income-group rollups with an empty
    continent, so every representation of "absent" is treated the same.
    """
    return LocationKind.AGGREGATE if is_missing(continent) else LocationKind.COUNTRY


@dataclass
class ObservationRecord:
    """One row of the deaths table"""
    location: str
    date: date
    continent: Optional[str]
    population: RawNumber
    total_cases: RawNumber
    new_cases: RawNumber
    total_deaths: RawNumber
    new_deaths: RawNumber

    @classmethod
    def required_columns(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    @property
    def kind(self) -> LocationKind:
        return classify(self.continent)


@dataclass
class VaccinationRecord:
    """One row of the vaccinations table"""
    location: str
    date: date
    continent: Optional[str]
    new_vaccinations: RawNumber  # Doses administered, not people
    total_vaccinations: RawNumber

    @classmethod
    def required_columns(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    @property
    def kind(self) -> LocationKind:
        return classify(self.continent)


DEATHS_NUMERIC_COLUMNS = ['population', 'total_cases', 'new_cases', 'total_deaths', 'new_deaths']
VACCINATIONS_NUMERIC_COLUMNS = ['new_vaccinations', 'total_vaccinations']

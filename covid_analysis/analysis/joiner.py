#!/usr/bin/env python3
"""Join of the deaths and vaccinations tables on (location, date)."""

import warnings

import pandas as pd

from covid_analysis.analysis.data_processing import country_rows
from covid_analysis.analysis.quality import DEATHS_TABLE, VACCINATIONS_TABLE, find_duplicate_keys
from covid_analysis.models.errors import JoinSafetyError
from covid_analysis.models.records import KEY_COLUMNS

DEATHS_JOIN_COLUMNS = ['continent', 'location', 'date', 'population']
VACCINATIONS_JOIN_COLUMNS = ['location', 'date', 'new_vaccinations', 'total_vaccinations']


def join_deaths_vaccinations(deaths: pd.DataFrame, vaccinations: pd.DataFrame,
                             include_aggregates: bool = False,
                             gate_on_duplicates: bool = True) -> pd.DataFrame:
    """
    Inner join of deaths and vaccinations on (location, date).

    Vaccination reporting starts well after case reporting, so the early part
    of every series has no match and is dropped.

    Args:
        deaths: Loaded deaths table
        vaccinations: Loaded vaccinations table
        include_aggregates: Also join aggregate rows (World, continents)
        gate_on_duplicates: Raise instead of warn on duplicate keys

    Returns:
        DataFrame with continent, location, date, population, new_vaccinations,
        total_vaccinations ordered by location and date

    Raises:
        JoinSafetyError: if either side has duplicate keys and gating is on
    """
    left = deaths if include_aggregates else country_rows(deaths)
    right = vaccinations if include_aggregates else country_rows(vaccinations)

    # Keys with a missing part never match, as in SQL
    left = left.dropna(subset=KEY_COLUMNS)[DEATHS_JOIN_COLUMNS]
    right = right.dropna(subset=KEY_COLUMNS)[VACCINATIONS_JOIN_COLUMNS]

    duplicates = {
        DEATHS_TABLE: find_duplicate_keys(left),
        VACCINATIONS_TABLE: find_duplicate_keys(right),
    }
    join_safe = not any(duplicates.values())
    if not join_safe:
        if gate_on_duplicates:
            raise JoinSafetyError(duplicates)
        n_keys = sum(len(keys) for keys in duplicates.values())
        warnings.warn(f"Joining with {n_keys} duplicate (location, date) keys; rolling sums will be inflated")

    joined = pd.merge(
        left,
        right,
        on=KEY_COLUMNS,
        how='inner',
        validate='one_to_one' if join_safe else 'many_to_many',
    )
    return joined.sort_values(KEY_COLUMNS, kind='mergesort').reset_index(drop=True)

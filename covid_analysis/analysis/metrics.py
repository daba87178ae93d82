#!/usr/bin/env python3
"""Metric Engine.

Derived KPIs over the deaths table and the joined deaths/vaccinations table:

- Safe numeric conversion (text or number in, float or null out)
- Ratio metrics (death percentage, percent of population infected)
- Per-100k normalization
- Global daily sums and totals
- Rolling cumulative vaccination doses per location
- Trailing moving averages per location
- Latest-snapshot selection and the country rankings built on it

Every function takes a DataFrame and returns a new one; inputs are never
modified. Unless a function takes ``include_aggregates``, it works on country
rows only, since aggregate rows (World, continents) would double count.

Null policy:
    A value that cannot be converted is null. A ratio with a null or zero
    denominator is null. Global sums skip nulls by default (``'exclude'``);
    rolling dose sums always count a null as 0 so they never go backward.

Example:
    >>> per100k = per_100k(deaths_df)
    >>> per100k.loc[per100k['location'] == 'Chile', 'total_deaths_per_100k'].max()
"""

from typing import Any, Optional

import numpy as np
import pandas as pd

from covid_analysis.analysis.data_processing import country_rows
from covid_analysis.models.records import KEY_COLUMNS, is_missing

PERCENT = 100.0
PER_100K = 100_000


# ============================================================================
# Numeric Conversion
# ============================================================================

def to_float(value: Any, strict: bool = False) -> Optional[float]:
    """Convert a single text-or-number value to float.

    Args:
        value: Raw cell value
        strict: Raise ValueError on malformed input instead of returning None

    Returns:
        The float value, or None when missing or (non-strict) unparseable
    """
    if is_missing(value):
        return None
    try:
        result = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError):
        result = np.nan
    # 'inf' and 'nan' text parse as floats but are not usable numbers
    if not np.isfinite(result):
        if strict:
            raise ValueError(f"Cannot convert {value!r} to a number")
        return None
    return result


def to_numeric(values: pd.Series, strict: bool = False) -> pd.Series:
    """Vectorised ``to_float``: unparseable or non-finite values become NaN unless strict."""
    series = values if isinstance(values, pd.Series) else pd.Series(values)
    if pd.api.types.is_numeric_dtype(series) and not pd.api.types.is_bool_dtype(series):
        text = series
        converted = series.astype('float64')
    else:
        text = series.map(lambda v: v.strip() if isinstance(v, str) else v)
        converted = pd.to_numeric(text, errors='coerce').astype('float64')

    converted = converted.where(np.isfinite(converted))
    if strict:
        bad = converted.isna() & ~text.map(is_missing)
        if bad.any():
            examples = list(pd.unique(text[bad]))[:3]
            raise ValueError(f"Cannot convert {int(bad.sum())} values to numbers, e.g. {examples}")
    return converted.astype('float64')


def safe_ratio(numerator: pd.Series, denominator: pd.Series, scale: float = 1.0) -> pd.Series:
    """numerator / denominator * scale, null where the denominator is null or 0."""
    num = to_numeric(numerator)
    den = to_numeric(denominator)
    return num / den.where(den != 0) * scale


def _safe_divide(numerator: float, denominator: float, scale: float = 1.0) -> float:
    if pd.isna(numerator) or pd.isna(denominator) or denominator == 0:
        return np.nan
    return numerator / denominator * scale


def _ordered(df: pd.DataFrame) -> pd.DataFrame:
    """Sort by location then date, keeping input order for equal keys."""
    return df.sort_values(KEY_COLUMNS, kind='mergesort').reset_index(drop=True)


def _numeric_columns(df: pd.DataFrame, columns) -> pd.DataFrame:
    out = df.copy()
    for col in columns:
        out[col] = to_numeric(df[col])
    return out


def _rank_desc(df: pd.DataFrame, metric: str) -> pd.DataFrame:
    return df.sort_values(
        [metric, 'location'], ascending=[False, True], na_position='last', kind='mergesort'
    ).reset_index(drop=True)


# ============================================================================
# Ratio Metrics
# ============================================================================

def death_percentage(df: pd.DataFrame, location_pattern: Optional[str] = None,
                     percent_scale: float = PERCENT) -> pd.DataFrame:
    """Deaths as a percentage of cases over time (a CFR-like ratio).

    Args:
        df: Deaths table
        location_pattern: Keep only locations whose name contains this text
            (case-insensitive), e.g. "states"
        percent_scale: Multiplier for the ratio

    Returns:
        DataFrame with location, date, total_cases, total_deaths, death_percentage
    """
    rows = country_rows(df)
    if location_pattern:
        rows = rows[rows['location'].str.contains(location_pattern, case=False, regex=False, na=False)]

    out = _numeric_columns(rows[['location', 'date', 'total_cases', 'total_deaths']], ['total_cases', 'total_deaths'])
    out['death_percentage'] = safe_ratio(out['total_deaths'], out['total_cases'], percent_scale)
    return _ordered(out)


def percent_population_infected(df: pd.DataFrame, percent_scale: float = PERCENT) -> pd.DataFrame:
    """Total cases as a percentage of population over time."""
    rows = country_rows(df)
    out = _numeric_columns(rows[['location', 'date', 'population', 'total_cases']], ['population', 'total_cases'])
    out['percent_population_infected'] = safe_ratio(out['total_cases'], out['population'], percent_scale)
    return _ordered(out)


def per_100k(df: pd.DataFrame, per_capita_base: int = PER_100K) -> pd.DataFrame:
    """Cases and deaths (cumulative and daily) per ``per_capita_base`` people."""
    counts = ['total_cases', 'total_deaths', 'new_cases', 'new_deaths']
    rows = country_rows(df)
    out = _numeric_columns(rows[['continent', 'location', 'date', 'population'] + counts], ['population'] + counts)
    for col in counts:
        out[f'{col}_per_100k'] = safe_ratio(out[col], out['population'], per_capita_base)
    return _ordered(out)


# ============================================================================
# Global Aggregates
# ============================================================================

def _daily_counts(df: pd.DataFrame, null_policy: str) -> pd.DataFrame:
    if null_policy not in ('exclude', 'zero'):
        raise ValueError(f"Unknown null policy: {null_policy}")
    rows = country_rows(df)
    daily = pd.DataFrame({
        'date': rows['date'],
        'new_cases': to_numeric(rows['new_cases']),
        'new_deaths': to_numeric(rows['new_deaths']),
    })
    if null_policy == 'zero':
        daily[['new_cases', 'new_deaths']] = daily[['new_cases', 'new_deaths']].fillna(0.0)
    return daily


def global_daily(df: pd.DataFrame, null_policy: str = 'exclude',
                 percent_scale: float = PERCENT) -> pd.DataFrame:
    """Sum new cases and deaths across countries for each date.

    With ``null_policy='exclude'`` missing values are skipped and a date on
    which every value is missing sums to null rather than 0.
    """
    daily = _daily_counts(df, null_policy)
    sums = daily.groupby('date', sort=True)[['new_cases', 'new_deaths']].sum(min_count=1)
    out = sums.rename(columns={'new_cases': 'global_new_cases',
                               'new_deaths': 'global_new_deaths'}).reset_index()
    out['global_death_percentage'] = safe_ratio(out['global_new_deaths'], out['global_new_cases'], percent_scale)
    return out


def global_totals(df: pd.DataFrame, null_policy: str = 'exclude',
                  percent_scale: float = PERCENT) -> pd.DataFrame:
    """Single-row global KPIs: total cases, total deaths and death percentage."""
    daily = _daily_counts(df, null_policy)
    cases = daily['new_cases'].sum(min_count=1)
    deaths = daily['new_deaths'].sum(min_count=1)
    return pd.DataFrame([{
        'global_total_cases': cases,
        'global_total_deaths': deaths,
        'global_death_percentage': _safe_divide(deaths, cases, percent_scale),
    }])


# ============================================================================
# Per-location Windowed Metrics
# ============================================================================

def rolling_doses(joined: pd.DataFrame) -> pd.DataFrame:
    """Add the running total of vaccination doses per location.

    Doses are summed in date order and restart at each location. A missing or
    unparseable ``new_vaccinations`` adds 0, so the total never decreases.
    """
    out = _ordered(joined)
    out['new_vaccinations'] = to_numeric(out['new_vaccinations'])
    doses = out['new_vaccinations'].fillna(0.0)
    out['rolling_doses'] = doses.groupby(out['location'], sort=False).cumsum()
    return out


def percent_population_vaccinated(enriched: pd.DataFrame, percent_scale: float = PERCENT) -> pd.DataFrame:
    """Rolling doses as a percentage of population (can exceed 100: doses, not people)."""
    out = enriched.copy()
    out['population'] = to_numeric(out['population'])
    out['percent_population_vaccinated'] = safe_ratio(out['rolling_doses'], out['population'], percent_scale)
    return out


def moving_average(df: pd.DataFrame, window: int = 7) -> pd.DataFrame:
    """Trailing moving averages of new cases and new deaths per location.

    The window covers the current row and the ``window - 1`` preceding rows.
    Early rows average over what is available; missing values are skipped, so
    the result is null only when every value in the window is missing.
    """
    rows = country_rows(df)
    out = _ordered(_numeric_columns(
        rows[['continent', 'location', 'date', 'population', 'new_cases', 'new_deaths']],
        ['population', 'new_cases', 'new_deaths'],
    ))
    for col in ['new_cases', 'new_deaths']:
        out[f'{col}_{window}day_avg'] = (
            out.groupby('location', sort=False)[col]
            .transform(lambda s: s.rolling(window, min_periods=1).mean())
        )
    return out


# ============================================================================
# Latest Snapshots
# ============================================================================

def latest_snapshot(df: pd.DataFrame) -> pd.DataFrame:
    """One row per location: the row with the latest date.

    When several rows share the latest date, the first of them in input order
    wins. Rows without a date are only chosen for locations with no dated row.
    """
    ranked = df.assign(_input_order=np.arange(len(df)))
    ranked = ranked.sort_values(
        ['location', 'date', '_input_order'],
        ascending=[True, False, True],
        na_position='last',
        kind='mergesort',
    )
    latest = ranked.drop_duplicates('location', keep='first')
    return latest.drop(columns='_input_order').reset_index(drop=True)


def latest_infection_rate(df: pd.DataFrame, percent_scale: float = PERCENT) -> pd.DataFrame:
    """Latest percent of population infected per country, highest first."""
    snap = latest_snapshot(country_rows(df))
    out = _numeric_columns(snap[['continent', 'location', 'date', 'total_cases', 'population']],
                           ['total_cases', 'population'])
    out = out.rename(columns={'date': 'latest_date'})
    out['percent_population_infected'] = safe_ratio(out['total_cases'], out['population'], percent_scale)
    return _rank_desc(out, 'percent_population_infected')


def latest_death_percentage(df: pd.DataFrame, percent_scale: float = PERCENT) -> pd.DataFrame:
    """Latest death percentage per country, highest first."""
    snap = latest_snapshot(country_rows(df))
    out = _numeric_columns(snap[['continent', 'location', 'date', 'total_cases', 'total_deaths']],
                           ['total_cases', 'total_deaths'])
    out = out.rename(columns={'date': 'latest_date'})
    out['death_percentage'] = safe_ratio(out['total_deaths'], out['total_cases'], percent_scale)
    return _rank_desc(out, 'death_percentage')


def latest_vaccination(enriched: pd.DataFrame) -> pd.DataFrame:
    """Latest rolling doses and percent vaccinated per location, highest first."""
    snap = latest_snapshot(enriched)
    out = snap[['continent', 'location', 'date', 'population',
                'rolling_doses', 'percent_population_vaccinated']].rename(columns={'date': 'latest_date'})
    return _rank_desc(out, 'percent_population_vaccinated')


def vaccination_trend(enriched: pd.DataFrame, location: str) -> pd.DataFrame:
    """Rolling doses and percent vaccinated over time for a single location."""
    rows = enriched[enriched['location'] == location]
    return rows.sort_values('date', kind='mergesort').reset_index(drop=True)


# ============================================================================
# Country and Continent Rankings
# ============================================================================

def infection_rate_ranking(df: pd.DataFrame, percent_scale: float = PERCENT) -> pd.DataFrame:
    """Peak infection count and peak percent infected per country."""
    rows = _numeric_columns(country_rows(df)[['location', 'population', 'total_cases']],
                            ['population', 'total_cases'])
    rows['percent_population_infected'] = safe_ratio(rows['total_cases'], rows['population'], percent_scale)
    ranking = rows.groupby('location', sort=True).agg(
        population=('population', 'max'),
        highest_infection_count=('total_cases', 'max'),
        percent_population_infected=('percent_population_infected', 'max'),
    ).reset_index()
    return _rank_desc(ranking, 'percent_population_infected')


def death_count_ranking(df: pd.DataFrame) -> pd.DataFrame:
    """Highest cumulative death count per country."""
    rows = _numeric_columns(country_rows(df)[['location', 'total_deaths']], ['total_deaths'])
    ranking = rows.groupby('location', sort=True)['total_deaths'].max().rename('total_death_count').reset_index()
    return _rank_desc(ranking, 'total_death_count')


def continent_summary(df: pd.DataFrame) -> pd.DataFrame:
    """Largest cumulative death count of any country in each continent."""
    rows = _numeric_columns(country_rows(df)[['continent', 'total_deaths']], ['total_deaths'])
    summary = rows.groupby('continent', sort=True)['total_deaths'].max().reset_index()
    return summary.sort_values(
        ['total_deaths', 'continent'], ascending=[False, True], na_position='last', kind='mergesort'
    ).reset_index(drop=True)

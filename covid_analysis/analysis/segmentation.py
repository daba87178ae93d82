#!/usr/bin/env python3
"""
Country Segmentation

Places every country into one of five segments from its latest per-100k cases
and deaths:

1. Rank countries separately by cases and by deaths per 100k (highest first)
2. Split each ranking into quartiles (1 = highest, 4 = lowest)
3. Read the (cases, deaths) quartile pair as High/Low on each axis, where the
   top half (quartiles 1 and 2) counts as High
"""

from typing import Optional

import numpy as np
import pandas as pd

from covid_analysis.analysis.data_processing import country_rows
from covid_analysis.analysis.metrics import PER_100K, latest_snapshot, safe_ratio, to_numeric

HIGH_HIGH = 'High Cases / High Deaths'
HIGH_LOW = 'High Cases / Low Deaths'
LOW_HIGH = 'Low Cases / High Deaths'
LOW_LOW = 'Low Cases / Low Deaths'
MID_CLUSTER = 'Mid Cluster'

SEGMENTS = [HIGH_HIGH, HIGH_LOW, LOW_HIGH, LOW_LOW, MID_CLUSTER]


def ntile(values: pd.Series, n_tiles: int = 4, tie_breaker: Optional[pd.Series] = None) -> pd.Series:
    """Bucket values into ``n_tiles`` ranked groups, highest values in bucket 1.

    Buckets differ in size by at most one; the first ``N % n_tiles`` buckets get
    the extra rows. Missing values rank last. Equal values are ordered by
    ``tie_breaker`` (ascending), then by position.

    Returns:
        Integer bucket numbers aligned with ``values``
    """
    frame = pd.DataFrame({
        'value': to_numeric(values),
        'tie': tie_breaker if tie_breaker is not None else np.arange(len(values)),
        'position': np.arange(len(values)),
    }, index=values.index)
    ordered = frame.sort_values(['value', 'tie', 'position'], ascending=[False, True, True], na_position='last')

    n_rows = len(ordered)
    base, remainder = divmod(n_rows, n_tiles)
    large_rows = remainder * (base + 1)
    rank = np.arange(n_rows)
    buckets = np.where(
        rank < large_rows,
        rank // (base + 1) + 1,
        remainder + (rank - large_rows) // max(base, 1) + 1,
    )
    return pd.Series(buckets, index=ordered.index, dtype='int64').reindex(values.index)


def segment_label(cases_q: int, deaths_q: int, high_tile_cutoff: int = 2, n_tiles: int = 4) -> str:
    """Map a (cases quartile, deaths quartile) pair to a segment name."""
    high = range(1, high_tile_cutoff + 1)
    low = range(high_tile_cutoff + 1, n_tiles + 1)

    if cases_q in high and deaths_q in high:
        return HIGH_HIGH
    if cases_q in high and deaths_q in low:
        return HIGH_LOW
    if cases_q in low and deaths_q in high:
        return LOW_HIGH
    if cases_q in low and deaths_q in low:
        return LOW_LOW
    return MID_CLUSTER


def segment_countries(deaths: pd.DataFrame, per_capita_base: int = PER_100K,
                      n_tiles: int = 4, high_tile_cutoff: int = 2) -> pd.DataFrame:
    """
    Segment countries by their latest normalized cases and deaths.

    Args:
        deaths: Loaded deaths table
        per_capita_base: Population base for normalization
        n_tiles: Number of rank buckets per metric
        high_tile_cutoff: Last bucket that still counts as "High"

    Returns:
        DataFrame with continent, location, latest_date, total_cases_per_100k,
        total_deaths_per_100k, cases_q, deaths_q, country_segment, ordered by
        segment and deaths per 100k (highest first)
    """
    snap = latest_snapshot(country_rows(deaths))
    population = to_numeric(snap['population'])

    out = pd.DataFrame({
        'continent': snap['continent'],
        'location': snap['location'],
        'latest_date': snap['date'],
        'total_cases_per_100k': safe_ratio(snap['total_cases'], population, per_capita_base),
        'total_deaths_per_100k': safe_ratio(snap['total_deaths'], population, per_capita_base),
    })
    out['cases_q'] = ntile(out['total_cases_per_100k'], n_tiles, tie_breaker=out['location'])
    out['deaths_q'] = ntile(out['total_deaths_per_100k'], n_tiles, tie_breaker=out['location'])
    out['country_segment'] = [
        segment_label(c, d, high_tile_cutoff, n_tiles) for c, d in zip(out['cases_q'], out['deaths_q'])
    ]

    return out.sort_values(
        ['country_segment', 'total_deaths_per_100k', 'location'],
        ascending=[True, False, True],
        na_position='last',
    ).reset_index(drop=True)

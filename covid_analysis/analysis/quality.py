#!/usr/bin/env python3
"""
Data Quality Checks

Sanity checks run on the raw tables before any KPI is trusted:
row counts, country vs aggregate split, duplicate (location, date) keys,
missingness of the core fields, date ranges and numbers stored as text.

Checks report findings and never raise on bad data. The one exception is
``assert_join_safe``, which the joiner relies on to refuse duplicate keys.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Tuple

import pandas as pd

from covid_analysis.analysis.data_processing import aggregate_rows, country_rows, location_kinds
from covid_analysis.analysis.metrics import to_numeric
from covid_analysis.config import ValidationParameters
from covid_analysis.models.errors import DuplicateKeys, JoinSafetyError
from covid_analysis.models.records import (
    DEATHS_NUMERIC_COLUMNS, KEY_COLUMNS, VACCINATIONS_NUMERIC_COLUMNS, LocationKind
)

DEATHS_TABLE = 'CovidDeaths'
VACCINATIONS_TABLE = 'CovidVaccinations'

NUMERIC_COLUMNS = {
    DEATHS_TABLE: DEATHS_NUMERIC_COLUMNS,
    VACCINATIONS_TABLE: VACCINATIONS_NUMERIC_COLUMNS,
}


def _format_date(day) -> Optional[str]:
    return None if pd.isna(day) else pd.Timestamp(day).strftime('%Y-%m-%d')


def find_duplicate_keys(df: pd.DataFrame) -> DuplicateKeys:
    """Map each (location, 'YYYY-MM-DD') key occurring more than once to its count.

    Rows missing either key part never join, so they are left to the null counts.
    """
    counts = df.dropna(subset=KEY_COLUMNS).groupby(KEY_COLUMNS, sort=True).size()
    duplicated = counts[counts > 1]
    return {(location, _format_date(day)): int(cnt) for (location, day), cnt in duplicated.items()}


@dataclass
class QualityReport:
    """Bundle of all quality checks for both tables"""
    row_counts: Dict[str, int]
    distinct_locations: Dict[str, int]
    kind_counts: Dict[str, Dict[str, int]]
    aggregate_locations: pd.DataFrame
    duplicate_keys: Dict[str, DuplicateKeys]
    null_counts: Dict[str, Dict[str, int]]
    date_range: Dict[str, Tuple[pd.Timestamp, pd.Timestamp]]
    column_types: pd.DataFrame = field(repr=False)

    @property
    def is_join_safe(self) -> bool:
        return not any(self.duplicate_keys.values())

    def print_summary(self) -> None:
        print("=" * 80)
        print("DATA QUALITY REPORT")
        print("=" * 80)
        for table, n_rows in self.row_counts.items():
            kinds = self.kind_counts[table]
            first, last = self.date_range[table]
            print(f"\n{table}")
            print(f"  Rows: {n_rows} ({kinds['country_rows']} country, {kinds['aggregate_rows']} aggregate)")
            print(f"  Distinct locations: {self.distinct_locations[table]}")
            print(f"  Date range: {_format_date(first)} to {_format_date(last)}")
            print(f"  Duplicate (location, date) keys: {len(self.duplicate_keys[table])}")
            for col, n_null in self.null_counts[table].items():
                print(f"  Null {col} (country rows): {n_null}")

        if not self.aggregate_locations.empty:
            print(f"\nAggregate locations (excluded from country KPIs):")
            for row in self.aggregate_locations.itertuples(index=False):
                print(f"  {row.location}: {row.rows_count} rows")

        print(f"\nNumeric columns:")
        print(self.column_types.to_string(index=False))
        print(f"\nSafe to join: {'yes' if self.is_join_safe else 'NO'}")
        print("=" * 80)


class QualityValidator:
    """Diagnostic checks over the deaths and vaccinations tables."""

    def __init__(self, deaths: pd.DataFrame, vaccinations: pd.DataFrame,
                 params: Optional[ValidationParameters] = None):
        self.tables = {DEATHS_TABLE: deaths, VACCINATIONS_TABLE: vaccinations}
        self.params = params or ValidationParameters()

    def row_counts(self) -> Dict[str, int]:
        """Total rows per table."""
        return {name: len(df) for name, df in self.tables.items()}

    def distinct_locations(self) -> Dict[str, int]:
        return {name: int(df['location'].nunique()) for name, df in self.tables.items()}

    def kind_counts(self) -> Dict[str, Dict[str, int]]:
        """Country rows vs aggregate rows per table."""
        counts = {}
        for name, df in self.tables.items():
            kinds = location_kinds(df)
            counts[name] = {
                'country_rows': int((kinds == LocationKind.COUNTRY.value).sum()),
                'aggregate_rows': int((kinds == LocationKind.AGGREGATE.value).sum()),
            }
        return counts

    def aggregate_locations(self, limit: Optional[int] = None) -> pd.DataFrame:
        """Aggregate locations in the deaths table with the most rows.

        These rollups inflate totals if they are not filtered out.
        """
        if limit is None:
            limit = self.params.aggregate_preview_limit
        rows = aggregate_rows(self.tables[DEATHS_TABLE])
        counts = rows.groupby('location').size().rename('rows_count').reset_index()
        counts = counts.sort_values(['rows_count', 'location'], ascending=[False, True], kind='mergesort')
        return counts.head(limit).reset_index(drop=True)

    def duplicate_keys(self, table: Optional[str] = None):
        """Duplicate (location, date) keys.

        Args:
            table: Table name; when omitted, returns a mapping per table

        Returns:
            {(location, date): count} restricted to count > 1 for one table, or
            {table_name: {(location, date): count}} for both
        """
        if table is not None:
            return find_duplicate_keys(self.tables[table])
        return {name: find_duplicate_keys(df) for name, df in self.tables.items()}

    def null_counts(self, columns: Optional[Iterable[str]] = None) -> Dict[str, Dict[str, int]]:
        """Per-column null tally over country rows, per table.

        Args:
            columns: Columns to check. Defaults to 'date' (unparseable dates
                load as missing) and the numeric contract columns of each
                table; requested columns absent from a table are skipped.
        """
        requested = list(columns) if columns is not None else None
        if requested is not None:
            known = set().union(*(df.columns for df in self.tables.values()))
            unknown = [col for col in requested if col not in known]
            if unknown:
                raise KeyError(f"Unknown columns: {unknown}")

        counts = {}
        for name, df in self.tables.items():
            cols = ['date'] + NUMERIC_COLUMNS[name] if requested is None else [c for c in requested if c in df.columns]
            rows = country_rows(df)
            counts[name] = {col: int(rows[col].isna().sum()) for col in cols}
        return counts

    def date_range(self) -> Dict[str, Tuple[pd.Timestamp, pd.Timestamp]]:
        """(min date, max date) per table."""
        return {name: (df['date'].min(), df['date'].max()) for name, df in self.tables.items()}

    def column_types(self) -> pd.DataFrame:
        """Storage type of each numeric column and how much of it is text.

        ``text_values`` counts non-null values stored as strings; values that
        still fail conversion are counted in ``unparseable_values``.
        """
        rows = []
        for name, df in self.tables.items():
            for col in NUMERIC_COLUMNS[name]:
                values = df[col]
                present = values.notna()
                is_text = values.map(lambda v: isinstance(v, str))
                unparseable = present & to_numeric(values).isna()
                rows.append({
                    'table_name': name,
                    'column_name': col,
                    'data_type': str(values.dtype),
                    'text_values': int((present & is_text).sum()),
                    'unparseable_values': int(unparseable.sum()),
                })
        return pd.DataFrame(rows)

    def report(self) -> QualityReport:
        """Run every check."""
        return QualityReport(
            row_counts=self.row_counts(),
            distinct_locations=self.distinct_locations(),
            kind_counts=self.kind_counts(),
            aggregate_locations=self.aggregate_locations(),
            duplicate_keys=self.duplicate_keys(),
            null_counts=self.null_counts(),
            date_range=self.date_range(),
            column_types=self.column_types(),
        )

    def assert_join_safe(self) -> None:
        """Raise JoinSafetyError if either table has duplicate keys."""
        duplicates = self.duplicate_keys()
        if any(duplicates.values()):
            raise JoinSafetyError(duplicates)

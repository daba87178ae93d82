#!/usr/bin/env python3
"""
This module loads the two raw tables:
1. CovidDeaths (cases, deaths and population per location and date)
2. CovidVaccinations (doses administered per location and date)

and tags every row as a country or an aggregate (World, continents, income
groups) so that downstream code never has to re-test the continent column.
Numeric columns are left as they arrive; conversion happens in the metrics.
"""

from pathlib import Path
from typing import List, Optional, Tuple, Type, Union

import numpy as np
import pandas as pd

from covid_analysis.models.errors import SchemaError
from covid_analysis.models.records import (
    LocationKind, ObservationRecord, VaccinationRecord, classify, is_missing
)
from covid_analysis.paths import paths

TableSource = Union[str, Path, pd.DataFrame]
Record = Union[ObservationRecord, VaccinationRecord]

KIND_COLUMN = 'location_kind'


def location_kinds(df: pd.DataFrame) -> pd.Series:
    """Return the row tags, classifying on the fly for untagged frames."""
    if KIND_COLUMN in df.columns:
        return df[KIND_COLUMN]
    return df['continent'].map(lambda c: classify(c).value)


def country_rows(df: pd.DataFrame) -> pd.DataFrame:
    """Rows describing a single country."""
    return df[location_kinds(df) == LocationKind.COUNTRY.value]


def aggregate_rows(df: pd.DataFrame) -> pd.DataFrame:
    """Rows describing a multi-country rollup."""
    return df[location_kinds(df) == LocationKind.AGGREGATE.value]


class DataProcessor:
    """Main class for loading the deaths and vaccinations tables."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def load_deaths(self, source: TableSource) -> pd.DataFrame:
        """
        Load the deaths table.

        Args:
            source: CSV path or an in-memory DataFrame

        Returns:
            pd.DataFrame with the contract columns plus 'location_kind'

        Raises:
            SchemaError: if a required column is missing
        """
        return self._load(source, 'CovidDeaths', ObservationRecord)

    def load_vaccinations(self, source: TableSource) -> pd.DataFrame:
        """Load the vaccinations table (see load_deaths)."""
        return self._load(source, 'CovidVaccinations', VaccinationRecord)

    def load_all(self, deaths_source: Optional[TableSource] = None,
                 vaccinations_source: Optional[TableSource] = None) -> Tuple[pd.DataFrame, pd.DataFrame]:
        """Load both tables, defaulting to the files under data/."""
        deaths = self.load_deaths(deaths_source if deaths_source is not None else paths.deaths_table)
        vaccinations = self.load_vaccinations(
            vaccinations_source if vaccinations_source is not None else paths.vaccinations_table
        )
        return deaths, vaccinations

    def _load(self, source: TableSource, table_name: str, record_cls: Type[Record]) -> pd.DataFrame:
        df = self._read(source, table_name)

        # Check the column contract before touching anything
        missing = set(record_cls.required_columns()) - set(df.columns)
        if missing:
            raise SchemaError(table_name, missing)

        # Blank text cells mean "no value" in spreadsheet exports
        text_columns = df.select_dtypes(include=['object', 'string']).columns
        if len(text_columns):
            df[text_columns] = df[text_columns].replace(r'^\s*$', np.nan, regex=True)

        # Exports mix plain dates and DATETIME text, so infer the format per value
        df['date'] = pd.to_datetime(df['date'], errors='coerce', format='mixed')
        df[KIND_COLUMN] = df['continent'].map(lambda c: classify(c).value)

        # Row order is the tie-break for equal dates, so keep a clean positional index
        df = df.reset_index(drop=True)

        if self.verbose:
            n_country = int((df[KIND_COLUMN] == LocationKind.COUNTRY.value).sum())
            print(f"Loaded {table_name}: {len(df)} rows "
                  f"({n_country} country, {len(df) - n_country} aggregate)")
        return df

    def _read(self, source: TableSource, table_name: str) -> pd.DataFrame:
        if isinstance(source, pd.DataFrame):
            return source.copy()

        file_path = Path(source)
        if not file_path.exists():
            raise FileNotFoundError(f"{table_name} file {file_path} not found")
        if self.verbose:
            print(f"Reading {table_name} from {file_path}...")
        return pd.read_csv(file_path, low_memory=False)

    @staticmethod
    def to_records(df: pd.DataFrame, record_cls: Type[Record]) -> List[Record]:
        """Convert a loaded table into typed records (missing values become None)."""
        columns = record_cls.required_columns()
        records = []
        for row in df[columns].itertuples(index=False):
            values = {}
            for col, value in zip(columns, row):
                if is_missing(value):
                    values[col] = None
                elif col == 'date':
                    values[col] = pd.Timestamp(value).date()
                else:
                    values[col] = value
            records.append(record_cls(**values))
        return records

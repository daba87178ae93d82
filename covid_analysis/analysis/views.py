#!/usr/bin/env python3
"""
Named Views

Reusable derived tables for visualization tools. Each view is a pure function
of the two source tables, computed on first request and cached; the whole
cache is invalidated together.

Usage:
    >>> catalog = ViewCatalog(deaths_df, vaccinations_df)
    >>> catalog.get('country_segmentation').head()
    >>> catalog.export(OUTPUT_DIR)
"""

from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

import pandas as pd
from tqdm import tqdm

from covid_analysis.analysis import metrics
from covid_analysis.analysis.joiner import join_deaths_vaccinations
from covid_analysis.analysis.segmentation import segment_countries
from covid_analysis.config import DEFAULT_CONFIG, PipelineConfig
from covid_analysis.paths import OUTPUT_DIR, ensure_output_dir, paths

VIEW_DESCRIPTIONS = {
    'percent_population_vaccinated': "Joined deaths/vaccinations with rolling doses and percent vaccinated",
    'country_daily_7day': "Daily new cases/deaths with trailing moving averages",
    'country_daily_per100k': "Cases and deaths per 100k population",
    'country_segmentation': "Quartile-based country segments from the latest snapshot",
    'global_daily_kpis': "Global new cases, new deaths and death percentage per date",
    'global_totals': "Global total cases, deaths and death percentage",
    'latest_infection_rate': "Latest percent of population infected per country",
    'latest_death_percentage': "Latest death percentage per country",
    'latest_vaccination': "Latest rolling doses and percent vaccinated per country",
    'continent_summary': "Highest cumulative deaths per continent",
}

VIEW_NAMES: List[str] = list(VIEW_DESCRIPTIONS)


class ViewCatalog:
    """Cached named views over a fixed snapshot of the two source tables."""

    def __init__(self, deaths: pd.DataFrame, vaccinations: pd.DataFrame,
                 config: PipelineConfig = DEFAULT_CONFIG,
                 include_aggregates: bool = False,
                 verbose: bool = False):
        """
        Args:
            deaths: Loaded deaths table
            vaccinations: Loaded vaccinations table
            config: Pipeline configuration
            include_aggregates: Join aggregate rows too (vaccination views only)
            verbose: Print progress
        """
        # Private copies so later changes to the caller's frames can't leak in
        self.deaths = deaths.copy()
        self.vaccinations = vaccinations.copy()
        self.config = config
        self.include_aggregates = include_aggregates
        self.verbose = verbose
        self._cache: Dict[str, pd.DataFrame] = {}
        self._builders: Dict[str, Callable[[], pd.DataFrame]] = {
            'percent_population_vaccinated': self._percent_population_vaccinated,
            'country_daily_7day': self._country_daily_7day,
            'country_daily_per100k': self._country_daily_per100k,
            'country_segmentation': self._country_segmentation,
            'global_daily_kpis': self._global_daily_kpis,
            'global_totals': self._global_totals,
            'latest_infection_rate': self._latest_infection_rate,
            'latest_death_percentage': self._latest_death_percentage,
            'latest_vaccination': self._latest_vaccination,
            'continent_summary': self._continent_summary,
        }

    @property
    def names(self) -> List[str]:
        return list(self._builders)

    def get(self, name: str) -> pd.DataFrame:
        """Return a copy of the named view, computing it on first use."""
        return self._view(name).copy()

    def materialize_all(self, names: Optional[Iterable[str]] = None) -> Dict[str, pd.DataFrame]:
        """Compute (or fetch from cache) several views at once."""
        names = list(names) if names is not None else self.names
        results = {}
        for name in tqdm(names, desc="Materializing views", disable=not self.verbose):
            results[name] = self.get(name)
        return results

    def invalidate(self) -> None:
        """Drop every cached view."""
        self._cache.clear()

    def is_cached(self, name: str) -> bool:
        return name in self._cache

    def export(self, output_dir: Path = OUTPUT_DIR, names: Optional[Iterable[str]] = None) -> Dict[str, Path]:
        """Write views as CSV files named after the view.

        Returns:
            Mapping of view name to written file
        """
        output_dir = ensure_output_dir(output_dir)
        written = {}
        for name, view in self.materialize_all(names).items():
            file_path = paths.view_export(name, output_dir)
            view.to_csv(file_path, index=False, date_format='%Y-%m-%d')
            written[name] = file_path
            if self.verbose:
                print(f"Results exported to {file_path}")
        return written

    def _view(self, name: str) -> pd.DataFrame:
        if name not in self._builders:
            raise KeyError(f"Unknown view '{name}'. Available views: {', '.join(self.names)}")
        if name not in self._cache:
            self._cache[name] = self._builders[name]()
        return self._cache[name]

    # === Vaccination views ===

    def _percent_population_vaccinated(self) -> pd.DataFrame:
        joined = join_deaths_vaccinations(
            self.deaths, self.vaccinations,
            include_aggregates=self.include_aggregates,
            gate_on_duplicates=self.config.validation.gate_join_on_duplicates,
        )
        # Two stages: the rolling column must exist before the percentage can use it
        enriched = metrics.rolling_doses(joined)
        return metrics.percent_population_vaccinated(enriched, self.config.metrics.percent_scale)

    def _latest_vaccination(self) -> pd.DataFrame:
        return metrics.latest_vaccination(self._view('percent_population_vaccinated'))

    # === Daily country views ===

    def _country_daily_7day(self) -> pd.DataFrame:
        return metrics.moving_average(self.deaths, self.config.metrics.moving_average_window)

    def _country_daily_per100k(self) -> pd.DataFrame:
        return metrics.per_100k(self.deaths, self.config.metrics.per_capita_base)

    def _country_segmentation(self) -> pd.DataFrame:
        params = self.config.segmentation
        return segment_countries(
            self.deaths,
            per_capita_base=self.config.metrics.per_capita_base,
            n_tiles=params.n_tiles,
            high_tile_cutoff=params.high_tile_cutoff,
        )

    # === Export-ready KPI views ===

    def _global_daily_kpis(self) -> pd.DataFrame:
        params = self.config.metrics
        return metrics.global_daily(self.deaths, params.global_null_policy, params.percent_scale)

    def _global_totals(self) -> pd.DataFrame:
        params = self.config.metrics
        return metrics.global_totals(self.deaths, params.global_null_policy, params.percent_scale)

    def _latest_infection_rate(self) -> pd.DataFrame:
        return metrics.latest_infection_rate(self.deaths, self.config.metrics.percent_scale)

    def _latest_death_percentage(self) -> pd.DataFrame:
        return metrics.latest_death_percentage(self.deaths, self.config.metrics.percent_scale)

    def _continent_summary(self) -> pd.DataFrame:
        return metrics.continent_summary(self.deaths)

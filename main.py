#!/usr/bin/env python3
"""
Main Execution Script for the Global COVID Analysis

This script provides a unified interface for the analysis: it loads the
deaths and vaccinations tables, checks their quality, builds the named views
and optionally exports them as CSV for visualization tools.
"""

import argparse
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from covid_analysis.analysis import metrics
from covid_analysis.analysis.data_processing import DataProcessor
from covid_analysis.analysis.quality import QualityReport, QualityValidator
from covid_analysis.analysis.views import VIEW_NAMES, ViewCatalog
from covid_analysis.config import DEFAULT_CONFIG, PipelineConfig
from covid_analysis.models.errors import CovidAnalysisError
from covid_analysis.paths import OUTPUT_DIR, paths

PREVIEW_ROWS = 10


class CovidAnalysis:
    """Main analysis class that coordinates all components"""

    def __init__(self, deaths_path: Optional[Path] = None, vaccinations_path: Optional[Path] = None,
                 output_dir: Path = OUTPUT_DIR, config: PipelineConfig = DEFAULT_CONFIG,
                 include_aggregates: bool = False, verbose: bool = False):
        """
        Initialize the analysis

        Args:
            deaths_path: Deaths CSV (defaults to data/CovidDeaths.csv)
            vaccinations_path: Vaccinations CSV (defaults to data/CovidVaccinations.csv)
            output_dir: Directory for exported views
            config: Pipeline configuration
            include_aggregates: Join aggregate rows as well as countries
            verbose: Print progress
        """
        self.deaths_path = Path(deaths_path or paths.deaths_table)
        self.vaccinations_path = Path(vaccinations_path or paths.vaccinations_table)
        self.output_dir = Path(output_dir)
        self.config = config
        self.include_aggregates = include_aggregates
        self.verbose = verbose
        self.deaths: Optional[pd.DataFrame] = None
        self.vaccinations: Optional[pd.DataFrame] = None
        self._catalog: Optional[ViewCatalog] = None

    def load(self) -> None:
        """Load both tables and reset any cached views."""
        processor = DataProcessor(verbose=self.verbose)
        self.deaths, self.vaccinations = processor.load_all(self.deaths_path, self.vaccinations_path)
        self._catalog = ViewCatalog(
            self.deaths, self.vaccinations, self.config,
            include_aggregates=self.include_aggregates, verbose=self.verbose,
        )

    @property
    def catalog(self) -> ViewCatalog:
        if self._catalog is None:
            self.load()
        return self._catalog

    def run_quality_report(self) -> QualityReport:
        """Run every data quality check and print the summary."""
        if self.deaths is None:
            self.load()
        report = QualityValidator(self.deaths, self.vaccinations, self.config.validation).report()
        report.print_summary()
        return report

    def run_views(self, names: List[str] = VIEW_NAMES, export: bool = False) -> Dict[str, pd.DataFrame]:
        """
        Build the named views, print a preview of each and optionally export them.

        Args:
            names: Views to build
            export: Write each view to the output directory as CSV

        Returns:
            Dictionary of view name to DataFrame
        """
        print("Building views...")
        results = self.catalog.materialize_all(names)
        for name, view in results.items():
            print(f"\n{name} ({len(view)} rows)")
            print(view.head(PREVIEW_ROWS).to_string(index=False))

        if export:
            self.catalog.export(self.output_dir, names)
            print(f"\nExported {len(names)} views to {self.output_dir}")
        return results

    def run_rankings(self) -> Dict[str, pd.DataFrame]:
        """Country and continent rankings by infection rate and deaths."""
        if self.deaths is None:
            self.load()
        results = {
            'infection_rate_ranking': metrics.infection_rate_ranking(self.deaths, self.config.metrics.percent_scale),
            'death_count_ranking': metrics.death_count_ranking(self.deaths),
        }
        for name, ranking in results.items():
            print(f"\n{name}")
            print(ranking.head(PREVIEW_ROWS).to_string(index=False))
        return results

    def run_location_trend(self, location: str) -> Dict[str, pd.DataFrame]:
        """Death percentage and vaccination trend for one location."""
        if self.deaths is None:
            self.load()
        results = {
            'death_percentage': metrics.death_percentage(
                self.deaths, location_pattern=location, percent_scale=self.config.metrics.percent_scale
            ),
            'vaccination_trend': metrics.vaccination_trend(
                self.catalog.get('percent_population_vaccinated'), location
            ),
        }
        for name, trend in results.items():
            print(f"\n{name} for '{location}' ({len(trend)} rows)")
            print(trend.tail(PREVIEW_ROWS).to_string(index=False))
        return results


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Global COVID-19 KPI analysis")
    parser.add_argument("--deaths", type=Path, default=None, help="Deaths table CSV")
    parser.add_argument("--vaccinations", type=Path, default=None, help="Vaccinations table CSV")
    parser.add_argument("--output_dir", type=Path, default=OUTPUT_DIR, help="Directory for exported views")
    parser.add_argument("--view", choices=['all'] + VIEW_NAMES, default='all', help="View to build")
    parser.add_argument("--quality_report", action="store_true", help="Print the data quality report")
    parser.add_argument("--rankings", action="store_true", help="Print country rankings")
    parser.add_argument("--location", type=str, default=None, help="Print trends for one location")
    parser.add_argument("--include_aggregates", action="store_true",
                        help="Join aggregate rows (World, continents) as well as countries")
    parser.add_argument("--no_join_gate", action="store_true",
                        help="Warn instead of failing on duplicate (location, date) keys")
    parser.add_argument("--export", action="store_true", help="Export views as CSV")
    parser.add_argument("--verbose", action="store_true", help="Print progress")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main function"""
    args = build_parser().parse_args(argv)

    config = DEFAULT_CONFIG
    if args.no_join_gate:
        config = PipelineConfig(validation={'gate_join_on_duplicates': False})

    analysis = CovidAnalysis(
        deaths_path=args.deaths,
        vaccinations_path=args.vaccinations,
        output_dir=args.output_dir,
        config=config,
        include_aggregates=args.include_aggregates,
        verbose=args.verbose,
    )

    try:
        analysis.load()
        if args.quality_report:
            analysis.run_quality_report()
        names = VIEW_NAMES if args.view == 'all' else [args.view]
        analysis.run_views(names, export=args.export)
        if args.rankings:
            analysis.run_rankings()
        if args.location:
            analysis.run_location_trend(args.location)
    except (CovidAnalysisError, FileNotFoundError) as e:
        print(f"Error: {type(e).__name__}: {e}", file=sys.stderr)
        return 1

    print("\nAnalysis completed successfully!")
    return 0


if __name__ == "__main__":
    sys.exit(main())

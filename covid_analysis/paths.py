#!/usr/bin/env python3
"""Centralized Path Management for the Global COVID Analysis.

This module provides a single source of truth for all file paths used across
the project, so scripts work regardless of the working directory.

Directory Structure:
    project_root/
    ├── covid_analysis/     # Python source code
    ├── data/               # Raw input tables (user provided)
    │   ├── CovidDeaths.csv
    │   └── CovidVaccinations.csv
    └── output/             # Exported views

Usage:
    >>> from covid_analysis.paths import paths
    >>> deaths_df = pd.read_csv(paths.deaths_table)
"""

from pathlib import Path

# ============================================================================
# Root Directory
# ============================================================================

# Project root is parent of covid_analysis/ directory
PROJECT_ROOT = Path(__file__).parent.parent

# ============================================================================
# Input Data
# ============================================================================

DATA_DIR = PROJECT_ROOT / "data"
"""Root directory for the raw input tables."""

DEATHS_FILENAME = "CovidDeaths.csv"
VACCINATIONS_FILENAME = "CovidVaccinations.csv"

# ============================================================================
# Output Directories
# ============================================================================

OUTPUT_DIR = PROJECT_ROOT / "output"
"""Exported views (CSV extracts for visualization tools)."""


def ensure_output_dir(output_dir: Path = OUTPUT_DIR) -> Path:
    """Create the output directory if it doesn't exist and return it.

    Note:
        Does NOT create data/, which should contain user-provided tables.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


def validate_data_files(data_dir: Path = DATA_DIR) -> bool:
    """Check if both raw input tables exist.

    Returns:
        True if both tables exist, False otherwise.
    """
    all_exist = True
    for filename in (DEATHS_FILENAME, VACCINATIONS_FILENAME):
        file_path = Path(data_dir) / filename
        if not file_path.exists():
            print(f"Warning: input table not found: {file_path}")
            all_exist = False

    return all_exist


# ============================================================================
# Common File Paths
# ============================================================================

class CommonPaths:
    """Commonly used file paths for quick access.

    All paths are properties so they're computed on access.
    """

    @property
    def deaths_table(self) -> Path:
        """Raw deaths table (one row per location and date)."""
        return DATA_DIR / DEATHS_FILENAME

    @property
    def vaccinations_table(self) -> Path:
        """Raw vaccinations table (one row per location and date)."""
        return DATA_DIR / VACCINATIONS_FILENAME

    @staticmethod
    def view_export(view_name: str, output_dir: Path = OUTPUT_DIR) -> Path:
        """CSV export location for a named view."""
        return Path(output_dir) / f"{view_name}.csv"


# Create singleton instance for easy imports
paths = CommonPaths()


if __name__ == "__main__":
    """Print all configured paths for debugging if run as script."""
    print("=" * 80)
    print("Configured Paths for Global COVID Analysis")
    print("=" * 80)
    print(f"\nProject Root: {PROJECT_ROOT}")
    print(f"\n  Input Tables:")
    print(f"    Deaths:       {paths.deaths_table}")
    print(f"    Vaccinations: {paths.vaccinations_table}")
    print(f"\n  Output Directory: {OUTPUT_DIR}")

    if validate_data_files():
        print("✓ All required input tables found")
    else:
        print("✗ Some input tables are missing")

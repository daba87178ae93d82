import numpy as np
import pandas as pd
import pytest

from covid_analysis.analysis.data_processing import DataProcessor


@pytest.fixture
def raw_deaths() -> pd.DataFrame:
    """Small deaths table with text numbers, blanks and an aggregate row set."""
    return pd.DataFrame([
        # continent, location, date, population, total_cases, new_cases, total_deaths, new_deaths
        ('Europe', 'Testland', '2021-01-01', 1000, 100, 100, 10, 10),
        ('Europe', 'Testland', '2021-01-02', 1000, 150, 50, 20, 10),
        ('Europe', 'Testland', '2021-01-03', 1000, '200', '50', None, 'bad'),
        ('Asia', 'Otherland', '2021-01-01', '2000', 0, 0, 0, 0),
        ('Asia', 'Otherland', '2021-01-02', '2000', 40, 40, 4, 4),
        (None, 'World', '2021-01-01', 3000, 100, 100, 10, 10),
        ('', 'World', '2021-01-02', 3000, 190, 90, 24, 14),
    ], columns=['continent', 'location', 'date', 'population',
                'total_cases', 'new_cases', 'total_deaths', 'new_deaths'])


@pytest.fixture
def raw_vaccinations() -> pd.DataFrame:
    return pd.DataFrame([
        # continent, location, date, new_vaccinations, total_vaccinations
        ('Europe', 'Testland', '2021-01-01', None, None),
        ('Europe', 'Testland', '2021-01-02', 50, 50),
        ('Europe', 'Testland', '2021-01-03', '30', '80'),
        ('Asia', 'Otherland', '2021-01-02', 'abc', np.nan),
        ('Africa', 'Newland', '2021-01-01', 10, 10),
        (None, 'World', '2021-01-01', 1000, 1000),
    ], columns=['continent', 'location', 'date', 'new_vaccinations', 'total_vaccinations'])


@pytest.fixture
def deaths(raw_deaths) -> pd.DataFrame:
    return DataProcessor().load_deaths(raw_deaths)


@pytest.fixture
def vaccinations(raw_vaccinations) -> pd.DataFrame:
    return DataProcessor().load_vaccinations(raw_vaccinations)


@pytest.fixture
def csv_tables(tmp_path, raw_deaths, raw_vaccinations):
    """The fixture tables written to CSV files."""
    deaths_path = tmp_path / "CovidDeaths.csv"
    vaccinations_path = tmp_path / "CovidVaccinations.csv"
    raw_deaths.to_csv(deaths_path, index=False)
    raw_vaccinations.to_csv(vaccinations_path, index=False)
    return deaths_path, vaccinations_path


@pytest.fixture
def make_deaths():
    """Build a loaded deaths table from (location, date, population, total_cases, total_deaths) tuples."""
    def _make(rows) -> pd.DataFrame:
        frame = pd.DataFrame(rows, columns=['location', 'date', 'population', 'total_cases', 'total_deaths'])
        frame.insert(0, 'continent', 'Europe')
        frame['new_cases'] = None
        frame['new_deaths'] = None
        return DataProcessor().load_deaths(frame)
    return _make

import numpy as np
import pandas as pd
import pytest

from covid_analysis.analysis import metrics
from covid_analysis.analysis.data_processing import DataProcessor
from covid_analysis.analysis.joiner import join_deaths_vaccinations


# === Numeric conversion ===

@pytest.mark.parametrize("value,expected", [
    (5, 5.0), ('30', 30.0), (' 12.5 ', 12.5), ('1e3', 1000.0),
    (None, None), (np.nan, None), ('', None), ('abc', None), ('1,234', None),
    ('inf', None), ('-Infinity', None), ('nan', None), (float('inf'), None),
])
def test_to_float_is_lenient_by_default(value, expected):
    assert metrics.to_float(value) == expected


def test_to_float_strict_raises_on_malformed_text():
    with pytest.raises(ValueError):
        metrics.to_float('abc', strict=True)
    with pytest.raises(ValueError):
        metrics.to_float('inf', strict=True)
    # Missing is not malformed
    assert metrics.to_float(None, strict=True) is None


def test_to_numeric_coerces_mixed_series():
    result = metrics.to_numeric(pd.Series([1, '2', None, 'x', ' 3 ']))
    assert result.dtype == np.float64
    assert result.tolist()[:2] == [1.0, 2.0]
    assert np.isnan(result[2]) and np.isnan(result[3])
    assert result[4] == 3.0


def test_to_numeric_drops_non_finite_values():
    assert metrics.to_numeric(pd.Series(['inf', 'Infinity', 'nan', '4'])).isna().tolist() == [True, True, True, False]
    assert metrics.to_numeric(pd.Series([np.inf, -np.inf, 2.0])).isna().tolist() == [True, True, False]


def test_infinite_text_does_not_poison_totals(make_deaths):
    deaths = make_deaths([
        ('Testland', '2021-01-01', 1000, 'inf', 1),
        ('Otherland', '2021-01-01', 1000, 10, 1),
    ])
    view = metrics.per_100k(deaths).set_index('location')
    assert np.isnan(view.loc['Testland', 'total_cases_per_100k'])
    assert view.loc['Otherland', 'total_cases_per_100k'] == pytest.approx(1000.0)

    deaths['new_cases'] = ['Infinity', '5']
    totals = metrics.global_totals(deaths)
    assert totals.loc[0, 'global_total_cases'] == 5.0


def test_to_numeric_strict_mode():
    with pytest.raises(ValueError, match='x'):
        metrics.to_numeric(pd.Series([1, 'x']), strict=True)
    assert metrics.to_numeric(pd.Series(['1', None]), strict=True).tolist()[0] == 1.0


def test_safe_ratio_guards_zero_and_null():
    result = metrics.safe_ratio(pd.Series([1, 1, 1, None]), pd.Series([2, 0, None, 4]), 100)
    assert result[0] == 50.0
    assert result[1:].isna().all()


# === Ratio metrics ===

def test_death_and_infection_percentages_worked_example():
    raw = pd.DataFrame({
        'continent': ['Europe', 'Europe'],
        'location': ['Testland', 'Testland'],
        'date': ['2021-01-01', '2021-01-02'],
        'population': [1000, 1000],
        'total_cases': [100, 150],
        'new_cases': [100, 50],
        'total_deaths': [10, 20],
        'new_deaths': [10, 10],
    })
    deaths = DataProcessor().load_deaths(raw)

    dp = metrics.death_percentage(deaths)
    assert dp['death_percentage'].tolist() == pytest.approx([10.0, 13.333333])

    infected = metrics.percent_population_infected(deaths)
    assert infected['percent_population_infected'].tolist() == pytest.approx([10.0, 15.0])


def test_death_percentage_null_iff_cases_missing_or_zero(deaths):
    dp = metrics.death_percentage(deaths)
    for row in dp.itertuples():
        if pd.isna(row.total_cases) or row.total_cases == 0:
            assert pd.isna(row.death_percentage)
        elif not pd.isna(row.total_deaths):
            assert row.death_percentage == pytest.approx(row.total_deaths / row.total_cases * 100)


def test_death_percentage_location_pattern(deaths):
    dp = metrics.death_percentage(deaths, location_pattern='TEST')
    assert set(dp['location']) == {'Testland'}


def test_ratios_exclude_aggregates(deaths):
    assert 'World' not in set(metrics.percent_population_infected(deaths)['location'])


def test_per_100k(deaths):
    view = metrics.per_100k(deaths)
    testland = view[view['location'] == 'Testland']
    assert testland['total_cases_per_100k'].tolist() == pytest.approx([10000.0, 15000.0, 20000.0])
    assert np.isnan(testland['new_deaths_per_100k'].iloc[2])
    otherland = view[view['location'] == 'Otherland']
    assert otherland['total_deaths_per_100k'].tolist() == pytest.approx([0.0, 200.0])


def test_per_100k_zero_population_is_null(make_deaths):
    deaths = make_deaths([('Nowhere', '2021-01-01', 0, 10, 1)])
    view = metrics.per_100k(deaths)
    assert view['total_cases_per_100k'].isna().all()


# === Global aggregates ===

def test_global_daily_excludes_nulls_and_aggregates(deaths):
    daily = metrics.global_daily(deaths)
    assert daily['date'].tolist() == [pd.Timestamp('2021-01-01'), pd.Timestamp('2021-01-02'),
                                      pd.Timestamp('2021-01-03')]
    # World rows (aggregates) are not added in
    assert daily['global_new_cases'].tolist() == [100.0, 90.0, 50.0]
    assert daily['global_new_deaths'].tolist()[:2] == [10.0, 14.0]
    # Only value on 2021-01-03 is unparseable, so the sum is null rather than 0
    assert np.isnan(daily['global_new_deaths'].iloc[2])
    assert daily['global_death_percentage'].iloc[0] == pytest.approx(10.0)


def test_global_daily_zero_policy(deaths):
    daily = metrics.global_daily(deaths, null_policy='zero')
    assert daily['global_new_deaths'].iloc[2] == 0.0
    assert daily['global_death_percentage'].iloc[2] == 0.0


def test_global_daily_rejects_unknown_policy(deaths):
    with pytest.raises(ValueError):
        metrics.global_daily(deaths, null_policy='guess')


def test_global_totals(deaths):
    totals = metrics.global_totals(deaths)
    assert len(totals) == 1
    row = totals.iloc[0]
    assert row['global_total_cases'] == 240.0
    assert row['global_total_deaths'] == 24.0
    assert row['global_death_percentage'] == pytest.approx(10.0)


# === Windowed metrics ===

def test_rolling_doses_worked_example(deaths, vaccinations):
    enriched = metrics.rolling_doses(join_deaths_vaccinations(deaths, vaccinations))
    testland = enriched[enriched['location'] == 'Testland']
    assert testland['rolling_doses'].tolist() == [0.0, 50.0, 80.0]
    # Unparseable counts as 0 and the sum restarts for each location
    otherland = enriched[enriched['location'] == 'Otherland']
    assert otherland['rolling_doses'].tolist() == [0.0]


def test_rolling_doses_non_decreasing_and_order_independent():
    joined = pd.DataFrame({
        'continent': ['Asia'] * 4 + ['Europe'] * 3,
        'location': ['B'] * 4 + ['A'] * 3,
        'date': pd.to_datetime(['2021-01-04', '2021-01-01', '2021-01-03', '2021-01-02',
                                '2021-01-02', '2021-01-01', '2021-01-03']),
        'population': [10] * 7,
        'new_vaccinations': [4, 1, None, '2', 5, 'oops', 7],
        'total_vaccinations': [None] * 7,
    })
    enriched = metrics.rolling_doses(joined)
    assert enriched['location'].tolist() == ['A'] * 3 + ['B'] * 4
    assert enriched['rolling_doses'].tolist() == [0.0, 5.0, 12.0, 1.0, 3.0, 3.0, 7.0]
    for _, group in enriched.groupby('location'):
        assert group['rolling_doses'].is_monotonic_increasing


def test_percent_population_vaccinated_can_exceed_100():
    enriched = pd.DataFrame({'population': ['10', 0], 'rolling_doses': [25.0, 5.0]})
    out = metrics.percent_population_vaccinated(enriched)
    assert out['percent_population_vaccinated'].iloc[0] == 250.0
    assert np.isnan(out['percent_population_vaccinated'].iloc[1])


def test_moving_average_warm_up_and_nulls():
    raw = pd.DataFrame({
        'continent': 'Europe',
        'location': 'Testland',
        'date': pd.date_range('2021-01-01', periods=9).strftime('%Y-%m-%d'),
        'population': 1000,
        'total_cases': None,
        'new_cases': [7, 14, None, 21, 0, 0, 0, 7, 'x'],
        'total_deaths': None,
        'new_deaths': [None] * 9,
    })
    view = metrics.moving_average(DataProcessor().load_deaths(raw))
    avg = view['new_cases_7day_avg']
    # First row averages over itself only
    assert avg.iloc[0] == 7.0
    assert avg.iloc[1] == 10.5
    # Missing values are skipped, not counted as zero
    assert avg.iloc[2] == 10.5
    assert avg.iloc[6] == pytest.approx(42 / 6)
    # Full window slides: rows 2..8 hold None, 21, 0, 0, 0, 7, 'x'
    assert avg.iloc[8] == pytest.approx(28 / 5)
    # All-missing windows stay null
    assert view['new_deaths_7day_avg'].isna().all()


def test_moving_average_resets_per_location(make_deaths):
    deaths = make_deaths([('A', '2021-01-01', 1, 0, 0), ('B', '2021-01-01', 1, 0, 0)])
    deaths['new_cases'] = [10, 30]
    view = metrics.moving_average(deaths, window=3)
    assert view['new_cases_3day_avg'].tolist() == [10.0, 30.0]


# === Latest snapshots and rankings ===

def test_latest_snapshot_picks_max_date_first_in_input_order(make_deaths):
    deaths = make_deaths([
        ('A', '2021-01-02', 100, 5, 1),
        ('A', '2021-01-03', 100, 7, 1),
        ('A', '2021-01-03', 100, 9, 2),
        ('B', None, 100, 3, 0),
        ('B', '2021-01-01', 100, 2, 0),
    ])
    latest = metrics.latest_snapshot(deaths)
    assert latest['location'].tolist() == ['A', 'B']
    assert latest['total_cases'].tolist() == [7, 2]


def test_latest_infection_and_death_percentage(deaths):
    infection = metrics.latest_infection_rate(deaths)
    assert infection['location'].tolist() == ['Testland', 'Otherland']
    assert infection['percent_population_infected'].tolist() == pytest.approx([20.0, 2.0])
    assert infection['latest_date'].iloc[0] == pd.Timestamp('2021-01-03')

    death_pct = metrics.latest_death_percentage(deaths)
    # Testland's latest total_deaths is missing, so it ranks last
    assert death_pct['location'].tolist() == ['Otherland', 'Testland']
    assert death_pct['death_percentage'].iloc[0] == pytest.approx(10.0)
    assert np.isnan(death_pct['death_percentage'].iloc[1])


def test_infection_and_death_rankings(deaths):
    infection = metrics.infection_rate_ranking(deaths)
    assert infection['location'].tolist() == ['Testland', 'Otherland']
    assert infection['highest_infection_count'].tolist() == [200.0, 40.0]

    death_counts = metrics.death_count_ranking(deaths)
    assert death_counts.set_index('location')['total_death_count'].to_dict() == {'Testland': 20.0, 'Otherland': 4.0}


def test_continent_summary(deaths):
    summary = metrics.continent_summary(deaths)
    assert summary['continent'].tolist() == ['Europe', 'Asia']
    assert summary['total_deaths'].tolist() == [20.0, 4.0]


def test_vaccination_trend(deaths, vaccinations):
    enriched = metrics.percent_population_vaccinated(
        metrics.rolling_doses(join_deaths_vaccinations(deaths, vaccinations))
    )
    trend = metrics.vaccination_trend(enriched, 'Testland')
    assert trend['percent_population_vaccinated'].tolist() == [0.0, 5.0, 8.0]
    latest = metrics.latest_vaccination(enriched)
    assert latest['location'].tolist() == ['Testland', 'Otherland']
    assert latest['rolling_doses'].tolist() == [80.0, 0.0]

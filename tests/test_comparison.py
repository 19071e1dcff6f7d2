import asyncio
import math

import pandas as pd
import pytest

from henrisim.comparison import (
    WEATHER_COLUMNS,
    comfort_significance,
    recovery_time,
    run_comparison,
    run_comparison_sync,
    synthesize_weather,
)


def walk_numbers(obj):
    if isinstance(obj, dict):
        for value in obj.values():
            yield from walk_numbers(value)
    elif isinstance(obj, (int, float)):
        yield obj


@pytest.fixture(scope="module")
def comparison():
    return run_comparison_sync(3, seed=1)


def test_synthesize_weather_shape():
    weather = synthesize_weather(2, seed=3)
    assert len(weather) == 48
    assert list(weather.columns) == ["day", "hour"] + WEATHER_COLUMNS
    assert weather["hour"].tolist() == list(range(24)) * 2
    assert (weather["solar_radiation"] >= 0).all()
    assert weather["humidity"].between(0.2, 0.95).all()


def test_synthesize_weather_seeded():
    pd.testing.assert_frame_equal(synthesize_weather(1, seed=9), synthesize_weather(1, seed=9))
    assert not synthesize_weather(1, seed=9).equals(synthesize_weather(1, seed=10))


def test_synthesize_weather_seasons():
    summer = synthesize_weather(1, start_day_of_year=200, seed=0)
    winter = synthesize_weather(1, start_day_of_year=20, seed=0)
    assert summer["temperature"].mean() > winter["temperature"].mean()


def test_recovery_time():
    assert recovery_time([90, 70, 70, 85, 60]) == pytest.approx(1.5)
    assert recovery_time([95, 90]) == 0.0
    assert recovery_time([]) == 0.0


def test_runs_cover_every_day(comparison):
    assert [m.day for m in comparison.baseline] == [0, 1, 2]
    assert [m.day for m in comparison.henri] == [0, 1, 2]
    assert len(comparison.daily_frame()) == 6


def test_baseline_never_adapts(comparison):
    assert comparison.metrics["adaptive_actions"]["baseline"] == 0
    assert all(m.adaptive_actions == 0 for m in comparison.baseline)


def test_metrics_are_finite(comparison):
    numbers = list(walk_numbers(comparison.metrics))
    assert numbers
    assert all(math.isfinite(n) for n in numbers)


def test_metrics_structure(comparison):
    assert set(comparison.metrics) == {
        "energy_consumption", "energy_cost", "comfort_hours", "comfort_stability",
        "recovery_time", "adaptive_actions", "energy_efficiency", "co2_savings",
    }
    energy = comparison.metrics["energy_consumption"]
    assert energy["savings"] == pytest.approx(energy["baseline"] - energy["henri"])


def test_daily_metrics_bounds(comparison):
    for m in comparison.baseline + comparison.henri:
        assert 0 <= m.min_comfort <= m.average_comfort <= m.max_comfort <= 100
        assert 0 <= m.hours_above_90 <= m.hours_above_80 <= 24
        assert m.comfort_variance >= 0
        assert m.cost >= 0


def test_significance(comparison):
    assert comparison.significance["days"] == 3
    p_value = comparison.significance["p_value"]
    assert p_value is None or 0.0 <= p_value <= 1.0


def test_significance_needs_two_days(comparison):
    result = comfort_significance(comparison.baseline[:1], comparison.henri[:1])
    assert result["p_value"] is None


def test_same_weather_for_both_runs():
    weather = synthesize_weather(1, seed=4)
    result = run_comparison_sync(1, weather=weather)
    pd.testing.assert_frame_equal(result.weather, weather)


def test_runs_inside_event_loop():
    async def main():
        return await run_comparison(1, seed=2, yield_every_hours=1)

    result = asyncio.run(main())
    assert len(result.henri) == 1

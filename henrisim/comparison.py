"""Multi-day baseline vs Henri comparison.

Both runs see the same synthesized weather. The baseline engine is pinned to
`normal` mode for the whole run; the Henri engine adapts freely.
"""
from __future__ import annotations

import asyncio
import logging
import math
import warnings
from dataclasses import dataclass, asdict, field

import numpy as np
import pandas as pd
from scipy import stats

from .config import SimulationConfiguration
from .constants import DEFAULT_COST_PER_KWH, GRID_CO2_KG_PER_KWH
from .decision_engine import NORMAL
from .simulation import SimulationEngine

_LOGGER = logging.getLogger(__name__)

COMFORT_HIGH = 90
COMFORT_OK = 80
DEFAULT_START_DAY = 172   # summer solstice
DEFAULT_YIELD_EVERY_HOURS = 6

WEATHER_COLUMNS = ["temperature", "humidity", "solar_radiation", "air_quality_index", "wind_speed"]


@dataclass(frozen=True)
class DailyMetrics:
    day: int
    energy_consumed: float      # kWh
    energy_produced: float      # kWh
    net_grid_energy: float      # kWh, negative = export
    average_comfort: float
    min_comfort: int
    max_comfort: int
    hours_above_90: int
    hours_above_80: int
    comfort_variance: float     # population variance of the hourly scores
    recovery_time: float        # hours, mean over drop episodes
    min_temperature: float
    max_temperature: float
    adaptive_actions: int       # mode changes
    cost: float
    co2: float                  # kg


@dataclass
class ComparisonResult:
    baseline: list
    henri: list
    metrics: dict
    significance: dict
    weather: pd.DataFrame = field(repr=False, default=None)

    def daily_frame(self) -> pd.DataFrame:
        rows = [dict(asdict(m), run="baseline") for m in self.baseline]
        rows += [dict(asdict(m), run="henri") for m in self.henri]
        return pd.DataFrame(rows)


def synthesize_weather(days, start_day_of_year=DEFAULT_START_DAY, seed=0) -> pd.DataFrame:
    """Hourly outdoor conditions: seasonal + diurnal sinusoids with bounded seeded jitter."""
    rng = np.random.default_rng(seed)
    n = int(days) * 24
    index = np.arange(n)
    day = index // 24
    hour = index % 24
    day_of_year = (start_day_of_year - 1 + day) % 365 + 1

    # +1 in late July, -1 in late January
    seasonal = np.cos(2 * np.pi * (day_of_year - 200) / 365)

    temperature = (10 + 12 * seasonal
                   + 7 * np.sin((hour - 9) / 24 * 2 * np.pi)
                   + rng.uniform(-2.0, 2.0, n))

    daylight = np.clip(np.sin((hour - 6) / 12 * np.pi), 0, None)
    peak_radiation = 650 + 300 * seasonal
    solar_radiation = np.clip(peak_radiation * daylight * (1 + rng.uniform(-0.15, 0.15, n)), 0, None)

    humidity = np.clip(0.55 - 0.01 * (temperature - 15) + rng.uniform(-0.05, 0.05, n), 0.2, 0.95)
    air_quality_index = np.clip(55 + 15 * np.sin((hour - 8) * 0.5) + rng.uniform(-10, 10, n), 20, None)
    wind_speed = np.clip(2 + 1.5 * np.sin(hour * 0.3) + rng.uniform(-0.5, 0.5, n), 0, None)

    return pd.DataFrame({
        "day": day,
        "hour": hour,
        "temperature": np.round(temperature, 1),
        "humidity": np.round(humidity, 2),
        "solar_radiation": np.round(solar_radiation),
        "air_quality_index": np.round(air_quality_index),
        "wind_speed": np.round(wind_speed, 1),
    })


def recovery_time(scores, threshold=COMFORT_OK) -> float:
    """Mean hours from dropping below `threshold` until back at or above it.

    An episode still open at the end of the series counts until the end.
    """
    episodes = []
    start = None
    for i, score in enumerate(scores):
        if score < threshold and start is None:
            start = i
        elif score >= threshold and start is not None:
            episodes.append(i - start)
            start = None
    if start is not None:
        episodes.append(len(scores) - start)
    return float(np.mean(episodes)) if episodes else 0.0


def _daily_metrics(day, scores, temps, consumed, produced, net, actions, cost_per_kwh, co2_per_kwh):
    scores = np.asarray(scores, dtype=float)
    grid_import = float(np.clip(np.asarray(net, dtype=float), 0, None).sum())
    return DailyMetrics(
        day=day,
        energy_consumed=float(np.sum(consumed)),
        energy_produced=float(np.sum(produced)),
        net_grid_energy=float(np.sum(net)),
        average_comfort=float(scores.mean()),
        min_comfort=int(scores.min()),
        max_comfort=int(scores.max()),
        hours_above_90=int((scores >= COMFORT_HIGH).sum()),
        hours_above_80=int((scores >= COMFORT_OK).sum()),
        comfort_variance=float(np.var(scores)),
        recovery_time=recovery_time(scores),
        min_temperature=float(np.min(temps)),
        max_temperature=float(np.max(temps)),
        adaptive_actions=int(actions),
        cost=grid_import * cost_per_kwh,
        co2=grid_import * co2_per_kwh,
    )


async def _simulate_run(label, weather, configuration, adaptive, cost_per_kwh, co2_per_kwh,
                        yield_every_hours):
    engine = SimulationEngine(configuration)
    engine.register_default_modules()
    if not adaptive:
        engine.force_mode(NORMAL)

    days = []
    for day, frame in weather.groupby("day", sort=True):
        scores, temps, consumed, produced, net = [], [], [], [], []
        changes_before = engine.decision_engine.mode_changes
        for row in frame.itertuples(index=False):
            engine.advance_with_conditions(int(row.hour), {c: float(getattr(row, c)) for c in WEATHER_COLUMNS})
            energy = engine.state.energy
            scores.append(engine.state.comfort_score)
            temps.append(engine.state.indoor.temperature)
            consumed.append(energy.consumed_kwh)
            produced.append(energy.solar_kwh)
            net.append(energy.net_kwh)
            if yield_every_hours and (int(row.hour) + 1) % yield_every_hours == 0:
                await asyncio.sleep(0)

        actions = engine.decision_engine.mode_changes - changes_before
        metrics = _daily_metrics(int(day), scores, temps, consumed, produced, net, actions,
                                 cost_per_kwh, co2_per_kwh)
        _LOGGER.debug("%s day %d: comfort %.1f, energy %.2f kWh, %d mode changes",
                      label, metrics.day, metrics.average_comfort, metrics.energy_consumed, actions)
        days.append(metrics)
    return days


def _finite(value) -> float:
    value = float(value)
    return value if math.isfinite(value) else 0.0


def _percent(part, whole) -> float:
    return _finite(part / whole * 100) if whole else 0.0


def compare_metrics(baseline, henri) -> dict:
    def total(run, attr):
        return _finite(sum(getattr(m, attr) for m in run))

    def mean(run, attr):
        return _finite(np.mean([getattr(m, attr) for m in run])) if run else 0.0

    b_energy, h_energy = total(baseline, "energy_consumed"), total(henri, "energy_consumed")
    b_cost, h_cost = total(baseline, "cost"), total(henri, "cost")
    b_hours, h_hours = total(baseline, "hours_above_80"), total(henri, "hours_above_80")
    b_var, h_var = mean(baseline, "comfort_variance"), mean(henri, "comfort_variance")
    b_rec, h_rec = mean(baseline, "recovery_time"), mean(henri, "recovery_time")
    b_co2, h_co2 = total(baseline, "co2"), total(henri, "co2")
    b_eff = _finite(b_hours / b_energy) if b_energy else 0.0
    h_eff = _finite(h_hours / h_energy) if h_energy else 0.0

    return {
        "energy_consumption": {
            "baseline": b_energy, "henri": h_energy,
            "savings": b_energy - h_energy, "savings_percent": _percent(b_energy - h_energy, b_energy),
        },
        "energy_cost": {"baseline": b_cost, "henri": h_cost, "savings": b_cost - h_cost},
        "comfort_hours": {
            "baseline": b_hours, "henri": h_hours,
            "improvement": h_hours - b_hours, "improvement_percent": _percent(h_hours - b_hours, b_hours),
        },
        "comfort_stability": {"baseline": b_var, "henri": h_var, "improvement": b_var - h_var},
        "recovery_time": {"baseline": b_rec, "henri": h_rec, "improvement": b_rec - h_rec},
        "adaptive_actions": {
            "baseline": int(sum(m.adaptive_actions for m in baseline)),
            "henri": int(sum(m.adaptive_actions for m in henri)),
        },
        # comfort hours per kWh
        "energy_efficiency": {
            "baseline": b_eff, "henri": h_eff, "improvement_percent": _percent(h_eff - b_eff, b_eff),
        },
        "co2_savings": {"baseline": b_co2, "henri": h_co2, "savings": b_co2 - h_co2},
    }


def comfort_significance(baseline, henri) -> dict:
    """Paired t-test on daily average comfort. p_value is None when undefined."""
    b = np.array([m.average_comfort for m in baseline], dtype=float)
    h = np.array([m.average_comfort for m in henri], dtype=float)
    if len(b) < 2 or len(b) != len(h):
        return {"statistic": None, "p_value": None, "days": len(b)}
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        result = stats.ttest_rel(h, b)
    statistic, p_value = float(result.statistic), float(result.pvalue)
    return {
        "statistic": statistic if math.isfinite(statistic) else None,
        "p_value": p_value if math.isfinite(p_value) else None,
        "days": len(b),
    }


async def run_comparison(days=3, configuration: SimulationConfiguration | None = None, seed=0,
                         start_day_of_year=DEFAULT_START_DAY, weather: pd.DataFrame | None = None,
                         cost_per_kwh=DEFAULT_COST_PER_KWH, co2_per_kwh=GRID_CO2_KG_PER_KWH,
                         yield_every_hours=DEFAULT_YIELD_EVERY_HOURS) -> ComparisonResult:
    if weather is None:
        weather = synthesize_weather(days, start_day_of_year=start_day_of_year, seed=seed)
    configuration = configuration or SimulationConfiguration()

    _LOGGER.info("Running %d-day comparison (seed %s)", days, seed)
    baseline = await _simulate_run("baseline", weather, configuration, False,
                                   cost_per_kwh, co2_per_kwh, yield_every_hours)
    henri = await _simulate_run("henri", weather, configuration, True,
                                cost_per_kwh, co2_per_kwh, yield_every_hours)

    return ComparisonResult(
        baseline=baseline,
        henri=henri,
        metrics=compare_metrics(baseline, henri),
        significance=comfort_significance(baseline, henri),
        weather=weather,
    )


def run_comparison_sync(days=3, **kwargs) -> ComparisonResult:
    return asyncio.run(run_comparison(days, **kwargs))

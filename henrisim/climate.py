"""Hourly outdoor conditions from a city profile, a seasonal date and the hour.

Two models are available:
  - `ClimateGenerator.generate`: the enhanced model (solar geometry + city profile)
  - `legacy_climate`: the original fixed Denver-summer approximation, used as a
    degraded-mode fallback whenever the enhanced model cannot run.
"""
from __future__ import annotations

import logging
import math
import zlib
from dataclasses import dataclass

import numpy as np

from .catalog import DEFAULT_CATALOG, Catalog
from .constants import SOLAR_CONSTANT
from .errors import ClimateError

_LOGGER = logging.getLogger(__name__)

DENVER_LATITUDE = 39.74
BASE_TRANSMISSION = 0.78
ALTITUDE_BONUS = 1.1

# Denver sky conditions: (clear probability, partly-cloudy probability)
DENVER_SKY = {"winter": (0.7, 0.2)}
DENVER_SKY_DEFAULT = (0.8, 0.15)
CLOUD_CLEAR = 0.95
CLOUD_PARTLY = 0.7
CLOUD_OVERCAST = 0.3


@dataclass
class EnhancedClimateData:
    hour: int
    temperature: float
    humidity: float
    solar_radiation: float
    air_quality_index: float
    wind_speed: float
    solar_elevation: float
    day_length: float
    season: str
    city_id: str
    seasonal_date: str


def get_season(day_of_year: int) -> str:
    if day_of_year >= 355 or day_of_year <= 60:
        return "winter"
    if 61 <= day_of_year <= 152:
        return "spring"
    if 153 <= day_of_year <= 244:
        return "summer"
    return "fall"


def calculate_solar_elevation(latitude, hour, solar_declination) -> float:
    """Solar elevation (degrees, >= 0) at the given local solar hour."""
    lat_rad = math.radians(latitude)
    decl_rad = math.radians(solar_declination)
    hour_angle = math.radians((hour - 12) * 15)

    sin_elev = (math.sin(lat_rad) * math.sin(decl_rad)
                + math.cos(lat_rad) * math.cos(decl_rad) * math.cos(hour_angle))
    elevation = math.asin(max(-1.0, min(1.0, sin_elev)))
    return max(0.0, math.degrees(elevation))


def calculate_day_length(latitude, solar_declination) -> float:
    """Hours of daylight, saturating to 0 (polar night) or 24 (polar day)."""
    cos_hour_angle = -math.tan(math.radians(latitude)) * math.tan(math.radians(solar_declination))
    if cos_hour_angle > 1:
        return 0.0
    if cos_hour_angle < -1:
        return 24.0
    hour_angle = math.acos(cos_hour_angle)
    return round(2 * hour_angle * 12 / math.pi, 1)


def cloud_factor(latitude, season, hour, day=0, seed=0) -> float:
    """Cloud attenuation factor.

    Sites at Denver's latitude draw clear/partly cloudy/overcast from a
    deterministic generator keyed on (seed, latitude, season, day, hour);
    everywhere else uses a latitude-based average cloudiness.
    """
    if abs(latitude - DENVER_LATITUDE) < 1:
        clear_p, partly_p = DENVER_SKY.get(season, DENVER_SKY_DEFAULT)
        key = zlib.crc32(f"{latitude:.2f}|{season}|{day}|{hour}".encode())
        rng = np.random.default_rng([int(seed), key])
        bucket = int(rng.integers(0, 10))
        if bucket < clear_p * 10:
            return CLOUD_CLEAR
        if bucket < (clear_p + partly_p) * 10:
            return CLOUD_PARTLY
        return CLOUD_OVERCAST

    base_cloudiness = 0.2 + 0.3 * math.sin(latitude / 180 * math.pi)
    return 1 - base_cloudiness * 0.6


def calculate_solar_radiation(solar_elevation, latitude, season, air_quality, clouds=1.0) -> float:
    """Global horizontal irradiance (W/m²) after atmospheric and cloud attenuation."""
    if solar_elevation <= 0:
        return 0.0

    elevation_factor = math.sin(math.radians(solar_elevation))
    air_mass = 1 / (elevation_factor + 0.01)

    # Denver sits at 1600 m: clearer air
    altitude_bonus = ALTITUDE_BONUS if abs(latitude - DENVER_LATITUDE) < 1 else 1.0
    transmission = BASE_TRANSMISSION ** air_mass * altitude_bonus

    aqi_factor = max(0.5, 1 - (air_quality - 50) / 300)

    if season == "winter":
        seasonal_factor = 0.95
    elif season == "summer":
        seasonal_factor = 1.0
    else:
        seasonal_factor = 0.98

    radiation = (SOLAR_CONSTANT * elevation_factor * transmission
                 * aqi_factor * seasonal_factor * clouds)
    return float(round(max(0.0, radiation)))


class ClimateGenerator:
    """Deterministic enhanced climate model over a city/seasonal-date catalog."""

    def __init__(self, catalog: Catalog | None = None, seed: int = 0):
        self.catalog = catalog or DEFAULT_CATALOG
        self.seed = seed

    def generate(self, city_id, seasonal_date_id, hour, day=0) -> EnhancedClimateData:
        city = self.catalog.get_city(city_id)
        seasonal_date = self.catalog.get_seasonal_date(seasonal_date_id)
        if city is None or seasonal_date is None:
            raise ClimateError(f"Invalid city ({city_id}) or seasonal date ({seasonal_date_id})")

        climate = city.climate
        season = get_season(seasonal_date.day_of_year)
        t_min, t_max = climate.temp_range(season)
        base_humidity = climate.humidity(season)

        # Continental climates swing further than the seasonal mean range
        daily_range = (t_max - t_min) * (1 + climate.continentality * 0.3)

        # Sinusoid peaking at 12:00
        temp_phase = (hour - 6) / 24 * 2 * math.pi
        temperature = t_min + daily_range / 2 * (1 + math.sin(temp_phase))

        humidity_variation = (temperature - t_min) / daily_range if daily_range else 0.0
        humidity = base_humidity - humidity_variation * 0.2 * (1 - climate.maritime_influence)

        solar_elevation = calculate_solar_elevation(city.lat, hour, seasonal_date.solar_declination)
        day_length = calculate_day_length(city.lat, seasonal_date.solar_declination)

        base_aqi = climate.aqi_typical + climate.pollution_level * 30
        hourly_variation = math.sin((hour - 8) * 0.5) * climate.aqi_variation
        air_quality_index = max(20.0, base_aqi + hourly_variation)

        clouds = cloud_factor(city.lat, season, hour, day=day, seed=self.seed)
        solar_radiation = calculate_solar_radiation(
            solar_elevation, city.lat, season, air_quality_index, clouds
        )

        wind_speed = 2 + math.sin(hour * 0.3) * 3 * (1 - climate.maritime_influence)

        if hour == 12:
            _LOGGER.debug(
                "%s %s noon: elevation %.1f°, day length %.1f h, AQI %.0f, radiation %.0f W/m²",
                city.name, seasonal_date.name, solar_elevation, day_length,
                air_quality_index, solar_radiation,
            )

        return EnhancedClimateData(
            hour=hour,
            temperature=round(temperature, 1),
            humidity=max(0.2, min(0.95, round(humidity, 2))),
            solar_radiation=solar_radiation,
            air_quality_index=float(round(air_quality_index)),
            wind_speed=round(wind_speed, 1),
            solar_elevation=round(solar_elevation, 1),
            day_length=day_length,
            season=season,
            city_id=city_id,
            seasonal_date=seasonal_date.date,
        )


def legacy_climate(hour) -> dict:
    """Fixed Denver summer-day approximation (degraded mode)."""
    base_temp = 25  # °C
    temp_range = 15

    # Sinusoid peaking at 12:00
    temp_phase = (hour - 6) / 24 * 2 * math.pi
    temperature = base_temp + (temp_range / 2) * math.sin(temp_phase)

    humidity = 0.6 - (temperature - 15) * 0.01

    solar_radiation = 0.0
    if 6 <= hour <= 18:
        solar_phase = (hour - 6) / 12 * math.pi
        solar_radiation = 1000 * math.sin(solar_phase)

    air_quality_index = 50 + math.sin(hour * 0.5) * 10

    return {
        "temperature": round(temperature, 1),
        "humidity": round(humidity, 2),
        "solar_radiation": float(round(solar_radiation)),
        "air_quality_index": float(round(air_quality_index)),
        "wind_speed": 2.0,
    }

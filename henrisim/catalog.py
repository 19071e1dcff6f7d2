"""Static city and seasonal-date catalog consumed by the climate generator."""
from __future__ import annotations

import json
import re
from dataclasses import dataclass

from .errors import ConfigurationError


@dataclass(frozen=True)
class ClimateProfile:
    winter_temp: tuple[float, float]   # (min, max) °C
    spring_temp: tuple[float, float]
    summer_temp: tuple[float, float]
    fall_temp: tuple[float, float]
    winter_humidity: float
    spring_humidity: float
    summer_humidity: float
    fall_humidity: float
    aqi_typical: float
    aqi_variation: float
    continentality: float      # 0-1, daily temperature swing
    maritime_influence: float  # 0-1, moderation of humidity swing
    pollution_level: float     # 0-1, AQI baseline offset

    def temp_range(self, season: str) -> tuple[float, float]:
        return getattr(self, f"{season}_temp", self.summer_temp)

    def humidity(self, season: str) -> float:
        return getattr(self, f"{season}_humidity", self.summer_humidity)


@dataclass(frozen=True)
class City:
    id: str
    name: str
    country: str
    lat: float
    lon: float
    timezone: str
    climate: ClimateProfile


@dataclass(frozen=True)
class SeasonalDate:
    id: str
    name: str
    date: str
    description: str
    day_of_year: int
    solar_declination: float  # degrees


SEASONAL_DATES = [
    SeasonalDate("winter-solstice", "Winter Solstice", "2024-12-21",
                 "Shortest day of the year - minimal solar gain", 355, -23.44),
    SeasonalDate("spring-equinox", "Spring Equinox", "2024-03-20",
                 "Equal day and night - moderate solar gain", 79, 0.0),
    SeasonalDate("summer-solstice", "Summer Solstice", "2024-06-21",
                 "Longest day of the year - maximum solar gain", 172, 23.44),
    SeasonalDate("fall-equinox", "Fall Equinox", "2024-09-22",
                 "Equal day and night - moderate solar gain", 266, 0.0),
]


def _city(id, name, country, lat, lon, tz, temps, humidity, aqi, continentality, maritime, pollution):
    return City(id, name, country, lat, lon, tz, ClimateProfile(
        winter_temp=temps[0], spring_temp=temps[1], summer_temp=temps[2], fall_temp=temps[3],
        winter_humidity=humidity[0], spring_humidity=humidity[1],
        summer_humidity=humidity[2], fall_humidity=humidity[3],
        aqi_typical=aqi[0], aqi_variation=aqi[1],
        continentality=continentality, maritime_influence=maritime, pollution_level=pollution,
    ))


# temps: winter, spring, summer, fall (min, max); humidity in the same order
CITIES = [
    _city("san-francisco", "San Francisco", "USA", 37.77, -122.42, "America/Los_Angeles",
          [(8, 15), (11, 18), (13, 22), (12, 20)], [0.75, 0.7, 0.65, 0.7], (45, 15), 0.1, 0.9, 0.3),
    _city("denver", "Denver", "USA", 39.74, -104.99, "America/Denver",
          [(-8, 7), (2, 18), (15, 30), (3, 20)], [0.45, 0.5, 0.4, 0.45], (45, 15), 0.8, 0.1, 0.2),
    _city("los-angeles", "Los Angeles", "USA", 34.05, -118.24, "America/Los_Angeles",
          [(9, 20), (13, 24), (18, 28), (15, 26)], [0.65, 0.6, 0.55, 0.6], (65, 25), 0.3, 0.6, 0.6),
    _city("chicago", "Chicago", "USA", 41.88, -87.63, "America/Chicago",
          [(-9, 0), (4, 17), (18, 29), (6, 18)], [0.7, 0.65, 0.6, 0.65], (70, 20), 0.7, 0.2, 0.5),
    _city("new-york", "New York", "USA", 40.71, -74.01, "America/New_York",
          [(-3, 6), (8, 19), (20, 29), (10, 20)], [0.65, 0.6, 0.65, 0.6], (60, 20), 0.5, 0.4, 0.5),
    _city("miami", "Miami", "USA", 25.76, -80.19, "America/New_York",
          [(15, 24), (20, 28), (24, 32), (21, 29)], [0.75, 0.7, 0.8, 0.75], (40, 15), 0.1, 0.9, 0.3),
    _city("dallas", "Dallas", "USA", 32.78, -96.8, "America/Chicago",
          [(2, 15), (12, 26), (24, 36), (13, 27)], [0.6, 0.65, 0.55, 0.6], (75, 25), 0.7, 0.1, 0.6),
    _city("london", "London", "UK", 51.51, -0.13, "Europe/London",
          [(2, 8), (6, 15), (12, 22), (7, 16)], [0.85, 0.75, 0.7, 0.8], (55, 20), 0.2, 0.8, 0.4),
    _city("frankfurt", "Frankfurt", "Germany", 50.11, 8.68, "Europe/Berlin",
          [(-1, 4), (5, 17), (14, 25), (6, 16)], [0.8, 0.7, 0.65, 0.75], (50, 15), 0.4, 0.5, 0.4),
]


class Catalog:
    """Lookup over cities and seasonal dates."""

    def __init__(self, cities=None, seasonal_dates=None):
        self.cities = {c.id: c for c in (cities if cities is not None else CITIES)}
        self.seasonal_dates = {d.id: d for d in (seasonal_dates if seasonal_dates is not None else SEASONAL_DATES)}

    def get_city(self, city_id: str) -> City | None:
        return self.cities.get(city_id)

    def get_seasonal_date(self, seasonal_date_id: str) -> SeasonalDate | None:
        return self.seasonal_dates.get(seasonal_date_id)

    def require_city(self, city_id: str) -> City:
        city = self.get_city(city_id)
        if city is None:
            raise ConfigurationError(
                f"Unknown city '{city_id}'. Options: {', '.join(sorted(self.cities))}"
            )
        return city

    def require_seasonal_date(self, seasonal_date_id: str) -> SeasonalDate:
        seasonal_date = self.get_seasonal_date(seasonal_date_id)
        if seasonal_date is None:
            raise ConfigurationError(
                f"Unknown seasonal date '{seasonal_date_id}'. "
                f"Options: {', '.join(sorted(self.seasonal_dates))}"
            )
        return seasonal_date

    @classmethod
    def from_json(cls, json_path: str) -> "Catalog":
        """Load an alternative catalog. Cities use the same keys as the built-in table."""
        with open(json_path, 'r') as f:
            # Support // comments
            content = re.sub(r'//.*', '', f.read())
            data = json.loads(content)

        try:
            cities = [
                _city(c['id'], c['name'], c.get('country', ''), c['lat'], c['lon'],
                      c.get('timezone', 'UTC'),
                      [tuple(t) for t in c['temps']], c['humidity'], tuple(c['aqi']),
                      c['continentality'], c['maritime_influence'], c['pollution_level'])
                for c in data.get('cities', [])
            ]
            dates = [
                SeasonalDate(d['id'], d['name'], d['date'], d.get('description', ''),
                             d['day_of_year'], d['solar_declination'])
                for d in data.get('seasonal_dates', [])
            ]
        except KeyError as e:
            raise ConfigurationError(f"Missing required key in catalog {json_path}: {e}") from e
        return cls(cities or None, dates or None)


DEFAULT_CATALOG = Catalog()

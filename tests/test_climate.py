import pytest

from henrisim.catalog import CITIES, SEASONAL_DATES, Catalog
from henrisim.climate import (
    ClimateGenerator,
    calculate_day_length,
    calculate_solar_elevation,
    calculate_solar_radiation,
    cloud_factor,
    get_season,
    legacy_climate,
)
from henrisim.errors import ClimateError, ConfigurationError


@pytest.mark.parametrize("day,season", [
    (1, "winter"), (60, "winter"), (355, "winter"), (365, "winter"),
    (61, "spring"), (152, "spring"),
    (153, "summer"), (244, "summer"),
    (245, "fall"), (354, "fall"),
])
def test_get_season(day, season):
    assert get_season(day) == season


def test_solar_elevation_zero_at_night():
    assert calculate_solar_elevation(40.0, 0, 23.44) == 0.0


def test_solar_elevation_overhead_at_equator_equinox():
    assert calculate_solar_elevation(0.0, 12, 0.0) == pytest.approx(90.0)


def test_day_length():
    assert calculate_day_length(0.0, 23.44) == pytest.approx(12.0)
    assert calculate_day_length(80.0, 23.44) == 24.0
    assert calculate_day_length(80.0, -23.44) == 0.0
    assert calculate_day_length(51.5, 23.44) > calculate_day_length(51.5, -23.44)


def test_no_radiation_below_horizon():
    assert calculate_solar_radiation(0.0, 40.0, "summer", 50.0) == 0.0


def test_radiation_reduced_by_air_quality():
    clean = calculate_solar_radiation(60.0, 51.5, "summer", 50.0)
    smoggy = calculate_solar_radiation(60.0, 51.5, "summer", 200.0)
    assert smoggy < clean


def test_cloud_factor_deterministic_per_seed():
    values = [cloud_factor(39.74, "summer", h, day=3, seed=11) for h in range(24)]
    again = [cloud_factor(39.74, "summer", h, day=3, seed=11) for h in range(24)]
    assert values == again
    assert set(values) <= {0.95, 0.7, 0.3}


def test_cloud_factor_latitude_average_elsewhere():
    assert cloud_factor(51.51, "winter", 12) == cloud_factor(51.51, "winter", 13)


def test_generate_is_deterministic():
    a = ClimateGenerator(seed=5).generate("denver", "summer-solstice", 12, day=2)
    b = ClimateGenerator(seed=5).generate("denver", "summer-solstice", 12, day=2)
    assert a == b


def test_generate_unknown_city_raises():
    with pytest.raises(ClimateError):
        ClimateGenerator().generate("atlantis", "summer-solstice", 12)


def test_generate_unknown_date_raises():
    with pytest.raises(ClimateError):
        ClimateGenerator().generate("denver", "christmas", 12)


def test_generated_values_in_range():
    generator = ClimateGenerator()
    for city in CITIES:
        for seasonal_date in SEASONAL_DATES:
            for hour in range(24):
                data = generator.generate(city.id, seasonal_date.id, hour)
                assert 0.2 <= data.humidity <= 0.95
                assert data.air_quality_index >= 20
                assert data.solar_radiation >= 0
                assert data.solar_elevation >= 0


def test_winter_night_is_dark_and_cold():
    data = ClimateGenerator().generate("london", "winter-solstice", 0)
    summer = ClimateGenerator().generate("london", "summer-solstice", 0)
    assert data.solar_radiation == 0
    assert data.season == "winter"
    assert data.temperature < summer.temperature


def test_legacy_climate():
    assert legacy_climate(12)["temperature"] == 32.5
    assert legacy_climate(0)["temperature"] == 17.5
    assert legacy_climate(3)["solar_radiation"] == 0.0
    assert legacy_climate(12)["solar_radiation"] == 1000.0


def test_catalog_lookups():
    catalog = Catalog()
    assert catalog.get_city("nowhere") is None
    assert catalog.require_city("miami").country == "USA"
    with pytest.raises(ConfigurationError):
        catalog.require_seasonal_date("midsummer")


def test_catalog_from_json(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text("""{
        // single custom site
        "cities": [{
            "id": "oslo", "name": "Oslo", "lat": 59.91, "lon": 10.75,
            "temps": [[-7, -1], [1, 10], [12, 22], [3, 10]],
            "humidity": [0.85, 0.7, 0.7, 0.8],
            "aqi": [40, 10],
            "continentality": 0.5, "maritime_influence": 0.4, "pollution_level": 0.2
        }]
    }""")
    catalog = Catalog.from_json(str(path))
    assert list(catalog.cities) == ["oslo"]
    # Built-in seasonal dates are kept when the file has none
    assert "winter-solstice" in catalog.seasonal_dates
    data = ClimateGenerator(catalog).generate("oslo", "winter-solstice", 12)
    assert data.city_id == "oslo"


def test_catalog_from_json_missing_key(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text('{"cities": [{"id": "oslo"}]}')
    with pytest.raises(ConfigurationError):
        Catalog.from_json(str(path))

import math

from .state import HouseState

COMFORT_TEMP_BAND = 2.0          # °C either side of target
TEMP_PENALTY_PER_DEGREE = 5.0
TEMP_PENALTY_CAP = 30.0
HUMIDITY_BAND = (30.0, 60.0)     # % RH
HUMIDITY_MIDPOINT = 45.0
HUMIDITY_PENALTY_PER_POINT = 0.5
HUMIDITY_PENALTY_CAP = 20.0
AIR_QUALITY_GOOD = 0.8
AIR_QUALITY_PENALTY = 50.0
SMOKE_PENALTY = 50.0
SPRINKLER_PENALTY = 20.0


def calculate_comfort_score(state: HouseState, target_temperature: float) -> int:
    """Occupant comfort 0-100 from temperature error, humidity, air quality and safety."""
    score = 100.0

    temp_error = abs(state.indoor.temperature - target_temperature)
    if temp_error > COMFORT_TEMP_BAND:
        score -= min(TEMP_PENALTY_CAP, temp_error * TEMP_PENALTY_PER_DEGREE)

    humidity = state.indoor.humidity * 100
    if humidity < HUMIDITY_BAND[0] or humidity > HUMIDITY_BAND[1]:
        score -= min(HUMIDITY_PENALTY_CAP, abs(humidity - HUMIDITY_MIDPOINT) * HUMIDITY_PENALTY_PER_POINT)

    if state.indoor.air_quality < AIR_QUALITY_GOOD:
        score -= (AIR_QUALITY_GOOD - state.indoor.air_quality) * AIR_QUALITY_PENALTY

    if state.safety.smoke_event:
        score -= SMOKE_PENALTY
    if state.safety.sprinklers_active:
        score -= SPRINKLER_PENALTY

    # Half-up rounding
    return int(min(100, max(0, math.floor(score + 0.5))))

"""
Core Physics and Control Constants.
These are independent of any host application and define the simulation defaults.
"""

# Building Envelope Defaults (Passive House family home)
DEFAULT_FLOOR_AREA = 150.0        # m²
DEFAULT_WALL_R = 5.0              # m²·K/W
DEFAULT_ROOF_R = 7.0              # m²·K/W
DEFAULT_FLOOR_R = 4.0             # m²·K/W
DEFAULT_WINDOW_U = 0.8            # W/m²·K (triple glazing)
DEFAULT_WINDOW_AREA = 20.0        # m²
DEFAULT_INFILTRATION_RATE = 0.3   # ACH
DEFAULT_CEILING_HEIGHT = 2.5      # m

# Heat Pump Defaults
DEFAULT_TARGET_TEMP = 21.0        # °C
DEFAULT_HP_COP = 3.5
DEFAULT_HP_CAPACITY_KW = 10.0
DEFAULT_TARGET_TEMP_MIN = 19.0
DEFAULT_TARGET_TEMP_MAX = 22.0

# ERV Defaults
DEFAULT_ERV_EFFICIENCY = 0.7
DEFAULT_ERV_FLOW_RATE = 200.0     # m³/h
DEFAULT_ERV_FAN_POWER = 150.0     # W

# Solar Defaults
DEFAULT_PANEL_AREA = 40.0         # m²
DEFAULT_PANEL_EFFICIENCY = 0.2
DEFAULT_INVERTER_EFFICIENCY = 0.95
DEFAULT_WINDOW_SHGC = 0.4
DEFAULT_WINDOW_ORIENTATION = 1.0  # 1.0 = due south

# Battery Defaults
DEFAULT_BATTERY_CAPACITY = 20.0   # kWh
DEFAULT_BATTERY_CHARGE_RATE = 5.0     # kW
DEFAULT_BATTERY_DISCHARGE_RATE = 5.0  # kW
DEFAULT_BATTERY_EFFICIENCY = 0.9      # round trip
DEFAULT_BATTERY_INITIAL_CHARGE = 10.0  # kWh
BATTERY_DEADBAND_KWH = 0.1

# Occupancy / Internal Gains
DEFAULT_OCCUPANCY = 4
DEFAULT_GAIN_PEOPLE_W = 70.0      # W/person
DEFAULT_GAIN_LIGHTING_W_M2 = 3.0
DEFAULT_GAIN_EQUIPMENT_W_M2 = 5.0

# Thermal Bridges (W/K)
DEFAULT_BRIDGE_FOUNDATION = 8.0
DEFAULT_BRIDGE_BALCONY = 2.0
DEFAULT_BRIDGE_ROOF = 4.0
DEFAULT_BRIDGE_WINDOWS = 6.0

# Simplified Thermal Mass Model
THERMAL_MASS_KWH_PER_M2 = 0.3     # temperature response (kWh/K per m² floor)
HP_SIZING_MASS_KWH_PER_M2 = 0.5   # heat pump demand heuristic
WALL_AREA_FRACTION = 0.6          # wall area as fraction of floor area
HP_DEADBAND = 0.1                 # °C
HP_MAX_ERROR_FRACTION = 0.8       # anti-overshoot: max share of error closed per tick
SOLAR_GAIN_UTILISATION = 0.1      # share of window gain reaching the air

# Air Properties
AIR_DENSITY = 1.2                 # kg/m³
AIR_SPECIFIC_HEAT = 1.005         # kJ/kg·K

# Passive Drift
PASSIVE_SOLAR_THRESHOLD = 200.0   # W/m²
AIR_QUALITY_DECAY_PER_HOUR = 0.02
HUMIDITY_DRIFT_PER_HOUR = 0.1
MAX_BELOW_OUTDOOR = 5.0           # °C

# State Clamps
HUMIDITY_MIN = 0.2
HUMIDITY_MAX = 0.8
AIR_QUALITY_MIN = 0.3
AIR_QUALITY_MAX = 1.0
ERV_MAX_AIR_QUALITY = 0.95

# Henri Mode Thresholds
HIGH_SOLAR_ENTER = 700.0          # W/m²
HIGH_SOLAR_EXIT = 500.0
HIGH_SOLAR_COP = 2.8
HIGH_SOLAR_HINT_BEFORE_HOUR = 16
LOW_BATTERY_ENTER = 20.0          # % state of charge
LOW_BATTERY_EXIT = 30.0
LOW_BATTERY_TARGET_FLOOR = 20.0
LOW_BATTERY_COP_BOOST = 1.2
LOW_BATTERY_COP_CAP = 4.5
AQI_PROTECT_ENTER = 100.0
AQI_PROTECT_EXIT = 75.0
AQI_PROTECT_FLOW_FACTOR = 0.6
AQI_PROTECT_MIN_FLOW = 100.0
COMFORT_ENTER_SCORE = 60
COMFORT_EXIT_SCORE = 80
COMFORT_ENTER_TEMP_ERROR = 3.0
COMFORT_EXIT_TEMP_ERROR = 1.0
COMFORT_PRIORITY_COP = 4.2
COMFORT_PRIORITY_ERV_EFFICIENCY = 0.8
EMERGENCY_FLOW_FACTOR = 2.0
MAX_RECENT_DECISIONS = 10

# Simulation
HISTORY_LENGTH = 24
DEFAULT_PLAYBACK_SPEED = 1.0

# Costs / Emissions
DEFAULT_COST_PER_KWH = 0.30
GRID_CO2_KG_PER_KWH = 0.4

# Unit Conversions
KW_TO_WATTS = 1000.0
SOLAR_CONSTANT = 1361.0           # W/m²

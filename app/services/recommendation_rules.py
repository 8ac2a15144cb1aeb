"""
Deterministic agronomic rules and thresholds for fertilizer recommendations.

This module centralizes constants so the scoring engine can remain
deterministic, auditable, and consistent across services and tests.
"""

DEFAULT_CROP = "sugarcane"
MAX_RECOMMENDATIONS = 5

# Weighted score composition
BASE_SCORE = 50.0
NUTRIENT_MATCH_WEIGHT = 0.4
PH_COMPATIBILITY_WEIGHT = 0.2
WEATHER_COMPATIBILITY_WEIGHT = 0.2
SOIL_COMPATIBILITY_WEIGHT = 0.1

# A product with 50% of a nutrient saturates the match for that nutrient
NUTRIENT_SATURATION_PCT = 50.0

MIN_SCORE = 0.0
MAX_SCORE = 100.0

# Environmental multipliers
HOT_TEMPERATURE_C = 30.0
COLD_TEMPERATURE_C = 15.0
HOT_TEMPERATURE_FACTOR = 1.3
COLD_TEMPERATURE_FACTOR = 0.7

HUMID_PCT = 70.0
DRY_AIR_PCT = 40.0
HUMID_FACTOR = 1.2
DRY_AIR_FACTOR = 0.8

HEAVY_RAINFALL_MM = 100.0
LOW_RAINFALL_MM = 20.0
HEAVY_RAINFALL_FACTOR = 0.9
LOW_RAINFALL_FACTOR = 1.2

OPTIMAL_PH = 6.5
PH_FACTOR_SLOPE = 0.1
PH_FACTOR_FLOOR = 0.1

# pH compatibility bands
ACIDIC_PH_BELOW = 6.0
ALKALINE_PH_ABOVE = 7.5
PH_NEUTRAL_SCORE = 80
PH_PREFERRED_SCORE = 90
PH_ACCEPTABLE_SCORE = 70
PH_UNSUITED_SCORE = 50

# Weather compatibility
WEATHER_NEUTRAL_SCORE = 50
EXTREME_HEAT_C = 35.0
EXTREME_COLD_C = 10.0
VERY_HUMID_PCT = 80.0
UREA_HEAT_PENALTY = 20
NITRATE_HEAT_BONUS = 10
NITRATE_COLD_PENALTY = 15
UREA_COLD_BONUS = 10
NITRATE_LEACHING_PENALTY = 20
POTASSIUM_RAIN_BONUS = 15
SULFATE_HUMIDITY_BONUS = 10

# Soil texture compatibility
SOIL_DEFAULT_SCORE = 70

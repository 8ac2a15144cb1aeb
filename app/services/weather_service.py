"""
Weather Service.

Fetches current conditions for a farm's coordinates so the recommendation
engine can adjust scores. The provider is optional: every failure is
logged and returns None, and the engine then scores without the weather term.
"""
import os
import logging
from typing import Optional

import httpx

from app.services.recommendation_engine import WeatherSnapshot

logger = logging.getLogger(__name__)

OPEN_METEO_FORECAST_URL = os.environ.get(
    "OPEN_METEO_FORECAST_URL", "https://api.open-meteo.com/v1/forecast"
)
NOMINATIM_REVERSE_URL = os.environ.get(
    "NOMINATIM_REVERSE_URL", "https://nominatim.openstreetmap.org/reverse"
)
WEATHER_HTTP_TIMEOUT = float(os.environ.get("WEATHER_HTTP_TIMEOUT", "10"))
GEOCODER_USER_AGENT = os.environ.get("GEOCODER_USER_AGENT", "FertilizerPro/1.0")

CURRENT_WEATHER_FIELDS = "temperature_2m,relative_humidity_2m,weather_code,wind_speed_10m,precipitation"

# Substituted when the provider omits a field
DEFAULT_TEMPERATURE_C = 25.0
DEFAULT_HUMIDITY_PCT = 60.0


def _get_json(url: str, params: dict, client: Optional[httpx.Client], headers: Optional[dict] = None) -> dict:
    if client is not None:
        response = client.get(url, params=params, headers=headers)
        response.raise_for_status()
        return response.json()

    with httpx.Client(timeout=WEATHER_HTTP_TIMEOUT) as owned_client:
        response = owned_client.get(url, params=params, headers=headers)
        response.raise_for_status()
        return response.json()


def _field(current: dict, key: str, default: float) -> float:
    value = current.get(key)
    return default if value is None else value


def parse_current_weather(payload: dict) -> WeatherSnapshot:
    """Map an Open-Meteo `current` block to a WeatherSnapshot (0 is a real reading, None is missing)."""
    current = payload.get("current") or {}
    return WeatherSnapshot(
        temperature=float(_field(current, "temperature_2m", DEFAULT_TEMPERATURE_C)),
        humidity=float(_field(current, "relative_humidity_2m", DEFAULT_HUMIDITY_PCT)),
        rainfall=float(_field(current, "precipitation", 0.0)),
        wind_speed=float(_field(current, "wind_speed_10m", 0.0)),
        weather_code=int(_field(current, "weather_code", 0)),
    )


def get_weather_by_coordinates(
    latitude: float,
    longitude: float,
    client: Optional[httpx.Client] = None
) -> Optional[WeatherSnapshot]:
    """
    Get current weather for a location.

    Args:
        latitude: Decimal degrees
        longitude: Decimal degrees
        client: Optional shared httpx client (a short-lived one is used otherwise)

    Returns:
        WeatherSnapshot, or None if the provider is unreachable or errors
    """
    params = {
        "latitude": latitude,
        "longitude": longitude,
        "current": CURRENT_WEATHER_FIELDS,
        "timezone": "auto",
    }
    try:
        payload = _get_json(OPEN_METEO_FORECAST_URL, params, client)
        weather = parse_current_weather(payload)
    except (httpx.HTTPError, ValueError, TypeError, AttributeError) as e:
        logger.warning(f"[Weather] Fetch failed for ({latitude}, {longitude}): {e}")
        return None

    logger.debug(f"[Weather] ({latitude}, {longitude}) -> {weather}")
    return weather


def get_location_by_coordinates(
    latitude: float,
    longitude: float,
    client: Optional[httpx.Client] = None
) -> Optional[str]:
    """
    Reverse geocode coordinates to the most specific place name available.

    Prefers city, then town, village, county, state, then the first part
    of the display name.
    """
    params = {
        "format": "json",
        "lat": latitude,
        "lon": longitude,
        "zoom": 10,
        "addressdetails": 1,
    }
    headers = {"User-Agent": GEOCODER_USER_AGENT}
    try:
        payload = _get_json(NOMINATIM_REVERSE_URL, params, client, headers=headers)
        return _place_name(payload)
    except (httpx.HTTPError, ValueError, TypeError, AttributeError) as e:
        logger.warning(f"[Weather] Reverse geocoding failed for ({latitude}, {longitude}): {e}")
        return None


def _place_name(payload: dict) -> Optional[str]:
    address = payload.get("address") or {}
    for key in ("city", "town", "village", "county", "state"):
        if address.get(key):
            return address[key]

    display_name = payload.get("display_name")
    if display_name:
        return display_name.split(",")[0].strip() or None
    return None


def describe_weather_code(code: int) -> str:
    """Bucket a WMO weather code into a short condition label."""
    if code in (0, 1):
        return "sunny"
    if code in (2, 3):
        return "cloudy"
    if 45 <= code <= 48:
        return "foggy"
    if 51 <= code <= 67:
        return "rain"
    if 71 <= code <= 77:
        return "snow"
    if 80 <= code <= 82:
        return "thunderstorm"
    return "partly_cloudy"

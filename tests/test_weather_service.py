"""
Tests for the Weather Service.

The provider is stubbed with httpx.MockTransport; no network access.
Covers:
1. Parsing the Open-Meteo `current` block (including real zero readings)
2. Provider failures returning None
3. Reverse geocoding name precedence
4. WMO weather code buckets
"""
import httpx
import pytest

from app.services.weather_service import (
    describe_weather_code,
    get_location_by_coordinates,
    get_weather_by_coordinates,
    parse_current_weather,
)

OPEN_METEO_RESPONSE = {
    "latitude": 28.6,
    "longitude": 77.2,
    "current": {
        "temperature_2m": 31.4,
        "relative_humidity_2m": 62,
        "weather_code": 3,
        "wind_speed_10m": 11.2,
        "precipitation": 0.4,
    },
}


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestParseCurrentWeather:
    """Tests for parse_current_weather()."""

    def test_full_payload(self):
        weather = parse_current_weather(OPEN_METEO_RESPONSE)

        assert weather.temperature == pytest.approx(31.4)
        assert weather.humidity == pytest.approx(62)
        assert weather.rainfall == pytest.approx(0.4)
        assert weather.wind_speed == pytest.approx(11.2)
        assert weather.weather_code == 3

    def test_zero_readings_are_kept(self):
        weather = parse_current_weather({"current": {
            "temperature_2m": 0,
            "relative_humidity_2m": 0,
            "precipitation": 0,
            "wind_speed_10m": 0,
            "weather_code": 0,
        }})

        assert weather.temperature == 0.0
        assert weather.humidity == 0.0

    def test_missing_fields_use_defaults(self):
        weather = parse_current_weather({"current": {"temperature_2m": None}})

        assert weather.temperature == 25.0
        assert weather.humidity == 60.0
        assert weather.rainfall == 0.0
        assert weather.weather_code == 0

    def test_missing_current_block(self):
        assert parse_current_weather({}).temperature == 25.0


class TestGetWeatherByCoordinates:
    """Tests for get_weather_by_coordinates()."""

    def test_success_sends_coordinates(self):
        seen = {}

        def handler(request):
            seen.update(request.url.params)
            return httpx.Response(200, json=OPEN_METEO_RESPONSE)

        with _client(handler) as client:
            weather = get_weather_by_coordinates(28.6, 77.2, client=client)

        assert weather.temperature == pytest.approx(31.4)
        assert seen["latitude"] == "28.6"
        assert seen["longitude"] == "77.2"
        assert "temperature_2m" in seen["current"]

    def test_server_error_returns_none(self):
        with _client(lambda request: httpx.Response(500, text="upstream down")) as client:
            assert get_weather_by_coordinates(28.6, 77.2, client=client) is None

    def test_connection_error_returns_none(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with _client(handler) as client:
            assert get_weather_by_coordinates(28.6, 77.2, client=client) is None

    def test_invalid_json_returns_none(self):
        with _client(lambda request: httpx.Response(200, text="<html>not json</html>")) as client:
            assert get_weather_by_coordinates(28.6, 77.2, client=client) is None

    @pytest.mark.parametrize("payload", [
        [1, 2, 3],
        {"current": {"temperature_2m": "n/a", "relative_humidity_2m": 50}},
        {"current": {"temperature_2m": 20, "weather_code": [3]}},
        {"current": "unavailable"},
    ])
    def test_malformed_payload_returns_none(self, payload):
        with _client(lambda request: httpx.Response(200, json=payload)) as client:
            assert get_weather_by_coordinates(28.6, 77.2, client=client) is None


class TestGetLocationByCoordinates:
    """Tests for get_location_by_coordinates()."""

    @pytest.mark.parametrize("address,expected", [
        ({"city": "Pune", "town": "Hadapsar", "state": "Maharashtra"}, "Pune"),
        ({"town": "Baramati", "village": "Katewadi"}, "Baramati"),
        ({"village": "Katewadi", "county": "Pune District"}, "Katewadi"),
        ({"county": "Pune District", "state": "Maharashtra"}, "Pune District"),
        ({"state": "Maharashtra"}, "Maharashtra"),
    ])
    def test_name_precedence(self, address, expected):
        payload = {"address": address, "display_name": "Somewhere, India"}

        with _client(lambda request: httpx.Response(200, json=payload)) as client:
            assert get_location_by_coordinates(18.5, 73.8, client=client) == expected

    def test_display_name_fallback(self):
        payload = {"address": {}, "display_name": "Indapur, Pune, Maharashtra, India"}

        with _client(lambda request: httpx.Response(200, json=payload)) as client:
            assert get_location_by_coordinates(18.1, 75.0, client=client) == "Indapur"

    def test_sends_user_agent(self):
        seen = {}

        def handler(request):
            seen["user_agent"] = request.headers.get("user-agent")
            return httpx.Response(200, json={"address": {"city": "Pune"}})

        with _client(handler) as client:
            get_location_by_coordinates(18.5, 73.8, client=client)

        assert seen["user_agent"].startswith("FertilizerPro")

    def test_failure_returns_none(self):
        with _client(lambda request: httpx.Response(503)) as client:
            assert get_location_by_coordinates(18.5, 73.8, client=client) is None

    def test_nothing_usable_returns_none(self):
        with _client(lambda request: httpx.Response(200, json={})) as client:
            assert get_location_by_coordinates(0.0, 0.0, client=client) is None

    @pytest.mark.parametrize("payload", [
        ["Pune"],
        {"address": "Pune", "display_name": 42},
    ])
    def test_malformed_payload_returns_none(self, payload):
        with _client(lambda request: httpx.Response(200, json=payload)) as client:
            assert get_location_by_coordinates(18.5, 73.8, client=client) is None


class TestDescribeWeatherCode:
    """Tests for describe_weather_code()."""

    @pytest.mark.parametrize("code,expected", [
        (0, "sunny"),
        (1, "sunny"),
        (2, "cloudy"),
        (3, "cloudy"),
        (45, "foggy"),
        (48, "foggy"),
        (51, "rain"),
        (65, "rain"),
        (71, "snow"),
        (77, "snow"),
        (80, "thunderstorm"),
        (82, "thunderstorm"),
        (95, "partly_cloudy"),
        (10, "partly_cloudy"),
    ])
    def test_buckets(self, code, expected):
        assert describe_weather_code(code) == expected

"""
API tests for the recommendations router.

Weather lookups are monkeypatched on the router module so no network
access happens.
"""
import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.routers import recommendations as recommendations_router
from app.services.recommendation_engine import WeatherSnapshot

RICE_REQUEST = {
    "soil": {
        "nitrogen": 80,
        "phosphorus": 10,
        "potassium": 100,
        "ph": 6.2,
        "organic_matter": 2.5,
        "moisture": 50,
    },
    "crop_type": "rice",
}


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def no_weather_provider(monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("weather provider must not be called")

    monkeypatch.setattr(recommendations_router, "get_weather_by_coordinates", fail)


class TestCalculate:
    """POST /api/recommendations/calculate"""

    def test_rice_recommendations(self, client, no_weather_provider):
        response = client.post("/api/recommendations/calculate", json=RICE_REQUEST)

        assert response.status_code == 200
        data = response.json()
        assert data["crop_type"] == "rice"
        assert data["is_fallback"] is False
        assert data["weather_used"] is False
        assert data["weather"] is None
        assert len(data["recommendations"]) == 5
        assert data["recommendations"][0]["name"] == "Diammonium Phosphate (DAP)"
        assert data["recommendations"][0]["score"] == 82
        assert data["deficiency"]["potassium"] == 0
        assert data["environmental_factors"]["ph"] == pytest.approx(0.97)

        scores = [rec["score"] for rec in data["recommendations"]]
        assert scores == sorted(scores, reverse=True)

    def test_unknown_crop_falls_back(self, client):
        response = client.post(
            "/api/recommendations/calculate",
            json={**RICE_REQUEST, "crop_type": "Dragonfruit"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["requested_crop"] == "Dragonfruit"
        assert data["crop_type"] == "sugarcane"
        assert data["is_fallback"] is True

    def test_limit(self, client):
        response = client.post("/api/recommendations/calculate", json={**RICE_REQUEST, "limit": 2})

        assert response.status_code == 200
        assert [rec["id"] for rec in response.json()["recommendations"]] == ["rec-1", "rec-4"]

    def test_explicit_weather_is_used(self, client, no_weather_provider):
        body = {
            **RICE_REQUEST,
            "weather": {"temperature": 40, "humidity": 35, "rainfall": 120},
            "coordinates": {"latitude": 18.5, "longitude": 73.8},
        }
        response = client.post("/api/recommendations/calculate", json={**body, "limit": 20})

        assert response.status_code == 200
        data = response.json()
        assert data["weather_used"] is True
        assert data["weather"]["temperature"] == 40
        urea = next(rec for rec in data["recommendations"] if rec["name"] == "Urea")
        assert urea["score"] == 75

    def test_coordinates_fetch_weather(self, client, monkeypatch):
        calls = []

        def fake_weather(latitude, longitude):
            calls.append((latitude, longitude))
            return WeatherSnapshot(temperature=25, humidity=55, rainfall=50, weather_code=2)

        monkeypatch.setattr(recommendations_router, "get_weather_by_coordinates", fake_weather)

        response = client.post(
            "/api/recommendations/calculate",
            json={**RICE_REQUEST, "coordinates": {"latitude": 18.5, "longitude": 73.8}},
        )

        assert response.status_code == 200
        assert calls == [(18.5, 73.8)]
        assert response.json()["weather_used"] is True

    def test_unavailable_weather_scores_without_it(self, client, monkeypatch):
        monkeypatch.setattr(recommendations_router, "get_weather_by_coordinates", lambda lat, lon: None)

        response = client.post(
            "/api/recommendations/calculate",
            json={**RICE_REQUEST, "coordinates": {"latitude": 18.5, "longitude": 73.8}},
        )

        assert response.status_code == 200
        assert response.json()["weather_used"] is False

    @pytest.mark.parametrize("soil_overrides", [
        {"ph": 15},
        {"ph": -1},
        {"nitrogen": -5},
    ])
    def test_invalid_soil_is_rejected(self, client, soil_overrides):
        body = {**RICE_REQUEST, "soil": {**RICE_REQUEST["soil"], **soil_overrides}}

        response = client.post("/api/recommendations/calculate", json=body)

        assert response.status_code == 422

    def test_missing_crop_type_is_rejected(self, client):
        response = client.post("/api/recommendations/calculate", json={"soil": RICE_REQUEST["soil"]})
        assert response.status_code == 422


class TestCrops:
    """GET /api/recommendations/crops and /crops/{crop_type}/fertilizers"""

    def test_list_crops(self, client):
        response = client.get("/api/recommendations/crops")

        assert response.status_code == 200
        data = response.json()
        ids = {crop["id"] for crop in data["crops"]}
        assert data["default_crop"] == "sugarcane"
        assert {"rice", "wheat", "maize", "vegetables"} <= ids

    def test_crop_fertilizers(self, client):
        response = client.get("/api/recommendations/crops/rice/fertilizers")

        assert response.status_code == 200
        data = response.json()
        assert data["is_fallback"] is False
        assert data["fertilizers"][0]["name"] == "Urea"
        assert data["fertilizers"][0]["chemical_classes"] == ["urea"]

    def test_unknown_crop_fertilizers(self, client):
        response = client.get("/api/recommendations/crops/banana/fertilizers")

        assert response.status_code == 200
        data = response.json()
        assert data["is_fallback"] is True
        assert data["fertilizer_source_crop"] == "sugarcane"


class TestPdf:
    """POST /api/recommendations/pdf"""

    def test_pdf_download(self, client):
        body = {**RICE_REQUEST, "farm": {"name": "Green Acres", "location": "Nashik", "area": 4, "test_date": "2024-03-01"}}

        response = client.post("/api/recommendations/pdf", json=body)

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert 'filename="FertilizerReport_Green_Acres_' in response.headers["content-disposition"]
        assert response.content.startswith(b"%PDF")

    def test_pdf_requires_farm(self, client):
        response = client.post("/api/recommendations/pdf", json=RICE_REQUEST)
        assert response.status_code == 422


class TestWeather:
    """GET /api/recommendations/weather"""

    def test_current_weather(self, client, monkeypatch):
        monkeypatch.setattr(
            recommendations_router,
            "get_weather_by_coordinates",
            lambda lat, lon: WeatherSnapshot(temperature=31, humidity=62, rainfall=0.4, wind_speed=11, weather_code=61),
        )
        monkeypatch.setattr(recommendations_router, "get_location_by_coordinates", lambda lat, lon: "Pune")

        response = client.get(
            "/api/recommendations/weather",
            params={"latitude": 18.5, "longitude": 73.8, "include_location": True},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["weather"]["temperature"] == 31
        assert data["condition"] == "rain"
        assert data["location"] == "Pune"

    def test_provider_failure(self, client, monkeypatch):
        monkeypatch.setattr(recommendations_router, "get_weather_by_coordinates", lambda lat, lon: None)

        response = client.get("/api/recommendations/weather", params={"latitude": 18.5, "longitude": 73.8})

        assert response.status_code == 502

    def test_invalid_coordinates(self, client):
        response = client.get("/api/recommendations/weather", params={"latitude": 120, "longitude": 73.8})
        assert response.status_code == 422


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

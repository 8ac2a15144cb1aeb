"""
Pydantic schemas for the Fertilizer Recommendation API.
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date


# ==================== INPUT SCHEMAS ====================

class SoilSampleInput(BaseModel):
    """Soil test measurements."""
    nitrogen: float = Field(..., ge=0, description="Available N kg/ha")
    phosphorus: float = Field(..., ge=0, description="Available P kg/ha")
    potassium: float = Field(..., ge=0, description="Available K kg/ha")
    ph: float = Field(..., ge=0, le=14, description="Soil pH")
    organic_matter: float = Field(default=0.0, ge=0, le=100, description="Organic matter %")
    moisture: float = Field(default=0.0, ge=0, le=100, description="Soil moisture %")
    temperature: float = Field(default=25.0, ge=-50, le=70, description="Soil temperature °C")
    rainfall: float = Field(default=0.0, ge=0, description="Rainfall mm")
    soil_texture: Optional[str] = Field(None, max_length=50, description="Soil texture label, e.g. Sandy, Clay, Loamy")


class WeatherInput(BaseModel):
    """Current weather conditions."""
    temperature: float = Field(..., ge=-60, le=60, description="Air temperature °C")
    humidity: float = Field(..., ge=0, le=100, description="Relative humidity %")
    rainfall: float = Field(default=0.0, ge=0, description="Precipitation mm")
    wind_speed: float = Field(default=0.0, ge=0, description="Wind speed km/h")
    weather_code: int = Field(default=0, ge=0, description="WMO weather code")


class CoordinatesInput(BaseModel):
    """Farm location used to fetch current weather."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class RecommendationRequest(BaseModel):
    """Request body for a recommendation calculation."""
    soil: SoilSampleInput
    crop_type: str = Field(..., min_length=1, max_length=50, description="Crop name, e.g. rice")
    weather: Optional[WeatherInput] = Field(None, description="Current weather; takes precedence over coordinates")
    coordinates: Optional[CoordinatesInput] = Field(None, description="Fetch weather for these coordinates")
    limit: int = Field(default=5, ge=1, le=20, description="Maximum number of recommendations")


class FarmInput(BaseModel):
    """Farm details printed in the PDF report."""
    name: str = Field(..., min_length=1, max_length=100)
    soil_type: Optional[str] = Field(None, max_length=50)
    location: Optional[str] = Field(None, max_length=200)
    area: float = Field(default=0.0, ge=0, description="Area in acres")
    test_date: Optional[date] = None


class RecommendationPDFRequest(RecommendationRequest):
    """Recommendation request plus farm details for the report."""
    farm: FarmInput


# ==================== RESPONSE SCHEMAS ====================

class ScoreBreakdownResponse(BaseModel):
    """Weighted contribution of each scoring term."""
    base: float
    nutrient_match: float
    ph_compatibility: float
    weather_compatibility: float
    soil_compatibility: float
    environmental_multiplier: float
    raw_score: float

    class Config:
        from_attributes = True


class RecommendationResponse(BaseModel):
    """A ranked fertilizer recommendation."""
    id: str
    name: str
    npk_ratio: str
    nitrogen: float
    phosphorus: float
    potassium: float
    dosage: str
    application_method: str
    benefits: List[str]
    chemical_classes: List[str]
    score: int = Field(..., ge=0, le=100)
    breakdown: ScoreBreakdownResponse

    class Config:
        from_attributes = True


class DeficiencyResponse(BaseModel):
    """Normalized N/P/K shortfall, 0-1."""
    nitrogen: float
    phosphorus: float
    potassium: float

    class Config:
        from_attributes = True


class EnvironmentalFactorsResponse(BaseModel):
    """Score multipliers from weather and pH."""
    temperature: float
    humidity: float
    rainfall: float
    ph: float
    combined: float


class RecommendationCalculateResponse(BaseModel):
    """Result of a recommendation calculation."""
    requested_crop: str
    crop_type: str
    crop_name: str
    fertilizer_source_crop: str
    is_fallback: bool
    deficiency: DeficiencyResponse
    environmental_factors: EnvironmentalFactorsResponse
    weather_used: bool
    weather: Optional[WeatherInput] = None
    recommendations: List[RecommendationResponse]


class CropTargetsResponse(BaseModel):
    id: str
    name: str
    targets_kg_ha: dict
    has_dedicated_fertilizers: bool


class CropListResponse(BaseModel):
    crops: List[CropTargetsResponse]
    default_crop: str


class FertilizerCandidateResponse(BaseModel):
    name: str
    npk_ratio: str
    nitrogen: float
    phosphorus: float
    potassium: float
    dosage: str
    application_method: str
    benefits: List[str]
    chemical_classes: List[str]


class FertilizerListResponse(BaseModel):
    crop_type: str
    fertilizer_source_crop: str
    is_fallback: bool
    fertilizers: List[FertilizerCandidateResponse]


class WeatherResponse(BaseModel):
    """Current weather at a location."""
    latitude: float
    longitude: float
    weather: WeatherInput
    condition: str
    location: Optional[str] = None

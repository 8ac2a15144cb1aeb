"""
Fertilizer Recommendation Router.
Provides endpoints for ranked fertilizer recommendations and their PDF report.
"""
from typing import Optional, Tuple
from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool
import io
import logging

from app.schemas.recommendation_schemas import (
    RecommendationRequest,
    RecommendationPDFRequest,
    RecommendationCalculateResponse,
    RecommendationResponse,
    DeficiencyResponse,
    EnvironmentalFactorsResponse,
    CropListResponse,
    CropTargetsResponse,
    FertilizerListResponse,
    FertilizerCandidateResponse,
    WeatherInput,
    WeatherResponse,
)
from app.services.fertilizer_catalog import (
    chemical_class_names,
    get_available_crops,
    load_crop_profiles,
    resolve_crop,
)
from app.services.recommendation_engine import (
    InvalidSoilSampleError,
    RecommendationResult,
    SoilSample,
    WeatherSnapshot,
    build_recommendations,
)
from app.services.recommendation_pdf_service import (
    FarmDetails,
    build_report_filename,
    create_recommendation_pdf_report,
)
from app.services.weather_service import (
    describe_weather_code,
    get_location_by_coordinates,
    get_weather_by_coordinates,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/recommendations", tags=["recommendations"])


def _to_soil_sample(request: RecommendationRequest) -> SoilSample:
    soil = request.soil
    return SoilSample(
        nitrogen=soil.nitrogen,
        phosphorus=soil.phosphorus,
        potassium=soil.potassium,
        ph=soil.ph,
        organic_matter=soil.organic_matter,
        moisture=soil.moisture,
        temperature=soil.temperature,
        rainfall=soil.rainfall,
        soil_texture=soil.soil_texture,
    )


async def _resolve_weather(request: RecommendationRequest) -> Optional[WeatherSnapshot]:
    """Explicit weather wins; otherwise fetch for the coordinates when given."""
    if request.weather is not None:
        return WeatherSnapshot(**request.weather.model_dump())
    if request.coordinates is not None:
        weather = await run_in_threadpool(
            get_weather_by_coordinates,
            request.coordinates.latitude,
            request.coordinates.longitude,
        )
        if weather is None:
            logger.info("[Recommendation] Weather unavailable, scoring without weather")
        return weather
    return None


async def _calculate(request: RecommendationRequest) -> Tuple[SoilSample, Optional[WeatherSnapshot], RecommendationResult]:
    sample = _to_soil_sample(request)
    weather = await _resolve_weather(request)

    try:
        result = build_recommendations(sample, request.crop_type, weather, limit=request.limit)
    except InvalidSoilSampleError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if result is None:
        raise HTTPException(status_code=503, detail="Fertilizer reference data is not available")
    return sample, weather, result


@router.post("/calculate", response_model=RecommendationCalculateResponse)
async def calculate_recommendations(request: RecommendationRequest):
    """Rank fertilizers for a soil sample and crop."""
    _, weather, result = await _calculate(request)
    factors = result.factors

    return RecommendationCalculateResponse(
        requested_crop=request.crop_type,
        crop_type=result.crop.profile.crop_id,
        crop_name=result.crop.profile.name,
        fertilizer_source_crop=result.crop.fertilizer_source_crop,
        is_fallback=result.crop.is_fallback,
        deficiency=DeficiencyResponse.model_validate(result.deficiency),
        environmental_factors=EnvironmentalFactorsResponse(
            temperature=factors.temperature,
            humidity=factors.humidity,
            rainfall=factors.rainfall,
            ph=factors.ph,
            combined=round(factors.combined, 4),
        ),
        weather_used=result.weather_used,
        weather=WeatherInput(**vars(weather)) if weather else None,
        recommendations=[
            RecommendationResponse(**rec.to_dict()) for rec in result.recommendations
        ],
    )


@router.get("/crops", response_model=CropListResponse)
async def list_crops():
    """Supported crops with their N/P/K targets."""
    return CropListResponse(
        crops=[CropTargetsResponse(**crop) for crop in get_available_crops()],
        default_crop=load_crop_profiles().default_crop,
    )


@router.get("/crops/{crop_type}/fertilizers", response_model=FertilizerListResponse)
async def list_crop_fertilizers(crop_type: str):
    """Candidate pool for a crop (unknown crops get the default pool)."""
    crop = resolve_crop(crop_type)
    if crop is None:
        raise HTTPException(status_code=503, detail="Fertilizer reference data is not available")

    return FertilizerListResponse(
        crop_type=crop.profile.crop_id,
        fertilizer_source_crop=crop.fertilizer_source_crop,
        is_fallback=crop.is_fallback,
        fertilizers=[
            FertilizerCandidateResponse(
                name=f.name,
                npk_ratio=f.npk_ratio,
                nitrogen=f.nitrogen,
                phosphorus=f.phosphorus,
                potassium=f.potassium,
                dosage=f.dosage,
                application_method=f.application_method,
                benefits=list(f.benefits),
                chemical_classes=chemical_class_names(f.chemical_classes),
            )
            for f in crop.fertilizers
        ],
    )


@router.post("/pdf")
async def generate_recommendation_pdf(request: RecommendationPDFRequest):
    """Compute recommendations and stream them as a PDF report."""
    sample, _, result = await _calculate(request)
    farm = request.farm

    pdf_bytes = create_recommendation_pdf_report(
        recommendations=result.recommendations,
        farm=FarmDetails(
            name=farm.name,
            soil_type=farm.soil_type or "",
            location=farm.location or "",
            area=farm.area,
            crop_type=result.crop.profile.name,
        ),
        sample=sample,
        test_date=farm.test_date,
    )
    filename = build_report_filename(farm.name)

    return StreamingResponse(
        io.BytesIO(pdf_bytes),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/weather", response_model=WeatherResponse)
async def get_current_weather(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    include_location: bool = Query(False),
):
    """Current weather for a location, as the engine would see it."""
    weather = await run_in_threadpool(get_weather_by_coordinates, latitude, longitude)
    if weather is None:
        raise HTTPException(status_code=502, detail="Weather provider unavailable")

    location = None
    if include_location:
        location = await run_in_threadpool(get_location_by_coordinates, latitude, longitude)

    return WeatherResponse(
        latitude=latitude,
        longitude=longitude,
        weather=WeatherInput(**vars(weather)),
        condition=describe_weather_code(weather.weather_code),
        location=location,
    )

"""
Fertilizer Recommendation Engine.

Ranks candidate fertilizers for a soil sample and crop by a weighted score:
- Nutrient match against the crop's N/P/K deficiency (40%)
- pH compatibility (20%)
- Weather compatibility (20%, only when weather is given)
- Soil texture compatibility (10%)
The sum is scaled by temperature, humidity, rainfall and pH factors,
clamped to 0-100 and rounded.

Pure and deterministic: the same sample, crop and weather always produce
the same ranked list. No I/O beyond the cached reference tables.
"""
from typing import Dict, List, Optional, Tuple
from dataclasses import dataclass, asdict
import math
import logging

from app.services.fertilizer_catalog import (
    ChemicalClass,
    CropResolution,
    FertilizerCandidate,
    NutrientTargets,
    chemical_class_names,
    resolve_crop,
)
from app.services.recommendation_rules import (
    ACIDIC_PH_BELOW,
    ALKALINE_PH_ABOVE,
    BASE_SCORE,
    COLD_TEMPERATURE_C,
    COLD_TEMPERATURE_FACTOR,
    DRY_AIR_FACTOR,
    DRY_AIR_PCT,
    EXTREME_COLD_C,
    EXTREME_HEAT_C,
    HEAVY_RAINFALL_FACTOR,
    HEAVY_RAINFALL_MM,
    HOT_TEMPERATURE_C,
    HOT_TEMPERATURE_FACTOR,
    HUMID_FACTOR,
    HUMID_PCT,
    LOW_RAINFALL_FACTOR,
    LOW_RAINFALL_MM,
    MAX_RECOMMENDATIONS,
    MAX_SCORE,
    MIN_SCORE,
    NITRATE_COLD_PENALTY,
    NITRATE_HEAT_BONUS,
    NITRATE_LEACHING_PENALTY,
    NUTRIENT_MATCH_WEIGHT,
    NUTRIENT_SATURATION_PCT,
    OPTIMAL_PH,
    PH_ACCEPTABLE_SCORE,
    PH_COMPATIBILITY_WEIGHT,
    PH_FACTOR_FLOOR,
    PH_FACTOR_SLOPE,
    PH_NEUTRAL_SCORE,
    PH_PREFERRED_SCORE,
    PH_UNSUITED_SCORE,
    POTASSIUM_RAIN_BONUS,
    SOIL_COMPATIBILITY_WEIGHT,
    SOIL_DEFAULT_SCORE,
    SULFATE_HUMIDITY_BONUS,
    UREA_COLD_BONUS,
    UREA_HEAT_PENALTY,
    VERY_HUMID_PCT,
    WEATHER_COMPATIBILITY_WEIGHT,
    WEATHER_NEUTRAL_SCORE,
)

logger = logging.getLogger(__name__)


class InvalidSoilSampleError(ValueError):
    """Raised when a soil sample holds values outside their physical domain."""


@dataclass(frozen=True)
class SoilSample:
    """Soil test measurements for one farm."""
    nitrogen: float  # kg/ha
    phosphorus: float  # kg/ha
    potassium: float  # kg/ha
    ph: float
    organic_matter: float = 0.0  # %
    moisture: float = 0.0  # %
    temperature: float = 25.0  # deg C
    rainfall: float = 0.0  # mm
    soil_texture: Optional[str] = None


@dataclass(frozen=True)
class WeatherSnapshot:
    """Current weather at the farm."""
    temperature: float  # deg C
    humidity: float  # % relative humidity
    rainfall: float = 0.0  # mm
    wind_speed: float = 0.0  # km/h
    weather_code: int = 0  # WMO code


@dataclass(frozen=True)
class DeficiencyProfile:
    """Normalized N/P/K shortfall against crop targets, each in [0, 1]."""
    nitrogen: float
    phosphorus: float
    potassium: float


@dataclass(frozen=True)
class EnvironmentalFactors:
    """Multipliers applied uniformly to every candidate's score."""
    temperature: float = 1.0
    humidity: float = 1.0
    rainfall: float = 1.0
    ph: float = 1.0

    @property
    def combined(self) -> float:
        return self.temperature * self.humidity * self.rainfall * self.ph


@dataclass(frozen=True)
class ScoreBreakdown:
    """Weighted contribution of each scoring term, before the multiplier."""
    base: float
    nutrient_match: float
    ph_compatibility: float
    weather_compatibility: float
    soil_compatibility: float
    environmental_multiplier: float
    raw_score: float


@dataclass(frozen=True)
class ScoredRecommendation:
    """A candidate fertilizer annotated with its rank score."""
    id: str
    name: str
    npk_ratio: str
    nitrogen: float
    phosphorus: float
    potassium: float
    dosage: str
    application_method: str
    benefits: Tuple[str, ...]
    chemical_classes: Tuple[str, ...]
    score: int
    breakdown: ScoreBreakdown

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["benefits"] = list(self.benefits)
        data["chemical_classes"] = list(self.chemical_classes)
        return data


@dataclass(frozen=True)
class RecommendationResult:
    """Ranked recommendations plus the context used to score them."""
    crop: CropResolution
    deficiency: DeficiencyProfile
    factors: EnvironmentalFactors
    weather_used: bool
    recommendations: Tuple[ScoredRecommendation, ...]


# =============================================================================
# VALIDATION
# =============================================================================

def validate_soil_sample(sample: SoilSample) -> None:
    """
    Reject samples the scoring arithmetic cannot interpret.

    Raises InvalidSoilSampleError for negative N/P/K, NaN values, or a pH
    outside 0-14.
    """
    for field_name in ("nitrogen", "phosphorus", "potassium", "ph"):
        value = getattr(sample, field_name)
        if value is None or math.isnan(value):
            raise InvalidSoilSampleError(f"{field_name} must be a number, got {value!r}")

    for field_name in ("nitrogen", "phosphorus", "potassium"):
        value = getattr(sample, field_name)
        if value < 0:
            raise InvalidSoilSampleError(f"{field_name} must be non-negative, got {value}")

    if not 0 <= sample.ph <= 14:
        raise InvalidSoilSampleError(f"ph must be between 0 and 14, got {sample.ph}")


# =============================================================================
# DEFICIENCY PROFILE
# =============================================================================

def calculate_nutrient_deficiency(actual: float, target: float) -> float:
    """
    Shortfall of a nutrient relative to its target.

    max(0, (target - actual) / target): 1.0 when actual is 0, falling
    linearly to 0.0 at the target, and 0.0 for any surplus.
    """
    if target <= 0:
        return 0.0
    return max(0.0, (target - actual) / target)


def calculate_deficiency_profile(sample: SoilSample, targets: NutrientTargets) -> DeficiencyProfile:
    return DeficiencyProfile(
        nitrogen=calculate_nutrient_deficiency(sample.nitrogen, targets.nitrogen),
        phosphorus=calculate_nutrient_deficiency(sample.phosphorus, targets.phosphorus),
        potassium=calculate_nutrient_deficiency(sample.potassium, targets.potassium),
    )


# =============================================================================
# ENVIRONMENTAL FACTORS
# =============================================================================

def calculate_ph_factor(ph: float) -> float:
    """1 - |pH - 6.5| * 0.1, floored at 0.1 so extreme pH never flips the score sign."""
    return max(PH_FACTOR_FLOOR, 1.0 - abs(ph - OPTIMAL_PH) * PH_FACTOR_SLOPE)


def calculate_environmental_factors(
    ph: float,
    weather: Optional[WeatherSnapshot] = None
) -> EnvironmentalFactors:
    """
    Derive score multipliers from weather and soil pH.

    Weather factors are neutral (1.0) when no weather is available.
    """
    ph_factor = calculate_ph_factor(ph)
    if weather is None:
        return EnvironmentalFactors(ph=ph_factor)

    if weather.temperature > HOT_TEMPERATURE_C:
        temperature_factor = HOT_TEMPERATURE_FACTOR
    elif weather.temperature < COLD_TEMPERATURE_C:
        temperature_factor = COLD_TEMPERATURE_FACTOR
    else:
        temperature_factor = 1.0

    if weather.humidity > HUMID_PCT:
        humidity_factor = HUMID_FACTOR
    elif weather.humidity < DRY_AIR_PCT:
        humidity_factor = DRY_AIR_FACTOR
    else:
        humidity_factor = 1.0

    if weather.rainfall > HEAVY_RAINFALL_MM:
        rainfall_factor = HEAVY_RAINFALL_FACTOR
    elif weather.rainfall < LOW_RAINFALL_MM:
        rainfall_factor = LOW_RAINFALL_FACTOR
    else:
        rainfall_factor = 1.0

    return EnvironmentalFactors(
        temperature=temperature_factor,
        humidity=humidity_factor,
        rainfall=rainfall_factor,
        ph=ph_factor,
    )


# =============================================================================
# COMPATIBILITY SCORERS (0-100)
# =============================================================================

def calculate_ph_compatibility(ph: float, fertilizer: FertilizerCandidate) -> int:
    """
    Rate how well a fertilizer suits the soil pH.

    Acidic soil favors liming materials, alkaline soil favors acidifying
    sulfates and nitrates, and neutral soil suits almost everything.
    """
    if ph < ACIDIC_PH_BELOW:
        if fertilizer.has_class(ChemicalClass.CALCIUM, ChemicalClass.LIME):
            return PH_PREFERRED_SCORE
        if fertilizer.has_class(ChemicalClass.AMMONIUM):
            return PH_ACCEPTABLE_SCORE
        return PH_UNSUITED_SCORE
    if ph > ALKALINE_PH_ABOVE:
        if fertilizer.has_class(ChemicalClass.SULFATE, ChemicalClass.NITRATE):
            return PH_PREFERRED_SCORE
        if fertilizer.has_class(ChemicalClass.PHOSPHATE):
            return PH_ACCEPTABLE_SCORE
        return PH_UNSUITED_SCORE
    return PH_NEUTRAL_SCORE


def calculate_weather_compatibility(fertilizer: FertilizerCandidate, weather: WeatherSnapshot) -> int:
    """
    Rate how well a fertilizer suits current weather.

    Starts at the neutral baseline; urea loses points in extreme heat
    (volatilization), nitrates lose points in cold soil and heavy rain
    (slow uptake, leaching).
    """
    score = WEATHER_NEUTRAL_SCORE

    if weather.temperature > EXTREME_HEAT_C:
        if fertilizer.has_class(ChemicalClass.UREA):
            score -= UREA_HEAT_PENALTY
        if fertilizer.has_class(ChemicalClass.NITRATE):
            score += NITRATE_HEAT_BONUS

    if weather.temperature < EXTREME_COLD_C:
        if fertilizer.has_class(ChemicalClass.NITRATE):
            score -= NITRATE_COLD_PENALTY
        if fertilizer.has_class(ChemicalClass.UREA):
            score += UREA_COLD_BONUS

    if weather.rainfall > HEAVY_RAINFALL_MM:
        if fertilizer.has_class(ChemicalClass.NITRATE):
            score -= NITRATE_LEACHING_PENALTY
        if fertilizer.has_class(ChemicalClass.POTASSIUM):
            score += POTASSIUM_RAIN_BONUS

    if weather.humidity > VERY_HUMID_PCT:
        if fertilizer.has_class(ChemicalClass.SULFATE):
            score += SULFATE_HUMIDITY_BONUS

    return int(max(MIN_SCORE, min(MAX_SCORE, score)))


# Texture keyword -> ([(classes, score), ...], score when nothing matches).
# Checked in order; the first keyword found in the label wins.
SOIL_TEXTURE_RULES = (
    ("sandy", ((ChemicalClass.POTASSIUM,), 90), ((ChemicalClass.ORGANIC,), 85), 60),
    ("clay", ((ChemicalClass.PHOSPHATE,), 90), ((ChemicalClass.SULFATE,), 80), 70),
    ("loamy", 85),
    ("acidic", ((ChemicalClass.LIME, ChemicalClass.CALCIUM), 85), 70),
    ("alkaline", ((ChemicalClass.SULFATE,), 85), 70),
)


def calculate_soil_compatibility(soil_texture: Optional[str], fertilizer: FertilizerCandidate) -> int:
    """
    Rate how well a fertilizer suits the soil texture label.

    Sandy soils need potassium retention and organic matter, clay binds
    phosphorus, loam works with most products. Missing or unrecognized
    labels get the default score.
    """
    if not soil_texture:
        return SOIL_DEFAULT_SCORE

    texture_lower = soil_texture.lower()
    for rule in SOIL_TEXTURE_RULES:
        keyword, *preferences, otherwise = rule
        if keyword not in texture_lower:
            continue
        for classes, score in preferences:
            if fertilizer.has_class(*classes):
                return score
        return otherwise

    return SOIL_DEFAULT_SCORE


# =============================================================================
# SCORING & RANKING
# =============================================================================

def calculate_nutrient_match(fertilizer: FertilizerCandidate, deficiency: DeficiencyProfile) -> float:
    """
    Average of per-nutrient matches, 0-100.

    Each nutrient scores min(100, pct / 50 * 100) scaled by its deficiency,
    so a product only earns credit for nutrients the soil actually lacks.
    """
    matches = []
    for pct, nutrient_deficiency in (
        (fertilizer.nitrogen, deficiency.nitrogen),
        (fertilizer.phosphorus, deficiency.phosphorus),
        (fertilizer.potassium, deficiency.potassium),
    ):
        if pct > 0:
            matches.append(min(100.0, (pct / NUTRIENT_SATURATION_PCT) * 100.0) * nutrient_deficiency)
        else:
            matches.append(0.0)
    return sum(matches) / 3


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def score_fertilizer(
    fertilizer: FertilizerCandidate,
    sample: SoilSample,
    deficiency: DeficiencyProfile,
    factors: EnvironmentalFactors,
    weather: Optional[WeatherSnapshot] = None
) -> Tuple[int, ScoreBreakdown]:
    """
    Score one candidate.

    Returns (score, breakdown) where score is an int clamped to 0-100.
    """
    nutrient_term = calculate_nutrient_match(fertilizer, deficiency) * NUTRIENT_MATCH_WEIGHT
    ph_term = calculate_ph_compatibility(sample.ph, fertilizer) * PH_COMPATIBILITY_WEIGHT

    # Without weather the term is left out, not scored as neutral
    weather_term = 0.0
    if weather is not None:
        weather_term = calculate_weather_compatibility(fertilizer, weather) * WEATHER_COMPATIBILITY_WEIGHT

    soil_term = calculate_soil_compatibility(sample.soil_texture, fertilizer) * SOIL_COMPATIBILITY_WEIGHT

    multiplier = factors.combined
    raw = (BASE_SCORE + nutrient_term + ph_term + weather_term + soil_term) * multiplier
    score = _round_half_up(max(MIN_SCORE, min(MAX_SCORE, raw)))

    breakdown = ScoreBreakdown(
        base=BASE_SCORE,
        nutrient_match=round(nutrient_term, 2),
        ph_compatibility=round(ph_term, 2),
        weather_compatibility=round(weather_term, 2),
        soil_compatibility=round(soil_term, 2),
        environmental_multiplier=round(multiplier, 4),
        raw_score=round(raw, 2),
    )
    return score, breakdown


def rank_fertilizers(
    fertilizers: Tuple[FertilizerCandidate, ...],
    sample: SoilSample,
    deficiency: DeficiencyProfile,
    factors: EnvironmentalFactors,
    weather: Optional[WeatherSnapshot] = None,
    limit: Optional[int] = MAX_RECOMMENDATIONS
) -> List[ScoredRecommendation]:
    """Score every candidate and return them best first (stable on ties)."""
    scored = []
    for index, fertilizer in enumerate(fertilizers):
        score, breakdown = score_fertilizer(fertilizer, sample, deficiency, factors, weather)
        scored.append(ScoredRecommendation(
            id=f"rec-{index}",
            name=fertilizer.name,
            npk_ratio=fertilizer.npk_ratio,
            nitrogen=fertilizer.nitrogen,
            phosphorus=fertilizer.phosphorus,
            potassium=fertilizer.potassium,
            dosage=fertilizer.dosage,
            application_method=fertilizer.application_method,
            benefits=fertilizer.benefits,
            chemical_classes=tuple(chemical_class_names(fertilizer.chemical_classes)),
            score=score,
            breakdown=breakdown,
        ))

    ranked = sorted(scored, key=lambda rec: rec.score, reverse=True)
    if limit is None:
        return ranked
    return ranked[:max(0, limit)]


def build_recommendations(
    sample: SoilSample,
    crop_type: str,
    weather: Optional[WeatherSnapshot] = None,
    limit: Optional[int] = MAX_RECOMMENDATIONS
) -> Optional[RecommendationResult]:
    """
    Full recommendation pass with its scoring context.

    Returns None only when the reference tables are empty.
    """
    validate_soil_sample(sample)

    crop = resolve_crop(crop_type)
    if crop is None:
        return None

    deficiency = calculate_deficiency_profile(sample, crop.profile.targets)
    factors = calculate_environmental_factors(sample.ph, weather)
    recommendations = rank_fertilizers(crop.fertilizers, sample, deficiency, factors, weather, limit)

    logger.info(
        f"[Recommendation] crop={crop.profile.crop_id} (requested '{crop_type}', fallback={crop.is_fallback}) "
        f"deficiency N={deficiency.nitrogen:.2f} P={deficiency.phosphorus:.2f} K={deficiency.potassium:.2f} "
        f"factor={factors.combined:.3f} weather={'yes' if weather else 'no'} "
        f"top={recommendations[0].name if recommendations else None}"
    )

    return RecommendationResult(
        crop=crop,
        deficiency=deficiency,
        factors=factors,
        weather_used=weather is not None,
        recommendations=tuple(recommendations),
    )


def compute_recommendations(
    sample: SoilSample,
    crop_type: str,
    weather: Optional[WeatherSnapshot] = None,
    limit: Optional[int] = MAX_RECOMMENDATIONS
) -> List[ScoredRecommendation]:
    """
    Rank fertilizers for a soil sample and crop.

    Args:
        sample: Soil test measurements
        crop_type: Crop name, matched case-insensitively; unknown crops use
            the sugarcane profile and fertilizer list
        weather: Optional current weather; without it the weather term is left out
        limit: Maximum number of results (None returns every candidate)

    Returns:
        Recommendations sorted by descending score. Empty only when the
        reference tables are empty.

    Raises:
        InvalidSoilSampleError: negative N/P/K, NaN values or pH outside 0-14
    """
    result = build_recommendations(sample, crop_type, weather, limit)
    if result is None:
        return []
    return list(result.recommendations)

"""
Fertilizer Catalog Service.

Static reference data for the recommendation engine:
- Crop nutrient targets (kg/ha of N, P, K considered sufficient)
- Candidate fertilizers grouped by crop

Both tables are loaded once from JSON under app/data and exposed as
immutable values (frozen dataclasses, tuples, read-only mappings).
Unknown crops resolve to the default crop (sugarcane).
"""
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
import json
import os
import logging

from app.services.recommendation_rules import DEFAULT_CROP

logger = logging.getLogger(__name__)

CROP_NUTRIENT_TARGETS_PATH = os.path.join(
    os.path.dirname(__file__), "..", "data", "crop_nutrient_targets.json"
)

FERTILIZER_CATALOG_PATH = os.path.join(
    os.path.dirname(__file__), "..", "data", "fertilizer_catalog.json"
)

_crop_profiles_cache = None
_fertilizer_catalog_cache = None


class ChemicalClass(str, Enum):
    """Chemical families the compatibility rules key on."""
    UREA = "urea"
    AMMONIUM = "ammonium"
    NITRATE = "nitrate"
    SULFATE = "sulfate"
    PHOSPHATE = "phosphate"
    POTASSIUM = "potassium"
    CALCIUM = "calcium"
    LIME = "lime"
    ORGANIC = "organic"


# Name keywords used when a catalog row carries no explicit tags. Matching is
# case-sensitive on the capitalized product word, so "Diammonium" is not
# AMMONIUM and "Muriate of Potash" is not POTASSIUM.
CHEMICAL_CLASS_KEYWORDS = {
    ChemicalClass.UREA: ("Urea",),
    ChemicalClass.AMMONIUM: ("Ammonium",),
    ChemicalClass.NITRATE: ("Nitrate",),
    ChemicalClass.SULFATE: ("Sulfate",),
    ChemicalClass.PHOSPHATE: ("Phosphate",),
    ChemicalClass.POTASSIUM: ("Potassium",),
    ChemicalClass.CALCIUM: ("Calcium",),
    ChemicalClass.LIME: ("Lime",),
    ChemicalClass.ORGANIC: ("Organic",),
}


def infer_chemical_classes(name: str) -> FrozenSet[ChemicalClass]:
    """
    Infer chemical classes from a fertilizer display name.

    Plain substring matching on the product words. "Diammonium Phosphate"
    is tagged PHOSPHATE only; "Gypsum" gets nothing even though it is
    calcium sulfate.
    """
    if not name:
        return frozenset()
    return frozenset(
        chemical_class
        for chemical_class, keywords in CHEMICAL_CLASS_KEYWORDS.items()
        if any(keyword in name for keyword in keywords)
    )


@dataclass(frozen=True)
class NutrientTargets:
    """Crop N/P/K requirement in kg/ha."""
    nitrogen: float
    phosphorus: float
    potassium: float


@dataclass(frozen=True)
class CropProfile:
    """Crop identifier with its nutrient targets."""
    crop_id: str
    name: str
    targets: NutrientTargets


@dataclass(frozen=True)
class FertilizerCandidate:
    """A reference-data fertilizer product."""
    name: str
    npk_ratio: str
    nitrogen: float = 0.0  # % of product
    phosphorus: float = 0.0
    potassium: float = 0.0
    dosage: str = ""
    application_method: str = ""
    benefits: Tuple[str, ...] = ()
    chemical_classes: FrozenSet[ChemicalClass] = field(default_factory=frozenset)

    def has_class(self, *classes: ChemicalClass) -> bool:
        return any(c in self.chemical_classes for c in classes)


@dataclass(frozen=True)
class CropResolution:
    """Result of resolving a requested crop against the reference tables."""
    requested: str
    profile: CropProfile
    fertilizers: Tuple[FertilizerCandidate, ...]
    fertilizer_source_crop: str
    is_fallback: bool


@dataclass(frozen=True)
class _CropProfiles:
    default_crop: str
    profiles: Mapping[str, CropProfile]


@dataclass(frozen=True)
class _FertilizerCatalog:
    default_crop: str
    by_crop: Mapping[str, Tuple[FertilizerCandidate, ...]]


def clear_crop_profiles_cache():
    """Clear the cache to reload crop nutrient targets on next call."""
    global _crop_profiles_cache
    _crop_profiles_cache = None


def clear_fertilizer_catalog_cache():
    """Clear the cache to reload the fertilizer catalog on next call."""
    global _fertilizer_catalog_cache
    _fertilizer_catalog_cache = None


def normalize_crop_key(crop_type: Optional[str]) -> str:
    """Normalize a crop name to a table key ("  Rice " -> "rice")."""
    if not crop_type:
        return ""
    return crop_type.strip().lower().replace("-", "_").replace(" ", "_")


def _read_json(path: str) -> Dict:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except Exception as e:
        logger.error(f"[Catalog] Error loading {os.path.basename(path)}: {e}")
        return {}


def _resolve_alias(crops_config: Dict, crop_key: str) -> Optional[Dict]:
    """Follow alias_of links; returns None for unknown keys or alias cycles."""
    seen = set()
    entry = crops_config.get(crop_key)
    while entry is not None and "alias_of" in entry:
        if crop_key in seen:
            logger.warning(f"[Catalog] Alias cycle detected at '{crop_key}'")
            return None
        seen.add(crop_key)
        crop_key = entry["alias_of"]
        entry = crops_config.get(crop_key)
    return entry


def _parse_crop_profiles(config: Dict) -> _CropProfiles:
    crops_config = config.get("crops", {})
    profiles = {}

    for crop_key in crops_config:
        entry = _resolve_alias(crops_config, crop_key)
        if not entry:
            continue
        targets = entry.get("targets_kg_ha", {})
        n_target = float(targets.get("N", 0) or 0)
        p_target = float(targets.get("P", 0) or 0)
        k_target = float(targets.get("K", 0) or 0)

        if min(n_target, p_target, k_target) <= 0:
            logger.warning(f"[Catalog] Skipping crop '{crop_key}': targets must be positive, got {targets}")
            continue

        display_name = crops_config[crop_key].get("name") or entry.get("name") or crop_key.title()
        profiles[crop_key] = CropProfile(
            crop_id=crop_key,
            name=display_name,
            targets=NutrientTargets(nitrogen=n_target, phosphorus=p_target, potassium=k_target),
        )

    return _CropProfiles(
        default_crop=config.get("default_crop", DEFAULT_CROP),
        profiles=MappingProxyType(profiles),
    )


def _parse_fertilizer(row: Dict) -> FertilizerCandidate:
    name = row.get("name", "")
    explicit = row.get("chemical_classes")
    if explicit is None:
        chemical_classes = infer_chemical_classes(name)
    else:
        chemical_classes = frozenset(ChemicalClass(c) for c in explicit)

    return FertilizerCandidate(
        name=name,
        npk_ratio=row.get("npk_ratio", ""),
        nitrogen=float(row.get("nitrogen", 0) or 0),
        phosphorus=float(row.get("phosphorus", 0) or 0),
        potassium=float(row.get("potassium", 0) or 0),
        dosage=row.get("dosage", ""),
        application_method=row.get("application_method", ""),
        benefits=tuple(row.get("benefits", [])),
        chemical_classes=chemical_classes,
    )


def _parse_fertilizer_catalog(config: Dict) -> _FertilizerCatalog:
    crops_config = config.get("crops", {})
    by_crop = {}

    for crop_key in crops_config:
        entry = _resolve_alias(crops_config, crop_key)
        if not entry:
            continue
        rows = entry.get("fertilizers", [])
        candidates = []
        for row in rows:
            try:
                candidates.append(_parse_fertilizer(row))
            except (TypeError, ValueError) as e:
                logger.warning(f"[Catalog] Skipping fertilizer row for '{crop_key}': {e}")
        by_crop[crop_key] = tuple(candidates)

    return _FertilizerCatalog(
        default_crop=config.get("default_crop", DEFAULT_CROP),
        by_crop=MappingProxyType(by_crop),
    )


def load_crop_profiles() -> _CropProfiles:
    """Load crop nutrient targets from JSON file."""
    global _crop_profiles_cache
    if _crop_profiles_cache is not None:
        return _crop_profiles_cache

    _crop_profiles_cache = _parse_crop_profiles(_read_json(CROP_NUTRIENT_TARGETS_PATH))
    logger.debug(f"[Catalog] Loaded {len(_crop_profiles_cache.profiles)} crop profiles")
    return _crop_profiles_cache


def load_fertilizer_catalog() -> _FertilizerCatalog:
    """Load candidate fertilizers by crop from JSON file."""
    global _fertilizer_catalog_cache
    if _fertilizer_catalog_cache is not None:
        return _fertilizer_catalog_cache

    _fertilizer_catalog_cache = _parse_fertilizer_catalog(_read_json(FERTILIZER_CATALOG_PATH))
    logger.debug(f"[Catalog] Loaded fertilizer lists for {len(_fertilizer_catalog_cache.by_crop)} crops")
    return _fertilizer_catalog_cache


def get_crop_profile(crop_type: Optional[str]) -> Optional[CropProfile]:
    """
    Get the nutrient targets for a crop, falling back to the default crop.

    Returns None only when the reference table holds neither the crop nor
    the default crop.
    """
    table = load_crop_profiles()
    crop_key = normalize_crop_key(crop_type)
    if crop_key in table.profiles:
        return table.profiles[crop_key]
    return table.profiles.get(table.default_crop)


def get_fertilizers_for_crop(crop_type: Optional[str]) -> Tuple[FertilizerCandidate, ...]:
    """Get candidate fertilizers for a crop, falling back to the default crop's list."""
    catalog = load_fertilizer_catalog()
    crop_key = normalize_crop_key(crop_type)
    if crop_key in catalog.by_crop:
        return catalog.by_crop[crop_key]
    return catalog.by_crop.get(catalog.default_crop, ())


def resolve_crop(crop_type: Optional[str]) -> Optional[CropResolution]:
    """
    Resolve a requested crop to its profile and candidate pool.

    Crops with a nutrient profile but no dedicated fertilizer list (e.g.
    vegetables) reuse the default list. Unknown crops use the default crop
    for both, and are flagged as a fallback.
    """
    profiles = load_crop_profiles()
    catalog = load_fertilizer_catalog()
    crop_key = normalize_crop_key(crop_type)

    profile = get_crop_profile(crop_type)
    if profile is None:
        logger.error("[Catalog] No crop profile available, not even the default crop")
        return None

    is_fallback = crop_key not in profiles.profiles
    if is_fallback:
        logger.debug(f"[Catalog] Crop '{crop_type}' not found, using '{profiles.default_crop}'")

    if crop_key in catalog.by_crop:
        source_crop = crop_key
    else:
        source_crop = catalog.default_crop

    return CropResolution(
        requested=crop_type or "",
        profile=profile,
        fertilizers=catalog.by_crop.get(source_crop, ()),
        fertilizer_source_crop=source_crop,
        is_fallback=is_fallback,
    )


def get_available_crops() -> List[Dict]:
    """Get list of supported crops with their nutrient targets."""
    profiles = load_crop_profiles()
    catalog = load_fertilizer_catalog()
    crops = []
    for crop_id, profile in profiles.profiles.items():
        crops.append({
            "id": crop_id,
            "name": profile.name,
            "targets_kg_ha": {
                "N": profile.targets.nitrogen,
                "P": profile.targets.phosphorus,
                "K": profile.targets.potassium,
            },
            "has_dedicated_fertilizers": crop_id in catalog.by_crop,
        })
    return crops


def chemical_class_names(classes: Iterable[ChemicalClass]) -> List[str]:
    """Sorted tag values for serialization."""
    return sorted(c.value for c in classes)

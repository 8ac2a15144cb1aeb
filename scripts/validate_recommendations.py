#!/usr/bin/env python3
"""
Fertilizer Recommendation Validation Script
Runs randomized soil/weather scenarios over every crop and checks the
ranking invariants (bounds, order, cardinality, determinism, fallback,
neutral weather multipliers).
"""
import sys
import os
import random
import json
from typing import List, Dict, Any, Optional

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from app.services.fertilizer_catalog import get_fertilizers_for_crop, load_crop_profiles
from app.services.recommendation_engine import (
    SoilSample,
    WeatherSnapshot,
    build_recommendations,
    compute_recommendations,
)
from app.services.recommendation_rules import DEFAULT_CROP, MAX_RECOMMENDATIONS

SOIL_PROFILES = [
    {"name": "Depleted Sandy Field", "texture": "Sandy", "ph": 5.4, "n": (5, 40), "p": (2, 15), "k": (10, 50)},
    {"name": "Irrigated Paddy", "texture": "Clay", "ph": 6.2, "n": (40, 110), "p": (5, 30), "k": (30, 120)},
    {"name": "Black Cotton Soil", "texture": "Clay", "ph": 7.9, "n": (60, 140), "p": (10, 40), "k": (80, 200)},
    {"name": "Alluvial Loam", "texture": "Loamy", "ph": 6.8, "n": (80, 160), "p": (20, 70), "k": (60, 160)},
    {"name": "Laterite Upland", "texture": "Acidic Soil", "ph": 5.0, "n": (20, 80), "p": (3, 20), "k": (20, 80)},
    {"name": "Saline Alkaline Plot", "texture": "Alkaline Soil", "ph": 8.6, "n": (30, 90), "p": (8, 30), "k": (100, 250)},
    {"name": "Unlabeled Sample", "texture": None, "ph": 6.5, "n": (0, 200), "p": (0, 90), "k": (0, 200)},
]

WEATHER_CASES = [
    None,
    {"name": "Mild", "temperature": 24, "humidity": 55, "rainfall": 40},
    {"name": "Heat Wave", "temperature": 41, "humidity": 30, "rainfall": 5},
    {"name": "Monsoon", "temperature": 28, "humidity": 88, "rainfall": 160},
    {"name": "Cold Snap", "temperature": 6, "humidity": 65, "rainfall": 25},
]

NEUTRAL_WEATHER = WeatherSnapshot(temperature=25, humidity=55, rainfall=50)
UNKNOWN_CROP = "unlisted-crop"


def create_soil_sample(profile: Dict) -> SoilSample:
    return SoilSample(
        nitrogen=round(random.uniform(*profile["n"]), 1),
        phosphorus=round(random.uniform(*profile["p"]), 1),
        potassium=round(random.uniform(*profile["k"]), 1),
        ph=round(min(14.0, max(0.0, profile["ph"] + random.uniform(-0.4, 0.4))), 2),
        organic_matter=round(random.uniform(0.3, 4.5), 1),
        moisture=round(random.uniform(10, 60), 0),
        soil_texture=profile["texture"],
    )


def create_weather(case: Optional[Dict]) -> Optional[WeatherSnapshot]:
    if case is None:
        return None
    return WeatherSnapshot(
        temperature=case["temperature"],
        humidity=case["humidity"],
        rainfall=case["rainfall"],
    )


def check_invariants(sample: SoilSample, crop: str, weather: Optional[WeatherSnapshot]) -> List[str]:
    """Return a list of violated invariants for one scenario (empty when all hold)."""
    issues = []
    results = compute_recommendations(sample, crop, weather)
    pool_size = len(get_fertilizers_for_crop(crop))

    if len(results) != min(MAX_RECOMMENDATIONS, pool_size):
        issues.append(f"cardinality {len(results)} != min({MAX_RECOMMENDATIONS}, {pool_size})")

    for rec in results:
        if not 0 <= rec.score <= 100:
            issues.append(f"score out of range: {rec.name}={rec.score}")

    scores = [rec.score for rec in results]
    if scores != sorted(scores, reverse=True):
        issues.append(f"not sorted descending: {scores}")

    if compute_recommendations(sample, crop, weather) != results:
        issues.append("non-deterministic result")

    if weather is None:
        # Neutral weather keeps the multipliers; it only adds the weather term
        without = build_recommendations(sample, crop)
        with_neutral = build_recommendations(sample, crop, NEUTRAL_WEATHER)
        if with_neutral.factors != without.factors:
            issues.append("neutral weather changed the environmental multipliers")
        for plain in without.recommendations:
            if plain.breakdown.weather_compatibility != 0:
                issues.append(f"weather term present without weather: {plain.name}")

    return issues


def run_validation(num_tests: int = 200, seed: int = 42) -> Dict[str, Any]:
    random.seed(seed)

    crops = list(load_crop_profiles().profiles)
    results = []
    anomalies = []
    stats = {
        "total_tests": num_tests,
        "successful": 0,
        "failed": 0,
        "anomalies": 0,
        "top_by_crop": {},
        "score_sum": 0,
        "min_score": None,
        "max_score": None,
    }

    for i in range(num_tests):
        try:
            profile = random.choice(SOIL_PROFILES)
            weather_case = random.choice(WEATHER_CASES)
            crop = random.choice(crops)

            sample = create_soil_sample(profile)
            weather = create_weather(weather_case)

            issues = check_invariants(sample, crop, weather)
            recommendations = compute_recommendations(sample, crop, weather)
            top = recommendations[0] if recommendations else None

            test_result = {
                "test_id": i + 1,
                "soil": profile["name"],
                "weather": weather_case["name"] if weather_case else "None",
                "crop": crop,
                "N": sample.nitrogen,
                "P": sample.phosphorus,
                "K": sample.potassium,
                "pH": sample.ph,
                "top": top.name if top else None,
                "top_score": top.score if top else None,
                "scores": [rec.score for rec in recommendations],
            }
            results.append(test_result)

            if top:
                stats["score_sum"] += top.score
                stats["min_score"] = top.score if stats["min_score"] is None else min(stats["min_score"], top.score)
                stats["max_score"] = top.score if stats["max_score"] is None else max(stats["max_score"], top.score)
                crop_tops = stats["top_by_crop"].setdefault(crop, {})
                crop_tops[top.name] = crop_tops.get(top.name, 0) + 1

            for issue in issues:
                anomalies.append({
                    "test_id": i + 1,
                    "issue": issue,
                    "soil": profile["name"],
                    "crop": crop,
                })

            stats["successful"] += 1

        except Exception as e:
            stats["failed"] += 1
            anomalies.append({
                "test_id": i + 1,
                "issue": "Calculation error",
                "error": str(e),
            })

    # Unknown crops must rank exactly like the default crop
    for profile in SOIL_PROFILES:
        sample = create_soil_sample(profile)
        if compute_recommendations(sample, UNKNOWN_CROP) != compute_recommendations(sample, DEFAULT_CROP):
            anomalies.append({
                "test_id": "fallback",
                "issue": f"'{UNKNOWN_CROP}' differs from '{DEFAULT_CROP}'",
                "soil": profile["name"],
            })

    stats["anomalies"] = len(anomalies)

    return {
        "stats": stats,
        "results": results,
        "anomalies": anomalies,
    }


def generate_report(validation: Dict) -> str:
    stats = validation["stats"]
    results = validation["results"]
    anomalies = validation["anomalies"]

    report = []
    report.append("=" * 80)
    report.append("VALIDATION REPORT - FERTILIZER RECOMMENDATION ENGINE")
    report.append("=" * 80)
    report.append("")

    report.append("## SUMMARY")
    report.append("-" * 40)
    report.append(f"Total scenarios: {stats['total_tests']}")
    report.append(f"Successful: {stats['successful']}")
    report.append(f"Failed: {stats['failed']}")
    report.append(f"Invariant violations: {stats['anomalies']}")
    if stats["successful"]:
        avg = stats["score_sum"] / stats["successful"]
        report.append(f"Top score: min={stats['min_score']}, max={stats['max_score']}, avg={avg:.1f}")
    report.append("")

    report.append("## MOST FREQUENT TOP RECOMMENDATION BY CROP")
    report.append("-" * 40)
    report.append(f"{'Crop':<14} {'Top fertilizer':<42} {'Count':>5}")
    for crop, tops in sorted(stats["top_by_crop"].items()):
        name, count = max(tops.items(), key=lambda item: item[1])
        report.append(f"{crop:<14} {name:<42} {count:>5}")
    report.append("")

    if anomalies:
        report.append("## INVARIANT VIOLATIONS")
        report.append("-" * 40)
        for i, anom in enumerate(anomalies[:15]):
            report.append(f"{i+1}. Test #{anom.get('test_id', '?')}: {anom.get('issue', 'Unknown')}")
            for k, v in anom.items():
                if k not in ["test_id", "issue"]:
                    report.append(f"   - {k}: {v}")
        if len(anomalies) > 15:
            report.append(f"   ... and {len(anomalies) - 15} more")
        report.append("")

    report.append("## SAMPLE RESULTS (10 scenarios)")
    report.append("-" * 40)
    for r in random.sample(results, min(10, len(results))):
        report.append(f"\nTest #{r['test_id']}: {r['crop']} - {r['soil']} / weather {r['weather']}")
        report.append(f"  Soil: N={r['N']}, P={r['P']}, K={r['K']}, pH={r['pH']}")
        report.append(f"  Top: {r['top']} ({r['top_score']}), scores={r['scores']}")
    report.append("")

    report.append("## CONCLUSIONS")
    report.append("-" * 40)
    if stats["failed"] == 0:
        report.append("✓ Every scenario completed without errors.")
    else:
        report.append(f"⚠️ {stats['failed']} scenarios failed with errors.")

    if stats["anomalies"] == 0:
        report.append("✓ Bounds, order, cardinality, determinism, fallback and neutral weather multipliers hold.")
    else:
        report.append(f"⚠️ {stats['anomalies']} invariant violations found.")

    report.append("")
    report.append("=" * 80)
    report.append("END OF REPORT")
    report.append("=" * 80)

    return "\n".join(report)


if __name__ == "__main__":
    print("Running recommendation validation (200 scenarios)...")
    print("")

    validation = run_validation(num_tests=200, seed=42)

    report = generate_report(validation)
    print(report)

    with open("recommendation_validation_report.txt", "w", encoding="utf-8") as f:
        f.write(report)

    with open("recommendation_validation_data.json", "w", encoding="utf-8") as f:
        json.dump(validation, f, indent=2, ensure_ascii=False)

    print("\nGenerated files:")
    print("- recommendation_validation_report.txt")
    print("- recommendation_validation_data.json")

    sys.exit(1 if validation["stats"]["anomalies"] else 0)

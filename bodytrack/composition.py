"""
Body composition assessment: metric choice, category, risk tier, advice.

BMI alone mislabels muscular users, so the category starts from an
activity-adjusted BMI band and a healthy waist-to-height ratio overrides an
overweight reading toward an athletic-build label. Risk comes from the
waist-based indices whenever they exist.
"""

import logging
from typing import List, Optional

import numpy as np

from bodytrack import metrics
from bodytrack.config import EngineConfig
from bodytrack.models import (
    ActivityLevel,
    BodyCategory,
    BodyCompositionAssessment,
    HealthRisk,
    Measured,
    PrimaryMetric,
)

log = logging.getLogger(__name__)


# Risk tier when only BMI is known
BMI_CATEGORY_RISK = {
    BodyCategory.UNDERWEIGHT: HealthRisk.MODERATE,
    BodyCategory.HEALTHY: HealthRisk.LOW,
    BodyCategory.ATHLETIC_BUILD: HealthRisk.LOW,
    BodyCategory.OVERWEIGHT: HealthRisk.MODERATE,
    BodyCategory.HEAVY_ATHLETIC: HealthRisk.MODERATE,
    BodyCategory.OBESE: HealthRisk.HIGH,
    BodyCategory.UNKNOWN: HealthRisk.UNKNOWN,
}

# Categories where a missing waist measurement changes the advice
WAIST_SENSITIVE = {
    BodyCategory.ATHLETIC_BUILD,
    BodyCategory.OVERWEIGHT,
    BodyCategory.HEAVY_ATHLETIC,
}

RECOMMENDATIONS = {
    "invalid": "Enter a valid weight and height to assess body composition.",
    "high_risk": "High risk detected. Consult a healthcare provider for a personalized plan.",
    "add_waist": (
        "BMI may not reflect your body composition. "
        "Add a waist measurement for a more accurate assessment."
    ),
    BodyCategory.UNDERWEIGHT: "Consider healthy weight gain strategies.",
    BodyCategory.HEALTHY: "Healthy body composition. Keep up the good work!",
    BodyCategory.ATHLETIC_BUILD: "Excellent athletic build. Continue your training regimen.",
    BodyCategory.OVERWEIGHT: "Elevated risk. Focus on waist reduction through diet and exercise.",
    BodyCategory.HEAVY_ATHLETIC: (
        "Heavy but athletic. A professional body composition analysis is recommended."
    ),
    BodyCategory.OBESE: "Consider body composition analysis and healthy lifestyle changes.",
}

EXCELLENT = "Excellent body composition. Maintain current lifestyle."


# ---------------------------------------------------------------------------
# Category
# ---------------------------------------------------------------------------

def classify_bmi(bmi_value: float, level: ActivityLevel, cfg: EngineConfig) -> BodyCategory:
    """
    WHO bands with the overweight and obese boundaries raised by the
    activity bonus. Readings inside the bonus zone count as healthy, and
    as an athletic build from the athletic rank upward.
    """
    m = cfg.metrics
    bonus = cfg.bmi_bonus(level)
    athletic = cfg.activity_rank(level) >= cfg.composition.athletic_rank

    if bmi_value < m.bmi_underweight:
        return BodyCategory.UNDERWEIGHT
    if bmi_value < m.bmi_overweight:
        return BodyCategory.HEALTHY
    if bmi_value < m.bmi_overweight + bonus:
        return BodyCategory.ATHLETIC_BUILD if athletic else BodyCategory.HEALTHY
    if bmi_value < m.bmi_obese + bonus:
        return BodyCategory.OVERWEIGHT
    return BodyCategory.OBESE


def _category(
    bmi_value: Measured,
    whtr_value: Measured,
    level: ActivityLevel,
    cfg: EngineConfig,
) -> BodyCategory:
    if not bmi_value.available:
        return BodyCategory.UNKNOWN

    category = classify_bmi(bmi_value.value, level, cfg)

    m = cfg.metrics
    if metrics.is_whtr_healthy(whtr_value, m) and bmi_value.value >= m.bmi_overweight:
        if bmi_value.value < m.bmi_obese + cfg.bmi_bonus(level):
            return BodyCategory.ATHLETIC_BUILD
        return BodyCategory.HEAVY_ATHLETIC

    return category


# ---------------------------------------------------------------------------
# Risk
# ---------------------------------------------------------------------------

def _health_risk(
    category: BodyCategory,
    whtr_value: Measured,
    bri_value: Measured,
    whr_value: Measured,
    gender: Optional[str],
    cfg: EngineConfig,
) -> HealthRisk:
    m = cfg.metrics
    c = cfg.composition

    scores: List[int] = []
    if whtr_value.available:
        scores.append(metrics.whtr_score(whtr_value.value, m))
    if bri_value.available:
        scores.append(metrics.bri_score(bri_value.value, m))
    if whr_value.available:
        scores.append(metrics.whr_score(whr_value.value, gender, m))

    if not scores:
        return BMI_CATEGORY_RISK[category]

    average = float(np.mean(scores))
    if average >= c.risk_high:
        return HealthRisk.HIGH
    if average >= c.risk_moderate:
        return HealthRisk.MODERATE
    if average >= c.risk_low:
        return HealthRisk.LOW
    return HealthRisk.VERY_LOW


# ---------------------------------------------------------------------------
# Recommendation
# ---------------------------------------------------------------------------

def recommend(category: BodyCategory, risk: HealthRisk, waist_missing: bool) -> str:
    """Deterministic template for category x risk x missing waist."""
    if category is BodyCategory.UNKNOWN:
        return RECOMMENDATIONS["invalid"]
    if risk is HealthRisk.HIGH:
        return RECOMMENDATIONS["high_risk"]
    if waist_missing and category in WAIST_SENSITIVE:
        return RECOMMENDATIONS["add_waist"]
    if category is BodyCategory.HEALTHY and risk is HealthRisk.VERY_LOW:
        return EXCELLENT
    return RECOMMENDATIONS[category]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def assess_body_composition(
    weight_kg: float,
    height_cm: float,
    waist_cm: Optional[float] = None,
    hip_cm: Optional[float] = None,
    activity_level: ActivityLevel = ActivityLevel.ACTIVE,
    age: Optional[int] = None,
    gender: Optional[str] = None,
    cfg: EngineConfig | None = None,
) -> BodyCompositionAssessment:
    """
    Assess one point in time.

    Primary metric is WHtR when a waist is known, else BMI. BRI and WHR are
    secondary and need both waist and hip. `age` is accepted for parity
    with the profile; the waist and BMI bands used here are not
    age-adjusted.
    """
    if cfg is None:
        cfg = EngineConfig()

    bmi_value = metrics.bmi(weight_kg, height_cm)
    whtr_value = metrics.whtr(waist_cm, height_cm)
    bri_value = metrics.bri(waist_cm, height_cm, hip_cm)
    whr_value = metrics.whr(waist_cm, hip_cm)

    if not bmi_value.available:
        log.warning("Body composition unavailable: %s", bmi_value.detail)

    category = _category(bmi_value, whtr_value, activity_level, cfg)
    if category is BodyCategory.UNKNOWN:
        risk = HealthRisk.UNKNOWN
    else:
        risk = _health_risk(category, whtr_value, bri_value, whr_value, gender, cfg)

    primary = PrimaryMetric.WHTR if whtr_value.available else PrimaryMetric.BMI

    return BodyCompositionAssessment(
        bmi=bmi_value,
        whtr=whtr_value,
        bri=bri_value,
        whr=whr_value,
        primary_metric=primary,
        category=category,
        health_risk=risk,
        recommendation=recommend(category, risk, waist_missing=not whtr_value.available),
    )


def should_prompt_waist_measurement(
    weight_kg: float,
    height_cm: float,
    activity_level: ActivityLevel,
    waist_cm: Optional[float] = None,
    cfg: EngineConfig | None = None,
) -> bool:
    """Ask for a waist measurement when BMI is high or least reliable for this user."""
    if cfg is None:
        cfg = EngineConfig()

    if waist_cm is not None:
        return False

    bmi_value = metrics.bmi(weight_kg, height_cm)
    if not bmi_value.available:
        return False

    athletic = cfg.activity_rank(activity_level) >= cfg.composition.athletic_rank
    return athletic or bmi_value.value > cfg.composition.waist_prompt_bmi

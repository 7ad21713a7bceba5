"""
Blood-pressure classification and history analysis.

Categories come from ordered band tables per guideline (US AHA, EU ESC);
the first band whose systolic OR diastolic minimum is met wins. ESC tables
are age-bracketed.
"""

import logging
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from bodytrack.config import EngineConfig
from bodytrack.models import (
    BP_CATEGORY_RANK,
    BloodPressureAnalysis,
    BloodPressureAssessment,
    BloodPressureCategory,
    BloodPressureReading,
    BloodPressureTrend,
    DateLike,
    Measured,
    MedicalGuidelines,
    Reason,
    UserProfile,
    WeightTrend,
)
from bodytrack.signals import to_day
from bodytrack.trend import classify_series_trend

log = logging.getLogger(__name__)

_C = BloodPressureCategory

AHA_ADVICE = {
    _C.OPTIMAL: "Maintain healthy lifestyle to keep optimal blood pressure.",
    _C.NORMAL: "Continue healthy habits. Monitor regularly.",
    _C.ELEVATED: "Adopt healthy lifestyle changes to prevent hypertension.",
    _C.STAGE_1: "Lifestyle changes and possible medication. Consult healthcare provider.",
    _C.STAGE_2: "Combination of lifestyle changes and medication typically needed.",
    _C.CRISIS: "Seek immediate medical attention. This is a medical emergency.",
}

ESC_ADVICE = {
    _C.OPTIMAL: "Optimal blood pressure{ctx}. Excellent cardiovascular health.",
    _C.NORMAL: "Normal blood pressure{ctx}. Continue current lifestyle.",
    _C.ELEVATED: "High-normal range{ctx}. Monitor and maintain healthy habits.",
    _C.STAGE_1: "Grade 1 hypertension{ctx}. Lifestyle modifications recommended.",
    _C.STAGE_2: "Grade 2 hypertension{ctx}. Medical evaluation needed.",
    _C.CRISIS: "Hypertensive emergency. Immediate medical attention required.",
}

# Systolic direction -> health direction
_TREND = {
    WeightTrend.LOSING: BloodPressureTrend.IMPROVING,
    WeightTrend.STABLE: BloodPressureTrend.STABLE,
    WeightTrend.GAINING: BloodPressureTrend.WORSENING,
}


# ---------------------------------------------------------------------------
# Single reading
# ---------------------------------------------------------------------------

def _advice(
    category: BloodPressureCategory,
    guidelines: MedicalGuidelines,
    age: Optional[int],
    cfg: EngineConfig,
) -> str:
    if guidelines is MedicalGuidelines.US_AHA:
        return AHA_ADVICE[category]

    ctx = ""
    if age is not None:
        bracket = cfg.blood_pressure.bands_for(guidelines, age)
        if bracket.min_age > 0:
            ctx = " (age-adjusted target)"
        elif age >= cfg.blood_pressure.age_adjusted_from:
            ctx = " (senior-friendly target)"
    return ESC_ADVICE[category].format(ctx=ctx)


def categorize(
    systolic: int,
    diastolic: int,
    age: Optional[int],
    guidelines: MedicalGuidelines,
    cfg: EngineConfig,
) -> BloodPressureCategory:
    bracket = cfg.blood_pressure.bands_for(guidelines, age)
    for band in bracket.bands:
        if band.systolic_min is not None and systolic >= band.systolic_min:
            return band.category
        if band.diastolic_min is not None and diastolic >= band.diastolic_min:
            return band.category
    if systolic < bracket.optimal_systolic_below and diastolic < bracket.optimal_diastolic_below:
        return _C.OPTIMAL
    return _C.NORMAL


def classify_blood_pressure(
    systolic: int,
    diastolic: int,
    age: Optional[int] = None,
    guidelines: MedicalGuidelines = MedicalGuidelines.US_AHA,
    cfg: EngineConfig | None = None,
) -> BloodPressureAssessment:
    """Category and advice for one reading under the chosen guideline."""
    if cfg is None:
        cfg = EngineConfig()

    category = categorize(systolic, diastolic, age, guidelines, cfg)
    age_adjusted = (
        guidelines is MedicalGuidelines.EU_ESC
        and age is not None
        and age >= cfg.blood_pressure.age_adjusted_from
    )
    return BloodPressureAssessment(
        category=category,
        guidelines=guidelines,
        age=age,
        is_age_adjusted=age_adjusted,
        recommendation=_advice(category, guidelines, age, cfg),
    )


def requires_immediate_attention(
    systolic: int,
    diastolic: int,
    pulse: int,
    age: Optional[int] = None,
    guidelines: MedicalGuidelines = MedicalGuidelines.US_AHA,
    cfg: EngineConfig | None = None,
) -> bool:
    """Crisis-level pressure, or a pulse outside the safe range."""
    if cfg is None:
        cfg = EngineConfig()
    bp = cfg.blood_pressure
    if categorize(systolic, diastolic, age, guidelines, cfg) is _C.CRISIS:
        return True
    return pulse < bp.pulse_low or pulse > bp.pulse_high


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

def _reading_frame(readings: Iterable[BloodPressureReading]) -> pd.DataFrame:
    rows = []
    for r in readings:
        if r.systolic <= 0 or r.diastolic <= 0 or r.pulse <= 0:
            log.warning("Dropping blood-pressure reading %r: non-positive value", r.id)
            continue
        rows.append({
            "id": r.id,
            "date": r.date,
            "systolic": r.systolic,
            "diastolic": r.diastolic,
            "pulse": r.pulse,
        })
    df = pd.DataFrame(rows, columns=["id", "date", "systolic", "diastolic", "pulse"])
    df["date"] = pd.to_datetime(df["date"])
    return df.sort_values(["date", "id"], kind="mergesort").reset_index(drop=True)


def _mean(series: pd.Series) -> Measured:
    if series.empty:
        return Measured.unavailable(Reason.INSUFFICIENT_DATA)
    return Measured.of(float(np.mean(series.to_numpy(dtype=np.float64)))).rounded(1)


def analyze_blood_pressure(
    readings: Iterable[BloodPressureReading],
    profile: UserProfile,
    cfg: EngineConfig | None = None,
    as_of: Optional[DateLike] = None,
) -> Optional[BloodPressureAnalysis]:
    """
    Averages, systolic trend, high-reading count and category breakdown.

    Returns None when there are no valid readings. Age for ESC brackets is
    taken from the profile's birth date on `as_of` (default: latest reading).
    """
    if cfg is None:
        cfg = EngineConfig()
    bp = cfg.blood_pressure

    df = _reading_frame(readings)
    if as_of is not None:
        df = df[df["date"].dt.normalize() <= to_day(as_of)]
    if df.empty:
        return None

    anchor = to_day(as_of) if as_of is not None else df["date"].iloc[-1].normalize()
    age = profile.age_on(anchor.to_pydatetime().date())
    guidelines = profile.medical_guidelines

    categories = [
        categorize(s, d, age, guidelines, cfg)
        for s, d in zip(df["systolic"].tolist(), df["diastolic"].tolist())
    ]
    high_rank = BP_CATEGORY_RANK[bp.high_reading_category]
    high = sum(1 for c in categories if BP_CATEGORY_RANK[c] >= high_rank)
    breakdown = tuple(
        (c, categories.count(c))
        for c in sorted(set(categories), key=BP_CATEGORY_RANK.__getitem__)
    )

    window = classify_series_trend(
        df["date"].tolist(),
        df["systolic"].tolist(),
        noise_per_week=bp.trend_noise_mmhg_per_week,
        window_days=bp.trend_window_days,
        min_points=bp.trend_min_readings,
        as_of=anchor,
    )

    return BloodPressureAnalysis(
        total_readings=len(df),
        average_systolic=_mean(df["systolic"]),
        average_diastolic=_mean(df["diastolic"]),
        average_pulse=_mean(df["pulse"]),
        trend=_TREND[window.direction] if window.direction is not None else None,
        high_readings=high,
        category_breakdown=breakdown,
        guidelines=guidelines,
    )

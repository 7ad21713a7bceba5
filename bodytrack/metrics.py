"""
Anthropometric formulas and unit conversion.

Pure leaf functions. Every index returns a `Measured`: a finite value, or
`INVALID_INPUT` / `MISSING_MEASUREMENT` instead of NaN or infinity.
Classification always happens in metric units.
"""

import math
from typing import Optional, Tuple

from bodytrack.config import MetricParams
from bodytrack.models import Measured, MeasurementSystem, Reason


KG_PER_LB = 0.45359237
CM_PER_IN = 2.54
IN_PER_FOOT = 12


def _positive(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value) and value > 0


def _invalid(name: str, value: Optional[float]) -> Measured:
    return Measured.unavailable(Reason.INVALID_INPUT, f"{name} must be positive, got {value!r}")


# ---------------------------------------------------------------------------
# Indices
# ---------------------------------------------------------------------------

def bmi(weight_kg: float, height_cm: float) -> Measured:
    """Body Mass Index: weight(kg) / height(m)^2."""
    if not _positive(weight_kg):
        return _invalid("weight_kg", weight_kg)
    if not _positive(height_cm):
        return _invalid("height_cm", height_cm)
    height_m = height_cm / 100.0
    return Measured.of(weight_kg / (height_m * height_m))


def whtr(waist_cm: Optional[float], height_cm: float) -> Measured:
    """Waist-to-height ratio. Healthy below 0.5."""
    if waist_cm is None:
        return Measured.unavailable(Reason.MISSING_MEASUREMENT, "waist not measured")
    if not _positive(waist_cm):
        return _invalid("waist_cm", waist_cm)
    if not _positive(height_cm):
        return _invalid("height_cm", height_cm)
    return Measured.of(waist_cm / height_cm)


def bri(waist_cm: Optional[float], height_cm: float, hip_cm: Optional[float]) -> Measured:
    """
    Body Roundness Index (Thomas et al., 2013).

        BRI = 364.2 - 365.5 * sqrt(1 - (WC / 2π)^2 / (0.5 * H)^2)

    Models the body as an ellipse with the waist as the minor circumference.
    Only reported when both waist and hip are measured.
    """
    if waist_cm is None or hip_cm is None:
        missing = "waist" if waist_cm is None else "hip"
        return Measured.unavailable(Reason.MISSING_MEASUREMENT, f"{missing} not measured")
    for name, value in (("waist_cm", waist_cm), ("height_cm", height_cm), ("hip_cm", hip_cm)):
        if not _positive(value):
            return _invalid(name, value)

    radius = waist_cm / (2.0 * math.pi)
    half_height = 0.5 * height_cm
    ratio_sq = (radius / half_height) ** 2
    if ratio_sq >= 1.0:
        # Waist radius at or beyond half height: the ellipse degenerates
        return Measured.unavailable(Reason.INVALID_INPUT, "waist too large for height")

    eccentricity = math.sqrt(1.0 - ratio_sq)
    return Measured.of(364.2 - 365.5 * eccentricity)


def whr(waist_cm: Optional[float], hip_cm: Optional[float]) -> Measured:
    """Waist-to-hip ratio."""
    if waist_cm is None or hip_cm is None:
        missing = "waist" if waist_cm is None else "hip"
        return Measured.unavailable(Reason.MISSING_MEASUREMENT, f"{missing} not measured")
    if not _positive(waist_cm):
        return _invalid("waist_cm", waist_cm)
    if not _positive(hip_cm):
        return _invalid("hip_cm", hip_cm)
    return Measured.of(waist_cm / hip_cm)


# ---------------------------------------------------------------------------
# Bands
# ---------------------------------------------------------------------------

def is_whtr_healthy(value: Measured, params: MetricParams) -> Optional[bool]:
    """True below the healthy boundary; None when WHtR is unavailable."""
    if not value.available:
        return None
    return value.value < params.whtr_healthy


def whtr_score(value: float, params: MetricParams) -> int:
    """Risk score 0-3."""
    if value >= params.whtr_high:
        return 3
    if value >= params.whtr_healthy:
        return 2
    if value >= params.whtr_very_low:
        return 1
    return 0


def bri_band(value: float, params: MetricParams) -> str:
    if value >= params.bri_elevated:
        return "elevated"
    if value >= params.bri_moderate:
        return "moderate"
    return "low"


def bri_score(value: float, params: MetricParams) -> int:
    """Risk score 0-3; the low band carries no risk."""
    return {"low": 0, "moderate": 2, "elevated": 3}[bri_band(value, params)]


def whr_score(value: float, gender: Optional[str], params: MetricParams) -> int:
    """Risk score 0-3 around the gender-specific threshold."""
    threshold = params.whr_threshold(gender)
    if value >= threshold + params.whr_band_width:
        return 3
    if value >= threshold:
        return 2
    if value >= threshold - params.whr_low_margin:
        return 1
    return 0


# ---------------------------------------------------------------------------
# Unit conversion
# ---------------------------------------------------------------------------

def kg_to_lb(kg: float) -> float:
    return kg / KG_PER_LB


def lb_to_kg(lb: float) -> float:
    return lb * KG_PER_LB


def cm_to_in(cm: float) -> float:
    return cm / CM_PER_IN


def in_to_cm(inches: float) -> float:
    return inches * CM_PER_IN


def cm_to_feet_inches(cm: float) -> Tuple[int, float]:
    total_inches = cm_to_in(cm)
    feet = int(total_inches // IN_PER_FOOT)
    return feet, total_inches - feet * IN_PER_FOOT


def feet_inches_to_cm(feet: int, inches: float) -> float:
    return in_to_cm(feet * IN_PER_FOOT + inches)


def convert_weight(value_kg: float, system: MeasurementSystem) -> float:
    """kg -> display unit of `system`."""
    if system is MeasurementSystem.IMPERIAL:
        return kg_to_lb(value_kg)
    return value_kg


def weight_to_kg(value: float, system: MeasurementSystem) -> float:
    """Display unit of `system` -> kg."""
    if system is MeasurementSystem.IMPERIAL:
        return lb_to_kg(value)
    return value


def convert_length(value_cm: float, system: MeasurementSystem) -> float:
    """cm -> display unit of `system`."""
    if system is MeasurementSystem.IMPERIAL:
        return cm_to_in(value_cm)
    return value_cm


def length_to_cm(value: float, system: MeasurementSystem) -> float:
    """Display unit of `system` -> cm."""
    if system is MeasurementSystem.IMPERIAL:
        return in_to_cm(value)
    return value

"""
Value objects consumed and produced by the engine.

Inputs (records, profile) are owned by the caller and treated as read-only.
Outputs are computed fresh per call and never persisted here.
"""

import datetime
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple, Union

DateLike = Union[datetime.date, datetime.datetime]


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ActivityLevel(str, Enum):
    SEDENTARY = "sedentary"
    ACTIVE = "active"
    ATHLETIC = "athletic"
    ENDURANCE_ATHLETE = "endurance_athlete"


class MeasurementSystem(str, Enum):
    METRIC = "metric"
    IMPERIAL = "imperial"


class MedicalGuidelines(str, Enum):
    US_AHA = "us_aha"
    EU_ESC = "eu_esc"


class MeasurementType(str, Enum):
    WAIST = "waist"
    CHEST = "chest"
    HIPS = "hips"
    NECK = "neck"
    BICEPS = "biceps"
    THIGH = "thigh"
    FOREARM = "forearm"


class PrimaryMetric(str, Enum):
    BMI = "BMI"
    WHTR = "WHtR"
    BRI = "BRI"


class BodyCategory(str, Enum):
    UNDERWEIGHT = "Underweight"
    HEALTHY = "Healthy"
    ATHLETIC_BUILD = "Athletic Build"
    OVERWEIGHT = "Overweight"
    HEAVY_ATHLETIC = "Heavy Athletic"
    OBESE = "Obese"
    UNKNOWN = "Unknown"


class HealthRisk(str, Enum):
    VERY_LOW = "Very Low"
    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"
    UNKNOWN = "Unknown"


class WeightTrend(str, Enum):
    LOSING = "Losing"
    GAINING = "Gaining"
    STABLE = "Stable"


class PlateauSeverity(str, Enum):
    NONE = "None"
    MILD = "Mild"
    MODERATE = "Moderate"
    SEVERE = "Severe"


class Confidence(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class BloodPressureCategory(str, Enum):
    OPTIMAL = "Optimal"
    NORMAL = "Normal"
    ELEVATED = "Elevated"
    STAGE_1 = "Stage 1 Hypertension"
    STAGE_2 = "Stage 2 Hypertension"
    CRISIS = "Hypertensive Crisis"


# Severity ordering for blood-pressure categories
BP_CATEGORY_RANK: Dict[BloodPressureCategory, int] = {
    BloodPressureCategory.OPTIMAL: 1,
    BloodPressureCategory.NORMAL: 2,
    BloodPressureCategory.ELEVATED: 3,
    BloodPressureCategory.STAGE_1: 4,
    BloodPressureCategory.STAGE_2: 5,
    BloodPressureCategory.CRISIS: 6,
}


class BloodPressureTrend(str, Enum):
    IMPROVING = "Improving"
    STABLE = "Stable"
    WORSENING = "Worsening"


class Reason(str, Enum):
    """Why a value is unavailable."""

    INSUFFICIENT_DATA = "insufficient_data"
    INVALID_INPUT = "invalid_input"
    NON_CONVERGING = "non_converging"
    MISSING_MEASUREMENT = "missing_measurement"
    NO_GOAL = "no_goal"


# ---------------------------------------------------------------------------
# Explicit availability
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Measured:
    """A finite number, or the reason there is none."""

    value: Optional[float] = None
    reason: Optional[Reason] = None
    detail: str = ""

    @classmethod
    def of(cls, value: float) -> "Measured":
        if value is None or not math.isfinite(value):
            return cls(reason=Reason.INVALID_INPUT, detail=f"non-finite value: {value!r}")
        return cls(value=float(value))

    @classmethod
    def unavailable(cls, reason: Reason, detail: str = "") -> "Measured":
        return cls(reason=reason, detail=detail)

    @property
    def available(self) -> bool:
        return self.value is not None

    def rounded(self, ndigits: int) -> "Measured":
        if self.value is None:
            return self
        return Measured(value=round(self.value, ndigits))


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WeightRecord:
    id: Union[int, str]
    user_id: Union[int, str]
    value_kg: float
    date: DateLike
    note: Optional[str] = None
    photo_ref: Optional[str] = None


@dataclass(frozen=True)
class MeasurementRecord:
    id: Union[int, str]
    user_id: Union[int, str]
    type: Union[MeasurementType, str]
    value_cm: float
    date: DateLike
    side: Optional[str] = None


@dataclass(frozen=True)
class BloodPressureReading:
    id: Union[int, str]
    user_id: Union[int, str]
    systolic: int
    diastolic: int
    pulse: int
    date: DateLike
    time_of_day: Optional[str] = None


@dataclass(frozen=True)
class UserProfile:
    height_cm: float
    activity_level: ActivityLevel = ActivityLevel.ACTIVE
    measurement_system: MeasurementSystem = MeasurementSystem.METRIC
    medical_guidelines: MedicalGuidelines = MedicalGuidelines.US_AHA
    birth_date: Optional[datetime.date] = None
    gender: Optional[str] = None
    target_weight_kg: Optional[float] = None
    target_waist_cm: Optional[float] = None

    def age_on(self, day: datetime.date) -> Optional[int]:
        """Whole years between birth_date and `day`, or None."""
        if self.birth_date is None:
            return None
        born = self.birth_date
        years = day.year - born.year
        if (day.month, day.day) < (born.month, born.day):
            years -= 1
        return years


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BodyCompositionAssessment:
    bmi: Measured
    whtr: Measured
    bri: Measured
    whr: Measured
    primary_metric: PrimaryMetric
    category: BodyCategory
    health_risk: HealthRisk
    recommendation: str

    @property
    def primary_value(self) -> Measured:
        return {
            PrimaryMetric.BMI: self.bmi,
            PrimaryMetric.WHTR: self.whtr,
            PrimaryMetric.BRI: self.bri,
        }[self.primary_metric]

    @property
    def has_waist_measurement(self) -> bool:
        return self.whtr.available


@dataclass(frozen=True)
class TrendWindow:
    """Direction and smoothed rate over one window; direction is None when unavailable."""

    direction: Optional[WeightTrend]
    rate_kg_per_week: Measured
    entries: int


@dataclass(frozen=True)
class TrendResult:
    current_trend: TrendWindow
    weekly_trend: TrendWindow
    monthly_trend: TrendWindow
    current_streak: int
    longest_streak: int
    streak_direction: Optional[WeightTrend] = None


@dataclass(frozen=True)
class PlateauStatus:
    severity: PlateauSeverity
    duration_days: int
    primary_action: str
    encouragement: str
    strategies: Tuple[str, ...] = ()
    average_weight_kg: Measured = field(
        default_factory=lambda: Measured.unavailable(Reason.INSUFFICIENT_DATA)
    )
    sufficient_data: bool = True


@dataclass(frozen=True)
class Prediction:
    estimated_date: Optional[datetime.date]
    estimated_days: Optional[int]
    confidence: Optional[Confidence]
    rate_kg_per_day: Measured
    projections: Tuple[Tuple[int, float], ...] = ()
    reason: Optional[Reason] = None

    @property
    def available(self) -> bool:
        return self.estimated_date is not None


@dataclass(frozen=True)
class BMIAnalysis:
    current_bmi: Measured
    category: BodyCategory
    bmi_change: Measured
    target_bmi: Measured


@dataclass(frozen=True)
class WaistAnalysis:
    current_waist_cm: Measured
    target_waist_cm: Measured
    remaining_cm: Measured
    entries: int


@dataclass(frozen=True)
class BloodPressureAssessment:
    category: BloodPressureCategory
    guidelines: MedicalGuidelines
    age: Optional[int]
    is_age_adjusted: bool
    recommendation: str


@dataclass(frozen=True)
class BloodPressureAnalysis:
    total_readings: int
    average_systolic: Measured
    average_diastolic: Measured
    average_pulse: Measured
    trend: Optional[BloodPressureTrend]
    high_readings: int
    category_breakdown: Tuple[Tuple[BloodPressureCategory, int], ...]
    guidelines: MedicalGuidelines


@dataclass(frozen=True)
class StatisticsSnapshot:
    total_entries: int
    total_measurement_entries: int
    initial_weight_kg: Measured
    current_weight_kg: Measured
    min_weight_kg: Measured
    max_weight_kg: Measured
    average_weight_kg: Measured
    weight_loss_kg: Measured
    weight_gain_kg: Measured
    average_weekly_change_kg: Measured
    progress_percentage: Measured
    days_active: int
    estimated_days_to_goal: Measured
    current_trend: Optional[WeightTrend]
    weekly_trend: Optional[WeightTrend]
    monthly_trend: Optional[WeightTrend]
    current_streak: int
    longest_streak: int
    bmi: BMIAnalysis
    waist: Optional[WaistAnalysis]
    blood_pressure: Optional[BloodPressureAnalysis]

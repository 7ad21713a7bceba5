"""
Centralized configuration for all thresholds, bands, and window parameters.

Every tunable constant lives here. Ordered concepts (activity levels,
blood-pressure bands) are explicit lookup tables rather than enum order.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from bodytrack.models import (
    ActivityLevel,
    BloodPressureCategory,
    MedicalGuidelines,
)


# ---------------------------------------------------------------------------
# Activity levels
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ActivityProfile:
    """Rank and BMI bonus for one activity level."""

    rank: int
    bmi_bonus_threshold: float


DEFAULT_ACTIVITY_TABLE: Dict[ActivityLevel, ActivityProfile] = {
    ActivityLevel.SEDENTARY: ActivityProfile(rank=0, bmi_bonus_threshold=0.0),
    ActivityLevel.ACTIVE: ActivityProfile(rank=1, bmi_bonus_threshold=1.0),
    ActivityLevel.ATHLETIC: ActivityProfile(rank=2, bmi_bonus_threshold=2.0),
    ActivityLevel.ENDURANCE_ATHLETE: ActivityProfile(rank=3, bmi_bonus_threshold=3.0),
}


# ---------------------------------------------------------------------------
# Body composition
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MetricParams:
    """Boundaries for the anthropometric indices."""

    # WHO BMI bands (unadjusted)
    bmi_underweight: float = 18.5
    bmi_overweight: float = 25.0
    bmi_obese: float = 30.0

    # WHtR: healthy below 0.5
    whtr_very_low: float = 0.4
    whtr_healthy: float = 0.5
    whtr_high: float = 0.6

    # BRI: <3 low, [3, 5) moderate, >=5 elevated
    bri_moderate: float = 3.0
    bri_elevated: float = 5.0

    # WHR thresholds by gender; "default" when gender is unknown
    whr_thresholds: Tuple[Tuple[str, float], ...] = (
        ("female", 0.80),
        ("male", 0.90),
        ("default", 0.85),
    )
    whr_band_width: float = 0.1
    whr_low_margin: float = 0.05

    def __post_init__(self):
        if not (self.bmi_underweight < self.bmi_overweight < self.bmi_obese):
            raise ValueError("BMI bands must be strictly increasing")
        if not (self.whtr_very_low < self.whtr_healthy < self.whtr_high):
            raise ValueError("WHtR bands must be strictly increasing")
        if not (self.bri_moderate < self.bri_elevated):
            raise ValueError("BRI bands must be strictly increasing")

    def whr_threshold(self, gender: Optional[str]) -> float:
        table = dict(self.whr_thresholds)
        key = (gender or "").strip().lower()
        return table.get(key, table["default"])


@dataclass(frozen=True)
class CompositionParams:
    """Risk aggregation and waist-prompt rules."""

    # Average per-metric risk score (0-3) -> tier
    risk_low: float = 0.5
    risk_moderate: float = 1.5
    risk_high: float = 2.5

    # Activity rank from which BMI alone is considered unreliable
    athletic_rank: int = 2

    # BMI above which a missing waist measurement is requested
    waist_prompt_bmi: float = 25.0


# ---------------------------------------------------------------------------
# Series analysis
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TrendParams:
    """Windows and thresholds for directional trend and streaks."""

    current_entries: int = 3
    weekly_days: int = 7
    monthly_days: int = 30
    min_data_points: int = 2

    # |rate| below this (kg/week) is Stable
    noise_kg_per_week: float = 0.1

    # Streaks
    streak_min_change_kg: float = 0.05
    max_gap_days: int = 3

    def __post_init__(self):
        if self.weekly_days <= 0 or self.monthly_days <= 0:
            raise ValueError("Trend windows must be positive")
        if self.min_data_points < 2:
            raise ValueError("A trend needs at least two points")
        if self.noise_kg_per_week < 0:
            raise ValueError("noise_kg_per_week must be non-negative")


@dataclass(frozen=True)
class PlateauParams:
    """Plateau window, flatness tolerance, and severity bands."""

    window_entries: int = 14
    window_days: int = 14
    epsilon_kg: float = 0.5
    min_entries: int = 3
    min_days: int = 7

    # Inclusive calendar days
    mild_max_days: int = 14
    severe_min_days: int = 28

    def __post_init__(self):
        if self.window_entries < self.min_entries:
            raise ValueError("window_entries must be >= min_entries")
        if not (self.min_days <= self.mild_max_days < self.severe_min_days):
            raise ValueError(
                "Plateau bands must satisfy min_days <= mild_max_days < severe_min_days"
            )
        if self.epsilon_kg <= 0:
            raise ValueError("epsilon_kg must be positive")


@dataclass(frozen=True)
class PredictionParams:
    """Regression window and confidence bands for goal forecasting."""

    entries: int = 14
    min_entries: int = 3

    # Residual RMSE (kg) bands for qualitative confidence
    high_confidence_rmse: float = 0.3
    medium_confidence_rmse: float = 0.8

    projection_horizons: Tuple[int, ...] = (7, 30, 90)
    projection_margin_kg: float = 10.0

    # Forecasts further out than this are treated as non-converging
    max_days: int = 3650

    def __post_init__(self):
        if self.min_entries < 3:
            raise ValueError("Prediction needs at least three entries")
        if self.entries < self.min_entries:
            raise ValueError("entries must be >= min_entries")
        if self.high_confidence_rmse > self.medium_confidence_rmse:
            raise ValueError("Confidence bands must be non-decreasing")


# ---------------------------------------------------------------------------
# Blood pressure
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PressureBand:
    """A category reached when systolic OR diastolic meets its minimum."""

    category: BloodPressureCategory
    systolic_min: Optional[int] = None
    diastolic_min: Optional[int] = None


@dataclass(frozen=True)
class GuidelineBands:
    """Ordered bands for one guideline and age bracket; first match wins."""

    min_age: int
    bands: Tuple[PressureBand, ...]
    optimal_systolic_below: int
    optimal_diastolic_below: int


_C = BloodPressureCategory

AHA_BANDS: Tuple[GuidelineBands, ...] = (
    GuidelineBands(
        min_age=0,
        bands=(
            PressureBand(_C.CRISIS, 180, 120),
            PressureBand(_C.STAGE_2, 140, 90),
            PressureBand(_C.STAGE_1, 130, 80),
            PressureBand(_C.ELEVATED, 120, None),
        ),
        optimal_systolic_below=120,
        optimal_diastolic_below=80,
    ),
)

ESC_BANDS: Tuple[GuidelineBands, ...] = (
    GuidelineBands(
        min_age=80,
        bands=(
            PressureBand(_C.CRISIS, 180, 110),
            PressureBand(_C.STAGE_2, 160, 100),
            PressureBand(_C.STAGE_1, 150, 95),
            PressureBand(_C.ELEVATED, 140, 90),
        ),
        optimal_systolic_below=120,
        optimal_diastolic_below=70,
    ),
    GuidelineBands(
        min_age=0,
        bands=(
            PressureBand(_C.CRISIS, 180, 110),
            PressureBand(_C.STAGE_2, 160, 100),
            PressureBand(_C.STAGE_1, 140, 90),
            PressureBand(_C.ELEVATED, 130, 85),
        ),
        optimal_systolic_below=120,
        optimal_diastolic_below=70,
    ),
)


@dataclass(frozen=True)
class BloodPressureParams:
    """Guideline tables and trend rules for blood-pressure analysis."""

    guideline_bands: Tuple[Tuple[MedicalGuidelines, Tuple[GuidelineBands, ...]], ...] = (
        (MedicalGuidelines.US_AHA, AHA_BANDS),
        (MedicalGuidelines.EU_ESC, ESC_BANDS),
    )

    # Readings at or above this category count as "high"
    high_reading_category: BloodPressureCategory = BloodPressureCategory.STAGE_1

    # ESC marks assessments as age-adjusted from this age. Only the advice
    # wording changes; the 65+ thresholds equal the adult bracket in ESC_BANDS.
    age_adjusted_from: int = 65

    trend_window_days: int = 30
    trend_min_readings: int = 3
    trend_noise_mmhg_per_week: float = 2.0

    pulse_low: int = 50
    pulse_high: int = 120

    def bands_for(self, guidelines: MedicalGuidelines, age: Optional[int]) -> GuidelineBands:
        """Pick the bracket with the highest `min_age` not above `age`."""
        brackets = dict(self.guideline_bands)[guidelines]
        effective_age = age if age is not None else 0
        for bracket in sorted(brackets, key=lambda b: b.min_age, reverse=True):
            if effective_age >= bracket.min_age:
                return bracket
        raise ValueError(f"No blood-pressure bands for {guidelines} at age {age}")


# ---------------------------------------------------------------------------
# Statistics and insight cards
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StatisticsParams:
    """Aggregation bounds."""

    progress_min: float = 0.0
    progress_max: float = 100.0


@dataclass(frozen=True)
class InsightParams:
    """Card gates, pattern thresholds, and milestone tables."""

    min_entries_progress: int = 2
    min_entries_streak: int = 2
    min_entries_tips: int = 3
    min_entries_weekly: int = 2

    goal_near_completion_pct: float = 90.0

    best_week_min_days: int = 6
    best_week_max_days: int = 8

    rapid_change_days: int = 7
    rapid_change_kg: float = 2.0
    consistent_window_days: int = 30
    consistent_min_entries: int = 5
    consistent_min_r_squared: float = 0.7

    loss_milestones_kg: Tuple[float, ...] = (20.0, 15.0, 10.0, 5.0, 2.0)
    tracking_milestones_days: Tuple[int, ...] = (365, 180, 90, 30)


# ---------------------------------------------------------------------------
# Top-level config aggregate
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EngineConfig:
    """Complete engine configuration. Pass to any operation to override defaults."""

    activity_table: Dict[ActivityLevel, ActivityProfile] = field(
        default_factory=lambda: dict(DEFAULT_ACTIVITY_TABLE)
    )
    metrics: MetricParams = field(default_factory=MetricParams)
    composition: CompositionParams = field(default_factory=CompositionParams)
    trend: TrendParams = field(default_factory=TrendParams)
    plateau: PlateauParams = field(default_factory=PlateauParams)
    prediction: PredictionParams = field(default_factory=PredictionParams)
    blood_pressure: BloodPressureParams = field(default_factory=BloodPressureParams)
    statistics: StatisticsParams = field(default_factory=StatisticsParams)
    insights: InsightParams = field(default_factory=InsightParams)

    def __post_init__(self):
        missing = set(ActivityLevel) - set(self.activity_table)
        if missing:
            raise ValueError(f"Activity table missing levels: {sorted(m.value for m in missing)}")

        ranked = sorted(self.activity_table.values(), key=lambda p: p.rank)
        for lower, higher in zip(ranked, ranked[1:]):
            if lower.rank == higher.rank:
                raise ValueError("Activity ranks must be distinct")
            if higher.bmi_bonus_threshold < lower.bmi_bonus_threshold:
                raise ValueError("Activity BMI bonus must be non-decreasing with rank")

    def activity_rank(self, level: ActivityLevel) -> int:
        return self.activity_table[level].rank

    def bmi_bonus(self, level: ActivityLevel) -> float:
        return self.activity_table[level].bmi_bonus_threshold

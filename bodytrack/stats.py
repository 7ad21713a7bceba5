"""
Full-history statistics: the numbers behind the statistics screen.

Trend and prediction results may be passed in when the caller has already
computed them; otherwise they are computed here with the same config.
"""

import logging
from typing import Dict, Iterable, Optional

import pandas as pd

from bodytrack import metrics, signals
from bodytrack.bloodpressure import analyze_blood_pressure
from bodytrack.composition import classify_bmi
from bodytrack.config import EngineConfig
from bodytrack.models import (
    BloodPressureReading,
    BMIAnalysis,
    BodyCategory,
    DateLike,
    Measured,
    MeasurementRecord,
    MeasurementType,
    Prediction,
    Reason,
    StatisticsSnapshot,
    TrendResult,
    UserProfile,
    WaistAnalysis,
    WeightRecord,
)
from bodytrack.prediction import predict_goal
from bodytrack.trend import analyze_trend

log = logging.getLogger(__name__)


def _none(reason: Reason = Reason.INSUFFICIENT_DATA, detail: str = "") -> Measured:
    return Measured.unavailable(reason, detail)


# ---------------------------------------------------------------------------
# Measurements
# ---------------------------------------------------------------------------

def latest_measurements(
    measurements: Iterable[MeasurementRecord],
    as_of: Optional[DateLike] = None,
) -> Dict[MeasurementType, float]:
    """Most recent value per measurement type, up to `as_of`."""
    df = signals.measurement_frame(measurements)
    df = signals.up_to(df, signals.to_day(as_of))
    if df.empty:
        return {}
    return {t: float(v) for t, v in df.groupby("type", sort=False)["value"].last().items()}


def progress_percentage(
    initial: float,
    current: float,
    goal: Optional[float],
    cfg: EngineConfig,
) -> Measured:
    """Share of the initial-to-goal distance covered, clamped to [0, 100]."""
    if goal is None:
        return _none(Reason.NO_GOAL, "no goal weight set")
    if initial == goal:
        return _none(Reason.INVALID_INPUT, "initial weight equals goal")
    s = cfg.statistics
    pct = (initial - current) / (initial - goal) * 100.0
    return Measured.of(min(max(pct, s.progress_min), s.progress_max)).rounded(1)


def bmi_analysis(
    initial: Optional[float],
    current: Optional[float],
    profile: UserProfile,
    cfg: EngineConfig,
) -> BMIAnalysis:
    if current is None:
        return BMIAnalysis(
            current_bmi=_none(),
            category=BodyCategory.UNKNOWN,
            bmi_change=_none(),
            target_bmi=_none(),
        )

    current_bmi = metrics.bmi(current, profile.height_cm)
    initial_bmi = metrics.bmi(initial, profile.height_cm)
    category = (
        classify_bmi(current_bmi.value, profile.activity_level, cfg)
        if current_bmi.available
        else BodyCategory.UNKNOWN
    )
    if current_bmi.available and initial_bmi.available:
        change = Measured.of(current_bmi.value - initial_bmi.value)
    else:
        change = current_bmi if not current_bmi.available else initial_bmi

    if profile.target_weight_kg is None:
        target = _none(Reason.NO_GOAL, "no goal weight set")
    else:
        target = metrics.bmi(profile.target_weight_kg, profile.height_cm)

    return BMIAnalysis(
        current_bmi=current_bmi.rounded(1),
        category=category,
        bmi_change=change.rounded(1),
        target_bmi=target.rounded(1),
    )


def waist_analysis(
    measurements: Iterable[MeasurementRecord],
    profile: UserProfile,
    as_of: Optional[pd.Timestamp],
) -> Optional[WaistAnalysis]:
    df = signals.up_to(signals.measurement_frame(measurements), as_of)
    waist = df[df["type"] == MeasurementType.WAIST]
    if waist.empty:
        return None

    current = Measured.of(float(waist["value"].iloc[-1]))
    if profile.target_waist_cm is None:
        target = _none(Reason.NO_GOAL, "no waist target set")
        remaining = target
    else:
        target = Measured.of(profile.target_waist_cm)
        remaining = Measured.of(current.value - profile.target_waist_cm).rounded(1)

    return WaistAnalysis(
        current_waist_cm=current.rounded(1),
        target_waist_cm=target,
        remaining_cm=remaining,
        entries=len(waist),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def aggregate_statistics(
    records: Iterable[WeightRecord],
    profile: UserProfile,
    measurements: Optional[Iterable[MeasurementRecord]] = None,
    blood_pressure: Optional[Iterable[BloodPressureReading]] = None,
    cfg: EngineConfig | None = None,
    as_of: Optional[DateLike] = None,
    trend: Optional[TrendResult] = None,
    prediction: Optional[Prediction] = None,
) -> StatisticsSnapshot:
    """
    Summarize the whole weight history up to `as_of`.

    Weight loss is initial - min when the minimum is below the start;
    gain is max - initial. Progress is unavailable without a goal or when
    the start already equals the goal.
    """
    if cfg is None:
        cfg = EngineConfig()

    records = list(records)
    measurements = list(measurements or [])

    df = signals.weight_frame(records)
    anchor = signals.resolve_as_of(df, as_of)
    df = signals.up_to(df, anchor)
    kept = [r for r in records if anchor is None or signals.to_day(r.date) <= anchor]

    if trend is None:
        trend = analyze_trend(kept, cfg, anchor)
    if prediction is None:
        prediction = predict_goal(kept, profile.target_weight_kg, cfg, anchor)

    measurement_df = signals.up_to(signals.measurement_frame(measurements), anchor)
    bp = None
    if blood_pressure is not None:
        bp = analyze_blood_pressure(blood_pressure, profile, cfg, anchor)

    if df.empty:
        initial = current = None
        initial_m = current_m = min_m = max_m = avg_m = _none()
        loss = gain = weekly = _none()
        progress = _none()
    else:
        values = df["value"]
        initial = float(values.iloc[0])
        current = float(values.iloc[-1])
        low, high = float(values.min()), float(values.max())

        initial_m = Measured.of(initial)
        current_m = Measured.of(current)
        min_m = Measured.of(low)
        max_m = Measured.of(high)
        avg_m = Measured.of(float(values.mean())).rounded(2)
        loss = Measured.of(initial - low if low < initial else 0.0).rounded(2)
        gain = Measured.of(high - initial).rounded(2)

        elapsed = float(df["days"].iloc[-1])
        if elapsed > 0:
            weekly = Measured.of((current - initial) / elapsed * signals.DAYS_PER_WEEK).rounded(3)
        else:
            weekly = _none(Reason.INSUFFICIENT_DATA, "zero time span")
        progress = progress_percentage(initial, current, profile.target_weight_kg, cfg)

    if prediction.estimated_days is not None:
        to_goal = Measured.of(prediction.estimated_days)
    else:
        to_goal = _none(prediction.reason or Reason.INSUFFICIENT_DATA)

    log.debug("Statistics over %d weights, %d measurements", len(df), len(measurement_df))

    return StatisticsSnapshot(
        total_entries=len(df),
        total_measurement_entries=len(measurement_df),
        initial_weight_kg=initial_m,
        current_weight_kg=current_m,
        min_weight_kg=min_m,
        max_weight_kg=max_m,
        average_weight_kg=avg_m,
        weight_loss_kg=loss,
        weight_gain_kg=gain,
        average_weekly_change_kg=weekly,
        progress_percentage=progress,
        days_active=signals.distinct_days(df),
        estimated_days_to_goal=to_goal,
        current_trend=trend.current_trend.direction,
        weekly_trend=trend.weekly_trend.direction,
        monthly_trend=trend.monthly_trend.direction,
        current_streak=trend.current_streak,
        longest_streak=trend.longest_streak,
        bmi=bmi_analysis(initial, current, profile, cfg),
        waist=waist_analysis(measurements, profile, anchor),
        blood_pressure=bp,
    )

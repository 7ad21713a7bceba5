"""
Pipeline orchestration: records → composition → trend/plateau/prediction
→ statistics → insight cards.

Pull contract: the caller loads records and the profile from wherever they
live and calls `analyze_data`. Nothing here reads files, talks to a network,
or keeps state between calls.
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from bodytrack import signals
from bodytrack.cards import InsightCard
from bodytrack.composition import assess_body_composition, should_prompt_waist_measurement
from bodytrack.config import EngineConfig
from bodytrack.insights import build_insight_cards
from bodytrack.models import (
    BloodPressureReading,
    BodyCompositionAssessment,
    DateLike,
    MeasurementRecord,
    MeasurementType,
    PlateauStatus,
    Prediction,
    StatisticsSnapshot,
    TrendResult,
    UserProfile,
    WeightRecord,
)
from bodytrack.plateau import detect_plateau
from bodytrack.prediction import predict_goal
from bodytrack.stats import aggregate_statistics, latest_measurements
from bodytrack.trend import analyze_trend

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineResult:
    composition: BodyCompositionAssessment
    trend: TrendResult
    plateau: PlateauStatus
    prediction: Prediction
    statistics: StatisticsSnapshot
    cards: List[InsightCard]
    prompt_waist_measurement: bool


def _on_or_before(records: list, as_of: Optional[DateLike]) -> list:
    if as_of is None:
        return records
    day = signals.to_day(as_of)
    return [r for r in records if signals.to_day(r.date) <= day]


# ---------------------------------------------------------------------------
# Public Entry Point
# ---------------------------------------------------------------------------

def analyze_data(
    weights: Iterable[WeightRecord],
    profile: UserProfile,
    measurements: Optional[Iterable[MeasurementRecord]] = None,
    blood_pressure: Optional[Iterable[BloodPressureReading]] = None,
    as_of: Optional[DateLike] = None,
    cfg: EngineConfig | None = None,
    checkpoint: Optional[Callable[[], None]] = None,
) -> EngineResult:
    """
    Run every analysis over one user's history.

    `as_of` fixes the reference day (default: the latest weight record) so
    the same inputs always give the same result. Raises ValueError only for
    an unusable profile height; data problems surface as unavailable values
    or omitted cards.
    """
    if cfg is None:
        cfg = EngineConfig()

    height = profile.height_cm
    if height is None or not math.isfinite(height) or height <= 0:
        raise ValueError(f"Profile height must be positive, got {height!r}")

    weights = _on_or_before(list(weights), as_of)
    measurements = _on_or_before(list(measurements or []), as_of)
    readings = None if blood_pressure is None else _on_or_before(list(blood_pressure), as_of)

    frame = signals.weight_frame(weights)
    anchor = signals.resolve_as_of(frame, as_of)
    log.debug("Analyzing %d weights, %d measurements as of %s", len(frame), len(measurements), anchor)

    # Stage 1: Composition at the latest point
    latest = latest_measurements(measurements, anchor)
    waist = latest.get(MeasurementType.WAIST)
    hip = latest.get(MeasurementType.HIPS)
    current = float(frame["value"].iloc[-1]) if len(frame) else None
    age = profile.age_on(signals.as_date(anchor)) if anchor is not None else None

    composition = assess_body_composition(
        current,
        height,
        waist_cm=waist,
        hip_cm=hip,
        activity_level=profile.activity_level,
        age=age,
        gender=profile.gender,
        cfg=cfg,
    )
    prompt_waist = current is not None and should_prompt_waist_measurement(
        current, height, profile.activity_level, waist_cm=waist, cfg=cfg
    )

    # Stage 2: Series analyses
    trend = analyze_trend(weights, cfg, anchor)
    plateau = detect_plateau(weights, cfg)
    prediction = predict_goal(weights, profile.target_weight_kg, cfg, anchor)
    log.debug(
        "Trend weekly=%s plateau=%s prediction=%s",
        trend.weekly_trend.direction,
        plateau.severity.value,
        prediction.reason or prediction.estimated_days,
    )

    # Stage 3: Statistics
    statistics = aggregate_statistics(
        weights,
        profile,
        measurements=measurements,
        blood_pressure=readings,
        cfg=cfg,
        as_of=anchor,
        trend=trend,
        prediction=prediction,
    )

    # Stage 4: Insight cards
    cards = build_insight_cards(
        weights,
        profile,
        statistics,
        trend,
        plateau,
        prediction,
        measurements=measurements,
        cfg=cfg,
        checkpoint=checkpoint,
    )

    return EngineResult(
        composition=composition,
        trend=trend,
        plateau=plateau,
        prediction=prediction,
        statistics=statistics,
        cards=cards,
        prompt_waist_measurement=prompt_waist,
    )

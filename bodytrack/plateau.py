"""
Plateau detection: is the weight flat, for how long, and what to try next.

The condition looks only at the recent window. The duration then walks
backwards through the whole history for as long as the flat run holds, so a
month-long plateau is reported as such even though the window is two weeks.
"""

import logging
from typing import Dict, Iterable, Tuple

import numpy as np
import pandas as pd

from bodytrack import signals
from bodytrack.config import EngineConfig, PlateauParams
from bodytrack.models import (
    Measured,
    PlateauSeverity,
    PlateauStatus,
    Reason,
    WeightRecord,
)

log = logging.getLogger(__name__)


# severity -> (primary action, encouragement, breakout strategies)
GUIDANCE: Dict[PlateauSeverity, Tuple[str, str, Tuple[str, ...]]] = {
    PlateauSeverity.NONE: (
        "Keep following your current routine.",
        "Your weight is still moving. Keep it up!",
        ("Keep up your current routine to maintain progress.",),
    ),
    PlateauSeverity.MILD: (
        "Review your food log for portion creep this week.",
        "Short plateaus are normal while your body adjusts.",
        (
            "Add 10-15 minutes to your workout routine",
            "Track your food intake more carefully",
            "Increase your daily water intake",
            "Aim for 7-8 hours of quality sleep",
        ),
    ),
    PlateauSeverity.MODERATE: (
        "Change your exercise routine to challenge your body.",
        "Your body has adapted. A new stimulus usually restarts progress.",
        (
            "Try new activities or add interval training",
            "Reassess your calorie needs; they change as you lose weight",
            "Track measurements and photos; you may be gaining muscle",
        ),
    ),
    PlateauSeverity.SEVERE: (
        "Consider a planned diet break or talk to a nutrition professional.",
        "Long plateaus happen to everyone. Your consistency still counts.",
        (
            "Consult a nutritionist or trainer",
            "Ask your doctor about a metabolic check-up",
            "Take a planned diet break for 1-2 weeks",
            "Focus on stress management and sleep",
            "Set non-scale goals such as strength or endurance",
        ),
    ),
}


def classify_severity(duration_days: int, p: PlateauParams) -> PlateauSeverity:
    if duration_days >= p.severe_min_days:
        return PlateauSeverity.SEVERE
    if duration_days > p.mild_max_days:
        return PlateauSeverity.MODERATE
    return PlateauSeverity.MILD


def _status(
    severity: PlateauSeverity,
    duration_days: int = 0,
    average: Measured | None = None,
    sufficient_data: bool = True,
) -> PlateauStatus:
    action, encouragement, strategies = GUIDANCE[severity]
    if average is None:
        average = Measured.unavailable(Reason.INSUFFICIENT_DATA)
    return PlateauStatus(
        severity=severity,
        duration_days=duration_days,
        primary_action=action,
        encouragement=encouragement,
        strategies=strategies,
        average_weight_kg=average,
        sufficient_data=sufficient_data,
    )


def _recent_window(df: pd.DataFrame, p: PlateauParams) -> pd.DataFrame:
    """The smaller of the last N entries and the last N calendar days."""
    by_entries = df.tail(p.window_entries)
    by_days = signals.trailing_days(df, p.window_days, df["day"].iloc[-1])
    return by_entries if len(by_entries) <= len(by_days) else by_days


def _flat_run_start(values: np.ndarray, epsilon: float) -> int:
    """Index where the trailing run with range <= epsilon begins."""
    lo = hi = values[-1]
    start = len(values) - 1
    for i in range(len(values) - 2, -1, -1):
        lo_i = min(lo, values[i])
        hi_i = max(hi, values[i])
        if hi_i - lo_i > epsilon:
            break
        lo, hi, start = lo_i, hi_i, i
    return start


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def detect_plateau(
    records: Iterable[WeightRecord],
    cfg: EngineConfig | None = None,
) -> PlateauStatus:
    """
    Plateau when the recent window spans at least `min_days` with at least
    `min_entries` points and its max - min stays within `epsilon_kg`.

    Duration is counted in inclusive calendar days of the flat run.
    """
    if cfg is None:
        cfg = EngineConfig()
    p = cfg.plateau

    df = signals.weight_frame(records)
    if len(df) < p.min_entries:
        return _status(PlateauSeverity.NONE, sufficient_data=False)

    window = _recent_window(df, p)
    if len(window) < p.min_entries or signals.span_days(window) < p.min_days:
        return _status(PlateauSeverity.NONE, sufficient_data=False)

    values = window["value"].to_numpy(dtype=np.float64)
    if values.max() - values.min() > p.epsilon_kg:
        return _status(PlateauSeverity.NONE)

    history = df["value"].to_numpy(dtype=np.float64)
    run = df.iloc[_flat_run_start(history, p.epsilon_kg):]
    duration = signals.span_days(run)
    severity = classify_severity(duration, p)
    average = Measured.of(float(run["value"].mean())).rounded(2)

    log.debug("Plateau: %s for %d days over %d entries", severity.value, duration, len(run))
    return _status(severity, duration, average)

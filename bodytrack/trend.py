"""
Directional trend and streaks over the weight series.

Three windows are classified independently: the last few entries
(current), the trailing week and the trailing month. Each uses a
recency-weighted slope so a single old outlier cannot flip the label.
"""

import logging
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from bodytrack import signals
from bodytrack.config import EngineConfig, TrendParams
from bodytrack.models import (
    DateLike,
    Measured,
    Reason,
    TrendResult,
    TrendWindow,
    WeightRecord,
    WeightTrend,
)

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Single window
# ---------------------------------------------------------------------------

def _window_trend(window: pd.DataFrame, noise_per_week: float, min_points: int) -> TrendWindow:
    n = len(window)
    if n < min_points:
        return TrendWindow(
            direction=None,
            rate_kg_per_week=Measured.unavailable(
                Reason.INSUFFICIENT_DATA, f"{n} point(s), need {min_points}"
            ),
            entries=n,
        )

    x = window["days"].to_numpy(dtype=np.float64)
    y = window["value"].to_numpy(dtype=np.float64)
    slope = signals.weighted_slope(x, y)
    if slope is None:
        return TrendWindow(
            direction=None,
            rate_kg_per_week=Measured.unavailable(Reason.INSUFFICIENT_DATA, "zero time span"),
            entries=n,
        )

    rate = Measured.of(slope * signals.DAYS_PER_WEEK)
    if not rate.available:
        return TrendWindow(direction=None, rate_kg_per_week=rate, entries=n)

    return TrendWindow(
        direction=signals.classify_rate(rate.value, noise_per_week),
        rate_kg_per_week=rate.rounded(4),
        entries=n,
    )


def classify_series_trend(
    dates: Sequence[DateLike],
    values: Sequence[float],
    noise_per_week: float,
    window_days: Optional[int] = None,
    min_points: int = 2,
    as_of: Optional[DateLike] = None,
) -> TrendWindow:
    """
    Weighted-rate direction for any dated numeric series.

    With `window_days`, only the trailing calendar window ending at `as_of`
    (default: the latest date) is used.
    """
    df = signals.series_frame(dates, values)
    anchor = signals.resolve_as_of(df, as_of)
    df = signals.up_to(df, anchor)
    if window_days is not None and anchor is not None:
        df = signals.trailing_days(df, window_days, anchor)
    return _window_trend(df, noise_per_week, min_points)


# ---------------------------------------------------------------------------
# Streaks
# ---------------------------------------------------------------------------

def compute_streaks(
    df: pd.DataFrame,
    t: TrendParams,
    as_of: Optional[pd.Timestamp] = None,
) -> Tuple[int, int, Optional[WeightTrend]]:
    """
    Walk consecutive deltas and count same-direction runs.

    A delta within `streak_min_change_kg` or a gap longer than
    `max_gap_days` resets the run to 0; a reversal restarts it at 1.
    Returns (current, longest, direction of the current run).
    """
    current = 0
    longest = 0
    direction: Optional[WeightTrend] = None

    days = df["day"].tolist()
    values = df["value"].tolist()
    for i in range(1, len(values)):
        gap = (days[i] - days[i - 1]).days
        delta = values[i] - values[i - 1]

        if gap > t.max_gap_days or abs(delta) <= t.streak_min_change_kg:
            current = 0
            direction = None
            continue

        step = WeightTrend.LOSING if delta < 0 else WeightTrend.GAINING
        if step is direction:
            current += 1
        else:
            current = 1
            direction = step
        longest = max(longest, current)

    # Stale: the run ended more than max_gap_days before the reference day
    if current and as_of is not None and days and (as_of - days[-1]).days > t.max_gap_days:
        current = 0
        direction = None

    return current, longest, direction


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def analyze_trend(
    records: Iterable[WeightRecord],
    cfg: EngineConfig | None = None,
    as_of: Optional[DateLike] = None,
) -> TrendResult:
    """
    Classify current, weekly and monthly direction and compute streaks.

    Windows are anchored at `as_of` (default: the latest record's day);
    records after `as_of` are ignored.
    """
    if cfg is None:
        cfg = EngineConfig()
    t = cfg.trend

    df = signals.weight_frame(records)
    anchor = signals.resolve_as_of(df, as_of)
    df = signals.up_to(df, anchor)

    if anchor is None:
        current = weekly = monthly = df
    else:
        current = df.tail(t.current_entries)
        weekly = signals.trailing_days(df, t.weekly_days, anchor)
        monthly = signals.trailing_days(df, t.monthly_days, anchor)

    streak, longest, direction = compute_streaks(df, t, anchor)
    log.debug("Trend over %d records: streak=%d longest=%d", len(df), streak, longest)

    return TrendResult(
        current_trend=_window_trend(current, t.noise_kg_per_week, t.min_data_points),
        weekly_trend=_window_trend(weekly, t.noise_kg_per_week, t.min_data_points),
        monthly_trend=_window_trend(monthly, t.noise_kg_per_week, t.min_data_points),
        current_streak=streak,
        longest_streak=longest,
        streak_direction=direction,
    )

"""
Series primitives: ordered frames, calendar windows, and regression.

Records arrive unordered and possibly dirty. `weight_frame` drops invalid
rows, orders by date with a stable tie-break on id, and adds elapsed-day and
calendar-day columns. The regression helpers work on irregular spacing (x is
elapsed days, not the row index).
"""

import datetime
import logging
import math
from typing import Iterable, Optional, Sequence

import numpy as np
import pandas as pd

from bodytrack.models import (
    DateLike,
    MeasurementRecord,
    MeasurementType,
    WeightRecord,
    WeightTrend,
)

log = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0
DAYS_PER_WEEK = 7.0


# ---------------------------------------------------------------------------
# Frames
# ---------------------------------------------------------------------------

def _finalize(df: pd.DataFrame) -> pd.DataFrame:
    df["date"] = pd.to_datetime(df["date"])
    df = df.sort_values(["date", "id"], kind="mergesort").reset_index(drop=True)
    df["day"] = df["date"].dt.normalize()
    if len(df):
        df["days"] = (df["date"] - df["date"].iloc[0]).dt.total_seconds() / SECONDS_PER_DAY
    else:
        df["days"] = pd.Series(dtype=np.float64)
    return df


def weight_frame(records: Iterable[WeightRecord]) -> pd.DataFrame:
    """
    Build the ordered weight series.

    Columns: id, date, day (midnight), days (elapsed since first), value.
    Non-positive and non-finite weights are dropped with a warning.
    """
    rows = []
    for r in records:
        if r.value_kg is None or not math.isfinite(r.value_kg) or r.value_kg <= 0:
            log.warning("Dropping weight record %r: invalid value %r", r.id, r.value_kg)
            continue
        rows.append({"id": r.id, "date": r.date, "value": float(r.value_kg)})

    df = pd.DataFrame(rows, columns=["id", "date", "value"])
    return _finalize(df)


def measurement_frame(records: Iterable[MeasurementRecord]) -> pd.DataFrame:
    """Circumference records as an ordered frame with a `type` column."""
    rows = []
    for r in records:
        if r.value_cm is None or not math.isfinite(r.value_cm) or r.value_cm <= 0:
            log.warning("Dropping measurement record %r: invalid value %r", r.id, r.value_cm)
            continue
        try:
            kind = MeasurementType(r.type)
        except ValueError:
            log.warning("Dropping measurement record %r: unknown type %r", r.id, r.type)
            continue
        rows.append({
            "id": r.id,
            "date": r.date,
            "type": kind,
            "value": float(r.value_cm),
        })

    df = pd.DataFrame(rows, columns=["id", "date", "type", "value"])
    return _finalize(df)


def series_frame(dates: Sequence[DateLike], values: Sequence[float]) -> pd.DataFrame:
    """Same shape as `weight_frame` for an arbitrary numeric series."""
    if len(dates) != len(values):
        raise ValueError("dates and values must have the same length")
    df = pd.DataFrame(
        {"id": range(len(dates)), "date": list(dates), "value": list(values)},
    )
    df["value"] = pd.to_numeric(df["value"], errors="coerce").astype(np.float64)
    finite = np.isfinite(df["value"].to_numpy())
    if not finite.all():
        log.warning("Dropping %d non-finite series values", int((~finite).sum()))
        df = df[finite]
    return _finalize(df)


# ---------------------------------------------------------------------------
# Windows
# ---------------------------------------------------------------------------

def to_day(value: Optional[DateLike]) -> Optional[pd.Timestamp]:
    if value is None:
        return None
    return pd.Timestamp(value).normalize()


def resolve_as_of(df: pd.DataFrame, as_of: Optional[DateLike]) -> Optional[pd.Timestamp]:
    """Explicit reference day, else the latest record's day."""
    if as_of is not None:
        return to_day(as_of)
    if df.empty:
        return None
    return df["day"].iloc[-1]


def up_to(df: pd.DataFrame, as_of: Optional[pd.Timestamp]) -> pd.DataFrame:
    if as_of is None:
        return df
    return df[df["day"] <= as_of]


def trailing_days(df: pd.DataFrame, days: int, as_of: pd.Timestamp) -> pd.DataFrame:
    """Rows on the `days` calendar days ending at `as_of` (inclusive)."""
    start = as_of - pd.Timedelta(days=days - 1)
    return df[(df["day"] >= start) & (df["day"] <= as_of)]


def span_days(df: pd.DataFrame) -> int:
    """Inclusive calendar days covered by the frame."""
    if df.empty:
        return 0
    return int((df["day"].iloc[-1] - df["day"].iloc[0]).days) + 1


def distinct_days(df: pd.DataFrame) -> int:
    return int(df["day"].nunique())


def as_date(ts: pd.Timestamp) -> datetime.date:
    return ts.to_pydatetime().date()


# ---------------------------------------------------------------------------
# OLS primitives
# ---------------------------------------------------------------------------

def ols_fit(x: np.ndarray, y: np.ndarray):
    """
    Ordinary least-squares line through (x, y).

    Returns (slope, intercept), or None when x has no spread.
    """
    if len(x) < 2:
        return None
    x_c = x - x.mean()
    denom = np.dot(x_c, x_c)
    if denom == 0.0:
        return None
    slope = np.dot(x_c, y - y.mean()) / denom
    return float(slope), float(y.mean() - slope * x.mean())


def ols_r_squared(x: np.ndarray, y: np.ndarray) -> float:
    """
    Coefficient of determination, clamped to [0, 1].

    0.0 for degenerate input, including a constant series.
    """
    fit = ols_fit(x, y)
    if fit is None:
        return 0.0
    y_c = y - y.mean()
    ss_tot = np.dot(y_c, y_c)
    if ss_tot == 0.0:
        return 0.0
    slope, intercept = fit
    ss_res = np.sum((y - (slope * x + intercept)) ** 2)
    return float(np.clip(1.0 - ss_res / ss_tot, 0.0, 1.0))


def residual_rmse(x: np.ndarray, y: np.ndarray) -> float:
    fit = ols_fit(x, y)
    if fit is None:
        return 0.0
    slope, intercept = fit
    return float(np.sqrt(np.mean((y - (slope * x + intercept)) ** 2)))


def weighted_slope(x: np.ndarray, y: np.ndarray) -> Optional[float]:
    """
    Recency-weighted least-squares slope.

    Weights are 1..n in chronological order, so the latest point counts n
    times as much as the first. None when x has no spread.
    """
    n = len(x)
    if n < 2:
        return None
    w = np.arange(1, n + 1, dtype=np.float64)
    x_bar = np.average(x, weights=w)
    y_bar = np.average(y, weights=w)
    x_c = x - x_bar
    denom = np.sum(w * x_c * x_c)
    if denom == 0.0:
        return None
    return float(np.sum(w * x_c * (y - y_bar)) / denom)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def classify_rate(rate_per_week: float, noise_per_week: float) -> WeightTrend:
    """Stable inside the noise band, else the sign picks the direction."""
    if abs(rate_per_week) < noise_per_week:
        return WeightTrend.STABLE
    return WeightTrend.LOSING if rate_per_week < 0 else WeightTrend.GAINING

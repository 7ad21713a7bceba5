"""
Goal-date forecasting from a linear fit of recent weights.

    rate           = OLS slope of weight on elapsed days (kg/day)
    estimated_days = round((goal - current) / rate)

Confidence is qualitative and driven by the residual RMSE of the fit, so a
noisier series can only lower it.
"""

import datetime
import logging
from typing import Iterable, Optional

import numpy as np

from bodytrack import signals
from bodytrack.config import EngineConfig, PredictionParams
from bodytrack.models import (
    Confidence,
    DateLike,
    Measured,
    Prediction,
    Reason,
    WeightRecord,
)

log = logging.getLogger(__name__)


def classify_confidence(rmse: float, p: PredictionParams) -> Confidence:
    if rmse <= p.high_confidence_rmse:
        return Confidence.HIGH
    if rmse <= p.medium_confidence_rmse:
        return Confidence.MEDIUM
    return Confidence.LOW


def _unavailable(reason: Reason, detail: str = "", **kwargs) -> Prediction:
    fields = {
        "estimated_date": None,
        "estimated_days": None,
        "confidence": None,
        "rate_kg_per_day": Measured.unavailable(reason, detail),
        "reason": reason,
    }
    fields.update(kwargs)
    return Prediction(**fields)


def predict_goal(
    records: Iterable[WeightRecord],
    goal_weight_kg: Optional[float] = None,
    cfg: EngineConfig | None = None,
    today: Optional[DateLike] = None,
) -> Prediction:
    """
    Forecast when `goal_weight_kg` is reached.

    Unavailable with INSUFFICIENT_DATA below `min_entries`, NO_GOAL without a
    goal, and NON_CONVERGING when the fitted rate is zero or points away
    from the goal. `today` defaults to the latest record's day.
    """
    if cfg is None:
        cfg = EngineConfig()
    p = cfg.prediction

    df = signals.weight_frame(records)
    anchor = signals.resolve_as_of(df, today)
    df = signals.up_to(df, anchor)
    recent = df.tail(p.entries)
    if len(recent) < p.min_entries:
        return _unavailable(
            Reason.INSUFFICIENT_DATA, f"{len(recent)} entries, need {p.min_entries}"
        )

    x = recent["days"].to_numpy(dtype=np.float64)
    y = recent["value"].to_numpy(dtype=np.float64)
    fit = signals.ols_fit(x, y)
    if fit is None:
        return _unavailable(Reason.INSUFFICIENT_DATA, "zero time span")

    rate, _ = fit
    confidence = classify_confidence(signals.residual_rmse(x, y), p)
    current = float(y[-1])

    # Projections stay within a margin of what the user has actually weighed
    low = float(df["value"].min()) - p.projection_margin_kg
    high = float(df["value"].max()) + p.projection_margin_kg
    projections = tuple(
        (h, round(float(np.clip(current + rate * h, low, high)), 1))
        for h in p.projection_horizons
    )

    fitted = {
        "confidence": confidence,
        "rate_kg_per_day": Measured.of(rate).rounded(4),
        "projections": projections,
    }

    if goal_weight_kg is None:
        return _unavailable(Reason.NO_GOAL, "no goal weight set", **fitted)

    remaining = goal_weight_kg - current
    if remaining == 0.0:
        return Prediction(
            estimated_date=signals.as_date(anchor),
            estimated_days=0,
            **fitted,
        )

    if rate == 0.0 or (remaining > 0) != (rate > 0):
        return _unavailable(Reason.NON_CONVERGING, "trend moves away from goal", **fitted)

    days = int(round(remaining / rate))
    if days > p.max_days:
        return _unavailable(
            Reason.NON_CONVERGING, f"goal more than {p.max_days} days out", **fitted
        )

    log.debug("Goal %.1f kg in %d days at %.4f kg/day", goal_weight_kg, days, rate)
    return Prediction(
        estimated_date=signals.as_date(anchor) + datetime.timedelta(days=days),
        estimated_days=days,
        **fitted,
    )

"""
Insight card builder.

Each builder is a pure function of the prepared context that returns one
card or None when its gate fails. Cards are then ordered by urgency tier,
by how recent their underlying data is, and finally by a fixed card order.

Tiers:
    0  urgent        severe plateau, goal at least 90 % complete
    1  actionable    plateau guidance, tips, predictions, goal progress
    2  motivational  streak, best week, milestones, weekly summary
    3  descriptive   progress summary, patterns, trend analysis
"""

import datetime
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from bodytrack import signals
from bodytrack.cards import (
    CARD_ORDER,
    BestProgress,
    CardType,
    ConsistentProgressPattern,
    GoalProgress,
    InsightCard,
    Milestones,
    Pattern,
    Patterns,
    PlateauAnalysis,
    PlateauPattern,
    PlateauStrategies,
    Predictions,
    ProgressSummary,
    RapidChangePattern,
    Streak,
    Tips,
    TrendAnalysis,
    WeeklySummary,
)
from bodytrack.config import EngineConfig
from bodytrack.models import (
    MeasurementRecord,
    MeasurementType,
    PlateauSeverity,
    PlateauStatus,
    Prediction,
    StatisticsSnapshot,
    TrendResult,
    UserProfile,
    WeightRecord,
    WeightTrend,
)

log = logging.getLogger(__name__)


PLATEAU_TIMEFRAME = {
    PlateauSeverity.MILD: "Usually breaks within 1-2 weeks with consistent effort",
    PlateauSeverity.MODERATE: "Expect 2-4 weeks once you change your approach",
    PlateauSeverity.SEVERE: "May take several weeks; consider a bigger strategy change",
}

HORIZON_LABELS = {7: "1 week", 30: "1 month", 90: "3 months"}

TIER_URGENT = 0
TIER_ACTIONABLE = 1
TIER_MOTIVATIONAL = 2
TIER_DESCRIPTIVE = 3

BASE_TIER = {
    CardType.PLATEAU_ANALYSIS: TIER_ACTIONABLE,
    CardType.PLATEAU_STRATEGIES: TIER_ACTIONABLE,
    CardType.TIPS: TIER_ACTIONABLE,
    CardType.PREDICTIONS: TIER_ACTIONABLE,
    CardType.GOAL_PROGRESS: TIER_ACTIONABLE,
    CardType.STREAK: TIER_MOTIVATIONAL,
    CardType.BEST_PROGRESS: TIER_MOTIVATIONAL,
    CardType.MILESTONES: TIER_MOTIVATIONAL,
    CardType.WEEKLY_SUMMARY: TIER_MOTIVATIONAL,
    CardType.PROGRESS_SUMMARY: TIER_DESCRIPTIVE,
    CardType.PATTERNS: TIER_DESCRIPTIVE,
    CardType.TREND_ANALYSIS: TIER_DESCRIPTIVE,
}


@dataclass(frozen=True)
class _Context:
    df: pd.DataFrame
    latest: Optional[datetime.date]
    profile: UserProfile
    statistics: StatisticsSnapshot
    trend: TrendResult
    plateau: PlateauStatus
    prediction: Prediction
    waist: pd.DataFrame
    cfg: EngineConfig


# ---------------------------------------------------------------------------
# Series helpers
# ---------------------------------------------------------------------------

def best_week_loss(df: pd.DataFrame, min_days: int, max_days: int) -> Tuple[float, Optional[datetime.date]]:
    """
    Largest drop between two entries `min_days`..`max_days` calendar days
    apart. Returns (loss_kg, end date of that span); (0.0, None) if no drop.
    """
    if len(df) < 2:
        return 0.0, None

    ordinals = np.array([d.toordinal() for d in df["day"].dt.date], dtype=np.int64)
    values = df["value"].to_numpy(dtype=np.float64)

    best, best_end = 0.0, None
    for i in range(len(values)):
        lo = np.searchsorted(ordinals, ordinals[i] + min_days, side="left")
        hi = np.searchsorted(ordinals, ordinals[i] + max_days, side="right")
        if lo >= hi:
            continue
        drops = values[i] - values[lo:hi]
        j = int(np.argmax(drops))
        if drops[j] > best:
            best = float(drops[j])
            best_end = datetime.date.fromordinal(int(ordinals[lo + j]))
    return best, best_end


def detect_patterns(ctx: _Context) -> List[Pattern]:
    ins = ctx.cfg.insights
    found: List[Pattern] = []

    if ctx.plateau.severity is not PlateauSeverity.NONE and ctx.plateau.average_weight_kg.available:
        found.append(PlateauPattern(ctx.plateau.duration_days, ctx.plateau.average_weight_kg.value))

    anchor = ctx.df["day"].iloc[-1]
    recent = signals.trailing_days(ctx.df, ins.rapid_change_days + 1, anchor)
    if len(recent) >= 2:
        change = float(recent["value"].iloc[-1] - recent["value"].iloc[0])
        if abs(change) > ins.rapid_change_kg:
            found.append(RapidChangePattern(round(change, 1), signals.span_days(recent) - 1))

    month = signals.trailing_days(ctx.df, ins.consistent_window_days, anchor)
    if len(month) >= ins.consistent_min_entries:
        x = month["days"].to_numpy(dtype=np.float64)
        y = month["value"].to_numpy(dtype=np.float64)
        fit = signals.ols_fit(x, y)
        r2 = signals.ols_r_squared(x, y)
        if fit is not None and r2 >= ins.consistent_min_r_squared:
            weekly = fit[0] * signals.DAYS_PER_WEEK
            if abs(weekly) >= ctx.cfg.trend.noise_kg_per_week:
                found.append(ConsistentProgressPattern(round(weekly, 2), round(r2, 2)))

    return found


# ---------------------------------------------------------------------------
# Card builders
# ---------------------------------------------------------------------------

def _progress_summary(ctx: _Context) -> Optional[InsightCard]:
    if len(ctx.df) < ctx.cfg.insights.min_entries_progress:
        return None

    first = ctx.df.iloc[0]
    change = round(float(ctx.df["value"].iloc[-1] - first["value"]), 1)
    since = signals.as_date(first["day"]).isoformat()
    if change < 0:
        summary = f"You've lost {abs(change):.1f} kg since {since}."
        motivation = "Great work! Every step counts."
    elif change > 0:
        summary = f"You've gained {change:.1f} kg since {since}."
        motivation = "Progress isn't always linear. Stay consistent."
    else:
        summary = f"Your weight is unchanged since {since}."
        motivation = "Consistency builds results. Keep tracking."

    direction = ctx.trend.monthly_trend.direction or ctx.trend.weekly_trend.direction
    return ProgressSummary(
        title="Progress Overview",
        metric_date=ctx.latest,
        summary=summary,
        trend=direction,
        total_change_kg=change,
        motivation=motivation,
    )


def _streak(ctx: _Context) -> Optional[InsightCard]:
    if len(ctx.df) < ctx.cfg.insights.min_entries_streak or ctx.trend.current_streak <= 0:
        return None
    losing = ctx.trend.streak_direction is WeightTrend.LOSING
    return Streak(
        title="Current Streak",
        metric_date=ctx.latest,
        streak_days=ctx.trend.current_streak,
        streak_type="weight loss" if losing else "weight gain",
        encouragement="Keep the momentum going!" if losing else "Time to turn it around.",
    )


def _plateau_analysis(ctx: _Context) -> Optional[InsightCard]:
    p = ctx.plateau
    if p.severity is PlateauSeverity.NONE:
        return None
    return PlateauAnalysis(
        title="Plateau Analysis",
        metric_date=ctx.latest,
        status=f"{p.severity.value} plateau for {p.duration_days} days",
        severity=p.severity,
        primary_action=p.primary_action,
        encouragement=p.encouragement,
    )


def _best_progress(ctx: _Context) -> Optional[InsightCard]:
    ins = ctx.cfg.insights
    loss, end = best_week_loss(ctx.df, ins.best_week_min_days, ins.best_week_max_days)
    if loss <= 0:
        return None
    return BestProgress(
        title="Best Week",
        metric_date=end,
        progress_kg=round(loss, 1),
        description="Your best weekly progress so far!",
        tip="Try to identify what made this week successful.",
    )


def _patterns(ctx: _Context) -> Optional[InsightCard]:
    found = detect_patterns(ctx)
    if not found:
        return None
    return Patterns(
        title="Detected Patterns",
        metric_date=ctx.latest,
        patterns=tuple(found),
        description="Patterns in your weight data",
    )


def _predictions(ctx: _Context) -> Optional[InsightCard]:
    pred = ctx.prediction
    if not pred.available:
        return None
    labelled = tuple(
        (HORIZON_LABELS.get(h, f"{h} days"), weight) for h, weight in pred.projections
    )
    return Predictions(
        title="Progress Predictions",
        metric_date=ctx.latest,
        predictions=labelled,
        disclaimer=f"Predictions based on current trends ({pred.confidence.value} confidence)",
    )


def _tips(ctx: _Context) -> Optional[InsightCard]:
    if len(ctx.df) < ctx.cfg.insights.min_entries_tips:
        return None

    recent = ctx.trend.current_trend.direction
    overall = ctx.trend.monthly_trend.direction
    if recent is WeightTrend.LOSING and overall is WeightTrend.LOSING:
        tips = (
            "You're doing great! Keep up your current routine.",
            "Consider taking progress photos to see visual changes.",
        )
    elif recent is WeightTrend.STABLE and overall is WeightTrend.LOSING:
        tips = (
            "You might be hitting a plateau. Try varying your routine.",
            "Consider adjusting your calorie intake slightly.",
        )
    elif recent is WeightTrend.GAINING:
        tips = (
            "Focus on consistency in your diet and exercise.",
            "Make sure you're staying hydrated.",
            "Ensure you're getting adequate sleep.",
        )
    else:
        tips = (
            "Keep tracking your progress consistently.",
            "Set small, achievable weekly goals.",
        )
    return Tips(title="Personalized Tips", metric_date=ctx.latest, tips=tips, category="General")


def _plateau_strategies(ctx: _Context) -> Optional[InsightCard]:
    p = ctx.plateau
    if p.severity is PlateauSeverity.NONE:
        return None
    return PlateauStrategies(
        title="Plateau Breakthrough",
        metric_date=ctx.latest,
        strategies=p.strategies,
        timeframe=PLATEAU_TIMEFRAME[p.severity],
    )


def _milestones(ctx: _Context) -> Optional[InsightCard]:
    ins = ctx.cfg.insights
    reached: List[str] = []

    loss = ctx.statistics.weight_loss_kg
    if loss.available:
        for threshold in sorted(ins.loss_milestones_kg, reverse=True):
            if loss.value >= threshold:
                reached.append(f"You've lost over {threshold:g} kg!")
                break

    tracked = signals.span_days(ctx.df)
    for threshold in sorted(ins.tracking_milestones_days, reverse=True):
        if tracked >= threshold:
            reached.append(f"{threshold} days of tracking! You're building a habit.")
            break

    if len(ctx.waist) >= 2:
        waist_drop = float(ctx.waist["value"].iloc[0] - ctx.waist["value"].iloc[-1])
        if waist_drop >= 1.0:
            reached.append(f"Your waist is down {waist_drop:.1f} cm!")

    if not reached:
        return None
    return Milestones(
        title="Achievements",
        metric_date=ctx.latest,
        milestones=tuple(reached),
        celebration="Celebrate your progress!",
    )


def _trend_analysis(ctx: _Context) -> Optional[InsightCard]:
    weekly = ctx.trend.weekly_trend
    monthly = ctx.trend.monthly_trend
    if weekly.direction is None and monthly.direction is None:
        return None

    overall = monthly.direction or weekly.direction
    recent = weekly.direction or monthly.direction
    rate = ctx.statistics.average_weekly_change_kg
    if overall is recent:
        analysis = f"Your weight has been {overall.value.lower()} consistently."
    else:
        analysis = (
            f"Overall you are {overall.value.lower()}, "
            f"but this week you are {recent.value.lower()}."
        )
    return TrendAnalysis(
        title="Trend Analysis",
        metric_date=ctx.latest,
        overall_trend=overall,
        recent_trend=recent,
        average_weekly_change_kg=rate.value if rate.available else None,
        analysis=analysis,
    )


def _weekly_summary(ctx: _Context) -> Optional[InsightCard]:
    ins = ctx.cfg.insights
    week = signals.trailing_days(ctx.df, ctx.cfg.trend.weekly_days, ctx.df["day"].iloc[-1])
    if len(week) < ins.min_entries_weekly:
        return None

    change = round(float(week["value"].iloc[-1] - week["value"].iloc[0]), 1)
    logged = signals.distinct_days(week)
    if logged >= 6:
        consistency = "Excellent"
    elif logged >= 4:
        consistency = "Good"
    else:
        consistency = "Fair"

    highlights = (
        f"Logged on {logged} of the last {ctx.cfg.trend.weekly_days} days",
        f"Lowest weight this week: {float(week['value'].min()):.1f} kg",
    )
    return WeeklySummary(
        title="This Week",
        metric_date=ctx.latest,
        weekly_change_kg=change,
        consistency=consistency,
        highlights=highlights,
    )


def _goal_progress(ctx: _Context) -> Optional[InsightCard]:
    target = ctx.profile.target_weight_kg
    progress = ctx.statistics.progress_percentage
    if target is None or not progress.available:
        return None

    days = ctx.prediction.estimated_days
    if days == 0:
        eta = "Goal reached!"
    elif days is not None:
        eta = f"About {days} days"
    else:
        eta = "Not enough data to estimate"

    return GoalProgress(
        title="Goal Progress",
        metric_date=ctx.latest,
        current_weight_kg=float(ctx.df["value"].iloc[-1]),
        target_weight_kg=target,
        progress_percentage=progress.value,
        estimated_time_to_goal=eta,
    )


BUILDERS: Tuple[Callable[[_Context], Optional[InsightCard]], ...] = (
    _progress_summary,
    _streak,
    _plateau_analysis,
    _best_progress,
    _patterns,
    _predictions,
    _tips,
    _plateau_strategies,
    _milestones,
    _trend_analysis,
    _weekly_summary,
    _goal_progress,
)


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------

def card_tier(card: InsightCard, plateau_severity: PlateauSeverity, cfg: EngineConfig) -> int:
    if card.card_type in (CardType.PLATEAU_ANALYSIS, CardType.PLATEAU_STRATEGIES):
        if plateau_severity is PlateauSeverity.SEVERE:
            return TIER_URGENT
    if card.card_type is CardType.GOAL_PROGRESS:
        if card.progress_percentage >= cfg.insights.goal_near_completion_pct:
            return TIER_URGENT
    return BASE_TIER[card.card_type]


def sort_cards(
    cards: List[InsightCard],
    plateau_severity: PlateauSeverity,
    cfg: EngineConfig,
) -> List[InsightCard]:
    """Tier, then newest metric date first, then fixed card order."""
    def key(card: InsightCard):
        ordinal = card.metric_date.toordinal() if card.metric_date else 0
        return card_tier(card, plateau_severity, cfg), -ordinal, CARD_ORDER[card.card_type]

    return sorted(cards, key=key)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def build_insight_cards(
    records: Iterable[WeightRecord],
    profile: UserProfile,
    statistics: StatisticsSnapshot,
    trend: TrendResult,
    plateau: PlateauStatus,
    prediction: Prediction,
    measurements: Optional[Iterable[MeasurementRecord]] = None,
    cfg: EngineConfig | None = None,
    checkpoint: Optional[Callable[[], None]] = None,
) -> List[InsightCard]:
    """
    Build every card whose gate passes, in display order.

    `checkpoint`, when given, is called before each card is computed; it may
    raise to abort the build.
    """
    if cfg is None:
        cfg = EngineConfig()

    df = signals.weight_frame(records)
    if df.empty:
        return []

    waist = signals.measurement_frame(measurements or [])
    waist = waist[waist["type"] == MeasurementType.WAIST]

    ctx = _Context(
        df=df,
        latest=signals.as_date(df["day"].iloc[-1]),
        profile=profile,
        statistics=statistics,
        trend=trend,
        plateau=plateau,
        prediction=prediction,
        waist=waist,
        cfg=cfg,
    )

    cards: List[InsightCard] = []
    for build in BUILDERS:
        if checkpoint is not None:
            checkpoint()
        card = build(ctx)
        if card is not None:
            cards.append(card)

    log.debug("Built %d insight cards", len(cards))
    return sort_cards(cards, plateau.severity, cfg)

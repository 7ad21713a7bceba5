"""
Insight card variants.

`InsightCard` is a closed union of frozen dataclasses. Each variant fixes
its `card_type` discriminant; renderers dispatch on it and nothing else.
"""

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Union

from bodytrack.models import PlateauSeverity, WeightTrend


class CardType(str, Enum):
    PROGRESS_SUMMARY = "progress_summary"
    STREAK = "streak"
    PLATEAU_ANALYSIS = "plateau_analysis"
    BEST_PROGRESS = "best_progress"
    PATTERNS = "patterns"
    PREDICTIONS = "predictions"
    TIPS = "tips"
    PLATEAU_STRATEGIES = "plateau_strategies"
    MILESTONES = "milestones"
    TREND_ANALYSIS = "trend_analysis"
    WEEKLY_SUMMARY = "weekly_summary"
    GOAL_PROGRESS = "goal_progress"


# Final tie-break when tier and date are equal
CARD_ORDER = {card_type: i for i, card_type in enumerate(CardType)}


# ---------------------------------------------------------------------------
# Detected patterns
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlateauPattern:
    duration_days: int
    average_weight_kg: float

    @property
    def description(self) -> str:
        return f"Weight plateau detected for {self.duration_days} days"


@dataclass(frozen=True)
class RapidChangePattern:
    change_kg: float
    days: int

    @property
    def description(self) -> str:
        direction = "gain" if self.change_kg > 0 else "loss"
        return f"Rapid weight {direction}: {abs(self.change_kg):.1f} kg in {self.days} days"


@dataclass(frozen=True)
class ConsistentProgressPattern:
    weekly_rate_kg: float
    consistency: float

    @property
    def description(self) -> str:
        direction = "losing" if self.weekly_rate_kg < 0 else "gaining"
        return f"Consistent progress: {direction} {abs(self.weekly_rate_kg):.1f} kg per week"


Pattern = Union[PlateauPattern, RapidChangePattern, ConsistentProgressPattern]


# ---------------------------------------------------------------------------
# Cards
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProgressSummary:
    title: str
    metric_date: Optional[datetime.date]
    summary: str
    trend: Optional[WeightTrend]
    total_change_kg: float
    motivation: str
    card_type: CardType = field(default=CardType.PROGRESS_SUMMARY, init=False)


@dataclass(frozen=True)
class Streak:
    title: str
    metric_date: Optional[datetime.date]
    streak_days: int
    streak_type: str
    encouragement: str
    card_type: CardType = field(default=CardType.STREAK, init=False)


@dataclass(frozen=True)
class PlateauAnalysis:
    title: str
    metric_date: Optional[datetime.date]
    status: str
    severity: PlateauSeverity
    primary_action: str
    encouragement: str
    card_type: CardType = field(default=CardType.PLATEAU_ANALYSIS, init=False)


@dataclass(frozen=True)
class BestProgress:
    title: str
    metric_date: Optional[datetime.date]
    progress_kg: float
    description: str
    tip: str
    card_type: CardType = field(default=CardType.BEST_PROGRESS, init=False)


@dataclass(frozen=True)
class Patterns:
    title: str
    metric_date: Optional[datetime.date]
    patterns: Tuple[Pattern, ...]
    description: str
    card_type: CardType = field(default=CardType.PATTERNS, init=False)


@dataclass(frozen=True)
class Predictions:
    title: str
    metric_date: Optional[datetime.date]
    predictions: Tuple[Tuple[str, float], ...]
    disclaimer: str
    card_type: CardType = field(default=CardType.PREDICTIONS, init=False)


@dataclass(frozen=True)
class Tips:
    title: str
    metric_date: Optional[datetime.date]
    tips: Tuple[str, ...]
    category: str
    card_type: CardType = field(default=CardType.TIPS, init=False)


@dataclass(frozen=True)
class PlateauStrategies:
    title: str
    metric_date: Optional[datetime.date]
    strategies: Tuple[str, ...]
    timeframe: str
    card_type: CardType = field(default=CardType.PLATEAU_STRATEGIES, init=False)


@dataclass(frozen=True)
class Milestones:
    title: str
    metric_date: Optional[datetime.date]
    milestones: Tuple[str, ...]
    celebration: str
    card_type: CardType = field(default=CardType.MILESTONES, init=False)


@dataclass(frozen=True)
class TrendAnalysis:
    title: str
    metric_date: Optional[datetime.date]
    overall_trend: Optional[WeightTrend]
    recent_trend: Optional[WeightTrend]
    average_weekly_change_kg: Optional[float]
    analysis: str
    card_type: CardType = field(default=CardType.TREND_ANALYSIS, init=False)


@dataclass(frozen=True)
class WeeklySummary:
    title: str
    metric_date: Optional[datetime.date]
    weekly_change_kg: float
    consistency: str
    highlights: Tuple[str, ...]
    card_type: CardType = field(default=CardType.WEEKLY_SUMMARY, init=False)


@dataclass(frozen=True)
class GoalProgress:
    title: str
    metric_date: Optional[datetime.date]
    current_weight_kg: float
    target_weight_kg: float
    progress_percentage: float
    estimated_time_to_goal: str
    card_type: CardType = field(default=CardType.GOAL_PROGRESS, init=False)


InsightCard = Union[
    ProgressSummary,
    Streak,
    PlateauAnalysis,
    BestProgress,
    Patterns,
    Predictions,
    Tips,
    PlateauStrategies,
    Milestones,
    TrendAnalysis,
    WeeklySummary,
    GoalProgress,
]

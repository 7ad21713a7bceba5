"""
bodytrack — Deterministic Body-Measurement Analytics Engine

Turns a user's weight and circumference history plus a static health
profile into body-composition risk, trend, plateau and streak statistics,
goal predictions, and an ordered set of insight cards.

Architecture:
    config         — All thresholds, bands, and windows (single source of truth)
    models         — Input records, profile, and result value objects
    metrics        — BMI, WHtR, BRI, WHR and unit conversion
    composition    — Body category, risk tier, recommendation
    signals        — Ordered series frames, calendar windows, regression
    trend          — Weighted-rate direction and streaks
    plateau        — Plateau condition, duration, severity, guidance
    prediction     — Time-to-goal forecast and projections
    bloodpressure  — AHA / ESC classification and reading history
    stats          — Full-history statistics snapshot
    cards          — Insight card variants
    insights       — Gated, ordered insight cards
    pipeline       — Orchestration entry point

Public API:
    analyze_data(weights, profile, ...)   → EngineResult
"""

from bodytrack.pipeline import EngineResult, analyze_data

__version__ = "1.0.0"

__all__ = ["EngineResult", "analyze_data"]

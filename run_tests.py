"""bodytrack — Standalone test suite (also collected by pytest via t_* functions)."""
import datetime
import math
import sys
import traceback
from pathlib import Path

import numpy as np

sys.path.insert(0, str(Path(__file__).parent))

from bodytrack import metrics, signals
from bodytrack.bloodpressure import (
    analyze_blood_pressure,
    classify_blood_pressure,
    requires_immediate_attention,
)
from bodytrack.cards import BestProgress, CardType, Streak, WeeklySummary
from bodytrack.composition import assess_body_composition, should_prompt_waist_measurement
from bodytrack.config import (
    DEFAULT_ACTIVITY_TABLE,
    ActivityProfile,
    EngineConfig,
    PlateauParams,
    PredictionParams,
)
from bodytrack.insights import best_week_loss, build_insight_cards, sort_cards
from bodytrack.models import (
    ActivityLevel,
    BloodPressureCategory,
    BloodPressureReading,
    BloodPressureTrend,
    BodyCategory,
    Confidence,
    HealthRisk,
    MeasurementRecord,
    MeasurementSystem,
    MeasurementType,
    MedicalGuidelines,
    PlateauSeverity,
    PrimaryMetric,
    Reason,
    UserProfile,
    WeightRecord,
    WeightTrend,
)
from bodytrack.pipeline import analyze_data
from bodytrack.plateau import detect_plateau
from bodytrack.prediction import predict_goal
from bodytrack.stats import aggregate_statistics
from bodytrack.trend import analyze_trend, classify_series_trend

CFG = EngineConfig()
START = datetime.date(2024, 1, 1)
PROFILE = UserProfile(height_cm=175.0)

passed = 0
failed = 0


def test(name, fn):
    global passed, failed
    try:
        fn()
        print(f"  ✓ {name}")
        passed += 1
    except Exception as e:
        print(f"  ✗ {name}: {e}")
        traceback.print_exc()
        failed += 1


def approx(a, b, tol=0.01):
    assert abs(a - b) < tol, f"{a} != {b} (tol={tol})"


def make_weights(values, start=START, step_days=1):
    return [
        WeightRecord(id=i, user_id=1, value_kg=v, date=start + datetime.timedelta(days=i * step_days))
        for i, v in enumerate(values)
    ]


def flat_values(n, center=80.0, wobble=0.2):
    return [center + wobble if i % 2 == 0 else center - wobble for i in range(n)]


def day(offset):
    return START + datetime.timedelta(days=offset)


# ═══════════════════════════════════════════════════════════════════════
# CONFIG
# ═══════════════════════════════════════════════════════════════════════
print("\n[Config]")

def t_default_config():
    assert CFG.activity_rank(ActivityLevel.SEDENTARY) < CFG.activity_rank(ActivityLevel.ENDURANCE_ATHLETE)
    assert CFG.bmi_bonus(ActivityLevel.ATHLETIC) == 2.0
test("default config builds with ordered activity table", t_default_config)

def t_non_monotonic_activity():
    table = dict(DEFAULT_ACTIVITY_TABLE)
    table[ActivityLevel.ATHLETIC] = ActivityProfile(rank=2, bmi_bonus_threshold=0.5)
    try:
        EngineConfig(activity_table=table)
        raise RuntimeError("Should have raised ValueError")
    except ValueError:
        pass
test("non-monotonic activity bonus raises ValueError", t_non_monotonic_activity)

def t_missing_activity_level():
    table = dict(DEFAULT_ACTIVITY_TABLE)
    del table[ActivityLevel.ENDURANCE_ATHLETE]
    try:
        EngineConfig(activity_table=table)
        raise RuntimeError("Should have raised ValueError")
    except ValueError:
        pass
test("activity table missing a level raises ValueError", t_missing_activity_level)

def t_bad_plateau_bands():
    try:
        PlateauParams(mild_max_days=30, severe_min_days=28)
        raise RuntimeError("Should have raised ValueError")
    except ValueError:
        pass
test("inconsistent plateau bands raise ValueError", t_bad_plateau_bands)

def t_bad_prediction_window():
    try:
        PredictionParams(min_entries=2)
        raise RuntimeError("Should have raised ValueError")
    except ValueError:
        pass
test("prediction below three entries raises ValueError", t_bad_prediction_window)


# ═══════════════════════════════════════════════════════════════════════
# METRICS
# ═══════════════════════════════════════════════════════════════════════
print("\n[Metrics]")

def t_bmi():
    approx(metrics.bmi(70, 175).value, 22.86)
test("BMI 70 kg / 175 cm ≈ 22.86", t_bmi)

def t_whtr_healthy():
    value = metrics.whtr(80, 175)
    approx(value.value, 0.457, 0.001)
    assert metrics.is_whtr_healthy(value, CFG.metrics) is True
test("WHtR 80 / 175 ≈ 0.457 and healthy", t_whtr_healthy)

def t_missing_waist():
    assert metrics.whtr(None, 175).reason is Reason.MISSING_MEASUREMENT
    assert metrics.bri(None, 175, 95).reason is Reason.MISSING_MEASUREMENT
    assert metrics.is_whtr_healthy(metrics.whtr(None, 175), CFG.metrics) is None
test("WHtR and BRI unavailable without waist", t_missing_waist)

def t_bri_needs_hip():
    assert not metrics.bri(80, 175, None).available
    assert metrics.whtr(80, 175).available
test("BRI unavailable without hip while WHtR is available", t_bri_needs_hip)

def t_bri_value():
    value = metrics.bri(80, 175, 95)
    approx(value.value, 2.59, 0.05)
    assert metrics.bri_band(value.value, CFG.metrics) == "low"
test("BRI for 80 cm waist at 175 cm ≈ 2.59 (low)", t_bri_value)

def t_bri_score_scale():
    assert metrics.bri_score(2.0, CFG.metrics) == 0
    assert metrics.bri_score(4.0, CFG.metrics) == 2
    assert metrics.bri_score(6.0, CFG.metrics) == 3
test("BRI score is 0 in the low band", t_bri_score_scale)

def t_invalid_inputs():
    assert metrics.bmi(0, 175).reason is Reason.INVALID_INPUT
    assert metrics.bmi(70, float("nan")).reason is Reason.INVALID_INPUT
    assert metrics.bmi(70, -1).value is None
test("non-positive or non-finite inputs are INVALID_INPUT", t_invalid_inputs)

def t_whr_gender():
    assert metrics.whr_score(0.85, "female", CFG.metrics) == 2
    assert metrics.whr_score(0.87, "male", CFG.metrics) == 1
test("WHR score uses gender-specific threshold", t_whr_gender)

def t_units():
    assert metrics.lb_to_kg(1) == 0.45359237
    approx(metrics.convert_weight(100, MeasurementSystem.IMPERIAL), 220.46)
    assert metrics.convert_weight(100, MeasurementSystem.METRIC) == 100
    approx(metrics.feet_inches_to_cm(5, 10), 177.8)
    approx(metrics.length_to_cm(10, MeasurementSystem.IMPERIAL), 25.4)
test("unit conversions use exact factors", t_units)


# ═══════════════════════════════════════════════════════════════════════
# BODY COMPOSITION
# ═══════════════════════════════════════════════════════════════════════
print("\n[Body Composition]")

def t_athletic_reclassified():
    weight = 26.5 * 1.8 * 1.8
    result = assess_body_composition(weight, 180, waist_cm=85, activity_level=ActivityLevel.ATHLETIC)
    assert result.category is BodyCategory.ATHLETIC_BUILD, result.category
    assert result.primary_metric is PrimaryMetric.WHTR
test("athletic BMI 26.5 with healthy WHtR is not Overweight", t_athletic_reclassified)

def t_sedentary_overweight():
    weight = 26.5 * 1.8 * 1.8
    result = assess_body_composition(weight, 180, activity_level=ActivityLevel.SEDENTARY)
    assert result.category is BodyCategory.OVERWEIGHT
    assert result.primary_metric is PrimaryMetric.BMI
    assert result.health_risk is HealthRisk.MODERATE
    assert "waist" in result.recommendation
test("sedentary BMI 26.5 without waist is Overweight", t_sedentary_overweight)

def t_athletic_bonus_zone():
    weight = 26.5 * 1.8 * 1.8
    result = assess_body_composition(weight, 180, activity_level=ActivityLevel.ATHLETIC)
    assert result.category is BodyCategory.ATHLETIC_BUILD
test("athletic BMI inside bonus zone is Athletic Build", t_athletic_bonus_zone)

def t_obese_high_risk():
    weight = 35 * 1.8 * 1.8
    result = assess_body_composition(weight, 180, activity_level=ActivityLevel.SEDENTARY)
    assert result.category is BodyCategory.OBESE
    assert result.health_risk is HealthRisk.HIGH
test("BMI 35 sedentary is Obese with High risk", t_obese_high_risk)

def t_waist_driven_risk():
    result = assess_body_composition(65, 180, waist_cm=70)
    assert result.health_risk is HealthRisk.VERY_LOW
    assert result.category is BodyCategory.HEALTHY
    assert result.recommendation.startswith("Excellent")
test("low WHtR drives Very Low risk", t_waist_driven_risk)

def t_lean_with_hip_very_low():
    result = assess_body_composition(65, 180, waist_cm=76, hip_cm=100, gender="male")
    assert result.bri.available
    assert result.health_risk is HealthRisk.VERY_LOW, result.health_risk
test("low BRI does not lift a lean user out of Very Low risk", t_lean_with_hip_very_low)

def t_invalid_height_unknown():
    result = assess_body_composition(70, 0)
    assert result.category is BodyCategory.UNKNOWN
    assert result.health_risk is HealthRisk.UNKNOWN
    assert result.bmi.reason is Reason.INVALID_INPUT
test("invalid height gives Unknown category", t_invalid_height_unknown)

def t_waist_prompt():
    assert not should_prompt_waist_measurement(22 * 3.0625, 175, ActivityLevel.SEDENTARY)
    assert should_prompt_waist_measurement(27 * 3.0625, 175, ActivityLevel.SEDENTARY)
    assert should_prompt_waist_measurement(22 * 3.0625, 175, ActivityLevel.ATHLETIC)
    assert not should_prompt_waist_measurement(27 * 3.0625, 175, ActivityLevel.SEDENTARY, waist_cm=90)
test("waist prompt for high BMI or athletic users without waist", t_waist_prompt)


# ═══════════════════════════════════════════════════════════════════════
# SERIES PRIMITIVES
# ═══════════════════════════════════════════════════════════════════════
print("\n[Series Primitives]")

def t_ols_line():
    x = np.arange(5, dtype=np.float64)
    slope, intercept = signals.ols_fit(x, 2 * x + 1)
    approx(slope, 2.0, 1e-9)
    approx(intercept, 1.0, 1e-9)
    approx(signals.ols_r_squared(x, 2 * x + 1), 1.0, 1e-9)
test("OLS recovers an exact line with R² = 1", t_ols_line)

def t_r2_constant():
    x = np.arange(5, dtype=np.float64)
    assert signals.ols_r_squared(x, np.full(5, 3.0)) == 0.0
test("R² = 0.0 for constant series", t_r2_constant)

def t_weighted_slope():
    x = np.array([0.0, 1.0, 3.0, 7.0])
    approx(signals.weighted_slope(x, -0.5 * x + 80), -0.5, 1e-9)
    assert signals.weighted_slope(np.array([2.0]), np.array([80.0])) is None
    assert signals.weighted_slope(np.array([2.0, 2.0]), np.array([80.0, 81.0])) is None
test("weighted slope exact on a line, None without spread", t_weighted_slope)

def t_frame_order_and_filter():
    records = [
        WeightRecord(id=2, user_id=1, value_kg=80.0, date=day(1)),
        WeightRecord(id=1, user_id=1, value_kg=81.0, date=day(1)),
        WeightRecord(id=3, user_id=1, value_kg=-1.0, date=day(0)),
        WeightRecord(id=4, user_id=1, value_kg=float("inf"), date=day(2)),
        WeightRecord(id=0, user_id=1, value_kg=82.0, date=day(0)),
    ]
    df = signals.weight_frame(records)
    assert df["id"].tolist() == [0, 1, 2]
    assert df["days"].tolist() == [0.0, 1.0, 1.0]
test("weight frame drops invalid rows and orders by date then id", t_frame_order_and_filter)

def t_classify_rate():
    assert signals.classify_rate(0.05, 0.1) is WeightTrend.STABLE
    assert signals.classify_rate(-0.5, 0.1) is WeightTrend.LOSING
    assert signals.classify_rate(0.5, 0.1) is WeightTrend.GAINING
test("rate classification honours noise band", t_classify_rate)


# ═══════════════════════════════════════════════════════════════════════
# TREND & STREAKS
# ═══════════════════════════════════════════════════════════════════════
print("\n[Trend & Streaks]")

def t_streak_reversal():
    result = analyze_trend(make_weights([80.0, 79.7, 79.5, 79.4, 79.8, 79.6]))
    assert result.current_streak == 1, result.current_streak
    assert result.longest_streak == 3, result.longest_streak
    assert result.streak_direction is WeightTrend.LOSING
test("streak deltas [-.3,-.2,-.1,+.4,-.2] → current 1, longest 3", t_streak_reversal)

def t_streak_gap():
    records = [
        WeightRecord(id=0, user_id=1, value_kg=80.0, date=day(0)),
        WeightRecord(id=1, user_id=1, value_kg=79.5, date=day(1)),
        WeightRecord(id=2, user_id=1, value_kg=79.0, date=day(6)),
    ]
    result = analyze_trend(records)
    assert result.current_streak == 0
    assert result.longest_streak == 1
test("gap longer than max_gap_days resets streak", t_streak_gap)

def t_streak_flat_delta():
    result = analyze_trend(make_weights([80.0, 79.5, 79.48]))
    assert result.current_streak == 0
    assert result.longest_streak == 1
test("sub-threshold delta resets streak", t_streak_flat_delta)

def t_losing_trend():
    result = analyze_trend(make_weights([80.0 - 0.1 * i for i in range(14)]))
    assert result.weekly_trend.direction is WeightTrend.LOSING
    assert result.monthly_trend.direction is WeightTrend.LOSING
    assert result.current_trend.direction is WeightTrend.LOSING
    approx(result.weekly_trend.rate_kg_per_week.value, -0.7, 1e-3)
    assert result.weekly_trend.entries == 7
    assert result.current_trend.entries == 3
test("steady loss → Losing in all windows", t_losing_trend)

def t_stable_trend():
    result = analyze_trend(make_weights([80.0] * 10))
    assert result.weekly_trend.direction is WeightTrend.STABLE
    assert result.current_streak == 0
test("constant series → Stable", t_stable_trend)

def t_insufficient_trend():
    result = analyze_trend(make_weights([80.0]))
    assert result.weekly_trend.direction is None
    assert result.weekly_trend.rate_kg_per_week.reason is Reason.INSUFFICIENT_DATA
    assert result.longest_streak == 0
test("single record → trend unavailable", t_insufficient_trend)

def t_trend_as_of():
    result = analyze_trend(make_weights([80.0 - 0.2 * i for i in range(10)]), as_of=day(4))
    assert result.weekly_trend.entries == 5
    assert result.current_streak == 4
test("as_of excludes later records", t_trend_as_of)

def t_series_trend_generic():
    window = classify_series_trend([day(i) for i in range(5)], [150, 146, 142, 138, 134], 2.0)
    assert window.direction is WeightTrend.LOSING
    approx(window.rate_kg_per_week.value, -28.0, 1e-6)
test("generic series trend over any values", t_series_trend_generic)

def t_trend_idempotent():
    records = make_weights([80.0, 79.6, 79.9, 79.1, 78.8, 79.0])
    assert analyze_trend(records) == analyze_trend(records)
test("trend analysis is idempotent", t_trend_idempotent)


# ═══════════════════════════════════════════════════════════════════════
# PLATEAU
# ═══════════════════════════════════════════════════════════════════════
print("\n[Plateau]")

def t_plateau_mild():
    status = detect_plateau(make_weights(flat_values(14)))
    assert status.severity is PlateauSeverity.MILD, status.severity
    assert status.duration_days == 14
    approx(status.average_weight_kg.value, 80.0)
    assert status.strategies
test("14 flat days (±0.2 kg) → Mild", t_plateau_mild)

def t_plateau_moderate():
    status = detect_plateau(make_weights(flat_values(21)))
    assert status.severity is PlateauSeverity.MODERATE
    assert status.duration_days == 21
test("21 flat days → Moderate", t_plateau_moderate)

def t_plateau_severe():
    status = detect_plateau(make_weights(flat_values(28)))
    assert status.severity is PlateauSeverity.SEVERE
    assert status.duration_days == 28
test("28 flat days → Severe", t_plateau_severe)

def t_plateau_jump():
    status = detect_plateau(make_weights([80.0] * 13 + [81.0]))
    assert status.severity is PlateauSeverity.NONE
    assert status.sufficient_data
test("1 kg jump in the window → None", t_plateau_jump)

def t_plateau_after_loss():
    values = [100.0 - i for i in range(10)] + [90.0] * 14
    status = detect_plateau(make_weights(values))
    assert status.severity is PlateauSeverity.MILD
    assert status.duration_days == 14
test("duration stops where the weight was still moving", t_plateau_after_loss)

def t_plateau_insufficient():
    status = detect_plateau(make_weights([80.0, 80.1]))
    assert status.severity is PlateauSeverity.NONE
    assert not status.sufficient_data
    assert status.average_weight_kg.reason is Reason.INSUFFICIENT_DATA
test("fewer than three entries → insufficient", t_plateau_insufficient)

def t_plateau_short_span():
    status = detect_plateau(make_weights([80.0] * 5))
    assert status.severity is PlateauSeverity.NONE
    assert not status.sufficient_data
test("window shorter than seven days → insufficient", t_plateau_short_span)


# ═══════════════════════════════════════════════════════════════════════
# PREDICTION
# ═══════════════════════════════════════════════════════════════════════
print("\n[Prediction]")

LOSING_14 = [80.0 - i / 14 for i in range(14)]

def t_prediction_70_days():
    records = make_weights(LOSING_14)
    pred = predict_goal(records, LOSING_14[-1] - 5.0)
    assert pred.available
    assert pred.estimated_days == 70, pred.estimated_days
    assert pred.estimated_date == day(13) + datetime.timedelta(days=70)
    assert pred.confidence is Confidence.HIGH
test("-0.5 kg/week with goal 5 kg below → 70 days", t_prediction_70_days)

def t_prediction_wrong_direction():
    pred = predict_goal(make_weights(LOSING_14), LOSING_14[-1] + 5.0)
    assert not pred.available
    assert pred.reason is Reason.NON_CONVERGING
test("goal above while losing → unavailable", t_prediction_wrong_direction)

def t_prediction_no_goal():
    pred = predict_goal(make_weights(LOSING_14))
    assert pred.reason is Reason.NO_GOAL
    assert len(pred.projections) == 3
test("no goal → NO_GOAL with projections", t_prediction_no_goal)

def t_prediction_insufficient():
    pred = predict_goal(make_weights([80.0, 79.0]), 70.0)
    assert pred.reason is Reason.INSUFFICIENT_DATA
test("two entries → insufficient", t_prediction_insufficient)

def t_prediction_passed_goal():
    pred = predict_goal(make_weights(LOSING_14), 79.5)
    assert not pred.available
    assert pred.reason is Reason.NON_CONVERGING
    assert pred.estimated_days is None
test("goal above current but below start while losing → non-converging", t_prediction_passed_goal)

def t_prediction_at_goal():
    pred = predict_goal(make_weights(LOSING_14), LOSING_14[-1])
    assert pred.estimated_days == 0
    assert pred.estimated_date == day(13)
test("current weight equal to goal → 0 days", t_prediction_at_goal)

def t_prediction_ignores_later_records():
    later = [WeightRecord(id=100 + i, user_id=1, value_kg=85.0 + i, date=day(14 + i)) for i in range(5)]
    clipped = predict_goal(make_weights(LOSING_14) + later, 70.0, today=day(13))
    clean = predict_goal(make_weights(LOSING_14), 70.0)
    assert clipped.estimated_days == clean.estimated_days
    assert clipped.rate_kg_per_day.value == clean.rate_kg_per_day.value
    assert clipped.estimated_date == clean.estimated_date
test("records after today are not fitted", t_prediction_ignores_later_records)

def t_prediction_flat():
    pred = predict_goal(make_weights([80.0] * 5), 75.0)
    assert pred.reason is Reason.NON_CONVERGING
test("zero rate → non-converging", t_prediction_flat)

def t_confidence_monotone():
    rank = {Confidence.HIGH: 2, Confidence.MEDIUM: 1, Confidence.LOW: 0}
    clean = predict_goal(make_weights(LOSING_14), 70.0)
    noisy_values = [v + (1.0 if i % 2 else -1.0) for i, v in enumerate(LOSING_14)]
    noisy = predict_goal(make_weights(noisy_values), 70.0)
    assert rank[noisy.confidence] <= rank[clean.confidence]
    assert noisy.confidence is Confidence.LOW
test("noisier series never raises confidence", t_confidence_monotone)

def t_projection_clamp():
    pred = predict_goal(make_weights([80.0 - i for i in range(14)]))
    projections = dict(pred.projections)
    assert projections[7] == 60.0
    assert projections[30] == 57.0
    assert projections[90] == 57.0
test("projections clamp to min - 10 kg", t_projection_clamp)


# ═══════════════════════════════════════════════════════════════════════
# BLOOD PRESSURE
# ═══════════════════════════════════════════════════════════════════════
print("\n[Blood Pressure]")

def t_aha_categories():
    cases = {
        (118, 76): BloodPressureCategory.OPTIMAL,
        (125, 78): BloodPressureCategory.ELEVATED,
        (132, 79): BloodPressureCategory.STAGE_1,
        (128, 82): BloodPressureCategory.STAGE_1,
        (145, 85): BloodPressureCategory.STAGE_2,
        (185, 100): BloodPressureCategory.CRISIS,
    }
    for (s, d), expected in cases.items():
        got = classify_blood_pressure(s, d).category
        assert got is expected, f"{s}/{d}: {got}"
test("AHA categories", t_aha_categories)

def t_esc_categories():
    esc = MedicalGuidelines.EU_ESC
    assert classify_blood_pressure(135, 80, 40, esc).category is BloodPressureCategory.ELEVATED
    assert classify_blood_pressure(119, 69, 40, esc).category is BloodPressureCategory.OPTIMAL
    assert classify_blood_pressure(125, 75, 40, esc).category is BloodPressureCategory.NORMAL
    assert not classify_blood_pressure(125, 75, 40, esc).is_age_adjusted
test("ESC categories under 65", t_esc_categories)

def t_esc_age_adjusted():
    result = classify_blood_pressure(145, 85, 82, MedicalGuidelines.EU_ESC)
    assert result.category is BloodPressureCategory.ELEVATED
    assert result.is_age_adjusted
    assert "age-adjusted" in result.recommendation
test("ESC bands shift for age 80+", t_esc_age_adjusted)

def t_immediate_attention():
    assert requires_immediate_attention(185, 100, 70)
    assert requires_immediate_attention(120, 78, 45)
    assert not requires_immediate_attention(120, 78, 70)
test("crisis or abnormal pulse needs attention", t_immediate_attention)

def t_bp_history():
    readings = [
        BloodPressureReading(id=i, user_id=1, systolic=s, diastolic=d, pulse=70, date=day(i))
        for i, (s, d) in enumerate([(150, 90), (146, 88), (142, 86), (138, 84), (134, 82)])
    ]
    result = analyze_blood_pressure(readings, PROFILE)
    assert result.total_readings == 5
    approx(result.average_systolic.value, 142.0)
    assert result.trend is BloodPressureTrend.IMPROVING
    assert result.high_readings == 5
    assert result.category_breakdown == (
        (BloodPressureCategory.STAGE_1, 2),
        (BloodPressureCategory.STAGE_2, 3),
    )
test("reading history: averages, trend, breakdown", t_bp_history)

def t_bp_age_from_birth_date():
    profile = UserProfile(
        height_cm=170.0,
        medical_guidelines=MedicalGuidelines.EU_ESC,
        birth_date=datetime.date(1940, 1, 1),
    )
    readings = [BloodPressureReading(id=0, user_id=1, systolic=145, diastolic=85, pulse=70, date=day(0))]
    result = analyze_blood_pressure(readings, profile)
    assert result.category_breakdown == ((BloodPressureCategory.ELEVATED, 1),)
    assert result.trend is None
test("ESC age bracket from birth date", t_bp_age_from_birth_date)

def t_bp_empty():
    assert analyze_blood_pressure([], PROFILE) is None
test("no readings → None", t_bp_empty)


# ═══════════════════════════════════════════════════════════════════════
# STATISTICS
# ═══════════════════════════════════════════════════════════════════════
print("\n[Statistics]")

GOAL_PROFILE = UserProfile(height_cm=175.0, target_weight_kg=70.0, target_waist_cm=80.0)

def t_stats_basic():
    snap = aggregate_statistics(make_weights([80.0 - 0.5 * i for i in range(11)]), GOAL_PROFILE)
    assert snap.total_entries == 11
    approx(snap.initial_weight_kg.value, 80.0)
    approx(snap.current_weight_kg.value, 75.0)
    approx(snap.weight_loss_kg.value, 5.0)
    approx(snap.weight_gain_kg.value, 0.0)
    approx(snap.progress_percentage.value, 50.0)
    approx(snap.average_weekly_change_kg.value, -3.5)
    assert snap.days_active == 11
    assert snap.estimated_days_to_goal.available
test("statistics over a steady loss", t_stats_basic)

def t_progress_clamped():
    snap = aggregate_statistics(make_weights([80.0 - i for i in range(13)]), GOAL_PROFILE)
    assert snap.progress_percentage.value == 100.0
test("progress clamps to 100 %", t_progress_clamped)

def t_progress_no_goal():
    snap = aggregate_statistics(make_weights([80.0, 79.0]), PROFILE)
    assert snap.progress_percentage.reason is Reason.NO_GOAL
    assert snap.bmi.target_bmi.reason is Reason.NO_GOAL
test("progress unavailable without goal", t_progress_no_goal)

def t_progress_initial_is_goal():
    profile = UserProfile(height_cm=175.0, target_weight_kg=80.0)
    snap = aggregate_statistics(make_weights([80.0, 79.0]), profile)
    assert snap.progress_percentage.reason is Reason.INVALID_INPUT
test("progress unavailable when initial equals goal", t_progress_initial_is_goal)

def t_bmi_analysis():
    snap = aggregate_statistics(make_weights([80.0 - 0.5 * i for i in range(11)]), GOAL_PROFILE)
    approx(snap.bmi.current_bmi.value, 24.5)
    approx(snap.bmi.bmi_change.value, -1.6)
    approx(snap.bmi.target_bmi.value, 22.9)
    assert snap.bmi.category is BodyCategory.HEALTHY
test("BMI analysis: current, change, target", t_bmi_analysis)

def t_waist_analysis():
    measurements = [
        MeasurementRecord(id=1, user_id=1, type=MeasurementType.WAIST, value_cm=90.0, date=day(0)),
        MeasurementRecord(id=2, user_id=1, type=MeasurementType.HIPS, value_cm=100.0, date=day(0)),
        MeasurementRecord(id=3, user_id=1, type=MeasurementType.WAIST, value_cm=86.0, date=day(2)),
    ]
    snap = aggregate_statistics(make_weights([80.0, 79.0, 78.5]), GOAL_PROFILE, measurements)
    assert snap.total_measurement_entries == 3
    approx(snap.waist.current_waist_cm.value, 86.0)
    approx(snap.waist.remaining_cm.value, 6.0)
    assert snap.waist.entries == 2
test("waist analysis against target", t_waist_analysis)

def t_stats_empty():
    snap = aggregate_statistics([], GOAL_PROFILE)
    assert snap.total_entries == 0
    assert snap.current_weight_kg.reason is Reason.INSUFFICIENT_DATA
    assert snap.bmi.category is BodyCategory.UNKNOWN
    assert snap.waist is None
test("empty history → all unavailable", t_stats_empty)


# ═══════════════════════════════════════════════════════════════════════
# INSIGHT CARDS
# ═══════════════════════════════════════════════════════════════════════
print("\n[Insight Cards]")

def card_types(result):
    return [c.card_type for c in result.cards]

def t_no_streak_single_record():
    result = analyze_data(make_weights([80.0]), PROFILE)
    assert CardType.STREAK not in card_types(result)
    assert CardType.PROGRESS_SUMMARY not in card_types(result)
test("no Streak card below two records", t_no_streak_single_record)

def t_no_plateau_card_when_none():
    result = analyze_data(make_weights([80.0 - 0.3 * i for i in range(10)]), PROFILE)
    assert result.plateau.severity is PlateauSeverity.NONE
    assert CardType.PLATEAU_ANALYSIS not in card_types(result)
    assert CardType.PLATEAU_STRATEGIES not in card_types(result)
test("no PlateauAnalysis card when severity is None", t_no_plateau_card_when_none)

def t_streak_card():
    result = analyze_data(make_weights([80.0 - 0.5 * i for i in range(10)]), PROFILE)
    streak = next(c for c in result.cards if c.card_type is CardType.STREAK)
    assert streak.streak_days == 9
    assert streak.streak_type == "weight loss"
test("Streak card reports current losing streak", t_streak_card)

def t_severe_plateau_first():
    result = analyze_data(make_weights(flat_values(28)), PROFILE)
    assert card_types(result)[:2] == [CardType.PLATEAU_ANALYSIS, CardType.PLATEAU_STRATEGIES]
test("severe plateau cards lead the list", t_severe_plateau_first)

def t_goal_near_completion_first():
    result = analyze_data(make_weights([80.0 - 0.5 * i for i in range(20)]), GOAL_PROFILE)
    assert card_types(result)[0] is CardType.GOAL_PROGRESS
    approx(result.cards[0].progress_percentage, 95.0)
test("goal ≥ 90 % complete leads the list", t_goal_near_completion_first)

def t_patterns_card():
    result = analyze_data(make_weights([80.0 - 0.5 * i for i in range(8)]), PROFILE)
    patterns = next(c for c in result.cards if c.card_type is CardType.PATTERNS)
    kinds = {type(p).__name__ for p in patterns.patterns}
    assert kinds == {"RapidChangePattern", "ConsistentProgressPattern"}, kinds
test("rapid and consistent loss patterns detected", t_patterns_card)

def t_predictions_need_goal():
    result = analyze_data(make_weights(LOSING_14), PROFILE)
    assert CardType.PREDICTIONS not in card_types(result)
    result = analyze_data(make_weights(LOSING_14), GOAL_PROFILE)
    assert CardType.PREDICTIONS in card_types(result)
test("Predictions card needs an available prediction", t_predictions_need_goal)

def t_best_week():
    df = signals.weight_frame(make_weights([80.0, 79.0, 78.5, 78.0, 77.5, 77.0, 76.5, 76.0]))
    loss, end = best_week_loss(df, 6, 8)
    approx(loss, 4.0)
    assert end == day(7)
test("best 7-day loss over a 6-8 day span", t_best_week)

def t_sort_by_recency():
    older = BestProgress(title="Best Week", metric_date=day(1), progress_kg=1.0, description="", tip="")
    newer = WeeklySummary(title="This Week", metric_date=day(9), weekly_change_kg=-0.5, consistency="Good", highlights=())
    ordered = sort_cards([older, newer], PlateauSeverity.NONE, CFG)
    assert ordered == [newer, older]
test("same tier sorts newest metric date first", t_sort_by_recency)

def t_discriminant_fixed():
    try:
        Streak(title="x", metric_date=None, streak_days=1, streak_type="", encouragement="", card_type=CardType.TIPS)
        raise RuntimeError("Should have raised TypeError")
    except TypeError:
        pass
    assert Streak("x", None, 1, "", "").card_type is CardType.STREAK
test("card_type is fixed per variant", t_discriminant_fixed)

def t_checkpoint():
    calls = []
    records = make_weights(LOSING_14)
    result = analyze_data(records, PROFILE, checkpoint=lambda: calls.append(1))
    assert len(calls) == 12

    class Cancelled(Exception):
        pass

    def cancel():
        raise Cancelled()

    try:
        build_insight_cards(
            records, PROFILE, result.statistics, result.trend, result.plateau,
            result.prediction, checkpoint=cancel,
        )
        raise RuntimeError("Should have raised Cancelled")
    except Cancelled:
        pass
test("checkpoint runs between cards and can abort", t_checkpoint)


# ═══════════════════════════════════════════════════════════════════════
# PIPELINE
# ═══════════════════════════════════════════════════════════════════════
print("\n[Pipeline]")

def t_invalid_height():
    try:
        analyze_data(make_weights([80.0]), UserProfile(height_cm=0.0))
        raise RuntimeError("Should have raised ValueError")
    except ValueError:
        pass
test("invalid profile height raises ValueError", t_invalid_height)

def t_idempotent():
    records = make_weights(flat_values(10) + [79.0 - 0.3 * i for i in range(10)])
    first = analyze_data(records, GOAL_PROFILE)
    second = analyze_data(records, GOAL_PROFILE)
    assert first == second
test("same inputs give identical results", t_idempotent)

def t_as_of():
    result = analyze_data(make_weights([80.0 - 0.2 * i for i in range(10)]), PROFILE, as_of=day(4))
    assert result.statistics.total_entries == 5
    approx(result.statistics.current_weight_kg.value, 79.2)
test("as_of limits the history", t_as_of)

def t_invalid_record_dropped():
    records = make_weights([80.0, 79.5, 79.0])
    records.append(WeightRecord(id=99, user_id=1, value_kg=-5.0, date=day(3)))
    result = analyze_data(records, PROFILE)
    assert result.statistics.total_entries == 3
    assert not any(math.isnan(c.total_change_kg) for c in result.cards if c.card_type is CardType.PROGRESS_SUMMARY)
test("invalid weight records are dropped", t_invalid_record_dropped)

def t_latest_waist_used():
    measurements = [
        MeasurementRecord(id=1, user_id=1, type=MeasurementType.WAIST, value_cm=95.0, date=day(0)),
        MeasurementRecord(id=2, user_id=1, type=MeasurementType.WAIST, value_cm=80.0, date=day(2)),
    ]
    result = analyze_data(make_weights([80.0, 79.5, 79.0]), PROFILE, measurements=measurements)
    approx(result.composition.whtr.value, 80.0 / 175.0, 1e-6)
    assert result.composition.primary_metric is PrimaryMetric.WHTR
    assert not result.prompt_waist_measurement
test("composition uses the latest waist", t_latest_waist_used)

def t_unknown_measurement_type():
    measurements = [
        MeasurementRecord(id=1, user_id=1, type="biceps_left", value_cm=35.0, date=day(0)),
        MeasurementRecord(id=2, user_id=1, type=MeasurementType.WAIST, value_cm=80.0, date=day(1)),
    ]
    result = analyze_data(make_weights([80.0, 79.5, 79.0]), GOAL_PROFILE, measurements=measurements)
    assert result.statistics.total_measurement_entries == 1
    approx(result.composition.whtr.value, 80.0 / 175.0, 1e-6)
test("unknown measurement types are skipped", t_unknown_measurement_type)

def t_blood_pressure_in_stats():
    readings = [BloodPressureReading(id=0, user_id=1, systolic=118, diastolic=76, pulse=65, date=day(1))]
    result = analyze_data(make_weights([80.0, 79.5]), PROFILE, blood_pressure=readings)
    assert result.statistics.blood_pressure.total_readings == 1
    assert analyze_data(make_weights([80.0, 79.5]), PROFILE).statistics.blood_pressure is None
test("blood-pressure analysis included when readings given", t_blood_pressure_in_stats)


# ═══════════════════════════════════════════════════════════════════════
# SUMMARY
# ═══════════════════════════════════════════════════════════════════════
print(f"\n{'=' * 58}")
print(f"  {passed} passed, {failed} failed")
print(f"{'=' * 58}")

if __name__ == "__main__":
    sys.exit(1 if failed else 0)

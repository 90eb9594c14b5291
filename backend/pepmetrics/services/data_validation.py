"""Decide whether a user has enough data for a meaningful weekly analysis."""

from __future__ import annotations

from pepmetrics.schemas.analysis import (
    BaselineMetrics,
    DataValidationResult,
    DoseLogEntry,
    UserAnalysisData,
    ValidationMessages,
    ValidationStats,
    WeeklyAnalysisCheck,
)
from pepmetrics.schemas.garmin import DailyHealthSummary

MIN_GARMIN_DAYS = 7
MIN_DOSE_LOGS = 3
MIN_BASELINE_DAYS = 14
IDEAL_GARMIN_DAYS = 14
IDEAL_BASELINE_DAYS = 28
DOSE_DAYS_TARGET = 7
MIN_COMPLETENESS = 0.7

COMPLETENESS_FIELDS = ("hrv_avg", "sleep_score", "stress_avg", "body_battery_high", "resting_hr", "steps")


def estimate_baseline_days(baseline: BaselineMetrics) -> int:
    """
    Proxy for baseline coverage: the real day count is not carried on BaselineMetrics,
    so infer it from how many of six averages are non-zero (>=4 -> 28 days, >=2 -> 14, else 0).
    """
    filled = sum(
        1
        for v in (
            baseline.hrv_avg,
            baseline.resting_hr_avg,
            baseline.sleep_score_avg,
            baseline.stress_avg,
            baseline.body_battery_avg,
            baseline.steps_avg,
        )
        if v > 0
    )
    if filled >= 4:
        return 28
    if filled >= 2:
        return 14
    return 0


def calculate_data_completeness(days: list[DailyHealthSummary]) -> float:
    """Share of present values across the six key fields of every day (0..1)."""
    if not days:
        return 0.0
    total = len(days) * len(COMPLETENESS_FIELDS)
    present = sum(1 for d in days for f in COMPLETENESS_FIELDS if getattr(d, f) is not None)
    return present / total


def calculate_data_quality(garmin_days: int, dose_days: int, baseline_days: int, completeness: float) -> str:
    score = (
        min(garmin_days / IDEAL_GARMIN_DAYS, 1) * 0.3
        + min(dose_days / DOSE_DAYS_TARGET, 1) * 0.2
        + min(baseline_days / IDEAL_BASELINE_DAYS, 1) * 0.3
        + completeness * 0.2
    )
    if score >= 0.9:
        return "excellent"
    if score >= 0.7:
        return "good"
    if score >= 0.5:
        return "fair"
    return "insufficient"


def validate_data_sufficiency(data: UserAnalysisData) -> DataValidationResult:
    missing: list[str] = []
    warnings: list[str] = []

    garmin_days = len(data.garmin_data)
    dose_count = len(data.dose_logs)
    dose_days = len({d.date for d in data.dose_logs})
    baseline_days = estimate_baseline_days(data.baseline_metrics)

    if garmin_days < MIN_GARMIN_DAYS:
        missing.append(f"At least {MIN_GARMIN_DAYS} days of Garmin data (you have {garmin_days})")
    if dose_count < MIN_DOSE_LOGS:
        missing.append(f"At least {MIN_DOSE_LOGS} logged doses (you have {dose_count})")
    if not data.active_protocols:
        missing.append("At least one active protocol")

    if MIN_GARMIN_DAYS <= garmin_days < IDEAL_GARMIN_DAYS:
        warnings.append(f"More Garmin data would improve accuracy ({garmin_days}/{IDEAL_GARMIN_DAYS} days)")
    if baseline_days < MIN_BASELINE_DAYS:
        warnings.append("Limited baseline data - comparisons may be less accurate")
    completeness = calculate_data_completeness(data.garmin_data)
    if completeness < MIN_COMPLETENESS:
        warnings.append("Some Garmin metrics are incomplete for the analysis period")

    quality = calculate_data_quality(garmin_days, dose_days, baseline_days, completeness)
    has_minimum = not missing
    return DataValidationResult(
        is_valid=has_minimum and quality != "insufficient",
        has_minimum_data=has_minimum,
        missing_data=missing,
        warnings=warnings,
        data_quality=quality,
        stats=ValidationStats(
            days_of_garmin_data=garmin_days,
            days_of_dose_logs=dose_days,
            active_protocols=len(data.active_protocols),
            completeness_score=int(completeness * 100 + 0.5),
        ),
    )


def can_generate_weekly_analysis(
    garmin_data: list[DailyHealthSummary],
    dose_logs: list[DoseLogEntry],
    protocol_count: int,
) -> WeeklyAnalysisCheck:
    """Looser gate used by the scheduled weekly job."""
    if protocol_count == 0:
        return WeeklyAnalysisCheck(can_generate=False, reason="No active protocols found")
    if len(garmin_data) < 3:
        return WeeklyAnalysisCheck(can_generate=False, reason="Need at least 3 days of Garmin data")
    if not dose_logs:
        return WeeklyAnalysisCheck(can_generate=False, reason="No dose logs found for the analysis period")
    return WeeklyAnalysisCheck(can_generate=True)


def get_validation_messages(result: DataValidationResult) -> ValidationMessages:
    if result.is_valid and result.data_quality == "excellent":
        return ValidationMessages(
            title="Ready for Analysis",
            description="You have excellent data coverage. AI insights will be highly accurate.",
        )
    if result.is_valid and result.data_quality == "good":
        return ValidationMessages(
            title="Ready for Analysis",
            description="You have good data coverage. AI insights should be reliable.",
            action_items=result.warnings,
        )
    if result.is_valid and result.data_quality == "fair":
        return ValidationMessages(
            title="Limited Data Available",
            description="Analysis is possible but insights may be less accurate.",
            action_items=result.warnings,
        )
    return ValidationMessages(
        title="More Data Needed",
        description="Please add more data before generating insights.",
        action_items=result.missing_data,
    )

from datetime import date, datetime, timedelta, timezone

from pepmetrics.schemas.analysis import BaselineMetrics, DoseLogEntry, ProtocolSummary, UserAnalysisData
from pepmetrics.schemas.garmin import DailyHealthSummary
from pepmetrics.services.data_validation import (
    calculate_data_completeness,
    calculate_data_quality,
    can_generate_weekly_analysis,
    estimate_baseline_days,
    get_validation_messages,
    validate_data_sufficiency,
)

START = date(2024, 2, 1)
FULL_BASELINE = BaselineMetrics(hrv_avg=55, resting_hr_avg=52, sleep_score_avg=80, stress_avg=30)


def _day(i: int, **overrides) -> DailyHealthSummary:
    values = dict(hrv_avg=55, sleep_score=80, stress_avg=30, body_battery_high=90, resting_hr=52, steps=8000)
    values.update(overrides)
    return DailyHealthSummary(date=START + timedelta(days=i), **values)


def _dose(i: int) -> DoseLogEntry:
    day = START + timedelta(days=i)
    return DoseLogEntry(
        date=day,
        peptide_name="BPC-157",
        dose="250mcg",
        status="taken",
        scheduled_for=datetime(day.year, day.month, day.day, 8, tzinfo=timezone.utc),
    )


def _protocol() -> ProtocolSummary:
    return ProtocolSummary(id=1, name="BPC-157", dose="250mcg", frequency="Daily", start_date=START, status="active")


def _data(days: int, doses: int = 3, protocols: int = 1, baseline: BaselineMetrics = FULL_BASELINE):
    return UserAnalysisData(
        active_protocols=[_protocol() for _ in range(protocols)],
        dose_logs=[_dose(i) for i in range(doses)],
        garmin_data=[_day(i) for i in range(days)],
        baseline_metrics=baseline,
    )


def test_seven_days_is_enough():
    result = validate_data_sufficiency(_data(7))
    assert result.is_valid is True
    assert result.has_minimum_data is True
    assert result.data_quality == "good"
    assert result.missing_data == []
    assert result.warnings == ["More Garmin data would improve accuracy (7/14 days)"]
    assert result.stats.days_of_garmin_data == 7
    assert result.stats.days_of_dose_logs == 3
    assert result.stats.completeness_score == 100


def test_six_days_is_not_enough():
    result = validate_data_sufficiency(_data(6))
    assert result.is_valid is False
    assert result.missing_data == ["At least 7 days of Garmin data (you have 6)"]


def test_missing_doses_and_protocols():
    result = validate_data_sufficiency(_data(14, doses=2, protocols=0))
    assert result.is_valid is False
    assert "At least 3 logged doses (you have 2)" in result.missing_data
    assert "At least one active protocol" in result.missing_data


def test_weak_baseline_and_incomplete_metrics_warn():
    data = _data(14, baseline=BaselineMetrics())
    data.garmin_data = [_day(i, hrv_avg=None, sleep_score=None, stress_avg=None) for i in range(14)]
    result = validate_data_sufficiency(data)
    assert "Limited baseline data - comparisons may be less accurate" in result.warnings
    assert "Some Garmin metrics are incomplete for the analysis period" in result.warnings
    assert result.stats.completeness_score == 50


def test_estimate_baseline_days():
    assert estimate_baseline_days(FULL_BASELINE) == 28
    assert estimate_baseline_days(BaselineMetrics(hrv_avg=50, steps_avg=9000)) == 14
    assert estimate_baseline_days(BaselineMetrics(hrv_avg=50)) == 0


def test_completeness():
    assert calculate_data_completeness([]) == 0
    assert calculate_data_completeness([_day(0), _day(1, steps=None, hrv_avg=None, resting_hr=None)]) == 0.75


def test_quality_buckets():
    assert calculate_data_quality(14, 7, 28, 1.0) == "excellent"
    assert calculate_data_quality(7, 3, 28, 1.0) == "good"
    assert calculate_data_quality(7, 7, 14, 0.5) == "fair"
    assert calculate_data_quality(0, 0, 0, 0) == "insufficient"


def test_weekly_gate():
    days = [_day(i) for i in range(3)]
    doses = [_dose(0)]
    assert can_generate_weekly_analysis(days, doses, 0).reason == "No active protocols found"
    assert can_generate_weekly_analysis(days[:2], doses, 1).reason == "Need at least 3 days of Garmin data"
    assert can_generate_weekly_analysis(days, [], 1).reason == "No dose logs found for the analysis period"
    assert can_generate_weekly_analysis(days, doses, 1).can_generate is True


def test_validation_messages():
    ready = get_validation_messages(validate_data_sufficiency(_data(7)))
    assert ready.title == "Ready for Analysis"
    assert ready.action_items == ["More Garmin data would improve accuracy (7/14 days)"]

    blocked = get_validation_messages(validate_data_sufficiency(_data(2)))
    assert blocked.title == "More Data Needed"
    assert blocked.action_items == ["At least 7 days of Garmin data (you have 2)"]

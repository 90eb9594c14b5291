"""Tests for baseline, correlation, trend and compliance statistics."""

from datetime import date, datetime, timedelta, timezone

import pytest

from pepmetrics.schemas.analysis import BaselineMetrics, DoseLogEntry
from pepmetrics.schemas.garmin import DailyHealthSummary
from pepmetrics.services.statistics import (
    calculate_baseline_metrics,
    calculate_compliance_rate,
    calculate_correlations,
    calculate_metric_correlation,
    calculate_trend,
    compare_to_baseline,
    detect_outliers,
    get_significance_level,
)

START = date(2024, 1, 1)


def _dose(day: date, peptide: str = "BPC-157", status: str = "taken") -> DoseLogEntry:
    return DoseLogEntry(
        date=day,
        peptide_name=peptide,
        dose="250mcg",
        status=status,
        scheduled_for=datetime(day.year, day.month, day.day, 8, tzinfo=timezone.utc),
    )


def _alternating_hrv_days() -> list[DailyHealthSummary]:
    # dosed on odd days (1, 3, 5) with HRV 60, otherwise 50
    return [
        DailyHealthSummary(date=START + timedelta(days=i), hrv_avg=60 if i % 2 == 0 else 50)
        for i in range(6)
    ]


def test_baseline_averages_present_values():
    days = [
        DailyHealthSummary(date=START, hrv_avg=50, resting_hr=50, steps=1000, deep_sleep_hours=1.5),
        DailyHealthSummary(date=START + timedelta(days=1), hrv_avg=60, steps=2001, deep_sleep_hours=2.0),
    ]
    baseline = calculate_baseline_metrics(days)
    assert baseline.hrv_avg == 55
    assert baseline.hrv_std == 5
    assert baseline.resting_hr_avg == 50
    assert baseline.steps_avg == 1501
    assert baseline.deep_sleep_avg == 1.75
    assert baseline.sleep_score_avg == 0


def test_baseline_of_nothing_is_zero():
    assert calculate_baseline_metrics([]) == BaselineMetrics()


def test_correlations_across_lags_strongest_first():
    days = _alternating_hrv_days()
    doses = [_dose(START), _dose(START + timedelta(days=2)), _dose(START + timedelta(days=4))]
    doses.append(_dose(START + timedelta(days=1), status="skipped"))

    results = calculate_correlations(doses, days)

    assert [(r.lag_days, r.correlation) for r in results] == [(0, 1.0), (1, -1.0), (2, 0.71)]
    assert all(r.metric1 == "BPC-157" and r.metric2 == "HRV" for r in results)
    assert results[0].direction == "positive"
    assert results[1].direction == "negative"
    assert results[2].significance == "strong"


def test_correlation_needs_both_groups_and_variance():
    days = _alternating_hrv_days()
    every_day = {d.date for d in days}
    assert calculate_metric_correlation(every_day, days, "hrv_avg", 0) is None
    flat = [DailyHealthSummary(date=START + timedelta(days=i), hrv_avg=50) for i in range(6)]
    assert calculate_metric_correlation({START}, flat, "hrv_avg", 0) is None
    assert calculate_metric_correlation({START}, days[:2], "hrv_avg", 0) is None


def test_correlations_ignore_untaken_doses_and_short_windows():
    days = _alternating_hrv_days()
    assert calculate_correlations([_dose(START, status="skipped")], days) == []
    assert calculate_correlations([_dose(START)], days[:2]) == []
    assert calculate_correlations([], days) == []


@pytest.mark.parametrize(
    "r,expected",
    [(0.7, "strong"), (-0.75, "strong"), (0.5, "moderate"), (0.3, "weak"), (-0.49, "weak")],
)
def test_significance_level(r, expected):
    assert get_significance_level(r) == expected


def test_trend_direction():
    rising = calculate_trend([10, 11, 12, 13])
    assert rising.slope == 1
    assert rising.percent_change == 30
    assert rising.direction == "improving"
    assert calculate_trend([100, 102]).direction == "stable"
    assert calculate_trend([100, 90]).direction == "declining"
    assert calculate_trend([5]).direction == "stable"


def test_detect_outliers():
    result = detect_outliers([10, 11, 12, 13, 100])
    assert result.outliers == [100]
    assert result.lower_bound == 8
    assert result.upper_bound == 16
    assert detect_outliers([1, 2, 3]).outliers == []


def test_compliance_rate():
    logs = [
        _dose(START),
        _dose(START + timedelta(days=1)),
        _dose(START + timedelta(days=2), status="skipped"),
        _dose(START, peptide="TB-500"),
    ]
    rate = calculate_compliance_rate(logs)
    assert rate.overall == 75
    assert rate.by_peptide["BPC-157"].rate == 67
    assert rate.by_peptide["BPC-157"].total == 3
    assert rate.by_peptide["TB-500"].rate == 100
    assert calculate_compliance_rate([]).overall == 0


def test_compare_to_baseline():
    current = [
        DailyHealthSummary(date=START, hrv_avg=66, resting_hr=55),
        DailyHealthSummary(date=START + timedelta(days=1), hrv_avg=54),
    ]
    baseline = BaselineMetrics(hrv_avg=50, resting_hr_avg=50)
    comparison = compare_to_baseline(current, baseline)

    assert set(comparison) == {"HRV", "Resting HR"}
    assert comparison["HRV"].percent_change == 20
    assert comparison["HRV"].improved is True
    assert comparison["Resting HR"].percent_change == 10
    assert comparison["Resting HR"].improved is False


def test_no_relationship_yields_no_correlation():
    days = [
        DailyHealthSummary(date=START + timedelta(days=i), hrv_avg=50 if i % 2 == 0 else 55) for i in range(6)
    ]
    doses = [_dose(START), _dose(START + timedelta(days=1))]
    assert calculate_correlations(doses, days) == []

"""
Baseline and dose/metric correlation statistics.

The correlation is a simplified point-biserial coefficient over (dosed, not dosed) days.
No multiple-comparison correction is applied and |r| >= 0.3 is a heuristic cutoff;
downstream narrative generation is tuned to this sensitivity.
"""

from __future__ import annotations

import math
from datetime import date, timedelta

from pepmetrics.schemas.analysis import (
    BaselineMetrics,
    ComplianceRate,
    CorrelationResult,
    DoseLogEntry,
    MetricComparison,
    OutlierResult,
    PeptideCompliance,
    TrendResult,
)
from pepmetrics.schemas.garmin import DailyHealthSummary

CORRELATION_THRESHOLD = 0.3
LAG_DAYS = (0, 1, 2)
MIN_PAIRS = 3

# (DailyHealthSummary field, display name)
CORRELATION_METRICS: list[tuple[str, str]] = [
    ("hrv_avg", "HRV"),
    ("sleep_score", "Sleep Score"),
    ("deep_sleep_hours", "Deep Sleep"),
    ("stress_avg", "Stress"),
    ("body_battery_high", "Body Battery"),
    ("resting_hr", "Resting HR"),
]

# (DailyHealthSummary field, BaselineMetrics field, display name, higher is better)
COMPARISON_METRICS: list[tuple[str, str, str, bool]] = [
    ("hrv_avg", "hrv_avg", "HRV", True),
    ("resting_hr", "resting_hr_avg", "Resting HR", False),
    ("sleep_score", "sleep_score_avg", "Sleep Score", True),
    ("deep_sleep_hours", "deep_sleep_avg", "Deep Sleep", True),
    ("stress_avg", "stress_avg", "Stress", False),
    ("body_battery_high", "body_battery_avg", "Body Battery", True),
    ("steps", "steps_avg", "Steps", True),
]


def _round(value: float, digits: int = 0) -> float:
    """Round half up (away from banker's rounding)."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def mean(values: list[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def population_std(values: list[float]) -> float:
    if len(values) < 2:
        return 0.0
    m = mean(values)
    return math.sqrt(sum((v - m) ** 2 for v in values) / len(values))


def _present(days: list[DailyHealthSummary], field: str) -> list[float]:
    return [v for v in (getattr(d, field) for d in days) if v is not None]


def calculate_baseline_metrics(days: list[DailyHealthSummary]) -> BaselineMetrics:
    """Averages of present values over the window; HRV also gets a population stddev."""
    if not days:
        return BaselineMetrics()
    hrv = _present(days, "hrv_avg")
    return BaselineMetrics(
        hrv_avg=_round(mean(hrv), 1),
        hrv_std=_round(population_std(hrv), 1),
        resting_hr_avg=_round(mean(_present(days, "resting_hr")), 1),
        sleep_score_avg=_round(mean(_present(days, "sleep_score")), 1),
        deep_sleep_avg=_round(mean(_present(days, "deep_sleep_hours")), 2),
        stress_avg=_round(mean(_present(days, "stress_avg")), 1),
        body_battery_avg=_round(mean(_present(days, "body_battery_high")), 1),
        steps_avg=_round(mean(_present(days, "steps"))),
    )


def get_significance_level(correlation: float) -> str:
    r = abs(correlation)
    if r >= 0.7:
        return "strong"
    if r >= 0.5:
        return "moderate"
    return "weak"


def calculate_metric_correlation(
    dose_dates: set[date],
    days: list[DailyHealthSummary],
    field: str,
    lag_days: int,
) -> float | None:
    """
    r = ((mean_dosed - mean_not_dosed) / std_all) * sqrt(n1 * n0 / n^2), rounded to 2 places.
    A day is "dosed" when a taken dose exists on day - lag_days. None when undefined.
    """
    if len(days) < MIN_PAIRS or not dose_dates:
        return None
    dosed: list[float] = []
    not_dosed: list[float] = []
    for day in days:
        value = getattr(day, field)
        if value is None:
            continue
        if day.date - timedelta(days=lag_days) in dose_dates:
            dosed.append(value)
        else:
            not_dosed.append(value)
    n = len(dosed) + len(not_dosed)
    if n < MIN_PAIRS or not dosed or not not_dosed:
        return None
    std = population_std(dosed + not_dosed)
    if std == 0:
        return None
    r = ((mean(dosed) - mean(not_dosed)) / std) * math.sqrt(len(dosed) * len(not_dosed) / (n * n))
    return _round(r, 2)


def calculate_correlations(
    dose_logs: list[DoseLogEntry],
    days: list[DailyHealthSummary],
    baseline: BaselineMetrics | None = None,
) -> list[CorrelationResult]:
    """
    Every (peptide, metric, lag) triple with |r| >= 0.3, strongest first.
    Only taken doses count. baseline is accepted for callers that carry it; the coefficient does not use it.
    """
    if not dose_logs or len(days) < MIN_PAIRS:
        return []
    dates_by_peptide: dict[str, set[date]] = {}
    for log in dose_logs:
        if log.status != "taken":
            continue
        dates_by_peptide.setdefault(log.peptide_name, set()).add(log.date)

    results: list[CorrelationResult] = []
    for peptide, dose_dates in dates_by_peptide.items():
        for field, name in CORRELATION_METRICS:
            for lag in LAG_DAYS:
                r = calculate_metric_correlation(dose_dates, days, field, lag)
                if r is None or abs(r) < CORRELATION_THRESHOLD:
                    continue
                results.append(
                    CorrelationResult(
                        metric1=peptide,
                        metric2=name,
                        correlation=r,
                        lag_days=lag,
                        significance=get_significance_level(r),
                        direction="positive" if r > 0 else "negative",
                    )
                )
    results.sort(key=lambda c: abs(c.correlation), reverse=True)
    return results


def detect_outliers(values: list[float]) -> OutlierResult:
    """IQR rule with 1.5x whiskers; needs at least 4 values."""
    if len(values) < 4:
        return OutlierResult()
    ordered = sorted(values)
    q1 = ordered[int(len(ordered) * 0.25)]
    q3 = ordered[int(len(ordered) * 0.75)]
    iqr = q3 - q1
    lower = q1 - 1.5 * iqr
    upper = q3 + 1.5 * iqr
    return OutlierResult(
        outliers=[v for v in values if v < lower or v > upper],
        lower_bound=lower,
        upper_bound=upper,
    )


def calculate_trend(values: list[float]) -> TrendResult:
    """Least-squares slope over the index; direction from first-to-last percent change (5% band is stable)."""
    if len(values) < 2:
        return TrendResult()
    n = len(values)
    x_mean = (n - 1) / 2
    y_mean = mean(values)
    numerator = sum((i - x_mean) * (v - y_mean) for i, v in enumerate(values))
    denominator = sum((i - x_mean) ** 2 for i in range(n))
    slope = numerator / denominator if denominator else 0.0

    first, last = values[0], values[-1]
    percent_change = _round((last - first) / abs(first) * 100) if first != 0 else 0
    direction = "stable"
    if abs(percent_change) > 5:
        direction = "improving" if percent_change > 0 else "declining"
    return TrendResult(slope=_round(slope, 3), direction=direction, percent_change=percent_change)


def calculate_compliance_rate(dose_logs: list[DoseLogEntry]) -> ComplianceRate:
    """Taken / all logged doses as whole percentages, overall and per peptide."""
    if not dose_logs:
        return ComplianceRate()
    by_peptide: dict[str, PeptideCompliance] = {}
    for log in dose_logs:
        stats = by_peptide.setdefault(log.peptide_name, PeptideCompliance())
        stats.total += 1
        if log.status == "taken":
            stats.taken += 1
    taken = total = 0
    for stats in by_peptide.values():
        stats.rate = int(_round(stats.taken / stats.total * 100))
        taken += stats.taken
        total += stats.total
    overall = int(_round(taken / total * 100)) if total else 0
    return ComplianceRate(overall=overall, by_peptide=by_peptide)


def compare_to_baseline(
    current: list[DailyHealthSummary],
    baseline: BaselineMetrics,
) -> dict[str, MetricComparison]:
    """Percent change of this period's mean vs baseline; skipped where either side is 0/absent."""
    comparisons: dict[str, MetricComparison] = {}
    for field, baseline_field, name, higher_is_better in COMPARISON_METRICS:
        current_value = mean(_present(current, field))
        baseline_value = getattr(baseline, baseline_field)
        if current_value <= 0 or baseline_value <= 0:
            continue
        percent_change = int(_round((current_value - baseline_value) / baseline_value * 100))
        improved = percent_change > 0 if higher_is_better else percent_change < 0
        comparisons[name] = MetricComparison(
            current=_round(current_value, 1),
            baseline=_round(baseline_value, 1),
            percent_change=percent_change,
            improved=improved,
        )
    return comparisons

"""
Fold per-type, per-day Garmin fragments into one partial row per calendar date.

Callers own the accumulator map (one per import); nothing here is module-level state.
Fields listed in FIELD_PRECEDENCE only accept a value from a source ranked at or above
the source that set them, and fallback sources (all but the first) only fill an empty field;
every other field is last-write-wins.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable

from pepmetrics.schemas.garmin import DailyHealthSummary, GarminFileType

logger = logging.getLogger(__name__)

# field -> sources, highest precedence first
FIELD_PRECEDENCE: dict[str, tuple[GarminFileType, ...]] = {
    "hrv_avg": (GarminFileType.HRV, GarminFileType.HEALTH_STATUS),
    "resting_hr": (GarminFileType.DAILY_SUMMARY, GarminFileType.HEALTH_STATUS),
}

SUMMARY_FIELDS = tuple(f for f in DailyHealthSummary.model_fields if f != "date")
_INT_FIELDS = {"steps", "active_minutes"}


def _num(value: Any) -> float | int | None:
    """Numeric value or None; bools and strings are not numbers here."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


class DayAccumulator:
    """Partial daily row plus the source that set each field."""

    def __init__(self, day: date):
        self.date = day
        self.values: dict[str, float | int] = {}
        self.sources: dict[str, GarminFileType] = {}

    def get(self, field: str) -> float | int | None:
        return self.values.get(field)

    def set(self, field: str, value: Any, source: GarminFileType) -> bool:
        """Set field if value is numeric and source may override the current one. Returns True if stored."""
        value = _num(value)
        if value is None:
            return False
        order = FIELD_PRECEDENCE.get(field)
        current = self.sources.get(field)
        if order and current is not None and source in order and current in order:
            rank = order.index(source)
            if rank > 0 and rank >= order.index(current):
                return False
        self.values[field] = value
        self.sources[field] = source
        return True

    def to_summary(self) -> DailyHealthSummary:
        data: dict[str, Any] = {"date": self.date}
        for field in SUMMARY_FIELDS:
            v = self.values.get(field)
            if v is None:
                continue
            data[field] = int(round(v)) if field in _INT_FIELDS else v
        return DailyHealthSummary(**data)


def _merge_sleep(acc: DayAccumulator, entry: dict) -> None:
    src = GarminFileType.SLEEP
    stages = {
        "deep_sleep_hours": _num(entry.get("deepSleepSeconds")),
        "light_sleep_hours": _num(entry.get("lightSleepSeconds")),
        "rem_sleep_hours": _num(entry.get("remSleepSeconds")),
        "awake_hours": _num(entry.get("awakeSleepSeconds")),
    }
    for field, seconds in stages.items():
        if seconds is not None:
            acc.set(field, seconds / 3600, src)
    total = _num(entry.get("sleepTimeSeconds"))
    if total is None:
        present = [s for s in stages.values() if s is not None]
        total = sum(present) if present else None
    if total is not None:
        acc.set("sleep_duration_hours", total / 3600, src)
    scores = entry.get("sleepScores")
    if isinstance(scores, dict):
        overall = scores.get("overall")
        if isinstance(overall, dict):
            acc.set("sleep_score", overall.get("value"), src)


def _merge_hrv(acc: DayAccumulator, entry: dict) -> None:
    value = _num(entry.get("lastNightAvg"))
    if value is None:
        value = _num(entry.get("hrvValue"))
    acc.set("hrv_avg", value, GarminFileType.HRV)


def _merge_stress(acc: DayAccumulator, entry: dict) -> None:
    acc.set("stress_avg", entry.get("overallStressLevel"), GarminFileType.STRESS)


def _merge_body_battery(acc: DayAccumulator, entry: dict) -> None:
    src = GarminFileType.BODY_BATTERY
    high = _num(entry.get("highestBodyBattery"))
    low = _num(entry.get("lowestBodyBattery"))
    acc.set("body_battery_high", high if high is not None else entry.get("startOfDayBodyBattery"), src)
    acc.set("body_battery_low", low if low is not None else entry.get("endOfDayBodyBattery"), src)


def _merge_daily_summary(acc: DayAccumulator, entry: dict) -> None:
    src = GarminFileType.DAILY_SUMMARY
    acc.set("steps", entry.get("totalSteps"), src)
    acc.set("distance_meters", entry.get("totalDistanceMeters"), src)

    active_kcal = _num(entry.get("activeKilocalories"))
    bmr_kcal = _num(entry.get("bmrKilocalories"))
    acc.set("calories_active", active_kcal, src)
    total_kcal = _num(entry.get("totalKilocalories"))
    if total_kcal is None and (active_kcal is not None or bmr_kcal is not None):
        total_kcal = (active_kcal or 0) + (bmr_kcal or 0)
    acc.set("calories_total", total_kcal, src)

    active_seconds = _num(entry.get("activeSeconds"))
    if active_seconds is not None:
        acc.set("active_minutes", round(active_seconds / 60), src)
    else:
        moderate = _num(entry.get("intensityMinutes"))
        if moderate is None:
            moderate = _num(entry.get("moderateIntensityMinutes"))
        vigorous = _num(entry.get("vigorousIntensityMinutes"))
        if moderate is not None or vigorous is not None:
            acc.set("active_minutes", (moderate or 0) + (vigorous or 0), src)

    acc.set("resting_hr", entry.get("restingHeartRate"), src)
    if acc.get("stress_avg") is None:
        acc.set("stress_avg", entry.get("averageStressLevel"), src)

    # UDSFile / aggregator shape: stress and body battery nested in sub-objects
    all_day_stress = entry.get("allDayStress")
    if isinstance(all_day_stress, dict):
        aggregators = [a for a in all_day_stress.get("aggregatorList") or [] if isinstance(a, dict)]
        if aggregators:
            total = next((a for a in aggregators if a.get("type") == "TOTAL"), aggregators[0])
            acc.set("stress_avg", total.get("averageStressLevel"), src)

    body_battery = entry.get("bodyBattery")
    if isinstance(body_battery, dict):
        for stat in body_battery.get("bodyBatteryStatList") or []:
            if not isinstance(stat, dict):
                continue
            stat_type = stat.get("bodyBatteryStatType")
            if stat_type == "HIGHEST":
                acc.set("body_battery_high", stat.get("statsValue"), src)
            elif stat_type == "LOWEST":
                acc.set("body_battery_low", stat.get("statsValue"), src)


_HEALTH_STATUS_METRICS = {"HRV": "hrv_avg", "HR": "resting_hr"}


def _merge_health_status(acc: DayAccumulator, entry: dict) -> None:
    for metric in entry.get("metrics") or []:
        if not isinstance(metric, dict):
            continue
        field = _HEALTH_STATUS_METRICS.get(str(metric.get("type", "")).upper())
        if field:
            acc.set(field, metric.get("value"), GarminFileType.HEALTH_STATUS)


MERGERS: dict[GarminFileType, Callable[[DayAccumulator, dict], None]] = {
    GarminFileType.SLEEP: _merge_sleep,
    GarminFileType.HRV: _merge_hrv,
    GarminFileType.STRESS: _merge_stress,
    GarminFileType.BODY_BATTERY: _merge_body_battery,
    GarminFileType.DAILY_SUMMARY: _merge_daily_summary,
    GarminFileType.HEALTH_STATUS: _merge_health_status,
}


def can_merge(file_type: GarminFileType) -> bool:
    return file_type in MERGERS


def merge_entry(days: dict[date, DayAccumulator], day: date, entry: dict, file_type: GarminFileType) -> None:
    """Merge one dated entry into days (mutated in place). Types without a merge rule are ignored."""
    merger = MERGERS.get(file_type)
    if merger is None:
        return
    acc = days.get(day)
    if acc is None:
        acc = days[day] = DayAccumulator(day)
    merger(acc, entry)


def days_to_summaries(days: dict[date, DayAccumulator]) -> list[DailyHealthSummary]:
    """Flat, date-ordered projection for storage. Missing fields stay None."""
    return [days[d].to_summary() for d in sorted(days)]

"""
Dose scheduling from a protocol's recurrence rule.

Functions accept any object exposing the protocol / dose-log attributes (ORM rows or
schemas). Every function takes an optional `today` so callers and tests can pin the clock.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Iterable

from pepmetrics.schemas.protocol import DaySchedule, ScheduledDose

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
MAX_RANGE_DAYS = 366
OVERDUE_LOOKBACK_DAYS = 30
DEFAULT_CYCLE_ON_DAYS = 5
DEFAULT_CYCLE_OFF_DAYS = 2


def _today(today: date | None) -> date:
    return today or date.today()


def _as_date(value: date | datetime | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def day_of_week(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def _cycle(protocol: Any) -> tuple[int, int, date]:
    on_days = protocol.cycle_on_days or DEFAULT_CYCLE_ON_DAYS
    off_days = protocol.cycle_off_days or DEFAULT_CYCLE_OFF_DAYS
    start = _as_date(protocol.cycle_start_date or protocol.start_date)
    return on_days, off_days, start


def qualifies_on(protocol: Any, day: date) -> bool:
    """Whether the recurrence rule schedules a dose on day. Never before start_date."""
    start = _as_date(protocol.start_date)
    if day < start:
        return False
    frequency = protocol.frequency_type
    if frequency == "daily":
        return True
    if frequency == "specific-days":
        return day_of_week(day) in (protocol.specific_days or [])
    if frequency == "every-x-days":
        return (day - start).days % (protocol.interval_days or 1) == 0
    if frequency == "cycling":
        on_days, off_days, cycle_start = _cycle(protocol)
        offset = (day - cycle_start).days
        return offset >= 0 and offset % (on_days + off_days) < on_days
    return False


def get_cycle_phase(protocol: Any, today: date | None = None) -> str:
    """'on' or 'off'. Non-cycling protocols and days before the cycle start count as 'on'."""
    if protocol.frequency_type != "cycling":
        return "on"
    on_days, off_days, cycle_start = _cycle(protocol)
    offset = (_today(today) - cycle_start).days
    if offset < 0:
        return "on"
    return "on" if offset % (on_days + off_days) < on_days else "off"


def get_next_dose_date(protocol: Any, last_dose_date: date | None = None, today: date | None = None) -> date:
    """Next date a dose is expected, from the last taken dose if known, else from today/start."""
    today = _today(today)
    start = _as_date(protocol.start_date)
    first_candidate = today if today >= start else start
    frequency = protocol.frequency_type

    if frequency == "daily":
        return last_dose_date + timedelta(days=1) if last_dose_date else first_candidate

    if frequency == "specific-days":
        if not protocol.specific_days:
            return today
        check = last_dose_date + timedelta(days=1) if last_dose_date else first_candidate
        for _ in range(7):
            if day_of_week(check) in protocol.specific_days:
                return check
            check += timedelta(days=1)
        return check

    if frequency == "every-x-days":
        interval = protocol.interval_days or 1
        if last_dose_date:
            return last_dose_date + timedelta(days=interval)
        if today <= start:
            return start
        remainder = (today - start).days % interval
        return today if remainder == 0 else today + timedelta(days=interval - remainder)

    if frequency == "cycling":
        if get_cycle_phase(protocol, today) == "off":
            on_days, off_days, cycle_start = _cycle(protocol)
            cycle_length = on_days + off_days
            return today + timedelta(days=cycle_length - (today - cycle_start).days % cycle_length)
        return last_dose_date + timedelta(days=1) if last_dose_date else first_candidate

    return today


def _logs_for(protocol: Any, logs: Iterable[Any]) -> list[Any]:
    return [log for log in logs if log.protocol_id == protocol.id]


def is_due_today(protocol: Any, logs: Iterable[Any], today: date | None = None) -> bool:
    """Active, scheduled today, and fewer than doses_per_day taken today."""
    if protocol.status != "active":
        return False
    today = _today(today)
    taken_today = [
        log for log in _logs_for(protocol, logs) if log.status == "taken" and _as_date(log.scheduled_for) == today
    ]
    if len(taken_today) >= protocol.doses_per_day:
        return False
    return qualifies_on(protocol, today)


def is_overdue(protocol: Any, logs: Iterable[Any], today: date | None = None) -> bool:
    """Project the next dose from the last taken one; overdue when that date has passed."""
    if protocol.status != "active":
        return False
    today = _today(today)
    if today < _as_date(protocol.start_date):
        return False
    taken = [log for log in _logs_for(protocol, logs) if log.status == "taken"]
    last = max((_as_date(log.taken_at or log.scheduled_for) for log in taken), default=None)
    return get_next_dose_date(protocol, last, today) < today


def get_schedule_for_range(
    protocols: list[Any],
    logs: list[Any],
    start: date,
    end: date,
    today: date | None = None,
) -> list[ScheduledDose]:
    """
    One slot per (qualifying day, dose number) for active protocols, with status from the matching
    log, else overdue for past days and pending otherwise. Raises ValueError past MAX_RANGE_DAYS.
    """
    if end < start:
        return []
    if (end - start).days + 1 > MAX_RANGE_DAYS:
        raise ValueError(f"Date range cannot exceed {MAX_RANGE_DAYS} days")
    today = _today(today)

    by_slot: dict[tuple[Any, date, int], Any] = {}
    for log in logs:
        by_slot[(log.protocol_id, _as_date(log.scheduled_for), log.dose_number or 1)] = log

    doses: list[ScheduledDose] = []
    day = start
    while day <= end:
        for protocol in protocols:
            if protocol.status != "active" or not qualifies_on(protocol, day):
                continue
            for dose_number in range(1, protocol.doses_per_day + 1):
                existing = by_slot.get((protocol.id, day, dose_number))
                if existing is not None:
                    status = existing.status
                elif day < today:
                    status = "overdue"
                else:
                    status = "pending"
                doses.append(
                    ScheduledDose(
                        protocol_id=protocol.id,
                        peptide_name=protocol.peptide_name,
                        dose=protocol.dose,
                        scheduled_date=day,
                        scheduled_time=protocol.preferred_time,
                        timing_preference=protocol.timing_preference,
                        dose_number=dose_number,
                        total_doses=protocol.doses_per_day,
                        requires_fasting=protocol.timing_preference == "morning-fasted",
                        status=status,
                        dose_log_id=existing.id if existing is not None else None,
                    )
                )
        day += timedelta(days=1)
    doses.sort(key=lambda d: (d.scheduled_date, d.dose_number))
    return doses


def get_upcoming_doses(
    protocols: list[Any], logs: list[Any], days: int = 7, today: date | None = None
) -> list[ScheduledDose]:
    today = _today(today)
    return get_schedule_for_range(protocols, logs, today, today + timedelta(days=days - 1), today=today)


def get_doses_today(protocols: list[Any], logs: list[Any], today: date | None = None) -> list[ScheduledDose]:
    return get_upcoming_doses(protocols, logs, days=1, today=today)


def get_overdue_doses(protocols: list[Any], logs: list[Any], today: date | None = None) -> list[ScheduledDose]:
    """Unlogged slots from the last 30 days (today excluded)."""
    today = _today(today)
    window = get_schedule_for_range(
        protocols, logs, today - timedelta(days=OVERDUE_LOOKBACK_DAYS), today - timedelta(days=1), today=today
    )
    return [d for d in window if d.status not in ("taken", "skipped")]


def get_weekly_schedule(protocols: list[Any], logs: list[Any], today: date | None = None) -> list[DaySchedule]:
    today = _today(today)
    doses = get_upcoming_doses(protocols, logs, days=7, today=today)
    schedule = []
    for i in range(7):
        day = today + timedelta(days=i)
        schedule.append(
            DaySchedule(
                date=day,
                day_of_week=day_of_week(day),
                doses=[d for d in doses if d.scheduled_date == day],
                is_today=day == today,
                is_past=day < today,
            )
        )
    return schedule


def get_frequency_summary(protocol: Any) -> str:
    frequency = protocol.frequency_type
    if frequency == "daily":
        return "Daily"
    if frequency == "specific-days":
        days = protocol.specific_days or []
        if not days:
            return "No days selected"
        if len(days) == 7:
            return "Daily"
        return ", ".join(d[:3].capitalize() for d in days)
    if frequency == "every-x-days":
        interval = protocol.interval_days or 1
        named = {1: "Daily", 2: "Every other day", 7: "Weekly", 14: "Bi-weekly"}
        return named.get(interval, f"Every {interval} days")
    if frequency == "cycling":
        on_days, off_days, _ = _cycle(protocol)
        return f"{on_days} on / {off_days} off"
    return "Unknown"

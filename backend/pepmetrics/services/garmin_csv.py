"""
Parse activity CSV exports from Garmin Connect (Activities page -> Export CSV).
Headers vary with the account locale; values are normalized to SI units.
Parsing never raises for bad content: row problems become ParseError entries.
"""

from __future__ import annotations

import csv
import logging
import math
import re
from datetime import datetime, timezone

from pepmetrics.schemas.garmin import (
    ActivityDateRange,
    CsvParseResult,
    CsvParseSummary,
    ParsedActivity,
    ParseError,
)

logger = logging.getLogger(__name__)

METERS_PER_MILE = 1609.344
METERS_PER_FOOT = 0.3048
MPS_PER_MPH = 0.44704

# Canonical field -> accepted header spellings (English, German, French). First match wins.
COLUMN_MAPPINGS: dict[str, list[str]] = {
    "activity_type": ["Activity Type", "Type", "Activitätsart", "Type d'activité"],
    "activity_name": ["Title", "Activity Name", "Name", "Titel", "Titre"],
    "date": ["Date", "Start Date", "Datum"],
    "distance": ["Distance", "Distanz"],
    "duration": ["Time", "Duration", "Moving Time", "Elapsed Time", "Dauer", "Zeit", "Durée"],
    "calories": ["Calories", "Kalorien"],
    "avg_hr": ["Avg HR", "Average HR", "Avg Heart Rate", "Average Heart Rate", "Durchschn. HF", "FC moyenne"],
    "max_hr": ["Max HR", "Maximum HR", "Max Heart Rate", "Maximum Heart Rate", "Max. HF", "FC max."],
    "avg_speed": ["Avg Speed", "Average Speed", "Durchschn. Geschwindigkeit", "Vitesse moyenne"],
    "max_speed": ["Max Speed", "Maximum Speed", "Vitesse max."],
    "avg_pace": ["Avg Pace", "Average Pace", "Durchschn. Tempo", "Allure moyenne"],
    "elevation_gain": ["Total Ascent", "Elev Gain", "Elevation Gain", "Höhengewinn", "Ascension totale"],
    "favorite": ["Favorite", "Favorit", "Favori"],
    "steps": ["Steps", "Schritte", "Pas"],
    "body_battery_drain": ["Body Battery Drain"],
    "aerobic_te": ["Aerobic TE", "Aerober TE", "TE aérobie"],
}

GARMIN_HEADER_INDICATORS = (
    "activity type",
    "activitätsart",
    "type d'activité",
    "avg hr",
    "max hr",
    "elev gain",
    "elevation gain",
    "garmin",
)

_ISO_DATETIME = re.compile(r"^(\d{4}-\d{2}-\d{2})\s+(\d{2}:\d{2}:\d{2})")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_US_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})(?:\s+(.+))?$")
_TIME_24 = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")
_TIME_12 = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?\s*(AM|PM)$", re.IGNORECASE)
_FREEFORM_FORMATS = (
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y %H:%M:%S",
    "%a, %b %d, %Y %H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _split_line(line: str) -> list[str]:
    """Quote-aware split of one CSV line ("" inside quotes is an escaped quote)."""
    row = next(csv.reader([line]), [])
    return [v.strip() for v in row]


def _map_columns(headers: list[str]) -> dict[str, int]:
    normalized = [h.strip().lower() for h in headers]
    column_map: dict[str, int] = {}
    for field, variations in COLUMN_MAPPINGS.items():
        for variation in variations:
            try:
                column_map[field] = normalized.index(variation.lower())
                break
            except ValueError:
                continue
    return column_map


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_time_of_day(value: str) -> tuple[int, int, int] | None:
    """'14:30', '14:30:05', '2:30 PM' -> (h, m, s)."""
    value = value.strip()
    m = _TIME_24.match(value)
    if m:
        return int(m.group(1)), int(m.group(2)), int(m.group(3) or 0)
    m = _TIME_12.match(value)
    if m:
        hours = int(m.group(1))
        is_pm = m.group(4).upper() == "PM"
        if is_pm and hours != 12:
            hours += 12
        if not is_pm and hours == 12:
            hours = 0
        return hours, int(m.group(2)), int(m.group(3) or 0)
    return None


def parse_garmin_datetime(value: str) -> datetime | None:
    """
    Garmin date strings depend on account locale. Tried in order:
    'YYYY-MM-DD HH:MM:SS', 'YYYY-MM-DD', 'M/D/YYYY[ time]', then month-name and ISO 'T' forms.
    Naive results are UTC.
    """
    value = value.strip()
    try:
        m = _ISO_DATETIME.match(value)
        if m:
            return _as_utc(datetime.strptime(f"{m.group(1)} {m.group(2)}", "%Y-%m-%d %H:%M:%S"))
        if _ISO_DATE.match(value):
            return _as_utc(datetime.strptime(value, "%Y-%m-%d"))
        m = _US_DATE.match(value)
        if m:
            month, day, year = int(m.group(1)), int(m.group(2)), int(m.group(3))
            hours = minutes = seconds = 0
            if m.group(4):
                parsed_time = parse_time_of_day(m.group(4))
                if parsed_time is None:
                    return None
                hours, minutes, seconds = parsed_time
            return datetime(year, month, day, hours, minutes, seconds, tzinfo=timezone.utc)
    except ValueError:
        return None
    for fmt in _FREEFORM_FORMATS:
        try:
            return _as_utc(datetime.strptime(value, fmt))
        except ValueError:
            continue
    try:
        return _as_utc(datetime.fromisoformat(value))
    except ValueError:
        return None


def parse_duration(value: str | None) -> int | None:
    """Seconds from '5400', 'HH:MM:SS' or 'MM:SS' (fractional seconds truncated)."""
    if not value:
        return None
    if value.isdigit():
        return int(value)
    parts = value.split(":")
    try:
        nums = [int(float(p)) for p in parts]
    except ValueError:
        return None
    if len(nums) == 3:
        return nums[0] * 3600 + nums[1] * 60 + nums[2]
    if len(nums) == 2:
        return nums[0] * 60 + nums[1]
    return None


def parse_distance(value: str | None, assume_miles: bool = True) -> int | None:
    """Meters, rounded. Explicit mi/km/m units win; bare numbers are miles (or km)."""
    if not value:
        return None
    cleaned = value.replace(",", "")
    m = re.match(r"^([\d.]+)", cleaned)
    if not m:
        return None
    try:
        number = float(m.group(1))
    except ValueError:
        return None
    lower = value.lower()
    if "mi" in lower:
        return _round_half_up(number * METERS_PER_MILE)
    if "km" in lower or "kilometer" in lower:
        return _round_half_up(number * 1000)
    if "m" in lower:
        return _round_half_up(number)
    if assume_miles:
        return _round_half_up(number * METERS_PER_MILE)
    return _round_half_up(number * 1000)


def parse_speed(speed: str | None, pace: str | None, assume_mph: bool = True) -> float | None:
    """Meters per second. An explicit speed value is preferred over a pace value."""
    if speed:
        m = re.match(r"^([\d,.]+)", speed)
        if m:
            try:
                number = float(m.group(1).replace(",", ".", 1))
            except ValueError:
                return None
            lower = speed.lower()
            if "mph" in lower or "mi/h" in lower:
                return number * MPS_PER_MPH
            if "km/h" in lower or "kph" in lower:
                return number / 3.6
            if "m/s" in lower:
                return number
            return number * MPS_PER_MPH if assume_mph else number / 3.6
    if pace:
        m = re.search(r"(\d+):(\d+)", pace)
        if m:
            total_seconds = int(m.group(1)) * 60 + int(m.group(2))
            if total_seconds == 0:
                return None
            if "mi" in pace.lower():
                return METERS_PER_MILE / total_seconds
            return 1000 / total_seconds
    return None


def parse_number(value: str | None) -> int | None:
    """'1,234 kcal' -> 1234. Rounded to an integer."""
    if not value:
        return None
    without_thousands = re.sub(r",(\d{3})", r"\1", value)
    cleaned = re.sub(r"[^\d.\-]", "", without_thousands)
    try:
        return _round_half_up(float(cleaned))
    except ValueError:
        return None


def parse_elevation(value: str | None, assume_feet: bool = True) -> int | None:
    """Meters. Bare numbers are feet unless assume_feet is False."""
    number = parse_number(value)
    if number is None:
        return None
    lower = value.lower()
    if "ft" in lower or "feet" in lower:
        return _round_half_up(number * METERS_PER_FOOT)
    if "m" in lower and "mi" not in lower:
        return number
    if assume_feet:
        return _round_half_up(number * METERS_PER_FOOT)
    return number


def _parse_activity_row(
    values: list[str],
    column_map: dict[str, int],
    headers: list[str],
    assume_miles: bool,
    assume_feet: bool,
) -> ParsedActivity:
    """Build one activity. Raises ValueError with a user-facing message when the row is unusable."""

    def get(field: str) -> str | None:
        index = column_map.get(field)
        if index is None or index >= len(values):
            return None
        v = values[index].strip()
        return None if v in ("", "--") else v

    activity_type = get("activity_type")
    date_str = get("date")
    if not activity_type or not date_str:
        raise ValueError("Missing activity type or date")
    start_time = parse_garmin_datetime(date_str)
    if start_time is None:
        raise ValueError(f"Invalid date format: {date_str}")

    raw_data = {
        header: values[i].strip()
        for i, header in enumerate(headers)
        if i < len(values) and values[i].strip()
    }
    return ParsedActivity(
        activity_type=activity_type,
        activity_name=get("activity_name"),
        start_time=start_time,
        duration_seconds=parse_duration(get("duration")),
        distance_meters=parse_distance(get("distance"), assume_miles=assume_miles),
        calories=parse_number(get("calories")),
        avg_heart_rate=parse_number(get("avg_hr")),
        max_heart_rate=parse_number(get("max_hr")),
        avg_speed_mps=parse_speed(get("avg_speed"), get("avg_pace"), assume_mph=assume_miles),
        elevation_gain_meters=parse_elevation(get("elevation_gain"), assume_feet=assume_feet),
        raw_data=raw_data,
    )


def parse_garmin_activity_csv(
    content: str,
    assume_miles: bool = True,
    assume_feet: bool = True,
) -> CsvParseResult:
    """Parse the whole CSV. success is True when at least one row produced an activity."""
    lines = [line for line in re.split(r"\r?\n", content) if line.strip()]
    if len(lines) < 2:
        return CsvParseResult(
            success=False,
            errors=[ParseError(row=0, message="CSV file is empty or contains only headers")],
        )

    headers = _split_line(lines[0])
    column_map = _map_columns(headers)
    data_rows = len(lines) - 1
    if "activity_type" not in column_map or "date" not in column_map:
        return CsvParseResult(
            success=False,
            errors=[
                ParseError(
                    row=0,
                    message="CSV does not appear to be a Garmin activity export. Missing Activity Type or Date columns.",
                )
            ],
            summary=CsvParseSummary(total_rows=data_rows, valid_rows=0, invalid_rows=data_rows),
        )

    activities: list[ParsedActivity] = []
    errors: list[ParseError] = []
    for i, line in enumerate(lines[1:], start=1):
        try:
            activity = _parse_activity_row(_split_line(line.strip()), column_map, headers, assume_miles, assume_feet)
        except (ValueError, csv.Error) as e:
            errors.append(ParseError(row=i + 1, message=str(e) or "Failed to parse row"))
            continue
        activities.append(activity)

    if errors:
        logger.debug("Garmin CSV: %d of %d rows rejected", len(errors), data_rows)
    date_range = None
    if activities:
        starts = [a.start_time for a in activities]
        date_range = ActivityDateRange(start=min(starts), end=max(starts))
    return CsvParseResult(
        success=len(activities) > 0,
        activities=activities,
        errors=errors,
        summary=CsvParseSummary(
            total_rows=data_rows,
            valid_rows=len(activities),
            invalid_rows=len(errors),
            date_range=date_range,
        ),
    )


def is_garmin_activity_csv(content: str) -> bool:
    """Cheap pre-flight check on the header line only."""
    first_line = re.split(r"\r?\n", content, maxsplit=1)[0].lower()
    return any(indicator in first_line for indicator in GARMIN_HEADER_INDICATORS)

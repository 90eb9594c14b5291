"""
Parse Garmin full data export JSON files (garmin.com/account -> Export Your Data)
and merge them into daily summaries. Best effort: unknown shapes yield no entries, never an exception.
"""

from __future__ import annotations

import io
import json
import logging
import re
import zipfile
from datetime import date, datetime, timezone
from typing import Any

from pepmetrics.schemas.garmin import (
    DateRange,
    ExportSummary,
    GarminExportFile,
    GarminFileType,
    ParsedGarminExport,
    ZipImportResult,
)
from pepmetrics.services.daily_merge import DayAccumulator, days_to_summaries, merge_entry
from pepmetrics.services.garmin_file_scanner import extract_files_from_zip, scan_zip_for_garmin_files

logger = logging.getLogger(__name__)

DATE_FIELDS = ("calendarDate", "date", "summaryDate", "startDate")
TIMESTAMP_FIELDS = ("startTimestampGMT", "endTimestampGMT", "timestamp")
WRAPPER_KEYS = ("allSleeps", "hrvValues", "stressSummaries", "bodyBatteryData", "dailySummaries")

_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")


def _has_property(data: Any, prop: str) -> bool:
    """Key present on the object, or on the first element of a list of objects."""
    if isinstance(data, list):
        return bool(data) and isinstance(data[0], dict) and prop in data[0]
    if isinstance(data, dict):
        return prop in data
    return False


def classify_export_content(file_name: str, parsed: Any) -> GarminFileType:
    """Combine filename hints with structural hints; filenames differ across export versions."""
    name = file_name.lower()
    if "sleep" in name or _has_property(parsed, "sleepTimeSeconds"):
        return GarminFileType.SLEEP
    if "hrv" in name or _has_property(parsed, "hrvValue") or _has_property(parsed, "lastNightAvg"):
        return GarminFileType.HRV
    if "stress" in name or _has_property(parsed, "overallStressLevel"):
        return GarminFileType.STRESS
    if (
        "body_battery" in name
        or "bodybattery" in name
        or _has_property(parsed, "startOfDayBodyBattery")
        or _has_property(parsed, "bodyBatteryStatList")
    ):
        return GarminFileType.BODY_BATTERY
    if (
        "healthstatus" in name
        or "health_status" in name
        or _has_property(parsed, "overallValues")
        or _has_property(parsed, "metrics")
    ):
        return GarminFileType.HEALTH_STATUS
    if (
        "udsfile" in name
        or "aggregator" in name
        or "daily" in name
        or "summary" in name
        or _has_property(parsed, "totalSteps")
    ):
        return GarminFileType.DAILY_SUMMARY
    if "activities" in name or _has_property(parsed, "activityType"):
        return GarminFileType.ACTIVITIES
    return GarminFileType.UNKNOWN


def parse_garmin_export_file(file_name: str, content: str) -> GarminExportFile:
    """Parse and classify one file. Invalid JSON gives type=unknown with content None."""
    try:
        parsed = json.loads(content)
    except (ValueError, TypeError, RecursionError) as e:
        logger.warning("Invalid JSON in Garmin export file %s: %s", file_name, e)
        return GarminExportFile(file_name=file_name, type=GarminFileType.UNKNOWN, content=None)
    return GarminExportFile(file_name=file_name, type=classify_export_content(file_name, parsed), content=parsed)


def get_date_from_entry(entry: dict) -> date | None:
    """Calendar date from the first string date field, else from an epoch-millisecond field."""
    for field in DATE_FIELDS:
        value = entry.get(field)
        if isinstance(value, str) and _DATE_PREFIX.match(value):
            try:
                return date.fromisoformat(value[:10])
            except ValueError:
                continue
    for field in TIMESTAMP_FIELDS:
        value = entry.get(field)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            try:
                return datetime.fromtimestamp(value / 1000, tz=timezone.utc).date()
            except (OverflowError, OSError, ValueError):
                continue
    return None


def normalize_to_array(content: Any) -> list[dict]:
    """List of entry objects: the list itself, a known wrapper key's list, or a single dated object."""
    if isinstance(content, list):
        return [e for e in content if isinstance(e, dict)]
    if isinstance(content, dict):
        for key in WRAPPER_KEYS:
            wrapped = content.get(key)
            if isinstance(wrapped, list):
                return [e for e in wrapped if isinstance(e, dict)]
        if get_date_from_entry(content) is not None:
            return [content]
    return []


def process_garmin_export(files: list[GarminExportFile]) -> ParsedGarminExport:
    """Merge every dated entry of every recognized file into one row per date."""
    days: dict[date, DayAccumulator] = {}
    errors: list[str] = []
    data_types: list[GarminFileType] = []
    processed = 0

    for f in files:
        if f.type == GarminFileType.UNKNOWN:
            continue
        processed += 1
        if f.type not in data_types:
            data_types.append(f.type)
        try:
            for entry in normalize_to_array(f.content):
                day = get_date_from_entry(entry)
                if day is None:
                    continue
                merge_entry(days, day, entry, f.type)
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning("Error processing Garmin file %s: %s", f.file_name, e)
            errors.append(f"Error processing {f.file_name}: {e}")

    daily = days_to_summaries(days)
    date_range = DateRange(start=daily[0].date, end=daily[-1].date) if daily else None
    return ParsedGarminExport(
        success=len(daily) > 0,
        daily_data=daily,
        errors=errors,
        summary=ExportSummary(
            files_processed=processed,
            days_of_data=len(daily),
            date_range=date_range,
            data_types=data_types,
        ),
    )


def parse_garmin_export_zip(data: bytes, target_days: int = 90, today: date | None = None) -> ZipImportResult:
    """
    Full ZIP pipeline: scan -> extract kept entries -> parse -> merge.
    zipfile.BadZipFile propagates; everything else is reported in the result.
    """
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        scan = scan_zip_for_garmin_files(archive, target_days=target_days, today=today)
        if not scan.files:
            return ZipImportResult(
                success=False,
                errors=[f"No relevant Garmin data files found for the last {target_days} days"],
                scan_result=scan,
            )
        contents = extract_files_from_zip(archive, [f.path for f in scan.files])

    errors: list[str] = []
    export_files: list[GarminExportFile] = []
    for info in scan.files:
        text = contents.get(info.path)
        if text is None:
            continue
        parsed = parse_garmin_export_file(info.filename, text)
        if parsed.content is None:
            errors.append(f"Invalid JSON in {info.filename}")
            continue
        export_files.append(parsed)

    result = process_garmin_export(export_files)
    return ZipImportResult(
        success=result.success,
        daily_data=result.daily_data,
        errors=errors + result.errors,
        summary=result.summary,
        scan_result=scan,
    )

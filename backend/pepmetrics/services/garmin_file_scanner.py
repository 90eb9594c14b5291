"""
Triage of a Garmin full-export ZIP: classify entries by filename, keep the
relevant types whose encoded date range touches the target window.
Only the central directory is read; entry contents are extracted later for kept files.
"""

from __future__ import annotations

import logging
import re
import zipfile
from datetime import date, datetime, timedelta

from pepmetrics.schemas.garmin import DateRange, FileInfo, GarminFileType, ZipScanResult

logger = logging.getLogger(__name__)

# 2025-08-27_2025-12-05_12192358_sleepData.json
_RANGE_ID_TYPE = re.compile(r"^(\d{4}-\d{2}-\d{2})_(\d{4}-\d{2}-\d{2})_\d+_\w+\.json$", re.IGNORECASE)
# UDSFile_2025-08-26_2025-12-04.json
_TYPE_RANGE = re.compile(r"^[A-Za-z]+_(\d{4}-\d{2}-\d{2})_(\d{4}-\d{2}-\d{2})\.json$", re.IGNORECASE)

# Checked in order; first match wins.
_FILENAME_HINTS: list[tuple[tuple[str, ...], GarminFileType]] = [
    (("sleepdata", "sleep_data"), GarminFileType.SLEEP),
    (("udsfile", "aggregator"), GarminFileType.DAILY_SUMMARY),
    (("healthstatusdata", "health_status"), GarminFileType.HEALTH_STATUS),
    (("hydration",), GarminFileType.HYDRATION),
    (("userbiometrics", "fitnessagedata"), GarminFileType.USER_BIOMETRICS),
    (("activities",), GarminFileType.ACTIVITIES),
    (("stress",), GarminFileType.STRESS),
    (("bodybattery", "body_battery"), GarminFileType.BODY_BATTERY),
    (("hrv",), GarminFileType.HRV),
]

# Standalone hrv/stress/body_battery files are not imported; those values arrive via daily_summary/health_status.
RELEVANT_FILE_TYPES: frozenset[GarminFileType] = frozenset(
    {
        GarminFileType.SLEEP,
        GarminFileType.DAILY_SUMMARY,
        GarminFileType.HEALTH_STATUS,
        GarminFileType.HYDRATION,
        GarminFileType.USER_BIOMETRICS,
        GarminFileType.ACTIVITIES,
    }
)

DATA_TYPE_DESCRIPTIONS: list[tuple[GarminFileType, str]] = [
    (GarminFileType.SLEEP, "Sleep data (duration, stages, quality)"),
    (GarminFileType.DAILY_SUMMARY, "Daily activity (steps, calories, stress, body battery)"),
    (GarminFileType.HEALTH_STATUS, "Health metrics (HRV, skin temperature, respiration)"),
    (GarminFileType.HYDRATION, "Hydration tracking"),
    (GarminFileType.USER_BIOMETRICS, "Biometrics (weight, fitness age)"),
    (GarminFileType.ACTIVITIES, "Activity records"),
]


def categorize_garmin_file(filename: str) -> GarminFileType:
    """Classify by case-insensitive filename fragment. Never raises; unmatched names are UNKNOWN."""
    lower = filename.lower()
    for fragments, file_type in _FILENAME_HINTS:
        if any(f in lower for f in fragments):
            return file_type
    return GarminFileType.UNKNOWN


def extract_date_range_from_filename(filename: str) -> DateRange | None:
    """Return the date range encoded in a Garmin export filename, or None."""
    for pattern in (_RANGE_ID_TYPE, _TYPE_RANGE):
        m = pattern.match(filename)
        if not m:
            continue
        try:
            return DateRange(start=date.fromisoformat(m.group(1)), end=date.fromisoformat(m.group(2)))
        except ValueError:
            # Matches the shape but not a real calendar date (e.g. 2025-13-40)
            return None
    return None


def is_file_in_date_range(file_range: DateRange | None, target_start: date, target_end: date) -> bool:
    """Overlap test. Files without an encoded range are always kept."""
    if file_range is None:
        return True
    return file_range.start <= target_end and file_range.end >= target_start


def _basename(path: str) -> str:
    return path.rsplit("/", 1)[-1] or path


def scan_zip_for_garmin_files(
    archive: zipfile.ZipFile,
    target_days: int = 90,
    today: date | None = None,
) -> ZipScanResult:
    """
    Walk the archive entry list and select relevant Garmin JSON files.
    total_files counts JSON entries only; skipped_files covers both irrelevant types and out-of-window files.
    """
    target_end = today or datetime.now().date()
    target_start = target_end - timedelta(days=target_days)

    files: list[FileInfo] = []
    total = 0
    skipped = 0
    for info in archive.infolist():
        if info.is_dir():
            continue
        if not info.filename.lower().endswith(".json"):
            continue
        total += 1
        filename = _basename(info.filename)
        file_type = categorize_garmin_file(filename)
        date_range = extract_date_range_from_filename(filename)
        if file_type not in RELEVANT_FILE_TYPES:
            skipped += 1
            continue
        if not is_file_in_date_range(date_range, target_start, target_end):
            logger.debug("Skipping %s: range %s outside target window", filename, date_range)
            skipped += 1
            continue
        files.append(
            FileInfo(
                path=info.filename,
                filename=filename,
                type=file_type,
                date_range=date_range,
                size=info.file_size,
            )
        )

    data_types: list[GarminFileType] = []
    for f in files:
        if f.type not in data_types:
            data_types.append(f.type)

    ranges = [f.date_range for f in files if f.date_range is not None]
    overall = (
        DateRange(start=min(r.start for r in ranges), end=max(r.end for r in ranges)) if ranges else None
    )
    logger.info(
        "Garmin ZIP scan: %d JSON files, %d relevant, %d skipped, types=%s",
        total,
        len(files),
        skipped,
        [t.value for t in data_types],
    )
    return ZipScanResult(
        files=files,
        total_files=total,
        relevant_files=len(files),
        skipped_files=skipped,
        data_types=data_types,
        overall_date_range=overall,
    )


def extract_files_from_zip(archive: zipfile.ZipFile, paths: list[str]) -> dict[str, str]:
    """Read the given entries as UTF-8 text. Paths missing from the archive are ignored."""
    names = set(archive.namelist())
    contents: dict[str, str] = {}
    for path in paths:
        if path not in names:
            logger.warning("ZIP entry %s not found", path)
            continue
        contents[path] = archive.read(path).decode("utf-8", errors="replace")
    return contents


def get_data_type_summary(data_types: list[GarminFileType]) -> list[str]:
    """Human-readable lines describing the data found, in a fixed display order."""
    present = set(data_types)
    return [desc for file_type, desc in DATA_TYPE_DESCRIPTIONS if file_type in present]

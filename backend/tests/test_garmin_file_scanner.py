"""Tests for Garmin export ZIP triage: filename classification and date-window filtering."""

import io
import zipfile
from datetime import date

import pytest

from pepmetrics.schemas.garmin import DateRange, GarminFileType
from pepmetrics.services.garmin_file_scanner import (
    categorize_garmin_file,
    extract_date_range_from_filename,
    extract_files_from_zip,
    get_data_type_summary,
    is_file_in_date_range,
    scan_zip_for_garmin_files,
)


def _zip(entries: dict[str, str]) -> zipfile.ZipFile:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, content in entries.items():
            zf.writestr(name, content)
    buf.seek(0)
    return zipfile.ZipFile(buf)


@pytest.mark.parametrize(
    "filename,expected",
    [
        ("2025-08-27_2025-12-05_12192358_sleepData.json", GarminFileType.SLEEP),
        ("UDSFile_2025-08-26_2025-12-04.json", GarminFileType.DAILY_SUMMARY),
        ("aggregatorFile.json", GarminFileType.DAILY_SUMMARY),
        ("healthStatusData_2025-08-26_2025-12-04.json", GarminFileType.HEALTH_STATUS),
        ("HydrationLogFile_2025-08-26_2025-12-04.json", GarminFileType.HYDRATION),
        ("userBioMetrics.json", GarminFileType.USER_BIOMETRICS),
        ("fitnessAgeData.json", GarminFileType.USER_BIOMETRICS),
        ("john_0_summarizedActivities.json", GarminFileType.ACTIVITIES),
        ("stressDetails.json", GarminFileType.STRESS),
        ("bodyBattery.json", GarminFileType.BODY_BATTERY),
        ("hrvStatus.json", GarminFileType.HRV),
        ("notes.json", GarminFileType.UNKNOWN),
        ("profile.txt", GarminFileType.UNKNOWN),
    ],
)
def test_categorize_garmin_file(filename, expected):
    assert categorize_garmin_file(filename) == expected


def test_extract_date_range_from_filename():
    assert extract_date_range_from_filename("2025-08-27_2025-12-05_12192358_sleepData.json") == DateRange(
        start=date(2025, 8, 27), end=date(2025, 12, 5)
    )
    assert extract_date_range_from_filename("UDSFile_2025-08-26_2025-12-04.json") == DateRange(
        start=date(2025, 8, 26), end=date(2025, 12, 4)
    )
    assert extract_date_range_from_filename("sleepData.json") is None
    assert extract_date_range_from_filename("2025-13-40_2025-12-05_1_sleepData.json") is None


def test_is_file_in_date_range():
    start, end = date(2024, 6, 1), date(2024, 6, 30)
    assert is_file_in_date_range(None, start, end)
    assert is_file_in_date_range(DateRange(start=date(2024, 6, 30), end=date(2024, 7, 5)), start, end)
    assert not is_file_in_date_range(DateRange(start=date(2024, 7, 1), end=date(2024, 7, 5)), start, end)
    assert not is_file_in_date_range(DateRange(start=date(2024, 5, 1), end=date(2024, 5, 31)), start, end)


def test_scan_keeps_only_overlapping_relevant_files():
    archive = _zip(
        {
            "DI_CONNECT/": "",
            "DI_CONNECT/2024-01-01_2024-03-31_1_sleepData.json": "[]",  # before window
            "DI_CONNECT/2024-07-01_2024-09-30_2_sleepData.json": "[]",  # after window
            "DI_CONNECT/2024-05-01_2024-06-05_3_sleepData.json": "[]",  # overlaps
            "DI_CONNECT/UDSFile_2024-01-01_2024-12-31.json": "[]",  # contains window
            "DI_CONNECT/healthStatusData.json": "[]",  # no range -> always kept
            "DI_CONNECT/stressDetails.json": "[]",  # irrelevant type
            "README.txt": "not json",
        }
    )
    result = scan_zip_for_garmin_files(archive, target_days=30, today=date(2024, 6, 30))

    assert [f.filename for f in result.files] == [
        "2024-05-01_2024-06-05_3_sleepData.json",
        "UDSFile_2024-01-01_2024-12-31.json",
        "healthStatusData.json",
    ]
    assert result.total_files == 6
    assert result.relevant_files == 3
    assert result.skipped_files == 3
    assert result.data_types == [
        GarminFileType.SLEEP,
        GarminFileType.DAILY_SUMMARY,
        GarminFileType.HEALTH_STATUS,
    ]
    assert result.overall_date_range == DateRange(start=date(2024, 1, 1), end=date(2024, 12, 31))
    assert result.files[0].path == "DI_CONNECT/2024-05-01_2024-06-05_3_sleepData.json"


def test_scan_empty_archive():
    result = scan_zip_for_garmin_files(_zip({"readme.txt": "x"}), today=date(2024, 6, 30))
    assert result.files == []
    assert result.total_files == 0
    assert result.overall_date_range is None


def test_extract_files_from_zip_ignores_missing_paths():
    archive = _zip({"a/sleepData.json": '[{"calendarDate": "2024-01-01"}]'})
    contents = extract_files_from_zip(archive, ["a/sleepData.json", "a/missing.json"])
    assert list(contents) == ["a/sleepData.json"]
    assert contents["a/sleepData.json"].startswith("[")


def test_get_data_type_summary_uses_fixed_order():
    summary = get_data_type_summary([GarminFileType.ACTIVITIES, GarminFileType.SLEEP, GarminFileType.STRESS])
    assert summary == ["Sleep data (duration, stages, quality)", "Activity records"]

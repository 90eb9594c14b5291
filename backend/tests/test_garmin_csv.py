"""Tests for the Garmin activity CSV parser and its unit helpers."""

from datetime import datetime, timezone

import pytest

from pepmetrics.services.garmin_csv import (
    is_garmin_activity_csv,
    parse_distance,
    parse_duration,
    parse_elevation,
    parse_garmin_activity_csv,
    parse_garmin_datetime,
    parse_number,
    parse_speed,
)

HEADER = "Activity Type,Date,Favorite,Title,Distance,Calories,Time,Avg HR,Max HR,Avg Speed,Total Ascent"


@pytest.mark.parametrize(
    "value,assume_miles,expected",
    [
        ("3.1 mi", True, 4989),
        ("5", True, 8047),
        ("5", False, 5000),
        ("5 km", True, 5000),
        ("5km", False, 5000),
        ("400 m", True, 400),
        ("1,200 m", True, 1200),
        ("", True, None),
        ("--x", True, None),
    ],
)
def test_parse_distance(value, assume_miles, expected):
    assert parse_distance(value, assume_miles=assume_miles) == expected


@pytest.mark.parametrize(
    "value,expected",
    [("01:30:00", 5400), ("45:30", 2730), ("5400", 5400), ("00:45:30.5", 2730), ("abc", None), (None, None)],
)
def test_parse_duration(value, expected):
    assert parse_duration(value) == expected


def test_parse_number_strips_thousands_and_units():
    assert parse_number("1,234 kcal") == 1234
    assert parse_number("152") == 152
    assert parse_number("n/a") is None


def test_parse_elevation_units():
    assert parse_elevation("100 ft") == 30
    assert parse_elevation("100 m") == 100
    assert parse_elevation("100") == 30
    assert parse_elevation("100", assume_feet=False) == 100


def test_parse_speed_prefers_speed_over_pace():
    assert parse_speed("10 km/h", "5:00 /km") == pytest.approx(10 / 3.6)
    assert parse_speed("3 m/s", None) == 3
    assert parse_speed(None, "5:00 /km") == pytest.approx(1000 / 300)
    assert parse_speed(None, "8:00 /mi") == pytest.approx(1609.344 / 480)
    assert parse_speed("6", None, assume_mph=True) == pytest.approx(6 * 0.44704)
    assert parse_speed(None, "0:00") is None


@pytest.mark.parametrize(
    "value,expected",
    [
        ("2024-01-15 07:30:00", datetime(2024, 1, 15, 7, 30, tzinfo=timezone.utc)),
        ("2024-01-15", datetime(2024, 1, 15, tzinfo=timezone.utc)),
        ("1/15/2024", datetime(2024, 1, 15, tzinfo=timezone.utc)),
        ("1/15/2024 7:30 PM", datetime(2024, 1, 15, 19, 30, tzinfo=timezone.utc)),
        ("1/15/2024 12:05 AM", datetime(2024, 1, 15, 0, 5, tzinfo=timezone.utc)),
        ("Dec 3, 2024", datetime(2024, 12, 3, tzinfo=timezone.utc)),
        ("3 Dec 2024", datetime(2024, 12, 3, tzinfo=timezone.utc)),
        ("2024-01-15T07:30:00", datetime(2024, 1, 15, 7, 30, tzinfo=timezone.utc)),
    ],
)
def test_parse_garmin_datetime(value, expected):
    assert parse_garmin_datetime(value) == expected


@pytest.mark.parametrize("value", ["not a date", "13/45/2024", "2024-02-30"])
def test_parse_garmin_datetime_invalid(value):
    assert parse_garmin_datetime(value) is None


def test_parse_csv_end_to_end():
    content = "\n".join(
        [
            HEADER,
            'Running,2024-01-15 07:30:00,false,"Morning Run, easy",3.1 mi,320,00:28:15,145,171,6.6,150 ft',
            "Cycling,2024-01-16 17:00:00,false,Ride,20.5,650,01:05:00,132,160,18.9 mph,820",
        ]
    )
    result = parse_garmin_activity_csv(content)
    assert result.success is True
    assert result.errors == []
    assert result.summary.total_rows == 2
    assert result.summary.valid_rows == 2
    run, ride = result.activities
    assert run.activity_type == "Running"
    assert run.activity_name == "Morning Run, easy"
    assert run.distance_meters == 4989
    assert run.duration_seconds == 1695
    assert run.calories == 320
    assert run.avg_heart_rate == 145
    assert run.elevation_gain_meters == 46
    assert run.raw_data["Title"] == "Morning Run, easy"
    assert ride.distance_meters == 32992
    assert ride.avg_speed_mps == pytest.approx(18.9 * 0.44704)
    assert result.summary.date_range.start == run.start_time
    assert result.summary.date_range.end == ride.start_time


def test_parse_csv_metric_assumptions():
    content = f"{HEADER}\nRunning,2024-01-15 07:30:00,false,Run,5,300,00:25:00,150,170,12,100"
    result = parse_garmin_activity_csv(content, assume_miles=False, assume_feet=False)
    activity = result.activities[0]
    assert activity.distance_meters == 5000
    assert activity.elevation_gain_meters == 100
    assert activity.avg_speed_mps == pytest.approx(12 / 3.6)


def test_parse_csv_bad_rows_become_diagnostics():
    content = "\n".join(
        [
            HEADER,
            "Running,2024-01-15 07:30:00,false,Ok,1 mi,100,00:10:00,140,150,6,10",
            "Running,yesterday,false,Bad date,1 mi,100,00:10:00,140,150,6,10",
            ",2024-01-17 07:30:00,false,No type,1 mi,100,00:10:00,140,150,6,10",
        ]
    )
    result = parse_garmin_activity_csv(content)
    assert result.success is True
    assert len(result.activities) == 1
    assert [(e.row, e.message) for e in result.errors] == [
        (3, "Invalid date format: yesterday"),
        (4, "Missing activity type or date"),
    ]
    assert result.summary.invalid_rows == 2


def test_parse_csv_empty_or_header_only():
    result = parse_garmin_activity_csv(HEADER + "\n")
    assert result.success is False
    assert result.errors[0].message == "CSV file is empty or contains only headers"


def test_parse_csv_missing_required_columns():
    result = parse_garmin_activity_csv("Title,Distance\nRun,5 km")
    assert result.success is False
    assert "Missing Activity Type or Date columns" in result.errors[0].message


def test_parse_csv_german_headers():
    content = "Aktivitätstyp,Activitätsart,Datum,Titel,Distanz\nx,Laufen,2024-01-15 07:30:00,Lauf,5 km"
    result = parse_garmin_activity_csv(content)
    assert result.success is True
    assert result.activities[0].activity_type == "Laufen"
    assert result.activities[0].distance_meters == 5000


def test_is_garmin_activity_csv():
    assert is_garmin_activity_csv(HEADER + "\nRunning,...")
    assert not is_garmin_activity_csv("name,value\na,1")

from datetime import date, datetime, timedelta, timezone

from pepmetrics.schemas.garmin import ParsedActivity
from pepmetrics.services.activity_summary import summarize_activities


def _activity(start: datetime, **kwargs) -> ParsedActivity:
    return ParsedActivity(activity_type="Running", start_time=start, **kwargs)


def test_groups_by_utc_day_and_sums():
    activities = [
        _activity(datetime(2024, 5, 1, 7, 0, tzinfo=timezone.utc), distance_meters=5000.0, calories=300.0,
                  duration_seconds=1800),
        _activity(datetime(2024, 5, 1, 18, 0, tzinfo=timezone.utc), distance_meters=2500.5, calories=150.0,
                  duration_seconds=930),
        # 23:30 at UTC-5 is the next day in UTC
        _activity(datetime(2024, 5, 1, 23, 30, tzinfo=timezone(timedelta(hours=-5))), duration_seconds=600),
    ]
    rows = summarize_activities(activities)
    assert [r.date for r in rows] == [date(2024, 5, 1), date(2024, 5, 2)]

    first = rows[0]
    assert first.distance_meters == 7500.5
    assert first.calories_total == 450
    assert first.calories_active == 450
    assert first.active_minutes == 30 + 16
    assert first.steps is None
    assert first.hrv_avg is None

    second = rows[1]
    assert second.active_minutes == 10
    assert second.distance_meters == 0


def test_empty_input():
    assert summarize_activities([]) == []

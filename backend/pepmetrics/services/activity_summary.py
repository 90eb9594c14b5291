"""Collapse parsed CSV activities into per-day partial summaries for garmin_data."""

from datetime import date, timezone

from pepmetrics.schemas.garmin import DailyHealthSummary, ParsedActivity


def summarize_activities(activities: list[ParsedActivity]) -> list[DailyHealthSummary]:
    """
    Group by UTC calendar date of start_time; sum distance, calories (into both total and active,
    activity data cannot separate basal from active) and duration in minutes.
    Steps, sleep, HRV and the rest stay None for a daily_summary/health_status source to fill.
    """
    by_date: dict[date, dict] = {}
    for activity in activities:
        day = activity.start_time.astimezone(timezone.utc).date()
        entry = by_date.setdefault(
            day,
            {"date": day, "distance_meters": 0.0, "calories_total": 0.0, "calories_active": 0.0, "active_minutes": 0},
        )
        if activity.distance_meters is not None:
            entry["distance_meters"] += activity.distance_meters
        if activity.calories is not None:
            entry["calories_total"] += activity.calories
            entry["calories_active"] += activity.calories
        if activity.duration_seconds is not None:
            entry["active_minutes"] += int(activity.duration_seconds / 60 + 0.5)
    return [DailyHealthSummary(**by_date[d]) for d in sorted(by_date)]

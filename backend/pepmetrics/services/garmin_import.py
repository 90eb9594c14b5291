"""
Persist parsed Garmin data: fetch-merge-upsert of daily rows keyed on (user, date),
insert-or-update of activities keyed on (user, start_time), and import history rows.
"""

from __future__ import annotations

import logging
import zipfile
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pepmetrics.config import settings
from pepmetrics.models.garmin_activity import GarminActivity
from pepmetrics.models.garmin_data import GarminDailyData
from pepmetrics.models.garmin_import import GarminImport
from pepmetrics.schemas.garmin import (
    DailyHealthSummary,
    DateRange,
    ImportResult,
    ParsedActivity,
    ScanCounts,
    ZipScanResult,
)
from pepmetrics.services.activity_summary import summarize_activities
from pepmetrics.services.garmin_csv import is_garmin_activity_csv, parse_garmin_activity_csv
from pepmetrics.services.garmin_file_scanner import get_data_type_summary
from pepmetrics.services.garmin_json import (
    parse_garmin_export_file,
    parse_garmin_export_zip,
    process_garmin_export,
)

logger = logging.getLogger(__name__)

FILE_TYPE_ZIP = "zip_export"
FILE_TYPE_CSV = "activity_csv"
FILE_TYPE_JSON = "full_export"

# DailyHealthSummary field -> garmin_data column where the names differ
_COLUMN_FOR_FIELD = {"resting_hr": "resting_heart_rate"}
_SUMMARY_FIELDS = tuple(f for f in DailyHealthSummary.model_fields if f != "date")


class GarminImportError(Exception):
    """Uploaded content had nothing usable. Maps to HTTP 400."""

    def __init__(self, message: str, details: list[str] | None = None, scan_result: ScanCounts | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or []
        self.scan_result = scan_result


class ImportPersistenceError(Exception):
    """Storage failed after parsing succeeded; parsed_days keeps the completed work."""

    def __init__(self, message: str, parsed_days: list[DailyHealthSummary]):
        super().__init__(message)
        self.parsed_days = parsed_days


def _limit(errors: list[str]) -> list[str]:
    return errors[: settings.import_error_display_limit]


def _scan_counts(scan: ZipScanResult) -> ScanCounts:
    return ScanCounts(
        total_files=scan.total_files,
        relevant_files=scan.relevant_files,
        skipped_files=scan.skipped_files,
        data_types=scan.data_types,
    )


def _utc_key(dt: datetime) -> datetime:
    """Naive UTC datetime used to match start_time across drivers that drop tzinfo."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


async def upsert_daily_summaries(
    session: AsyncSession, user_id: int, days: list[DailyHealthSummary]
) -> tuple[int, int]:
    """
    Patch semantics: fields present on a summary overwrite the stored value, absent fields keep it.
    Returns (inserted, updated).
    """
    if not days:
        return 0, 0
    dates = [d.date for d in days]
    r = await session.execute(
        select(GarminDailyData).where(
            GarminDailyData.user_id == user_id,
            GarminDailyData.data_date.in_(dates),
        )
    )
    existing = {row.data_date: row for row in r.scalars().all()}
    now = datetime.now(timezone.utc)
    inserted = updated = 0
    for day in days:
        row = existing.get(day.date)
        if row is None:
            row = GarminDailyData(user_id=user_id, data_date=day.date)
            session.add(row)
            existing[day.date] = row
            inserted += 1
        else:
            updated += 1
        for field in _SUMMARY_FIELDS:
            value = getattr(day, field)
            if value is not None:
                setattr(row, _COLUMN_FOR_FIELD.get(field, field), value)
        row.synced_at = now
    await session.flush()
    return inserted, updated


async def upsert_activities(
    session: AsyncSession, user_id: int, activities: list[ParsedActivity]
) -> tuple[int, int]:
    """Update when (user, start_time) already exists, else insert. Returns (inserted, updated)."""
    if not activities:
        return 0, 0
    r = await session.execute(
        select(GarminActivity).where(
            GarminActivity.user_id == user_id,
            GarminActivity.start_time.in_([a.start_time for a in activities]),
        )
    )
    existing = {_utc_key(row.start_time): row for row in r.scalars().all()}
    now = datetime.now(timezone.utc)
    inserted = updated = 0
    for activity in activities:
        values = activity.model_dump(exclude={"start_time"})
        row = existing.get(_utc_key(activity.start_time))
        if row is None:
            row = GarminActivity(user_id=user_id, start_time=activity.start_time, **values)
            session.add(row)
            existing[_utc_key(activity.start_time)] = row
            inserted += 1
        else:
            for key, value in values.items():
                setattr(row, key, value)
            updated += 1
        row.synced_at = now
    await session.flush()
    return inserted, updated


def _import_record(
    user_id: int,
    file_name: str,
    file_type: str,
    imported: int = 0,
    skipped: int = 0,
    updated: int = 0,
    date_range: DateRange | None = None,
    status: str = "completed",
    error_message: str | None = None,
) -> GarminImport:
    return GarminImport(
        user_id=user_id,
        file_name=file_name,
        file_type=file_type,
        records_imported=imported,
        records_skipped=skipped,
        records_updated=updated,
        date_range_start=date_range.start if date_range else None,
        date_range_end=date_range.end if date_range else None,
        status=status,
        error_message=error_message,
    )


async def _record_failure(
    session: AsyncSession,
    user_id: int,
    file_name: str,
    file_type: str,
    exc: SQLAlchemyError,
    parsed_days: list[DailyHealthSummary],
) -> ImportPersistenceError:
    """Roll back partial writes, store a failed history row, and build the error to raise."""
    logger.exception("Garmin import persistence failed for user %s (%s): %s", user_id, file_name, exc)
    await session.rollback()
    try:
        session.add(
            _import_record(user_id, file_name, file_type, status="failed", error_message=str(exc)[:1000])
        )
        await session.commit()
    except SQLAlchemyError as e:
        logger.warning("Could not record failed Garmin import for user %s: %s", user_id, e)
        await session.rollback()
    return ImportPersistenceError("Failed to save imported data", parsed_days)


async def import_zip_export(
    session: AsyncSession,
    user_id: int,
    file_name: str,
    data: bytes,
    target_days: int | None = None,
) -> ImportResult:
    target_days = target_days or settings.garmin_default_target_days
    try:
        result = parse_garmin_export_zip(data, target_days=target_days)
    except zipfile.BadZipFile as e:
        raise GarminImportError("File is not a valid ZIP archive", details=[str(e)]) from e
    scan = _scan_counts(result.scan_result)
    if not result.success or not result.daily_data:
        raise GarminImportError("Unable to parse Garmin ZIP export", details=_limit(result.errors), scan_result=scan)

    try:
        inserted, updated = await upsert_daily_summaries(session, user_id, result.daily_data)
        session.add(
            _import_record(
                user_id,
                file_name,
                FILE_TYPE_ZIP,
                imported=inserted,
                updated=updated,
                skipped=scan.skipped_files,
                date_range=result.summary.date_range,
                error_message="; ".join(_limit(result.errors)) or None,
            )
        )
        await session.flush()
    except SQLAlchemyError as e:
        raise await _record_failure(session, user_id, file_name, FILE_TYPE_ZIP, e, result.daily_data) from e

    logger.info("Garmin ZIP import user=%s days=%d (new=%d)", user_id, len(result.daily_data), inserted)
    return ImportResult(
        file_type=FILE_TYPE_ZIP,
        records_imported=inserted,
        records_updated=updated,
        records_skipped=scan.skipped_files,
        date_range=result.summary.date_range,
        data_types=[t.value for t in result.summary.data_types],
        data_type_summary=get_data_type_summary(result.scan_result.data_types),
        errors=_limit(result.errors),
        scan_result=scan,
    )


async def import_activity_csv(session: AsyncSession, user_id: int, file_name: str, content: str) -> ImportResult:
    if not is_garmin_activity_csv(content):
        raise GarminImportError(
            "This file does not appear to be a Garmin activity export. "
            "Please export activities from connect.garmin.com."
        )
    parsed = parse_garmin_activity_csv(
        content,
        assume_miles=settings.garmin_assume_miles,
        assume_feet=settings.garmin_assume_feet,
    )
    row_errors = [f"Row {e.row}: {e.message}" if e.row else e.message for e in parsed.errors]
    if not parsed.success:
        raise GarminImportError("Failed to parse CSV file", details=_limit(row_errors))

    date_range = None
    if parsed.summary.date_range:
        date_range = DateRange(
            start=parsed.summary.date_range.start.date(),
            end=parsed.summary.date_range.end.date(),
        )
    daily = summarize_activities(parsed.activities)
    try:
        inserted, updated = await upsert_activities(session, user_id, parsed.activities)
        await upsert_daily_summaries(session, user_id, daily)
        session.add(
            _import_record(
                user_id,
                file_name,
                FILE_TYPE_CSV,
                imported=inserted,
                updated=updated,
                skipped=parsed.summary.invalid_rows,
                date_range=date_range,
                error_message="; ".join(_limit(row_errors)) or None,
            )
        )
        await session.flush()
    except SQLAlchemyError as e:
        raise await _record_failure(session, user_id, file_name, FILE_TYPE_CSV, e, daily) from e

    logger.info("Garmin CSV import user=%s activities new=%d updated=%d", user_id, inserted, updated)
    return ImportResult(
        file_type=FILE_TYPE_CSV,
        records_imported=inserted,
        records_updated=updated,
        records_skipped=parsed.summary.invalid_rows,
        date_range=date_range,
        data_types=["activities"],
        data_type_summary=["Activity records"],
        errors=_limit(row_errors),
    )


async def import_json_export(session: AsyncSession, user_id: int, file_name: str, content: str) -> ImportResult:
    export_file = parse_garmin_export_file(file_name, content)
    processed = process_garmin_export([export_file])
    if export_file.content is None:
        raise GarminImportError("Unable to parse Garmin JSON export", details=["File is not valid JSON"])
    if not processed.success:
        raise GarminImportError("Unable to parse Garmin JSON export", details=_limit(processed.errors))

    try:
        inserted, updated = await upsert_daily_summaries(session, user_id, processed.daily_data)
        session.add(
            _import_record(
                user_id,
                file_name,
                FILE_TYPE_JSON,
                imported=inserted,
                updated=updated,
                date_range=processed.summary.date_range,
                error_message="; ".join(_limit(processed.errors)) or None,
            )
        )
        await session.flush()
    except SQLAlchemyError as e:
        raise await _record_failure(session, user_id, file_name, FILE_TYPE_JSON, e, processed.daily_data) from e

    return ImportResult(
        file_type=FILE_TYPE_JSON,
        records_imported=inserted,
        records_updated=updated,
        date_range=processed.summary.date_range,
        data_types=[t.value for t in processed.summary.data_types],
        data_type_summary=get_data_type_summary(processed.summary.data_types),
        errors=_limit(processed.errors),
    )


def daily_row_to_summary(row: GarminDailyData) -> DailyHealthSummary:
    return DailyHealthSummary(
        date=row.data_date,
        sleep_score=row.sleep_score,
        sleep_duration_hours=row.sleep_duration_hours,
        deep_sleep_hours=row.deep_sleep_hours,
        light_sleep_hours=row.light_sleep_hours,
        rem_sleep_hours=row.rem_sleep_hours,
        awake_hours=row.awake_hours,
        hrv_avg=row.hrv_avg,
        resting_hr=row.resting_heart_rate,
        stress_avg=row.stress_avg,
        body_battery_high=row.body_battery_high,
        body_battery_low=row.body_battery_low,
        steps=row.steps,
        active_minutes=row.active_minutes,
        calories_total=row.calories_total,
        calories_active=row.calories_active,
        distance_meters=row.distance_meters,
    )


async def fetch_daily_summaries(
    session: AsyncSession, user_id: int, start: date, end: date
) -> list[DailyHealthSummary]:
    r = await session.execute(
        select(GarminDailyData)
        .where(
            GarminDailyData.user_id == user_id,
            GarminDailyData.data_date >= start,
            GarminDailyData.data_date <= end,
        )
        .order_by(GarminDailyData.data_date.asc())
    )
    return [daily_row_to_summary(row) for row in r.scalars().all()]

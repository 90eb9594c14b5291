"""Pydantic schemas for Garmin export ingestion (scanner, parsers, import API)."""

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class GarminFileType(str, Enum):
    SLEEP = "sleep"
    DAILY_SUMMARY = "daily_summary"
    HRV = "hrv"
    STRESS = "stress"
    BODY_BATTERY = "body_battery"
    HEALTH_STATUS = "health_status"
    HYDRATION = "hydration"
    ACTIVITIES = "activities"
    USER_BIOMETRICS = "user_biometrics"
    UNKNOWN = "unknown"


class DateRange(BaseModel):
    start: date
    end: date


class FileInfo(BaseModel):
    """One archive entry selected by the scanner. Content is not read at scan time."""

    path: str
    filename: str
    type: GarminFileType
    date_range: DateRange | None = None
    size: int = 0


class ZipScanResult(BaseModel):
    files: list[FileInfo] = Field(default_factory=list)
    total_files: int = 0
    relevant_files: int = 0
    skipped_files: int = 0
    data_types: list[GarminFileType] = Field(default_factory=list)
    overall_date_range: DateRange | None = None


class ParseError(BaseModel):
    row: int  # one-based, header is row 1
    message: str


class ParsedActivity(BaseModel):
    activity_type: str
    activity_name: str | None = None
    start_time: datetime
    duration_seconds: int | None = None
    distance_meters: float | None = None
    calories: float | None = None
    avg_heart_rate: float | None = None
    max_heart_rate: float | None = None
    avg_speed_mps: float | None = None
    elevation_gain_meters: float | None = None
    raw_data: dict[str, str] = Field(default_factory=dict)

    model_config = {"frozen": True}


class ActivityDateRange(BaseModel):
    start: datetime
    end: datetime


class CsvParseSummary(BaseModel):
    total_rows: int = 0
    valid_rows: int = 0
    invalid_rows: int = 0
    date_range: ActivityDateRange | None = None


class CsvParseResult(BaseModel):
    success: bool
    activities: list[ParsedActivity] = Field(default_factory=list)
    errors: list[ParseError] = Field(default_factory=list)
    summary: CsvParseSummary = Field(default_factory=CsvParseSummary)


class DailyHealthSummary(BaseModel):
    """One merged day of biometrics. Absent fields stay None, never zero."""

    date: date
    sleep_score: float | None = None
    sleep_duration_hours: float | None = None
    deep_sleep_hours: float | None = None
    light_sleep_hours: float | None = None
    rem_sleep_hours: float | None = None
    awake_hours: float | None = None
    hrv_avg: float | None = None
    resting_hr: float | None = None
    stress_avg: float | None = None
    body_battery_high: float | None = None
    body_battery_low: float | None = None
    steps: int | None = None
    active_minutes: int | None = None
    calories_total: float | None = None
    calories_active: float | None = None
    distance_meters: float | None = None


class GarminExportFile(BaseModel):
    """One JSON file after parsing and classification. content is None when the JSON was invalid."""

    file_name: str
    type: GarminFileType
    content: Any = None


class ExportSummary(BaseModel):
    files_processed: int = 0
    days_of_data: int = 0
    date_range: DateRange | None = None
    data_types: list[GarminFileType] = Field(default_factory=list)


class ParsedGarminExport(BaseModel):
    success: bool
    daily_data: list[DailyHealthSummary] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    summary: ExportSummary = Field(default_factory=ExportSummary)


class ZipImportResult(ParsedGarminExport):
    scan_result: ZipScanResult = Field(default_factory=ZipScanResult)


class ScanCounts(BaseModel):
    total_files: int
    relevant_files: int
    skipped_files: int
    data_types: list[GarminFileType] = Field(default_factory=list)


class ImportResult(BaseModel):
    """Response of POST /garmin/import."""

    success: bool = True
    file_type: str
    records_imported: int = 0
    records_updated: int = 0
    records_skipped: int = 0
    date_range: DateRange | None = None
    data_types: list[str] = Field(default_factory=list)
    data_type_summary: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    scan_result: ScanCounts | None = None


class DailySummaryOut(DailyHealthSummary):
    synced_at: datetime | None = None


class GarminImportOut(BaseModel):
    id: int
    import_date: datetime | None = None
    file_name: str | None = None
    file_type: str
    records_imported: int
    records_updated: int
    records_skipped: int
    date_range_start: date | None = None
    date_range_end: date | None = None
    status: str
    error_message: str | None = None

    model_config = {"from_attributes": True}


class ActivityStats(BaseModel):
    total_activities: int = 0
    date_range: DateRange | None = None


class ImportHistoryResponse(BaseModel):
    imports: list[GarminImportOut] = Field(default_factory=list)
    activity_stats: ActivityStats = Field(default_factory=ActivityStats)

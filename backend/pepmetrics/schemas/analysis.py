"""Schemas for baseline/correlation analysis and data sufficiency validation."""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field

from pepmetrics.schemas.garmin import DailyHealthSummary

DoseStatusLiteral = Literal["taken", "skipped", "pending", "overdue"]


class DoseLogEntry(BaseModel):
    """Dose history row as consumed by the analysis pipeline."""

    date: date
    peptide_name: str
    dose: str
    status: DoseStatusLiteral
    scheduled_for: datetime
    taken_at: datetime | None = None
    notes: str | None = None


class BaselineMetrics(BaseModel):
    """Trailing-window averages. 0 means "no baseline", not a measured zero."""

    hrv_avg: float = 0
    hrv_std: float = 0
    resting_hr_avg: float = 0
    sleep_score_avg: float = 0
    deep_sleep_avg: float = 0
    stress_avg: float = 0
    body_battery_avg: float = 0
    steps_avg: float = 0


class CorrelationResult(BaseModel):
    metric1: str  # peptide name
    metric2: str  # biometric display name
    correlation: float
    lag_days: int
    significance: Literal["weak", "moderate", "strong"]
    direction: Literal["positive", "negative"]


class OutlierResult(BaseModel):
    outliers: list[float] = Field(default_factory=list)
    lower_bound: float = 0
    upper_bound: float = 0


class TrendResult(BaseModel):
    slope: float = 0
    direction: Literal["improving", "declining", "stable"] = "stable"
    percent_change: float = 0


class MetricComparison(BaseModel):
    current: float
    baseline: float
    percent_change: int
    improved: bool


class PeptideCompliance(BaseModel):
    taken: int = 0
    total: int = 0
    rate: int = 0


class ComplianceRate(BaseModel):
    overall: int = 0
    by_peptide: dict[str, PeptideCompliance] = Field(default_factory=dict)


class ProtocolSummary(BaseModel):
    id: int
    name: str
    dose: str
    frequency: str
    start_date: date
    status: str


class ProtocolChange(BaseModel):
    date: date
    type: Literal["started", "paused"]
    protocol_name: str


class UserAnalysisData(BaseModel):
    active_protocols: list[ProtocolSummary] = Field(default_factory=list)
    protocol_changes: list[ProtocolChange] = Field(default_factory=list)
    dose_logs: list[DoseLogEntry] = Field(default_factory=list)
    garmin_data: list[DailyHealthSummary] = Field(default_factory=list)
    baseline_metrics: BaselineMetrics = Field(default_factory=BaselineMetrics)
    correlations: list[CorrelationResult] = Field(default_factory=list)


class ChatContext(BaseModel):
    active_protocols: list[ProtocolSummary] = Field(default_factory=list)
    recent_doses: list[DoseLogEntry] = Field(default_factory=list)
    garmin_summary: list[DailyHealthSummary] = Field(default_factory=list)
    latest_weekly_summary: str | None = None


DataQuality = Literal["excellent", "good", "fair", "insufficient"]


class ValidationStats(BaseModel):
    days_of_garmin_data: int
    days_of_dose_logs: int
    active_protocols: int
    completeness_score: int  # percent


class DataValidationResult(BaseModel):
    is_valid: bool
    has_minimum_data: bool
    missing_data: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    data_quality: DataQuality
    stats: ValidationStats


class WeeklyAnalysisCheck(BaseModel):
    can_generate: bool
    reason: str | None = None


class ValidationMessages(BaseModel):
    title: str
    description: str
    action_items: list[str] = Field(default_factory=list)

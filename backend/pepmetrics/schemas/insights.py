"""Insight generator output and the insights API bodies."""

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from pepmetrics.schemas.analysis import CorrelationResult, DataValidationResult, ValidationMessages

InsightType = Literal["correlation", "timing", "compliance", "anomaly", "trend"]
InsightSeverity = Literal["info", "notable", "alert"]
InsightConfidence = Literal["possible", "likely", "strong"]


class InsightItem(BaseModel):
    type: InsightType = "trend"
    severity: InsightSeverity = "info"
    title: str = "Insight"
    body: str = ""
    metrics: list[str] = Field(default_factory=list)
    confidence: InsightConfidence = "possible"
    data_points: dict[str, Any] = Field(default_factory=dict)


class WeeklyInsightsResponse(BaseModel):
    insights: list[InsightItem] = Field(default_factory=list)
    weekly_summary: str = ""
    recommendations: list[str] = Field(default_factory=list)


class TokenUsage(BaseModel):
    input_tokens: int | None = None
    output_tokens: int | None = None


class GenerateInsightsResponse(BaseModel):
    """POST /insights/generate. `warning` is set (and insights_id is None) when the result could not be stored."""

    cached: bool = False
    insights_id: int | None = None
    week_start: date
    week_end: date
    insights: WeeklyInsightsResponse | None = None
    correlations: list[CorrelationResult] = Field(default_factory=list)
    data_quality: str | None = None
    usage: TokenUsage | None = None
    warning: str | None = None


class StoredInsightsOut(BaseModel):
    id: int
    week_start: date
    week_end: date
    insights: list[InsightItem] = Field(default_factory=list)
    weekly_summary: str | None = None
    recommendations: list[str] = Field(default_factory=list)
    correlation_data: list[CorrelationResult] = Field(default_factory=list)
    generated_at: datetime
    model_version: str | None = None


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(min_length=1, max_length=8000)


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=4000)
    history: list[ChatMessage] = Field(default_factory=list, max_length=40)


class ChatResponse(BaseModel):
    reply: str
    usage: TokenUsage | None = None


class ValidationReport(BaseModel):
    week_start: date
    week_end: date
    validation: DataValidationResult
    messages: ValidationMessages

"""
Weekly insights and data chat via Gemini.

The analysis prompt carries the aggregated week (protocols, doses, daily metrics, baseline and
pre-computed correlations); the model returns JSON that is parsed leniently into WeeklyInsightsResponse.
"""
from __future__ import annotations

import json
import logging
import re
from datetime import date, datetime, timedelta, timezone
from typing import get_args

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pepmetrics.config import settings
from pepmetrics.db.session import async_session_maker
from pepmetrics.models.ai_insight import AIInsight
from pepmetrics.models.protocol import Protocol, ProtocolStatus
from pepmetrics.schemas.analysis import ChatContext, UserAnalysisData
from pepmetrics.schemas.insights import (
    ChatMessage,
    InsightConfidence,
    InsightItem,
    InsightSeverity,
    InsightType,
    TokenUsage,
    WeeklyInsightsResponse,
)
from pepmetrics.services.data_aggregation import aggregate_user_data
from pepmetrics.services.data_validation import can_generate_weekly_analysis, validate_data_sufficiency
from pepmetrics.services.gemini_common import (
    GeminiUnavailableError,
    build_model,
    run_generate_content,
    usage_tokens,
)

logger = logging.getLogger(__name__)

ANALYSIS_WINDOW_DAYS = 7

WEEKLY_GENERATION_CONFIG = {
    "temperature": 0.3,
    "max_output_tokens": 2048,
    "response_mime_type": "application/json",
}

CHAT_GENERATION_CONFIG = {
    "temperature": 0.5,
    "max_output_tokens": 1024,
}

WEEKLY_SYSTEM_PROMPT = """You are the insights engine of PepMetrics, an app that tracks peptide protocols next to Garmin health metrics. Analyse the user's dosing data together with their biometrics and describe how the protocols may relate to changes in their body.

Rules:
- Never claim causation. Describe correlations and possibilities only.
- These are observations, not medical advice.
- Be specific: numbers, percentages, dates.
- Report positive trends and concerns with equal weight.
- Plain language first, technical metrics for depth.
- When data is insufficient for a conclusion, say so.

Output ONLY valid JSON with this structure:
{
  "insights": [
    {
      "type": "correlation" | "timing" | "compliance" | "anomaly" | "trend",
      "severity": "info" | "notable" | "alert",
      "title": "short title",
      "body": "2-4 sentences",
      "metrics": ["metric names"],
      "confidence": "possible" | "likely" | "strong",
      "data_points": {"name": "value"}
    }
  ],
  "weekly_summary": "2-3 paragraph summary of the week",
  "recommendations": ["actionable suggestions"]
}

Return 3-5 insights of mixed types, notable and alert items first."""

CHAT_SYSTEM_PROMPT = """You are the PepMetrics data assistant. You can see the user's peptide protocols, recent doses and Garmin metrics (below). Answer questions about this data.

- Quote specific numbers and dates when relevant.
- If the data does not support a clear answer, say so.
- Never give medical advice: you are a data assistant, not a doctor.
- Keep answers concise.
- Politely redirect questions unrelated to the user's data."""

FALLBACK_RESPONSE = WeeklyInsightsResponse(
    insights=[
        InsightItem(
            title="Analysis Complete",
            body="Your data was analysed but the detailed insights could not be formatted. Please try again.",
        )
    ],
    weekly_summary="Unable to generate a detailed summary. Please try regenerating.",
    recommendations=["Try regenerating insights", "Make sure you have at least 7 days of data"],
)

_CODE_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


def analysis_window(today: date | None = None) -> tuple[date, date]:
    """Rolling 7-day window ending today (inclusive)."""
    end = today or date.today()
    return end - timedelta(days=ANALYSIS_WINDOW_DAYS - 1), end


def _dump(value) -> str:
    return json.dumps(value, indent=2, default=str)


def build_analysis_prompt(data: UserAnalysisData) -> str:
    d = data.model_dump(mode="json")
    return "\n\n".join(
        [
            "ACTIVE PROTOCOLS:\n" + _dump(d["active_protocols"]),
            "PROTOCOL CHANGES (last 30 days):\n" + _dump(d["protocol_changes"]),
            "DOSE LOGS (past 7 days):\n" + _dump(d["dose_logs"]),
            "GARMIN METRICS (past 7 days):\n" + _dump(d["garmin_data"]),
            "BASELINE AVERAGES (previous 4 weeks):\n" + _dump(d["baseline_metrics"]),
            "PRE-COMPUTED CORRELATIONS:\n" + _dump(d["correlations"]),
            "Analyse this data following the rules above. Return only valid JSON.",
        ]
    )


def build_chat_context(context: ChatContext) -> str:
    d = context.model_dump(mode="json")
    parts = [
        "Active protocols:\n" + _dump(d["active_protocols"]),
        "Recent doses (last 7 days):\n" + _dump(d["recent_doses"]),
        "Garmin summary (last 7 days):\n" + _dump(d["garmin_summary"]),
    ]
    if context.latest_weekly_summary:
        parts.append("Latest weekly insights:\n" + context.latest_weekly_summary)
    return "\n\n".join(parts)


def _choice(value, allowed: tuple[str, ...], default: str) -> str:
    return value if isinstance(value, str) and value in allowed else default


def _coerce_insight(raw: dict) -> InsightItem:
    metrics = raw.get("metrics")
    data_points = raw.get("data_points")
    return InsightItem(
        type=_choice(raw.get("type"), get_args(InsightType), "trend"),
        severity=_choice(raw.get("severity"), get_args(InsightSeverity), "info"),
        title=str(raw.get("title") or "Insight"),
        body=str(raw.get("body") or ""),
        metrics=[str(m) for m in metrics] if isinstance(metrics, list) else [],
        confidence=_choice(raw.get("confidence"), get_args(InsightConfidence), "possible"),
        data_points=data_points if isinstance(data_points, dict) else {},
    )


def parse_insights_response(text: str) -> WeeklyInsightsResponse:
    """Lenient parse: strips code fences, coerces unknown enum values. Malformed output -> FALLBACK_RESPONSE."""
    body = text or ""
    fenced = _CODE_FENCE.search(body)
    if fenced:
        body = fenced.group(1)
    try:
        data = json.loads(body.strip())
    except json.JSONDecodeError:
        logger.warning("Insights response is not valid JSON: %.200s", text)
        return FALLBACK_RESPONSE.model_copy(deep=True)
    if not isinstance(data, dict) or not isinstance(data.get("insights"), list):
        logger.warning("Insights response is missing the insights array")
        return FALLBACK_RESPONSE.model_copy(deep=True)

    recommendations = data.get("recommendations")
    return WeeklyInsightsResponse(
        insights=[_coerce_insight(i) for i in data["insights"] if isinstance(i, dict)],
        weekly_summary=str(data.get("weekly_summary") or ""),
        recommendations=[str(r) for r in recommendations] if isinstance(recommendations, list) else [],
    )


async def generate_weekly_insights(data: UserAnalysisData) -> tuple[WeeklyInsightsResponse, TokenUsage]:
    """Raises GeminiUnavailableError when the key is missing or the model returns nothing."""
    model = build_model(settings.gemini_model, WEEKLY_GENERATION_CONFIG, WEEKLY_SYSTEM_PROMPT)
    response = await run_generate_content(model, build_analysis_prompt(data))
    if not response or not response.text:
        raise GeminiUnavailableError("Empty response from Gemini")
    input_tokens, output_tokens = usage_tokens(response)
    return parse_insights_response(response.text), TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens)


async def generate_chat_response(
    message: str, history: list[ChatMessage], context: ChatContext
) -> tuple[str, TokenUsage]:
    system = f"{CHAT_SYSTEM_PROMPT}\n\n{build_chat_context(context)}"
    model = build_model(settings.gemini_chat_model, CHAT_GENERATION_CONFIG, system)
    contents = [
        {"role": "model" if m.role == "assistant" else "user", "parts": [m.content]} for m in history
    ]
    contents.append({"role": "user", "parts": [message]})
    response = await run_generate_content(model, contents)
    if not response or not response.text:
        raise GeminiUnavailableError("Empty response from Gemini")
    input_tokens, output_tokens = usage_tokens(response)
    return response.text.strip(), TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens)


async def get_insight_for_week(session: AsyncSession, user_id: int, week_start: date) -> AIInsight | None:
    r = await session.execute(
        select(AIInsight).where(AIInsight.user_id == user_id, AIInsight.week_start == week_start)
    )
    return r.scalar_one_or_none()


def is_fresh(row: AIInsight, now: datetime | None = None) -> bool:
    """Generated within insights_cache_minutes. Naive timestamps (SQLite) are read as UTC."""
    generated = row.generated_at
    if generated is None:
        return False
    if generated.tzinfo is None:
        generated = generated.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return now - generated < timedelta(minutes=settings.insights_cache_minutes)


async def store_weekly_insights(
    session: AsyncSession,
    user_id: int,
    week_start: date,
    week_end: date,
    data: UserAnalysisData,
    result: WeeklyInsightsResponse,
    usage: TokenUsage,
) -> AIInsight:
    """Upsert on (user_id, week_start) and commit."""
    row = await get_insight_for_week(session, user_id, week_start)
    if row is None:
        row = AIInsight(user_id=user_id, week_start=week_start, week_end=week_end)
        session.add(row)
    row.week_end = week_end
    row.metrics_summary = {
        "garmin_days": len(data.garmin_data),
        "baseline_metrics": data.baseline_metrics.model_dump(mode="json"),
    }
    row.protocol_summary = {
        "active_protocols": [p.model_dump(mode="json") for p in data.active_protocols],
        "dose_count": len(data.dose_logs),
    }
    row.correlation_data = [c.model_dump(mode="json") for c in data.correlations]
    row.insights = [i.model_dump(mode="json") for i in result.insights]
    row.weekly_summary = result.weekly_summary
    row.recommendations = list(result.recommendations)
    row.generated_at = datetime.now(timezone.utc)
    row.model_version = settings.gemini_model
    row.input_tokens = usage.input_tokens
    row.output_tokens = usage.output_tokens
    await session.commit()
    await session.refresh(row)
    return row


async def _users_with_active_protocols(session: AsyncSession) -> list[int]:
    r = await session.execute(
        select(Protocol.user_id).where(Protocol.status == ProtocolStatus.ACTIVE.value).distinct()
    )
    return list(r.scalars().all())


async def generate_insights_for_user(session: AsyncSession, user_id: int, today: date | None = None) -> bool:
    """Scheduled path: skip (False) when the data gate fails; generator errors propagate."""
    week_start, week_end = analysis_window(today)
    data = await aggregate_user_data(session, user_id, week_start, week_end)
    check = can_generate_weekly_analysis(data.garmin_data, data.dose_logs, len(data.active_protocols))
    if not check.can_generate:
        logger.info("Weekly insights skipped for user %s: %s", user_id, check.reason)
        return False
    validation = validate_data_sufficiency(data)
    if not validation.is_valid:
        logger.info("Weekly insights skipped for user %s: %s", user_id, "; ".join(validation.missing_data))
        return False
    result, usage = await generate_weekly_insights(data)
    await store_weekly_insights(session, user_id, week_start, week_end, data, result, usage)
    return True


async def run_weekly_insights_job() -> None:
    """APScheduler entry point: one session per user so a failure does not affect the others."""
    async with async_session_maker() as session:
        user_ids = await _users_with_active_protocols(session)
    generated = 0
    for user_id in user_ids:
        async with async_session_maker() as session:
            try:
                if await generate_insights_for_user(session, user_id):
                    generated += 1
            except Exception:
                await session.rollback()
                logger.exception("Weekly insights failed for user %s", user_id)
    logger.info("Weekly insights job: %d/%d users", generated, len(user_ids))

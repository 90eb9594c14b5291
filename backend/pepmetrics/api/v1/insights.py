"""AI insights: weekly analysis (cached), latest stored analysis, data chat, sufficiency report."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pepmetrics.api.deps import get_current_user
from pepmetrics.db.session import get_db
from pepmetrics.models.ai_insight import AIInsight
from pepmetrics.models.user import User
from pepmetrics.schemas.insights import (
    ChatRequest,
    ChatResponse,
    GenerateInsightsResponse,
    StoredInsightsOut,
    ValidationReport,
    WeeklyInsightsResponse,
)
from pepmetrics.services.data_aggregation import aggregate_chat_context, aggregate_user_data
from pepmetrics.services.data_validation import get_validation_messages, validate_data_sufficiency
from pepmetrics.services.insights import (
    analysis_window,
    generate_chat_response,
    generate_weekly_insights,
    get_insight_for_week,
    is_fresh,
    store_weekly_insights,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/insights", tags=["insights"])


def _stored_out(row: AIInsight) -> StoredInsightsOut:
    return StoredInsightsOut(
        id=row.id,
        week_start=row.week_start,
        week_end=row.week_end,
        insights=row.insights or [],
        weekly_summary=row.weekly_summary,
        recommendations=row.recommendations or [],
        correlation_data=row.correlation_data or [],
        generated_at=row.generated_at,
        model_version=row.model_version,
    )


@router.post(
    "/generate",
    response_model=GenerateInsightsResponse,
    summary="Generate weekly insights for the last 7 days",
    responses={
        401: {"description": "Not authenticated"},
        422: {"description": "Not enough data for analysis"},
        502: {"description": "AI service unavailable"},
    },
)
async def generate_insights(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    force: bool = Query(False, description="Ignore a recently generated analysis"),
) -> GenerateInsightsResponse:
    week_start, week_end = analysis_window()
    existing = await get_insight_for_week(session, user.id, week_start)
    if existing is not None and not force and is_fresh(existing):
        stored = _stored_out(existing)
        return GenerateInsightsResponse(
            cached=True,
            insights_id=existing.id,
            week_start=week_start,
            week_end=week_end,
            insights=WeeklyInsightsResponse(
                insights=stored.insights,
                weekly_summary=stored.weekly_summary or "",
                recommendations=stored.recommendations,
            ),
            correlations=stored.correlation_data,
        )

    data = await aggregate_user_data(session, user.id, week_start, week_end)
    validation = validate_data_sufficiency(data)
    if not validation.is_valid:
        messages = get_validation_messages(validation)
        raise HTTPException(
            status_code=422,
            detail={
                "message": messages.description,
                "missing_data": validation.missing_data,
                "warnings": validation.warnings,
                "stats": validation.stats.model_dump(),
            },
        )

    try:
        result, usage = await generate_weekly_insights(data)
    except Exception as e:
        logger.exception("Weekly insights generation failed for user %s", user.id)
        raise HTTPException(
            status_code=502,
            detail={
                "message": "AI service unavailable. Please try again later.",
                "week_start": week_start.isoformat(),
                "week_end": week_end.isoformat(),
                "correlations": [c.model_dump(mode="json") for c in data.correlations],
                "baseline_metrics": data.baseline_metrics.model_dump(mode="json"),
                "data_quality": validation.data_quality,
            },
        ) from e

    response = GenerateInsightsResponse(
        week_start=week_start,
        week_end=week_end,
        insights=result,
        correlations=data.correlations,
        data_quality=validation.data_quality,
        usage=usage,
    )
    try:
        row = await store_weekly_insights(session, user.id, week_start, week_end, data, result, usage)
        response.insights_id = row.id
    except SQLAlchemyError:
        logger.exception("Failed to save weekly insights for user %s", user.id)
        await session.rollback()
        response.warning = "Insights generated but failed to save"
    return response


@router.get(
    "/latest",
    response_model=StoredInsightsOut,
    summary="Most recent stored weekly insights",
    responses={401: {"description": "Not authenticated"}, 404: {"description": "No insights yet"}},
)
async def latest_insights(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> StoredInsightsOut:
    r = await session.execute(
        select(AIInsight).where(AIInsight.user_id == user.id).order_by(AIInsight.week_start.desc()).limit(1)
    )
    row = r.scalar_one_or_none()
    if row is None:
        raise HTTPException(status_code=404, detail="No insights generated yet")
    return _stored_out(row)


@router.post(
    "/chat",
    response_model=ChatResponse,
    summary="Ask a question about your data",
    responses={401: {"description": "Not authenticated"}, 502: {"description": "AI service unavailable"}},
)
async def chat(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    body: ChatRequest,
) -> ChatResponse:
    context = await aggregate_chat_context(session, user.id)
    try:
        reply, usage = await generate_chat_response(body.message, body.history, context)
    except Exception as e:
        logger.exception("Insights chat failed for user %s", user.id)
        raise HTTPException(status_code=502, detail="AI service unavailable. Please try again later.") from e
    return ChatResponse(reply=reply, usage=usage)


@router.get(
    "/validation",
    response_model=ValidationReport,
    summary="Check whether there is enough data for weekly insights",
    responses={401: {"description": "Not authenticated"}},
)
async def validation_report(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> ValidationReport:
    week_start, week_end = analysis_window()
    data = await aggregate_user_data(session, user.id, week_start, week_end)
    result = validate_data_sufficiency(data)
    return ValidationReport(
        week_start=week_start,
        week_end=week_end,
        validation=result,
        messages=get_validation_messages(result),
    )

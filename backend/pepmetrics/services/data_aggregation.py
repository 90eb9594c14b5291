"""Load everything the weekly analysis needs for one user and compute baseline + correlations."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pepmetrics.models.ai_insight import AIInsight
from pepmetrics.models.dose_log import DoseLog
from pepmetrics.models.protocol import Protocol, ProtocolStatus
from pepmetrics.schemas.analysis import (
    ChatContext,
    DoseLogEntry,
    ProtocolChange,
    ProtocolSummary,
    UserAnalysisData,
)
from pepmetrics.services.garmin_import import fetch_daily_summaries
from pepmetrics.services.scheduling import get_frequency_summary
from pepmetrics.services.statistics import calculate_baseline_metrics, calculate_correlations

logger = logging.getLogger(__name__)

BASELINE_DAYS = 28
PROTOCOL_CHANGE_LOOKBACK_DAYS = 30
CHAT_CONTEXT_DAYS = 7


def _to_summary(protocol: Protocol) -> ProtocolSummary:
    return ProtocolSummary(
        id=protocol.id,
        name=protocol.peptide_name,
        dose=protocol.dose,
        frequency=get_frequency_summary(protocol),
        start_date=protocol.start_date,
        status=protocol.status,
    )


async def fetch_active_protocols(session: AsyncSession, user_id: int) -> list[ProtocolSummary]:
    """Anything not explicitly paused counts as active."""
    r = await session.execute(select(Protocol).where(Protocol.user_id == user_id).order_by(Protocol.id))
    return [
        _to_summary(p)
        for p in r.scalars().all()
        if (p.status or "").lower() != ProtocolStatus.PAUSED.value
    ]


async def fetch_protocol_changes(session: AsyncSession, user_id: int, week_start: date) -> list[ProtocolChange]:
    """Protocols started, or paused, within the 30 days before week_start. Newest first."""
    since = week_start - timedelta(days=PROTOCOL_CHANGE_LOOKBACK_DAYS)
    since_dt = datetime.combine(since, time.min, tzinfo=timezone.utc)
    r = await session.execute(
        select(Protocol).where(Protocol.user_id == user_id, Protocol.updated_at >= since_dt)
    )
    changes: list[ProtocolChange] = []
    for p in r.scalars().all():
        if p.start_date >= since:
            changes.append(ProtocolChange(date=p.start_date, type="started", protocol_name=p.peptide_name))
        if p.status == ProtocolStatus.PAUSED.value and p.updated_at is not None:
            changes.append(ProtocolChange(date=p.updated_at.date(), type="paused", protocol_name=p.peptide_name))
    changes.sort(key=lambda c: c.date, reverse=True)
    return changes


async def fetch_dose_logs(session: AsyncSession, user_id: int, start: date, end: date) -> list[DoseLogEntry]:
    r = await session.execute(
        select(DoseLog)
        .where(
            DoseLog.user_id == user_id,
            DoseLog.scheduled_for >= datetime.combine(start, time.min, tzinfo=timezone.utc),
            DoseLog.scheduled_for <= datetime.combine(end, time.max, tzinfo=timezone.utc),
        )
        .order_by(DoseLog.scheduled_for.asc())
    )
    return [
        DoseLogEntry(
            date=log.scheduled_for.date(),
            peptide_name=log.peptide_name,
            dose=log.dose,
            status=log.status,
            scheduled_for=log.scheduled_for,
            taken_at=log.taken_at,
            notes=log.notes,
        )
        for log in r.scalars().all()
    ]


async def aggregate_user_data(
    session: AsyncSession, user_id: int, week_start: date, week_end: date
) -> UserAnalysisData:
    """Week data plus the 28-day baseline window that ends the day before week_start."""
    baseline_start = week_start - timedelta(days=BASELINE_DAYS)
    baseline_end = week_start - timedelta(days=1)

    active_protocols = await fetch_active_protocols(session, user_id)
    protocol_changes = await fetch_protocol_changes(session, user_id, week_start)
    dose_logs = await fetch_dose_logs(session, user_id, week_start, week_end)
    garmin_data = await fetch_daily_summaries(session, user_id, week_start, week_end)
    baseline_data = await fetch_daily_summaries(session, user_id, baseline_start, baseline_end)

    baseline = calculate_baseline_metrics(baseline_data)
    correlations = calculate_correlations(dose_logs, garmin_data, baseline)
    logger.debug(
        "Aggregated user %s: %d days, %d doses, %d baseline days, %d correlations",
        user_id,
        len(garmin_data),
        len(dose_logs),
        len(baseline_data),
        len(correlations),
    )
    return UserAnalysisData(
        active_protocols=active_protocols,
        protocol_changes=protocol_changes,
        dose_logs=dose_logs,
        garmin_data=garmin_data,
        baseline_metrics=baseline,
        correlations=correlations,
    )


async def aggregate_chat_context(session: AsyncSession, user_id: int, today: date | None = None) -> ChatContext:
    today = today or date.today()
    start = today - timedelta(days=CHAT_CONTEXT_DAYS)
    latest = await session.execute(
        select(AIInsight.weekly_summary)
        .where(AIInsight.user_id == user_id)
        .order_by(AIInsight.week_start.desc())
        .limit(1)
    )
    return ChatContext(
        active_protocols=await fetch_active_protocols(session, user_id),
        recent_doses=await fetch_dose_logs(session, user_id, start, today),
        garmin_summary=await fetch_daily_summaries(session, user_id, start, today),
        latest_weekly_summary=latest.scalar_one_or_none(),
    )

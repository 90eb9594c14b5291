"""Peptide protocols: CRUD and the computed dose schedule."""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pepmetrics.api.deps import get_current_user
from pepmetrics.db.session import get_db
from pepmetrics.models.dose_log import DoseLog
from pepmetrics.models.protocol import Protocol
from pepmetrics.models.user import User
from pepmetrics.schemas.protocol import (
    DaySchedule,
    ProtocolCreate,
    ProtocolOut,
    ProtocolStatusLiteral,
    ProtocolUpdate,
    ScheduledDose,
)
from pepmetrics.services.scheduling import (
    OVERDUE_LOOKBACK_DAYS,
    get_doses_today,
    get_frequency_summary,
    get_overdue_doses,
    get_schedule_for_range,
    get_weekly_schedule,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/protocols", tags=["protocols"])

DEFAULT_SCHEDULE_DAYS = 7


def _to_out(protocol: Protocol) -> ProtocolOut:
    out = ProtocolOut.model_validate(protocol)
    out.frequency_summary = get_frequency_summary(protocol)
    return out


async def _get_owned(session: AsyncSession, user_id: int, protocol_id: int) -> Protocol:
    r = await session.execute(select(Protocol).where(Protocol.id == protocol_id, Protocol.user_id == user_id))
    protocol = r.scalar_one_or_none()
    if protocol is None:
        raise HTTPException(status_code=404, detail="Protocol not found")
    return protocol


async def _schedule_inputs(
    session: AsyncSession, user_id: int, start: date, end: date
) -> tuple[list[Protocol], list[DoseLog]]:
    protocols = (
        await session.execute(select(Protocol).where(Protocol.user_id == user_id).order_by(Protocol.id))
    ).scalars().all()
    logs = (
        await session.execute(
            select(DoseLog).where(
                DoseLog.user_id == user_id,
                DoseLog.scheduled_for >= datetime.combine(start, time.min, tzinfo=timezone.utc),
                DoseLog.scheduled_for <= datetime.combine(end, time.max, tzinfo=timezone.utc),
            )
        )
    ).scalars().all()
    return list(protocols), list(logs)


@router.get(
    "",
    response_model=list[ProtocolOut],
    summary="List protocols",
    responses={401: {"description": "Not authenticated"}},
)
async def list_protocols(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    status: ProtocolStatusLiteral | None = Query(None, description="Filter by status"),
) -> list[ProtocolOut]:
    q = select(Protocol).where(Protocol.user_id == user.id)
    if status:
        q = q.where(Protocol.status == status)
    r = await session.execute(q.order_by(Protocol.created_at.desc(), Protocol.id.desc()))
    return [_to_out(p) for p in r.scalars().all()]


@router.post(
    "",
    response_model=ProtocolOut,
    status_code=201,
    summary="Create protocol",
    responses={401: {"description": "Not authenticated"}},
)
async def create_protocol(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    body: ProtocolCreate,
) -> ProtocolOut:
    protocol = Protocol(user_id=user.id, **body.model_dump())
    session.add(protocol)
    await session.flush()
    await session.refresh(protocol)
    logger.info("Protocol %s created for user %s (%s)", protocol.id, user.id, protocol.frequency_type)
    return _to_out(protocol)


@router.get(
    "/schedule",
    response_model=list[ScheduledDose],
    summary="Dose schedule for a date range",
    responses={400: {"description": "Invalid or too long range"}, 401: {"description": "Not authenticated"}},
)
async def get_schedule(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    from_date: date | None = Query(None, description="YYYY-MM-DD, default today"),
    to_date: date | None = Query(None, description="YYYY-MM-DD, default from_date + 6 days"),
) -> list[ScheduledDose]:
    from_d = from_date or date.today()
    to_d = to_date or (from_d + timedelta(days=DEFAULT_SCHEDULE_DAYS - 1))
    if from_d > to_d:
        raise HTTPException(status_code=400, detail="from_date must be on or before to_date")
    protocols, logs = await _schedule_inputs(session, user.id, from_d, to_d)
    try:
        return get_schedule_for_range(protocols, logs, from_d, to_d)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.get(
    "/today",
    response_model=list[ScheduledDose],
    summary="Doses scheduled today",
    responses={401: {"description": "Not authenticated"}},
)
async def get_today(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> list[ScheduledDose]:
    today = date.today()
    protocols, logs = await _schedule_inputs(session, user.id, today, today)
    return get_doses_today(protocols, logs, today=today)


@router.get(
    "/week",
    response_model=list[DaySchedule],
    summary="Seven-day schedule starting today",
    responses={401: {"description": "Not authenticated"}},
)
async def get_week(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> list[DaySchedule]:
    today = date.today()
    protocols, logs = await _schedule_inputs(session, user.id, today, today + timedelta(days=6))
    return get_weekly_schedule(protocols, logs, today=today)


@router.get(
    "/overdue",
    response_model=list[ScheduledDose],
    summary="Unlogged doses from the last 30 days",
    responses={401: {"description": "Not authenticated"}},
)
async def get_overdue(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> list[ScheduledDose]:
    today = date.today()
    protocols, logs = await _schedule_inputs(
        session, user.id, today - timedelta(days=OVERDUE_LOOKBACK_DAYS), today
    )
    return get_overdue_doses(protocols, logs, today=today)


@router.get(
    "/{protocol_id}",
    response_model=ProtocolOut,
    summary="Get protocol",
    responses={401: {"description": "Not authenticated"}, 404: {"description": "Protocol not found"}},
)
async def get_protocol(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    protocol_id: Annotated[int, Path(ge=1)],
) -> ProtocolOut:
    return _to_out(await _get_owned(session, user.id, protocol_id))


@router.patch(
    "/{protocol_id}",
    response_model=ProtocolOut,
    summary="Update protocol",
    responses={
        400: {"description": "Resulting recurrence rule is invalid"},
        401: {"description": "Not authenticated"},
        404: {"description": "Protocol not found"},
    },
)
async def update_protocol(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    protocol_id: Annotated[int, Path(ge=1)],
    body: ProtocolUpdate,
) -> ProtocolOut:
    protocol = await _get_owned(session, user.id, protocol_id)
    for key, value in body.model_dump(exclude_unset=True).items():
        setattr(protocol, key, value)
    if protocol.frequency_type == "specific-days" and not protocol.specific_days:
        raise HTTPException(status_code=400, detail="specific_days is required for specific-days protocols")
    protocol.updated_at = datetime.now(timezone.utc)
    await session.flush()
    await session.refresh(protocol)
    return _to_out(protocol)


@router.delete(
    "/{protocol_id}",
    status_code=204,
    summary="Delete protocol and its dose logs",
    responses={401: {"description": "Not authenticated"}, 404: {"description": "Protocol not found"}},
)
async def delete_protocol(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    protocol_id: Annotated[int, Path(ge=1)],
) -> Response:
    protocol = await _get_owned(session, user.id, protocol_id)
    await session.delete(protocol)
    await session.flush()
    return Response(status_code=204)

"""Dose logs: record taken/skipped doses against protocol slots, list, undo."""

import logging
from datetime import date, datetime, time, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pepmetrics.api.deps import get_current_user
from pepmetrics.db.session import get_db
from pepmetrics.models.dose_log import DoseLog
from pepmetrics.models.protocol import Protocol
from pepmetrics.models.user import User
from pepmetrics.schemas.protocol import DoseLogCreate, DoseLogOut

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/dose-logs", tags=["dose-logs"])


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    return (
        datetime.combine(day, time.min, tzinfo=timezone.utc),
        datetime.combine(day, time.max, tzinfo=timezone.utc),
    )


def _as_utc(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt.astimezone(timezone.utc)


@router.get(
    "",
    response_model=list[DoseLogOut],
    summary="List dose logs",
    responses={401: {"description": "Not authenticated"}},
)
async def list_dose_logs(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    from_date: date | None = Query(None, description="YYYY-MM-DD"),
    to_date: date | None = Query(None, description="YYYY-MM-DD"),
    protocol_id: int | None = Query(None),
    limit: int = Query(default=100, ge=1, le=1000),
) -> list[DoseLogOut]:
    """Newest scheduled_for first."""
    q = select(DoseLog).where(DoseLog.user_id == user.id)
    if from_date:
        q = q.where(DoseLog.scheduled_for >= _day_bounds(from_date)[0])
    if to_date:
        q = q.where(DoseLog.scheduled_for <= _day_bounds(to_date)[1])
    if protocol_id is not None:
        q = q.where(DoseLog.protocol_id == protocol_id)
    r = await session.execute(q.order_by(DoseLog.scheduled_for.desc(), DoseLog.id.desc()).limit(limit))
    return [DoseLogOut.model_validate(log) for log in r.scalars().all()]


@router.post(
    "",
    response_model=DoseLogOut,
    summary="Log a dose (create or update the slot)",
    responses={401: {"description": "Not authenticated"}, 404: {"description": "Protocol not found"}},
)
async def upsert_dose_log(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    body: DoseLogCreate,
) -> DoseLogOut:
    """
    A slot is (protocol, calendar day of scheduled_for in UTC, dose_number); logging the same slot again
    updates it. peptide_name and dose are copied from the protocol at logging time.
    """
    r = await session.execute(
        select(Protocol).where(Protocol.id == body.protocol_id, Protocol.user_id == user.id)
    )
    protocol = r.scalar_one_or_none()
    if protocol is None:
        raise HTTPException(status_code=404, detail="Protocol not found")

    scheduled_for = _as_utc(body.scheduled_for)
    day_start, day_end = _day_bounds(scheduled_for.date())
    r = await session.execute(
        select(DoseLog).where(
            DoseLog.protocol_id == protocol.id,
            DoseLog.dose_number == body.dose_number,
            DoseLog.scheduled_for >= day_start,
            DoseLog.scheduled_for <= day_end,
        )
    )
    log = r.scalars().first()
    if log is None:
        log = DoseLog(user_id=user.id, protocol_id=protocol.id, dose_number=body.dose_number)
        session.add(log)
    log.peptide_name = protocol.peptide_name
    log.dose = protocol.dose
    log.scheduled_for = scheduled_for
    log.status = body.status
    if body.status == "taken":
        log.taken_at = _as_utc(body.taken_at) if body.taken_at else datetime.now(timezone.utc)
    else:
        log.taken_at = None
    log.notes = body.notes
    await session.flush()
    await session.refresh(log)
    return DoseLogOut.model_validate(log)


@router.delete(
    "/{log_id}",
    status_code=204,
    summary="Undo a logged dose",
    responses={401: {"description": "Not authenticated"}, 404: {"description": "Dose log not found"}},
)
async def delete_dose_log(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    log_id: Annotated[int, Path(ge=1)],
) -> Response:
    r = await session.execute(select(DoseLog).where(DoseLog.id == log_id, DoseLog.user_id == user.id))
    log = r.scalar_one_or_none()
    if log is None:
        raise HTTPException(status_code=404, detail="Dose log not found")
    await session.delete(log)
    await session.flush()
    return Response(status_code=204)

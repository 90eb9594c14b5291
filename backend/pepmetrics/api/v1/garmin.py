"""Garmin Connect exports: upload (ZIP / activity CSV / single JSON), import history, stored daily summaries."""

import logging
from datetime import date, timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pepmetrics.api.deps import get_current_user
from pepmetrics.config import settings
from pepmetrics.db.session import get_db
from pepmetrics.models.garmin_activity import GarminActivity
from pepmetrics.models.garmin_data import GarminDailyData
from pepmetrics.models.garmin_import import GarminImport
from pepmetrics.models.user import User
from pepmetrics.schemas.garmin import (
    ActivityStats,
    DailySummaryOut,
    DateRange,
    GarminImportOut,
    ImportHistoryResponse,
    ImportResult,
)
from pepmetrics.schemas.pagination import PaginatedResponse
from pepmetrics.services.garmin_import import (
    GarminImportError,
    ImportPersistenceError,
    daily_row_to_summary,
    import_activity_csv,
    import_json_export,
    import_zip_export,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/garmin", tags=["garmin"])

IMPORT_HISTORY_LIMIT = 10
DEFAULT_DAILY_DAYS = 30


def _kind(file: UploadFile) -> str | None:
    name = (file.filename or "").lower()
    content_type = (file.content_type or "").lower()
    if name.endswith(".zip") or content_type in ("application/zip", "application/x-zip-compressed"):
        return "zip"
    if name.endswith(".csv") or content_type == "text/csv":
        return "csv"
    if name.endswith(".json") or content_type == "application/json":
        return "json"
    return None


def _decode(content: bytes) -> str:
    return content.decode("utf-8-sig", errors="replace")


@router.post(
    "/import",
    response_model=ImportResult,
    summary="Import a Garmin export file",
    responses={
        400: {"description": "Unsupported, corrupt or empty file"},
        401: {"description": "Not authenticated"},
        413: {"description": "File too large"},
        500: {"description": "Parsed but failed to save"},
    },
)
async def import_garmin_file(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    file: Annotated[UploadFile, File(description="Garmin export: .zip, activities .csv or .json")],
    target_days: Annotated[int | None, Form(ge=1, le=3650)] = None,
) -> ImportResult:
    """
    ZIP: full data-export pipeline (scan the last target_days, parse, merge per day).
    CSV: activity list export, also summarised into daily rows.
    JSON: a single file taken out of a data export.
    """
    kind = _kind(file)
    if kind is None:
        raise HTTPException(status_code=400, detail="Unsupported file type. Upload a .zip, .csv or .json file")
    limit = settings.garmin_max_upload_bytes if kind == "zip" else settings.garmin_max_text_upload_bytes
    content = await file.read()
    if len(content) > limit:
        raise HTTPException(status_code=413, detail=f"File too large (max {limit // (1024 * 1024)} MB)")
    if not content:
        raise HTTPException(status_code=400, detail="Empty file")

    file_name = file.filename or f"upload.{kind}"
    try:
        if kind == "zip":
            return await import_zip_export(session, user.id, file_name, content, target_days=target_days)
        if kind == "csv":
            return await import_activity_csv(session, user.id, file_name, _decode(content))
        return await import_json_export(session, user.id, file_name, _decode(content))
    except GarminImportError as e:
        logger.warning("Garmin import rejected for user %s (%s): %s", user.id, file_name, e.message)
        raise HTTPException(
            status_code=400,
            detail={
                "message": e.message,
                "details": e.details,
                "scan_result": e.scan_result.model_dump(mode="json") if e.scan_result else None,
            },
        ) from e
    except ImportPersistenceError as e:
        raise HTTPException(
            status_code=500,
            detail={"message": str(e), "parsed_days": len(e.parsed_days)},
        ) from e


@router.get(
    "/imports",
    response_model=ImportHistoryResponse,
    summary="Recent imports and activity stats",
    responses={401: {"description": "Not authenticated"}},
)
async def list_imports(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> ImportHistoryResponse:
    r = await session.execute(
        select(GarminImport)
        .where(GarminImport.user_id == user.id)
        .order_by(GarminImport.import_date.desc(), GarminImport.id.desc())
        .limit(IMPORT_HISTORY_LIMIT)
    )
    imports = [GarminImportOut.model_validate(row) for row in r.scalars().all()]
    stats_row = (
        await session.execute(
            select(
                func.count(GarminActivity.id),
                func.min(GarminActivity.start_time),
                func.max(GarminActivity.start_time),
            ).where(GarminActivity.user_id == user.id)
        )
    ).one()
    total, first, last = stats_row
    date_range = DateRange(start=first.date(), end=last.date()) if first and last else None
    return ImportHistoryResponse(
        imports=imports,
        activity_stats=ActivityStats(total_activities=total or 0, date_range=date_range),
    )


@router.get(
    "/daily",
    response_model=PaginatedResponse,
    summary="Stored daily health summaries",
    responses={401: {"description": "Not authenticated"}},
)
async def list_daily(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    from_date: date | None = Query(None, description="YYYY-MM-DD, default 30 days before to_date"),
    to_date: date | None = Query(None, description="YYYY-MM-DD, default today"),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> PaginatedResponse:
    """Newest first."""
    to_d = to_date or date.today()
    from_d = from_date or (to_d - timedelta(days=DEFAULT_DAILY_DAYS))
    if from_d > to_d:
        raise HTTPException(status_code=400, detail="from_date must be on or before to_date")
    base = (
        select(GarminDailyData)
        .where(
            GarminDailyData.user_id == user.id,
            GarminDailyData.data_date >= from_d,
            GarminDailyData.data_date <= to_d,
        )
        .order_by(GarminDailyData.data_date.desc())
    )
    count_q = select(func.count()).select_from(base.subquery())
    total = (await session.execute(count_q)).scalar() or 0
    r = await session.execute(base.offset(offset).limit(limit))
    items = [
        DailySummaryOut(**daily_row_to_summary(row).model_dump(), synced_at=row.synced_at).model_dump(mode="json")
        for row in r.scalars().all()
    ]
    return PaginatedResponse(
        items=items,
        total=total,
        limit=limit,
        offset=offset,
        has_more=(offset + limit) < total,
    )

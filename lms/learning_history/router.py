"""Learning history API endpoints."""

import logging
from datetime import datetime
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Path, Query, Request, status
from fastapi.responses import StreamingResponse

from lms.auth import CurrentAuth
from lms.config.settings import get_settings
from lms.middleware.security import export_route_limit, history_rate_limit, write_route_limit
from lms.shared.utils.dates import parse_date_range

from .export import render_csv
from .models import AccessType
from .schemas import (
    AccessHistoryPage,
    AccessRecordResponse,
    AccessSummary,
    DetailedLearningHistory,
    LearningStatsReport,
    PatternsReport,
    RecordAccessRequest,
)
from .service import REPORT_KINDS, LearningHistoryService


logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/learning-history",
    tags=["learning-history"],
    dependencies=[Depends(history_rate_limit)],
)

StartDate = Annotated[str | None, Query(alias="startDate")]
EndDate = Annotated[str | None, Query(alias="endDate")]
TargetUser = Annotated[int | None, Query(alias="userId", gt=0, description="Defaults to the current user")]


def _date_range(start_date: str | None, end_date: str | None) -> tuple[datetime, datetime]:
    settings = get_settings()
    return parse_date_range(start_date, end_date, settings.tz, settings.DEFAULT_HISTORY_WINDOW_DAYS)


def _resolve_user(auth: CurrentAuth, user_id: int | None) -> int:
    if user_id is None:
        return auth.user_id
    auth.require_self_or_admin(user_id)
    return user_id


@router.get("/access")
async def get_access_history(
    auth: CurrentAuth,
    material_id: Annotated[int | None, Query(alias="materialId", gt=0)] = None,
    resource_id: Annotated[int | None, Query(alias="resourceId", gt=0)] = None,
    access_type: Annotated[AccessType | None, Query(alias="accessType")] = None,
    start_date: StartDate = None,
    end_date: EndDate = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> AccessHistoryPage:
    """Paginated access log of the current user. No date filter unless one is given."""
    start = end = None
    if start_date or end_date:
        start, end = _date_range(start_date, end_date)
    service = LearningHistoryService(auth.session)
    return await service.get_access_history(
        auth.user_id,
        page=page,
        limit=limit,
        material_id=material_id,
        resource_id=resource_id,
        access_type=access_type,
        start=start,
        end=end,
    )


@router.get("/detailed")
async def get_detailed_history(
    auth: CurrentAuth,
    start_date: StartDate = None,
    end_date: EndDate = None,
    user_id: TargetUser = None,
) -> DetailedLearningHistory:
    start, end = _date_range(start_date, end_date)
    service = LearningHistoryService(auth.session)
    return await service.get_detailed_history(_resolve_user(auth, user_id), start, end)


@router.get("/reports")
async def get_stats_report(
    auth: CurrentAuth,
    start_date: StartDate = None,
    end_date: EndDate = None,
    user_id: TargetUser = None,
) -> LearningStatsReport:
    """Statistics report for a period (startDate must precede endDate)."""
    start, end = _date_range(start_date, end_date)
    service = LearningHistoryService(auth.session)
    return await service.generate_stats_report(_resolve_user(auth, user_id), start, end)


@router.get("/patterns")
async def get_learning_patterns(
    auth: CurrentAuth,
    start_date: StartDate = None,
    end_date: EndDate = None,
    user_id: TargetUser = None,
) -> PatternsReport:
    start, end = _date_range(start_date, end_date)
    service = LearningHistoryService(auth.session)
    return await service.get_patterns(_resolve_user(auth, user_id), start, end)


@router.get("/summary")
async def get_summary(
    auth: CurrentAuth,
    start_date: StartDate = None,
    end_date: EndDate = None,
    user_id: TargetUser = None,
) -> AccessSummary:
    start, end = _date_range(start_date, end_date)
    service = LearningHistoryService(auth.session)
    return await service.get_summary(_resolve_user(auth, user_id), start, end)


@router.post(
    "/record-access",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(write_route_limit)],
)
async def record_access(
    body: RecordAccessRequest,
    request: Request,
    auth: CurrentAuth,
) -> AccessRecordResponse:
    """Record a view, download or external-link access of a material or resource."""
    service = LearningHistoryService(auth.session)
    access = await service.record_access(
        auth.user_id,
        body,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    return AccessRecordResponse.model_validate(access)


@router.get("/export/{report_type}", dependencies=[Depends(export_route_limit)])
async def export_report(
    report_type: Annotated[str, Path(description=f"One of: {', '.join(REPORT_KINDS)}")],
    auth: CurrentAuth,
    start_date: StartDate = None,
    end_date: EndDate = None,
    interval: Literal["day", "week", "month"] = "day",
    user_id: TargetUser = None,
) -> StreamingResponse:
    """Download a report as CSV."""
    start, end = _date_range(start_date, end_date)
    target = _resolve_user(auth, user_id)
    service = LearningHistoryService(auth.session)
    report = await service.build_report(report_type, target, start, end, interval=interval)
    csv_content = render_csv(report, get_settings().tz)

    logger.info(f"Exported {report_type} report for user {target}", extra={"bytes": len(csv_content)})
    return StreamingResponse(
        iter([csv_content]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={report_type}.csv"},
    )

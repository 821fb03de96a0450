"""Learning history: access log queries, reports and access recording."""

import logging
from collections import Counter
from datetime import datetime
from math import ceil
from typing import Literal, get_args

from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from lms.config.settings import Settings, get_settings
from lms.courses.models import LearningMaterial, LearningResource
from lms.database.pagination import Paginator
from lms.exceptions import PersistenceError, ResourceNotFoundError, ValidationError
from lms.progress.service import ProgressService
from lms.progress.streaks import record_daily_activity
from lms.progress.time_tracking import TimeTrackingService
from lms.shared.schemas import PaginationMeta
from lms.shared.utils.dates import ensure_aware, local_today
from lms.user.models import User

from . import aggregation
from .aggregation import AccessRecord
from .models import AccessType, UserMaterialAccess
from .schemas import (
    AccessHistoryItem,
    AccessHistoryPage,
    AccessSummary,
    DetailedLearningHistory,
    LearningReport,
    LearningStatsReport,
    PatternsReport,
    RecordAccessRequest,
)


logger = logging.getLogger(__name__)

RECENT_ACCESS_LIMIT = 10

ReportKind = Literal["access_history", "summary", "detailed", "stats", "patterns", "streak", "time_series"]
REPORT_KINDS: tuple[str, ...] = get_args(ReportKind)


def to_access_record(access: UserMaterialAccess) -> AccessRecord:
    """Detach an access row (with material/resource loaded) for aggregation."""
    return AccessRecord(
        accessed_at=ensure_aware(access.accessed_at),
        session_duration=access.session_duration,
        access_type=access.access_type,
        material_id=access.material_id,
        material_title=access.material.title if access.material else None,
        resource_id=access.resource_id,
        resource_title=access.resource.title if access.resource else None,
    )


def to_history_item(access: UserMaterialAccess) -> AccessHistoryItem:
    return AccessHistoryItem(
        id=access.id,
        user_id=access.user_id,
        material_id=access.material_id,
        resource_id=access.resource_id,
        material_title=access.material.title if access.material else None,
        resource_title=access.resource.title if access.resource else None,
        access_type=access.access_type,
        session_duration=access.session_duration,
        ip_address=access.ip_address,
        user_agent=access.user_agent,
        accessed_at=ensure_aware(access.accessed_at),
    )


class LearningHistoryService:
    """Reports over a user's access log.

    Date ranges are UTC datetimes, inclusive on both ends. Day and hour
    bucketing happens in ``Settings.TIMEZONE``.
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()

    def _access_query(
        self,
        user_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
        *,
        material_id: int | None = None,
        resource_id: int | None = None,
        access_type: AccessType | None = None,
    ) -> Select[tuple[UserMaterialAccess]]:
        query = (
            select(UserMaterialAccess)
            .options(selectinload(UserMaterialAccess.material), selectinload(UserMaterialAccess.resource))
            .where(UserMaterialAccess.user_id == user_id)
        )
        if start is not None:
            query = query.where(UserMaterialAccess.accessed_at >= start)
        if end is not None:
            query = query.where(UserMaterialAccess.accessed_at <= end)
        if material_id is not None:
            query = query.where(UserMaterialAccess.material_id == material_id)
        if resource_id is not None:
            query = query.where(UserMaterialAccess.resource_id == resource_id)
        if access_type is not None:
            query = query.where(UserMaterialAccess.access_type == AccessType(access_type).value)
        return query.order_by(UserMaterialAccess.accessed_at.desc(), UserMaterialAccess.id.desc())

    async def _load(self, user_id: int, start: datetime, end: datetime) -> list[UserMaterialAccess]:
        result = await self.session.execute(self._access_query(user_id, start, end))
        return list(result.scalars().all())

    async def get_access_history(
        self,
        user_id: int,
        *,
        page: int = 1,
        limit: int = 20,
        material_id: int | None = None,
        resource_id: int | None = None,
        access_type: AccessType | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> AccessHistoryPage:
        """Paginated access log, newest first."""
        query = self._access_query(
            user_id, start, end, material_id=material_id, resource_id=resource_id, access_type=access_type
        )
        paginator = Paginator(page=page, limit=limit)
        items, total = await paginator.paginate(self.session, query)
        return AccessHistoryPage(
            data=[to_history_item(access) for access in items],
            pagination=paginator.meta(total),
        )

    async def get_full_access_history(self, user_id: int, start: datetime, end: datetime) -> AccessHistoryPage:
        """Every access of the period, newest first, as one page."""
        items = [to_history_item(access) for access in await self._load(user_id, start, end)]
        total = len(items)
        return AccessHistoryPage(
            data=items,
            pagination=PaginationMeta(
                page=1, limit=max(total, 1), total=total, total_pages=1 if total else 0, has_next=False, has_prev=False
            ),
        )

    async def get_summary(self, user_id: int, start: datetime, end: datetime) -> AccessSummary:
        accesses = await self._load(user_id, start, end)
        summary = aggregation.summarize_accesses([to_access_record(a) for a in accesses], self.settings.tz)
        return summary.model_copy(update={"period_start": start, "period_end": end})

    async def get_detailed_history(self, user_id: int, start: datetime, end: datetime) -> DetailedLearningHistory:
        """Summary, the latest accesses, hour x weekday patterns and a per-material breakdown."""
        accesses = await self._load(user_id, start, end)
        records = [to_access_record(a) for a in accesses]
        tz = self.settings.tz
        summary = aggregation.summarize_accesses(records, tz)

        return DetailedLearningHistory(
            total_accesses=summary.total_accesses,
            total_session_time=summary.total_session_time,
            average_session_time=summary.average_session_time,
            most_active_hour=summary.most_active_hour,
            most_active_day=summary.most_active_day,
            recent_accesses=[to_history_item(a) for a in accesses[:RECENT_ACCESS_LIMIT]],
            learning_patterns=aggregation.learning_patterns(records, tz),
            material_breakdown=aggregation.material_breakdown(records),
        )

    async def get_patterns(self, user_id: int, start: datetime, end: datetime) -> PatternsReport:
        records = [to_access_record(a) for a in await self._load(user_id, start, end)]
        tz = self.settings.tz
        summary = aggregation.summarize_accesses(records, tz)
        return PatternsReport(
            most_active_hour=summary.most_active_hour,
            most_active_day=summary.most_active_day,
            hourly_breakdown=aggregation.hourly_breakdown(records, tz),
            weekly_breakdown=aggregation.weekly_breakdown(records, tz),
            learning_patterns=aggregation.learning_patterns(records, tz),
            material_breakdown=aggregation.material_breakdown(records),
        )

    async def generate_stats_report(self, user_id: int, start: datetime, end: datetime) -> LearningStatsReport:
        """Statistics over a period.

        Raises
        ------
        ValidationError
            If ``start`` is not before ``end``.
        ResourceNotFoundError
            If the user does not exist.
        """
        if start >= end:
            msg = "startDate must be before endDate"
            raise ValidationError(msg)
        if await self.session.get(User, user_id) is None:
            raise ResourceNotFoundError("User", user_id)

        records = [to_access_record(a) for a in await self._load(user_id, start, end)]
        tz = self.settings.tz

        total_time = sum(r.minutes for r in records)
        durations = [r.minutes for r in records if r.minutes > 0]
        period_days = max(1, ceil((end - start).total_seconds() / 86400))
        type_counts = Counter(r.access_type for r in records)
        # Ties resolve in AccessType declaration order
        most_used = max(AccessType, key=lambda t: type_counts.get(t.value, 0)) if records else AccessType.VIEW

        return LearningStatsReport(
            user_id=user_id,
            period_start=start,
            period_end=end,
            total_study_time=total_time,
            total_materials_accessed=len(records),
            unique_materials_accessed=len({r.material_id for r in records if r.material_id is not None}),
            average_daily_study_time=round(total_time / period_days, 2),
            longest_study_session=max(durations, default=0),
            shortest_study_session=min(durations, default=0),
            most_used_access_type=most_used,
            daily_breakdown=aggregation.daily_breakdown(records, tz),
            hourly_breakdown=aggregation.hourly_breakdown(records, tz),
            weekly_breakdown=aggregation.weekly_breakdown(records, tz),
        )

    async def record_access(
        self,
        user_id: int,
        data: RecordAccessRequest,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> UserMaterialAccess:
        """Append an access-log row for a material or a resource.

        A given ``session_duration`` also counts toward today's study minutes.
        """
        if data.material_id is not None:
            if await self.session.get(LearningMaterial, data.material_id) is None:
                raise ResourceNotFoundError("Learning material", data.material_id)
        elif await self.session.get(LearningResource, data.resource_id) is None:
            raise ResourceNotFoundError("Learning resource", data.resource_id)

        access = UserMaterialAccess(
            user_id=user_id,
            material_id=data.material_id,
            resource_id=data.resource_id,
            access_type=AccessType(data.access_type).value,
            session_duration=data.session_duration,
            ip_address=ip_address,
            user_agent=user_agent[:512] if user_agent else None,
        )
        try:
            self.session.add(access)
            if data.session_duration:
                await record_daily_activity(
                    self.session, user_id, local_today(self.settings.tz), minutes=data.session_duration
                )
            await self.session.commit()
        except SQLAlchemyError as e:
            logger.exception(f"Failed to record access for user {user_id}")
            await self.session.rollback()
            msg = "Failed to record access"
            raise PersistenceError(msg) from e

        logger.info(
            f"Recorded {access.access_type} access for user {user_id}",
            extra={"material_id": data.material_id, "resource_id": data.resource_id},
        )
        return access

    async def build_report(
        self,
        kind: str,
        user_id: int,
        start: datetime,
        end: datetime,
        *,
        interval: Literal["day", "week", "month"] = "day",
    ) -> LearningReport:
        """Build any report by its ``kind`` tag (used by the CSV export).

        ``access_history`` holds every row of the period on a single page.
        """
        if kind == "access_history":
            return await self.get_full_access_history(user_id, start, end)
        if kind == "summary":
            return await self.get_summary(user_id, start, end)
        if kind == "detailed":
            return await self.get_detailed_history(user_id, start, end)
        if kind == "stats":
            return await self.generate_stats_report(user_id, start, end)
        if kind == "patterns":
            return await self.get_patterns(user_id, start, end)
        if kind == "streak":
            return await TimeTrackingService(self.session, self.settings).get_streak_stats(user_id)
        if kind == "time_series":
            return await ProgressService(self.session, settings=self.settings).get_time_series(
                user_id, start, end, interval
            )
        msg = f"Unknown report type: {kind}. Expected one of: {', '.join(REPORT_KINDS)}"
        raise ValidationError(msg)

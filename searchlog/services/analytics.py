"""Search analytics: per-term daily counts and trending terms.

Terms are compared case-insensitively ("ruby" and "ruBy" are one term).
A period is a trailing window ending now. Bounded windows start at midnight
UTC, so the oldest day is always counted whole:

  daily      since midnight UTC today
  weekly     since midnight 7 days ago
  monthly    since midnight 30 days ago
  quarterly  since midnight 90 days ago
  yearly     since midnight 365 days ago
  all        no lower bound

Term details are always bucketed by the calendar date of created_at; dates
without matching searches are omitted.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import Date, Select, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from searchlog.clock import Clock, SystemClock
from searchlog.config import Settings
from searchlog.config import settings as default_settings
from searchlog.models.search_log import SearchLog
from searchlog.schemas import DataPoint, Period, SearchFilter, TermDetails, TrendingTerm

logger = logging.getLogger(__name__)

PERIOD_WINDOWS = {
    Period.WEEKLY: timedelta(days=7),
    Period.MONTHLY: timedelta(days=30),
    Period.QUARTERLY: timedelta(days=90),
    Period.YEARLY: timedelta(days=365),
}


def start_of(period: Period | str, now: datetime) -> datetime | None:
    """Start of the trailing window for ``period``; None means unbounded."""
    period = Period(period)
    if period is Period.ALL:
        return None
    if period is Period.DAILY:
        return _midnight(now)
    return _midnight(now - PERIOD_WINDOWS[period])


def _midnight(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _apply_filter(stmt: Select, search_filter: SearchFilter) -> Select:
    if search_filter.search_type is not None:
        return stmt.where(SearchLog.search_type == search_filter.search_type)
    if search_filter is SearchFilter.CLICK_THROUGH_ONLY:
        return stmt.where(SearchLog.search_result_id.is_not(None))
    return stmt


class SearchAnalytics:
    """Read-only aggregate queries over search logs."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock | None = None,
        settings: Settings | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._settings = settings or default_settings

    async def term_details(
        self,
        term: str,
        period: Period | str = Period.WEEKLY,
        search_filter: SearchFilter | str = SearchFilter.ALL,
    ) -> TermDetails:
        period = Period(period)
        search_filter = SearchFilter(search_filter)
        now = self._clock.now()
        start = start_of(period, now)

        bucket = func.date(SearchLog.created_at, type_=Date).label("bucket")
        stmt = select(bucket, func.count(SearchLog.id).label("total")).where(
            func.lower(SearchLog.term) == func.lower(term.strip())
        )
        if start is not None:
            stmt = stmt.where(SearchLog.created_at >= start)
        stmt = _apply_filter(stmt, search_filter).group_by(bucket).order_by(bucket)

        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).all()

        logger.debug("Term details | term=%s | period=%s | buckets=%d", term, period.value, len(rows))
        return TermDetails(
            term=term,
            period=period.value,
            start_date=start,
            end_date=now,
            data=[DataPoint(x=row.bucket, y=row.total) for row in rows],
        )

    async def trending(
        self,
        period: Period | str = Period.ALL,
        search_type: SearchFilter | str = SearchFilter.ALL,
        limit: int | None = None,
    ) -> list[TrendingTerm]:
        start = start_of(period, self._clock.now())
        return await self.trending_from(start, search_type=search_type, limit=limit)

    async def trending_from(
        self,
        start_date: datetime | None,
        end_date: datetime | None = None,
        search_type: SearchFilter | str = SearchFilter.ALL,
        limit: int | None = None,
    ) -> list[TrendingTerm]:
        """Most searched terms in [start_date, end_date), ties broken alphabetically."""
        search_type = SearchFilter(search_type)
        limit = limit or self._settings.trending_limit

        lowered = func.lower(SearchLog.term)
        term_col = lowered.label("term")
        searches = func.count(SearchLog.id).label("searches")
        click_through = func.sum(
            case((SearchLog.search_result_id.is_not(None), 1), else_=0)
        ).label("click_through")

        stmt = select(term_col, searches, click_through)
        if start_date is not None:
            stmt = stmt.where(SearchLog.created_at >= start_date)
        if end_date is not None:
            stmt = stmt.where(SearchLog.created_at < end_date)
        stmt = (
            _apply_filter(stmt, search_type)
            .group_by(lowered)
            .order_by(searches.desc(), term_col.asc())
            .limit(limit)
        )

        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).all()

        return [
            TrendingTerm(term=row.term, searches=row.searches, click_through=row.click_through or 0)
            for row in rows
        ]

"""Search event store: short-lived async sessions over the search_logs table."""

import logging
from datetime import datetime

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from searchlog.clock import Clock, SystemClock
from searchlog.exceptions import MissingActor
from searchlog.models.search_log import SearchLog, SearchResultType, SearchType

logger = logging.getLogger(__name__)

# Fields a debounced search may overwrite; id, actor and created_at never change
MUTABLE_FIELDS = frozenset({"term", "search_type", "user_agent"})


class SearchLogStore:
    """Insert, point read/update, click-through and bulk delete for search logs."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], clock: Clock | None = None):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return self._session_factory

    async def insert(
        self,
        *,
        term: str,
        search_type: SearchType,
        ip_address: str | None = None,
        user_agent: str | None = None,
        user_id: int | None = None,
        created_at: datetime | None = None,
    ) -> SearchLog:
        async with self._session_factory() as session:
            record = SearchLog(
                term=term,
                search_type=search_type,
                ip_address=ip_address,
                user_agent=user_agent,
                user_id=user_id,
                created_at=created_at or self._clock.now(),
            )
            session.add(record)
            await session.commit()
            return record

    async def get(self, event_id: int) -> SearchLog | None:
        async with self._session_factory() as session:
            return await session.get(SearchLog, event_id)

    async def update(self, event_id: int, **fields) -> SearchLog | None:
        """Overwrite mutable fields in place. Returns None if the row is gone."""
        unknown = set(fields) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"immutable search log fields: {sorted(unknown)}")

        async with self._session_factory() as session:
            record = await session.get(SearchLog, event_id)
            if record is None:
                return None
            for name, value in fields.items():
                setattr(record, name, value)
            await session.commit()
            return record

    async def record_click_through(
        self,
        event_id: int,
        search_result_id: int,
        search_result_type: SearchResultType,
        ip_address: str | None = None,
        user_id: int | None = None,
    ) -> bool:
        """Attach the clicked result to a log owned by the given actor."""
        if user_id is not None:
            owner = SearchLog.user_id == user_id
        elif ip_address:
            owner = and_(SearchLog.ip_address == ip_address, SearchLog.user_id.is_(None))
        else:
            raise MissingActor("click-through needs ip_address or user_id")

        async with self._session_factory() as session:
            result = await session.execute(
                update(SearchLog)
                .where(SearchLog.id == event_id, owner)
                .values(search_result_id=search_result_id, search_result_type=search_result_type)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

        updated = result.rowcount > 0
        logger.info(
            "Click-through %s | id=%s | result=%s:%s",
            "recorded" if updated else "ignored", event_id, search_result_type.value, search_result_id,
        )
        return updated

    async def count(self) -> int:
        async with self._session_factory() as session:
            return await session.scalar(select(func.count()).select_from(SearchLog)) or 0

    async def delete_oldest(self, keep: int) -> int:
        """Delete everything older than the newest ``keep`` rows. Returns rows deleted."""
        async with self._session_factory() as session:
            boundary = (
                await session.execute(
                    select(SearchLog.id, SearchLog.created_at)
                    .order_by(SearchLog.created_at.desc(), SearchLog.id.desc())
                    .offset(keep)
                    .limit(1)
                )
            ).first()
            if boundary is None:
                return 0

            # Rows inserted after the boundary was read are newer and survive
            result = await session.execute(
                delete(SearchLog)
                .where(
                    or_(
                        SearchLog.created_at < boundary.created_at,
                        and_(
                            SearchLog.created_at == boundary.created_at,
                            SearchLog.id <= boundary.id,
                        ),
                    )
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount

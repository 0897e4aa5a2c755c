"""Search log service: wires store, debounce cache, logger, analytics and retention.

The surrounding application owns one instance: start() on boot, stop() on
shutdown, and in-process calls in between (search endpoint → log, click
endpoint → record_click_through, scheduled job → clean_up).
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from searchlog.clock import Clock, SystemClock
from searchlog.config import Settings
from searchlog.config import settings as default_settings
from searchlog.models.search_log import SearchResultType, SearchType
from searchlog.schemas import LogResult, Period, SearchFilter, TermDetails, TrendingTerm
from searchlog.services.analytics import SearchAnalytics
from searchlog.services.debounce import DebounceCache
from searchlog.services.retention import RetentionManager
from searchlog.services.search_logger import SearchLogger
from searchlog.services.store import SearchLogStore

logger = logging.getLogger(__name__)


class SearchLogService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: DebounceCache | None = None,
        clock: Clock | None = None,
        settings: Settings | None = None,
    ):
        self.clock = clock or SystemClock()
        self.settings = settings or default_settings
        self.cache = cache or DebounceCache(
            ttl_seconds=self.settings.search_log_debounce_seconds,
            clock=self.clock,
            redis_url=self.settings.redis_url,
        )
        self.store = SearchLogStore(session_factory, clock=self.clock)
        self.logger = SearchLogger(self.store, self.cache, settings=self.settings)
        self.analytics = SearchAnalytics(session_factory, clock=self.clock, settings=self.settings)
        self.retention = RetentionManager(self.store, settings=self.settings)

    async def start(self, connect_redis: bool = True) -> bool:
        """Create tables and connect Redis. Returns True if the database is usable."""
        from searchlog.database import init_db

        bind = self.store.session_factory.kw.get("bind")
        db_ok = await init_db(bind)
        logger.info("Database: %s", "connected" if db_ok else "unavailable")

        if connect_redis:
            redis_ok = await self.cache.connect()
            logger.info("Redis: %s", "connected" if redis_ok else "unavailable (using in-memory fallback)")
        return db_ok

    async def stop(self):
        await self.cache.disconnect()
        logger.info("Search log service stopped")

    async def log(
        self,
        term: str,
        search_type: SearchType | str,
        ip_address: str | None = None,
        user_agent: str | None = None,
        user_id: int | None = None,
    ) -> LogResult:
        return await self.logger.log(
            term=term,
            search_type=search_type,
            ip_address=ip_address,
            user_agent=user_agent,
            user_id=user_id,
        )

    async def record_click_through(
        self,
        event_id: int,
        search_result_id: int,
        search_result_type: SearchResultType | str,
        ip_address: str | None = None,
        user_id: int | None = None,
    ) -> bool:
        return await self.store.record_click_through(
            event_id,
            search_result_id,
            SearchResultType(search_result_type),
            ip_address=ip_address,
            user_id=user_id,
        )

    async def term_details(
        self,
        term: str,
        period: Period | str = Period.WEEKLY,
        search_filter: SearchFilter | str = SearchFilter.ALL,
    ) -> TermDetails:
        return await self.analytics.term_details(term, period, search_filter)

    async def trending(
        self,
        period: Period | str = Period.ALL,
        search_type: SearchFilter | str = SearchFilter.ALL,
        limit: int | None = None,
    ) -> list[TrendingTerm]:
        return await self.analytics.trending(period, search_type=search_type, limit=limit)

    async def clean_up(self, max_size: int | None = None) -> int:
        return await self.retention.clean_up(max_size)

    async def clear_debounce_cache(self):
        await self.cache.clear_all()

"""Validates a search and creates or debounces its log row.

Flow:
  1. Validate search type, term and actor (no writes before this passes)
  2. Under the actor's debounce guard, look up the remembered log
  3. Hit  → overwrite term / search type / user agent in place → "updated"
     Miss → insert a new row → "created"
  4. Re-arm the debounce entry for a full window

Errors never escape: callers get LogResult(action="error", error=<reason>).
"""

import logging

from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from searchlog.config import Settings
from searchlog.config import settings as default_settings
from searchlog.exceptions import BlankTerm, SearchLogError, Unavailable
from searchlog.models.search_log import SearchType
from searchlog.schemas import LogAction, LogResult
from searchlog.services.debounce import DebounceCache, DebounceEntry, debounce_key
from searchlog.services.store import SearchLogStore

logger = logging.getLogger(__name__)


class SearchLogger:
    """Create-or-update entry point for search events."""

    def __init__(self, store: SearchLogStore, cache: DebounceCache, settings: Settings | None = None):
        self._store = store
        self._cache = cache
        self._settings = settings or default_settings

    async def log(
        self,
        term: str,
        search_type: SearchType | str,
        ip_address: str | None = None,
        user_agent: str | None = None,
        user_id: int | None = None,
    ) -> LogResult:
        try:
            search_type = SearchType.parse(search_type)
            term = _normalize_term(term)
            key = debounce_key(ip_address=ip_address, user_id=user_id)
        except SearchLogError as e:
            logger.info("Search log rejected | reason=%s | %s", e.reason, e)
            return LogResult(LogAction.ERROR, None, e.reason)

        # The user is the actor; the network address is not kept for them
        if user_id is not None:
            ip_address = None
        term = term[: self._settings.search_log_term_max_length]
        if user_agent:
            user_agent = user_agent[: self._settings.search_log_user_agent_max_length]

        try:
            async with self._cache.guard(key):
                entry = await self._cache.lookup(key)
                if entry and self._squashes(entry, term):
                    fields = {"term": term, "search_type": search_type}
                    if user_agent:
                        fields["user_agent"] = user_agent
                    record = await self._store.update(entry.event_id, **fields)
                    if record is not None:
                        await self._remember(key, record.id, term)
                        logger.info("Search log updated | id=%s | key=%s", record.id, key)
                        return LogResult(LogAction.UPDATED, record.id)
                    logger.debug("Debounced search log %s no longer exists", entry.event_id)

                record = await self._store.insert(
                    term=term,
                    search_type=search_type,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    user_id=user_id,
                )
                await self._remember(key, record.id, term)
                logger.info("Search log created | id=%s | key=%s", record.id, key)
                return LogResult(LogAction.CREATED, record.id)
        except (Unavailable, SQLAlchemyError, RedisError, OSError) as e:
            logger.warning("Search log unavailable | key=%s | %s", key, str(e)[:200])
            return LogResult(LogAction.ERROR, None, Unavailable.__name__)

    async def _remember(self, key: str, event_id: int, term: str):
        # The row is already committed; a lost entry only costs one extra row next time
        try:
            await self._cache.remember(key, event_id, term)
        except (RedisError, OSError) as e:
            logger.warning("Debounce entry not stored | key=%s | %s", key, str(e)[:100])

    def _squashes(self, entry: DebounceEntry, term: str) -> bool:
        """Whether a search inside the window replaces the remembered one."""
        if not self._settings.search_log_debounce_prefix_only:
            return True
        return term.lower().startswith(entry.term.lower())


def _normalize_term(term: str | None) -> str:
    term = (term or "").strip()
    if not term:
        raise BlankTerm("search term is blank")
    return term

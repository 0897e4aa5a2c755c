"""Caps the search log table at the configured size, oldest rows first."""

import logging

from searchlog.config import Settings
from searchlog.config import settings as default_settings
from searchlog.services.store import SearchLogStore

logger = logging.getLogger(__name__)


class RetentionManager:
    def __init__(self, store: SearchLogStore, settings: Settings | None = None):
        self._store = store
        self._settings = settings or default_settings

    async def clean_up(self, max_size: int | None = None) -> int:
        """Keep only the newest ``max_size`` logs. Returns how many were deleted.

        Without an explicit size the current ``search_query_log_max_size``
        setting is read on every call.
        """
        if max_size is None:
            max_size = self._settings.search_query_log_max_size
        if max_size < 0:
            raise ValueError(f"max_size must be >= 0, got {max_size}")

        deleted = await self._store.delete_oldest(keep=max_size)
        if deleted:
            logger.info("Search log clean-up | deleted=%d | max_size=%d", deleted, max_size)
        return deleted

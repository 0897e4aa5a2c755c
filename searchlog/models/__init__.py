"""SQLAlchemy ORM models."""

from searchlog.models.base import Base
from searchlog.models.search_log import SearchLog, SearchResultType, SearchType

__all__ = ["Base", "SearchLog", "SearchResultType", "SearchType"]

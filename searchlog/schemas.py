"""Result and query types shared by the logger and analytics.

Split into: logging outcome, query parameters, and analytics output.
"""

from __future__ import annotations

import enum
from datetime import date, datetime
from typing import Literal, NamedTuple

from pydantic import BaseModel, Field

from searchlog.models.search_log import SearchType


# ═══════════════ LOGGING OUTCOME ═══════════════

class LogAction(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    ERROR = "error"


class LogResult(NamedTuple):
    """Outcome of SearchLogger.log. Never carries an id on error."""

    action: LogAction
    event_id: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.action is not LogAction.ERROR


# ═══════════════ QUERY PARAMETERS ═══════════════

class Period(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    ALL = "all"


class SearchFilter(str, enum.Enum):
    """Population counted by term details and trending."""

    ALL = "all"
    HEADER = "header"
    FULL_PAGE = "full_page"
    CLICK_THROUGH_ONLY = "click_through_only"

    @property
    def search_type(self) -> SearchType | None:
        if self in (SearchFilter.HEADER, SearchFilter.FULL_PAGE):
            return SearchType(self.value)
        return None


# ═══════════════ ANALYTICS OUTPUT ═══════════════

class DataPoint(BaseModel):
    x: date
    y: int


class TermDetails(BaseModel):
    """Per-day counts for one term, ordered by date."""

    type: Literal["search_log_term"] = "search_log_term"
    term: str
    period: str
    start_date: datetime | None = None
    end_date: datetime
    data: list[DataPoint] = Field(default_factory=list)


class TrendingTerm(BaseModel):
    term: str
    searches: int
    click_through: int = 0

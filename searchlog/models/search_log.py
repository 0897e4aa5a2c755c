"""SearchLog model: one row per logged search after debouncing."""

import enum
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from searchlog.exceptions import InvalidSearchType
from searchlog.models.base import Base


class SearchType(str, enum.Enum):
    """Where in the UI the search was issued."""

    HEADER = "header"
    FULL_PAGE = "full_page"

    @classmethod
    def parse(cls, value: "SearchType | str | None") -> "SearchType":
        """Coerce a member or its string value; anything else is rejected."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise InvalidSearchType(f"unknown search type: {value!r}")


class SearchResultType(str, enum.Enum):
    """Kind of result a searcher clicked through to."""

    TOPIC = "topic"
    USER = "user"
    CATEGORY = "category"
    TAG = "tag"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class SearchLog(Base):
    """Persistent log of search events used for analytics."""

    __tablename__ = "search_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Sized by search_log_term_max_length; longer terms are cut before insert
    term: Mapped[str] = mapped_column(String(1000), nullable=False)
    search_type: Mapped[SearchType] = mapped_column(
        Enum(SearchType, native_enum=False, length=20, values_callable=_enum_values),
        nullable=False,
    )
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    user_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    search_result_type: Mapped[SearchResultType | None] = mapped_column(
        Enum(SearchResultType, native_enum=False, length=20, values_callable=_enum_values),
        nullable=True,
    )
    search_result_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("idx_search_logs_created_at_id", "created_at", "id"),
    )

    @property
    def is_click_through(self) -> bool:
        return self.search_result_id is not None

    def __repr__(self) -> str:
        return f"<SearchLog(id={self.id}, term={self.term!r}, type={self.search_type})>"

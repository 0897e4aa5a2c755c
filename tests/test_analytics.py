"""Tests for term details and trending."""

from datetime import date, datetime, timedelta, timezone

import pytest

from searchlog.models.search_log import SearchResultType, SearchType
from searchlog.schemas import Period, SearchFilter
from searchlog.services.analytics import SearchAnalytics, start_of


@pytest.fixture
def analytics(session_factory, clock, test_settings):
    return SearchAnalytics(session_factory, clock=clock, settings=test_settings)


async def _add(store, term, search_type=SearchType.HEADER, ip_address="127.0.0.1", user_id=None, created_at=None):
    return await store.insert(
        term=term,
        search_type=search_type,
        ip_address=None if user_id is not None else ip_address,
        user_id=user_id,
        created_at=created_at,
    )


# ═══════════════ Period windows ═══════════════


class TestStartOf:
    NOW = datetime(2019, 5, 23, 18, 15, 30, tzinfo=timezone.utc)

    def test_daily_is_midnight(self):
        assert start_of(Period.DAILY, self.NOW) == datetime(2019, 5, 23, tzinfo=timezone.utc)

    def test_bounded_windows_start_at_midnight(self):
        assert start_of(Period.WEEKLY, self.NOW) == datetime(2019, 5, 16, tzinfo=timezone.utc)
        assert start_of(Period.MONTHLY, self.NOW) == datetime(2019, 4, 23, tzinfo=timezone.utc)
        assert start_of(Period.QUARTERLY, self.NOW) == datetime(2019, 2, 22, tzinfo=timezone.utc)
        assert start_of(Period.YEARLY, self.NOW) == datetime(2018, 5, 23, tzinfo=timezone.utc)

    @pytest.mark.parametrize("period", ["daily", "weekly", "monthly", "quarterly", "yearly"])
    def test_same_start_all_day(self, period):
        early = datetime(2019, 5, 23, 0, 0, 1, tzinfo=timezone.utc)
        late = datetime(2019, 5, 23, 23, 59, 59, tzinfo=timezone.utc)
        assert start_of(period, early) == start_of(period, late)

    def test_all_is_unbounded(self):
        assert start_of("all", self.NOW) is None

    def test_unknown_period(self):
        with pytest.raises(ValueError):
            start_of("hourly", self.NOW)


# ═══════════════ Term details ═══════════════


class TestTermDetails:
    @pytest.mark.asyncio
    async def test_only_uses_the_date_for_the_period(self, analytics, store, clock):
        now = clock.now()
        log = await _add(store, "jabba", created_at=now - timedelta(hours=1))
        await _add(store, "jabba", ip_address="127.0.0.2", created_at=now + timedelta(hours=1))

        details = await analytics.term_details(log.term, "daily")
        assert len(details.data) == 1
        assert details.data[0].x == date(2019, 5, 23)
        assert details.data[0].y == 2

    @pytest.mark.asyncio
    async def test_correctly_returns_term_details(self, analytics, store):
        await _add(store, "ruby")
        await _add(store, "ruBy", user_id=1)
        await _add(store, "ruby core", ip_address="127.0.0.3")
        clicked = await _add(store, "ruBy", search_type=SearchType.FULL_PAGE, ip_address="127.0.0.2")

        term_details = await analytics.term_details("ruby")
        assert term_details.period == "weekly"
        assert term_details.data[0].y == 3

        term_header_details = await analytics.term_details("ruby", "all", "header")
        assert term_header_details.data[0].y == 2

        await store.record_click_through(clicked.id, 24, SearchResultType.TOPIC, ip_address="127.0.0.2")

        term_click_through_details = await analytics.term_details("ruby", Period.ALL, SearchFilter.CLICK_THROUGH_ONLY)
        assert term_click_through_details.period == "all"
        assert term_click_through_details.data[0].y == 1

    @pytest.mark.asyncio
    async def test_full_page_filter(self, analytics, store):
        await _add(store, "ruby")
        await _add(store, "ruby", search_type=SearchType.FULL_PAGE, ip_address="127.0.0.2")
        details = await analytics.term_details("RUBY", "all", "full_page")
        assert details.data[0].y == 1

    @pytest.mark.asyncio
    async def test_buckets_ordered_by_date_without_empty_days(self, analytics, store, clock):
        now = clock.now()
        await _add(store, "ruby", created_at=now - timedelta(days=3))
        await _add(store, "ruby", ip_address="127.0.0.2", created_at=now - timedelta(days=3, hours=2))
        await _add(store, "ruby", ip_address="127.0.0.3", created_at=now - timedelta(days=1))

        details = await analytics.term_details("ruby", "weekly")
        assert [(p.x, p.y) for p in details.data] == [
            (date(2019, 5, 20), 2),
            (date(2019, 5, 22), 1),
        ]

    @pytest.mark.asyncio
    async def test_window_excludes_older(self, analytics, store, clock):
        now = clock.now()
        await _add(store, "ruby", created_at=now - timedelta(days=10))
        await _add(store, "ruby", ip_address="127.0.0.2")

        weekly = await analytics.term_details("ruby", "weekly")
        assert sum(p.y for p in weekly.data) == 1

        monthly = await analytics.term_details("ruby", "monthly")
        assert sum(p.y for p in monthly.data) == 2

    @pytest.mark.asyncio
    async def test_oldest_day_counted_whole_at_any_hour(self, analytics, store, clock):
        await _add(store, "ruby", created_at=datetime(2019, 5, 16, 12, tzinfo=timezone.utc))

        clock.freeze(datetime(2019, 5, 23, 9, tzinfo=timezone.utc))
        morning = await analytics.term_details("ruby", "weekly")
        clock.freeze(datetime(2019, 5, 23, 18, tzinfo=timezone.utc))
        evening = await analytics.term_details("ruby", "weekly")

        assert morning.data == evening.data
        assert [(p.x, p.y) for p in evening.data] == [(date(2019, 5, 16), 1)]
        assert morning.start_date == evening.start_date

    @pytest.mark.asyncio
    async def test_non_ascii_term_matches_itself(self, analytics, store):
        await _add(store, "RÜBY")
        details = await analytics.term_details("RÜBY", "all")
        assert [p.y for p in details.data] == [1]

    @pytest.mark.asyncio
    async def test_unknown_term(self, analytics, store):
        await _add(store, "ruby")
        details = await analytics.term_details("python")
        assert details.data == []

    @pytest.mark.asyncio
    async def test_metadata(self, analytics, clock):
        details = await analytics.term_details("ruby", "monthly")
        assert details.type == "search_log_term"
        assert details.end_date == clock.now()
        assert details.start_date == datetime(2019, 4, 23, tzinfo=timezone.utc)
        assert details.model_dump()["period"] == "monthly"


# ═══════════════ Trending ═══════════════


@pytest.fixture
async def trending_logs(store):
    """ruby x3 (mixed case, three actors), php, java, swift."""
    logs = {
        "ruby_anon": await _add(store, "ruby", ip_address="127.0.0.1"),
        "php": await _add(store, "php", ip_address="127.0.0.4"),
        "java": await _add(store, "java", ip_address="127.0.0.5"),
        "ruby_user": await _add(store, "Ruby", user_id=1),
        "swift": await _add(store, "swift", ip_address="127.0.0.6"),
        "ruby_other": await _add(store, "ruby", ip_address="127.0.0.2"),
    }
    return logs


class TestTrending:
    @pytest.mark.asyncio
    async def test_counts_terms(self, analytics, trending_logs):
        trending = await analytics.trending()
        assert len(trending) == 4

    @pytest.mark.asyncio
    async def test_considers_time_period(self, analytics, store, clock):
        await _add(store, "ruby", ip_address="127.0.0.1")
        await _add(store, "php", ip_address="127.0.0.4")
        await _add(store, "java", ip_address="127.0.0.5")
        await _add(store, "swift", ip_address="127.0.0.6", created_at=clock.now() - timedelta(days=365))

        assert len(await analytics.trending()) == 4
        monthly = await analytics.trending(Period.MONTHLY)
        assert len(monthly) == 3
        assert "swift" not in [t.term for t in monthly]
        assert "swift" in [t.term for t in await analytics.trending("all")]

    @pytest.mark.asyncio
    async def test_correctly_returns_trending_data(self, analytics, store, trending_logs):
        top_trending = (await analytics.trending())[0]
        assert top_trending.term == "ruby"
        assert top_trending.searches == 3
        assert top_trending.click_through == 0

        await store.record_click_through(
            trending_logs["ruby_anon"].id, 12, SearchResultType.TOPIC, ip_address="127.0.0.1",
        )
        await store.record_click_through(
            trending_logs["ruby_user"].id, 12, SearchResultType.TOPIC, user_id=1,
        )
        await store.record_click_through(
            trending_logs["ruby_other"].id, 24, SearchResultType.TOPIC, ip_address="127.0.0.2",
        )
        top_trending = (await analytics.trending())[0]
        assert top_trending.click_through == 3

    @pytest.mark.asyncio
    async def test_ties_ordered_by_term(self, analytics, trending_logs):
        trending = await analytics.trending()
        assert [t.term for t in trending] == ["ruby", "java", "php", "swift"]
        assert [t.searches for t in trending] == [3, 1, 1, 1]

    @pytest.mark.asyncio
    async def test_limit(self, analytics, trending_logs):
        trending = await analytics.trending(limit=2)
        assert [t.term for t in trending] == ["ruby", "java"]

    @pytest.mark.asyncio
    async def test_search_type_filter(self, analytics, store, trending_logs):
        await _add(store, "kotlin", search_type=SearchType.FULL_PAGE, ip_address="127.0.0.9")
        full_page = await analytics.trending(search_type="full_page")
        assert [t.term for t in full_page] == ["kotlin"]

    @pytest.mark.asyncio
    async def test_trending_from_with_end_date(self, analytics, store, clock):
        now = clock.now()
        await _add(store, "ruby", created_at=now - timedelta(days=5))
        await _add(store, "ruby", ip_address="127.0.0.2", created_at=now - timedelta(days=2))
        await _add(store, "php", ip_address="127.0.0.3", created_at=now - timedelta(hours=1))

        window = await analytics.trending_from(now - timedelta(days=6), end_date=now - timedelta(days=1))
        assert [(t.term, t.searches) for t in window] == [("ruby", 2)]

    @pytest.mark.asyncio
    async def test_empty(self, analytics):
        assert await analytics.trending() == []

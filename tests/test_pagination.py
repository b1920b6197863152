"""Tests for pagination and the day/window helpers."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from activity_engine.services.pagination import end_of_day, ensure_utc, paginate, query_window


class TestPaginate:

    def test_pages_of_twenty_five(self):
        items = list(range(25))

        assert paginate(items, 1, 10).items == list(range(10))
        assert paginate(items, 3, 10).items == [20, 21, 22, 23, 24]
        assert paginate(items, 4, 10).items == []

    def test_page_metadata(self):
        page = paginate(list(range(25)), 2, 10)

        assert page.total == 25
        assert page.total_pages == 3
        assert page.has_more is True
        assert paginate(list(range(25)), 3, 10).has_more is False

    def test_empty_input(self):
        page = paginate([], 1, 10)
        assert page.items == []
        assert page.total_pages == 0

    @pytest.mark.parametrize("page,size", [(0, 10), (-1, 10), (1, 0)])
    def test_rejects_non_positive_arguments(self, page, size):
        with pytest.raises(ValueError):
            paginate([1, 2, 3], page, size)


class TestDayHelpers:

    def test_end_of_day_defaults_to_utc(self):
        assert end_of_day(date(2025, 3, 12)) == datetime(
            2025, 3, 12, 23, 59, 59, 999000, tzinfo=timezone.utc
        )

    def test_end_of_day_in_zone(self):
        tokyo = ZoneInfo("Asia/Tokyo")
        value = end_of_day(date(2025, 3, 12), tokyo)
        assert value.astimezone(timezone.utc) == datetime(
            2025, 3, 12, 14, 59, 59, 999000, tzinfo=timezone.utc
        )

    def test_query_window(self):
        now = datetime(2025, 3, 12, tzinfo=timezone.utc)
        assert query_window(now, 30) == now - timedelta(days=30)

    def test_ensure_utc(self):
        naive = datetime(2025, 3, 12, 8, 0)
        aware = datetime(2025, 3, 12, 8, 0, tzinfo=ZoneInfo("Europe/Paris"))

        assert ensure_utc(naive).tzinfo is timezone.utc
        assert ensure_utc(aware) is aware
        assert ensure_utc(None) is None

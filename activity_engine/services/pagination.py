"""Pagination and query-window helpers shared by the engine services."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Generic, Sequence, TypeVar

T = TypeVar("T")

# Last representable millisecond of a calendar day
END_OF_DAY = time(23, 59, 59, 999000)


@dataclass
class Page(Generic[T]):
    """One slice of an ordered result set."""
    items: list[T]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size

    @property
    def has_more(self) -> bool:
        return self.page * self.page_size < self.total


def paginate(items: Sequence[T], page: int, page_size: int) -> Page[T]:
    """
    Slice ``items`` into 1-indexed fixed-size pages.

    Page ``p`` holds items ``[(p-1)*size, p*size)``. A page past the end is
    an empty slice, not an error.
    """
    if page < 1:
        raise ValueError("page must be >= 1")
    if page_size < 1:
        raise ValueError("page_size must be >= 1")

    offset = (page - 1) * page_size
    return Page(
        items=list(items[offset:offset + page_size]),
        total=len(items),
        page=page,
        page_size=page_size,
    )


def query_window(now: datetime, days: int) -> datetime:
    """Lower bound of a lookback window ending at ``now``."""
    return now - timedelta(days=days)


def end_of_day(day: date, tz: tzinfo | None = None) -> datetime:
    """23:59:59.999 on ``day`` in ``tz`` (UTC when not given)."""
    return datetime.combine(day, END_OF_DAY, tzinfo=tz or timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes; some stores drop the offset on read."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value

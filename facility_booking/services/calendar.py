"""Service for building the month calendar view of bookings."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from datetime import date, timedelta

from dateutil.relativedelta import SU, relativedelta

from facility_booking.domain.models import Booking, CalendarDay, CalendarMonth
from facility_booking.services.conflicts import NON_BLOCKING_STATUSES

GRID_DAYS = 42  # six weeks


def shift_month(year: int, month: int, months: int) -> tuple[int, int]:
    """Return the (year, month) *months* away from the given month."""
    shifted = date(year, month, 1) + relativedelta(months=months)
    return shifted.year, shifted.month


def month_grid(
    year: int,
    month: int,
    bookings: Iterable[Booking],
    today: date,
    facility_colors: dict[str, str] | None = None,
) -> CalendarMonth:
    """Lay out a six-week, Sunday-first grid around the given month.

    Rejected and Canceled bookings are left off the grid. Each day's bookings
    are ordered by start time.
    """
    first = date(year, month, 1)
    grid_start = first + relativedelta(weekday=SU(-1))
    grid_end = grid_start + timedelta(days=GRID_DAYS)

    by_day: dict[date, list[Booking]] = defaultdict(list)
    for booking in bookings:
        if booking.status in NON_BLOCKING_STATUSES:
            continue
        if grid_start <= booking.date < grid_end:
            by_day[booking.date].append(booking)

    days = []
    for offset in range(GRID_DAYS):
        day = grid_start + timedelta(days=offset)
        days.append(
            CalendarDay(
                date=day,
                is_current_month=day.month == month,
                is_today=day == today,
                bookings=sorted(by_day.get(day, []), key=lambda b: b.start_time),
            )
        )

    prev_year, prev_month = shift_month(year, month, -1)
    next_year, next_month = shift_month(year, month, 1)
    return CalendarMonth(
        year=year,
        month=month,
        days=days,
        previous_month=f"{prev_year:04d}-{prev_month:02d}",
        next_month=f"{next_year:04d}-{next_month:02d}",
        facility_colors=facility_colors or {},
    )

"""Service for detecting scheduling conflicts between bookings."""

from __future__ import annotations

from collections.abc import Iterable

from facility_booking.domain.models import Booking, BookingDraft, BookingStatus, ConflictSet
from facility_booking.services.intervals import BUFFER_MINUTES, overlaps, to_minutes

NON_BLOCKING_STATUSES = frozenset({BookingStatus.REJECTED, BookingStatus.CANCELED})


def find_conflicts(
    candidate: Booking | BookingDraft,
    existing_bookings: Iterable[Booking],
    buffer_minutes: int = BUFFER_MINUTES,
    candidate_id: str | None = None,
) -> ConflictSet:
    """Return the existing bookings that clash with *candidate*, split by status.

    Bookings on another facility or date, Rejected/Canceled bookings and the
    candidate's own stored record are skipped. The rest are tested with the
    candidate's window widened by *buffer_minutes* on both sides.

    *candidate_id* excludes the record being edited; when omitted the
    candidate's own ``id`` attribute is used if it has one.
    """
    own_id = candidate_id if candidate_id is not None else getattr(candidate, "id", None)
    start = to_minutes(candidate.start_time)
    end = to_minutes(candidate.end_time)

    conflicts = ConflictSet()
    for booking in existing_bookings:
        if booking.facility_id != candidate.facility_id:
            continue
        if booking.date != candidate.date:
            continue
        if booking.status in NON_BLOCKING_STATUSES:
            continue
        if own_id is not None and booking.id == own_id:
            continue
        if not overlaps(
            start,
            end,
            to_minutes(booking.start_time),
            to_minutes(booking.end_time),
            buffer_minutes,
        ):
            continue

        if booking.status == BookingStatus.APPROVED:
            conflicts.approved_conflicts.append(booking)
        else:
            conflicts.pending_conflicts.append(booking)
    return conflicts

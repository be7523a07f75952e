"""Tests for the booking service: gate, lifecycle and visibility working together."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from facility_booking.domain.bus import EventBus
from facility_booking.domain.errors import (
    InvalidTransition,
    NotFoundError,
    PermissionDenied,
    StaleWriteError,
)
from facility_booking.domain.handlers import HandlerRegistry
from facility_booking.domain.models import (
    BookingDraft,
    BookingSort,
    BookingStatus,
    BookingUpdate,
    Facility,
    GateOutcome,
    HistoryEntryType,
    Session,
    User,
    UserRole,
)
from facility_booking.repos.memory import (
    BookingRepository,
    FacilityRepository,
    HistoryRepository,
)
from facility_booking.services.bookings import BookingService

_NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)
_DAY = date(2024, 5, 1)


def _session(username: str, role: UserRole = UserRole.USER) -> Session:
    user = User(
        full_name=username.title(),
        username=username,
        email=f"{username}@example.com",
        role=role,
        password_hash="h",
    )
    return Session(token=username, user=user, issued_at=_NOW, expires_at=_NOW + timedelta(hours=1))


@pytest.fixture()
def env():
    bus = EventBus()
    booking_repo = BookingRepository()
    facility_repo = FacilityRepository()
    history_repo = HistoryRepository()
    HandlerRegistry(bus=bus, booking_repo=booking_repo, history_repo=history_repo)

    class Env:
        pass

    e = Env()
    e.booking_repo = booking_repo
    e.history_repo = history_repo
    e.service = BookingService(booking_repo, facility_repo, bus)
    e.room_a = facility_repo.add(Facility(name="Room A"))
    e.hall = facility_repo.add(Facility(name="Main Hall"))
    e.admin = _session("admin", UserRole.ADMIN)
    e.alice = _session("alice")
    e.bob = _session("bob")
    return e


def _draft(env, start: str, end: str, facility=None, title: str = "Workshop") -> BookingDraft:
    return BookingDraft(
        event_title=title,
        facility_id=(facility or env.room_a).id,
        date=_DAY,
        start_time=start,
        end_time=end,
    )


def _approved(env, start: str, end: str):
    booking = env.service.submit(env.alice, _draft(env, start, end)).booking
    return env.service.change_status(env.admin, booking.id, BookingStatus.APPROVED)


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


def test_submit_creates_pending_booking(env):
    result = env.service.submit(env.alice, _draft(env, "09:00", "10:00"))

    assert result.decision.outcome == GateOutcome.PROCEED
    booking = result.booking
    assert booking.status == BookingStatus.PENDING
    assert booking.user_id == env.alice.user.id
    assert booking.requester_name == "Alice"
    assert env.booking_repo.get(booking.id) == booking
    history = env.history_repo.list_for_booking(booking.id)
    assert [h.type for h in history] == [HistoryEntryType.SUBMITTED]


def test_submit_unknown_facility(env):
    draft = BookingDraft(
        event_title="Nowhere",
        facility_id="missing",
        date=_DAY,
        start_time="09:00",
        end_time="10:00",
    )
    with pytest.raises(NotFoundError):
        env.service.submit(env.alice, draft)


def test_approved_scenario_hard_blocks(env):
    existing = _approved(env, "09:00", "10:00")

    result = env.service.submit(env.bob, _draft(env, "10:15", "11:00"), override=True)

    assert result.booking is None
    assert result.decision.outcome == GateOutcome.BLOCKED
    assert [b.id for b in result.decision.conflicts.approved_conflicts] == [existing.id]
    assert len(env.booking_repo.list_all()) == 1


def test_pending_scenario_clear(env):
    env.service.submit(env.alice, _draft(env, "13:00", "14:00"))

    result = env.service.submit(env.bob, _draft(env, "14:45", "15:30"))

    assert result.booking is not None


def test_pending_scenario_soft_block_then_override(env):
    existing = env.service.submit(env.alice, _draft(env, "13:00", "14:00")).booking

    first = env.service.submit(env.bob, _draft(env, "14:20", "15:00"))
    assert first.booking is None
    assert first.decision.outcome == GateOutcome.CONFIRMATION_REQUIRED

    second = env.service.submit(env.bob, _draft(env, "14:20", "15:00"), override=True)
    assert second.booking is not None
    assert second.decision.overridden

    history = env.history_repo.list_for_booking(second.booking.id)
    assert [h.type for h in history] == [HistoryEntryType.SUBMITTED, HistoryEntryType.OVERRIDDEN]
    assert history[1].payload == {"pending_conflict_ids": [existing.id]}


def test_other_facility_does_not_conflict(env):
    _approved(env, "09:00", "10:00")
    result = env.service.submit(env.bob, _draft(env, "09:00", "10:00", facility=env.hall))
    assert result.booking is not None


def test_cancelled_booking_frees_slot(env):
    booking = _approved(env, "09:00", "10:00")
    env.service.change_status(env.alice, booking.id, BookingStatus.CANCELED)

    result = env.service.submit(env.bob, _draft(env, "09:00", "10:00"))

    assert result.booking is not None


# ---------------------------------------------------------------------------
# Editing
# ---------------------------------------------------------------------------


def _update_from(booking, **changes) -> BookingUpdate:
    data = booking.model_dump(include={"facility_id", "date", "start_time", "end_time", "event_title", "equipment"})
    data.update(changes)
    return BookingUpdate(**data)


def test_edit_same_schedule_never_conflicts_with_itself(env):
    booking = _approved(env, "09:00", "10:00")

    result = env.service.edit(env.admin, booking.id, _update_from(booking, event_title="Renamed"))

    assert result.booking.event_title == "Renamed"
    assert result.decision.conflicts.approved_conflicts == []


def test_edit_shifting_over_own_old_window(env):
    booking = _approved(env, "09:00", "10:00")

    result = env.service.edit(env.admin, booking.id, _update_from(booking, start_time="09:15", end_time="10:15"))

    assert result.decision.outcome == GateOutcome.PROCEED
    assert not result.decision.conflicts.has_conflicts
    assert result.booking.start_time.minute == 15


def test_edit_moving_into_approved_slot_blocked(env):
    _approved(env, "09:00", "10:00")
    other = env.service.submit(env.bob, _draft(env, "13:00", "14:00")).booking

    result = env.service.edit(env.admin, other.id, _update_from(other, start_time="10:00", end_time="11:00"))

    assert result.decision.outcome == GateOutcome.BLOCKED
    assert env.booking_repo.get(other.id).start_time.hour == 13


def test_edit_is_admin_only(env):
    booking = env.service.submit(env.alice, _draft(env, "09:00", "10:00")).booking
    with pytest.raises(PermissionDenied):
        env.service.edit(env.alice, booking.id, _update_from(booking, event_title="Mine"))


def test_edit_terminal_booking_refused(env):
    booking = env.service.submit(env.alice, _draft(env, "09:00", "10:00")).booking
    env.service.change_status(env.admin, booking.id, BookingStatus.REJECTED)
    with pytest.raises(InvalidTransition):
        env.service.edit(env.admin, booking.id, _update_from(booking, event_title="Again"))


def test_edit_with_stale_version(env):
    booking = env.service.submit(env.alice, _draft(env, "09:00", "10:00")).booking
    env.service.edit(env.admin, booking.id, _update_from(booking, event_title="First"))

    with pytest.raises(StaleWriteError):
        env.service.edit(env.admin, booking.id, _update_from(booking, event_title="Second", version=1))


# ---------------------------------------------------------------------------
# Status changes
# ---------------------------------------------------------------------------


def test_owner_cancels_approved_booking(env):
    booking = _approved(env, "09:00", "10:00")

    cancelled = env.service.change_status(env.alice, booking.id, BookingStatus.CANCELED)

    assert cancelled.status == BookingStatus.CANCELED
    types = [h.type for h in env.history_repo.list_for_booking(booking.id)]
    assert types.count(HistoryEntryType.STATUS_CHANGED) == 2


def test_other_user_cannot_touch_booking(env):
    booking = env.service.submit(env.alice, _draft(env, "09:00", "10:00")).booking
    with pytest.raises(PermissionDenied):
        env.service.change_status(env.bob, booking.id, BookingStatus.CANCELED)


def test_reopening_cancelled_booking_refused(env):
    booking = env.service.submit(env.alice, _draft(env, "09:00", "10:00")).booking
    env.service.change_status(env.alice, booking.id, BookingStatus.CANCELED)
    with pytest.raises(InvalidTransition):
        env.service.change_status(env.admin, booking.id, BookingStatus.APPROVED)


def test_same_status_is_noop(env):
    booking = _approved(env, "09:00", "10:00")
    again = env.service.change_status(env.admin, booking.id, BookingStatus.APPROVED)
    assert again.version == booking.version


def test_delete_is_admin_only(env):
    booking = env.service.submit(env.alice, _draft(env, "09:00", "10:00")).booking
    with pytest.raises(PermissionDenied):
        env.service.delete(env.alice, booking.id)
    env.service.delete(env.admin, booking.id)
    assert env.booking_repo.get(booking.id) is None


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


def test_users_see_only_their_bookings(env):
    env.service.submit(env.alice, _draft(env, "09:00", "10:00"))
    env.service.submit(env.bob, _draft(env, "09:00", "10:00", facility=env.hall))

    assert len(env.service.list_for(env.alice)) == 1
    assert len(env.service.list_for(env.admin)) == 2


def test_filter_search_and_sort(env):
    first = env.service.submit(env.alice, _draft(env, "08:00", "09:00", title="Yoga")).booking
    second = env.service.submit(env.alice, _draft(env, "12:00", "13:00", title="Choir")).booking
    third = env.service.submit(env.alice, _draft(env, "09:00", "10:00", facility=env.hall, title="Gala")).booking
    env.service.change_status(env.admin, second.id, BookingStatus.APPROVED)
    for offset, booking in enumerate([first, second, third]):
        env.booking_repo._store[booking.id].created_at = _NOW + timedelta(minutes=offset)

    newest = env.service.list_for(env.alice)
    assert [b.id for b in newest] == [third.id, second.id, first.id]

    oldest = env.service.list_for(env.alice, sort=BookingSort.OLDEST)
    assert [b.id for b in oldest] == [first.id, second.id, third.id]

    by_status = env.service.list_for(env.alice, sort=BookingSort.STATUS)
    assert [b.status for b in by_status] == [
        BookingStatus.APPROVED,
        BookingStatus.PENDING,
        BookingStatus.PENDING,
    ]

    assert [b.id for b in env.service.list_for(env.alice, status=BookingStatus.APPROVED)] == [second.id]
    assert [b.id for b in env.service.list_for(env.alice, search="main hall")] == [third.id]
    assert [b.id for b in env.service.list_for(env.alice, search="yog")] == [first.id]
    assert [b.id for b in env.service.list_for(env.alice, search=second.id[:8].upper())] == [second.id]


def test_check_does_not_write(env):
    env.service.submit(env.alice, _draft(env, "13:00", "14:00"))

    decision = env.service.check(env.bob, _draft(env, "14:20", "15:00"))

    assert decision.outcome == GateOutcome.CONFIRMATION_REQUIRED
    assert len(env.booking_repo.list_all()) == 1

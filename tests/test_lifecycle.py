"""Tests for the booking status lifecycle and the history recorded through the bus."""

from __future__ import annotations

from datetime import date

import pytest

from facility_booking.domain import lifecycle
from facility_booking.domain.bus import EventBus
from facility_booking.domain.errors import InvalidTransition, PermissionDenied
from facility_booking.domain.events import (
    BookingDeleted,
    BookingStatusChanged,
    BookingSubmitted,
    BookingUpdated,
    ConflictOverridden,
)
from facility_booking.domain.handlers import HandlerRegistry
from facility_booking.domain.models import Booking, BookingStatus, HistoryEntryType
from facility_booking.repos.memory import BookingRepository, HistoryRepository

P = BookingStatus.PENDING
A = BookingStatus.APPROVED
R = BookingStatus.REJECTED
C = BookingStatus.CANCELED


# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("target", [A, R, C])
def test_admin_decides_pending(target):
    assert lifecycle.check_transition(P, target, is_admin=True, is_owner=False)


@pytest.mark.parametrize("target", [A, R])
def test_owner_cannot_decide_own_request(target):
    with pytest.raises(PermissionDenied):
        lifecycle.check_transition(P, target, is_admin=False, is_owner=True)


@pytest.mark.parametrize("current", [P, A])
def test_owner_can_cancel(current):
    assert lifecycle.check_transition(current, C, is_admin=False, is_owner=True)


def test_stranger_cannot_cancel():
    with pytest.raises(PermissionDenied):
        lifecycle.check_transition(A, C, is_admin=False, is_owner=False)


@pytest.mark.parametrize("current", [R, C])
@pytest.mark.parametrize("target", [P, A, R, C])
def test_terminal_states_are_final(current, target):
    with pytest.raises(InvalidTransition):
        lifecycle.check_transition(current, target, is_admin=True, is_owner=True)


@pytest.mark.parametrize("current", [A, R, C])
def test_nothing_returns_to_pending(current):
    with pytest.raises(InvalidTransition):
        lifecycle.check_transition(current, P, is_admin=True, is_owner=True)


def test_approved_cannot_be_rejected():
    with pytest.raises(InvalidTransition):
        lifecycle.check_transition(A, R, is_admin=True, is_owner=False)


@pytest.mark.parametrize("status", [P, A])
def test_resetting_live_status_is_noop(status):
    assert lifecycle.check_transition(status, status, is_admin=True, is_owner=False) is False


def test_terminal_and_initial_sets():
    assert lifecycle.TERMINAL_STATUSES == {R, C}
    assert lifecycle.INITIAL_STATUS == P
    assert lifecycle.allowed_targets(A) == {C}
    assert lifecycle.is_terminal(C)
    assert not lifecycle.is_terminal(A)


# ---------------------------------------------------------------------------
# History handlers
# ---------------------------------------------------------------------------


@pytest.fixture()
def env():
    """Fresh bus + repos + registry for each test."""
    bus = EventBus()
    booking_repo = BookingRepository()
    history_repo = HistoryRepository()
    registry = HandlerRegistry(bus=bus, booking_repo=booking_repo, history_repo=history_repo)

    class Env:
        pass

    e = Env()
    e.bus = bus
    e.booking_repo = booking_repo
    e.history_repo = history_repo
    e.registry = registry
    return e


def _make_booking() -> Booking:
    return Booking(
        user_id="u1",
        requester_name="Ada",
        event_title="Board meeting",
        facility_id="room-a",
        date=date(2024, 5, 1),
        start_time="09:00",
        end_time="10:00",
    )


def test_submitted_records_schedule(env):
    booking = env.booking_repo.add(_make_booking())

    env.bus.publish(BookingSubmitted(booking_id=booking.id, actor_id="u1"))

    entries = env.history_repo.list_for_booking(booking.id)
    assert len(entries) == 1
    assert entries[0].type == HistoryEntryType.SUBMITTED
    assert entries[0].payload == {
        "facility_id": "room-a",
        "date": "2024-05-01",
        "start_time": "09:00",
        "end_time": "10:00",
    }


def test_submitted_for_unknown_booking_is_ignored(env):
    env.bus.publish(BookingSubmitted(booking_id="missing", actor_id="u1"))
    assert env.history_repo.list_for_booking("missing") == []


def test_full_history_in_order(env):
    booking = env.booking_repo.add(_make_booking())

    env.bus.publish(BookingSubmitted(booking_id=booking.id, actor_id="u1"))
    env.bus.publish(ConflictOverridden(booking_id=booking.id, actor_id="u1", pending_conflict_ids=["b2"]))
    env.bus.publish(BookingUpdated(booking_id=booking.id, actor_id="admin", changed_fields=["event_title"]))
    env.bus.publish(BookingStatusChanged(booking_id=booking.id, actor_id="admin", old_status=P, new_status=A))
    env.bus.publish(BookingDeleted(booking_id=booking.id, actor_id="admin"))

    entries = env.history_repo.list_for_booking(booking.id)
    assert [e.type for e in entries] == [
        HistoryEntryType.SUBMITTED,
        HistoryEntryType.OVERRIDDEN,
        HistoryEntryType.UPDATED,
        HistoryEntryType.STATUS_CHANGED,
        HistoryEntryType.DELETED,
    ]
    assert entries[1].payload == {"pending_conflict_ids": ["b2"]}
    assert entries[3].payload == {"from": P, "to": A}
    assert entries[3].actor_id == "admin"

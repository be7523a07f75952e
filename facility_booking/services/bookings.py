"""Service for submitting, editing and deciding on booking requests.

Every write that creates a booking or moves it in time or space goes through
the write-policy gate first. Conflict outcomes come back as values in a
``BookingWriteResult``; only storage failures and lifecycle/permission
violations are raised.
"""

from __future__ import annotations

import logging

from facility_booking.domain import lifecycle
from facility_booking.domain.bus import EventBus
from facility_booking.domain.errors import InvalidTransition, NotFoundError, PermissionDenied
from facility_booking.domain.events import (
    BookingDeleted,
    BookingStatusChanged,
    BookingSubmitted,
    BookingUpdated,
    ConflictOverridden,
)
from facility_booking.domain.models import (
    Booking,
    BookingDraft,
    BookingSort,
    BookingStatus,
    BookingUpdate,
    BookingWriteResult,
    GateDecision,
    GateOutcome,
    Session,
)
from facility_booking.repos.memory import BookingRepository, FacilityRepository
from facility_booking.services import gate
from facility_booking.services.accounts import require_admin
from facility_booking.services.intervals import BUFFER_MINUTES

logger = logging.getLogger(__name__)

_SCHEDULE_FIELDS = ("facility_id", "date", "start_time", "end_time")
_EDITABLE_FIELDS = (*_SCHEDULE_FIELDS, "event_title", "requester_name", "equipment")


class BookingService:
    def __init__(
        self,
        booking_repo: BookingRepository,
        facility_repo: FacilityRepository,
        bus: EventBus,
        buffer_minutes: int = BUFFER_MINUTES,
    ) -> None:
        self.booking_repo = booking_repo
        self.facility_repo = facility_repo
        self.bus = bus
        self.buffer_minutes = buffer_minutes

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, session: Session, booking_id: str) -> Booking:
        booking = self.booking_repo.require(booking_id)
        if not self._can_see(session, booking):
            raise PermissionDenied("Cannot access another user's booking")
        return booking

    def list_for(
        self,
        session: Session,
        status: BookingStatus | None = None,
        search: str | None = None,
        sort: BookingSort = BookingSort.NEWEST,
    ) -> list[Booking]:
        """Bookings visible to the session's user, filtered and sorted.

        Users only see their own requests; admins see everything.
        """
        if session.user.is_admin:
            bookings = self.booking_repo.list_all()
        else:
            bookings = self.booking_repo.list_for_user(session.user.id)

        if status is not None:
            bookings = [b for b in bookings if b.status == status]

        if search:
            needle = search.strip().casefold()
            names = {f.id: f.name for f in self.facility_repo.list_all()}
            bookings = [
                b
                for b in bookings
                if needle in b.id.casefold()
                or needle in b.event_title.casefold()
                or needle in b.requester_name.casefold()
                or needle in names.get(b.facility_id, "").casefold()
            ]

        bookings.sort(key=lambda b: b.created_at, reverse=sort != BookingSort.OLDEST)
        if sort == BookingSort.STATUS:
            bookings.sort(key=lambda b: b.status.value)
        return bookings

    def check(
        self,
        session: Session,
        draft: BookingDraft,
        booking_id: str | None = None,
    ) -> GateDecision:
        """Pre-flight: what the gate would decide for *draft*, without writing."""
        self._require_facility(draft.facility_id)
        if booking_id is not None:
            self.get(session, booking_id)
        return gate.evaluate(
            draft,
            self.booking_repo.list_all(),
            buffer_minutes=self.buffer_minutes,
            candidate_id=booking_id,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def submit(
        self, session: Session, draft: BookingDraft, override: bool = False
    ) -> BookingWriteResult:
        """Create a Pending booking owned by the session's user if the gate allows it."""
        self._require_facility(draft.facility_id)
        decision = gate.evaluate(
            draft,
            self.booking_repo.list_all(),
            override=override,
            buffer_minutes=self.buffer_minutes,
        )
        if not decision.allowed:
            logger.info("Submission by %s refused: %s", session.user.username, decision.outcome)
            return BookingWriteResult(decision=decision)

        booking = Booking(
            user_id=session.user.id,
            requester_name=draft.requester_name or session.user.full_name,
            event_title=draft.event_title,
            facility_id=draft.facility_id,
            date=draft.date,
            start_time=draft.start_time,
            end_time=draft.end_time,
            equipment=list(draft.equipment),
            status=lifecycle.INITIAL_STATUS,
        )
        stored = self.booking_repo.add(booking)

        self.bus.publish(BookingSubmitted(booking_id=stored.id, actor_id=session.user.id))
        self._publish_override(stored, decision, session)
        return BookingWriteResult(decision=decision, booking=stored)

    def edit(
        self,
        session: Session,
        booking_id: str,
        changes: BookingUpdate,
        override: bool = False,
    ) -> BookingWriteResult:
        """Replace a booking's editable fields. Admin only.

        The gate runs only when the facility, date or time window changes,
        and never compares the booking with its own stored record.
        """
        require_admin(session)
        current = self.booking_repo.require(booking_id)
        if lifecycle.is_terminal(current.status):
            raise InvalidTransition(
                current.status,
                current.status,
                f"Booking is {current.status} and can no longer be edited",
            )
        self._require_facility(changes.facility_id)

        updates = {
            "facility_id": changes.facility_id,
            "date": changes.date,
            "start_time": changes.start_time,
            "end_time": changes.end_time,
            "event_title": changes.event_title,
            "requester_name": changes.requester_name or current.requester_name,
            "equipment": list(changes.equipment),
        }
        changed = [f for f in _EDITABLE_FIELDS if getattr(current, f) != updates[f]]

        decision = GateDecision(outcome=GateOutcome.PROCEED)
        if any(f in changed for f in _SCHEDULE_FIELDS):
            decision = gate.evaluate(
                changes,
                self.booking_repo.list_all(),
                override=override,
                buffer_minutes=self.buffer_minutes,
                candidate_id=booking_id,
            )
            if not decision.allowed:
                return BookingWriteResult(decision=decision)

        if changes.version is not None:
            updates["version"] = changes.version
        stored = self.booking_repo.update(current.model_copy(update=updates))

        self.bus.publish(
            BookingUpdated(
                booking_id=stored.id, actor_id=session.user.id, changed_fields=changed
            )
        )
        self._publish_override(stored, decision, session)
        return BookingWriteResult(decision=decision, booking=stored)

    def change_status(
        self, session: Session, booking_id: str, status: BookingStatus
    ) -> Booking:
        booking = self.get(session, booking_id)
        must_change = lifecycle.check_transition(
            booking.status,
            status,
            is_admin=session.user.is_admin,
            is_owner=booking.user_id == session.user.id,
        )
        if not must_change:
            return booking

        old_status = booking.status
        stored = self.booking_repo.update(booking.model_copy(update={"status": status}))
        self.bus.publish(
            BookingStatusChanged(
                booking_id=stored.id,
                actor_id=session.user.id,
                old_status=old_status,
                new_status=status,
            )
        )
        return stored

    def delete(self, session: Session, booking_id: str) -> None:
        require_admin(session)
        self.booking_repo.delete(booking_id)
        self.bus.publish(BookingDeleted(booking_id=booking_id, actor_id=session.user.id))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _can_see(session: Session, booking: Booking) -> bool:
        return session.user.is_admin or booking.user_id == session.user.id

    def _require_facility(self, facility_id: str) -> None:
        if self.facility_repo.get(facility_id) is None:
            raise NotFoundError("Facility", facility_id)

    def _publish_override(
        self, booking: Booking, decision: GateDecision, session: Session
    ) -> None:
        if not decision.overridden:
            return
        self.bus.publish(
            ConflictOverridden(
                booking_id=booking.id,
                actor_id=session.user.id,
                pending_conflict_ids=[b.id for b in decision.conflicts.pending_conflicts],
            )
        )

"""In-memory repositories for bookings, facilities, users and booking history."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

from facility_booking.domain.errors import (
    ApprovedOverlapError,
    NotFoundError,
    StaleWriteError,
)
from facility_booking.domain.models import (
    Booking,
    BookingStatus,
    Facility,
    HistoryEntry,
    User,
    UserRole,
)
from facility_booking.security import get_password_hash
from facility_booking.services.intervals import overlaps, to_minutes


class BookingRepository:
    """Dict-backed store for Booking instances, keyed by id.

    Records are copied in and out so callers can only change stored state
    through ``update``. Reads and writes run under a lock. Writes enforce two
    constraints: the caller's ``version`` must match the stored one, and no
    two Approved bookings may overlap on the same facility and date.
    """

    def __init__(self) -> None:
        self._store: dict[str, Booking] = {}
        self._lock = threading.Lock()

    def add(self, booking: Booking) -> Booking:
        with self._lock:
            self._check_approved_overlap(booking)
            stored = booking.model_copy(deep=True)
            self._store[stored.id] = stored
            return stored.model_copy(deep=True)

    def get(self, booking_id: str) -> Booking | None:
        with self._lock:
            booking = self._store.get(booking_id)
            return booking.model_copy(deep=True) if booking is not None else None

    def require(self, booking_id: str) -> Booking:
        booking = self.get(booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        return booking

    def list_all(self) -> list[Booking]:
        with self._lock:
            snapshot = list(self._store.values())
        return [b.model_copy(deep=True) for b in snapshot]

    def list_for_user(self, user_id: str) -> list[Booking]:
        return [b for b in self.list_all() if b.user_id == user_id]

    def list_for_facility(self, facility_id: str) -> list[Booking]:
        return [b for b in self.list_all() if b.facility_id == facility_id]

    def update(self, booking: Booking) -> Booking:
        """Replace the stored record, bumping its version."""
        with self._lock:
            current = self._store.get(booking.id)
            if current is None:
                raise NotFoundError("Booking", booking.id)
            if booking.version != current.version:
                raise StaleWriteError(booking.id, booking.version, current.version)
            self._check_approved_overlap(booking)
            stored = booking.model_copy(deep=True, update={"version": current.version + 1})
            self._store[stored.id] = stored
            return stored.model_copy(deep=True)

    def delete(self, booking_id: str) -> None:
        with self._lock:
            if self._store.pop(booking_id, None) is None:
                raise NotFoundError("Booking", booking_id)

    def _check_approved_overlap(self, booking: Booking) -> None:
        # caller holds self._lock
        if booking.status != BookingStatus.APPROVED:
            return
        start, end = to_minutes(booking.start_time), to_minutes(booking.end_time)
        clashing = [
            other.id
            for other in self._store.values()
            if other.id != booking.id
            and other.status == BookingStatus.APPROVED
            and other.facility_id == booking.facility_id
            and other.date == booking.date
            and overlaps(
                start, end, to_minutes(other.start_time), to_minutes(other.end_time), 0
            )
        ]
        if clashing:
            raise ApprovedOverlapError(booking.id, clashing)


class FacilityRepository:
    """Dict-backed store for Facility instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Facility] = {}
        self._lock = threading.Lock()

    def add(self, facility: Facility) -> Facility:
        with self._lock:
            self._store[facility.id] = facility
        return facility

    def get(self, facility_id: str) -> Facility | None:
        with self._lock:
            return self._store.get(facility_id)

    def get_by_name(self, name: str) -> Facility | None:
        wanted = name.strip().casefold()
        for facility in self.list_all():
            if facility.name.strip().casefold() == wanted:
                return facility
        return None

    def list_all(self) -> list[Facility]:
        with self._lock:
            snapshot = list(self._store.values())
        return sorted(snapshot, key=lambda f: f.created_at)

    def update(self, facility: Facility) -> Facility:
        with self._lock:
            if facility.id not in self._store:
                raise NotFoundError("Facility", facility.id)
            self._store[facility.id] = facility
        return facility

    def delete(self, facility_id: str) -> None:
        with self._lock:
            if self._store.pop(facility_id, None) is None:
                raise NotFoundError("Facility", facility_id)


class UserRepository:
    """Dict-backed store for User accounts, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, User] = {}
        self._lock = threading.Lock()

    def add(self, user: User) -> User:
        with self._lock:
            self._store[user.id] = user
        return user

    def get(self, user_id: str) -> User | None:
        with self._lock:
            return self._store.get(user_id)

    def get_by_username(self, username: str) -> User | None:
        for user in self.list_all():
            if user.username == username:
                return user
        return None

    def list_all(self) -> list[User]:
        with self._lock:
            snapshot = list(self._store.values())
        return sorted(snapshot, key=lambda u: u.created_at, reverse=True)

    def update(self, user: User) -> User:
        with self._lock:
            if user.id not in self._store:
                raise NotFoundError("User", user.id)
            self._store[user.id] = user
        return user

    def delete(self, user_id: str) -> None:
        with self._lock:
            if self._store.pop(user_id, None) is None:
                raise NotFoundError("User", user_id)


class HistoryRepository:
    """List-backed store for HistoryEntry instances."""

    def __init__(self) -> None:
        self._entries: list[HistoryEntry] = []
        self._lock = threading.Lock()

    def add(self, entry: HistoryEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def list_for_booking(self, booking_id: str) -> list[HistoryEntry]:
        with self._lock:
            entries = [e for e in self._entries if e.booking_id == booking_id]
        return sorted(entries, key=lambda e: e.timestamp)


# ---------------------------------------------------------------------------
# Seed data: an admin account and two rooms for local runs
# ---------------------------------------------------------------------------


def seed_demo_data(
    user_repo: UserRepository,
    facility_repo: FacilityRepository,
    admin_password: str = "admin",
) -> None:
    now = datetime.now(timezone.utc)

    if user_repo.get_by_username("admin") is None:
        user_repo.add(
            User(
                full_name="Facility Administrator",
                username="admin",
                email="admin@example.com",
                role=UserRole.ADMIN,
                password_hash=get_password_hash(admin_password),
                created_at=now,
            )
        )

    for offset, (name, equipment, color) in enumerate(
        [
            ("Room A", ["Projector", "Whiteboard"], "#3b82f6"),
            ("Main Hall", ["Sound system", "Stage lighting"], "#10b981"),
        ]
    ):
        if facility_repo.get_by_name(name) is None:
            facility_repo.add(
                Facility(
                    name=name,
                    equipment=equipment,
                    background_color=color,
                    created_at=now + timedelta(microseconds=offset),
                )
            )

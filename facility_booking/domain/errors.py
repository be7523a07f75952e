"""Exceptions raised by the booking domain, services and repositories."""

from __future__ import annotations


class BookingError(Exception):
    """Base class for every error raised by this package."""


class InvalidTimeFormat(BookingError, ValueError):
    """A wall-clock time could not be parsed as ``HH:MM``."""

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"Invalid time {value!r}: expected HH:MM")


class InvalidTransition(BookingError):
    """A status change not allowed by the booking lifecycle."""

    def __init__(self, current: str, target: str, message: str | None = None) -> None:
        self.current = current
        self.target = target
        super().__init__(message or f"Cannot move booking from {current} to {target}")


class PermissionDenied(BookingError):
    pass


class AuthenticationError(BookingError):
    pass


class NotFoundError(BookingError):
    def __init__(self, kind: str, record_id: str) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} not found: {record_id}")


class UsernameTaken(BookingError):
    def __init__(self, username: str) -> None:
        self.username = username
        super().__init__(f"Username already exists: {username}")


class FacilityInUse(BookingError):
    def __init__(self, facility_name: str, booking_count: int) -> None:
        self.facility_name = facility_name
        self.booking_count = booking_count
        super().__init__(
            f"Facility {facility_name!r} still has {booking_count} active booking(s)"
        )


class StorageError(BookingError):
    """A write refused or failed at the storage layer."""


class StaleWriteError(StorageError):
    def __init__(self, record_id: str, expected: int, actual: int) -> None:
        self.record_id = record_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Booking {record_id} was modified concurrently "
            f"(version {expected}, stored {actual})"
        )


class ApprovedOverlapError(StorageError):
    def __init__(self, record_id: str, other_ids: list[str]) -> None:
        self.record_id = record_id
        self.other_ids = other_ids
        super().__init__(
            f"Booking {record_id} overlaps approved booking(s): {', '.join(other_ids)}"
        )


class FacilityNameTaken(BookingError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"A facility named {name!r} already exists")

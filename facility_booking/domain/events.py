"""Domain events emitted during the booking lifecycle."""

from __future__ import annotations

from pydantic import BaseModel, Field

from facility_booking.domain.models import BookingStatus


class BookingSubmitted(BaseModel):
    """Fired when a new booking request has been stored as Pending."""

    booking_id: str
    actor_id: str


class BookingUpdated(BaseModel):
    """Fired when a booking's fields are replaced by an edit."""

    booking_id: str
    actor_id: str
    changed_fields: list[str] = Field(default_factory=list)


class BookingStatusChanged(BaseModel):
    """Fired after a lifecycle transition (approve, reject, cancel)."""

    booking_id: str
    actor_id: str
    old_status: BookingStatus
    new_status: BookingStatus


class ConflictOverridden(BaseModel):
    """Fired when a write went ahead despite pending conflicts."""

    booking_id: str
    actor_id: str
    pending_conflict_ids: list[str]


class BookingDeleted(BaseModel):
    """Fired when an admin removes a booking."""

    booking_id: str
    actor_id: str

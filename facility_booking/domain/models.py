"""Domain models for the facility booking system."""

from __future__ import annotations

import uuid
from datetime import date as Date
from datetime import datetime, time, timezone
from enum import StrEnum

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator

from facility_booking.services.intervals import format_time, parse_time_of_day

_HEX_COLOR = r"^#[0-9a-fA-F]{6}$"


class BookingStatus(StrEnum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    CANCELED = "Canceled"


class UserRole(StrEnum):
    USER = "USER"
    ADMIN = "ADMIN"


class HistoryEntryType(StrEnum):
    SUBMITTED = "submitted"
    UPDATED = "updated"
    STATUS_CHANGED = "status_changed"
    OVERRIDDEN = "overridden"
    DELETED = "deleted"


class GateOutcome(StrEnum):
    PROCEED = "proceed"
    CONFIRMATION_REQUIRED = "confirmation_required"
    BLOCKED = "blocked"


class BookingSort(StrEnum):
    NEWEST = "newest"
    OLDEST = "oldest"
    STATUS = "status"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Schedule mixin
# ---------------------------------------------------------------------------


class _Schedule(BaseModel):
    """Facility, date and time window shared by bookings and their drafts."""

    facility_id: str
    date: Date
    start_time: time
    end_time: time

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _parse_hhmm(cls, value: object) -> time:
        return parse_time_of_day(value)

    @field_serializer("start_time", "end_time")
    def _dump_hhmm(self, value: time) -> str:
        return format_time(value)

    @model_validator(mode="after")
    def _end_after_start(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


# ---------------------------------------------------------------------------
# Core domain models
# ---------------------------------------------------------------------------


class Booking(_Schedule):
    id: str = Field(default_factory=_new_id)
    user_id: str
    requester_name: str
    event_title: str
    equipment: list[str] = Field(default_factory=list)
    status: BookingStatus = BookingStatus.PENDING
    created_at: datetime = Field(default_factory=_utcnow)
    version: int = 1


class Facility(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str = Field(min_length=1)
    equipment: list[str] = Field(default_factory=list)
    background_color: str = Field(default="#3b82f6", pattern=_HEX_COLOR)
    created_at: datetime = Field(default_factory=_utcnow)


class User(BaseModel):
    id: str = Field(default_factory=_new_id)
    full_name: str
    username: str
    email: str
    role: UserRole = UserRole.USER
    password_hash: str
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class Session(BaseModel):
    """An authenticated login, passed explicitly to every operation that needs identity."""

    token: str
    user: User
    issued_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class HistoryEntry(BaseModel):
    id: str = Field(default_factory=_new_id)
    booking_id: str
    timestamp: datetime = Field(default_factory=_utcnow)
    type: HistoryEntryType
    actor_id: str | None = None
    payload: dict = Field(default_factory=dict)


class ConflictSet(BaseModel):
    approved_conflicts: list[Booking] = Field(default_factory=list)
    pending_conflicts: list[Booking] = Field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.approved_conflicts or self.pending_conflicts)

    @property
    def is_blocking(self) -> bool:
        return bool(self.approved_conflicts)


class GateDecision(BaseModel):
    outcome: GateOutcome
    conflicts: ConflictSet = Field(default_factory=ConflictSet)
    overridden: bool = False

    @property
    def allowed(self) -> bool:
        return self.outcome == GateOutcome.PROCEED


class BookingWriteResult(BaseModel):
    """Outcome of a create or edit: the gate decision and, if it proceeded, the stored booking."""

    decision: GateDecision
    booking: Booking | None = None


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class BookingDraft(_Schedule):
    event_title: str = Field(min_length=1)
    requester_name: str | None = None
    equipment: list[str] = Field(default_factory=list)


class BookingUpdate(BookingDraft):
    version: int | None = None


class StatusChangeRequest(BaseModel):
    status: BookingStatus


class ConflictReport(BaseModel):
    outcome: GateOutcome
    can_override: bool
    approved_conflicts: list[Booking] = Field(default_factory=list)
    pending_conflicts: list[Booking] = Field(default_factory=list)

    @classmethod
    def from_decision(cls, decision: GateDecision) -> ConflictReport:
        return cls(
            outcome=decision.outcome,
            can_override=decision.outcome == GateOutcome.CONFIRMATION_REQUIRED,
            approved_conflicts=decision.conflicts.approved_conflicts,
            pending_conflicts=decision.conflicts.pending_conflicts,
        )


class FacilityCreate(BaseModel):
    name: str = Field(min_length=1)
    equipment: list[str] = Field(default_factory=list)
    background_color: str | None = Field(default=None, pattern=_HEX_COLOR)


class UserPublic(BaseModel):
    id: str
    full_name: str
    username: str
    email: str
    role: UserRole
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> UserPublic:
        return cls.model_validate(user.model_dump(exclude={"password_hash"}))


class UserCreate(BaseModel):
    full_name: str = Field(min_length=1)
    username: str = Field(min_length=1)
    email: str
    role: UserRole = UserRole.USER
    password: str = Field(min_length=1)


class UserUpdate(BaseModel):
    full_name: str = Field(min_length=1)
    email: str
    role: UserRole | None = None
    password: str | None = None


class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    token: str
    expires_at: datetime
    user: UserPublic


class CalendarDay(BaseModel):
    date: Date
    is_current_month: bool
    is_today: bool
    bookings: list[Booking] = Field(default_factory=list)


class CalendarMonth(BaseModel):
    year: int
    month: int
    days: list[CalendarDay]
    previous_month: str
    next_month: str
    facility_colors: dict[str, str] = Field(default_factory=dict)

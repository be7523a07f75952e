"""Booking status lifecycle: the transition table and who may take each edge."""

from __future__ import annotations

from facility_booking.domain.errors import InvalidTransition, PermissionDenied
from facility_booking.domain.models import BookingStatus

ADMIN = "admin"
OWNER = "owner"

# current -> target -> actors allowed to make the move
TRANSITIONS: dict[BookingStatus, dict[BookingStatus, frozenset[str]]] = {
    BookingStatus.PENDING: {
        BookingStatus.APPROVED: frozenset({ADMIN}),
        BookingStatus.REJECTED: frozenset({ADMIN}),
        BookingStatus.CANCELED: frozenset({ADMIN, OWNER}),
    },
    BookingStatus.APPROVED: {
        BookingStatus.CANCELED: frozenset({ADMIN, OWNER}),
    },
    BookingStatus.REJECTED: {},
    BookingStatus.CANCELED: {},
}

INITIAL_STATUS = BookingStatus.PENDING
TERMINAL_STATUSES = frozenset(
    status for status, targets in TRANSITIONS.items() if not targets
)


def is_terminal(status: BookingStatus) -> bool:
    return status in TERMINAL_STATUSES


def allowed_targets(status: BookingStatus) -> set[BookingStatus]:
    return set(TRANSITIONS[status])


def check_transition(
    current: BookingStatus,
    target: BookingStatus,
    *,
    is_admin: bool,
    is_owner: bool,
) -> bool:
    """Validate moving a booking from *current* to *target*.

    Returns ``False`` when the move is a no-op (re-setting a non-terminal
    status) and ``True`` when the status must change. Raises
    ``InvalidTransition`` for moves absent from the table, including any move
    out of Rejected or Canceled, and ``PermissionDenied`` when the actor holds
    neither of the roles the edge requires.
    """
    if current == target and not is_terminal(current):
        return False

    actors = TRANSITIONS[current].get(target)
    if actors is None:
        raise InvalidTransition(current, target)

    if (is_admin and ADMIN in actors) or (is_owner and OWNER in actors):
        return True
    raise PermissionDenied(f"Not allowed to move booking from {current} to {target}")

"""Write-policy gate run before a booking's schedule is created or changed."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from facility_booking.domain.models import (
    Booking,
    BookingDraft,
    ConflictSet,
    GateDecision,
    GateOutcome,
)
from facility_booking.services.conflicts import find_conflicts
from facility_booking.services.intervals import BUFFER_MINUTES

logger = logging.getLogger(__name__)


def decide(conflicts: ConflictSet, override: bool = False) -> GateDecision:
    """Turn a conflict set into a write decision.

    Approved conflicts always block. Pending-only conflicts block unless the
    caller has confirmed with *override*.
    """
    if conflicts.approved_conflicts:
        return GateDecision(outcome=GateOutcome.BLOCKED, conflicts=conflicts)
    if conflicts.pending_conflicts:
        if override:
            return GateDecision(
                outcome=GateOutcome.PROCEED, conflicts=conflicts, overridden=True
            )
        return GateDecision(
            outcome=GateOutcome.CONFIRMATION_REQUIRED, conflicts=conflicts
        )
    return GateDecision(outcome=GateOutcome.PROCEED, conflicts=conflicts)


def evaluate(
    candidate: Booking | BookingDraft,
    existing_bookings: Iterable[Booking],
    override: bool = False,
    buffer_minutes: int = BUFFER_MINUTES,
    candidate_id: str | None = None,
) -> GateDecision:
    """Run the conflict resolver for *candidate* and apply the write policy."""
    conflicts = find_conflicts(
        candidate,
        existing_bookings,
        buffer_minutes=buffer_minutes,
        candidate_id=candidate_id,
    )
    decision = decide(conflicts, override=override)

    if decision.outcome == GateOutcome.BLOCKED:
        logger.info(
            "Write blocked by approved booking(s) %s on facility %s %s",
            [b.id for b in conflicts.approved_conflicts],
            candidate.facility_id,
            candidate.date,
        )
    elif decision.outcome == GateOutcome.CONFIRMATION_REQUIRED:
        logger.info(
            "Write needs confirmation: pending booking(s) %s on facility %s %s",
            [b.id for b in conflicts.pending_conflicts],
            candidate.facility_id,
            candidate.date,
        )
    elif decision.overridden:
        logger.warning(
            "Pending conflict(s) %s overridden on facility %s %s",
            [b.id for b in conflicts.pending_conflicts],
            candidate.facility_id,
            candidate.date,
        )
    return decision

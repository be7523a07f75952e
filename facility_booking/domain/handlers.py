"""Domain event handlers, wired up when the service container is built."""

from __future__ import annotations

import logging

from facility_booking.domain.bus import EventBus
from facility_booking.domain.events import (
    BookingDeleted,
    BookingStatusChanged,
    BookingSubmitted,
    BookingUpdated,
    ConflictOverridden,
)
from facility_booking.domain.models import HistoryEntry, HistoryEntryType
from facility_booking.repos.memory import BookingRepository, HistoryRepository

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Wires domain-event handlers to the bus with access to the repositories."""

    def __init__(
        self,
        bus: EventBus,
        booking_repo: BookingRepository,
        history_repo: HistoryRepository,
    ) -> None:
        self.bus = bus
        self.booking_repo = booking_repo
        self.history_repo = history_repo
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(BookingSubmitted, self.on_booking_submitted)
        self.bus.subscribe(BookingUpdated, self.on_booking_updated)
        self.bus.subscribe(BookingStatusChanged, self.on_status_changed)
        self.bus.subscribe(ConflictOverridden, self.on_conflict_overridden)
        self.bus.subscribe(BookingDeleted, self.on_booking_deleted)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_booking_submitted(self, event: BookingSubmitted) -> None:
        stored = self.booking_repo.get(event.booking_id)
        if stored is None:
            return

        self.history_repo.add(
            HistoryEntry(
                booking_id=event.booking_id,
                type=HistoryEntryType.SUBMITTED,
                actor_id=event.actor_id,
                payload={
                    "facility_id": stored.facility_id,
                    "date": stored.date.isoformat(),
                    "start_time": stored.start_time.strftime("%H:%M"),
                    "end_time": stored.end_time.strftime("%H:%M"),
                },
            )
        )
        logger.info(
            "Booking %s submitted by %s for facility %s on %s",
            stored.id,
            event.actor_id,
            stored.facility_id,
            stored.date,
        )

    def on_booking_updated(self, event: BookingUpdated) -> None:
        self.history_repo.add(
            HistoryEntry(
                booking_id=event.booking_id,
                type=HistoryEntryType.UPDATED,
                actor_id=event.actor_id,
                payload={"changed_fields": event.changed_fields},
            )
        )
        logger.info(
            "Booking %s updated by %s: %s",
            event.booking_id,
            event.actor_id,
            ", ".join(event.changed_fields) or "no changes",
        )

    def on_status_changed(self, event: BookingStatusChanged) -> None:
        self.history_repo.add(
            HistoryEntry(
                booking_id=event.booking_id,
                type=HistoryEntryType.STATUS_CHANGED,
                actor_id=event.actor_id,
                payload={"from": event.old_status, "to": event.new_status},
            )
        )
        logger.info(
            "Booking %s moved %s -> %s by %s",
            event.booking_id,
            event.old_status,
            event.new_status,
            event.actor_id,
        )

    def on_conflict_overridden(self, event: ConflictOverridden) -> None:
        self.history_repo.add(
            HistoryEntry(
                booking_id=event.booking_id,
                type=HistoryEntryType.OVERRIDDEN,
                actor_id=event.actor_id,
                payload={"pending_conflict_ids": event.pending_conflict_ids},
            )
        )

    def on_booking_deleted(self, event: BookingDeleted) -> None:
        self.history_repo.add(
            HistoryEntry(
                booking_id=event.booking_id,
                type=HistoryEntryType.DELETED,
                actor_id=event.actor_id,
            )
        )
        logger.info("Booking %s deleted by %s", event.booking_id, event.actor_id)

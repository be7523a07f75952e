"""Service for the facility catalog."""

from __future__ import annotations

import logging

from facility_booking.domain.errors import FacilityInUse, FacilityNameTaken, NotFoundError
from facility_booking.domain.models import (
    Booking,
    BookingStatus,
    Facility,
    FacilityCreate,
    Session,
)
from facility_booking.repos.memory import BookingRepository, FacilityRepository
from facility_booking.services.accounts import require_admin

logger = logging.getLogger(__name__)

_ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.APPROVED)


def merge_equipment(facility_items: list[str], requested_items: list[str]) -> list[str]:
    """Facility amenities first, then requested items, without duplicates.

    Items are compared case-insensitively; the first spelling seen is kept.
    """
    merged: list[str] = []
    seen: set[str] = set()
    for item in [*facility_items, *requested_items]:
        key = item.strip().casefold()
        if not key or key in seen:
            continue
        seen.add(key)
        merged.append(item.strip())
    return merged


class FacilityCatalog:
    def __init__(
        self,
        facility_repo: FacilityRepository,
        booking_repo: BookingRepository,
        default_color: str = "#3b82f6",
    ) -> None:
        self.facility_repo = facility_repo
        self.booking_repo = booking_repo
        self.default_color = default_color

    def list_facilities(self) -> list[Facility]:
        return self.facility_repo.list_all()

    def get(self, facility_id: str) -> Facility:
        facility = self.facility_repo.get(facility_id)
        if facility is None:
            raise NotFoundError("Facility", facility_id)
        return facility

    def create(self, session: Session, data: FacilityCreate) -> Facility:
        require_admin(session)
        self._ensure_unique_name(data.name)
        facility = Facility(
            name=data.name.strip(),
            equipment=merge_equipment(data.equipment, []),
            background_color=data.background_color or self.default_color,
        )
        self.facility_repo.add(facility)
        logger.info("Facility %r added by %s", facility.name, session.user.username)
        return facility

    def update(self, session: Session, facility_id: str, data: FacilityCreate) -> Facility:
        require_admin(session)
        facility = self.get(facility_id)
        self._ensure_unique_name(data.name, exclude_id=facility_id)
        updated = facility.model_copy(
            update={
                "name": data.name.strip(),
                "equipment": merge_equipment(data.equipment, []),
                "background_color": data.background_color or facility.background_color,
            }
        )
        return self.facility_repo.update(updated)

    def delete(self, session: Session, facility_id: str) -> None:
        require_admin(session)
        facility = self.get(facility_id)
        active = [
            b
            for b in self.booking_repo.list_for_facility(facility_id)
            if b.status in _ACTIVE_STATUSES
        ]
        if active:
            raise FacilityInUse(facility.name, len(active))
        self.facility_repo.delete(facility_id)
        logger.info("Facility %r deleted by %s", facility.name, session.user.username)

    def equipment_for(self, booking: Booking) -> list[str]:
        facility = self.facility_repo.get(booking.facility_id)
        amenities = facility.equipment if facility is not None else []
        return merge_equipment(amenities, booking.equipment)

    def colors(self) -> dict[str, str]:
        return {f.id: f.background_color for f in self.facility_repo.list_all()}

    def _ensure_unique_name(self, name: str, exclude_id: str | None = None) -> None:
        existing = self.facility_repo.get_by_name(name)
        if existing is not None and existing.id != exclude_id:
            raise FacilityNameTaken(existing.name)

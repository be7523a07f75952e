"""Service wiring and FastAPI dependencies."""

from __future__ import annotations

from datetime import timedelta

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from facility_booking.config import Settings
from facility_booking.domain.bus import EventBus
from facility_booking.domain.errors import AuthenticationError
from facility_booking.domain.handlers import HandlerRegistry
from facility_booking.domain.models import Session
from facility_booking.repos.memory import (
    BookingRepository,
    FacilityRepository,
    HistoryRepository,
    UserRepository,
    seed_demo_data,
)
from facility_booking.services.accounts import AccountService, SessionManager
from facility_booking.services.bookings import BookingService
from facility_booking.services.catalog import FacilityCatalog

bearer_scheme = HTTPBearer(auto_error=False)


class Container:
    """Repositories and services shared by every request of one app instance."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.bus = EventBus()
        self.booking_repo = BookingRepository()
        self.facility_repo = FacilityRepository()
        self.user_repo = UserRepository()
        self.history_repo = HistoryRepository()

        self.handlers = HandlerRegistry(
            bus=self.bus,
            booking_repo=self.booking_repo,
            history_repo=self.history_repo,
        )
        self.sessions = SessionManager(
            self.user_repo, ttl=timedelta(minutes=settings.session_ttl_minutes)
        )
        self.accounts = AccountService(self.user_repo, self.sessions)
        self.catalog = FacilityCatalog(
            self.facility_repo,
            self.booking_repo,
            default_color=settings.default_facility_color,
        )
        self.bookings = BookingService(
            self.booking_repo,
            self.facility_repo,
            self.bus,
            buffer_minutes=settings.booking_buffer_minutes,
        )

        if settings.seed_demo_data:
            seed_demo_data(
                self.user_repo,
                self.facility_repo,
                admin_password=settings.demo_admin_password,
            )


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    if credentials is None:
        raise AuthenticationError("Not logged in")
    return credentials.credentials


def get_session(
    token: str = Depends(get_token),
    container: Container = Depends(get_container),
) -> Session:
    return container.sessions.resolve(token)

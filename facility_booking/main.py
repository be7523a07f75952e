"""FastAPI application: entry point for the facility booking service."""

from __future__ import annotations

from datetime import date

from fastapi import Depends, FastAPI, Path, Request
from fastapi.responses import JSONResponse, Response

from facility_booking.api.deps import Container, get_container, get_session, get_token
from facility_booking.config import get_settings
from facility_booking.domain.errors import (
    AuthenticationError,
    BookingError,
    FacilityInUse,
    FacilityNameTaken,
    InvalidTimeFormat,
    InvalidTransition,
    NotFoundError,
    PermissionDenied,
    StorageError,
    UsernameTaken,
)
from facility_booking.domain.models import (
    Booking,
    BookingDraft,
    BookingSort,
    BookingStatus,
    BookingUpdate,
    BookingWriteResult,
    CalendarMonth,
    ConflictReport,
    Facility,
    FacilityCreate,
    HistoryEntry,
    LoginRequest,
    LoginResponse,
    Session,
    StatusChangeRequest,
    UserCreate,
    UserPublic,
    UserUpdate,
)
from facility_booking.logging_config import add_audit_middleware, configure_logging
from facility_booking.services.accounts import require_admin
from facility_booking.services.calendar import month_grid

settings = get_settings()
configure_logging(settings.log_level)

app = FastAPI(title=settings.app_name)
add_audit_middleware(app)

# ── Singletons (created at import time for simplicity) ────────────────
container = Container(settings)
app.state.container = container

_ERROR_STATUS: dict[type[BookingError], int] = {
    AuthenticationError: 401,
    PermissionDenied: 403,
    NotFoundError: 404,
    InvalidTransition: 409,
    UsernameTaken: 409,
    FacilityNameTaken: 409,
    FacilityInUse: 409,
    StorageError: 409,
    InvalidTimeFormat: 422,
}

_CONFLICT_RESPONSES = {409: {"model": ConflictReport}}


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    status_code = next(
        (_ERROR_STATUS[cls] for cls in type(exc).__mro__ if cls in _ERROR_STATUS),
        400,
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def _write_response(result: BookingWriteResult, status_code: int = 200) -> JSONResponse:
    """Stored booking on success, otherwise a 409 conflict report."""
    if result.booking is None:
        report = ConflictReport.from_decision(result.decision)
        return JSONResponse(status_code=409, content=report.model_dump(mode="json"))
    return JSONResponse(
        status_code=status_code, content=result.booking.model_dump(mode="json")
    )


# ── Auth ──────────────────────────────────────────────────────────────


@app.post("/auth/login", response_model=LoginResponse)
def login(payload: LoginRequest, container: Container = Depends(get_container)) -> LoginResponse:
    """Check credentials and open a session; the token goes in the Bearer header."""
    session = container.sessions.login(payload.username, payload.password)
    return LoginResponse(
        token=session.token,
        expires_at=session.expires_at,
        user=UserPublic.from_user(session.user),
    )


@app.post("/auth/logout", status_code=204)
def logout(
    token: str = Depends(get_token),
    container: Container = Depends(get_container),
) -> Response:
    container.sessions.logout(token)
    return Response(status_code=204)


@app.get("/auth/me", response_model=UserPublic)
def me(session: Session = Depends(get_session)) -> UserPublic:
    return UserPublic.from_user(session.user)


# ── Users ─────────────────────────────────────────────────────────────


@app.get("/users", response_model=list[UserPublic])
def list_users(
    session: Session = Depends(get_session),
    container: Container = Depends(get_container),
) -> list[UserPublic]:
    return [UserPublic.from_user(u) for u in container.accounts.list_users(session)]


@app.post("/users", response_model=UserPublic, status_code=201)
def create_user(
    payload: UserCreate,
    session: Session = Depends(get_session),
    container: Container = Depends(get_container),
) -> UserPublic:
    return UserPublic.from_user(container.accounts.create_user(session, payload))


@app.get("/users/{user_id}", response_model=UserPublic)
def get_user(
    user_id: str,
    session: Session = Depends(get_session),
    container: Container = Depends(get_container),
) -> UserPublic:
    return UserPublic.from_user(container.accounts.get_user(session, user_id))


@app.put("/users/{user_id}", response_model=UserPublic)
def update_user(
    user_id: str,
    payload: UserUpdate,
    session: Session = Depends(get_session),
    container: Container = Depends(get_container),
) -> UserPublic:
    return UserPublic.from_user(container.accounts.update_user(session, user_id, payload))


@app.delete("/users/{user_id}", status_code=204)
def delete_user(
    user_id: str,
    session: Session = Depends(get_session),
    container: Container = Depends(get_container),
) -> Response:
    container.accounts.delete_user(session, user_id)
    return Response(status_code=204)


# ── Facilities ────────────────────────────────────────────────────────


@app.get("/facilities", response_model=list[Facility])
def list_facilities(
    session: Session = Depends(get_session),
    container: Container = Depends(get_container),
) -> list[Facility]:
    return container.catalog.list_facilities()


@app.post("/facilities", response_model=Facility, status_code=201)
def create_facility(
    payload: FacilityCreate,
    session: Session = Depends(get_session),
    container: Container = Depends(get_container),
) -> Facility:
    return container.catalog.create(session, payload)


@app.put("/facilities/{facility_id}", response_model=Facility)
def update_facility(
    facility_id: str,
    payload: FacilityCreate,
    session: Session = Depends(get_session),
    container: Container = Depends(get_container),
) -> Facility:
    return container.catalog.update(session, facility_id, payload)


@app.delete("/facilities/{facility_id}", status_code=204)
def delete_facility(
    facility_id: str,
    session: Session = Depends(get_session),
    container: Container = Depends(get_container),
) -> Response:
    container.catalog.delete(session, facility_id)
    return Response(status_code=204)


# ── Bookings ──────────────────────────────────────────────────────────


@app.get("/bookings", response_model=list[Booking])
def list_bookings(
    status: BookingStatus | None = None,
    q: str | None = None,
    sort: BookingSort = BookingSort.NEWEST,
    session: Session = Depends(get_session),
    container: Container = Depends(get_container),
) -> list[Booking]:
    return container.bookings.list_for(session, status=status, search=q, sort=sort)


@app.post(
    "/bookings",
    response_model=Booking,
    status_code=201,
    responses=_CONFLICT_RESPONSES,
)
def submit_booking(
    payload: BookingDraft,
    override: bool = False,
    session: Session = Depends(get_session),
    container: Container = Depends(get_container),
) -> JSONResponse:
    """Submit a booking request.

    Returns 409 with a conflict report when an approved booking is in the way,
    or when pending bookings are and *override* was not set.
    """
    result = container.bookings.submit(session, payload, override=override)
    return _write_response(result, status_code=201)


@app.post("/bookings/check", response_model=ConflictReport)
def check_booking(
    payload: BookingDraft,
    booking_id: str | None = None,
    session: Session = Depends(get_session),
    container: Container = Depends(get_container),
) -> ConflictReport:
    """Dry-run the conflict check for a proposed schedule."""
    decision = container.bookings.check(session, payload, booking_id=booking_id)
    return ConflictReport.from_decision(decision)


@app.get("/bookings/{booking_id}", response_model=Booking)
def get_booking(
    booking_id: str,
    session: Session = Depends(get_session),
    container: Container = Depends(get_container),
) -> Booking:
    return container.bookings.get(session, booking_id)


@app.get("/bookings/{booking_id}/equipment", response_model=list[str])
def booking_equipment(
    booking_id: str,
    session: Session = Depends(get_session),
    container: Container = Depends(get_container),
) -> list[str]:
    """Facility amenities merged with the items requested on the booking."""
    booking = container.bookings.get(session, booking_id)
    return container.catalog.equipment_for(booking)


@app.put("/bookings/{booking_id}", response_model=Booking, responses=_CONFLICT_RESPONSES)
def edit_booking(
    booking_id: str,
    payload: BookingUpdate,
    override: bool = False,
    session: Session = Depends(get_session),
    container: Container = Depends(get_container),
) -> JSONResponse:
    result = container.bookings.edit(session, booking_id, payload, override=override)
    return _write_response(result)


@app.post("/bookings/{booking_id}/status", response_model=Booking)
def change_booking_status(
    booking_id: str,
    payload: StatusChangeRequest,
    session: Session = Depends(get_session),
    container: Container = Depends(get_container),
) -> Booking:
    return container.bookings.change_status(session, booking_id, payload.status)


@app.delete("/bookings/{booking_id}", status_code=204)
def delete_booking(
    booking_id: str,
    session: Session = Depends(get_session),
    container: Container = Depends(get_container),
) -> Response:
    container.bookings.delete(session, booking_id)
    return Response(status_code=204)


@app.get("/bookings/{booking_id}/history", response_model=list[HistoryEntry])
def booking_history(
    booking_id: str,
    session: Session = Depends(get_session),
    container: Container = Depends(get_container),
) -> list[HistoryEntry]:
    """Change history of a booking. Admins can still read it after deletion."""
    if container.booking_repo.get(booking_id) is not None:
        container.bookings.get(session, booking_id)
        return container.history_repo.list_for_booking(booking_id)

    require_admin(session)
    entries = container.history_repo.list_for_booking(booking_id)
    if not entries:
        raise NotFoundError("Booking", booking_id)
    return entries


# ── Calendar ──────────────────────────────────────────────────────────


@app.get("/calendar/{year}/{month}", response_model=CalendarMonth)
def calendar_month(
    year: int = Path(ge=1900, le=2999),
    month: int = Path(ge=1, le=12),
    session: Session = Depends(get_session),
    container: Container = Depends(get_container),
) -> CalendarMonth:
    """Month grid of every active booking, with facility colors for display."""
    return month_grid(
        year,
        month,
        container.booking_repo.list_all(),
        today=date.today(),
        facility_colors=container.catalog.colors(),
    )

from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.orm import Session

from booking_core.admission import BookingExtras
from booking_core.authorization import can_act
from booking_core.config import get_settings
from booking_core.database import Base, engine, get_db
from booking_core.dependencies import allow_roles, get_booking_service, get_current_active_user, require_service_key
from booking_core.exceptions import apply_error_handlers
from booking_core.logging_middleware import add_audit_middleware
from booking_core.models import Booking, BookingStatus, RoleEnum, User
from booking_core.rate_limit import DECISION_LIMIT, READ_LIMIT, SUBMIT_LIMIT, apply_rate_limiter, limiter
from booking_core.repository import SqlAlchemyBookingRepository
from booking_core.schemas import (
    AvailabilityRead,
    BookingCreate,
    BookingExtrasIn,
    BookingRead,
    CanActRead,
    RejectRequest,
    SlotRead,
    SweepResult,
    WorkflowStepRead,
)
from booking_core.service import BookingService
from booking_core.time_range import TimeRange

settings = get_settings()

PRIVILEGED_ROLES = (RoleEnum.ADMIN, RoleEnum.FACILITY_MANAGER, RoleEnum.AUDITOR)
EXTRAS_FIELDS = set(BookingExtrasIn.model_fields)


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="Bookings Service", version="1.0.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    apply_error_handlers(fastapi_app)
    add_audit_middleware(fastapi_app, "bookings")
    Instrumentator().instrument(fastapi_app).expose(fastapi_app)
    return fastapi_app


app = create_app()


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "bookings"}


@app.get("/workflow", response_model=List[WorkflowStepRead], tags=["workflow"])
@limiter.limit(READ_LIMIT)
def read_workflow(
    request: Request,
    _: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> list:
    return list(SqlAlchemyBookingRepository(db).get_workflow())


@app.get("/bookings", response_model=List[BookingRead])
@limiter.limit(READ_LIMIT)
def list_bookings(
    request: Request,
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    resource_id: Optional[int] = None,
    _: User = Depends(allow_roles(*PRIVILEGED_ROLES)),
    db: Session = Depends(get_db),
) -> List[Booking]:
    query = db.query(Booking)
    if status_filter is not None:
        query = query.filter(Booking.status == status_filter)
    if resource_id is not None:
        query = query.filter(Booking.resource_id == resource_id)
    return query.order_by(Booking.start_time.desc(), Booking.id.desc()).all()


@app.get("/bookings/me", response_model=List[BookingRead])
@limiter.limit(READ_LIMIT)
def list_my_bookings(
    request: Request,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> List[Booking]:
    return (
        db.query(Booking)
        .filter(Booking.user_id == current_user.id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
        .all()
    )


@app.get("/bookings/approvals", response_model=List[BookingRead])
@limiter.limit(READ_LIMIT)
def list_actionable_bookings(
    request: Request,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> List[Booking]:
    pending = (
        db.query(Booking)
        .filter(Booking.status == BookingStatus.PENDING)
        .order_by(Booking.created_at, Booking.id)
        .all()
    )
    return [booking for booking in pending if can_act(current_user, booking)]


@app.get("/bookings/availability", response_model=AvailabilityRead)
@limiter.limit(READ_LIMIT)
def check_availability(
    request: Request,
    resource_id: int,
    start_time: datetime = Query(...),
    end_time: datetime = Query(...),
    _: User = Depends(get_current_active_user),
    service: BookingService = Depends(get_booking_service),
) -> AvailabilityRead:
    candidate = TimeRange(start_time, end_time)
    conflict = service.find_conflict(resource_id, candidate)
    if conflict is None:
        return AvailabilityRead(resource_id=resource_id, available=True)

    slot = service.suggest_slot(resource_id, candidate.duration)
    return AvailabilityRead(
        resource_id=resource_id,
        available=False,
        conflicting_booking_id=conflict.id,
        owner_id=conflict.user_id,
        suggestion=SlotRead(start_time=slot.start, end_time=slot.end) if slot else None,
    )


@app.post("/bookings", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
@limiter.limit(SUBMIT_LIMIT)
def create_booking(
    request: Request,
    booking_in: BookingCreate,
    current_user: User = Depends(get_current_active_user),
    service: BookingService = Depends(get_booking_service),
) -> Booking:
    extras = BookingExtras(**booking_in.model_dump(include=EXTRAS_FIELDS))
    return service.submit_booking(
        booking_in.resource_id,
        current_user.id,
        booking_in.purpose,
        TimeRange(booking_in.start_time, booking_in.end_time),
        extras,
    )


@app.post("/bookings/sweep", response_model=SweepResult, dependencies=[Depends(require_service_key)])
def complete_elapsed_bookings(service: BookingService = Depends(get_booking_service)) -> SweepResult:
    completed = service.complete_elapsed()
    return SweepResult(completed=[booking.id for booking in completed])


@app.get("/bookings/{booking_id}", response_model=BookingRead)
@limiter.limit(READ_LIMIT)
def get_booking(
    request: Request,
    booking_id: int,
    current_user: User = Depends(get_current_active_user),
    service: BookingService = Depends(get_booking_service),
) -> Booking:
    booking = service.get_booking(booking_id)
    if (
        booking.user_id != current_user.id
        and not current_user.has_role(*PRIVILEGED_ROLES)
        and not can_act(current_user, booking)
    ):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return booking


@app.get("/bookings/{booking_id}/can-act", response_model=CanActRead)
@limiter.limit(READ_LIMIT)
def check_can_act(
    request: Request,
    booking_id: int,
    current_user: User = Depends(get_current_active_user),
    service: BookingService = Depends(get_booking_service),
) -> CanActRead:
    return CanActRead(booking_id=booking_id, can_act=service.can_act(current_user, booking_id))


@app.post("/bookings/{booking_id}/approve", response_model=BookingRead)
@limiter.limit(DECISION_LIMIT)
def approve_booking(
    request: Request,
    booking_id: int,
    current_user: User = Depends(get_current_active_user),
    service: BookingService = Depends(get_booking_service),
) -> Booking:
    return service.approve(booking_id, current_user)


@app.post("/bookings/{booking_id}/reject", response_model=BookingRead)
@limiter.limit(DECISION_LIMIT)
def reject_booking(
    request: Request,
    booking_id: int,
    rejection: RejectRequest,
    current_user: User = Depends(get_current_active_user),
    service: BookingService = Depends(get_booking_service),
) -> Booking:
    return service.reject(booking_id, current_user, rejection.comment)


@app.post("/bookings/{booking_id}/cancel", response_model=BookingRead)
@limiter.limit(DECISION_LIMIT)
def cancel_booking(
    request: Request,
    booking_id: int,
    current_user: User = Depends(get_current_active_user),
    service: BookingService = Depends(get_booking_service),
) -> Booking:
    return service.cancel(booking_id, current_user.id)

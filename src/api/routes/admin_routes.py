from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from src.api.dependencies import get_db, require_admin
from src.api.schemas.schemas import (
    BookingEnvelope,
    MessageEnvelope,
    OutboxEventEnvelope,
    OutboxEventListEnvelope,
    PaymentUpdateRequest,
    ReconcileEnvelope,
    SeatBatchCreate,
    SeatBatchEnvelope,
    SeatEnvelope,
    SeatUpdate,
    ShowtimeCreate,
    ShowtimeEnvelope,
    ShowtimeUpdate,
    StatsEnvelope,
)
from src.api.serializers import (
    booking_response,
    camelize,
    outbox_event_response,
    seat_response,
    showtime_response,
)
from src.application.booking_service import BookingService
from src.application.showtime_service import ShowtimeService
from src.application.stats_service import StatsService
from src.domain.booking_rules import as_utc
from src.domain.exceptions import NotFoundError, ValidationError
from src.infrastructure.repositories.outbox_repository import OutboxRepository


router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


# -----------------------------
# Showtimes
# -----------------------------
@router.post(
    "/showtimes",
    response_model=ShowtimeEnvelope,
    status_code=status.HTTP_201_CREATED,
)
def create_showtime(request: ShowtimeCreate, db: Session = Depends(get_db)):
    showtime = ShowtimeService(db).create_showtime(**request.model_dump())
    return ShowtimeEnvelope(
        message="Showtime created successfully",
        showtime=showtime_response(showtime),
    )


@router.put("/showtimes/{showtime_id}", response_model=ShowtimeEnvelope)
def update_showtime(
    showtime_id: str,
    request: ShowtimeUpdate,
    db: Session = Depends(get_db),
):
    showtime = ShowtimeService(db).update_showtime(
        showtime_id,
        **request.model_dump(exclude_unset=True),
    )
    return ShowtimeEnvelope(
        message="Showtime updated successfully",
        showtime=showtime_response(showtime),
    )


@router.delete("/showtimes/{showtime_id}", response_model=MessageEnvelope)
def delete_showtime(showtime_id: str, db: Session = Depends(get_db)):
    ShowtimeService(db).delete_showtime(showtime_id)
    return MessageEnvelope(message="Showtime deleted successfully")


@router.post("/showtimes/{showtime_id}/reconcile", response_model=ReconcileEnvelope)
def reconcile_showtime(showtime_id: str, db: Session = Depends(get_db)):
    result = BookingService(db).reconcile_showtime(showtime_id)
    return ReconcileEnvelope(**result)


# -----------------------------
# Seats
# -----------------------------
@router.post(
    "/seats",
    response_model=SeatBatchEnvelope,
    status_code=status.HTTP_201_CREATED,
)
def create_seats(request: SeatBatchCreate, db: Session = Depends(get_db)):
    seats = ShowtimeService(db).provision_seats(
        request.showtime_id,
        [seat.model_dump() for seat in request.seats],
    )
    return SeatBatchEnvelope(
        message="Seats created successfully",
        seats=[seat_response(seat) for seat in seats],
    )


@router.put("/seats/{seat_id}", response_model=SeatEnvelope)
def update_seat(seat_id: str, request: SeatUpdate, db: Session = Depends(get_db)):
    seat = ShowtimeService(db).update_seat(seat_id, **request.model_dump(exclude_unset=True))
    return SeatEnvelope(message="Seat updated successfully", seat=seat_response(seat))


@router.delete("/seats/{seat_id}", response_model=MessageEnvelope)
def delete_seat(seat_id: str, db: Session = Depends(get_db)):
    ShowtimeService(db).delete_seat(seat_id)
    return MessageEnvelope(message="Seat deleted successfully")


# -----------------------------
# Booking lifecycle callbacks
# -----------------------------
@router.put("/bookings/{booking_id}/payment", response_model=BookingEnvelope)
def record_payment(
    booking_id: str,
    request: PaymentUpdateRequest,
    db: Session = Depends(get_db),
):
    service = BookingService(db)
    booking = service.record_payment(booking_id, request.payment_status)
    return BookingEnvelope(
        message="Payment status recorded",
        booking=booking_response(service.get_booking(booking.id)),
    )


@router.put("/bookings/{booking_id}/complete", response_model=BookingEnvelope)
def complete_booking(booking_id: str, db: Session = Depends(get_db)):
    service = BookingService(db)
    booking = service.complete_booking(booking_id)
    return BookingEnvelope(
        message="Booking completed",
        booking=booking_response(service.get_booking(booking.id)),
    )


# -----------------------------
# Statistics
# -----------------------------
@router.get("/stats/theater", response_model=StatsEnvelope)
def theater_stats(db: Session = Depends(get_db)):
    return StatsEnvelope(stats=camelize(StatsService(db).theater_stats()))


@router.get("/stats/bookings", response_model=StatsEnvelope)
def booking_stats(
    start_date: datetime | None = Query(default=None, alias="startDate"),
    end_date: datetime | None = Query(default=None, alias="endDate"),
    db: Session = Depends(get_db),
):
    if start_date and end_date and as_utc(end_date) < as_utc(start_date):
        raise ValidationError("endDate must not be before startDate")
    stats = StatsService(db).booking_stats(start_date=start_date, end_date=end_date)
    return StatsEnvelope(stats=camelize(stats))


# -----------------------------
# Outbox
# -----------------------------
@router.get("/outbox/events", response_model=OutboxEventListEnvelope)
def list_outbox_events(
    status_filter: str = "PENDING",
    limit: int = 50,
    aggregate_id: str | None = Query(default=None, alias="aggregateId"),
    db: Session = Depends(get_db),
):
    repository = OutboxRepository(db)
    if aggregate_id:
        events = repository.list_for_aggregate(aggregate_id)
    else:
        events = repository.list_by_status(status_filter, max(1, min(limit, 200)))
    return OutboxEventListEnvelope(events=[outbox_event_response(event) for event in events])


@router.post("/outbox/events/{event_id}/mark-published", response_model=OutboxEventEnvelope)
def mark_outbox_event_published(
    event_id: str,
    db: Session = Depends(get_db),
):
    repository = OutboxRepository(db)
    event = repository.get_by_id(event_id)
    if not event:
        raise NotFoundError("Outbox event not found")
    repository.mark_published(event)
    db.flush()
    return OutboxEventEnvelope(
        message="Outbox event marked as published",
        event=outbox_event_response(event),
    )

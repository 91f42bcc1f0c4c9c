import json

from pydantic.alias_generators import to_camel

from src.api.schemas.schemas import (
    BookingResponse,
    OutboxEventResponse,
    SeatResponse,
    ShowtimeResponse,
)
from src.infrastructure.db.models import Booking, OutboxEvent, Seat, Showtime


def seat_response(seat: Seat) -> SeatResponse:
    return SeatResponse(
        id=seat.id,
        showtime_id=seat.showtime_id,
        row=seat.row,
        seat_number=seat.seat_number,
        label=seat.label,
        seat_type=seat.seat_type.value,
        price=seat.price,
        is_booked=seat.is_booked,
        booking_id=seat.booking_id,
        is_active=seat.is_active,
    )


def showtime_response(showtime: Showtime) -> ShowtimeResponse:
    return ShowtimeResponse(
        id=showtime.id,
        movie_id=showtime.movie_id,
        start_time=showtime.start_time,
        end_time=showtime.end_time,
        theater=showtime.theater,
        screen_type=showtime.screen_type.value,
        language=showtime.language,
        base_price=showtime.base_price,
        total_seats=showtime.total_seats,
        available_seats=showtime.available_seats,
        is_full=showtime.is_full,
        is_active=showtime.is_active,
    )


def booking_fields(booking: Booking) -> dict:
    return {
        "id": booking.id,
        "booking_code": booking.booking_code,
        "user_id": booking.user_id,
        "movie_id": booking.movie_id,
        "showtime_id": booking.showtime_id,
        "seat_ids": booking.seat_ids,
        "seats": [seat_response(seat) for seat in booking.seats],
        "showtime": showtime_response(booking.showtime) if booking.showtime else None,
        "total_amount": booking.total_amount,
        "payment_status": booking.payment_status.value,
        "payment_method": booking.payment_method.value,
        "booking_status": booking.status.value,
        "customer_name": booking.customer_name,
        "customer_email": booking.customer_email,
        "customer_phone": booking.customer_phone,
        "special_requests": booking.special_requests,
        "duration_minutes": booking.duration_minutes,
        "created_at": booking.created_at,
        "updated_at": booking.updated_at,
    }


def booking_response(booking: Booking) -> BookingResponse:
    return BookingResponse(**booking_fields(booking))


def outbox_event_response(event: OutboxEvent) -> OutboxEventResponse:
    return OutboxEventResponse(
        id=event.id,
        aggregate_type=event.aggregate_type,
        aggregate_id=event.aggregate_id,
        event_type=event.event_type,
        payload=json.loads(event.payload),
        status=event.status,
        attempts=event.attempts,
        created_at=event.created_at,
        published_at=event.published_at,
    )


def camelize(value):
    if isinstance(value, dict):
        return {to_camel(key): camelize(item) for key, item in value.items()}
    if isinstance(value, list):
        return [camelize(item) for item in value]
    return value

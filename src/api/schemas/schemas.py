from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -----------------------------
# Requests
# -----------------------------
class BookingRequest(CamelModel):
    # Presence is checked by BookingService so missing fields map to ValidationError.
    user_id: str | None = None
    movie_id: str | None = None
    showtime_id: str | None = None
    seat_ids: list[str] | None = None
    payment_method: str | None = None
    total_amount: int | None = Field(default=None, ge=0)
    payment_status: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    special_requests: str | None = None


class ShowtimeCreate(CamelModel):
    movie_id: str
    start_time: datetime
    end_time: datetime
    theater: str
    screen_type: str = "2D"
    language: str
    base_price: int = Field(ge=0)


class ShowtimeUpdate(CamelModel):
    movie_id: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    theater: str | None = None
    screen_type: str | None = None
    language: str | None = None
    base_price: int | None = Field(default=None, ge=0)
    is_active: bool | None = None


class SeatCreate(CamelModel):
    row: str
    seat_number: str
    seat_type: str = "regular"
    price: int = Field(ge=0)


class SeatBatchCreate(CamelModel):
    showtime_id: str
    seats: list[SeatCreate]


class SeatUpdate(CamelModel):
    row: str | None = None
    seat_number: str | None = None
    seat_type: str | None = None
    price: int | None = Field(default=None, ge=0)
    is_active: bool | None = None


class PaymentUpdateRequest(CamelModel):
    payment_status: Literal["completed", "failed", "refunded"]


# -----------------------------
# Responses
# -----------------------------
class SeatResponse(CamelModel):
    id: str
    showtime_id: str
    row: str
    seat_number: str
    label: str
    seat_type: str
    price: int
    is_booked: bool
    booking_id: str | None = None
    is_active: bool


class ShowtimeResponse(CamelModel):
    id: str
    movie_id: str
    start_time: datetime
    end_time: datetime
    theater: str
    screen_type: str
    language: str
    base_price: int
    total_seats: int
    available_seats: int
    is_full: bool
    is_active: bool


class BookingResponse(CamelModel):
    id: str
    booking_code: str
    user_id: str
    movie_id: str
    showtime_id: str
    seat_ids: list[str]
    seats: list[SeatResponse]
    showtime: ShowtimeResponse | None = None
    total_amount: int
    payment_status: str
    payment_method: str
    booking_status: str
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    special_requests: str | None = None
    duration_minutes: float | None = None
    created_at: datetime
    updated_at: datetime


class BookingEnvelope(CamelModel):
    success: bool = True
    message: str | None = None
    booking: BookingResponse
    movie: dict[str, Any] | None = None


class UserBooking(BookingResponse):
    movie: dict[str, Any] | None = None


class UserBookingsEnvelope(CamelModel):
    success: bool = True
    bookings: list[UserBooking]


class ShowtimeListEnvelope(CamelModel):
    success: bool = True
    movie: dict[str, Any] | None = None
    showtimes: list[ShowtimeResponse]


class ShowtimeEnvelope(CamelModel):
    success: bool = True
    message: str | None = None
    showtime: ShowtimeResponse


class SeatMapEnvelope(CamelModel):
    success: bool = True
    showtime: ShowtimeResponse
    seats: list[SeatResponse]


class SeatBatchEnvelope(CamelModel):
    success: bool = True
    message: str | None = None
    seats: list[SeatResponse]


class SeatEnvelope(CamelModel):
    success: bool = True
    message: str | None = None
    seat: SeatResponse


class MessageEnvelope(CamelModel):
    success: bool = True
    message: str


class ReconcileEnvelope(CamelModel):
    success: bool = True
    showtime_id: str
    released_seats: int
    total_seats: int
    available_seats: int


class StatsEnvelope(CamelModel):
    success: bool = True
    stats: dict[str, Any]


class OutboxEventResponse(CamelModel):
    id: str
    aggregate_type: str
    aggregate_id: str
    event_type: str
    payload: dict[str, Any]
    status: str
    attempts: int
    created_at: datetime
    published_at: datetime | None = None


class OutboxEventListEnvelope(CamelModel):
    success: bool = True
    events: list[OutboxEventResponse]


class OutboxEventEnvelope(CamelModel):
    success: bool = True
    message: str
    event: OutboxEventResponse

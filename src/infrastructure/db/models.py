# src/infrastructure/db/models.py

from sqlalchemy import (
    Boolean,
    String,
    Integer,
    DateTime,
    Enum,
    Text,
    UniqueConstraint,
    CheckConstraint,
    ForeignKey,
    Index,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime, timezone
from uuid import uuid4

from src.infrastructure.db.session import Base
from src.domain.state_machine import (
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
    ScreenType,
    SeatType,
)


def _uuid() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum(enum_cls, name: str) -> Enum:
    # Persist enum values ("2D", "credit_card") rather than member names.
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


class Showtime(Base):
    """
    A scheduled screening.

    ``total_seats`` / ``available_seats`` are a cached projection of the
    seat rows; see ShowtimeRepository.refresh_counters.
    """

    __tablename__ = "showtimes"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=_uuid,
    )
    movie_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    theater: Mapped[str] = mapped_column(String(128), nullable=False)
    screen_type: Mapped[ScreenType] = mapped_column(
        _enum(ScreenType, "screen_type"),
        nullable=False,
        default=ScreenType.TWO_D,
    )
    language: Mapped[str] = mapped_column(String(64), nullable=False)
    base_price: Mapped[int] = mapped_column(Integer, nullable=False)
    total_seats: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    available_seats: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    seats: Mapped[list["Seat"]] = relationship(
        back_populates="showtime",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_showtime_end_after_start"),
        CheckConstraint("base_price >= 0", name="ck_showtime_base_price_nonnegative"),
        CheckConstraint("total_seats >= 0", name="ck_showtime_total_seats_nonnegative"),
        CheckConstraint("available_seats >= 0", name="ck_showtime_available_seats_nonnegative"),
        CheckConstraint("available_seats <= total_seats", name="ck_showtime_available_lte_total"),
    )

    @property
    def is_full(self) -> bool:
        return self.available_seats == 0


class Seat(Base):
    __tablename__ = "seats"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=_uuid,
    )
    showtime_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("showtimes.id"),
        nullable=False,
    )
    row: Mapped[str] = mapped_column(String(8), nullable=False)
    seat_number: Mapped[str] = mapped_column(String(8), nullable=False)
    seat_type: Mapped[SeatType] = mapped_column(
        _enum(SeatType, "seat_type"),
        nullable=False,
        default=SeatType.REGULAR,
    )
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    is_booked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    booking_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("bookings.id"),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    showtime: Mapped[Showtime] = relationship(back_populates="seats")

    __table_args__ = (
        UniqueConstraint(
            "showtime_id",
            "row",
            "seat_number",
            name="uq_seat_position_per_showtime",
        ),
        CheckConstraint("price >= 0", name="ck_seat_price_nonnegative"),
        CheckConstraint(
            "(is_booked AND booking_id IS NOT NULL) OR (NOT is_booked AND booking_id IS NULL)",
            name="ck_seat_booked_iff_booking",
        ),
        Index("ix_seats_showtime_booked", "showtime_id", "is_booked"),
        Index("ix_seats_booking_id", "booking_id"),
    )

    @property
    def label(self) -> str:
        return f"{self.row}{self.seat_number}"


class Booking(Base):
    """
    Booking table reflecting domain state.
    Domain controls transitions.
    DB stores current state safely.
    """

    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=_uuid,
    )
    booking_code: Mapped[str] = mapped_column(String(16), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    movie_id: Mapped[str] = mapped_column(String(64), nullable=False)
    showtime_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("showtimes.id"),
        nullable=False,
    )
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        _enum(PaymentStatus, "payment_status"),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    payment_method: Mapped[PaymentMethod] = mapped_column(
        _enum(PaymentMethod, "payment_method"),
        nullable=False,
    )
    status: Mapped[BookingStatus] = mapped_column(
        _enum(BookingStatus, "booking_status"),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    customer_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    showtime: Mapped[Showtime] = relationship()
    seat_links: Mapped[list["BookingSeat"]] = relationship(
        back_populates="booking",
        order_by="BookingSeat.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("booking_code", name="uq_booking_code"),
        CheckConstraint("total_amount >= 0", name="ck_booking_total_nonnegative"),
        Index("ix_bookings_showtime_status", "showtime_id", "status"),
    )

    @property
    def seat_ids(self) -> list[str]:
        return [link.seat_id for link in self.seat_links]

    @property
    def seats(self) -> list["Seat"]:
        return [link.seat for link in self.seat_links]

    @property
    def duration_minutes(self) -> float | None:
        if self.showtime is None:
            return None
        return (self.showtime.end_time - self.showtime.start_time).total_seconds() / 60


class BookingSeat(Base):
    """Ordered seat set of a booking. Survives cancellation as history."""

    __tablename__ = "booking_seats"

    booking_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("bookings.id"),
        primary_key=True,
    )
    seat_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("seats.id"),
        primary_key=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    booking: Mapped[Booking] = relationship(back_populates="seat_links")
    seat: Mapped[Seat] = relationship()


class OutboxEvent(Base):
    __tablename__ = "outbox_events"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=_uuid,
    )
    aggregate_type: Mapped[str] = mapped_column(String(64), nullable=False)
    aggregate_id: Mapped[str] = mapped_column(String(36), nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    dedupe_key: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="PENDING")
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
    )
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("dedupe_key", name="uq_outbox_dedupe_key"),
    )

# src/infrastructure/repositories/booking_repository.py

from sqlalchemy.orm import Session, selectinload
from sqlalchemy import select

from src.infrastructure.db.models import Booking, BookingSeat
from src.domain.state_machine import BookingStatus, PaymentMethod, PaymentStatus


class BookingRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(
        self,
        booking_id: str,
    ) -> Booking | None:

        stmt = (
            select(Booking)
            .where(Booking.id == booking_id)
            .options(
                selectinload(Booking.seat_links).selectinload(BookingSeat.seat),
                selectinload(Booking.showtime),
            )
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def lock_by_id(self, booking_id: str) -> Booking | None:
        """
        SELECT ... FOR UPDATE
        Serializes state changes on one booking.
        """
        stmt = (
            select(Booking)
            .where(Booking.id == booking_id)
            .with_for_update()
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def code_exists(self, booking_code: str) -> bool:
        stmt = select(Booking.id).where(Booking.booking_code == booking_code)
        return self.db.execute(stmt).first() is not None

    def list_for_user(self, user_id: str) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.user_id == user_id)
            .options(
                selectinload(Booking.seat_links).selectinload(BookingSeat.seat),
                selectinload(Booking.showtime),
            )
            .order_by(Booking.created_at.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def create_booking(
        self,
        booking_code: str,
        user_id: str,
        movie_id: str,
        showtime_id: str,
        seat_ids: list[str],
        total_amount: int,
        payment_method: PaymentMethod,
        payment_status: PaymentStatus = PaymentStatus.PENDING,
        customer_name: str | None = None,
        customer_email: str | None = None,
        customer_phone: str | None = None,
        special_requests: str | None = None,
    ) -> Booking:

        booking = Booking(
            booking_code=booking_code,
            user_id=user_id,
            movie_id=movie_id,
            showtime_id=showtime_id,
            total_amount=total_amount,
            payment_method=payment_method,
            payment_status=payment_status,
            status=BookingStatus.PENDING,
            customer_name=customer_name,
            customer_email=customer_email.lower() if customer_email else None,
            customer_phone=customer_phone,
            special_requests=special_requests,
        )
        booking.seat_links = [
            BookingSeat(seat_id=seat_id, position=position)
            for position, seat_id in enumerate(seat_ids)
        ]

        self.db.add(booking)
        self.db.flush()
        return booking

    def update_status(
        self,
        booking: Booking,
        new_status: BookingStatus,
    ) -> None:

        booking.status = new_status

    def update_payment_status(
        self,
        booking: Booking,
        payment_status: PaymentStatus,
    ) -> None:

        booking.payment_status = payment_status

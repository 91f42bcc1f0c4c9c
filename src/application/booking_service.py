import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.domain.booking_rules import (
    as_utc,
    ensure_cancellable,
    generate_booking_code,
    resolve_total_amount,
    utc_now,
)
from src.domain.exceptions import (
    ForbiddenError,
    InvalidStateTransitionError,
    NotFoundError,
    SeatUnavailableError,
    ServiceUnavailableError,
    ValidationError,
)
from src.domain.state_machine import (
    BookingStateMachine,
    BookingStatus,
    PaymentMethod,
    PaymentStateMachine,
    PaymentStatus,
)
from src.infrastructure.db.models import Booking
from src.infrastructure.repositories.booking_repository import BookingRepository
from src.infrastructure.repositories.outbox_repository import OutboxRepository
from src.infrastructure.repositories.seat_repository import SeatRepository
from src.infrastructure.repositories.showtime_repository import ShowtimeRepository

logger = logging.getLogger(__name__)

BOOKING_CODE_ATTEMPTS = 5


class BookingService:
    """Application service coordinating booking workflow."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock
        self.booking_repository = BookingRepository(db)
        self.seat_repository = SeatRepository(db)
        self.showtime_repository = ShowtimeRepository(db)
        self.outbox_repository = OutboxRepository(db)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_booking(self, booking_id: str, requested_by: str | None = None) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        self._ensure_owner(booking, requested_by)
        return booking

    def list_user_bookings(self, user_id: str) -> list[Booking]:
        return self.booking_repository.list_for_user(user_id)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def create_booking(
        self,
        user_id: str | None,
        movie_id: str | None,
        showtime_id: str | None,
        seat_ids: list[str] | None,
        payment_method: PaymentMethod | str | None,
        total_amount: int | None = None,
        payment_status: PaymentStatus | str | None = None,
        customer_name: str | None = None,
        customer_email: str | None = None,
        customer_phone: str | None = None,
        special_requests: str | None = None,
    ) -> Booking:
        """
        Reserve ``seat_ids`` for ``user_id`` in a single transaction.

        The availability read only produces a friendly error; the seat
        claim itself is a conditional update that matches free rows
        only. When fewer rows are claimed than requested, everything
        written so far (booking row included) is rolled back.
        """
        method, initial_payment = self._validate_create_request(
            user_id, movie_id, showtime_id, seat_ids, payment_method, payment_status
        )

        showtime = self.showtime_repository.get_by_id(showtime_id)
        if not showtime:
            raise NotFoundError("Showtime not found")
        if showtime.movie_id != movie_id:
            raise ValidationError("Showtime does not belong to the requested movie")
        if not showtime.is_active:
            raise ValidationError("Showtime is not open for booking")
        if as_utc(showtime.start_time) <= as_utc(self.clock()):
            raise ValidationError("Showtime has already started")

        available = self.seat_repository.find_available(showtime_id, seat_ids)
        if len(available) < len(seat_ids):
            free_ids = {seat.id for seat in available}
            unavailable = [seat_id for seat_id in seat_ids if seat_id not in free_ids]
            logger.info(
                "Rejected booking, seats unavailable. showtime_id=%s seats=%s",
                showtime_id,
                unavailable,
            )
            raise SeatUnavailableError(
                "One or more selected seats are no longer available",
                seat_ids=unavailable,
            )

        prices = {seat.id: seat.price for seat in available}
        amount = resolve_total_amount([prices[seat_id] for seat_id in seat_ids], total_amount)

        try:
            booking = self._insert_booking(
                user_id=user_id,
                movie_id=movie_id,
                showtime_id=showtime_id,
                seat_ids=seat_ids,
                total_amount=amount,
                payment_method=method,
                payment_status=initial_payment,
                customer_name=customer_name,
                customer_email=customer_email,
                customer_phone=customer_phone,
                special_requests=special_requests,
            )

            claimed = self.seat_repository.mark_booked(showtime_id, seat_ids, booking.id)
            if claimed != len(seat_ids):
                raise SeatUnavailableError(
                    "One or more selected seats are no longer available",
                    seat_ids=list(seat_ids),
                )

            self.showtime_repository.refresh_counters(showtime_id)
            self.outbox_repository.add_event(
                aggregate_type="booking",
                aggregate_id=booking.id,
                event_type="BOOKING_CREATED",
                payload={
                    "booking_id": booking.id,
                    "booking_code": booking.booking_code,
                    "user_id": user_id,
                    "showtime_id": showtime_id,
                    "seat_ids": list(seat_ids),
                    "total_amount": amount,
                },
                dedupe_key=f"booking:{booking.id}:created",
            )
            self.db.flush()
        except SeatUnavailableError:
            self.db.rollback()
            logger.warning(
                "Seat claim lost to a concurrent booking; rolled back. showtime_id=%s seats=%s",
                showtime_id,
                seat_ids,
            )
            raise
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Booking created. booking_id=%s code=%s showtime_id=%s seats=%s",
            booking.id,
            booking.booking_code,
            showtime_id,
            len(seat_ids),
        )
        return booking

    def cancel_booking(self, booking_id: str, requested_by: str | None = None) -> Booking:
        booking = self.booking_repository.lock_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        self._ensure_owner(booking, requested_by)

        BookingStateMachine.validate_transition(booking.status, BookingStatus.CANCELLED)

        showtime = self.showtime_repository.get_by_id(booking.showtime_id)
        if not showtime:
            raise NotFoundError("Showtime not found")
        ensure_cancellable(showtime.start_time, self.clock())

        try:
            released = self._cancel_and_release(booking, reason="CUSTOMER_REQUEST")
            self.db.flush()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Booking cancelled. booking_id=%s released_seats=%s",
            booking.id,
            released,
        )
        return booking

    def record_payment(
        self,
        booking_id: str,
        payment_status: PaymentStatus | str,
    ) -> Booking:
        """Callback for the external payment collaborator."""
        try:
            result = PaymentStatus(payment_status)
        except ValueError as exc:
            raise ValidationError(f"Invalid payment status: {payment_status}") from exc
        if result == PaymentStatus.PENDING:
            raise ValidationError("Payment status cannot be reset to pending")

        booking = self.booking_repository.lock_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")

        try:
            PaymentStateMachine.validate_transition(booking.payment_status, result)
            if result == PaymentStatus.COMPLETED:
                self._transition(booking, BookingStatus.CONFIRMED)
                self.booking_repository.update_payment_status(booking, result)
                self.outbox_repository.add_event(
                    aggregate_type="booking",
                    aggregate_id=booking.id,
                    event_type="BOOKING_CONFIRMED",
                    payload={"booking_id": booking.id, "total_amount": booking.total_amount},
                    dedupe_key=f"booking:{booking.id}:confirmed",
                )
            elif result == PaymentStatus.FAILED:
                self.booking_repository.update_payment_status(booking, result)
                self._cancel_and_release(booking, reason="PAYMENT_FAILED")
            else:
                # Refunds follow a cancellation, never precede it.
                if booking.status != BookingStatus.CANCELLED:
                    raise InvalidStateTransitionError(
                        from_state=booking.status.value,
                        to_state=BookingStatus.CANCELLED.value,
                    )
                self.booking_repository.update_payment_status(booking, result)
            self.db.flush()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Payment recorded. booking_id=%s payment_status=%s booking_status=%s",
            booking.id,
            booking.payment_status.value,
            booking.status.value,
        )
        return booking

    def complete_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.lock_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")

        showtime = self.showtime_repository.get_by_id(booking.showtime_id)
        if showtime and as_utc(showtime.start_time) > as_utc(self.clock()):
            raise ValidationError("Booking cannot be completed before the showtime starts")

        self._transition(booking, BookingStatus.COMPLETED)
        self.db.flush()
        return booking

    def reconcile_showtime(self, showtime_id: str) -> dict:
        """
        Release seats still held by cancelled bookings and rebuild the
        showtime's seat counters from the seat rows.
        """
        showtime = self.showtime_repository.get_by_id(showtime_id)
        if not showtime:
            raise NotFoundError("Showtime not found")

        released = self.seat_repository.release_cancelled(showtime_id)
        showtime = self.showtime_repository.refresh_counters(showtime_id)
        if released:
            logger.warning(
                "Reconciliation released seats held by cancelled bookings. showtime_id=%s released=%s",
                showtime_id,
                released,
            )
        return {
            "showtime_id": showtime_id,
            "released_seats": released,
            "total_seats": showtime.total_seats,
            "available_seats": showtime.available_seats,
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _cancel_and_release(self, booking: Booking, reason: str) -> int:
        self._transition(booking, BookingStatus.CANCELLED)
        released = self.seat_repository.release(booking.id)
        self.showtime_repository.refresh_counters(booking.showtime_id)
        # Refunds are issued by the payment collaborator off this event.
        self.outbox_repository.add_event(
            aggregate_type="booking",
            aggregate_id=booking.id,
            event_type="BOOKING_CANCELLED",
            payload={
                "booking_id": booking.id,
                "showtime_id": booking.showtime_id,
                "payment_status": booking.payment_status.value,
                "total_amount": booking.total_amount,
                "released_seats": released,
                "reason": reason,
            },
            dedupe_key=f"booking:{booking.id}:cancelled",
        )
        return released

    def _transition(self, booking: Booking, to_status: BookingStatus) -> None:
        BookingStateMachine.validate_transition(booking.status, to_status)
        self.booking_repository.update_status(booking, to_status)

    def _insert_booking(self, **fields) -> Booking:
        """
        Insert the booking row under a fresh code.

        The existence check is advisory; the unique constraint decides.
        Each insert runs in a savepoint so a duplicate code only undoes
        that attempt and the next one gets a new code.
        """
        now = self.clock()
        for attempt in range(1, BOOKING_CODE_ATTEMPTS + 1):
            code = generate_booking_code(now)
            if self.booking_repository.code_exists(code):
                continue
            try:
                with self.db.begin_nested():
                    return self.booking_repository.create_booking(booking_code=code, **fields)
            except IntegrityError as exc:
                if "booking_code" not in str(exc.orig):
                    raise
                logger.warning("Booking code collision, retrying. code=%s attempt=%s", code, attempt)
        raise ServiceUnavailableError("Could not allocate a unique booking code, please retry")

    @staticmethod
    def _ensure_owner(booking: Booking, requested_by: str | None) -> None:
        if requested_by is not None and booking.user_id != requested_by:
            raise ForbiddenError("Booking belongs to another user")

    @staticmethod
    def _validate_create_request(
        user_id,
        movie_id,
        showtime_id,
        seat_ids,
        payment_method,
        payment_status,
    ) -> tuple[PaymentMethod, PaymentStatus]:
        if not user_id or not movie_id or not showtime_id or not seat_ids:
            raise ValidationError("Missing required booking information")
        if any(not seat_id for seat_id in seat_ids):
            raise ValidationError("Seat ids cannot be empty")
        if len(set(seat_ids)) != len(seat_ids):
            raise ValidationError("Duplicate seats in booking request")
        if not payment_method:
            raise ValidationError("Payment method is required")

        try:
            method = PaymentMethod(payment_method)
        except ValueError as exc:
            raise ValidationError(f"Invalid payment method: {payment_method}") from exc

        try:
            initial_payment = PaymentStatus(payment_status or PaymentStatus.PENDING)
        except ValueError as exc:
            raise ValidationError(f"Invalid payment status: {payment_status}") from exc
        if initial_payment != PaymentStatus.PENDING:
            # Settlement arrives through record_payment, never at creation.
            raise ValidationError("New bookings must start with payment pending")

        return method, initial_payment

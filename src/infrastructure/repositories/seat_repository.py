# src/infrastructure/repositories/seat_repository.py

from sqlalchemy.orm import Session
from sqlalchemy import select, update, func

from src.infrastructure.db.models import Booking, BookingSeat, Seat
from src.domain.state_machine import BookingStatus, SeatType


class SeatRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, seat_id: str) -> Seat | None:
        stmt = select(Seat).where(Seat.id == seat_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_many(self, seat_ids: list[str]) -> list[Seat]:
        if not seat_ids:
            return []
        stmt = select(Seat).where(Seat.id.in_(seat_ids))
        return list(self.db.execute(stmt).scalars().all())

    def list_for_showtime(self, showtime_id: str) -> list[Seat]:
        stmt = (
            select(Seat)
            .where(Seat.showtime_id == showtime_id)
            .order_by(Seat.row, Seat.seat_number)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_available(
        self,
        showtime_id: str,
        seat_ids: list[str],
    ) -> list[Seat]:
        """
        Subset of ``seat_ids`` that belong to ``showtime_id`` and are
        currently unbooked. Advisory only: mark_booked is the authority.
        """
        stmt = (
            select(Seat)
            .where(Seat.id.in_(seat_ids))
            .where(Seat.showtime_id == showtime_id)
            .where(Seat.is_booked.is_(False))
            .where(Seat.is_active.is_(True))
        )
        return list(self.db.execute(stmt).scalars().all())

    def mark_booked(
        self,
        showtime_id: str,
        seat_ids: list[str],
        booking_id: str,
    ) -> int:
        """
        Conditional UPDATE ... WHERE is_booked = false.

        Only rows that are still free at write time match, so two callers
        racing for the same seat cannot both claim it. Returns the number
        of rows claimed; the caller rolls back when it is short.
        """
        stmt = (
            update(Seat)
            .where(Seat.id.in_(seat_ids))
            .where(Seat.showtime_id == showtime_id)
            .where(Seat.is_booked.is_(False))
            .where(Seat.is_active.is_(True))
            .values(is_booked=True, booking_id=booking_id)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self._expire_loaded_seats()
        return result.rowcount

    def release(self, booking_id: str) -> int:
        stmt = (
            update(Seat)
            .where(Seat.booking_id == booking_id)
            .values(is_booked=False, booking_id=None)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self._expire_loaded_seats()
        return result.rowcount

    def release_cancelled(self, showtime_id: str | None = None) -> int:
        """Free seats still pointing at a cancelled booking."""
        cancelled = select(Booking.id).where(Booking.status == BookingStatus.CANCELLED)
        stmt = (
            update(Seat)
            .where(Seat.booking_id.in_(cancelled))
            .values(is_booked=False, booking_id=None)
            .execution_options(synchronize_session=False)
        )
        if showtime_id is not None:
            stmt = stmt.where(Seat.showtime_id == showtime_id)
        result = self.db.execute(stmt)
        self._expire_loaded_seats()
        return result.rowcount

    def create_batch(
        self,
        showtime_id: str,
        seats: list[dict],
    ) -> list[Seat]:
        created = []
        for item in seats:
            seat = Seat(
                showtime_id=showtime_id,
                row=item["row"],
                seat_number=item["seat_number"],
                seat_type=item.get("seat_type") or SeatType.REGULAR,
                price=item["price"],
                is_booked=False,
                booking_id=None,
                is_active=True,
            )
            self.db.add(seat)
            created.append(seat)
        self.db.flush()
        return created

    def has_booking_history(self, seat_id: str) -> bool:
        stmt = select(BookingSeat.seat_id).where(BookingSeat.seat_id == seat_id).limit(1)
        return self.db.execute(stmt).first() is not None

    def delete(self, seat: Seat) -> None:
        self.db.delete(seat)

    def delete_for_showtime(self, showtime_id: str) -> None:
        for seat in self.list_for_showtime(showtime_id):
            self.db.delete(seat)

    def count_for_showtime(self, showtime_id: str) -> tuple[int, int]:
        """(active seats, active unbooked seats) for a showtime."""
        stmt = (
            select(
                func.count(Seat.id),
                func.count(Seat.id).filter(Seat.is_booked.is_(False)),
            )
            .where(Seat.showtime_id == showtime_id)
            .where(Seat.is_active.is_(True))
        )
        total, available = self.db.execute(stmt).one()
        return int(total or 0), int(available or 0)

    def _expire_loaded_seats(self) -> None:
        # Bulk UPDATEs bypass the identity map; reload seats on next access.
        for obj in list(self.db.identity_map.values()):
            if isinstance(obj, Seat):
                self.db.expire(obj)

# src/infrastructure/repositories/showtime_repository.py

from datetime import datetime

from sqlalchemy.orm import Session
from sqlalchemy import select

from src.infrastructure.db.models import Booking, Showtime
from src.infrastructure.repositories.seat_repository import SeatRepository


class ShowtimeRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, showtime_id: str) -> Showtime | None:
        stmt = select(Showtime).where(Showtime.id == showtime_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_upcoming_for_movie(
        self,
        movie_id: str,
        now: datetime,
    ) -> list[Showtime]:
        stmt = (
            select(Showtime)
            .where(Showtime.movie_id == movie_id)
            .where(Showtime.start_time > now)
            .where(Showtime.is_active.is_(True))
            .order_by(Showtime.start_time)
        )
        return list(self.db.execute(stmt).scalars().all())

    def create(self, **fields) -> Showtime:
        showtime = Showtime(
            total_seats=0,
            available_seats=0,
            **fields,
        )
        self.db.add(showtime)
        self.db.flush()
        return showtime

    def has_bookings(self, showtime_id: str) -> bool:
        stmt = select(Booking.id).where(Booking.showtime_id == showtime_id).limit(1)
        return self.db.execute(stmt).first() is not None

    def delete(self, showtime: Showtime) -> None:
        SeatRepository(self.db).delete_for_showtime(showtime.id)
        self.db.delete(showtime)

    def refresh_counters(self, showtime_id: str) -> Showtime | None:
        """
        Rebuild total/available seat counters from the seat rows.

        The counters are a cached projection for display; seat rows
        stay the source of truth.
        """
        showtime = self.get_by_id(showtime_id)
        if not showtime:
            return None

        total, available = SeatRepository(self.db).count_for_showtime(showtime_id)
        showtime.total_seats = total
        showtime.available_seats = available
        self.db.flush()
        return showtime

from datetime import datetime
from typing import Callable

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from src.domain.booking_rules import utc_now
from src.domain.state_machine import BookingStatus, PaymentStatus
from src.infrastructure.db.models import Booking, Showtime

POPULAR_MOVIES_LIMIT = 5


class StatsService:
    """Read-only admin reporting over showtimes and bookings."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    def theater_stats(self) -> dict:
        now = self.clock()
        return {
            "total_showtimes": self._scalar(select(func.count(Showtime.id))),
            "active_showtimes": self._scalar(
                select(func.count(Showtime.id)).where(Showtime.start_time > now)
            ),
            "total_bookings": self._scalar(select(func.count(Booking.id))),
            "total_revenue": self._revenue([]),
            "occupancy_rate": self._occupancy_rate(now),
            "popular_movies": self._popular_movies(),
        }

    def booking_stats(
        self,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> dict:
        filters = []
        if start_date and end_date:
            filters = [Booking.created_at >= start_date, Booking.created_at <= end_date]

        def count_where(*extra) -> int:
            return self._scalar(select(func.count(Booking.id)).where(*filters, *extra))

        return {
            "total_bookings": count_where(),
            "completed_bookings": count_where(Booking.status == BookingStatus.COMPLETED),
            "cancelled_bookings": count_where(Booking.status == BookingStatus.CANCELLED),
            "revenue": self._revenue(filters),
            "payment_methods": self._payment_methods(filters),
            "daily_bookings": self._daily_bookings(filters),
        }

    def _scalar(self, stmt) -> int:
        return int(self.db.execute(stmt).scalar() or 0)

    def _revenue(self, filters: list) -> int:
        stmt = (
            select(func.coalesce(func.sum(Booking.total_amount), 0))
            .where(*filters)
            .where(Booking.payment_status == PaymentStatus.COMPLETED)
        )
        return self._scalar(stmt)

    def _occupancy_rate(self, now: datetime) -> float:
        stmt = (
            select(Showtime.total_seats, Showtime.available_seats)
            .where(Showtime.end_time > now)
            .where(Showtime.total_seats > 0)
        )
        rows = self.db.execute(stmt).all()
        if not rows:
            return 0.0
        occupancy = sum((total - available) / total for total, available in rows)
        return round(occupancy / len(rows) * 100, 2)

    def _popular_movies(self) -> list[dict]:
        count = func.count(Booking.id).label("count")
        stmt = (
            select(Booking.movie_id, count)
            .where(Booking.status == BookingStatus.COMPLETED)
            .group_by(Booking.movie_id)
            .order_by(count.desc(), Booking.movie_id)
            .limit(POPULAR_MOVIES_LIMIT)
        )
        return [{"movie_id": movie_id, "count": total} for movie_id, total in self.db.execute(stmt).all()]

    def _payment_methods(self, filters: list) -> list[dict]:
        count = func.count(Booking.id).label("count")
        stmt = (
            select(Booking.payment_method, count)
            .where(*filters)
            .where(Booking.payment_status == PaymentStatus.COMPLETED)
            .group_by(Booking.payment_method)
            .order_by(Booking.payment_method)
        )
        return [
            {"payment_method": method.value, "count": total}
            for method, total in self.db.execute(stmt).all()
        ]

    def _daily_bookings(self, filters: list) -> list[dict]:
        day = func.date(Booking.created_at).label("day")
        revenue = func.sum(
            case(
                (Booking.payment_status == PaymentStatus.COMPLETED, Booking.total_amount),
                else_=0,
            )
        ).label("revenue")
        stmt = (
            select(day, func.count(Booking.id), revenue)
            .where(*filters)
            .group_by(day)
            .order_by(day)
        )
        return [
            {"date": str(value), "count": total, "revenue": int(amount or 0)}
            for value, total, amount in self.db.execute(stmt).all()
        ]

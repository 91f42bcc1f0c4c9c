import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.domain.booking_rules import as_utc, utc_now
from src.domain.exceptions import NotFoundError, ValidationError
from src.domain.state_machine import ScreenType, SeatType
from src.infrastructure.db.models import Seat, Showtime
from src.infrastructure.repositories.seat_repository import SeatRepository
from src.infrastructure.repositories.showtime_repository import ShowtimeRepository

logger = logging.getLogger(__name__)

_SHOWTIME_FIELDS = {
    "movie_id",
    "start_time",
    "end_time",
    "theater",
    "screen_type",
    "language",
    "base_price",
    "is_active",
}
_SEAT_FIELDS = {"row", "seat_number", "seat_type", "price", "is_active"}


class ShowtimeService:
    """Showtime scheduling and seat provisioning."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock
        self.showtime_repository = ShowtimeRepository(db)
        self.seat_repository = SeatRepository(db)

    def list_upcoming(self, movie_id: str) -> list[Showtime]:
        return self.showtime_repository.list_upcoming_for_movie(movie_id, self.clock())

    def get_showtime(self, showtime_id: str) -> Showtime:
        showtime = self.showtime_repository.get_by_id(showtime_id)
        if not showtime:
            raise NotFoundError("Showtime not found")
        return showtime

    def get_seat_map(self, showtime_id: str) -> tuple[Showtime, list[Seat]]:
        showtime = self.get_showtime(showtime_id)
        return showtime, self.seat_repository.list_for_showtime(showtime_id)

    def create_showtime(self, **fields) -> Showtime:
        data = self._clean_showtime_fields(fields)
        missing = [
            name
            for name in ("movie_id", "start_time", "end_time", "theater", "language", "base_price")
            if data.get(name) in (None, "")
        ]
        if missing:
            raise ValidationError(f"Missing showtime fields: {', '.join(missing)}")
        self._validate_window(data["start_time"], data["end_time"])

        showtime = self.showtime_repository.create(**data)
        logger.info("Showtime created. showtime_id=%s movie_id=%s", showtime.id, showtime.movie_id)
        return showtime

    def update_showtime(self, showtime_id: str, **fields) -> Showtime:
        showtime = self.get_showtime(showtime_id)
        if self.showtime_repository.has_bookings(showtime_id):
            raise ValidationError("Cannot update showtime with existing bookings")

        data = self._clean_showtime_fields(fields)
        self._validate_window(
            data.get("start_time", showtime.start_time),
            data.get("end_time", showtime.end_time),
        )
        for name, value in data.items():
            setattr(showtime, name, value)
        self.db.flush()
        return showtime

    def delete_showtime(self, showtime_id: str) -> None:
        showtime = self.get_showtime(showtime_id)
        if self.showtime_repository.has_bookings(showtime_id):
            raise ValidationError("Cannot delete showtime with existing bookings")

        self.showtime_repository.delete(showtime)
        self.db.flush()
        logger.info("Showtime deleted. showtime_id=%s", showtime_id)

    def provision_seats(self, showtime_id: str, seats: list[dict]) -> list[Seat]:
        self.get_showtime(showtime_id)
        if not seats:
            raise ValidationError("At least one seat is required")

        cleaned = [self._clean_seat_fields(seat, require_all=True) for seat in seats]
        positions = [(item["row"], item["seat_number"]) for item in cleaned]
        if len(set(positions)) != len(positions):
            raise ValidationError("Duplicate seat positions in request")

        try:
            created = self.seat_repository.create_batch(showtime_id, cleaned)
        except IntegrityError as exc:
            self.db.rollback()
            raise ValidationError("One or more seats already exist for this showtime") from exc

        self.showtime_repository.refresh_counters(showtime_id)
        logger.info("Seats provisioned. showtime_id=%s count=%s", showtime_id, len(created))
        return created

    def update_seat(self, seat_id: str, **fields) -> Seat:
        seat = self._get_seat(seat_id)
        if seat.is_booked:
            raise ValidationError("Cannot modify a booked seat")

        for name, value in self._clean_seat_fields(fields, require_all=False).items():
            setattr(seat, name, value)
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            raise ValidationError("Seat position already taken for this showtime") from exc

        self.showtime_repository.refresh_counters(seat.showtime_id)
        return seat

    def delete_seat(self, seat_id: str) -> None:
        seat = self._get_seat(seat_id)
        if seat.is_booked:
            raise ValidationError("Cannot delete a booked seat")
        if self.seat_repository.has_booking_history(seat_id):
            raise ValidationError("Seat appears in past bookings; deactivate it instead")

        showtime_id = seat.showtime_id
        self.seat_repository.delete(seat)
        self.db.flush()
        self.showtime_repository.refresh_counters(showtime_id)

    def _get_seat(self, seat_id: str) -> Seat:
        seat = self.seat_repository.get_by_id(seat_id)
        if not seat:
            raise NotFoundError("Seat not found")
        return seat

    @staticmethod
    def _validate_window(start_time: datetime, end_time: datetime) -> None:
        if as_utc(end_time) <= as_utc(start_time):
            raise ValidationError("Showtime end time must be after start time")

    @staticmethod
    def _clean_showtime_fields(fields: dict) -> dict:
        data = {name: value for name, value in fields.items() if name in _SHOWTIME_FIELDS and value is not None}
        if "screen_type" in data:
            try:
                data["screen_type"] = ScreenType(data["screen_type"])
            except ValueError as exc:
                raise ValidationError(f"Invalid screen type: {data['screen_type']}") from exc
        if "base_price" in data and data["base_price"] < 0:
            raise ValidationError("Base price cannot be negative")
        return data

    @staticmethod
    def _clean_seat_fields(fields: dict, require_all: bool) -> dict:
        data = {name: value for name, value in fields.items() if name in _SEAT_FIELDS and value is not None}
        if require_all:
            missing = [name for name in ("row", "seat_number", "price") if data.get(name) in (None, "")]
            if missing:
                raise ValidationError(f"Missing seat fields: {', '.join(missing)}")
        if "seat_type" in data:
            try:
                data["seat_type"] = SeatType(data["seat_type"])
            except ValueError as exc:
                raise ValidationError(f"Invalid seat type: {data['seat_type']}") from exc
        if "price" in data and data["price"] < 0:
            raise ValidationError("Seat price cannot be negative")
        return data

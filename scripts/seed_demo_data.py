from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from src.application.showtime_service import ShowtimeService
from src.infrastructure.db.models import Base, Showtime
from src.infrastructure.db.session import engine, session_scope


def _dt(days_from_now: int, hour: int, minute: int) -> datetime:
    now = datetime.now(timezone.utc)
    target = now + timedelta(days=days_from_now)
    return target.replace(hour=hour, minute=minute, second=0, microsecond=0)


SHOWTIME_DEFS = [
    {
        "movie_id": "603692",
        "theater": "Downtown Cinema Hall 1",
        "screen_type": "IMAX",
        "language": "English",
        "base_price": 15,
        "start_time": _dt(days_from_now=2, hour=19, minute=30),
        "duration_minutes": 169,
    },
    {
        "movie_id": "603692",
        "theater": "Downtown Cinema Hall 2",
        "screen_type": "2D",
        "language": "English",
        "base_price": 10,
        "start_time": _dt(days_from_now=3, hour=14, minute=0),
        "duration_minutes": 169,
    },
    {
        "movie_id": "872585",
        "theater": "Riverside Multiplex Screen 4",
        "screen_type": "4DX",
        "language": "English",
        "base_price": 18,
        "start_time": _dt(days_from_now=4, hour=21, minute=0),
        "duration_minutes": 180,
    },
]

SEAT_LAYOUT = [
    ("A", "regular", 0),
    ("B", "regular", 0),
    ("C", "premium", 4),
    ("D", "vip", 9),
]
SEATS_PER_ROW = 10


def seed_showtimes(db) -> None:
    service = ShowtimeService(db)
    for item in SHOWTIME_DEFS:
        existing = db.execute(
            select(Showtime)
            .where(Showtime.movie_id == item["movie_id"])
            .where(Showtime.theater == item["theater"])
        ).scalar_one_or_none()
        if existing:
            continue

        showtime = service.create_showtime(
            movie_id=item["movie_id"],
            start_time=item["start_time"],
            end_time=item["start_time"] + timedelta(minutes=item["duration_minutes"]),
            theater=item["theater"],
            screen_type=item["screen_type"],
            language=item["language"],
            base_price=item["base_price"],
        )
        seats = [
            {
                "row": row,
                "seat_number": str(number),
                "seat_type": seat_type,
                "price": item["base_price"] + surcharge,
            }
            for row, seat_type, surcharge in SEAT_LAYOUT
            for number in range(1, SEATS_PER_ROW + 1)
        ]
        service.provision_seats(showtime.id, seats)


def main() -> None:
    Base.metadata.create_all(bind=engine)
    with session_scope() as db:
        seed_showtimes(db)
    print("Seed completed: showtimes and seats are ready.")


if __name__ == "__main__":
    main()

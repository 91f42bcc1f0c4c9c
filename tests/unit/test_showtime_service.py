from datetime import timedelta

import pytest
from sqlalchemy import select

from src.application.booking_service import BookingService
from src.application.showtime_service import ShowtimeService
from src.domain.exceptions import NotFoundError, ValidationError
from src.domain.state_machine import ScreenType, SeatType
from src.infrastructure.db.models import Seat, Showtime


@pytest.fixture
def service(db_session, now, clock_at):
    return ShowtimeService(db_session, clock=clock_at(now))


def _showtime_fields(now, **overrides):
    fields = {
        "movie_id": "680",
        "start_time": now + timedelta(days=3),
        "end_time": now + timedelta(days=3, hours=2),
        "theater": "Hall 2",
        "screen_type": "IMAX",
        "language": "English",
        "base_price": 12,
    }
    fields.update(overrides)
    return fields


def test_create_showtime_starts_with_empty_counters(service, now):
    showtime = service.create_showtime(**_showtime_fields(now))

    assert showtime.screen_type == ScreenType.IMAX
    assert showtime.total_seats == 0
    assert showtime.available_seats == 0
    assert showtime.is_full


def test_end_must_follow_start(service, now):
    with pytest.raises(ValidationError):
        service.create_showtime(**_showtime_fields(now, end_time=now + timedelta(days=2)))


def test_unknown_screen_type_rejected(service, now):
    with pytest.raises(ValidationError):
        service.create_showtime(**_showtime_fields(now, screen_type="8K"))


def test_provision_seats_rebuilds_counters(db_session, service, now):
    showtime = service.create_showtime(**_showtime_fields(now))
    seats = service.provision_seats(
        showtime.id,
        [
            {"row": "B", "seat_number": "1", "seat_type": "vip", "price": 25},
            {"row": "B", "seat_number": "2", "price": 12},
        ],
    )

    assert [seat.label for seat in seats] == ["B1", "B2"]
    assert seats[0].seat_type == SeatType.VIP
    assert seats[1].seat_type == SeatType.REGULAR
    assert all(not seat.is_booked and seat.booking_id is None for seat in seats)
    assert db_session.get(Showtime, showtime.id).total_seats == 2
    assert db_session.get(Showtime, showtime.id).available_seats == 2


def test_duplicate_seat_positions_rejected(service, now):
    showtime = service.create_showtime(**_showtime_fields(now))
    with pytest.raises(ValidationError):
        service.provision_seats(
            showtime.id,
            [
                {"row": "A", "seat_number": "1", "price": 10},
                {"row": "A", "seat_number": "1", "price": 10},
            ],
        )


def test_provision_for_unknown_showtime(service):
    with pytest.raises(NotFoundError):
        service.provision_seats("missing", [{"row": "A", "seat_number": "1", "price": 10}])


def test_list_upcoming_skips_past_showtimes(db_session, service, now):
    future = service.create_showtime(**_showtime_fields(now))
    service.create_showtime(
        **_showtime_fields(
            now,
            start_time=now - timedelta(hours=3),
            end_time=now - timedelta(hours=1),
        )
    )
    db_session.commit()

    assert [showtime.id for showtime in service.list_upcoming("680")] == [future.id]


def test_booked_showtime_cannot_be_changed_or_deleted(db_session, service, now, clock_at, seeded_showtime):
    showtime, seats = seeded_showtime
    BookingService(db_session, clock=clock_at(now)).create_booking(
        user_id="user-1",
        movie_id=showtime.movie_id,
        showtime_id=showtime.id,
        seat_ids=[seats[0].id],
        payment_method="debit_card",
    )
    db_session.commit()

    with pytest.raises(ValidationError):
        service.update_showtime(showtime.id, theater="Hall 9")
    with pytest.raises(ValidationError):
        service.delete_showtime(showtime.id)
    with pytest.raises(ValidationError):
        service.update_seat(seats[0].id, price=99)
    with pytest.raises(ValidationError):
        service.delete_seat(seats[0].id)


def test_delete_showtime_cascades_seats(db_session, service, seeded_showtime):
    showtime, _ = seeded_showtime

    service.delete_showtime(showtime.id)
    db_session.commit()

    assert db_session.get(Showtime, showtime.id) is None
    remaining = db_session.execute(select(Seat).where(Seat.showtime_id == showtime.id)).scalars().all()
    assert remaining == []


def test_deactivating_seat_refreshes_counters(db_session, service, seeded_showtime):
    showtime, seats = seeded_showtime

    service.update_seat(seats[3].id, is_active=False)
    service.delete_seat(seats[2].id)
    db_session.commit()

    refreshed = db_session.get(Showtime, showtime.id)
    assert refreshed.total_seats == 2
    assert refreshed.available_seats == 2


def test_seat_with_booking_history_is_kept(db_session, service, now, clock_at, seeded_showtime):
    showtime, seats = seeded_showtime
    bookings = BookingService(db_session, clock=clock_at(now))
    booking = bookings.create_booking(
        user_id="user-1",
        movie_id=showtime.movie_id,
        showtime_id=showtime.id,
        seat_ids=[seats[0].id],
        payment_method="e_wallet",
    )
    bookings.cancel_booking(booking.id)
    db_session.commit()

    with pytest.raises(ValidationError):
        service.delete_seat(seats[0].id)
    service.update_seat(seats[0].id, is_active=False)
    db_session.commit()

    assert db_session.get(Showtime, showtime.id).total_seats == 3

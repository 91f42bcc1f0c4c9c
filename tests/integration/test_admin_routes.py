import pytest


@pytest.fixture
def admin(headers):
    return headers("ops-1", role="admin")


def _create_showtime(client, admin):
    response = client.post(
        "/admin/showtimes",
        json={
            "movieId": "680",
            "startTime": "2031-01-10T18:00:00+00:00",
            "endTime": "2031-01-10T20:34:00+00:00",
            "theater": "Hall 3",
            "screenType": "3D",
            "language": "English",
            "basePrice": 15,
        },
        headers=admin,
    )
    assert response.status_code == 201
    return response.json()["showtime"]


def test_admin_routes_require_admin_role(client, headers):
    assert client.get("/admin/stats/theater").status_code == 401
    response = client.get("/admin/stats/theater", headers=headers())
    assert response.status_code == 403
    assert response.json()["message"] == "Access denied. Admin privileges required."


def test_showtime_and_seat_provisioning(client, admin):
    showtime = _create_showtime(client, admin)
    assert showtime["screenType"] == "3D"
    assert showtime["totalSeats"] == 0
    assert showtime["isFull"] is True

    created = client.post(
        "/admin/seats",
        json={
            "showtimeId": showtime["id"],
            "seats": [
                {"row": "C", "seatNumber": "1", "price": 15},
                {"row": "C", "seatNumber": "2", "seatType": "vip", "price": 22},
            ],
        },
        headers=admin,
    )
    assert created.status_code == 201
    seats = created.json()["seats"]
    assert [seat["label"] for seat in seats] == ["C1", "C2"]
    assert seats[1]["seatType"] == "vip"

    duplicate = client.post(
        "/admin/seats",
        json={"showtimeId": showtime["id"], "seats": [{"row": "C", "seatNumber": "1", "price": 15}]},
        headers=admin,
    )
    assert duplicate.status_code == 400

    updated = client.put(f"/admin/seats/{seats[0]['id']}", json={"price": 18}, headers=admin)
    assert updated.status_code == 200
    assert updated.json()["seat"]["price"] == 18

    assert client.delete(f"/admin/seats/{seats[1]['id']}", headers=admin).status_code == 200
    seat_map = client.get(f"/showtimes/{showtime['id']}/seats").json()
    assert seat_map["showtime"]["totalSeats"] == 1
    assert seat_map["showtime"]["availableSeats"] == 1

    renamed = client.put(f"/admin/showtimes/{showtime['id']}", json={"theater": "Hall 4"}, headers=admin)
    assert renamed.json()["showtime"]["theater"] == "Hall 4"

    bad_window = client.put(
        f"/admin/showtimes/{showtime['id']}",
        json={"endTime": "2031-01-10T17:00:00+00:00"},
        headers=admin,
    )
    assert bad_window.status_code == 400

    assert client.delete(f"/admin/showtimes/{showtime['id']}", headers=admin).status_code == 200
    assert client.get(f"/showtimes/{showtime['id']}/seats").status_code == 404


def test_payment_callbacks_stats_and_outbox(client, headers, admin, seeded_showtime):
    showtime, seats = seeded_showtime
    booking = client.post(
        "/bookings",
        json={
            "userId": "user-1",
            "movieId": "550",
            "showtimeId": showtime.id,
            "seatIds": [seats[0].id, seats[1].id],
            "paymentMethod": "debit_card",
        },
        headers=headers(),
    ).json()["booking"]

    rejected = client.put(
        f"/admin/bookings/{booking['id']}/payment",
        json={"paymentStatus": "pending"},
        headers=admin,
    )
    assert rejected.status_code == 400

    paid = client.put(
        f"/admin/bookings/{booking['id']}/payment",
        json={"paymentStatus": "completed"},
        headers=admin,
    )
    assert paid.status_code == 200
    assert paid.json()["booking"]["bookingStatus"] == "confirmed"
    assert paid.json()["booking"]["paymentStatus"] == "completed"

    early = client.put(f"/admin/bookings/{booking['id']}/complete", headers=admin)
    assert early.status_code == 400

    assert client.delete(f"/admin/showtimes/{showtime.id}", headers=admin).status_code == 400

    theater = client.get("/admin/stats/theater", headers=admin).json()["stats"]
    assert theater["totalBookings"] == 1
    assert theater["totalRevenue"] == 20
    assert theater["occupancyRate"] == 50.0

    report = client.get("/admin/stats/bookings", headers=admin).json()["stats"]
    assert report["revenue"] == 20
    assert report["paymentMethods"] == [{"paymentMethod": "debit_card", "count": 1}]

    inverted = client.get(
        "/admin/stats/bookings",
        params={"startDate": "2030-02-01T00:00:00", "endDate": "2030-01-01T00:00:00"},
        headers=admin,
    )
    assert inverted.status_code == 400

    listing = client.get("/admin/outbox/events", headers=admin).json()
    assert listing["success"] is True
    events = listing["events"]
    assert {event["eventType"] for event in events} == {"BOOKING_CREATED", "BOOKING_CONFIRMED"}
    assert all(event["aggregateId"] == booking["id"] for event in events)

    published = client.post(f"/admin/outbox/events/{events[0]['id']}/mark-published", headers=admin)
    assert published.status_code == 200
    assert published.json()["success"] is True
    assert published.json()["event"]["status"] == "PUBLISHED"
    assert published.json()["event"]["attempts"] == 1
    assert len(client.get("/admin/outbox/events", headers=admin).json()["events"]) == 1

    history = client.get("/admin/outbox/events", params={"aggregateId": booking["id"]}, headers=admin).json()["events"]
    assert len(history) == 2

    reconciled = client.post(f"/admin/showtimes/{showtime.id}/reconcile", headers=admin)
    assert reconciled.status_code == 200
    assert reconciled.json()["releasedSeats"] == 0
    assert reconciled.json()["availableSeats"] == 2


def test_unknown_outbox_event_returns_404(client, admin):
    response = client.post("/admin/outbox/events/missing/mark-published", headers=admin)
    assert response.status_code == 404

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from src.api.dependencies import CallerIdentity, get_current_user, get_db
from src.api.schemas.schemas import (
    BookingEnvelope,
    BookingRequest,
    SeatMapEnvelope,
    ShowtimeListEnvelope,
    UserBooking,
    UserBookingsEnvelope,
)
from src.api.serializers import (
    booking_fields,
    booking_response,
    seat_response,
    showtime_response,
)
from src.application.booking_service import BookingService
from src.application.showtime_service import ShowtimeService
from src.domain.exceptions import ForbiddenError
from src.infrastructure.catalog.tmdb_client import MovieCatalogClient


router = APIRouter()
logger = logging.getLogger(__name__)


def get_catalog_client():
    client = MovieCatalogClient()
    try:
        yield client
    finally:
        client.close()


@router.get("/health")
def health():
    return {"success": True, "message": "Cinema booking service is running"}


@router.get("/showtimes/{movie_id}/showtimes", response_model=ShowtimeListEnvelope)
def list_movie_showtimes(
    movie_id: str,
    db: Session = Depends(get_db),
    catalog: MovieCatalogClient = Depends(get_catalog_client),
):
    showtimes = ShowtimeService(db).list_upcoming(movie_id)
    return ShowtimeListEnvelope(
        movie=catalog.try_get_movie(movie_id),
        showtimes=[showtime_response(showtime) for showtime in showtimes],
    )


@router.get("/showtimes/{showtime_id}/seats", response_model=SeatMapEnvelope)
def list_showtime_seats(
    showtime_id: str,
    db: Session = Depends(get_db),
):
    showtime, seats = ShowtimeService(db).get_seat_map(showtime_id)
    return SeatMapEnvelope(
        showtime=showtime_response(showtime),
        seats=[seat_response(seat) for seat in seats],
    )


@router.post(
    "/bookings",
    response_model=BookingEnvelope,
    status_code=status.HTTP_201_CREATED,
)
def create_booking(
    request: BookingRequest,
    db: Session = Depends(get_db),
    user: CallerIdentity = Depends(get_current_user),
):
    if request.user_id and request.user_id != user.user_id and not user.is_admin:
        raise ForbiddenError("Cannot book on behalf of another user")

    service = BookingService(db)
    booking = service.create_booking(
        user_id=request.user_id,
        movie_id=request.movie_id,
        showtime_id=request.showtime_id,
        seat_ids=request.seat_ids,
        payment_method=request.payment_method,
        total_amount=request.total_amount,
        payment_status=request.payment_status,
        customer_name=request.customer_name,
        customer_email=request.customer_email,
        customer_phone=request.customer_phone,
        special_requests=request.special_requests,
    )
    logger.info("Booking %s created by caller %s", booking.id, user.user_id)

    return BookingEnvelope(
        message="Booking created successfully",
        booking=booking_response(service.get_booking(booking.id)),
    )


@router.get("/bookings/{booking_id}", response_model=BookingEnvelope)
def get_booking(
    booking_id: str,
    db: Session = Depends(get_db),
    user: CallerIdentity = Depends(get_current_user),
    catalog: MovieCatalogClient = Depends(get_catalog_client),
):
    booking = BookingService(db).get_booking(
        booking_id,
        requested_by=None if user.is_admin else user.user_id,
    )
    return BookingEnvelope(
        booking=booking_response(booking),
        movie=catalog.try_get_movie(booking.movie_id),
    )


@router.put("/bookings/{booking_id}/cancel", response_model=BookingEnvelope)
def cancel_booking(
    booking_id: str,
    db: Session = Depends(get_db),
    user: CallerIdentity = Depends(get_current_user),
):
    service = BookingService(db)
    booking = service.cancel_booking(
        booking_id,
        requested_by=None if user.is_admin else user.user_id,
    )
    return BookingEnvelope(
        message="Booking cancelled successfully",
        booking=booking_response(service.get_booking(booking.id)),
    )


@router.get("/users/bookings", response_model=UserBookingsEnvelope)
def list_user_bookings(
    db: Session = Depends(get_db),
    user: CallerIdentity = Depends(get_current_user),
    catalog: MovieCatalogClient = Depends(get_catalog_client),
):
    bookings = BookingService(db).list_user_bookings(user.user_id)
    movies: dict[str, dict | None] = {}
    results = []
    for booking in bookings:
        if booking.movie_id not in movies:
            movies[booking.movie_id] = catalog.try_get_movie(booking.movie_id)
        results.append(UserBooking(**booking_fields(booking), movie=movies[booking.movie_id]))
    return UserBookingsEnvelope(bookings=results)

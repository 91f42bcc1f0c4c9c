

class CinemaBookingError(Exception):
    """
    Base exception for all domain-level errors
    inside the cinema booking service.
    """

    status_code = 500


class ValidationError(CinemaBookingError):
    """Raised when booking input is missing or malformed."""

    status_code = 400


class NotFoundError(CinemaBookingError):
    """Raised when a showtime, seat or booking does not exist."""

    status_code = 404


class SeatUnavailableError(CinemaBookingError):
    """Raised when not every requested seat is free."""

    status_code = 400

    def __init__(self, message: str, seat_ids: list[str] | None = None):
        self.seat_ids = seat_ids or []
        super().__init__(message)


class CancellationWindowError(CinemaBookingError):
    """Raised when a cancel is attempted too close to the showtime start."""

    status_code = 400

    def __init__(self, hours_until_showtime: float, window_hours: float):
        self.hours_until_showtime = hours_until_showtime
        self.window_hours = window_hours
        super().__init__(
            f"Cannot cancel booking less than {window_hours:g} hours before showtime"
        )


class InvalidStateTransitionError(CinemaBookingError):
    """
    Raised when an illegal booking state transition is attempted.
    """

    status_code = 409

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state

        message = (
            f"Illegal state transition attempted: "
            f"{from_state} -> {to_state}"
        )
        super().__init__(message)


class AuthenticationError(CinemaBookingError):
    """Raised when the caller identity is missing or cannot be verified."""

    status_code = 401


class ForbiddenError(CinemaBookingError):
    """Raised when the caller may not act on the requested resource."""

    status_code = 403


class ServiceUnavailableError(CinemaBookingError):
    """Raised when the backing store or an external collaborator fails."""

    status_code = 503

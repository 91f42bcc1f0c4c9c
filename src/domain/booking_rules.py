# src/domain/booking_rules.py

import os
import random
from datetime import datetime, timezone

from src.domain.exceptions import CancellationWindowError, ValidationError


CANCELLATION_WINDOW_HOURS = float(os.getenv("CANCELLATION_WINDOW_HOURS", "2"))

_SECONDS_PER_HOUR = 3600


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_booking_code(now: datetime | None = None, rng: random.Random | None = None) -> str:
    """
    Human-facing booking code: ``YYYYMMDD-NNNN``.

    The date part is the UTC creation date, the suffix a random
    4-digit number in [1000, 9999].
    """
    now = as_utc(now or utc_now())
    rng = rng or random
    return f"{now:%Y%m%d}-{rng.randint(1000, 9999)}"


def hours_until(start_time: datetime, now: datetime) -> float:
    return (as_utc(start_time) - as_utc(now)).total_seconds() / _SECONDS_PER_HOUR


def ensure_cancellable(
    start_time: datetime,
    now: datetime,
    window_hours: float = CANCELLATION_WINDOW_HOURS,
) -> float:
    """
    Raises CancellationWindowError when fewer than ``window_hours``
    remain before ``start_time``. Returns the remaining hours otherwise.
    """
    remaining = hours_until(start_time, now)
    if remaining < window_hours:
        raise CancellationWindowError(
            hours_until_showtime=remaining,
            window_hours=window_hours,
        )
    return remaining


def resolve_total_amount(seat_prices: list[int], requested_total: int | None) -> int:
    """Sum of seat prices, checked against the caller supplied total."""
    computed = sum(seat_prices)
    if requested_total is None:
        return computed
    if requested_total < 0:
        raise ValidationError("Total amount cannot be negative")
    if requested_total != computed:
        raise ValidationError(
            f"Total amount {requested_total} does not match seat prices ({computed})"
        )
    return computed

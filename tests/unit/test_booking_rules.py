import random
import re
from datetime import datetime, timedelta, timezone

import pytest

from src.domain.booking_rules import (
    ensure_cancellable,
    generate_booking_code,
    hours_until,
    resolve_total_amount,
)
from src.domain.exceptions import CancellationWindowError, ValidationError


START = datetime(2030, 5, 2, 18, 0, tzinfo=timezone.utc)


def test_booking_code_format():
    code = generate_booking_code(START, rng=random.Random(7))
    assert re.fullmatch(r"20300502-\d{4}", code)
    assert 1000 <= int(code.split("-")[1]) <= 9999


def test_hours_until_accepts_naive_utc():
    naive_start = START.replace(tzinfo=None)
    assert hours_until(naive_start, START - timedelta(hours=3)) == pytest.approx(3)


def test_cancel_just_outside_window_succeeds():
    remaining = ensure_cancellable(START, START - timedelta(hours=2, minutes=1))
    assert remaining > 2


def test_cancel_inside_window_fails():
    with pytest.raises(CancellationWindowError) as exc_info:
        ensure_cancellable(START, START - timedelta(hours=1, minutes=59))
    assert exc_info.value.hours_until_showtime < 2


def test_cancel_exactly_at_window_succeeds():
    assert ensure_cancellable(START, START - timedelta(hours=2)) == pytest.approx(2)


def test_total_amount_computed_when_missing():
    assert resolve_total_amount([10, 12], None) == 22


def test_total_amount_mismatch_rejected():
    with pytest.raises(ValidationError):
        resolve_total_amount([10, 12], 20)


def test_negative_total_rejected():
    with pytest.raises(ValidationError):
        resolve_total_amount([10], -10)

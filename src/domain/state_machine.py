# src/domain/state_machine.py

from enum import Enum
from typing import Dict, Set

from src.domain.exceptions import InvalidStateTransitionError


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    E_WALLET = "e_wallet"
    BANK_TRANSFER = "bank_transfer"


class ScreenType(str, Enum):
    TWO_D = "2D"
    THREE_D = "3D"
    IMAX = "IMAX"
    FOUR_DX = "4DX"


class SeatType(str, Enum):
    REGULAR = "regular"
    PREMIUM = "premium"
    VIP = "vip"


class _Lifecycle:
    """
    Transition table plus guards shared by the booking and payment
    lifecycles. Subclasses set ``status_type`` and ``_ALLOWED_TRANSITIONS``.
    """

    status_type: type[Enum]
    _ALLOWED_TRANSITIONS: Dict[Enum, Set[Enum]] = {}

    @classmethod
    def can_transition(cls, from_status, to_status) -> bool:
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)
        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(cls, from_status, to_status) -> None:
        """
        Raises InvalidStateTransitionError if transition is illegal.
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransitionError(
                from_state=from_status.value,
                to_state=to_status.value,
            )

    @classmethod
    def is_terminal(cls, status) -> bool:
        return not cls.get_allowed_transitions(status)

    @classmethod
    def get_allowed_transitions(cls, status) -> Set[Enum]:
        cls._ensure_valid_status(status)
        return set(cls._ALLOWED_TRANSITIONS.get(status, set()))

    @classmethod
    def _ensure_valid_status(cls, status) -> None:
        if not isinstance(status, cls.status_type):
            raise TypeError(
                f"Expected {cls.status_type.__name__}, got {type(status)}"
            )


class BookingStateMachine(_Lifecycle):
    """
    pending -> confirmed -> completed, with cancellation allowed until
    the booking is completed. Cancelled and completed are terminal.
    """

    status_type = BookingStatus
    _ALLOWED_TRANSITIONS: Dict[BookingStatus, Set[BookingStatus]] = {
        BookingStatus.PENDING: {
            BookingStatus.CONFIRMED,
            BookingStatus.CANCELLED,
        },
        BookingStatus.CONFIRMED: {
            BookingStatus.COMPLETED,
            BookingStatus.CANCELLED,
        },
        BookingStatus.CANCELLED: set(),
        BookingStatus.COMPLETED: set(),
    }

    # Statuses whose bookings currently hold seats.
    ACTIVE_STATUSES: Set[BookingStatus] = {
        BookingStatus.PENDING,
        BookingStatus.CONFIRMED,
        BookingStatus.COMPLETED,
    }

    @classmethod
    def is_active(cls, status: BookingStatus) -> bool:
        cls._ensure_valid_status(status)
        return status in cls.ACTIVE_STATUSES


class PaymentStateMachine(_Lifecycle):
    status_type = PaymentStatus
    _ALLOWED_TRANSITIONS: Dict[PaymentStatus, Set[PaymentStatus]] = {
        PaymentStatus.PENDING: {
            PaymentStatus.COMPLETED,
            PaymentStatus.FAILED,
        },
        PaymentStatus.COMPLETED: {
            PaymentStatus.REFUNDED,
        },
        PaymentStatus.FAILED: set(),
        PaymentStatus.REFUNDED: set(),
    }

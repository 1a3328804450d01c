from enum import Enum

from sqlalchemy import Enum as SAEnum

from parkmitra.core.exceptions import InvalidTransition


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"   # future start, window reserved
    ACTIVE = "active"         # started, holds the ledger counter
    OVERSTAY = "overstay"     # end passed, vehicle still inside
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def occupies_slot(self) -> bool:
        return self in OCCUPYING_STATUSES


TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})
OCCUPYING_STATUSES = frozenset({BookingStatus.ACTIVE, BookingStatus.OVERSTAY})

BOOKING_TRANSITIONS = {
    BookingStatus.CONFIRMED: frozenset({BookingStatus.ACTIVE, BookingStatus.CANCELLED}),
    BookingStatus.ACTIVE: frozenset(
        {BookingStatus.OVERSTAY, BookingStatus.COMPLETED, BookingStatus.CANCELLED}
    ),
    BookingStatus.OVERSTAY: frozenset({BookingStatus.COMPLETED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}


def ensure_booking_transition(current: BookingStatus, target: BookingStatus):
    if target not in BOOKING_TRANSITIONS[current]:
        raise InvalidTransition(
            f"Booking cannot move from '{current.value}' to '{target.value}'"
        )


def slot_delta(current: BookingStatus, target: BookingStatus) -> int:
    """Ledger change caused by moving a booking from ``current`` to ``target``."""
    ensure_booking_transition(current, target)
    if target.occupies_slot and not current.occupies_slot:
        return -1
    if current.occupies_slot and not target.occupies_slot:
        return 1
    return 0


class PaymentStatus(str, Enum):
    """Booking-level payment state."""
    PENDING = "pending"
    COMPLETED = "completed"
    REFUNDED = "refunded"


class PaymentRecordStatus(str, Enum):
    """State of a single payment row."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


PAYMENT_TRANSITIONS = {
    PaymentRecordStatus.PENDING: frozenset(
        {PaymentRecordStatus.COMPLETED, PaymentRecordStatus.FAILED}
    ),
    PaymentRecordStatus.COMPLETED: frozenset(),
    PaymentRecordStatus.FAILED: frozenset(),
}


def ensure_payment_transition(current: PaymentRecordStatus, target: PaymentRecordStatus):
    if target not in PAYMENT_TRANSITIONS[current]:
        raise InvalidTransition(
            f"Payment cannot move from '{current.value}' to '{target.value}'"
        )


class PaymentType(str, Enum):
    BOOKING = "booking"
    PENALTY = "penalty"


class UserType(str, Enum):
    VISITOR = "visitor"
    ORGANIZATION_MEMBER = "organization_member"
    WALK_IN = "walk_in"
    WATCHMAN = "watchman"
    ADMIN = "admin"


def db_enum(enum_cls, name: str) -> SAEnum:
    """SQLAlchemy Enum type persisting the member *values* (lowercase strings)."""
    return SAEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )

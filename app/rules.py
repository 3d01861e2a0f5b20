"""
Booking lifecycle rules: the status state machine and the calendar overlap test.

    PENDING   -> CONFIRMED, CANCELLED
    CONFIRMED -> COMPLETED, CANCELLED
    COMPLETED -> (terminal)
    CANCELLED -> (terminal)

A move to the current status is not in the table and is therefore invalid.
"""

from datetime import date
from types import MappingProxyType

from app.models import BookingStatus

BOOKING_TRANSITIONS = MappingProxyType(
    {
        BookingStatus.PENDING: frozenset(
            {BookingStatus.CONFIRMED, BookingStatus.CANCELLED}
        ),
        BookingStatus.CONFIRMED: frozenset(
            {BookingStatus.COMPLETED, BookingStatus.CANCELLED}
        ),
        BookingStatus.COMPLETED: frozenset(),
        BookingStatus.CANCELLED: frozenset(),
    }
)

# Statuses that hold dates on the property calendar
ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


def allowed_transitions(current: BookingStatus) -> list[BookingStatus]:
    """Allowed next statuses, in declaration order."""
    nxt = BOOKING_TRANSITIONS.get(current, frozenset())
    return [s for s in BookingStatus if s in nxt]


def can_transition(current: BookingStatus, new: BookingStatus) -> bool:
    return new in BOOKING_TRANSITIONS.get(current, frozenset())


def ranges_conflict(
    existing_check_in: date,
    existing_check_out: date,
    check_in: date,
    check_out: date,
) -> bool:
    """
    Inclusive overlap test. Ranges that merely touch (one checks out the day the
    other checks in) count as conflicting, so same-day turnover is refused.
    """
    return existing_check_in <= check_out and existing_check_out >= check_in

"""Domain enumerations and state-transition rules."""

import enum


class BookingStatus(str, enum.Enum):
    REQUESTED = "REQUESTED"
    ASSIGNED = "ASSIGNED"
    EN_ROUTE = "EN_ROUTE"
    ARRIVED = "ARRIVED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"


# State machine: maps current status -> set of valid next statuses
BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.REQUESTED: {BookingStatus.ASSIGNED, BookingStatus.CANCELED},
    BookingStatus.ASSIGNED: {BookingStatus.EN_ROUTE, BookingStatus.CANCELED},
    BookingStatus.EN_ROUTE: {BookingStatus.ARRIVED, BookingStatus.CANCELED},
    BookingStatus.ARRIVED: {BookingStatus.IN_PROGRESS, BookingStatus.CANCELED},
    BookingStatus.IN_PROGRESS: {BookingStatus.COMPLETED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELED: set(),
}

# Linear progression used by the "advance" event
NEXT_STATUS: dict[BookingStatus, BookingStatus] = {
    BookingStatus.ASSIGNED: BookingStatus.EN_ROUTE,
    BookingStatus.EN_ROUTE: BookingStatus.ARRIVED,
    BookingStatus.ARRIVED: BookingStatus.IN_PROGRESS,
}

# Statuses in which a driver must be bound to the booking
DRIVER_BOUND_STATUSES = frozenset(
    {
        BookingStatus.ASSIGNED,
        BookingStatus.EN_ROUTE,
        BookingStatus.ARRIVED,
        BookingStatus.IN_PROGRESS,
        BookingStatus.COMPLETED,
    }
)

# A rider cancellation from these statuses is refunded
REFUNDABLE_STATUSES = frozenset({BookingStatus.REQUESTED, BookingStatus.ASSIGNED})

TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELED})


class CancelReason(str, enum.Enum):
    RIDER = "RIDER"
    DRIVER = "DRIVER"


class RefundOutcome(str, enum.Enum):
    APPLIED = "APPLIED"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


class AssignmentOutcome(str, enum.Enum):
    ASSIGNED = "ASSIGNED"
    SUGGESTIONS = "SUGGESTIONS"
    NO_ELIGIBLE_DRIVER = "NO_ELIGIBLE_DRIVER"

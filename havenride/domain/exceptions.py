"""Dispatch error taxonomy.

Every failure the dispatch core reports to a caller derives from
``DispatchError`` so the API layer can map categories to status codes.
"Nothing eligible" is deliberately absent: it is a normal outcome.
"""

from __future__ import annotations


class DispatchError(Exception):
    """Base class for dispatch-core failures."""


class BookingValidationError(DispatchError):
    """Malformed or incomplete booking data (e.g. no pickup coordinates)."""


class BookingNotFound(DispatchError):
    def __init__(self, booking_id: str):
        super().__init__(f"Booking {booking_id} not found")
        self.booking_id = booking_id


class DriverNotFound(DispatchError):
    def __init__(self, driver_id: str):
        super().__init__(f"Driver {driver_id} not found")
        self.driver_id = driver_id


class InvalidStateTransition(DispatchError):
    """Raised when a booking status change violates the state machine."""


class TransitionConflict(DispatchError):
    """The booking was no longer in the expected status at write time.

    Callers must re-read the booking (and re-score drivers) before retrying.
    """

    def __init__(self, booking_id: str, expected, actual=None):
        detail = f"Booking {booking_id} is no longer {getattr(expected, 'value', expected)}"
        if actual is not None:
            detail += f" (now {getattr(actual, 'value', actual)})"
        super().__init__(detail)
        self.booking_id = booking_id
        self.expected = expected
        self.actual = actual

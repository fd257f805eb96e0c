"""
Booking Lifecycle
=================

REQUESTED -> ASSIGNED -> EN_ROUTE -> ARRIVED -> IN_PROGRESS -> COMPLETED

CANCELED is reachable from REQUESTED, ASSIGNED, EN_ROUTE and ARRIVED.
Once IN_PROGRESS the ride can only complete.

``BookingLifecycle.plan`` is pure: given a booking snapshot and an event it
returns a ``TransitionPlan`` describing

* the status the booking must still be in when the write happens,
* the column values to write, and
* the side effects to run once the write has been committed.

It never touches the store or the network.  Illegal events raise
``InvalidStateTransition``.

Side effects per event
----------------------
assign          set driver; ``assigned`` to the driver; ``booking_updated``
                to dispatch and the booking channel
advance         ``booking_updated`` to rider, dispatch, booking channel
cancel RIDER    refund (only from REQUESTED / ASSIGNED, only with a payment
                reference); notify the driver if one was bound; dispatch
cancel DRIVER   unbind the driver; notify rider; dispatch
complete        final fare written with the status; earnings accrual;
                accounting record; receipt (if enabled and an email is on
                file); rider / dispatch / booking notifications
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Union

from .entities import Booking
from .enums import (
    BOOKING_TRANSITIONS,
    NEXT_STATUS,
    REFUNDABLE_STATUSES,
    BookingStatus,
    CancelReason,
)
from .exceptions import BookingValidationError, InvalidStateTransition
from .fares import FareCalculator
from .ports import Receipt

DISPATCH_CHANNEL = "dispatch"

EVENT_BOOKING_CREATED = "booking_created"
EVENT_BOOKING_UPDATED = "booking_updated"
EVENT_ASSIGNED = "assigned"


def booking_channel(booking_id: str) -> str:
    return f"booking:{booking_id}"


def rider_channel(rider_id: str) -> str:
    return f"rider:{rider_id}"


def driver_channel(driver_id: str) -> str:
    return f"driver:{driver_id}"


def event_payload(
    booking_id: str, status: BookingStatus, driver_id: Optional[str] = None
) -> dict[str, Any]:
    payload: dict[str, Any] = {"bookingId": booking_id, "status": status.value}
    if driver_id is not None:
        payload["driverId"] = driver_id
    return payload


# ── Events ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Assign:
    driver_id: str


@dataclass(frozen=True)
class Advance:
    to: BookingStatus


@dataclass(frozen=True)
class Cancel:
    reason: CancelReason


@dataclass(frozen=True)
class Complete:
    final_fare: Optional[float] = None


LifecycleEvent = Union[Assign, Advance, Cancel, Complete]


# ── Side effects ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class Notify:
    channel: str
    event: str
    payload: dict[str, Any]


@dataclass(frozen=True)
class Refund:
    booking_id: str
    payment_reference: str
    amount: Optional[float] = None


@dataclass(frozen=True)
class AccrueEarnings:
    booking_id: str
    driver_id: str
    gross_fare: float


@dataclass(frozen=True)
class PushAccounting:
    record: dict[str, Any]


@dataclass(frozen=True)
class SendReceipt:
    receipt: Receipt


SideEffect = Union[Notify, Refund, AccrueEarnings, PushAccounting, SendReceipt]


@dataclass(frozen=True)
class TransitionPlan:
    booking_id: str
    from_status: BookingStatus
    to_status: BookingStatus
    changes: dict[str, Any]
    side_effects: tuple = field(default_factory=tuple)


# ── State machine ─────────────────────────────────────────────────────


class BookingLifecycle:
    def __init__(self, fares: Optional[FareCalculator] = None, send_receipts: bool = True):
        self.fares = fares or FareCalculator()
        self.send_receipts = send_receipts

    @staticmethod
    def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
        return target in BOOKING_TRANSITIONS.get(current, set())

    def _guard(self, booking: Booking, target: BookingStatus) -> None:
        if not self.can_transition(booking.status, target):
            raise InvalidStateTransition(
                f"Cannot transition booking {booking.id} from "
                f"{booking.status.value} to {target.value}"
            )

    def plan(
        self,
        booking: Booking,
        event: LifecycleEvent,
        now: Optional[datetime] = None,
    ) -> TransitionPlan:
        if isinstance(event, Assign):
            return self._assign(booking, event)
        if isinstance(event, Advance):
            return self._advance(booking, event)
        if isinstance(event, Cancel):
            return self._cancel(booking, event)
        if isinstance(event, Complete):
            return self._complete(booking, event, now or datetime.now(timezone.utc))
        raise TypeError(f"Unknown lifecycle event: {event!r}")

    # ── transitions ───────────────────────────────────────────────

    def _assign(self, booking: Booking, event: Assign) -> TransitionPlan:
        self._guard(booking, BookingStatus.ASSIGNED)
        if not event.driver_id:
            raise BookingValidationError("driverId is required to assign a booking")

        status = BookingStatus.ASSIGNED
        payload = event_payload(booking.id, status, event.driver_id)
        return TransitionPlan(
            booking_id=booking.id,
            from_status=booking.status,
            to_status=status,
            changes={"status": status, "driver_id": event.driver_id},
            side_effects=(
                Notify(driver_channel(event.driver_id), EVENT_ASSIGNED, payload),
                Notify(DISPATCH_CHANNEL, EVENT_BOOKING_UPDATED, payload),
                Notify(booking_channel(booking.id), EVENT_BOOKING_UPDATED, payload),
            ),
        )

    def _advance(self, booking: Booking, event: Advance) -> TransitionPlan:
        expected_next = NEXT_STATUS.get(booking.status)
        if expected_next is None or event.to != expected_next:
            raise InvalidStateTransition(
                f"Cannot advance booking {booking.id} from "
                f"{booking.status.value} to {event.to.value}"
            )
        self._guard(booking, event.to)

        payload = event_payload(booking.id, event.to, booking.driver_id)
        return TransitionPlan(
            booking_id=booking.id,
            from_status=booking.status,
            to_status=event.to,
            changes={"status": event.to},
            side_effects=self._status_fanout(booking, payload),
        )

    def _cancel(self, booking: Booking, event: Cancel) -> TransitionPlan:
        self._guard(booking, BookingStatus.CANCELED)
        status = BookingStatus.CANCELED
        effects: list = []

        if event.reason == CancelReason.DRIVER:
            payload = event_payload(booking.id, status)
            changes = {"status": status, "driver_id": None}
            effects.append(Notify(rider_channel(booking.rider_id), EVENT_BOOKING_UPDATED, payload))
        else:
            payload = event_payload(booking.id, status, booking.driver_id)
            changes = {"status": status}
            if booking.payment_intent_id and booking.status in REFUNDABLE_STATUSES:
                effects.append(
                    Refund(
                        booking_id=booking.id,
                        payment_reference=booking.payment_intent_id,
                        amount=self.fares.refund_amount(booking),
                    )
                )
            if booking.driver_id is not None:
                effects.append(
                    Notify(driver_channel(booking.driver_id), EVENT_BOOKING_UPDATED, payload)
                )

        effects.append(Notify(DISPATCH_CHANNEL, EVENT_BOOKING_UPDATED, payload))
        effects.append(Notify(booking_channel(booking.id), EVENT_BOOKING_UPDATED, payload))
        return TransitionPlan(
            booking_id=booking.id,
            from_status=booking.status,
            to_status=status,
            changes=changes,
            side_effects=tuple(effects),
        )

    def _complete(self, booking: Booking, event: Complete, now: datetime) -> TransitionPlan:
        self._guard(booking, BookingStatus.COMPLETED)
        status = BookingStatus.COMPLETED
        fare = self.fares.final_fare(booking, event.final_fare)

        effects: list = [
            AccrueEarnings(booking_id=booking.id, driver_id=booking.driver_id, gross_fare=fare),
            PushAccounting(self._accounting_record(booking, fare, now)),
        ]
        if self.send_receipts and booking.rider_email:
            effects.append(
                SendReceipt(
                    Receipt(
                        rider_email=booking.rider_email,
                        booking_id=booking.id,
                        fare=fare,
                        currency=booking.fare_currency,
                        pickup=booking.pickup_address,
                        dropoff=booking.dropoff_address,
                        date_iso=now.isoformat(),
                        distance_km=booking.estimated_distance_km,
                        duration_min=booking.estimated_duration_min,
                    )
                )
            )
        payload = event_payload(booking.id, status, booking.driver_id)
        effects.extend(self._status_fanout(booking, payload))

        return TransitionPlan(
            booking_id=booking.id,
            from_status=booking.status,
            to_status=status,
            changes={"status": status, "final_fare_amount": fare},
            side_effects=tuple(effects),
        )

    # ── helpers ───────────────────────────────────────────────────

    @staticmethod
    def _status_fanout(booking: Booking, payload: dict[str, Any]) -> tuple:
        return (
            Notify(rider_channel(booking.rider_id), EVENT_BOOKING_UPDATED, payload),
            Notify(DISPATCH_CHANNEL, EVENT_BOOKING_UPDATED, payload),
            Notify(booking_channel(booking.id), EVENT_BOOKING_UPDATED, payload),
        )

    @staticmethod
    def _accounting_record(booking: Booking, fare: float, now: datetime) -> dict[str, Any]:
        pickup_time = booking.scheduled_pickup_time
        return {
            "id": booking.id,
            "riderId": booking.rider_id,
            "driverId": booking.driver_id,
            "pickupAddress": booking.pickup_address,
            "dropoffAddress": booking.dropoff_address,
            "pickupTime": pickup_time.isoformat() if pickup_time else None,
            "completedAt": now.isoformat(),
            "fare": {"amount": fare, "currency": booking.fare_currency},
            "requiresWheelchair": booking.requires_wheelchair,
            "distanceKm": booking.estimated_distance_km,
            "durationMin": booking.estimated_duration_min,
            "metadata": {"status": BookingStatus.COMPLETED.value},
        }

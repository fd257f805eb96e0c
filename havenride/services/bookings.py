"""
Booking creation and status-change requests.

A status change names the target status; ``StatusChange.to_event`` turns
it into a lifecycle event.  Cancellations must say who canceled via
``cancel_reason`` -- the rider/driver distinction decides refunds, so it is
never inferred from which fields happen to be present.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .transitions import SideEffectRunner, TransitionExecutor, TransitionResult
from havenride.domain.entities import Booking, Location
from havenride.domain.enums import BookingStatus, CancelReason
from havenride.domain.exceptions import (
    BookingNotFound,
    BookingValidationError,
    DriverNotFound,
    InvalidStateTransition,
)
from havenride.domain.lifecycle import (
    DISPATCH_CHANNEL,
    EVENT_BOOKING_CREATED,
    Advance,
    Assign,
    BookingLifecycle,
    Cancel,
    Complete,
    LifecycleEvent,
    Notify,
    booking_channel,
    event_payload,
)
from havenride.infrastructure.models import BookingModel
from havenride.infrastructure.repositories import (
    BookingRepository,
    DriverRepository,
    booking_to_entity,
)

logger = logging.getLogger(__name__)

PIN_MIN, PIN_MAX = 1_000, 999_999


def generate_pin() -> str:
    return str(PIN_MIN + secrets.randbelow(PIN_MAX - PIN_MIN + 1))


@dataclass(frozen=True)
class StatusChange:
    new_status: BookingStatus
    driver_id: Optional[str] = None
    cancel_reason: Optional[CancelReason] = None
    final_fare: Optional[float] = None

    def to_event(self) -> LifecycleEvent:
        if self.new_status == BookingStatus.ASSIGNED:
            if not self.driver_id:
                raise BookingValidationError("driverId is required when assigning")
            return Assign(self.driver_id)
        if self.new_status == BookingStatus.CANCELED:
            if self.cancel_reason is None:
                raise BookingValidationError(
                    "cancelReason (RIDER or DRIVER) is required when canceling"
                )
            return Cancel(self.cancel_reason)
        if self.new_status == BookingStatus.COMPLETED:
            return Complete(self.final_fare)
        if self.new_status == BookingStatus.REQUESTED:
            raise InvalidStateTransition("A booking cannot return to REQUESTED")
        return Advance(self.new_status)


@dataclass
class CreatedBooking:
    booking: Booking
    warnings: list[str]


class BookingService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        lifecycle: BookingLifecycle,
        executor: TransitionExecutor,
        side_effects: SideEffectRunner,
        fare_currency: str = "GBP",
    ):
        self.session_factory = session_factory
        self.lifecycle = lifecycle
        self.executor = executor
        self.side_effects = side_effects
        self.fare_currency = fare_currency

    async def create_booking(
        self,
        *,
        rider_id: str,
        pickup_address: str,
        dropoff_address: str,
        payment_intent_id: str,
        scheduled_pickup_time: Optional[datetime] = None,
        pickup: Optional[Location] = None,
        dropoff: Optional[Location] = None,
        requires_wheelchair: bool = False,
        price_estimate_amount: Optional[float] = None,
        rider_email: Optional[str] = None,
        estimated_distance_km: Optional[float] = None,
        estimated_duration_min: Optional[int] = None,
    ) -> CreatedBooking:
        if not payment_intent_id:
            raise BookingValidationError("paymentIntentId required")

        async with self.session_factory() as session:
            row = await BookingRepository(session).create(
                BookingModel(
                    rider_id=rider_id,
                    status=BookingStatus.REQUESTED,
                    pickup_address=pickup_address,
                    dropoff_address=dropoff_address,
                    pickup_lat=pickup.latitude if pickup else None,
                    pickup_lng=pickup.longitude if pickup else None,
                    dropoff_lat=dropoff.latitude if dropoff else None,
                    dropoff_lng=dropoff.longitude if dropoff else None,
                    requires_wheelchair=requires_wheelchair,
                    scheduled_pickup_time=scheduled_pickup_time,
                    rider_email=rider_email,
                    payment_intent_id=payment_intent_id,
                    price_estimate_amount=price_estimate_amount,
                    fare_currency=self.fare_currency,
                    estimated_distance_km=estimated_distance_km,
                    estimated_duration_min=estimated_duration_min,
                    pin_code=generate_pin(),
                )
            )
            await session.commit()
            booking = booking_to_entity(row)

        logger.info("Booking %s created for rider %s", booking.id, rider_id)
        payload = event_payload(booking.id, booking.status)
        warnings = await self.side_effects.run(
            [
                Notify(DISPATCH_CHANNEL, EVENT_BOOKING_CREATED, payload),
                Notify(booking_channel(booking.id), EVENT_BOOKING_CREATED, payload),
            ]
        )
        return CreatedBooking(booking=booking, warnings=warnings)

    async def get_booking(self, booking_id: str) -> Booking:
        async with self.session_factory() as session:
            row = await BookingRepository(session).get_by_id(booking_id)
            if row is None:
                raise BookingNotFound(booking_id)
            return booking_to_entity(row)

    async def change_status(self, booking_id: str, change: StatusChange) -> TransitionResult:
        event = change.to_event()
        async with self.session_factory() as session:
            row = await BookingRepository(session).get_by_id(booking_id)
            if row is None:
                raise BookingNotFound(booking_id)
            booking = booking_to_entity(row)
            if isinstance(event, Assign):
                if await DriverRepository(session).get_by_id(event.driver_id) is None:
                    raise DriverNotFound(event.driver_id)

        plan = self.lifecycle.plan(booking, event)
        return await self.executor.execute(plan)

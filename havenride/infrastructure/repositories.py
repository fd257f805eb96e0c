"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Status changes never go through attribute
assignment on a loaded row: ``BookingRepository.compare_and_set`` issues

    UPDATE bookings SET ... WHERE id = :id AND status = :expected

and reports whether a row matched, which is what makes concurrent
assignments safe without row locks.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import BookingModel, DriverModel
from havenride.domain.entities import Booking, Driver, Location
from havenride.domain.enums import BookingStatus


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything stored is UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def booking_to_entity(row: BookingModel) -> Booking:
    return Booking(
        id=row.id,
        rider_id=row.rider_id,
        status=BookingStatus(row.status),
        driver_id=row.driver_id,
        pickup=Location.from_pair(row.pickup_lat, row.pickup_lng),
        dropoff=Location.from_pair(row.dropoff_lat, row.dropoff_lng),
        requires_wheelchair=bool(row.requires_wheelchair),
        scheduled_pickup_time=_aware(row.scheduled_pickup_time),
        payment_intent_id=row.payment_intent_id,
        final_fare_amount=row.final_fare_amount,
        price_estimate_amount=row.price_estimate_amount,
        fare_currency=row.fare_currency or "GBP",
        pin_code=row.pin_code,
        pickup_address=row.pickup_address or "",
        dropoff_address=row.dropoff_address or "",
        rider_email=row.rider_email,
        estimated_distance_km=row.estimated_distance_km,
        estimated_duration_min=row.estimated_duration_min,
    )


def driver_to_entity(row: DriverModel) -> Driver:
    return Driver(
        id=row.id,
        online=bool(row.is_online),
        location=Location.from_pair(row.last_lat, row.last_lng),
        location_updated_at=_aware(row.location_updated_at),
        wheelchair_capable=bool(row.wheelchair_capable),
        rating=row.rating,
        commission_rate=row.commission_rate,
        name=row.name,
    )


class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, booking: BookingModel) -> BookingModel:
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_by_id(self, booking_id: str) -> Optional[BookingModel]:
        return await self.session.get(BookingModel, booking_id)

    async def get_fresh(self, booking_id: str) -> Optional[BookingModel]:
        """Re-read bypassing the identity map (after a conditional update)."""
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.id == booking_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_status(self, booking_id: str) -> Optional[BookingStatus]:
        result = await self.session.execute(
            select(BookingModel.status).where(BookingModel.id == booking_id)
        )
        status = result.scalar_one_or_none()
        return BookingStatus(status) if status is not None else None

    async def compare_and_set(
        self,
        booking_id: str,
        expected: BookingStatus,
        values: dict[str, Any],
    ) -> bool:
        """Apply ``values`` only if the booking is still ``expected``."""
        result = await self.session.execute(
            update(BookingModel)
            .where(
                BookingModel.id == booking_id,
                BookingModel.status == expected,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class DriverRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, driver_id: str) -> Optional[DriverModel]:
        return await self.session.get(DriverModel, driver_id)

    async def get_online_with_location(self) -> list[DriverModel]:
        result = await self.session.execute(
            select(DriverModel).where(
                DriverModel.is_online.is_(True),
                DriverModel.last_lat.is_not(None),
                DriverModel.last_lng.is_not(None),
            )
        )
        return list(result.scalars().all())

    async def add_earnings(self, driver_id: str, amount: float) -> bool:
        """Atomic increment; no read-modify-write race between completions."""
        result = await self.session.execute(
            update(DriverModel)
            .where(DriverModel.id == driver_id)
            .values(
                total_earnings=DriverModel.total_earnings + amount,
                pending_payout=DriverModel.pending_payout + amount,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

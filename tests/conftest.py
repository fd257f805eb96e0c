"""
Shared test fixtures.

Uses a file-backed SQLite database (via aiosqlite) per test so tests run
without Docker / PostgreSQL / Redis, and so two sessions genuinely race on
the same rows.  Redis pub/sub, Stripe and the webhooks are replaced with
recording fakes.
"""

import math
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from havenride.domain.distance import EARTH_RADIUS_KM
from havenride.domain.enums import BookingStatus
from havenride.domain.fares import FareCalculator
from havenride.domain.lifecycle import BookingLifecycle
from havenride.domain.ports import RefundResult
from havenride.domain.selection import AssignmentSelector
from havenride.infrastructure.database import Base
from havenride.infrastructure.models import BookingModel, DriverModel
from havenride.services.assignment import AssignmentCoordinator
from havenride.services.bookings import BookingService, generate_pin
from havenride.services.transitions import SideEffectRunner, TransitionExecutor

# King's Cross (approx)
PICKUP_LAT, PICKUP_LNG = 51.5308, -0.1238


def north_of(lat: float, km: float) -> float:
    """Latitude exactly ``km`` great-circle kilometres north of ``lat``."""
    return lat + math.degrees(km / EARTH_RADIUS_KM)


# ── Fakes ─────────────────────────────────────────────────────────────


class RecordingPublisher:
    def __init__(self):
        self.events: list[tuple[str, str, dict]] = []

    async def publish(self, channel, event, payload):
        self.events.append((channel, event, payload))

    def channels(self, event: Optional[str] = None) -> list[str]:
        return [c for c, e, _ in self.events if event is None or e == event]


class FakeRefunds:
    def __init__(self, result: Optional[RefundResult] = None):
        self.result = result or RefundResult.applied("re_test")
        self.calls: list[tuple[str, Optional[float]]] = []

    async def refund(self, payment_reference, amount=None):
        self.calls.append((payment_reference, amount))
        return self.result


class FakeLedger:
    def __init__(self):
        self.calls: list[tuple[str, float]] = []

    async def accrue(self, driver_id, gross_fare):
        self.calls.append((driver_id, gross_fare))
        return gross_fare


class FakeAccounting:
    def __init__(self):
        self.records: list[dict] = []

    async def push(self, record):
        self.records.append(record)


class FakeReceipts:
    def __init__(self):
        self.receipts = []

    async def send(self, receipt):
        self.receipts.append(receipt)


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh schema in a throwaway database file for every test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'dispatch.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def fakes() -> SimpleNamespace:
    return SimpleNamespace(
        publisher=RecordingPublisher(),
        refunds=FakeRefunds(),
        ledger=FakeLedger(),
        accounting=FakeAccounting(),
        receipts=FakeReceipts(),
    )


@pytest.fixture
def side_effects(fakes) -> SideEffectRunner:
    return SideEffectRunner(
        publisher=fakes.publisher,
        refunds=fakes.refunds,
        ledger=fakes.ledger,
        accounting=fakes.accounting,
        receipts=fakes.receipts,
        timeout_seconds=0.5,
    )


@pytest.fixture
def lifecycle() -> BookingLifecycle:
    return BookingLifecycle(FareCalculator(base_fare=3.50, rate_per_km=1.80))


@pytest.fixture
def executor(session_factory, side_effects) -> TransitionExecutor:
    return TransitionExecutor(session_factory, side_effects)


@pytest.fixture
def booking_service(session_factory, lifecycle, executor, side_effects) -> BookingService:
    return BookingService(session_factory, lifecycle, executor, side_effects)


@pytest.fixture
def coordinator(session_factory, lifecycle, executor) -> AssignmentCoordinator:
    return AssignmentCoordinator(session_factory, AssignmentSelector(), lifecycle, executor)


@pytest.fixture
def add_driver(session_factory):
    """Insert a driver row; ``km_north`` places it that far from the test pickup."""

    async def _add(
        *,
        km_north: Optional[float] = 1.0,
        online: bool = True,
        wheelchair: bool = False,
        rating: Optional[float] = 4.5,
        commission_rate: float = 0.15,
        name: Optional[str] = None,
        driver_id: Optional[str] = None,
    ) -> str:
        located = km_north is not None
        async with session_factory() as session:
            row = DriverModel(
                **({"id": driver_id} if driver_id else {}),
                name=name,
                is_online=online,
                last_lat=north_of(PICKUP_LAT, km_north) if located else None,
                last_lng=PICKUP_LNG if located else None,
                location_updated_at=datetime.now(timezone.utc) if located else None,
                wheelchair_capable=wheelchair,
                rating=rating,
                commission_rate=commission_rate,
            )
            session.add(row)
            await session.commit()
            return row.id

    return _add


@pytest.fixture
def add_booking(session_factory):
    """Insert a booking row directly, in any status."""

    async def _add(
        *,
        status: BookingStatus = BookingStatus.REQUESTED,
        driver_id: Optional[str] = None,
        geocoded: bool = True,
        requires_wheelchair: bool = False,
        payment_intent_id: Optional[str] = "pi_test_123",
        price_estimate: Optional[float] = 18.40,
        final_fare: Optional[float] = None,
        rider_email: Optional[str] = "rider@example.com",
        rider_id: str = "rider-1",
    ) -> str:
        async with session_factory() as session:
            row = BookingModel(
                rider_id=rider_id,
                driver_id=driver_id,
                status=status,
                pickup_address="King's Cross Station",
                dropoff_address="Buckingham Palace",
                pickup_lat=PICKUP_LAT if geocoded else None,
                pickup_lng=PICKUP_LNG if geocoded else None,
                dropoff_lat=51.5014 if geocoded else None,
                dropoff_lng=-0.1419 if geocoded else None,
                requires_wheelchair=requires_wheelchair,
                payment_intent_id=payment_intent_id,
                price_estimate_amount=price_estimate,
                final_fare_amount=final_fare,
                rider_email=rider_email,
                estimated_distance_km=3.6,
                estimated_duration_min=14,
                pin_code=generate_pin(),
            )
            session.add(row)
            await session.commit()
            return row.id

    return _add

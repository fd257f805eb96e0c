"""
Tests for applying plans: conditional write, then best-effort side effects.

A side effect that fails or hangs must surface as a warning while the
committed status change stays in place.
"""

import asyncio

import pytest
from sqlalchemy import select

from havenride.domain.entities import Booking
from havenride.domain.enums import BookingStatus, CancelReason
from havenride.domain.exceptions import BookingNotFound, DriverNotFound, TransitionConflict
from havenride.domain.lifecycle import Assign, Cancel, Complete, Notify, Refund
from havenride.domain.ports import RefundResult
from havenride.infrastructure.ledger import SqlEarningsLedger
from havenride.infrastructure.models import DriverModel
from havenride.infrastructure.repositories import BookingRepository, booking_to_entity
from havenride.services.transitions import SideEffectRunner, TransitionExecutor


class SlowPublisher:
    def __init__(self, delay: float):
        self.delay = delay
        self.events = []

    async def publish(self, channel, event, payload):
        await asyncio.sleep(self.delay)
        self.events.append((channel, event))


class BrokenAccounting:
    async def push(self, record):
        raise ConnectionError("accounting endpoint unreachable")


async def _load(session_factory, booking_id):
    async with session_factory() as session:
        return booking_to_entity(await BookingRepository(session).get_by_id(booking_id))


class TestSideEffectRunner:
    @pytest.mark.asyncio
    async def test_runs_effects_in_order(self, side_effects, fakes):
        warnings = await side_effects.run(
            [
                Notify("dispatch", "booking_updated", {"bookingId": "b1"}),
                Refund(booking_id="b1", payment_reference="pi_1", amount=5.0),
                Notify("booking:b1", "booking_updated", {"bookingId": "b1"}),
            ]
        )
        assert warnings == []
        assert fakes.publisher.channels() == ["dispatch", "booking:b1"]
        assert fakes.refunds.calls == [("pi_1", 5.0)]

    @pytest.mark.asyncio
    async def test_timeout_becomes_warning_and_later_effects_still_run(self, fakes):
        runner = SideEffectRunner(
            publisher=SlowPublisher(delay=1.0),
            refunds=fakes.refunds,
            ledger=fakes.ledger,
            accounting=fakes.accounting,
            receipts=fakes.receipts,
            timeout_seconds=0.05,
        )
        warnings = await runner.run(
            [
                Notify("dispatch", "booking_updated", {}),
                Refund(booking_id="b1", payment_reference="pi_1"),
            ]
        )
        assert warnings == ["notify dispatch (booking_updated) timed out"]
        assert fakes.refunds.calls == [("pi_1", None)]

    @pytest.mark.asyncio
    async def test_failed_refund_is_reported(self, side_effects, fakes):
        fakes.refunds.result = RefundResult.failed("card_declined")
        warnings = await side_effects.run([Refund(booking_id="b1", payment_reference="pi_1")])
        assert warnings == ["refund for booking b1 failed: card_declined"]

    @pytest.mark.asyncio
    async def test_skipped_refund_is_not_a_warning(self, side_effects, fakes):
        fakes.refunds.result = RefundResult.skipped("payment intent status is canceled")
        warnings = await side_effects.run([Refund(booking_id="b1", payment_reference="pi_1")])
        assert warnings == []


class TestTransitionExecutor:
    @pytest.mark.asyncio
    async def test_commits_then_runs_side_effects(
        self, executor, lifecycle, session_factory, add_driver, add_booking, fakes
    ):
        driver_id = await add_driver()
        booking_id = await add_booking()
        plan = lifecycle.plan(await _load(session_factory, booking_id), Assign(driver_id))

        result = await executor.execute(plan)

        assert result.booking.status == BookingStatus.ASSIGNED
        assert result.booking.driver_id == driver_id
        assert result.warnings == []
        assert fakes.publisher.channels("assigned") == [f"driver:{driver_id}"]
        stored = await _load(session_factory, booking_id)
        assert stored.status == BookingStatus.ASSIGNED

    @pytest.mark.asyncio
    async def test_stale_plan_raises_conflict_without_side_effects(
        self, executor, lifecycle, session_factory, add_driver, add_booking, fakes
    ):
        driver_id = await add_driver()
        booking_id = await add_booking()
        snapshot = await _load(session_factory, booking_id)
        await executor.execute(lifecycle.plan(snapshot, Assign(driver_id)))
        fakes.publisher.events.clear()

        with pytest.raises(TransitionConflict) as exc_info:
            await executor.execute(lifecycle.plan(snapshot, Cancel(CancelReason.RIDER)))

        assert exc_info.value.actual == BookingStatus.ASSIGNED
        assert fakes.publisher.events == []
        assert fakes.refunds.calls == []

    @pytest.mark.asyncio
    async def test_missing_booking_raises_not_found(self, executor, lifecycle):
        ghost = Booking(id="ghost", rider_id="r1")
        with pytest.raises(BookingNotFound):
            await executor.execute(lifecycle.plan(ghost, Cancel(CancelReason.RIDER)))

    @pytest.mark.asyncio
    async def test_side_effect_failure_keeps_status(
        self, session_factory, lifecycle, fakes, add_driver, add_booking
    ):
        driver_id = await add_driver()
        booking_id = await add_booking(status=BookingStatus.IN_PROGRESS, driver_id=driver_id)
        runner = SideEffectRunner(
            publisher=fakes.publisher,
            refunds=fakes.refunds,
            ledger=fakes.ledger,
            accounting=BrokenAccounting(),
            receipts=fakes.receipts,
        )
        executor = TransitionExecutor(session_factory, runner)

        result = await executor.execute(
            lifecycle.plan(await _load(session_factory, booking_id), Complete())
        )

        assert result.warnings == [f"accounting push for booking {booking_id} failed"]
        assert result.booking.status == BookingStatus.COMPLETED
        assert (await _load(session_factory, booking_id)).status == BookingStatus.COMPLETED
        # Effects after the failing one still ran
        assert len(fakes.receipts.receipts) == 1
        assert fakes.ledger.calls == [(driver_id, 18.40)]


class TestEarningsLedger:
    @pytest.mark.asyncio
    async def test_accrues_net_of_commission(self, session_factory, add_driver):
        driver_id = await add_driver(commission_rate=0.15)
        ledger = SqlEarningsLedger(session_factory)

        assert await ledger.accrue(driver_id, 20.0) == 17.0
        assert await ledger.accrue(driver_id, 10.0) == 8.5

        async with session_factory() as session:
            row = (
                await session.execute(select(DriverModel).where(DriverModel.id == driver_id))
            ).scalar_one()
        assert row.total_earnings == pytest.approx(25.5)
        assert row.pending_payout == pytest.approx(25.5)

    @pytest.mark.asyncio
    async def test_unknown_driver(self, session_factory):
        with pytest.raises(DriverNotFound):
            await SqlEarningsLedger(session_factory).accrue("nobody", 10.0)

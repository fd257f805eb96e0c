"""
Applying lifecycle plans
========================

``TransitionExecutor.execute`` is the unit of atomicity for every status
change:

1. Conditional UPDATE keyed on the plan's expected prior status.  No row
   matched -> ``TransitionConflict`` (nothing else happens).
2. Commit.
3. Run the plan's side effects through ``SideEffectRunner``.

Side effects are best-effort: each one is bounded by ``asyncio.wait_for``
and a failure or timeout becomes a warning on the result.  The committed
status change is never rolled back because a refund or notification failed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from havenride.domain.entities import Booking
from havenride.domain.enums import RefundOutcome
from havenride.domain.exceptions import BookingNotFound, TransitionConflict
from havenride.domain.lifecycle import (
    AccrueEarnings,
    Notify,
    PushAccounting,
    Refund,
    SendReceipt,
    SideEffect,
    TransitionPlan,
)
from havenride.domain.ports import (
    AccountingSink,
    EarningsLedger,
    NotificationPublisher,
    ReceiptSender,
    RefundCoordinator,
)
from havenride.infrastructure.repositories import BookingRepository, booking_to_entity

logger = logging.getLogger(__name__)


@dataclass
class TransitionResult:
    booking: Booking
    plan: TransitionPlan
    warnings: list[str] = field(default_factory=list)


def _label(effect: SideEffect) -> str:
    if isinstance(effect, Notify):
        return f"notify {effect.channel} ({effect.event})"
    if isinstance(effect, Refund):
        return f"refund for booking {effect.booking_id}"
    if isinstance(effect, AccrueEarnings):
        return f"earnings accrual for driver {effect.driver_id}"
    if isinstance(effect, PushAccounting):
        return f"accounting push for booking {effect.record.get('id')}"
    if isinstance(effect, SendReceipt):
        return f"receipt for booking {effect.receipt.booking_id}"
    return repr(effect)


class SideEffectRunner:
    def __init__(
        self,
        publisher: NotificationPublisher,
        refunds: RefundCoordinator,
        ledger: EarningsLedger,
        accounting: AccountingSink,
        receipts: ReceiptSender,
        timeout_seconds: float = 5.0,
    ):
        self.publisher = publisher
        self.refunds = refunds
        self.ledger = ledger
        self.accounting = accounting
        self.receipts = receipts
        self.timeout = timeout_seconds

    async def run(self, effects: Iterable[SideEffect]) -> list[str]:
        """Run every effect in order; returns warnings for the ones that failed."""
        warnings: list[str] = []
        for effect in effects:
            label = _label(effect)
            try:
                warning = await asyncio.wait_for(self._apply(effect), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.warning("%s timed out after %.1fs", label, self.timeout)
                warnings.append(f"{label} timed out")
                continue
            except Exception:
                logger.exception("%s failed", label)
                warnings.append(f"{label} failed")
                continue
            if warning:
                warnings.append(warning)
        return warnings

    async def _apply(self, effect: SideEffect) -> Optional[str]:
        if isinstance(effect, Notify):
            await self.publisher.publish(effect.channel, effect.event, effect.payload)
        elif isinstance(effect, Refund):
            result = await self.refunds.refund(effect.payment_reference, effect.amount)
            if result.outcome == RefundOutcome.FAILED:
                logger.warning(
                    "Refund for booking %s failed: %s", effect.booking_id, result.reason
                )
                return f"refund for booking {effect.booking_id} failed: {result.reason}"
            if result.outcome == RefundOutcome.SKIPPED:
                logger.info(
                    "Refund for booking %s skipped: %s", effect.booking_id, result.reason
                )
        elif isinstance(effect, AccrueEarnings):
            await self.ledger.accrue(effect.driver_id, effect.gross_fare)
        elif isinstance(effect, PushAccounting):
            await self.accounting.push(effect.record)
        elif isinstance(effect, SendReceipt):
            await self.receipts.send(effect.receipt)
        else:
            raise TypeError(f"Unknown side effect: {effect!r}")
        return None


class TransitionExecutor:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        side_effects: SideEffectRunner,
    ):
        self.session_factory = session_factory
        self.side_effects = side_effects

    async def execute(self, plan: TransitionPlan) -> TransitionResult:
        async with self.session_factory() as session:
            repo = BookingRepository(session)
            applied = await repo.compare_and_set(
                plan.booking_id, plan.from_status, plan.changes
            )
            if not applied:
                await session.rollback()
                actual = await repo.get_status(plan.booking_id)
                if actual is None:
                    raise BookingNotFound(plan.booking_id)
                logger.info(
                    "Conflict on booking %s: expected %s, found %s",
                    plan.booking_id,
                    plan.from_status.value,
                    actual.value,
                )
                raise TransitionConflict(plan.booking_id, plan.from_status, actual)
            await session.commit()
            booking = booking_to_entity(await repo.get_fresh(plan.booking_id))

        logger.info(
            "Booking %s: %s -> %s",
            plan.booking_id,
            plan.from_status.value,
            plan.to_status.value,
        )
        warnings = await self.side_effects.run(plan.side_effects)
        return TransitionResult(booking=booking, plan=plan, warnings=warnings)

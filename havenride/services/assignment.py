"""
Assignment Coordinator
======================

Per request (no background loop):

1. Read the booking.  Missing -> ``BookingNotFound``; not REQUESTED ->
   ``TransitionConflict``; no pickup coordinates -> ``BookingValidationError``.
2. Load online drivers that have a location.
3. Rank them with ``AssignmentSelector``.
4. Suggestions mode stops here and returns the top ``limit``.
5. Otherwise plan REQUESTED -> ASSIGNED for the best driver and hand it to
   ``TransitionExecutor``, whose conditional UPDATE guarantees at most one
   assignment per booking.  Losing the race surfaces as
   ``TransitionConflict``; the caller must re-read and re-score rather than
   retry the stale selection.

"Nobody eligible" is returned as ``AssignmentOutcome.NO_ELIGIBLE_DRIVER``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .transitions import TransitionExecutor
from havenride.domain.entities import AssignmentCandidate, Booking, Driver
from havenride.domain.enums import AssignmentOutcome, BookingStatus
from havenride.domain.exceptions import BookingNotFound, TransitionConflict
from havenride.domain.lifecycle import Assign, BookingLifecycle
from havenride.domain.scoring import require_pickup
from havenride.domain.selection import AssignmentSelector
from havenride.infrastructure.repositories import (
    BookingRepository,
    DriverRepository,
    booking_to_entity,
    driver_to_entity,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankedDriver:
    candidate: AssignmentCandidate
    explanation: str
    driver_name: Optional[str] = None


@dataclass
class AssignmentResult:
    outcome: AssignmentOutcome
    booking_id: str
    assignment: Optional[RankedDriver] = None
    suggestions: list[RankedDriver] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class AssignmentCoordinator:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        selector: AssignmentSelector,
        lifecycle: BookingLifecycle,
        executor: TransitionExecutor,
    ):
        self.session_factory = session_factory
        self.selector = selector
        self.lifecycle = lifecycle
        self.executor = executor

    async def _load(self, booking_id: str) -> tuple[Booking, list[Driver]]:
        async with self.session_factory() as session:
            row = await BookingRepository(session).get_by_id(booking_id)
            if row is None:
                raise BookingNotFound(booking_id)
            booking = booking_to_entity(row)
            if booking.status != BookingStatus.REQUESTED:
                raise TransitionConflict(booking_id, BookingStatus.REQUESTED, booking.status)
            require_pickup(booking)
            rows = await DriverRepository(session).get_online_with_location()
        return booking, [driver_to_entity(r) for r in rows]

    def _ranked(self, candidate: AssignmentCandidate, names: dict[str, Optional[str]]) -> RankedDriver:
        return RankedDriver(
            candidate=candidate,
            explanation=self.selector.explain(candidate),
            driver_name=names.get(candidate.driver_id),
        )

    async def suggest(self, booking_id: str, limit: int) -> AssignmentResult:
        booking, drivers = await self._load(booking_id)
        names = {d.id: d.name for d in drivers}
        top = self.selector.select_top_n(drivers, booking, limit)
        if not top:
            return AssignmentResult(AssignmentOutcome.NO_ELIGIBLE_DRIVER, booking_id)
        return AssignmentResult(
            AssignmentOutcome.SUGGESTIONS,
            booking_id,
            suggestions=[self._ranked(c, names) for c in top],
        )

    async def assign(self, booking_id: str) -> AssignmentResult:
        booking, drivers = await self._load(booking_id)
        best = self.selector.select_best(drivers, booking)
        if best is None:
            logger.info(
                "No eligible driver for booking %s (%d online)", booking_id, len(drivers)
            )
            return AssignmentResult(AssignmentOutcome.NO_ELIGIBLE_DRIVER, booking_id)

        plan = self.lifecycle.plan(booking, Assign(best.driver_id))
        result = await self.executor.execute(plan)
        logger.info(
            "Assigned driver %s to booking %s (score=%.1f, %.2f km)",
            best.driver_id,
            booking_id,
            best.total_score,
            best.distance_km,
        )
        return AssignmentResult(
            AssignmentOutcome.ASSIGNED,
            booking_id,
            assignment=self._ranked(best, {d.id: d.name for d in drivers}),
            warnings=result.warnings,
        )

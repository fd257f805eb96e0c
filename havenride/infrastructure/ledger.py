"""Driver earnings accrual backed by the ``drivers`` table."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .repositories import DriverRepository
from havenride.domain.exceptions import DriverNotFound
from havenride.domain.fares import FareCalculator

logger = logging.getLogger(__name__)


class SqlEarningsLedger:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def accrue(self, driver_id: str, gross_fare: float) -> float:
        """Credit the driver's net share of ``gross_fare``; returns the net amount."""
        async with self.session_factory() as session:
            repo = DriverRepository(session)
            driver = await repo.get_by_id(driver_id)
            if driver is None:
                raise DriverNotFound(driver_id)
            net = FareCalculator.driver_earnings(gross_fare, driver.commission_rate)
            await repo.add_earnings(driver_id, net)
            await session.commit()
        logger.info("Accrued %.2f to driver %s (gross %.2f)", net, driver_id, gross_fare)
        return net

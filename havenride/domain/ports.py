"""
Contracts for the collaborators the lifecycle's side effects talk to.

Implementations live in ``havenride.infrastructure``; tests supply fakes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol

from .enums import RefundOutcome


@dataclass(frozen=True)
class RefundResult:
    outcome: RefundOutcome
    reason: Optional[str] = None
    refund_id: Optional[str] = None

    @classmethod
    def applied(cls, refund_id: Optional[str] = None) -> "RefundResult":
        return cls(RefundOutcome.APPLIED, refund_id=refund_id)

    @classmethod
    def skipped(cls, reason: str) -> "RefundResult":
        return cls(RefundOutcome.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> "RefundResult":
        return cls(RefundOutcome.FAILED, reason=reason)


@dataclass(frozen=True)
class Receipt:
    rider_email: str
    booking_id: str
    fare: float
    currency: str
    pickup: str
    dropoff: str
    date_iso: str
    distance_km: Optional[float] = None
    duration_min: Optional[int] = None


class NotificationPublisher(Protocol):
    async def publish(self, channel: str, event: str, payload: dict[str, Any]) -> None: ...


class RefundCoordinator(Protocol):
    async def refund(
        self, payment_reference: str, amount: Optional[float] = None
    ) -> RefundResult: ...


class EarningsLedger(Protocol):
    async def accrue(self, driver_id: str, gross_fare: float) -> float: ...


class AccountingSink(Protocol):
    async def push(self, record: dict[str, Any]) -> None: ...


class ReceiptSender(Protocol):
    async def send(self, receipt: Receipt) -> None: ...

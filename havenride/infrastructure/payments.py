"""
Refunds against the Stripe REST API.

Flow
----
1. Claim ``refund:<payment_intent>`` in Redis; a second caller sees FAILED
   ("refund already in progress") and the caller surfaces it as a warning.
2. ``GET /payment_intents/{id}`` -- anything other than ``succeeded`` means
   the money was never captured, so there is nothing to refund (SKIPPED).
3. ``POST /refunds`` with an ``Idempotency-Key`` derived from the intent,
   amount in minor units when a partial amount is given (APPLIED).

Any transport or provider error is FAILED.  The claim is released whenever
the attempt does not end APPLIED, including when the caller's timeout
cancels it mid-flight.  The caller decides what a failure means; for
cancellations it is a warning.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .locks import IdempotencyGuard
from havenride.domain.enums import RefundOutcome
from havenride.domain.ports import RefundResult

logger = logging.getLogger(__name__)


class StripeRefundCoordinator:
    def __init__(
        self,
        http: httpx.AsyncClient,
        secret_key: Optional[str],
        api_base: str = "https://api.stripe.com/v1",
        guard: Optional[IdempotencyGuard] = None,
    ):
        self.http = http
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.guard = guard

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.secret_key}"}

    async def refund(
        self, payment_reference: str, amount: Optional[float] = None
    ) -> RefundResult:
        if not self.secret_key:
            logger.error("Stripe not configured, cannot refund %s", payment_reference)
            return RefundResult.failed("payment provider not configured")

        if self.guard and not await self.guard.claim(payment_reference):
            logger.warning("Refund for %s already in progress", payment_reference)
            return RefundResult.failed("refund already in progress")

        result: Optional[RefundResult] = None
        try:
            result = await self._refund(payment_reference, amount)
        except httpx.HTTPError as exc:
            logger.error("Refund for %s failed: %s", payment_reference, exc)
            result = RefundResult.failed(_describe(exc))
        finally:
            if self.guard and (result is None or result.outcome != RefundOutcome.APPLIED):
                await self.guard.release(payment_reference)
        return result

    async def _refund(self, payment_reference: str, amount: Optional[float]) -> RefundResult:
        resp = await self.http.get(
            f"{self.api_base}/payment_intents/{payment_reference}",
            headers=self._headers,
        )
        resp.raise_for_status()
        status = resp.json().get("status")
        if status != "succeeded":
            logger.info(
                "Payment intent %s status is %s, no refund needed",
                payment_reference,
                status,
            )
            return RefundResult.skipped(f"payment intent status is {status}")

        data = {"payment_intent": payment_reference}
        if amount and amount > 0:
            # Stripe uses the smallest currency unit
            data["amount"] = str(round(amount * 100))

        resp = await self.http.post(
            f"{self.api_base}/refunds",
            data=data,
            headers={**self._headers, "Idempotency-Key": f"refund-{payment_reference}"},
        )
        resp.raise_for_status()
        refund_id = resp.json().get("id")
        logger.info("Refund created: %s for payment intent %s", refund_id, payment_reference)
        return RefundResult.applied(refund_id)


def _describe(exc: httpx.HTTPError) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        try:
            return exc.response.json()["error"]["message"]
        except (ValueError, KeyError, TypeError):
            return f"payment provider returned {exc.response.status_code}"
    return str(exc) or exc.__class__.__name__

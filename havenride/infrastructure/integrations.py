"""
Outbound webhooks for completed trips.

* ``WebhookAccountingSink`` -- posts the completed-trip record to the
  accounting integration.
* ``WebhookReceiptSender``  -- hands the receipt to the mail relay; email
  rendering and delivery happen on the other side.

Both are no-ops (logged at DEBUG) when their URL is not configured.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from havenride.domain.ports import Receipt

logger = logging.getLogger(__name__)


class WebhookAccountingSink:
    def __init__(self, http: httpx.AsyncClient, url: Optional[str]):
        self.http = http
        self.url = url

    async def push(self, record: dict[str, Any]) -> None:
        if not self.url:
            logger.debug("Accounting webhook not configured; dropping record %s", record.get("id"))
            return
        resp = await self.http.post(self.url, json=record)
        resp.raise_for_status()


class WebhookReceiptSender:
    def __init__(self, http: httpx.AsyncClient, url: Optional[str]):
        self.http = http
        self.url = url

    async def send(self, receipt: Receipt) -> None:
        if not self.url:
            logger.debug("Receipt webhook not configured; skipping %s", receipt.booking_id)
            return
        resp = await self.http.post(
            self.url,
            json={
                "toEmail": receipt.rider_email,
                "bookingId": receipt.booking_id,
                "dateISO": receipt.date_iso,
                "pickup": receipt.pickup,
                "dropoff": receipt.dropoff,
                "fareAmount": receipt.fare,
                "fareCurrency": receipt.currency,
                "distanceKm": receipt.distance_km,
                "durationMin": receipt.duration_min,
            },
        )
        resp.raise_for_status()

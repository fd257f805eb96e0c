"""
Outbound adapter tests: Stripe refunds, Redis pub/sub and webhooks.

HTTP is served by ``httpx.MockTransport``; Redis is an ``AsyncMock``.
"""

import asyncio
import json
from unittest.mock import AsyncMock
from urllib.parse import parse_qs

import httpx
import pytest

from havenride.domain.enums import RefundOutcome
from havenride.domain.lifecycle import Refund
from havenride.domain.ports import Receipt
from havenride.infrastructure.integrations import WebhookAccountingSink, WebhookReceiptSender
from havenride.infrastructure.locks import IdempotencyGuard
from havenride.infrastructure.notifications import RedisNotificationPublisher
from havenride.infrastructure.payments import StripeRefundCoordinator
from havenride.services.transitions import SideEffectRunner

API = "https://stripe.test/v1"


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class StripeStub:
    """Minimal Stripe: one payment intent, records every request."""

    def __init__(self, intent_status="succeeded", refund_status_code=200):
        self.intent_status = intent_status
        self.refund_status_code = refund_status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "GET" and request.url.path.startswith("/v1/payment_intents/"):
            return httpx.Response(200, json={"id": "pi_1", "status": self.intent_status})
        if request.method == "POST" and request.url.path == "/v1/refunds":
            if self.refund_status_code != 200:
                return httpx.Response(
                    self.refund_status_code,
                    json={"error": {"message": "Charge pi_1 has already been refunded."}},
                )
            return httpx.Response(200, json={"id": "re_42", "status": "succeeded"})
        return httpx.Response(404)

    @property
    def refund_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "POST"]


class SlowStripe(StripeStub):
    """Stripe whose payment-intent lookup takes ``delay`` seconds."""

    def __init__(self, delay: float):
        super().__init__()
        self.delay = delay

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET" and self.delay:
            await asyncio.sleep(self.delay)
        return super().__call__(request)


class DictRedis:
    """Just enough of ``redis.asyncio.Redis`` for ``IdempotencyGuard``."""

    def __init__(self):
        self.store: dict[str, str] = {}

    async def set(self, key, value, nx=False, ex=None):
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    async def eval(self, script, numkeys, key, token):
        if self.store.get(key) == token:
            del self.store[key]
            return 1
        return 0


def _guard(claimed=True) -> AsyncMock:
    guard = AsyncMock()
    guard.claim = AsyncMock(return_value=claimed)
    guard.release = AsyncMock()
    return guard


class TestStripeRefunds:
    @pytest.mark.asyncio
    async def test_refund_applied_in_minor_units(self):
        stripe = StripeStub()
        async with _client(stripe) as http:
            coordinator = StripeRefundCoordinator(http, "sk_test", API)
            result = await coordinator.refund("pi_1", 18.40)

        assert result.outcome == RefundOutcome.APPLIED
        assert result.refund_id == "re_42"
        (post,) = stripe.refund_requests
        assert parse_qs(post.content.decode()) == {"payment_intent": ["pi_1"], "amount": ["1840"]}
        assert post.headers["Idempotency-Key"] == "refund-pi_1"
        assert post.headers["Authorization"] == "Bearer sk_test"

    @pytest.mark.asyncio
    async def test_full_refund_omits_amount(self):
        stripe = StripeStub()
        async with _client(stripe) as http:
            await StripeRefundCoordinator(http, "sk_test", API).refund("pi_1")

        (post,) = stripe.refund_requests
        assert parse_qs(post.content.decode()) == {"payment_intent": ["pi_1"]}

    @pytest.mark.asyncio
    async def test_uncaptured_intent_is_skipped(self):
        stripe = StripeStub(intent_status="requires_payment_method")
        guard = _guard()
        async with _client(stripe) as http:
            result = await StripeRefundCoordinator(http, "sk_test", API, guard).refund("pi_1", 5.0)

        assert result.outcome == RefundOutcome.SKIPPED
        assert result.reason == "payment intent status is requires_payment_method"
        assert stripe.refund_requests == []
        guard.release.assert_awaited_once_with("pi_1")

    @pytest.mark.asyncio
    async def test_provider_error_is_failed_and_releases_claim(self):
        stripe = StripeStub(refund_status_code=400)
        guard = _guard()
        async with _client(stripe) as http:
            result = await StripeRefundCoordinator(http, "sk_test", API, guard).refund("pi_1", 5.0)

        assert result.outcome == RefundOutcome.FAILED
        assert result.reason == "Charge pi_1 has already been refunded."
        guard.release.assert_awaited_once_with("pi_1")

    @pytest.mark.asyncio
    async def test_transport_error_is_failed(self):
        def unreachable(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(unreachable) as http:
            result = await StripeRefundCoordinator(http, "sk_test", API).refund("pi_1", 5.0)

        assert result.outcome == RefundOutcome.FAILED
        assert result.reason == "connection refused"

    @pytest.mark.asyncio
    async def test_unconfigured_provider_fails_without_calling_out(self):
        stripe = StripeStub()
        async with _client(stripe) as http:
            result = await StripeRefundCoordinator(http, None, API).refund("pi_1", 5.0)

        assert result.outcome == RefundOutcome.FAILED
        assert stripe.requests == []

    @pytest.mark.asyncio
    async def test_refund_already_in_progress_is_failed(self):
        stripe = StripeStub()
        guard = _guard(claimed=False)
        async with _client(stripe) as http:
            result = await StripeRefundCoordinator(http, "sk_test", API, guard).refund("pi_1", 5.0)

        assert result.outcome == RefundOutcome.FAILED
        assert result.reason == "refund already in progress"
        assert stripe.requests == []
        guard.release.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_applied_refund_keeps_claim(self):
        guard = _guard()
        async with _client(StripeStub()) as http:
            await StripeRefundCoordinator(http, "sk_test", API, guard).refund("pi_1", 5.0)
        guard.release.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_error_releases_claim(self):
        def garbled(request):
            return httpx.Response(200, content=b"<html>maintenance</html>")

        guard = _guard()
        async with _client(garbled) as http:
            with pytest.raises(ValueError):
                await StripeRefundCoordinator(http, "sk_test", API, guard).refund("pi_1", 5.0)
        guard.release.assert_awaited_once_with("pi_1")

    @pytest.mark.asyncio
    async def test_timed_out_refund_can_be_retried(self, fakes):
        stripe = SlowStripe(delay=1.0)
        guard = IdempotencyGuard(DictRedis(), "refund", ttl_seconds=60)
        async with _client(stripe) as http:
            coordinator = StripeRefundCoordinator(http, "sk_test", API, guard)
            runner = SideEffectRunner(
                publisher=fakes.publisher,
                refunds=coordinator,
                ledger=fakes.ledger,
                accounting=fakes.accounting,
                receipts=fakes.receipts,
                timeout_seconds=0.1,
            )

            warnings = await runner.run([Refund("b1", "pi_1", 10.0)])
            assert warnings == ["refund for booking b1 timed out"]

            stripe.delay = 0
            result = await coordinator.refund("pi_1", 10.0)

        assert result.outcome == RefundOutcome.APPLIED
        assert len(stripe.refund_requests) == 1


class TestRedisPublisher:
    @pytest.mark.asyncio
    async def test_publishes_json_envelope(self):
        mock_redis = AsyncMock()
        mock_redis.publish = AsyncMock(return_value=2)

        await RedisNotificationPublisher(mock_redis).publish(
            "dispatch", "booking_updated", {"bookingId": "b1", "status": "ASSIGNED"}
        )

        channel, message = mock_redis.publish.call_args.args
        assert channel == "dispatch"
        assert json.loads(message) == {
            "event": "booking_updated",
            "data": {"bookingId": "b1", "status": "ASSIGNED"},
        }


class TestWebhooks:
    @pytest.mark.asyncio
    async def test_accounting_record_is_posted(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(202)

        async with _client(handler) as http:
            await WebhookAccountingSink(http, "https://books.test/trips").push({"id": "b1"})

        assert seen == [{"id": "b1"}]

    @pytest.mark.asyncio
    async def test_accounting_error_propagates(self):
        async with _client(lambda request: httpx.Response(500)) as http:
            with pytest.raises(httpx.HTTPStatusError):
                await WebhookAccountingSink(http, "https://books.test/trips").push({"id": "b1"})

    @pytest.mark.asyncio
    async def test_unconfigured_webhooks_do_nothing(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200)

        receipt = Receipt(
            rider_email="rider@example.com",
            booking_id="b1",
            fare=18.4,
            currency="GBP",
            pickup="King's Cross Station",
            dropoff="Buckingham Palace",
            date_iso="2026-03-14T09:30:00+00:00",
        )
        async with _client(handler) as http:
            await WebhookAccountingSink(http, None).push({"id": "b1"})
            await WebhookReceiptSender(http, None).send(receipt)

        assert seen == []

    @pytest.mark.asyncio
    async def test_receipt_payload(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200)

        receipt = Receipt(
            rider_email="rider@example.com",
            booking_id="b1",
            fare=18.4,
            currency="GBP",
            pickup="King's Cross Station",
            dropoff="Buckingham Palace",
            date_iso="2026-03-14T09:30:00+00:00",
            distance_km=3.6,
            duration_min=14,
        )
        async with _client(handler) as http:
            await WebhookReceiptSender(http, "https://mail.test/receipts").send(receipt)

        assert seen == [
            {
                "toEmail": "rider@example.com",
                "bookingId": "b1",
                "dateISO": "2026-03-14T09:30:00+00:00",
                "pickup": "King's Cross Station",
                "dropoff": "Buckingham Palace",
                "fareAmount": 18.4,
                "fareCurrency": "GBP",
                "distanceKm": 3.6,
                "durationMin": 14,
            }
        ]

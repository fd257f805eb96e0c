"""FastAPI dependency injection helpers.

The graph is: session factory + collaborators -> SideEffectRunner ->
TransitionExecutor -> {BookingService, AssignmentCoordinator}.  Tests
override ``get_session_factory`` and ``get_side_effects``.
"""

from datetime import timedelta
from typing import Optional

import httpx
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from havenride.config import settings
from havenride.domain.fares import FareCalculator
from havenride.domain.lifecycle import BookingLifecycle
from havenride.domain.scoring import ScoringWeights
from havenride.domain.selection import AssignmentSelector
from havenride.infrastructure.database import async_session_factory
from havenride.infrastructure.integrations import WebhookAccountingSink, WebhookReceiptSender
from havenride.infrastructure.ledger import SqlEarningsLedger
from havenride.infrastructure.locks import IdempotencyGuard
from havenride.infrastructure.notifications import RedisNotificationPublisher
from havenride.infrastructure.payments import StripeRefundCoordinator
from havenride.infrastructure.redis_client import get_redis
from havenride.services.assignment import AssignmentCoordinator
from havenride.services.bookings import BookingService
from havenride.services.transitions import SideEffectRunner, TransitionExecutor


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_session_factory


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Shared outbound client created in the app lifespan."""
    return request.app.state.http


async def get_side_effects(
    http: httpx.AsyncClient = Depends(get_http_client),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> SideEffectRunner:
    redis = await get_redis()
    return SideEffectRunner(
        publisher=RedisNotificationPublisher(redis),
        refunds=StripeRefundCoordinator(
            http,
            settings.stripe_secret_key,
            settings.stripe_api_base,
            guard=IdempotencyGuard(redis, "refund", settings.refund_claim_ttl_seconds),
        ),
        ledger=SqlEarningsLedger(session_factory),
        accounting=WebhookAccountingSink(http, settings.accounting_webhook_url),
        receipts=WebhookReceiptSender(http, settings.receipt_webhook_url),
        timeout_seconds=settings.side_effect_timeout_seconds,
    )


def get_lifecycle() -> BookingLifecycle:
    return BookingLifecycle(
        FareCalculator(settings.base_fare, settings.rate_per_km),
        send_receipts=settings.send_receipts,
    )


def get_selector() -> AssignmentSelector:
    max_age: Optional[timedelta] = None
    if settings.driver_location_max_age_seconds is not None:
        max_age = timedelta(seconds=settings.driver_location_max_age_seconds)
    return AssignmentSelector(ScoringWeights.from_settings(settings), max_location_age=max_age)


def get_executor(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    side_effects: SideEffectRunner = Depends(get_side_effects),
) -> TransitionExecutor:
    return TransitionExecutor(session_factory, side_effects)


def get_booking_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
    executor: TransitionExecutor = Depends(get_executor),
    side_effects: SideEffectRunner = Depends(get_side_effects),
) -> BookingService:
    return BookingService(
        session_factory,
        lifecycle,
        executor,
        side_effects,
        fare_currency=settings.fare_currency,
    )


def get_assignment_coordinator(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    selector: AssignmentSelector = Depends(get_selector),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
    executor: TransitionExecutor = Depends(get_executor),
) -> AssignmentCoordinator:
    return AssignmentCoordinator(session_factory, selector, lifecycle, executor)

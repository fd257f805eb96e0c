"""
Booking endpoints
=================

POST /api/v1/bookings                -- create a ride request (201)
GET  /api/v1/bookings/{booking_id}   -- current status
POST /api/v1/bookings/{booking_id}/status -- lifecycle transition
"""

from fastapi import APIRouter, Depends, Request

from havenride.api.dependencies import get_booking_service
from havenride.api.middleware import limiter
from havenride.api.schemas import (
    BookingCreateRequest,
    BookingResponse,
    ErrorResponse,
    StatusChangeRequest,
)
from havenride.domain.entities import Location
from havenride.services.bookings import BookingService, StatusChange

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post(
    "",
    status_code=201,
    response_model=BookingResponse,
    summary="Create a ride request",
)
@limiter.limit("100/minute")
async def create_booking(
    request: Request,
    body: BookingCreateRequest,
    service: BookingService = Depends(get_booking_service),
):
    created = await service.create_booking(
        rider_id=body.rider_id,
        pickup_address=body.pickup_address,
        dropoff_address=body.dropoff_address,
        payment_intent_id=body.payment_intent_id,
        scheduled_pickup_time=body.pickup_time,
        pickup=Location.from_pair(body.pickup_lat, body.pickup_lng),
        dropoff=Location.from_pair(body.dropoff_lat, body.dropoff_lng),
        requires_wheelchair=body.requires_wheelchair,
        price_estimate_amount=body.price_estimate,
        rider_email=body.rider_email,
        estimated_distance_km=body.estimated_distance_km,
        estimated_duration_min=body.estimated_duration_min,
    )
    return BookingResponse.from_entity(created.booking, created.warnings)


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get booking status",
)
@limiter.limit("100/minute")
async def get_booking(
    request: Request,
    booking_id: str,
    service: BookingService = Depends(get_booking_service),
):
    return BookingResponse.from_entity(await service.get_booking(booking_id))


@router.post(
    "/{booking_id}/status",
    response_model=BookingResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Change booking status",
    description=(
        "Applies one lifecycle transition with a conditional update. "
        "CANCELED requires cancelReason (RIDER or DRIVER); only rider "
        "cancellations before the driver is en route are refunded. "
        "Side-effect failures are reported in ``warnings``."
    ),
)
@limiter.limit("100/minute")
async def change_status(
    request: Request,
    booking_id: str,
    body: StatusChangeRequest,
    service: BookingService = Depends(get_booking_service),
):
    result = await service.change_status(
        booking_id,
        StatusChange(
            new_status=body.new_status,
            driver_id=body.driver_id,
            cancel_reason=body.cancel_reason,
            final_fare=body.final_fare,
        ),
    )
    return BookingResponse.from_entity(result.booking, result.warnings)

"""Pydantic request / response schemas for the REST API.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from havenride.domain.entities import Booking
from havenride.domain.enums import AssignmentOutcome, BookingStatus, CancelReason
from havenride.services.assignment import AssignmentResult, RankedDriver

_WIRE = {"alias_generator": to_camel, "populate_by_name": True}


# ── Requests ──────────────────────────────────────────────────────────


class BookingCreateRequest(BaseModel):
    rider_id: str = Field(..., min_length=1)
    pickup_address: str = Field(..., min_length=1)
    dropoff_address: str = Field(..., min_length=1)
    pickup_time: Optional[datetime] = None
    pickup_lat: Optional[float] = Field(None, ge=-90, le=90)
    pickup_lng: Optional[float] = Field(None, ge=-180, le=180)
    dropoff_lat: Optional[float] = Field(None, ge=-90, le=90)
    dropoff_lng: Optional[float] = Field(None, ge=-180, le=180)
    requires_wheelchair: bool = False
    price_estimate: Optional[float] = Field(None, ge=0)
    payment_intent_id: str = Field(..., min_length=1)
    rider_email: Optional[str] = Field(None, max_length=255)
    estimated_distance_km: Optional[float] = Field(None, ge=0)
    estimated_duration_min: Optional[int] = Field(None, ge=0)

    model_config = _WIRE


class StatusChangeRequest(BaseModel):
    new_status: BookingStatus
    driver_id: Optional[str] = None
    cancel_reason: Optional[CancelReason] = Field(
        None,
        description="Required when newStatus is CANCELED: who canceled the ride.",
    )
    final_fare: Optional[float] = Field(None, ge=0)

    model_config = _WIRE


class AssignmentRequest(BaseModel):
    booking_id: str = Field(..., min_length=1)
    get_suggestions: bool = False
    limit: Optional[int] = Field(None, ge=1, le=50)

    model_config = _WIRE


# ── Responses ─────────────────────────────────────────────────────────


class BookingResponse(BaseModel):
    id: str
    rider_id: str
    driver_id: Optional[str] = None
    status: BookingStatus
    pickup_address: str
    dropoff_address: str
    pickup_lat: Optional[float] = None
    pickup_lng: Optional[float] = None
    dropoff_lat: Optional[float] = None
    dropoff_lng: Optional[float] = None
    requires_wheelchair: bool
    scheduled_pickup_time: Optional[datetime] = None
    payment_intent_id: Optional[str] = None
    price_estimate: Optional[float] = None
    final_fare_amount: Optional[float] = None
    fare_currency: str
    pin_code: Optional[str] = None
    warnings: list[str] = []

    model_config = _WIRE

    @classmethod
    def from_entity(cls, booking: Booking, warnings=()) -> "BookingResponse":
        return cls(
            id=booking.id,
            rider_id=booking.rider_id,
            driver_id=booking.driver_id,
            status=booking.status,
            pickup_address=booking.pickup_address,
            dropoff_address=booking.dropoff_address,
            pickup_lat=booking.pickup.latitude if booking.pickup else None,
            pickup_lng=booking.pickup.longitude if booking.pickup else None,
            dropoff_lat=booking.dropoff.latitude if booking.dropoff else None,
            dropoff_lng=booking.dropoff.longitude if booking.dropoff else None,
            requires_wheelchair=booking.requires_wheelchair,
            scheduled_pickup_time=booking.scheduled_pickup_time,
            payment_intent_id=booking.payment_intent_id,
            price_estimate=booking.price_estimate_amount,
            final_fare_amount=booking.final_fare_amount,
            fare_currency=booking.fare_currency,
            pin_code=booking.pin_code,
            warnings=list(warnings),
        )


class DriverMatchResponse(BaseModel):
    driver_id: str
    driver_name: Optional[str] = None
    score: float
    distance_km: float
    distance_score: float
    rating_score: float
    wheelchair_bonus: float
    rating: Optional[float] = None
    explanation: str

    model_config = _WIRE

    @classmethod
    def from_ranked(cls, ranked: RankedDriver) -> "DriverMatchResponse":
        c = ranked.candidate
        return cls(
            driver_id=c.driver_id,
            driver_name=ranked.driver_name,
            score=round(c.total_score, 2),
            distance_km=round(c.distance_km, 2),
            distance_score=round(c.distance_score, 2),
            rating_score=round(c.rating_score, 2),
            wheelchair_bonus=c.wheelchair_bonus,
            rating=c.driver_rating,
            explanation=ranked.explanation,
        )


class AssignmentResponse(BaseModel):
    outcome: AssignmentOutcome
    booking_id: str
    assignment: Optional[DriverMatchResponse] = None
    suggestions: list[DriverMatchResponse] = []
    warnings: list[str] = []

    model_config = _WIRE

    @classmethod
    def from_result(cls, result: AssignmentResult) -> "AssignmentResponse":
        return cls(
            outcome=result.outcome,
            booking_id=result.booking_id,
            assignment=(
                DriverMatchResponse.from_ranked(result.assignment)
                if result.assignment
                else None
            ),
            suggestions=[DriverMatchResponse.from_ranked(r) for r in result.suggestions],
            warnings=result.warnings,
        )


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
    error: Optional[str] = None

"""
Dispatcher endpoints
====================

POST /api/v1/dispatch/auto-assign -- assign the best driver, or return the
                                      top candidates when getSuggestions is set
"""

from fastapi import APIRouter, Depends, Request

from havenride.api.dependencies import get_assignment_coordinator
from havenride.api.middleware import limiter
from havenride.api.schemas import AssignmentRequest, AssignmentResponse, ErrorResponse
from havenride.config import settings
from havenride.services.assignment import AssignmentCoordinator

router = APIRouter(prefix="/dispatch", tags=["dispatch"])


@router.post(
    "/auto-assign",
    response_model=AssignmentResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse, "description": "Booking already assigned; re-read and retry."},
    },
    summary="Auto-assign a driver or list suggestions",
    description=(
        "outcome is ASSIGNED, SUGGESTIONS or NO_ELIGIBLE_DRIVER. "
        "No eligible driver is not an error: escalate to manual dispatch."
    ),
)
@limiter.limit("60/minute")
async def auto_assign(
    request: Request,
    body: AssignmentRequest,
    coordinator: AssignmentCoordinator = Depends(get_assignment_coordinator),
):
    if body.get_suggestions:
        result = await coordinator.suggest(
            body.booking_id, body.limit or settings.suggestion_limit
        )
    else:
        result = await coordinator.assign(body.booking_id)
    return AssignmentResponse.from_result(result)

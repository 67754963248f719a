"""
Driver endpoints
================

GET   /api/v1/driver/schedule                    -- today's trips with manifests
GET   /api/v1/driver/trips/{trip_id}             -- one assigned trip
PATCH /api/v1/driver/trips/{trip_id}/status      -- lifecycle transition
PATCH /api/v1/driver/trips/{trip_id}/location    -- current coordinates
POST  /api/v1/driver/trips/{trip_id}/incidents   -- report an incident
GET   /api/v1/driver/incidents                   -- the caller's incidents
PATCH /api/v1/driver/bookings/{booking_id}/passenger -- board / drop
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from glidee.api.dependencies import get_caller, get_db
from glidee.api.middleware import limiter
from glidee.api.schemas import (
    BookingResponse,
    ErrorResponse,
    IncidentCreateRequest,
    IncidentDetailResponse,
    IncidentResponse,
    LocationUpdateRequest,
    PassengerStatusRequest,
    TripDetailResponse,
    TripResponse,
    TripStatusRequest,
)
from glidee.config import settings
from glidee.domain.access import CallerContext
from glidee.services import incidents
from glidee.services.boarding import PassengerBoardingTracker
from glidee.services.trips import TripLifecycleManager

router = APIRouter(prefix="/driver", tags=["driver"])

_errors = {
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


@router.get(
    "/schedule",
    response_model=list[TripDetailResponse],
    summary="Today's trips for the signed-in driver",
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def get_schedule(
    request: Request,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    trips = await TripLifecycleManager(db).driver_schedule(caller)
    return [TripDetailResponse.model_validate(t) for t in trips]


@router.get(
    "/trips/{trip_id}",
    response_model=TripDetailResponse,
    summary="Trip details with stops, manifest and incidents",
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def get_trip(
    request: Request,
    trip_id: str,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    detail = await TripLifecycleManager(db).driver_trip(caller, trip_id)
    return TripDetailResponse.model_validate(detail)


@router.patch(
    "/trips/{trip_id}/status",
    response_model=TripResponse,
    summary="Move a trip through its lifecycle",
    description=(
        "scheduled -> active | cancelled, active -> completed | cancelled. "
        "Completing a trip completes its confirmed bookings."
    ),
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def update_trip_status(
    request: Request,
    trip_id: str,
    body: TripStatusRequest,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await TripLifecycleManager(db).update_trip_status(caller, trip_id, body.status)


@router.patch(
    "/trips/{trip_id}/location",
    response_model=TripResponse,
    summary="Report the bus position (active trips only)",
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def update_location(
    request: Request,
    trip_id: str,
    body: LocationUpdateRequest,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await TripLifecycleManager(db).update_location(
        caller, trip_id, body.lat, body.lng
    )


@router.post(
    "/trips/{trip_id}/incidents",
    status_code=201,
    response_model=IncidentResponse,
    summary="Report an incident on an assigned trip",
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def report_incident(
    request: Request,
    trip_id: str,
    body: IncidentCreateRequest,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await incidents.report_incident(
        db,
        caller,
        trip_id,
        description=body.description,
        severity=body.severity,
        location=body.location,
        lat=body.lat,
        lng=body.lng,
    )


@router.get(
    "/incidents",
    response_model=list[IncidentDetailResponse],
    summary="Incidents reported by the signed-in driver",
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def list_incidents(
    request: Request,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    reported = await incidents.driver_incidents(db, caller)
    return [IncidentDetailResponse.model_validate(i) for i in reported]


@router.patch(
    "/bookings/{booking_id}/passenger",
    response_model=BookingResponse,
    summary="Board or drop a passenger",
    description="Boarding is one-way: board once, then drop once.",
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def update_passenger_status(
    request: Request,
    booking_id: str,
    body: PassengerStatusRequest,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await PassengerBoardingTracker(db).update_passenger_status(
        caller, booking_id, body.action
    )

"""
Admin / observability endpoints
===============================

POST  /api/v1/admin/routes                        -- create a route with stops
GET   /api/v1/admin/routes                        -- all routes with stops
POST  /api/v1/admin/trips                         -- schedule a trip
PATCH /api/v1/admin/trips/{trip_id}/assignment    -- assign driver and vehicle
GET   /api/v1/admin/fleet                         -- today's fleet summary
GET   /api/v1/admin/bookings?status=              -- all bookings
PATCH /api/v1/admin/bookings/{booking_id}/status  -- override booking status
POST  /api/v1/admin/vehicles                      -- add a vehicle
GET   /api/v1/admin/vehicles                      -- list vehicles
PATCH /api/v1/admin/vehicles/{vehicle_id}/status  -- active / maintenance
GET   /api/v1/admin/drivers                       -- list drivers
GET   /api/v1/admin/live-map                      -- active trips with positions
GET   /api/v1/admin/health                        -- simple health check
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from glidee.api.dependencies import get_booking_allocator, get_caller, get_db
from glidee.api.middleware import limiter
from glidee.api.schemas import (
    BookingDetailResponse,
    BookingResponse,
    BookingStatusRequest,
    DriverAssignmentRequest,
    ErrorResponse,
    FleetStatusResponse,
    HealthResponse,
    LiveTripResponse,
    RouteCreateRequest,
    RouteWithStopsResponse,
    TripCreateRequest,
    TripResponse,
    UserResponse,
    VehicleCreateRequest,
    VehicleResponse,
    VehicleStatusRequest,
)
from glidee.config import settings
from glidee.domain.access import CallerContext
from glidee.domain.enums import BookingStatus
from glidee.services import fleet, network
from glidee.services.booking import BookingAllocator
from glidee.services.network import StopSpec
from glidee.services.trips import TripLifecycleManager

router = APIRouter(prefix="/admin", tags=["admin"])

_errors = {
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


# ── Routes & trips ────────────────────────────────────────────────────


@router.post(
    "/routes",
    status_code=201,
    response_model=RouteWithStopsResponse,
    summary="Create a route and its stops",
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def create_route(
    request: Request,
    body: RouteCreateRequest,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    created = await network.create_route(
        db,
        caller,
        name=body.name,
        start_point=body.start_point,
        end_point=body.end_point,
        estimated_duration=body.estimated_duration,
        stops=[StopSpec(**s.model_dump()) for s in body.stops],
    )
    return RouteWithStopsResponse.model_validate(created)


@router.get(
    "/routes",
    response_model=list[RouteWithStopsResponse],
    summary="All routes with ordered stops",
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def list_routes(
    request: Request,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    routes = await network.list_routes(db, caller)
    return [RouteWithStopsResponse.model_validate(r) for r in routes]


@router.post(
    "/trips",
    status_code=201,
    response_model=TripResponse,
    summary="Schedule a trip on a route",
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def create_trip(
    request: Request,
    body: TripCreateRequest,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await network.create_trip(
        db,
        caller,
        route_id=body.route_id,
        date=body.date,
        scheduled_start_time=body.scheduled_start_time,
        driver_id=body.driver_id,
        vehicle_id=body.vehicle_id,
    )


@router.patch(
    "/trips/{trip_id}/assignment",
    response_model=TripResponse,
    summary="Assign a driver and vehicle to a trip",
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def assign_driver(
    request: Request,
    trip_id: str,
    body: DriverAssignmentRequest,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await TripLifecycleManager(db).assign_driver(
        caller, trip_id, body.driver_id, body.vehicle_id
    )


# ── Oversight ─────────────────────────────────────────────────────────


@router.get(
    "/fleet",
    response_model=FleetStatusResponse,
    summary="Today's trips, vehicles, stats and recent incidents",
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def get_fleet_status(
    request: Request,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return FleetStatusResponse.model_validate(await fleet.fleet_status(db, caller))


@router.get(
    "/bookings",
    response_model=list[BookingDetailResponse],
    summary="All bookings, optionally filtered by status",
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def list_bookings(
    request: Request,
    status: Optional[BookingStatus] = None,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    bookings = await fleet.list_bookings(db, caller, status)
    return [BookingDetailResponse.model_validate(b) for b in bookings]


@router.patch(
    "/bookings/{booking_id}/status",
    response_model=BookingResponse,
    summary="Override a booking's status",
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def update_booking_status(
    request: Request,
    booking_id: str,
    body: BookingStatusRequest,
    caller: CallerContext = Depends(get_caller),
    allocator: BookingAllocator = Depends(get_booking_allocator),
):
    return await allocator.update_booking_status(caller, booking_id, body.status)


@router.get(
    "/live-map",
    response_model=list[LiveTripResponse],
    summary="Active trips today with last known positions",
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def get_live_map(
    request: Request,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    trips = await fleet.live_map(db, caller)
    return [LiveTripResponse.model_validate(t) for t in trips]


# ── Vehicles & drivers ────────────────────────────────────────────────


@router.post(
    "/vehicles",
    status_code=201,
    response_model=VehicleResponse,
    summary="Add a vehicle to the fleet",
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def create_vehicle(
    request: Request,
    body: VehicleCreateRequest,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await fleet.create_vehicle(db, caller, **body.model_dump())


@router.get(
    "/vehicles",
    response_model=list[VehicleResponse],
    summary="All vehicles by bus number",
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def list_vehicles(
    request: Request,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await fleet.list_vehicles(db, caller)


@router.patch(
    "/vehicles/{vehicle_id}/status",
    response_model=VehicleResponse,
    summary="Put a vehicle into or out of maintenance",
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def update_vehicle_status(
    request: Request,
    vehicle_id: str,
    body: VehicleStatusRequest,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await fleet.update_vehicle_status(db, caller, vehicle_id, body.status)


@router.get(
    "/drivers",
    response_model=list[UserResponse],
    summary="All users with the driver role",
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def list_drivers(
    request: Request,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await fleet.list_drivers(db, caller)


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()

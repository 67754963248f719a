"""
Fleet and operations oversight for admins: vehicles, drivers, bookings,
the daily fleet summary and the live map.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from glidee.config import settings
from glidee.domain.access import CallerContext, authorize
from glidee.domain.clock import today
from glidee.domain.enums import BookingStatus, TripStatus, UserRole, VehicleStatus
from glidee.domain.errors import ConflictError, NotFound
from glidee.infrastructure.aggregates import (
    BookingDetail,
    IncidentDetail,
    TripDetail,
    VehicleWithTrips,
)
from glidee.infrastructure.models import UserModel, VehicleModel
from glidee.infrastructure.repositories import (
    BookingRepository,
    IncidentRepository,
    TripRepository,
    UserRepository,
    VehicleRepository,
)

logger = logging.getLogger(__name__)


@dataclass
class FleetStats:
    active_trips: int
    scheduled_trips: int
    completed_trips: int
    total_trips_today: int
    active_vehicles: int
    maintenance_vehicles: int
    total_vehicles: int
    total_bookings_today: int


@dataclass
class FleetStatus:
    stats: FleetStats
    today_trips: list[TripDetail]
    vehicles: list[VehicleWithTrips]
    recent_incidents: list[IncidentDetail]


@dataclass
class LiveTrip:
    id: str
    bus_number: str
    driver_name: str
    route_name: str
    status: TripStatus
    lat: Optional[float]
    lng: Optional[float]
    passengers_count: int
    total_passengers: int


# ── Vehicles & drivers ────────────────────────────────────────────────


@authorize(UserRole.ADMIN)
async def create_vehicle(
    session: AsyncSession,
    caller: CallerContext,
    license_plate: str,
    bus_number: str,
    capacity: int,
    model: Optional[str] = None,
    year: Optional[int] = None,
) -> VehicleModel:
    repo = VehicleRepository(session)
    if await repo.get_by_plate(license_plate) is not None:
        raise ConflictError(
            f"A vehicle with plate {license_plate} already exists",
            code="duplicate-plate",
        )
    vehicle = await repo.create(
        VehicleModel(
            license_plate=license_plate,
            bus_number=bus_number,
            capacity=capacity,
            model=model,
            year=year,
            status=VehicleStatus.ACTIVE,
        )
    )
    logger.info("Vehicle %s (%s) added", vehicle.id, license_plate)
    return vehicle


@authorize(UserRole.ADMIN)
async def list_vehicles(session: AsyncSession, caller: CallerContext) -> list[VehicleModel]:
    return await VehicleRepository(session).list_all()


@authorize(UserRole.ADMIN)
async def update_vehicle_status(
    session: AsyncSession, caller: CallerContext, vehicle_id: str, status: VehicleStatus
) -> VehicleModel:
    vehicle = await VehicleRepository(session).get_by_id(vehicle_id)
    if vehicle is None:
        raise NotFound("Vehicle not found", code="vehicle-not-found")
    vehicle.status = status
    await session.flush()
    return vehicle


@authorize(UserRole.ADMIN)
async def list_drivers(session: AsyncSession, caller: CallerContext) -> list[UserModel]:
    return await UserRepository(session).list_by_role(UserRole.DRIVER)


# ── Bookings ──────────────────────────────────────────────────────────


@authorize(UserRole.ADMIN)
async def list_bookings(
    session: AsyncSession, caller: CallerContext, status: BookingStatus | None = None
) -> list[BookingDetail]:
    return await BookingRepository(session).list_all(status)


# ── Oversight ─────────────────────────────────────────────────────────


@authorize(UserRole.ADMIN)
async def fleet_status(session: AsyncSession, caller: CallerContext) -> FleetStatus:
    current = today()
    trips = TripRepository(session)
    today_trips = await trips.details(await trips.list_on_date(current))
    vehicles = await VehicleRepository(session).list_with_trips_on(current)
    incidents = await IncidentRepository(session).recent(settings.recent_incident_limit)

    def count_trips(status: TripStatus) -> int:
        return sum(1 for d in today_trips if d.trip.status == status)

    def count_vehicles(status: VehicleStatus) -> int:
        return sum(1 for v in vehicles if v.vehicle.status == status)

    stats = FleetStats(
        active_trips=count_trips(TripStatus.ACTIVE),
        scheduled_trips=count_trips(TripStatus.SCHEDULED),
        completed_trips=count_trips(TripStatus.COMPLETED),
        total_trips_today=len(today_trips),
        active_vehicles=count_vehicles(VehicleStatus.ACTIVE),
        maintenance_vehicles=count_vehicles(VehicleStatus.MAINTENANCE),
        total_vehicles=len(vehicles),
        total_bookings_today=sum(len(d.bookings) for d in today_trips),
    )
    return FleetStatus(
        stats=stats,
        today_trips=today_trips,
        vehicles=vehicles,
        recent_incidents=incidents,
    )


@authorize(UserRole.ADMIN)
async def live_map(session: AsyncSession, caller: CallerContext) -> list[LiveTrip]:
    trips = TripRepository(session)
    active = await trips.details(
        await trips.list_on_date(today(), status=TripStatus.ACTIVE)
    )
    return [
        LiveTrip(
            id=d.trip.id,
            bus_number=d.vehicle.bus_number if d.vehicle else "Unknown",
            driver_name=d.driver.name if d.driver else "Unassigned",
            route_name=d.route.name if d.route else "",
            status=d.trip.status,
            lat=d.trip.current_lat,
            lng=d.trip.current_lng,
            passengers_count=sum(1 for line in d.bookings if line.on_board),
            total_passengers=len(d.bookings),
        )
        for d in active
    ]

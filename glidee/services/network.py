"""Route, stop and trip administration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from glidee.domain.access import CallerContext, authorize
from glidee.domain.enums import TripStatus, UserRole
from glidee.domain.errors import ConflictError, NotFound
from glidee.infrastructure.aggregates import RouteWithStops
from glidee.infrastructure.models import RouteModel, StopModel, TripModel
from glidee.infrastructure.repositories import (
    RouteRepository,
    TripRepository,
    UserRepository,
    VehicleRepository,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StopSpec:
    name: str
    lat: float
    lng: float
    order_index: int
    estimated_time: Optional[str] = None


@authorize(UserRole.ADMIN)
async def create_route(
    session: AsyncSession,
    caller: CallerContext,
    name: str,
    start_point: str,
    end_point: str,
    estimated_duration: int,
    stops: list[StopSpec],
) -> RouteWithStops:
    created = await RouteRepository(session).create_with_stops(
        RouteModel(
            name=name,
            start_point=start_point,
            end_point=end_point,
            estimated_duration=estimated_duration,
            is_active=True,
        ),
        [
            StopModel(
                name=s.name,
                lat=s.lat,
                lng=s.lng,
                order_index=s.order_index,
                estimated_time=s.estimated_time,
            )
            for s in stops
        ],
    )
    logger.info("Route %s created with %d stops", created.route.id, len(created.stops))
    return created


@authorize(UserRole.ADMIN)
async def list_routes(session: AsyncSession, caller: CallerContext) -> list[RouteWithStops]:
    return await RouteRepository(session).list_with_stops()


@authorize(UserRole.ADMIN)
async def create_trip(
    session: AsyncSession,
    caller: CallerContext,
    route_id: str,
    date: str,
    scheduled_start_time: str,
    driver_id: Optional[str] = None,
    vehicle_id: Optional[str] = None,
) -> TripModel:
    if await RouteRepository(session).get_by_id(route_id) is None:
        raise NotFound("Route not found", code="route-not-found")
    if driver_id is not None:
        driver = await UserRepository(session).get_by_id(driver_id)
        if driver is None:
            raise NotFound("Driver not found", code="driver-not-found")
        if driver.role != UserRole.DRIVER:
            raise ConflictError("User is not a driver", code="not-a-driver")
    if vehicle_id is not None:
        if await VehicleRepository(session).get_by_id(vehicle_id) is None:
            raise NotFound("Vehicle not found", code="vehicle-not-found")

    trip = await TripRepository(session).create(
        TripModel(
            route_id=route_id,
            date=date,
            scheduled_start_time=scheduled_start_time,
            driver_id=driver_id,
            vehicle_id=vehicle_id,
            status=TripStatus.SCHEDULED,
        )
    )
    logger.info("Trip %s scheduled on route %s for %s", trip.id, route_id, date)
    return trip

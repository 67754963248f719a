"""
Trip Lifecycle Manager
======================

Status transitions follow ``TRIP_TRANSITIONS``: a scheduled trip becomes
active or cancelled, an active trip becomes completed or cancelled, and
completed and cancelled are terminal.

Completing a trip completes every *confirmed* booking on it; pending and
cancelled bookings are left alone.  Location updates overwrite the current
coordinates with no history.

Drivers are authorised by ownership of the trip row, not by role.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from glidee.domain.access import CallerContext, authorize
from glidee.domain.clock import today, utcnow
from glidee.domain.entities import TripState
from glidee.domain.enums import TripStatus, UserRole, VehicleStatus
from glidee.domain.errors import ConflictError, Forbidden, NotFound
from glidee.infrastructure.aggregates import TripDetail
from glidee.infrastructure.models import TripModel
from glidee.infrastructure.repositories import (
    BookingRepository,
    TripRepository,
    UserRepository,
    VehicleRepository,
)
from glidee.services.notifications import notifier

logger = logging.getLogger(__name__)


async def load_driver_trip(
    trips: TripRepository, caller: CallerContext, trip_id: str
) -> TripModel:
    """The trip if *caller* is its assigned driver."""
    trip = await trips.get_by_id(trip_id)
    if trip is None:
        raise NotFound("Trip not found", code="trip-not-found")
    if not caller.owns(trip.driver_id):
        raise Forbidden("You are not assigned to this trip", code="trip-not-assigned")
    return trip


class TripLifecycleManager:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.trips = TripRepository(session)
        self.bookings = BookingRepository(session)
        self.users = UserRepository(session)
        self.vehicles = VehicleRepository(session)

    @authorize()
    async def update_trip_status(
        self, caller: CallerContext, trip_id: str, status: TripStatus
    ) -> TripModel:
        trip = await load_driver_trip(self.trips, caller, trip_id)

        state = TripState(trip.status, trip.started_at, trip.completed_at)
        state.transition_to(status, utcnow())
        trip.status = state.status
        trip.started_at = state.started_at
        trip.completed_at = state.completed_at
        await self.session.flush()

        if status is TripStatus.COMPLETED:
            completed = await self.bookings.complete_confirmed(trip_id)
            logger.info("Trip %s completed; %d bookings completed", trip_id, completed)
        else:
            logger.info("Trip %s is now %s", trip_id, status.value)

        for booking in await self.bookings.active_for_trip(trip_id):
            notifier.notify(booking.parent_id, "trip-status", f"Trip is now {status.value}")
        return trip

    @authorize()
    async def update_location(
        self, caller: CallerContext, trip_id: str, lat: float, lng: float
    ) -> TripModel:
        trip = await load_driver_trip(self.trips, caller, trip_id)
        if trip.status != TripStatus.ACTIVE:
            raise ConflictError(
                "Can only update location for active trips", code="trip-not-active"
            )
        trip.current_lat = lat
        trip.current_lng = lng
        await self.session.flush()
        return trip

    @authorize(UserRole.ADMIN)
    async def assign_driver(
        self, caller: CallerContext, trip_id: str, driver_id: str, vehicle_id: str
    ) -> TripModel:
        # Double-booking a driver or vehicle on the same date is not checked.
        trip = await self.trips.get_by_id(trip_id)
        if trip is None:
            raise NotFound("Trip not found", code="trip-not-found")
        if TripState(trip.status).is_terminal:
            raise ConflictError(
                f"Trip is {trip.status.value} and can no longer be changed",
                code="trip-closed",
            )

        driver = await self.users.get_by_id(driver_id)
        if driver is None:
            raise NotFound("Driver not found", code="driver-not-found")
        if driver.role != UserRole.DRIVER:
            raise ConflictError("User is not a driver", code="not-a-driver")

        vehicle = await self.vehicles.get_by_id(vehicle_id)
        if vehicle is None:
            raise NotFound("Vehicle not found", code="vehicle-not-found")
        if vehicle.status != VehicleStatus.ACTIVE:
            raise ConflictError("Vehicle is not active", code="vehicle-inactive")

        trip.driver_id = driver_id
        trip.vehicle_id = vehicle_id
        await self.session.flush()
        logger.info("Trip %s assigned to driver %s, vehicle %s", trip_id, driver_id, vehicle_id)
        return trip

    # ── Driver reads ──────────────────────────────────────────────────

    @authorize()
    async def driver_schedule(self, caller: CallerContext) -> list[TripDetail]:
        """Today's trips for the calling driver, earliest first."""
        trips = await self.trips.list_for_driver_on(caller.user_id, today())
        return await self.trips.details(trips)

    @authorize()
    async def driver_trip(self, caller: CallerContext, trip_id: str) -> TripDetail:
        trip = await load_driver_trip(self.trips, caller, trip_id)
        return await self.trips.detail(trip, with_incidents=True)

"""
Passenger Boarding Tracker
==========================

Records board / drop events for a booking while its trip is active.
A passenger moves not-boarded -> boarded -> dropped; there is no unboard.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from glidee.domain.access import CallerContext, authorize
from glidee.domain.clock import utcnow
from glidee.domain.entities import PassengerState
from glidee.domain.enums import PassengerAction, TripStatus
from glidee.domain.errors import ConflictError, Forbidden, NotFound
from glidee.infrastructure.models import BookingModel
from glidee.infrastructure.repositories import BookingRepository, TripRepository

logger = logging.getLogger(__name__)


class PassengerBoardingTracker:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.bookings = BookingRepository(session)
        self.trips = TripRepository(session)

    @authorize()
    async def update_passenger_status(
        self, caller: CallerContext, booking_id: str, action: PassengerAction
    ) -> BookingModel:
        booking = await self.bookings.get_by_id(booking_id)
        if booking is None:
            raise NotFound("Booking not found", code="booking-not-found")

        trip = await self.trips.get_by_id(booking.trip_id)
        if not caller.owns(trip.driver_id):
            raise Forbidden("You are not assigned to this trip", code="trip-not-assigned")
        if trip.status != TripStatus.ACTIVE:
            raise ConflictError(
                "Trip must be active to update passenger status",
                code="trip-not-active",
            )

        state = PassengerState(booking.boarded_at, booking.dropped_at)
        state.apply(action, utcnow())
        booking.boarded_at = state.boarded_at
        booking.dropped_at = state.dropped_at
        await self.session.flush()

        logger.info("Booking %s: passenger %s on trip %s", booking_id, action.value, trip.id)
        return booking

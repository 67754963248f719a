"""
Booking Allocator
=================

Seat availability, booking creation and cancellation.

Seat numbers are ``active bookings + 1`` at the time of booking.  After a
cancellation the next booking can repeat a number still held by a live
booking; the number is informational and the capacity check counts rows,
not slots.  Reviving a cancelled booking (admin override) goes through the
same guard and capacity check as a new booking.

Concurrency
-----------
The availability check and the insert are separate statements.  What keeps
two requests from taking the last seat is the configured ``SeatLockMode``:

* ``none``  -- nothing; concurrent requests can over-book.
* ``row``   -- the trip row is read ``SELECT ... FOR UPDATE``.
* ``redis`` -- a per-trip distributed lock (see ``RedisSeatGuard``).

The booking is committed before any guard is released.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from glidee.domain.access import CallerContext, authorize
from glidee.domain.clock import is_iso_date, today
from glidee.domain.entities import SeatAvailability
from glidee.domain.enums import (
    TRIP_LOCKED_FOR_CANCELLATION,
    BookingStatus,
    SeatLockMode,
    TripStatus,
    UserRole,
)
from glidee.domain.errors import ConflictError, Forbidden, NotFound, ValidationError
from glidee.infrastructure.aggregates import BookingDetail, RouteAvailability
from glidee.infrastructure.locks import NullSeatGuard
from glidee.infrastructure.models import BookingModel, TripModel
from glidee.infrastructure.repositories import (
    BookingRepository,
    RouteRepository,
    StudentRepository,
    TripRepository,
    VehicleRepository,
)
from glidee.services.notifications import notifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingReceipt:
    booking_id: str
    seat_number: int
    message: str = "Booking confirmed successfully"


@dataclass
class ParentBookings:
    upcoming: list[BookingDetail]
    past: list[BookingDetail]
    all: list[BookingDetail]


class BookingAllocator:
    def __init__(
        self,
        session: AsyncSession,
        seat_lock: SeatLockMode = SeatLockMode.ROW,
        guard=None,
    ):
        self.session = session
        self.seat_lock = seat_lock
        self.guard = guard or NullSeatGuard()
        self.trips = TripRepository(session)
        self.bookings = BookingRepository(session)
        self.students = StudentRepository(session)
        self.routes = RouteRepository(session)
        self.vehicles = VehicleRepository(session)

    # ── Commands ──────────────────────────────────────────────────────

    @authorize()
    async def create_booking(
        self,
        caller: CallerContext,
        trip_id: str,
        student_id: str,
        pickup_stop_id: Optional[str] = None,
        dropoff_stop_id: Optional[str] = None,
    ) -> BookingReceipt:
        student = await self.students.get_by_id(student_id)
        if student is None or not caller.owns(student.parent_id):
            raise Forbidden(
                "Student not found or does not belong to you",
                code="student-not-owned",
            )

        async with self.guard.hold(trip_id):
            trip = await self._load_trip(trip_id)
            if trip is None:
                raise NotFound("Trip not found", code="trip-not-found")
            if trip.status != TripStatus.SCHEDULED:
                raise ConflictError(
                    "Trip is not available for booking", code="trip-not-scheduled"
                )

            active = await self.bookings.active_for_trip(trip_id)
            vehicle_capacity = await self._capacity(trip)
            seats = SeatAvailability.for_trip(vehicle_capacity, len(active))
            if seats.is_full:
                raise ConflictError("No seats available on this trip", code="trip-full")

            if any(b.student_id == student_id for b in active):
                raise ConflictError(
                    "Student already has a booking on this trip",
                    code="duplicate-booking",
                )

            await self._check_stop(trip, pickup_stop_id)
            await self._check_stop(trip, dropoff_stop_id)

            booking = await self.bookings.create(
                BookingModel(
                    trip_id=trip_id,
                    student_id=student_id,
                    parent_id=caller.user_id,
                    pickup_stop_id=pickup_stop_id,
                    dropoff_stop_id=dropoff_stop_id,
                    status=BookingStatus.CONFIRMED,
                    seat_number=seats.next_seat_number,
                )
            )
            await self.session.commit()

        logger.info(
            "Booking %s: student %s on trip %s seat %d",
            booking.id,
            student_id,
            trip_id,
            booking.seat_number,
        )
        notifier.notify(
            caller.user_id,
            "booking-confirmed",
            f"{student.name} is booked on trip {trip.date}, seat {booking.seat_number}",
        )
        return BookingReceipt(booking_id=booking.id, seat_number=booking.seat_number)

    @authorize()
    async def cancel_booking(self, caller: CallerContext, booking_id: str) -> BookingModel:
        booking = await self.bookings.get_by_id(booking_id)
        if booking is None:
            raise NotFound("Booking not found", code="booking-not-found")
        if not caller.owns(booking.parent_id):
            raise Forbidden("Booking does not belong to you", code="booking-not-owned")
        if booking.status == BookingStatus.CANCELLED:
            raise ConflictError(
                "Booking is already cancelled", code="already-cancelled"
            )

        trip = await self.trips.get_by_id(booking.trip_id)
        if trip.status in TRIP_LOCKED_FOR_CANCELLATION:
            raise ConflictError(
                "Cannot cancel booking for an active or completed trip",
                code="trip-in-progress",
            )

        booking.status = BookingStatus.CANCELLED
        await self.session.flush()
        logger.info("Booking %s cancelled by parent %s", booking_id, caller.user_id)
        notifier.notify(caller.user_id, "booking-cancelled", "Booking cancelled successfully")
        return booking

    @authorize(UserRole.ADMIN)
    async def update_booking_status(
        self, caller: CallerContext, booking_id: str, status: BookingStatus
    ) -> BookingModel:
        """Admin override. Reviving a cancelled booking takes a seat again."""
        booking = await self.bookings.get_by_id(booking_id)
        if booking is None:
            raise NotFound("Booking not found", code="booking-not-found")

        reviving = (
            booking.status == BookingStatus.CANCELLED and status != BookingStatus.CANCELLED
        )
        if not reviving:
            booking.status = status
            await self.session.flush()
        else:
            async with self.guard.hold(booking.trip_id):
                trip = await self._load_trip(booking.trip_id)
                held = await self.bookings.count_active_for_trip(booking.trip_id)
                seats = SeatAvailability.for_trip(await self._capacity(trip), held)
                if seats.is_full:
                    raise ConflictError("No seats available on this trip", code="trip-full")
                booking.status = status
                await self.session.commit()

        logger.info("Booking %s set to %s by admin %s", booking_id, status.value, caller.user_id)
        return booking

    # ── Queries ───────────────────────────────────────────────────────

    @authorize()
    async def available_routes(
        self, caller: CallerContext, date: str
    ) -> list[RouteAvailability]:
        """Active routes with their bookable trips on *date*."""
        if not is_iso_date(date):
            raise ValidationError(
                "Date must be in YYYY-MM-DD format", code="date-format"
            )

        routes = await self.routes.list_with_stops(active_only=True)
        trips = await self.trips.list_on_date(date, status=TripStatus.SCHEDULED)
        details = await self.trips.details(trips)

        by_route: dict[str, list] = {}
        for detail in details:
            by_route.setdefault(detail.trip.route_id, []).append(detail)

        return [
            RouteAvailability(r.route, r.stops, by_route.get(r.route.id, []))
            for r in routes
        ]

    @authorize()
    async def parent_bookings(self, caller: CallerContext) -> ParentBookings:
        everything = await self.bookings.list_for_parent(caller.user_id)
        current = today()
        upcoming = [
            d
            for d in everything
            if d.trip.date >= current and d.booking.status != BookingStatus.CANCELLED
        ]
        past = [
            d
            for d in everything
            if d.trip.date < current or d.booking.status == BookingStatus.COMPLETED
        ]
        return ParentBookings(upcoming=upcoming, past=past, all=everything)

    # ── Helpers ───────────────────────────────────────────────────────

    async def _load_trip(self, trip_id: str) -> Optional[TripModel]:
        if self.seat_lock is SeatLockMode.ROW:
            return await self.trips.get_for_update(trip_id)
        return await self.trips.get_by_id(trip_id)

    async def _capacity(self, trip: TripModel) -> Optional[int]:
        if trip.vehicle_id is None:
            return None
        vehicle = await self.vehicles.get_by_id(trip.vehicle_id)
        return vehicle.capacity if vehicle else None

    async def _check_stop(self, trip: TripModel, stop_id: Optional[str]) -> None:
        if stop_id is None:
            return
        stop = await self.routes.get_stop(stop_id)
        if stop is None or stop.route_id != trip.route_id:
            raise ValidationError(
                "Stop is not on this trip's route", code="stop-not-on-route"
            )


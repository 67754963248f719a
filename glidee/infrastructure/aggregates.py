"""
Read-side aggregates.

Plain structures returned by the repositories: one root row plus its named
related rows.  They replace ORM eager expansion so each traversal lives in
exactly one repository method.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .models import (
    BookingModel,
    IncidentModel,
    RouteModel,
    StopModel,
    StudentModel,
    TripModel,
    UserModel,
    VehicleModel,
)
from glidee.domain.entities import PassengerState, SeatAvailability
from glidee.domain.enums import BookingStatus


@dataclass
class RouteWithStops:
    route: RouteModel
    stops: list[StopModel] = field(default_factory=list)


@dataclass
class BookingLine:
    """A booking as seen on a trip manifest."""

    booking: BookingModel
    student: Optional[StudentModel] = None
    pickup_stop: Optional[StopModel] = None
    dropoff_stop: Optional[StopModel] = None

    @property
    def on_board(self) -> bool:
        return PassengerState(
            self.booking.boarded_at, self.booking.dropped_at
        ).on_board


@dataclass
class TripDetail:
    trip: TripModel
    route: Optional[RouteModel] = None
    stops: list[StopModel] = field(default_factory=list)
    vehicle: Optional[VehicleModel] = None
    driver: Optional[UserModel] = None
    bookings: list[BookingLine] = field(default_factory=list)
    incidents: list[IncidentModel] = field(default_factory=list)

    @property
    def active_bookings(self) -> list[BookingLine]:
        return [
            line
            for line in self.bookings
            if line.booking.status != BookingStatus.CANCELLED
        ]

    @property
    def seats(self) -> SeatAvailability:
        capacity = self.vehicle.capacity if self.vehicle else None
        return SeatAvailability.for_trip(capacity, len(self.active_bookings))


@dataclass
class RouteAvailability:
    route: RouteModel
    stops: list[StopModel] = field(default_factory=list)
    trips: list[TripDetail] = field(default_factory=list)


@dataclass
class BookingDetail:
    booking: BookingModel
    trip: TripModel
    student: Optional[StudentModel] = None
    parent: Optional[UserModel] = None
    route: Optional[RouteModel] = None
    vehicle: Optional[VehicleModel] = None
    driver: Optional[UserModel] = None
    pickup_stop: Optional[StopModel] = None
    dropoff_stop: Optional[StopModel] = None


@dataclass
class IncidentDetail:
    incident: IncidentModel
    trip: Optional[TripModel] = None
    route: Optional[RouteModel] = None
    reported_by: Optional[UserModel] = None


@dataclass
class VehicleWithTrips:
    vehicle: VehicleModel
    trips: list[TripModel] = field(default_factory=list)

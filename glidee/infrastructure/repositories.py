"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Reads that span tables return the plain
aggregates from ``aggregates.py``; related rows are fetched in batches by id
rather than through ORM relationships.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Iterable, Optional, TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .aggregates import (
    BookingDetail,
    BookingLine,
    IncidentDetail,
    RouteWithStops,
    TripDetail,
    VehicleWithTrips,
)
from .models import (
    BookingModel,
    IncidentModel,
    RouteModel,
    SessionModel,
    StopModel,
    StudentModel,
    TripModel,
    UserModel,
    VehicleModel,
)
from glidee.domain.enums import BookingStatus, TripStatus, UserRole

M = TypeVar("M")


async def _by_ids(session: AsyncSession, model: type[M], ids: Iterable) -> dict[str, M]:
    wanted = {i for i in ids if i is not None}
    if not wanted:
        return {}
    result = await session.execute(select(model).where(model.id.in_(wanted)))
    return {row.id: row for row in result.scalars().all()}


async def _stops_by_route(
    session: AsyncSession, route_ids: Iterable[str]
) -> dict[str, list[StopModel]]:
    wanted = set(route_ids)
    grouped: dict[str, list[StopModel]] = defaultdict(list)
    if not wanted:
        return grouped
    result = await session.execute(
        select(StopModel)
        .where(StopModel.route_id.in_(wanted))
        .order_by(StopModel.route_id, StopModel.order_index)
    )
    for stop in result.scalars().all():
        grouped[stop.route_id].append(stop)
    return grouped


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: str) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)

    async def list_by_role(self, role: UserRole) -> list[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.role == role).order_by(UserModel.name)
        )
        return list(result.scalars().all())


class SessionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_user_for_token(
        self, token: str, now: datetime
    ) -> Optional[UserModel]:
        """Owner of *token*, or ``None`` when unknown or expired."""
        result = await self.session.execute(
            select(SessionModel).where(SessionModel.token == token)
        )
        record = result.scalar_one_or_none()
        if record is None:
            return None
        expires_at = record.expires_at
        if expires_at.tzinfo is None:
            # SQLite hands back naive datetimes
            expires_at = expires_at.replace(tzinfo=now.tzinfo)
        if expires_at <= now:
            return None
        return await self.session.get(UserModel, record.user_id)


class StudentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, student: StudentModel) -> StudentModel:
        self.session.add(student)
        await self.session.flush()
        return student

    async def get_by_id(self, student_id: str) -> Optional[StudentModel]:
        return await self.session.get(StudentModel, student_id)

    async def list_for_parent(self, parent_id: str) -> list[StudentModel]:
        result = await self.session.execute(
            select(StudentModel)
            .where(StudentModel.parent_id == parent_id)
            .order_by(StudentModel.created_at)
        )
        return list(result.scalars().all())


class VehicleRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, vehicle: VehicleModel) -> VehicleModel:
        self.session.add(vehicle)
        await self.session.flush()
        return vehicle

    async def get_by_id(self, vehicle_id: str) -> Optional[VehicleModel]:
        return await self.session.get(VehicleModel, vehicle_id)

    async def get_by_plate(self, license_plate: str) -> Optional[VehicleModel]:
        result = await self.session.execute(
            select(VehicleModel).where(VehicleModel.license_plate == license_plate)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[VehicleModel]:
        result = await self.session.execute(
            select(VehicleModel).order_by(VehicleModel.bus_number)
        )
        return list(result.scalars().all())

    async def list_with_trips_on(self, date: str) -> list[VehicleWithTrips]:
        vehicles = await self.list_all()
        result = await self.session.execute(
            select(TripModel).where(
                TripModel.date == date, TripModel.vehicle_id.is_not(None)
            )
        )
        by_vehicle: dict[str, list[TripModel]] = defaultdict(list)
        for trip in result.scalars().all():
            by_vehicle[trip.vehicle_id].append(trip)
        return [VehicleWithTrips(v, by_vehicle.get(v.id, [])) for v in vehicles]


class RouteRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_with_stops(
        self, route: RouteModel, stops: list[StopModel]
    ) -> RouteWithStops:
        self.session.add(route)
        await self.session.flush()
        for stop in stops:
            stop.route_id = route.id
        self.session.add_all(stops)
        await self.session.flush()
        return RouteWithStops(route, sorted(stops, key=lambda s: s.order_index))

    async def get_by_id(self, route_id: str) -> Optional[RouteModel]:
        return await self.session.get(RouteModel, route_id)

    async def get_stop(self, stop_id: str) -> Optional[StopModel]:
        return await self.session.get(StopModel, stop_id)

    async def list_with_stops(self, active_only: bool = False) -> list[RouteWithStops]:
        query = select(RouteModel).order_by(RouteModel.name)
        if active_only:
            query = query.where(RouteModel.is_active.is_(True))
        result = await self.session.execute(query)
        routes = list(result.scalars().all())
        stops = await _stops_by_route(self.session, (r.id for r in routes))
        return [RouteWithStops(r, stops.get(r.id, [])) for r in routes]


class TripRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, trip: TripModel) -> TripModel:
        self.session.add(trip)
        await self.session.flush()
        return trip

    async def get_by_id(self, trip_id: str) -> Optional[TripModel]:
        return await self.session.get(TripModel, trip_id)

    async def get_for_update(self, trip_id: str) -> Optional[TripModel]:
        """SELECT ... FOR UPDATE so concurrent bookings on one trip serialise."""
        result = await self.session.execute(
            select(TripModel)
            .where(TripModel.id == trip_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_on_date(
        self, date: str, status: TripStatus | None = None
    ) -> list[TripModel]:
        query = select(TripModel).where(TripModel.date == date)
        if status is not None:
            query = query.where(TripModel.status == status)
        result = await self.session.execute(
            query.order_by(TripModel.scheduled_start_time)
        )
        return list(result.scalars().all())

    async def list_for_driver_on(self, driver_id: str, date: str) -> list[TripModel]:
        result = await self.session.execute(
            select(TripModel)
            .where(TripModel.driver_id == driver_id, TripModel.date == date)
            .order_by(TripModel.scheduled_start_time)
        )
        return list(result.scalars().all())

    async def details(
        self, trips: list[TripModel], with_incidents: bool = False
    ) -> list[TripDetail]:
        """Expand trips into ``TripDetail`` aggregates in a fixed number of queries."""
        if not trips:
            return []
        trip_ids = [t.id for t in trips]
        routes = await _by_ids(self.session, RouteModel, (t.route_id for t in trips))
        stops = await _stops_by_route(self.session, routes.keys())
        vehicles = await _by_ids(self.session, VehicleModel, (t.vehicle_id for t in trips))
        drivers = await _by_ids(self.session, UserModel, (t.driver_id for t in trips))

        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.trip_id.in_(trip_ids))
            .order_by(BookingModel.seat_number, BookingModel.created_at)
        )
        bookings = list(result.scalars().all())
        students = await _by_ids(
            self.session, StudentModel, (b.student_id for b in bookings)
        )
        booking_stops = await _by_ids(
            self.session,
            StopModel,
            [b.pickup_stop_id for b in bookings] + [b.dropoff_stop_id for b in bookings],
        )
        lines: dict[str, list[BookingLine]] = defaultdict(list)
        for b in bookings:
            lines[b.trip_id].append(
                BookingLine(
                    booking=b,
                    student=students.get(b.student_id),
                    pickup_stop=booking_stops.get(b.pickup_stop_id),
                    dropoff_stop=booking_stops.get(b.dropoff_stop_id),
                )
            )

        incidents: dict[str, list[IncidentModel]] = defaultdict(list)
        if with_incidents:
            result = await self.session.execute(
                select(IncidentModel)
                .where(IncidentModel.trip_id.in_(trip_ids))
                .order_by(IncidentModel.reported_at.desc())
            )
            for incident in result.scalars().all():
                incidents[incident.trip_id].append(incident)

        return [
            TripDetail(
                trip=t,
                route=routes.get(t.route_id),
                stops=stops.get(t.route_id, []),
                vehicle=vehicles.get(t.vehicle_id),
                driver=drivers.get(t.driver_id),
                bookings=lines.get(t.id, []),
                incidents=incidents.get(t.id, []),
            )
            for t in trips
        ]

    async def detail(self, trip: TripModel, with_incidents: bool = False) -> TripDetail:
        return (await self.details([trip], with_incidents=with_incidents))[0]


class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, booking: BookingModel) -> BookingModel:
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_by_id(self, booking_id: str) -> Optional[BookingModel]:
        return await self.session.get(BookingModel, booking_id)

    async def active_for_trip(self, trip_id: str) -> list[BookingModel]:
        """Bookings that hold a seat (anything but cancelled)."""
        result = await self.session.execute(
            select(BookingModel).where(
                BookingModel.trip_id == trip_id,
                BookingModel.status != BookingStatus.CANCELLED,
            )
        )
        return list(result.scalars().all())

    async def count_active_for_trip(self, trip_id: str) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(BookingModel)
            .where(
                BookingModel.trip_id == trip_id,
                BookingModel.status != BookingStatus.CANCELLED,
            )
        )
        return result.scalar() or 0

    async def complete_confirmed(self, trip_id: str) -> int:
        """Flip every confirmed booking on *trip_id* to completed."""
        result = await self.session.execute(
            update(BookingModel)
            .where(
                BookingModel.trip_id == trip_id,
                BookingModel.status == BookingStatus.CONFIRMED,
            )
            .values(status=BookingStatus.COMPLETED)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    async def list_for_parent(self, parent_id: str) -> list[BookingDetail]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.parent_id == parent_id)
            .order_by(BookingModel.created_at.desc())
        )
        return await self._details(list(result.scalars().all()))

    async def list_all(self, status: BookingStatus | None = None) -> list[BookingDetail]:
        query = select(BookingModel)
        if status is not None:
            query = query.where(BookingModel.status == status)
        result = await self.session.execute(
            query.order_by(BookingModel.created_at.desc())
        )
        return await self._details(list(result.scalars().all()))

    async def _details(self, bookings: list[BookingModel]) -> list[BookingDetail]:
        if not bookings:
            return []
        trips = await _by_ids(self.session, TripModel, (b.trip_id for b in bookings))
        students = await _by_ids(
            self.session, StudentModel, (b.student_id for b in bookings)
        )
        routes = await _by_ids(
            self.session, RouteModel, (t.route_id for t in trips.values())
        )
        vehicles = await _by_ids(
            self.session, VehicleModel, (t.vehicle_id for t in trips.values())
        )
        users = await _by_ids(
            self.session,
            UserModel,
            [b.parent_id for b in bookings] + [t.driver_id for t in trips.values()],
        )
        stops = await _by_ids(
            self.session,
            StopModel,
            [b.pickup_stop_id for b in bookings] + [b.dropoff_stop_id for b in bookings],
        )
        details = []
        for b in bookings:
            trip = trips[b.trip_id]
            details.append(
                BookingDetail(
                    booking=b,
                    trip=trip,
                    student=students.get(b.student_id),
                    parent=users.get(b.parent_id),
                    route=routes.get(trip.route_id),
                    vehicle=vehicles.get(trip.vehicle_id),
                    driver=users.get(trip.driver_id),
                    pickup_stop=stops.get(b.pickup_stop_id),
                    dropoff_stop=stops.get(b.dropoff_stop_id),
                )
            )
        return details


class IncidentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, incident: IncidentModel) -> IncidentModel:
        self.session.add(incident)
        await self.session.flush()
        return incident

    async def list_for_reporter(self, user_id: str, limit: int) -> list[IncidentDetail]:
        result = await self.session.execute(
            select(IncidentModel)
            .where(IncidentModel.reported_by_id == user_id)
            .order_by(IncidentModel.reported_at.desc())
            .limit(limit)
        )
        return await self._details(list(result.scalars().all()))

    async def recent(self, limit: int) -> list[IncidentDetail]:
        result = await self.session.execute(
            select(IncidentModel)
            .order_by(IncidentModel.reported_at.desc())
            .limit(limit)
        )
        return await self._details(list(result.scalars().all()))

    async def _details(self, incidents: list[IncidentModel]) -> list[IncidentDetail]:
        trips = await _by_ids(self.session, TripModel, (i.trip_id for i in incidents))
        routes = await _by_ids(
            self.session, RouteModel, (t.route_id for t in trips.values())
        )
        reporters = await _by_ids(
            self.session, UserModel, (i.reported_by_id for i in incidents)
        )
        details = []
        for i in incidents:
            trip = trips.get(i.trip_id)
            details.append(
                IncidentDetail(
                    incident=i,
                    trip=trip,
                    route=routes.get(trip.route_id) if trip else None,
                    reported_by=reporters.get(i.reported_by_id),
                )
            )
        return details

"""
SQLAlchemy ORM models (PostgreSQL in production, SQLite in tests).

Tables
------
* ``users``      -- parents, drivers and admins
* ``sessions``   -- session tokens issued by the auth service
* ``students``   -- children owned by a parent (deleted with the parent)
* ``vehicles``   -- buses with seat capacity
* ``routes``     -- named routes owning an ordered list of ``stops``
* ``trips``      -- one route run on one calendar date
* ``bookings``   -- a student's seat on a trip
* ``incidents``  -- driver reports against a trip

No ORM relationships are declared; related rows are composed explicitly by
the repositories.

Indexes
-------
* **B-Tree** on ``trips(date, status)``, ``trips.driver_id``,
  ``bookings.trip_id``, ``bookings.parent_id`` and ``incidents.reported_by_id``
  for the schedule, availability and manifest look-ups.
"""

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from .database import Base
from glidee.domain.clock import utcnow
from glidee.domain.enums import (
    BookingStatus,
    IncidentSeverity,
    TripStatus,
    UserRole,
    VehicleStatus,
)


def _new_id() -> str:
    return str(uuid.uuid4())


def _enum(enum_cls, name: str) -> Enum:
    # Persist the lowercase values, not the member names
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
    )


class UserModel(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    email_verified = Column(Boolean, default=False, nullable=False)
    image = Column(String(500), nullable=True)
    role = Column(_enum(UserRole, "user_role"), default=UserRole.PARENT, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (Index("idx_users_role", "role"),)


class SessionModel(Base):
    __tablename__ = "sessions"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    token = Column(String(255), unique=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class StudentModel(Base):
    __tablename__ = "students"

    id = Column(String(36), primary_key=True, default=_new_id)
    parent_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(String(120), nullable=False)
    school_name = Column(String(200), nullable=False)
    grade = Column(String(20), nullable=False)
    photo_url = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (Index("idx_students_parent", "parent_id"),)


class VehicleModel(Base):
    __tablename__ = "vehicles"

    id = Column(String(36), primary_key=True, default=_new_id)
    license_plate = Column(String(32), unique=True, nullable=False)
    bus_number = Column(String(32), nullable=False)
    capacity = Column(Integer, nullable=False)
    model = Column(String(120), nullable=True)
    year = Column(Integer, nullable=True)
    status = Column(
        _enum(VehicleStatus, "vehicle_status"),
        default=VehicleStatus.ACTIVE,
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (CheckConstraint("capacity > 0", name="ck_vehicles_capacity"),)


class RouteModel(Base):
    __tablename__ = "routes"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(200), nullable=False)
    start_point = Column(String(200), nullable=False)
    end_point = Column(String(200), nullable=False)
    estimated_duration = Column(Integer, nullable=False)  # minutes
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class StopModel(Base):
    __tablename__ = "stops"

    id = Column(String(36), primary_key=True, default=_new_id)
    route_id = Column(
        String(36), ForeignKey("routes.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(String(200), nullable=False)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    order_index = Column(Integer, nullable=False)
    estimated_time = Column(String(20), nullable=True)  # e.g. "08:30 AM"
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("route_id", "order_index", name="uq_stops_route_order"),
    )


class TripModel(Base):
    __tablename__ = "trips"

    id = Column(String(36), primary_key=True, default=_new_id)
    route_id = Column(String(36), ForeignKey("routes.id"), nullable=False)
    driver_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    vehicle_id = Column(String(36), ForeignKey("vehicles.id"), nullable=True)
    date = Column(String(10), nullable=False)  # YYYY-MM-DD
    scheduled_start_time = Column(String(5), nullable=True)  # HH:MM
    status = Column(
        _enum(TripStatus, "trip_status"), default=TripStatus.SCHEDULED, nullable=False
    )
    current_lat = Column(Float, nullable=True)
    current_lng = Column(Float, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_trips_date_status", "date", "status"),
        Index("idx_trips_driver", "driver_id"),
        Index("idx_trips_route", "route_id"),
    )


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=_new_id)
    trip_id = Column(String(36), ForeignKey("trips.id"), nullable=False)
    student_id = Column(String(36), ForeignKey("students.id"), nullable=False)
    parent_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    pickup_stop_id = Column(String(36), ForeignKey("stops.id"), nullable=True)
    dropoff_stop_id = Column(String(36), ForeignKey("stops.id"), nullable=True)
    status = Column(
        _enum(BookingStatus, "booking_status"),
        default=BookingStatus.PENDING,
        nullable=False,
    )
    seat_number = Column(Integer, nullable=True)
    boarded_at = Column(DateTime(timezone=True), nullable=True)
    dropped_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint(
            "dropped_at IS NULL OR boarded_at IS NOT NULL",
            name="ck_bookings_board_before_drop",
        ),
        Index("idx_bookings_trip", "trip_id"),
        Index("idx_bookings_parent", "parent_id"),
        Index("idx_bookings_status", "status"),
    )


class IncidentModel(Base):
    __tablename__ = "incidents"

    id = Column(String(36), primary_key=True, default=_new_id)
    trip_id = Column(String(36), ForeignKey("trips.id"), nullable=False)
    reported_by_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    description = Column(Text, nullable=False)
    severity = Column(
        _enum(IncidentSeverity, "incident_severity"),
        default=IncidentSeverity.LOW,
        nullable=False,
    )
    location = Column(String(255), nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    reported_at = Column(DateTime(timezone=True), default=utcnow)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("idx_incidents_reporter", "reported_by_id"),
        Index("idx_incidents_trip", "trip_id"),
    )

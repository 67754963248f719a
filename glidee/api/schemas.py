"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, Field, HttpUrl, model_validator

from glidee.domain.clock import DATE_PATTERN, is_iso_date
from glidee.domain.enums import (
    BookingStatus,
    IncidentSeverity,
    PassengerAction,
    TripStatus,
    UserRole,
    VehicleStatus,
)

UUID_PATTERN = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"

EntityId = Annotated[str, Field(pattern=UUID_PATTERN)]
Latitude = Annotated[float, Field(ge=-90, le=90)]
Longitude = Annotated[float, Field(ge=-180, le=180)]


def _calendar_date(value: str) -> str:
    if not is_iso_date(value):
        raise ValueError("Date must be in YYYY-MM-DD format")
    return value


IsoDate = Annotated[str, Field(pattern=DATE_PATTERN), AfterValidator(_calendar_date)]


# ── Requests ──────────────────────────────────────────────────────────


class StudentCreateRequest(BaseModel):
    name: str = Field(..., min_length=2)
    school_name: str = Field(..., min_length=2)
    grade: str = Field(..., min_length=1)
    photo_url: Optional[HttpUrl] = None


class BookingCreateRequest(BaseModel):
    trip_id: EntityId
    student_id: EntityId
    pickup_stop_id: Optional[EntityId] = None
    dropoff_stop_id: Optional[EntityId] = None


class ProfileUpdateRequest(BaseModel):
    name: str = Field(..., min_length=2)
    image: Optional[HttpUrl | Annotated[str, Field(max_length=0)]] = Field(
        None, description="Image URL; an empty string clears it."
    )


class TripStatusRequest(BaseModel):
    status: TripStatus


class LocationUpdateRequest(BaseModel):
    lat: Latitude
    lng: Longitude


class IncidentCreateRequest(BaseModel):
    description: str = Field(..., min_length=10)
    severity: IncidentSeverity
    location: Optional[str] = None
    lat: Optional[Latitude] = None
    lng: Optional[Longitude] = None


class PassengerStatusRequest(BaseModel):
    action: PassengerAction


class StopCreateRequest(BaseModel):
    name: str = Field(..., min_length=2)
    lat: Latitude
    lng: Longitude
    order_index: int = Field(..., ge=0)
    estimated_time: Optional[str] = None


class RouteCreateRequest(BaseModel):
    name: str = Field(..., min_length=2)
    start_point: str = Field(..., min_length=2)
    end_point: str = Field(..., min_length=2)
    estimated_duration: int = Field(..., ge=1, description="Minutes")
    stops: list[StopCreateRequest] = Field(..., min_length=2)

    @model_validator(mode="after")
    def _unique_order(self) -> "RouteCreateRequest":
        indexes = [s.order_index for s in self.stops]
        if len(indexes) != len(set(indexes)):
            raise ValueError("Stop order_index values must be unique within a route")
        return self


class TripCreateRequest(BaseModel):
    route_id: EntityId
    date: IsoDate
    scheduled_start_time: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    driver_id: Optional[EntityId] = None
    vehicle_id: Optional[EntityId] = None


class DriverAssignmentRequest(BaseModel):
    driver_id: EntityId
    vehicle_id: EntityId


class BookingStatusRequest(BaseModel):
    status: BookingStatus


class VehicleCreateRequest(BaseModel):
    license_plate: str = Field(..., min_length=2)
    bus_number: str = Field(..., min_length=1)
    capacity: int = Field(..., ge=1)
    model: Optional[str] = None
    year: Optional[int] = Field(None, ge=1990, le=2030)


class VehicleStatusRequest(BaseModel):
    status: VehicleStatus


# ── Responses ─────────────────────────────────────────────────────────


class ORMModel(BaseModel):
    model_config = {"from_attributes": True}


class UserResponse(ORMModel):
    id: str
    name: str
    email: str
    role: UserRole
    email_verified: bool = False
    image: Optional[str] = None


class SessionResponse(BaseModel):
    user: Optional[UserResponse] = None


class StudentResponse(ORMModel):
    id: str
    parent_id: str
    name: str
    school_name: str
    grade: str
    photo_url: Optional[str] = None


class VehicleResponse(ORMModel):
    id: str
    license_plate: str
    bus_number: str
    capacity: int
    model: Optional[str] = None
    year: Optional[int] = None
    status: VehicleStatus


class StopResponse(ORMModel):
    id: str
    route_id: str
    name: str
    lat: float
    lng: float
    order_index: int
    estimated_time: Optional[str] = None


class RouteResponse(ORMModel):
    id: str
    name: str
    start_point: str
    end_point: str
    estimated_duration: int
    is_active: bool


class RouteWithStopsResponse(ORMModel):
    route: RouteResponse
    stops: list[StopResponse] = []


class TripResponse(ORMModel):
    id: str
    route_id: str
    driver_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    date: str
    scheduled_start_time: Optional[str] = None
    status: TripStatus
    current_lat: Optional[float] = None
    current_lng: Optional[float] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class BookingResponse(ORMModel):
    id: str
    trip_id: str
    student_id: str
    parent_id: str
    pickup_stop_id: Optional[str] = None
    dropoff_stop_id: Optional[str] = None
    status: BookingStatus
    seat_number: Optional[int] = None
    boarded_at: Optional[datetime] = None
    dropped_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class IncidentResponse(ORMModel):
    id: str
    trip_id: str
    reported_by_id: str
    description: str
    severity: IncidentSeverity
    location: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    reported_at: Optional[datetime] = None


class SeatsResponse(ORMModel):
    capacity: int
    booked: int
    available_seats: int
    is_full: bool


class BookingLineResponse(ORMModel):
    booking: BookingResponse
    student: Optional[StudentResponse] = None
    pickup_stop: Optional[StopResponse] = None
    dropoff_stop: Optional[StopResponse] = None
    on_board: bool


class TripDetailResponse(ORMModel):
    trip: TripResponse
    route: Optional[RouteResponse] = None
    stops: list[StopResponse] = []
    vehicle: Optional[VehicleResponse] = None
    driver: Optional[UserResponse] = None
    bookings: list[BookingLineResponse] = []
    incidents: list[IncidentResponse] = []
    seats: SeatsResponse


class RouteAvailabilityResponse(ORMModel):
    route: RouteResponse
    stops: list[StopResponse] = []
    trips: list[TripDetailResponse] = []


class BookingDetailResponse(ORMModel):
    booking: BookingResponse
    trip: TripResponse
    student: Optional[StudentResponse] = None
    parent: Optional[UserResponse] = None
    route: Optional[RouteResponse] = None
    vehicle: Optional[VehicleResponse] = None
    driver: Optional[UserResponse] = None
    pickup_stop: Optional[StopResponse] = None
    dropoff_stop: Optional[StopResponse] = None


class ParentBookingsResponse(ORMModel):
    upcoming: list[BookingDetailResponse]
    past: list[BookingDetailResponse]
    all: list[BookingDetailResponse]


class BookingReceiptResponse(ORMModel):
    booking_id: str
    seat_number: int
    message: str


class IncidentDetailResponse(ORMModel):
    incident: IncidentResponse
    trip: Optional[TripResponse] = None
    route: Optional[RouteResponse] = None
    reported_by: Optional[UserResponse] = None


class VehicleWithTripsResponse(ORMModel):
    vehicle: VehicleResponse
    trips: list[TripResponse] = []


class FleetStatsResponse(ORMModel):
    active_trips: int
    scheduled_trips: int
    completed_trips: int
    total_trips_today: int
    active_vehicles: int
    maintenance_vehicles: int
    total_vehicles: int
    total_bookings_today: int


class FleetStatusResponse(ORMModel):
    stats: FleetStatsResponse
    today_trips: list[TripDetailResponse]
    vehicles: list[VehicleWithTripsResponse]
    recent_incidents: list[IncidentDetailResponse]


class LiveTripResponse(ORMModel):
    id: str
    bus_number: str
    driver_name: str
    route_name: str
    status: TripStatus
    lat: Optional[float] = None
    lng: Optional[float] = None
    passengers_count: int
    total_passengers: int


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
    code: Optional[str] = None

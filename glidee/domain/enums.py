"""Domain enumerations and state-transition rules."""

import enum


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    DRIVER = "driver"
    PARENT = "parent"


class VehicleStatus(str, enum.Enum):
    ACTIVE = "active"
    MAINTENANCE = "maintenance"


class TripStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# State machine: maps current status -> set of valid next statuses
TRIP_TRANSITIONS: dict[TripStatus, set[TripStatus]] = {
    TripStatus.SCHEDULED: {TripStatus.ACTIVE, TripStatus.CANCELLED},
    TripStatus.ACTIVE: {TripStatus.COMPLETED, TripStatus.CANCELLED},
    TripStatus.COMPLETED: set(),
    TripStatus.CANCELLED: set(),
}

# A parent may not cancel a booking once its trip has reached these
TRIP_LOCKED_FOR_CANCELLATION = {TripStatus.ACTIVE, TripStatus.COMPLETED}


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class IncidentSeverity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class PassengerAction(str, enum.Enum):
    BOARD = "board"
    DROP = "drop"


class SeatLockMode(str, enum.Enum):
    NONE = "none"
    ROW = "row"
    REDIS = "redis"

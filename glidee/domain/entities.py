"""
Domain state objects with business logic.

Patterns used
-------------
- **State Pattern** on ``TripState``: enforces valid lifecycle transitions
  (SCHEDULED -> ACTIVE -> COMPLETED, or -> CANCELLED before completion).
- ``PassengerState`` enforces not-boarded -> boarded -> dropped with no
  path back.
- ``SeatAvailability`` encapsulates the capacity invariant for one trip.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .enums import TRIP_TRANSITIONS, PassengerAction, TripStatus
from .errors import ConflictError


class InvalidTripTransition(ConflictError):
    """Raised when a trip status change violates the state machine."""

    def __init__(self, current: TripStatus, requested: TripStatus):
        super().__init__(
            f"Cannot transition from {current.value} to {requested.value}",
            code="invalid-transition",
        )
        self.current = current
        self.requested = requested


@dataclass
class TripState:
    status: TripStatus = TripStatus.SCHEDULED
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def can_transition_to(self, new_status: TripStatus) -> bool:
        return new_status in TRIP_TRANSITIONS.get(self.status, set())

    def transition_to(self, new_status: TripStatus, now: datetime) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        if not self.can_transition_to(new_status):
            raise InvalidTripTransition(self.status, new_status)
        self.status = new_status
        if new_status is TripStatus.ACTIVE:
            self.started_at = now
        elif new_status is TripStatus.COMPLETED:
            self.completed_at = now

    @property
    def is_terminal(self) -> bool:
        return not TRIP_TRANSITIONS.get(self.status)


@dataclass
class PassengerState:
    boarded_at: Optional[datetime] = None
    dropped_at: Optional[datetime] = None

    @property
    def on_board(self) -> bool:
        return self.boarded_at is not None and self.dropped_at is None

    def board(self, now: datetime) -> None:
        if self.boarded_at is not None:
            raise ConflictError("Passenger already boarded", code="already-boarded")
        self.boarded_at = now

    def drop(self, now: datetime) -> None:
        if self.boarded_at is None:
            raise ConflictError(
                "Passenger must be boarded first", code="not-boarded"
            )
        if self.dropped_at is not None:
            raise ConflictError(
                "Passenger already dropped off", code="already-dropped"
            )
        self.dropped_at = now

    def apply(self, action: PassengerAction, now: datetime) -> None:
        if action is PassengerAction.BOARD:
            self.board(now)
        else:
            self.drop(now)


@dataclass(frozen=True)
class SeatAvailability:
    capacity: int
    booked: int

    @classmethod
    def for_trip(cls, capacity: Optional[int], booked: int) -> "SeatAvailability":
        # A trip without a vehicle has no seats to offer
        return cls(capacity=capacity or 0, booked=booked)

    @property
    def available_seats(self) -> int:
        return max(0, self.capacity - self.booked)

    @property
    def is_full(self) -> bool:
        return self.available_seats == 0

    @property
    def next_seat_number(self) -> int:
        return self.booked + 1

"""
Parent endpoints
================

GET   /api/v1/session                 -- current session (null when signed out)
POST  /api/v1/students                -- add a student
GET   /api/v1/students                -- list the caller's students
GET   /api/v1/routes/available?date=  -- bookable trips per route on a date
POST  /api/v1/bookings                -- book a seat
GET   /api/v1/bookings                -- the caller's bookings (upcoming / past)
PATCH /api/v1/bookings/{id}/cancel    -- cancel a booking
PATCH /api/v1/profile                 -- update name / image
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from glidee.api.dependencies import (
    get_booking_allocator,
    get_caller,
    get_db,
    get_optional_caller,
)
from glidee.api.middleware import limiter
from glidee.api.schemas import (
    DATE_PATTERN,
    BookingCreateRequest,
    BookingReceiptResponse,
    BookingResponse,
    ErrorResponse,
    ParentBookingsResponse,
    ProfileUpdateRequest,
    RouteAvailabilityResponse,
    SessionResponse,
    StudentCreateRequest,
    StudentResponse,
    UserResponse,
)
from glidee.config import settings
from glidee.domain.access import CallerContext
from glidee.services import accounts
from glidee.services.booking import BookingAllocator

router = APIRouter(tags=["parents"])

_errors = {
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


@router.get(
    "/session",
    response_model=SessionResponse,
    summary="Current session, or null when signed out",
)
@limiter.limit(settings.rate_limit)
async def get_session(
    request: Request,
    caller: Optional[CallerContext] = Depends(get_optional_caller),
    db: AsyncSession = Depends(get_db),
):
    user = await accounts.current_session(db, caller)
    return SessionResponse(user=UserResponse.model_validate(user) if user else None)


@router.post(
    "/students",
    status_code=201,
    response_model=StudentResponse,
    summary="Add a student to the signed-in parent",
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def add_student(
    request: Request,
    body: StudentCreateRequest,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await accounts.add_student(
        db,
        caller,
        name=body.name,
        school_name=body.school_name,
        grade=body.grade,
        photo_url=str(body.photo_url) if body.photo_url else None,
    )


@router.get(
    "/students",
    response_model=list[StudentResponse],
    summary="List the signed-in parent's students",
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def list_students(
    request: Request,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await accounts.parent_students(db, caller)


@router.get(
    "/routes/available",
    response_model=list[RouteAvailabilityResponse],
    summary="Active routes with scheduled trips and seat availability",
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def available_routes(
    request: Request,
    date: str = Query(..., pattern=DATE_PATTERN, description="YYYY-MM-DD"),
    caller: CallerContext = Depends(get_caller),
    allocator: BookingAllocator = Depends(get_booking_allocator),
):
    routes = await allocator.available_routes(caller, date)
    return [RouteAvailabilityResponse.model_validate(r) for r in routes]


@router.post(
    "/bookings",
    status_code=201,
    response_model=BookingReceiptResponse,
    summary="Book a seat for a student",
    description=(
        "Fails with 403 if the student is not yours, 404 if the trip does "
        "not exist, and 409 if the trip is not scheduled, is full, or the "
        "student already holds a seat on it."
    ),
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def create_booking(
    request: Request,
    body: BookingCreateRequest,
    caller: CallerContext = Depends(get_caller),
    allocator: BookingAllocator = Depends(get_booking_allocator),
):
    return await allocator.create_booking(
        caller,
        trip_id=body.trip_id,
        student_id=body.student_id,
        pickup_stop_id=body.pickup_stop_id,
        dropoff_stop_id=body.dropoff_stop_id,
    )


@router.get(
    "/bookings",
    response_model=ParentBookingsResponse,
    summary="The signed-in parent's bookings",
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def list_bookings(
    request: Request,
    caller: CallerContext = Depends(get_caller),
    allocator: BookingAllocator = Depends(get_booking_allocator),
):
    bookings = await allocator.parent_bookings(caller)
    return ParentBookingsResponse.model_validate(bookings)


@router.patch(
    "/bookings/{booking_id}/cancel",
    response_model=BookingResponse,
    summary="Cancel a booking",
    description="Only while the trip is neither active nor completed.",
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def cancel_booking(
    request: Request,
    booking_id: str,
    caller: CallerContext = Depends(get_caller),
    allocator: BookingAllocator = Depends(get_booking_allocator),
):
    return await allocator.cancel_booking(caller, booking_id)


@router.patch(
    "/profile",
    response_model=UserResponse,
    summary="Update the signed-in user's profile",
    responses=_errors,
)
@limiter.limit(settings.rate_limit)
async def update_profile(
    request: Request,
    body: ProfileUpdateRequest,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await accounts.update_profile(
        db, caller, name=body.name, image=str(body.image) if body.image else None
    )

"""Trip lifecycle, passenger boarding and incident reporting."""

from datetime import date, timedelta

import pytest

from glidee.domain.clock import today
from glidee.domain.entities import InvalidTripTransition
from glidee.domain.enums import (
    BookingStatus,
    IncidentSeverity,
    PassengerAction,
    TripStatus,
    UserRole,
    VehicleStatus,
)
from glidee.domain.errors import ConflictError, Forbidden, NotFound
from glidee.services import incidents
from glidee.services.boarding import PassengerBoardingTracker
from glidee.services.trips import TripLifecycleManager


async def _assigned_trip(factory, status=TripStatus.SCHEDULED, trip_date=None):
    driver = await factory.user(UserRole.DRIVER)
    trip = await factory.trip(
        await factory.route(),
        driver=driver,
        vehicle=await factory.vehicle(),
        status=status,
        date=trip_date,
    )
    return driver, trip


class TestTripStatus:
    @pytest.mark.asyncio
    async def test_start_then_complete(self, db_session, factory):
        driver, trip = await _assigned_trip(factory)
        manager = TripLifecycleManager(db_session)
        caller = factory.caller(driver)

        started = await manager.update_trip_status(caller, trip.id, TripStatus.ACTIVE)
        assert started.status == TripStatus.ACTIVE
        assert started.started_at is not None

        done = await manager.update_trip_status(caller, trip.id, TripStatus.COMPLETED)
        assert done.status == TripStatus.COMPLETED
        assert done.completed_at is not None

    @pytest.mark.asyncio
    async def test_completion_completes_confirmed_bookings_only(self, db_session, factory):
        driver, trip = await _assigned_trip(factory, status=TripStatus.ACTIVE)
        parent = await factory.user()
        confirmed = await factory.booking(trip, await factory.student(parent, name="A"))
        cancelled = await factory.booking(
            trip, await factory.student(parent, name="B"), status=BookingStatus.CANCELLED
        )
        pending = await factory.booking(
            trip, await factory.student(parent, name="C"), status=BookingStatus.PENDING
        )

        await TripLifecycleManager(db_session).update_trip_status(
            factory.caller(driver), trip.id, TripStatus.COMPLETED
        )
        for booking in (confirmed, cancelled, pending):
            await db_session.refresh(booking)
        assert confirmed.status == BookingStatus.COMPLETED
        assert cancelled.status == BookingStatus.CANCELLED
        assert pending.status == BookingStatus.PENDING

    @pytest.mark.asyncio
    async def test_illegal_transition(self, db_session, factory):
        driver, trip = await _assigned_trip(factory)

        with pytest.raises(InvalidTripTransition) as exc:
            await TripLifecycleManager(db_session).update_trip_status(
                factory.caller(driver), trip.id, TripStatus.COMPLETED
            )
        assert exc.value.message == "Cannot transition from scheduled to completed"

    @pytest.mark.asyncio
    async def test_only_the_assigned_driver(self, db_session, factory):
        _, trip = await _assigned_trip(factory)
        stranger = await factory.user(UserRole.DRIVER)

        with pytest.raises(Forbidden) as exc:
            await TripLifecycleManager(db_session).update_trip_status(
                factory.caller(stranger), trip.id, TripStatus.ACTIVE
            )
        assert exc.value.code == "trip-not-assigned"

    @pytest.mark.asyncio
    async def test_unknown_trip(self, db_session, factory):
        driver = await factory.user(UserRole.DRIVER)
        with pytest.raises(NotFound):
            await TripLifecycleManager(db_session).update_trip_status(
                factory.caller(driver), "missing", TripStatus.ACTIVE
            )


class TestLocation:
    @pytest.mark.asyncio
    async def test_active_trip_location_overwritten(self, db_session, factory):
        driver, trip = await _assigned_trip(factory, status=TripStatus.ACTIVE)
        manager = TripLifecycleManager(db_session)

        await manager.update_location(factory.caller(driver), trip.id, 39.74, -104.99)
        moved = await manager.update_location(factory.caller(driver), trip.id, 39.75, -104.98)
        assert (moved.current_lat, moved.current_lng) == (39.75, -104.98)

    @pytest.mark.asyncio
    async def test_scheduled_trip_rejects_location(self, db_session, factory):
        driver, trip = await _assigned_trip(factory)

        with pytest.raises(ConflictError) as exc:
            await TripLifecycleManager(db_session).update_location(
                factory.caller(driver), trip.id, 39.74, -104.99
            )
        assert exc.value.code == "trip-not-active"


class TestAssignDriver:
    @pytest.mark.asyncio
    async def test_admin_assigns(self, db_session, factory):
        admin = await factory.user(UserRole.ADMIN)
        driver = await factory.user(UserRole.DRIVER)
        vehicle = await factory.vehicle()
        trip = await factory.trip(await factory.route())

        updated = await TripLifecycleManager(db_session).assign_driver(
            factory.caller(admin), trip.id, driver.id, vehicle.id
        )
        assert (updated.driver_id, updated.vehicle_id) == (driver.id, vehicle.id)

    @pytest.mark.asyncio
    async def test_non_admin_rejected(self, db_session, factory):
        driver = await factory.user(UserRole.DRIVER)
        trip = await factory.trip(await factory.route())

        with pytest.raises(Forbidden) as exc:
            await TripLifecycleManager(db_session).assign_driver(
                factory.caller(driver), trip.id, driver.id, "v"
            )
        assert exc.value.code == "admin-required"

    @pytest.mark.asyncio
    async def test_rejects_non_driver_and_inactive_vehicle(self, db_session, factory):
        admin = await factory.user(UserRole.ADMIN)
        parent = await factory.user(UserRole.PARENT)
        driver = await factory.user(UserRole.DRIVER)
        in_shop = await factory.vehicle(status=VehicleStatus.MAINTENANCE)
        trip = await factory.trip(await factory.route())
        manager = TripLifecycleManager(db_session)

        with pytest.raises(ConflictError) as exc:
            await manager.assign_driver(factory.caller(admin), trip.id, parent.id, in_shop.id)
        assert exc.value.code == "not-a-driver"

        with pytest.raises(ConflictError) as exc:
            await manager.assign_driver(factory.caller(admin), trip.id, driver.id, in_shop.id)
        assert exc.value.code == "vehicle-inactive"

    @pytest.mark.asyncio
    async def test_closed_trip_cannot_be_reassigned(self, db_session, factory):
        admin = await factory.user(UserRole.ADMIN)
        driver = await factory.user(UserRole.DRIVER)
        trip = await factory.trip(await factory.route(), status=TripStatus.COMPLETED)

        with pytest.raises(ConflictError) as exc:
            await TripLifecycleManager(db_session).assign_driver(
                factory.caller(admin), trip.id, driver.id, (await factory.vehicle()).id
            )
        assert exc.value.code == "trip-closed"


class TestDriverReads:
    @pytest.mark.asyncio
    async def test_schedule_is_today_only(self, db_session, factory):
        tomorrow = (date.fromisoformat(today()) + timedelta(days=1)).isoformat()
        driver, trip = await _assigned_trip(factory)
        await factory.trip(await factory.route(), driver=driver, date=tomorrow)
        parent = await factory.user()
        await factory.booking(trip, await factory.student(parent))

        schedule = await TripLifecycleManager(db_session).driver_schedule(factory.caller(driver))
        assert [d.trip.id for d in schedule] == [trip.id]
        assert len(schedule[0].bookings) == 1
        assert schedule[0].bookings[0].student.parent_id == parent.id

    @pytest.mark.asyncio
    async def test_trip_detail_includes_incidents(self, db_session, factory):
        driver, trip = await _assigned_trip(factory, status=TripStatus.ACTIVE)
        caller = factory.caller(driver)
        await incidents.report_incident(
            db_session, caller, trip.id, "Flat tyre near Oak Street", IncidentSeverity.MEDIUM
        )

        detail = await TripLifecycleManager(db_session).driver_trip(caller, trip.id)
        assert detail.trip.id == trip.id
        assert [i.description for i in detail.incidents] == ["Flat tyre near Oak Street"]
        assert len(detail.stops) == 3


class TestBoarding:
    @pytest.mark.asyncio
    async def test_board_then_drop(self, db_session, factory):
        driver, trip = await _assigned_trip(factory, status=TripStatus.ACTIVE)
        booking = await factory.booking(trip, await factory.student(await factory.user()))
        tracker = PassengerBoardingTracker(db_session)
        caller = factory.caller(driver)

        boarded = await tracker.update_passenger_status(caller, booking.id, PassengerAction.BOARD)
        assert boarded.boarded_at is not None and boarded.dropped_at is None

        dropped = await tracker.update_passenger_status(caller, booking.id, PassengerAction.DROP)
        assert dropped.dropped_at is not None

        with pytest.raises(ConflictError) as exc:
            await tracker.update_passenger_status(caller, booking.id, PassengerAction.BOARD)
        assert exc.value.code == "already-boarded"

    @pytest.mark.asyncio
    async def test_drop_before_board(self, db_session, factory):
        driver, trip = await _assigned_trip(factory, status=TripStatus.ACTIVE)
        booking = await factory.booking(trip, await factory.student(await factory.user()))

        with pytest.raises(ConflictError) as exc:
            await PassengerBoardingTracker(db_session).update_passenger_status(
                factory.caller(driver), booking.id, PassengerAction.DROP
            )
        assert exc.value.code == "not-boarded"

    @pytest.mark.asyncio
    async def test_trip_must_be_active(self, db_session, factory):
        driver, trip = await _assigned_trip(factory)
        booking = await factory.booking(trip, await factory.student(await factory.user()))

        with pytest.raises(ConflictError) as exc:
            await PassengerBoardingTracker(db_session).update_passenger_status(
                factory.caller(driver), booking.id, PassengerAction.BOARD
            )
        assert exc.value.code == "trip-not-active"

    @pytest.mark.asyncio
    async def test_other_driver_rejected(self, db_session, factory):
        _, trip = await _assigned_trip(factory, status=TripStatus.ACTIVE)
        booking = await factory.booking(trip, await factory.student(await factory.user()))
        stranger = await factory.user(UserRole.DRIVER)

        with pytest.raises(Forbidden):
            await PassengerBoardingTracker(db_session).update_passenger_status(
                factory.caller(stranger), booking.id, PassengerAction.BOARD
            )


class TestIncidents:
    @pytest.mark.asyncio
    async def test_defaults_to_last_known_position(self, db_session, factory):
        driver, trip = await _assigned_trip(factory, status=TripStatus.ACTIVE)
        caller = factory.caller(driver)
        await TripLifecycleManager(db_session).update_location(caller, trip.id, 39.7, -104.9)

        incident = await incidents.report_incident(
            db_session, caller, trip.id, "Student felt unwell", IncidentSeverity.HIGH
        )
        assert (incident.lat, incident.lng) == (39.7, -104.9)

        explicit = await incidents.report_incident(
            db_session, caller, trip.id, "Road closed ahead", IncidentSeverity.LOW, lat=1.0, lng=2.0
        )
        assert (explicit.lat, explicit.lng) == (1.0, 2.0)

    @pytest.mark.asyncio
    async def test_unassigned_driver_cannot_report(self, db_session, factory):
        _, trip = await _assigned_trip(factory)
        stranger = await factory.user(UserRole.DRIVER)

        with pytest.raises(Forbidden):
            await incidents.report_incident(
                db_session, factory.caller(stranger), trip.id, "Something happened", IncidentSeverity.LOW
            )

    @pytest.mark.asyncio
    async def test_driver_lists_own_incidents(self, db_session, factory):
        driver, trip = await _assigned_trip(factory)
        other_driver, other_trip = await _assigned_trip(factory)
        await incidents.report_incident(
            db_session, factory.caller(driver), trip.id, "Late departure today", IncidentSeverity.LOW
        )
        await incidents.report_incident(
            db_session, factory.caller(other_driver), other_trip.id, "Not mine to see", IncidentSeverity.LOW
        )

        reported = await incidents.driver_incidents(db_session, factory.caller(driver))
        assert [d.incident.description for d in reported] == ["Late departure today"]
        assert reported[0].trip.id == trip.id
        assert reported[0].reported_by.id == driver.id

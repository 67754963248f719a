"""
Shared test fixtures.

Each test gets its own SQLite database file (via aiosqlite) so tests run
without Docker / PostgreSQL / Redis, and concurrent sessions really are
separate connections.  ``SELECT ... FOR UPDATE`` is a no-op on SQLite; the
concurrency tests drive the allocator's guards directly instead.
"""

import uuid
from datetime import timedelta
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from glidee.domain.access import CallerContext
from glidee.domain.clock import today, utcnow
from glidee.domain.enums import BookingStatus, TripStatus, UserRole, VehicleStatus
from glidee.infrastructure.aggregates import RouteWithStops
from glidee.infrastructure.database import Base
from glidee.infrastructure.models import (
    BookingModel,
    RouteModel,
    SessionModel,
    StopModel,
    StudentModel,
    TripModel,
    UserModel,
    VehicleModel,
)


def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# ── Factory ───────────────────────────────────────────────────────────


class Factory:
    """Creates committed rows so other connections can see them."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _save(self, *rows):
        self.session.add_all(rows)
        await self.session.commit()
        return rows[0]

    async def user(self, role: UserRole = UserRole.PARENT, name: Optional[str] = None) -> UserModel:
        suffix = uuid.uuid4().hex[:8]
        return await self._save(
            UserModel(
                name=name or f"{role.value.title()} {suffix}",
                email=f"{role.value}-{suffix}@example.com",
                role=role,
            )
        )

    async def token(self, user: UserModel, expires_in: timedelta = timedelta(days=1)) -> str:
        token = uuid.uuid4().hex
        await self._save(
            SessionModel(user_id=user.id, token=token, expires_at=utcnow() + expires_in)
        )
        return token

    async def student(self, parent: UserModel, name: str = "Emma Johnson") -> StudentModel:
        return await self._save(
            StudentModel(
                parent_id=parent.id,
                name=name,
                school_name="Lincoln High School",
                grade="10th",
            )
        )

    async def vehicle(
        self, capacity: int = 30, status: VehicleStatus = VehicleStatus.ACTIVE
    ) -> VehicleModel:
        return await self._save(
            VehicleModel(
                license_plate=f"SCH-{uuid.uuid4().hex[:6]}",
                bus_number="Bus 42",
                capacity=capacity,
                status=status,
            )
        )

    async def route(self, stops: int = 3, is_active: bool = True) -> RouteWithStops:
        route = await self._save(
            RouteModel(
                name=f"Route {uuid.uuid4().hex[:4]}",
                start_point="Downtown Terminal",
                end_point="Lincoln High School",
                estimated_duration=45,
                is_active=is_active,
            )
        )
        stop_rows = [
            StopModel(
                route_id=route.id,
                name=f"Stop {i}",
                lat=39.74 + i / 1000,
                lng=-104.99 + i / 1000,
                order_index=i,
            )
            for i in range(stops)
        ]
        self.session.add_all(stop_rows)
        await self.session.commit()
        return RouteWithStops(route, stop_rows)

    async def trip(
        self,
        route: RouteWithStops,
        driver: Optional[UserModel] = None,
        vehicle: Optional[VehicleModel] = None,
        date: Optional[str] = None,
        status: TripStatus = TripStatus.SCHEDULED,
    ) -> TripModel:
        return await self._save(
            TripModel(
                route_id=route.route.id,
                driver_id=driver.id if driver else None,
                vehicle_id=vehicle.id if vehicle else None,
                date=date or today(),
                scheduled_start_time="07:30",
                status=status,
            )
        )

    async def booking(
        self,
        trip: TripModel,
        student: StudentModel,
        status: BookingStatus = BookingStatus.CONFIRMED,
        seat_number: int = 1,
    ) -> BookingModel:
        return await self._save(
            BookingModel(
                trip_id=trip.id,
                student_id=student.id,
                parent_id=student.parent_id,
                status=status,
                seat_number=seat_number,
            )
        )

    @staticmethod
    def caller(user: UserModel) -> CallerContext:
        return CallerContext(
            user_id=user.id, role=UserRole(user.role), name=user.name, email=user.email
        )


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine(tmp_path):
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'glidee.db'}")
    event.listen(test_engine.sync_engine, "connect", _enable_foreign_keys)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def factory(db_session) -> Factory:
    return Factory(db_session)


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient against the app with the DB dependency pointed at SQLite."""
    from glidee.api.app import create_app
    from glidee.api.dependencies import get_db
    from glidee.api.middleware import limiter

    async def _test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app = create_app()
    app.dependency_overrides[get_db] = _test_db
    limiter.enabled = False

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    limiter.enabled = True

"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 5 users (1 admin, 2 drivers, 2 parents) with 30-day session tokens
  - 3 students
  - 3 vehicles (one in maintenance)
  - 2 routes with ordered stops
  - 60 scheduled trips covering the next 30 days
  - 4 confirmed bookings on today's and tomorrow's trips

The session tokens are printed so the API can be exercised with
``Authorization: Bearer <token>``.
"""

import asyncio
import secrets
from datetime import timedelta

from sqlalchemy import text

from glidee.domain.clock import utcnow
from glidee.domain.enums import BookingStatus, TripStatus, UserRole, VehicleStatus
from glidee.infrastructure.database import async_session_factory, engine
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

USERS = [
    {"key": "admin", "name": "Admin User", "email": "admin@glidee.com", "role": UserRole.ADMIN},
    {"key": "driver", "name": "Michael Driver", "email": "driver@glidee.com", "role": UserRole.DRIVER},
    {"key": "driver2", "name": "Sarah Wilson", "email": "driver2@glidee.com", "role": UserRole.DRIVER},
    {"key": "parent", "name": "Sarah Johnson", "email": "parent@glidee.com", "role": UserRole.PARENT},
    {"key": "parent2", "name": "John Smith", "email": "parent2@glidee.com", "role": UserRole.PARENT},
]

STUDENTS = [
    {"parent": "parent", "name": "Emma Johnson", "school_name": "Lincoln High School", "grade": "10th"},
    {"parent": "parent", "name": "Liam Johnson", "school_name": "Maple Elementary", "grade": "5th"},
    {"parent": "parent2", "name": "Olivia Smith", "school_name": "Lincoln High School", "grade": "11th"},
]

VEHICLES = [
    {"license_plate": "SCH-001", "bus_number": "Bus 42", "capacity": 30, "model": "Blue Bird Vision", "year": 2022, "status": VehicleStatus.ACTIVE},
    {"license_plate": "SCH-002", "bus_number": "Bus 15", "capacity": 25, "model": "Thomas C2", "year": 2021, "status": VehicleStatus.ACTIVE},
    {"license_plate": "SCH-003", "bus_number": "Bus 7", "capacity": 35, "model": "IC Bus CE", "year": 2020, "status": VehicleStatus.MAINTENANCE},
]

ROUTES = [
    {
        "name": "Morning Route A",
        "start_point": "Downtown Terminal",
        "end_point": "Lincoln High School",
        "estimated_duration": 45,
        "stops": [
            ("Downtown Terminal", 39.7392, -104.9903, "07:30"),
            ("123 Oak Street", 39.7420, -104.9850, "07:45"),
            ("Main St & 5th Ave", 39.7450, -104.9800, "08:00"),
            ("Lincoln High School", 39.7500, -104.9750, "08:15"),
        ],
    },
    {
        "name": "Morning Route B",
        "start_point": "Westside Hub",
        "end_point": "Maple Elementary",
        "estimated_duration": 35,
        "stops": [
            ("Westside Hub", 39.7300, -105.0000, "08:00"),
            ("Pine Street Stop", 39.7350, -104.9950, "08:15"),
            ("Maple Elementary", 39.7400, -104.9900, "08:30"),
        ],
    },
]

DAYS_AHEAD = 30


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        now = utcnow()

        # ── Users & sessions ──────────────────────────────────────────
        users: dict[str, UserModel] = {}
        tokens: dict[str, str] = {}
        for u in USERS:
            m = UserModel(name=u["name"], email=u["email"], role=u["role"], email_verified=True)
            session.add(m)
            users[u["key"]] = m
        await session.flush()
        for key, user in users.items():
            tokens[key] = secrets.token_urlsafe(32)
            session.add(
                SessionModel(
                    user_id=user.id,
                    token=tokens[key],
                    expires_at=now + timedelta(days=30),
                )
            )
        await session.flush()
        print(f"  Created {len(users)} users")

        # ── Students ──────────────────────────────────────────────────
        students = []
        for s in STUDENTS:
            m = StudentModel(
                parent_id=users[s["parent"]].id,
                name=s["name"],
                school_name=s["school_name"],
                grade=s["grade"],
            )
            session.add(m)
            students.append(m)
        await session.flush()
        print(f"  Created {len(students)} students")

        # ── Vehicles ──────────────────────────────────────────────────
        vehicles = []
        for v in VEHICLES:
            m = VehicleModel(**v)
            session.add(m)
            vehicles.append(m)
        await session.flush()
        print(f"  Created {len(vehicles)} vehicles")

        # ── Routes & stops ────────────────────────────────────────────
        routes = []
        stops: list[list[StopModel]] = []
        for r in ROUTES:
            route = RouteModel(
                name=r["name"],
                start_point=r["start_point"],
                end_point=r["end_point"],
                estimated_duration=r["estimated_duration"],
                is_active=True,
            )
            session.add(route)
            await session.flush()
            route_stops = [
                StopModel(
                    route_id=route.id,
                    name=name,
                    lat=lat,
                    lng=lng,
                    order_index=i,
                    estimated_time=eta,
                )
                for i, (name, lat, lng, eta) in enumerate(r["stops"])
            ]
            session.add_all(route_stops)
            routes.append(route)
            stops.append(route_stops)
        await session.flush()
        print(f"  Created {len(routes)} routes")

        # ── Trips ─────────────────────────────────────────────────────
        # Route A: driver / Bus 42 at 07:30, Route B: driver2 / Bus 15 at 08:00
        lanes = [
            (routes[0], users["driver"], vehicles[0], "07:30"),
            (routes[1], users["driver2"], vehicles[1], "08:00"),
        ]
        trips: dict[tuple[int, int], TripModel] = {}
        for day in range(DAYS_AHEAD):
            date = (now + timedelta(days=day)).date().isoformat()
            for lane, (route, driver, vehicle, start) in enumerate(lanes):
                trip = TripModel(
                    route_id=route.id,
                    driver_id=driver.id,
                    vehicle_id=vehicle.id,
                    date=date,
                    scheduled_start_time=start,
                    status=TripStatus.SCHEDULED,
                )
                session.add(trip)
                trips[(day, lane)] = trip
        await session.flush()
        print(f"  Created {len(trips)} trips")

        # ── Bookings ──────────────────────────────────────────────────
        bookings_data = [
            # (day, lane, student, pickup stop, dropoff stop, seat)
            (0, 0, 0, stops[0][1], stops[0][3], 1),
            (0, 1, 1, stops[1][1], stops[1][2], 1),
            (0, 0, 2, stops[0][2], stops[0][3], 2),
            (1, 0, 0, stops[0][1], stops[0][3], 1),
        ]
        for day, lane, student_idx, pickup, dropoff, seat in bookings_data:
            student = students[student_idx]
            session.add(
                BookingModel(
                    trip_id=trips[(day, lane)].id,
                    student_id=student.id,
                    parent_id=student.parent_id,
                    pickup_stop_id=pickup.id,
                    dropoff_stop_id=dropoff.id,
                    status=BookingStatus.CONFIRMED,
                    seat_number=seat,
                )
            )
        await session.flush()
        print(f"  Created {len(bookings_data)} bookings")

        await session.commit()

        print("\nSession tokens:")
        for key, token in tokens.items():
            print(f"  {users[key].email:<22} {token}")
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())

"""Initial schema: accounts, fleet, route network, trips, bookings, incidents.

Revision ID: 001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

_ENUMS = {
    "user_role": ("admin", "driver", "parent"),
    "vehicle_status": ("active", "maintenance"),
    "trip_status": ("scheduled", "active", "completed", "cancelled"),
    "booking_status": ("pending", "confirmed", "cancelled", "completed"),
    "incident_severity": ("low", "medium", "high", "critical"),
}


def _enum(name: str) -> sa.Enum:
    return sa.Enum(*_ENUMS[name], name=name)


def _timestamps(updated: bool = True) -> list[sa.Column]:
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now())]
    if updated:
        cols.append(
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now())
        )
    return cols


def upgrade() -> None:
    # ── users / sessions ──────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("email_verified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("image", sa.String(500), nullable=True),
        sa.Column("role", _enum("user_role"), nullable=False, server_default="parent"),
        *_timestamps(),
    )
    op.create_index("idx_users_role", "users", ["role"])

    op.create_table(
        "sessions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("token", sa.String(255), unique=True, nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        *_timestamps(updated=False),
    )

    # ── students ──────────────────────────────────────────────────────
    op.create_table(
        "students",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "parent_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("school_name", sa.String(200), nullable=False),
        sa.Column("grade", sa.String(20), nullable=False),
        sa.Column("photo_url", sa.String(500), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_students_parent", "students", ["parent_id"])

    # ── vehicles ──────────────────────────────────────────────────────
    op.create_table(
        "vehicles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("license_plate", sa.String(32), unique=True, nullable=False),
        sa.Column("bus_number", sa.String(32), nullable=False),
        sa.Column("capacity", sa.Integer, nullable=False),
        sa.Column("model", sa.String(120), nullable=True),
        sa.Column("year", sa.Integer, nullable=True),
        sa.Column(
            "status", _enum("vehicle_status"), nullable=False, server_default="active"
        ),
        *_timestamps(),
        sa.CheckConstraint("capacity > 0", name="ck_vehicles_capacity"),
    )

    # ── routes / stops ────────────────────────────────────────────────
    op.create_table(
        "routes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("start_point", sa.String(200), nullable=False),
        sa.Column("end_point", sa.String(200), nullable=False),
        sa.Column("estimated_duration", sa.Integer, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "stops",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "route_id",
            sa.String(36),
            sa.ForeignKey("routes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("lat", sa.Float, nullable=False),
        sa.Column("lng", sa.Float, nullable=False),
        sa.Column("order_index", sa.Integer, nullable=False),
        sa.Column("estimated_time", sa.String(20), nullable=True),
        *_timestamps(updated=False),
        sa.UniqueConstraint("route_id", "order_index", name="uq_stops_route_order"),
    )

    # ── trips ─────────────────────────────────────────────────────────
    op.create_table(
        "trips",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("route_id", sa.String(36), sa.ForeignKey("routes.id"), nullable=False),
        sa.Column("driver_id", sa.String(36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column(
            "vehicle_id", sa.String(36), sa.ForeignKey("vehicles.id"), nullable=True
        ),
        sa.Column("date", sa.String(10), nullable=False),
        sa.Column("scheduled_start_time", sa.String(5), nullable=True),
        sa.Column(
            "status", _enum("trip_status"), nullable=False, server_default="scheduled"
        ),
        sa.Column("current_lat", sa.Float, nullable=True),
        sa.Column("current_lng", sa.Float, nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_trips_date_status", "trips", ["date", "status"])
    op.create_index("idx_trips_driver", "trips", ["driver_id"])
    op.create_index("idx_trips_route", "trips", ["route_id"])

    # ── bookings ──────────────────────────────────────────────────────
    op.create_table(
        "bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("trip_id", sa.String(36), sa.ForeignKey("trips.id"), nullable=False),
        sa.Column(
            "student_id", sa.String(36), sa.ForeignKey("students.id"), nullable=False
        ),
        sa.Column("parent_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "pickup_stop_id", sa.String(36), sa.ForeignKey("stops.id"), nullable=True
        ),
        sa.Column(
            "dropoff_stop_id", sa.String(36), sa.ForeignKey("stops.id"), nullable=True
        ),
        sa.Column(
            "status", _enum("booking_status"), nullable=False, server_default="pending"
        ),
        sa.Column("seat_number", sa.Integer, nullable=True),
        sa.Column("boarded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("dropped_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "dropped_at IS NULL OR boarded_at IS NOT NULL",
            name="ck_bookings_board_before_drop",
        ),
    )
    op.create_index("idx_bookings_trip", "bookings", ["trip_id"])
    op.create_index("idx_bookings_parent", "bookings", ["parent_id"])
    op.create_index("idx_bookings_status", "bookings", ["status"])

    # ── incidents ─────────────────────────────────────────────────────
    op.create_table(
        "incidents",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("trip_id", sa.String(36), sa.ForeignKey("trips.id"), nullable=False),
        sa.Column(
            "reported_by_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column(
            "severity", _enum("incident_severity"), nullable=False, server_default="low"
        ),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("lat", sa.Float, nullable=True),
        sa.Column("lng", sa.Float, nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reported_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        *_timestamps(updated=False),
    )
    op.create_index("idx_incidents_reporter", "incidents", ["reported_by_id"])
    op.create_index("idx_incidents_trip", "incidents", ["trip_id"])


def downgrade() -> None:
    op.drop_table("incidents")
    op.drop_table("bookings")
    op.drop_table("trips")
    op.drop_table("stops")
    op.drop_table("routes")
    op.drop_table("vehicles")
    op.drop_table("students")
    op.drop_table("sessions")
    op.drop_table("users")
    for name in _ENUMS:
        op.execute(f"DROP TYPE IF EXISTS {name}")

"""Initial schema: users, chairs, chair locations, rides and ride status log.

Revision ID: 001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("payment_token", sa.String(255), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    # ── chairs ────────────────────────────────────────────────────────
    op.create_table(
        "chairs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("owner_id", sa.Integer, nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("model", sa.String(120), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_in_use", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_chairs_eligibility", "chairs", ["is_active", "is_in_use"])
    op.create_index("idx_chairs_owner", "chairs", ["owner_id"])

    # ── chair_locations ───────────────────────────────────────────────
    op.create_table(
        "chair_locations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("chair_id", sa.Integer, sa.ForeignKey("chairs.id"), nullable=False),
        sa.Column("latitude", sa.Float, nullable=False),
        sa.Column("longitude", sa.Float, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "idx_chair_locations_chair", "chair_locations", ["chair_id", "created_at"]
    )
    op.create_index(
        "idx_chair_locations_coords", "chair_locations", ["latitude", "longitude"]
    )

    # ── rides ─────────────────────────────────────────────────────────
    op.create_table(
        "rides",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("chair_id", sa.Integer, sa.ForeignKey("chairs.id"), nullable=True),
        sa.Column("pickup_lat", sa.Float, nullable=False),
        sa.Column("pickup_lng", sa.Float, nullable=False),
        sa.Column("destination_lat", sa.Float, nullable=False),
        sa.Column("destination_lng", sa.Float, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_rides_unmatched", "rides", ["chair_id", "created_at"])
    op.create_index("idx_rides_user", "rides", ["user_id", "created_at"])

    # ── ride_statuses ─────────────────────────────────────────────────
    op.create_table(
        "ride_statuses",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("ride_id", sa.Integer, sa.ForeignKey("rides.id"), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "MATCHING",
                "ENROUTE",
                "PICKUP",
                "CARRYING",
                "ARRIVED",
                "COMPLETED",
                name="ridestatus",
            ),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "idx_ride_statuses_ride", "ride_statuses", ["ride_id", "created_at"]
    )


def downgrade() -> None:
    op.drop_table("ride_statuses")
    op.drop_table("rides")
    op.drop_table("chair_locations")
    op.drop_table("chairs")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS ridestatus")

"""initial schema

Revision ID: 0001
Revises:
Create Date: 2025-09-01 00:00:00
"""
from alembic import op
import sqlalchemy as sa


revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text()),
        sa.Column(
            "role",
            sa.Enum("admin", "coach", "client", name="user_role"),
            nullable=False,
            server_default=sa.text("'client'"),
        ),
        sa.Column("is_active", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("email", sa.Text()),
        sa.Column("phone", sa.Text()),
        sa.Column("created_at", sa.Text(), server_default=sa.text("CURRENT_TIMESTAMP")),
    )

    op.create_table(
        "locations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("is_deleted", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("address", sa.Text()),
        sa.Column("latitude", sa.Float()),
        sa.Column("longitude", sa.Float()),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.Text(), server_default=sa.text("CURRENT_TIMESTAMP")),
    )

    op.create_table(
        "availabilities",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "location_id",
            sa.Integer(),
            sa.ForeignKey("locations.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("start_time", sa.Text(), nullable=False),
        sa.Column("end_time", sa.Text(), nullable=False),
        sa.Column("max_capacity", sa.Integer(), nullable=False, server_default=sa.text("10")),
        sa.Column("is_full", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("service_name", sa.Text()),
        sa.Column("batch_id", sa.Text()),
        sa.Column("created_at", sa.Text(), server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.CheckConstraint("end_time > start_time", name="ck_availabilities_range"),
        sa.CheckConstraint("max_capacity > 0", name="ck_availabilities_capacity"),
    )
    op.create_index("ix_availabilities_location_start", "availabilities", ["location_id", "start_time"])
    op.create_index("ix_availabilities_batch", "availabilities", ["batch_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "client_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "location_id",
            sa.Integer(),
            sa.ForeignKey("locations.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("start_time", sa.Text(), nullable=False),
        sa.Column("end_time", sa.Text(), nullable=False),
        sa.Column("credit_cost", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("service_name", sa.Text()),
        sa.Column("coach_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("created_at", sa.Text(), server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.CheckConstraint("end_time > start_time", name="ck_bookings_range"),
    )
    op.create_index("ix_bookings_location_start", "bookings", ["location_id", "start_time"])

    op.create_table(
        "client_wallets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("balance", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("currency", sa.Text(), nullable=False, server_default=sa.text("'AUD'")),
        sa.Column("is_blocked", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("0")),
    )

    op.create_table(
        "wallet_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "wallet_id",
            sa.Integer(),
            sa.ForeignKey("client_wallets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column(
            "type",
            sa.Enum("deposit", "payment", "refund", "correction", name="wallet_tx_type"),
            nullable=False,
        ),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="SET NULL")),
        sa.Column("description", sa.Text()),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("created_at", sa.Text(), server_default=sa.text("CURRENT_TIMESTAMP")),
    )


def downgrade():
    op.drop_table("wallet_transactions")
    op.drop_table("client_wallets")
    op.drop_index("ix_bookings_location_start", table_name="bookings")
    op.drop_table("bookings")
    op.drop_index("ix_availabilities_batch", table_name="availabilities")
    op.drop_index("ix_availabilities_location_start", table_name="availabilities")
    op.drop_table("availabilities")
    op.drop_table("locations")
    op.drop_table("users")

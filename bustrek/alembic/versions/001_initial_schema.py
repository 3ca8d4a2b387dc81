"""initial_schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 12:00:00.000000 UTC

Creates the two core tables:
  - users      (registered accounts, unique lower-cased email)
  - bookings   (booking ledger, JSON document + denormalised owner email / booking time)
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- users table ---
    op.create_table(
        "users",
        sa.Column("pk", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("id", sa.String(length=36), nullable=False, comment="Stable public user identifier (UUID)"),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False, comment="Lower-cased, trimmed email address"),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("pk"),
        sa.UniqueConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    # --- bookings table ---
    op.create_table(
        "bookings",
        sa.Column("booking_id", sa.String(length=36), nullable=False, comment="UUID generated at creation - matches document['bookingId']"),
        sa.Column("user_email", sa.String(length=255), nullable=False, comment="Owner email snapshot (lower-cased) - no FK to users"),
        sa.Column("booking_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "document",
            sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql"),
            nullable=False,
            comment="Full booking record as JSON",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("booking_id"),
    )
    op.create_index(op.f("ix_bookings_user_email"), "bookings", ["user_email"], unique=False)
    op.create_index(op.f("ix_bookings_booking_time"), "bookings", ["booking_time"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_bookings_booking_time"), table_name="bookings")
    op.drop_index(op.f("ix_bookings_user_email"), table_name="bookings")
    op.drop_table("bookings")
    op.drop_table("users")

"""Initial schema: hotels, room types, rooms, guests, bookings, amenities, payments.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-12
"""

from __future__ import annotations

from pathlib import Path

from alembic import op


revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _read_sql() -> str:
    sql_path = Path(__file__).resolve().parents[1] / "sql" / "001_initial.sql"
    return sql_path.read_text(encoding="utf-8")


def upgrade() -> None:
    # Raw execution so the DO $$ ... $$ block goes through untouched.
    conn = op.get_bind()
    conn.exec_driver_sql(_read_sql())


def downgrade() -> None:
    conn = op.get_bind()
    conn.exec_driver_sql(
        """
        DROP TABLE IF EXISTS payments, amenities, bookings, guests,
                             rooms, room_types, hotels CASCADE;
        DROP TYPE IF EXISTS booking_status;
        DROP TYPE IF EXISTS room_status;
        """
    )

"""Exclusion constraint against overlapping active bookings of one room.

Backs up the application-level re-check in innkeeper.domain.bookings: two
concurrent requests that both saw the room free cannot both commit.

Revision ID: 002_no_room_overlap
Revises: 001_initial_schema
Create Date: 2026-10-12
"""

from __future__ import annotations

from pathlib import Path

from alembic import op

revision = "002_no_room_overlap"
down_revision = "001_initial_schema"
branch_labels = None
depends_on = None

_SQL_FILE = Path(__file__).resolve().parent.parent / "sql" / "002_no_room_overlap.sql"


def upgrade() -> None:
    op.execute(_SQL_FILE.read_text(encoding="utf-8"))


def downgrade() -> None:
    op.execute("ALTER TABLE bookings DROP CONSTRAINT IF EXISTS no_room_overlap")
    # btree_gist is kept: other indexes may depend on it.

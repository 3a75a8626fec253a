"""Room conflict detection for booking writes.

SQL counterpart of the availability engine's overlap rule, run inside the
transaction that creates a booking:

    existing.check_in < new.check_out AND existing.check_out > new.check_in

Touching dates are fine (check-out day == next check-in day). Only active
statuses (pending, confirmed, checked_in) conflict.

The bookings table also carries an exclusion constraint with the same
semantics, so a race that slips past this check still fails at commit.
"""

from __future__ import annotations

from datetime import date

from psycopg2.extensions import cursor as PgCursor

from innkeeper.domain.availability import ACTIVE_STATUSES
from innkeeper.observability.logging import get_logger

logger = get_logger(__name__)

ACTIVE_STATUS_VALUES = sorted(status.value for status in ACTIVE_STATUSES)


class RoomConflictError(Exception):
    """Raised when a room already has an overlapping active booking."""

    def __init__(
        self,
        room_id: str,
        conflicting_booking_id: str,
        existing_check_in: date,
        existing_check_out: date,
    ) -> None:
        self.room_id = room_id
        self.conflicting_booking_id = conflicting_booking_id
        self.existing_check_in = existing_check_in
        self.existing_check_out = existing_check_out
        super().__init__(
            f"Room {room_id} is already booked "
            f"({existing_check_in} to {existing_check_out})"
        )


def find_room_conflict(
    cur: PgCursor,
    *,
    room_id: str,
    check_in: date,
    check_out: date,
    hotel_id: str | None = None,
    lock: bool = False,
) -> tuple[str, date, date] | None:
    """Find the earliest active booking of room_id overlapping the stay.

    Args:
        cur: Database cursor (should be within a transaction).
        room_id: Room identifier.
        check_in: Requested check-in date (inclusive).
        check_out: Requested check-out date (exclusive).
        hotel_id: Only used as logging context.
        lock: If True, lock the conflicting row with FOR UPDATE.

    Returns:
        (booking_id, check_in, check_out) of the conflict, or None.
    """
    suffix = " FOR UPDATE" if lock else ""

    cur.execute(
        f"""
        SELECT id, check_in, check_out
        FROM bookings
        WHERE room_id = %s
          AND status = ANY(%s::booking_status[])
          AND check_in < %s   -- existing check_in < new check_out
          AND check_out > %s  -- existing check_out > new check_in
        ORDER BY check_in
        LIMIT 1
        {suffix}
        """,
        (room_id, ACTIVE_STATUS_VALUES, check_out, check_in),
    )
    row = cur.fetchone()
    if row is None:
        return None

    conflict = (str(row[0]), row[1], row[2])
    logger.warning(
        "room conflict detected",
        extra={
            "extra_fields": {
                "room_id": room_id,
                "hotel_id": hotel_id,
                "requested_check_in": check_in.isoformat(),
                "requested_check_out": check_out.isoformat(),
                "conflicting_booking_id": conflict[0],
                "existing_check_in": conflict[1].isoformat(),
                "existing_check_out": conflict[2].isoformat(),
            },
        },
    )
    return conflict


def assert_no_room_conflict(
    cur: PgCursor,
    *,
    room_id: str,
    check_in: date,
    check_out: date,
    hotel_id: str | None = None,
    lock: bool = False,
) -> None:
    """Raise RoomConflictError if the room has an overlapping active booking.

    All arguments are forwarded to find_room_conflict.
    """
    conflict = find_room_conflict(
        cur,
        room_id=room_id,
        check_in=check_in,
        check_out=check_out,
        hotel_id=hotel_id,
        lock=lock,
    )
    if conflict is not None:
        booking_id, existing_in, existing_out = conflict
        raise RoomConflictError(
            room_id=room_id,
            conflicting_booking_id=booking_id,
            existing_check_in=existing_in,
            existing_check_out=existing_out,
        )

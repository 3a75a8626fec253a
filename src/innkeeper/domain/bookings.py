"""Booking creation.

Runs entirely inside the caller's transaction:

1. Lock the room row (SELECT ... FOR UPDATE). Concurrent bookings of the
   same room queue up here, which closes the gap between "is it free?"
   and the INSERT.
2. Re-check overlap against active bookings (assert_no_room_conflict).
3. Price the stay: nights x room type base price, fixed at creation.
4. Insert the booking.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from psycopg2.extensions import cursor as PgCursor

from innkeeper.domain.availability import (
    OPERATIONAL_ROOM_STATUS,
    BookingStatus,
    nights_between,
    validate_stay,
)
from innkeeper.domain.room_conflict import assert_no_room_conflict
from innkeeper.observability.logging import get_logger

logger = get_logger(__name__)

INITIAL_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)

BOOKING_COLUMNS = """
    id, hotel_id, room_id, guest_id, check_in, check_out,
    status, total_amount, notes, created_at
"""


class RoomNotFoundError(Exception):
    def __init__(self, room_id: str) -> None:
        self.room_id = room_id
        super().__init__(f"Room {room_id} not found")


class RoomNotBookableError(Exception):
    """The room exists but cannot take this booking."""

    def __init__(self, room_id: str, reason: str) -> None:
        self.room_id = room_id
        self.reason = reason
        super().__init__(f"Room {room_id} cannot be booked: {reason}")


@dataclass(frozen=True)
class NewBooking:
    hotel_id: str
    room_id: str
    guest_id: str
    check_in: date
    check_out: date
    notes: str | None = None
    status: BookingStatus = BookingStatus.PENDING


def price_stay(base_price: Decimal, check_in: date, check_out: date) -> Decimal:
    """Total for the stay at the room type's nightly base price."""
    return Decimal(base_price) * nights_between(check_in, check_out)


def booking_row_to_dict(row: tuple) -> dict:
    return {
        "id": str(row[0]),
        "hotel_id": str(row[1]),
        "room_id": str(row[2]),
        "guest_id": str(row[3]),
        "check_in": row[4].isoformat(),
        "check_out": row[5].isoformat(),
        "status": row[6],
        "total_amount": float(row[7]),
        "notes": row[8],
        "created_at": row[9].isoformat() if hasattr(row[9], "isoformat") else str(row[9]),
    }


def create_booking(cur: PgCursor, booking: NewBooking) -> dict:
    """Create a booking after re-validating the room under a row lock.

    Args:
        cur: Database cursor inside a transaction (with txn() as cur).
        booking: Validated booking request.

    Returns:
        The inserted booking as a dict.

    Raises:
        InvalidStayError: check_in is not before check_out.
        RoomNotFoundError: Unknown room_id.
        RoomNotBookableError: Room belongs to another hotel, is not
            operational, or the initial status is not allowed.
        RoomConflictError: An active booking overlaps the stay.
    """
    validate_stay(booking.check_in, booking.check_out)
    if booking.status not in INITIAL_STATUSES:
        raise RoomNotBookableError(
            booking.room_id, f"bookings cannot start as {booking.status.value}"
        )

    cur.execute(
        """
        SELECT r.hotel_id, r.status, rt.base_price
        FROM rooms r
        JOIN room_types rt ON rt.id = r.room_type_id
        WHERE r.id = %s
        FOR UPDATE OF r
        """,
        (booking.room_id,),
    )
    room = cur.fetchone()
    if room is None:
        raise RoomNotFoundError(booking.room_id)

    room_hotel_id, room_status, base_price = str(room[0]), room[1], room[2]
    if room_hotel_id != booking.hotel_id:
        raise RoomNotBookableError(booking.room_id, "room belongs to another hotel")
    if room_status != OPERATIONAL_ROOM_STATUS.value:
        raise RoomNotBookableError(booking.room_id, f"room is {room_status}")

    assert_no_room_conflict(
        cur,
        room_id=booking.room_id,
        check_in=booking.check_in,
        check_out=booking.check_out,
        hotel_id=booking.hotel_id,
        lock=True,
    )

    total_amount = price_stay(base_price, booking.check_in, booking.check_out)

    cur.execute(
        f"""
        INSERT INTO bookings
            (hotel_id, room_id, guest_id, check_in, check_out,
             status, total_amount, notes)
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING {BOOKING_COLUMNS}
        """,
        (
            booking.hotel_id,
            booking.room_id,
            booking.guest_id,
            booking.check_in,
            booking.check_out,
            booking.status.value,
            total_amount,
            booking.notes,
        ),
    )
    created = booking_row_to_dict(cur.fetchone())

    logger.info(
        "booking created",
        extra={
            "extra_fields": {
                "booking_id": created["id"],
                "hotel_id": booking.hotel_id,
                "room_id": booking.room_id,
                "check_in": booking.check_in.isoformat(),
                "check_out": booking.check_out.isoformat(),
                "nights": nights_between(booking.check_in, booking.check_out),
                "status": booking.status.value,
            }
        },
    )
    return created

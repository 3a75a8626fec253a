"""Bookings endpoints.

GET  /bookings?hotel_id=...  → list, newest first
POST /bookings               → create (201)

Creation re-checks availability under a row lock on the room; see
innkeeper.domain.bookings. Status codes:

    404  room not found
    409  overlapping active booking (application check or DB constraint)
    422  invalid dates, unknown guest, room not bookable for this hotel
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, HTTPException, Query, Request
from psycopg2 import errors as pg_errors
from pydantic import BaseModel, ConfigDict

from innkeeper.api.deps import transaction
from innkeeper.domain.availability import BookingStatus
from innkeeper.domain.bookings import (
    NewBooking,
    RoomNotBookableError,
    RoomNotFoundError,
    create_booking,
)
from innkeeper.domain.room_conflict import RoomConflictError
from innkeeper.infra.time import utc_today

router = APIRouter(prefix="/bookings", tags=["bookings"])


# ── Schemas ───────────────────────────────────────────────────────────────────


class CreateBookingRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    hotel_id: str
    room_id: str
    guest_id: str
    check_in: date
    check_out: date
    notes: str | None = None
    status: BookingStatus = BookingStatus.PENDING


# ── GET /bookings ─────────────────────────────────────────────────────────────


@router.get("")
def list_bookings(
    request: Request,
    hotel_id: str | None = Query(None, description="Only bookings of this hotel"),
    limit: int = Query(500, ge=1, le=500),
) -> list[dict]:
    """List bookings with guest, room and room type summaries."""
    with transaction(request) as cur:
        cur.execute(
            """
            SELECT b.id, b.hotel_id, b.room_id, b.guest_id, b.check_in,
                   b.check_out, b.status, b.total_amount, b.notes, b.created_at,
                   g.first_name, g.last_name, r.number, rt.name
            FROM bookings b
            JOIN guests g ON g.id = b.guest_id
            JOIN rooms r ON r.id = b.room_id
            JOIN room_types rt ON rt.id = r.room_type_id
            WHERE (%s::text IS NULL OR b.hotel_id = %s)
            ORDER BY b.created_at DESC
            LIMIT %s
            """,
            (hotel_id, hotel_id, limit),
        )
        rows = cur.fetchall()

    return [
        {
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
            "guest": {"first_name": row[10], "last_name": row[11]},
            "room": {"number": row[12], "room_type_name": row[13]},
        }
        for row in rows
    ]


# ── POST /bookings ────────────────────────────────────────────────────────────


@router.post("", status_code=201)
def post_booking(body: CreateBookingRequest, request: Request) -> dict:
    """Create a booking priced at nights x room type base price."""
    if body.check_in >= body.check_out:
        raise HTTPException(status_code=422, detail="check_in must be before check_out")
    if body.check_in < utc_today():
        raise HTTPException(status_code=422, detail="check_in cannot be in the past")

    new_booking = NewBooking(
        hotel_id=body.hotel_id,
        room_id=body.room_id,
        guest_id=body.guest_id,
        check_in=body.check_in,
        check_out=body.check_out,
        notes=body.notes,
        status=body.status,
    )

    try:
        with transaction(request) as cur:
            return create_booking(cur, new_booking)
    except RoomNotFoundError:
        raise HTTPException(status_code=404, detail="Room not found")
    except RoomNotBookableError as exc:
        raise HTTPException(status_code=422, detail=exc.reason)
    except RoomConflictError as exc:
        raise HTTPException(
            status_code=409,
            detail={
                "message": "Room is not available for these dates",
                "conflicting_booking_id": exc.conflicting_booking_id,
                "existing_check_in": exc.existing_check_in.isoformat(),
                "existing_check_out": exc.existing_check_out.isoformat(),
            },
        )
    except pg_errors.ExclusionViolation:
        raise HTTPException(status_code=409, detail="Room is not available for these dates")
    except pg_errors.ForeignKeyViolation:
        raise HTTPException(status_code=422, detail="guest_id not found")

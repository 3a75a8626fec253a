"""Rooms endpoints.

GET  /rooms?hotel_id=...            → list rooms with their room type
POST /rooms                         → create (201)
GET  /rooms/inventory?hotel_id=...  → operational rooms per room type
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from psycopg2 import errors as pg_errors
from pydantic import BaseModel, ConfigDict

from innkeeper.api.deps import get_availability_engine, transaction
from innkeeper.domain.availability import AvailabilityEngine, RoomStatus

router = APIRouter(prefix="/rooms", tags=["rooms"])


# ── Schemas ───────────────────────────────────────────────────────────────────


class CreateRoomRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    hotel_id: str
    room_type_id: str
    number: str
    floor: int | None = None
    status: RoomStatus = RoomStatus.AVAILABLE


# ── Helper ────────────────────────────────────────────────────────────────────


_ROOM_COLUMNS = """
    r.id, r.hotel_id, r.number, r.floor, r.status,
    rt.id, rt.name, rt.base_price, rt.max_occupancy
"""


def _room_to_dict(row: tuple) -> dict:
    return {
        "id": str(row[0]),
        "hotel_id": str(row[1]),
        "number": row[2],
        "floor": row[3],
        "status": row[4],
        "room_type": {
            "id": str(row[5]),
            "name": row[6],
            "base_price": float(row[7]),
            "max_occupancy": row[8],
        },
    }


# ── GET /rooms ────────────────────────────────────────────────────────────────


@router.get("")
def list_rooms(
    request: Request,
    hotel_id: str | None = Query(None, description="Only rooms of this hotel"),
) -> list[dict]:
    """List rooms, whatever their status, ordered by hotel and number."""
    with transaction(request) as cur:
        cur.execute(
            f"""
            SELECT {_ROOM_COLUMNS}
            FROM rooms r
            JOIN room_types rt ON rt.id = r.room_type_id
            WHERE (%s::text IS NULL OR r.hotel_id = %s)
            ORDER BY r.hotel_id, r.number
            """,
            (hotel_id, hotel_id),
        )
        rows = cur.fetchall()

    return [_room_to_dict(row) for row in rows]


# ── POST /rooms ───────────────────────────────────────────────────────────────


@router.post("", status_code=201)
def create_room(body: CreateRoomRequest, request: Request) -> dict:
    """Create a room.

    Fails with 422 if hotel_id or room_type_id does not exist and with 409
    if the hotel already has a room with that number.
    """
    with transaction(request) as cur:
        try:
            cur.execute(
                f"""
                WITH r AS (
                    INSERT INTO rooms (hotel_id, room_type_id, number, floor, status)
                    VALUES (%s, %s, %s, %s, %s)
                    RETURNING id, hotel_id, number, floor, status, room_type_id
                )
                SELECT {_ROOM_COLUMNS}
                FROM r
                JOIN room_types rt ON rt.id = r.room_type_id
                """,
                (
                    body.hotel_id,
                    body.room_type_id,
                    body.number.strip(),
                    body.floor,
                    body.status.value,
                ),
            )
            row = cur.fetchone()
        except pg_errors.ForeignKeyViolation:
            raise HTTPException(
                status_code=422,
                detail="hotel_id or room_type_id not found",
            )
        except pg_errors.UniqueViolation:
            raise HTTPException(
                status_code=409,
                detail="A room with this number already exists in the hotel",
            )

    return _room_to_dict(row)


# ── GET /rooms/inventory ──────────────────────────────────────────────────────


@router.get("/inventory")
def room_inventory(
    hotel_id: str = Query(..., description="Hotel ID"),
    engine: AvailabilityEngine = Depends(get_availability_engine),
) -> list[dict]:
    """Total operational rooms per room type, cheapest type first."""
    return [item.to_dict() for item in engine.room_inventory(hotel_id)]

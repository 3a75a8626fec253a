"""Hotels endpoints.

GET  /hotels  → list with room and booking counts
POST /hotels  → create (201)
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict

from innkeeper.api.deps import transaction

router = APIRouter(prefix="/hotels", tags=["hotels"])


class CreateHotelRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    address: str
    phone: str | None = None
    email: str | None = None
    description: str | None = None


def _row_to_dict(row: tuple) -> dict:
    return {
        "id": str(row[0]),
        "name": row[1],
        "address": row[2],
        "phone": row[3],
        "email": row[4],
        "description": row[5],
        "created_at": row[6].isoformat() if hasattr(row[6], "isoformat") else str(row[6]),
    }


@router.get("")
def list_hotels(request: Request) -> list[dict]:
    """List hotels with the number of rooms and bookings of each."""
    with transaction(request) as cur:
        cur.execute(
            """
            SELECT h.id, h.name, h.address, h.phone, h.email, h.description,
                   h.created_at,
                   (SELECT COUNT(*) FROM rooms r WHERE r.hotel_id = h.id),
                   (SELECT COUNT(*) FROM bookings b WHERE b.hotel_id = h.id)
            FROM hotels h
            ORDER BY h.name
            """
        )
        rows = cur.fetchall()

    return [
        {**_row_to_dict(row), "room_count": row[7], "booking_count": row[8]}
        for row in rows
    ]


@router.post("", status_code=201)
def create_hotel(body: CreateHotelRequest, request: Request) -> dict:
    with transaction(request) as cur:
        cur.execute(
            """
            INSERT INTO hotels (name, address, phone, email, description)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING id, name, address, phone, email, description, created_at
            """,
            (
                body.name.strip(),
                body.address.strip(),
                body.phone,
                body.email.strip().lower() if body.email else None,
                body.description,
            ),
        )
        row = cur.fetchone()

    return _row_to_dict(row)

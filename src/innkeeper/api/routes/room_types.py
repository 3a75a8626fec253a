"""Room types catalogue.

GET  /room-types  → list, cheapest first
POST /room-types  → create (201)
"""

from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, HTTPException, Request
from psycopg2 import errors as pg_errors
from pydantic import BaseModel, ConfigDict, Field

from innkeeper.api.deps import transaction

router = APIRouter(prefix="/room-types", tags=["room_types"])


class CreateRoomTypeRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    description: str | None = None
    base_price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    max_occupancy: int = Field(2, ge=1)
    bed_configuration: str | None = None
    has_kitchen: bool = False


_COLUMNS = """
    id, name, description, base_price, max_occupancy,
    bed_configuration, has_kitchen, created_at
"""


def _row_to_dict(row: tuple) -> dict:
    return {
        "id": str(row[0]),
        "name": row[1],
        "description": row[2],
        "base_price": float(row[3]),
        "max_occupancy": row[4],
        "bed_configuration": row[5],
        "has_kitchen": row[6],
        "created_at": row[7].isoformat() if hasattr(row[7], "isoformat") else str(row[7]),
    }


@router.get("")
def list_room_types(request: Request) -> list[dict]:
    with transaction(request) as cur:
        cur.execute(f"SELECT {_COLUMNS} FROM room_types ORDER BY base_price, name")
        rows = cur.fetchall()

    return [_row_to_dict(r) for r in rows]


@router.post("", status_code=201)
def create_room_type(body: CreateRoomTypeRequest, request: Request) -> dict:
    """Create a room type. Names are unique (409 on duplicates)."""
    with transaction(request) as cur:
        try:
            cur.execute(
                f"""
                INSERT INTO room_types
                    (name, description, base_price, max_occupancy,
                     bed_configuration, has_kitchen)
                VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING {_COLUMNS}
                """,
                (
                    body.name.strip(),
                    body.description,
                    body.base_price,
                    body.max_occupancy,
                    body.bed_configuration,
                    body.has_kitchen,
                ),
            )
            row = cur.fetchone()
        except pg_errors.UniqueViolation:
            raise HTTPException(
                status_code=409,
                detail="A room type with this name already exists",
            )

    return _row_to_dict(row)

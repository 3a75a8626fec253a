"""Amenities catalogue (read-only)."""

from __future__ import annotations

from fastapi import APIRouter, Request

from innkeeper.api.deps import transaction

router = APIRouter(prefix="/amenities", tags=["amenities"])


@router.get("")
def list_amenities(request: Request) -> list[dict]:
    """List amenities, cheapest first."""
    with transaction(request) as cur:
        cur.execute(
            """
            SELECT id, name, description, price
            FROM amenities
            ORDER BY price, name
            """
        )
        rows = cur.fetchall()

    return [
        {
            "id": str(row[0]),
            "name": row[1],
            "description": row[2],
            "price": float(row[3]),
        }
        for row in rows
    ]

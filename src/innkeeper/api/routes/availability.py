"""Room availability endpoints.

GET  /rooms/availability          → available rooms for a stay
POST /rooms/availability          → availability summary per room type
POST /rooms/daily-availability    → per-night grid {date: {room_id: bool}}

Dates are calendar dates (YYYY-MM-DD). check_out is exclusive: a room is
free again on its previous guest's check-out day.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict

from innkeeper.api.deps import get_availability_engine
from innkeeper.domain.availability import AvailabilityEngine, nights_between
from innkeeper.infra.time import utc_today
from innkeeper.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/rooms", tags=["availability"])

MAX_STAY_NIGHTS = 90
MAX_GRID_DAYS = 90


# ── Schemas ───────────────────────────────────────────────────────────────────


class AvailabilitySummaryRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    hotel_id: str
    check_in: date
    check_out: date


class DailyAvailabilityRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    hotel_id: str
    dates: list[date]
    room_ids: list[str] | None = None


# ── Validation ────────────────────────────────────────────────────────────────


def _validate_stay(check_in: date, check_out: date) -> None:
    if check_in >= check_out:
        raise HTTPException(
            status_code=422,
            detail="check_in must be before check_out",
        )
    if check_in < utc_today():
        raise HTTPException(
            status_code=422,
            detail="check_in cannot be in the past",
        )
    if nights_between(check_in, check_out) > MAX_STAY_NIGHTS:
        raise HTTPException(
            status_code=422,
            detail=f"Stay cannot exceed {MAX_STAY_NIGHTS} nights",
        )


# ── GET /rooms/availability ───────────────────────────────────────────────────


@router.get("/availability")
def list_available_rooms(
    hotel_id: str = Query(..., description="Hotel ID"),
    check_in: date = Query(..., description="Check-in date (YYYY-MM-DD, inclusive)"),
    check_out: date = Query(..., description="Check-out date (YYYY-MM-DD, exclusive)"),
    room_type_id: str | None = Query(None, description="Restrict to one room type"),
    engine: AvailabilityEngine = Depends(get_availability_engine),
) -> list[dict]:
    """List operational rooms with no active booking overlapping the stay."""
    _validate_stay(check_in, check_out)

    rooms = engine.list_available_rooms(
        hotel_id, check_in, check_out, room_type_id=room_type_id
    )
    return [room.to_dict() for room in rooms]


# ── POST /rooms/availability ──────────────────────────────────────────────────


@router.post("/availability")
def summarize_availability(
    body: AvailabilitySummaryRequest,
    engine: AvailabilityEngine = Depends(get_availability_engine),
) -> list[dict]:
    """Available rooms grouped by room type.

    Room types with nothing free are omitted.
    """
    _validate_stay(body.check_in, body.check_out)

    summary = engine.summarize_availability(body.hotel_id, body.check_in, body.check_out)
    return [group.to_dict() for group in summary]


# ── POST /rooms/daily-availability ────────────────────────────────────────────


@router.post("/daily-availability")
def daily_availability(
    body: DailyAvailabilityRequest,
    engine: AvailabilityEngine = Depends(get_availability_engine),
) -> dict[str, dict[str, bool]]:
    """Per-night availability for a calendar grid.

    Without room_ids, every operational room of the hotel is reported.
    """
    if not body.dates:
        raise HTTPException(status_code=422, detail="dates must not be empty")
    if len(set(body.dates)) > MAX_GRID_DAYS:
        raise HTTPException(
            status_code=422,
            detail=f"Cannot request more than {MAX_GRID_DAYS} dates",
        )

    grid = engine.daily_availability(body.hotel_id, body.dates, room_ids=body.room_ids)

    logger.info(
        "daily availability computed",
        extra={
            "extra_fields": {
                "hotel_id": body.hotel_id,
                "days": len(grid),
                "rooms": len(body.room_ids) if body.room_ids is not None else None,
            }
        },
    )
    return {day.isoformat(): rooms for day, rooms in grid.items()}

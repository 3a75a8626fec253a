"""Shared test helpers: an in-memory AvailabilityStore and row builders.

These are NOT fixtures - they are regular functions and classes that
conftest.py and individual test modules import.
"""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Sequence

from innkeeper.domain.availability import (
    BookingSpan,
    BookingStatus,
    Room,
    RoomInventory,
    RoomStatus,
    RoomTypeInfo,
    StoreUnavailableError,
)

QUEEN = RoomTypeInfo(id="rt-queen", name="Queen", base_price=Decimal("120.00"), max_occupancy=2)
KING = RoomTypeInfo(id="rt-king", name="King", base_price=Decimal("180.00"), max_occupancy=3)

CREATED_AT = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)


def make_room(
    room_id: str,
    *,
    hotel_id: str = "hotel-1",
    room_type: RoomTypeInfo = QUEEN,
    status: RoomStatus = RoomStatus.AVAILABLE,
    floor: int | None = 1,
    number: str | None = None,
) -> Room:
    return Room(
        id=room_id,
        hotel_id=hotel_id,
        number=number or room_id.upper(),
        floor=floor,
        status=status,
        room_type=room_type,
    )


def make_booking(
    room_id: str,
    check_in: date,
    check_out: date,
    *,
    status: BookingStatus = BookingStatus.CONFIRMED,
    booking_id: str | None = None,
) -> BookingSpan:
    return BookingSpan(
        id=booking_id or f"bk-{room_id}-{check_in.isoformat()}",
        room_id=room_id,
        check_in=check_in,
        check_out=check_out,
        status=status,
    )


class FakeAvailabilityStore:
    """In-memory AvailabilityStore.

    Deliberately returns every booking of the hotel/room regardless of
    status or dates: the engine must do its own filtering.
    """

    def __init__(self) -> None:
        self.rooms: list[Room] = []
        self.bookings: list[BookingSpan] = []
        self.failing = False
        self.calls: list[tuple] = []

    def add_room(self, room: Room) -> Room:
        self.rooms.append(room)
        return room

    def add_booking(self, booking: BookingSpan) -> BookingSpan:
        self.bookings.append(booking)
        return booking

    def _check(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if self.failing:
            raise StoreUnavailableError("connection refused")

    def _hotel_of(self, room_id: str) -> str | None:
        for room in self.rooms:
            if room.id == room_id:
                return room.hotel_id
        return None

    def list_operational_rooms(self, hotel_id, room_type_id=None):
        self._check("list_operational_rooms", hotel_id, room_type_id)
        return [
            r
            for r in self.rooms
            if r.hotel_id == hotel_id
            and r.status == RoomStatus.AVAILABLE
            and (room_type_id is None or r.room_type.id == room_type_id)
        ]

    def list_active_bookings(self, hotel_id, check_in, check_out, room_ids: Sequence[str] | None = None):
        self._check("list_active_bookings", hotel_id, check_in, check_out, room_ids)
        return [
            b
            for b in self.bookings
            if self._hotel_of(b.room_id) == hotel_id
            and (room_ids is None or b.room_id in room_ids)
        ]

    def list_room_bookings(self, room_id, check_in, check_out):
        self._check("list_room_bookings", room_id, check_in, check_out)
        return [b for b in self.bookings if b.room_id == room_id]

    def count_operational_rooms(self, hotel_id):
        self._check("count_operational_rooms", hotel_id)
        counts: dict[str, RoomInventory] = {}
        for room in self.list_operational_rooms(hotel_id):
            current = counts.get(room.room_type.id)
            total = current.total_rooms + 1 if current else 1
            counts[room.room_type.id] = RoomInventory(room_type=room.room_type, total_rooms=total)
        return sorted(counts.values(), key=lambda inv: inv.room_type.base_price)


class MockCursor:
    """Minimal psycopg2 cursor stand-in that records executed statements."""

    def __init__(self, fetchall=None, fetchone=None, error: Exception | None = None):
        self._fetchall = fetchall or []
        self._fetchone = list(fetchone or [])
        self._error = error
        self.executed: list[tuple] = []

    def execute(self, query, params=None):
        self.executed.append((query, params))
        if self._error is not None:
            raise self._error

    def fetchall(self):
        return self._fetchall

    def fetchone(self):
        return self._fetchone.pop(0) if self._fetchone else None


class MockTxnContext:
    def __init__(self, cursor: MockCursor):
        self.cursor = cursor

    def __enter__(self):
        return self.cursor

    def __exit__(self, *args):
        return False


def json_log_lines(out: str) -> list[dict]:
    """Parse captured stdout of the JSON log handler into records."""
    return [json.loads(line) for line in out.splitlines() if line.startswith("{")]

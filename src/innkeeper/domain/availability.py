"""Room availability engine.

Answers "which rooms of a hotel are free for a stay" from a read-only view
of rooms and bookings supplied by an AvailabilityStore.

Overlap rule (half-open, check-out exclusive):

    booking.check_in < stay.check_out AND booking.check_out > stay.check_in

A room is free again on the check-out date of the previous stay, so a
booking ending on the requested check-in day (or starting on the requested
check-out day) is not a conflict.

Only active bookings block a room: pending, confirmed, checked_in.
Only operational rooms (status "available") are ever offered.

Store failures are fail-closed by default: the engine logs and answers
"nothing available" rather than risk offering a room during an outage.
Callers that must tell an outage apart from full occupancy construct the
engine with fail_closed=False and handle StoreUnavailableError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Iterable, Protocol, Sequence

from innkeeper.observability.logging import get_logger
from innkeeper.observability.redaction import redact_string

logger = get_logger(__name__)

ONE_DAY = timedelta(days=1)


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"


class RoomStatus(str, Enum):
    AVAILABLE = "available"
    MAINTENANCE = "maintenance"
    OUT_OF_ORDER = "out_of_order"


ACTIVE_STATUSES = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN}
)

OPERATIONAL_ROOM_STATUS = RoomStatus.AVAILABLE


# ── Errors ────────────────────────────────────────────────────────────────────


class InvalidStayError(ValueError):
    """Raised when a stay interval is empty or inverted."""

    def __init__(self, check_in: date, check_out: date) -> None:
        self.check_in = check_in
        self.check_out = check_out
        super().__init__(
            f"check_in ({check_in}) must be before check_out ({check_out})"
        )


class StoreUnavailableError(Exception):
    """Raised by a store when the backing database cannot be queried."""


# ── Value types ───────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RoomTypeInfo:
    id: str
    name: str
    base_price: Decimal
    max_occupancy: int

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "base_price": float(self.base_price),
            "max_occupancy": self.max_occupancy,
        }


@dataclass(frozen=True)
class Room:
    id: str
    hotel_id: str
    number: str
    floor: int | None
    status: RoomStatus
    room_type: RoomTypeInfo


@dataclass(frozen=True)
class BookingSpan:
    """The part of a booking that matters for availability."""

    id: str
    room_id: str
    check_in: date
    check_out: date
    status: BookingStatus

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def blocks(self, check_in: date, check_out: date) -> bool:
        """True if this booking makes its room unavailable for the stay."""
        return self.is_active and stays_overlap(
            self.check_in, self.check_out, check_in, check_out
        )


@dataclass(frozen=True)
class AvailableRoom:
    id: str
    number: str
    floor: int | None
    room_type: RoomTypeInfo

    @classmethod
    def from_room(cls, room: Room) -> AvailableRoom:
        return cls(
            id=room.id,
            number=room.number,
            floor=room.floor,
            room_type=room.room_type,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "number": self.number,
            "floor": self.floor,
            "room_type": self.room_type.to_dict(),
        }


@dataclass
class RoomTypeAvailability:
    room_type: RoomTypeInfo
    available_count: int = 0
    rooms: list[AvailableRoom] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "room_type": self.room_type.to_dict(),
            "available_count": self.available_count,
            "rooms": [room.to_dict() for room in self.rooms],
        }


@dataclass(frozen=True)
class RoomInventory:
    room_type: RoomTypeInfo
    total_rooms: int

    def to_dict(self) -> dict:
        return {**self.room_type.to_dict(), "total_rooms": self.total_rooms}


# ── Interval helpers ──────────────────────────────────────────────────────────


def stays_overlap(a_in: date, a_out: date, b_in: date, b_out: date) -> bool:
    """Half-open interval intersection of [a_in, a_out) and [b_in, b_out)."""
    return a_in < b_out and a_out > b_in


def nights_between(check_in: date, check_out: date) -> int:
    return (check_out - check_in).days


def validate_stay(check_in: date, check_out: date) -> None:
    if not check_in < check_out:
        raise InvalidStayError(check_in, check_out)


# ── Store interface ───────────────────────────────────────────────────────────


class AvailabilityStore(Protocol):
    """Read-only data access the engine needs.

    Implementations may pre-filter by status and overlap; the engine
    re-applies both, so returning a superset is allowed.
    """

    def list_operational_rooms(
        self, hotel_id: str, room_type_id: str | None = None
    ) -> list[Room]: ...

    def list_active_bookings(
        self,
        hotel_id: str,
        check_in: date,
        check_out: date,
        room_ids: Sequence[str] | None = None,
    ) -> list[BookingSpan]: ...

    def list_room_bookings(
        self, room_id: str, check_in: date, check_out: date
    ) -> list[BookingSpan]: ...

    def count_operational_rooms(self, hotel_id: str) -> list[RoomInventory]: ...


# ── Engine ────────────────────────────────────────────────────────────────────


class AvailabilityEngine:
    """Stateless availability queries over an injected store."""

    def __init__(self, store: AvailabilityStore, *, fail_closed: bool = True) -> None:
        self._store = store
        self._fail_closed = fail_closed

    def _store_failed(self, operation: str, exc: StoreUnavailableError, **context) -> None:
        """Log a store failure, re-raising unless the engine is fail-closed."""
        logger.warning(
            "availability store unavailable",
            extra={
                "extra_fields": {
                    "operation": operation,
                    "fail_closed": self._fail_closed,
                    "error": redact_string(str(exc)),
                    **context,
                }
            },
        )
        if not self._fail_closed:
            raise exc

    def list_available_rooms(
        self,
        hotel_id: str,
        check_in: date,
        check_out: date,
        room_type_id: str | None = None,
    ) -> list[AvailableRoom]:
        """Operational rooms of the hotel with no active booking in the stay.

        Returns an empty list when nothing qualifies.
        """
        validate_stay(check_in, check_out)
        try:
            rooms = self._store.list_operational_rooms(hotel_id, room_type_id)
            bookings = self._store.list_active_bookings(hotel_id, check_in, check_out)
        except StoreUnavailableError as exc:
            self._store_failed(
                "list_available_rooms",
                exc,
                hotel_id=hotel_id,
                check_in=check_in.isoformat(),
                check_out=check_out.isoformat(),
            )
            return []

        booked_room_ids = {b.room_id for b in bookings if b.blocks(check_in, check_out)}

        return [
            AvailableRoom.from_room(room)
            for room in rooms
            if room.status == OPERATIONAL_ROOM_STATUS
            and (room_type_id is None or room.room_type.id == room_type_id)
            and room.id not in booked_room_ids
        ]

    def summarize_availability(
        self,
        hotel_id: str,
        check_in: date,
        check_out: date,
    ) -> list[RoomTypeAvailability]:
        """Available rooms grouped by room type.

        Room types without a free room are left out, not reported as zero.
        """
        by_type: dict[str, RoomTypeAvailability] = {}
        for room in self.list_available_rooms(hotel_id, check_in, check_out):
            group = by_type.setdefault(
                room.room_type.id, RoomTypeAvailability(room_type=room.room_type)
            )
            group.available_count += 1
            group.rooms.append(room)
        return list(by_type.values())

    def is_room_available(self, room_id: str, check_in: date, check_out: date) -> bool:
        """True iff no active booking of the room overlaps the stay.

        Does not look at the room's own status; see list_available_rooms.
        """
        validate_stay(check_in, check_out)
        try:
            bookings = self._store.list_room_bookings(room_id, check_in, check_out)
        except StoreUnavailableError as exc:
            self._store_failed(
                "is_room_available",
                exc,
                room_id=room_id,
                check_in=check_in.isoformat(),
                check_out=check_out.isoformat(),
            )
            return False

        return not any(
            b.room_id == room_id and b.blocks(check_in, check_out) for b in bookings
        )

    def daily_availability(
        self,
        hotel_id: str,
        dates: Iterable[date],
        room_ids: Sequence[str] | None = None,
    ) -> dict[date, dict[str, bool]]:
        """Per-night availability grid.

        A room is free on day d iff it is free for the one-night stay
        [d, d + 1 day). When room_ids is None every operational room of the
        hotel is reported.
        """
        days = sorted(set(dates))
        if not days:
            return {}

        window_in, window_out = days[0], days[-1] + ONE_DAY
        try:
            if room_ids is None:
                room_ids = [r.id for r in self._store.list_operational_rooms(hotel_id)]
            bookings = self._store.list_active_bookings(
                hotel_id, window_in, window_out, room_ids=room_ids
            )
        except StoreUnavailableError as exc:
            self._store_failed(
                "daily_availability",
                exc,
                hotel_id=hotel_id,
                window_start=window_in.isoformat(),
                window_end=window_out.isoformat(),
            )
            return {day: {room_id: False for room_id in room_ids or ()} for day in days}

        by_room: dict[str, list[BookingSpan]] = {}
        for booking in bookings:
            by_room.setdefault(booking.room_id, []).append(booking)

        grid: dict[date, dict[str, bool]] = {}
        for day in days:
            next_day = day + ONE_DAY
            grid[day] = {
                room_id: not any(b.blocks(day, next_day) for b in by_room.get(room_id, ()))
                for room_id in room_ids
            }
        return grid

    def room_inventory(self, hotel_id: str) -> list[RoomInventory]:
        """Count of operational rooms per room type for a hotel."""
        try:
            return self._store.count_operational_rooms(hotel_id)
        except StoreUnavailableError as exc:
            self._store_failed("room_inventory", exc, hotel_id=hotel_id)
            return []

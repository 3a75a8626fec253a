"""PostgreSQL-backed AvailabilityStore.

Uses raw SQL with psycopg2 (no ORM). Every method runs in its own short
read transaction, borrowing from the process pool when one is configured.
Any psycopg2 error is surfaced as StoreUnavailableError so the engine can
apply its failure policy.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Iterator, Sequence

import psycopg2
from psycopg2.extensions import cursor as PgCursor
from psycopg2.pool import ThreadedConnectionPool

from innkeeper.domain.availability import (
    OPERATIONAL_ROOM_STATUS,
    BookingSpan,
    BookingStatus,
    Room,
    RoomInventory,
    RoomStatus,
    RoomTypeInfo,
    StoreUnavailableError,
)
from innkeeper.domain.room_conflict import ACTIVE_STATUS_VALUES
from innkeeper.infra import db

_ROOM_SELECT = """
    SELECT r.id, r.hotel_id, r.number, r.floor, r.status,
           rt.id, rt.name, rt.base_price, rt.max_occupancy
    FROM rooms r
    JOIN room_types rt ON rt.id = r.room_type_id
"""


def _room_type_from_row(row: Sequence) -> RoomTypeInfo:
    return RoomTypeInfo(
        id=str(row[0]),
        name=row[1],
        base_price=Decimal(row[2]),
        max_occupancy=row[3],
    )


def _room_from_row(row: tuple) -> Room:
    return Room(
        id=str(row[0]),
        hotel_id=str(row[1]),
        number=row[2],
        floor=row[3],
        status=RoomStatus(row[4]),
        room_type=_room_type_from_row(row[5:9]),
    )


def _booking_from_row(row: tuple) -> BookingSpan:
    return BookingSpan(
        id=str(row[0]),
        room_id=str(row[1]),
        check_in=row[2],
        check_out=row[3],
        status=BookingStatus(row[4]),
    )


class PostgresAvailabilityStore:
    """Read-only queries for the availability engine."""

    def __init__(self, pool: ThreadedConnectionPool | None = None) -> None:
        self._pool = pool

    @contextmanager
    def _cursor(self) -> Iterator[PgCursor]:
        try:
            if self._pool is not None:
                with db.pooled_txn(self._pool) as cur:
                    yield cur
            else:
                with db.txn() as cur:
                    yield cur
        except psycopg2.Error as exc:
            raise StoreUnavailableError(str(exc).strip() or type(exc).__name__) from exc

    def list_operational_rooms(
        self, hotel_id: str, room_type_id: str | None = None
    ) -> list[Room]:
        query = _ROOM_SELECT + " WHERE r.hotel_id = %s AND r.status = %s"
        params: list = [hotel_id, OPERATIONAL_ROOM_STATUS.value]
        if room_type_id is not None:
            query += " AND r.room_type_id = %s"
            params.append(room_type_id)
        query += " ORDER BY r.number"

        with self._cursor() as cur:
            cur.execute(query, params)
            rows = cur.fetchall()
        return [_room_from_row(row) for row in rows]

    def list_active_bookings(
        self,
        hotel_id: str,
        check_in: date,
        check_out: date,
        room_ids: Sequence[str] | None = None,
    ) -> list[BookingSpan]:
        conditions = [
            "hotel_id = %s",
            "status = ANY(%s::booking_status[])",
            "check_in < %s",   # booking starts before the window ends
            "check_out > %s",  # booking ends after the window starts
        ]
        params: list = [hotel_id, ACTIVE_STATUS_VALUES, check_out, check_in]
        if room_ids is not None:
            conditions.append("room_id = ANY(%s)")
            params.append(list(room_ids))

        with self._cursor() as cur:
            cur.execute(
                f"""
                SELECT id, room_id, check_in, check_out, status
                FROM bookings
                WHERE {" AND ".join(conditions)}
                """,
                params,
            )
            rows = cur.fetchall()
        return [_booking_from_row(row) for row in rows]

    def list_room_bookings(
        self, room_id: str, check_in: date, check_out: date
    ) -> list[BookingSpan]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT id, room_id, check_in, check_out, status
                FROM bookings
                WHERE room_id = %s
                  AND status = ANY(%s::booking_status[])
                  AND check_in < %s
                  AND check_out > %s
                """,
                (room_id, ACTIVE_STATUS_VALUES, check_out, check_in),
            )
            rows = cur.fetchall()
        return [_booking_from_row(row) for row in rows]

    def count_operational_rooms(self, hotel_id: str) -> list[RoomInventory]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT rt.id, rt.name, rt.base_price, rt.max_occupancy,
                       COUNT(r.id) AS total_rooms
                FROM rooms r
                JOIN room_types rt ON rt.id = r.room_type_id
                WHERE r.hotel_id = %s AND r.status = %s
                GROUP BY rt.id, rt.name, rt.base_price, rt.max_occupancy
                ORDER BY rt.base_price, rt.name
                """,
                (hotel_id, OPERATIONAL_ROOM_STATUS.value),
            )
            rows = cur.fetchall()
        return [
            RoomInventory(room_type=_room_type_from_row(row[0:4]), total_rooms=row[4])
            for row in rows
        ]

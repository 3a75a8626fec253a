"""FastAPI dependency providers.

The connection pool lives on app.state and is owned by the app lifespan;
routes only borrow from it.
"""

from __future__ import annotations

from contextlib import AbstractContextManager

from fastapi import Request
from psycopg2.extensions import cursor as PgCursor

from innkeeper.domain.availability import AvailabilityEngine
from innkeeper.infra import db
from innkeeper.infra.repositories.availability_repository import (
    PostgresAvailabilityStore,
)


def transaction(request: Request) -> AbstractContextManager[PgCursor]:
    """Open a transaction on the app pool, or a one-off connection without one."""
    pool = getattr(request.app.state, "db_pool", None)
    if pool is not None:
        return db.pooled_txn(pool)
    return db.txn()


def get_availability_engine(request: Request) -> AvailabilityEngine:
    """Engine for HTTP callers.

    Strict mode: a store outage raises instead of looking like a fully
    booked hotel, and is turned into a 503 by the app's error handler.
    """
    store = PostgresAvailabilityStore(getattr(request.app.state, "db_pool", None))
    return AvailabilityEngine(store, fail_closed=False)

"""Database access layer using psycopg2.

Provides:
- get_conn(): Get a database connection from DATABASE_URL
- BlockingConnectionPool: thread-safe pool whose getconn() waits
- open_pool()/close_pool(): Process-wide connection pool lifecycle
- txn(): Context manager for short, safe transactions
- pooled_txn(): Same as txn() but borrowing a connection from a pool
"""

import os
import threading
from contextlib import contextmanager
from typing import Iterator
from urllib.parse import urlparse

import psycopg2
from psycopg2.extensions import connection as PgConnection, cursor as PgCursor
from psycopg2.pool import PoolError, ThreadedConnectionPool


def _connect_args() -> tuple[str, dict[str, str]]:
    """Resolve DSN and extra connect kwargs from the environment.

    DB_PASSWORD is only applied when the DSN itself carries no password,
    so secrets can be mounted separately from the connection string.
    """
    dsn = os.environ.get("DATABASE_URL")
    if not dsn:
        raise RuntimeError("DATABASE_URL environment variable not set")

    if "://" in dsn:
        has_password = bool(urlparse(dsn).password)
    else:
        has_password = any(part.startswith("password=") for part in dsn.split())

    kwargs: dict[str, str] = {}
    db_password = os.environ.get("DB_PASSWORD")
    if db_password and not has_password:
        kwargs["password"] = db_password
    return dsn, kwargs


def get_conn() -> PgConnection:
    """Get a new database connection from DATABASE_URL.

    Returns:
        psycopg2 connection object.

    Raises:
        RuntimeError: If DATABASE_URL is not set.
        psycopg2.Error: On connection failure.
    """
    dsn, kwargs = _connect_args()
    return psycopg2.connect(dsn, **kwargs)


class BlockingConnectionPool(ThreadedConnectionPool):
    """ThreadedConnectionPool whose getconn() waits for a free connection.

    The stock pool raises PoolError as soon as maxconn connections are
    checked out. Here borrowers queue on a semaphore instead, and only get
    PoolError after waiting `timeout` seconds (None waits forever).
    Connection keys are not supported.
    """

    def __init__(
        self, minconn: int, maxconn: int, *args, timeout: float | None = None, **kwargs
    ) -> None:
        self._slots = threading.BoundedSemaphore(maxconn)
        self._timeout = timeout
        super().__init__(minconn, maxconn, *args, **kwargs)

    def getconn(self) -> PgConnection:
        if not self._slots.acquire(timeout=self._timeout):
            raise PoolError("timed out waiting for a database connection")
        try:
            return super().getconn()
        except Exception:
            self._slots.release()
            raise

    def putconn(self, conn: PgConnection, close: bool = False) -> None:
        try:
            super().putconn(conn, close=close)
        finally:
            self._slots.release()


def open_pool() -> BlockingConnectionPool:
    """Open a thread-safe connection pool sized by DB_POOL_MIN/DB_POOL_MAX.

    Borrowers wait up to DB_POOL_TIMEOUT seconds (default 30) for a free
    connection. The caller owns the pool and must call close_pool() on
    shutdown.
    """
    dsn, kwargs = _connect_args()
    minconn = int(os.environ.get("DB_POOL_MIN", "1"))
    maxconn = int(os.environ.get("DB_POOL_MAX", "10"))
    timeout = float(os.environ.get("DB_POOL_TIMEOUT", "30"))
    return BlockingConnectionPool(minconn, maxconn, dsn, timeout=timeout, **kwargs)


def close_pool(pool: BlockingConnectionPool) -> None:
    """Close every connection held by the pool."""
    pool.closeall()


@contextmanager
def txn(conn: PgConnection | None = None) -> Iterator[PgCursor]:
    """Context manager for a short, safe transaction.

    If conn is None, creates a new connection that is closed on exit.
    Commits on successful exit, rolls back on exception.

    Args:
        conn: Optional existing connection. If None, creates new one.

    Yields:
        Cursor for executing queries within the transaction.

    Example:
        with txn() as cur:
            cur.execute("INSERT INTO t (x) VALUES (%s)", (1,))
    """
    owns_conn = conn is None
    if owns_conn:
        conn = get_conn()

    try:
        with conn.cursor() as cur:
            yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        if owns_conn:
            conn.close()


@contextmanager
def pooled_txn(pool: BlockingConnectionPool) -> Iterator[PgCursor]:
    """Run a txn() on a connection borrowed from pool.

    The connection is returned to the pool on exit; a connection left
    broken by the transaction is discarded instead of reused.
    """
    conn = pool.getconn()
    try:
        with txn(conn) as cur:
            yield cur
    finally:
        pool.putconn(conn, close=bool(conn.closed))

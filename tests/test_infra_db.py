"""Tests for database layer."""

import os
import threading
import time
from unittest.mock import MagicMock, patch

import psycopg2
import pytest
from psycopg2.pool import PoolError

# Read before the autouse fixture in conftest.py strips it from the env.
_LIVE_DSN = os.environ.get("DATABASE_URL")


class TestGetConnPasswordFallback:
    """Tests for DB_PASSWORD fallback in get_conn(); no real DB needed."""

    def test_db_password_fallback_dsn_without_password(self):
        from innkeeper.infra.db import get_conn

        env = {"DATABASE_URL": "dbname=db user=u host=h port=5432", "DB_PASSWORD": "from-env"}
        with patch.dict(os.environ, env, clear=True), \
             patch("innkeeper.infra.db.psycopg2.connect", return_value=MagicMock()) as mock_connect:
            get_conn()
            mock_connect.assert_called_once_with(
                "dbname=db user=u host=h port=5432",
                password="from-env",
            )

    def test_db_password_not_used_when_dsn_has_password(self):
        from innkeeper.infra.db import get_conn

        env = {"DATABASE_URL": "dbname=db user=u password=from-dsn host=h", "DB_PASSWORD": "from-env"}
        with patch.dict(os.environ, env, clear=True), \
             patch("innkeeper.infra.db.psycopg2.connect", return_value=MagicMock()) as mock_connect:
            get_conn()
            mock_connect.assert_called_once_with(
                "dbname=db user=u password=from-dsn host=h",
            )

    def test_db_password_fallback_url_without_password(self):
        from innkeeper.infra.db import get_conn

        env = {"DATABASE_URL": "postgres://u@h/db", "DB_PASSWORD": "from-env"}
        with patch.dict(os.environ, env, clear=True), \
             patch("innkeeper.infra.db.psycopg2.connect", return_value=MagicMock()) as mock_connect:
            get_conn()
            mock_connect.assert_called_once_with(
                "postgres://u@h/db",
                password="from-env",
            )

    def test_db_password_not_used_when_url_has_password(self):
        from innkeeper.infra.db import get_conn

        env = {"DATABASE_URL": "postgres://u:p@h/db", "DB_PASSWORD": "from-env"}
        with patch.dict(os.environ, env, clear=True), \
             patch("innkeeper.infra.db.psycopg2.connect", return_value=MagicMock()) as mock_connect:
            get_conn()
            mock_connect.assert_called_once_with("postgres://u:p@h/db")

    def test_raises_without_database_url(self):
        from innkeeper.infra.db import get_conn

        with pytest.raises(RuntimeError, match="DATABASE_URL"):
            get_conn()


class TestPool:
    def test_open_pool_sizes_from_env(self, monkeypatch):
        from innkeeper.infra.db import open_pool

        monkeypatch.setenv("DATABASE_URL", "postgres://u:p@h/db")
        monkeypatch.setenv("DB_POOL_MIN", "2")
        monkeypatch.setenv("DB_POOL_MAX", "5")
        monkeypatch.setenv("DB_POOL_TIMEOUT", "2.5")
        with patch("innkeeper.infra.db.BlockingConnectionPool") as pool_cls:
            open_pool()

        pool_cls.assert_called_once_with(2, 5, "postgres://u:p@h/db", timeout=2.5)

    def test_open_pool_default_size(self, monkeypatch):
        from innkeeper.infra.db import open_pool

        monkeypatch.setenv("DATABASE_URL", "dbname=db user=u host=h")
        monkeypatch.setenv("DB_PASSWORD", "from-env")
        with patch("innkeeper.infra.db.BlockingConnectionPool") as pool_cls:
            open_pool()

        pool_cls.assert_called_once_with(
            1, 10, "dbname=db user=u host=h", timeout=30.0, password="from-env"
        )

    def test_pooled_txn_commits_and_returns_conn(self):
        from innkeeper.infra.db import pooled_txn

        conn = MagicMock(closed=0)
        pool = MagicMock()
        pool.getconn.return_value = conn

        with pooled_txn(pool) as cur:
            cur.execute("SELECT 1")

        conn.commit.assert_called_once()
        conn.close.assert_not_called()
        pool.putconn.assert_called_once_with(conn, close=False)

    def test_pooled_txn_rolls_back_on_error(self):
        from innkeeper.infra.db import pooled_txn

        conn = MagicMock(closed=0)
        pool = MagicMock()
        pool.getconn.return_value = conn

        with pytest.raises(ValueError):
            with pooled_txn(pool):
                raise ValueError("boom")

        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        pool.putconn.assert_called_once_with(conn, close=False)

    def test_pooled_txn_discards_broken_conn(self):
        from innkeeper.infra.db import pooled_txn

        conn = MagicMock(closed=2)
        pool = MagicMock()
        pool.getconn.return_value = conn

        with pooled_txn(pool):
            pass

        pool.putconn.assert_called_once_with(conn, close=True)


def _fake_connect(*args, **kwargs):
    return MagicMock(closed=0)


class TestBlockingConnectionPool:
    """More borrowers than connections must queue, not fail."""

    def test_borrowers_beyond_maxconn_wait(self):
        from innkeeper.infra.db import BlockingConnectionPool

        with patch("psycopg2.connect", side_effect=_fake_connect):
            pool = BlockingConnectionPool(1, 2, "dbname=db", timeout=5)
            first = pool.getconn()
            second = pool.getconn()
            got_third = threading.Event()

            def borrow():
                conn = pool.getconn()
                got_third.set()
                pool.putconn(conn)

            waiter = threading.Thread(target=borrow)
            waiter.start()

            assert not got_third.wait(0.2)
            pool.putconn(first)
            assert got_third.wait(5)
            waiter.join(5)
            pool.putconn(second)

    def test_concurrent_pooled_txns_all_succeed(self):
        from innkeeper.infra.db import BlockingConnectionPool, pooled_txn

        errors: list[Exception] = []

        with patch("psycopg2.connect", side_effect=_fake_connect):
            pool = BlockingConnectionPool(1, 2, "dbname=db", timeout=5)

            def work():
                try:
                    with pooled_txn(pool) as cur:
                        cur.execute("SELECT 1")
                        time.sleep(0.05)
                except Exception as exc:
                    errors.append(exc)

            workers = [threading.Thread(target=work) for _ in range(6)]
            for w in workers:
                w.start()
            for w in workers:
                w.join(10)

        assert errors == []

    def test_times_out_with_pool_error(self):
        from innkeeper.infra.db import BlockingConnectionPool

        with patch("psycopg2.connect", side_effect=_fake_connect):
            pool = BlockingConnectionPool(1, 1, "dbname=db", timeout=0.05)
            held = pool.getconn()

            with pytest.raises(PoolError, match="timed out"):
                pool.getconn()

            pool.putconn(held)

    def test_failed_connect_frees_the_slot(self):
        from innkeeper.infra.db import BlockingConnectionPool

        with patch("psycopg2.connect", side_effect=_fake_connect):
            pool = BlockingConnectionPool(0, 1, "dbname=db", timeout=0.05)

        with patch("psycopg2.connect", side_effect=psycopg2.OperationalError("refused")):
            with pytest.raises(psycopg2.OperationalError):
                pool.getconn()

        with patch("psycopg2.connect", side_effect=_fake_connect):
            conn = pool.getconn()
            pool.putconn(conn)


_skip_no_db = pytest.mark.skipif(
    not _LIVE_DSN,
    reason="DATABASE_URL not set - skipping DB integration tests",
)


@pytest.fixture
def live_db(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", _LIVE_DSN)


@_skip_no_db
@pytest.mark.usefixtures("live_db")
class TestTxn:
    """Tests for txn() context manager against a live database."""

    def test_commits_on_success(self):
        from innkeeper.infra.db import get_conn, txn

        conn = get_conn()
        try:
            with conn.cursor() as cur:
                cur.execute("CREATE TEMP TABLE test_txn (id serial, val text)")
            conn.commit()

            with txn(conn) as cur:
                cur.execute("INSERT INTO test_txn (val) VALUES (%s)", ("test",))

            with conn.cursor() as cur:
                cur.execute("SELECT val FROM test_txn")
                assert cur.fetchone()[0] == "test"
        finally:
            conn.close()

    def test_rollback_on_exception(self):
        from innkeeper.infra.db import get_conn, txn

        conn = get_conn()
        try:
            with conn.cursor() as cur:
                cur.execute("CREATE TEMP TABLE test_rollback (id serial, val text)")
            conn.commit()

            with pytest.raises(ValueError):
                with txn(conn) as cur:
                    cur.execute("INSERT INTO test_rollback (val) VALUES (%s)", ("bad",))
                    raise ValueError("rollback test")

            with conn.cursor() as cur:
                cur.execute("SELECT count(*) FROM test_rollback")
                assert cur.fetchone()[0] == 0
        finally:
            conn.close()

    def test_creates_conn_if_none(self):
        from innkeeper.infra.db import txn

        with txn() as cur:
            cur.execute("SELECT 1")
            assert cur.fetchone()[0] == 1


@_skip_no_db
@pytest.mark.usefixtures("live_db")
class TestPooledTxnLive:
    def test_round_trip_through_pool(self):
        from innkeeper.infra.db import close_pool, open_pool, pooled_txn

        pool = open_pool()
        try:
            with pooled_txn(pool) as cur:
                cur.execute("SELECT %s::text", ("hello",))
                assert cur.fetchone()[0] == "hello"
        finally:
            close_pool(pool)

"""Postgres connection pool, transactions and schema bootstrap."""
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg2
from psycopg2.extensions import connection as PgConnection
from psycopg2.extras import RealDictCursor
from psycopg2.pool import ThreadedConnectionPool

from linear_reminder.errors import StoreError
from linear_reminder.logging_conf import logger

SCHEMA = """
CREATE TABLE IF NOT EXISTS issues (
    id TEXT PRIMARY KEY,
    created_at TIMESTAMPTZ NOT NULL,
    reminded BOOLEAN NOT NULL DEFAULT FALSE,
    identifier TEXT,
    title TEXT,
    url TEXT
);
CREATE INDEX IF NOT EXISTS issues_unreminded_created_at_idx
    ON issues (created_at) WHERE reminded = FALSE;
"""


class Database:
    """Thread-safe connection pool shared by the webhook handlers and the worker."""

    def __init__(self, dsn: str, minconn: int = 1, maxconn: int = 5, acquire_timeout: float = 30.0):
        self.dsn = dsn
        self.minconn = minconn
        self.maxconn = maxconn
        self.acquire_timeout = acquire_timeout
        self._pool: Optional[ThreadedConnectionPool] = None
        self._lock = threading.Lock()
        # getconn() raises instead of waiting once maxconn are checked out
        self._slots = threading.BoundedSemaphore(maxconn)

    @property
    def pool(self) -> ThreadedConnectionPool:
        """Get or create the connection pool."""
        with self._lock:
            if self._pool is None or self._pool.closed:
                self._pool = ThreadedConnectionPool(self.minconn, self.maxconn, self.dsn)
            return self._pool

    def close(self):
        """Close every pooled connection."""
        with self._lock:
            if self._pool is not None and not self._pool.closed:
                self._pool.closeall()
            self._pool = None

    def acquire(self) -> PgConnection:
        """
        Check a connection out of the pool, waiting for a free one. Pair with release().

        Raises:
            StoreError if no connection frees up within acquire_timeout, or the
            connection cannot be opened
        """
        if not self._slots.acquire(timeout=self.acquire_timeout):
            raise StoreError(
                f"Timed out after {self.acquire_timeout}s waiting for a database connection"
            )
        try:
            return self.pool.getconn()
        except psycopg2.Error as e:
            self._slots.release()
            raise StoreError(f"Could not get a database connection: {e}") from e

    def release(self, conn: PgConnection) -> None:
        """Return a connection, discarding it if it was closed underneath us."""
        try:
            if self._pool is not None and not self._pool.closed:
                self._pool.putconn(conn, close=bool(conn.closed))
        finally:
            self._slots.release()

    @contextmanager
    def transaction(self) -> Iterator[RealDictCursor]:
        """Run the block in one transaction; commit on success, roll back on error."""
        conn = self.acquire()
        try:
            cur = conn.cursor(cursor_factory=RealDictCursor)
        except psycopg2.Error as e:
            self.release(conn)
            raise StoreError(f"Could not open a cursor: {e}") from e
        try:
            yield cur
            conn.commit()
        except psycopg2.Error as e:
            safe_rollback(conn)
            raise StoreError(str(e).strip() or e.__class__.__name__) from e
        except BaseException:
            safe_rollback(conn)
            raise
        finally:
            cur.close()
            self.release(conn)

    def run_migrations(self) -> None:
        """Create the issues table and its claim index if missing."""
        with self.transaction() as cur:
            cur.execute(SCHEMA)
        logger.info("Ran database migrations")


def safe_rollback(conn: PgConnection) -> None:
    # A dropped connection cannot roll back; Postgres aborts the transaction itself
    if conn.closed:
        return
    try:
        conn.rollback()
    except psycopg2.Error as e:
        logger.warning(f"Rollback failed: {e}")

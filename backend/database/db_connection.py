"""
PostgreSQL connection helper.

`Database` owns a thread-safe connection pool for the lifetime of the
process; `get_db()` hands route code a pooled connection from the current
Flask app.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from flask import current_app
from psycopg2.extensions import connection as PgConnection
from psycopg2.extras import DictCursor
from psycopg2.pool import ThreadedConnectionPool

logger = logging.getLogger(__name__)

EXTENSION_KEY = "database"

# How long a request waits for a free pooled connection before failing.
POOL_WAIT_SECONDS = 30


class Database:
    """
    Lazily-opened pool of psycopg2 connections.

    The pool is created on first use, so an app can be built (and tested)
    without a reachable server. Rows come back through DictCursor
    (e.g. {"user_id": ..., "email": "..."}).

    At most `maxconn` connections are lent out at once. Further callers wait
    for one to be returned (up to POOL_WAIT_SECONDS) instead of getting an
    immediate PoolError, so bursts beyond the pool size queue up.
    """

    def __init__(self, dsn: Optional[str], minconn: int = 1, maxconn: int = 10):
        self._dsn = dsn
        self._minconn = minconn
        self._maxconn = maxconn
        self._pool: Optional[ThreadedConnectionPool] = None
        self._lock = threading.Lock()
        self._slots = threading.BoundedSemaphore(maxconn)

    def _get_pool(self) -> ThreadedConnectionPool:
        with self._lock:
            if self._pool is None:
                if not self._dsn:
                    raise RuntimeError("DATABASE_URL is not set. Please set the environment variable.")
                self._pool = ThreadedConnectionPool(
                    self._minconn, self._maxconn, self._dsn, cursor_factory=DictCursor
                )
                logger.info("[Database] Connection pool opened (max %d)", self._maxconn)
            return self._pool

    @contextmanager
    def connection(self) -> Iterator[PgConnection]:
        """
        Borrow a connection for one unit of work.

        The transaction is committed when the block exits normally and rolled
        back if it raises; the connection then goes back to the pool.

        Usage:
            with db.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(...)
        """
        if not self._slots.acquire(timeout=POOL_WAIT_SECONDS):
            raise RuntimeError("Timed out waiting for a database connection")
        try:
            pool = self._get_pool()
            conn = pool.getconn()
            try:
                with conn:
                    yield conn
            finally:
                pool.putconn(conn, close=bool(conn.closed))
        finally:
            self._slots.release()

    def close(self) -> None:
        with self._lock:
            if self._pool is not None:
                self._pool.closeall()
                self._pool = None
                logger.info("[Database] Connection pool closed")


def get_db():
    """
    Returns a pooled connection context for the current app.

    Usage:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(...)
    """
    return current_app.extensions[EXTENSION_KEY].connection()

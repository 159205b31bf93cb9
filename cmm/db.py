from __future__ import annotations

import threading
from enum import Enum
from typing import Any, Callable

import psycopg

from .errors import ConnectCancelled
from .logs import get_logger
from .settings import CITUS_PORT, DatabaseTarget


log = get_logger(__name__)

ADD_NODE_SQL = "SELECT master_add_node(%s, %s)"
DELETE_PLACEMENTS_SQL = """
    DELETE FROM pg_dist_placement WHERE groupid = (
        SELECT groupid FROM pg_dist_node
        WHERE nodename = %s AND nodeport = %s LIMIT 1
    )
"""
REMOVE_NODE_SQL = "SELECT master_remove_node(%s, %s)"


class ConnState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def backoff_delay(attempt: int, interval_s: float) -> float:
    """Seconds to wait after failed attempt number `attempt`.

    The coordinator is the only peer, so the delay is fixed and attempts are unbounded.
    """
    return max(0.0, float(interval_s))


class ConnectionManager:
    """Owns the single connection to the Citus coordinator.

    `connect()` retries until the coordinator accepts the connection; it never
    raises for connectivity errors and only gives up after `cancel()`. The
    returned connection is paired with a watcher thread that logs server
    notices and reports a lost connection once psycopg has marked it closed.
    psycopg only notices a dead socket when an operation on it fails, so a
    connection that drops while idle is reported after the next statement
    fails, not when it drops. The watcher never sends anything itself. A
    broken connection is not replaced: later statements fail and the caller
    logs them.
    """

    def __init__(
        self,
        target: DatabaseTarget,
        *,
        retry_interval_s: float = 1.0,
        watch_interval_s: float = 5.0,
        connect_fn: Callable[..., Any] | None = None,
        sleep: Callable[[float], Any] | None = None,
    ):
        self.target = target
        self.retry_interval_s = retry_interval_s
        self.watch_interval_s = watch_interval_s
        self.state = ConnState.DISCONNECTED
        self.attempts = 0
        self.conn: psycopg.Connection | None = None
        self._connect_fn = connect_fn or psycopg.connect
        self._stop = threading.Event()
        self._cancelled = threading.Event()
        self._sleep = sleep or self._cancelled.wait
        self._watcher: threading.Thread | None = None

    def connect(self) -> psycopg.Connection:
        while True:
            if self._cancelled.is_set():
                self.state = ConnState.DISCONNECTED
                raise ConnectCancelled(f"gave up connecting to {self.target.host} on shutdown")
            self.attempts += 1
            self.state = ConnState.CONNECTING
            log.debug("connecting to coordinator", host=self.target.host, attempt=self.attempts)
            try:
                conn = self._connect_fn(self.target.conninfo(), autocommit=True)
            except (psycopg.Error, OSError) as e:
                self.state = ConnState.DISCONNECTED
                delay = backoff_delay(self.attempts, self.retry_interval_s)
                log.warning(
                    "could not connect to coordinator, retrying",
                    host=self.target.host,
                    attempt=self.attempts,
                    retry_in_s=delay,
                    error=str(e),
                )
                self._sleep(delay)
                continue

            self.conn = conn
            self.state = ConnState.CONNECTED
            conn.add_notice_handler(self._log_notice)
            self._start_watcher(conn)
            log.info("connected to coordinator", host=self.target.host, attempts=self.attempts)
            return conn

    def cancel(self) -> None:
        """Abort a pending `connect()` at its next attempt; used on shutdown."""
        self._cancelled.set()

    def close(self) -> None:
        self._cancelled.set()
        self._stop.set()
        if self._watcher and self._watcher.is_alive() and self._watcher is not threading.current_thread():
            self._watcher.join(timeout=self.watch_interval_s)
        if self.conn is not None and not self.conn.closed:
            self.conn.close()
        self.conn = None
        self.state = ConnState.DISCONNECTED

    def _start_watcher(self, conn: psycopg.Connection) -> None:
        self._stop.clear()
        self._watcher = threading.Thread(target=self._watch, args=(conn,), name="cmm-db-watcher", daemon=True)
        self._watcher.start()

    def _watch(self, conn: psycopg.Connection) -> None:
        try:
            while not self._stop.wait(self.watch_interval_s):
                if conn.closed:
                    self.state = ConnState.DISCONNECTED
                    log.error("connection to coordinator lost", host=self.target.host)
                    return
        except Exception:
            log.exception("connection watcher failed", host=self.target.host)

    def _log_notice(self, diag: Any) -> None:
        log.info("coordinator notice", severity=diag.severity, message=diag.message_primary)


def add_node(conn: psycopg.Connection, host: str, port: int = CITUS_PORT) -> None:
    conn.execute(ADD_NODE_SQL, (host, port))


def remove_node(conn: psycopg.Connection, host: str, port: int = CITUS_PORT) -> None:
    """Delete the node's placements and deregister it in one transaction.

    Citus refuses to remove a node that still has placements, so the delete
    has to run first. Removing an unknown node deletes zero placement rows.
    """
    with conn.transaction():
        conn.execute(DELETE_PLACEMENTS_SQL, (host, port))
        conn.execute(REMOVE_NODE_SQL, (host, port))

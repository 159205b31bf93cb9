from __future__ import annotations

import threading
from collections import Counter
from typing import Any, Iterable

import psycopg

from .db import add_node, remove_node
from .docker_ops import iter_events
from .errors import SubscriptionError
from .events import Ignored, LifecycleEvent, WorkerDestroyed, WorkerHealthy, decode_event
from .logs import get_logger
from .settings import CITUS_PORT


log = get_logger(__name__)


class MembershipReconciler:
    """Applies worker lifecycle events to the coordinator's node table.

    Events are handled one at a time in arrival order over the single owned
    connection. There is no local view of which workers are registered; the
    coordinator's `pg_dist_node` is the only membership state.
    """

    def __init__(self, conn: psycopg.Connection, *, node_port: int = CITUS_PORT):
        self.conn = conn
        self.node_port = node_port
        self.counts: Counter[str] = Counter()
        self._stop = threading.Event()
        self._stream: Any = None

    def handle(self, event: LifecycleEvent) -> str:
        """Apply one event. Returns "added", "removed", "ignored" or "failed".

        SQL errors are logged and reported as "failed"; they never stop the loop.
        """
        if isinstance(event, Ignored):
            log.debug("ignoring event", action=event.action, reason=event.reason)
            return self._count("ignored")

        try:
            if isinstance(event, WorkerHealthy):
                log.info("adding node", worker=event.name, port=self.node_port)
                add_node(self.conn, event.name, self.node_port)
                return self._count("added")
            if isinstance(event, WorkerDestroyed):
                log.info("removing node", worker=event.name, port=self.node_port)
                remove_node(self.conn, event.name, self.node_port)
                return self._count("removed")
        except psycopg.Error as e:
            log.error(
                "error processing event",
                action=type(event).__name__,
                worker=event.name,
                error=str(e).strip(),
            )
            return self._count("failed")

        raise TypeError(f"unexpected event type: {type(event).__name__}")

    def run(self, stream: Iterable[dict[str, Any]]) -> None:
        """Consume `stream` until `stop()` is called.

        A stop request is honoured between events only; an event that is being
        applied finishes first. docker-py ends a stream whose connection broke
        as if it were exhausted, so any end without a stop request raises
        `SubscriptionError`, as do transport errors that do reach us.
        """
        self._stream = stream
        if self._stop.is_set():
            self._close_stream()
            return

        try:
            for raw in iter_events(stream):
                if self._stop.is_set():
                    break
                self.handle(decode_event(raw))
        except Exception:
            if self._stop.is_set():
                log.debug("event stream closed for shutdown")
                return
            raise

        if not self._stop.is_set():
            raise SubscriptionError("event stream ended unexpectedly")

    def stop(self) -> None:
        self._stop.set()
        self._close_stream()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def _close_stream(self) -> None:
        close = getattr(self._stream, "close", None)
        if close is None:
            return
        try:
            close()
        except Exception as e:
            log.debug("error closing event stream", error=str(e))

    def _count(self, outcome: str) -> str:
        self.counts[outcome] += 1
        return outcome

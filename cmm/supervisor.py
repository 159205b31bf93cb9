from __future__ import annotations

import os
import signal
import threading
from typing import Any

import docker

from .db import ConnectionManager
from .docker_ops import build_event_filters, client_from_env, resolve_compose_project, subscribe
from .errors import ConfigError, SubscriptionError
from .logs import configure_logging, get_logger
from .readiness import ReadinessMarker
from .reconciler import MembershipReconciler
from .settings import DEFAULT_HEALTHCHECK_FILE, Settings, load_settings


log = get_logger(__name__)

SHUTDOWN_POLL_S = 0.2


class Supervisor:
    """Runs the reconciliation pipeline and races it against a shutdown signal.

    The pipeline runs on a worker thread; the calling thread only waits for
    either the pipeline to finish or a shutdown request, then picks the exit status.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        docker_client: docker.DockerClient | None = None,
        manager: ConnectionManager | None = None,
        marker: ReadinessMarker | None = None,
    ):
        self.settings = settings
        self.docker_client = docker_client
        self.manager = manager or ConnectionManager(
            settings.database_target(),
            retry_interval_s=settings.retry_interval_s,
        )
        self.marker = marker or ReadinessMarker(settings.healthcheck_file)
        self.reconciler: MembershipReconciler | None = None
        self.error: Exception | None = None
        # Plain flag: the signal handler must not take any lock.
        self.shutdown_requested = False
        self._wake = threading.Event()
        self._worker: threading.Thread | None = None

    def run_pipeline(self) -> None:
        """connect -> find compose project -> subscribe -> mark ready -> reconcile."""
        if self.docker_client is None:
            self.docker_client = client_from_env()
        client = self.docker_client

        conn = self.manager.connect()
        if self.shutdown_requested:
            return

        project = resolve_compose_project(client, self.settings.hostname)
        stream = subscribe(client, build_event_filters(project))

        reconciler = MembershipReconciler(conn, node_port=self.settings.node_port)
        self.reconciler = reconciler
        if self.shutdown_requested:
            reconciler.stop()
            stream.close()
            return
        self.marker.mark_ready()
        try:
            reconciler.run(stream)
        finally:
            reconciler.stop()

    def run(self) -> int:
        self._worker = threading.Thread(target=self._run_worker, name="cmm-reconciler", daemon=True)
        self._worker.start()
        while not self.shutdown_requested and not self._wake.wait(timeout=SHUTDOWN_POLL_S):
            pass

        if self.shutdown_requested:
            log.info("shutting down")
            self.manager.cancel()
            if self.reconciler is not None:
                self.reconciler.stop()
            self._worker.join(timeout=self.settings.shutdown_grace_s)
            if self._worker.is_alive():
                log.warning("reconciler still busy, exiting anyway", grace_s=self.settings.shutdown_grace_s)
            return 0

        self._worker.join(timeout=self.settings.shutdown_grace_s)
        if self.error is None:
            # run_pipeline only returns on its own once shutdown was requested.
            self.error = SubscriptionError("event pipeline finished without a shutdown request")
        log.error("fatal error", error=str(self.error), exc_info=self.error)
        return 1

    def request_shutdown(self, signum: int | None = None, frame: Any = None) -> None:
        self.shutdown_requested = True

    def install_signal_handlers(self) -> None:
        signal.signal(signal.SIGINT, self.request_shutdown)
        signal.signal(signal.SIGTERM, self.request_shutdown)

    def close(self) -> None:
        if self._worker is None or not self._worker.is_alive():
            self.manager.close()
        if self.docker_client is not None:
            self.docker_client.close()

    def _run_worker(self) -> None:
        try:
            self.run_pipeline()
        except Exception as e:
            self.error = e
        finally:
            self._wake.set()


def main() -> int:
    try:
        settings = load_settings()
    except ConfigError as e:
        configure_logging()
        ReadinessMarker(os.environ.get("CMM_HEALTHCHECK_FILE") or DEFAULT_HEALTHCHECK_FILE).clear()
        log.error("invalid configuration", error=str(e))
        return 1

    configure_logging(level=settings.log_level, json=settings.log_json)
    # A marker left over from a previous run must not report us ready.
    marker = ReadinessMarker(settings.healthcheck_file)
    marker.clear()
    log.info("starting", coordinator=settings.citus_host, container=settings.hostname)

    supervisor = Supervisor(settings, marker=marker)
    supervisor.install_signal_handlers()
    try:
        return supervisor.run()
    finally:
        supervisor.close()

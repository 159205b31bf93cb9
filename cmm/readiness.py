from __future__ import annotations

import os

from .logs import get_logger
from .settings import DEFAULT_HEALTHCHECK_FILE


log = get_logger(__name__)


class ReadinessMarker:
    """Empty file whose existence tells the container healthcheck we are listening.

    The image's HEALTHCHECK is just `test -f <path>`.
    """

    def __init__(self, path: str = DEFAULT_HEALTHCHECK_FILE):
        self.path = os.path.abspath(path)

    def clear(self) -> None:
        try:
            os.remove(self.path)
        except FileNotFoundError:
            return
        except OSError as e:
            log.debug("could not remove readiness marker", path=self.path, error=str(e))
            return
        log.debug("removed stale readiness marker", path=self.path)

    def mark_ready(self) -> None:
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(self.path, "a"):
            pass
        log.info("ready", marker=self.path)

    def is_ready(self) -> bool:
        return os.path.isfile(self.path)

from __future__ import annotations

from typing import Any, Iterable, Iterator

import docker
from docker.errors import DockerException, NotFound
from requests.exceptions import RequestException
from urllib3.exceptions import HTTPError as Urllib3HTTPError

from .errors import MissingMetadata, SubscriptionError
from .events import DESTROY_ACTION, HEALTHY_ACTION
from .logs import get_logger


log = get_logger(__name__)

COMPOSE_PROJECT_LABEL = "com.docker.compose.project"
WORKER_ROLE_LABEL = "com.citusdata.role=Worker"


def client_from_env() -> docker.DockerClient:
    return docker.from_env()


def resolve_compose_project(client: docker.DockerClient, container_id: str) -> str:
    """Return the Compose project this sidecar's own container belongs to.

    `container_id` is the container's hostname, which Docker sets to the short id
    unless the Compose file overrides it with the container name.
    """
    try:
        container = client.containers.get(container_id)
    except NotFound:
        raise MissingMetadata(f"Could not find own container {container_id!r}") from None

    labels = container.labels or {}
    project = labels.get(COMPOSE_PROJECT_LABEL)
    if not project:
        raise MissingMetadata(f"Could not find Compose project label on container {container_id!r}")

    log.info("found compose project", project=project)
    return project


def build_event_filters(project: str) -> dict[str, list[str]]:
    """Only health/destroy events of Citus workers in our own Compose project."""
    return {
        "event": [HEALTHY_ACTION, DESTROY_ACTION],
        "label": [f"{COMPOSE_PROJECT_LABEL}={project}", WORKER_ROLE_LABEL],
        "type": ["container"],
    }


def subscribe(client: docker.DockerClient, filters: dict[str, list[str]]) -> Any:
    """Open the live event stream; the result can be `close()`d from another thread."""
    try:
        stream = client.events(filters=filters, decode=True)
    except DockerException as e:
        raise SubscriptionError(f"Could not subscribe to docker events: {e}") from e
    log.info("listening for events", filters=filters)
    return stream


def iter_events(stream: Iterable[dict[str, Any]]) -> Iterator[dict[str, Any]]:
    """Yield raw events, turning transport failures into `SubscriptionError`.

    docker-py's stream swallows a dropped connection and simply stops, so an
    end of iteration here does not mean the daemon closed the stream cleanly.
    """
    it = iter(stream)
    while True:
        try:
            raw = next(it)
        except StopIteration:
            return
        except (DockerException, RequestException, Urllib3HTTPError, OSError, ValueError) as e:
            raise SubscriptionError(f"Error receiving event: {e}") from e
        yield raw

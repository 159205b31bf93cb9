from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError


HEALTHY_ACTION = "health_status: healthy"
DESTROY_ACTION = "destroy"


class EventActor(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str | None = Field(None, alias="ID")
    attributes: dict[str, str] | None = Field(None, alias="Attributes")


class RawEvent(BaseModel):
    """Docker engine event as yielded by `DockerClient.events(decode=True)`."""

    model_config = ConfigDict(populate_by_name=True)

    type: str | None = Field(None, alias="Type")
    action: str | None = Field(None, alias="Action")
    actor: EventActor | None = Field(None, alias="Actor")


@dataclass(frozen=True)
class WorkerHealthy:
    name: str


@dataclass(frozen=True)
class WorkerDestroyed:
    name: str


@dataclass(frozen=True)
class Ignored:
    action: str | None
    reason: str


LifecycleEvent = Union[WorkerHealthy, WorkerDestroyed, Ignored]


def decode_event(raw: Mapping[str, Any]) -> LifecycleEvent:
    """Turn a raw engine event into one of the handled cases.

    Anything without an action or a worker name is `Ignored`; malformed
    payloads are ignored too rather than treated as stream errors.
    """
    try:
        ev = RawEvent.model_validate(raw)
    except ValidationError as e:
        return Ignored(action=None, reason=f"malformed event: {e.error_count()} validation error(s)")

    if not ev.action:
        return Ignored(action=None, reason="missing action")

    name = (ev.actor.attributes or {}).get("name") if ev.actor else None
    if not name:
        return Ignored(action=ev.action, reason="missing worker name")

    if ev.action == HEALTHY_ACTION:
        return WorkerHealthy(name=name)
    if ev.action == DESTROY_ACTION:
        return WorkerDestroyed(name=name)
    return Ignored(action=ev.action, reason="unhandled action")

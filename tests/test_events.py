import pytest

from cmm.events import Ignored, WorkerDestroyed, WorkerHealthy, decode_event
from tests.fakes import docker_event


def test_healthy_event():
    assert decode_event(docker_event("health_status: healthy", "worker-1")) == WorkerHealthy("worker-1")


def test_destroy_event():
    assert decode_event(docker_event("destroy", "worker-1", image="citusdata/citus")) == WorkerDestroyed("worker-1")


def test_other_actions_are_ignored():
    ev = decode_event(docker_event("pause", "worker-1"))
    assert isinstance(ev, Ignored)
    assert ev.action == "pause"


@pytest.mark.parametrize(
    "raw",
    [
        {"Type": "container", "Actor": {"Attributes": {"name": "worker-1"}}},
        {"Type": "container", "Action": "", "Actor": {"Attributes": {"name": "worker-1"}}},
        {"Type": "container", "Action": "destroy"},
        {"Type": "container", "Action": "destroy", "Actor": {"ID": "x"}},
        {"Type": "container", "Action": "destroy", "Actor": {"Attributes": {"image": "citus"}}},
        {"Type": "container", "Action": "destroy", "Actor": {"Attributes": {"name": ""}}},
    ],
)
def test_missing_action_or_name_is_ignored(raw):
    assert isinstance(decode_event(raw), Ignored)


def test_malformed_payload_is_ignored():
    ev = decode_event({"Action": "destroy", "Actor": {"Attributes": ["not", "a", "mapping"]}})
    assert isinstance(ev, Ignored)
    assert "malformed" in ev.reason

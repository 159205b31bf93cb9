import sys

import pytest


# Ensure project root is importable (so `import cmm` works without installing the package)
import os as _os
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from tests.fakes import FakeConnection  # noqa: E402


@pytest.fixture
def fake_conn():
    return FakeConnection()


@pytest.fixture
def compose_labels():
    return {"com.docker.compose.project": "citus", "com.docker.compose.service": "manager"}

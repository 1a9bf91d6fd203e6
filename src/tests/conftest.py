import os
import sys
import tempfile
from pathlib import Path

import pytest

# Ensure project src directory is on sys.path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# keep settings, logs and saved connections out of the real home directory
os.environ.setdefault("SCHEMANAV_HOME", tempfile.mkdtemp(prefix="schemanav-tests-"))

from db.connection import ConnectionManager


class FakeLauncher:
    """Records fetch requests; tests complete them explicitly via succeed()/fail()."""

    def __init__(self):
        self.calls = []

    def __call__(self, payload, on_success, on_failure):
        self.calls.append((payload, on_success, on_failure))

    def succeed(self, response, index=-1):
        self.calls[index][1](response)

    def fail(self, message, index=-1):
        self.calls[index][2](message)


@pytest.fixture
def registry(tmp_path):
    return ConnectionManager(config_path=tmp_path / "connections.json")


@pytest.fixture
def launcher():
    return FakeLauncher()


@pytest.fixture
def conn(registry):
    return registry.add_connection("C1", "sqlite", database=":memory:")

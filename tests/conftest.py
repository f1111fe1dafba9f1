"""
Pytest configuration and fixtures for lambdakit tests.
"""

import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

# Add the repository root to path for imports
# This allows `from lambdakit.pipeline import ...` to work
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from lambdakit.config import AdapterSettings  # noqa: E402


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock():
    """Clock starting at 1000ms."""
    return FakeClock()


@pytest.fixture
def settings():
    """Default adapter settings, independent of LAMBDAKIT_* variables."""
    return AdapterSettings()


@pytest.fixture
def environment():
    """Fixed environment collaborator."""
    return lambda: {"STAGE": "test", "TABLE_NAME": "orders"}


@pytest.fixture
def sample_event():
    """Sample API Gateway style event."""
    return {"pathParameters": {"id": "order-42"}, "httpMethod": "GET"}


@pytest.fixture
def sample_meta():
    """Sample invocation metadata, shaped like a Lambda context object."""
    return SimpleNamespace(
        aws_request_id="c6af9ac6-7b61-11e6-9a41-93e812345678",
        function_name="orders-api",
        memory_limit_in_mb=128,
    )

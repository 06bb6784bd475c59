"""
Pytest Configuration and Fixtures

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-19
"""

import sys
import tempfile
from pathlib import Path
from typing import Callable, Generator, List

import httpx
import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from roachagram_core.device_identity import DeviceIdentityStore
from roachagram_core.secrets_vault import InMemoryVault
from roachagram_core.telemetry import TelemetryEvent, TelemetryKind


class RecordingSink:
    """Telemetry sink that keeps events in memory."""

    def __init__(self):
        self.events: List[TelemetryEvent] = []

    def emit(self, event: TelemetryEvent) -> None:
        self.events.append(event)

    def of_kind(self, kind: TelemetryKind) -> List[TelemetryEvent]:
        return [e for e in self.events if e.kind == kind]


class RecordingSleep:
    """Awaitable sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)

    @property
    def total(self) -> float:
        return sum(self.delays)


class FakeBackend:
    """
    httpx MockTransport handler with scripted responses.

    Each scripted item is a status code, an httpx.Response or an exception
    instance; the last item repeats once the script is exhausted.
    """

    def __init__(self, *script):
        self.script = list(script) or [200]
        self.requests: List[httpx.Request] = []
        self.body = "**roach** is an anagram of \"ocrah\""

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self.script)) - 1
        item = self.script[index]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, httpx.Response):
            return item
        return httpx.Response(item, text=self.body if item == 200 else "error")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def memory_vault() -> InMemoryVault:
    return InMemoryVault()


@pytest.fixture
def identity_store(memory_vault, sink) -> DeviceIdentityStore:
    return DeviceIdentityStore(memory_vault, telemetry=sink)


@pytest.fixture
def backend_factory() -> Callable[..., FakeBackend]:
    return FakeBackend


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep ROACHAGRAM_* variables from the host out of the tests."""
    for name in (
        "ROACHAGRAM_API_BASE_URL",
        "ROACHAGRAM_THEME",
        "ROACHAGRAM_PROGRESSIVE",
        "ROACHAGRAM_VAULT_PATH",
        "ROACHAGRAM_TELEMETRY",
        "ROACHAGRAM_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)

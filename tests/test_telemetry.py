"""
Tests for Telemetry

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-19
"""

import asyncio
import json
import threading

import httpx
import pytest

from roachagram_core.errors import StorageFailure
from roachagram_core.telemetry import (
    ExceptionSnapshot,
    NullTelemetrySink,
    RemoteTelemetrySink,
    TelemetryEvent,
    TelemetryKind,
)


def raise_storage_failure():
    raise StorageFailure("disk gone")


class Collector:
    """MockTransport handler that records posted payloads."""

    def __init__(self, status: int = 204):
        self.status = status
        self.payloads = []
        self.urls = []
        self._lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.urls.append(str(request.url))
            self.payloads.append(json.loads(request.content))
        return httpx.Response(self.status)


class TestExceptionSnapshot:
    """Tests for exception capture."""

    def test_raised_exception(self):
        try:
            raise_storage_failure()
        except StorageFailure as e:
            snapshot = ExceptionSnapshot.from_exception(e)

        assert snapshot.type_name == "roachagram_core.errors.StorageFailure"
        assert snapshot.message == "disk gone"
        assert "raise_storage_failure" in snapshot.stack_trace
        assert snapshot.origin_method == "raise_storage_failure"
        assert snapshot.source == __name__.split(".")[0]

    def test_unraised_exception(self):
        snapshot = ExceptionSnapshot.from_exception(ValueError("never raised"))
        assert snapshot.type_name == "builtins.ValueError"
        assert snapshot.stack_trace is None
        assert snapshot.origin_method is None

    def test_wire_keys(self):
        data = ExceptionSnapshot("T", "m", "st", "src", "fn").to_dict()
        assert data == {
            "type": "T",
            "message": "m",
            "stackTrace": "st",
            "source": "src",
            "targetSite": "fn",
        }


class TestTelemetryEvent:
    """Tests for event construction and payloads."""

    def test_trace_payload(self):
        event = TelemetryEvent.trace("Submit failed", {"Page": "MainPage", "Attempt": 2})
        assert event.kind == TelemetryKind.TRACE
        assert event.name == "remote trace"
        assert event.to_payload() == {
            "type": "trace",
            "name": "remote trace",
            "message": "Submit failed",
            "properties": {"Page": "MainPage", "Attempt": "2"},
        }

    def test_exception_payload(self):
        event = TelemetryEvent.exception(RuntimeError("boom"), {"Component": "X"})
        payload = event.to_payload()
        assert payload["name"] == "remote exception"
        assert payload["message"] == "boom"
        assert payload["serializedException"]["type"] == "builtins.RuntimeError"

    def test_properties_copied(self):
        props = {"a": "1"}
        event = TelemetryEvent.trace("m", props)
        props["b"] = "2"
        assert event.properties == {"a": "1"}


class TestNullSink:
    def test_discards(self):
        NullTelemetrySink().emit(TelemetryEvent.trace("dropped"))


class TestRemoteTelemetrySink:
    """Tests for remote delivery."""

    @pytest.mark.asyncio
    async def test_delivers_inside_event_loop(self):
        collector = Collector()
        sink = RemoteTelemetrySink("https://api.test/", transport=httpx.MockTransport(collector))

        sink.track_trace("hello", {"Page": "MainPage"})
        await sink.drain(timeout=5)

        assert collector.urls == ["https://api.test/api/telemetry"]
        assert collector.payloads[0]["message"] == "hello"
        assert sink.pending == 0

    @pytest.mark.asyncio
    async def test_emit_does_not_wait_for_delivery(self):
        delivered = asyncio.Event()

        async def slow_handler(request):
            await delivered.wait()
            return httpx.Response(200)

        sink = RemoteTelemetrySink("https://api.test/", transport=httpx.MockTransport(slow_handler))
        sink.track_trace("slow")
        assert sink.pending == 1

        delivered.set()
        await sink.drain(timeout=5)
        assert sink.pending == 0

    @pytest.mark.asyncio
    async def test_failures_are_swallowed(self):
        collector = Collector(status=500)
        sink = RemoteTelemetrySink("https://api.test/", transport=httpx.MockTransport(collector))
        sink.track_exception(ValueError("x"))
        await sink.drain(timeout=5)
        assert len(collector.payloads) == 1

    @pytest.mark.asyncio
    async def test_transport_errors_are_swallowed(self):
        def refuse(request):
            raise httpx.ConnectError("refused")

        sink = RemoteTelemetrySink("https://api.test/", transport=httpx.MockTransport(refuse))
        sink.track_trace("lost")
        await sink.drain(timeout=5)
        assert sink.pending == 0

    def test_delivers_without_event_loop(self):
        collector = Collector()
        sink = RemoteTelemetrySink("https://api.test/", transport=httpx.MockTransport(collector))

        sink.emit(TelemetryEvent.trace("from sync code"))
        asyncio.run(sink.drain(timeout=5))

        assert [p["message"] for p in collector.payloads] == ["from sync code"]
        assert sink.pending == 0

    def test_finished_threads_are_released(self):
        collector = Collector()
        sink = RemoteTelemetrySink("https://api.test/", transport=httpx.MockTransport(collector))

        for i in range(5):
            sink.emit(TelemetryEvent.trace(f"event {i}"))
        for thread in list(sink._threads):
            thread.join(5)

        assert len(collector.payloads) == 5
        assert sink._threads == set()

"""
Telemetry - Fire-and-forget trace and exception events

Events are posted as JSON to {ApiBaseUrl}api/telemetry. Delivery never
blocks, never retries and never raises into the caller: a lost event is
only logged at debug level.

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-19
"""

import asyncio
import logging
import threading
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Protocol, Set
from urllib.parse import urljoin

import httpx

from .errors import TelemetryDeliveryFailure

logger = logging.getLogger(__name__)

TELEMETRY_PATH = "api/telemetry"


class TelemetryKind(str, Enum):
    """Kind of telemetry event."""
    TRACE = "trace"
    EXCEPTION = "exception"


@dataclass
class ExceptionSnapshot:
    """Serializable view of an exception."""
    type_name: str
    message: str
    stack_trace: Optional[str] = None
    source: Optional[str] = None
    origin_method: Optional[str] = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ExceptionSnapshot":
        """
        Capture type, message and origin of an exception.

        source is the top-level package of the module that raised, and
        origin_method the innermost function of the traceback.
        """
        exc_type = type(exc)
        stack_trace = None
        source = None
        origin_method = None

        tb = exc.__traceback__
        if tb is not None:
            stack_trace = "".join(traceback.format_exception(exc_type, exc, tb))
            while tb.tb_next is not None:
                tb = tb.tb_next
            frame = tb.tb_frame
            module = frame.f_globals.get("__name__", "")
            source = module.split(".")[0] or None
            origin_method = frame.f_code.co_name

        return cls(
            type_name=f"{exc_type.__module__}.{exc_type.__qualname__}",
            message=str(exc),
            stack_trace=stack_trace,
            source=source,
            origin_method=origin_method,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type_name,
            "message": self.message,
            "stackTrace": self.stack_trace,
            "source": self.source,
            "targetSite": self.origin_method,
        }


@dataclass
class TelemetryEvent:
    """A trace or exception record."""
    kind: TelemetryKind
    message: str
    properties: Dict[str, str] = field(default_factory=dict)
    exception_snapshot: Optional[ExceptionSnapshot] = None

    @classmethod
    def trace(cls, message: str, properties: Optional[Dict[str, str]] = None) -> "TelemetryEvent":
        return cls(TelemetryKind.TRACE, message, dict(properties or {}))

    @classmethod
    def exception(
        cls,
        exc: BaseException,
        properties: Optional[Dict[str, str]] = None,
    ) -> "TelemetryEvent":
        return cls(
            TelemetryKind.EXCEPTION,
            str(exc),
            dict(properties or {}),
            ExceptionSnapshot.from_exception(exc),
        )

    @property
    def name(self) -> str:
        return f"remote {self.kind.value}"

    def to_payload(self) -> Dict[str, Any]:
        """JSON body for the telemetry endpoint."""
        payload: Dict[str, Any] = {
            "type": self.kind.value,
            "name": self.name,
            "message": self.message,
            "properties": {str(k): str(v) for k, v in self.properties.items()},
        }
        if self.exception_snapshot is not None:
            payload["serializedException"] = self.exception_snapshot.to_dict()
        return payload


class TelemetrySink(Protocol):
    """Anything that accepts telemetry events without blocking."""

    def emit(self, event: TelemetryEvent) -> None:
        ...


class NullTelemetrySink:
    """Discards every event."""

    def emit(self, event: TelemetryEvent) -> None:
        logger.debug(f"Telemetry disabled, dropping {event.kind.value} event")


class RemoteTelemetrySink:
    """
    Posts telemetry events to the remote collector.

    With a running event loop, each delivery is a detached task; otherwise it
    runs on a daemon thread. Either way emit() returns immediately.

    Example:
        sink = RemoteTelemetrySink("https://api.example.com/")
        sink.track_trace("Submit failed", {"Page": "MainPage"})
        await sink.drain()
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize telemetry sink.

        Args:
            base_url: ApiBaseUrl of the backend
            timeout: Per-delivery timeout (seconds)
            transport: Optional httpx transport (tests)
        """
        self.endpoint = urljoin(base_url, TELEMETRY_PATH)
        self.timeout = timeout
        self._transport = transport
        self._pending: Set["asyncio.Task[None]"] = set()
        self._threads: Set[threading.Thread] = set()
        self._threads_lock = threading.Lock()

    def emit(self, event: TelemetryEvent) -> None:
        """Schedule delivery of an event and return immediately."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            task = loop.create_task(self._deliver_quietly(event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            return

        thread = threading.Thread(
            target=self._deliver_in_thread,
            args=(event,),
            name="telemetry-delivery",
            daemon=True,
        )
        with self._threads_lock:
            self._threads.add(thread)
        thread.start()

    def track_trace(self, message: str, properties: Optional[Dict[str, str]] = None) -> None:
        self.emit(TelemetryEvent.trace(message, properties))

    def track_exception(self, exc: BaseException, properties: Optional[Dict[str, str]] = None) -> None:
        self.emit(TelemetryEvent.exception(exc, properties))

    @property
    def pending(self) -> int:
        """Number of deliveries still in flight."""
        with self._threads_lock:
            return len(self._pending) + len(self._threads)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for outstanding deliveries (shutdown, tests)."""
        if self._pending:
            await asyncio.wait(set(self._pending), timeout=timeout)
        with self._threads_lock:
            threads = list(self._threads)
        for thread in threads:
            await asyncio.to_thread(thread.join, timeout)

    def _deliver_in_thread(self, event: TelemetryEvent) -> None:
        try:
            asyncio.run(self._deliver_quietly(event))
        finally:
            with self._threads_lock:
                self._threads.discard(threading.current_thread())

    async def _deliver(self, event: TelemetryEvent) -> None:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(self.endpoint, json=event.to_payload())
        if not response.is_success:
            raise TelemetryDeliveryFailure(
                f"Telemetry endpoint returned {response.status_code}"
            )

    async def _deliver_quietly(self, event: TelemetryEvent) -> None:
        try:
            await self._deliver(event)
        except (TelemetryDeliveryFailure, httpx.HTTPError) as e:
            logger.debug(f"Telemetry delivery failed ({event.kind.value}): {e}")
        except Exception as e:
            logger.debug(f"Unexpected telemetry error ({event.kind.value}): {e}")

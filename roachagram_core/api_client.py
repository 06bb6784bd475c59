"""
Anagram API Client - Resilient access to the Roachagram backend

This module provides the client that:
- Rejects blank input before touching the network
- Tags every request with the X-Device-ID header
- Retries transport errors and non-success statuses with exponential backoff
- Reports retries and final failures to telemetry

Responses are never cached: every submission is a fresh round trip.

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-19
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Optional, Union
from urllib.parse import urljoin

import httpx

from .device_identity import DeviceIdentityStore
from .errors import InvalidInput, PersistentNetworkFailure, TransientNetworkFailure
from .logging_utils import mask_secrets
from .resilience import RetryConfig, SleepFunc, call_with_retry
from .telemetry import NullTelemetrySink, TelemetryEvent, TelemetrySink

logger = logging.getLogger(__name__)

ANAGRAM_PATH = "api/anagram"
DEVICE_ID_HEADER = "X-Device-ID"
MAX_ATTEMPTS = 4
BASE_DELAY_SECONDS = 2.0


@dataclass(frozen=True)
class AnagramRequest:
    """A word or name submitted to the anagram service."""
    raw_input: str

    @property
    def text(self) -> str:
        return (self.raw_input or "").strip()

    @property
    def is_blank(self) -> bool:
        return not self.text


def default_retry_config() -> RetryConfig:
    """Four attempts, waiting 2s, 4s and 8s in between."""
    return RetryConfig(
        max_attempts=MAX_ATTEMPTS,
        base_delay=BASE_DELAY_SECONDS,
        retry_exceptions=(TransientNetworkFailure,),
    )


class ResilientApiClient:
    """
    Client for the anagram endpoint with retries and device identity.

    Example:
        async with ResilientApiClient(base_url, identity_store) as client:
            text = await client.submit("roach")
    """

    def __init__(
        self,
        base_url: str,
        identity_store: DeviceIdentityStore,
        telemetry: Optional[TelemetrySink] = None,
        retry_config: Optional[RetryConfig] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """
        Initialize the client.

        Args:
            base_url: ApiBaseUrl of the backend
            identity_store: Source of the X-Device-ID header
            telemetry: Sink for retry and failure events
            retry_config: Retry policy (4 attempts, 2s exponential by default)
            timeout: Per-attempt HTTP timeout (seconds)
            transport: Optional httpx transport (tests)
            sleep: Awaitable used for backoff delays
        """
        self.base_url = base_url
        self.endpoint = urljoin(base_url, ANAGRAM_PATH)
        self.identity_store = identity_store
        self.telemetry = telemetry or NullTelemetrySink()
        config = retry_config or default_retry_config()
        self._user_on_retry = config.on_retry
        self.retry_config = replace(config, on_retry=self._on_retry)
        self.timeout = timeout
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None
        self._device_id: Optional[str] = None
        self.attempts = 0

    async def __aenter__(self) -> "ResilientApiClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def aclose(self):
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def device_id(self) -> str:
        """Resolve the device identity once; later calls reuse it."""
        if self._device_id is None:
            self._device_id = await asyncio.to_thread(self.identity_store.get_or_create)
        return self._device_id

    async def submit(self, request: Union[AnagramRequest, str]) -> str:
        """
        Fetch the anagram narrative for a word.

        Args:
            request: AnagramRequest or raw input string

        Returns:
            Raw response text

        Raises:
            InvalidInput: Input is blank (no network call is made)
            PersistentNetworkFailure: Every attempt failed
        """
        if not isinstance(request, AnagramRequest):
            request = AnagramRequest(request)
        if request.is_blank:
            raise InvalidInput("Input cannot be null or empty.")

        headers = {DEVICE_ID_HEADER: await self.device_id()}
        params = {"input": request.text}
        self.attempts = 0

        async def fetch_anagram() -> str:
            self.attempts += 1
            return await self._fetch_once(params, headers)

        try:
            text = await call_with_retry(fetch_anagram, self.retry_config, sleep=self._sleep)
        except TransientNetworkFailure as e:
            # Snapshot is taken from the raised failure
            try:
                raise PersistentNetworkFailure(
                    f"Anagram request failed after {self.attempts} attempts: {e}",
                    attempts=self.attempts,
                ) from e
            except PersistentNetworkFailure as failure:
                self.telemetry.emit(TelemetryEvent.exception(
                    failure,
                    {"Endpoint": self.endpoint, "Attempts": str(self.attempts)},
                ))
                raise

        logger.debug(f"Anagram response received after {self.attempts} attempt(s) ({len(text)} chars)")
        return text

    async def _fetch_once(self, params: dict, headers: dict) -> str:
        client = await self._get_client()
        logger.debug(mask_secrets(f"GET {self.endpoint} {DEVICE_ID_HEADER}: {headers[DEVICE_ID_HEADER]}"))
        try:
            response = await client.get(self.endpoint, params=params, headers=headers)
        except httpx.RequestError as e:
            # Transport, decoding and redirect errors alike
            raise TransientNetworkFailure(f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            raise TransientNetworkFailure(
                f"Anagram endpoint returned {response.status_code}",
                status_code=response.status_code,
            )
        return response.text

    def _on_retry(self, attempt: int, delay: float, error: Exception) -> None:
        if self._user_on_retry:
            self._user_on_retry(attempt, delay, error)
        self.telemetry.emit(TelemetryEvent.trace(
            "Retrying anagram request",
            {
                "Attempt": str(attempt),
                "DelaySeconds": f"{delay:g}",
                "Error": str(error),
            },
        ))

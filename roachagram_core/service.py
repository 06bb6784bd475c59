"""
Anagram Service - Submission flow from user input to renderable document

Sanitizes input, calls the API client, runs the text pipeline and builds the
document. A failed request is rendered as a fallback message through the
same pipeline and builder as a successful one.

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-19
"""

import logging
import platform
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Protocol

from .api_client import ResilientApiClient
from .config import RoachagramConfig
from .device_identity import DeviceIdentityStore
from .document import DocumentMode, DocumentTheme, HtmlDocumentBuilder
from .errors import InvalidInput, PersistentNetworkFailure, StorageFailure, TransientNetworkFailure
from .resilience import RetryConfig
from .secrets_vault import SecretProvider, create_vault
from .telemetry import NullTelemetrySink, RemoteTelemetrySink, TelemetryEvent, TelemetrySink
from .text_format import TextTransformPipeline
from .version import __version__

logger = logging.getLogger(__name__)

MAX_INPUT_CHARACTERS = 50
FALLBACK_MESSAGE = "An error occurred while fetching anagrams. Please try again."
NO_CONNECTION_MESSAGE = "No internet connection. Please check your network and try again."

_DISALLOWED_INPUT = re.compile(r"[^a-zA-Z\s]")


class ConnectivityProbe(Protocol):
    """Connectivity state provided by the host environment."""

    @property
    def is_connected(self) -> bool:
        ...


@dataclass
class RenderResult:
    """Outcome of one submission."""
    document: str
    fragment: str
    succeeded: bool
    error: Optional[Exception] = None


def sanitize_input(text: Optional[str]) -> str:
    """Keep English letters and whitespace, truncated to MAX_INPUT_CHARACTERS."""
    cleaned = _DISALLOWED_INPUT.sub("", text or "")
    return cleaned[:MAX_INPUT_CHARACTERS]


def default_properties(handler: str = "render") -> Dict[str, str]:
    """Context properties attached to telemetry raised from a submission."""
    return {
        "Page": "AnagramService",
        "Handler": handler,
        "AppVersion": __version__,
        "DeviceModel": platform.machine() or "unknown",
        "OS": f"{platform.system()} {platform.release()}".strip(),
    }


class AnagramService:
    """
    Turns a submitted word into a RenderableDocument.

    The caller is expected to allow a single submission in flight at a time.

    Example:
        service = build_service(load_config())
        result = await service.render("roach")
        Path("out.html").write_text(result.document)
    """

    def __init__(
        self,
        client: ResilientApiClient,
        pipeline: Optional[TextTransformPipeline] = None,
        builder: Optional[HtmlDocumentBuilder] = None,
        telemetry: Optional[TelemetrySink] = None,
        connectivity: Optional[ConnectivityProbe] = None,
        mode: DocumentMode = DocumentMode.STATIC,
        show_caption: bool = False,
    ):
        self.client = client
        self.pipeline = pipeline or TextTransformPipeline()
        self.builder = builder or HtmlDocumentBuilder()
        self.telemetry = telemetry or NullTelemetrySink()
        self.connectivity = connectivity
        self.mode = DocumentMode(mode)
        self.show_caption = show_caption

    async def render(self, raw_input: str) -> RenderResult:
        """
        Fetch, transform and build the document for raw_input.

        Raises:
            InvalidInput: Input is blank after sanitation
        """
        text = sanitize_input(raw_input)
        if not text.strip():
            raise InvalidInput("Input cannot be null or empty.")

        if self.connectivity is not None and not self.connectivity.is_connected:
            logger.info("Offline, rendering no-connection message")
            fragment = self._transform(NO_CONNECTION_MESSAGE, None)
            return RenderResult(
                document=self.builder.build(fragment, self.mode),
                fragment=fragment,
                succeeded=False,
            )

        try:
            raw = await self.client.submit(text)
        except PersistentNetworkFailure as e:
            logger.warning(f"Anagram request failed: {e}")
            self.telemetry.emit(TelemetryEvent.trace(
                "Anagram request failed, showing fallback message",
                default_properties("render"),
            ))
            fragment = self._transform(FALLBACK_MESSAGE, None)
            return RenderResult(
                document=self.builder.build(fragment, self.mode),
                fragment=fragment,
                succeeded=False,
                error=e,
            )

        fragment = self._transform(raw, text if self.show_caption else None)
        return RenderResult(
            document=self.builder.build(fragment, self.mode),
            fragment=fragment,
            succeeded=True,
        )

    async def aclose(self) -> None:
        """Close the HTTP client and wait for pending telemetry."""
        await self.client.aclose()
        drain = getattr(self.telemetry, "drain", None)
        if drain is not None:
            await drain(timeout=5.0)

    def _transform(self, raw: str, caption: Optional[str]) -> str:
        return self.pipeline.transform(
            raw,
            caption=caption,
            strip_apostrophes=self.mode == DocumentMode.PROGRESSIVE,
        )


# =============================================================================
# Wiring
# =============================================================================

def build_theme(config: RoachagramConfig) -> DocumentTheme:
    """Theme preset from configuration, with per-value overrides."""
    doc = config.document
    base = DocumentTheme.dark() if doc.theme == "dark" else DocumentTheme.light()
    return DocumentTheme.from_dict(
        {
            "background_color": doc.background_color,
            "text_color": doc.text_color,
            "reveal_speed_ms": doc.reveal_speed_ms,
            "font_family": doc.font_family,
        },
        base=base,
    )


def build_vault(config: RoachagramConfig) -> Optional[SecretProvider]:
    """Open the configured vault; None when it cannot be opened."""
    storage = config.storage
    try:
        return create_vault(
            storage.vault_type,
            vault_path=Path(storage.vault_path).expanduser(),
            key_path=Path(storage.key_path).expanduser(),
        )
    except StorageFailure as e:
        logger.warning(f"Secure storage unavailable: {e}")
        return None


def build_service(
    config: RoachagramConfig,
    connectivity: Optional[ConnectivityProbe] = None,
) -> AnagramService:
    """Wire vault, identity store, telemetry, client, pipeline and builder."""
    base_url = config.api.base_url
    telemetry: TelemetrySink
    if config.telemetry.enabled:
        telemetry = RemoteTelemetrySink(base_url, timeout=config.telemetry.timeout)
    else:
        telemetry = NullTelemetrySink()

    identity_store = DeviceIdentityStore(build_vault(config), telemetry=telemetry)
    client = ResilientApiClient(
        base_url,
        identity_store,
        telemetry=telemetry,
        retry_config=RetryConfig(
            max_attempts=config.api.max_attempts,
            base_delay=config.api.base_delay,
            retry_exceptions=(TransientNetworkFailure,),
        ),
        timeout=config.api.timeout,
    )

    return AnagramService(
        client,
        builder=HtmlDocumentBuilder(build_theme(config)),
        telemetry=telemetry,
        connectivity=connectivity,
        mode=DocumentMode.PROGRESSIVE if config.document.progressive else DocumentMode.STATIC,
        show_caption=config.document.show_caption,
    )

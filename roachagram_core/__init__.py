"""
Roachagram Core - Anagram client, text pipeline and document builder

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-19
"""

from .version import __version__

from .errors import (
    RoachagramError,
    ConfigurationError,
    InvalidInput,
    TransientNetworkFailure,
    PersistentNetworkFailure,
    StorageFailure,
    TelemetryDeliveryFailure,
)
from .text_format import (
    TransformStage,
    TextTransformPipeline,
    DEFAULT_STAGES,
    format_api_response,
    title_case_words,
)
from .document import DocumentMode, DocumentTheme, HtmlDocumentBuilder
from .secrets_vault import (
    SecretMetadata,
    SecretProvider,
    InMemoryVault,
    EncryptedFileVault,
    create_vault,
)
from .telemetry import (
    TelemetryKind,
    TelemetryEvent,
    ExceptionSnapshot,
    TelemetrySink,
    NullTelemetrySink,
    RemoteTelemetrySink,
)
from .device_identity import DeviceIdentityStore, DEVICE_UUID_KEY
from .resilience import RetryConfig, calculate_delay, call_with_retry
from .api_client import AnagramRequest, ResilientApiClient, DEVICE_ID_HEADER
from .config import RoachagramConfig, load_config, get_config
from .service import AnagramService, RenderResult, build_service, sanitize_input

__all__ = [
    "__version__",
    "RoachagramError",
    "ConfigurationError",
    "InvalidInput",
    "TransientNetworkFailure",
    "PersistentNetworkFailure",
    "StorageFailure",
    "TelemetryDeliveryFailure",
    "TransformStage",
    "TextTransformPipeline",
    "DEFAULT_STAGES",
    "format_api_response",
    "title_case_words",
    "DocumentMode",
    "DocumentTheme",
    "HtmlDocumentBuilder",
    "SecretMetadata",
    "SecretProvider",
    "InMemoryVault",
    "EncryptedFileVault",
    "create_vault",
    "TelemetryKind",
    "TelemetryEvent",
    "ExceptionSnapshot",
    "TelemetrySink",
    "NullTelemetrySink",
    "RemoteTelemetrySink",
    "DeviceIdentityStore",
    "DEVICE_UUID_KEY",
    "RetryConfig",
    "calculate_delay",
    "call_with_retry",
    "AnagramRequest",
    "ResilientApiClient",
    "DEVICE_ID_HEADER",
    "RoachagramConfig",
    "load_config",
    "get_config",
    "AnagramService",
    "RenderResult",
    "build_service",
    "sanitize_input",
]

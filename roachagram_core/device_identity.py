"""
Device Identity - Stable per-install identifier

The identifier tags outbound requests. It is advisory: when the vault is
unavailable a process-lifetime UUID is used instead and the storage failure
is reported to telemetry, never to the caller.

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-19
"""

import logging
import uuid
from typing import Optional

from .errors import StorageFailure
from .logging_utils import mask_secrets
from .secrets_vault import SecretMetadata, SecretProvider
from .telemetry import TelemetryEvent, TelemetrySink

logger = logging.getLogger(__name__)

DEVICE_UUID_KEY = "device_uuid"


class DeviceIdentityStore:
    """
    Get-or-create access to the device UUID.

    Two first-use calls racing may both generate and persist a UUID; the
    last write wins.

    Example:
        store = DeviceIdentityStore(create_vault("memory"))
        device_id = store.get_or_create()
    """

    def __init__(
        self,
        vault: Optional[SecretProvider],
        telemetry: Optional[TelemetrySink] = None,
    ):
        """
        Initialize the store.

        Args:
            vault: Secure storage; None means storage is unavailable
            telemetry: Sink notified of storage failures
        """
        self.vault = vault
        self.telemetry = telemetry
        self._ephemeral_id: Optional[str] = None

    @property
    def is_ephemeral(self) -> bool:
        """True once the store fell back to a process-lifetime identifier."""
        return self._ephemeral_id is not None

    def get_or_create(self) -> str:
        """Return the persisted device UUID, creating it on first use."""
        if self._ephemeral_id is not None:
            return self._ephemeral_id

        try:
            return self._read_or_persist()
        except StorageFailure as e:
            return self._fall_back(e)

    def _read_or_persist(self) -> str:
        if self.vault is None:
            raise StorageFailure("No secure storage configured")

        try:
            existing = self.vault.get_secret(DEVICE_UUID_KEY)
            if existing:
                return existing

            device_id = str(uuid.uuid4())
            self.vault.set_secret(
                DEVICE_UUID_KEY,
                device_id,
                SecretMetadata(name=DEVICE_UUID_KEY, description="Per-install device identifier"),
            )
        except StorageFailure:
            raise
        except Exception as e:
            # Providers other than the file vault raise their own errors
            raise StorageFailure(f"Secure storage error: {e}") from e

        logger.info(mask_secrets(f"Created device identity {device_id}"))
        return device_id

    def _fall_back(self, failure: StorageFailure) -> str:
        self._ephemeral_id = str(uuid.uuid4())
        logger.warning(f"Device identity storage unavailable, using ephemeral id: {failure}")

        if self.telemetry is not None:
            self.telemetry.emit(
                TelemetryEvent.exception(failure, {"Component": "DeviceIdentityStore"})
            )
        return self._ephemeral_id

"""
Local Secrets Vault - Encrypted per-device storage

Backs the device identity with a small key/value store whose values are
encrypted at rest.

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-19
"""

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from cryptography.fernet import Fernet, InvalidToken

from .errors import StorageFailure

logger = logging.getLogger(__name__)


@dataclass
class SecretMetadata:
    """Metadata for a stored secret."""

    name: str
    description: str = ""
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())
    updated_at: str = field(default_factory=lambda: datetime.now().isoformat())


class SecretProvider(Protocol):
    """Protocol for secret storage backends."""

    def set_secret(self, name: str, value: str, metadata: Optional[SecretMetadata] = None):
        """Store a secret."""
        ...

    def get_secret(self, name: str) -> Optional[str]:
        """Retrieve a secret value."""
        ...

    def delete_secret(self, name: str):
        """Delete a secret."""
        ...

    def list_secrets(self) -> List[str]:
        """List all secret names."""
        ...

    def has_secret(self, name: str) -> bool:
        """Check if secret exists."""
        ...


class InMemoryVault:
    """
    Simple in-memory vault.

    Values live for the process lifetime only. Use for tests and for
    installations that opt out of persistent storage.
    """

    def __init__(self):
        self.secrets: Dict[str, str] = {}
        self.metadata: Dict[str, SecretMetadata] = {}

    def set_secret(self, name: str, value: str, metadata: Optional[SecretMetadata] = None):
        self.secrets[name] = value
        self.metadata[name] = metadata or SecretMetadata(name=name)
        logger.debug(f"Stored secret: {name}")

    def get_secret(self, name: str) -> Optional[str]:
        return self.secrets.get(name)

    def delete_secret(self, name: str):
        self.secrets.pop(name, None)
        self.metadata.pop(name, None)

    def list_secrets(self) -> List[str]:
        return list(self.secrets.keys())

    def has_secret(self, name: str) -> bool:
        return name in self.secrets


class EncryptedFileVault:
    """
    Encrypted file-based vault using Fernet (symmetric encryption).

    Values are encrypted with the master key; the vault file is JSON with
    encrypted values and plain metadata. File and format errors are raised
    as StorageFailure.
    """

    def __init__(self, vault_path: Path, master_key: bytes):
        """
        Initialize encrypted vault.

        Args:
            vault_path: Path to vault file
            master_key: Fernet key (url-safe base64, 32 bytes decoded)
        """
        self.vault_path = Path(vault_path)
        try:
            self._fernet = Fernet(master_key)
        except (ValueError, TypeError) as e:
            raise StorageFailure(f"Invalid vault key: {e}") from e
        self.secrets: Dict[str, str] = {}
        self.metadata: Dict[str, Dict] = {}

        if self.vault_path.exists():
            self._load()

    def set_secret(self, name: str, value: str, metadata: Optional[SecretMetadata] = None):
        """Store an encrypted secret."""
        self.secrets[name] = self._fernet.encrypt(value.encode()).decode()

        now = datetime.now().isoformat()
        previous = self.metadata.get(name, {})
        self.metadata[name] = {
            "name": name,
            "description": metadata.description if metadata else previous.get("description", ""),
            "created_at": previous.get("created_at", now),
            "updated_at": now,
        }

        self._save()
        logger.info(f"Stored encrypted secret: {name}")

    def get_secret(self, name: str) -> Optional[str]:
        """Retrieve and decrypt a secret. Undecryptable values read as absent."""
        if name not in self.secrets:
            return None

        try:
            return self._fernet.decrypt(self.secrets[name].encode()).decode()
        except InvalidToken:
            logger.error(f"Failed to decrypt secret '{name}'")
            return None

    def delete_secret(self, name: str):
        if name in self.secrets:
            del self.secrets[name]
            self.metadata.pop(name, None)
            self._save()
            logger.info(f"Deleted secret: {name}")

    def list_secrets(self) -> List[str]:
        return list(self.secrets.keys())

    def has_secret(self, name: str) -> bool:
        return name in self.secrets

    def get_metadata(self, name: str) -> Optional[Dict]:
        return self.metadata.get(name)

    def _save(self):
        """Save vault to file."""
        data = {"secrets": self.secrets, "metadata": self.metadata}
        try:
            self.vault_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.vault_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            raise StorageFailure(f"Cannot write vault {self.vault_path}: {e}") from e

        logger.debug(f"Saved vault to {self.vault_path}")

    def _load(self):
        """Load vault from file."""
        try:
            with open(self.vault_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise StorageFailure(f"Cannot read vault {self.vault_path}: {e}") from e

        if not isinstance(data, dict):
            raise StorageFailure(f"Malformed vault file: {self.vault_path}")

        self.secrets = data.get("secrets", {})
        self.metadata = data.get("metadata", {})

        logger.debug(f"Loaded vault from {self.vault_path} ({len(self.secrets)} secrets)")


def load_or_create_key(key_path: Path) -> bytes:
    """
    Read the vault key, generating it on first use.

    The key file is created with owner-only permissions.

    Raises:
        StorageFailure: If the key cannot be read or written
    """
    key_path = Path(key_path)
    try:
        if key_path.exists():
            return key_path.read_bytes().strip()

        key = Fernet.generate_key()
        key_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "wb") as f:
            f.write(key)
        logger.info(f"Created vault key: {key_path}")
        return key
    except OSError as e:
        raise StorageFailure(f"Cannot access vault key {key_path}: {e}") from e


def create_vault(
    vault_type: str = "encrypted",
    vault_path: Optional[Path] = None,
    master_key: Optional[bytes] = None,
    key_path: Optional[Path] = None,
) -> SecretProvider:
    """
    Factory function to create a secret vault.

    Args:
        vault_type: 'memory' or 'encrypted'
        vault_path: Path to vault file (for encrypted vault)
        master_key: Fernet key (for encrypted vault)
        key_path: Key file used when master_key is not given

    Returns:
        SecretProvider instance

    Raises:
        ValueError: If vault_type is unknown or arguments are missing
        StorageFailure: If the encrypted vault cannot be opened
    """
    if vault_type == "memory":
        return InMemoryVault()
    elif vault_type == "encrypted":
        if not vault_path:
            raise ValueError("vault_path required for encrypted vault")
        if master_key is None:
            if key_path is None:
                raise ValueError("master_key or key_path required for encrypted vault")
            master_key = load_or_create_key(key_path)
        return EncryptedFileVault(vault_path, master_key)
    else:
        raise ValueError(f"Unknown vault type: {vault_type}")

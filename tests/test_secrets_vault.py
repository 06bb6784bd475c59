"""
Tests for the Local Secrets Vault

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-19
"""

import json
import os
import stat

import pytest
from cryptography.fernet import Fernet

from roachagram_core.errors import StorageFailure
from roachagram_core.secrets_vault import (
    EncryptedFileVault,
    InMemoryVault,
    SecretMetadata,
    create_vault,
    load_or_create_key,
)


class TestInMemoryVault:
    """Tests for InMemoryVault."""

    def test_set_get_delete(self):
        vault = InMemoryVault()
        vault.set_secret("device_uuid", "abc")
        assert vault.get_secret("device_uuid") == "abc"
        assert vault.has_secret("device_uuid")
        assert vault.list_secrets() == ["device_uuid"]

        vault.delete_secret("device_uuid")
        assert vault.get_secret("device_uuid") is None
        assert not vault.has_secret("device_uuid")

    def test_delete_missing_is_noop(self):
        InMemoryVault().delete_secret("nothing")


class TestEncryptedFileVault:
    """Tests for EncryptedFileVault."""

    @pytest.fixture
    def key(self):
        return Fernet.generate_key()

    def test_values_encrypted_at_rest(self, temp_dir, key):
        path = temp_dir / "vault.json"
        vault = EncryptedFileVault(path, key)
        vault.set_secret("device_uuid", "1234-plain", SecretMetadata(name="device_uuid", description="id"))

        raw = path.read_text(encoding="utf-8")
        assert "1234-plain" not in raw
        data = json.loads(raw)
        assert data["metadata"]["device_uuid"]["description"] == "id"

    def test_persists_across_instances(self, temp_dir, key):
        path = temp_dir / "vault.json"
        EncryptedFileVault(path, key).set_secret("device_uuid", "value")
        assert EncryptedFileVault(path, key).get_secret("device_uuid") == "value"

    def test_wrong_key_reads_as_absent(self, temp_dir, key):
        path = temp_dir / "vault.json"
        EncryptedFileVault(path, key).set_secret("device_uuid", "value")
        other = EncryptedFileVault(path, Fernet.generate_key())
        assert other.has_secret("device_uuid")
        assert other.get_secret("device_uuid") is None

    def test_update_keeps_created_at(self, temp_dir, key):
        vault = EncryptedFileVault(temp_dir / "vault.json", key)
        vault.set_secret("k", "v1")
        created = vault.get_metadata("k")["created_at"]
        vault.set_secret("k", "v2")
        assert vault.get_metadata("k")["created_at"] == created
        assert vault.get_secret("k") == "v2"

    def test_delete_persists(self, temp_dir, key):
        path = temp_dir / "vault.json"
        vault = EncryptedFileVault(path, key)
        vault.set_secret("k", "v")
        vault.delete_secret("k")
        assert EncryptedFileVault(path, key).list_secrets() == []

    def test_invalid_key(self, temp_dir):
        with pytest.raises(StorageFailure):
            EncryptedFileVault(temp_dir / "vault.json", b"not-a-fernet-key")

    def test_corrupt_file(self, temp_dir, key):
        path = temp_dir / "vault.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageFailure):
            EncryptedFileVault(path, key)

    def test_non_mapping_root(self, temp_dir, key):
        path = temp_dir / "vault.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(StorageFailure):
            EncryptedFileVault(path, key)

    def test_unwritable_location(self, temp_dir, key):
        blocker = temp_dir / "blocker"
        blocker.write_text("file, not a directory", encoding="utf-8")
        vault = EncryptedFileVault(blocker / "vault.json", key)
        with pytest.raises(StorageFailure):
            vault.set_secret("k", "v")


class TestKeyFile:
    """Tests for load_or_create_key."""

    def test_created_once(self, temp_dir):
        key_path = temp_dir / "keys" / "vault.key"
        first = load_or_create_key(key_path)
        second = load_or_create_key(key_path)
        assert first == second
        Fernet(first)

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
    def test_owner_only_permissions(self, temp_dir):
        key_path = temp_dir / "vault.key"
        load_or_create_key(key_path)
        assert stat.S_IMODE(key_path.stat().st_mode) == 0o600


class TestCreateVault:
    """Tests for the vault factory."""

    def test_memory(self):
        assert isinstance(create_vault("memory"), InMemoryVault)

    def test_encrypted_with_key_file(self, temp_dir):
        vault = create_vault("encrypted", temp_dir / "vault.json", key_path=temp_dir / "vault.key")
        assert isinstance(vault, EncryptedFileVault)
        assert (temp_dir / "vault.key").exists()

    def test_encrypted_requires_path(self):
        with pytest.raises(ValueError):
            create_vault("encrypted")

    def test_encrypted_requires_key(self, temp_dir):
        with pytest.raises(ValueError):
            create_vault("encrypted", temp_dir / "vault.json")

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            create_vault("keyring")

"""
Tests for the encryption gates.
"""

import hashlib

import pytest

from backup_agent.config import Settings
from backup_agent.services.encryption import (
    EncryptionGate,
    ExternalEncryptionGate,
    NoEncryptionGate,
    hash_password,
)
from tests.helpers import write_file


class TestHashPassword:
    def test_sha256_hex(self):
        assert hash_password("secret") == hashlib.sha256(b"secret").hexdigest()

    def test_empty_password_has_no_key(self):
        assert hash_password("") == ""


class TestExternalEncryptionGate:
    def test_should_encrypt_by_extension(self):
        gate = ExternalEncryptionGate("/bin/crypt", [".doc", "PDF"], password="pw")

        assert gate.should_encrypt("/data/a.doc")
        assert gate.should_encrypt("/data/a.PDF")
        assert not gate.should_encrypt("/data/a.txt")

    def test_no_password_means_no_encryption(self):
        gate = ExternalEncryptionGate("/bin/crypt", [".doc"])
        assert not gate.should_encrypt("/data/a.doc")
        assert not gate.is_configured

        gate.set_password("pw")
        assert gate.should_encrypt("/data/a.doc")

    def test_from_settings(self):
        settings = Settings(
            _env_file=None,
            encrypted_extensions=".doc, .xls",
            encryption_password="pw",
            crypto_executable_path="/opt/crypt",
        )
        gate = ExternalEncryptionGate.from_settings(settings)

        assert gate.is_configured
        assert gate.encrypted_extensions == frozenset({".doc", ".xls"})

    @pytest.mark.asyncio
    async def test_missing_executable_reports_failure(self, tmp_path):
        target = write_file(tmp_path / "a.doc")
        gate = ExternalEncryptionGate(str(tmp_path / "no-such-exe"), [".doc"], password="pw")

        assert await gate.encrypt(target) == 0

    @pytest.mark.asyncio
    async def test_missing_file_reports_failure(self, tmp_path):
        gate = ExternalEncryptionGate("/bin/true", [".doc"], password="pw")
        assert await gate.encrypt(tmp_path / "missing.doc") == 0


class TestNoEncryptionGate:
    @pytest.mark.asyncio
    async def test_never_encrypts(self):
        gate = NoEncryptionGate()
        assert not gate.should_encrypt("/data/a.doc")
        assert await gate.encrypt("/data/a.doc") == 0


class TestEncryptionGateContract:
    def test_contract_cannot_be_instantiated(self):
        with pytest.raises(TypeError):
            EncryptionGate()

    def test_incomplete_gate_is_rejected(self):
        class ExtensionOnlyGate(EncryptionGate):
            def should_encrypt(self, path):
                return True

        with pytest.raises(TypeError):
            ExtensionOnlyGate()

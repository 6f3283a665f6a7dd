"""
Tests for config.py - defaults, environment overrides and validation.
"""
import os

import pytest

from solace_vault.config import VaultConfig
from solace_vault.errors import ConfigurationError


class TestVaultConfig:
    """Test configuration defaults and derived values."""

    def test_defaults(self):
        config = VaultConfig(data_dir="/tmp/sv")
        assert config.platform == "native"
        assert config.namespace == "secure_"
        assert config.receipt_namespace == "receipt_"
        assert config.master_key_name == "__secure_master_key__"
        assert config.audit_max_entries == 1000
        assert config.storage_timeout == 5.0
        assert config.dev_mode is False
        assert config.retention_days == 7 * 365
        assert config.expiry_notice_days == 30
        assert config.double_encrypt_crisis is False

    def test_derived_paths(self):
        config = VaultConfig(data_dir="/tmp/sv")
        assert config.secure_db_path == os.path.join("/tmp/sv", "secure.db")
        assert config.store_db_path == os.path.join("/tmp/sv", "store.db")
        assert config.totp_secret_path == os.path.join("/tmp/sv", "totp_secret")

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SOLACE_VAULT_DIR", str(tmp_path))
        monkeypatch.setenv("SOLACE_VAULT_PLATFORM", "web")
        monkeypatch.setenv("SOLACE_VAULT_AUDIT_MAX", "50")
        monkeypatch.setenv("SOLACE_VAULT_TIMEOUT", "1.5")
        monkeypatch.setenv("SOLACE_VAULT_DEV", "true")
        monkeypatch.setenv("SOLACE_VAULT_CONSENT_VERSION", "2.0.0")
        monkeypatch.setenv("SOLACE_VAULT_DOUBLE_CRISIS", "true")

        config = VaultConfig.from_env()
        assert config.data_dir == str(tmp_path)
        assert config.platform == "web"
        assert config.audit_max_entries == 50
        assert config.storage_timeout == 1.5
        assert config.dev_mode is True
        assert config.consent_version == "2.0.0"
        assert config.double_encrypt_crisis is True

    def test_from_env_bad_number(self, monkeypatch):
        monkeypatch.setenv("SOLACE_VAULT_AUDIT_MAX", "lots")
        with pytest.raises(ConfigurationError):
            VaultConfig.from_env()


class TestValidation:
    """Test validate() rejects out-of-range values."""

    def test_valid_config_returns_self(self):
        config = VaultConfig(data_dir="/tmp/sv", platform="memory")
        assert config.validate() is config

    @pytest.mark.parametrize("overrides", [
        {"platform": "symbian"},
        {"namespace": ""},
        {"namespace": "x_", "receipt_namespace": "x_"},
        {"audit_max_entries": 0},
        {"storage_timeout": 0},
        {"retention_days": -1},
    ])
    def test_invalid_values(self, overrides):
        config = VaultConfig(data_dir="/tmp/sv", **overrides)
        with pytest.raises(ConfigurationError):
            config.validate()

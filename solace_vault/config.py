# solace_vault/config.py

import os
from dataclasses import dataclass, field
from typing import Tuple

from .errors import ConfigurationError


PLATFORMS = ("native", "web", "memory")


def _default_data_dir() -> str:
    return os.path.expanduser("~/.solace_vault")


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() == "true"


@dataclass
class VaultConfig:
    """Configuration for the secure data and consent subsystem.

    Attributes:
        data_dir: Directory holding the SQLite stores, the key directory and the TOTP secret
        platform: Backend selection ('native', 'web' or 'memory')
        namespace: Prefix applied to every secure entry; clear_all targets only it
        receipt_namespace: Prefix for deletion/withdrawal receipts (survive clear_all)
        master_key_name: Reserved name of the master key in secure persistence
        audit_max_entries: Audit log capacity; oldest entries are evicted first
        storage_timeout: Seconds before a platform call fails with StorageTimeoutError
        dev_mode: Allows erasure without a verification code
        consent_version: Current consent schema version; a mismatch forces re-consent
        privacy_policy_version: Version reported by the privacy policy document
        retention_days: Retention horizon anchored to the profile's creation time
        expiry_notice_days: Window before expiry that triggers an upcoming-expiry notice
        preserved_prefixes: Plain keys with these prefixes survive erasure
        double_encrypt_crisis: Wrap crisis entries in a second envelope
        totp_secret_path: Location of the TOTP secret used for step-up authentication
    """
    data_dir: str = field(default_factory=_default_data_dir)
    platform: str = "native"
    namespace: str = "secure_"
    receipt_namespace: str = "receipt_"
    master_key_name: str = "__secure_master_key__"
    audit_max_entries: int = 1000
    storage_timeout: float = 5.0
    dev_mode: bool = False
    consent_version: str = "1.0.0"
    privacy_policy_version: str = "1.0.0"
    retention_days: int = 7 * 365
    expiry_notice_days: int = 30
    preserved_prefixes: Tuple[str, ...] = ("system_", "app_config")
    double_encrypt_crisis: bool = False
    totp_secret_path: str = ""

    def __post_init__(self):
        if not self.totp_secret_path:
            self.totp_secret_path = os.path.join(self.data_dir, "totp_secret")

    @property
    def secure_db_path(self) -> str:
        return os.path.join(self.data_dir, "secure.db")

    @property
    def store_db_path(self) -> str:
        return os.path.join(self.data_dir, "store.db")

    @property
    def key_dir(self) -> str:
        """Owner-only directory holding the master key file on the native platform."""
        return os.path.join(self.data_dir, "keys")

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create config from environment variables."""
        try:
            return cls(
                data_dir=os.path.expanduser(os.environ.get("SOLACE_VAULT_DIR", _default_data_dir())),
                platform=os.environ.get("SOLACE_VAULT_PLATFORM", "native"),
                namespace=os.environ.get("SOLACE_VAULT_NAMESPACE", "secure_"),
                receipt_namespace=os.environ.get("SOLACE_VAULT_RECEIPT_NAMESPACE", "receipt_"),
                audit_max_entries=int(os.environ.get("SOLACE_VAULT_AUDIT_MAX", "1000")),
                storage_timeout=float(os.environ.get("SOLACE_VAULT_TIMEOUT", "5.0")),
                dev_mode=_env_bool("SOLACE_VAULT_DEV", "false"),
                consent_version=os.environ.get("SOLACE_VAULT_CONSENT_VERSION", "1.0.0"),
                retention_days=int(os.environ.get("SOLACE_VAULT_RETENTION_DAYS", str(7 * 365))),
                double_encrypt_crisis=_env_bool("SOLACE_VAULT_DOUBLE_CRISIS", "false"),
                totp_secret_path=os.environ.get("SOLACE_VAULT_TOTP_SECRET", ""),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric configuration value: {e}", cause=e)

    def validate(self) -> "VaultConfig":
        """Raise ConfigurationError if any value is out of range. Returns self."""
        if self.platform not in PLATFORMS:
            raise ConfigurationError(
                f"Unknown platform '{self.platform}'",
                metadata={"supported": list(PLATFORMS)}
            )
        if not self.namespace or not self.receipt_namespace:
            raise ConfigurationError("Namespaces must be non-empty")
        if self.namespace == self.receipt_namespace:
            raise ConfigurationError("Data and receipt namespaces must differ")
        if self.audit_max_entries <= 0:
            raise ConfigurationError("audit_max_entries must be positive")
        if self.storage_timeout <= 0:
            raise ConfigurationError("storage_timeout must be positive")
        if self.retention_days <= 0 or self.expiry_notice_days < 0:
            raise ConfigurationError("Retention windows must be positive")
        return self

# solace_vault/__init__.py
"""
Solace Vault - secure local data and consent subsystem for the Solace mental health app.

This package provides an encrypted key-value store for sensitive health data,
a bounded audit trail of every access, and a consent/privacy-compliance engine
with data export, erasure and retention checks.
"""

__version__ = "1.0.0"

from .config import VaultConfig
from .errors import (
    SolaceVaultError,
    KeyUnavailableError,
    EncryptionError,
    DecryptionError,
    AuthenticationRequiredError,
    NoExistingConsentError,
    ConsentValidationError,
    VerificationRequiredError,
    StorageUnavailableError,
    StorageTimeoutError,
)
from .models import AuditAction, AuditEntry, SecureEnvelope, RetentionAction
from .keys import KeyManager
from .audit import AuditLog
from .vault import SecureStore
from .consent import ConsentEngine
from .lifecycle import DataLifecycleManager
from .services import PrivacyServices

__all__ = [
    "VaultConfig",
    "SolaceVaultError",
    "KeyUnavailableError",
    "EncryptionError",
    "DecryptionError",
    "AuthenticationRequiredError",
    "NoExistingConsentError",
    "ConsentValidationError",
    "VerificationRequiredError",
    "StorageUnavailableError",
    "StorageTimeoutError",
    "AuditAction",
    "AuditEntry",
    "SecureEnvelope",
    "RetentionAction",
    "KeyManager",
    "AuditLog",
    "SecureStore",
    "ConsentEngine",
    "DataLifecycleManager",
    "PrivacyServices",
]

"""
Solace Vault Error Handling Framework.

Provides structured exception classes for the secure storage and consent
subsystem. Every exception carries a severity level, a dot-notation action
and an outcome so it can be attached to log records via ``to_event()``.
"""

from enum import IntEnum
from typing import Optional, Dict, Any
from datetime import datetime, timezone
import traceback


class Severity(IntEnum):
    """Event severity levels (1-10 scale)."""
    DEBUG = 1
    INFO = 2
    NOTICE = 3
    WARNING = 4
    ERROR = 5
    CRITICAL = 6
    ALERT = 7
    EMERGENCY = 8
    SECURITY_VIOLATION = 9
    BREACH_DETECTED = 10


class SolaceVaultError(Exception):
    """Base exception for all Solace Vault errors.

    Attributes:
        message: Human-readable error message
        severity: Severity level (1-10)
        action: Dot-notation action that failed (e.g., 'vault.get')
        outcome: Result of the action ('failure', 'blocked', 'denied')
        metadata: Additional context for debugging/auditing
        timestamp: When the error occurred
    """

    severity: Severity = Severity.ERROR
    action: str = "vault.error"
    outcome: str = "failure"

    def __init__(
        self,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None
    ):
        super().__init__(message)
        self.message = message
        self.metadata = metadata or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc).isoformat()

        if cause:
            self.metadata["cause_type"] = type(cause).__name__
            self.metadata["cause_message"] = str(cause)
            self.metadata["cause_traceback"] = traceback.format_exception(
                type(cause), cause, cause.__traceback__
            )

    def to_event(self) -> Dict[str, Any]:
        """Render the exception as a structured event for log records."""
        return {
            "timestamp": self.timestamp,
            "product": "solace-vault",
            "action": self.action,
            "outcome": self.outcome,
            "severity": int(self.severity),
            "metadata": {
                "error_type": type(self).__name__,
                "message": self.message,
                **{k: v for k, v in self.metadata.items() if k != "cause_traceback"}
            }
        }


# ============================================================================
# Key Errors
# ============================================================================

class KeyUnavailableError(SolaceVaultError):
    """Master key storage is inaccessible. Never falls back to an insecure key."""
    severity = Severity.CRITICAL
    action = "key.initialize"


# ============================================================================
# Cryptographic Errors
# ============================================================================

class CryptoError(SolaceVaultError):
    """Base class for cryptographic operation failures."""
    severity = Severity.CRITICAL
    action = "crypto.operation"


class EncryptionError(CryptoError):
    """Failed to encrypt data."""
    action = "crypto.encrypt"


class DecryptionError(CryptoError):
    """Failed to decrypt data. May indicate tampering, corruption or a wrong key."""
    severity = Severity.ALERT
    action = "crypto.decrypt"

    def __init__(self, message: str, algorithm: str = None, **kwargs):
        super().__init__(message, **kwargs)
        if algorithm:
            self.metadata["algorithm"] = algorithm


# ============================================================================
# Access Control Errors
# ============================================================================

class AccessError(SolaceVaultError):
    """Base class for access control failures."""
    severity = Severity.WARNING
    action = "access.check"
    outcome = "denied"


class AuthenticationRequiredError(AccessError):
    """Step-up authentication was declined or failed."""
    severity = Severity.NOTICE
    action = "access.step_up"
    outcome = "blocked"


# ============================================================================
# Storage Errors
# ============================================================================

class StorageError(SolaceVaultError):
    """Base class for platform storage failures."""
    severity = Severity.ERROR
    action = "storage.operation"


class StorageUnavailableError(StorageError):
    """Platform read/write failed."""
    action = "storage.io"

    def __init__(self, message: str, operation: str = None, **kwargs):
        super().__init__(message, **kwargs)
        if operation:
            self.metadata["operation"] = operation


class StorageTimeoutError(StorageUnavailableError):
    """Platform call did not complete within the configured timeout."""
    action = "storage.timeout"

    def __init__(self, message: str, timeout: float = None, **kwargs):
        super().__init__(message, **kwargs)
        if timeout is not None:
            self.metadata["timeout_seconds"] = timeout


# ============================================================================
# Consent Errors
# ============================================================================

class ConsentError(SolaceVaultError):
    """Base class for consent management errors."""
    severity = Severity.WARNING
    action = "consent.operation"


class NoExistingConsentError(ConsentError):
    """An update was requested before any consent was recorded."""
    action = "consent.update"


class ConsentValidationError(ConsentError):
    """Required consent categories are missing or declined."""
    action = "consent.validate"
    outcome = "denied"

    def __init__(self, message: str, missing: list = None, **kwargs):
        super().__init__(message, **kwargs)
        if missing:
            self.metadata["missing_categories"] = list(missing)


# ============================================================================
# Lifecycle Errors
# ============================================================================

class LifecycleError(SolaceVaultError):
    """Base class for export/erasure/retention errors."""
    severity = Severity.ERROR
    action = "lifecycle.operation"


class VerificationRequiredError(LifecycleError):
    """Erasure was requested without a verification code outside dev mode."""
    severity = Severity.WARNING
    action = "lifecycle.erase"
    outcome = "blocked"


# ============================================================================
# Configuration Errors
# ============================================================================

class ConfigurationError(SolaceVaultError):
    """Invalid or missing configuration."""
    severity = Severity.ERROR
    action = "config.validation"

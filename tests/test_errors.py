"""
Tests for errors.py - Exception hierarchy and structured events.
"""
from solace_vault.errors import (
    Severity,
    SolaceVaultError,
    KeyUnavailableError,
    CryptoError,
    EncryptionError,
    DecryptionError,
    AccessError,
    AuthenticationRequiredError,
    StorageError,
    StorageUnavailableError,
    StorageTimeoutError,
    ConsentError,
    NoExistingConsentError,
    ConsentValidationError,
    LifecycleError,
    VerificationRequiredError,
    ConfigurationError,
)


class TestSeverityEnum:
    """Test Severity IntEnum."""

    def test_severity_values(self):
        assert Severity.DEBUG == 1
        assert Severity.ERROR == 5
        assert Severity.BREACH_DETECTED == 10

    def test_severity_is_int(self):
        assert int(Severity.ERROR) == 5
        assert Severity.CRITICAL > Severity.WARNING


class TestSolaceVaultError:
    """Test base exception class."""

    def test_basic_instantiation(self):
        err = SolaceVaultError("Something failed")
        assert str(err) == "Something failed"
        assert err.message == "Something failed"
        assert err.outcome == "failure"
        assert err.metadata == {}
        assert err.timestamp

    def test_with_metadata(self):
        err = SolaceVaultError("test", metadata={"detail": "extra info"})
        assert err.metadata["detail"] == "extra info"

    def test_with_cause(self):
        cause = ValueError("original error")
        err = SolaceVaultError("wrapped", cause=cause)
        assert err.cause is cause
        assert err.metadata["cause_type"] == "ValueError"
        assert err.metadata["cause_message"] == "original error"
        assert "cause_traceback" in err.metadata

    def test_to_event(self):
        err = SolaceVaultError("test event", metadata={"key": "value"})
        event = err.to_event()

        assert event["product"] == "solace-vault"
        assert event["action"] == "vault.error"
        assert event["outcome"] == "failure"
        assert event["severity"] == int(Severity.ERROR)
        assert event["metadata"]["error_type"] == "SolaceVaultError"
        assert event["metadata"]["key"] == "value"

    def test_to_event_omits_traceback(self):
        """Tracebacks stay on the exception, not in the rendered event."""
        err = SolaceVaultError("wrapped", cause=RuntimeError("boom"))
        event = err.to_event()
        assert "cause_traceback" not in event["metadata"]
        assert event["metadata"]["cause_type"] == "RuntimeError"


class TestHierarchy:
    """Test that concrete errors sit under the right bases."""

    def test_crypto_errors(self):
        assert issubclass(EncryptionError, CryptoError)
        assert issubclass(DecryptionError, CryptoError)
        assert DecryptionError.severity == Severity.ALERT

    def test_decryption_error_records_algorithm(self):
        err = DecryptionError("bad", algorithm="AES-256-CBC")
        assert err.metadata["algorithm"] == "AES-256-CBC"
        assert err.action == "crypto.decrypt"

    def test_access_errors(self):
        assert issubclass(AuthenticationRequiredError, AccessError)
        assert AuthenticationRequiredError.outcome == "blocked"

    def test_storage_errors(self):
        assert issubclass(StorageUnavailableError, StorageError)
        assert issubclass(StorageTimeoutError, StorageUnavailableError)

    def test_storage_timeout_metadata(self):
        err = StorageTimeoutError("slow", timeout=2.5, operation="vault.get")
        assert err.metadata["timeout_seconds"] == 2.5
        assert err.metadata["operation"] == "vault.get"

    def test_consent_errors(self):
        assert issubclass(NoExistingConsentError, ConsentError)
        err = ConsentValidationError("missing", missing=["data_processing"])
        assert err.metadata["missing_categories"] == ["data_processing"]

    def test_lifecycle_errors(self):
        assert issubclass(VerificationRequiredError, LifecycleError)
        assert VerificationRequiredError.outcome == "blocked"

    def test_everything_is_a_vault_error(self):
        for cls in (KeyUnavailableError, EncryptionError, AuthenticationRequiredError,
                    StorageUnavailableError, NoExistingConsentError,
                    VerificationRequiredError, ConfigurationError):
            assert issubclass(cls, SolaceVaultError)

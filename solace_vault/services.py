# solace_vault/services.py
"""
Service container for the secure data and consent subsystem.

Constructs the key manager, secure store, audit log, consent engine and
lifecycle manager over one pair of persistence backends, and exposes the
operations feature modules call. Instances are independent, so tests can
run several side by side with fake backends.

Usage:
    async with PrivacyServices(VaultConfig.from_env()) as services:
        await services.store_secure_data("mood_2025_01_15", {"mood": "calm"})
        allowed = await services.has_consent_for_action("analytics")
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from .audit import AuditLog
from .config import VaultConfig
from .consent import ConsentEngine
from .keys import KeyManager
from .lifecycle import DataLifecycleManager
from .models import (
    AuditEntry,
    ConsentRecord,
    ConsentStatus,
    DeletionReceipt,
    ExportBundle,
    RetentionReport,
    WithdrawalReceipt,
)
from .persistence import KeyValueStore, SecurePersistence, create_backends, create_key_store
from .step_up import StepUpAuthenticator
from .vault import SecureStore

logger = logging.getLogger(__name__)


class PrivacyServices:
    def __init__(
        self,
        config: Optional[VaultConfig] = None,
        secure_persistence: Optional[SecurePersistence] = None,
        kv_store: Optional[KeyValueStore] = None,
        authenticator: Optional[StepUpAuthenticator] = None,
        key_store: Optional[SecurePersistence] = None,
        ip_address: str = "unknown",
        user_agent: str = "solace-vault"
    ):
        self.config = (config or VaultConfig.from_env()).validate()

        if secure_persistence is None or kv_store is None:
            default_secure, default_kv = create_backends(self.config, authenticator)
            secure_persistence = secure_persistence or default_secure
            kv_store = kv_store or default_kv

        self.secure_persistence = secure_persistence
        self.kv_store = kv_store
        self.key_store = key_store or create_key_store(self.config, secure_persistence)
        self.key_manager = KeyManager(self.key_store, self.config)
        self.audit = AuditLog(kv_store, self.config)
        self.secure_store = SecureStore(secure_persistence, self.key_manager, self.audit, self.config)
        self.consent = ConsentEngine(
            self.secure_store, kv_store, self.audit, self.config,
            ip_address=ip_address, user_agent=user_agent,
        )
        self.lifecycle = DataLifecycleManager(
            self.secure_store, kv_store, self.consent, self.audit, self.config
        )
        self._initialized = False

    # ==================== Lifecycle ====================

    async def init(self) -> "PrivacyServices":
        """Warm the master key so the first caller does not pay for creation."""
        await self.key_manager.get_or_create_key()
        self._initialized = True
        return self

    async def dispose(self) -> None:
        self.key_manager.reset()
        await self.secure_persistence.close()
        await self.kv_store.close()
        self._initialized = False

    async def __aenter__(self) -> "PrivacyServices":
        return await self.init()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.dispose()

    # ==================== Secure Storage ====================

    async def store_secure_data(self, key: str, value: Any,
                                data_type: str = "mental_health_data",
                                require_biometric: bool = False) -> None:
        await self.secure_store.store(key, value, data_category=data_type,
                                      require_auth=require_biometric)

    async def get_secure_data(self, key: str, require_biometric: bool = False) -> Optional[Any]:
        return await self.secure_store.get(key, require_auth=require_biometric)

    async def remove_secure_data(self, key: str, data_type: Optional[str] = None) -> None:
        await self.secure_store.remove(key, data_category=data_type)

    async def store_crisis_data(self, value: Any) -> str:
        return await self.secure_store.store_crisis(value)

    async def clear_all_secure_data(self) -> int:
        return await self.secure_store.clear_all()

    async def get_audit_logs(self, limit: Optional[int] = None) -> List[AuditEntry]:
        return await self.audit.get_all(limit=limit)

    # ==================== Consent ====================

    async def record_consent(self, consents: Mapping[str, Any]) -> ConsentRecord:
        return await self.consent.record_consent(consents)

    async def get_consent_status(self) -> ConsentStatus:
        return await self.consent.get_consent_status()

    async def update_consent(self, updates: Mapping[str, Any]) -> ConsentRecord:
        return await self.consent.update_consent(updates)

    async def withdraw_consent(self, reason: str = "user_request") -> WithdrawalReceipt:
        return await self.consent.withdraw_consent(reason)

    async def has_consent_for_action(self, action: str) -> bool:
        return await self.consent.has_consent_for_action(action)

    # ==================== Data Lifecycle ====================

    async def export_user_data(self) -> ExportBundle:
        return await self.lifecycle.export_user_data()

    async def delete_user_data(self, verification_code: Optional[str] = None) -> DeletionReceipt:
        return await self.lifecycle.delete_user_data(verification_code)

    async def check_data_retention(self) -> RetentionReport:
        return await self.lifecycle.check_data_retention()

    def summary(self) -> Dict[str, Any]:
        return {
            "platform": self.config.platform,
            "initialized": self._initialized,
            "key_loaded": self.key_manager.initialized,
            "consent_version": self.config.consent_version,
        }

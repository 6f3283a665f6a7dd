# solace_vault/consent.py
"""
Consent and privacy-compliance engine.

Consent lifecycle per installation:

    NoConsent -> Consented(version) -> Updated (stays consented) | Withdrawn -> NoConsent

The full ConsentRecord lives encrypted in the SecureStore. A non-sensitive
ConsentSummary is cached in plain storage for cheap checks; when its version
differs from the current consent schema version the user must consent again.
"""

import json
import logging
import secrets
import time
from typing import Any, Dict, List, Mapping, Optional

from .audit import AuditLog
from .config import VaultConfig
from .errors import ConsentValidationError, NoExistingConsentError
from .models import (
    AuditAction,
    ConsentCategory,
    ConsentRecord,
    ConsentStatus,
    ConsentSummary,
    WithdrawalReceipt,
    utc_now_iso,
)
from .persistence import KeyValueStore, bounded
from .sanitize import sanitize_text
from .vault import SecureStore

logger = logging.getLogger(__name__)

CONSENT_KEY = "user_consent"
SUMMARY_KEY = "consent_summary"
WITHDRAWAL_RECEIPT = "consent_withdrawal"

MAX_CATEGORY_LENGTH = 50
MAX_REASON_LENGTH = 500

REQUIRED_CATEGORIES = (
    ConsentCategory(
        id="data_processing",
        title="Data Processing",
        description="Allow processing of mental health data for therapy services",
        category="essential",
        required=True,
    ),
    ConsentCategory(
        id="crisis_intervention",
        title="Crisis Intervention",
        description="Allow emergency contacts and services to be notified during crisis situations",
        category="safety",
        required=True,
    ),
)

OPTIONAL_CATEGORIES = (
    ConsentCategory(
        id="analytics",
        title="Analytics",
        description="Allow anonymous usage analytics to improve app performance",
        category="improvement",
        required=False,
    ),
    ConsentCategory(
        id="research",
        title="Research Participation",
        description="Allow anonymized data to be used for mental health research",
        category="research",
        required=False,
    ),
    ConsentCategory(
        id="marketing",
        title="Marketing Communications",
        description="Receive updates about new features and mental health resources",
        category="communication",
        required=False,
    ),
)

# Action name -> consent category gating it
ACTION_CONSENT_MAP: Dict[str, str] = {
    "data_processing": "data_processing",
    "mood_tracking": "data_processing",
    "chat_history": "data_processing",
    "assessment": "data_processing",
    "crisis_intervention": "crisis_intervention",
    "emergency_contact_notification": "crisis_intervention",
    "analytics": "analytics",
    "research": "research",
    "marketing": "marketing",
}


class ConsentEngine:
    def __init__(
        self,
        secure_store: SecureStore,
        kv_store: KeyValueStore,
        audit: AuditLog,
        config: VaultConfig,
        ip_address: str = "unknown",
        user_agent: str = "solace-vault"
    ):
        self._secure = secure_store
        self._kv = kv_store
        self._audit = audit
        self._config = config
        self.ip_address = ip_address
        self.user_agent = user_agent

    @property
    def consent_version(self) -> str:
        return self._config.consent_version

    # ==================== Requirements & Policy ====================

    def get_consent_requirements(self) -> Dict[str, List[ConsentCategory]]:
        return {"required": list(REQUIRED_CATEGORIES), "optional": list(OPTIONAL_CATEGORIES)}

    def missing_required(self, consents: Mapping[str, Any]) -> List[str]:
        """Required categories that are absent or not granted in ``consents``."""
        return [c.id for c in REQUIRED_CATEGORIES if consents.get(c.id) is not True]

    def validate_required(self, consents: Mapping[str, Any]) -> None:
        """Raise ConsentValidationError unless every required category is granted."""
        missing = self.missing_required(consents)
        if missing:
            raise ConsentValidationError(
                f"Required consent not granted: {', '.join(missing)}", missing=missing
            )

    def get_privacy_policy(self) -> Dict[str, Any]:
        years = self._config.retention_days // 365
        return {
            "version": self._config.privacy_policy_version,
            "effective_date": "2024-01-01",
            "content": {
                "data_collection": [
                    "Mental health assessments and mood tracking data",
                    "Chat conversations with AI therapist",
                    "App usage patterns and preferences",
                    "Device information for security purposes",
                    "Crisis intervention data when applicable",
                ],
                "data_sharing": [
                    "We do not sell your personal mental health data",
                    "Emergency contacts may be notified during crisis situations",
                    "Anonymized data may be used for research with your consent",
                    "Legal authorities may access data when required by law",
                ],
                "data_retention": (
                    f"Mental health data is retained for {years} years or until you "
                    "request deletion, whichever comes first."
                ),
                "user_rights": [
                    "Access your personal data",
                    "Request data correction or deletion",
                    "Export your data in a portable format",
                    "Withdraw consent at any time",
                    "Opt out of data processing for research",
                ],
            },
        }

    # ==================== Consent Lifecycle ====================

    async def record_consent(self, consents: Mapping[str, Any]) -> ConsentRecord:
        """
        Record the user's consent choices.

        Required categories are not injected; callers check
        ``missing_required()`` before recording.
        """
        sanitized = self._sanitize(consents)
        record = ConsentRecord(
            consents=sanitized,
            version=self.consent_version,
            timestamp=utc_now_iso(),
            ip_address=self.ip_address,
            user_agent=self.user_agent,
            method="explicit_opt_in",
        )

        await self._secure.store(CONSENT_KEY, record.to_dict(), data_category="consent_record")
        await self._write_summary(record.timestamp, sanitized)

        await self._audit.record(
            AuditAction.CONSENT_RECORDED,
            metadata={"version": self.consent_version, "categories": sorted(sanitized)},
        )
        logger.info("Consent recorded (version %s, %d categories)", self.consent_version, len(sanitized))
        return record

    async def get_consent_status(self) -> ConsentStatus:
        summary = await self._read_summary()
        if summary is None or not summary.has_consent or summary.version != self.consent_version:
            return ConsentStatus(has_consent=False, needs_update=True, summary=summary)

        stored = await self._secure.get(CONSENT_KEY)
        if not stored:
            return ConsentStatus(has_consent=False, needs_update=True, summary=summary)

        return ConsentStatus(
            has_consent=True,
            needs_update=False,
            record=ConsentRecord.from_dict(stored),
            summary=summary,
        )

    async def update_consent(self, updates: Mapping[str, Any]) -> ConsentRecord:
        stored = await self._secure.get(CONSENT_KEY)
        if not stored:
            raise NoExistingConsentError("No existing consent found")

        record = ConsentRecord.from_dict(stored)
        sanitized = self._sanitize(updates)
        record.consents.update(sanitized)
        record.last_updated = utc_now_iso()
        record.update_method = "user_preference_update"

        await self._secure.store(CONSENT_KEY, record.to_dict(), data_category="consent_record")
        await self._write_summary(record.last_updated, record.consents)

        await self._audit.record(
            AuditAction.CONSENT_UPDATED, metadata={"updated_categories": sorted(sanitized)}
        )
        logger.info("Consent updated (%d categories changed)", len(sanitized))
        return record

    async def withdraw_consent(self, reason: str = "user_request") -> WithdrawalReceipt:
        receipt = WithdrawalReceipt(
            timestamp=utc_now_iso(),
            reason=sanitize_text(reason, max_length=MAX_REASON_LENGTH) or "user_request",
            method="explicit_withdrawal",
            ip_address=self.ip_address,
            user_agent=self.user_agent,
        )
        await self._secure.store_receipt(WITHDRAWAL_RECEIPT, receipt.to_dict())

        await self._secure.remove(CONSENT_KEY, data_category="consent_record")
        await bounded(self._kv.delete(SUMMARY_KEY), self._config.storage_timeout, "consent.summary_delete")

        await self._audit.record(AuditAction.CONSENT_WITHDRAWN, metadata={"reason": receipt.reason})
        logger.info("Consent withdrawn")
        return receipt

    async def has_consent_for_action(self, action: str) -> bool:
        """Fail-closed gate: False unless current consent grants the action's category."""
        category = ACTION_CONSENT_MAP.get(action)
        if category is None:
            return False
        try:
            status = await self.get_consent_status()
        except Exception as e:
            logger.error("Consent validation failed: %s", e)
            return False
        if not status.has_consent or status.record is None:
            return False
        return status.record.consents.get(category) is True

    # ==================== Processing Records ====================

    async def generate_processing_record(self, data_type: str, purpose: str, legal_basis: str) -> str:
        """Store a GDPR processing record; returns its secure-store key."""
        record = {
            "timestamp": utc_now_iso(),
            "data_type": sanitize_text(data_type, max_length=100),
            "purpose": sanitize_text(purpose, max_length=500),
            "legal_basis": sanitize_text(legal_basis, max_length=100),
            "retention_days": self._config.retention_days,
            "processor": "solace_vault",
        }
        record_id = f"processing_{int(time.time() * 1000)}_{secrets.token_hex(4)}"
        await self._secure.store(record_id, record, data_category="processing_record")
        return record_id

    # ==================== Helpers ====================

    def _sanitize(self, consents: Mapping[str, Any]) -> Dict[str, bool]:
        sanitized: Dict[str, bool] = {}
        if not isinstance(consents, Mapping):
            logger.warning("Ignoring consent payload that is not a mapping")
            return sanitized
        for key, value in consents.items():
            clean_key = sanitize_text(key, max_length=MAX_CATEGORY_LENGTH)
            if not clean_key or not isinstance(value, bool):
                logger.warning("Dropping invalid consent entry")
                continue
            sanitized[clean_key] = value
        return sanitized

    async def _write_summary(self, timestamp: str, consents: Mapping[str, bool]) -> None:
        summary = ConsentSummary(
            has_consent=True,
            version=self.consent_version,
            timestamp=timestamp,
            categories=sorted(consents),
        )
        await bounded(
            self._kv.set(SUMMARY_KEY, json.dumps(summary.to_dict())),
            self._config.storage_timeout,
            "consent.summary_write",
        )

    async def _read_summary(self) -> Optional[ConsentSummary]:
        raw = await bounded(self._kv.get(SUMMARY_KEY), self._config.storage_timeout, "consent.summary_read")
        if not raw:
            return None
        try:
            return ConsentSummary.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError):
            logger.warning("Consent summary is corrupted; treating consent as absent")
            return None

# solace_vault/lifecycle.py
"""
Data lifecycle: portability (export), erasure and retention evaluation.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from .audit import AuditLog
from .config import VaultConfig
from .consent import CONSENT_KEY, ConsentEngine
from .errors import VerificationRequiredError
from .models import (
    AuditAction,
    DeletionReceipt,
    ExportBundle,
    RetentionAction,
    RetentionReport,
    utc_now_iso,
)
from .persistence import KeyValueStore, bounded
from .vault import SecureStore

logger = logging.getLogger(__name__)

PROFILE_KEY = "user_profile"
DELETION_RECEIPT = "data_deletion"

# Export section -> secure-store key
EXPORT_SECTIONS: Dict[str, str] = {
    "profile": PROFILE_KEY,
    "consent": CONSENT_KEY,
    "mood_tracking": "mood_entries",
    "chat_history": "chat_history",
    "journal": "journal_entries",
    "assessments": "assessment_results",
    "settings": "user_settings",
}


class DataLifecycleManager:
    def __init__(
        self,
        secure_store: SecureStore,
        kv_store: KeyValueStore,
        consent: ConsentEngine,
        audit: AuditLog,
        config: VaultConfig
    ):
        self._secure = secure_store
        self._kv = kv_store
        self._consent = consent
        self._audit = audit
        self._config = config

    @property
    def retention_window(self) -> timedelta:
        return timedelta(days=self._config.retention_days)

    # ==================== Export ====================

    async def export_user_data(self) -> ExportBundle:
        """
        Collect every known secure entry that is present into one bundle.
        Absent sections are skipped; a partial export is valid.
        """
        bundle = ExportBundle(export_date=utc_now_iso())
        for section, key in EXPORT_SECTIONS.items():
            value = await self._secure.get(key)
            if value is not None:
                bundle.data[section] = value

        await self._audit.record(
            AuditAction.DATA_EXPORTED, metadata={"data_types": sorted(bundle.data)}
        )
        logger.info("Exported user data (%d sections)", len(bundle.data))
        return bundle

    # ==================== Erasure ====================

    async def delete_user_data(self, verification_code: Optional[str] = None) -> DeletionReceipt:
        """
        Erase all secure entries and user-scoped plain keys.

        A deletion receipt is recorded before anything is removed and survives
        the erasure. Plain keys with a preserved prefix (system/config) are kept.
        """
        code = (verification_code or "").strip()
        if not code and not self._config.dev_mode:
            raise VerificationRequiredError("Verification code required for data deletion")

        receipt = DeletionReceipt(
            timestamp=utc_now_iso(),
            reason="user_request",
            method="user_requested",
            verification="code_verified" if code else "dev_mode",
            ip_address=self._consent.ip_address,
        )
        await self._secure.store_receipt(DELETION_RECEIPT, receipt.to_dict())

        secure_removed = await self._secure.clear_all()

        timeout = self._config.storage_timeout
        names = await bounded(self._kv.names(), timeout, "kv.names")
        user_keys = [n for n in names if not n.startswith(tuple(self._config.preserved_prefixes))]
        if user_keys:
            await bounded(self._kv.delete_many(user_keys), timeout, "kv.delete_many")

        await self._audit.record(
            AuditAction.DATA_DELETED,
            metadata={"keys_deleted": len(user_keys), "secure_entries_deleted": secure_removed},
        )
        logger.info("User data erased (%d secure entries, %d plain keys)", secure_removed, len(user_keys))
        return receipt

    async def get_deletion_receipts(self) -> list:
        return await self._secure.list_receipts(DELETION_RECEIPT)

    # ==================== Retention ====================

    async def check_data_retention(self, now: Optional[datetime] = None) -> RetentionReport:
        """
        Evaluate the retention window against the profile's creation time.
        Reports only; deleting expired data is the caller's decision.
        """
        now = now or datetime.now(timezone.utc)
        profile = await self._secure.get(PROFILE_KEY)
        created_at = _profile_created_at(profile)
        if created_at is None:
            return RetentionReport(compliant=True, action=RetentionAction.NONE)

        expiry = created_at + self.retention_window
        if now >= expiry:
            return RetentionReport(
                compliant=False,
                action=RetentionAction.DELETE_EXPIRED_DATA,
                expiry_date=expiry,
                message="Data retention period exceeded",
            )

        days_until_expiry = math.ceil((expiry - now) / timedelta(days=1))
        if days_until_expiry <= self._config.expiry_notice_days:
            return RetentionReport(
                compliant=True,
                action=RetentionAction.NOTIFY_UPCOMING_EXPIRY,
                expiry_date=expiry,
                days_until_expiry=days_until_expiry,
            )

        return RetentionReport(compliant=True, action=RetentionAction.NONE, expiry_date=expiry)


def _profile_created_at(profile: Any) -> Optional[datetime]:
    if not isinstance(profile, dict):
        return None
    raw = profile.get("created_at") or profile.get("createdAt")
    if not raw:
        return None
    try:
        if isinstance(raw, (int, float)):
            # epoch milliseconds
            created = datetime.fromtimestamp(raw / 1000, tz=timezone.utc)
        else:
            created = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except (ValueError, OverflowError, OSError):
        logger.warning("Profile creation timestamp is unparseable; skipping retention check")
        return None
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created

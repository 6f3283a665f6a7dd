from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuditAction(str, Enum):
    # Secure store access
    STORE = "STORE"
    RETRIEVE = "RETRIEVE"
    DELETE = "DELETE"
    CLEAR_ALL = "CLEAR_ALL"
    # Privacy events
    CONSENT_RECORDED = "CONSENT_RECORDED"
    CONSENT_UPDATED = "CONSENT_UPDATED"
    CONSENT_WITHDRAWN = "CONSENT_WITHDRAWN"
    DATA_EXPORTED = "DATA_EXPORTED"
    DATA_DELETED = "DATA_DELETED"


class RetentionAction(str, Enum):
    NONE = "none"
    NOTIFY_UPCOMING_EXPIRY = "notify_upcoming_expiry"
    DELETE_EXPIRED_DATA = "delete_expired_data"


@dataclass
class SecureEnvelope:
    """The persisted unit: ciphertext plus what is needed to decrypt and audit it."""
    ciphertext: str                       # base64(nonce + ciphertext)
    algorithm: str
    created_at: str = field(default_factory=utc_now_iso)
    data_category: str = "mental_health_data"
    requires_auth: bool = False
    key_id: str = ""
    version: str = "2.0"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SecureEnvelope":
        return cls(
            ciphertext=data["ciphertext"],
            algorithm=data["algorithm"],
            created_at=data.get("created_at", ""),
            data_category=data.get("data_category", "mental_health_data"),
            requires_auth=bool(data.get("requires_auth", False)),
            key_id=data.get("key_id", ""),
            version=data.get("version", "2.0"),
        )


@dataclass
class AuditEntry:
    timestamp: str
    action: AuditAction
    hashed_key: Optional[str]
    data_category: Optional[str]
    platform: str
    version: str = "1.0"
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["action"] = self.action.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditEntry":
        return cls(
            timestamp=data["timestamp"],
            action=AuditAction(data["action"]),
            hashed_key=data.get("hashed_key"),
            data_category=data.get("data_category"),
            platform=data.get("platform", "unknown"),
            version=data.get("version", "1.0"),
            metadata=data.get("metadata") or {},
        )


@dataclass
class ConsentCategory:
    id: str
    title: str
    description: str
    category: str
    required: bool


@dataclass
class ConsentRecord:
    consents: Dict[str, bool]
    version: str
    timestamp: str = field(default_factory=utc_now_iso)
    last_updated: Optional[str] = None
    ip_address: str = "unknown"
    user_agent: str = "solace-vault"
    method: str = "explicit_opt_in"
    update_method: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConsentRecord":
        return cls(
            consents=dict(data.get("consents") or {}),
            version=data["version"],
            timestamp=data.get("timestamp", ""),
            last_updated=data.get("last_updated"),
            ip_address=data.get("ip_address", "unknown"),
            user_agent=data.get("user_agent", "solace-vault"),
            method=data.get("method", "explicit_opt_in"),
            update_method=data.get("update_method"),
        )


@dataclass
class ConsentSummary:
    """Non-sensitive cache kept outside the encrypted store for cheap checks."""
    has_consent: bool
    version: str
    timestamp: str
    categories: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConsentSummary":
        return cls(
            has_consent=bool(data["has_consent"]),
            version=str(data["version"]),
            timestamp=data.get("timestamp", ""),
            categories=list(data.get("categories") or []),
        )


@dataclass
class ConsentStatus:
    has_consent: bool
    needs_update: bool
    record: Optional[ConsentRecord] = None
    summary: Optional[ConsentSummary] = None


@dataclass(frozen=True)
class DeletionReceipt:
    timestamp: str
    reason: str
    method: str
    verification: str
    ip_address: str = "unknown"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class WithdrawalReceipt:
    timestamp: str
    reason: str
    method: str
    ip_address: str = "unknown"
    user_agent: str = "solace-vault"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RetentionReport:
    compliant: bool
    action: RetentionAction
    expiry_date: Optional[datetime] = None
    days_until_expiry: Optional[int] = None
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "compliant": self.compliant,
            "action": self.action.value,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "days_until_expiry": self.days_until_expiry,
            "message": self.message,
        }


@dataclass
class ExportBundle:
    export_date: str
    data: Dict[str, Any] = field(default_factory=dict)
    data_subject: str = "mental_health_user"
    format: str = "JSON"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

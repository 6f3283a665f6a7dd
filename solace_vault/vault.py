# solace_vault/vault.py

import json
import logging
import secrets
import time
from typing import Any, Dict, List, Optional

from .audit import AuditLog
from .config import VaultConfig
from .crypto import (
    decrypt_value,
    encrypt_value,
    envelope_from_json,
    envelope_to_json,
)
from .errors import DecryptionError, SolaceVaultError
from .keys import KeyManager
from .models import AuditAction, SecureEnvelope
from .persistence import KeyValueStore, SecurePersistence, bounded

logger = logging.getLogger(__name__)

_LAYERED_MARKER = "__layered_envelope__"


class SecureStore:
    """
    Encrypted key-value store for sensitive health data.

    Every entry is sealed with the master key and written as a SecureEnvelope
    under ``config.namespace + key``. Each successful store/get/remove/clear
    appends one audit entry.

    Concurrency: operations on the same key are not serialised against each
    other; concurrent stores are last-write-wins, and a store that lands just
    after clear_all simply exists again. Each entry has a single logical
    writer in this domain.
    """

    def __init__(
        self,
        persistence: SecurePersistence,
        key_manager: KeyManager,
        audit: AuditLog,
        config: VaultConfig
    ):
        self._persistence = persistence
        self._keys = key_manager
        self._audit = audit
        self._config = config

    # ==================== Core Operations ====================

    async def store(
        self,
        key: str,
        value: Any,
        data_category: str = "mental_health_data",
        require_auth: bool = False
    ) -> None:
        """Encrypt and write ``value`` under ``key``, replacing any existing entry."""
        _validate_key(key)
        if value is None:
            raise ValueError("None cannot be stored; use remove() instead")
        await self._write(self._name(key), key, value, data_category, require_auth, "vault.store")

    async def get(self, key: str, require_auth: bool = False) -> Optional[Any]:
        """Return the decrypted value, or None if no entry exists."""
        _validate_key(key)
        return await self._read(self._name(key), key, require_auth, "vault.get")

    async def remove(self, key: str, data_category: Optional[str] = None) -> None:
        """Delete the entry for ``key``. Removing a missing entry is a no-op."""
        _validate_key(key)
        try:
            await bounded(
                self._persistence.delete(self._name(key)),
                self._config.storage_timeout,
                "vault.remove",
            )
        except SolaceVaultError as e:
            _log_failure("remove", e)
            raise
        await self._audit.record(AuditAction.DELETE, key, data_category)

    async def clear_all(self) -> int:
        """
        Delete every entry in this store's namespace.

        The master key and receipts are left in place; the in-memory key state
        is reset so the next write re-establishes the key context.

        Returns:
            int: Number of entries removed
        """
        timeout = self._config.storage_timeout
        try:
            names = await bounded(self._persistence.names(), timeout, "vault.names")
            owned = [n for n in names if n.startswith(self._config.namespace)]
            for name in owned:
                await bounded(self._persistence.delete(name), timeout, "vault.clear_all")
        except SolaceVaultError as e:
            _log_failure("clear_all", e)
            raise

        self._keys.reset()
        await self._audit.record(AuditAction.CLEAR_ALL, "all_data", "all_types",
                                 metadata={"entries_removed": len(owned)})
        logger.info("Cleared %d secure entries", len(owned))
        return len(owned)

    # ==================== Crisis Data ====================

    async def store_crisis(self, value: Any) -> str:
        """
        Store crisis data under a fresh, unpredictable key with step-up
        authentication forced on. Returns the generated key.
        """
        if value is None:
            raise ValueError("None cannot be stored")

        crisis_key = f"crisis_{int(time.time() * 1000)}_{secrets.token_hex(8)}"
        payload = value
        if self._config.double_encrypt_crisis:
            master = await self._keys.get_or_create_key()
            inner = encrypt_value(value, master, data_category="crisis_data", requires_auth=True)
            payload = {_LAYERED_MARKER: inner.to_dict()}

        await self.store(crisis_key, payload, data_category="crisis_data", require_auth=True)
        logger.info("Stored crisis entry")
        return crisis_key

    async def get_crisis(self, key: str) -> Optional[Any]:
        """Read a crisis entry, unwrapping the inner envelope when layered."""
        value = await self.get(key, require_auth=True)
        if isinstance(value, dict) and _LAYERED_MARKER in value:
            master = await self._keys.get_or_create_key()
            try:
                inner = SecureEnvelope.from_dict(value[_LAYERED_MARKER])
            except (KeyError, TypeError) as e:
                raise DecryptionError("Malformed inner crisis envelope", cause=e)
            return decrypt_value(inner, master)
        return value

    # ==================== Receipts ====================

    async def store_receipt(self, kind: str, receipt: Dict[str, Any]) -> str:
        """
        Persist a lifecycle receipt outside the data namespace so it survives
        clear_all. Returns the receipt's storage name.
        """
        _validate_key(kind)
        name = f"{self._config.receipt_namespace}{kind}_{int(time.time() * 1000)}_{secrets.token_hex(4)}"
        await self._write(name, name, receipt, kind, False, "vault.store_receipt")
        return name

    async def list_receipts(self, kind: str) -> List[Dict[str, Any]]:
        """All receipts of ``kind``, oldest first."""
        prefix = f"{self._config.receipt_namespace}{kind}_"
        names = await bounded(self._persistence.names(), self._config.storage_timeout, "vault.names")
        receipts = []
        for name in sorted(n for n in names if n.startswith(prefix)):
            receipt = await self._read(name, name, False, "vault.get_receipt")
            if receipt is not None:
                receipts.append(receipt)
        receipts.sort(key=lambda r: r.get("timestamp", "") if isinstance(r, dict) else "")
        return receipts

    async def latest_receipt(self, kind: str) -> Optional[Dict[str, Any]]:
        receipts = await self.list_receipts(kind)
        return receipts[-1] if receipts else None

    # ==================== Helpers ====================

    async def list_keys(self) -> List[str]:
        """Logical names of all entries in this store's namespace."""
        names = await bounded(self._persistence.names(), self._config.storage_timeout, "vault.names")
        prefix = self._config.namespace
        return sorted(n[len(prefix):] for n in names if n.startswith(prefix))

    async def has_data(self, key: str) -> bool:
        """True only if the entry exists and decrypts."""
        try:
            return await self.get(key) is not None
        except DecryptionError:
            return False

    validate_integrity = has_data

    async def migrate_plain(self, old_key: str, new_key: str, kv: KeyValueStore) -> bool:
        """
        Move a plaintext JSON value from the plain store into the secure store.

        Returns:
            bool: True if a value was migrated
        """
        timeout = self._config.storage_timeout
        raw = await bounded(kv.get(old_key), timeout, "kv.get")
        if raw is None:
            return False
        try:
            value = json.loads(raw)
        except ValueError:
            value = raw
        await self.store(new_key, value, data_category="migrated_data")
        await bounded(kv.delete(old_key), timeout, "kv.delete")
        logger.info("Migrated plaintext entry into secure storage")
        return True

    def _name(self, key: str) -> str:
        return f"{self._config.namespace}{key}"

    async def _write(self, name: str, audit_key: str, value: Any,
                     data_category: str, require_auth: bool, operation: str) -> None:
        try:
            master = await self._keys.get_or_create_key()
            envelope = encrypt_value(value, master, data_category=data_category,
                                     requires_auth=require_auth)
            await bounded(
                self._persistence.set(name, envelope_to_json(envelope), require_auth=require_auth),
                self._config.storage_timeout,
                operation,
            )
        except SolaceVaultError as e:
            _log_failure(operation, e)
            raise
        await self._audit.record(AuditAction.STORE, audit_key, data_category)

    async def _read(self, name: str, audit_key: str, require_auth: bool, operation: str) -> Optional[Any]:
        try:
            raw = await bounded(
                self._persistence.get(name, require_auth=require_auth),
                self._config.storage_timeout,
                operation,
            )
            if raw is None:
                return None
            envelope = envelope_from_json(raw)
            master = await self._keys.get_or_create_key()
            value = decrypt_value(envelope, master)
        except SolaceVaultError as e:
            _log_failure(operation, e)
            raise
        await self._audit.record(AuditAction.RETRIEVE, audit_key, envelope.data_category)
        return value


def _validate_key(key: str) -> None:
    if not isinstance(key, str) or not key:
        raise ValueError("Entry key must be a non-empty string")


def _log_failure(operation: str, exc: SolaceVaultError) -> None:
    logger.error("Secure storage %s failed: %s", operation, exc.message,
                 extra={"event": exc.to_event()})

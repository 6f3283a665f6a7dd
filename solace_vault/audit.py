# solace_vault/audit.py
"""
Bounded audit trail of secure-store access and privacy events.

Entries record the fact of an access (action, hashed entry name, data
category, platform), never the plaintext or the raw entry name. The log is
kept in plain key-value storage as a JSON list capped at a fixed size;
oldest entries are evicted first.

Recording is best effort: a failure to write an entry is logged and never
aborts the operation it describes.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from .config import VaultConfig
from .crypto import hash_key
from .models import AuditAction, AuditEntry, utc_now_iso
from .persistence import KeyValueStore, bounded

logger = logging.getLogger(__name__)

AUDIT_LOG_KEY = "system_audit_log"


class AuditLog:
    def __init__(self, store: KeyValueStore, config: VaultConfig):
        self._store = store
        self._config = config
        self._lock: Optional[asyncio.Lock] = None

    async def record(
        self,
        action: AuditAction,
        key: Optional[str] = None,
        data_category: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Optional[AuditEntry]:
        """Append an entry. Returns it, or None if the write failed."""
        try:
            entry = AuditEntry(
                timestamp=utc_now_iso(),
                action=action,
                hashed_key=hash_key(key) if key is not None else None,
                data_category=data_category,
                platform=self._config.platform,
                metadata=dict(metadata or {}),
            )
            async with self._get_lock():
                entries = await self._load_raw()
                entries.append(entry.to_dict())
                overflow = len(entries) - self._config.audit_max_entries
                if overflow > 0:
                    del entries[:overflow]
                await bounded(
                    self._store.set(AUDIT_LOG_KEY, json.dumps(entries)),
                    self._config.storage_timeout,
                    "audit.write",
                )
            return entry
        except Exception as e:
            logger.warning("Audit logging failed for %s: %s", getattr(action, "value", action), e)
            return None

    def _get_lock(self) -> asyncio.Lock:
        # Created on first use so it belongs to the loop that records entries
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def get_all(self, limit: Optional[int] = None) -> List[AuditEntry]:
        """Entries in insertion order; ``limit`` keeps only the most recent ones."""
        raw = await self._load_raw()
        entries = []
        for item in raw:
            try:
                entries.append(AuditEntry.from_dict(item))
            except (KeyError, ValueError, TypeError):
                logger.warning("Skipping malformed audit entry")
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return entries

    async def entries_for(self, key: str) -> List[AuditEntry]:
        """Entries that refer to the entry name ``key``."""
        hashed = hash_key(key)
        return [e for e in await self.get_all() if e.hashed_key == hashed]

    async def _load_raw(self) -> List[Dict[str, Any]]:
        raw = await bounded(
            self._store.get(AUDIT_LOG_KEY), self._config.storage_timeout, "audit.read"
        )
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Audit log payload is corrupted; starting a new log")
            return []
        if not isinstance(data, list):
            logger.warning("Audit log payload has an unexpected shape; starting a new log")
            return []
        return data

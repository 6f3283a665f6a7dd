# solace_vault/persistence.py
"""
Platform persistence primitives.

Two capabilities are needed by the subsystem:

- ``SecurePersistence``: keyed get/set/delete for secrets, with an optional
  per-item "require authentication" flag (keychain / secure enclave on a
  device, session storage on the web).
- ``KeyValueStore``: plain key-value storage for non-sensitive data such as
  the consent summary and the audit log.

``KeyFileStore`` keeps the master key in an owner-only file outside both
databases on the native platform.

Adapters are chosen once at startup by ``create_backends()``; services only
ever see the abstract interfaces.
"""

import abc
import asyncio
import logging
import os
import sqlite3
from datetime import datetime, timezone
from typing import Awaitable, Dict, Iterable, List, Optional, Tuple, TypeVar

from .config import VaultConfig
from .db import connect, init_db
from .errors import AuthenticationRequiredError, StorageTimeoutError, StorageUnavailableError
from .step_up import StaticAuthenticator, StepUpAuthenticator

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def bounded(awaitable: Awaitable[T], timeout: float, operation: str) -> T:
    """Await a platform call, failing with StorageTimeoutError after ``timeout`` seconds."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise StorageTimeoutError(
            f"Platform storage did not respond to '{operation}' within {timeout}s",
            timeout=timeout,
            operation=operation,
            cause=e,
        )


# ==================== Interfaces ====================

class SecurePersistence(abc.ABC):
    """Secret storage with optional step-up authentication per item."""

    @abc.abstractmethod
    async def get(self, name: str, require_auth: bool = False) -> Optional[str]:
        """Return the stored value or None. Raises AuthenticationRequiredError."""

    @abc.abstractmethod
    async def set(self, name: str, value: str, require_auth: bool = False) -> None:
        """Create or replace an item."""

    @abc.abstractmethod
    async def delete(self, name: str) -> None:
        """Delete an item. Missing items are ignored."""

    @abc.abstractmethod
    async def names(self) -> List[str]:
        """Return the names of all stored items."""

    async def set_if_absent(self, name: str, value: str) -> str:
        """
        Write ``value`` only if ``name`` is unset. Returns the value that ends
        up stored, which is the existing one when another writer got there first.
        """
        existing = await self.get(name)
        if existing is not None:
            return existing
        await self.set(name, value)
        return value

    async def close(self) -> None:
        return None


class KeyValueStore(abc.ABC):
    """Plain (unencrypted) key-value storage for non-sensitive data."""

    @abc.abstractmethod
    async def get(self, name: str) -> Optional[str]:
        ...

    @abc.abstractmethod
    async def set(self, name: str, value: str) -> None:
        ...

    @abc.abstractmethod
    async def delete(self, name: str) -> None:
        ...

    @abc.abstractmethod
    async def names(self) -> List[str]:
        ...

    async def delete_many(self, names: Iterable[str]) -> None:
        for name in names:
            await self.delete(name)

    async def close(self) -> None:
        return None


class _AuthGate:
    """Shared step-up check used by the secure adapters."""

    def __init__(self, authenticator: Optional[StepUpAuthenticator]):
        self.authenticator = authenticator or StaticAuthenticator(approve=False)

    async def check(self, name: str) -> None:
        if not await self.authenticator.authenticate("Access protected health data"):
            raise AuthenticationRequiredError(
                "Step-up authentication required to read this entry",
                metadata={"item_protected": True},
            )


# ==================== In-memory / session adapters ====================

class SessionSecurePersistence(SecurePersistence):
    """
    Process-lifetime secret storage.

    Used as the web fallback (equivalent to browser session storage) and in
    tests. Contents vanish when the process exits.
    """

    def __init__(self, authenticator: Optional[StepUpAuthenticator] = None):
        self._items: Dict[str, Tuple[str, bool]] = {}
        self._gate = _AuthGate(authenticator)

    async def get(self, name: str, require_auth: bool = False) -> Optional[str]:
        item = self._items.get(name)
        if item is None:
            return None
        value, protected = item
        if protected or require_auth:
            await self._gate.check(name)
        return value

    async def set(self, name: str, value: str, require_auth: bool = False) -> None:
        self._items[name] = (value, require_auth)

    async def delete(self, name: str) -> None:
        self._items.pop(name, None)

    async def names(self) -> List[str]:
        return list(self._items)


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self):
        self._items: Dict[str, str] = {}

    async def get(self, name: str) -> Optional[str]:
        return self._items.get(name)

    async def set(self, name: str, value: str) -> None:
        self._items[name] = value

    async def delete(self, name: str) -> None:
        self._items.pop(name, None)

    async def names(self) -> List[str]:
        return list(self._items)


# ==================== SQLite adapters ====================

class _SQLiteBacked:
    """Opens a connection per operation and runs it off the event loop."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        try:
            init_db(db_path)
        except (sqlite3.Error, OSError) as e:
            raise StorageUnavailableError(
                f"Could not initialise storage at {db_path}", operation="storage.init", cause=e
            )

    async def _run(self, operation: str, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.Error as e:
            raise StorageUnavailableError(
                f"SQLite storage failed during '{operation}'", operation=operation, cause=e
            )

    def _fetchone(self, sql: str, params: tuple):
        conn = connect(self.db_path)
        try:
            c = conn.cursor()
            c.execute(sql, params)
            return c.fetchone()
        finally:
            conn.close()

    def _fetchall(self, sql: str, params: tuple = ()):
        conn = connect(self.db_path)
        try:
            c = conn.cursor()
            c.execute(sql, params)
            return c.fetchall()
        finally:
            conn.close()

    def _execute(self, sql: str, params_seq: List[tuple]):
        conn = connect(self.db_path)
        try:
            c = conn.cursor()
            c.executemany(sql, params_seq)
            conn.commit()
        finally:
            conn.close()


class SQLiteSecurePersistence(_SQLiteBacked, SecurePersistence):
    """Durable secret storage (the native-device backend)."""

    def __init__(self, db_path: str, authenticator: Optional[StepUpAuthenticator] = None):
        super().__init__(db_path)
        self._gate = _AuthGate(authenticator)

    async def get(self, name: str, require_auth: bool = False) -> Optional[str]:
        row = await self._run(
            "secure.get", self._fetchone,
            "SELECT value, require_auth FROM secure_items WHERE name = ?", (name,)
        )
        if row is None:
            return None
        value, protected = row
        if protected or require_auth:
            await self._gate.check(name)
        return value

    async def set(self, name: str, value: str, require_auth: bool = False) -> None:
        await self._run(
            "secure.set", self._execute,
            '''INSERT OR REPLACE INTO secure_items (name, value, require_auth, updated_at)
               VALUES (?, ?, ?, ?)''',
            [(name, value, int(require_auth), datetime.now(timezone.utc).isoformat())]
        )

    async def set_if_absent(self, name: str, value: str) -> str:
        return await self._run("secure.set_if_absent", self._insert_or_keep, name, value)

    def _insert_or_keep(self, name: str, value: str) -> str:
        conn = connect(self.db_path)
        try:
            c = conn.cursor()
            c.execute(
                '''INSERT OR IGNORE INTO secure_items (name, value, require_auth, updated_at)
                   VALUES (?, ?, 0, ?)''',
                (name, value, datetime.now(timezone.utc).isoformat())
            )
            conn.commit()
            c.execute("SELECT value FROM secure_items WHERE name = ?", (name,))
            return c.fetchone()[0]
        finally:
            conn.close()

    async def delete(self, name: str) -> None:
        await self._run(
            "secure.delete", self._execute,
            "DELETE FROM secure_items WHERE name = ?", [(name,)]
        )

    async def names(self) -> List[str]:
        rows = await self._run("secure.names", self._fetchall, "SELECT name FROM secure_items")
        return [r[0] for r in rows]


class SQLiteKeyValueStore(_SQLiteBacked, KeyValueStore):
    """Durable plain key-value storage."""

    async def get(self, name: str) -> Optional[str]:
        row = await self._run(
            "kv.get", self._fetchone, "SELECT value FROM kv_items WHERE name = ?", (name,)
        )
        return row[0] if row else None

    async def set(self, name: str, value: str) -> None:
        await self._run(
            "kv.set", self._execute,
            "INSERT OR REPLACE INTO kv_items (name, value) VALUES (?, ?)", [(name, value)]
        )

    async def delete(self, name: str) -> None:
        await self._run("kv.delete", self._execute, "DELETE FROM kv_items WHERE name = ?", [(name,)])

    async def delete_many(self, names: Iterable[str]) -> None:
        params = [(n,) for n in names]
        if params:
            await self._run("kv.delete_many", self._execute, "DELETE FROM kv_items WHERE name = ?", params)

    async def names(self) -> List[str]:
        rows = await self._run("kv.names", self._fetchall, "SELECT name FROM kv_items")
        return [r[0] for r in rows]


# ==================== Key file adapter ====================

class KeyFileStore(SecurePersistence):
    """
    Key material kept as one owner-only (0600) file per item in an owner-only
    (0700) directory, outside the databases that hold ciphertext.

    Used for the master key on the native platform. Items are never gated by
    step-up authentication; the file permissions are the protection.
    """

    def __init__(self, directory: str):
        self.directory = directory

    async def _run(self, operation: str, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except OSError as e:
            raise StorageUnavailableError(
                f"Key file storage failed during '{operation}'", operation=operation, cause=e
            )

    def _path(self, name: str) -> str:
        if not name or os.sep in name or name.startswith("."):
            raise StorageUnavailableError(f"Invalid key file name '{name}'", operation="keyfile.path")
        return os.path.join(self.directory, name)

    def _ensure_dir(self) -> None:
        os.makedirs(self.directory, mode=0o700, exist_ok=True)
        os.chmod(self.directory, 0o700)

    def _read(self, path: str) -> Optional[str]:
        try:
            with open(path, "r") as f:
                return f.read().strip() or None
        except FileNotFoundError:
            return None

    def _write(self, path: str, value: str) -> None:
        self._ensure_dir()
        tmp = f"{path}.tmp"
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            f.write(value)
        os.replace(tmp, path)

    def _create_or_read(self, path: str, value: str) -> str:
        self._ensure_dir()
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        except FileExistsError:
            existing = self._read(path)
            if existing is None:
                raise StorageUnavailableError("Key file exists but is empty", operation="keyfile.create")
            return existing
        with os.fdopen(fd, "w") as f:
            f.write(value)
        return value

    def _remove(self, path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass

    def _list(self) -> List[str]:
        try:
            return [n for n in os.listdir(self.directory) if not n.endswith(".tmp")]
        except FileNotFoundError:
            return []

    async def get(self, name: str, require_auth: bool = False) -> Optional[str]:
        return await self._run("keyfile.get", self._read, self._path(name))

    async def set(self, name: str, value: str, require_auth: bool = False) -> None:
        await self._run("keyfile.set", self._write, self._path(name), value)

    async def set_if_absent(self, name: str, value: str) -> str:
        return await self._run("keyfile.create", self._create_or_read, self._path(name), value)

    async def delete(self, name: str) -> None:
        await self._run("keyfile.delete", self._remove, self._path(name))

    async def names(self) -> List[str]:
        return await self._run("keyfile.names", self._list)


# ==================== Backend selection ====================

def create_key_store(config: VaultConfig, secure: SecurePersistence) -> SecurePersistence:
    """
    Where the master key lives: a key file outside the databases on the native
    platform, otherwise the (session-scoped) secure persistence itself.
    """
    if config.platform == "native":
        return KeyFileStore(config.key_dir)
    return secure


def create_backends(
    config: VaultConfig,
    authenticator: Optional[StepUpAuthenticator] = None
) -> Tuple[SecurePersistence, KeyValueStore]:
    """Pick the persistence adapters for the configured platform."""
    config.validate()

    if config.platform == "native":
        return (
            SQLiteSecurePersistence(config.secure_db_path, authenticator),
            SQLiteKeyValueStore(config.store_db_path),
        )

    if config.platform == "web":
        logger.warning(
            "Web platform: master key and secure entries are session-scoped; "
            "they are lost when the session ends"
        )
        return SessionSecurePersistence(authenticator), SQLiteKeyValueStore(config.store_db_path)

    return SessionSecurePersistence(authenticator), MemoryKeyValueStore()

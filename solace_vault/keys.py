# solace_vault/keys.py

import asyncio
import logging
from typing import Optional

from .config import VaultConfig
from .crypto import KEY_SIZE, generate_key
from .errors import KeyUnavailableError, SolaceVaultError
from .persistence import SecurePersistence, bounded

logger = logging.getLogger(__name__)


class KeyManager:
    """
    Owns the installation's single master key.

    The key is generated once with a CSPRNG, persisted under a reserved name
    and cached in memory. Concurrent first-time callers share one in-flight
    initialisation task, so at most one key is ever created per manager.
    """

    def __init__(self, persistence: SecurePersistence, config: VaultConfig):
        self._persistence = persistence
        self._config = config
        self._key: Optional[bytes] = None
        self._pending: Optional[asyncio.Future] = None

    @property
    def initialized(self) -> bool:
        return self._key is not None

    async def get_or_create_key(self) -> bytes:
        if self._key is not None:
            return self._key

        pending = self._pending
        if pending is None:
            pending = self._pending = asyncio.ensure_future(self._load_or_create())

        try:
            # shield: one cancelled caller must not cancel initialisation for the others
            key = await asyncio.shield(pending)
        except BaseException:
            if self._pending is pending and pending.done():
                self._pending = None
            raise

        if self._pending is pending:
            self._key = key
            self._pending = None
        return key

    def reset(self) -> None:
        """Drop the cached key; the next call re-reads it from persistence."""
        self._key = None
        self._pending = None

    async def _load_or_create(self) -> bytes:
        name = self._config.master_key_name
        timeout = self._config.storage_timeout
        try:
            stored = await bounded(self._persistence.get(name), timeout, "key.get")
            if stored:
                logger.debug("Master key loaded from secure persistence")
                return _decode_key(stored)

            candidate = generate_key().hex()
            # Another process may create the key between our read and write;
            # whichever key was stored first is the one everybody uses.
            stored = await bounded(
                self._persistence.set_if_absent(name, candidate), timeout, "key.create"
            )
            if stored == candidate:
                logger.info("Generated new master key")
            else:
                logger.info("Master key was created concurrently; using the stored key")
            return _decode_key(stored)
        except KeyUnavailableError:
            raise
        except (SolaceVaultError, ValueError) as e:
            raise KeyUnavailableError("Secure key storage is unavailable", cause=e)


def _decode_key(stored: str) -> bytes:
    key = bytes.fromhex(stored)
    if len(key) != KEY_SIZE:
        raise KeyUnavailableError(
            "Stored master key has an unexpected length",
            metadata={"length": len(key)},
        )
    return key

# solace_vault/step_up.py
"""
Step-up authentication for sensitive envelopes.

Secure persistence asks an authenticator for a user-presence check before
releasing an item that was written with ``require_auth``. Biometric hardware
is out of scope; the platform layer plugs in through ``CallbackAuthenticator``.
TOTP (authenticator app or hardware TOTP token) is provided for hosts that
have no platform prompt.
"""

import abc
import inspect
import logging
import os
from typing import Awaitable, Callable, Optional, Union

import pyotp

logger = logging.getLogger(__name__)


class StepUpAuthenticator(abc.ABC):
    """Performs an additional user-presence check."""

    @abc.abstractmethod
    async def authenticate(self, reason: str = "") -> bool:
        """Return True only if the user passed the check."""


class StaticAuthenticator(StepUpAuthenticator):
    """Always approves or always declines. The default instance declines."""

    def __init__(self, approve: bool = False):
        self.approve = approve
        self.calls = 0

    async def authenticate(self, reason: str = "") -> bool:
        self.calls += 1
        return self.approve


class CallbackAuthenticator(StepUpAuthenticator):
    """Delegates to a host callback (sync or async) such as a biometric prompt."""

    def __init__(self, callback: Callable[[str], Union[bool, Awaitable[bool]]]):
        self._callback = callback

    async def authenticate(self, reason: str = "") -> bool:
        result = self._callback(reason)
        if inspect.isawaitable(result):
            result = await result
        return result is True


class TOTPAuthenticator(StepUpAuthenticator):
    """
    Verifies a TOTP code from an authenticator app or token.

    Args:
        secret: Base32 TOTP secret
        code_provider: Callable returning the code the user entered (sync or async)
    """

    def __init__(
        self,
        secret: str,
        code_provider: Callable[[str], Union[Optional[str], Awaitable[Optional[str]]]]
    ):
        self._totp = pyotp.TOTP(secret)
        self._code_provider = code_provider

    async def authenticate(self, reason: str = "") -> bool:
        code = self._code_provider(reason)
        if inspect.isawaitable(code):
            code = await code
        code = (code or "").strip()

        # TOTP codes are 6-8 digits
        if not code or not code.isdigit() or len(code) < 6 or len(code) > 8:
            logger.warning("Invalid TOTP code format - must be 6-8 digits")
            return False

        # Window of +/-1 period (30 seconds each)
        return self._totp.verify(code, valid_window=1)


def setup_totp_secret(path: str, account: str = "Solace Vault") -> tuple[str, str]:
    """
    Generate and save a new TOTP secret.

    Returns:
        (secret, provisioning_uri) - the URI is suitable for a QR code.
    """
    secret = pyotp.random_base32()

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as f:
        f.write(secret)

    uri = pyotp.TOTP(secret).provisioning_uri(name=account, issuer_name="Solace Vault")
    logger.info("TOTP secret saved to %s", path)
    return secret, uri


def load_totp_secret(path: str) -> Optional[str]:
    """Return the stored TOTP secret, or None if not configured."""
    try:
        with open(path, "r") as f:
            return f.read().strip() or None
    except (FileNotFoundError, NotADirectoryError):
        return None

# solace_vault/crypto.py
"""
Envelope codec.

Structured values are serialised to JSON and sealed with XSalsa20-Poly1305
(``nacl.secret.SecretBox``). The random nonce is stored in front of the
ciphertext and the pair is base64-encoded into the envelope. The Poly1305 tag
makes tampering, truncation and wrong-key decryption fail the same way.
"""

import base64
import binascii
import hashlib
import json
from typing import Any

from nacl.exceptions import CryptoError as NaClCryptoError
from nacl.secret import SecretBox
from nacl.utils import random as nacl_random

from .errors import DecryptionError, EncryptionError
from .models import SecureEnvelope

ALGORITHM = "XSalsa20-Poly1305"
SUPPORTED_ALGORITHMS = (ALGORITHM,)

KEY_SIZE = SecretBox.KEY_SIZE        # 32 bytes
NONCE_SIZE = SecretBox.NONCE_SIZE    # 24 bytes


def generate_key() -> bytes:
    """Generate a 256-bit key from the OS CSPRNG."""
    return nacl_random(KEY_SIZE)


def key_id(key: bytes) -> str:
    """Short fingerprint identifying which key sealed an envelope."""
    return hashlib.sha256(b"solace-vault-key-id|" + key).hexdigest()[:16]


def hash_key(key: str) -> str:
    """One-way, fixed-length digest of an entry name for the audit trail."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]


def encrypt_value(
    value: Any,
    key: bytes,
    data_category: str = "mental_health_data",
    requires_auth: bool = False
) -> SecureEnvelope:
    """Serialise and seal ``value`` under ``key`` with a fresh random nonce."""
    try:
        plaintext = json.dumps(value, separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise EncryptionError("Value is not JSON-serialisable", cause=e)

    try:
        box = SecretBox(key)
        nonce = nacl_random(NONCE_SIZE)
        sealed = box.encrypt(plaintext, nonce)   # nonce + ciphertext + tag
    except (NaClCryptoError, TypeError, ValueError) as e:
        raise EncryptionError("Data encryption failed", cause=e)

    return SecureEnvelope(
        ciphertext=base64.b64encode(bytes(sealed)).decode("ascii"),
        algorithm=ALGORITHM,
        data_category=data_category,
        requires_auth=requires_auth,
        key_id=key_id(key),
    )


def decrypt_value(envelope: SecureEnvelope, key: bytes) -> Any:
    """Open ``envelope`` with ``key``. Every failure surfaces as DecryptionError."""
    if envelope.algorithm not in SUPPORTED_ALGORITHMS:
        raise DecryptionError(
            f"Unsupported envelope algorithm '{envelope.algorithm}'",
            algorithm=envelope.algorithm,
        )

    if envelope.key_id and envelope.key_id != key_id(key):
        raise DecryptionError("Envelope was sealed under a different key", algorithm=envelope.algorithm)

    try:
        combined = base64.b64decode(envelope.ciphertext, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise DecryptionError("Malformed envelope ciphertext", algorithm=envelope.algorithm, cause=e)

    if len(combined) <= NONCE_SIZE + SecretBox.MACBYTES:
        raise DecryptionError("Envelope ciphertext is truncated", algorithm=envelope.algorithm)

    try:
        plaintext = SecretBox(key).decrypt(combined)
    except (NaClCryptoError, TypeError, ValueError) as e:
        raise DecryptionError(
            "Data decryption failed - wrong key or tampered ciphertext",
            algorithm=envelope.algorithm,
            cause=e,
        )

    try:
        return json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise DecryptionError("Decrypted payload is not valid JSON", algorithm=envelope.algorithm, cause=e)


def envelope_to_json(envelope: SecureEnvelope) -> str:
    return json.dumps(envelope.to_dict())


def envelope_from_json(raw: str) -> SecureEnvelope:
    """Parse a stored envelope; foreign or malformed payloads raise DecryptionError."""
    try:
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("envelope is not an object")
        return SecureEnvelope.from_dict(data)
    except (ValueError, KeyError, TypeError) as e:
        raise DecryptionError("Stored entry is not a valid secure envelope", cause=e)

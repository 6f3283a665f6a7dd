"""
Tests for crypto.py - envelope codec properties.
"""
import base64
import json

import pytest

from solace_vault.crypto import (
    ALGORITHM,
    NONCE_SIZE,
    decrypt_value,
    encrypt_value,
    envelope_from_json,
    envelope_to_json,
    generate_key,
    hash_key,
    key_id,
)
from solace_vault.errors import DecryptionError, EncryptionError
from solace_vault.models import SecureEnvelope


@pytest.fixture
def key():
    return generate_key()


class TestRoundTrip:
    """decrypt(encrypt(v, k), k) == v for structured values."""

    @pytest.mark.parametrize("value", [
        {"mood": "anxious", "score": 3},
        ["a", 1, None, True],
        "plain string with ünïcödé",
        42,
        {"nested": {"list": [1, 2, {"deep": False}]}},
    ])
    def test_roundtrip(self, key, value):
        envelope = encrypt_value(value, key)
        assert decrypt_value(envelope, key) == value

    def test_envelope_metadata(self, key):
        envelope = encrypt_value({"a": 1}, key, data_category="crisis_data", requires_auth=True)
        assert envelope.algorithm == ALGORITHM
        assert envelope.data_category == "crisis_data"
        assert envelope.requires_auth is True
        assert envelope.key_id == key_id(key)
        assert envelope.created_at

    def test_ciphertext_does_not_contain_plaintext(self, key):
        envelope = encrypt_value({"secret": "self-harm note"}, key)
        raw = base64.b64decode(envelope.ciphertext)
        assert b"self-harm note" not in raw
        assert "self-harm" not in envelope.ciphertext

    def test_unserialisable_value(self, key):
        with pytest.raises(EncryptionError):
            encrypt_value({"when": object()}, key)

    def test_bad_key_length(self):
        with pytest.raises(EncryptionError):
            encrypt_value({"a": 1}, b"short")


class TestNonDeterminism:
    """Two encryptions of the same value differ."""

    def test_distinct_envelopes(self, key):
        value = {"mood": "calm"}
        first = encrypt_value(value, key)
        second = encrypt_value(value, key)

        assert first.ciphertext != second.ciphertext
        nonce1 = base64.b64decode(first.ciphertext)[:NONCE_SIZE]
        nonce2 = base64.b64decode(second.ciphertext)[:NONCE_SIZE]
        assert nonce1 != nonce2


class TestFailClosed:
    """Decryption failures always surface as DecryptionError."""

    def test_wrong_key(self, key):
        envelope = encrypt_value({"a": 1}, key)
        with pytest.raises(DecryptionError):
            decrypt_value(envelope, generate_key())

    def test_wrong_key_without_key_id(self, key):
        """The MAC still rejects a wrong key when the envelope carries no key id."""
        envelope = encrypt_value({"a": 1}, key)
        envelope.key_id = ""
        with pytest.raises(DecryptionError):
            decrypt_value(envelope, generate_key())

    def test_tampered_ciphertext(self, key):
        envelope = encrypt_value({"score": 3}, key)
        raw = bytearray(base64.b64decode(envelope.ciphertext))
        raw[-1] ^= 0x01
        envelope.ciphertext = base64.b64encode(bytes(raw)).decode()
        with pytest.raises(DecryptionError):
            decrypt_value(envelope, key)

    def test_unknown_algorithm(self, key):
        envelope = encrypt_value({"a": 1}, key)
        envelope.algorithm = "AES-256-CBC"
        with pytest.raises(DecryptionError) as exc:
            decrypt_value(envelope, key)
        assert exc.value.metadata["algorithm"] == "AES-256-CBC"

    def test_malformed_base64(self, key):
        envelope = SecureEnvelope(ciphertext="!!not-base64!!", algorithm=ALGORITHM)
        with pytest.raises(DecryptionError):
            decrypt_value(envelope, key)

    def test_truncated(self, key):
        envelope = SecureEnvelope(ciphertext=base64.b64encode(b"x" * 10).decode(), algorithm=ALGORITHM)
        with pytest.raises(DecryptionError):
            decrypt_value(envelope, key)


class TestEnvelopeSerialisation:
    """Test stored envelope JSON parsing."""

    def test_json_roundtrip(self, key):
        envelope = encrypt_value({"a": 1}, key, data_category="consent_record")
        parsed = envelope_from_json(envelope_to_json(envelope))
        assert parsed == envelope

    @pytest.mark.parametrize("raw", ["not json", "[1, 2]", json.dumps({"algorithm": ALGORITHM})])
    def test_foreign_payload(self, raw):
        with pytest.raises(DecryptionError):
            envelope_from_json(raw)


class TestHashKey:
    """Test audit key hashing."""

    def test_fixed_length_and_deterministic(self):
        assert hash_key("mood_2025_01_15") == hash_key("mood_2025_01_15")
        assert len(hash_key("a")) == len(hash_key("a much longer key name")) == 16

    def test_does_not_reveal_key(self):
        assert "mood" not in hash_key("mood_2025_01_15")

    def test_different_keys_differ(self):
        assert hash_key("user_profile") != hash_key("user_consent")

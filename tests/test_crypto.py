"""
Tests for the field cipher.

Tests cover:
- Round-trip of text values
- Fresh nonce per call
- Tamper detection (fail closed)
- Malformed envelopes
- Structured value serialization
"""
import pytest

from wishvault.errors import CryptoIntegrityError
from wishvault.services.crypto import (
    NONCE_SIZE,
    TAG_SIZE,
    decrypt_field,
    derive_master_key,
    deserialize_structured,
    encrypt_field,
    generate_encryption_key,
    is_envelope,
    serialize_structured,
)


def _flip_first_byte(envelope: str, segment: int) -> str:
    parts = envelope.split(":")
    raw = bytearray(bytes.fromhex(parts[segment]))
    raw[0] ^= 0x01
    parts[segment] = raw.hex()
    return ":".join(parts)


class TestRoundTrip:

    @pytest.mark.parametrize("plaintext", [
        "Bank: First National, account ending 4411",
        "Please play 'Clair de Lune' at the service. 🎹",
        "x",
        "line one\nline two\n" * 500,
    ])
    def test_decrypt_inverts_encrypt(self, plaintext):
        assert decrypt_field(encrypt_field(plaintext)) == plaintext

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty_values_pass_through(self, value):
        assert encrypt_field(value) == value
        assert decrypt_field(value) == value

    def test_ciphertext_does_not_contain_plaintext(self):
        envelope = encrypt_field("super secret pin 1234")
        assert "super secret" not in envelope
        assert "1234" not in envelope


class TestEnvelopeFormat:

    def test_layout(self):
        envelope = encrypt_field("hello")
        version, nonce, tag, ct = envelope.split(":")
        assert version == "v1"
        assert len(bytes.fromhex(nonce)) == NONCE_SIZE
        assert len(bytes.fromhex(tag)) == TAG_SIZE
        assert len(bytes.fromhex(ct)) == len("hello")

    def test_fresh_nonce_per_call(self):
        first = encrypt_field("same text")
        second = encrypt_field("same text")
        assert first != second
        assert first.split(":")[1] != second.split(":")[1]

    def test_many_nonces_unique(self):
        nonces = {encrypt_field("repeat").split(":")[1] for _ in range(200)}
        assert len(nonces) == 200

    def test_is_envelope(self):
        assert is_envelope(encrypt_field("hello"))
        assert not is_envelope("plain text")
        assert not is_envelope(None)
        assert not is_envelope("v1:zz:zz:zz")


class TestFailClosed:

    @pytest.mark.parametrize("segment", [1, 2, 3])
    def test_flipped_byte_is_rejected(self, segment):
        tampered = _flip_first_byte(encrypt_field("insurance policy #998"), segment)
        with pytest.raises(CryptoIntegrityError):
            decrypt_field(tampered)

    @pytest.mark.parametrize("envelope", [
        "just some legacy plaintext",
        "a:b",
        "v1:00:11",
        "v1:00:11:22:33",
    ])
    def test_wrong_segment_count(self, envelope):
        with pytest.raises(CryptoIntegrityError):
            decrypt_field(envelope)

    def test_non_hex_segment(self):
        version, nonce, tag, ct = encrypt_field("hello").split(":")
        with pytest.raises(CryptoIntegrityError):
            decrypt_field(":".join((version, nonce, tag, "not-hex!")))

    def test_unknown_version(self):
        _, nonce, tag, ct = encrypt_field("hello").split(":")
        with pytest.raises(CryptoIntegrityError):
            decrypt_field(":".join(("v9", nonce, tag, ct)))

    def test_truncated_tag(self):
        version, nonce, tag, ct = encrypt_field("hello").split(":")
        with pytest.raises(CryptoIntegrityError):
            decrypt_field(":".join((version, nonce, tag[:16], ct)))

    def test_wrong_key(self):
        key_a = derive_master_key("secret-a", "salt")
        key_b = derive_master_key("secret-b", "salt")
        envelope = encrypt_field("hello", key=key_a)
        assert decrypt_field(envelope, key=key_a) == "hello"
        with pytest.raises(CryptoIntegrityError):
            decrypt_field(envelope, key=key_b)


class TestKeyDerivation:

    def test_deterministic(self):
        assert derive_master_key("secret", "salt") == derive_master_key("secret", "salt")
        assert derive_master_key("secret", "salt") != derive_master_key("secret", "pepper")

    def test_key_length(self):
        assert len(derive_master_key("secret", "salt")) == 32

    def test_missing_secret_refused(self):
        with pytest.raises(RuntimeError):
            derive_master_key("", "salt")

    def test_generated_secret_is_random(self):
        assert generate_encryption_key() != generate_encryption_key()


class TestStructured:

    def test_canonical_key_order(self):
        assert serialize_structured({"b": 1, "a": [2, 3]}) == '{"a":[2,3],"b":1}'

    def test_roundtrip(self):
        value = {"music": ["Hymn"], "visuals": {"photos": True}}
        assert deserialize_structured(serialize_structured(value)) == value

    def test_invalid_json(self):
        with pytest.raises(CryptoIntegrityError):
            deserialize_structured("{not json")

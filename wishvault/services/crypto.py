"""
Field Cipher: authenticated encryption of individual vault fields.

Envelope format (hex segments, colon separated):
    v1:<nonce 12B>:<GCM tag 16B>:<ciphertext>

The leading version selects key derivation and layout, so decrypt needs nothing
besides the process master key.

Security Note:
    Never log plaintext, ciphertext or key material.
    Nonces are random 96-bit and generated per call; a nonce must never be reused
    with the same key.
"""
import base64
import binascii
import logging
import os
import secrets
from functools import lru_cache
from typing import Any

import orjson
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from wishvault.config import get_settings
from wishvault.errors import CryptoIntegrityError

logger = logging.getLogger("wishvault.crypto")

ENVELOPE_VERSION = "v1"
NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16
KEY_LENGTH = 32  # AES-256

# scrypt cost parameters for deriving the master key from the configured secret
SCRYPT_N = 2**14
SCRYPT_R = 8
SCRYPT_P = 1


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_master_key(secret: str, salt: str) -> bytes:
    """Derive a 32-byte key from the deployment secret using scrypt."""
    if not secret:
        raise RuntimeError(
            "ENCRYPTION_KEY is not configured. Set ENCRYPTION_KEY=<long random secret> "
            "(see generate_encryption_key())."
        )
    kdf = Scrypt(salt=salt.encode("utf-8"), length=KEY_LENGTH, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
    return kdf.derive(secret.encode("utf-8"))


@lru_cache(maxsize=1)
def get_master_key() -> bytes:
    """Process-wide master key: derived once, read-only afterwards."""
    settings = get_settings()
    key = derive_master_key(settings.encryption_key, settings.encryption_kdf_salt)
    logger.debug("Field cipher master key derived (version %s)", ENVELOPE_VERSION)
    return key


def generate_encryption_key() -> str:
    """Generate a random secret suitable for ENCRYPTION_KEY. Utility for operators."""
    return base64.b64encode(secrets.token_bytes(32)).decode("ascii")


# ---------------------------------------------------------------------------
# Field encryption
# ---------------------------------------------------------------------------

def encrypt_field(plaintext: str | None, key: bytes | None = None) -> str | None:
    """Encrypt one text value into a self-describing envelope.

    Empty or absent input is returned unchanged so unset fields stay unset.
    """
    if not plaintext:
        return plaintext
    cipher = AESGCM(key or get_master_key())
    nonce = os.urandom(NONCE_SIZE)
    sealed = cipher.encrypt(nonce, plaintext.encode("utf-8"), None)
    ct, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
    return ":".join((ENVELOPE_VERSION, nonce.hex(), tag.hex(), ct.hex()))


def decrypt_field(envelope: str | None, key: bytes | None = None) -> str | None:
    """Decrypt an envelope produced by encrypt_field.

    Raises:
        CryptoIntegrityError: if the envelope is malformed or fails authentication.
            The envelope itself is never returned in place of plaintext.
    """
    if not envelope:
        return envelope
    parts = envelope.split(":")
    if len(parts) != 4:
        raise CryptoIntegrityError(f"Envelope has {len(parts)} segments, expected 4")
    version, nonce_hex, tag_hex, ct_hex = parts
    if version != ENVELOPE_VERSION:
        raise CryptoIntegrityError(f"Unsupported envelope version: {version[:8]!r}")
    try:
        nonce = bytes.fromhex(nonce_hex)
        tag = bytes.fromhex(tag_hex)
        ct = bytes.fromhex(ct_hex)
    except ValueError as e:
        raise CryptoIntegrityError("Envelope contains non-hex data") from e
    if len(nonce) != NONCE_SIZE:
        raise CryptoIntegrityError(f"Invalid nonce length: {len(nonce)}")
    # Rejecting short tags prevents tag truncation attacks
    if len(tag) != TAG_SIZE:
        raise CryptoIntegrityError(f"Invalid authentication tag length: {len(tag)}")
    cipher = AESGCM(key or get_master_key())
    try:
        plaintext = cipher.decrypt(nonce, ct + tag, None)
    except InvalidTag as e:
        logger.error("Field decryption failed authentication")
        raise CryptoIntegrityError("Authentication tag mismatch") from e
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CryptoIntegrityError("Decrypted payload is not valid UTF-8") from e


# ---------------------------------------------------------------------------
# Structured value serialization
# ---------------------------------------------------------------------------

def serialize_structured(value: Any) -> str:
    """Canonical JSON text (sorted keys) for a structured field before encryption."""
    return orjson.dumps(value, option=orjson.OPT_SORT_KEYS).decode("utf-8")


def deserialize_structured(data: str) -> Any:
    try:
        return orjson.loads(data)
    except orjson.JSONDecodeError as e:
        raise CryptoIntegrityError("Decrypted structured field is not valid JSON") from e


def is_envelope(value: str | None) -> bool:
    """True if value looks like a current-version envelope (does not authenticate it)."""
    if not value:
        return False
    parts = value.split(":")
    if len(parts) != 4 or parts[0] != ENVELOPE_VERSION:
        return False
    try:
        for p in parts[1:]:
            binascii.unhexlify(p)
    except (binascii.Error, ValueError):
        return False
    return True

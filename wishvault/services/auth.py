"""Password hashing, password policy and email verification codes."""
import re
import secrets
import string

import bcrypt

from wishvault.config import get_settings
from wishvault.errors import ValidationError

VERIFICATION_CODE_LENGTH = 6
BCRYPT_ROUNDS = 12


def _pwd_bytes(password: str, max_len: int = 72) -> bytes:
    return password.encode("utf-8")[:max_len]


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_pwd_bytes(plain), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(_pwd_bytes(password), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def validate_password_strength(password: str | None) -> None:
    """Policy for new accounts: minimum length plus upper, lower and digit."""
    min_len = get_settings().password_min_length
    password = password or ""
    if len(password) < min_len:
        raise ValidationError(f"Password must be at least {min_len} characters long.")
    if not re.search(r"[a-z]", password) or not re.search(r"[A-Z]", password) or not re.search(r"\d", password):
        raise ValidationError("Password must contain at least one uppercase letter, one lowercase letter, and one number.")


def generate_verification_code() -> str:
    return "".join(secrets.choice(string.digits) for _ in range(VERIFICATION_CODE_LENGTH))


def normalize_verification_code(raw: str | None) -> str:
    """Return stripped string, or empty string if not exactly 6 digits."""
    s = (raw or "").strip()
    if len(s) != VERIFICATION_CODE_LENGTH or not s.isdigit():
        return ""
    return s


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()

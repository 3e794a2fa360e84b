"""Password hashing, OTP codes and token fingerprints."""

import hashlib
import re
import secrets
import string

import bcrypt

OTP_LENGTH = 6

PASSWORD_MIN_LENGTH = 8
_PASSWORD_RULES = (
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter"),
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter"),
    (re.compile(r"[0-9]"), "Password must contain at least one number"),
    (re.compile(r"[!@#$%^&*]"), "Password must contain at least one special character"),
)
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def hash_password(password: str, rounds: int = 10) -> str:
    """Hash password with bcrypt. Bytes truncated to 72 (bcrypt limit)."""
    pwd_bytes = password.encode("utf-8")[:72]
    hashed = bcrypt.hashpw(pwd_bytes, bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify password with bcrypt. Plain password truncated to 72 bytes."""
    plain_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(plain_bytes, password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


def generate_otp(length: int = OTP_LENGTH) -> str:
    return "".join(secrets.choice(string.digits) for _ in range(length))


def token_fingerprint(token: str) -> str:
    """SHA256 hex of a token, used as its storage key."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


def password_policy_error(password: str) -> str | None:
    """Return the first unmet password rule, or None when the password is acceptable."""
    if len(password) < PASSWORD_MIN_LENGTH:
        return f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
    for pattern, message in _PASSWORD_RULES:
        if not pattern.search(password):
            return message
    return None

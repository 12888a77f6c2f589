# cinema_api/core/security.py
"""
Password hashing and random token helpers.

Stored password format:
    "<salt hex>.<derived key hex>"

The salt is 16 random bytes, hex-encoded; the hex string itself is fed to
scrypt as the salt. scrypt parameters (N=16384, r=8, p=1, 64-byte key)
match the hashes already stored by the web platform, so existing accounts
keep verifying.

Tokens (sessions, password reset, email verification, OAuth state) are
32 random bytes rendered as 64 lowercase hex characters.
"""
import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone

SALT_BYTES = 16
TOKEN_BYTES = 32

SCRYPT_N = 16384
SCRYPT_R = 8
SCRYPT_P = 1
SCRYPT_DKLEN = 64


def _derive_key(password: str, salt: str) -> bytes:
    return hashlib.scrypt(
        password.encode("utf-8"),
        salt=salt.encode("utf-8"),
        n=SCRYPT_N,
        r=SCRYPT_R,
        p=SCRYPT_P,
        dklen=SCRYPT_DKLEN,
    )


def hash_password(password: str) -> str:
    """
    Hash a plaintext password with a fresh random salt.

    Two calls with the same password return different values.
    Empty and non-ASCII passwords are accepted as-is (no normalization).
    """
    salt = secrets.token_hex(SALT_BYTES)
    derived = _derive_key(password, salt)
    return f"{salt}.{derived.hex()}"


def verify_password(password: str, stored_hash: str) -> bool:
    """
    Check a plaintext password against a stored "salt.key" value.

    Returns False for a mismatch and for a malformed stored value.
    """
    if not stored_hash or stored_hash.count(".") != 1:
        return False

    salt, expected_hex = stored_hash.split(".")
    if not salt or not expected_hex:
        return False

    derived = _derive_key(password, salt)
    return hmac.compare_digest(
        derived.hex().encode("ascii"), expected_hex.lower().encode("utf-8")
    )


def generate_token() -> str:
    """Return a 64-character lowercase hex token from the OS CSPRNG."""
    return secrets.token_hex(TOKEN_BYTES)


# Same generator, named for the call sites that use it.
generate_session_token = generate_token
generate_oauth_state = generate_token


def verify_oauth_state(candidate: str, expected: str) -> bool:
    """
    Compare an OAuth state value against the one we issued.

    Constant-time with respect to content; a length mismatch or a missing
    value is simply "not equal".
    """
    if not isinstance(candidate, str) or not isinstance(expected, str):
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """
    Attach UTC to naive datetimes.

    Some drivers (SQLite) return timestamps without tzinfo even though
    everything is written in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def get_expiration(delta: timedelta, now: datetime | None = None) -> datetime:
    """Return `now + delta` (UTC)."""
    return (now or utcnow()) + delta

"""Password hashing utilities.

Uses bcrypt for password hashing. bcrypt generates a random salt on every
call and encodes cost, salt and digest into one self-describing value
("$2b$12$..."), so the stored hash alone is enough to verify later.
The work factor (rounds=12) takes ~250ms per hash on modern hardware.

bcrypt only looks at the first 72 bytes of input. Longer passwords are
refused rather than truncated, otherwise two passwords sharing a 72-byte
prefix would verify against each other's hash.
"""

import bcrypt

DEFAULT_ROUNDS = 12

MAX_PASSWORD_BYTES = 72


def password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


def hash_password(password: str) -> bytes:
    """Hash a password with bcrypt. Two calls never return the same bytes.

    Raises ValueError for passwords over MAX_PASSWORD_BYTES.
    """
    if password_too_long(password):
        raise ValueError(f"password exceeds {MAX_PASSWORD_BYTES} bytes")
    salt = bcrypt.gensalt(rounds=DEFAULT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt)


def verify_password(password: str, password_hash: bytes) -> bool:
    """Verify a password against its hash.

    Returns False on mismatch, on a malformed or empty hash, and for a
    password too long to ever have been hashed.
    """
    if not password_hash or password_too_long(password):
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash)
    except (ValueError, TypeError):
        return False

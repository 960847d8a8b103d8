"""
Password utilities for CMS access and protected galleries.
Uses bcrypt for secure password hashing.
"""
import bcrypt
from lumenpress.config import settings

BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


def hash_password(password: str, rounds: int = 12) -> str:
    """
    Hash a password using bcrypt.
    Used when the CMS writes a gallery password into gallery.yaml.

    Args:
        password: Plain text password
        rounds: bcrypt cost factor

    Returns:
        Hashed password string
    """
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def is_password_hash(value: str) -> bool:
    """True if `value` looks like a bcrypt hash rather than a plaintext password."""
    return isinstance(value, str) and value.startswith(BCRYPT_PREFIXES) and len(value) == 60


def verify_password(password: str, hashed_password: str) -> bool:
    """
    Verify a password against a hashed password.

    Args:
        password: Plain text password to verify
        hashed_password: Hashed password to compare against

    Returns:
        True if password matches, False otherwise
    """
    if not password or not hashed_password:
        return False
    try:
        return bcrypt.checkpw(
            password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        # Not a bcrypt hash
        return False


def verify_admin_password(password: str) -> bool:
    """
    Verify admin password against stored hash.

    Args:
        password: Plain text password to verify

    Returns:
        True if password matches admin password, False otherwise

    Raises:
        ValueError: If ADMIN_PASSWORD_HASH is not configured
    """
    if not settings.ADMIN_PASSWORD_HASH:
        raise ValueError("ADMIN_PASSWORD_HASH not configured")

    return verify_password(password, settings.ADMIN_PASSWORD_HASH)

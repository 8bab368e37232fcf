"""Shared-credential checks for the write endpoints."""

from typing import Optional

import bcrypt
from fastapi import Header

from server import config
from server.exceptions import InvalidCredentialsError


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password to hash

    Returns:
        Bcrypt hash suitable for AUTH_PASSWORD_HASH
    """
    password_bytes = password.encode('utf-8')
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    password_bytes = password.encode('utf-8')
    hash_bytes = password_hash.encode('utf-8')
    try:
        return bcrypt.checkpw(password_bytes, hash_bytes)
    except ValueError:
        return False


async def require_credential(authorization: Optional[str] = Header(None)) -> None:
    """
    FastAPI dependency enforcing the single shared credential.

    Open when AUTH_PASSWORD_HASH is not configured.

    Raises:
        InvalidCredentialsError: If the bearer password is missing or wrong
    """
    password_hash = config.AUTH_PASSWORD_HASH
    if not password_hash:
        return

    if not authorization or not authorization.startswith("Bearer "):
        raise InvalidCredentialsError("Missing or invalid authorization header")

    password = authorization[len("Bearer "):]
    if not verify_password(password, password_hash):
        raise InvalidCredentialsError("Invalid credentials")

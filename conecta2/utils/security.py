"""
Security utilities for the local BaaS emulation.

Provides bcrypt password hashing and JWT signing/verification via
python-jose.  The hosted auth service issues its own tokens; these helpers
only back ``BAAS_MODE=local`` (sessions, refresh tokens and signed storage
URLs).  All configuration is sourced from the application settings.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import JWTError, jwt

from conecta2.config import get_settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Password helpers (bcrypt direct)
# ---------------------------------------------------------------------------


def hash_password(password: str) -> str:
    pwd_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(pwd_bytes, salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# ---------------------------------------------------------------------------
# JWT helpers
# ---------------------------------------------------------------------------


def create_token(data: dict[str, Any], expires_minutes: float) -> str:
    """Create a signed JWT carrying *data* plus ``exp`` and ``iat`` claims.

    Args:
        data: Claims to embed.  Must not contain ``exp``.
        expires_minutes: Lifetime of the token.

    Returns:
        A compact JWT string signed with ``JWT_ALGORITHM``.

    Example::

        token = create_token({"sub": user_id, "session_id": sid}, 60)
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = data.copy()
    payload["exp"] = now + timedelta(minutes=expires_minutes)
    payload["iat"] = now
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> dict[str, Any]:
    """Decode and verify a JWT.

    Raises:
        ValueError: If the token is invalid, expired, or cannot be decoded.
                    Callers map this to the auth service's 401 error.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
        return payload
    except JWTError as exc:
        logger.debug("JWT verification failed: %s", exc)
        raise ValueError("Token inválido o expirado") from exc

"""Password hashing and access-token helpers."""
from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from murmur_stage.core.settings import settings


class TokenError(Exception):
    """Raised when an access token cannot be trusted."""

    def __init__(self, message: str, *, expired: bool = False) -> None:
        super().__init__(message)
        self.expired = expired


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims carried by an access token."""

    user_id: int
    token_id: str
    expires_at: datetime


def hash_password(password: str) -> str:
    """Return a bcrypt hash of ``password``."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Return True if ``password`` matches the stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(user_id: int, expires_minutes: int | None = None) -> str:
    """Create a JWT access token for ``user_id``."""
    minutes = settings.access_token_expire_minutes if expires_minutes is None else expires_minutes
    expire = datetime.now(UTC) + timedelta(minutes=minutes)
    to_encode: dict[str, object] = {
        "sub": str(user_id),
        "jti": secrets.token_hex(16),
        "exp": expire,
    }
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_access_token(token: str) -> TokenClaims:
    """Verify ``token`` and return its claims.

    Raises:
        TokenError: If the signature, expiry or subject is invalid.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError as err:
        raise TokenError("Token expired", expired=True) from err
    except JWTError as err:
        raise TokenError("Could not validate credentials") from err

    subject = payload.get("sub")
    exp = payload.get("exp")
    if subject is None or exp is None:
        raise TokenError("Could not validate credentials")
    try:
        user_id = int(subject)
    except (TypeError, ValueError) as err:
        raise TokenError("Could not validate credentials") from err

    return TokenClaims(
        user_id=user_id,
        token_id=str(payload.get("jti") or ""),
        expires_at=datetime.fromtimestamp(int(exp), tz=UTC),
    )


def token_fingerprint(token: str) -> str:
    """Return a stable SHA-256 fingerprint used as the blacklist key."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()

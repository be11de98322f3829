"""Registration, login and logout."""

from __future__ import annotations

import logging

import redis
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from murmur_stage.core.errors import AuthenticationFailed, Conflict, InternalError
from murmur_stage.core.security import (
    TokenClaims,
    create_access_token,
    hash_password,
    verify_password,
)
from murmur_stage.db.time import utcnow
from murmur_stage.models import User
from murmur_stage.schemas.user import LoginRequest, RegisterRequest
from murmur_stage.services.token_blacklist import TokenBlacklist

logger = logging.getLogger(__name__)


def _duplicate() -> Conflict:
    return Conflict("Username or email already registered", code="USER_EXISTS")


def register(db: Session, request: RegisterRequest) -> tuple[User, str]:
    """Create an account and return it with a fresh access token.

    Raises:
        Conflict: If the username or email is taken (409).
    """
    email = request.email.lower()
    taken = db.execute(
        select(User.id).where(
            or_(
                func.lower(User.username) == request.username.lower(),
                func.lower(User.email) == email,
            )
        )
    ).first()
    if taken is not None:
        raise _duplicate()

    user = User(
        username=request.username,
        email=email,
        password_hash=hash_password(request.password),
        display_name=request.display_name or request.username,
        last_active_at=utcnow(),
    )
    try:
        db.add(user)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _duplicate() from None
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Registration of %s failed: %s", request.username, exc)
        raise InternalError("Could not register user") from exc

    logger.info("Registered user %s (%s)", user.id, user.username)
    return user, create_access_token(user.id)


def login(db: Session, request: LoginRequest) -> tuple[User, str]:
    """Verify credentials and return the user with a fresh access token.

    Raises:
        AuthenticationFailed: With code ``INVALID_CREDENTIALS``.
    """
    user = db.execute(
        select(User).where(func.lower(User.email) == request.email.lower())
    ).scalars().first()
    if user is None or not verify_password(request.password, user.password_hash):
        raise AuthenticationFailed("Invalid email or password", code="INVALID_CREDENTIALS")

    try:
        user.last_active_at = utcnow()
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("Could not update last_active_at for user %s: %s", user.id, exc)

    return user, create_access_token(user.id)


def logout(blacklist: TokenBlacklist, token: str, claims: TokenClaims) -> None:
    """Revoke ``token`` for the rest of its lifetime.

    Raises:
        InternalError: If the blacklist cannot be written.
    """
    try:
        blacklist.revoke(token, claims.expires_at)
    except redis.RedisError as exc:
        logger.error("Could not revoke token for user %s: %s", claims.user_id, exc)
        raise InternalError("Could not log out", code="LOGOUT_FAILED") from exc
    logger.info("User %s logged out", claims.user_id)

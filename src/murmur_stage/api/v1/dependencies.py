"""Shared API dependencies for authentication and common functionality."""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from murmur_stage.core.errors import AuthenticationFailed
from murmur_stage.core.security import TokenClaims, TokenError, decode_access_token
from murmur_stage.db.session import get_db
from murmur_stage.models import User
from murmur_stage.services.realtime import EventPublisher, get_event_bus
from murmur_stage.services.storage import BlobStore, get_blob_store
from murmur_stage.services.token_blacklist import TokenBlacklist, get_token_blacklist

# Missing credentials are reported with our own error code, not FastAPI's.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]
BlacklistDep = Annotated[TokenBlacklist, Depends(get_token_blacklist)]
EventsDep = Annotated[EventPublisher, Depends(get_event_bus)]
BlobStoreDep = Annotated[BlobStore, Depends(get_blob_store)]
CredentialsDep = Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)]


@dataclass(frozen=True)
class AuthContext:
    """Authenticated user together with the token that proved it."""

    user: User
    token: str
    claims: TokenClaims


def _authenticate(token: str, db: Session, blacklist: TokenBlacklist) -> AuthContext:
    try:
        claims = decode_access_token(token)
    except TokenError as err:
        code = "TOKEN_EXPIRED" if err.expired else "TOKEN_INVALID"
        raise AuthenticationFailed(str(err), code=code) from err

    if blacklist.is_revoked(token):
        raise AuthenticationFailed("Token has been revoked", code="TOKEN_REVOKED")

    user = db.get(User, claims.user_id)
    if user is None:
        raise AuthenticationFailed("User not found", code="TOKEN_INVALID")
    return AuthContext(user=user, token=token, claims=claims)


def get_auth_context(
    credentials: CredentialsDep,
    db: SessionDep,
    blacklist: BlacklistDep,
) -> AuthContext:
    """Resolve the bearer token into an :class:`AuthContext`.

    Raises:
        AuthenticationFailed: With ``TOKEN_MISSING``, ``TOKEN_INVALID``,
            ``TOKEN_EXPIRED`` or ``TOKEN_REVOKED``.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationFailed("Authentication token is required", code="TOKEN_MISSING")
    return _authenticate(credentials.credentials, db, blacklist)


AuthContextDep = Annotated[AuthContext, Depends(get_auth_context)]


def get_current_user(context: AuthContextDep) -> User:
    """Get the current authenticated user."""
    return context.user


def get_optional_user(
    credentials: CredentialsDep,
    db: SessionDep,
    blacklist: BlacklistDep,
) -> User | None:
    """Return the caller when a valid token is presented, otherwise ``None``.

    Read endpoints use this to personalize results without requiring login.
    """
    if credentials is None or not credentials.credentials:
        return None
    try:
        return _authenticate(credentials.credentials, db, blacklist).user
    except AuthenticationFailed:
        return None


# Type alias for current user dependency
CurrentUserDep = Annotated[User, Depends(get_current_user)]
OptionalUserDep = Annotated[User | None, Depends(get_optional_user)]

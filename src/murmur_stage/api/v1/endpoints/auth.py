# src/murmur_stage/api/v1/endpoints/auth.py
"""Authentication endpoints for the Murmur API."""

from fastapi import APIRouter, status

from murmur_stage.schemas.common import MessageResponse
from murmur_stage.schemas.user import AccountResponse, AuthResponse, LoginRequest, RegisterRequest
from murmur_stage.services import auth as auth_service
from murmur_stage.services.users import account_for

from ..dependencies import AuthContextDep, BlacklistDep, CurrentUserDep, SessionDep

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(request: RegisterRequest, db: SessionDep) -> AuthResponse:
    """Create an account and log it in.

    Args:
        request: Username, email, password and optional display name
        db: Database session

    Returns:
        Access token and the new account

    Raises:
        ApiError: 409 if the username or email is already registered
    """
    user, token = auth_service.register(db, request)
    return AuthResponse(
        message="User registered successfully",
        token=token,
        user=account_for(db, user),
    )


@router.post("/login", response_model=AuthResponse)
def login(request: LoginRequest, db: SessionDep) -> AuthResponse:
    """Exchange email and password for an access token.

    Raises:
        ApiError: 401 ``INVALID_CREDENTIALS`` on a wrong email or password
    """
    user, token = auth_service.login(db, request)
    return AuthResponse(message="Login successful", token=token, user=account_for(db, user))


@router.post("/logout", response_model=MessageResponse)
def logout(context: AuthContextDep, blacklist: BlacklistDep) -> MessageResponse:
    """Revoke the presented token until it would have expired."""
    auth_service.logout(blacklist, context.token, context.claims)
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=AccountResponse)
def me(current_user: CurrentUserDep, db: SessionDep) -> AccountResponse:
    """Return the authenticated account."""
    return AccountResponse(message="User retrieved successfully", user=account_for(db, current_user))

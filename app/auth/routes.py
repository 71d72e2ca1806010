# =============================================================================
# app/auth/routes.py - Authentication Routes
# =============================================================================
# API endpoints for authentication-related operations.
#
# Signup itself is handled by Supabase Auth client-side. These routes cover
# login, password recovery, verification e-mails and user info after
# authentication.
# =============================================================================

import logging
from fastapi import APIRouter, Depends

from app.auth.dependencies import get_current_user
from app.auth.models import (
    AuthUser,
    EmailRequest,
    LoginRequest,
    LoginResponse,
    PasswordUpdateRequest,
    UserResponse,
)
from core.services import AccountService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Auth"])


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    user: AuthUser = Depends(get_current_user)
) -> UserResponse:
    """
    Get the current authenticated user's profile.

    Returns:
        UserResponse: User profile with id, email, display_name, etc.

    Raises:
        401: If not authenticated
    """
    try:
        profile = AccountService.get_profile(user.id)
        if profile:
            return UserResponse(**profile)

    except Exception as e:
        logger.warning(f"Could not fetch user profile: {e}")

    # User exists in auth but not yet in public.users
    # (might happen if trigger hasn't run yet)
    return UserResponse(id=user.id, email=user.email)


@router.get("/verify")
async def verify_token(
    user: AuthUser = Depends(get_current_user)
) -> dict:
    """
    Verify that the current token is valid.

    Useful for checking if a stored token is still valid.

    Raises:
        401: If token is invalid or expired
    """
    return {
        "valid": True,
        "user_id": str(user.id),
        "email": user.email
    }


@router.post("/login", response_model=LoginResponse)
async def login(request: LoginRequest) -> LoginResponse:
    """
    Sign in with email and password.

    The email is trimmed and lower-cased before it is sent to Supabase Auth.

    Raises:
        401: Invalid credentials
        422: Malformed email
    """
    return LoginResponse(**AccountService.login(request.email, request.password))


@router.post("/password-reset/request")
async def request_password_reset(request: EmailRequest) -> dict:
    """Send a password reset link to the given address."""
    AccountService.request_password_reset(request.email)
    return {
        "success": True,
        "message": "If an account exists for this email, a reset link has been sent",
    }


@router.post("/password-reset/update")
async def update_password(request: PasswordUpdateRequest) -> dict:
    """Set a new password using the token from the reset link."""
    AccountService.update_password(request.access_token, request.password)
    return {"success": True}


@router.post("/verification/resend")
async def resend_verification(request: EmailRequest) -> dict:
    """Resend the signup confirmation e-mail."""
    AccountService.resend_verification(request.email)
    return {"success": True}

# =============================================================================
# core/services/account_service.py - Account Operations via Supabase Auth
# =============================================================================
# Login, password reset and verification e-mails.
#
# These talk to the Supabase Auth (GoTrue) REST API directly with the anon
# key instead of through the shared client: signing a user in through the
# service-role client would attach that user's session to the singleton
# every other request uses.
# =============================================================================

import logging
from typing import Any
from uuid import UUID

import httpx

from app.config import settings
from app.exceptions import (
    AuthenticationFailedError,
    ExternalServiceError,
    InvalidRequestError,
)
from app.auth.models import MIN_PASSWORD_LENGTH
from lib.supabase_client import SupabaseClient
from lib.utils import normalize_uuid

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10
LOGIN_TABLE = "login_signup"


def _auth_url(path: str) -> str:
    return f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1/{path}"


def _headers(access_token: str | None = None) -> dict[str, str]:
    headers = {
        "apikey": settings.SUPABASE_ANON_KEY,
        "Content-Type": "application/json",
    }
    if access_token:
        headers["Authorization"] = f"Bearer {access_token}"
    return headers


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    return (
        body.get("error_description")
        or body.get("msg")
        or body.get("message")
        or body.get("error")
        or f"HTTP {response.status_code}"
    )


class AccountService:
    """Service for account operations that go through Supabase Auth."""

    @staticmethod
    def _request(
        method: str,
        path: str,
        payload: dict[str, Any],
        access_token: str | None = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            return httpx.request(
                method,
                _auth_url(path),
                json=payload,
                params=params,
                headers=_headers(access_token),
                timeout=REQUEST_TIMEOUT,
            )
        except httpx.HTTPError as e:
            logger.error(f"Supabase Auth request to {path} failed: {e}")
            raise ExternalServiceError("Supabase Auth", str(e))

    @staticmethod
    def login(email: str, password: str) -> dict[str, Any]:
        """
        Sign in with email and password.

        Records a login_signup row for the signed-in user.

        Returns:
            Dict with access_token, refresh_token, expires_in, user {id, email}

        Raises:
            AuthenticationFailedError: On bad credentials
        """
        response = AccountService._request(
            "POST",
            "token",
            {"email": email, "password": password},
            params={"grant_type": "password"},
        )

        if response.status_code in (400, 401):
            logger.info(f"Failed login for {email}")
            raise AuthenticationFailedError(_error_message(response))
        if response.status_code >= 400:
            raise ExternalServiceError("Supabase Auth", _error_message(response))

        session = response.json()
        user = session.get("user") or {}

        AccountService._record_login(user.get("id"))

        logger.info(f"User {user.get('id')} logged in")
        return {
            "access_token": session["access_token"],
            "refresh_token": session.get("refresh_token"),
            "expires_in": session.get("expires_in"),
            "token_type": session.get("token_type", "bearer"),
            "user": {"id": user.get("id"), "email": user.get("email") or email},
        }

    @staticmethod
    def _record_login(user_id: str | None) -> None:
        # Audit row only; failures are logged
        if not user_id:
            return
        try:
            SupabaseClient.insert_row(LOGIN_TABLE, {
                "user_id": user_id,
                "title": "login",
                "status": "active",
            })
        except Exception as e:
            logger.warning(f"Could not record login for {user_id}: {e}")

    @staticmethod
    def request_password_reset(email: str) -> None:
        """Send the password reset e-mail, redirecting to <SITE_URL>/reset-password."""
        response = AccountService._request(
            "POST",
            "recover",
            {"email": email},
            params={"redirect_to": f"{settings.site_base_url}/reset-password"},
        )
        if response.status_code >= 400:
            raise ExternalServiceError(
                "Supabase Auth", _error_message(response), status_code=400
            )
        logger.info(f"Password reset requested for {email}")

    @staticmethod
    def update_password(access_token: str, password: str) -> None:
        """
        Set a new password for the user the recovery token belongs to.

        Raises:
            InvalidRequestError: If the password is shorter than 8 characters
            AuthenticationFailedError: If the recovery token is rejected
        """
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidRequestError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )

        response = AccountService._request(
            "PUT", "user", {"password": password}, access_token=access_token
        )
        if response.status_code == 401:
            raise AuthenticationFailedError("Reset link is invalid or has expired")
        if response.status_code >= 400:
            raise ExternalServiceError(
                "Supabase Auth", _error_message(response), status_code=400
            )
        logger.info("Password updated via recovery link")

    @staticmethod
    def resend_verification(email: str) -> None:
        """Resend the signup confirmation e-mail."""
        response = AccountService._request(
            "POST", "resend", {"type": "signup", "email": email}
        )
        if response.status_code >= 400:
            raise ExternalServiceError(
                "Supabase Auth", _error_message(response), status_code=400
            )
        logger.info(f"Verification e-mail resent to {email}")

    @staticmethod
    def get_profile(user_id: UUID | str) -> dict[str, Any] | None:
        """Row from public.users, or None before the signup trigger has run."""
        client = SupabaseClient.get_client()
        response = (
            client.table("users")
            .select("*")
            .eq("id", normalize_uuid(user_id))
            .limit(1)
            .execute()
        )
        rows = response.data or []
        return rows[0] if rows else None

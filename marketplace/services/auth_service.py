"""
Authentication and identity related use cases.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping

from marketplace.core.config import get_settings
from marketplace.core.errors import (
    AppError,
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationFailed,
)
from marketplace.core.mailer import send_email
from marketplace.core.security import hash_password, sha256_hex, verify_password
from marketplace.core.utils import absolute_url, as_utc, utcnow
from marketplace.db.models import User
from marketplace.domain.users import (
    MIN_PASSWORD_LENGTH,
    changed_password_after,
    validate_password_change,
    validate_signup,
)
from marketplace.repositories.user_repository import UserRepository
from marketplace.services.session_service import active_session, issue_session

log = logging.getLogger("marketplace.auth")

SIGNUP_ROLES = ("user", "creator")


@dataclass
class AuthResult:
    user: User
    token: str


class AuthService:
    """Handles signup, login, session checks and password flows."""

    def __init__(self, users: UserRepository) -> None:
        self.users = users
        self.settings = get_settings()

    # -------------------------------------- signup/login --------------------------------------
    def signup(self, data: Mapping[str, Any]) -> AuthResult:
        result = validate_signup(data)
        if not result.ok:
            raise ValidationFailed(result.errors)
        clean = result.value
        if self.users.get_by_email(clean["email"]):
            raise ConflictError("Email already in use")
        role = data.get("role") or "user"
        if role not in SIGNUP_ROLES:
            raise ValidationFailed(["Role is either: user or creator"])
        user = self.users.create(
            name=clean["name"],
            email=clean["email"],
            password_hash=hash_password(clean["password"]),
            role=role,
            photo=clean.get("photo"),
            wallet_address=clean.get("wallet_address"),
        )
        log.info("New account user_id=%s role=%s", user.id, user.role)
        return AuthResult(user, issue_session(self.users, user.id))

    def login(self, email: str | None, password: str | None) -> AuthResult:
        if not email or not password:
            raise AppError("Please provide email and password!", 400)
        user = self.users.get_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            raise UnauthorizedError("Incorrect email or password")
        if not user.active:
            raise UnauthorizedError("This account has been deactivated")
        return AuthResult(user, issue_session(self.users, user.id))

    def logout(self, token: str | None) -> None:
        if token:
            self.users.delete_session(token)

    def authenticate(self, token: str | None) -> User:
        """Resolve the user behind a session token or raise UnauthorizedError."""
        if not token:
            raise UnauthorizedError("You are not logged in! Please log in to get access.")
        session = active_session(self.users, token)
        if not session:
            raise UnauthorizedError("Invalid or expired session. Please log in again.")
        user = self.users.get(session.user_id)
        if not user or not user.active:
            raise UnauthorizedError("The user belonging to this session no longer exists.")
        if changed_password_after(user, as_utc(session.created_at)):
            self.users.delete_session(token)
            raise UnauthorizedError("User recently changed password! Please log in again.")
        return user

    # -------------------------------------- passwords --------------------------------------
    def forgot_password(self, email: str | None) -> None:
        user = self.users.get_by_email(email or "")
        if not user:
            raise NotFoundError("There is no user with that email address.")
        token = secrets.token_hex(32)
        expires_at = utcnow() + timedelta(seconds=self.settings.password_reset_ttl)
        self.users.create_reset_token(sha256_hex(token), user.id, expires_at)
        reset_url = absolute_url(f"/api/v1/users/resetPassword/{token}")
        minutes = max(1, self.settings.password_reset_ttl // 60)
        sent = send_email(
            "Your password reset token",
            user.email,
            f"Forgot your password? Submit a PATCH request with your new password to: {reset_url}\n"
            f"This link is valid for {minutes} minutes. If you didn't forget your password, please ignore this email.",
        )
        if sent:
            return
        if self.settings.app_env == "dev":
            log.info("Password reset URL for user_id=%s: %s", user.id, reset_url)
            return
        self.users.delete_reset_tokens(user.id)
        raise AppError("There was an error sending the email. Try again later!", 500)

    def reset_password(self, token: str, data: Mapping[str, Any]) -> AuthResult:
        entity = self.users.pop_reset_token(sha256_hex(token or ""))
        if not entity or as_utc(entity.expires_at) < utcnow():
            raise AppError("Token is invalid or has expired", 400)
        return self._replace_password(entity.user_id, data)

    def update_password(self, user: User, data: Mapping[str, Any]) -> AuthResult:
        result = validate_password_change(data)
        if not result.ok:
            raise ValidationFailed(result.errors)
        if not verify_password(data["password_current"], user.password_hash):
            raise UnauthorizedError("Your current password is wrong.")
        return self._replace_password(user.id, data)

    def _replace_password(self, user_id: int, data: Mapping[str, Any]) -> AuthResult:
        password = data.get("password")
        confirm = data.get("password_confirm")
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationFailed([f"Password must be at least {MIN_PASSWORD_LENGTH} characters"])
        if confirm != password:
            raise ValidationFailed(["Passwords are not the same!"])
        # Sessions issued before this moment become invalid.
        changed_at = utcnow() - timedelta(seconds=1)
        self.users.set_password(user_id, hash_password(password), changed_at)
        self.users.delete_user_sessions(user_id)
        user = self.users.get(user_id)
        return AuthResult(user, issue_session(self.users, user_id))
